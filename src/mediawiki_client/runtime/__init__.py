"""Runtime helpers for the MediaWiki client core"""

from .errors import ErrorKind, WikiError, EncodingError, UnsupportedValueType, classify_error_code
from .codec import Blob, encode_param, encode_params
from .decoder import ApiErrorInfo, UploadResult, ResponseDecoder, XmlResponseDecoder

__all__ = [
    "ErrorKind",
    "WikiError",
    "EncodingError",
    "UnsupportedValueType",
    "classify_error_code",
    "Blob",
    "encode_param",
    "encode_params",
    "ApiErrorInfo",
    "UploadResult",
    "ResponseDecoder",
    "XmlResponseDecoder",
]
