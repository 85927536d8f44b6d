"""
Chunked file upload.

Payloads above the single-request threshold are streamed to the server's
upload stash in power-of-two chunks, then published with one finalize
request. Any failure aborts the session; there is no resume, a new session
starts again from offset 0.

State machine::

    PENDING -> STREAMING -> ... -> STASHED -> DONE
    PENDING -> DONE                              (single request)
    any     -> FAILED
"""

from __future__ import annotations
import logging
import os
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from ..client.requests import Request, RawResponse
from ..runtime.codec import Blob
from ..runtime.decoder import ResponseDecoder, UploadResult
from ..runtime.errors import WikiError, ErrorKind


DEFAULT_CHUNK_SIZE = 1 << 22  # 4 MiB
MIN_CHUNK_SIZE = 1 << 10

UploadSource = Union[bytes, bytearray, str, os.PathLike]


class UploadState(Enum):
    """Upload session states."""
    PENDING = "pending"
    STREAMING = "streaming"
    STASHED = "stashed"
    DONE = "done"
    FAILED = "failed"


class ChunkedUploadSession:
    """
    Drives one upload from first byte to published file.

    Not thread safe: one session belongs to one caller.
    """

    def __init__(
        self,
        executor,
        decoder: ResponseDecoder,
        endpoint: str,
        data: UploadSource,
        filename: str,
        token: str,
        text: str = "",
        comment: str = "",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        single_request_threshold: Optional[int] = None,
        ignore_warnings: bool = False,
        base_params: Optional[Mapping[str, Any]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize an upload session.

        Args:
            executor: RetryExecutor used for every request
            decoder: Decoder providing upload results
            endpoint: API endpoint URL
            data: File contents, or a path to read them from
            filename: Target file name on the wiki
            token: Edit (csrf) token
            text: Initial page text for the file description page
            comment: Upload summary
            chunk_size: Bytes per chunk, a power of two
            single_request_threshold: Largest size sent without chunking;
                defaults to ``chunk_size``
            ignore_warnings: Publish despite upload warnings
            base_params: Parameters added to every request (e.g. format)
            logger: Logger to use instead of the module logger
        """
        if chunk_size < MIN_CHUNK_SIZE or chunk_size & (chunk_size - 1):
            raise WikiError(
                f"chunk_size must be a power of two of at least {MIN_CHUNK_SIZE} bytes",
                ErrorKind.INVALID_ARGUMENT,
            )
        if not filename:
            raise WikiError("filename is required", ErrorKind.INVALID_ARGUMENT)

        self.executor = executor
        self.decoder = decoder
        self.endpoint = endpoint
        self.filename = filename
        self.token = token
        self.text = text
        self.comment = comment
        self.chunk_size = chunk_size
        self.single_request_threshold = (
            chunk_size if single_request_threshold is None else single_request_threshold
        )
        self.ignore_warnings = ignore_warnings
        self.base_params = dict(base_params or {})
        self._logger = logger or logging.getLogger(__name__)

        if isinstance(data, (bytes, bytearray)):
            self._data: Optional[bytes] = bytes(data)
            self._path: Optional[str] = None
            self.file_size = len(self._data)
        else:
            self._data = None
            self._path = os.fspath(data)
            self.file_size = os.path.getsize(self._path)
        if self.file_size == 0:
            raise WikiError("Cannot upload an empty file", ErrorKind.INVALID_ARGUMENT)

        self.state = UploadState.PENDING
        self.offset = 0
        self._filekey: Optional[str] = None
        self.requests_sent = 0

    @property
    def filekey(self) -> Optional[str]:
        """Stash handle assigned by the first chunk response."""
        return self._filekey

    @property
    def chunked(self) -> bool:
        return self.file_size > self.single_request_threshold

    @property
    def chunk_count(self) -> int:
        if not self.chunked:
            return 1
        return -(-self.file_size // self.chunk_size)

    def _read(self, offset: int, length: int) -> bytes:
        if self._data is not None:
            return self._data[offset:offset + length]
        with open(self._path, "rb") as f:
            f.seek(offset)
            return f.read(length)

    def _request(self, params: Dict[str, Any]) -> RawResponse:
        body = dict(self.base_params)
        body.update(params)
        body.setdefault("action", "upload")
        body["filename"] = self.filename
        body["token"] = self.token
        body["ignorewarnings"] = self.ignore_warnings
        self.requests_sent += 1
        return self.executor.execute(Request.post(self.endpoint, body, write=True))

    def run(self) -> RawResponse:
        """
        Perform the whole upload.

        Returns:
            The response of the request that published the file

        Raises:
            WikiError: On any failed request or protocol violation; the
                session is then FAILED and cannot be resumed
        """
        if self.state is not UploadState.PENDING:
            raise WikiError(f"Upload session already {self.state.value}", ErrorKind.INVALID_ARGUMENT)
        try:
            if not self.chunked:
                response = self._upload_whole()
            else:
                self.state = UploadState.STREAMING
                self._logger.info(
                    f"Uploading {self.filename} ({self.file_size} bytes) in {self.chunk_count} chunk(s)"
                )
                while self.state is UploadState.STREAMING:
                    self._send_chunk()
                response = self._finalize()
        except Exception:
            self.state = UploadState.FAILED
            self._logger.error(
                f"Upload of {self.filename} failed at offset {self.offset}; the session cannot be resumed"
            )
            raise
        self.state = UploadState.DONE
        return response

    def _upload_whole(self) -> RawResponse:
        response = self._request({
            "file": Blob(self._read(0, self.file_size), self.filename),
            "text": self.text,
            "comment": self.comment,
        })
        self._check_published(response)
        return response

    def _send_chunk(self) -> None:
        offset = self.offset
        length = min(self.chunk_size, self.file_size - offset)
        params: Dict[str, Any] = {
            "filesize": self.file_size,
            "offset": offset,
            "chunk": Blob(self._read(offset, length), self.filename),
            "stash": True,
        }
        if self._filekey is not None:
            params["filekey"] = self._filekey
        response = self._request(params)

        result = self.decoder.decode_upload_result(response.body)
        if result is None or not result.filekey:
            raise WikiError(f"No filekey returned for chunk at offset {offset}", ErrorKind.PROTOCOL)
        last = offset + length >= self.file_size
        self._check_result(result, "success" if last else "continue")
        if self._filekey is None:
            self._filekey = result.filekey
        elif result.filekey != self._filekey:
            raise WikiError(
                f"Server changed filekey from {self._filekey} to {result.filekey}",
                ErrorKind.PROTOCOL,
            )

        self.offset = offset + length
        if self.offset >= self.file_size:
            self.state = UploadState.STASHED
        elif result.offset is not None and result.offset != self.offset:
            raise WikiError(
                f"Server expects offset {result.offset}, client is at {self.offset}",
                ErrorKind.PROTOCOL,
            )
        self._logger.debug(f"Chunk {offset}-{self.offset} of {self.filename} stashed")

    def _finalize(self) -> RawResponse:
        response = self._request({
            "filekey": self._filekey,
            "text": self.text,
            "comment": self.comment,
        })
        self._check_published(response)
        self._logger.info(f"Published {self.filename}")
        return response

    def _check_published(self, response: RawResponse) -> None:
        result = self.decoder.decode_upload_result(response.body)
        if result is None:
            # Soft-success errors (e.g. fileexists-no-change) come back as responses
            error = self.decoder.decode_error(response.body)
            if error is not None:
                self._logger.info(f"{self.filename} not re-uploaded: {error.code}")
                return
            raise WikiError(f"No upload status returned for {self.filename}", ErrorKind.PROTOCOL)
        self._check_result(result, "success")

    def _check_result(self, result: UploadResult, expected: str) -> None:
        status = result.result.lower()
        if status != expected:
            raise WikiError(
                f"Upload of {self.filename} not accepted: {result.result or 'no result'}",
                ErrorKind.API_ERROR,
                code=f"upload-{status or 'unknown'}",
                details={"offset": self.offset, "expected": expected},
            )


__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "MIN_CHUNK_SIZE",
    "UploadState",
    "ChunkedUploadSession",
]
