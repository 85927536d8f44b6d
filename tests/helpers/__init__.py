from .mocks import (
    MockTransport,
    FakeClock,
    xml_body,
    xml_response,
    error_response,
    lag_response,
    token_response,
    userinfo_response,
)

__all__ = [
    "MockTransport",
    "FakeClock",
    "xml_body",
    "xml_response",
    "error_response",
    "lag_response",
    "token_response",
    "userinfo_response",
]
