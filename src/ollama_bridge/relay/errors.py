"""Relay error type and the stable error codes surfaced to clients."""

from __future__ import annotations

READ_RESPONSE_BODY_FAILED = "read_response_body_failed"
CLOSE_RESPONSE_BODY_FAILED = "close_response_body_failed"
UNMARSHAL_RESPONSE_BODY_FAILED = "unmarshal_response_body_failed"
MARSHAL_RESPONSE_BODY_FAILED = "marshal_response_body_failed"
BACKEND_ERROR = "backend_error"
DO_REQUEST_FAILED = "do_request_failed"
BAD_RESPONSE_STATUS_CODE = "bad_response_status_code"
INVALID_REQUEST = "invalid_request"


class RelayError(Exception):
    """A failure at the translation boundary.

    Carries the code/message/status triple the HTTP edge renders as a JSON
    error envelope. Streaming failures also carry the text accumulated
    before the failure.
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 500,
        partial_text: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.partial_text = partial_text

    def to_dict(self) -> dict:
        """Render the client-facing error envelope."""
        return {
            "error": {
                "message": self.message,
                "type": "relay_error",
                "param": "",
                "code": self.code,
            }
        }

    def __repr__(self) -> str:
        return f"RelayError(code={self.code!r}, status_code={self.status_code}, message={self.message!r})"


def error_wrapper(exc: BaseException, code: str, status_code: int = 500) -> RelayError:
    """Wrap a lower-level exception as a RelayError."""
    return RelayError(str(exc) or type(exc).__name__, code, status_code)
