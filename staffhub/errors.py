from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


class ConfigurationError(RuntimeError):
    """Raised when required connection settings are absent."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required settings: {', '.join(self.missing)}")


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_payload(*, code: str, message: str, request_id: str) -> dict[str, dict[str, str]]:
    return {
        "error": {
            "code": code,
            "message": message,
            "request_id": request_id,
        }
    }


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = error_payload(code=code, message=message, request_id=get_request_id(request))
    return JSONResponse(status_code=status_code, content=payload)
