from typing import Any, Dict


class GatewayError(Exception):
    """Base error rendered as ``{"error": ..., "message": ...}`` with ``status_code``."""

    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message}


class ConfigurationError(GatewayError):
    error = "Server configuration error"


class BadRequestError(GatewayError):
    status_code = 400
    error = "Bad request"


class MethodNotAllowedError(GatewayError):
    status_code = 405
    error = "Method not allowed"


class UpstreamError(GatewayError):
    """Non-2xx answer from the inference provider; status and body pass through untouched."""

    error = "API request failed"

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(body, status_code=status_code)
        self.body = body


class NoResponseBodyError(GatewayError):
    error = "No response body from API"


class StageFailedError(GatewayError):
    error = "Enhanced CoD processing failed"

    def __init__(self, stage: int, stage_name: str, detail: str) -> None:
        super().__init__(f"Stage {stage} ({stage_name}) failed: {detail}")
        self.stage = stage
        self.stage_name = stage_name
        self.detail = detail

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        body["stage"] = self.stage
        return body


class InternalServerError(GatewayError):
    error = "Internal server error"
