"""JSON envelopes shared by every route: {"success": bool, ...}."""

from typing import Any

from fastapi.responses import JSONResponse

NOT_READY_ERROR = "WhatsApp client not ready."


def error_response(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, **extra},
    )


def not_ready_response() -> JSONResponse:
    return error_response(503, NOT_READY_ERROR)
