"""Error response helpers."""

from fastapi.responses import JSONResponse


def error_response(status_code: int, message: str) -> JSONResponse:
    """JSON error body in the ``{"error": message}`` shape the UI expects."""
    return JSONResponse(status_code=status_code, content={"error": message})
