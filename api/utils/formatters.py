"""
Standard API response formatters.

Usage:
    from api.utils import success_response, error_response

    @router.get("/endpoint")
    async def endpoint():
        return success_response({"key": "value"}, meta={"count": 1})
"""
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel


class StandardResponse(BaseModel):
    """
    Standard API response model.

    Attributes:
        ok: Success flag
        data: Response data (any JSON-serializable type)
        meta: Optional metadata (counts, filters, cache info)
        error: Error message (only when ok=False)
        details: Error details (only when ok=False)
        timestamp: ISO 8601 timestamp of response generation
    """
    ok: bool
    data: Optional[Any] = None
    meta: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: str


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def success_response(
    data: Any,
    meta: Optional[Dict[str, Any]] = None,
    status_code: int = 200
) -> JSONResponse:
    """
    Create a standard success response.

    Example:
        >>> success_response([{"date": "2024-01-01", "volume": 1.5e9}], meta={"metric": "volume_history"})
        {"ok": true, "data": [...], "meta": {"metric": "volume_history"}, "timestamp": "..."}
    """
    return JSONResponse(
        status_code=status_code,
        content={
            "ok": True,
            "data": data,
            "meta": meta or {},
            "timestamp": _now_iso()
        }
    )


def error_response(
    message: str,
    code: int = 500,
    details: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """Create a standard error response."""
    return JSONResponse(
        status_code=code,
        content={
            "ok": False,
            "error": message,
            "details": details or {},
            "timestamp": _now_iso()
        }
    )


def csv_response(content: str, filename: str) -> Response:
    """CSV download response with an attachment filename."""
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
