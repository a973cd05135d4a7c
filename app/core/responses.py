# app/core/responses.py

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.core.config import settings


def build_meta() -> Dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": str(uuid.uuid4()),
        "version": settings.API_VERSION,
    }


def success_response(data: Any = None, status_code: int = 200, success: bool = True) -> JSONResponse:
    """
    Wraps `data` in the standard `{success, data, meta}` envelope.
    The health endpoint passes success=False to report a down service with its data attached.
    """
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"success": success, "data": data, "meta": build_meta()}),
    )


def error_response(
    code: str,
    message: str,
    status_code: int = 500,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Standard error envelope: `{success: false, error: {code, message, details?}, meta}`."""
    error: Dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"success": False, "error": error, "meta": build_meta()}),
    )
