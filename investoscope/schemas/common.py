"""Common schemas and error responses."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response schema (RFC 7807 inspired)."""

    error: str = Field(..., description="Error code", examples=["NOT_FOUND"])
    message: str = Field(..., description="Human-readable error message")
    status: int = Field(..., description="HTTP status code")
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Additional error details"
    )

    model_config = {"json_schema_extra": {"example": {"error": "NOT_FOUND", "message": "Unknown job: sync-foo", "status": 404}}}


class JobErrorResponse(BaseModel):
    """Envelope returned by job triggers when a run fails."""

    ok: bool = Field(False, description="Always false on failure")
    error: str = Field(..., description="Human-readable error", examples=["Unauthorized"])
    details: Optional[Dict[str, Any]] = Field(default=None, description="Failing sub-job or vendor context")
