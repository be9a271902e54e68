"""
Response envelopes shared by every endpoint.
"""

from typing import Any, Optional

from pydantic import BaseModel


class StandardSuccessResponse(BaseModel):
    success: bool = True
    message: str
    data: Optional[Any] = None


class StandardErrorResponse(BaseModel):
    """Body of every error response produced by the exception handlers."""
    success: bool = False
    message: str
    detail: Optional[str] = None
