#pr_reviewers/schemas/response.py
from pydantic import BaseModel, Field
from typing import Any, Optional


class ErrorDetail(BaseModel):
    """
    ErrorDetail: machine-readable code plus a human message.
    """
    code: str = Field(..., examples=["NOT_FOUND"], description="Error code")
    message: str = Field(..., examples=["resource not found"], description="Error message")
    details: Optional[Any] = Field(None, description="Per pull request failures of a partial rebalance")


class ErrorResponse(BaseModel):
    error: ErrorDetail


class HealthResponse(BaseModel):
    ok: bool = True
