"""Response models shared across routers."""

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str
