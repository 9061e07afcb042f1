"""Common schemas used across the application."""

from datetime import datetime

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    token_store: str
    scheduler: bool
    timestamp: datetime

