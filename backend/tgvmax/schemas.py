# ------------------------------ IMPORTS ------------------------------
from pydantic import BaseModel, field_serializer
from typing import Optional, List, Any
from datetime import datetime

# ------------------------------ RESULT MODELS ------------------------------

class AccountResultOut(BaseModel):
    """Per-account outcome of a run."""
    account_name: str
    authenticated: bool
    error: Optional[str] = None
    reservations_found: int = 0
    confirmed: int = 0
    failed: int = 0
    skipped: int = 0
    succeeded: bool = False

class RunStatusOut(BaseModel):
    """Current state of the run guard."""
    is_running: bool
    status: str
    mode: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    last_results: List[AccountResultOut] = []
    last_error: Optional[str] = None

    @field_serializer('started_at', 'finished_at')
    def serialize_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return dt.isoformat() if dt else None

class RunTriggerOut(BaseModel):
    mode: str
    started_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "mode": "confirm",
                "started_at": "2025-01-15T07:00:00+00:00"
            }
        }

class APIResponse(BaseModel):
    """Generic API response model."""
    success: bool
    data: dict[str, Any]

# ------------------------------ END OF FILE ------------------------------
