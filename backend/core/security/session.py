# ------------------------------ SESSION STORE ------------------------------
import os
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from core.config.settings import Account, settings

logger = logging.getLogger(__name__)

SESSION_MAX_AGE = timedelta(days=7)

# ------------------------------ SESSION RECORD ------------------------------

class SessionData(BaseModel):
    """Persisted authentication state for one account."""
    cookies: List[Dict[str, Any]] = []
    local_storage: Dict[str, str] = Field(default_factory=dict, alias="localStorage")
    last_login: datetime = Field(alias="lastLogin")
    user_agent: str = Field("", alias="userAgent")

    class Config:
        populate_by_name = True

    @field_validator("last_login")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def capture(cls, cookies: List[Dict[str, Any]], local_storage: Dict[str, str], user_agent: str) -> "SessionData":
        """Build a record stamped with the current time."""
        return cls(
            cookies=cookies,
            local_storage=local_storage,
            last_login=datetime.now(timezone.utc),
            user_agent=user_agent,
        )

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now - self.last_login > SESSION_MAX_AGE

# ------------------------------ STORE ------------------------------

class SessionStore:
    """File-backed session persistence, one JSON file per account."""

    def __init__(self, session_dir: Optional[str] = None):
        self.session_dir = Path(session_dir or settings.storage.session_dir)

    def _path_for(self, account: Account) -> Path:
        return self.session_dir / f"{account.session_key}.json"

    def load(self, account: Account, now: Optional[datetime] = None) -> Optional[SessionData]:
        """Return the saved session, or None when absent, malformed or older than 7 days."""
        path = self._path_for(account)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info(f"[{account.name}] No existing session found")
            return None
        except OSError as e:
            logger.error(f"[{account.name}] Failed to read session: {e}")
            return None

        try:
            session = SessionData.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"[{account.name}] Ignoring malformed session file {path}: {e.error_count()} error(s)")
            return None

        if session.is_stale(now):
            logger.info(f"[{account.name}] Session is older than {SESSION_MAX_AGE.days} days, will require fresh login")
            self.clear(account)
            return None

        logger.info(f"[{account.name}] Loaded session from {session.last_login.isoformat()}")
        return session

    def save(self, account: Account, session: SessionData) -> None:
        """Write the session atomically. Raises OSError when the write fails."""
        path = self._path_for(account)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(session.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, path)
            logger.info(f"[{account.name}] Session saved successfully")
        except OSError as e:
            logger.error(f"[{account.name}] Failed to save session: {e}")
            raise

    def clear(self, account: Account) -> None:
        """Delete the saved session, if any."""
        try:
            self._path_for(account).unlink(missing_ok=True)
            logger.info(f"[{account.name}] Session cleared")
        except OSError as e:
            logger.error(f"[{account.name}] Failed to clear session: {e}")

# ------------------------------ END OF FILE ------------------------------
