import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OTPAttempt(BaseModel):
    model_config = ConfigDict(frozen=True)

    attempt_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    email: str
    code: Optional[str] = None
    issued_at: datetime
    expires_at: datetime
    verified: bool = False
    invalidated: bool = False

    @classmethod
    def issue(cls, email: str, ttl_seconds: int, now: Optional[datetime] = None) -> "OTPAttempt":
        issued_at = now or datetime.now(timezone.utc)
        return cls(
            email=email,
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=ttl_seconds),
        )

    def mark_verified(self, code: str) -> "OTPAttempt":
        return self.model_copy(update={"code": code, "verified": True})

    def invalidate(self) -> "OTPAttempt":
        return self.model_copy(update={"invalidated": True})
