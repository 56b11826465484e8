from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from portal_auth.domain.entities.principal import Principal


class SessionStatus(str, Enum):
    AUTHENTICATED = "authenticated"
    FIRST_LOGIN_PENDING = "first_login_pending"
    UNAUTHENTICATED = "unauthenticated"


class Session(BaseModel):
    """Immutable snapshot handed to every consumer; transitions replace it."""

    model_config = ConfigDict(frozen=True)

    status: SessionStatus = SessionStatus.UNAUTHENTICATED
    principal: Optional[Principal] = None
    # Opaque to this package; only ever forwarded as a bearer token.
    token: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def anonymous(cls, message: Optional[str] = None) -> "Session":
        return cls(status=SessionStatus.UNAUTHENTICATED, message=message)

    @property
    def is_authenticated(self) -> bool:
        return self.status == SessionStatus.AUTHENTICATED and self.principal is not None
