from .credential import Credential, PasswordChangeRequest
from .otp_attempt import OTPAttempt
from .principal import Principal, ScopeIds
from .role import CREATION_HIERARCHY, Role, roles_creatable_by
from .session import Session, SessionStatus

__all__ = [
    "Credential",
    "PasswordChangeRequest",
    "OTPAttempt",
    "Principal",
    "ScopeIds",
    "Role",
    "CREATION_HIERARCHY",
    "roles_creatable_by",
    "Session",
    "SessionStatus",
]
