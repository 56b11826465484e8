"""
Typed failures raised by the authentication flows.

Every public operation of the session machine and the OTP challenge
either completes a transition or raises one of these; the API layer maps
them onto the standard ErrorResponse body using `status_code`.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    # Input validation
    INVALID_EMAIL = "INVALID_EMAIL"
    INVALID_PHONE_NUMBER = "INVALID_PHONE_NUMBER"
    PASSWORD_MISMATCH = "PASSWORD_MISMATCH"
    PASSWORD_TOO_WEAK = "PASSWORD_TOO_WEAK"
    INVALID_OTP_FORMAT = "INVALID_OTP_FORMAT"

    # Credentials
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TEMPORARY_SECRET_MISMATCH = "TEMPORARY_SECRET_MISMATCH"
    UNSUPPORTED_ROLE = "UNSUPPORTED_ROLE"

    # OTP challenge lifecycle
    CHALLENGE_EXPIRED = "CHALLENGE_EXPIRED"
    INVALID_OTP = "INVALID_OTP"
    RESEND_COOLDOWN = "RESEND_COOLDOWN"

    # Partial failures
    CONTACT_UPDATE_FAILED = "CONTACT_UPDATE_FAILED"
    PASSWORD_UPDATE_FAILED = "PASSWORD_UPDATE_FAILED"
    RELOGIN_REQUIRED = "RELOGIN_REQUIRED"

    # Transport / delivery
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    DELIVERY_FAILED = "DELIVERY_FAILED"

    # Machine state
    INVALID_STATE = "INVALID_STATE"
    OPERATION_IN_PROGRESS = "OPERATION_IN_PROGRESS"
    STALE_RESPONSE = "STALE_RESPONSE"


ERROR_STATUS_CODES: Dict[ErrorCode, int] = {
    ErrorCode.INVALID_EMAIL: 422,
    ErrorCode.INVALID_PHONE_NUMBER: 422,
    ErrorCode.PASSWORD_MISMATCH: 422,
    ErrorCode.PASSWORD_TOO_WEAK: 422,
    ErrorCode.INVALID_OTP_FORMAT: 422,
    ErrorCode.INVALID_CREDENTIALS: 401,
    ErrorCode.TEMPORARY_SECRET_MISMATCH: 401,
    ErrorCode.UNSUPPORTED_ROLE: 403,
    ErrorCode.CHALLENGE_EXPIRED: 410,
    ErrorCode.INVALID_OTP: 400,
    ErrorCode.RESEND_COOLDOWN: 429,
    ErrorCode.CONTACT_UPDATE_FAILED: 502,
    ErrorCode.PASSWORD_UPDATE_FAILED: 502,
    ErrorCode.RELOGIN_REQUIRED: 401,
    ErrorCode.TRANSPORT_ERROR: 503,
    ErrorCode.DELIVERY_FAILED: 502,
    ErrorCode.INVALID_STATE: 409,
    ErrorCode.OPERATION_IN_PROGRESS: 409,
    ErrorCode.STALE_RESPONSE: 409,
}


class AuthFlowError(Exception):
    code: ErrorCode = ErrorCode.INVALID_STATE
    default_message: str = "Authentication flow error"
    retryable: bool = False

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return ERROR_STATUS_CODES.get(self.code, 400)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "error_code": self.code.value,
            "retryable": self.retryable,
            "details": self.details,
        }


# Input validation: detected locally, never reach the network

class InputValidationError(AuthFlowError):
    default_message = "Invalid input"


class InvalidEmail(InputValidationError):
    code = ErrorCode.INVALID_EMAIL
    default_message = "Please enter a valid email address"


class InvalidPhoneNumber(InputValidationError):
    code = ErrorCode.INVALID_PHONE_NUMBER
    default_message = "Please enter a complete contact number, e.g. +1 (555) 123-4567"


class PasswordMismatch(InputValidationError):
    code = ErrorCode.PASSWORD_MISMATCH
    default_message = "Passwords do not match"


class PasswordTooWeak(InputValidationError):
    code = ErrorCode.PASSWORD_TOO_WEAK
    default_message = "Password must be at least 8 characters long"


class InvalidOTPFormat(InputValidationError):
    code = ErrorCode.INVALID_OTP_FORMAT
    default_message = "Please enter the 6-digit code"


# Credentials: never reveal which field was wrong

class InvalidCredentials(AuthFlowError):
    code = ErrorCode.INVALID_CREDENTIALS
    default_message = "Login failed. Please check your credentials."


class TemporarySecretMismatch(AuthFlowError):
    code = ErrorCode.TEMPORARY_SECRET_MISMATCH
    default_message = "Current password is incorrect"


class UnsupportedRoleError(AuthFlowError):
    code = ErrorCode.UNSUPPORTED_ROLE
    default_message = "This account does not have access to the portal"


# OTP challenge lifecycle

class ChallengeExpired(AuthFlowError):
    code = ErrorCode.CHALLENGE_EXPIRED
    default_message = "The verification code has expired. Please request a new one."


class InvalidOTP(AuthFlowError):
    code = ErrorCode.INVALID_OTP
    default_message = "Invalid or expired verification code"


class ResendCooldownError(AuthFlowError):
    code = ErrorCode.RESEND_COOLDOWN
    default_message = "Please wait before requesting a new code"

    def __init__(self, seconds_until_allowed: int, message: Optional[str] = None):
        super().__init__(
            message or f"You can request a new code in {seconds_until_allowed} seconds",
            seconds_until_allowed=seconds_until_allowed,
        )
        self.seconds_until_allowed = seconds_until_allowed


# Partial failures during multi-step commits

class ContactUpdateError(AuthFlowError):
    code = ErrorCode.CONTACT_UPDATE_FAILED
    default_message = "Could not save your contact number. Please try again."
    retryable = True


class PasswordUpdateError(AuthFlowError):
    code = ErrorCode.PASSWORD_UPDATE_FAILED
    default_message = "Could not update your password. Please try again."
    retryable = True


class ReloginRequired(AuthFlowError):
    code = ErrorCode.RELOGIN_REQUIRED
    default_message = "Your password was updated. Please sign in manually with your new password."

    def __init__(self, email: str, message: Optional[str] = None):
        super().__init__(message, email=email)
        self.email = email


# Transport / delivery: generic and retryable, never retried automatically

class TransportError(AuthFlowError):
    code = ErrorCode.TRANSPORT_ERROR
    default_message = "The server could not be reached. Please try again."
    retryable = True


class DeliveryError(AuthFlowError):
    code = ErrorCode.DELIVERY_FAILED
    default_message = "We could not send a verification code. Please try again."
    retryable = True


# Machine state

class InvalidStateError(AuthFlowError):
    code = ErrorCode.INVALID_STATE
    default_message = "This action is not available right now"


class OperationInProgress(AuthFlowError):
    code = ErrorCode.OPERATION_IN_PROGRESS
    default_message = "A request is already in progress"


class StaleResponseError(AuthFlowError):
    code = ErrorCode.STALE_RESPONSE
    default_message = "The request was superseded and its result discarded"
