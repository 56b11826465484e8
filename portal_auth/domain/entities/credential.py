from pydantic import BaseModel, ConfigDict, Field

from portal_auth.domain.errors import PasswordMismatch, PasswordTooWeak
from portal_auth.utils.password_policy import meets_minimum


class Credential(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    secret: str = Field(repr=False)


class PasswordChangeRequest(BaseModel):
    """Shared by the first-login rotation and the OTP reset."""

    model_config = ConfigDict(frozen=True)

    current_secret: str = Field("", repr=False)
    new_secret: str = Field(repr=False)
    confirm_secret: str = Field(repr=False)

    def validate_new_secret(self) -> None:
        """Mismatch is reported before strength."""
        if self.new_secret != self.confirm_secret:
            raise PasswordMismatch()
        if not meets_minimum(self.new_secret):
            raise PasswordTooWeak()
