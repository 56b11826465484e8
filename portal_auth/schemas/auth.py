from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Backend wire shapes

class BackendUser(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    email: str
    role: str
    contact_no: Optional[str] = None
    is_first_login: Optional[bool] = None
    brand_id: Optional[str] = None
    district_id: Optional[str] = None
    shop_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @field_validator("id", "brand_id", "district_id", "shop_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Union[str, int, None]) -> Optional[str]:
        return None if value is None else str(value)


class LoginResult(BaseModel):
    user: BackendUser
    token: Optional[str] = Field(default=None, repr=False)
    is_first_login: bool = False
    message: Optional[str] = None


# Gateway request/response bodies

class LoginRequest(BaseModel):
    email: str
    password: str = Field(repr=False)


class FirstLoginRotationRequest(BaseModel):
    contact_number: str
    new_password: str = Field(repr=False)
    confirm_password: str = Field(repr=False)
    current_password: Optional[str] = Field(default=None, repr=False)


class ContactNumberRequest(BaseModel):
    contact_number: str


class ResetCodeRequest(BaseModel):
    email: str


class ResetVerifyRequest(BaseModel):
    code: str


class ResetCommitRequest(BaseModel):
    new_password: str = Field(repr=False)
    confirm_password: str = Field(repr=False)


class PrincipalView(BaseModel):
    id: str
    email: str
    role: str
    name: str
    contact_number: Optional[str] = None
    scope_ids: Dict[str, Optional[str]] = Field(default_factory=dict)


class SessionView(BaseModel):
    status: str
    principal: Optional[PrincipalView] = None
    home: str
    message: Optional[str] = None
    prefill_email: Optional[str] = None


class ResetStatusView(BaseModel):
    state: str
    email: Optional[str] = None
    remaining_seconds: int = 0
    can_resend: bool = False
    seconds_until_resend: int = 0
    prefill_email: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    error_code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
