from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from portal_auth.domain.entities.role import Role


class ScopeIds(BaseModel):
    model_config = ConfigDict(frozen=True)

    brand_id: Optional[str] = None
    district_id: Optional[str] = None
    shop_id: Optional[str] = None


class Principal(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    role: Role
    contact_number: Optional[str] = None
    is_first_login: bool = False
    scope_ids: ScopeIds = Field(default_factory=ScopeIds)
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email
