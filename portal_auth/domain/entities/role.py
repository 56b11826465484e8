from __future__ import annotations
from enum import Enum
from typing import Dict, FrozenSet, Optional


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    BRAND_ADMIN = "brand_admin"
    DISTRICT_MANAGER = "district_manager"
    SHOP_MANAGER = "shop_manager"
    TECHNICIAN = "technician"
    USER = "user"

    @classmethod
    def parse(cls, value: object) -> Optional["Role"]:
        """Exact lookup by wire value; unknown roles are reported, never guessed."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


# Which roles an account of a given role may provision
CREATION_HIERARCHY: Dict[Role, FrozenSet[Role]] = {
    Role.SUPER_ADMIN: frozenset({Role.BRAND_ADMIN}),
    Role.BRAND_ADMIN: frozenset({Role.DISTRICT_MANAGER, Role.SHOP_MANAGER}),
    Role.DISTRICT_MANAGER: frozenset({Role.SHOP_MANAGER}),
    Role.SHOP_MANAGER: frozenset({Role.TECHNICIAN}),
    Role.TECHNICIAN: frozenset(),
    Role.USER: frozenset(),
}


def roles_creatable_by(role: Optional[Role]) -> FrozenSet[Role]:
    if role is None:
        return frozenset()
    return CREATION_HIERARCHY.get(role, frozenset())
