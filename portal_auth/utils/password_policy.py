from __future__ import annotations
from enum import Enum
from typing import List

from pydantic import BaseModel, Field

MIN_LENGTH = 8


class Strength(str, Enum):
    WEAK = "weak"
    GOOD = "good"
    STRONG = "strong"


class PasswordFeedback(BaseModel):
    score: int
    strength: Strength
    meets_minimum: bool
    missing: List[str] = Field(default_factory=list)


def _criteria(password: str) -> dict[str, bool]:
    return {
        "length": len(password) >= MIN_LENGTH,
        "uppercase": any(c.isupper() for c in password),
        "lowercase": any(c.islower() for c in password),
        "digit": any(c.isdigit() for c in password),
        "symbol": any(not c.isalnum() for c in password),
    }


def score(password: str) -> int:
    """One point per satisfied criterion, 0..5."""
    return sum(_criteria(password).values())


def classify(value: int) -> Strength:
    if value >= 4:
        return Strength.STRONG
    if value == 3:
        return Strength.GOOD
    return Strength.WEAK


def meets_minimum(password: str) -> bool:
    # Only hard gate on submission; score/classify are advisory.
    return len(password) >= MIN_LENGTH


def evaluate(password: str) -> PasswordFeedback:
    criteria = _criteria(password)
    value = sum(criteria.values())
    return PasswordFeedback(
        score=value,
        strength=classify(value),
        meets_minimum=meets_minimum(password),
        missing=[name for name, ok in criteria.items() if not ok],
    )
