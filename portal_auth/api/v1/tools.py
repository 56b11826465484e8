from fastapi import APIRouter, Query

from portal_auth.utils import password_policy, phone_formatter
from portal_auth.utils.password_policy import PasswordFeedback

router = APIRouter(tags=["tools"])


@router.get("/password/strength", response_model=PasswordFeedback)
async def password_strength(password: str = Query("", description="Candidate password")):
    """Advisory strength meter. Only the minimum length is ever enforced."""
    return password_policy.evaluate(password)


@router.get("/phone/format")
async def format_phone(raw: str = Query("", description="Digits as typed")):
    formatted = phone_formatter.format(raw)
    return {
        "formatted": formatted,
        "digits": phone_formatter.digits(raw),
        "valid": phone_formatter.is_valid(formatted),
    }
