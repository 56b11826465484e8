from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    APP_NAME: str = "innu-portal-auth"

    # Auth backend
    AUTH_API_BASE_URL: str = Field("http://localhost:5000/api", alias="AUTH_API_BASE_URL")
    AUTH_API_TIMEOUT_SECONDS: float = Field(15.0, alias="AUTH_API_TIMEOUT_SECONDS")

    # OTP password reset
    OTP_TTL_SECONDS: int = Field(600, alias="OTP_TTL_SECONDS")
    # Resend unlocks once the remaining time drops to this value
    OTP_RESEND_THRESHOLD_SECONDS: int = Field(300, alias="OTP_RESEND_THRESHOLD_SECONDS")
    OTP_CODE_LENGTH: int = 6

    # Portal gateway
    LOGIN_ROUTE: str = Field("/login", alias="LOGIN_ROUTE")
    FLOW_COOKIE_NAME: str = Field("portal_flow", alias="FLOW_COOKIE_NAME")
    # Flows untouched for this long are logged out and dropped
    FLOW_IDLE_TTL_SECONDS: int = Field(1800, alias="FLOW_IDLE_TTL_SECONDS")
    TOKEN_STORE_PATH: Optional[str] = Field(None, alias="TOKEN_STORE_PATH")
    ALLOWED_CORS_ORIGINS: str = Field("*", alias="ALLOWED_CORS_ORIGINS")
    LOG_LEVEL: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", populate_by_name=True, extra="ignore")

    @property
    def cors_origins_list(self) -> list[str]:
        if self.ALLOWED_CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.ALLOWED_CORS_ORIGINS.split(",")]


settings = Settings()
