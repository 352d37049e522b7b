import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

# Settings field -> environment variable
ENV_VARS = {
    "database_url": "DATABASE_URL",
    "database_name": "DATABASE_NAME",
    "jwt_secret": "JWT_SECRET",
    "jwt_algorithm": "JWT_ALGORITHM",
    "admin_name": "ADMIN_NAME",
    "admin_email": "ADMIN_EMAIL",
    "admin_password": "ADMIN_PASSWORD",
    "cors_origins": "CORS_ORIGINS",
    "log_level": "LOG_LEVEL",
}


class Settings(BaseModel):
    """Process-wide configuration, read once at startup."""

    model_config = {"frozen": True}

    database_url: str = Field("mongodb://localhost:27017")
    database_name: str = Field("catalog")
    jwt_secret: str = Field("dev_secret_change_me")
    jwt_algorithm: str = Field("HS256")
    admin_name: str = Field("Administrator")
    admin_email: Optional[str] = Field(None)
    admin_password: Optional[str] = Field(None)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field("INFO")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, value):
        if isinstance(value, str):
            value = [o.strip() for o in value.split(",") if o.strip()]
        return value or ["*"]

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, value: str) -> str:
        return value.upper()

    @classmethod
    def from_env(cls) -> "Settings":
        # Unset or empty variables fall back to the field defaults.
        values = {field: os.getenv(var) for field, var in ENV_VARS.items()}
        return cls(**{field: value for field, value in values.items() if value})
