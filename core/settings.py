"""Application configuration settings."""

import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field


# Ensure environment variables from a .env file are loaded before accessing them.
load_dotenv()


def _env(name: str, default: str):
    return lambda: os.getenv(name, default)


def _env_list(name: str, default: str):
    return lambda: [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Settings(BaseModel):
    # Values read from the environment are validated like explicit ones.
    model_config = ConfigDict(validate_default=True)

    MAX_CLIENTS: int = Field(default_factory=_env("HUB_MAX_CLIENTS", "100"), gt=0)
    SEND_TIMEOUT: float = Field(default_factory=_env("HUB_SEND_TIMEOUT", "5.0"), gt=0)
    MAX_MESSAGE_SIZE: int = Field(default_factory=_env("HUB_MAX_MESSAGE_SIZE", "65536"), gt=0)
    ECHO_TO_SENDER: bool = Field(default_factory=_env("HUB_ECHO_TO_SENDER", "true"))
    SEND_WELCOME: bool = Field(default_factory=_env("HUB_SEND_WELCOME", "true"))
    CORS_ORIGINS: List[str] = Field(default_factory=_env_list("HUB_CORS_ORIGINS", "*"))
    APP_HOST: str = Field(default_factory=_env("APP_HOST", "0.0.0.0"))
    APP_PORT: int = Field(default_factory=_env("APP_PORT", "8000"), gt=0, lt=65536)
    LOG_LEVEL: str = Field(default_factory=_env("LOG_LEVEL", "info"))


settings = Settings()
