import logging
from functools import lru_cache
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .utils import parse_listen_addr

DEFAULT_MAX_BODY_SIZE_MB = 50

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    # Gitea repository holding the state files
    GITEA_URL: str
    GITEA_TOKEN: str
    GITEA_OWNER: str
    GITEA_REPO: str
    GITEA_BRANCH: str = 'main'
    GITEA_TIMEOUT: float = 30.0

    # HTTP server settings
    LISTEN_ADDR: str = ':8080'
    AUTH_TOKEN: str = ''    # empty disables authentication
    MAX_BODY_SIZE_MB: int = DEFAULT_MAX_BODY_SIZE_MB

    LOG_LEVEL: str = 'INFO'

    @field_validator('GITEA_URL', 'GITEA_TOKEN', 'GITEA_OWNER', 'GITEA_REPO')
    @classmethod
    def validate_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('must not be empty')
        return v

    @field_validator('GITEA_URL')
    @classmethod
    def validate_gitea_url(cls, v: str) -> str:
        return v.rstrip('/')

    @field_validator('GITEA_BRANCH', mode='before')
    @classmethod
    def validate_branch(cls, v: str | None) -> str:
        return v or 'main'

    @field_validator('GITEA_TIMEOUT')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError('must be positive')
        return v

    @field_validator('LISTEN_ADDR', mode='before')
    @classmethod
    def validate_listen_addr(cls, v: str | None) -> str:
        v = v or ':8080'
        parse_listen_addr(v)
        return v

    @field_validator('MAX_BODY_SIZE_MB')
    @classmethod
    def validate_max_body_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError('must be positive')
        return v

    @field_validator('LOG_LEVEL')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f'unknown log level "{v}"')
        return level

    @property
    def max_body_size(self) -> int:
        """Maximum request body size in bytes."""
        return self.MAX_BODY_SIZE_MB << 20

    @property
    def auth_enabled(self) -> bool:
        return bool(self.AUTH_TOKEN)

    @property
    def listen_host(self) -> str:
        return parse_listen_addr(self.LISTEN_ADDR)[0]

    @property
    def listen_port(self) -> int:
        return parse_listen_addr(self.LISTEN_ADDR)[1]

@lru_cache
def get_settings() -> Settings:
    return Settings()
