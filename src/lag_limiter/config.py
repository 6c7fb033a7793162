from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    LOG_LEVEL: str = "INFO"
    STATUS_LINK: Optional[str] = None
    TARGET_TIME: float = Field(0.5, gt=0)
    SAMPLE_SIZE: int = Field(5, ge=1)
    WEIGHT: float = Field(0.75, ge=0, le=1)
    CHECK_INTERVAL: int = Field(1, gt=0)
    CONNECT_TIMEOUT: float = Field(10.0, gt=0)
    METRICS_PORT: Optional[int] = None

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
