import os
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from config import YamlConfig


class ClientSettings(BaseModel):
    base_url: str = "http://localhost:8080"
    records_path: str = "/records"
    exercises_path: str = "/exercises"
    api_token: Optional[str] = None
    page_size: int = Field(10, ge=1)
    search_debounce_ms: int = Field(300, ge=0)
    default_range_years: int = Field(1, ge=1)
    request_timeout: float = Field(10.0, gt=0)
    reset_page_after_mutation: bool = True

    @property
    def search_debounce(self) -> float:
        return self.search_debounce_ms / 1000.0


def validate_settings(data: dict) -> ClientSettings:
    try:
        return ClientSettings(**data)
    except ValidationError as e:
        raise ValueError(str(e))


def load_settings(path: str = "settings.yaml") -> ClientSettings:
    """Read ``path`` and return validated settings; ``WORKOUTS_API_URL`` overrides the URL."""
    data = YamlConfig(path).load()
    env_url = os.environ.get("WORKOUTS_API_URL")
    if env_url:
        data["base_url"] = env_url
    return validate_settings(data)
