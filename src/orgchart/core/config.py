"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class TreeSourceConfig(BaseSettings):
    """Tree Source (hierarchy API) configuration."""

    model_config = {"env_prefix": "ORGCHART_SOURCE_"}

    provider: str = "memory"
    base_url: str = "http://localhost:8080"
    api_prefix: str = "/api"
    token: str | None = None
    timeout_seconds: int = 30
    max_retries: int = 1
    seed_path: str | None = None


class LayoutConfig(BaseSettings):
    """Hierarchical layout spacing."""

    model_config = {"env_prefix": "ORGCHART_LAYOUT_"}

    rank_sep: float = 84.0
    node_sep: float = 44.0
    margin_x: float = 24.0
    margin_y: float = 24.0
    direction: str = "TB"


class PickerConfig(BaseSettings):
    """Picker-mode configuration."""

    model_config = {"env_prefix": "ORGCHART_PICKER_"}

    default_destination: str = "/dashboard"
    user_param: str = "pickedUserId"


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "ORGCHART_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    source: TreeSourceConfig = Field(default_factory=TreeSourceConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    picker: PickerConfig = Field(default_factory=PickerConfig)
