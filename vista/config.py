import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from dotenv import load_dotenv

CONFIG_PATH = Path("config.json")
ENV_OVERRIDE_KEY = "VISTA_ENV_OVERRIDES_CONFIG"
ENV_OVERRIDE_TRUE = {"1", "true", "yes", "on"}
SECRET_FIELDS = ("unsplash_key", "pexels_key", "replicate_api_token", "openai_api_key")


class AppSettings(BaseModel):
    # Provider credentials
    unsplash_key: Optional[str] = None
    pexels_key: Optional[str] = None
    replicate_api_token: Optional[str] = None
    openai_api_key: Optional[str] = None

    # Endpoints
    openai_base_url: str = "https://api.openai.com/v1"
    replicate_base_url: str = "https://api.replicate.com/v1"
    unsplash_base_url: str = "https://api.unsplash.com"
    pexels_base_url: str = "https://api.pexels.com/v1"
    geocoding_base_url: str = "https://geocoding-api.open-meteo.com/v1"
    archive_base_url: str = "https://archive-api.open-meteo.com/v1"
    forecast_base_url: str = "https://api.open-meteo.com/v1"

    # Models
    planner_model: str = "gpt-4o-mini"
    transcribe_model: str = "whisper-1"
    generate_model: str = "black-forest-labs/flux-schnell"
    refine_model: str = "black-forest-labs/flux-kontext-pro"

    # Timing
    poll_interval_s: float = 1.2
    poll_timeout_s: float = 120.0
    turn_timeout_s: float = 180.0

    search_per_page: int = 10
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    def to_safe_dict(self) -> dict:
        data = self.model_dump()
        for key in SECRET_FIELDS:
            if data.get(key):
                data[key] = "********"
        return data

    model_config = {"protected_namespaces": ()}


def _load_from_env() -> dict:
    load_dotenv()
    env_map = {
        "unsplash_key": os.getenv("UNSPLASH_KEY"),
        "pexels_key": os.getenv("PEXELS_KEY"),
        "replicate_api_token": os.getenv("REPLICATE_API_TOKEN"),
        "openai_api_key": os.getenv("OPENAI_API_KEY") or os.getenv("OPENAI_KEY"),
        "openai_base_url": os.getenv("OPENAI_BASE_URL"),
        "planner_model": os.getenv("PLANNER_MODEL"),
        "transcribe_model": os.getenv("TRANSCRIBE_MODEL"),
        "generate_model": os.getenv("GENERATE_MODEL"),
        "refine_model": os.getenv("REFINE_MODEL"),
        "poll_interval_s": os.getenv("POLL_INTERVAL_S"),
        "poll_timeout_s": os.getenv("POLL_TIMEOUT_S"),
        "turn_timeout_s": os.getenv("TURN_TIMEOUT_S"),
        "search_per_page": os.getenv("SEARCH_PER_PAGE"),
        "host": os.getenv("HOST"),
        "port": os.getenv("PORT"),
    }
    cleaned = {k: v for k, v in env_map.items() if v not in (None, "")}
    for key in ("poll_interval_s", "poll_timeout_s", "turn_timeout_s"):
        if key in cleaned:
            cleaned[key] = float(cleaned[key])
    for key in ("search_per_page", "port"):
        if key in cleaned:
            cleaned[key] = int(cleaned[key])
    return cleaned


def _env_overrides_config() -> bool:
    return str(os.getenv(ENV_OVERRIDE_KEY, "")).strip().lower() in ENV_OVERRIDE_TRUE


def load_settings(config_path: Optional[Path] = None) -> AppSettings:
    env_data = _load_from_env()
    path = config_path or CONFIG_PATH
    file_data: Dict[str, Any] = {}
    if path.exists():
        try:
            file_data = json.loads(path.read_text())
        except json.JSONDecodeError:
            file_data = {}
    # Config wins by default; allow env overrides only when explicitly enabled.
    if _env_overrides_config():
        merged = {**file_data, **env_data}
    else:
        merged = {**env_data, **file_data}
    # Credentials left blank in config.json still come from the environment.
    for key in SECRET_FIELDS:
        if not merged.get(key) and env_data.get(key):
            merged[key] = env_data[key]
    return AppSettings(**merged)

