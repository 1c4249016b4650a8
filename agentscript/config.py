from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from .cache import default_cache_dir


class Settings(BaseModel):
    """Runtime configuration, normally read from AGENTSCRIPT_* environment variables."""
    cache_dir: Path = Field(default_factory=default_cache_dir)
    cache_enabled: bool = True
    verbose: bool = False
    foreach_delay: float = Field(default=0.5, ge=0.0, description="Seconds between foreach items")
    foreach_max_items: int = Field(default=0, ge=0)
    cancel_parallel_siblings: bool = False
    http_timeout: float = Field(default=15.0, gt=0.0)
    model: str = "gpt-4o"
    openai_api_key: Optional[str] = None

    @field_validator("verbose", "cache_enabled", "cancel_parallel_siblings", mode="before")
    @classmethod
    def coerce_flag(cls, v: Any) -> bool:
        if isinstance(v, str):
            return v.strip().lower() in ("1", "true", "yes", "on")
        return bool(v)

    @classmethod
    def from_env(cls, **overrides: Any) -> "Settings":
        env_map = {
            "cache_dir": "AGENTSCRIPT_CACHE_DIR",
            "cache_enabled": "AGENTSCRIPT_CACHE",
            "verbose": "AGENTSCRIPT_VERBOSE",
            "foreach_delay": "AGENTSCRIPT_FOREACH_DELAY",
            "foreach_max_items": "AGENTSCRIPT_FOREACH_MAX_ITEMS",
            "cancel_parallel_siblings": "AGENTSCRIPT_CANCEL_PARALLEL",
            "http_timeout": "AGENTSCRIPT_HTTP_TIMEOUT",
            "model": "AGENTSCRIPT_MODEL",
            "openai_api_key": "OPENAI_API_KEY",
        }
        data: Dict[str, Any] = {}
        for field, var in env_map.items():
            val = os.getenv(var)
            if val not in (None, ""):
                data[field] = val
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(data)
