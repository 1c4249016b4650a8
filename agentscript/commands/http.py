from typing import Any, Dict, Optional

import requests
from loguru import logger

from ..config import Settings
from ..context import ExecutionContext

USER_AGENT = "agentscript/0.1"


def settings_of(ctx: ExecutionContext) -> Settings:
    return ctx.settings if ctx.settings is not None else Settings.from_env()


def get_json(ctx: ExecutionContext, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
    """GET `url` and decode JSON. HTTP errors surface with their status code in the message."""
    ctx.raise_if_cancelled(url)
    timeout = settings_of(ctx).http_timeout
    logger.debug("[http] GET {} {}", url, params or {})
    resp = requests.get(url, params=params, timeout=timeout, headers={"User-Agent": USER_AGENT})
    resp.raise_for_status()
    return resp.json()
