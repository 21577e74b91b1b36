"""Client configuration helpers."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import os

import yaml
from pydantic import ValidationError

from .constants import CONFIG_DIR, CONFIG_FILE, DEFAULT_POOL_SIZE
from .models import ConnectionConfig, PoolOptions


@dataclass
class ClientSettings:
    """Settings for connecting to a coffer server."""

    url: Optional[str] = None
    pool_size: int = DEFAULT_POOL_SIZE
    timeout: Optional[float] = None
    verify: bool = True

    def connection_config(self) -> ConnectionConfig:
        return ConnectionConfig(
            pool_opts=PoolOptions(pool_size=self.pool_size),
            timeout=self.timeout,
            verify=self.verify,
        )


def default_config_path() -> Path:
    return Path.home() / CONFIG_DIR / CONFIG_FILE


def _is_true(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def load_settings(path: Optional[Path] = None) -> ClientSettings:
    """Load settings from ~/.coffer/config.yaml, then apply environment overrides.

    Recognized variables: COFFER_URL, COFFER_POOL_SIZE, COFFER_TIMEOUT and
    COFFER_INSECURE (true/1/yes disables TLS verification). Values are
    checked the same way ``ConnectionConfig`` checks them, so a file value
    like ``verify: 'false'`` reads as False.

    Raises:
        ValueError: If the file is not valid YAML or holds invalid values
    """
    cfg_path = Path(path) if path else default_config_path()
    data = {}
    if cfg_path.exists():
        try:
            data = yaml.safe_load(cfg_path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid configuration file {cfg_path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {cfg_path} must contain a mapping")

    url = os.environ.get("COFFER_URL", data.get("url"))
    if url is not None and not isinstance(url, str):
        raise ValueError(f"Invalid url in {cfg_path}: {url!r}")

    pool_size = os.environ.get("COFFER_POOL_SIZE", data.get("pool_size", DEFAULT_POOL_SIZE))
    timeout = os.environ.get("COFFER_TIMEOUT", data.get("timeout"))
    verify = data.get("verify", True)
    if _is_true(os.environ.get("COFFER_INSECURE", "false")):
        verify = False

    try:
        config = ConnectionConfig(
            pool_opts={"pool_size": pool_size},
            timeout=timeout,
            verify=verify,
        )
    except ValidationError as e:
        raise ValueError(f"Invalid client settings: {e}") from e

    return ClientSettings(
        url=url,
        pool_size=config.pool_opts.pool_size,
        timeout=config.timeout,
        verify=config.verify,
    )
