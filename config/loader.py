# config/loader.py
from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Any, Dict

# Python 3.11 has tomllib; fall back to "tomli" on older versions if needed
try:
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

log = logging.getLogger("config")

ENV_VAR = "RECEIPT_RECONCILER_CONFIG"


def default_config_path() -> Path:
    """$RECEIPT_RECONCILER_CONFIG if set, else config.toml at the repo root."""
    env = os.environ.get(ENV_VAR)
    if env:
        return Path(env)
    return Path(__file__).resolve().parents[1] / "config.toml"


def load_config(config_path: Path | None = None, *, required: bool = True) -> Dict[str, Any]:
    """
    Load the thresholds config (TOML).

    With required=False a missing file yields {} so callers run on the
    built-in defaults.
    """
    path = Path(config_path) if config_path is not None else default_config_path()

    if not path.exists():
        if required:
            raise FileNotFoundError(f"Config not found: {path}")
        log.debug("No config at %s; using defaults", path)
        return {}

    with path.open("rb") as f:
        return tomllib.load(f)
