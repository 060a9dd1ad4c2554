"""Runtime configuration read from the environment (optionally via a .env file)."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from skylore.catalog import BATCH_SIZE, SIMBAD_TAP_URL
from skylore.errors import ConfigurationError

_ROOT = Path(__file__).parent.parent.parent

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class Settings:
    """Resolved settings. Construct with load_settings()."""

    data_dir: str  # Local directory or http(s) URL base for the JSON datasets
    stars_file: str = "stars_data.json"
    folklore_file: str = "constellation_data.json"
    locality_file: str = "city_map.json"
    fallback_locality: str = "札幌市"
    catalog_mode: str = "bundled"  # "bundled" or "remote"
    tap_url: str = SIMBAD_TAP_URL
    batch_size: int = BATCH_SIZE
    parallel_batches: bool = False
    http_timeout: float = 10.0  # Seconds
    geolocation_timeout: float = 10.0  # Seconds
    log_level: str = "INFO"

    def source(self, filename: str) -> str:
        """Full path or URL of a dataset file under data_dir."""
        if self.data_dir.startswith(("http://", "https://")):
            return self.data_dir.rstrip("/") + "/" + filename
        return str(Path(self.data_dir) / filename)


def _positive_number(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def _flag(environ: Mapping[str, str], name: str) -> bool:
    raw = environ.get(name, "").strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from SKYLORE_* environment variables.

    Args:
        environ: Mapping to read; defaults to os.environ.

    Returns:
        Settings.

    Raises:
        ConfigurationError: On an invalid value.
    """
    env = os.environ if environ is None else environ

    mode = env.get("SKYLORE_CATALOG_MODE", "bundled").strip().lower()
    if mode not in ("bundled", "remote"):
        raise ConfigurationError(
            f"SKYLORE_CATALOG_MODE must be bundled or remote, got {mode!r}"
        )

    batch_size = _positive_number(env, "SKYLORE_BATCH_SIZE", BATCH_SIZE)
    if batch_size != int(batch_size):
        raise ConfigurationError(
            f"SKYLORE_BATCH_SIZE must be an integer, got {batch_size}"
        )

    return Settings(
        data_dir=env.get("SKYLORE_DATA_DIR") or str(_ROOT / "resources"),
        stars_file=env.get("SKYLORE_STARS_FILE") or "stars_data.json",
        folklore_file=env.get("SKYLORE_FOLKLORE_FILE") or "constellation_data.json",
        locality_file=env.get("SKYLORE_LOCALITY_FILE") or "city_map.json",
        fallback_locality=env.get("SKYLORE_FALLBACK_LOCALITY") or "札幌市",
        catalog_mode=mode,
        tap_url=env.get("SKYLORE_TAP_URL") or SIMBAD_TAP_URL,
        batch_size=int(batch_size),
        parallel_batches=_flag(env, "SKYLORE_PARALLEL_BATCHES"),
        http_timeout=_positive_number(env, "SKYLORE_HTTP_TIMEOUT", 10.0),
        geolocation_timeout=_positive_number(env, "SKYLORE_GEOLOCATION_TIMEOUT", 10.0),
        log_level=(env.get("SKYLORE_LOG_LEVEL") or "INFO").upper(),
    )
