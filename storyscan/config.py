from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path


CONFIG_FILENAME = ".storyscan.json"
DEFAULT_DB_PATH = Path("data") / "storyscan.db"
DEFAULT_SCAN_DIRECTORIES = ("/data",)
DEFAULT_INTERVAL_HOURS = 6.0


@dataclass(slots=True)
class StoryScanConfig:
    db_path: str = str(DEFAULT_DB_PATH)
    scan_directories: list[str] = field(default_factory=lambda: list(DEFAULT_SCAN_DIRECTORIES))
    scheduler_enabled: bool = True
    scan_interval_hours: float = DEFAULT_INTERVAL_HOURS
    scan_on_start: bool = True
    log_level: str = "INFO"

    @property
    def db_file(self) -> Path:
        return Path(self.db_path).expanduser().resolve()


def config_path(base_dir: Path | None = None) -> Path:
    return (base_dir or Path.cwd()).resolve() / CONFIG_FILENAME


def parse_directories(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _parse_flag(value: str) -> bool:
    # Only an explicit "false" disables a flag.
    return value.strip().lower() != "false"


def _parse_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return _parse_flag(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    return _parse_float(name, value)


def _coerce_file_value(key: str, value: object) -> object:
    """Convert a ``.storyscan.json`` value to the type of its config field."""
    if key == "scan_directories":
        if isinstance(value, str):
            return parse_directories(value)
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return [item.strip() for item in value if item.strip()]
        raise ValueError(f"{key} must be a list of paths or a comma-separated string")
    if key in ("scheduler_enabled", "scan_on_start"):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return _parse_flag(value)
        raise ValueError(f"{key} must be a boolean, got {value!r}")
    if key == "scan_interval_hours":
        if isinstance(value, bool):
            raise ValueError(f"{key} must be a number, got {value!r}")
        if isinstance(value, (int, float)):
            return float(value)
        return _parse_float(key, str(value).strip())
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string, got {value!r}")
    return value.upper() if key == "log_level" else value


def config_from_env(base_dir: Path | None = None) -> StoryScanConfig:
    base = (base_dir or Path.cwd()).resolve()
    directories = parse_directories(os.getenv("SCAN_DIRECTORIES", ""))
    return StoryScanConfig(
        db_path=os.getenv("STORYSCAN_DB_PATH") or str(base / DEFAULT_DB_PATH),
        scan_directories=directories or list(DEFAULT_SCAN_DIRECTORIES),
        scheduler_enabled=_env_flag("SCAN_CRON_ENABLED", True),
        scan_interval_hours=_env_float("SCAN_INTERVAL_HOURS", DEFAULT_INTERVAL_HOURS),
        scan_on_start=_env_flag("SCAN_ON_START", True),
        log_level=os.getenv("STORYSCAN_LOG_LEVEL", "INFO").upper(),
    )


def load_config(base_dir: Path | None = None) -> StoryScanConfig:
    """Build the config from the environment, then apply ``.storyscan.json``."""
    config = config_from_env(base_dir)
    path = config_path(base_dir)
    if not path.exists():
        return config

    with path.open("r", encoding="utf-8") as fh:
        data = json.load(fh)

    known = set(asdict(config))
    for key, value in data.items():
        if key in known:
            setattr(config, key, _coerce_file_value(key, value))
    return config


def save_config(config: StoryScanConfig, base_dir: Path | None = None) -> Path:
    path = config_path(base_dir)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(asdict(config), fh, indent=2)
        fh.write("\n")
    return path
