"""
Job configuration: JSON config file, .env / environment fallbacks and CLI overrides.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .planner import FALLBACK_POLICIES, FALLBACK_TARGET


DEFAULT_CONFIG_PATH = Path("./config.json")


class ConfigError(ValueError):
    pass


@dataclass(slots=True)
class Config:
    api_base_url: str = ""
    api_key: str = ""
    model: str = "whisper-large-v3"
    language: str = "zh"
    auto_detect: bool = False
    output_dir: str = "./outputs"
    max_file_size_mb: float = 20.0
    silence_threshold: str = "-30dB"
    silence_duration: float = 0.5
    split_fallback: str = FALLBACK_TARGET
    request_timeout_sec: float = 600.0
    max_retries: int = 1

    def with_overrides(self, **overrides: Any) -> "Config":
        present = {key: value for key, value in overrides.items() if value not in (None, "", False)}
        return replace(self, **present)


def _from_mapping(raw: dict[str, Any]) -> Config:
    known = {f.name: f for f in fields(Config)}
    defaults = Config()
    values: dict[str, Any] = {}

    for key, value in raw.items():
        field_def = known.get(key)
        if field_def is None or value is None:
            continue
        default = getattr(defaults, key)
        try:
            if isinstance(default, bool):
                values[key] = value if isinstance(value, bool) else str(value).lower() in {"1", "true", "yes"}
            elif isinstance(default, int):
                values[key] = int(value)
            elif isinstance(default, float):
                values[key] = float(value)
            else:
                values[key] = str(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid value for {key}: {value!r}") from exc

    # Zero or empty values in the file mean "use the default".
    for key in ("model", "language", "output_dir", "silence_threshold", "split_fallback"):
        if not values.get(key, "x"):
            values.pop(key)
    for key in ("max_file_size_mb", "silence_duration", "request_timeout_sec", "max_retries"):
        if values.get(key, 1) <= 0:
            values.pop(key)

    config = Config(**values)
    if config.split_fallback not in FALLBACK_POLICIES:
        raise ConfigError(f"split_fallback must be one of {', '.join(FALLBACK_POLICIES)}")
    return config


def load_config(path: Path | None = None) -> Config:
    load_dotenv()

    config_path = path or DEFAULT_CONFIG_PATH
    raw: dict[str, Any] = {}
    if config_path.exists():
        try:
            raw = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigError(f"Could not read config file {config_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {config_path} must contain a JSON object")

    config = _from_mapping(raw)
    return config.with_overrides(
        api_key=config.api_key or os.environ.get("OPENAI_API_KEY", "").strip(),
        api_base_url=config.api_base_url or os.environ.get("OPENAI_BASE_URL", "").strip(),
    )
