"""Layered configuration loader for Slidewarp."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import TranslationProviderConfigurationError

APP_NAME = "slidewarp"
CONFIG_FILENAME = "slidewarp.yaml"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

KNOWN_PROVIDERS = ("google", "libretranslate", "openai", "echo")
PROVIDER_SYNONYMS = {
    "gtx": "google",
    "google_translate": "google",
    "libre": "libretranslate",
    "libre_translate": "libretranslate",
    "gpt": "openai",
    "noop": "echo",
    "mock": "echo",
}


def normalise_provider_name(name: str) -> str:
    normalized = name.strip().lower().replace("-", "_")
    return PROVIDER_SYNONYMS.get(normalized, normalized)


def _split_list(value: Any) -> Any:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


class SlidewarpConfig(BaseModel):
    """Schema describing all supported configuration options."""

    model_config = ConfigDict(frozen=True)

    SLIDEWARP_SOURCE_LANGUAGE: str = Field(
        default="EN",
        description="Language code assumed for the source text.",
    )
    SLIDEWARP_TARGET_LANGUAGE: str = Field(
        default="RU",
        description="Language code the presentation is translated into.",
    )
    SLIDEWARP_PROVIDERS: List[str] = Field(
        default_factory=lambda: ["google", "libretranslate"],
        description="Translation providers tried in order.",
    )
    SLIDEWARP_BATCH_MAX_CHARS: int = Field(default=600, gt=0)
    SLIDEWARP_PROVIDER_TIMEOUT: float = Field(default=8.0, gt=0)
    SLIDEWARP_STRICT_ALIGNMENT: bool = Field(default=False)
    SLIDEWARP_PROVIDER_DEBUG: bool = Field(default=False)
    SLIDEWARP_LOG_LEVEL: LogLevel = Field(default="INFO")
    GOOGLE_TRANSLATE_URL: str = Field(
        default="https://translate.googleapis.com/translate_a/single",
    )
    LIBRETRANSLATE_ENDPOINTS: List[str] = Field(
        default_factory=lambda: [
            "https://libretranslate.de/translate",
            "https://translate.astian.org/translate",
        ],
    )
    LIBRETRANSLATE_API_KEY: Optional[str] = Field(default=None, repr=False)
    OPENAI_API_KEY: Optional[str] = Field(default=None, repr=False)
    OPENAI_MODEL: str = Field(default="gpt-5-mini")

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        providers = _split_list(data.get("SLIDEWARP_PROVIDERS"))
        if isinstance(providers, list):
            data["SLIDEWARP_PROVIDERS"] = [
                normalise_provider_name(str(name)) for name in providers
            ]
        endpoints = _split_list(data.get("LIBRETRANSLATE_ENDPOINTS"))
        if endpoints is not None:
            data["LIBRETRANSLATE_ENDPOINTS"] = endpoints
        level = data.get("SLIDEWARP_LOG_LEVEL")
        if isinstance(level, str):
            data["SLIDEWARP_LOG_LEVEL"] = level.strip().upper()
        return data


@lru_cache(maxsize=1)
def _load_settings(app_dir: Path | None = None) -> SlidewarpConfig:
    """Load configuration layers once and cache the immutable model."""

    base_dir = app_dir or Path.cwd()
    try:
        combined = _load_discovered_yaml(app_dir=base_dir)
    except (OSError, yaml.YAMLError) as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc

    _merge_env_sources(combined, app_dir=base_dir, schema=SlidewarpConfig)

    try:
        settings = SlidewarpConfig.model_validate(combined)
    except ValidationError as exc:
        raise TranslationProviderConfigurationError(
            _format_validation_errors(exc.errors())
        ) from exc

    _validate_provider_settings(settings)
    return settings


def _discover_config_files(app_dir: Path) -> List[Path]:
    candidates = [
        Path.home() / ".config" / APP_NAME / CONFIG_FILENAME,
        app_dir / CONFIG_FILENAME,
    ]
    return [path for path in candidates if path.is_file()]


def _load_discovered_yaml(*, app_dir: Path) -> Dict[str, Any]:
    """Merge YAML files, later files overriding earlier ones."""

    result: Dict[str, Any] = {}
    for path in _discover_config_files(app_dir):
        with path.open("r", encoding="utf-8") as handle:
            parsed = yaml.safe_load(handle)
        if parsed is None:
            continue
        if not isinstance(parsed, Mapping):
            raise TranslationProviderConfigurationError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        result.update(parsed)
    return result


def _merge_env_sources(
    target: Dict[str, Any],
    *,
    app_dir: Path,
    schema: type[BaseModel],
) -> None:
    """Merge .env and process environment variables into the target mapping."""

    allowed = set(schema.model_fields.keys())

    def merge_values(values: Mapping[str, Optional[str]]) -> None:
        for key, value in sorted(values.items()):
            if value is None or key not in allowed:
                continue
            target[key] = value

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        merge_values(dotenv_values(dotenv_path))

    merge_values({k: v for k, v in os.environ.items() if isinstance(v, str)})


def _validate_provider_settings(settings: SlidewarpConfig) -> None:
    errors: List[str] = []

    if not settings.SLIDEWARP_PROVIDERS:
        errors.append("SLIDEWARP_PROVIDERS must name at least one provider.")

    unknown = [
        name for name in settings.SLIDEWARP_PROVIDERS if name not in KNOWN_PROVIDERS
    ]
    if unknown:
        errors.append(
            f"Unknown translation provider(s): {', '.join(unknown)}. "
            f"Choose from: {', '.join(KNOWN_PROVIDERS)}."
        )

    if "openai" in settings.SLIDEWARP_PROVIDERS and not settings.OPENAI_API_KEY:
        errors.append(
            "OPENAI_API_KEY is required when 'openai' is in SLIDEWARP_PROVIDERS."
        )

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise TranslationProviderConfigurationError(
            "Configuration validation errors detected:\n" + bullet_list
        )


def _format_validation_errors(entries: Sequence[Mapping[str, Any]]) -> str:
    details: List[str] = []
    for entry in entries:
        location = ".".join(str(part) for part in entry.get("loc") or () if part != "")
        message = str(entry.get("msg") or "Invalid value")
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


def get_settings(app_dir: Path | None = None) -> SlidewarpConfig:
    """Return the validated configuration model."""

    return _load_settings(app_dir=app_dir)


def clear_settings_cache() -> None:
    _load_settings.cache_clear()


def configure_logging(level: str | int = "INFO", *, debug: bool = False) -> None:
    """Install the default log format and set the package log level.

    With ``debug`` on the package logs at DEBUG so provider request and
    response dumps are shown whatever ``level`` says.
    """

    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger(APP_NAME).setLevel(logging.DEBUG if debug else level)
