from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PositiveInt, ValidationError
from pydantic.alias_generators import to_camel

from .errors import ConfigurationError

OPTIONS_PATH = Path(os.getenv("ADDON_OPTIONS_FILE", "/data/options.json"))
LOCAL_DEV_OPTIONS = Path("./dev/options.json")
LEGACY_OPTIONS = Path("data/options.json")
DEFAULT_LOCAL_PATH = "/homeassistant/esphome"
DEFAULT_HTTP_PORT = 8099

COMMIT_MESSAGE = "Automatic commit from addon"
COMMITTER_SERVICE_NAME = "ESPHome Manager Addon"
REMOTE_NAME = "origin"
TEMPORARY_IGNORE_RULES = ("trash/",)


class Options(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    repository_uri: str = Field(min_length=1)
    local_path: str = Field(
        default=DEFAULT_LOCAL_PATH,
        validation_alias=AliasChoices("localPath", "esphomePath", "local_path"),
    )
    repository_username: str = ""
    repository_password: str = ""
    check_period_seconds: PositiveInt = 300
    committer_name: str = ""
    committer_email: str = ""
    log_level: str = Field(default="info", pattern=r"^(trace|debug|info|warning|error)$")
    http_api_port: int = Field(default=DEFAULT_HTTP_PORT, ge=0, le=65535)
    verify_remote: bool = True
    temp_path: str | None = None

    @property
    def local_dir(self) -> Path:
        return Path(self.local_path)


def _load_raw_options(candidates: list[Path] | None = None) -> dict[str, Any]:
    candidates = candidates or [OPTIONS_PATH, LOCAL_DEV_OPTIONS, LEGACY_OPTIONS]
    for candidate in candidates:
        if candidate.exists():
            try:
                with candidate.open("r", encoding="utf-8") as handle:
                    data = json.load(handle)
            except (OSError, json.JSONDecodeError) as exc:
                raise ConfigurationError(
                    f"Unable to read configuration from {candidate}: {exc}"
                ) from exc
            if not isinstance(data, dict):
                raise ConfigurationError(
                    f"Unable to read configuration from {candidate}: expected a JSON object"
                )
            return data
    raise ConfigurationError(
        "No options file found. Provide /data/options.json or ./dev/options.json"
    )


def load_options(path: Path | None = None) -> Options:
    raw = _load_raw_options([path] if path is not None else None)
    try:
        return Options(**raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid options: {exc}") from exc
