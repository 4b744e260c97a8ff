from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(Exception):
    """The configuration file could not be read or is invalid."""


class InputSettings(BaseModel):
    file: Path
    delimiter: str | None = None
    has_headers: bool

    @field_validator("delimiter")
    @classmethod
    def _single_character(cls, value: str | None) -> str | None:
        if value is not None and len(value) != 1:
            raise ValueError("delimiter must be a single character")
        if value is not None and value in "\"\r\n":
            raise ValueError("delimiter cannot be a quote or a line break")
        return value

    @property
    def delimiter_char(self) -> str:
        return self.delimiter or ","


class OutputSettings(BaseModel):
    file: Path | None = None
    socket: str | None = None
    prefix: str = ""
    numeric_values_only: bool = False
    skip_duplicate_headers: bool = False

    @field_validator("socket")
    @classmethod
    def _host_and_port(cls, value: str | None) -> str | None:
        if value is None:
            return value
        host, sep, port = value.rpartition(":")
        if not sep or not host or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError("socket must look like host:port")
        return value

    @model_validator(mode="after")
    def _exactly_one_destination(self) -> "OutputSettings":
        if (self.file is None) == (self.socket is None):
            raise ValueError("exactly one of output.file or output.socket must be set")
        return self

    @property
    def listen_address(self) -> tuple[str, int]:
        if self.socket is None:
            raise ValueError("output is configured for a file, not a socket")
        host, _, port = self.socket.rpartition(":")
        # [::1]:9100 style IPv6 literals
        return host.strip("[]"), int(port)


class FieldPattern(BaseModel):
    name: re.Pattern[str]


class FieldFilters(BaseModel):
    include: list[FieldPattern] = Field(default_factory=list)
    exclude: list[FieldPattern] = Field(default_factory=list)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CSV_ADAPTER_", env_nested_delimiter="__", extra="ignore")

    input: InputSettings
    output: OutputSettings
    fields: FieldFilters | None = None
    log_level: str = "INFO"


def load_settings(path: str | Path) -> Settings:
    """Read a YAML configuration file into validated settings."""

    try:
        raw = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"failed to read the config {str(path)!r}: {exc}") from exc

    try:
        data: Any = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse the config: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("failed to parse the config: top level must be a mapping")

    try:
        return Settings(**data)
    except ValidationError as exc:
        raise ConfigError(f"failed to parse the config: {exc}") from exc
