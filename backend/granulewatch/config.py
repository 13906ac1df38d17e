"""
Watcher configuration.

Loaded once at startup from a YAML document and passed explicitly to the
tracker and engine; never mutated afterwards. Every key is optional. Keys
that are missing, empty strings or empty lists fall back to the defaults
below.

Example:

    Required: [SVDNB, GMTCO]
    Period: 1m
    WatchDir: /data/incoming
    OutputDir: /data/products
    Version: v2.1
    Pipeline:
      Steps:
        - viirs_detect ((.SVDNB)) ((.GMTCO)) ((.OutputDir))/((.SVDNB_Name)).csv

Any problem (unreadable file, YAML syntax, unknown key, bad value, template
that fails to compile) raises ConfigError, which is fatal at startup.
"""

import re
from pathlib import Path
from typing import Any, List, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from granulewatch.pipeline import Pipeline, TemplateCompileError
from granulewatch.watch.naming import NameFormat

DEFAULT_REQUIRED = [
    "SVM10",
    "GMTCO",
    "IICMO",
    "SVDNB",
    "SVM07",
    "SVM08",
    "SVM12",
    "SVM13",
    "SVM14",
    "SVM15",
    "SVM16",
]

DEFAULT_PERIOD_SECONDS = 30.0

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART_RE = re.compile(r"([0-9]*\.?[0-9]+|[0-9]+\.)(ns|us|µs|μs|ms|s|m|h)")


class ConfigError(Exception):
    """Configuration document is missing, malformed or invalid."""

    pass


def parse_duration(value: Union[str, int, float]) -> float:
    """
    Parse a duration into seconds.

    Accepts a number of seconds, or a string of number+unit parts such as
    "30s", "1m30s", "1.5h", "500ms". A bare "0" is zero.

    Raises:
        ValueError: If value is not a valid duration
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = value.strip()
    sign = 1.0
    if text and text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
    if text == "0":
        return 0.0

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART_RE.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0:
        raise ValueError(f"invalid duration: {value!r}")
    return sign * total


class QualityGateConfig(BaseModel):
    """Content check applied to ready groups."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    enabled: bool = Field(default=True, alias="Enabled")
    binary: str = Field(default="h5dump", alias="Binary", min_length=1)


class WatcherConfig(BaseModel):
    """
    Immutable watcher configuration.

    Field aliases match the capitalised keys of the YAML document.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    required: List[str] = Field(
        default_factory=lambda: list(DEFAULT_REQUIRED), alias="Required"
    )
    period: float = Field(
        default=DEFAULT_PERIOD_SECONDS,
        alias="Period",
        description="Poll interval in seconds",
    )
    watch_dir: str = Field(default="/data", alias="WatchDir")
    output_dir: str = Field(default="/output", alias="OutputDir")
    version: str = Field(default="v2.1", alias="Version")
    extension: str = Field(default=".h5", alias="Extension")
    name_format: NameFormat = Field(default_factory=NameFormat, alias="NameFormat")
    quality_gate: QualityGateConfig = Field(
        default_factory=QualityGateConfig, alias="QualityGate"
    )
    max_workers: int = Field(default=1, alias="MaxWorkers", ge=1)
    pipeline: Pipeline = Field(default_factory=Pipeline, alias="Pipeline")

    @model_validator(mode="before")
    @classmethod
    def drop_empty_values(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None and v != "" and v != []}
        return data

    @field_validator("required")
    @classmethod
    def validate_required(cls, value: List[str]) -> List[str]:
        if any(not prefix for prefix in value):
            raise ValueError("Required prefixes must be non-empty")
        if len(set(value)) != len(value):
            raise ValueError(f"Required prefixes must be unique: {value}")
        return value

    @field_validator("period", mode="before")
    @classmethod
    def parse_period(cls, value: Any) -> float:
        seconds = parse_duration(value)
        if seconds < 0:
            raise ValueError(f"Period must not be negative: {value!r}")
        if seconds == 0:
            return DEFAULT_PERIOD_SECONDS
        return seconds

    @field_validator("extension")
    @classmethod
    def validate_extension(cls, value: str) -> str:
        if not value.startswith("."):
            raise ValueError(f"Extension must start with '.': {value!r}")
        return value

    @classmethod
    def from_mapping(cls, data: Any) -> "WatcherConfig":
        """
        Validate a parsed document and compile its pipeline.

        Raises:
            ConfigError: On validation or template compile failure
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"Config document must be a mapping, got {type(data).__name__}"
            )
        try:
            config = cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config: {e}") from e
        try:
            config.pipeline.prepare()
        except TemplateCompileError as e:
            raise ConfigError(f"Invalid pipeline template: {e}") from e
        return config


def load_config(path: Union[str, Path]) -> WatcherConfig:
    """
    Read, parse and validate a YAML config file.

    Raises:
        ConfigError: If the file cannot be read, parsed or validated
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse config {path}: {e}") from e
    return WatcherConfig.from_mapping(data)
