"""Typed configuration models."""

from __future__ import annotations

import itertools
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_FRAGMENT_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")
OPTIMIZATION_LEVELS = ("normal", "min")


def _check_fragments(values: tuple[str, ...], what: str) -> tuple[str, ...]:
    for value in values:
        if not _FRAGMENT_RE.match(value):
            raise ValueError(f"invalid {what} name: {value!r}")
    return values


class RunOptions(BaseModel):
    """Knobs for one execution request."""

    concurrency_limit: int = Field(default=4, ge=1)
    fail_fast: bool = True
    task_timeout_seconds: float | None = Field(default=None, gt=0)


class PathSettings(BaseModel):
    src_dir: str = "src"
    dist_dir: str = "dist"
    tmp_dir: str = "dist/tmp"
    log_dir: str = "logs"
    transition_log: str = "logs/transitions.jsonl"


class CommandSettings(BaseModel):
    """External command lines for leaves that shell out.

    Each entry is an argv list; ``{src}``, ``{dest}``, ``{root}`` and
    ``{bucket}`` are substituted at run time.
    """

    clean: list[str] = Field(default_factory=lambda: ["sh", "scripts/clean.sh"])
    eslint: list[str] = Field(default_factory=lambda: ["sh", "scripts/eslint.sh"])
    less: list[str] = Field(default_factory=lambda: ["sh", "scripts/less.sh"])
    babel: list[str] = Field(
        default_factory=lambda: ["./node_modules/.bin/babel", "{src}", "--out-file", "{dest}"]
    )
    uglify: list[str] = Field(default_factory=lambda: ["./node_modules/.bin/uglifyjs", "{src}", "-o", "{dest}"])
    upload: list[str] = Field(default_factory=lambda: ["aws", "s3", "sync", "{src}", "s3://{bucket}"])
    git: list[str] = Field(default_factory=lambda: ["git"])


class AppConfig(BaseModel):
    runner: RunOptions = Field(default_factory=RunOptions)
    paths: PathSettings = Field(default_factory=PathSettings)
    commands: CommandSettings = Field(default_factory=CommandSettings)


class NetworkConfiguration(BaseModel):
    """One deployment environment; extra keys are passed to the page as-is."""

    model_config = ConfigDict(frozen=True, extra="allow")

    code: str = ""
    node: str = ""


class TradingViewSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    domain: str = ""
    files: tuple[str, ...] = ()


class BuildManifest(BaseModel):
    """Static description of what gets built; immutable once loaded."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    builds: tuple[str, ...] = ("web", "desktop")
    levels: tuple[str, ...] = OPTIMIZATION_LEVELS
    release_configuration: str = "mainnet"
    configurations: dict[str, NetworkConfiguration]
    vendors: tuple[str, ...] = ()
    stylesheets: tuple[str, ...] = ()
    copy_node_modules: tuple[str, ...] = ()
    version_files: tuple[str, ...] = ()
    trading_view: TradingViewSource = Field(default_factory=TradingViewSource)
    upload_buckets: dict[str, str] = Field(default_factory=dict)

    @field_validator("builds")
    @classmethod
    def _builds(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return _check_fragments(value, "build")

    @field_validator("levels")
    @classmethod
    def _levels(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        unknown = [level for level in value if level not in OPTIMIZATION_LEVELS]
        if unknown:
            raise ValueError(f"unknown optimization levels: {unknown}")
        return value

    @field_validator("configurations")
    @classmethod
    def _configurations(cls, value: dict[str, Any]) -> dict[str, Any]:
        if not value:
            raise ValueError("at least one configuration is required")
        _check_fragments(tuple(value), "configuration")
        return value

    @model_validator(mode="after")
    def _release_is_known(self) -> BuildManifest:
        if self.release_configuration not in self.configurations:
            raise ValueError(f"release_configuration '{self.release_configuration}' is not a configuration")
        if "min" not in self.levels:
            raise ValueError("the 'min' level is required to package releases")
        unknown = [name for name in self.upload_buckets if name not in self.configurations]
        if unknown:
            raise ValueError(f"upload buckets for unknown configurations: {unknown}")
        return self

    @property
    def css_name(self) -> str:
        return f"{self.name}-styles-{self.version}.css"

    def js_name(self, variant: BuildVariant) -> str:
        postfix = ".min" if variant.minified else ""
        return f"{self.name}-{variant.build}-{variant.configuration}-{self.version}{postfix}.js"

    def variants(self) -> Iterator[BuildVariant]:
        """Every build x configuration x level combination, in manifest order."""
        for build, configuration, level in itertools.product(self.builds, self.configurations, self.levels):
            yield BuildVariant(build=build, configuration=configuration, level=level)


@dataclass(frozen=True)
class BuildVariant:
    build: str
    configuration: str
    level: str

    @property
    def suffix(self) -> str:
        return f"{self.build}-{self.configuration}-{self.level}"

    @property
    def minified(self) -> bool:
        return self.level == "min"

    @property
    def relative_dir(self) -> Path:
        return Path(self.build, self.configuration, self.level)
