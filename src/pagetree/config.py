"""Configuration helpers for the page tree engine."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field, ImportString, ValidationError, model_validator

from pagetree.tree.types import DEFAULT_TYPE, PageGroup, PageType, TypeRegistry, build_registry


class StoreSettings(BaseModel):
    """Where page documents live: a local JSON file or a remote document API."""

    file: Optional[Path] = Field(None, description="JSON file backing the in-process store")
    base_url: Optional[str] = Field(None, description="Base URL of the document API")
    token: Optional[str] = Field(None, description="Bearer token for the document API")
    timeout: float = Field(30.0, description="Document API timeout in seconds")

    @model_validator(mode="after")
    def _one_backend(self) -> "StoreSettings":
        if self.file and self.base_url:
            raise ValueError("Configure either store.file or store.base_url, not both")
        return self


class ServeSettings(BaseModel):
    """How pages are resolved for requests."""

    root: str = Field("", description="Prefix prepended to slugs when building URLs")
    depth: int = Field(1, ge=0, description="Levels of children exposed with each page")
    template_path: str = Field("views", description="Default directory of page templates")
    type_paths: dict[str, str] = Field(default_factory=dict, description="Per-type template directories")
    load: list[str] = Field(default_factory=list, description="Slugs of shared pages loaded on every request")


class EngineSettings(BaseModel):
    """Tuning for tree mutations."""

    cascade_concurrency: int = Field(8, ge=1, description="Descendant updates in flight during a rename")


class GroupSettings(BaseModel):
    name: str
    settings: dict[str, Any] = Field(default_factory=dict)


class TypeSettings(BaseModel):
    name: str
    label: Optional[str] = None
    group: Optional[str] = None
    sanitizer: Optional[ImportString[Callable[..., Any]]] = Field(
        None, description="Import path of a callable sanitizing submitted content"
    )
    settings: dict[str, Any] = Field(default_factory=dict)

    def to_page_type(self) -> PageType:
        settings = dict(self.settings)
        if self.sanitizer is not None:
            settings["sanitize"] = self.sanitizer
        return PageType(name=self.name, label=self.label, group=self.group, settings=settings)


class PageTreeConfig(BaseModel):
    """Aggregate configuration."""

    store: StoreSettings = Field(default_factory=StoreSettings)
    serve: ServeSettings = Field(default_factory=ServeSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    log_level: str = Field("WARNING", description="Logging level name")
    groups: list[GroupSettings] = Field(default_factory=list)
    types: list[TypeSettings] = Field(default_factory=lambda: [TypeSettings(name=DEFAULT_TYPE, label="Default")])

    def build_registry(self) -> TypeRegistry:
        return build_registry(
            types=[item.to_page_type() for item in self.types],
            groups=[PageGroup(name=item.name, settings=item.settings) for item in self.groups],
        )


ENV_PREFIX = "PAGETREE"
DEFAULT_CONFIG_PATHS = (
    Path.cwd() / "pagetree.toml",
    Path.home() / ".config" / "pagetree" / "config.toml",
)


@dataclasses.dataclass
class ConfigSource:
    """Result of attempting to resolve configuration data."""

    config: Optional[PageTreeConfig]
    path: Optional[Path]
    error: Optional[Exception]


def _load_from_env() -> dict[str, object]:
    """Return a dictionary with configuration values extracted from environment variables."""

    def _get(name: str) -> Optional[str]:
        return os.getenv(f"{ENV_PREFIX}_{name}")

    store: dict[str, object] = {}
    for key, field_name in (("STORE_FILE", "file"), ("STORE_URL", "base_url"), ("STORE_TOKEN", "token")):
        value = _get(key)
        if value:
            store[field_name] = value

    serve: dict[str, object] = {}
    for key, field_name in (("ROOT", "root"), ("DEPTH", "depth")):
        value = _get(key)
        if value:
            serve[field_name] = value

    env_data: dict[str, object] = {}
    if store:
        env_data["store"] = store
    if serve:
        env_data["serve"] = serve
    log_level = _get("LOG_LEVEL")
    if log_level:
        env_data["log_level"] = log_level
    return env_data


def _load_toml(path: Path) -> Optional[dict]:
    if not path.exists():
        return None

    try:  # Python 3.11+
        import tomllib  # type: ignore
    except ModuleNotFoundError:  # pragma: no cover - Python <3.11 fallback
        import tomli as tomllib  # type: ignore

    with path.open("rb") as handle:
        return tomllib.load(handle)


def resolve_config(explicit_path: Optional[Path] = None) -> ConfigSource:
    """Discover configuration using the first available source.

    The priority order is:
    1. Explicit path provided via CLI argument.
    2. Default configuration files in the working directory or the user's config directory.
    3. Environment variables with the `PAGETREE_` prefix.
    """

    errors: list[Exception] = []
    sources: list[tuple[Optional[Path], Optional[dict]]] = []

    if explicit_path:
        try:
            data = _load_toml(explicit_path)
            if data is None:
                errors.append(FileNotFoundError(f"Configuration file {explicit_path} does not exist"))
            else:
                sources.append((explicit_path, data))
        except Exception as exc:  # pragma: no cover - configuration loading failure path
            errors.append(exc)

    if not sources and not explicit_path:
        for path in DEFAULT_CONFIG_PATHS:
            try:
                data = _load_toml(path)
            except Exception as exc:  # pragma: no cover
                errors.append(exc)
                continue
            if data is not None:
                sources.append((path, data))
                break

    if not sources and not errors:
        env_data = _load_from_env()
        if env_data:
            sources.append((None, env_data))

    for path, data in sources:
        if data is None:
            continue
        try:
            config = PageTreeConfig.model_validate(data)
            return ConfigSource(config=config, path=path, error=None)
        except ValidationError as exc:
            errors.append(exc)

    error = errors[0] if errors else None
    return ConfigSource(config=None, path=None, error=error)


def ensure_config(
    *,
    store_file: Optional[Path] = None,
    store_url: Optional[str] = None,
    root: Optional[str] = None,
    config_path: Optional[Path] = None,
) -> PageTreeConfig:
    """Resolve configuration from precedence order and apply explicit CLI options on top."""

    source = resolve_config(config_path)
    if source.error is not None:
        raise RuntimeError(f"Invalid configuration: {source.error}") from source.error

    config = source.config.model_copy(deep=True) if source.config else PageTreeConfig()

    if store_file:
        config.store = StoreSettings(file=store_file)
    elif store_url:
        config.store = StoreSettings(base_url=store_url, token=config.store.token, timeout=config.store.timeout)
    if root is not None:
        config.serve.root = root

    if not config.store.file and not config.store.base_url:
        config.store.file = Path.cwd() / "pagetree.json"
    return config
