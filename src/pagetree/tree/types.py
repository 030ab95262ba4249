"""Page types, the groups they inherit settings from, and their registry."""

from __future__ import annotations

import copy
import inspect
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterator, Mapping, Optional, Union

from .errors import PageValidationError, RegistryFrozenError

DEFAULT_TYPE = "default"

Sanitizer = Callable[[Mapping[str, Any]], Union[Mapping[str, Any], Awaitable[Mapping[str, Any]]]]


@dataclass(frozen=True)
class PageGroup:
    """Settings shared by every page type that names this group."""

    name: str
    settings: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PageType:
    """A named kind of page with its own rendering and validation settings."""

    name: str
    label: Optional[str] = None
    group: Optional[str] = None
    settings: Mapping[str, Any] = field(default_factory=dict)

    @property
    def sanitizer(self) -> Optional[Sanitizer]:
        return self.settings.get("sanitize")

    async def sanitize(self, content: Optional[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
        """Run the type's sanitizer over submitted content.

        Returns ``None`` when the type declares no sanitizer, in which case
        submitted content is discarded.
        """

        sanitizer = self.sanitizer
        if sanitizer is None:
            return None
        try:
            result = sanitizer(dict(content or {}))
            if inspect.isawaitable(result):
                result = await result
        except PageValidationError:
            raise
        except Exception as exc:
            raise PageValidationError(f"Content rejected for page type {self.name!r}: {exc}") from exc
        return dict(result or {})


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value) if isinstance(value, (dict, list)) else value
    return base


class TypeRegistry:
    """Immutable set of page types, looked up by name."""

    def __init__(self, types: Mapping[str, PageType]) -> None:
        self._types = MappingProxyType(dict(types))

    def get(self, name: Optional[str]) -> Optional[PageType]:
        if name is None:
            return None
        return self._types.get(name)

    def resolve(self, name: Optional[str]) -> PageType:
        """Return the named type, or the default type when it is not registered."""

        return self.get(name) or self._types[DEFAULT_TYPE]

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def __iter__(self) -> Iterator[PageType]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)


class TypeRegistryBuilder:
    """Collect groups and types during start-up, then freeze them into a registry.

    Groups must be added before the types that use them. A type's settings
    are deep-merged over its group's, so the type wins on conflicts.
    """

    def __init__(self) -> None:
        self._groups: dict[str, PageGroup] = {}
        self._types: dict[str, PageType] = {}
        self._registry: Optional[TypeRegistry] = None

    def add_group(self, group: PageGroup) -> "TypeRegistryBuilder":
        self._check_open(group.name)
        self._groups[group.name] = group
        return self

    def add_type(self, page_type: PageType) -> "TypeRegistryBuilder":
        self._check_open(page_type.name)
        settings: dict[str, Any] = {}
        if page_type.group is not None:
            group = self._groups.get(page_type.group)
            if group is None:
                raise PageValidationError(
                    f"Page type {page_type.name!r} references unknown group {page_type.group!r}"
                )
            _deep_merge(settings, group.settings)
        _deep_merge(settings, page_type.settings)
        self._types[page_type.name] = PageType(
            name=page_type.name,
            label=page_type.label or page_type.name.title(),
            group=page_type.group,
            settings=MappingProxyType(settings),
        )
        return self

    def freeze(self) -> TypeRegistry:
        if self._registry is None:
            if DEFAULT_TYPE not in self._types:
                self.add_type(PageType(name=DEFAULT_TYPE, label="Default"))
            self._registry = TypeRegistry(self._types)
        return self._registry

    def _check_open(self, name: str) -> None:
        if self._registry is not None:
            raise RegistryFrozenError(name)


def build_registry(
    types: Optional[list[PageType]] = None,
    groups: Optional[list[PageGroup]] = None,
) -> TypeRegistry:
    builder = TypeRegistryBuilder()
    for group in groups or []:
        builder.add_group(group)
    for page_type in types or [PageType(name=DEFAULT_TYPE, label="Default")]:
        builder.add_type(page_type)
    return builder.freeze()
