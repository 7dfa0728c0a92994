"""Rendering of step input templates.

Templates are plain data (strings, mappings, lists) in which strings may
carry ``{{ name }}`` or ``{{ name.path.0.field }}`` placeholders. A string
that is exactly one placeholder is replaced by the referenced value itself;
placeholders inside longer text are replaced by the value's text.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any, Iterator

from pydantic import BaseModel

from .errors import TemplateResolutionError

_PLACEHOLDER = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
_MISSING = object()


def to_text(value: Any) -> str:
    """Return the textual form used when a value is embedded in a string."""
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    return json.dumps(value, ensure_ascii=False, default=str)


def _lookup(current: Any, segment: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(segment, _MISSING)
    if isinstance(current, (list, tuple)):
        if segment.lstrip("-").isdigit():
            index = int(segment)
            if -len(current) <= index < len(current):
                return current[index]
        return _MISSING
    if segment.startswith("_"):
        return _MISSING
    return getattr(current, segment, _MISSING)


def resolve_reference(reference: str, namespace: Mapping[str, Any]) -> Any:
    """Resolve a dotted ``reference`` against ``namespace``."""
    root, *path = reference.split(".")
    if root not in namespace:
        raise TemplateResolutionError(reference, f"'{root}' is not defined")
    current = namespace[root]
    walked = root
    for segment in path:
        current = _lookup(current, segment)
        if current is _MISSING:
            raise TemplateResolutionError(
                reference, f"'{walked}' has no field '{segment}'"
            )
        walked = f"{walked}.{segment}"
    return current


def render(template: Any, namespace: Mapping[str, Any]) -> Any:
    """Substitute every placeholder in ``template`` from ``namespace``.

    Raises:
        TemplateResolutionError: If any placeholder cannot be resolved.
    """
    if isinstance(template, str):
        whole = _PLACEHOLDER.fullmatch(template)
        if whole:
            return resolve_reference(whole.group(1), namespace)
        return _PLACEHOLDER.sub(
            lambda m: to_text(resolve_reference(m.group(1), namespace)), template
        )
    if isinstance(template, Mapping):
        return {key: render(value, namespace) for key, value in template.items()}
    if isinstance(template, (list, tuple)):
        return [render(item, namespace) for item in template]
    return template


def _iter_references(template: Any) -> Iterator[str]:
    if isinstance(template, str):
        for match in _PLACEHOLDER.finditer(template):
            yield match.group(1)
    elif isinstance(template, Mapping):
        for value in template.values():
            yield from _iter_references(value)
    elif isinstance(template, (list, tuple)):
        for item in template:
            yield from _iter_references(item)


def referenced_names(template: Any) -> list[str]:
    """Return root names referenced by ``template`` in first-seen order."""
    names: list[str] = []
    for reference in _iter_references(template):
        root = reference.split(".", 1)[0]
        if root not in names:
            names.append(root)
    return names
