"""Dictionary-shaped file formats (JSON and YAML).

Parsing and serialisation are kept in one place so that every call site that
merges into ``package.json`` or ``docker-compose.yml`` produces identical,
stable formatting: insertion-ordered keys, a fixed indent and a trailing
newline.
"""

from __future__ import annotations

import json
import posixpath
from typing import Any

import yaml

from .errors import StructuralError

_FORMATS: dict[str, str] = {
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
}


def format_for(path: str) -> str | None:
    """Return ``"json"``/``"yaml"`` for dictionary-shaped files, else ``None``."""
    _, ext = posixpath.splitext(path.lower())
    return _FORMATS.get(ext)


def is_dict_file(path: str) -> bool:
    return format_for(path) is not None


def parse_tree(content: str, fmt: str, path: str | None = None) -> dict[str, Any]:
    """Parse *content* into a nested dict.

    Empty content parses as ``{}``.

    Raises:
        StructuralError: If the content is malformed or its root is not a mapping.
    """
    if not content.strip():
        return {}

    try:
        if fmt == "json":
            tree = json.loads(content)
        elif fmt == "yaml":
            tree = yaml.safe_load(content)
        else:
            raise StructuralError(f"Unsupported dictionary format: {fmt}", path=path)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise StructuralError(f"Cannot parse {path or 'content'} as {fmt}: {exc}", path=path) from exc

    if tree is None:
        return {}
    if not isinstance(tree, dict):
        raise StructuralError(
            f"Expected a {fmt} object at the root of {path or 'content'}, got {type(tree).__name__}",
            path=path,
        )
    return tree


def dump_tree(tree: dict[str, Any], fmt: str, indent: int = 2) -> str:
    """Serialise *tree* with stable formatting and a trailing newline."""
    if fmt == "json":
        return json.dumps(tree, indent=indent, ensure_ascii=False) + "\n"
    if fmt == "yaml":
        return yaml.safe_dump(
            tree,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
            indent=max(indent, 2),
        )
    raise StructuralError(f"Unsupported dictionary format: {fmt}")
