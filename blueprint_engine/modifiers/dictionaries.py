"""Modifiers for dictionary-shaped files (JSON/YAML).

These work on the parsed tree rather than on source text, and re-serialise
with the same stable formatting the file primitives use.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..formats import dump_tree, format_for, parse_tree
from ..merge import MergeStrategy, deep_merge, merge_at_path, split_key_path


class JsonMergerParams(BaseModel):
    """Parameters for ``json-object-merger``."""

    target_path: list[str] = Field(default_factory=list)
    properties: dict[str, Any]
    strategy: MergeStrategy = MergeStrategy.DEEP
    indent: int = Field(default=2, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _aliases(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for alias, key in (
            ("targetPath", "target_path"),
            ("keyPath", "target_path"),
            ("key_path", "target_path"),
            ("propertiesToMerge", "properties"),
            ("mergeStrategy", "strategy"),
        ):
            if alias in data:
                data.setdefault(key, data.pop(alias))
        if isinstance(data.get("target_path"), str) or data.get("target_path") is None:
            data["target_path"] = split_key_path(data.get("target_path"))
        return data


class PackageJsonMergerParams(BaseModel):
    """Parameters for ``package-json-merger``; every section is deep-merged."""

    model_config = ConfigDict(populate_by_name=True)

    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict, alias="devDependencies")
    peer_dependencies: dict[str, str] = Field(default_factory=dict, alias="peerDependencies")
    scripts: dict[str, str] = Field(default_factory=dict)
    engines: dict[str, str] = Field(default_factory=dict)
    fields: dict[str, Any] = Field(default_factory=dict)
    indent: int = Field(default=2, ge=0)


def merge_json_object(content: str, params: JsonMergerParams, path: str) -> str:
    fmt = format_for(path) or "json"
    tree = parse_tree(content, fmt, path)
    merged = merge_at_path(tree, params.target_path, params.properties, params.strategy)
    return dump_tree(merged, fmt, params.indent)


def merge_package_json(content: str, params: PackageJsonMergerParams, path: str) -> str:
    tree = parse_tree(content, "json", path)
    sections = {
        "dependencies": params.dependencies,
        "devDependencies": params.dev_dependencies,
        "peerDependencies": params.peer_dependencies,
        "scripts": params.scripts,
        "engines": params.engines,
    }
    for section, values in sections.items():
        if values:
            tree = merge_at_path(tree, [section], values)
    if params.fields:
        tree = deep_merge(tree, params.fields)
    return dump_tree(tree, "json", params.indent)
