"""
Alias table: friendly names such as ``every_five_minutes`` or ``@weekly``
mapped onto canonical cron expressions.
"""

from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Tuple

import yaml

from cronfile.errors import ConfigurationError
from cronfile.events import RESERVED_NAMES

DEFAULT_ALIASES_RESOURCE = "aliases.yaml"


def _alias_names(value: Any, field_path: str) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)) or not value:
        raise ConfigurationError(f"Error: {field_path} must be an alias name or a list of alias names.")
    names: List[str] = []
    for idx, name in enumerate(value):
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(f"Error: {field_path}[{idx}] must be a non-empty string.")
        if name.lower() in RESERVED_NAMES:
            raise ConfigurationError(f'Error: "{name}" is a reserved event name and cannot be an alias.')
        names.append(name.strip())
    return names


def _parse_yaml_mapping(text: str, source: str) -> Dict[str, Any]:
    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Error: Could not parse aliases from {source}: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigurationError(f"Error: aliases in {source} must be a mapping of expression to names.")
    return payload


class AliasTable:
    def __init__(self) -> None:
        self._aliases: Dict[str, str] = {}

    def load(self, mapping: Mapping[str, Any]) -> "AliasTable":
        if not isinstance(mapping, Mapping):
            raise ConfigurationError("Error: aliases must be a mapping of expression to alias names.")
        staged: List[Tuple[str, str]] = []
        for expression, names in mapping.items():
            if not isinstance(expression, str) or not expression.strip():
                raise ConfigurationError(f"Error: alias key {expression!r} must be a non-empty expression.")
            expression = expression.strip()
            staged_names = {name for name, _ in staged}
            if expression in self._aliases or expression in staged_names:
                raise ConfigurationError(
                    f'Error: "{expression}" is itself an alias; aliases cannot point at other aliases.'
                )
            for name in _alias_names(names, f"aliases[{expression!r}]"):
                staged.append((name, expression))
        for name, expression in staged:
            self._aliases[name] = expression
        return self

    def load_file(self, path: Path) -> "AliasTable":
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Error: Could not read aliases file {path}: {exc}") from exc
        return self.load(_parse_yaml_mapping(text, str(path)))

    def load_defaults(self) -> "AliasTable":
        text = resources.files("cronfile").joinpath(DEFAULT_ALIASES_RESOURCE).read_text(encoding="utf-8")
        return self.load(_parse_yaml_mapping(text, DEFAULT_ALIASES_RESOURCE))

    def resolve(self, key: str) -> str:
        return self._aliases.get(key, key)

    def names_for(self, expression: str) -> List[str]:
        return [name for name, target in self._aliases.items() if target == expression]

    def __contains__(self, key: object) -> bool:
        return key in self._aliases

    def __iter__(self) -> Iterator[str]:
        return iter(self._aliases)

    def __len__(self) -> int:
        return len(self._aliases)

    def as_dict(self) -> Dict[str, str]:
        return dict(self._aliases)
