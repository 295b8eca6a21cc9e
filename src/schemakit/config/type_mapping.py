"""
Configuration for custom type mappings.

A JSON file maps host type names to SQL types and catalog base type names to
host types, per dialect::

    {
      "postgresql": {
        "to_sql": {"json": "json", "object": "jsonb"},
        "to_python": {"citext": "str", "ltree": "str"}
      },
      "sqlite": {"fallback": "text"}
    }

Entries are prepended to a TypeConverterRegistry so they override the
built-in rules.
"""
import json
import logging
import pathlib
from typing import TYPE_CHECKING, Any

from schemakit.adapters.type_mapping import TO_PYTHON, TO_SQL, create_python_rule
from schemakit.adapters.type_mapping import create_sql_rule
from schemakit.types import HOST_TYPES, SqlTypeDescriptor, TypeDescriptor

if TYPE_CHECKING:
    from schemakit.adapters.type_mapping import TypeConverterRegistry

logger = logging.getLogger(__name__)

DEFAULT_LOCATIONS = [
    pathlib.Path('~/.config/schemakit/type_mapping.json').expanduser(),
    pathlib.Path('/etc/schemakit/type_mapping.json'),
    pathlib.Path('type_mapping.json'),
    ]


class TypeMappingConfig:
    """Configuration for custom type mappings"""

    def __init__(self, config_file: str | pathlib.Path | None = None,
                 mappings: dict[str, dict[str, Any]] | None = None) -> None:
        self._mappings: dict[str, dict[str, Any]] = {}

        if mappings:
            self.merge(mappings)
        elif config_file:
            self.load_config(config_file)
        else:
            for location in DEFAULT_LOCATIONS:
                if location.exists():
                    self.load_config(location)
                    break

    def load_config(self, config_file: str | pathlib.Path) -> None:
        """Load configuration from file.

        Raises
            ValueError: If the file is not valid JSON or not a mapping
        """
        path = pathlib.Path(config_file)
        try:
            config = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise ValueError(f'Invalid type mapping file {path}: {e}') from e
        if not isinstance(config, dict):
            raise ValueError(f'Type mapping file {path} must contain an object')
        self.merge(config)
        logger.info(f'Loaded type mapping configuration from {path}')

    def merge(self, config: dict[str, dict[str, Any]]) -> None:
        """Merge mappings with those already loaded."""
        for dialect, mappings in config.items():
            current = self._mappings.setdefault(dialect, {TO_SQL: {}, TO_PYTHON: {}})
            for host_name in mappings.get(TO_SQL, {}):
                if host_name not in HOST_TYPES:
                    raise ValueError(f'Unknown host type {host_name!r} in {dialect} mapping')
            for host_name in mappings.get(TO_PYTHON, {}).values():
                if host_name not in HOST_TYPES:
                    raise ValueError(f'Unknown host type {host_name!r} in {dialect} mapping')
            current[TO_SQL].update(mappings.get(TO_SQL, {}))
            current[TO_PYTHON].update({k.lower(): v for k, v in mappings.get(TO_PYTHON, {}).items()})
            if 'fallback' in mappings:
                current['fallback'] = mappings['fallback']

    @property
    def dialects(self) -> list[str]:
        return sorted(self._mappings)

    def apply(self, registry: 'TypeConverterRegistry') -> None:
        """Prepend the configured rules to a registry."""
        for dialect, mappings in self._mappings.items():
            for host_name, sql_type in mappings[TO_SQL].items():
                target = SqlTypeDescriptor.parse(sql_type)
                rule = create_sql_rule(host_name, lambda td, target=target: target,
                                       name=f'config {host_name}->{sql_type}')
                registry.register(dialect, TO_SQL, rule, prepend=True)
            for sql_name, host_name in mappings[TO_PYTHON].items():
                target = TypeDescriptor(host_name)
                rule = create_python_rule(sql_name, lambda st, target=target: target,
                                          name=f'config {sql_name}->{host_name}')
                registry.register(dialect, TO_PYTHON, rule, prepend=True)
            if mappings.get('fallback'):
                registry.set_fallback(dialect, mappings['fallback'])
