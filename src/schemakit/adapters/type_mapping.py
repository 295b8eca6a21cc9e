"""
Type converter registry.

Maps host TypeDescriptors to dialect SqlTypeDescriptors and back. Each
dialect and direction has an ordered list of rules; a rule is a predicate
plus a producer and the first rule that matches and produces a value wins.
More specific rules are registered before generic ones, and callers prepend
their own rules to override built-ins without disturbing their order.

Rules are registered during setup. After that the registry is only read,
so it can be shared by concurrent callers without locking.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from schemakit.exceptions import UnsupportedType
from schemakit.types import SqlTypeDescriptor, TypeDescriptor

if TYPE_CHECKING:
    from schemakit.config.type_mapping import TypeMappingConfig

logger = logging.getLogger(__name__)

TO_SQL = 'to_sql'
TO_PYTHON = 'to_python'
DIRECTIONS = (TO_SQL, TO_PYTHON)


@dataclass(frozen=True, slots=True)
class ConversionRule:
    """Predicate plus producer.

    The producer may return None to pass the descriptor on to the next rule.
    """
    predicate: Callable[[Any], bool]
    producer: Callable[[Any], Any]
    name: str = ''

    def apply(self, descriptor: Any) -> Any:
        if not self.predicate(descriptor):
            return None
        return self.producer(descriptor)


def create_sql_rule(host_names: str | set[str],
                    producer: Callable[[TypeDescriptor], SqlTypeDescriptor | None],
                    where: Callable[[TypeDescriptor], bool] | None = None,
                    name: str | None = None) -> ConversionRule:
    """Factory for host-to-SQL rules matching non-array host type names.

    Args:
        host_names: Host type name or names this rule recognizes
        producer: Builds the SQL type from the matched descriptor
        where: Optional extra condition, e.g. a length check
        name: Rule name used in logs

    Returns
        A ConversionRule
    """
    names = {host_names} if isinstance(host_names, str) else set(host_names)

    def predicate(td: TypeDescriptor) -> bool:
        return td.name in names and not td.is_array and (where is None or where(td))

    return ConversionRule(predicate, producer, name or '/'.join(sorted(names)))


def create_python_rule(sql_names: str | set[str],
                       producer: Callable[[SqlTypeDescriptor], TypeDescriptor | None],
                       where: Callable[[SqlTypeDescriptor], bool] | None = None,
                       name: str | None = None) -> ConversionRule:
    """Factory for SQL-to-host rules keyed on lower-case base type names.
    """
    names = {sql_names} if isinstance(sql_names, str) else set(sql_names)

    def predicate(st: SqlTypeDescriptor) -> bool:
        return st.base_type_name in names and not st.is_array and (where is None or where(st))

    return ConversionRule(predicate, producer, name or '/'.join(sorted(names)))


class TypeConverterRegistry:
    """Ordered conversion rules per dialect and direction.

    Construct once per process (usually with `with_builtin_rules`) and pass
    it to the engines that need it.
    """

    def __init__(self) -> None:
        self._rules: dict[tuple[str, str], list[ConversionRule]] = {}
        self._fallbacks: dict[str, SqlTypeDescriptor] = {}

    @classmethod
    def with_builtin_rules(cls, config: 'TypeMappingConfig | None' = None) -> 'TypeConverterRegistry':
        """Create a registry loaded with the built-in rules of every dialect.

        Overrides from `config` are prepended after the built-ins are loaded.
        """
        from schemakit.adapters.type_rules import register_builtin_rules

        registry = cls()
        register_builtin_rules(registry)
        if config is not None:
            config.apply(registry)
        return registry

    def register(self, dialect: str, direction: str, rule: ConversionRule,
                 prepend: bool = False) -> None:
        """Add a rule.

        Args:
            dialect: Dialect name
            direction: TO_SQL or TO_PYTHON
            rule: The rule to add
            prepend: Evaluate before every rule registered so far
        """
        if direction not in DIRECTIONS:
            raise ValueError(f'direction must be one of {DIRECTIONS}')
        rules = self._rules.setdefault((dialect, direction), [])
        if prepend:
            rules.insert(0, rule)
        else:
            rules.append(rule)
        logger.debug(f'Registered {direction} rule {rule.name!r} for {dialect} (prepend={prepend})')

    def rules(self, dialect: str, direction: str) -> tuple[ConversionRule, ...]:
        """Return the rules of a dialect/direction in evaluation order."""
        return tuple(self._rules.get((dialect, direction), ()))

    def dialects(self) -> list[str]:
        return sorted({dialect for dialect, _ in self._rules})

    def set_fallback(self, dialect: str, sql_type: SqlTypeDescriptor | str | None) -> None:
        """Configure the SQL type used when no rule matches, or clear it."""
        if sql_type is None:
            self._fallbacks.pop(dialect, None)
            return
        if isinstance(sql_type, str):
            sql_type = SqlTypeDescriptor.parse(sql_type)
        self._fallbacks[dialect] = sql_type

    def _first(self, dialect: str, direction: str, descriptor: Any) -> Any:
        for rule in self._rules.get((dialect, direction), ()):
            result = rule.apply(descriptor)
            if result is not None:
                return result
        return None

    def to_sql(self, dialect: str, descriptor: TypeDescriptor) -> SqlTypeDescriptor | None:
        """Convert a host type; None when the dialect has no matching rule."""
        return self._first(dialect, TO_SQL, descriptor)

    def to_python(self, dialect: str, sql_type: SqlTypeDescriptor | str) -> TypeDescriptor | None:
        """Convert a catalog type back to a host type; None when unknown."""
        if isinstance(sql_type, str):
            sql_type = SqlTypeDescriptor.parse(sql_type)
        return self._first(dialect, TO_PYTHON, sql_type)

    def require_sql(self, dialect: str, descriptor: TypeDescriptor) -> SqlTypeDescriptor:
        """Convert a host type or fall back to the configured type.

        Raises
            UnsupportedType: No rule matched and no fallback is configured
        """
        result = self.to_sql(dialect, descriptor)
        if result is not None:
            return result
        if dialect in self._fallbacks:
            logger.warning(f'No {dialect} rule for {descriptor}, using {self._fallbacks[dialect]}')
            return self._fallbacks[dialect]
        raise UnsupportedType(dialect, descriptor)

    def require_python(self, dialect: str, sql_type: SqlTypeDescriptor | str) -> TypeDescriptor:
        """Convert a catalog type, falling back to ``object``.

        Introspection must not fail on exotic catalog types, so unknown types
        become ``object`` with a logged warning.
        """
        result = self.to_python(dialect, sql_type)
        if result is None:
            logger.warning(f'No {dialect} rule for catalog type {sql_type}, using object')
            return TypeDescriptor('object')
        return result
