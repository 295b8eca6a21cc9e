"""
Provider-neutral schema model.

Tables own their columns, constraints and indexes. All objects are frozen
dataclasses with structural equality so a desired model can be compared
with one introspected from a live catalog. Constraint and index names are
generated deterministically when omitted.
"""
import dataclasses
import enum
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from schemakit.exceptions import SchemaValidationError
from schemakit.sql import expression_digest, make_constraint_name
from schemakit.types import TypeDescriptor

logger = logging.getLogger(__name__)

__all__ = [
    'ForeignKeyAction',
    'DefaultExpression',
    'OrderedColumn',
    'Column',
    'PrimaryKeyConstraint',
    'ForeignKeyConstraint',
    'UniqueConstraint',
    'CheckConstraint',
    'DefaultConstraint',
    'Index',
    'View',
    'Table',
]


class ForeignKeyAction(str, enum.Enum):
    NO_ACTION = 'NO ACTION'
    RESTRICT = 'RESTRICT'
    CASCADE = 'CASCADE'
    SET_NULL = 'SET NULL'
    SET_DEFAULT = 'SET DEFAULT'

    @classmethod
    def parse(cls, value: 'str | ForeignKeyAction | None') -> 'ForeignKeyAction':
        """Accept catalog spellings such as ``SET_NULL`` or ``cascade``."""
        if value is None:
            return cls.NO_ACTION
        if isinstance(value, cls):
            return value
        text = str(value).strip().upper().replace('_', ' ')
        return cls(text)


class DefaultExpression(enum.Enum):
    """Default values rendered with dialect-specific functions."""
    CURRENT_TIMESTAMP = 'current_timestamp'
    CURRENT_DATE = 'current_date'
    NEW_UUID = 'new_uuid'


def _freeze_columns(columns: Iterable['str | OrderedColumn']) -> tuple['OrderedColumn', ...]:
    return tuple(c if isinstance(c, OrderedColumn) else OrderedColumn(c) for c in columns)


def _freeze_names(columns: Iterable[str] | str) -> tuple[str, ...]:
    if isinstance(columns, str):
        return (columns,)
    return tuple(columns)


@dataclass(frozen=True, slots=True)
class OrderedColumn:
    """Column reference inside an index or key with its sort direction."""
    name: str
    descending: bool = False

    def __str__(self) -> str:
        return f"{self.name} {'DESC' if self.descending else 'ASC'}"


@dataclass(frozen=True)
class Column:
    """Table column.

    `table_name` and `schema_name` are filled in by the owning Table.
    `sql_type` forces a dialect type instead of converting `type`.
    """
    name: str
    type: TypeDescriptor
    is_nullable: bool = True
    default_value: Any = None
    is_auto_increment: bool = False
    table_name: str | None = None
    schema_name: str | None = None
    sql_type: str | None = field(default=None, compare=False)

    def __post_init__(self):
        if not isinstance(self.type, TypeDescriptor):
            object.__setattr__(self, 'type', TypeDescriptor.of(self.type))
        auto = self.is_auto_increment or self.type.is_auto_increment
        object.__setattr__(self, 'is_auto_increment', auto)
        if self.type.is_auto_increment != auto:
            object.__setattr__(self, 'type', self.type.with_facets(is_auto_increment=auto))
        if auto:
            object.__setattr__(self, 'is_nullable', False)


@dataclass(frozen=True)
class PrimaryKeyConstraint:
    columns: tuple[OrderedColumn, ...]
    name: str | None = None

    def __post_init__(self):
        object.__setattr__(self, 'columns', _freeze_columns(self.columns))

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns)


@dataclass(frozen=True)
class ForeignKeyConstraint:
    columns: tuple[str, ...]
    referenced_table: str
    referenced_columns: tuple[str, ...]
    name: str | None = None
    referenced_schema: str | None = None
    on_delete: ForeignKeyAction = ForeignKeyAction.NO_ACTION
    on_update: ForeignKeyAction = ForeignKeyAction.NO_ACTION

    def __post_init__(self):
        object.__setattr__(self, 'columns', _freeze_names(self.columns))
        object.__setattr__(self, 'referenced_columns', _freeze_names(self.referenced_columns))
        object.__setattr__(self, 'on_delete', ForeignKeyAction.parse(self.on_delete))
        object.__setattr__(self, 'on_update', ForeignKeyAction.parse(self.on_update))
        if len(self.columns) != len(self.referenced_columns):
            raise SchemaValidationError(
                f'Foreign key {self.name or ""} has {len(self.columns)} columns '
                f'but references {len(self.referenced_columns)}')
        if not self.columns:
            raise SchemaValidationError('Foreign key must name at least one column')


@dataclass(frozen=True)
class UniqueConstraint:
    columns: tuple[str, ...]
    name: str | None = None

    def __post_init__(self):
        object.__setattr__(self, 'columns', _freeze_names(self.columns))


@dataclass(frozen=True)
class CheckConstraint:
    """Check constraint.

    `column_name` only seeds the generated name; not every catalog records
    it, so it takes no part in equality.
    """
    expression: str
    column_name: str | None = field(default=None, compare=False)
    name: str | None = None


@dataclass(frozen=True)
class DefaultConstraint:
    column_name: str
    expression: Any
    name: str | None = None


@dataclass(frozen=True)
class Index:
    columns: tuple[OrderedColumn, ...]
    name: str | None = None
    is_unique: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'columns', _freeze_columns(self.columns))
        if not self.columns:
            raise SchemaValidationError('Index must name at least one column')

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns)


@dataclass(frozen=True)
class View:
    name: str
    definition: str
    schema_name: str | None = None


def _by_name(items: Iterable[Any]) -> tuple:
    return tuple(sorted(items, key=lambda item: item.name.lower()))


@dataclass(frozen=True)
class Table:
    """Table with its columns, constraints and indexes.

    Constraint and index collections are kept sorted by name, which makes
    equality independent of declaration order. Column default values and
    default constraints are kept in sync.
    """
    name: str
    columns: tuple[Column, ...] = ()
    schema_name: str | None = None
    primary_key: PrimaryKeyConstraint | None = None
    unique_constraints: tuple[UniqueConstraint, ...] = ()
    check_constraints: tuple[CheckConstraint, ...] = ()
    default_constraints: tuple[DefaultConstraint, ...] = ()
    foreign_keys: tuple[ForeignKeyConstraint, ...] = ()
    indexes: tuple[Index, ...] = ()

    def __post_init__(self):
        self._validate_columns()
        defaults = self._merge_defaults()
        columns = tuple(
            dataclasses.replace(
                col,
                table_name=self.name,
                schema_name=self.schema_name,
                default_value=defaults[col.name.lower()].expression
                if col.name.lower() in defaults else None)
            for col in self.columns)
        object.__setattr__(self, 'columns', columns)

        if self.primary_key is not None:
            self._check_columns('primary key', self.primary_key.column_names)
            object.__setattr__(self, 'primary_key', self._named_pk(self.primary_key))

        object.__setattr__(self, 'default_constraints', _by_name(
            self._named_default(dc) for dc in defaults.values()))
        object.__setattr__(self, 'unique_constraints', _by_name(
            self._named_unique(uc) for uc in self.unique_constraints))
        object.__setattr__(self, 'check_constraints', _by_name(
            self._named_check(cc) for cc in self.check_constraints))
        object.__setattr__(self, 'foreign_keys', _by_name(
            self._named_fk(fk) for fk in self.foreign_keys))
        object.__setattr__(self, 'indexes', _by_name(
            self._named_index(ix) for ix in self.indexes))
        self._check_unique_names()

    def _validate_columns(self) -> None:
        object.__setattr__(self, 'columns', tuple(self.columns))
        seen: set[str] = set()
        for col in self.columns:
            key = col.name.lower()
            if key in seen:
                raise SchemaValidationError(f'Duplicate column {col.name!r} in table {self.name!r}')
            seen.add(key)

    def _check_columns(self, what: str, names: Sequence[str]) -> None:
        if not self.columns:
            return
        known = {c.name.lower() for c in self.columns}
        missing = [n for n in names if n.lower() not in known]
        if missing:
            raise SchemaValidationError(
                f'{what} on {self.name!r} references unknown columns {missing}')

    def _merge_defaults(self) -> dict[str, DefaultConstraint]:
        defaults: dict[str, DefaultConstraint] = {}
        for dc in self.default_constraints:
            key = dc.column_name.lower()
            if key in defaults:
                raise SchemaValidationError(
                    f'Column {dc.column_name!r} of {self.name!r} has more than one default')
            self._check_columns('default constraint', [dc.column_name])
            defaults[key] = dc
        for col in self.columns:
            if col.default_value is not None and col.name.lower() not in defaults:
                defaults[col.name.lower()] = DefaultConstraint(col.name, col.default_value)
        return defaults

    def _named_pk(self, pk: PrimaryKeyConstraint) -> PrimaryKeyConstraint:
        if pk.name:
            return pk
        return dataclasses.replace(pk, name=make_constraint_name('pk', self.name, pk.column_names))

    def _named_default(self, dc: DefaultConstraint) -> DefaultConstraint:
        if dc.name:
            return dc
        return dataclasses.replace(dc, name=make_constraint_name('df', self.name, dc.column_name))

    def _named_unique(self, uc: UniqueConstraint) -> UniqueConstraint:
        self._check_columns('unique constraint', uc.columns)
        if uc.name:
            return uc
        return dataclasses.replace(uc, name=make_constraint_name('uc', self.name, uc.columns))

    def _named_check(self, cc: CheckConstraint) -> CheckConstraint:
        if cc.column_name:
            self._check_columns('check constraint', [cc.column_name])
        if cc.name:
            return cc
        suffix = cc.column_name or expression_digest(cc.expression)
        return dataclasses.replace(cc, name=make_constraint_name('ck', self.name, suffix))

    def _named_fk(self, fk: ForeignKeyConstraint) -> ForeignKeyConstraint:
        self._check_columns('foreign key', fk.columns)
        if fk.name:
            return fk
        name = make_constraint_name('fk', self.name, fk.columns,
                                    fk.referenced_table, fk.referenced_columns)
        return dataclasses.replace(fk, name=name)

    def _named_index(self, ix: Index) -> Index:
        self._check_columns('index', ix.column_names)
        if ix.name:
            return ix
        return dataclasses.replace(ix, name=make_constraint_name('ix', self.name, ix.column_names))

    def _check_unique_names(self) -> None:
        seen: set[str] = set()
        constraints = [*self.unique_constraints, *self.check_constraints,
                       *self.default_constraints, *self.foreign_keys]
        if self.primary_key is not None:
            constraints.append(self.primary_key)
        for item in constraints:
            key = item.name.lower()
            if key in seen:
                raise SchemaValidationError(f'Duplicate constraint name {item.name!r} on {self.name!r}')
            seen.add(key)

    def get_column(self, name: str) -> Column | None:
        """Find a column by case-insensitive name."""
        key = name.lower()
        return next((c for c in self.columns if c.name.lower() == key), None)

    def get_default_constraint(self, column_name: str) -> DefaultConstraint | None:
        key = column_name.lower()
        return next((d for d in self.default_constraints if d.column_name.lower() == key), None)

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    def replace(self, **changes: Any) -> 'Table':
        """Return a copy with fields replaced.

        Whichever of `columns` or `default_constraints` is passed decides
        the defaults; named default constraints whose expression is
        unchanged keep their names.
        """
        if 'default_constraints' in changes and 'columns' not in changes:
            changes['columns'] = tuple(
                dataclasses.replace(c, default_value=None) for c in self.columns)
        elif 'columns' in changes and 'default_constraints' not in changes:
            new_defaults = {c.name.lower(): c.default_value for c in changes['columns']}
            changes['default_constraints'] = tuple(
                d for d in self.default_constraints
                if new_defaults.get(d.column_name.lower()) == d.expression)
        return dataclasses.replace(self, **changes)
