"""
Reader for SQLite CREATE TABLE statements.

The PRAGMA table functions report columns, keys and indexes but not
constraint names, check expressions or AUTOINCREMENT. Those are recovered
from the statement text stored in sqlite_master, parsed with sqlglot.
"""
import re
from dataclasses import dataclass, field

import sqlglot
from sqlglot import exp

_ACTION_RE = re.compile(r'^ON\s+(DELETE|UPDATE)\s+(.+)$', re.IGNORECASE)


@dataclass
class ParsedConstraint:
    """A constraint found in the DDL; kind is 'primary key', 'unique',
    'check', 'foreign key' or 'default'.
    """
    kind: str
    name: str | None = None
    columns: list[str] = field(default_factory=list)
    expression: str | None = None
    referenced_table: str | None = None
    referenced_columns: list[str] = field(default_factory=list)
    on_delete: str | None = None
    on_update: str | None = None
    autoincrement: bool = False


@dataclass
class ParsedColumn:
    name: str
    constraints: list[ParsedConstraint] = field(default_factory=list)

    @property
    def autoincrement(self) -> bool:
        return any(c.autoincrement for c in self.constraints)

    def find(self, kind: str) -> ParsedConstraint | None:
        return next((c for c in self.constraints if c.kind == kind), None)


@dataclass
class ParsedTable:
    name: str
    columns: list[ParsedColumn] = field(default_factory=list)
    constraints: list[ParsedConstraint] = field(default_factory=list)

    def column(self, name: str) -> ParsedColumn | None:
        key = name.lower()
        return next((c for c in self.columns if c.name.lower() == key), None)

    def all_constraints(self, kind: str) -> list[ParsedConstraint]:
        """Table-level and column-level constraints of one kind."""
        found = [c for c in self.constraints if c.kind == kind]
        for column in self.columns:
            found.extend(c for c in column.constraints if c.kind == kind)
        return found

    def find_by_columns(self, kind: str, columns: list[str]) -> ParsedConstraint | None:
        key = [c.lower() for c in columns]
        return next((c for c in self.all_constraints(kind)
                     if [n.lower() for n in c.columns] == key), None)


def _sql(node: exp.Expression) -> str:
    if isinstance(node, exp.Paren):
        node = node.this
    return node.sql(dialect='sqlite')


def _column_name(node: exp.Expression) -> str:
    if isinstance(node, exp.Ordered):
        node = node.this
    return node.name


def _reference(constraint: ParsedConstraint, reference: exp.Reference | None) -> None:
    if reference is None:
        return
    target = reference.this
    if isinstance(target, exp.Schema):
        constraint.referenced_columns = [_column_name(e) for e in target.expressions]
        target = target.this
    constraint.referenced_table = target.name
    for option in reference.args.get('options') or []:
        match = _ACTION_RE.match(str(option))
        if match is None:
            continue
        action = ' '.join(match.group(2).upper().split())
        if match.group(1).upper() == 'DELETE':
            constraint.on_delete = action
        else:
            constraint.on_update = action


def _table_constraint(node: exp.Expression, name: str | None) -> ParsedConstraint | None:
    if isinstance(node, exp.PrimaryKey):
        return ParsedConstraint('primary key', name, [_column_name(e) for e in node.expressions])
    if isinstance(node, exp.UniqueColumnConstraint):
        columns = node.this.expressions if isinstance(node.this, exp.Schema) else []
        return ParsedConstraint('unique', name, [_column_name(e) for e in columns])
    if isinstance(node, exp.CheckColumnConstraint):
        return ParsedConstraint('check', name, expression=_sql(node.this))
    if isinstance(node, exp.ForeignKey):
        constraint = ParsedConstraint('foreign key', name, [_column_name(e) for e in node.expressions])
        _reference(constraint, node.args.get('reference'))
        for kind in ('delete', 'update'):
            if node.args.get(kind):
                setattr(constraint, f'on_{kind}', str(node.args[kind]).upper())
        return constraint
    return None


def _column_constraints(column: str, nodes: list[exp.ColumnConstraint]) -> list[ParsedConstraint]:
    found: list[ParsedConstraint] = []
    for node in nodes:
        name = node.name or None
        kind = node.args.get('kind')
        if isinstance(kind, exp.PrimaryKeyColumnConstraint):
            found.append(ParsedConstraint('primary key', name, [column]))
        elif isinstance(kind, exp.AutoIncrementColumnConstraint | exp.GeneratedAsIdentityColumnConstraint):
            pk = next((c for c in reversed(found) if c.kind == 'primary key'), None)
            if pk is None:
                pk = ParsedConstraint('primary key', None, [column])
                found.append(pk)
            pk.autoincrement = True
        elif isinstance(kind, exp.UniqueColumnConstraint):
            found.append(ParsedConstraint('unique', name, [column]))
        elif isinstance(kind, exp.CheckColumnConstraint):
            found.append(ParsedConstraint('check', name, [column], _sql(kind.this)))
        elif isinstance(kind, exp.DefaultColumnConstraint):
            found.append(ParsedConstraint('default', name, [column], _sql(kind.this)))
        elif isinstance(kind, exp.Reference):
            constraint = ParsedConstraint('foreign key', name, [column])
            _reference(constraint, kind)
            found.append(constraint)
    return found


def parse_create_table(sql: str) -> ParsedTable:
    """Parse the CREATE TABLE statement of one table.

    Raises sqlglot.errors.ParseError for malformed text and ValueError for
    statements that are not a CREATE TABLE with a column list.

    >>> t = parse_create_table('CREATE TABLE "t" ("id" integer CONSTRAINT "pk" PRIMARY KEY AUTOINCREMENT)')
    >>> t.columns[0].autoincrement
    True
    """
    create = sqlglot.parse_one(sql, read='sqlite')
    if not isinstance(create, exp.Create) or not isinstance(create.this, exp.Schema):
        raise ValueError(f'Not a CREATE TABLE statement: {sql[:60]}')
    schema = create.this
    table = ParsedTable(name=schema.this.name)

    for node in schema.expressions:
        if isinstance(node, exp.ColumnDef):
            table.columns.append(ParsedColumn(
                node.name, _column_constraints(node.name, node.args.get('constraints') or [])))
        elif isinstance(node, exp.Identifier | exp.Column):
            # a column with neither type nor constraints
            table.columns.append(ParsedColumn(node.name))
        elif isinstance(node, exp.Constraint):
            for inner in node.expressions:
                constraint = _table_constraint(inner, node.name or None)
                if constraint is not None:
                    table.constraints.append(constraint)
        else:
            constraint = _table_constraint(node, None)
            if constraint is not None:
                table.constraints.append(constraint)
    return table
