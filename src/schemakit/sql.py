"""
SQL text helpers shared by the dialect strategies.

- Identifier quoting per dialect
- Placeholder standardization (%s to ?)
- String literal escaping
- Wildcard patterns to LIKE patterns
- Deterministic constraint and index names
"""
import hashlib
import re
from collections.abc import Iterable

MAX_IDENTIFIER_LENGTH = 63
LIKE_ESCAPE = '!'

_QUOTES = {
    'postgresql': ('"', '"'),
    'sqlite': ('"', '"'),
    'mssql': ('[', ']'),
    'mysql': ('`', '`'),
    'mariadb': ('`', '`'),
    }

_RAW_IDENTIFIER_RE = re.compile(r'[^A-Za-z0-9_]')


def quote_identifier(identifier: str, dialect: str = 'postgresql') -> str:
    """Safely quote database identifiers.

    Parameters
        identifier: Table or column name
        dialect: Database dialect

    Returns
        Quoted identifier

    Raises
        ValueError: If dialect is unsupported
    """
    if dialect not in _QUOTES:
        raise ValueError(f'Unknown dialect: {dialect}')
    opening, closing = _QUOTES[dialect]
    return opening + identifier.replace(closing, closing * 2) + closing


def unquote_identifier(identifier: str) -> str:
    """Strip one level of identifier quoting of any supported style.
    """
    text = identifier.strip()
    for opening, closing in {('"', '"'), ('[', ']'), ('`', '`')}:
        if len(text) >= 2 and text[0] == opening and text[-1] == closing:
            return text[1:-1].replace(closing * 2, closing)
    return text


def standardize_placeholders(sql: str, paramstyle: str = 'format') -> str:
    """Convert %s placeholders to ? for qmark drivers.

    Statements with parameters never carry a literal ``%s``, so a plain
    replacement is sufficient.
    """
    if paramstyle == 'qmark' and '%s' in sql:
        return sql.replace('%s', '?')
    return sql


def escape_string_literal(value: str) -> str:
    """Quote a string as a SQL literal."""
    return "'" + value.replace("'", "''") + "'"


def to_like_pattern(pattern: str | None, specials: str = '%_') -> str | None:
    """Translate a ``*`` wildcard pattern into a LIKE pattern.

    Characters LIKE treats as wildcards (`specials`) match literally; the
    pattern must be used with ``ESCAPE '!'``.

    Returns None when there is nothing to filter on.
    """
    if not pattern or pattern == '*':
        return None
    escaped = pattern.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
    for char in specials:
        escaped = escaped.replace(char, LIKE_ESCAPE + char)
    return escaped.replace('*', '%')


def strip_wrapping_parens(expression: str | None) -> str | None:
    """Remove balanced parentheses wrapping a whole expression.

    SQL Server reports ``((0))`` for a default of ``0``, SQLite and
    PostgreSQL report check expressions wrapped once or twice.
    """
    if expression is None:
        return None
    text = expression.strip()
    while text.startswith('(') and text.endswith(')') and _balanced_inner(text):
        text = text[1:-1].strip()
    return text


def _balanced_inner(text: str) -> bool:
    depth = 0
    in_string = False
    for i, ch in enumerate(text):
        if ch == "'":
            in_string = not in_string
        elif in_string:
            continue
        elif ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
            if depth == 0 and i != len(text) - 1:
                return False
    return depth == 0


def to_raw_identifier(*segments: str | Iterable[str]) -> str:
    """Join name segments into an identifier made of letters, digits and _.
    """
    parts: list[str] = []
    for segment in segments:
        if isinstance(segment, str):
            parts.append(segment)
        else:
            parts.extend(segment)
    cleaned = [_RAW_IDENTIFIER_RE.sub('', part) for part in parts]
    return '_'.join(p for p in cleaned if p).strip('_')


def make_constraint_name(prefix: str, table: str, *segments: str | Iterable[str],
                         max_length: int = MAX_IDENTIFIER_LENGTH) -> str:
    """Build a deterministic constraint or index name.

    The pattern is ``{table}_{prefix}_{segments}``; names longer than
    `max_length` keep a prefix and end in a digest of the full name.

    >>> make_constraint_name('pk', 'orders', ['id'])
    'orders_pk_id'
    >>> make_constraint_name('fk', 'orders', ['customer_id'], 'customers', ['id'])
    'orders_fk_customer_id_customers_id'
    """
    name = to_raw_identifier(table, prefix, *segments)
    if len(name) <= max_length:
        return name
    digest = hashlib.sha1(name.encode()).hexdigest()[:8]
    return f'{name[:max_length - 9].rstrip("_")}_{digest}'


def expression_digest(expression: str) -> str:
    """Short stable digest of an SQL expression, ignoring whitespace and case."""
    normalized = re.sub(r'\s+', ' ', expression.strip().lower())
    return hashlib.sha1(normalized.encode()).hexdigest()[:8]
