"""
Type descriptors shared by the schema model and the type converter registry.

- TypeDescriptor: a host-side type (name plus length/precision/scale facets)
- SqlTypeDescriptor: a dialect type as written in DDL or reported by a catalog

Both are immutable values so they can be compared and used as dict keys.
"""
import dataclasses
import datetime
import decimal
import enum
import re
import typing
import uuid
from dataclasses import dataclass
from typing import Any

MAX_LENGTH = -1

DEFAULT_STRING_LENGTH = 255
DEFAULT_BINARY_LENGTH = 255
DEFAULT_DECIMAL_PRECISION = 16
DEFAULT_DECIMAL_SCALE = 4
DEFAULT_ENUM_LENGTH = 128
GUID_STRING_LENGTH = 36

HOST_TYPES = (
    'bool',
    'int16',
    'int',
    'int64',
    'float32',
    'float',
    'decimal',
    'str',
    'bytes',
    'date',
    'datetime',
    'datetimetz',
    'time',
    'timedelta',
    'uuid',
    'json',
    'object',
    )

INTEGER_TYPES = frozenset({'int16', 'int', 'int64'})

# datetime.datetime must be checked before datetime.date (it is a subclass)
_PYTHON_TYPES: list[tuple[type, str]] = [
    (bool, 'bool'),
    (int, 'int'),
    (float, 'float'),
    (decimal.Decimal, 'decimal'),
    (str, 'str'),
    (bytes, 'bytes'),
    (bytearray, 'bytes'),
    (memoryview, 'bytes'),
    (datetime.datetime, 'datetime'),
    (datetime.date, 'date'),
    (datetime.time, 'time'),
    (datetime.timedelta, 'timedelta'),
    (uuid.UUID, 'uuid'),
    (dict, 'json'),
    ]


@dataclass(frozen=True, slots=True)
class TypeDescriptor:
    """Host-side type description.

    `length` of -1 (MAX_LENGTH) means the dialect's largest variant.
    """
    name: str
    is_array: bool = False
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    is_auto_increment: bool = False
    is_unicode: bool | None = None
    is_fixed_length: bool | None = None

    def __str__(self) -> str:
        facets = []
        if self.length is not None:
            facets.append('max' if self.length == MAX_LENGTH else str(self.length))
        if self.precision is not None:
            facets.append(str(self.precision))
        if self.scale is not None:
            facets.append(str(self.scale))
        text = self.name + (f"({','.join(facets)})" if facets else '')
        return text + ('[]' if self.is_array else '')

    @property
    def element(self) -> 'TypeDescriptor':
        """Return the element type of an array descriptor."""
        return dataclasses.replace(self, is_array=False)

    def with_facets(self, **changes: Any) -> 'TypeDescriptor':
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def of(cls, python_type: Any, **facets: Any) -> 'TypeDescriptor':
        """Build a descriptor from a Python type.

        Args:
            python_type: A Python class (``int``, ``str``, ``uuid.UUID`` ...),
                a parametrized ``list[T]``, an ``Enum`` subclass or one of the
                host type names.
            facets: length, precision, scale and flag overrides

        Returns
            TypeDescriptor

        Raises
            TypeError: If the type has no host equivalent
        """
        if isinstance(python_type, str):
            if python_type not in HOST_TYPES:
                raise TypeError(f'Unknown host type name: {python_type}')
            return cls(python_type, **facets)

        origin = typing.get_origin(python_type)
        if origin in {list, tuple, set, frozenset}:
            args = typing.get_args(python_type)
            element = cls.of(args[0]) if args else cls('object')
            return dataclasses.replace(element, is_array=True, **facets)
        if python_type in {list, tuple, set, frozenset}:
            return cls('object', is_array=True, **facets)

        if isinstance(python_type, type) and issubclass(python_type, enum.Enum):
            facets.setdefault('length', DEFAULT_ENUM_LENGTH)
            return cls('str', **facets)

        for candidate, name in _PYTHON_TYPES:
            if python_type is candidate:
                return cls(name, **facets)
        for candidate, name in _PYTHON_TYPES:
            if isinstance(python_type, type) and issubclass(python_type, candidate):
                return cls(name, **facets)

        if python_type is object or python_type is Any:
            return cls('object', **facets)
        raise TypeError(f'No host type for {python_type!r}')


_FACETS_RE = re.compile(r'\(([^)]*)\)')
_SPACES_RE = re.compile(r'\s+')


@dataclass(frozen=True, slots=True)
class SqlTypeDescriptor:
    """Dialect type as written in DDL, e.g. ``varchar(255)``.
    """
    sql_type_name: str
    base_type_name: str
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    is_array: bool = False

    def __str__(self) -> str:
        return self.sql_type_name

    @classmethod
    def parse(cls, raw: str) -> 'SqlTypeDescriptor':
        """Parse a raw type string reported by a catalog.

        ``numeric(10, 2)`` gives precision/scale, ``varchar(255)`` and
        ``nvarchar(max)`` give a length, a trailing ``[]`` marks an array.
        Facets are not interpreted for integer display widths other than
        ``tinyint(1)``.
        """
        text = _SPACES_RE.sub(' ', raw.strip())
        is_array = text.endswith('[]')
        if is_array:
            text = text[:-2].rstrip()

        base = _SPACES_RE.sub(' ', _FACETS_RE.sub('', text)).strip().lower()
        length = precision = scale = None
        match = _FACETS_RE.search(text)
        if match:
            parts = [p.strip().lower() for p in match.group(1).split(',') if p.strip()]
            if base in _PRECISION_TYPES:
                if parts:
                    precision = int(parts[0])
                if len(parts) > 1:
                    scale = int(parts[1])
            elif parts and parts[0] == 'max':
                length = MAX_LENGTH
            elif parts and parts[0].isdigit():
                length = int(parts[0])
        return cls(text + ('[]' if is_array else ''), base, length, precision, scale, is_array)


_PRECISION_TYPES = frozenset({
    'decimal', 'numeric', 'dec', 'number', 'fixed', 'money',
    'decimal unsigned', 'numeric unsigned',
    })


def render_sql_type(base: str, length: int | None = None, precision: int | None = None,
                    scale: int | None = None, max_token: str | None = None,
                    is_array: bool = False) -> SqlTypeDescriptor:
    """Build a SqlTypeDescriptor and its DDL spelling from a base name and facets.

    Args:
        base: Base type name, e.g. ``varchar``
        length: Character/byte length; MAX_LENGTH renders ``max_token`` or nothing
        precision: Numeric precision
        scale: Numeric scale
        max_token: Spelling of the maximum length (``max`` on SQL Server)
        is_array: Append ``[]``

    Returns
        SqlTypeDescriptor
    """
    text = base
    if precision is not None:
        text += f'({precision},{scale or 0})' if scale is not None else f'({precision})'
    elif length is not None:
        if length == MAX_LENGTH:
            if max_token:
                text += f'({max_token})'
        else:
            text += f'({length})'
    if is_array:
        text += '[]'
    return SqlTypeDescriptor(text, base.lower(), length, precision, scale, is_array)
