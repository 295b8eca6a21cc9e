"""
Tests for host and SQL type descriptors.
"""
import datetime
import decimal
import enum
import uuid

import pytest
from schemakit.types import MAX_LENGTH, SqlTypeDescriptor, TypeDescriptor
from schemakit.types import render_sql_type


class Color(enum.Enum):
    RED = 'red'
    BLUE = 'blue'


class TestTypeDescriptorOf:
    """Building descriptors from Python types"""

    @pytest.mark.parametrize(('python_type', 'expected'), [
        (bool, 'bool'),
        (int, 'int'),
        (float, 'float'),
        (decimal.Decimal, 'decimal'),
        (str, 'str'),
        (bytes, 'bytes'),
        (datetime.datetime, 'datetime'),
        (datetime.date, 'date'),
        (datetime.time, 'time'),
        (datetime.timedelta, 'timedelta'),
        (uuid.UUID, 'uuid'),
        (dict, 'json'),
    ])
    def test_python_types(self, python_type, expected):
        assert TypeDescriptor.of(python_type).name == expected

    def test_bool_is_not_int(self):
        """bool subclasses int but must map to bool"""
        assert TypeDescriptor.of(bool) == TypeDescriptor('bool')

    def test_list_becomes_array(self):
        descriptor = TypeDescriptor.of(list[int])
        assert descriptor.is_array
        assert descriptor.name == 'int'
        assert descriptor.element == TypeDescriptor('int')

    def test_bare_list_is_object_array(self):
        assert TypeDescriptor.of(list) == TypeDescriptor('object', is_array=True)

    def test_enum_becomes_bounded_string(self):
        assert TypeDescriptor.of(Color) == TypeDescriptor('str', length=128)

    def test_host_type_name_with_facets(self):
        descriptor = TypeDescriptor.of('decimal', precision=10, scale=2)
        assert descriptor == TypeDescriptor('decimal', precision=10, scale=2)

    def test_unknown_host_name(self):
        with pytest.raises(TypeError, match='Unknown host type'):
            TypeDescriptor.of('money')

    def test_unmapped_python_type(self):
        with pytest.raises(TypeError):
            TypeDescriptor.of(complex)


def test_type_descriptor_str():
    assert str(TypeDescriptor('decimal', precision=10, scale=2)) == 'decimal(10,2)'
    assert str(TypeDescriptor('str', length=MAX_LENGTH, is_array=True)) == 'str(max)[]'
    assert str(TypeDescriptor('int')) == 'int'


def test_with_facets_returns_copy():
    original = TypeDescriptor('str', length=10)
    changed = original.with_facets(length=20)
    assert original.length == 10
    assert changed.length == 20


class TestSqlTypeDescriptorParse:
    """Parsing catalog type strings"""

    def test_precision_and_scale(self):
        st = SqlTypeDescriptor.parse('numeric(10, 2)')
        assert st.base_type_name == 'numeric'
        assert (st.precision, st.scale) == (10, 2)
        assert st.length is None

    def test_length(self):
        st = SqlTypeDescriptor.parse('character varying(50)')
        assert st.base_type_name == 'character varying'
        assert st.length == 50

    def test_max_length(self):
        st = SqlTypeDescriptor.parse('NVARCHAR(MAX)')
        assert st.base_type_name == 'nvarchar'
        assert st.length == MAX_LENGTH

    def test_array_suffix(self):
        st = SqlTypeDescriptor.parse('integer[]')
        assert st.is_array
        assert st.base_type_name == 'integer'
        assert str(st) == 'integer[]'

    def test_multi_word_without_facets(self):
        st = SqlTypeDescriptor.parse('timestamp  with time zone')
        assert st.base_type_name == 'timestamp with time zone'
        assert st.length is None

    def test_tinyint_display_width(self):
        assert SqlTypeDescriptor.parse('tinyint(1)').length == 1


@pytest.mark.parametrize(('kwargs', 'expected'), [
    ({'base': 'varchar', 'length': 50}, 'varchar(50)'),
    ({'base': 'nvarchar', 'length': MAX_LENGTH, 'max_token': 'max'}, 'nvarchar(max)'),
    ({'base': 'text', 'length': MAX_LENGTH}, 'text'),
    ({'base': 'numeric', 'precision': 10, 'scale': 2}, 'numeric(10,2)'),
    ({'base': 'numeric', 'precision': 10}, 'numeric(10)'),
    ({'base': 'integer', 'is_array': True}, 'integer[]'),
])
def test_render_sql_type(kwargs, expected):
    assert render_sql_type(**kwargs).sql_type_name == expected
