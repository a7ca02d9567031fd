import pytest

from ovsdblib.atoms import UUID
from ovsdblib.base_type import BaseType


@pytest.mark.parametrize("name", ["integer", "string", "uuid"])
def test_from_json_atomic(name):
    assert BaseType.from_json(name) == BaseType(type=name)


def test_from_json_constrained_int():
    bt = BaseType.from_json({"type": "int", "minInteger": -1, "maxInteger": 1987})
    assert bt == BaseType(type="int", min_integer=-1, max_integer=1987)


def test_from_json_enum():
    bt = BaseType.from_json({"type": "string", "enum": ["set", ["foo", "bar"]]})
    assert bt == BaseType(
        type="string", enum_raw=["set", ["foo", "bar"]], enum=("foo", "bar")
    )


def test_from_json_integer_enum_keeps_ints():
    bt = BaseType.from_json({"type": "integer", "enum": ["set", [1, 2, 3]]})
    assert bt.enum == (1, 2, 3)
    assert bt.validate_value(2) == 2


def test_from_json_reference():
    bt = BaseType.from_json({"type": "uuid", "refTable": "Port", "refType": "weak"})
    assert (bt.ref_table, bt.ref_type) == ("Port", "weak")


def test_from_json_real_bounds_become_floats():
    bt = BaseType.from_json({"type": "real", "minReal": 0, "maxReal": 2})
    assert (bt.min_real, bt.max_real) == (0.0, 2.0)


@pytest.mark.parametrize(
    "enum",
    [["map", ["foo"]], ["set", []], ["set", "foo"], "foo", []],
)
def test_from_json_invalid_enum(enum):
    with pytest.raises(ValueError, match="invalid enum"):
        BaseType.from_json({"type": "string", "enum": enum})


@pytest.mark.parametrize(
    "data",
    [42, None, {"type": "integer", "minInteger": "x"}, {"type": 5}],
)
def test_from_json_malformed(data):
    with pytest.raises(ValueError, match="BaseType"):
        BaseType.from_json(data)


@pytest.mark.parametrize(
    "name, value",
    [("integer", 89), ("string", "erere"), ("uuid", UUID("erere"))],
)
def test_validate_atomic(name, value):
    assert BaseType.from_json(name).validate_value(value, True) == value


def test_validate_constrained_int():
    bt = BaseType.from_json({"type": "integer", "minInteger": -1, "maxInteger": 1987})
    assert bt.validate_value(89, True) == 89
    with pytest.raises(ValueError, match="< min"):
        bt.validate_value(-2, True)
    with pytest.raises(ValueError, match="> max"):
        bt.validate_value(1988, True)
    assert bt.validate_value(-2, False) == -2


def test_validate_enum():
    bt = BaseType.from_json({"type": "string", "enum": ["set", ["foo", "bar"]]})
    assert bt.validate_value("foo", True) == "foo"
    with pytest.raises(ValueError, match="wrong Enum value"):
        bt.validate_value("baz", True)


def test_validate_enum2():
    bt = BaseType.from_json(
        {"type": "string", "enum": ["set", ["active-backup", "balance-slb", "balance-tcp"]]}
    )
    assert bt.validate_value("active-backup", True) == "active-backup"


def test_validate_uuid_with_ref_table():
    bt = BaseType.from_json({"type": "uuid", "refTable": "foo"})
    assert bt.validate_value(UUID("erere"), True) == UUID("erere")


def test_validate_real_bounds():
    bt = BaseType.from_json({"type": "real", "minReal": 0.5, "maxReal": 1.5})
    assert bt.validate_value(1.0) == 1.0
    with pytest.raises(ValueError, match="> max"):
        bt.validate_value(2.0)
    with pytest.raises(TypeError, match="got Int"):
        bt.validate_value(1)


def test_validate_string_length_counts_bytes():
    bt = BaseType.from_json({"type": "string", "minLength": 2, "maxLength": 3})
    assert bt.validate_value("ab") == "ab"
    assert bt.validate_value("é") == "é"
    with pytest.raises(ValueError, match="< min"):
        bt.validate_value("a")
    with pytest.raises(ValueError, match="> max"):
        bt.validate_value("abcd")


@pytest.mark.parametrize(
    "name, value, label",
    [
        ("integer", "1", "String"),
        ("integer", True, "Bool"),
        ("uuid", "plain", "String"),
        ("string", UUID("x"), "UUID"),
        ("boolean", 1.5, "Real"),
    ],
)
def test_validate_type_mismatch(name, value, label):
    with pytest.raises(TypeError, match=f"expect {name} got {label}"):
        BaseType.from_json(name).validate_value(value)


def test_validate_unsupported_value():
    with pytest.raises(TypeError, match="unsupported type"):
        BaseType.from_json("integer").validate_value([1])