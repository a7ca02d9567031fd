import json
import re

import pytest

from ovsdblib.atoms import UUID, atom_from_json, atom_to_json, new_named_uuid

NAMED_PATTERN = re.compile(
    r"^__[0-9a-f]{8}_[0-9a-f]{4}_4[0-9a-f]{3}_[89ab][0-9a-f]{3}_[0-9a-f]{12}$"
)


def test_unmarshal_uuid():
    data = json.loads('["uuid", "8cc2eb5c-8e66-4554-af1d-8fa5b9321f99"]')
    u = UUID.from_json(data)
    assert str(u) == "8cc2eb5c-8e66-4554-af1d-8fa5b9321f99"
    assert isinstance(u, UUID)


def test_unmarshal_named_uuid():
    u = UUID.from_json(["named-uuid", "__row"])
    assert u == "__row"


def test_unmarshal_uuid_with_wrong_type():
    with pytest.raises(ValueError):
        UUID.from_json(json.loads('["uud", "P"]'))


def test_unmarshal_wrong_data_struct():
    with pytest.raises(ValueError):
        UUID.from_json(json.loads('"uuid"'))


def test_marshal_uuid():
    u = UUID("8cc2eb5c-8e66-4554-af1d-8fa5b9321f99")
    assert json.dumps(u.to_json(), separators=(",", ":")) == (
        '["uuid","8cc2eb5c-8e66-4554-af1d-8fa5b9321f99"]'
    )


def test_marshal_named_uuid():
    assert UUID("__my-uuid-1-2-3").to_json() == ["named-uuid", "__my-uuid-1-2-3"]


def test_new_named_uuid_shape_and_round_trip():
    name = new_named_uuid()
    assert NAMED_PATTERN.match(name)
    assert UUID.from_json(UUID(name).to_json()) == name
    assert UUID(name).to_json()[0] == "named-uuid"


def test_new_named_uuid_is_random():
    names = {new_named_uuid() for _ in range(20)}
    assert len(names) == 20


@pytest.mark.parametrize(
    ("data", "atom", "expected"),
    [
        (89, "integer", 89),
        (89, int, 89),
        (3, "real", 3.0),
        ("erere", "string", "erere"),
        (True, "boolean", True),
        (["uuid", "erere"], "uuid", UUID("erere")),
    ],
)
def test_atom_from_json(data, atom, expected):
    value = atom_from_json(data, atom)
    assert value == expected
    assert type(value) is type(expected)


@pytest.mark.parametrize(
    ("data", "atom"),
    [
        (True, "integer"),
        (1.5, "integer"),
        (1, "boolean"),
        (1, "string"),
        ("erere", "uuid"),
        (True, "real"),
    ],
)
def test_atom_from_json_rejects_wrong_type(data, atom):
    with pytest.raises(ValueError):
        atom_from_json(data, atom)


def test_atom_from_json_unknown_type():
    with pytest.raises(ValueError):
        atom_from_json(1, "bogus")


def test_atom_to_json():
    assert atom_to_json(89) == 89
    assert atom_to_json("erere") == "erere"
    assert atom_to_json(UUID("erere")) == ["uuid", "erere"]


def test_atom_to_json_rejects_non_atoms():
    with pytest.raises(TypeError):
        atom_to_json(["erere"])