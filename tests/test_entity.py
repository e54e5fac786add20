from dataclasses import dataclass, field

import pytest

from corim.cbor import TaggedURI
from corim.entity import (
    Entities,
    Entity,
    EntityName,
    StringEntityName,
    new_entity_name,
    new_string_entity_name,
    register_entity_name_type,
)
from corim.extensions import ExtensionPoint, UnexpectedPointError
from corim.role import MANIFEST_CREATOR, Role, Roles


class _TestEntityName(int):
    type_name = "test"

    def __str__(self):
        return str(int(self))

    def valid(self):
        return None

    def to_cbor_value(self):
        return int(self)

    @classmethod
    def from_cbor_value(cls, value):
        if not isinstance(value, int):
            raise ValueError("must be uint64")
        return cls(value)


def _new_test_entity_name(value):
    if value is None:
        return EntityName(_TestEntityName(0))
    if not isinstance(value, int):
        raise ValueError("must be uint64")
    return EntityName(_TestEntityName(value))


class _OtherEntityName(_TestEntityName):
    type_name = "other"


def _new_other_entity_name(value):
    return EntityName(_OtherEntityName(0 if value is None else value))


class _BadTypeEntityName(_TestEntityName):
    type_name = "string"


def _new_bad_type_entity_name(_value):
    return EntityName(_BadTypeEntityName(7))


_registered = []


def _ensure_test_name_type():
    if not _registered:
        register_entity_name_type(99994, _new_test_entity_name)
        _registered.append(True)


@dataclass
class _TestExtensions:
    address: str = field(
        default="", metadata={"cbor": -1, "json": "address", "omitempty": True}
    )
    size: int = field(default=0, metadata={"cbor": -2, "json": "size", "omitempty": True})

    def constrain_entity(self, entity):
        if str(entity.name) != "Futurama":
            raise ValueError('EntityName must be "Futurama"')

    def constrain_corim(self, _corim):
        raise ValueError("invalid")

    def constrain_signer(self, _signer):
        raise ValueError("invalid")


def test_entity_valid_uninitialized():
    with pytest.raises(ValueError, match="^invalid entity: empty entity-name$"):
        Entity().valid()


def test_entity_valid_empty_name():
    entity = Entity(name=new_string_entity_name(""))
    with pytest.raises(ValueError, match="^invalid entity: empty entity-name$"):
        entity.valid()


def test_entity_valid_non_nil_empty_uri():
    entity = Entity(name=new_string_entity_name("ACME Ltd."), reg_id=TaggedURI(""))
    with pytest.raises(ValueError, match="^invalid entity: empty reg-id$"):
        entity.valid()


def test_entity_valid_missing_roles():
    entity = Entity(
        name=new_string_entity_name("ACME Ltd."),
        reg_id=TaggedURI("http://acme.example"),
    )
    with pytest.raises(ValueError, match="^invalid entity: empty roles$"):
        entity.valid()


def test_entity_valid_unknown_role():
    entity = Entity(
        name=new_string_entity_name("ACME Ltd."),
        reg_id=TaggedURI("http://acme.example"),
        roles=Roles([Role(666)]),
    )
    with pytest.raises(ValueError, match="^invalid entity: unknown role 666 at index 0$"):
        entity.valid()


def test_entities_valid_ok():
    entity = (
        Entity()
        .set_name("ACME Ltd.")
        .set_reg_id("http://acme.example")
        .set_roles(MANIFEST_CREATOR)
    )
    entities = Entities().add(entity)
    entities.valid()
    assert len(entities) == 1
    assert entities[0].reg_id == "http://acme.example"


def test_entities_valid_empty():
    entities = Entities().add(Entity())
    with pytest.raises(
        ValueError, match="^error at index 0: invalid entity: empty entity-name$"
    ):
        entities.valid()


def test_entities_is_empty():
    entities = Entities()
    assert entities.is_empty()
    entities.add(Entity())
    assert not entities.is_empty()


def test_register_entity_name_type_errors():
    with pytest.raises(ValueError, match="^tag 32 is already registered$"):
        register_entity_name_type(32, _new_other_entity_name)

    with pytest.raises(
        ValueError, match='^entity name type with name "string" already exists$'
    ):
        register_entity_name_type(99994, _new_bad_type_entity_name)

    _ensure_test_name_type()
    assert str(new_entity_name(3, "test")) == "3"


@pytest.mark.parametrize(
    "value, type_name, expected_bytes, expected_string",
    [
        ("test", "string", bytes([0x64, 0x74, 0x65, 0x73, 0x74]), "test"),
        (7, "test", bytes([0xDA, 0x00, 0x01, 0x86, 0x9A, 0x07]), "7"),
    ],
)
def test_entity_name_cbor(value, type_name, expected_bytes, expected_string):
    _ensure_test_name_type()
    name = new_entity_name(value, type_name)
    data = name.to_cbor()
    assert data == expected_bytes
    out = EntityName.from_cbor(data)
    assert str(out) == expected_string
    assert out.type_name == type_name


@pytest.mark.parametrize(
    "value, type_name, expected_json, expected_string",
    [
        ("test", "string", '"test"', "test"),
        (7, "test", '{"type":"test","value":7}', "7"),
    ],
)
def test_entity_name_json(value, type_name, expected_json, expected_string):
    _ensure_test_name_type()
    name = new_entity_name(value, type_name)
    data = name.to_json()
    assert data == expected_json
    out = EntityName.from_json(data)
    assert str(out) == expected_string


def test_entity_name_from_cbor_empty():
    with pytest.raises(ValueError, match="^empty$"):
        EntityName.from_cbor(b"")


def test_entity_name_from_json_unknown_type():
    with pytest.raises(ValueError, match="^unexpected entity name type: nope$"):
        EntityName.from_json('{"type":"nope","value":1}')


def test_entity_name_from_json_bad_shape():
    with pytest.raises(ValueError, match="entity name decoding failure"):
        EntityName.from_json("[1, 2]")


def test_new_string_entity_name():
    out = new_string_entity_name(None)
    with pytest.raises(ValueError, match="^empty entity-name$"):
        out.valid()

    out = new_string_entity_name(b"test")
    assert str(out) == "test"
    assert isinstance(out.value, StringEntityName)

    with pytest.raises(ValueError, match="^unexpected type for string entity name: int$"):
        new_string_entity_name(7)

    with pytest.raises(ValueError, match="^bytes do not form a valid UTF-8 string$"):
        new_string_entity_name(b"\xff\xfe")


def test_new_entity_name():
    out = new_entity_name("test", "string")
    assert str(out) == "test"

    with pytest.raises(ValueError, match="^unexpected entity name type: int$"):
        new_entity_name(7, "int")


def test_entity_setters_reject_bad_input():
    with pytest.raises(ValueError):
        Entity().set_name("")
    with pytest.raises(ValueError):
        Entity().set_reg_id("")
    with pytest.raises(ValueError, match="not an absolute URI"):
        Entity().set_reg_id("z/a")
    with pytest.raises(ValueError, match="unknown role 666"):
        Entity().set_roles(Role(666))


def test_entity_cbor_round_trip():
    entity = (
        Entity()
        .set_name("ACME Ltd.")
        .set_reg_id("https://acme.example")
        .set_roles(MANIFEST_CREATOR)
    )
    data = entity.to_cbor()
    assert data == bytes.fromhex(
        "a3006941434d45204c74642e01d820"
        "7468747470733a2f2f61636d652e6578616d706c65"
        "028101"
    )
    out = Entity().from_cbor(data)
    assert out == entity


def test_entity_json_round_trip():
    entity = (
        Entity()
        .set_name("ACME Ltd.")
        .set_reg_id("https://acme.example")
        .set_roles(MANIFEST_CREATOR)
    )
    import json

    data = entity.to_json()
    assert json.loads(data) == {
        "name": "ACME Ltd.",
        "regid": "https://acme.example",
        "roles": ["manifestCreator"],
    }
    assert Entity().from_json(data) == entity


def test_entity_from_json_missing_roles():
    with pytest.raises(ValueError, match='missing mandatory field "roles"'):
        Entity().from_json('{"name": "ACME"}')


def test_entity_extensions_valid():
    entity = Entity()
    entity.set_name("The Simpsons")
    entity.set_roles(MANIFEST_CREATOR)
    entity.valid()
    assert str(entity.name) == "The Simpsons"

    entity.register_extensions({ExtensionPoint.ENTITY: _TestExtensions()})
    with pytest.raises(ValueError, match='^EntityName must be "Futurama"$'):
        entity.valid()

    entity.set_name("Futurama")
    entity.valid()
    assert str(entity.name) == "Futurama"

    with pytest.raises(ValueError, match="^invalid$"):
        entity.extensions.valid_corim(None)
    with pytest.raises(ValueError, match="^invalid$"):
        entity.extensions.valid_signer(None)


def test_entity_extensions_cbor():
    data = bytes(
        [
            0xA4,
            0x00, 0x64, 0x61, 0x63, 0x6D, 0x65,
            0x02, 0x81, 0x01,
            0x20, 0x63, 0x66, 0x6F, 0x6F,
            0x21, 0x06,
        ]
    )
    entity = Entity()
    entity.register_extensions({ExtensionPoint.ENTITY: _TestExtensions()})
    entity.from_cbor(data)

    assert str(entity.name) == "acme"
    assert entity.extensions.get("address") == "foo"
    assert entity.extensions.get("size") == 6


def test_entity_register_extensions_bad_point():
    with pytest.raises(UnexpectedPointError, match='^unexpected extension point: "test"$'):
        Entity().register_extensions({"test": _TestExtensions()})


def test_entities_register_extensions_bad_point():
    with pytest.raises(UnexpectedPointError, match='^unexpected extension point: "test"$'):
        Entities().register_extensions({"test": _TestExtensions()})


def test_entities_add_registers_fresh_extensions():
    template = _TestExtensions()
    entities = Entities()
    entities.register_extensions({ExtensionPoint.ENTITY: template})

    entity = Entity().set_name("Futurama").set_roles(MANIFEST_CREATOR)
    entities.add(entity)

    assert entity.extensions.value == _TestExtensions()
    entity.extensions.set("address", "123 Fake Street")
    assert template.address == ""
    assert entities[0].extensions.get("address") == "123 Fake Street"


def test_entities_cbor_value_round_trip_with_extensions():
    entities = Entities()
    entities.register_extensions({ExtensionPoint.ENTITY: _TestExtensions()})
    entity = Entity().set_name("Futurama").set_roles(MANIFEST_CREATOR)
    entities.add(entity)
    entity.extensions.set("address", "foo")

    value = entities.to_cbor_value()
    assert value == [{0: "Futurama", 2: [1], -1: "foo"}]

    other = Entities()
    other.register_extensions({ExtensionPoint.ENTITY: _TestExtensions()})
    other.from_cbor_value(value)
    assert other[0].extensions.get("address") == "foo"
    assert str(other[0].name) == "Futurama"