"""Entities and the names that identify them."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from .cbor import TaggedURI, decode, encode, is_absolute_uri, register_tag
from .extensions import ExtensionPoint, Extensions, UnexpectedPointError
from .role import Roles

STRING_TYPE = "string"


def _compact(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


class StringEntityName(str):
    """A text entity name, the only kind the CoRIM specification defines."""

    type_name = STRING_TYPE

    def valid(self) -> None:
        if not self:
            raise ValueError("empty entity-name")


@dataclass
class EntityName:
    """The name of an entity; ``value`` has ``type_name`` and ``valid()``."""

    value: Any = None

    def __str__(self) -> str:
        return str(self.value)

    @property
    def type_name(self) -> str:
        return self.value.type_name

    def valid(self) -> None:
        if self.value is None:
            raise ValueError("empty entity name")
        self.value.valid()

    def to_cbor_value(self) -> Any:
        self.valid()
        if self.value.type_name == STRING_TYPE:
            return str(self.value)
        return self.value

    @classmethod
    def from_cbor_value(cls, value: Any) -> "EntityName":
        if isinstance(value, str):
            return cls(StringEntityName(value))
        if hasattr(value, "type_name") and callable(getattr(value, "valid", None)):
            return cls(value)
        raise ValueError(f"unexpected entity name value: {type(value).__name__}")

    def to_cbor(self) -> bytes:
        return encode(self.to_cbor_value())

    @classmethod
    def from_cbor(cls, data: bytes) -> "EntityName":
        if not data:
            raise ValueError("empty")
        return cls.from_cbor_value(decode(data))

    def to_json_value(self) -> Any:
        self.valid()
        if self.value.type_name == STRING_TYPE:
            return str(self.value)
        to_json = getattr(self.value, "to_json_value", None)
        inner = to_json() if callable(to_json) else self.value
        return {"type": self.value.type_name, "value": inner}

    @classmethod
    def from_json_value(cls, value: Any) -> "EntityName":
        if isinstance(value, str):
            return new_string_entity_name(value)
        if (
            not isinstance(value, dict)
            or not isinstance(value.get("type"), str)
            or "value" not in value
        ):
            raise ValueError(
                "entity name decoding failure: "
                "expecting a string or a type/value object"
            )
        type_name = value["type"]
        decoded = new_entity_name(None, type_name)
        value_cls = type(decoded.value)
        parser = getattr(value_cls, "from_json_value", None)
        try:
            inner = parser(value["value"]) if callable(parser) else value_cls(value["value"])
        except (TypeError, ValueError) as exc:
            raise ValueError(f"cannot unmarshal entity name: {exc}") from exc
        try:
            inner.valid()
        except ValueError as exc:
            raise ValueError(f"invalid {type_name}: {exc}") from exc
        return cls(inner)

    def to_json(self) -> str:
        return _compact(self.to_json_value())

    @classmethod
    def from_json(cls, data: str | bytes) -> "EntityName":
        return cls.from_json_value(json.loads(data))


def new_string_entity_name(value: Any) -> EntityName:
    """Build a text EntityName from a str, UTF-8 bytes, or None (empty)."""
    if value is None:
        return EntityName(StringEntityName(""))
    if isinstance(value, str):
        return EntityName(StringEntityName(value))
    if isinstance(value, (bytes, bytearray)):
        try:
            text = bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            raise ValueError("bytes do not form a valid UTF-8 string") from None
        return EntityName(StringEntityName(text))
    raise ValueError(
        f"unexpected type for string entity name: {type(value).__name__}"
    )


EntityNameFactory = Callable[[Any], EntityName]

_FACTORIES: dict[str, EntityNameFactory] = {STRING_TYPE: new_string_entity_name}


def new_entity_name(value: Any, type_name: str) -> EntityName:
    """Create an EntityName of the named type from ``value``."""
    factory = _FACTORIES.get(type_name)
    if factory is None:
        raise ValueError(f"unexpected entity name type: {type_name}")
    return factory(value)


def register_entity_name_type(tag: int, factory: EntityNameFactory) -> None:
    """Register a new entity name type, produced by ``factory``, under ``tag``.

    The factory must accept None and return the zero value of its type.
    """
    zero = factory(None)
    type_name = zero.value.type_name
    if type_name in _FACTORIES:
        raise ValueError(f'entity name type with name "{type_name}" already exists')
    register_tag(tag, type(zero.value))
    _FACTORIES[type_name] = factory


@dataclass
class Entity:
    """An entity-map: a name, an optional registration id and roles."""

    name: Optional[EntityName] = None
    reg_id: Optional[TaggedURI] = None
    roles: Roles = field(default_factory=Roles)
    extensions: Extensions = field(default_factory=Extensions)

    def register_extensions(self, exts: dict) -> None:
        for point, value in exts.items():
            if point == ExtensionPoint.ENTITY:
                self.extensions.register(value)
            else:
                raise UnexpectedPointError(point)

    def set_name(self, name: Any) -> "Entity":
        if name == "":
            raise ValueError("empty entity-name")
        self.name = new_string_entity_name(name)
        return self

    def set_reg_id(self, uri: str) -> "Entity":
        if uri == "":
            raise ValueError("empty reg-id")
        self.reg_id = is_absolute_uri(uri)
        return self

    def set_roles(self, *args: int) -> "Entity":
        self.roles.add(*args)
        return self

    def valid(self) -> None:
        if self.name is None:
            raise ValueError("invalid entity: empty entity-name")
        try:
            self.name.valid()
        except ValueError as exc:
            raise ValueError(f"invalid entity: {exc}") from exc
        if self.reg_id is not None and self.reg_id == "":
            raise ValueError("invalid entity: empty reg-id")
        try:
            self.roles.valid()
        except ValueError as exc:
            raise ValueError(f"invalid entity: {exc}") from exc
        self.extensions.valid_entity(self)

    def to_cbor_value(self) -> dict:
        if self.name is None:
            raise ValueError("empty entity name")
        mapping: dict = {0: self.name.to_cbor_value()}
        if self.reg_id is not None:
            mapping[1] = TaggedURI(self.reg_id)
        mapping[2] = [int(r) for r in self.roles]
        return self.extensions.encode_into(mapping, json_style=False)

    def from_cbor_value(self, value: Any) -> "Entity":
        if not isinstance(value, dict):
            raise ValueError("expecting a map for entity")
        if 0 not in value:
            raise ValueError('missing mandatory field "Name" (0)')
        if 2 not in value:
            raise ValueError('missing mandatory field "Roles" (2)')
        name = EntityName.from_cbor_value(value[0])
        reg_id = value.get(1)
        if reg_id is not None and not isinstance(reg_id, TaggedURI):
            raise ValueError("expecting a tagged URI for reg-id")
        roles = value[2]
        if not isinstance(roles, list) or not all(isinstance(r, int) for r in roles):
            raise ValueError("expecting an array of integers for roles")
        self.name = name
        self.reg_id = reg_id
        self.roles = Roles(roles)
        self.extensions.decode_from(value, json_style=False)
        return self

    def to_cbor(self) -> bytes:
        return encode(self.to_cbor_value())

    def from_cbor(self, data: bytes) -> "Entity":
        return self.from_cbor_value(decode(data))

    def to_json_value(self) -> dict:
        if self.name is None:
            raise ValueError("empty entity name")
        mapping: dict = {"name": self.name.to_json_value()}
        if self.reg_id is not None:
            mapping["regid"] = str(self.reg_id)
        mapping["roles"] = self.roles.to_json_value()
        return self.extensions.encode_into(mapping, json_style=True)

    def from_json_value(self, value: Any) -> "Entity":
        if not isinstance(value, dict):
            raise ValueError("expecting an object for entity")
        for key in ("name", "roles"):
            if key not in value:
                raise ValueError(f'missing mandatory field "{key}"')
        name = EntityName.from_json_value(value["name"])
        reg_id = value.get("regid")
        if reg_id is not None and not isinstance(reg_id, str):
            raise ValueError("expecting a string for regid")
        self.name = name
        self.reg_id = TaggedURI(reg_id) if reg_id is not None else None
        self.roles = Roles.from_json_value(value["roles"])
        self.extensions.decode_from(value, json_style=True)
        return self

    def to_json(self) -> str:
        return _compact(self.to_json_value())

    def from_json(self, data: str | bytes) -> "Entity":
        return self.from_json_value(json.loads(data))


@dataclass
class Entities:
    """A collection of entities sharing a set of registered extensions."""

    values: list = field(default_factory=list)
    extension_map: dict = field(default_factory=dict)

    def __iter__(self) -> Iterator[Entity]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def __getitem__(self, index: int) -> Entity:
        return self.values[index]

    def _fresh_extensions(self) -> dict:
        return {p: copy.deepcopy(v) for p, v in self.extension_map.items()}

    def _new_entity(self) -> Entity:
        entity = Entity()
        if self.extension_map:
            entity.register_extensions(self._fresh_extensions())
        return entity

    def register_extensions(self, exts: dict) -> None:
        Entity().register_extensions(exts)
        self.extension_map = dict(exts)
        for entity in self.values:
            entity.register_extensions(self._fresh_extensions())

    def add(self, entity: Entity) -> "Entities":
        if self.extension_map and not entity.extensions.have_extensions():
            entity.register_extensions(self._fresh_extensions())
        self.values.append(entity)
        return self

    def valid(self) -> None:
        for index, entity in enumerate(self.values):
            try:
                entity.valid()
            except ValueError as exc:
                raise ValueError(f"error at index {index}: {exc}") from exc

    def is_empty(self) -> bool:
        return not self.values

    def to_cbor_value(self) -> list:
        return [e.to_cbor_value() for e in self.values]

    def from_cbor_value(self, value: Any) -> "Entities":
        if not isinstance(value, list):
            raise ValueError("expecting an array for entities")
        self.values = [self._new_entity().from_cbor_value(item) for item in value]
        return self

    def to_json_value(self) -> list:
        return [e.to_json_value() for e in self.values]

    def from_json_value(self, value: Any) -> "Entities":
        if not isinstance(value, list):
            raise ValueError("expecting an array for entities")
        self.values = [self._new_entity().from_json_value(item) for item in value]
        return self