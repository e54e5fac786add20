"""Extension points and extension value handling."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ExtensionPoint(str, Enum):
    """Places in a CoRIM where extensions may be attached."""

    UNSIGNED_CORIM = "UnsignedCorim"
    ENTITY = "CorimEntity"
    SIGNER = "Signer"

    def __str__(self) -> str:
        return self.value


class UnexpectedPointError(ValueError):
    """Raised when extensions are offered for a point that does not accept them."""

    def __init__(self, point: Any) -> None:
        self.point = point
        name = point.value if isinstance(point, Enum) else str(point)
        super().__init__(f'unexpected extension point: "{name}"')


def _fields(value: Any) -> tuple:
    return dataclasses.fields(value) if dataclasses.is_dataclass(value) else ()


def _key(field: dataclasses.Field, json_style: bool) -> Any:
    return field.metadata.get("json" if json_style else "cbor", field.name)


@dataclass
class Extensions:
    """Holds a registered extension value.

    Extension values are dataclass instances; each field's metadata may give
    a ``cbor`` key, a ``json`` name and ``omitempty``.
    """

    value: Any = None

    def register(self, value: Any) -> None:
        self.value = value

    def have_extensions(self) -> bool:
        return self.value is not None

    def _field_name(self, name: str) -> str:
        if self.value is None:
            raise KeyError("no extensions registered")
        for field in _fields(self.value):
            if name.lower() == field.name.lower() or name == field.metadata.get("json"):
                return field.name
        raise KeyError(f"extension not found: {name}")

    def get(self, name: str) -> Any:
        return getattr(self.value, self._field_name(name))

    def set(self, name: str, value: Any) -> None:
        setattr(self.value, self._field_name(name), value)

    def encode_into(self, mapping: dict, json_style: bool) -> dict:
        """Add the extension fields to ``mapping`` and return it."""
        for field in _fields(self.value):
            value = getattr(self.value, field.name)
            empty = value is None or (not isinstance(value, bool) and value in ("", b"", 0, [], {}))
            if not (field.metadata.get("omitempty", False) and empty):
                mapping[_key(field, json_style)] = value
        return mapping

    def decode_from(self, mapping: dict, json_style: bool) -> set:
        """Fill extension fields from ``mapping``; return the keys consumed."""
        consumed = set()
        for field in _fields(self.value):
            key = _key(field, json_style)
            if key in mapping:
                setattr(self.value, field.name, mapping[key])
                consumed.add(key)
        return consumed

    def _constrain(self, method: str, target: Any) -> None:
        constrainer = getattr(self.value, method, None)
        if callable(constrainer):
            constrainer(target)

    def valid_entity(self, entity: Any) -> None:
        self._constrain("constrain_entity", entity)

    def valid_corim(self, corim: Any) -> None:
        self._constrain("constrain_corim", corim)

    def valid_signer(self, signer: Any) -> None:
        self._constrain("constrain_signer", signer)