"""The unsigned-corim-map and its building blocks."""

from __future__ import annotations

import base64
import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

import cbor2

from .cbor import TaggedURI, decode, encode
from .entity import Entities, Entity
from .extensions import ExtensionPoint, Extensions, UnexpectedPointError
from .validity import Validity

UNSIGNED_CORIM_TAG = bytes([0xD9, 0x01, 0xF5])
COSWID_TAG = bytes([0xD9, 0x01, 0xF9])
COMID_TAG = bytes([0xD9, 0x01, 0xFA])

_OID_RE = re.compile(r"^[0-2](\.(0|[1-9]\d*))+$")


@dataclass(frozen=True)
class TagID:
    """A corim-id: either a non-empty text string or a UUID."""

    value: Union[str, uuid.UUID]

    @classmethod
    def from_value(cls, value: Any) -> "TagID":
        if isinstance(value, TagID):
            return value
        if isinstance(value, uuid.UUID):
            return cls(value)
        if isinstance(value, str):
            if not value:
                raise ValueError("empty tag-id")
            return cls(value)
        if isinstance(value, (bytes, bytearray)):
            if len(value) != 16:
                raise ValueError(f"a UUID tag-id must be 16 bytes, got {len(value)}")
            return cls(uuid.UUID(bytes=bytes(value)))
        raise ValueError(f"unexpected type for tag-id: {type(value).__name__}")

    def __str__(self) -> str:
        return str(self.value)

    def to_cbor_value(self) -> Union[str, bytes]:
        if isinstance(self.value, uuid.UUID):
            return self.value.bytes
        return self.value


def _encode_oid(text: str) -> bytes:
    arcs = [int(a) for a in text.split(".")]
    values = [arcs[0] * 40 + arcs[1], *arcs[2:]]
    out = bytearray()
    for v in values:
        chunk = [v & 0x7F]
        v >>= 7
        while v:
            chunk.append(0x80 | (v & 0x7F))
            v >>= 7
        out.extend(reversed(chunk))
    return bytes(out)


def _decode_oid(data: bytes) -> str:
    if not data or data[-1] & 0x80:
        raise ValueError("malformed OID")
    values, current = [], 0
    for b in data:
        current = (current << 7) | (b & 0x7F)
        if not b & 0x80:
            values.append(current)
            current = 0
    first = values[0]
    head = [min(first // 40, 2), first - 40 * min(first // 40, 2)]
    return ".".join(str(a) for a in head + values[1:])


@dataclass(frozen=True)
class Profile:
    """An EAT profile identifier: an OID or an absolute URI."""

    value: str = ""
    oid: bool = False

    @classmethod
    def parse(cls, text: str) -> "Profile":
        if _OID_RE.match(text):
            return cls(text, oid=True)
        scheme = text.split(":", 1)[0] if ":" in text else ""
        if scheme and re.match(r"^[A-Za-z][A-Za-z0-9+.-]*$", scheme):
            return cls(text, oid=False)
        raise ValueError(f"{text!r} is neither an OID nor an absolute URI")

    def is_oid(self) -> bool:
        return self.oid and bool(self.value)

    def is_uri(self) -> bool:
        return not self.oid and bool(self.value)

    def get(self) -> str:
        if not self.value:
            raise ValueError("no valid EAT profile")
        return self.value

    def __str__(self) -> str:
        return self.value

    def to_cbor_value(self) -> Union[str, bytes]:
        return _encode_oid(self.get()) if self.oid else self.get()

    @classmethod
    def from_cbor_value(cls, value: Any) -> "Profile":
        if isinstance(value, cbor2.CBORTag) and value.tag == 111:
            value = value.value
        if isinstance(value, (bytes, bytearray)):
            return cls(_decode_oid(bytes(value)), oid=True)
        if isinstance(value, str):
            return cls(value, oid=False)
        raise ValueError("expecting an OID or URI for profile")


_HASH_LENGTHS = {
    1: ("sha-256", 32), 2: ("sha-256-128", 16), 3: ("sha-256-120", 15),
    4: ("sha-256-96", 12), 5: ("sha-256-64", 8), 6: ("sha-256-32", 4),
    7: ("sha-384", 48), 8: ("sha-512", 64), 9: ("sha3-224", 28),
    10: ("sha3-256", 32), 11: ("sha3-384", 48), 12: ("sha3-512", 64),
}


@dataclass
class HashEntry:
    """A hash algorithm identifier together with a digest."""

    alg_id: int = 0
    value: bytes = b""

    def valid(self) -> None:
        known = _HASH_LENGTHS.get(self.alg_id)
        if known is None:
            raise ValueError(f"unknown hash algorithm {self.alg_id}")
        name, length = known
        if len(self.value) != length:
            raise ValueError(
                f"length mismatch for hash algorithm {name}: "
                f"want {length} bytes, got {len(self.value)}"
            )

    def to_cbor_value(self) -> list:
        return [self.alg_id, bytes(self.value)]

    @classmethod
    def from_cbor_value(cls, value: Any) -> "HashEntry":
        if (
            not isinstance(value, list) or len(value) != 2
            or not isinstance(value[0], int) or not isinstance(value[1], bytes)
        ):
            raise ValueError("expecting [alg-id, hash-value] for hash entry")
        return cls(value[0], value[1])

    def to_json_value(self) -> dict:
        return {
            "hash-alg-id": self.alg_id,
            "hash-value": base64.b64encode(self.value).decode("ascii"),
        }

    @classmethod
    def from_json_value(cls, value: Any) -> "HashEntry":
        if not isinstance(value, dict):
            raise ValueError("expecting an object for hash entry")
        return cls(int(value["hash-alg-id"]), base64.b64decode(value["hash-value"]))


@dataclass
class Locator:
    """A corim-locator-map pointing at a dependent RIM."""

    href: TaggedURI = field(default_factory=lambda: TaggedURI(""))
    thumbprint: Optional[HashEntry] = None

    def valid(self) -> None:
        if not self.href:
            raise ValueError("empty href")
        if self.thumbprint is not None:
            try:
                self.thumbprint.valid()
            except ValueError as exc:
                raise ValueError(f"invalid locator thumbprint: {exc}") from exc

    def to_cbor_value(self) -> dict:
        mapping: dict = {0: TaggedURI(self.href)}
        if self.thumbprint is not None:
            mapping[1] = self.thumbprint.to_cbor_value()
        return mapping

    @classmethod
    def from_cbor_value(cls, value: Any) -> "Locator":
        if not isinstance(value, dict) or 0 not in value:
            raise ValueError('missing mandatory field "Href" (0)')
        if not isinstance(value[0], str):
            raise ValueError("expecting a URI for href")
        tp = value.get(1)
        return cls(TaggedURI(value[0]), HashEntry.from_cbor_value(tp) if tp is not None else None)

    def to_json_value(self) -> dict:
        mapping: dict = {"href": str(self.href)}
        if self.thumbprint is not None:
            mapping["thumbprint"] = self.thumbprint.to_json_value()
        return mapping

    @classmethod
    def from_json_value(cls, value: Any) -> "Locator":
        if not isinstance(value, dict) or not isinstance(value.get("href"), str):
            raise ValueError('missing mandatory field "href"')
        tp = value.get("thumbprint")
        return cls(TaggedURI(value["href"]), HashEntry.from_json_value(tp) if tp is not None else None)


def valid_profile(profile: Profile) -> None:
    """Raise ValueError unless the profile is an OID or a URI."""
    if not profile.is_oid() and not profile.is_uri():
        raise ValueError("profile should be OID or URI")


@dataclass
class UnsignedCorim:
    """The unsigned-corim-map."""

    id: Optional[TagID] = None
    tags: list = field(default_factory=list)
    dependent_rims: Optional[list] = None
    profile: Optional[Profile] = None
    rim_validity: Optional[Validity] = None
    entities: Optional[Entities] = None
    extensions: Extensions = field(default_factory=Extensions)

    def register_extensions(self, exts: dict) -> None:
        for point, value in exts.items():
            if point == ExtensionPoint.UNSIGNED_CORIM:
                self.extensions.register(value)
            elif point == ExtensionPoint.ENTITY:
                if self.entities is None:
                    self.entities = Entities()
                self.entities.register_extensions({ExtensionPoint.ENTITY: value})
            else:
                raise UnexpectedPointError(point)

    def set_id(self, value: Any) -> "UnsignedCorim":
        self.id = TagID.from_value(value)
        return self

    def get_id(self) -> str:
        return str(self.id) if self.id is not None else ""

    def add_tag(self, tag: bytes) -> "UnsignedCorim":
        """Append an already encoded and tagged CoMID, CoSWID or CoTS."""
        if not tag:
            raise ValueError("empty tag")
        self.tags.append(bytes(tag))
        return self

    def add_dependent_rim(
        self, href: str, thumbprint: Optional[HashEntry] = None
    ) -> "UnsignedCorim":
        if self.dependent_rims is None:
            self.dependent_rims = []
        self.dependent_rims.append(Locator(TaggedURI(href), thumbprint))
        return self

    def set_profile(self, url_or_oid: str) -> "UnsignedCorim":
        self.profile = Profile.parse(url_or_oid)
        return self

    def set_rim_validity(
        self, not_after: datetime, not_before: Optional[datetime] = None
    ) -> "UnsignedCorim":
        validity = Validity(not_after=not_after, not_before=not_before)
        validity.valid()
        self.rim_validity = validity
        return self

    def add_entity(self, name: str, reg_id: Optional[str], *args: int) -> "UnsignedCorim":
        entity = Entity().set_name(name).set_roles(*args)
        if reg_id is not None:
            entity.set_reg_id(reg_id)
        if self.entities is None:
            self.entities = Entities()
        self.entities.add(entity)
        return self

    def valid(self) -> None:
        if self.id is None:
            raise ValueError("empty id")
        if not self.tags:
            raise ValueError("tags validation failed: no tags")
        for index, tag in enumerate(self.tags):
            if not tag:
                raise ValueError(f"tag validation failed at pos {index}: empty tag")
        for index, rim in enumerate(self.dependent_rims or ()):
            try:
                rim.valid()
            except ValueError as exc:
                raise ValueError(
                    f"dependent RIM validation failed at pos {index}: {exc}"
                ) from exc
        if self.profile is not None:
            try:
                valid_profile(self.profile)
            except ValueError as exc:
                raise ValueError(f"profile validation failed: {exc}") from exc
        if self.rim_validity is not None:
            try:
                self.rim_validity.valid()
            except ValueError as exc:
                raise ValueError(f"RIM validity validation failed: {exc}") from exc
        if self.entities is not None:
            for index, entity in enumerate(self.entities):
                try:
                    entity.valid()
                except ValueError as exc:
                    raise ValueError(
                        f"entity validation failed at pos {index}: {exc}"
                    ) from exc
        self.extensions.valid_corim(self)

    def to_cbor_value(self) -> dict:
        if self.id is None:
            raise ValueError("empty id")
        mapping: dict = {0: self.id.to_cbor_value(), 1: [bytes(t) for t in self.tags]}
        if self.dependent_rims is not None:
            mapping[2] = [r.to_cbor_value() for r in self.dependent_rims]
        if self.profile is not None:
            mapping[3] = self.profile.to_cbor_value()
        if self.rim_validity is not None:
            mapping[4] = self.rim_validity.to_cbor_value()
        if self.entities is not None and not self.entities.is_empty():
            mapping[5] = self.entities.to_cbor_value()
        return self.extensions.encode_into(mapping, json_style=False)

    def to_cbor(self) -> bytes:
        return encode(self.to_cbor_value())

    def from_cbor_value(self, value: Any) -> "UnsignedCorim":
        if isinstance(value, cbor2.CBORTag) and value.tag == 501:
            value = value.value
        if not isinstance(value, dict):
            raise ValueError("expecting a map for unsigned CoRIM")
        if 0 not in value:
            raise ValueError('missing mandatory field "ID" (0)')
        if 1 not in value:
            raise ValueError('missing mandatory field "Tags" (1)')
        tags = value[1]
        if not isinstance(tags, list) or not all(isinstance(t, bytes) for t in tags):
            raise ValueError("expecting an array of byte strings for tags")
        self.id = TagID.from_value(value[0])
        self.tags = list(tags)
        rims = value.get(2)
        self.dependent_rims = (
            [Locator.from_cbor_value(r) for r in rims] if rims is not None else None
        )
        prof = value.get(3)
        self.profile = Profile.from_cbor_value(prof) if prof is not None else None
        val = value.get(4)
        self.rim_validity = Validity.from_cbor_value(val) if val is not None else None
        if 5 in value:
            entities = self.entities if self.entities is not None else Entities()
            self.entities = entities.from_cbor_value(value[5])
        self.extensions.decode_from(value, json_style=False)
        return self

    def from_cbor(self, data: bytes) -> "UnsignedCorim":
        return self.from_cbor_value(decode(data))

    def to_json_value(self) -> dict:
        mapping: dict = {"corim-id": self.get_id()}
        if self.tags:
            mapping["tags"] = [base64.b64encode(t).decode("ascii") for t in self.tags]
        if self.dependent_rims:
            mapping["dependent-rims"] = [r.to_json_value() for r in self.dependent_rims]
        if self.profile is not None:
            mapping["profile"] = str(self.profile)
        if self.rim_validity is not None:
            mapping["validity"] = self.rim_validity.to_json_value()
        if self.entities is not None and not self.entities.is_empty():
            mapping["entities"] = self.entities.to_json_value()
        return self.extensions.encode_into(mapping, json_style=True)

    def to_json(self) -> str:
        return json.dumps(self.to_json_value(), separators=(",", ":"), ensure_ascii=False)

    def from_json_value(self, value: Any) -> "UnsignedCorim":
        if not isinstance(value, dict):
            raise ValueError("expecting an object for unsigned CoRIM")
        if "corim-id" not in value:
            raise ValueError('missing mandatory field "corim-id"')
        self.id = TagID.from_value(value["corim-id"])
        self.tags = [base64.b64decode(t) for t in value.get("tags") or []]
        rims = value.get("dependent-rims")
        self.dependent_rims = (
            [Locator.from_json_value(r) for r in rims] if rims is not None else None
        )
        prof = value.get("profile")
        self.profile = Profile.parse(prof) if prof is not None else None
        val = value.get("validity")
        self.rim_validity = Validity.from_json_value(val) if val is not None else None
        if "entities" in value:
            entities = self.entities if self.entities is not None else Entities()
            self.entities = entities.from_json_value(value["entities"])
        self.extensions.decode_from(value, json_style=True)
        return self

    def from_json(self, data: Union[str, bytes]) -> "UnsignedCorim":
        return self.from_json_value(json.loads(data))