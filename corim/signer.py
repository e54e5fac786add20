"""The signer of a CoRIM."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

from .cbor import TaggedURI, is_absolute_uri
from .extensions import ExtensionPoint, Extensions, UnexpectedPointError


@dataclass
class Signer:
    """A corim-signer-map: a name and an optional URI."""

    name: str = ""
    uri: Optional[TaggedURI] = None
    extensions: Extensions = field(default_factory=Extensions)

    def register_extensions(self, exts: dict) -> None:
        for point, value in exts.items():
            if point != ExtensionPoint.SIGNER:
                raise UnexpectedPointError(point)
            self.extensions.register(value)

    def set_name(self, name: str) -> "Signer":
        if name == "":
            raise ValueError("empty name")
        self.name = name
        return self

    def set_uri(self, uri: str) -> "Signer":
        if uri == "":
            raise ValueError("empty URI")
        self.uri = is_absolute_uri(uri)
        return self

    def valid(self) -> None:
        if not self.name:
            raise ValueError("empty name")
        if self.uri is not None:
            try:
                is_absolute_uri(str(self.uri))
            except ValueError as exc:
                raise ValueError(f"invalid URI: {exc}") from exc
        self.extensions.valid_signer(self)

    def to_cbor_value(self) -> dict:
        mapping: dict = {0: self.name}
        if self.uri is not None:
            mapping[1] = TaggedURI(self.uri)
        return self.extensions.encode_into(mapping, json_style=False)

    def from_cbor_value(self, value: Any) -> "Signer":
        if not isinstance(value, dict):
            raise ValueError("expecting a map for signer")
        if 0 not in value:
            raise ValueError('missing mandatory field "Name" (0)')
        if not isinstance(value[0], str):
            raise ValueError("expecting a text string for signer name")
        uri = value.get(1)
        if uri is not None and not isinstance(uri, TaggedURI):
            raise ValueError("expecting a tagged URI for signer URI")
        self.name, self.uri = value[0], uri
        self.extensions.decode_from(value, json_style=False)
        return self

    def to_json_value(self) -> dict:
        mapping: dict = {"name": self.name}
        if self.uri is not None:
            mapping["uri"] = str(self.uri)
        return self.extensions.encode_into(mapping, json_style=True)

    def from_json_value(self, value: Any) -> "Signer":
        if not isinstance(value, dict):
            raise ValueError("expecting an object for signer")
        if "name" not in value:
            raise ValueError('missing mandatory field "name"')
        uri = value.get("uri")
        if not isinstance(value["name"], str) or not isinstance(uri, (str, type(None))):
            raise ValueError("expecting strings for signer name and uri")
        self.name = value["name"]
        self.uri = None if uri is None else TaggedURI(uri)
        self.extensions.decode_from(value, json_style=True)
        return self

    def to_json(self) -> str:
        return json.dumps(self.to_json_value(), separators=(",", ":"), ensure_ascii=False)

    def from_json(self, data: str | bytes) -> "Signer":
        return self.from_json_value(json.loads(data))