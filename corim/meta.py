"""The corim-meta-map carried in the protected header of a signed CoRIM."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .cbor import decode, encode
from .extensions import ExtensionPoint, UnexpectedPointError
from .signer import Signer
from .validity import Validity


@dataclass
class Meta:
    """Information about the CoRIM signer and an optional validity period."""

    signer: Signer = field(default_factory=Signer)
    validity: Optional[Validity] = None

    def register_extensions(self, exts: dict) -> None:
        for point, value in exts.items():
            if point == ExtensionPoint.SIGNER:
                self.signer.extensions.register(value)
            else:
                raise UnexpectedPointError(point)

    def set_signer(self, name: str, uri: Optional[str] = None) -> "Meta":
        signer = Signer(extensions=self.signer.extensions).set_name(name)
        if uri is not None:
            signer.set_uri(uri)
        self.signer = signer
        return self

    def set_validity(
        self, not_after: datetime, not_before: Optional[datetime] = None
    ) -> "Meta":
        validity = Validity(not_after=not_after, not_before=not_before)
        validity.valid()
        self.validity = validity
        return self

    def valid(self) -> None:
        try:
            self.signer.valid()
        except ValueError as exc:
            raise ValueError(f"invalid signer: {exc}") from exc
        if self.validity is not None:
            try:
                self.validity.valid()
            except ValueError as exc:
                raise ValueError(f"invalid validity: {exc}") from exc

    def to_cbor(self) -> bytes:
        mapping: dict = {0: self.signer.to_cbor_value()}
        if self.validity is not None:
            mapping[1] = self.validity.to_cbor_value()
        return encode(mapping)

    def from_cbor(self, data: bytes) -> "Meta":
        value = decode(data)
        self._populate(value, json_style=False)
        return self

    def to_json(self) -> str:
        mapping: dict = {"signer": self.signer.to_json_value()}
        if self.validity is not None:
            mapping["validity"] = self.validity.to_json_value()
        return json.dumps(mapping, separators=(",", ":"), ensure_ascii=False)

    def from_json(self, data: str | bytes) -> "Meta":
        self._populate(json.loads(data), json_style=True)
        return self

    def _populate(self, value: Any, json_style: bool) -> None:
        signer_key, validity_key = ("signer", "validity") if json_style else (0, 1)
        if not isinstance(value, dict):
            raise ValueError("expecting a map for corim-meta")
        if signer_key not in value:
            label = '"signer"' if json_style else '"Signer" (0)'
            raise ValueError(f"missing mandatory field {label}")
        signer = Signer(extensions=self.signer.extensions)
        if json_style:
            signer.from_json_value(value[signer_key])
        else:
            signer.from_cbor_value(value[signer_key])
        raw_validity = value.get(validity_key)
        if raw_validity is None:
            validity = None
        elif json_style:
            validity = Validity.from_json_value(raw_validity)
        else:
            validity = Validity.from_cbor_value(raw_validity)
        self.signer = signer
        self.validity = validity