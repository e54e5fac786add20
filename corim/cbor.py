"""CBOR encoding and decoding with the CoRIM tag registry."""

from __future__ import annotations

import io
import json
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlparse

import cbor2

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_TAG_TO_TYPE: dict[int, type] = {}
_TYPE_TO_TAG: dict[type, int] = {}


class TaggedURI(str):
    """A URI carried under CBOR tag 32."""

    def empty(self) -> bool:
        return self == ""

    def to_cbor_value(self) -> str:
        return str(self)

    @classmethod
    def from_cbor_value(cls, value: Any) -> "TaggedURI":
        if not isinstance(value, str):
            raise ValueError(f"expecting a text string for a URI, got {type(value).__name__}")
        return cls(value)


def is_absolute_uri(uri: str) -> TaggedURI:
    """Return ``uri`` as a TaggedURI, raising ValueError unless it is absolute."""
    if not urlparse(uri).scheme:
        raise ValueError(f"{json.dumps(uri, ensure_ascii=False)} is not an absolute URI")
    return TaggedURI(uri)


def register_tag(tag: int, cls: type) -> None:
    """Associate a CBOR tag with a class that has to/from_cbor_value."""
    if tag in _TAG_TO_TYPE:
        raise ValueError(f"tag {tag} is already registered")
    _TAG_TO_TYPE[tag] = cls
    _TYPE_TO_TAG[cls] = tag


def _prepare(value: Any) -> Any:
    for klass in type(value).__mro__:
        if klass in _TYPE_TO_TAG:
            return cbor2.CBORTag(_TYPE_TO_TAG[klass], _prepare(value.to_cbor_value()))
    if isinstance(value, datetime):
        aware = value if value.tzinfo else value.astimezone()
        return cbor2.CBORTag(1, (aware - _EPOCH) // timedelta(seconds=1))
    if isinstance(value, dict):
        return {_prepare(k): _prepare(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_prepare(v) for v in value]
    if isinstance(value, cbor2.CBORTag):
        return cbor2.CBORTag(value.tag, _prepare(value.value))
    if callable(getattr(value, "to_cbor_value", None)):
        return _prepare(value.to_cbor_value())
    return value


def encode(value: Any) -> bytes:
    """Serialize ``value`` to definite-length CBOR, applying registered tags."""
    try:
        return cbor2.dumps(_prepare(value))
    except cbor2.CBOREncodeError as exc:
        raise ValueError(f"cbor: {exc}") from exc


def _tag_hook(_decoder: Any, tag: cbor2.CBORTag) -> Any:
    cls = _TAG_TO_TYPE.get(tag.tag)
    return tag if cls is None else cls.from_cbor_value(tag.value)


def decode(data: bytes) -> Any:
    """Deserialize a single CBOR item, rejecting trailing data."""
    data = bytes(data)
    if not data:
        raise ValueError("EOF")
    stream = io.BytesIO(data)
    try:
        value = cbor2.CBORDecoder(stream, tag_hook=_tag_hook).decode()
    except EOFError:
        raise ValueError("unexpected EOF") from None
    except cbor2.CBORDecodeError as exc:
        raise ValueError(f"cbor: {exc}") from exc
    position = stream.tell()
    if position != len(data):
        raise ValueError(
            f"cbor: {len(data) - position} bytes of extraneous data starting at index {position}"
        )
    return value


register_tag(32, TaggedURI)