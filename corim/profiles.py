"""Profiles: EAT profile identifiers associated with sets of extensions."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

import cbor2

from .cbor import decode
from .extensions import ExtensionPoint, UnexpectedPointError
from .signedcorim import SignedCorim
from .unsignedcorim import Profile, UnsignedCorim

SIGNED_CORIM_EXTENSION_POINTS = (
    ExtensionPoint.SIGNER,
    ExtensionPoint.UNSIGNED_CORIM,
    ExtensionPoint.ENTITY,
)

UNSIGNED_CORIM_EXTENSION_POINTS = (
    ExtensionPoint.UNSIGNED_CORIM,
    ExtensionPoint.ENTITY,
)

ALL_EXTENSION_POINTS = frozenset(
    SIGNED_CORIM_EXTENSION_POINTS + UNSIGNED_CORIM_EXTENSION_POINTS
)

_TYPE_CHOICE_PREFIX = b"\xd9\x01\xf4\xd9\x01\xf6"
_IMMUTABLE = (int, float, complex, str, bytes, tuple, frozenset, bool)

_PROFILES: dict[str, "CorimProfile"] = {}


def _point_name(point: Any) -> str:
    return str(getattr(point, "value", point))


@dataclass
class CorimProfile:
    """An EAT profile id together with the extensions it defines."""

    id: Profile
    map_extensions: dict = field(default_factory=dict)

    def _register(self, target: Any, points: Iterable[Any]) -> None:
        wanted = tuple(points)
        exts = {
            point: copy.deepcopy(value)
            for point, value in self.map_extensions.items()
            if point in wanted
        }
        target.register_extensions(exts)

    def get_unsigned_corim(self) -> UnsignedCorim:
        """Return a new UnsignedCorim with this profile's extensions registered."""
        corim = UnsignedCorim(profile=self.id)
        self._register(corim, UNSIGNED_CORIM_EXTENSION_POINTS)
        return corim

    def get_signed_corim(self) -> SignedCorim:
        """Return a new SignedCorim with this profile's extensions registered."""
        signed = SignedCorim()
        signed.unsigned_corim.profile = self.id
        self._register(signed, SIGNED_CORIM_EXTENSION_POINTS)
        return signed


def _profile_key(profile_id: Optional[Profile]) -> str:
    if profile_id is None:
        raise ValueError("no valid EAT profile")
    return profile_id.get()


def register_profile(profile_id: Profile, exts: dict) -> None:
    """Register extensions for a profile; raise if it exists or exts are invalid."""
    key = _profile_key(profile_id)
    if key in _PROFILES:
        raise ValueError(f'profile with id "{key}" already registered')
    for point, value in exts.items():
        if point not in ALL_EXTENSION_POINTS:
            raise UnexpectedPointError(point)
        if value is None or isinstance(value, type) or isinstance(value, _IMMUTABLE):
            raise ValueError(
                "attempting to register a non-instance extension value for "
                f'"{_point_name(point)}"'
            )
    _PROFILES[key] = CorimProfile(id=profile_id, map_extensions=dict(exts))


def unregister_profile(profile_id: Optional[Profile]) -> bool:
    """Remove a registered profile; return whether one was removed."""
    if profile_id is None:
        return False
    try:
        key = profile_id.get()
    except ValueError:
        return False
    return _PROFILES.pop(key, None) is not None


def get_profile(profile_id: Optional[Profile]) -> Optional[CorimProfile]:
    """Return the profile registered under ``profile_id``, or None."""
    if profile_id is None:
        return None
    try:
        key = profile_id.get()
    except ValueError:
        return None
    return _PROFILES.get(key)


def get_unsigned_corim(profile_id: Optional[Profile]) -> UnsignedCorim:
    """Return a new UnsignedCorim, with extensions if the profile is known.

    Unknown profiles are treated like unprofiled CoRIMs: only profiles that
    define extensions need registering, so validation is left to callers.
    """
    profile = get_profile(profile_id)
    if profile is None:
        return UnsignedCorim()
    return profile.get_unsigned_corim()


def get_signed_corim(profile_id: Optional[Profile]) -> SignedCorim:
    """Return a new SignedCorim, with extensions if the profile is known."""
    profile = get_profile(profile_id)
    if profile is None:
        return SignedCorim()
    return profile.get_signed_corim()


def _profile_from_cbor_map(value: Any) -> Optional[Profile]:
    if isinstance(value, cbor2.CBORTag) and value.tag == 501:
        value = value.value
    if not isinstance(value, dict):
        raise ValueError("expecting a map for unsigned CoRIM")
    raw = value.get(3)
    return Profile.from_cbor_value(raw) if raw is not None else None


def unmarshal_unsigned_corim_from_cbor(data: bytes) -> UnsignedCorim:
    """Decode an UnsignedCorim, registering its profile's extensions first."""
    profile_id = _profile_from_cbor_map(decode(data))
    corim = get_unsigned_corim(profile_id)
    corim.from_cbor(data)
    return corim


def unmarshal_unsigned_corim_from_json(data: Union[str, bytes]) -> UnsignedCorim:
    """Decode a JSON UnsignedCorim, registering its profile's extensions first."""
    value = json.loads(data)
    if not isinstance(value, dict):
        raise ValueError("expecting an object for unsigned CoRIM")
    raw = value.get("profile")
    if raw is not None and not isinstance(raw, str):
        raise ValueError("expecting a string for profile")
    profile_id = Profile.parse(raw) if raw is not None else None
    corim = get_unsigned_corim(profile_id)
    corim.from_json(data)
    return corim


def _sign1_payload(data: bytes) -> bytes:
    invalid = ValueError(
        "failed CBOR decoding for COSE-Sign1 signed CoRIM: "
        "cbor: invalid COSE_Sign1_Tagged object"
    )
    try:
        value = decode(data)
    except ValueError as exc:
        raise ValueError(
            f"failed CBOR decoding for COSE-Sign1 signed CoRIM: {exc}"
        ) from exc
    if not isinstance(value, cbor2.CBORTag) or value.tag != 18:
        raise invalid
    items = value.value
    if not isinstance(items, list) or len(items) != 4 or not isinstance(items[2], bytes):
        raise invalid
    return items[2]


def unmarshal_signed_corim_from_cbor(data: bytes) -> SignedCorim:
    """Decode a signed CoRIM, registering its profile's extensions first."""
    data = bytes(data)
    stripped = data[len(_TYPE_CHOICE_PREFIX):] if data.startswith(_TYPE_CHOICE_PREFIX) else data
    payload = _sign1_payload(stripped)
    profile_id = _profile_from_cbor_map(decode(payload))
    signed = get_signed_corim(profile_id)
    signed.from_cose(data)
    return signed