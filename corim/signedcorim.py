"""COSE Sign1 wrapped CoRIMs, and signers built from JWKs."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import cbor2
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

from .cbor import decode, encode
from .extensions import ExtensionPoint
from .meta import Meta
from .signer import Signer
from .unsignedcorim import UnsignedCorim

CONTENT_TYPE = "application/rim+cbor"
NO_EXTERNAL_DATA = b""
HEADER_LABEL_ALGORITHM = 1
HEADER_LABEL_CONTENT_TYPE = 3
HEADER_LABEL_CORIM_META = 8

ALG_ES256, ALG_ES384, ALG_ES512 = -7, -35, -36
ALG_EDDSA = -8
ALG_PS256, ALG_PS384, ALG_PS512 = -37, -38, -39

_ECDSA = (ALG_ES256, ALG_ES384, ALG_ES512)
_HASHES = {
    ALG_ES256: hashes.SHA256, ALG_ES384: hashes.SHA384, ALG_ES512: hashes.SHA512,
    ALG_PS256: hashes.SHA256, ALG_PS384: hashes.SHA384, ALG_PS512: hashes.SHA512,
}
_KEY_TYPES = {
    ALG_EDDSA: ed25519.Ed25519PublicKey,
    **{alg: ec.EllipticCurvePublicKey for alg in _ECDSA},
    **{alg: rsa.RSAPublicKey for alg in (ALG_PS256, ALG_PS384, ALG_PS512)},
}
_CURVES = {
    "P-256": (ec.SECP256R1, ALG_ES256),
    "P-384": (ec.SECP384R1, ALG_ES384),
    "P-521": (ec.SECP521R1, ALG_ES512),
}
_RSA_ALGS = {"PS256": ALG_PS256, "PS384": ALG_PS384, "PS512": ALG_PS512}
_TYPE_CHOICE_PREFIX = b"\xd9\x01\xf4\xd9\x01\xf6"


def _pss(alg: int) -> padding.PSS:
    h = _HASHES[alg]()
    return padding.PSS(mgf=padding.MGF1(h), salt_length=h.digest_size)


def _coord_size(key: Any) -> int:
    return (key.curve.key_size + 7) // 8


@dataclass(frozen=True)
class CoseSigner:
    """A private key together with the COSE algorithm it signs with."""

    algorithm: int
    key: Any

    def sign(self, data: bytes) -> bytes:
        if self.algorithm == ALG_EDDSA:
            return self.key.sign(data)
        if self.algorithm in _ECDSA:
            r, s = decode_dss_signature(self.key.sign(data, ec.ECDSA(_HASHES[self.algorithm]())))
            n = _coord_size(self.key)
            return r.to_bytes(n, "big") + s.to_bytes(n, "big")
        return self.key.sign(data, _pss(self.algorithm), _HASHES[self.algorithm]())

    def public_key(self) -> Any:
        return self.key.public_key()


def _b64(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _b64int(text: str) -> int:
    return int.from_bytes(_b64(text), "big")


def new_signer_from_jwk(jwk: Union[str, bytes, dict]) -> CoseSigner:
    """Build a COSE signer from a private JWK."""
    obj = json.loads(jwk) if isinstance(jwk, (str, bytes, bytearray)) else jwk
    if not isinstance(obj, dict):
        raise ValueError("a JWK must be a JSON object")
    kty = obj.get("kty")
    if "d" not in obj:
        raise ValueError("JWK does not hold a private key")
    if kty == "EC":
        if obj.get("crv") not in _CURVES:
            raise ValueError(f"unknown elliptic curve {obj.get('crv')}")
        curve, alg = _CURVES[obj["crv"]]
        public = ec.EllipticCurvePublicNumbers(_b64int(obj["x"]), _b64int(obj["y"]), curve())
        return CoseSigner(alg, ec.EllipticCurvePrivateNumbers(_b64int(obj["d"]), public).private_key())
    if kty == "OKP" and obj.get("crv") == "Ed25519":
        return CoseSigner(ALG_EDDSA, ed25519.Ed25519PrivateKey.from_private_bytes(_b64(obj["d"])))
    if kty == "RSA":
        alg_name = obj.get("alg", "")
        if alg_name not in _RSA_ALGS:
            raise ValueError(f'unknown RSA algorithm "{alg_name}"')
        n, e, d = _b64int(obj["n"]), _b64int(obj["e"]), _b64int(obj["d"])
        if "p" in obj and "q" in obj:
            p, q = _b64int(obj["p"]), _b64int(obj["q"])
        else:
            p, q = rsa.rsa_recover_prime_factors(n, e, d)
        numbers = rsa.RSAPrivateNumbers(
            p, q, d, rsa.rsa_crt_dmp1(d, p), rsa.rsa_crt_dmq1(d, q),
            rsa.rsa_crt_iqmp(p, q), rsa.RSAPublicNumbers(e, n),
        )
        return CoseSigner(_RSA_ALGS[alg_name], numbers.private_key())
    raise ValueError(f"unknown private key type {kty}")


def new_public_key_from_jwk(jwk: Union[str, bytes, dict]) -> Any:
    """Return the public half of a private JWK."""
    return new_signer_from_jwk(jwk).public_key()


def _verify_signature(alg: int, public_key: Any, data: bytes, signature: bytes) -> None:
    try:
        if alg == ALG_EDDSA:
            public_key.verify(signature, data)
        elif alg in _ECDSA:
            n = _coord_size(public_key)
            if len(signature) != 2 * n:
                raise InvalidSignature()
            r, s = int.from_bytes(signature[:n], "big"), int.from_bytes(signature[n:], "big")
            public_key.verify(encode_dss_signature(r, s), data, ec.ECDSA(_HASHES[alg]()))
        else:
            public_key.verify(signature, data, _pss(alg), _HASHES[alg]())
    except InvalidSignature:
        raise ValueError("verification error") from None


@dataclass
class _Sign1:
    protected: bytes
    headers: dict
    payload: bytes
    signature: bytes = b""

    def to_be_signed(self) -> bytes:
        return encode(["Signature1", self.protected, NO_EXTERNAL_DATA, self.payload])

    def to_cbor(self) -> bytes:
        return encode(cbor2.CBORTag(18, [self.protected, {}, self.payload, self.signature]))

    @classmethod
    def from_cbor(cls, data: bytes) -> "_Sign1":
        value = decode(data)
        items = value.value if isinstance(value, cbor2.CBORTag) and value.tag == 18 else None
        shape = (bytes, dict, bytes, bytes)
        if not (isinstance(items, list) and len(items) == 4
                and all(isinstance(i, t) for i, t in zip(items, shape))):
            raise ValueError("cbor: invalid COSE_Sign1_Tagged object")
        headers = decode(items[0]) if items[0] else {}
        if not isinstance(headers, dict):
            raise ValueError("cbor: invalid protected header")
        return cls(items[0], headers, items[2], items[3])


def _wrap(prefix: str, action: Any) -> Any:
    try:
        return action()
    except ValueError as exc:
        raise ValueError(f"{prefix}: {exc}") from exc


@dataclass
class SignedCorim:
    """A COSE Sign1 wrapped CoRIM with its meta information."""

    unsigned_corim: UnsignedCorim = field(default_factory=UnsignedCorim)
    meta: Meta = field(default_factory=Meta)
    _message: Optional[_Sign1] = field(default=None, repr=False, compare=False)

    def register_extensions(self, exts: dict) -> None:
        unsigned = {}
        for point, value in exts.items():
            if point == ExtensionPoint.SIGNER:
                self.meta.register_extensions({ExtensionPoint.SIGNER: value})
            else:
                unsigned[point] = value
        self.unsigned_corim.register_extensions(unsigned)

    def _process_headers(self) -> None:
        headers = self._message.headers
        if not headers:
            raise ValueError("missing mandatory protected header")
        if HEADER_LABEL_CONTENT_TYPE not in headers:
            raise ValueError("missing mandatory content type")
        ctype = headers[HEADER_LABEL_CONTENT_TYPE]
        if ctype != CONTENT_TYPE:
            raise ValueError(f'expecting content type "{CONTENT_TYPE}", got "{ctype}" instead')
        if HEADER_LABEL_CORIM_META not in headers:
            raise ValueError("missing mandatory corim.meta")
        meta_cbor = headers[HEADER_LABEL_CORIM_META]
        if not isinstance(meta_cbor, bytes):
            raise ValueError(
                f"expecting CBOR-encoded CoRIM Meta, got {type(meta_cbor).__name__} instead"
            )
        meta = Meta(signer=Signer(extensions=self.meta.signer.extensions))
        _wrap("unable to decode CoRIM Meta", lambda: meta.from_cbor(meta_cbor))
        self.meta = meta

    def from_cose(self, data: bytes) -> "SignedCorim":
        data = bytes(data)
        if data.startswith(_TYPE_CHOICE_PREFIX):
            data = data[len(_TYPE_CHOICE_PREFIX):]
        self._message = _wrap(
            "failed CBOR decoding for COSE-Sign1 signed CoRIM", lambda: _Sign1.from_cbor(data)
        )
        _wrap("processing COSE headers", self._process_headers)
        _wrap("failed CBOR decoding of unsigned CoRIM",
              lambda: self.unsigned_corim.from_cbor(self._message.payload))
        _wrap("failed validation of unsigned CoRIM", self.unsigned_corim.valid)
        return self

    def sign(self, signer: Optional[CoseSigner]) -> bytes:
        if signer is None:
            raise ValueError("nil signer")
        _wrap("failed validation of unsigned CoRIM", self.unsigned_corim.valid)
        payload = _wrap("failed CBOR encoding of unsigned CoRIM", self.unsigned_corim.to_cbor)
        meta_cbor = _wrap("failed CBOR encoding of CoRIM Meta", self.meta.to_cbor)
        if signer.algorithm not in _KEY_TYPES:
            raise ValueError("signer has no algorithm")
        headers = {
            HEADER_LABEL_ALGORITHM: signer.algorithm,
            HEADER_LABEL_CONTENT_TYPE: CONTENT_TYPE,
            HEADER_LABEL_CORIM_META: meta_cbor,
        }
        message = _Sign1(encode(headers), headers, payload)
        try:
            message.signature = signer.sign(message.to_be_signed())
        except Exception as exc:
            raise ValueError(f"COSE Sign1 signature failed: {exc}") from exc
        self._message = message
        return message.to_cbor()

    def verify(self, public_key: Any) -> None:
        if self._message is None:
            raise ValueError("no Sign1 message found")
        alg = self._message.headers.get(HEADER_LABEL_ALGORITHM)
        if not isinstance(alg, int):
            raise ValueError("unable to get verification algorithm: algorithm not found")
        if alg not in _KEY_TYPES:
            raise ValueError(f"unable to instantiate verifier: algorithm {alg} not supported")
        if not isinstance(public_key, _KEY_TYPES[alg]):
            raise ValueError("unable to instantiate verifier: key type mismatch for algorithm")
        _verify_signature(alg, public_key, self._message.to_be_signed(), self._message.signature)