import base64
import json
from dataclasses import dataclass
from datetime import datetime, timezone

import cbor2
import pytest
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from cryptography.hazmat.primitives import serialization

from corim.extensions import ExtensionPoint, UnexpectedPointError
from corim.meta import Meta
from corim.signedcorim import SignedCorim, new_public_key_from_jwk, new_signer_from_jwk
from corim.unsignedcorim import UnsignedCorim

META = bytes.fromhex("a200a1006941434d45204c74642e01a101c11a5fad2056")
PROTECTED_OK = cbor2.dumps({1: -7, 3: "application/rim+cbor", 8: META})
PAYLOAD_OK = cbor2.dumps({0: "test corim id", 1: [bytes.fromhex("d901faa0")]})
SIG = bytes.fromhex("deadbeef")


def _sign1(protected, payload):
    return cbor2.dumps(cbor2.CBORTag(18, [protected, {}, payload, SIG]))


def _b64(data):
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _int(n, size=None):
    size = size or (n.bit_length() + 7) // 8
    return _b64(n.to_bytes(size, "big"))


def _ec_jwk(curve, crv):
    key = ec.generate_private_key(curve())
    size = (key.curve.key_size + 7) // 8
    pub = key.public_key().public_numbers()
    return {"kty": "EC", "crv": crv, "x": _int(pub.x, size), "y": _int(pub.y, size),
            "d": _int(key.private_numbers().private_value, size)}


def _ed_jwk():
    key = ed25519.Ed25519PrivateKey.generate()
    raw = key.private_bytes(serialization.Encoding.Raw, serialization.PrivateFormat.Raw,
                            serialization.NoEncryption())
    return {"kty": "OKP", "crv": "Ed25519", "d": _b64(raw)}


_RSA = rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _rsa_jwk(alg):
    nums = _RSA.private_numbers()
    return {"kty": "RSA", "alg": alg, "n": _int(nums.public_numbers.n),
            "e": _int(nums.public_numbers.e), "d": _int(nums.d),
            "p": _int(nums.p), "q": _int(nums.q)}


def _good_unsigned():
    c = UnsignedCorim().set_id("test corim id").add_tag(bytes.fromhex("d901faa0"))
    c.valid()
    return c


def _good_meta():
    return Meta().set_signer("ACME Ltd.").set_validity(datetime(2021, 9, 30, tzinfo=timezone.utc))


def test_from_cose_ok():
    s = SignedCorim().from_cose(_sign1(PROTECTED_OK, PAYLOAD_OK))
    assert s.unsigned_corim.get_id() == "test corim id"
    assert s.meta.signer.name == "ACME Ltd."


def test_tagged_from_cose_ok():
    payload = cbor2.dumps(cbor2.CBORTag(501, {0: "test corim id", 1: [b"\xca\xfe"]}))
    data = b"\xd9\x01\xf4\xd9\x01\xf6" + _sign1(PROTECTED_OK, payload)
    s = SignedCorim().from_cose(data)
    assert s.unsigned_corim.tags == [b"\xca\xfe"]


def test_from_cose_no_tag():
    with pytest.raises(ValueError) as info:
        SignedCorim().from_cose(b"\xf6")
    assert str(info.value) == (
        "failed CBOR decoding for COSE-Sign1 signed CoRIM: cbor: invalid COSE_Sign1_Tagged object"
    )


def test_from_cose_bad_corim_cbor():
    with pytest.raises(ValueError) as info:
        SignedCorim().from_cose(_sign1(PROTECTED_OK, bytes.fromhex("badcb030")))
    assert str(info.value) == "failed CBOR decoding of unsigned CoRIM: unexpected EOF"


def test_from_cose_invalid_corim():
    with pytest.raises(ValueError) as info:
        SignedCorim().from_cose(_sign1(PROTECTED_OK, cbor2.dumps({0: "invalid corim"})))
    assert str(info.value) == (
        'failed CBOR decoding of unsigned CoRIM: missing mandatory field "Tags" (1)'
    )


def test_from_cose_no_content_type():
    with pytest.raises(ValueError) as info:
        SignedCorim().from_cose(_sign1(cbor2.dumps({1: -7}), PAYLOAD_OK))
    assert str(info.value) == "processing COSE headers: missing mandatory content type"


def test_from_cose_unexpected_content_type():
    with pytest.raises(ValueError) as info:
        SignedCorim().from_cose(_sign1(cbor2.dumps({1: -7, 3: "application/cbor"}), PAYLOAD_OK))
    assert str(info.value) == (
        'processing COSE headers: expecting content type "application/rim+cbor", '
        'got "application/cbor" instead'
    )


@pytest.mark.parametrize(
    "jwk",
    [
        _ec_jwk(ec.SECP256R1, "P-256"),
        _ec_jwk(ec.SECP384R1, "P-384"),
        _ec_jwk(ec.SECP521R1, "P-521"),
        _ed_jwk(),
        _rsa_jwk("PS256"),
        _rsa_jwk("PS384"),
        _rsa_jwk("PS512"),
    ],
)
def test_sign_verify_ok(jwk):
    signer = new_signer_from_jwk(json.dumps(jwk))
    signed = SignedCorim(unsigned_corim=_good_unsigned(), meta=_good_meta())
    data = signed.sign(signer)
    out = SignedCorim().from_cose(data)
    assert out.meta.signer.name == "ACME Ltd."
    out.verify(new_public_key_from_jwk(jwk))
    assert out.unsigned_corim.get_id() == "test corim id"


def test_sign_verify_tampered():
    jwk = _ec_jwk(ec.SECP256R1, "P-256")
    data = bytearray(SignedCorim(unsigned_corim=_good_unsigned()).sign(new_signer_from_jwk(jwk)))
    data[-1] ^= 0xFF
    out = SignedCorim().from_cose(bytes(data))
    with pytest.raises(ValueError, match="^verification error$"):
        out.verify(new_public_key_from_jwk(jwk))


def test_sign_bad_corim():
    signer = new_signer_from_jwk(_ed_jwk())
    with pytest.raises(ValueError, match="^failed validation of unsigned CoRIM: empty id$"):
        SignedCorim().sign(signer)


def test_sign_no_signer():
    with pytest.raises(ValueError, match="^nil signer$"):
        SignedCorim().sign(None)


def test_verify_without_message():
    with pytest.raises(ValueError, match="no Sign1 message found"):
        SignedCorim().verify(None)


def test_unknown_rsa_algorithm():
    with pytest.raises(ValueError, match='unknown RSA algorithm "RS256"'):
        new_signer_from_jwk(_rsa_jwk("RS256"))


def test_extensions():
    @dataclass
    class Ext:
        pass

    s = SignedCorim()
    s.register_extensions({ExtensionPoint.SIGNER: Ext(), ExtensionPoint.UNSIGNED_CORIM: Ext()})
    assert s.meta.signer.extensions.have_extensions()
    assert s.unsigned_corim.extensions.have_extensions()
    with pytest.raises(UnexpectedPointError, match='unexpected extension point: "test"'):
        s.register_extensions({"test": Ext()})