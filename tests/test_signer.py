import json
from dataclasses import dataclass, field

import pytest

from corim.cbor import TaggedURI, decode, encode
from corim.extensions import ExtensionPoint, UnexpectedPointError
from corim.signer import Signer


@dataclass
class _SignerExtensions:
    address: str = field(default="", metadata={"cbor": -1, "json": "address"})


def test_register_extensions():
    signer = Signer()
    assert not signer.extensions.have_extensions()

    exts = _SignerExtensions()
    signer.register_extensions({ExtensionPoint.SIGNER: exts})
    assert signer.extensions.have_extensions()
    assert signer.extensions.value is exts

    with pytest.raises(UnexpectedPointError, match='^unexpected extension point: "test"$'):
        signer.register_extensions({"test": exts})


def test_valid():
    signer = Signer()
    with pytest.raises(ValueError, match="^empty name$"):
        signer.valid()

    signer.name = "test-signer"
    signer.uri = TaggedURI("@@@")
    with pytest.raises(ValueError, match='^invalid URI: "@@@" is not an absolute URI$'):
        signer.valid()


def test_json():
    signer = Signer(name="test-signer", uri=TaggedURI("https://example.com"))
    data = signer.to_json()
    assert json.loads(data) == {"name": "test-signer", "uri": "https://example.com"}

    other = Signer().from_json(data)
    assert other.name == signer.name
    assert other.uri == signer.uri


def test_set_name_and_uri():
    signer = Signer().set_name("ACME Ltd.").set_uri("https://acme.example")
    assert signer.name == "ACME Ltd."
    assert signer.uri == "https://acme.example"
    assert isinstance(signer.uri, TaggedURI)

    with pytest.raises(ValueError, match="^empty name$"):
        Signer().set_name("")
    with pytest.raises(ValueError):
        Signer().set_uri("")
    with pytest.raises(ValueError, match="not an absolute URI"):
        Signer().set_uri("z/a")


def test_cbor_value_name_only():
    signer = Signer(name="ACME Ltd.")
    assert encode(signer.to_cbor_value()) == bytes.fromhex("a1006941434d45204c74642e")


def test_cbor_value_round_trip_with_extensions():
    signer = Signer(name="ACME Ltd.", uri=TaggedURI("https://acme.example"))
    signer.register_extensions({ExtensionPoint.SIGNER: _SignerExtensions("home")})
    data = encode(signer.to_cbor_value())

    other = Signer()
    other.register_extensions({ExtensionPoint.SIGNER: _SignerExtensions()})
    other.from_cbor_value(decode(data))
    assert other.name == "ACME Ltd."
    assert other.uri == TaggedURI("https://acme.example")
    assert other.extensions.get("address") == "home"


def test_from_cbor_value_missing_name():
    with pytest.raises(ValueError, match='missing mandatory field "Name"'):
        Signer().from_cbor_value({1: TaggedURI("https://acme.example")})