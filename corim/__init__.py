"""Concise Reference Integrity Manifests: model, validation, CBOR/JSON encoding, COSE signing and profiles."""

__version__ = "0.1.0"