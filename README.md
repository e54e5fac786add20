# corim

A library for Concise Reference Integrity Manifests (CoRIM). It models the
unsigned-corim-map and the corim-meta-map that describes the signer. It also
handles the COSE_Sign1 envelope that carries a signed CoRIM. Manifests can be
validated, encoded to and from CBOR and JSON, signed and verified.

## Installation

```
pip install corim
```

To run the test suite:

```
pip install "corim[test]"
pytest
```

## Modules

- `corim.unsignedcorim`
  - `UnsignedCorim` is the unsigned-corim-map. It holds the id (`TagID`), the
    tags, the dependent RIMs (`Locator`, with an optional `HashEntry`
    thumbprint), the profile (`Profile`, an OID or an absolute URI), the
    validity and the entities.
  - Its builder methods are `set_id`, `add_tag`, `add_dependent_rim`,
    `set_profile`, `set_rim_validity` and `add_entity`. Each returns the
    object and raises `ValueError` on bad input.
  - `valid()` checks the manifest against the specification's rules.
  - `to_cbor` / `from_cbor` and `to_json` / `from_json` serialize it.
  - `valid_profile` checks that a `Profile` is an OID or a URI.
- `corim.entity`
  - `Entity` is a name, an optional registration URI, roles and extensions.
  - `Entities` is a collection of entities that share registered extensions.
  - `EntityName` and `StringEntityName` hold entity names.
    `new_entity_name` and `new_string_entity_name` build them.
  - `register_entity_name_type` adds further name types under a CBOR tag.
- `corim.role`
  - `Role` and `Roles` hold entity roles. The predefined `MANIFEST_CREATOR`
    has value 1.
  - `register_role` adds new roles. It raises `ValueError` if the value or
    the name is already taken.
- `corim.validity`
  - `Validity` holds a mandatory not-after time and an optional not-before
    time.
  - `valid()` rejects a not-before that is later than the not-after.
- `corim.signer` and `corim.meta`
  - `Signer` holds the signer's name and optional URI.
  - `Meta` holds the `Signer` and an optional `Validity`. It is encoded into
    the protected header of a signed CoRIM.
- `corim.signedcorim`
  - `SignedCorim.sign(signer)` validates the unsigned CoRIM and returns the
    COSE_Sign1 bytes. The protected header carries the algorithm, the
    content type `application/rim+cbor` and the CBOR-encoded `Meta`.
  - `SignedCorim.from_cose(data)` decodes an envelope, checks its headers
    and validates the payload. A leading `#6.500(#6.502(...))` prefix is
    accepted and stripped.
  - `SignedCorim.verify(public_key)` checks the signature. It raises
    `ValueError("verification error")` when the signature does not match.
  - `new_signer_from_jwk` builds a `CoseSigner` from a private JWK.
    `new_public_key_from_jwk` returns the matching public key.
  - Supported algorithms: ES256, ES384, ES512 (EC keys on P-256, P-384 and
    P-521), EdDSA (Ed25519), and PS256, PS384 and PS512 (RSA keys whose JWK
    names the algorithm).
- `corim.profiles`
  - `register_profile`, `unregister_profile` and `get_profile` link an EAT
    profile id to a map of extensions. A profile is returned as a
    `CorimProfile`.
  - `get_unsigned_corim` and `get_signed_corim` return new objects with the
    profile's extensions already registered.
  - `unmarshal_unsigned_corim_from_cbor`, `unmarshal_unsigned_corim_from_json`
    and `unmarshal_signed_corim_from_cbor` read the profile from the data.
    They register its extensions, then decode.
- `corim.extensions`
  - `ExtensionPoint` names where extensions may attach: `UNSIGNED_CORIM`,
    `ENTITY` and `SIGNER`.
  - `Extensions` holds one registered extension value. The value is a
    dataclass instance whose field metadata may give a `cbor` key, a `json`
    name and `omitempty`.
  - If the value defines `constrain_entity`, `constrain_corim` or
    `constrain_signer`, that method is called during validation.
  - Registering at a point that is not accepted raises `UnexpectedPointError`.
- `corim.cbor`
  - `encode` and `decode` handle definite-length CBOR with the package's tag
    registry. Tag 32 is `TaggedURI`, and times use tag 1.
  - `register_tag` adds new tagged types.
  - `is_absolute_uri` checks that a URI is absolute.

## Example

```python
from datetime import datetime, timedelta, timezone

from corim.meta import Meta
from corim.role import MANIFEST_CREATOR
from corim.signedcorim import SignedCorim, new_public_key_from_jwk, new_signer_from_jwk
from corim.unsignedcorim import UnsignedCorim

with open("comid.cbor", "rb") as f:       # an already encoded CoMID
    comid_cbor = f.read()
with open("signing-key.jwk", "rb") as f:  # a private JWK, e.g. an EC P-256 key
    jwk = f.read()

unsigned = (
    UnsignedCorim()
    .set_id("example corim id")
    .add_tag(b"\xd9\x01\xfa" + comid_cbor)   # tag 506 marks a CoMID
    .add_entity("ACME Ltd.", "https://acme.example", MANIFEST_CREATOR)
)

meta = Meta().set_signer("ACME Ltd.").set_validity(
    datetime.now(timezone.utc) + timedelta(days=365)
)

envelope = SignedCorim(unsigned_corim=unsigned, meta=meta).sign(new_signer_from_jwk(jwk))

received = SignedCorim().from_cose(envelope)
received.verify(new_public_key_from_jwk(jwk))
print(received.unsigned_corim.get_id())
```

Errors are raised as exceptions, mostly `ValueError`, with messages that name
the field or the position at fault.

## What this package does not do

- It does not build, parse or validate the contents of the tags it carries:
  CoMIDs, CoSWIDs and CoTS. `UnsignedCorim.add_tag` takes bytes that are
  already encoded and already tagged, and validation only checks that each
  tag is not empty.
- It has no command-line tool.
- It does not fetch dependent RIMs.