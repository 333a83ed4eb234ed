"""
Tests for RSA/SHA-256 signing.
"""
from datetime import datetime, timezone

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ed25519, padding

from pysignnote import codec, signer
from pysignnote.codec import SignedMessage
from pysignnote.errors import SigningFailed


def test_signature_verifies_with_public_key(rsa_key):
    payload = b"2026-10-17T12:30:05+00:00 hello"
    signature = signer.sign(rsa_key, payload)
    assert len(signature) == 256
    # raises InvalidSignature on mismatch
    rsa_key.public_key().verify(signature, payload, padding.PKCS1v15(), hashes.SHA256())


def test_non_rsa_key_fails():
    with pytest.raises(SigningFailed):
        signer.sign(ed25519.Ed25519PrivateKey.generate(), b"payload")


def test_garbage_key_fails():
    with pytest.raises(SigningFailed):
        signer.sign(b"not a key", b"payload")


def test_sign_message_produces_wire_format(identity):
    now = datetime(2026, 10, 17, 12, 30, 5, tzinfo=timezone.utc)
    wire = signer.sign_message(identity, "hello", now)

    parsed = codec.parse(wire)
    assert isinstance(parsed, SignedMessage)
    assert parsed.payload == b"2026-10-17T12:30:05+00:00 hello"
    identity.public_key.verify(parsed.signature, parsed.payload, padding.PKCS1v15(), hashes.SHA256())
