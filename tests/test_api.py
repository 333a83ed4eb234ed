"""
Tests for the JSON API, running the whole app through its lifespan.
"""
import base64
import hashlib

from cryptography.hazmat.primitives import serialization
from fastapi.testclient import TestClient

from main import create_app
from pysignnote.keystore import PRIVATE_KEY_NAME, PUBLIC_KEY_NAME, SecretStore


def load(client, raw):
    response = client.post("/api/load", json={"input": raw})
    assert response.status_code == 200
    return response.json()


def test_public_key_export(client):
    response = client.get("/api/public-key")
    assert response.status_code == 200
    body = response.json()
    der = base64.b64decode(body["publicKey"])
    assert serialization.load_der_public_key(der).key_size == 2048
    assert body["fingerprint"] == hashlib.sha256(der).hexdigest()


def test_sign_and_verify_own_message(client):
    signed = client.post("/api/sign", json={"text": "hello from the api"}).json()["signed"]

    assert load(client, signed)["status"] == "verification_failed"

    own_key = client.get("/api/public-key").json()["publicKey"]
    assert load(client, own_key)["status"] == "imported"

    body = load(client, signed)
    assert body["status"] == "verified"
    assert body["message"].endswith(" hello from the api")
    assert body["detail"] == own_key
    assert body["text"] == "hello from the api"
    assert body["message"] == f"{body['signedAt']} hello from the api"
    assert body["statusLine"].startswith("Signature verified. Decoded message: ")


def test_duplicate_import(client):
    own_key = client.get("/api/public-key").json()["publicKey"]
    assert load(client, own_key)["status"] == "imported"
    assert load(client, own_key)["status"] == "already_trusted"
    assert client.get("/api/trusted-keys").json() == {"keys": [own_key]}


def test_load_classifies_bad_input(client):
    assert load(client, "MTIzNDU2")["status"] == "invalid_format"
    assert load(client, "!!:MTIz")["status"] == "invalid_encoding"


def test_missing_fields_are_rejected(client):
    assert client.post("/api/sign", json={}).status_code == 400
    assert client.post("/api/load", json={"input": 42}).status_code == 400


def test_identity_and_trust_survive_restart(data_dir):
    with TestClient(create_app(data_dir=data_dir)) as first:
        key = first.get("/api/public-key").json()["publicKey"]
        load(first, key)
        signed = first.post("/api/sign", json={"text": "persisted"}).json()["signed"]

    with TestClient(create_app(data_dir=data_dir)) as second:
        assert second.get("/api/public-key").json()["publicKey"] == key
        assert load(second, signed)["status"] == "verified"


def test_corrupt_identity_disables_signing_only(data_dir, identity):
    secrets = SecretStore(data_dir / "identity.json", data_dir / "master.key")
    secrets.put(PRIVATE_KEY_NAME, base64.b64encode(b"corrupted").decode())
    secrets.put(PUBLIC_KEY_NAME, identity.export_public_key())

    with TestClient(create_app(data_dir=data_dir)) as client:
        assert client.get("/api/public-key").status_code == 503
        response = client.post("/api/sign", json={"text": "nope"})
        assert response.status_code == 503
        assert "Identity unavailable" in response.json()["detail"]

        assert load(client, identity.export_public_key())["status"] == "imported"

    # The broken identity is left in place for the operator to repair
    assert secrets.get(PRIVATE_KEY_NAME) == base64.b64encode(b"corrupted").decode()


def test_request_handlers_reach_the_database(client):
    assert client.get("/api/trusted-keys").json() == {"keys": []}
    assert client.get("/").status_code == 200


def test_unwritable_identity_store_keeps_app_serving(data_dir, monkeypatch, identity):
    def refuse(*args):
        raise OSError("read-only file system")

    monkeypatch.setattr("pysignnote.keystore.os.replace", refuse)
    with TestClient(create_app(data_dir=data_dir)) as client:
        response = client.get("/api/public-key")
        assert response.status_code == 503
        assert "could not be saved" in response.json()["detail"]
        assert client.get("/").status_code == 200
        assert load(client, identity.export_public_key())["status"] == "imported"
