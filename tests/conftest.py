"""
Shared fixtures for PySignNote tests.
"""
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from tortoise.contrib.fastapi import RegisterTortoise

from pysignnote.keystore import Identity


def make_identity(private_key: rsa.RSAPrivateKey) -> Identity:
    return Identity(
        private_key=private_key,
        public_key=private_key.public_key(),
        created_at="2026-01-01T00:00:00+00:00",
    )


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def identity(rsa_key):
    return make_identity(rsa_key)


@pytest.fixture(scope="session")
def other_identity(other_rsa_key):
    return make_identity(other_rsa_key)


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory trusted keys database."""
    async with RegisterTortoise(
        db_url="sqlite://:memory:",
        modules={"models": ["pysignnote.database"]},
        generate_schemas=True,
    ):
        yield


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def client(data_dir):
    """Test client running the full lifespan against a temporary data dir."""
    from main import create_app

    with TestClient(create_app(data_dir=data_dir)) as test_client:
        yield test_client
