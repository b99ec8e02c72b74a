"""Shared key material for the test suite."""

from pathlib import Path

import sys

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Fixed secp256k1 key: 32 ASCII zeros
ETHEREUM_KEY = b"0" * 32

# Fixed Ed25519 seed
ED25519_SEED = bytes(range(32))


@pytest.fixture(scope="session")
def arweave_key():
    """RSA-4096 generation is slow, so one key serves the whole session."""
    return rsa.generate_private_key(public_exponent=65537, key_size=4096)


@pytest.fixture
def ethereum_key():
    return ETHEREUM_KEY


@pytest.fixture
def ed25519_seed():
    return ED25519_SEED
