"""Signature schemes, one per chain family, and the registry that dispatches them."""

from .aptos import MultiAptosKey, MultiAptosScheme
from .arweave import ArweaveScheme
from .base import SignatureScheme
from .ed25519 import Ed25519Scheme, InjectedAptosScheme, SolanaScheme
from .ethereum import EthereumScheme, TypedEthereumScheme
from .registry import DEFAULT_REGISTRY, SchemeRegistry

__all__ = [
    "SignatureScheme",
    "SchemeRegistry",
    "DEFAULT_REGISTRY",
    "ArweaveScheme",
    "Ed25519Scheme",
    "EthereumScheme",
    "SolanaScheme",
    "InjectedAptosScheme",
    "MultiAptosScheme",
    "MultiAptosKey",
    "TypedEthereumScheme",
]
