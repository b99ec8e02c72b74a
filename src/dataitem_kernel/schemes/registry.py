"""
Signature scheme registry.

A registry is an immutable table built once from a fixed list of scheme
instances. It only dispatches: all chain-specific logic lives in the
scheme classes. Unknown codes or names raise UnsupportedSignatureScheme;
there is no fallback scheme.
"""

from types import MappingProxyType
from typing import Iterable, Iterator

from ..errors import UnsupportedSignatureScheme
from .aptos import MultiAptosScheme
from .arweave import ArweaveScheme
from .base import SignatureScheme
from .ed25519 import Ed25519Scheme, InjectedAptosScheme, SolanaScheme
from .ethereum import EthereumScheme, TypedEthereumScheme


class SchemeRegistry:
    """Read-only lookup of signature schemes by type code and by name."""

    def __init__(self, schemes: Iterable[SignatureScheme]):
        by_type: dict[int, SignatureScheme] = {}
        by_name: dict[str, SignatureScheme] = {}
        for scheme in schemes:
            if not 0 <= scheme.signature_type <= 0xFFFF:
                raise ValueError(f"Signature type {scheme.signature_type} does not fit in u16")
            if scheme.signature_type in by_type:
                raise ValueError(f"Duplicate signature type {scheme.signature_type}")
            if scheme.name.lower() in by_name:
                raise ValueError(f"Duplicate scheme name {scheme.name!r}")
            by_type[scheme.signature_type] = scheme
            by_name[scheme.name.lower()] = scheme
        self._by_type = MappingProxyType(by_type)
        self._by_name = MappingProxyType(by_name)

    def by_type(self, signature_type: int) -> SignatureScheme:
        try:
            return self._by_type[signature_type]
        except KeyError:
            raise UnsupportedSignatureScheme(
                f"Unsupported signature type: {signature_type}",
                signature_type=signature_type,
            ) from None

    def by_name(self, name: str) -> SignatureScheme:
        try:
            return self._by_name[name.lower()]
        except (KeyError, AttributeError):
            raise UnsupportedSignatureScheme(
                f"Unsupported signature scheme: {name!r}",
                name=name,
            ) from None

    def resolve(self, selector: int | str | SignatureScheme) -> SignatureScheme:
        """Look up a scheme by type code, name, or return a registered instance."""
        if isinstance(selector, SignatureScheme):
            return self.by_type(selector.signature_type)
        if isinstance(selector, bool):
            raise UnsupportedSignatureScheme(f"Unsupported signature scheme: {selector!r}")
        if isinstance(selector, int):
            return self.by_type(selector)
        return self.by_name(selector)

    def types(self) -> list[int]:
        return sorted(self._by_type)

    def __contains__(self, signature_type: object) -> bool:
        return signature_type in self._by_type

    def __iter__(self) -> Iterator[SignatureScheme]:
        return iter(self._by_type[code] for code in sorted(self._by_type))

    def __len__(self) -> int:
        return len(self._by_type)


DEFAULT_REGISTRY = SchemeRegistry([
    ArweaveScheme(),
    Ed25519Scheme(),
    EthereumScheme(),
    SolanaScheme(),
    InjectedAptosScheme(),
    MultiAptosScheme(),
    TypedEthereumScheme(),
])
