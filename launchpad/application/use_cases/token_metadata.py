from __future__ import annotations

import logging
from threading import Lock

from web3 import Web3

from launchpad.application.ports.chain_reader_port import ChainReaderPort
from launchpad.domain.entities.launch import TokenMetadata
from launchpad.domain.exceptions import ChainReadError


logger = logging.getLogger(__name__)


TOKEN_SLOTS = ("token_a", "token_b")


class TokenMetadataResolver:
    """Le decimals/symbol por endereco de token sob demanda e guarda em cache.

    Entradas sao indexadas pelo endereco em minusculas. Selecionar um novo
    endereco para um slot do formulario descarta a entrada do endereco anterior.
    """

    def __init__(self, *, chain_reader: ChainReaderPort):
        self._chain_reader = chain_reader
        self._lock = Lock()
        self._cache: dict[str, TokenMetadata] = {}
        self._errors: dict[str, str] = {}
        self._slots: dict[str, str] = {}

    def select(self, *, slot: str, address: str) -> TokenMetadata:
        if slot not in TOKEN_SLOTS:
            raise ValueError(f"slot must be one of: {', '.join(TOKEN_SLOTS)}.")
        if not Web3.is_address(address.strip()):
            raise ValueError("Invalid token address.")
        key = address.strip().lower()
        with self._lock:
            previous = self._slots.get(slot)
            if previous is not None and previous != key:
                self._drop(previous)
            self._slots[slot] = key
        return self.resolve(address)

    def resolve(self, address: str) -> TokenMetadata:
        key = address.strip().lower()
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            decimals = self._chain_reader.get_decimals(token_address=address.strip())
            symbol = self._chain_reader.get_symbol(token_address=address.strip())
        except ChainReadError as exc:
            with self._lock:
                self._errors[key] = str(exc)
            logger.warning("token_metadata: read_failed address=%s error=%s", key, exc)
            raise

        metadata = TokenMetadata(address=address.strip(), decimals=int(decimals), symbol=symbol)
        with self._lock:
            self._cache[key] = metadata
            self._errors.pop(key, None)
        logger.info("token_metadata: resolved address=%s symbol=%s decimals=%s", key, symbol, decimals)
        return metadata

    def lookup(self, addresses: list[str]) -> tuple[dict[str, TokenMetadata], dict[str, str]]:
        """Resolve o que for possivel; falhas de leitura sao reportadas, nao lancadas."""
        metadata: dict[str, TokenMetadata] = {}
        errors: dict[str, str] = {}
        for address in addresses:
            key = (address or "").strip().lower()
            if not key or not Web3.is_address(address.strip()):
                continue
            try:
                metadata[key] = self.resolve(address)
            except ChainReadError as exc:
                errors[key] = str(exc)
        return metadata, errors

    def cached(self, address: str) -> TokenMetadata | None:
        with self._lock:
            return self._cache.get(address.strip().lower())

    def invalidate(self, address: str) -> None:
        with self._lock:
            self._drop(address.strip().lower())

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._errors.clear()
            self._slots.clear()

    def _drop(self, key: str) -> None:
        self._cache.pop(key, None)
        self._errors.pop(key, None)
