from __future__ import annotations

import pytest

from launchpad.application.use_cases.token_metadata import TokenMetadataResolver
from launchpad.domain.exceptions import ChainReadError


TOKEN_A = "0x" + "b" * 40
TOKEN_B = "0x" + "a" * 40
TOKEN_C = "0x" + "c" * 40


class FakeChainReader:
    def __init__(self):
        self.tokens = {TOKEN_A: (18, "AAA"), TOKEN_B: (6, "BBB"), TOKEN_C: (8, "CCC")}
        self.reads = 0

    def get_decimals(self, *, token_address: str) -> int:
        self.reads += 1
        return self._token(token_address)[0]

    def get_symbol(self, *, token_address: str) -> str:
        return self._token(token_address)[1]

    def _token(self, token_address: str) -> tuple[int, str]:
        token = self.tokens.get(token_address.lower())
        if token is None:
            raise ChainReadError(f"decimals() failed for {token_address}: execution reverted")
        return token


def test_resolve_reads_once_and_caches_by_lowercase_address():
    chain = FakeChainReader()
    resolver = TokenMetadataResolver(chain_reader=chain)

    first = resolver.resolve(TOKEN_A)
    second = resolver.resolve(TOKEN_A.upper().replace("0X", "0x"))

    assert first == second
    assert (first.symbol, first.decimals) == ("AAA", 18)
    assert chain.reads == 1


def test_selecting_a_new_token_drops_the_previous_slot_entry():
    chain = FakeChainReader()
    resolver = TokenMetadataResolver(chain_reader=chain)

    resolver.select(slot="token_a", address=TOKEN_A)
    resolver.select(slot="token_b", address=TOKEN_B)
    resolver.select(slot="token_a", address=TOKEN_C)

    assert resolver.cached(TOKEN_A) is None
    assert resolver.cached(TOKEN_B) is not None
    assert resolver.cached(TOKEN_C).symbol == "CCC"


def test_unknown_slot_is_rejected():
    resolver = TokenMetadataResolver(chain_reader=FakeChainReader())
    with pytest.raises(ValueError):
        resolver.select(slot="token_c", address=TOKEN_A)


def test_read_error_propagates_and_is_not_cached():
    chain = FakeChainReader()
    resolver = TokenMetadataResolver(chain_reader=chain)
    missing = "0x" + "d" * 40

    with pytest.raises(ChainReadError):
        resolver.resolve(missing)
    chain.tokens[missing] = (2, "DDD")

    assert resolver.resolve(missing).symbol == "DDD"


def test_lookup_reports_errors_and_skips_invalid_addresses():
    resolver = TokenMetadataResolver(chain_reader=FakeChainReader())
    missing = "0x" + "d" * 40

    metadata, errors = resolver.lookup([TOKEN_A, missing, "0x123", ""])

    assert list(metadata) == [TOKEN_A]
    assert list(errors) == [missing]
    assert "execution reverted" in errors[missing]


def test_invalidate_forces_a_fresh_read():
    chain = FakeChainReader()
    resolver = TokenMetadataResolver(chain_reader=chain)
    resolver.resolve(TOKEN_A)

    resolver.invalidate(TOKEN_A)
    resolver.resolve(TOKEN_A)

    assert chain.reads == 2


def test_select_rejects_malformed_address():
    chain = FakeChainReader()
    resolver = TokenMetadataResolver(chain_reader=chain)

    with pytest.raises(ValueError):
        resolver.select(slot="token_a", address="0x123")
    assert chain.reads == 0
