from __future__ import annotations

from typing import TypeVar

from launchpad.domain.entities.launch import CanonicalPair


T = TypeVar("T")


def same_address(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


def canonicalize_pair(token_a: str, token_b: str) -> CanonicalPair:
    if same_address(token_a, token_b):
        raise ValueError("token_a and token_b must be different.")
    if token_a.lower() < token_b.lower():
        return CanonicalPair(token0=token_a, token1=token_b, swapped=False)
    return CanonicalPair(token0=token_b, token1=token_a, swapped=True)


def order_amounts(pair: CanonicalPair, amount_a: T, amount_b: T) -> tuple[T, T]:
    if pair.swapped:
        return amount_b, amount_a
    return amount_a, amount_b
