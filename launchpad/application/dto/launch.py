from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LaunchInput:
    token_a: str
    token_b: str
    fee_tier: int
    amount_a: str
    amount_b: str
    tick_lower: str | None = None
    tick_upper: str | None = None


@dataclass(frozen=True)
class SubmittedTransactionOutput:
    kind: str
    tx_hash: str


@dataclass(frozen=True)
class LaunchSnapshot:
    phase: str
    loading: bool
    message: str
    error: str | None
    error_kind: str | None
    tx_hash: str | None
    position_id: int | None
    position_id_unknown: bool
    pool_key: str | None
    history: list[str]
    transactions: list[SubmittedTransactionOutput]


@dataclass(frozen=True)
class DefaultRangeOutput:
    fee_tier: int
    tick_spacing: int
    tick_lower: int
    tick_upper: int
