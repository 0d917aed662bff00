from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal, Union

from launchpad.domain.entities.launch import (
    ContractCall,
    LaunchRequest,
    TokenMetadata,
    TransactionKind,
    TransactionReceipt,
)


# Events fed into the state machine.


@dataclass(frozen=True)
class LaunchRequested:
    request: LaunchRequest
    owner: str | None
    metadata: Mapping[str, TokenMetadata] = field(default_factory=dict)
    read_errors: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TransactionSubmitted:
    kind: TransactionKind
    tx_hash: str


@dataclass(frozen=True)
class TransactionConfirmed:
    kind: TransactionKind
    receipt: TransactionReceipt


@dataclass(frozen=True)
class TransactionFailed:
    kind: TransactionKind
    stage: Literal["submission", "confirmation"]
    reason: str


@dataclass(frozen=True)
class TokenStateRead:
    allowance0: int
    allowance1: int
    balance0: int
    balance1: int


@dataclass(frozen=True)
class TokenStateReadFailed:
    reason: str


@dataclass(frozen=True)
class StepCrashed:
    reason: str


@dataclass(frozen=True)
class ResetRequested:
    pass


LaunchEvent = Union[
    LaunchRequested,
    TransactionSubmitted,
    TransactionConfirmed,
    TransactionFailed,
    TokenStateRead,
    TokenStateReadFailed,
    StepCrashed,
    ResetRequested,
]


# Effects requested by the state machine.


@dataclass(frozen=True)
class SubmitTransaction:
    kind: TransactionKind
    call: ContractCall


@dataclass(frozen=True)
class AwaitConfirmation:
    kind: TransactionKind
    tx_hash: str


@dataclass(frozen=True)
class ReadTokenState:
    owner: str
    spender: str
    token0: str
    token1: str


LaunchEffect = Union[SubmitTransaction, AwaitConfirmation, ReadTokenState]
