from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


IDLE_MESSAGE = "Ready to create a liquidity position."


class LaunchPhase(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    INITIALIZING_POOL = "initializing_pool"
    CHECKING_APPROVALS = "checking_approvals"
    APPROVING_TOKEN0 = "approving_token0"
    APPROVING_TOKEN1 = "approving_token1"
    MINTING_POSITION = "minting_position"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (LaunchPhase.COMPLETED, LaunchPhase.FAILED)

    @property
    def is_active(self) -> bool:
        return self not in (LaunchPhase.IDLE, LaunchPhase.COMPLETED, LaunchPhase.FAILED)


class TransactionKind(str, Enum):
    INITIALIZE_POOL = "initialize_pool"
    APPROVE_TOKEN0 = "approve_token0"
    APPROVE_TOKEN1 = "approve_token1"
    MINT_POSITION = "mint_position"


class ContractKind(str, Enum):
    ERC20 = "erc20"
    POSITION_MANAGER = "position_manager"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    SUBMISSION = "submission"
    CONFIRMATION = "confirmation"
    READ = "read"
    INTERNAL = "internal"


@dataclass(frozen=True)
class LaunchRequest:
    token_a: str
    token_b: str
    fee_tier: int
    amount_a: str
    amount_b: str
    tick_lower: str
    tick_upper: str


@dataclass(frozen=True)
class TokenMetadata:
    address: str
    decimals: int
    symbol: str


@dataclass(frozen=True)
class CanonicalPair:
    token0: str
    token1: str
    swapped: bool


@dataclass(frozen=True)
class ApprovalState:
    token0_needs_approval: bool
    token1_needs_approval: bool

    @property
    def approvals_needed(self) -> int:
        return int(self.token0_needs_approval) + int(self.token1_needs_approval)


@dataclass(frozen=True)
class LaunchConfig:
    position_manager_address: str
    initial_sqrt_price_x96: int = 2**96
    deadline_seconds: int = 1200
    slippage_bps: int | None = None


@dataclass(frozen=True)
class ContractCall:
    contract: ContractKind
    address: str
    function_name: str
    args: tuple[Any, ...]
    value: int = 0


@dataclass(frozen=True)
class ReceiptLog:
    address: str
    topics: tuple[str, ...]
    data: str


@dataclass(frozen=True)
class TransactionReceipt:
    tx_hash: str
    status: int
    block_number: int | None = None
    to: str | None = None
    logs: tuple[ReceiptLog, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status == 1


@dataclass(frozen=True)
class SubmittedTransaction:
    kind: TransactionKind
    tx_hash: str


@dataclass(frozen=True)
class LaunchRun:
    request: LaunchRequest
    owner: str
    token_a: TokenMetadata
    token_b: TokenMetadata

    @property
    def pool_key(self) -> str:
        return f"{self.request.token_a}-{self.request.token_b}-{self.request.fee_tier}"


@dataclass(frozen=True)
class OrchestrationState:
    phase: LaunchPhase = LaunchPhase.IDLE
    run: LaunchRun | None = None
    in_flight: TransactionKind | None = None
    confirming: bool = False
    tx_hash: str | None = None
    approvals: ApprovalState | None = None
    message: str = IDLE_MESSAGE
    error: str | None = None
    error_kind: ErrorKind | None = None
    position_id: int | None = None
    position_id_unknown: bool = False
    history: tuple[LaunchPhase, ...] = (LaunchPhase.IDLE,)
    transactions: tuple[SubmittedTransaction, ...] = field(default_factory=tuple)
