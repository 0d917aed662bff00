from __future__ import annotations

import pytest
from eth_abi import encode

from launchpad.application.dto.launch import LaunchInput
from launchpad.application.use_cases.launch_orchestrator import LaunchOrchestrator
from launchpad.application.use_cases.token_metadata import TokenMetadataResolver
from launchpad.domain.entities.launch import ContractCall, LaunchConfig, ReceiptLog, TransactionReceipt
from launchpad.domain.exceptions import (
    ChainReadError,
    LaunchInProgressError,
    TransactionConfirmationError,
    TransactionSubmissionError,
)
from launchpad.domain.services.position_events import INCREASE_LIQUIDITY_TOPIC
from launchpad.domain.services.univ3_math import MAX_UINT256


OWNER = "0x" + "1" * 40
TOKEN_A = "0x" + "b" * 40
TOKEN_B = "0x" + "a" * 40
POSITION_MANAGER = "0x1238536071E1c677A632429e3655c799b22cDA52"
NOW = 1_700_000_000
AMOUNT_A = 1_500_000_000_000_000_000
AMOUNT_B = 100_000_000


class FakeChainReader:
    def __init__(self, *, allowances=None, balances=None, failing=()):
        self.tokens = {TOKEN_A: (18, "AAA"), TOKEN_B: (6, "BBB")}
        self.allowances = dict(allowances or {})
        self.balances = dict(balances or {TOKEN_A: 10**30, TOKEN_B: 10**30})
        self.failing = set(failing)

    def get_decimals(self, *, token_address: str) -> int:
        return self._token(token_address)[0]

    def get_symbol(self, *, token_address: str) -> str:
        return self._token(token_address)[1]

    def get_allowance(self, *, token_address: str, owner: str, spender: str) -> int:
        _ = owner, spender
        self._check("get_allowance")
        return self.allowances.get(token_address.lower(), 0)

    def get_balance(self, *, token_address: str, owner: str) -> int:
        _ = owner
        self._check("get_balance")
        return self.balances.get(token_address.lower(), 0)

    def _token(self, token_address: str) -> tuple[int, str]:
        token = self.tokens.get(token_address.lower())
        if token is None:
            raise ChainReadError(f"decimals() failed for {token_address}: execution reverted")
        return token

    def _check(self, name: str) -> None:
        if name in self.failing:
            raise ChainReadError(f"{name} failed: connection refused")


class FakeWallet:
    def __init__(
        self,
        chain: FakeChainReader,
        *,
        account: str | None = OWNER,
        position_id: int | None = 42,
        fail_submit=(),
        fail_confirm=(),
        revert=(),
        on_wait=None,
    ):
        self.chain = chain
        self.account = account
        self.position_id = position_id
        self.fail_submit = set(fail_submit)
        self.fail_confirm = set(fail_confirm)
        self.revert = set(revert)
        self.on_wait = on_wait
        self.calls: list[ContractCall] = []
        self._pending: dict[str, ContractCall] = {}

    def get_account(self) -> str | None:
        return self.account

    def submit_transaction(self, *, call: ContractCall) -> str:
        if call.function_name in self.fail_submit:
            raise TransactionSubmissionError("User rejected the request.")
        self.calls.append(call)
        tx_hash = "0x" + format(len(self.calls), "064x")
        self._pending[tx_hash] = call
        return tx_hash

    def wait_for_receipt(self, *, tx_hash: str) -> TransactionReceipt:
        if self.on_wait is not None:
            self.on_wait()
        call = self._pending.pop(tx_hash)
        if call.function_name in self.fail_confirm:
            raise TransactionConfirmationError(f"Timed out after 120s waiting for {tx_hash}.")
        if call.function_name in self.revert:
            return TransactionReceipt(tx_hash=tx_hash, status=0, block_number=len(self.calls))
        if call.function_name == "approve":
            self.chain.allowances[call.address.lower()] = call.args[1]
        logs = ()
        if call.function_name == "mint" and self.position_id is not None:
            logs = (
                ReceiptLog(
                    address=POSITION_MANAGER,
                    topics=(INCREASE_LIQUIDITY_TOPIC, "0x" + format(self.position_id, "064x")),
                    data="0x" + encode(["uint128", "uint256", "uint256"], [10**12, AMOUNT_B, AMOUNT_A]).hex(),
                ),
            )
        return TransactionReceipt(tx_hash=tx_hash, status=1, block_number=len(self.calls), logs=logs)

    @property
    def function_names(self) -> list[str]:
        return [call.function_name for call in self.calls]


def _make(chain: FakeChainReader | None = None, *, config: LaunchConfig | None = None, **wallet_kwargs):
    chain = chain or FakeChainReader()
    wallet = FakeWallet(chain, **wallet_kwargs)
    orchestrator = LaunchOrchestrator(
        wallet=wallet,
        chain_reader=chain,
        token_metadata=TokenMetadataResolver(chain_reader=chain),
        config=config or LaunchConfig(position_manager_address=POSITION_MANAGER),
        clock=lambda: NOW,
    )
    return orchestrator, wallet


def _input(**changes) -> LaunchInput:
    values = dict(token_a=TOKEN_A, token_b=TOKEN_B, fee_tier=3000, amount_a="1.5", amount_b="100")
    values.update(changes)
    return LaunchInput(**values)


def test_full_launch_initializes_approves_both_tokens_and_mints():
    orchestrator, wallet = _make()

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "completed"
    assert snapshot.loading is False
    assert snapshot.position_id == 42
    assert snapshot.position_id_unknown is False
    assert snapshot.message == "Position created successfully!"
    assert snapshot.pool_key == f"{TOKEN_A}-{TOKEN_B}-3000"
    assert snapshot.history == [
        "idle",
        "validating",
        "initializing_pool",
        "checking_approvals",
        "approving_token0",
        "approving_token1",
        "minting_position",
        "completed",
    ]
    assert [tx.kind for tx in snapshot.transactions] == [
        "initialize_pool",
        "approve_token0",
        "approve_token1",
        "mint_position",
    ]

    init, approve0, approve1, mint = wallet.calls
    assert init.args == (TOKEN_B, TOKEN_A, 3000, 2**96)
    assert (approve0.address, approve0.args) == (TOKEN_B, (POSITION_MANAGER, MAX_UINT256))
    assert (approve1.address, approve1.args) == (TOKEN_A, (POSITION_MANAGER, MAX_UINT256))
    assert mint.args == (
        (TOKEN_B, TOKEN_A, 3000, -6000, 6000, AMOUNT_B, AMOUNT_A, 0, 0, OWNER, NOW + 1200),
    )


def test_preset_token0_allowance_only_approves_token1():
    orchestrator, wallet = _make(FakeChainReader(allowances={TOKEN_B: MAX_UINT256}))

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "completed"
    assert wallet.function_names == ["createAndInitializePoolIfNecessary", "approve", "mint"]
    assert wallet.calls[1].address == TOKEN_A
    assert "approving_token0" not in snapshot.history


def test_sufficient_allowances_skip_approvals():
    orchestrator, wallet = _make(FakeChainReader(allowances={TOKEN_A: AMOUNT_A, TOKEN_B: AMOUNT_B}))

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "completed"
    assert wallet.function_names == ["createAndInitializePoolIfNecessary", "mint"]


def test_inverted_ticks_fail_without_transactions():
    orchestrator, wallet = _make()

    snapshot = orchestrator.start(_input(tick_lower="600", tick_upper="-600"))

    assert snapshot.phase == "failed"
    assert snapshot.error_kind == "validation"
    assert snapshot.error.startswith("Tick range invalid")
    assert snapshot.history == ["idle", "validating", "failed"]
    assert wallet.calls == []


def test_default_ticks_follow_fee_tier():
    orchestrator, wallet = _make()

    orchestrator.start(_input(fee_tier=500))

    mint_params = wallet.calls[-1].args[0]
    assert (mint_params[3], mint_params[4]) == (-1000, 1000)


def test_missing_mint_event_still_completes():
    orchestrator, _ = _make(position_id=None)

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "completed"
    assert snapshot.position_id is None
    assert snapshot.position_id_unknown is True
    assert "Position id unknown" in snapshot.message


def test_second_run_reuses_pool_and_allowances():
    orchestrator, wallet = _make()
    orchestrator.start(_input())

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "completed"
    assert snapshot.history[0] == "idle"
    assert [tx.kind for tx in snapshot.transactions] == ["initialize_pool", "mint_position"]
    assert wallet.function_names[4:] == ["createAndInitializePoolIfNecessary", "mint"]


def test_reset_drops_results_of_abandoned_run():
    chain = FakeChainReader()
    orchestrator, wallet = _make(chain)
    wallet.on_wait = orchestrator.reset

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "idle"
    assert snapshot.history == ["idle"]
    assert snapshot.transactions == []
    assert wallet.function_names == ["createAndInitializePoolIfNecessary"]

    wallet.on_wait = None
    assert orchestrator.start(_input()).phase == "completed"


def test_submit_without_resume_blocks_a_second_launch():
    orchestrator, wallet = _make()

    pending = orchestrator.submit(_input())

    assert pending.phase == "initializing_pool"
    assert pending.loading is True
    assert wallet.calls == []
    with pytest.raises(LaunchInProgressError):
        orchestrator.submit(_input())

    assert orchestrator.resume().phase == "completed"


def test_wallet_not_connected():
    orchestrator, wallet = _make(account=None)

    snapshot = orchestrator.start(_input())

    assert snapshot.error == "Please connect your wallet first."
    assert wallet.calls == []


def test_token_read_error_is_reported_by_slot():
    chain = FakeChainReader()
    del chain.tokens[TOKEN_B]
    orchestrator, _ = _make(chain)

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "failed"
    assert snapshot.error.startswith("Failed to load Token B details:")


def test_rejected_pool_initialization():
    orchestrator, _ = _make(fail_submit={"createAndInitializePoolIfNecessary"})

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "failed"
    assert snapshot.error_kind == "submission"
    assert snapshot.message == "Pool initialization failed: User rejected the request."
    assert snapshot.transactions == []


def test_unconfirmed_mint():
    orchestrator, _ = _make(fail_confirm={"mint"})

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "failed"
    assert snapshot.error_kind == "confirmation"
    assert snapshot.message.startswith("Position mint failed: Timed out")
    assert len(snapshot.transactions) == 4


def test_reverted_approval():
    orchestrator, wallet = _make(revert={"approve"})

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "failed"
    assert snapshot.error_kind == "confirmation"
    assert snapshot.message.startswith("Token approval failed:")
    assert wallet.function_names == ["createAndInitializePoolIfNecessary", "approve"]


def test_allowance_read_failure():
    orchestrator, _ = _make(FakeChainReader(failing={"get_allowance"}))

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "failed"
    assert snapshot.error_kind == "read"
    assert snapshot.message.startswith("Failed during approval check:")


def test_insufficient_balance():
    orchestrator, wallet = _make(FakeChainReader(balances={TOKEN_A: 1, TOKEN_B: AMOUNT_B}))

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "failed"
    assert snapshot.error.startswith("Insufficient AAA balance")
    assert wallet.function_names == ["createAndInitializePoolIfNecessary"]


def test_unexpected_wallet_error_fails_the_run():
    orchestrator, wallet = _make()

    def explode(*, call):
        raise RuntimeError("boom")

    wallet.submit_transaction = explode

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "failed"
    assert snapshot.error_kind == "internal"
    assert snapshot.message == "Unexpected error: boom"


def test_initial_snapshot_is_idle():
    orchestrator, _ = _make()

    snapshot = orchestrator.snapshot()

    assert snapshot.phase == "idle"
    assert snapshot.loading is False
    assert snapshot.message == "Ready to create a liquidity position."
    assert snapshot.pool_key is None


def test_preset_token1_allowance_only_approves_token0():
    orchestrator, wallet = _make(FakeChainReader(allowances={TOKEN_A: MAX_UINT256}))

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "completed"
    assert wallet.function_names == ["createAndInitializePoolIfNecessary", "approve", "mint"]
    assert wallet.calls[1].address == TOKEN_B
    assert "approving_token0" in snapshot.history
    assert "approving_token1" not in snapshot.history


def test_error_inside_a_transition_fails_the_run_instead_of_hanging():
    orchestrator, wallet = _make(
        FakeChainReader(allowances={TOKEN_A: MAX_UINT256, TOKEN_B: MAX_UINT256}),
        config=LaunchConfig(position_manager_address=POSITION_MANAGER, slippage_bps=20_000),
    )

    snapshot = orchestrator.start(_input())

    assert snapshot.phase == "failed"
    assert snapshot.loading is False
    assert snapshot.error_kind == "internal"
    assert snapshot.message.startswith("Unexpected error:")
    assert wallet.function_names == ["createAndInitializePoolIfNecessary"]
    assert orchestrator.start(_input()).phase == "failed"


def test_reset_clears_token_metadata_cache():
    chain = FakeChainReader()
    resolver = TokenMetadataResolver(chain_reader=chain)
    orchestrator = LaunchOrchestrator(
        wallet=FakeWallet(chain),
        chain_reader=chain,
        token_metadata=resolver,
        config=LaunchConfig(position_manager_address=POSITION_MANAGER),
        clock=lambda: NOW,
    )
    orchestrator.start(_input())
    assert resolver.cached(TOKEN_A) is not None

    snapshot = orchestrator.reset()

    assert snapshot.phase == "idle"
    assert snapshot.message == "Ready to create a liquidity position."
    assert resolver.cached(TOKEN_A) is None
    assert resolver.cached(TOKEN_B) is None
