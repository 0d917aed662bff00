"""Maquina de estados da orquestracao do lancamento.

``transition`` e uma funcao pura de (estado, evento) para (novo estado, efeitos).
O orquestrador executa os efeitos na carteira e no leitor de chain e devolve o
resultado como o proximo evento; nada aqui faz I/O.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from launchpad.domain.entities.launch import (
    ApprovalState,
    CanonicalPair,
    ContractCall,
    ContractKind,
    ErrorKind,
    LaunchConfig,
    LaunchPhase,
    LaunchRun,
    OrchestrationState,
    SubmittedTransaction,
    TokenMetadata,
    TransactionKind,
    TransactionReceipt,
)
from launchpad.domain.entities.launch_events import (
    AwaitConfirmation,
    LaunchEffect,
    LaunchEvent,
    LaunchRequested,
    ReadTokenState,
    ResetRequested,
    StepCrashed,
    SubmitTransaction,
    TokenStateRead,
    TokenStateReadFailed,
    TransactionConfirmed,
    TransactionFailed,
    TransactionSubmitted,
)
from launchpad.domain.exceptions import (
    InvalidTransitionError,
    LaunchValidationError,
    LogParsingError,
)
from launchpad.domain.services.launch_validation import validate_launch
from launchpad.domain.services.pair_orientation import canonicalize_pair, order_amounts, same_address
from launchpad.domain.services.position_events import extract_position_id
from launchpad.domain.services.univ3_math import (
    MAX_UINT256,
    min_amount_with_slippage,
    parse_units,
)


logger = logging.getLogger(__name__)


PHASE_TRANSACTION = {
    LaunchPhase.INITIALIZING_POOL: TransactionKind.INITIALIZE_POOL,
    LaunchPhase.APPROVING_TOKEN0: TransactionKind.APPROVE_TOKEN0,
    LaunchPhase.APPROVING_TOKEN1: TransactionKind.APPROVE_TOKEN1,
    LaunchPhase.MINTING_POSITION: TransactionKind.MINT_POSITION,
}

_STEP_LABELS = {
    TransactionKind.INITIALIZE_POOL: "Pool initialization",
    TransactionKind.APPROVE_TOKEN0: "Token approval",
    TransactionKind.APPROVE_TOKEN1: "Token approval",
    TransactionKind.MINT_POSITION: "Position mint",
}

_WAITING_MESSAGES = {
    TransactionKind.INITIALIZE_POOL: "Initializing pool, waiting for confirmation...",
    TransactionKind.APPROVE_TOKEN0: "Approving token, waiting for confirmation...",
    TransactionKind.APPROVE_TOKEN1: "Approving token, waiting for confirmation...",
    TransactionKind.MINT_POSITION: "Creating position, waiting for confirmation...",
}


@dataclass(frozen=True)
class Transition:
    state: OrchestrationState
    effects: tuple[LaunchEffect, ...] = ()


def transition(
    state: OrchestrationState,
    event: LaunchEvent,
    *,
    config: LaunchConfig,
    now: int,
) -> Transition:
    if isinstance(event, ResetRequested):
        return Transition(OrchestrationState())
    if isinstance(event, LaunchRequested):
        return _on_launch_requested(state, event, config)
    if isinstance(event, StepCrashed) and not state.phase.is_terminal:
        return Transition(_fail(state, f"Unexpected error: {event.reason}", event.reason, ErrorKind.INTERNAL))

    if not state.phase.is_active:
        raise InvalidTransitionError(
            f"{type(event).__name__} is not accepted in phase {state.phase.value}."
        )

    if isinstance(event, TransactionSubmitted):
        return _on_submitted(state, event)
    if isinstance(event, TransactionConfirmed):
        return _on_confirmed(state, event, config, now)
    if isinstance(event, TransactionFailed):
        _expect_in_flight(state, event.kind)
        error_kind = ErrorKind.SUBMISSION if event.stage == "submission" else ErrorKind.CONFIRMATION
        return Transition(
            _fail(state, f"{_STEP_LABELS[event.kind]} failed: {event.reason}", event.reason, error_kind)
        )
    if isinstance(event, TokenStateRead):
        _expect_phase(state, LaunchPhase.CHECKING_APPROVALS, event)
        return _on_token_state(state, event, config, now)
    if isinstance(event, TokenStateReadFailed):
        _expect_phase(state, LaunchPhase.CHECKING_APPROVALS, event)
        return Transition(
            _fail(state, f"Failed during approval check: {event.reason}", event.reason, ErrorKind.READ)
        )

    raise InvalidTransitionError(f"Unknown event {type(event).__name__}.")


def _on_launch_requested(
    state: OrchestrationState,
    event: LaunchRequested,
    config: LaunchConfig,
) -> Transition:
    if state.phase != LaunchPhase.IDLE:
        raise InvalidTransitionError(
            f"A launch can only start from {LaunchPhase.IDLE.value}, not {state.phase.value}."
        )
    validating = _enter(state, LaunchPhase.VALIDATING, message="Validating inputs...")
    try:
        run = validate_launch(
            event.request,
            owner=event.owner,
            metadata=event.metadata,
            read_errors=event.read_errors,
        )
    except LaunchValidationError as exc:
        return Transition(_fail(validating, str(exc), str(exc), ErrorKind.VALIDATION))

    pair = _pair(run)
    initializing = _enter(
        replace(validating, run=run),
        LaunchPhase.INITIALIZING_POOL,
        message="Initializing pool. Please confirm the transaction in your wallet...",
    )
    call = ContractCall(
        contract=ContractKind.POSITION_MANAGER,
        address=config.position_manager_address,
        function_name="createAndInitializePoolIfNecessary",
        args=(pair.token0, pair.token1, run.request.fee_tier, config.initial_sqrt_price_x96),
    )
    return _submit(initializing, TransactionKind.INITIALIZE_POOL, call)


def _on_submitted(state: OrchestrationState, event: TransactionSubmitted) -> Transition:
    _expect_in_flight(state, event.kind)
    if state.confirming:
        raise InvalidTransitionError(f"{event.kind.value} was already submitted as {state.tx_hash}.")
    submitted = replace(
        state,
        confirming=True,
        tx_hash=event.tx_hash,
        message=_WAITING_MESSAGES[event.kind],
        transactions=state.transactions + (SubmittedTransaction(kind=event.kind, tx_hash=event.tx_hash),),
    )
    return Transition(submitted, (AwaitConfirmation(kind=event.kind, tx_hash=event.tx_hash),))


def _on_confirmed(
    state: OrchestrationState,
    event: TransactionConfirmed,
    config: LaunchConfig,
    now: int,
) -> Transition:
    _expect_in_flight(state, event.kind)
    receipt = event.receipt
    if not state.confirming or state.tx_hash is None or receipt.tx_hash.lower() != state.tx_hash.lower():
        raise InvalidTransitionError(
            f"Receipt {receipt.tx_hash} does not belong to the pending transaction {state.tx_hash}."
        )
    if not receipt.succeeded:
        reason = f"transaction {receipt.tx_hash} reverted."
        return Transition(
            _fail(state, f"{_STEP_LABELS[event.kind]} failed: {reason}", reason, ErrorKind.CONFIRMATION)
        )

    settled = replace(state, in_flight=None, confirming=False)
    run = _run(state)
    if state.phase == LaunchPhase.INITIALIZING_POOL:
        pair = _pair(run)
        checking = _enter(settled, LaunchPhase.CHECKING_APPROVALS, message="Pool ready. Checking token approvals...")
        return Transition(
            checking,
            (
                ReadTokenState(
                    owner=run.owner,
                    spender=config.position_manager_address,
                    token0=pair.token0,
                    token1=pair.token1,
                ),
            ),
        )
    if state.phase == LaunchPhase.APPROVING_TOKEN0:
        if state.approvals is not None and state.approvals.token1_needs_approval:
            return _approve(settled, TransactionKind.APPROVE_TOKEN1, config)
        return _mint(settled, config, now)
    if state.phase == LaunchPhase.APPROVING_TOKEN1:
        return _mint(settled, config, now)
    return Transition(_complete(settled, receipt, config))


def _on_token_state(
    state: OrchestrationState,
    event: TokenStateRead,
    config: LaunchConfig,
    now: int,
) -> Transition:
    run = _run(state)
    pair = _pair(run)
    amount0, amount1 = _base_amounts(run, pair)

    for token, balance, required in ((pair.token0, event.balance0, amount0), (pair.token1, event.balance1, amount1)):
        if balance < required:
            symbol = _metadata_for(run, token).symbol
            reason = f"Insufficient {symbol} balance: have {balance}, need {required} (base units)."
            return Transition(_fail(state, reason, reason, ErrorKind.VALIDATION))

    approvals = ApprovalState(
        token0_needs_approval=event.allowance0 < amount0,
        token1_needs_approval=event.allowance1 < amount1,
    )
    checked = replace(state, approvals=approvals)
    if approvals.token0_needs_approval:
        return _approve(checked, TransactionKind.APPROVE_TOKEN0, config)
    if approvals.token1_needs_approval:
        return _approve(checked, TransactionKind.APPROVE_TOKEN1, config)
    return _mint(checked, config, now)


def _approve(state: OrchestrationState, kind: TransactionKind, config: LaunchConfig) -> Transition:
    run = _run(state)
    pair = _pair(run)
    if kind == TransactionKind.APPROVE_TOKEN0:
        token, phase = pair.token0, LaunchPhase.APPROVING_TOKEN0
    else:
        token, phase = pair.token1, LaunchPhase.APPROVING_TOKEN1
    symbol = _metadata_for(run, token).symbol
    approving = _enter(state, phase, message=f"Approving {symbol}. Please approve the transaction...")
    call = ContractCall(
        contract=ContractKind.ERC20,
        address=token,
        function_name="approve",
        args=(config.position_manager_address, MAX_UINT256),
    )
    return _submit(approving, kind, call)


def _mint(state: OrchestrationState, config: LaunchConfig, now: int) -> Transition:
    run = _run(state)
    pair = _pair(run)
    amount0, amount1 = _base_amounts(run, pair)
    params = (
        pair.token0,
        pair.token1,
        run.request.fee_tier,
        int(run.request.tick_lower),
        int(run.request.tick_upper),
        amount0,
        amount1,
        min_amount_with_slippage(amount0, config.slippage_bps),
        min_amount_with_slippage(amount1, config.slippage_bps),
        run.owner,
        now + config.deadline_seconds,
    )
    minting = _enter(
        state,
        LaunchPhase.MINTING_POSITION,
        message="Now creating liquidity position. Please approve the transaction...",
    )
    call = ContractCall(
        contract=ContractKind.POSITION_MANAGER,
        address=config.position_manager_address,
        function_name="mint",
        args=(params,),
    )
    return _submit(minting, TransactionKind.MINT_POSITION, call)


def _complete(state: OrchestrationState, receipt: TransactionReceipt, config: LaunchConfig) -> OrchestrationState:
    try:
        position_id = extract_position_id(receipt, config.position_manager_address)
    except LogParsingError as exc:
        logger.warning("launch_state_machine: position_id_unknown tx_hash=%s reason=%s", receipt.tx_hash, exc)
        return _enter(
            state,
            LaunchPhase.COMPLETED,
            position_id=None,
            position_id_unknown=True,
            message="Position created successfully! Position id unknown, verify it in your NFT positions.",
        )
    return _enter(
        state,
        LaunchPhase.COMPLETED,
        position_id=position_id,
        position_id_unknown=False,
        message="Position created successfully!",
    )


def _submit(state: OrchestrationState, kind: TransactionKind, call: ContractCall) -> Transition:
    if state.in_flight is not None:
        raise InvalidTransitionError(f"{state.in_flight.value} is still in flight.")
    pending = replace(state, in_flight=kind, confirming=False)
    return Transition(pending, (SubmitTransaction(kind=kind, call=call),))


def _fail(state: OrchestrationState, message: str, error: str, kind: ErrorKind) -> OrchestrationState:
    return _enter(
        state,
        LaunchPhase.FAILED,
        in_flight=None,
        confirming=False,
        message=message,
        error=error,
        error_kind=kind,
    )


def _enter(state: OrchestrationState, phase: LaunchPhase, **changes) -> OrchestrationState:
    return replace(state, phase=phase, history=state.history + (phase,), **changes)


def _expect_in_flight(state: OrchestrationState, kind: TransactionKind) -> None:
    if state.in_flight != kind or PHASE_TRANSACTION.get(state.phase) != kind:
        raise InvalidTransitionError(
            f"{kind.value} is not the pending transaction in phase {state.phase.value}."
        )


def _expect_phase(state: OrchestrationState, phase: LaunchPhase, event: LaunchEvent) -> None:
    if state.phase != phase:
        raise InvalidTransitionError(
            f"{type(event).__name__} is only accepted in phase {phase.value}, not {state.phase.value}."
        )


def _run(state: OrchestrationState) -> LaunchRun:
    if state.run is None:
        raise InvalidTransitionError(f"Phase {state.phase.value} has no launch run.")
    return state.run


def _pair(run: LaunchRun) -> CanonicalPair:
    return canonicalize_pair(run.request.token_a.strip(), run.request.token_b.strip())


def _base_amounts(run: LaunchRun, pair: CanonicalPair) -> tuple[int, int]:
    amount_a = parse_units(run.request.amount_a, run.token_a.decimals)
    amount_b = parse_units(run.request.amount_b, run.token_b.decimals)
    return order_amounts(pair, amount_a, amount_b)


def _metadata_for(run: LaunchRun, address: str) -> TokenMetadata:
    if same_address(address, run.request.token_a):
        return run.token_a
    return run.token_b
