from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable
from threading import RLock

from launchpad.application.dto.launch import LaunchInput, LaunchSnapshot, SubmittedTransactionOutput
from launchpad.application.ports.chain_reader_port import ChainReaderPort
from launchpad.application.ports.wallet_port import WalletPort
from launchpad.application.use_cases.token_metadata import TokenMetadataResolver
from launchpad.domain.entities.launch import LaunchConfig, LaunchRequest, OrchestrationState
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
    ChainReadError,
    InvalidTransitionError,
    LaunchInProgressError,
    TransactionConfirmationError,
    TransactionSubmissionError,
)
from launchpad.domain.services.launch_state_machine import transition
from launchpad.domain.services.univ3_math import default_tick_range


logger = logging.getLogger(__name__)


class LaunchOrchestrator:
    """Conduz um lancamento por vez pela maquina de estados.

    O orquestrador e dono do unico ``OrchestrationState``. Cada reacao
    (transicao + efeitos enfileirados) acontece sob ``self._lock``; I/O de
    carteira e chain acontece fora dele. ``reset`` incrementa a geracao do
    lancamento e resultados que chegam para um lancamento abandonado sao
    descartados.
    """

    def __init__(
        self,
        *,
        wallet: WalletPort,
        chain_reader: ChainReaderPort,
        token_metadata: TokenMetadataResolver,
        config: LaunchConfig,
        clock: Callable[[], float] = time.time,
    ):
        self._wallet = wallet
        self._chain_reader = chain_reader
        self._token_metadata = token_metadata
        self._config = config
        self._clock = clock
        self._lock = RLock()
        self._state = OrchestrationState()
        self._generation = 0
        self._queue: deque[LaunchEffect] = deque()
        self._driving: int | None = None

    @property
    def state(self) -> OrchestrationState:
        with self._lock:
            return self._state

    def snapshot(self) -> LaunchSnapshot:
        with self._lock:
            return _to_snapshot(self._state)

    def start(self, command: LaunchInput) -> LaunchSnapshot:
        self.submit(command)
        return self.resume()

    def submit(self, command: LaunchInput) -> LaunchSnapshot:
        self._ensure_idle()
        request = _to_request(command)
        owner = self._wallet.get_account()
        metadata, read_errors = self._token_metadata.lookup([request.token_a, request.token_b])

        with self._lock:
            self._ensure_idle()
            if self._state.phase.is_terminal:
                self._reset_locked()
            self._apply(
                LaunchRequested(
                    request=request,
                    owner=owner,
                    metadata=metadata,
                    read_errors=read_errors,
                ),
                generation=self._generation,
            )
            return _to_snapshot(self._state)

    def resume(self) -> LaunchSnapshot:
        with self._lock:
            generation = self._generation
            if self._driving == generation:
                return _to_snapshot(self._state)
            self._driving = generation

        try:
            while True:
                with self._lock:
                    if generation != self._generation or not self._queue:
                        break
                    effect = self._queue.popleft()
                event = self._execute(effect)
                self._apply(event, generation=generation)
        finally:
            with self._lock:
                if self._driving == generation:
                    self._driving = None
        return self.snapshot()

    def reset(self) -> LaunchSnapshot:
        with self._lock:
            self._reset_locked()
            snapshot = _to_snapshot(self._state)
        self._token_metadata.clear()
        return snapshot

    def _reset_locked(self) -> None:
        previous = self._state.phase
        self._generation += 1
        self._queue.clear()
        self._state = transition(
            self._state,
            ResetRequested(),
            config=self._config,
            now=int(self._clock()),
        ).state
        logger.info("launch_orchestrator: reset from=%s generation=%s", previous.value, self._generation)

    def _ensure_idle(self) -> None:
        with self._lock:
            if self._state.phase.is_active:
                raise LaunchInProgressError(
                    f"A launch is already in progress ({self._state.phase.value})."
                )

    def _apply(self, event: LaunchEvent, *, generation: int) -> bool:
        with self._lock:
            if generation != self._generation:
                logger.info(
                    "launch_orchestrator: stale_event_dropped event=%s generation=%s current=%s",
                    type(event).__name__,
                    generation,
                    self._generation,
                )
                return False
            try:
                result = transition(self._state, event, config=self._config, now=int(self._clock()))
            except InvalidTransitionError as exc:
                logger.warning(
                    "launch_orchestrator: event_rejected event=%s phase=%s reason=%s",
                    type(event).__name__,
                    self._state.phase.value,
                    exc,
                )
                return False
            except Exception as exc:
                logger.exception(
                    "launch_orchestrator: transition_crashed event=%s phase=%s",
                    type(event).__name__,
                    self._state.phase.value,
                )
                self._queue.clear()
                result = transition(
                    self._state,
                    StepCrashed(reason=str(exc) or type(exc).__name__),
                    config=self._config,
                    now=int(self._clock()),
                )

            previous = self._state
            self._state = result.state
            self._queue.extend(result.effects)

        if previous.phase != result.state.phase:
            logger.info(
                "launch_orchestrator: phase_changed from=%s to=%s message=%s",
                previous.phase.value,
                result.state.phase.value,
                result.state.message,
            )
        if result.state.error and result.state.error != previous.error:
            logger.warning(
                "launch_orchestrator: launch_failed kind=%s error=%s",
                result.state.error_kind.value if result.state.error_kind else None,
                result.state.error,
            )
        return True

    def _execute(self, effect: LaunchEffect) -> LaunchEvent:
        try:
            return self._perform(effect)
        except Exception as exc:
            logger.exception("launch_orchestrator: step_crashed effect=%s", type(effect).__name__)
            return StepCrashed(reason=str(exc) or type(exc).__name__)

    def _perform(self, effect: LaunchEffect) -> LaunchEvent:
        if isinstance(effect, SubmitTransaction):
            try:
                tx_hash = self._wallet.submit_transaction(call=effect.call)
            except TransactionSubmissionError as exc:
                return TransactionFailed(kind=effect.kind, stage="submission", reason=str(exc))
            logger.info(
                "launch_orchestrator: transaction_submitted kind=%s tx_hash=%s",
                effect.kind.value,
                tx_hash,
            )
            return TransactionSubmitted(kind=effect.kind, tx_hash=tx_hash)

        if isinstance(effect, AwaitConfirmation):
            try:
                receipt = self._wallet.wait_for_receipt(tx_hash=effect.tx_hash)
            except TransactionConfirmationError as exc:
                return TransactionFailed(kind=effect.kind, stage="confirmation", reason=str(exc))
            logger.info(
                "launch_orchestrator: transaction_confirmed kind=%s tx_hash=%s status=%s block=%s",
                effect.kind.value,
                receipt.tx_hash,
                receipt.status,
                receipt.block_number,
            )
            return TransactionConfirmed(kind=effect.kind, receipt=receipt)

        if isinstance(effect, ReadTokenState):
            try:
                allowance0 = self._chain_reader.get_allowance(
                    token_address=effect.token0, owner=effect.owner, spender=effect.spender
                )
                allowance1 = self._chain_reader.get_allowance(
                    token_address=effect.token1, owner=effect.owner, spender=effect.spender
                )
                balance0 = self._chain_reader.get_balance(token_address=effect.token0, owner=effect.owner)
                balance1 = self._chain_reader.get_balance(token_address=effect.token1, owner=effect.owner)
            except ChainReadError as exc:
                return TokenStateReadFailed(reason=str(exc))
            return TokenStateRead(
                allowance0=allowance0,
                allowance1=allowance1,
                balance0=balance0,
                balance1=balance1,
            )

        raise TypeError(f"Unsupported effect {type(effect).__name__}.")


def _to_request(command: LaunchInput) -> LaunchRequest:
    tick_lower, tick_upper = command.tick_lower, command.tick_upper
    if tick_lower is None or tick_upper is None:
        default_lower, default_upper = default_tick_range(command.fee_tier)
        tick_lower = str(default_lower) if tick_lower is None else tick_lower
        tick_upper = str(default_upper) if tick_upper is None else tick_upper
    return LaunchRequest(
        token_a=command.token_a,
        token_b=command.token_b,
        fee_tier=command.fee_tier,
        amount_a=command.amount_a,
        amount_b=command.amount_b,
        tick_lower=str(tick_lower),
        tick_upper=str(tick_upper),
    )


def _to_snapshot(state: OrchestrationState) -> LaunchSnapshot:
    return LaunchSnapshot(
        phase=state.phase.value,
        loading=state.phase.is_active,
        message=state.message,
        error=state.error,
        error_kind=state.error_kind.value if state.error_kind else None,
        tx_hash=state.tx_hash,
        position_id=state.position_id,
        position_id_unknown=state.position_id_unknown,
        pool_key=state.run.pool_key if state.run else None,
        history=[phase.value for phase in state.history],
        transactions=[
            SubmittedTransactionOutput(kind=tx.kind.value, tx_hash=tx.tx_hash)
            for tx in state.transactions
        ],
    )
