from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from launchpad.api.deps import (
    get_default_tick_range_use_case,
    get_launch_orchestrator,
    get_token_metadata_resolver,
)
from launchpad.api.schemas.launch import (
    DefaultRangeResponse,
    LaunchRequestBody,
    LaunchStateResponse,
    SubmittedTransactionResponse,
    TokenMetadataResponse,
    TokenSelectionRequest,
)
from launchpad.application.dto.launch import LaunchInput, LaunchSnapshot
from launchpad.application.use_cases.get_default_tick_range import GetDefaultTickRangeUseCase
from launchpad.application.use_cases.launch_orchestrator import LaunchOrchestrator
from launchpad.application.use_cases.token_metadata import TokenMetadataResolver
from launchpad.domain.exceptions import ChainReadError, LaunchInProgressError

router = APIRouter()


@router.get("/v1/launch", response_model=LaunchStateResponse)
def get_launch_state(
    orchestrator: LaunchOrchestrator = Depends(get_launch_orchestrator),
):
    return _to_response(orchestrator.snapshot())


@router.post("/v1/launch", response_model=LaunchStateResponse, status_code=202)
def start_launch(
    req: LaunchRequestBody,
    background_tasks: BackgroundTasks,
    orchestrator: LaunchOrchestrator = Depends(get_launch_orchestrator),
):
    try:
        snapshot = orchestrator.submit(
            LaunchInput(
                token_a=req.token_a,
                token_b=req.token_b,
                fee_tier=req.fee_tier,
                amount_a=req.amount_a,
                amount_b=req.amount_b,
                tick_lower=_optional_str(req.tick_lower),
                tick_upper=_optional_str(req.tick_upper),
            )
        )
    except LaunchInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    if snapshot.loading:
        background_tasks.add_task(orchestrator.resume)
    return _to_response(snapshot)


@router.post("/v1/launch/reset", response_model=LaunchStateResponse)
def reset_launch(
    orchestrator: LaunchOrchestrator = Depends(get_launch_orchestrator),
):
    return _to_response(orchestrator.reset())


@router.put("/v1/launch/tokens/{slot}", response_model=TokenMetadataResponse)
def select_token(
    slot: str,
    req: TokenSelectionRequest,
    resolver: TokenMetadataResolver = Depends(get_token_metadata_resolver),
):
    try:
        metadata = resolver.select(slot=slot, address=req.address)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ChainReadError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return TokenMetadataResponse(
        slot=slot,
        address=metadata.address,
        symbol=metadata.symbol,
        decimals=metadata.decimals,
    )


@router.get("/v1/fee-tiers/{fee_tier}/default-range", response_model=DefaultRangeResponse)
def get_default_range(
    fee_tier: int,
    use_case: GetDefaultTickRangeUseCase = Depends(get_default_tick_range_use_case),
):
    try:
        result = use_case.execute(fee_tier=fee_tier)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return DefaultRangeResponse(
        fee_tier=result.fee_tier,
        tick_spacing=result.tick_spacing,
        tick_lower=result.tick_lower,
        tick_upper=result.tick_upper,
    )


def _optional_str(value: int | str | None) -> str | None:
    return None if value is None else str(value)


def _to_response(snapshot: LaunchSnapshot) -> LaunchStateResponse:
    return LaunchStateResponse(
        phase=snapshot.phase,
        loading=snapshot.loading,
        message=snapshot.message,
        error=snapshot.error,
        error_kind=snapshot.error_kind,
        tx_hash=snapshot.tx_hash,
        position_id=str(snapshot.position_id) if snapshot.position_id is not None else None,
        position_id_unknown=snapshot.position_id_unknown,
        pool_key=snapshot.pool_key,
        history=snapshot.history,
        transactions=[
            SubmittedTransactionResponse(kind=tx.kind, tx_hash=tx.tx_hash)
            for tx in snapshot.transactions
        ],
    )
