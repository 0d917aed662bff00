from __future__ import annotations

from functools import lru_cache

from launchpad.application.use_cases.get_default_tick_range import GetDefaultTickRangeUseCase
from launchpad.application.use_cases.launch_orchestrator import LaunchOrchestrator
from launchpad.application.use_cases.token_metadata import TokenMetadataResolver
from launchpad.domain.entities.launch import LaunchConfig
from launchpad.domain.services.univ3_math import price_to_sqrt_price_x96
from launchpad.infrastructure.clients.web3_chain_client import (
    Web3ChainClient,
    Web3ChainClientSettings,
)
from launchpad.shared.config import get_settings


@lru_cache(maxsize=1)
def _get_web3_chain_client() -> Web3ChainClient:
    settings = get_settings()
    return Web3ChainClient(
        Web3ChainClientSettings(
            rpc_url=settings.rpc_url,
            chain_id=settings.chain_id,
            private_key=settings.wallet_private_key,
            receipt_timeout_seconds=settings.receipt_timeout_seconds,
            request_timeout_seconds=settings.rpc_timeout_seconds,
            gas_limit_multiplier=settings.gas_limit_multiplier,
        )
    )


def _get_launch_config() -> LaunchConfig:
    settings = get_settings()
    return LaunchConfig(
        position_manager_address=settings.position_manager_address,
        initial_sqrt_price_x96=price_to_sqrt_price_x96(settings.initial_price),
        deadline_seconds=settings.mint_deadline_seconds,
        slippage_bps=settings.mint_slippage_bps,
    )


@lru_cache(maxsize=1)
def get_token_metadata_resolver() -> TokenMetadataResolver:
    return TokenMetadataResolver(chain_reader=_get_web3_chain_client())


@lru_cache(maxsize=1)
def get_launch_orchestrator() -> LaunchOrchestrator:
    client = _get_web3_chain_client()
    return LaunchOrchestrator(
        wallet=client,
        chain_reader=client,
        token_metadata=get_token_metadata_resolver(),
        config=_get_launch_config(),
    )


def get_default_tick_range_use_case() -> GetDefaultTickRangeUseCase:
    return GetDefaultTickRangeUseCase()
