from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal

from dotenv import load_dotenv


load_dotenv()


DEFAULT_POSITION_MANAGER_ADDRESS = "0x1238536071E1c677A632429e3655c799b22cDA52"


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


def _optional_int(name: str) -> int | None:
    value = _env(name)
    if not value:
        return None
    return int(value)


def _slippage_bps() -> int | None:
    value = _optional_int("MINT_SLIPPAGE_BPS")
    if value is not None and not 0 <= value <= 10_000:
        raise ValueError("MINT_SLIPPAGE_BPS must be between 0 and 10000.")
    return value


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    chain_id: int | None
    wallet_private_key: str
    position_manager_address: str
    initial_price: Decimal
    mint_deadline_seconds: int
    mint_slippage_bps: int | None
    receipt_timeout_seconds: float
    rpc_timeout_seconds: float
    gas_limit_multiplier: float
    log_level: str


def get_settings() -> Settings:
    return Settings(
        rpc_url=_env("RPC_URL", "http://localhost:8545"),
        chain_id=_optional_int("CHAIN_ID"),
        wallet_private_key=_env("WALLET_PRIVATE_KEY", ""),
        position_manager_address=_env("POSITION_MANAGER_ADDRESS", DEFAULT_POSITION_MANAGER_ADDRESS),
        initial_price=Decimal(_env("INITIAL_PRICE", "1")),
        mint_deadline_seconds=int(_env("MINT_DEADLINE_SECONDS", "1200")),
        mint_slippage_bps=_slippage_bps(),
        receipt_timeout_seconds=float(_env("RECEIPT_TIMEOUT_SECONDS", "120")),
        rpc_timeout_seconds=float(_env("RPC_TIMEOUT_SECONDS", "10")),
        gas_limit_multiplier=float(_env("GAS_LIMIT_MULTIPLIER", "1.2")),
        log_level=_env("LOG_LEVEL", "INFO"),
    )
