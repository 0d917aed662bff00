from __future__ import annotations

from dataclasses import dataclass

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from launchpad.domain.entities.launch import ReceiptLog, TransactionReceipt
from launchpad.domain.exceptions import LogParsingError
from launchpad.domain.services.pair_orientation import same_address


INCREASE_LIQUIDITY_SIGNATURE = "IncreaseLiquidity(uint256,uint128,uint256,uint256)"
INCREASE_LIQUIDITY_TOPIC = Web3.to_hex(Web3.keccak(text=INCREASE_LIQUIDITY_SIGNATURE))


@dataclass(frozen=True)
class IncreaseLiquidityEvent:
    token_id: int
    liquidity: int
    amount0: int
    amount1: int


def decode_increase_liquidity(log: ReceiptLog) -> IncreaseLiquidityEvent:
    if len(log.topics) < 2 or log.topics[0].lower() != INCREASE_LIQUIDITY_TOPIC:
        raise LogParsingError("Log is not an IncreaseLiquidity event.")
    try:
        token_id = int(log.topics[1], 16)
        liquidity, amount0, amount1 = decode(
            ["uint128", "uint256", "uint256"],
            bytes.fromhex(_strip_0x(log.data)),
        )
    except (ValueError, DecodingError) as exc:
        raise LogParsingError(f"Could not decode IncreaseLiquidity event: {exc}") from exc
    return IncreaseLiquidityEvent(
        token_id=token_id,
        liquidity=liquidity,
        amount0=amount0,
        amount1=amount1,
    )


def extract_position_id(receipt: TransactionReceipt, position_manager: str | None = None) -> int:
    for log in receipt.logs:
        if not log.topics or log.topics[0].lower() != INCREASE_LIQUIDITY_TOPIC:
            continue
        if position_manager is not None and not same_address(log.address, position_manager):
            continue
        return decode_increase_liquidity(log).token_id
    raise LogParsingError(f"IncreaseLiquidity event not found in transaction {receipt.tx_hash}.")


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value
