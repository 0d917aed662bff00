from __future__ import annotations

from dataclasses import dataclass
import logging
from threading import Lock
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception

from launchpad.domain.entities.launch import ContractCall, ReceiptLog, TransactionReceipt
from launchpad.domain.exceptions import (
    ChainReadError,
    TransactionConfirmationError,
    TransactionSubmissionError,
)
from launchpad.infrastructure.contracts.abis import CONTRACT_ABIS, ERC20_ABI


logger = logging.getLogger(__name__)


# requests' ConnectionError and Timeout are OSError subclasses.
_RPC_ERRORS = (Web3Exception, ValueError, OSError)


@dataclass(frozen=True)
class Web3ChainClientSettings:
    rpc_url: str
    chain_id: int | None
    private_key: str
    receipt_timeout_seconds: float
    request_timeout_seconds: float
    gas_limit_multiplier: float


class Web3ChainClient:
    """Carteira e leitor de chain sobre um no JSON-RPC e uma chave de assinatura local."""

    def __init__(self, settings: Web3ChainClientSettings, *, web3: Web3 | None = None):
        self._settings = settings
        self._w3 = web3 or Web3(
            Web3.HTTPProvider(
                settings.rpc_url,
                request_kwargs={"timeout": settings.request_timeout_seconds},
            )
        )
        self._account: LocalAccount | None = (
            Account.from_key(settings.private_key) if settings.private_key else None
        )
        self._nonce_lock = Lock()

    def get_account(self) -> str | None:
        if self._account is None:
            return None
        return self._account.address

    def submit_transaction(self, *, call: ContractCall) -> str:
        if self._account is None:
            raise TransactionSubmissionError("No wallet connected: WALLET_PRIVATE_KEY is not configured.")

        sender = self._account.address
        try:
            contract = self._w3.eth.contract(
                address=Web3.to_checksum_address(call.address),
                abi=CONTRACT_ABIS[call.contract],
            )
            function = getattr(contract.functions, call.function_name)(*_checksum_args(call.args))
            with self._nonce_lock:
                gas = function.estimate_gas({"from": sender, "value": call.value})
                params: dict[str, Any] = {
                    "from": sender,
                    "value": call.value,
                    "nonce": self._w3.eth.get_transaction_count(sender, "pending"),
                    "gas": int(gas * self._settings.gas_limit_multiplier),
                }
                if self._settings.chain_id is not None:
                    params["chainId"] = self._settings.chain_id
                tx = function.build_transaction(params)
                signed = self._account.sign_transaction(tx)
                tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except _RPC_ERRORS as exc:
            logger.warning(
                "web3_chain_client: submit_failed function=%s address=%s error=%s",
                call.function_name,
                call.address,
                exc,
            )
            raise TransactionSubmissionError(str(exc)) from exc

        tx_hash_hex = _hex(tx_hash)
        logger.info(
            "web3_chain_client: submitted function=%s address=%s tx_hash=%s gas=%s",
            call.function_name,
            call.address,
            tx_hash_hex,
            params["gas"],
        )
        return tx_hash_hex

    def wait_for_receipt(self, *, tx_hash: str) -> TransactionReceipt:
        try:
            raw = self._w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self._settings.receipt_timeout_seconds,
            )
        except TimeExhausted as exc:
            raise TransactionConfirmationError(
                f"Timed out after {self._settings.receipt_timeout_seconds}s waiting for {tx_hash}."
            ) from exc
        except _RPC_ERRORS as exc:
            raise TransactionConfirmationError(str(exc)) from exc
        return _to_receipt(raw)

    def get_decimals(self, *, token_address: str) -> int:
        return int(self._read(token_address, "decimals"))

    def get_symbol(self, *, token_address: str) -> str:
        return str(self._read(token_address, "symbol"))

    def get_allowance(self, *, token_address: str, owner: str, spender: str) -> int:
        return int(
            self._read(
                token_address,
                "allowance",
                Web3.to_checksum_address(owner),
                Web3.to_checksum_address(spender),
            )
        )

    def get_balance(self, *, token_address: str, owner: str) -> int:
        return int(self._read(token_address, "balanceOf", Web3.to_checksum_address(owner)))

    def _read(self, token_address: str, function_name: str, *args: Any) -> Any:
        try:
            contract = self._w3.eth.contract(
                address=Web3.to_checksum_address(token_address),
                abi=ERC20_ABI,
            )
            return getattr(contract.functions, function_name)(*args).call()
        except _RPC_ERRORS as exc:
            logger.warning(
                "web3_chain_client: read_failed function=%s token=%s error=%s",
                function_name,
                token_address,
                exc,
            )
            raise ChainReadError(f"{function_name}() failed for {token_address}: {exc}") from exc


def _checksum_args(args: tuple[Any, ...]) -> tuple[Any, ...]:
    return tuple(_checksum_arg(arg) for arg in args)


def _checksum_arg(arg: Any) -> Any:
    if isinstance(arg, tuple):
        return _checksum_args(arg)
    if isinstance(arg, str) and Web3.is_address(arg):
        return Web3.to_checksum_address(arg)
    return arg


def _to_receipt(raw: Any) -> TransactionReceipt:
    logs = tuple(
        ReceiptLog(
            address=str(log["address"]),
            topics=tuple(_hex(topic) for topic in log["topics"]),
            data=_hex(log["data"]),
        )
        for log in raw.get("logs", [])
    )
    return TransactionReceipt(
        tx_hash=_hex(raw["transactionHash"]),
        status=int(raw["status"]),
        block_number=raw.get("blockNumber"),
        to=raw.get("to"),
        logs=logs,
    )


def _hex(value: Any) -> str:
    if isinstance(value, str):
        return value if value.startswith("0x") else f"0x{value}"
    return Web3.to_hex(value)
