from __future__ import annotations

from typing import Protocol

from launchpad.domain.entities.launch import ContractCall, TransactionReceipt


class WalletPort(Protocol):
    def get_account(self) -> str | None:
        ...

    def submit_transaction(self, *, call: ContractCall) -> str:
        ...

    def wait_for_receipt(self, *, tx_hash: str) -> TransactionReceipt:
        ...
