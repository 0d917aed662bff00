from __future__ import annotations

from typing import Protocol


class ChainReaderPort(Protocol):
    def get_decimals(self, *, token_address: str) -> int:
        ...

    def get_symbol(self, *, token_address: str) -> str:
        ...

    def get_allowance(self, *, token_address: str, owner: str, spender: str) -> int:
        ...

    def get_balance(self, *, token_address: str, owner: str) -> int:
        ...
