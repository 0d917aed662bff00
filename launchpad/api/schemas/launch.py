from __future__ import annotations

from pydantic import BaseModel, Field


class LaunchRequestBody(BaseModel):
    token_a: str = Field(..., description="Endereco do token A (0x...).")
    token_b: str = Field(..., description="Endereco do token B (0x...).")
    fee_tier: int = Field(3000, description="Fee tier da pool (100, 500, 3000, 10000).")
    amount_a: str = Field(..., description="Quantidade do token A em unidades do token.")
    amount_b: str = Field(..., description="Quantidade do token B em unidades do token.")
    tick_lower: int | str | None = Field(
        None,
        description="Tick inferior. Quando omitido usa -(tick_spacing * 100).",
    )
    tick_upper: int | str | None = Field(
        None,
        description="Tick superior. Quando omitido usa tick_spacing * 100.",
    )


class SubmittedTransactionResponse(BaseModel):
    kind: str
    tx_hash: str


class LaunchStateResponse(BaseModel):
    phase: str
    loading: bool
    message: str
    error: str | None
    error_kind: str | None
    tx_hash: str | None
    position_id: str | None = Field(None, description="Token id da posicao (string, uint256).")
    position_id_unknown: bool
    pool_key: str | None
    history: list[str]
    transactions: list[SubmittedTransactionResponse]


class TokenSelectionRequest(BaseModel):
    address: str = Field(..., description="Endereco do token (0x...).")


class TokenMetadataResponse(BaseModel):
    slot: str
    address: str
    symbol: str
    decimals: int


class DefaultRangeResponse(BaseModel):
    fee_tier: int
    tick_spacing: int
    tick_lower: int
    tick_upper: int
