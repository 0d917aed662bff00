from __future__ import annotations

import re
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation

from web3 import Web3

from launchpad.domain.entities.launch import LaunchRequest, LaunchRun, TokenMetadata
from launchpad.domain.exceptions import LaunchValidationError
from launchpad.domain.services.pair_orientation import same_address
from launchpad.domain.services.univ3_math import (
    MAX_TICK,
    MIN_TICK,
    is_tick_aligned,
    parse_units,
    tick_spacing,
)


_INTEGER_RE = re.compile(r"^-?\d+$")


def validate_launch(
    request: LaunchRequest,
    *,
    owner: str | None,
    metadata: Mapping[str, TokenMetadata],
    read_errors: Mapping[str, str] | None = None,
) -> LaunchRun:
    """Valida as pre-condicoes do lancamento em ordem, parando na primeira falha.

    ``metadata`` e ``read_errors`` sao indexados pelo endereco do token em minusculas.
    """
    read_errors = read_errors or {}

    if not owner:
        raise LaunchValidationError("Please connect your wallet first.")

    token_a = (request.token_a or "").strip()
    token_b = (request.token_b or "").strip()
    if not token_a or not token_b:
        raise LaunchValidationError("Please select both tokens.")
    if not Web3.is_address(token_a) or not Web3.is_address(token_b):
        raise LaunchValidationError("Invalid token address(es).")
    if same_address(token_a, token_b):
        raise LaunchValidationError("Token A and Token B must be different.")

    token_a_meta = _resolved_metadata(token_a, "Token A", metadata, read_errors)
    token_b_meta = _resolved_metadata(token_b, "Token B", metadata, read_errors)

    _check_amount(request.amount_a, token_a_meta, "Token A")
    _check_amount(request.amount_b, token_b_meta, "Token B")

    tick_lower, tick_upper = _check_ticks(request)
    spacing = tick_spacing(request.fee_tier)
    if tick_lower < MIN_TICK or tick_upper > MAX_TICK:
        raise LaunchValidationError(
            f"Tick range invalid: ticks must be within [{MIN_TICK}, {MAX_TICK}]."
        )
    if not is_tick_aligned(tick_lower, spacing) or not is_tick_aligned(tick_upper, spacing):
        raise LaunchValidationError(
            f"Tick range invalid: ticks must be multiples of the tick spacing {spacing}."
        )

    return LaunchRun(request=request, owner=owner, token_a=token_a_meta, token_b=token_b_meta)


def _resolved_metadata(
    address: str,
    label: str,
    metadata: Mapping[str, TokenMetadata],
    read_errors: Mapping[str, str],
) -> TokenMetadata:
    key = address.lower()
    found = metadata.get(key)
    if found is not None and found.symbol is not None and found.decimals is not None:
        return found
    error = read_errors.get(key)
    if error:
        raise LaunchValidationError(f"Failed to load {label} details: {error}")
    raise LaunchValidationError("Token details are still loading. Please wait or try again.")


def _check_amount(raw: str | None, token: TokenMetadata, label: str) -> None:
    text = (raw or "").strip()
    if not text:
        raise LaunchValidationError("Please enter positive amounts for both tokens.")
    try:
        value = Decimal(text)
    except InvalidOperation as exc:
        raise LaunchValidationError("Please enter valid numeric amounts for both tokens.") from exc
    if not value.is_finite():
        raise LaunchValidationError("Please enter valid numeric amounts for both tokens.")
    if value <= 0:
        raise LaunchValidationError("Please enter positive amounts for both tokens.")
    try:
        parse_units(value, token.decimals)
    except ValueError as exc:
        raise LaunchValidationError(f"{label} amount is invalid: {exc}") from exc


def _check_ticks(request: LaunchRequest) -> tuple[int, int]:
    lower = (request.tick_lower or "").strip()
    upper = (request.tick_upper or "").strip()
    if not lower or not upper:
        raise LaunchValidationError("Please enter both lower and upper tick values.")
    if not _INTEGER_RE.match(lower) or not _INTEGER_RE.match(upper):
        raise LaunchValidationError("Please enter valid integer tick values.")
    tick_lower = int(lower)
    tick_upper = int(upper)
    if tick_lower >= tick_upper:
        raise LaunchValidationError(
            "Tick range invalid: upper tick must be greater than lower tick."
        )
    return tick_lower, tick_upper
