from __future__ import annotations

from launchpad.application.dto.launch import DefaultRangeOutput
from launchpad.domain.services.univ3_math import default_tick_range, tick_spacing


class GetDefaultTickRangeUseCase:
    def execute(self, *, fee_tier: int) -> DefaultRangeOutput:
        if fee_tier <= 0:
            raise ValueError("fee_tier must be greater than zero.")
        tick_lower, tick_upper = default_tick_range(fee_tier)
        return DefaultRangeOutput(
            fee_tier=fee_tier,
            tick_spacing=tick_spacing(fee_tier),
            tick_lower=tick_lower,
            tick_upper=tick_upper,
        )
