"""Tests for the auto-slippage controller."""

from decimal import Decimal
from typing import Optional

import pytest

from routeguard.config import Settings
from routeguard.errors import (
    FixedSlippageFailed,
    InvalidRequest,
    NoLiquidityFound,
    NoRouteFound,
    SlippageExceededMax,
    SlippageTooLow,
)
from routeguard.models import SlippageAttempt, SlippageMode, SwapRequest
from routeguard.slippage import AutoSlippageController, SlippagePolicy, next_slippage, select_best_attempt
from tests.conftest import ETH, ONE, TKA, TKB, WALLET, WETH, make_edge, make_route


class FakeAggregator:
    """Succeeds once the tolerance reaches `required_bps`."""

    def __init__(self, required_bps: int = 0, outputs: Optional[dict] = None, error=None):
        self.required_bps = required_bps
        self.outputs = outputs or {}
        self.error = error
        self.calls: list[dict] = []

    async def aggregate(self, from_token, to_token, chain_id, amount_in, external_routes=(), *, slippage_bps, sender=None, max_hops=3, deadline=None):
        self.calls.append({"slippage_bps": slippage_bps, "sender": sender, "max_hops": max_hops})
        if self.error is not None:
            raise self.error
        if slippage_bps < self.required_bps:
            raise SlippageTooLow(slippage_bps, self.required_bps)
        output = self.outputs.get(slippage_bps, 5 * ONE)
        return [
            make_route([from_token, to_token], output, price_impact_bps=self.required_bps, source="best"),
            make_route([from_token, WETH, to_token], output - 1, source="second"),
        ]

    @property
    def slippages(self) -> list[int]:
        return [call["slippage_bps"] for call in self.calls]


def make_request(mode=SlippageMode.AUTO, slippage_bps=None, liquidity_usd=None, from_token=TKA, to_token=TKB):
    return SwapRequest(
        from_token=from_token,
        to_token=to_token,
        amount_in=ONE,
        recipient_address=WALLET,
        slippage_mode=mode,
        slippage_bps=slippage_bps,
        liquidity_usd=Decimal(liquidity_usd) if liquidity_usd is not None else None,
    )


class TestSlippagePolicy:
    """Tests for tier selection and escalation."""

    def test_initial_tiers(self):
        """Test lower liquidity starts at a higher tolerance."""
        policy = SlippagePolicy()
        assert policy.initial_slippage(Decimal("5000")) == 1000
        assert policy.initial_slippage(Decimal("10000")) == 1000
        assert policy.initial_slippage(Decimal("15000")) == 500
        assert policy.initial_slippage(Decimal("75000")) == 300
        assert policy.initial_slippage(Decimal("250000")) == 150
        assert policy.initial_slippage(Decimal("900000")) == 100
        assert policy.initial_slippage(Decimal("5000000")) == 50

    def test_unknown_liquidity_uses_default(self):
        """Test missing or zero liquidity uses the default tolerance."""
        policy = SlippagePolicy()
        assert policy.initial_slippage(None) == 50
        assert policy.initial_slippage(Decimal("0")) == 50

    def test_escalation_is_capped(self):
        """Test doubling never passes the cap."""
        policy = SlippagePolicy()
        assert next_slippage(500, policy) == 1000
        assert next_slippage(2000, policy) == 3050
        assert next_slippage(3050, policy) == 3050

    def test_from_settings(self):
        """Test the policy follows configuration."""
        settings = Settings(slippage_tiers="1000:700,5000:200", max_auto_slippage_bps=900, gas_tie_break=True)

        policy = SlippagePolicy.from_settings(settings)

        assert policy.initial_slippage(Decimal("800")) == 700
        assert policy.initial_slippage(Decimal("4000")) == 200
        assert policy.max_bps == 900
        assert policy.gas_tie_break

    def test_known_fee_on_transfer_tokens(self):
        """Test configured fee-on-transfer tokens parse into lower-cased keys."""
        settings = Settings(fee_on_transfer_tokens="1:0xABC, 56:0xdef,")

        assert settings.known_fee_on_transfer_tokens == [(1, "0xabc"), (56, "0xdef")]


class TestSelectBestAttempt:
    """Tests for best-attempt selection."""

    def _attempt(self, number, bps, output, gas="0"):
        return SlippageAttempt(number, bps, route=make_route([TKA, TKB], output, gas_usd=gas))

    def test_highest_output_wins(self):
        """Test a clearly better output beats a lower tolerance."""
        attempts = [self._attempt(1, 500, 100 * ONE), self._attempt(2, 1000, 110 * ONE)]
        assert select_best_attempt(attempts, SlippagePolicy()).attempt_number == 2

    def test_tie_prefers_lower_slippage(self):
        """Test outputs within 0.01% go to the lower tolerance."""
        attempts = [self._attempt(1, 2000, 10_000), self._attempt(2, 1000, 9_999)]
        assert select_best_attempt(attempts, SlippagePolicy()).slippage_bps == 1000

    def test_failed_attempts_ignored(self):
        """Test failed attempts never win."""
        attempts = [SlippageAttempt(1, 50, failed=True, failure_reason="x")]
        assert select_best_attempt(attempts, SlippagePolicy()) is None

    def test_gas_tie_break(self):
        """Test tied attempts compare gas first when enabled."""
        attempts = [self._attempt(1, 500, 10_000, gas="5"), self._attempt(2, 1000, 10_000, gas="1")]

        assert select_best_attempt(attempts, SlippagePolicy()).attempt_number == 1
        assert select_best_attempt(attempts, SlippagePolicy(gas_tie_break=True)).attempt_number == 2


class TestAutoSlippage:
    """Tests for AutoSlippageController.resolve_with_auto_slippage."""

    @pytest.mark.asyncio
    async def test_low_liquidity_escalates(self):
        """Test a failed first attempt escalates to a higher applied tolerance."""
        aggregator = FakeAggregator(required_bps=800)
        controller = AutoSlippageController(aggregator)

        resolution = await controller.resolve_with_auto_slippage(make_request(liquidity_usd="15000"))

        assert aggregator.slippages[0] == 500
        assert aggregator.slippages == [500, 1000, 2000]
        assert resolution.applied_slippage_bps == 1000
        assert resolution.applied_slippage_bps > 500
        assert resolution.route.slippage_bps == 1000
        assert resolution.attempts[0].failed
        assert "800" in resolution.attempts[0].failure_reason

    @pytest.mark.asyncio
    async def test_every_attempt_fails(self):
        """Test SlippageExceededMax names the highest tolerance tried."""
        aggregator = FakeAggregator(required_bps=5000)
        controller = AutoSlippageController(aggregator)

        with pytest.raises(SlippageExceededMax) as exc_info:
            await controller.resolve_with_auto_slippage(make_request(liquidity_usd="15000"))

        error = exc_info.value
        assert error.max_tried_bps == 2000
        assert "2000 bps" in error.message
        assert len(error.attempts) == 3
        assert all(attempt.failed for attempt in error.attempts)

    @pytest.mark.asyncio
    async def test_never_exceeds_cap_or_attempt_limit(self):
        """Test escalation stops at the cap even with attempts left."""
        aggregator = FakeAggregator(required_bps=10_000)
        controller = AutoSlippageController(aggregator, policy=SlippagePolicy(max_attempts=6))

        with pytest.raises(SlippageExceededMax) as exc_info:
            await controller.resolve_with_auto_slippage(make_request(liquidity_usd="5000"))

        assert aggregator.slippages == [1000, 2000, 3050]
        assert exc_info.value.max_tried_bps == 3050

    @pytest.mark.asyncio
    async def test_higher_output_attempt_wins(self):
        """Test a later attempt with a clearly better output is chosen."""
        aggregator = FakeAggregator(outputs={50: 100 * ONE, 100: 120 * ONE, 200: 120 * ONE})
        controller = AutoSlippageController(aggregator)

        resolution = await controller.resolve_with_auto_slippage(make_request())

        assert resolution.applied_slippage_bps == 100
        assert resolution.route.output_amount == 120 * ONE

    @pytest.mark.asyncio
    async def test_alternatives_come_from_winning_attempt(self):
        """Test the runner-up routes of the selected attempt are returned."""
        controller = AutoSlippageController(FakeAggregator())

        resolution = await controller.resolve_with_auto_slippage(make_request())

        assert resolution.route.source_label == "best"
        assert [route.source_label for route in resolution.alternatives] == ["second"]

    @pytest.mark.asyncio
    async def test_liquidity_from_oracle(self, oracle, pairs, catalog):
        """Test the starting tier comes from the oracle for native inputs too."""
        pairs.edges = [make_edge(WETH, TKB, liquidity=15_000)]
        aggregator = FakeAggregator()
        controller = AutoSlippageController(aggregator, oracle=oracle, catalog=catalog)

        resolution = await controller.resolve_with_auto_slippage(make_request(from_token=ETH))

        assert aggregator.slippages[0] == 500
        assert resolution.liquidity_usd == Decimal("15000")

    @pytest.mark.asyncio
    async def test_request_liquidity_overrides_oracle(self, oracle, pairs):
        """Test caller-supplied liquidity skips the oracle."""
        aggregator = FakeAggregator()
        controller = AutoSlippageController(aggregator, oracle=oracle)

        await controller.resolve_with_auto_slippage(make_request(liquidity_usd="900000"))

        assert aggregator.slippages[0] == 100
        assert pairs.calls == []


class TestFixedSlippage:
    """Tests for AutoSlippageController.resolve_fixed."""

    @pytest.mark.asyncio
    async def test_single_attempt(self):
        """Test fixed mode aggregates exactly once at the given tolerance."""
        aggregator = FakeAggregator()
        controller = AutoSlippageController(aggregator)

        resolution = await controller.resolve_fixed(
            make_request(SlippageMode.FIXED, slippage_bps=50, liquidity_usd="5000000")
        )

        assert aggregator.slippages == [50]
        assert resolution.applied_slippage_bps == 50
        assert len(resolution.attempts) == 1
        assert resolution.route.slippage_bps == 50

    @pytest.mark.asyncio
    async def test_too_low_hints_raise_slippage(self):
        """Test the required tolerance is passed back to the user."""
        controller = AutoSlippageController(FakeAggregator(required_bps=240))

        with pytest.raises(FixedSlippageFailed) as exc_info:
            await controller.resolve_fixed(make_request(SlippageMode.FIXED, slippage_bps=100))

        error = exc_info.value
        assert error.hint == FixedSlippageFailed.RAISE_SLIPPAGE
        assert error.required_bps == 240
        assert "240 bps" in error.message

    @pytest.mark.asyncio
    async def test_no_liquidity_hint(self):
        """Test no slippage setting is suggested when there is no liquidity."""
        controller = AutoSlippageController(FakeAggregator(error=NoLiquidityFound("no pools")))

        with pytest.raises(FixedSlippageFailed) as exc_info:
            await controller.resolve_fixed(make_request(SlippageMode.FIXED, slippage_bps=100))

        assert exc_info.value.hint == FixedSlippageFailed.NO_LIQUIDITY

    @pytest.mark.asyncio
    async def test_other_failure_suggests_auto(self):
        """Test other failures point the user at auto mode."""
        controller = AutoSlippageController(FakeAggregator(error=NoRouteFound("nothing verified")))

        with pytest.raises(FixedSlippageFailed) as exc_info:
            await controller.resolve_fixed(make_request(SlippageMode.FIXED, slippage_bps=100))

        assert exc_info.value.hint == FixedSlippageFailed.TRY_AUTO
        assert "nothing verified" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_or_invalid_tolerance(self):
        """Test fixed mode validates its tolerance."""
        controller = AutoSlippageController(FakeAggregator())

        with pytest.raises(InvalidRequest):
            await controller.resolve_fixed(make_request(SlippageMode.FIXED))
        with pytest.raises(InvalidRequest):
            await controller.resolve_fixed(make_request(SlippageMode.FIXED, slippage_bps=10_000))

    @pytest.mark.asyncio
    async def test_invalid_request_is_not_escalated(self):
        """Test a malformed request fails once instead of trying higher tolerances."""
        aggregator = FakeAggregator(error=InvalidRequest("ETH -> WETH is a wrap or unwrap, not a swap"))
        controller = AutoSlippageController(aggregator)

        with pytest.raises(InvalidRequest):
            await controller.resolve_with_auto_slippage(make_request(from_token=ETH, to_token=WETH))
        with pytest.raises(InvalidRequest):
            await controller.resolve_fixed(make_request(SlippageMode.FIXED, slippage_bps=100))

        assert aggregator.slippages == [50, 100]

    @pytest.mark.asyncio
    async def test_signer_is_passed_to_sources(self):
        """Test sources receive the recipient as signer when no sender is given."""
        aggregator = FakeAggregator()
        controller = AutoSlippageController(aggregator)

        await controller.resolve_fixed(make_request(SlippageMode.FIXED, slippage_bps=100))

        assert aggregator.calls[0]["sender"] == WALLET
