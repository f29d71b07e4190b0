"""Tests for the bridge selector and cross-chain plans."""

from decimal import Decimal

import pytest

from routeguard.bridges.selector import BridgeSelector, BridgeSource, bridge_quote_rank
from routeguard.chains import STABLE, CatalogEntry, IntermediaryCatalog
from routeguard.errors import BridgeUnavailable, InvalidRequest, NoRouteFound
from routeguard.models import BridgeQuote
from routeguard.routing.base import RouteContext
from tests.conftest import CHAIN, DEST_CHAIN, NOW, ONE, TKA, TKB, TKC, USDC, USDC_BSC, FakeBridge, make_edge


def quote(provider, output, fee="1", eta=600, reliability="0.9"):
    return BridgeQuote(
        provider_id=provider,
        from_chain=CHAIN,
        to_chain=DEST_CHAIN,
        input_token=USDC,
        output_token=USDC_BSC,
        amount_in=1_000_000,
        output_amount=output,
        fee_usd=Decimal(fee),
        eta_seconds=eta,
        reliability_score=Decimal(reliability),
        expires_at=NOW + 60,
    )


@pytest.fixture
def cross_chain_pools(pairs, quotes):
    """TKA -> USDC on the source chain and USDC -> TKC on the destination chain."""
    pairs.edges = [make_edge(TKA, USDC), make_edge(USDC_BSC, TKC)]
    quotes.set([TKA, USDC], 1_000_000)
    quotes.set([USDC_BSC, TKC], 7 * ONE)


class TestBridgeQuoteRank:
    """Tests for bridge quote ordering."""

    def test_output_first(self):
        """Test the highest delivered amount wins."""
        quotes = [quote("a", 100, fee="0"), quote("b", 101, fee="5")]
        assert sorted(quotes, key=bridge_quote_rank)[0].provider_id == "b"

    def test_fee_then_time_then_reliability(self):
        """Test secondary criteria in order."""
        cheaper = quote("cheap", 100, fee="1")
        faster = quote("fast", 100, fee="2", eta=60)
        assert sorted([faster, cheaper], key=bridge_quote_rank)[0].provider_id == "cheap"

        slow = quote("slow", 100, eta=900)
        quick = quote("quick", 100, eta=300)
        assert sorted([slow, quick], key=bridge_quote_rank)[0].provider_id == "quick"

        shaky = quote("shaky", 100, reliability="0.8")
        solid = quote("solid", 100, reliability="0.95")
        assert sorted([shaky, solid], key=bridge_quote_rank)[0].provider_id == "solid"


class TestBridgeSelector:
    """Tests for BridgeSelector.build_cross_chain_plan."""

    @pytest.mark.asyncio
    async def test_full_plan(self, finder, catalog, cross_chain_pools):
        """Test source swap, best bridge and destination swap are composed."""
        good = FakeBridge("good", rate=Decimal("0.99"))
        worse = FakeBridge("worse", rate=Decimal("0.95"))
        selector = BridgeSelector([worse, good], finder, catalog)

        plan = await selector.build_cross_chain_plan(CHAIN, TKA, DEST_CHAIN, TKC, ONE, 100)

        assert plan.source_leg.path == (TKA, USDC)
        assert plan.source_leg.slippage_bps == 100
        assert plan.bridge.provider_id == "good"
        assert plan.bridge.input_token == USDC
        assert plan.bridge.amount_in == 1_000_000
        assert plan.bridge.output_token == USDC_BSC
        assert plan.dest_leg.path == (USDC_BSC, TKC)
        assert plan.dest_leg.amount_in == 990_000
        assert plan.output_amount == 7 * ONE

    @pytest.mark.asyncio
    async def test_bridge_token_input_skips_source_leg(self, finder, catalog, cross_chain_pools):
        """Test holding the bridge token already means no source swap."""
        bridge = FakeBridge("only")
        selector = BridgeSelector([bridge], finder, catalog)

        plan = await selector.build_cross_chain_plan(CHAIN, USDC, DEST_CHAIN, TKC, 1_000_000, 100)

        assert plan.source_leg is None
        assert plan.bridge.input_token == USDC
        assert plan.dest_leg is not None

    @pytest.mark.asyncio
    async def test_bridge_token_output_skips_destination_leg(self, finder, catalog, cross_chain_pools):
        """Test asking for the bridge token itself needs no destination swap."""
        selector = BridgeSelector([FakeBridge("only")], finder, catalog)

        plan = await selector.build_cross_chain_plan(CHAIN, TKA, DEST_CHAIN, USDC_BSC, ONE, 100)

        assert plan.dest_leg is None
        assert plan.output_token == USDC_BSC

    @pytest.mark.asyncio
    async def test_failing_provider_is_skipped(self, finder, catalog, cross_chain_pools):
        """Test a crashing provider does not hide a working one."""
        broken = FakeBridge("broken", error=ConnectionError("down"))
        working = FakeBridge("working")
        selector = BridgeSelector([broken, working], finder, catalog)

        plan = await selector.build_cross_chain_plan(CHAIN, TKA, DEST_CHAIN, TKC, ONE, 100)

        assert plan.bridge.provider_id == "working"
        assert len(broken.calls) == 1

    @pytest.mark.asyncio
    async def test_no_provider_quotes(self, finder, catalog, cross_chain_pools):
        """Test BridgeUnavailable when every provider declines."""
        selector = BridgeSelector(
            [FakeBridge("none", unavailable=True), FakeBridge("err", error=RuntimeError("x"))],
            finder,
            catalog,
        )

        with pytest.raises(BridgeUnavailable):
            await selector.build_cross_chain_plan(CHAIN, TKA, DEST_CHAIN, TKC, ONE, 100)

    @pytest.mark.asyncio
    async def test_missing_destination_leg_abandons_plan(self, finder, catalog, pairs, quotes):
        """Test a plan is never returned with an unresolved leg."""
        pairs.edges = [make_edge(TKA, USDC)]
        quotes.set([TKA, USDC], 1_000_000)
        selector = BridgeSelector([FakeBridge("only")], finder, catalog)

        with pytest.raises(NoRouteFound):
            await selector.build_cross_chain_plan(CHAIN, TKA, DEST_CHAIN, TKC, ONE, 100)

    @pytest.mark.asyncio
    async def test_missing_source_leg(self, finder, catalog, pairs, quotes):
        """Test bridges are not queried when the source leg fails."""
        pairs.edges = [make_edge(USDC_BSC, TKC)]
        bridge = FakeBridge("only")
        selector = BridgeSelector([bridge], finder, catalog)

        with pytest.raises(NoRouteFound):
            await selector.build_cross_chain_plan(CHAIN, TKB, DEST_CHAIN, TKC, ONE, 100)

        assert bridge.calls == []

    @pytest.mark.asyncio
    async def test_no_shared_bridge_token(self, finder):
        """Test chains without a common bridgeable token."""
        catalog = IntermediaryCatalog(
            entries={
                CHAIN: (CatalogEntry("USDC", USDC.address, 6, STABLE, bridgeable=True),),
                DEST_CHAIN: (CatalogEntry("USDC", USDC_BSC.address, 18, STABLE),),
            },
            chains={},
        )
        selector = BridgeSelector([FakeBridge("only")], finder, catalog)

        with pytest.raises(BridgeUnavailable):
            await selector.build_cross_chain_plan(CHAIN, TKA, DEST_CHAIN, TKC, ONE, 100)

    @pytest.mark.asyncio
    async def test_same_chain_rejected(self, finder, catalog):
        """Test a plan needs two chains."""
        selector = BridgeSelector([FakeBridge("only")], finder, catalog)

        with pytest.raises(InvalidRequest):
            await selector.build_cross_chain_plan(CHAIN, TKA, CHAIN, TKB, ONE, 100)


class TestBridgeSource:
    """Tests for BridgeSource."""

    @pytest.mark.asyncio
    async def test_produces_flattened_route(self, finder, catalog, cross_chain_pools):
        """Test the plan is offered to the aggregator as one route."""
        source = BridgeSource(BridgeSelector([FakeBridge("only")], finder, catalog))
        context = RouteContext(from_token=TKA, to_token=TKC, amount_in=ONE, slippage_bps=80)

        assert source.applies_to(context)
        assert not source.applies_to(RouteContext(from_token=TKA, to_token=TKB, amount_in=ONE, slippage_bps=80))

        routes = await source.produce_candidates(context)

        route = routes[0]
        assert route.is_cross_chain
        assert route.slippage_bps == 80
        assert route.input_token == TKA
        assert route.output_token == TKC
        assert route.plan.bridge.provider_id == "only"
