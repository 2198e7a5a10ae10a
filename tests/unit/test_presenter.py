"""Unit tests for message rendering."""
from __future__ import annotations

import pytest

from zapper.models import (
    GWEI,
    BalanceCheck,
    GasQuote,
    PairInfo,
    Position,
    PositionSnapshot,
    SlippagePolicy,
    TokenInfo,
    ZapInPlan,
)
from zapper.services.presenter import (
    RenderedView,
    format_usd,
    render_closed,
    render_plan,
    render_position,
    render_token_quote,
)

DAI_INFO = TokenInfo(name="Dai Stablecoin", symbol="DAI", decimals=18)


def _snapshot(position: Position, pnl: float = 25.0, value_eth: float = 2.0) -> PositionSnapshot:
    return PositionSnapshot(
        position=position,
        token=DAI_INFO,
        lp_balance=10**18,
        pool_share_pct=1.5,
        value_eth=value_eth,
        value_usd=value_eth * 3000,
        initial_market_cap_usd=300_000.0,
        current_market_cap_usd=375_000.0,
        market_cap_pnl_pct=pnl,
        gas_price_gwei=12.0,
        estimated_fee_usd=3.5,
    )


class TestFormatting:
    def test_format_usd(self) -> None:
        assert format_usd(1234567.891) == "$1,234,567.89"


class TestRenderPosition:
    def test_contents(self, sample_position: Position) -> None:
        view = render_position(_snapshot(sample_position), 0, 3)
        assert "Dai Stablecoin (DAI)" in view.text
        assert "1/3" in view.text
        assert "2.000000 ETH" in view.text
        assert sample_position.token_address in view.text
        assert "📈 +25.0000%" in view.text
        assert "Pool Share: 1.500000%" in view.text

    def test_negative_pnl(self, sample_position: Position) -> None:
        view = render_position(_snapshot(sample_position, pnl=-10.0), 0, 1)
        assert "📉 -10.0000%" in view.text

    def test_keyboard_callbacks(self, sample_position: Position) -> None:
        view = render_position(_snapshot(sample_position), 0, 1)
        callbacks = [b["callback_data"] for row in view.keyboard for b in row]
        assert callbacks == [
            "prev_pos",
            "refresh_pos",
            "next_pos",
            "execute_zapout:50",
            "execute_zapout:100",
        ]

    def test_same_state_same_fingerprint(self, sample_position: Position) -> None:
        a = render_position(_snapshot(sample_position), 0, 1)
        b = render_position(_snapshot(sample_position), 0, 1)
        assert a.fingerprint() == b.fingerprint()

    def test_changed_value_changes_fingerprint(self, sample_position: Position) -> None:
        a = render_position(_snapshot(sample_position, value_eth=2.0), 0, 1)
        b = render_position(_snapshot(sample_position, value_eth=2.1), 0, 1)
        assert a.fingerprint() != b.fingerprint()


class TestFingerprint:
    def test_keyboard_is_part_of_fingerprint(self) -> None:
        plain = RenderedView(text="x")
        with_keys = RenderedView(text="x", keyboard=[[{"text": "a", "callback_data": "a"}]])
        assert plain.fingerprint() != with_keys.fingerprint()

    def test_closed_view(self) -> None:
        assert render_closed().text == "Position has been closed."
        assert render_closed().keyboard is None


class TestRenderTokenQuote:
    def test_contents_and_presets(self) -> None:
        pair = PairInfo(pair_address="0xpair", price_eth=0.0001, market_cap_eth=1000.0)
        view = render_token_quote("0xtoken", DAI_INFO, pair, 3000.0, 12.0, 4.2)
        assert "*Market Cap:* $3,000,000.00" in view.text
        assert "Gas Price: 12.0 Gwei" in view.text
        assert "Est. Tx Fee: $4.2000" in view.text
        callbacks = [b["callback_data"] for row in view.keyboard for b in row]
        assert "zap_amount:0.001" in callbacks
        assert "zap_amount:0.008" in callbacks
        assert "refresh_zap:0xtoken" in callbacks


class TestRenderPlan:
    def test_contents(self) -> None:
        quote = GasQuote(
            base_fee=10 * GWEI, priority_fee=2 * GWEI, max_fee=22 * GWEI,
            speed_tier="standard", source="primary-oracle",
        )
        plan = ZapInPlan(
            token_address="0xtoken",
            pair_address="0xpair",
            amount_in=5 * 10**15,
            market_cap_eth=1000.0,
            slippage=SlippagePolicy(tolerance_bps=150, price_impact_pct=0.75),
            amount_token_min=1,
            amount_weth_min=1,
            gas=quote,
            gas_limit=300_000,
            balance=BalanceCheck(balance=10**18, spend=5 * 10**15, estimated_fee=400_000 * 22 * GWEI),
            deadline=0,
        )
        view = render_plan(plan, "DAI")
        assert "0.005000 ETH for DAI" in view.text
        assert "Slippage tolerance: 1.50%" in view.text
        assert "primary-oracle" in view.text
        assert "Max Tx Fee: 0.008800 ETH" in view.text
        callbacks = [b["callback_data"] for row in view.keyboard for b in row]
        assert callbacks == ["confirm_zap", "cancel_zap"]
