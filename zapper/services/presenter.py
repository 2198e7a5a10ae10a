"""Message rendering for positions and zap-in quotes (Telegram Markdown)."""
from __future__ import annotations

from dataclasses import dataclass

from ..models import GWEI, WEI_PER_ETH, PairInfo, PositionSnapshot, TokenInfo, ZapInPlan

Keyboard = list[list[dict[str, str]]]

ZAP_AMOUNT_PRESETS = ("0.001", "0.003", "0.005", "0.008")


@dataclass(frozen=True)
class RenderedView:
    text: str
    keyboard: Keyboard | None = None

    def fingerprint(self) -> str:
        rows = "|".join(
            ",".join(b["callback_data"] for b in row) for row in (self.keyboard or [])
        )
        return f"{self.text}\x00{rows}"


def _button(text: str, data: str) -> dict[str, str]:
    return {"text": text, "callback_data": data}


def format_usd(value: float) -> str:
    return f"${value:,.2f}"


def position_keyboard() -> Keyboard:
    return [
        [
            _button("⬅️ Prev", "prev_pos"),
            _button("🔄 Refresh", "refresh_pos"),
            _button("Next ➡️", "next_pos"),
        ],
        [
            _button("🔥 Zap Out 50%", "execute_zapout:50"),
            _button("💥 Zap Out 100%", "execute_zapout:100"),
        ],
    ]


def render_position(snapshot: PositionSnapshot, index: int, total: int) -> RenderedView:
    pnl = snapshot.market_cap_pnl_pct
    trend = "📈 +" if pnl >= 0 else "📉 "
    text = (
        f"*{snapshot.token.name} ({snapshot.token.symbol})* · {index + 1}/{total}\n"
        f"Position Value: {snapshot.value_eth:.6f} ETH (~{format_usd(snapshot.value_usd)})\n"
        f"*Address:* `{snapshot.position.token_address}`\n"
        f"\n"
        f"Initial MarketCap: {format_usd(snapshot.initial_market_cap_usd)}\n"
        f"Current MarketCap: {format_usd(snapshot.current_market_cap_usd)}\n"
        f"Token MCAP P/L: {trend}{pnl:.4f}%\n"
        f"\n"
        f"Pool Share: {snapshot.pool_share_pct:.6f}%\n"
        f"\n"
        f"*Est. Zap Out Details:*\n"
        f"Gas Price: {snapshot.gas_price_gwei:.1f} Gwei\n"
        f"Est. Tx Fee: ${snapshot.estimated_fee_usd:.4f}"
    )
    return RenderedView(text=text, keyboard=position_keyboard())


def render_closed() -> RenderedView:
    return RenderedView(text="Position has been closed.")


def render_token_quote(
    token_address: str,
    token: TokenInfo,
    pair: PairInfo,
    eth_usd: float,
    gas_price_gwei: float,
    fee_usd: float,
) -> RenderedView:
    price_usd = pair.price_eth * eth_usd
    text = (
        f"*Token Found:*\n"
        f"*Name:* {token.name} ({token.symbol})\n"
        f"*Address:* `{token_address}`\n"
        f"*Market Cap:* {format_usd(pair.market_cap_eth * eth_usd)}\n"
        f"*Price:* ${price_usd:.8g} / {pair.price_eth:.18f} ETH\n"
        f"\n"
        f"*Current Network Estimate:*\n"
        f"Gas Price: {gas_price_gwei:.1f} Gwei\n"
        f"Est. Tx Fee: ${fee_usd:.4f}\n"
        f"\n"
        f"How much ETH would you like to zap in?"
    )
    presets = [_button(a, f"zap_amount:{a}") for a in ZAP_AMOUNT_PRESETS]
    keyboard = [
        presets[:2],
        presets[2:],
        [_button("🔄 Refresh", f"refresh_zap:{token_address}")],
    ]
    return RenderedView(text=text, keyboard=keyboard)


def render_plan(plan: ZapInPlan, symbol: str) -> RenderedView:
    text = (
        f"You are about to zap in {plan.amount_in / WEI_PER_ETH:.6f} ETH for {symbol}.\n"
        f"Price impact: {plan.slippage.price_impact_pct:.3f}% · "
        f"Slippage tolerance: {plan.slippage.tolerance_bps / 100:.2f}%\n"
        f"Gas Price: ~{plan.gas.max_fee / GWEI:.1f} Gwei ({plan.gas.source})\n"
        f"Max Tx Fee: {plan.balance.estimated_fee / WEI_PER_ETH:.6f} ETH\n"
        f"Please confirm."
    )
    keyboard = [[_button("✅ Confirm Zap In", "confirm_zap"), _button("❌ Cancel", "cancel_zap")]]
    return RenderedView(text=text, keyboard=keyboard)
