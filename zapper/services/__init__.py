"""Service modules"""
from .balance import BalanceValidator
from .flow import ZapInFlow
from .market import MarketService
from .presenter import RenderedView, render_closed, render_plan, render_position, render_token_quote
from .watcher import RefreshWatcher, position_renderer
from .zap import ZapService, parse_eth_amount

__all__ = [
    "BalanceValidator",
    "MarketService",
    "RefreshWatcher",
    "RenderedView",
    "ZapInFlow",
    "ZapService",
    "parse_eth_amount",
    "position_renderer",
    "render_closed",
    "render_plan",
    "render_position",
    "render_token_quote",
]
