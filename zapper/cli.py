"""Command-line interface for the Uniswap V2 zapper."""
from __future__ import annotations

import argparse
import asyncio
import itertools
import sys
from typing import Any

from .app import ZapperApp
from .config import load_config
from .errors import ExecutionError, InsufficientFundsError, LedgerWriteError, ZapperError
from .logging_setup import configure_logging
from .models import GWEI
from .services import render_plan, render_position, render_token_quote

CONSOLE_SESSION = "console"


class ConsoleTransport:
    """Chat transport that prints to stdout; used by ``watch``."""

    def __init__(self, stream: Any = None) -> None:
        self._stream = stream or sys.stdout
        self._ids = itertools.count(1)

    async def send_message(self, chat_id: str, text: str, keyboard: Any = None) -> int:
        print(text, file=self._stream)
        print("-" * 40, file=self._stream)
        return next(self._ids)

    async def edit_message(self, chat_id: str, message_id: Any, text: str, keyboard: Any = None) -> bool:
        print(text, file=self._stream)
        print("-" * 40, file=self._stream)
        return True


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="zapper",
        description="Single-sided Uniswap V2 liquidity zapper",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("positions", help="Show every open position with live valuation")
    sub.add_parser("gas", help="Show the current gas quote and which tier produced it")

    quote_parser = sub.add_parser("quote", help="Preview a zap-in without sending it")
    quote_parser.add_argument("token", help="Token contract address")
    quote_parser.add_argument("amount", help="ETH amount, e.g. 0.005")

    zap_in_parser = sub.add_parser("zap-in", help="Zap ETH into a token's WETH pair")
    zap_in_parser.add_argument("token", help="Token contract address")
    zap_in_parser.add_argument("amount", help="ETH amount, e.g. 0.005")
    zap_in_parser.add_argument(
        "--yes", action="store_true", help="Skip the confirmation prompt"
    )

    zap_out_parser = sub.add_parser("zap-out", help="Zap a share of a position back to ETH")
    zap_out_parser.add_argument("index", type=int, help="Position number as listed by 'positions'")
    zap_out_parser.add_argument("percent", type=int, help="Percentage to exit (1-100)")

    watch_parser = sub.add_parser("watch", help="Keep a position display refreshed")
    watch_parser.add_argument("index", type=int, help="Position number as listed by 'positions'")

    return parser


async def _positions(app: ZapperApp) -> None:
    positions = app.ledger.list()
    if not positions:
        print("You have no open positions.")
        return
    for i, position in enumerate(positions):
        try:
            snapshot = await app.market.snapshot(position)
        except ZapperError as e:
            print(f"{i + 1}. {position.token_address}: could not value position ({e})")
            continue
        print(render_position(snapshot, i, len(positions)).text)
        print()


async def _gas(app: ZapperApp) -> None:
    quote = await app.gas.resolve()
    print(f"Source:       {quote.source}")
    print(f"Speed tier:   {quote.speed_tier}")
    print(f"Base fee:     {quote.base_fee / GWEI:.3f} Gwei")
    print(f"Priority fee: {quote.priority_fee / GWEI:.3f} Gwei")
    print(f"Max fee:      {quote.max_fee / GWEI:.3f} Gwei")


async def _quote(app: ZapperApp, token: str, amount: str) -> None:
    plan = await app.zap.prepare_zap_in(token, amount)
    info = await app.chain.get_token_info(plan.token_address)
    pair = await app.market.get_pair_info(plan.token_address)
    eth_usd = await app.market.eth_price_usd()
    gas_gwei, fee_usd = await app.market.fee_estimate(app.config.transactions.zap_in_gas_limit)
    print(render_token_quote(plan.token_address, info, pair, eth_usd, gas_gwei, fee_usd).text)
    print()
    print(render_plan(plan, info.symbol).text)


async def _zap_in(app: ZapperApp, token: str, amount: str, assume_yes: bool) -> None:
    plan = await app.zap.prepare_zap_in(token, amount)
    info = await app.chain.get_token_info(plan.token_address)
    print(render_plan(plan, info.symbol).text)
    if not assume_yes:
        answer = input("Proceed? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            print("Zap cancelled.")
            return
    result = await app.zap.execute_zap_in(plan)
    print(f"Zap-in successful: {app.config.chain.explorer_tx_url}{result.tx_hash}")
    print(f"Recorded as position {result.position_index + 1}")


async def _zap_out(app: ZapperApp, index: int, percent: int) -> None:
    result = await app.zap.zap_out(index - 1, percent)
    print(f"{percent}% zap-out successful: {app.config.chain.explorer_tx_url}{result.tx_hash}")
    if result.removed:
        print("Position closed.")


async def _watch(app: ZapperApp, index: int) -> None:
    watcher = app.watcher(ConsoleTransport())
    await watcher.show(CONSOLE_SESSION, index - 1)
    try:
        while watcher.is_watching(CONSOLE_SESSION):
            await asyncio.sleep(1)
    finally:
        await watcher.stop_all()


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    app = ZapperApp(config)

    if args.command == "positions":
        await _positions(app)
    elif args.command == "gas":
        await _gas(app)
    elif args.command == "quote":
        await _quote(app, args.token, args.amount)
    elif args.command == "zap-in":
        await _zap_in(app, args.token, args.amount, args.yes)
    elif args.command == "zap-out":
        await _zap_out(app, args.index, args.percent)
    elif args.command == "watch":
        await _watch(app, args.index)
    else:
        build_parser().print_help()
        sys.exit(1)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(_run(args))
    except KeyboardInterrupt:
        pass
    except InsufficientFundsError as e:
        print(e.user_message(), file=sys.stderr)
        sys.exit(1)
    except LedgerWriteError as e:
        print(f"Transaction confirmed but the position was not saved: {e}", file=sys.stderr)
        sys.exit(2)
    except ExecutionError as e:
        print(f"Transaction failed: {e.reason}", file=sys.stderr)
        sys.exit(1)
    except (ZapperError, ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
