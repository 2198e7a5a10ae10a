"""Conversational zap-in flow as an explicit state machine.

A session moves through ``awaiting_address`` → ``awaiting_amount`` →
``confirming`` → ``executing`` and ends in ``done`` or ``cancelled``. Every
user input is an event: free text (an address or amount) or a keyboard
callback. While the flow is open the session is registered as in-flight with
the watcher so auto-refresh never edits over a prompt.
"""
from __future__ import annotations

import logging
from typing import Any

from web3 import Web3

from ..config import AppConfig
from ..errors import (
    ExecutionError,
    InsufficientFundsError,
    LedgerWriteError,
    PairNotFoundError,
    ZapperError,
)
from ..interfaces.chain import ChainClient
from ..interfaces.notifier import ChatTransport
from ..models import ZapInPlan, ZapResult
from .market import MarketService
from .presenter import RenderedView, render_plan, render_token_quote
from .watcher import RefreshWatcher
from .zap import ZapService, parse_eth_amount

logger = logging.getLogger(__name__)

STATE_AWAITING_ADDRESS = "awaiting_address"
STATE_AWAITING_AMOUNT = "awaiting_amount"
STATE_CONFIRMING = "confirming"
STATE_EXECUTING = "executing"
STATE_DONE = "done"
STATE_CANCELLED = "cancelled"

TERMINAL_STATES = frozenset({STATE_DONE, STATE_CANCELLED})


class ZapInFlow:
    """One zap-in conversation for one chat session."""

    def __init__(
        self,
        session_id: str,
        zap: ZapService,
        market: MarketService,
        chain: ChainClient,
        transport: ChatTransport,
        watcher: RefreshWatcher,
        config: AppConfig,
    ) -> None:
        self.session_id = session_id
        self._zap = zap
        self._market = market
        self._chain = chain
        self._transport = transport
        self._watcher = watcher
        self._config = config
        self.state = STATE_AWAITING_ADDRESS
        self.token_address: str | None = None
        self.symbol = ""
        self.plan: ZapInPlan | None = None
        self.result: ZapResult | None = None

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    async def start(self) -> None:
        self._watcher.stop(self.session_id)
        self._watcher.begin_flow(self.session_id)
        self.state = STATE_AWAITING_ADDRESS
        await self._say("Please send the token address you want to zap into.")

    async def handle_text(self, text: str) -> str:
        """Feed free-form user input into the flow; returns the new state."""
        if self.state == STATE_AWAITING_ADDRESS:
            await self._on_address(text.strip())
        elif self.state == STATE_AWAITING_AMOUNT:
            await self._on_amount(text.strip())
        else:
            logger.debug("Ignoring text in state %s for session %s", self.state, self.session_id)
        return self.state

    async def handle_action(self, action: str) -> str:
        """Feed a keyboard callback (``zap_amount:X``, ``confirm_zap`` ...) into the flow."""
        name, _, arg = action.partition(":")
        if name == "cancel_zap":
            await self.cancel("Zap cancelled.")
        elif name == "zap_amount" and self.state == STATE_AWAITING_AMOUNT:
            await self._on_amount(arg)
        elif name == "refresh_zap" and self.state == STATE_AWAITING_AMOUNT:
            await self._on_address(arg or self.token_address or "")
        elif name == "confirm_zap" and self.state == STATE_CONFIRMING:
            await self._on_confirm()
        else:
            logger.debug(
                "Action %r not valid in state %s for session %s", action, self.state, self.session_id
            )
        return self.state

    async def cancel(self, reason: str = "Zap cancelled.") -> None:
        if self.finished:
            return
        self._finish(STATE_CANCELLED)
        await self._say(reason)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _on_address(self, text: str) -> None:
        if not Web3.is_address(text):
            await self.cancel("Invalid Ethereum address.")
            return
        token = Web3.to_checksum_address(text)
        try:
            info = await self._chain.get_token_info(token)
            pair = await self._market.get_pair_info(token)
            eth_usd = await self._market.eth_price_usd()
            gas_gwei, fee_usd = await self._market.fee_estimate(
                self._config.transactions.zap_in_gas_limit
            )
        except PairNotFoundError:
            await self.cancel("No Uniswap V2 WETH pair exists for this token.")
            return
        except ZapperError as e:
            logger.error("Token lookup failed for %s: %s", token, e)
            await self.cancel(f"Error fetching token info: {e}")
            return
        except Exception:
            logger.exception("Unexpected error looking up token %s", token)
            await self.cancel("Error fetching token info. Please try again.")
            return

        self.token_address = token
        self.symbol = info.symbol
        self.state = STATE_AWAITING_AMOUNT
        await self._show(render_token_quote(token, info, pair, eth_usd, gas_gwei, fee_usd))

    async def _on_amount(self, text: str) -> None:
        try:
            parse_eth_amount(text)
        except ValueError:
            await self.cancel("Invalid amount.")
            return
        try:
            self.plan = await self._zap.prepare_zap_in(self.token_address, text)
        except InsufficientFundsError as e:
            await self.cancel(e.user_message())
            return
        except (ValueError, ZapperError) as e:
            logger.error("Could not prepare zap-in for %s: %s", self.token_address, e)
            await self.cancel(f"Could not prepare the zap: {e}")
            return
        except Exception:
            logger.exception("Unexpected error preparing zap-in for %s", self.token_address)
            await self.cancel("Could not prepare the zap. Please try again.")
            return
        self.state = STATE_CONFIRMING
        await self._show(render_plan(self.plan, self.symbol))

    async def _on_confirm(self) -> None:
        self.state = STATE_EXECUTING
        try:
            await self._say("Submitting transaction...")
            self.result = await self._zap.execute_zap_in(self.plan)
        except LedgerWriteError as e:
            self._finish(STATE_DONE)
            await self._say(
                "The zap went through on-chain, but saving the position failed: "
                f"{e}. It will not appear in your position list."
            )
            return
        except ExecutionError as e:
            self._finish(STATE_CANCELLED)
            await self._say(self._failure_text(e))
            return
        except ZapperError as e:
            logger.error("Zap-in failed for %s: %s", self.token_address, e)
            self._finish(STATE_CANCELLED)
            await self._say(f"Zap-in failed: {e}")
            return
        except Exception:
            # outcome unknown: the transaction may still have been broadcast
            logger.exception("Unexpected error executing zap-in for %s", self.token_address)
            self._finish(STATE_CANCELLED)
            await self._say(
                "Zap-in failed with an unexpected error. "
                "Check your wallet history before retrying."
            )
            return

        self._finish(STATE_DONE)
        await self._say(
            "✅ Zap-in successful!\n"
            f"[View on Etherscan]({self._config.chain.explorer_tx_url}{self.result.tx_hash})"
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _finish(self, state: str) -> None:
        self.state = state
        self._watcher.end_flow(self.session_id)
        logger.info("Zap-in flow for session %s ended: %s", self.session_id, state)

    def _failure_text(self, error: ExecutionError) -> str:
        text = f"Transaction failed: {error.reason}"
        if error.tx_hash:
            text += f"\n[View on Etherscan]({self._config.chain.explorer_tx_url}{error.tx_hash})"
        return text

    async def _say(self, text: str) -> Any:
        return await self._transport.send_message(self.session_id, text)

    async def _show(self, view: RenderedView) -> Any:
        return await self._transport.send_message(self.session_id, view.text, view.keyboard)
