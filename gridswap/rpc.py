"""
Minimal async Solana JSON-RPC client and wallet balance reader.
"""

import asyncio
import itertools
import logging
from typing import Any, Dict, List, Optional

try:
    import httpx
except ImportError:
    raise ImportError("httpx is required. Install with: pip install httpx")

from .config import NATIVE_SOL_MINT
from .exceptions import RPCError

logger = logging.getLogger(__name__)

COMMITMENT = "confirmed"


class SolanaRPC:
    """Lightweight client for the handful of RPC methods the bot needs."""

    def __init__(self, url: str, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def _call(self, method: str, params: Optional[List] = None) -> Any:
        """Make a JSON-RPC request and return its ``result``."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            response = await self._client.post(self.url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise RPCError(f"{method} failed ({e.response.status_code}): {e.response.text}")
        except httpx.HTTPError as e:
            raise RPCError(f"{method} request failed: {e}")
        except ValueError as e:
            raise RPCError(f"{method} returned invalid JSON: {e}")

        if data.get("error"):
            error = data["error"]
            raise RPCError(f"{method} error {error.get('code')}: {error.get('message')}")
        return data.get("result")

    # ── Account data ──

    async def get_balance(self, owner: str) -> int:
        """Native SOL balance in lamports."""
        result = await self._call("getBalance", [owner, {"commitment": COMMITMENT}])
        return int(result["value"])

    async def get_token_balance(self, owner: str, mint: str) -> int:
        """Raw SPL token balance summed over the owner's accounts for ``mint``."""
        result = await self._call("getTokenAccountsByOwner", [
            owner,
            {"mint": mint},
            {"encoding": "jsonParsed", "commitment": COMMITMENT},
        ])
        total = 0
        for account in result.get("value", []):
            info = account["account"]["data"]["parsed"]["info"]
            total += int(info["tokenAmount"]["amount"])
        return total

    async def get_mint_decimals(self, mint: str) -> int:
        result = await self._call("getTokenSupply", [mint])
        return int(result["value"]["decimals"])

    # ── Transactions ──

    async def send_transaction(self, tx_base64: str) -> str:
        """Broadcast a signed transaction, returning its signature."""
        return await self._call("sendTransaction", [
            tx_base64,
            {"encoding": "base64", "skipPreflight": False, "preflightCommitment": COMMITMENT, "maxRetries": 3},
        ])

    async def get_signature_status(self, signature: str) -> Optional[Dict[str, Any]]:
        result = await self._call("getSignatureStatuses", [[signature], {"searchTransactionHistory": False}])
        statuses = result.get("value") or [None]
        return statuses[0]

    async def confirm_transaction(self, signature: str, timeout: float = 60.0, poll_interval: float = 1.0) -> bool:
        """
        Poll until the signature reaches ``confirmed`` or ``finalized``.

        Returns:
            True when confirmed, False on timeout

        Raises:
            RPCError: The transaction landed with an error
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            status = await self.get_signature_status(signature)
            if status:
                if status.get("err"):
                    raise RPCError(f"Transaction {signature} failed: {status['err']}")
                if status.get("confirmationStatus") in ("confirmed", "finalized"):
                    return True
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(poll_interval)

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()


class Wallet:
    """
    Balance reader for the bot's two assets.

    Native SOL is read with ``getBalance``; any other mint through its token
    accounts.

    Example:
        wallet = Wallet(rpc, owner=kp.public_key, quote_mint=SOL, base_mint=PH)
        await wallet.quote_balance_raw()
    """

    def __init__(self, rpc: SolanaRPC, owner: str, quote_mint: str, base_mint: str):
        self.rpc = rpc
        self.owner = owner
        self.quote_mint = quote_mint
        self.base_mint = base_mint

    async def balance_raw(self, mint: str) -> int:
        if mint == NATIVE_SOL_MINT:
            return await self.rpc.get_balance(self.owner)
        return await self.rpc.get_token_balance(self.owner, mint)

    async def quote_balance_raw(self) -> int:
        return await self.balance_raw(self.quote_mint)

    async def base_balance_raw(self) -> int:
        return await self.balance_raw(self.base_mint)
