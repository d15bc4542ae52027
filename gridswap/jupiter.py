"""
Jupiter aggregator client - swap quotes and swap transactions.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

try:
    import httpx
except ImportError:
    raise ImportError("httpx is required. Install with: pip install httpx")

from .config import DEFAULT_JUPITER_API
from .exceptions import AggregatorError

logger = logging.getLogger(__name__)


@dataclass
class Quote:
    """A swap quote for ``in_amount`` raw units of ``input_mint``"""
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    has_route: bool
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_response(cls, input_mint: str, output_mint: str, amount: int, data: Dict[str, Any]) -> "Quote":
        has_route = bool(data.get("routePlan"))
        return cls(
            input_mint=input_mint,
            output_mint=output_mint,
            in_amount=int(data.get("inAmount", amount)),
            out_amount=int(data.get("outAmount", 0)) if has_route else 0,
            has_route=has_route and int(data.get("outAmount", 0)) > 0,
            raw=data,
        )


@dataclass
class SwapTransaction:
    """Unsigned swap transaction built by the aggregator"""
    transaction: str  # base64
    priority_fee: int  # lamports
    last_valid_block_height: Optional[int] = None


class JupiterClient:
    """
    Async client for the Jupiter swap API.

    Example:
        jup = JupiterClient()
        quote = await jup.quote(SOL, PH, 1_000_000, slippage_bps=50)
        swap = await jup.swap_transaction(quote, user_public_key)
    """

    def __init__(
        self,
        api_base: str = DEFAULT_JUPITER_API,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """Make HTTP request to the aggregator API."""
        url = f"{self.api_base}{path}"
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            try:
                detail = e.response.json().get("error", e.response.text)
            except ValueError:
                detail = e.response.text or str(e)
            raise AggregatorError(f"Jupiter API error ({e.response.status_code}): {detail}")
        except httpx.HTTPError as e:
            raise AggregatorError(f"Jupiter request failed: {e}")
        except ValueError as e:
            raise AggregatorError(f"Jupiter returned invalid JSON: {e}")

    async def quote(self, input_mint: str, output_mint: str, amount: int, slippage_bps: int = 0) -> Quote:
        """
        Quote swapping ``amount`` raw units of ``input_mint``.

        A response without a route plan yields ``has_route=False`` rather than
        an error; the caller decides what "no price" means.
        """
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(int(amount)),
            "slippageBps": str(int(slippage_bps)),
        }
        data = await self._request("GET", "/quote", params=params)
        return Quote.from_response(input_mint, output_mint, int(amount), data)

    async def swap_transaction(
        self,
        quote: Quote,
        user_public_key: str,
        max_priority_fee: Optional[int] = None,
    ) -> SwapTransaction:
        """
        Build the swap transaction for a quote.

        Args:
            quote: Quote returned by :meth:`quote`
            user_public_key: Fee payer and swap authority
            max_priority_fee: Cap for the automatic priority fee, in lamports
        """
        body: Dict[str, Any] = {
            "quoteResponse": quote.raw,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": True,
        }
        if max_priority_fee is not None:
            body["prioritizationFeeLamports"] = {
                "priorityLevelWithMaxLamports": {
                    "maxLamports": int(max_priority_fee),
                    "priorityLevel": "medium",
                },
            }

        data = await self._request("POST", "/swap", json=body)
        if not data.get("swapTransaction"):
            raise AggregatorError(f"Swap response carried no transaction: {data.get('error', data)}")
        return SwapTransaction(
            transaction=data["swapTransaction"],
            priority_fee=int(data.get("prioritizationFeeLamports") or 0),
            last_valid_block_height=data.get("lastValidBlockHeight"),
        )

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()
