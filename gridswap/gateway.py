"""
Swap execution: build, sign, broadcast and confirm.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .auth import Keypair
from .config import NATIVE_SOL_MINT
from .exceptions import AggregatorError, ExecutionFailed, RPCError
from .jupiter import JupiterClient, Quote
from .rpc import SolanaRPC, Wallet

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Outcome of a swap attempt"""
    confirmed: bool
    filled_amount: int  # raw units of the quote's output mint
    priority_fee: int   # lamports
    signature: Optional[str] = None


class JupiterGateway:
    """
    Executes aggregator quotes from the bot's wallet.

    The fee ceiling is enforced before signing: a transaction whose priority
    fee exceeds it is never broadcast and comes back unconfirmed with the fee
    it would have paid.
    """

    def __init__(
        self,
        jupiter: JupiterClient,
        rpc: SolanaRPC,
        keypair: Keypair,
        wallet: Wallet,
        confirm_timeout: float = 60.0,
    ):
        self.jupiter = jupiter
        self.rpc = rpc
        self.keypair = keypair
        self.wallet = wallet
        self.confirm_timeout = confirm_timeout

    async def execute(self, quote: Quote, max_priority_fee: int) -> ExecutionResult:
        """
        Execute a quote.

        Args:
            quote: Quote with a route
            max_priority_fee: Highest acceptable priority fee, lamports

        Returns:
            ExecutionResult; ``filled_amount`` is the measured increase of the
            output balance, or the quoted amount when it cannot be measured

        Raises:
            ExecutionFailed: Building, broadcasting or confirming failed
        """
        if not quote.has_route:
            raise ExecutionFailed("Cannot execute a quote without a route")

        try:
            swap = await self.jupiter.swap_transaction(quote, self.keypair.public_key, max_priority_fee)
            if swap.priority_fee > max_priority_fee:
                logger.warning(f"Not broadcasting: priority fee {swap.priority_fee} > {max_priority_fee}")
                return ExecutionResult(confirmed=False, filled_amount=0, priority_fee=swap.priority_fee)

            # Native SOL output is blurred by network fees, so only token outputs are measured
            measure = quote.output_mint != NATIVE_SOL_MINT
            before = await self.wallet.balance_raw(quote.output_mint) if measure else 0

            signed, signature = self.keypair.sign_transaction(swap.transaction)
            await self.rpc.send_transaction(signed)
            logger.info(f"   ↳ tx: {signature}")

            confirmed = await self.rpc.confirm_transaction(signature, timeout=self.confirm_timeout)
            if not confirmed:
                logger.warning(f"Transaction {signature} not confirmed within {self.confirm_timeout}s")
                return ExecutionResult(
                    confirmed=False, filled_amount=0, priority_fee=swap.priority_fee, signature=signature,
                )

        except (AggregatorError, RPCError) as e:
            raise ExecutionFailed(str(e)) from e

        # The swap has landed from here on; nothing below may turn it into a failure
        filled = quote.out_amount
        if measure:
            try:
                delta = await self.wallet.balance_raw(quote.output_mint) - before
            except RPCError as e:
                logger.warning(f"Could not measure fill for {signature}, using quoted amount: {e}")
                delta = 0
            if delta > 0:
                filled = delta

        return ExecutionResult(
            confirmed=True, filled_amount=filled, priority_fee=swap.priority_fee, signature=signature,
        )
