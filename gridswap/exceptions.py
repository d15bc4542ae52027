"""gridswap exceptions"""


class GridSwapError(Exception):
    """Base exception for gridswap"""
    pass


class ConfigError(GridSwapError):
    """Missing or invalid configuration"""
    pass


class KeypairError(GridSwapError):
    """Key material could not be loaded"""
    pass


class NoPriceAvailable(GridSwapError):
    """Aggregator returned no route, so there is no price this tick"""
    pass


class InsufficientCapital(GridSwapError):
    """Free capital per empty level is below the minimum order size"""
    pass


class FeeTooHigh(GridSwapError):
    """Execution priority fee exceeds the configured ceiling"""

    def __init__(self, fee: int, ceiling: int):
        super().__init__(f"priority fee {fee} exceeds ceiling {ceiling}")
        self.fee = fee
        self.ceiling = ceiling


class ExecutionFailed(GridSwapError):
    """Swap could not be built, broadcast or confirmed"""
    pass


class StateCorrupt(GridSwapError):
    """Persisted grid state is unreadable"""
    pass


class RPCError(GridSwapError):
    """Solana JSON-RPC call failed"""
    pass


class AggregatorError(GridSwapError):
    """Aggregator HTTP API call failed"""
    pass
