"""Error taxonomy shared by the reward reporting pipeline."""

from __future__ import annotations


class RewardsError(Exception):
    """Base class for every error raised by pendle-rewards."""


class TransportError(RewardsError):
    """Network or HTTP failure talking to an upstream service."""


class IndexUnavailable(TransportError):
    """The subgraph could not be reached or answered with a non-2xx status."""


class QueryError(RewardsError):
    """The subgraph answered with a structured GraphQL error payload."""

    def __init__(self, message: str, errors: list | None = None):
        super().__init__(message)
        self.errors = errors or []


class ContractReadError(RewardsError):
    """A contract call reverted, returned malformed data, or the RPC failed."""


class MarketStateUnavailable(ContractReadError):
    """On-chain market state needed for PT pricing could not be read."""


class InvalidInput(RewardsError, ValueError):
    """Caller-supplied arguments failed validation."""


class PriceUnavailable(RewardsError):
    """No fresh or stale price exists for the requested feed."""
