"""Subgraph GraphQL client and offset-based pager.

The pager walks a collection with ``first``/``skip`` pages until a short page
signals the end of the dataset. Pages are concatenated in receipt order; no
re-sorting or de-duplication is applied, so callers must not assume
exactly-once delivery if the indexed dataset changes mid-walk.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence, TypedDict

import requests

from ..constants import MAX_SUBGRAPH_PAGE_SIZE
from ..errors import IndexUnavailable, QueryError
from ..logger import get_logger

logger = get_logger(__name__)


class GraphQLError(TypedDict, total=False):
    message: str
    locations: list[dict[str, int]]
    path: list[str]


class GraphQLResponse(TypedDict, total=False):
    data: dict[str, Any] | None
    errors: list[GraphQLError]


@dataclass(frozen=True)
class EntityQuery:
    """Description of a subgraph collection query.

    ``where`` maps filter fields (``user``, ``timestamp_gte``...) to GraphQL
    variable types and values: ``{"user": ("Bytes!", "0xabc...")}``.
    """

    entity: str
    fields: Sequence[str]
    where: dict[str, tuple[str, Any]] = field(default_factory=dict)
    order_by: str | None = None
    order_direction: str = "desc"

    def render(self) -> str:
        """Render the GraphQL document taking ``$first`` and ``$skip`` variables."""
        var_defs = ["$first: Int!", "$skip: Int!"]
        filters = []
        for name, (gql_type, _value) in self.where.items():
            var_name = name.replace(".", "_")
            var_defs.append(f"${var_name}: {gql_type}")
            filters.append(f"{name}: ${var_name}")

        args = ["first: $first", "skip: $skip"]
        if filters:
            args.append("where: { " + ", ".join(filters) + " }")
        if self.order_by:
            args.append(f"orderBy: {self.order_by}")
            args.append(f"orderDirection: {self.order_direction}")

        return (
            f"query Fetch({', '.join(var_defs)}) {{\n"
            f"  {self.entity}({', '.join(args)}) {{\n"
            + "".join(f"    {line}\n" for line in self.fields)
            + "  }\n}\n"
        )

    def variables(self, first: int, skip: int) -> dict[str, Any]:
        variables: dict[str, Any] = {"first": first, "skip": skip}
        for name, (_gql_type, value) in self.where.items():
            variables[name.replace(".", "_")] = value
        return variables


class PageFetcher(Protocol):
    async def fetch_page(
        self, query: EntityQuery, first: int, skip: int
    ) -> list[dict[str, Any]]: ...


class SubgraphClient:
    """Minimal GraphQL-over-HTTP client for The Graph."""

    def __init__(self, url: str, *, request_timeout: float = 30.0):
        self._url = url
        self._request_timeout = request_timeout
        self._session = requests.Session()

    def _post(self, query: str, variables: dict[str, Any]) -> GraphQLResponse:
        try:
            response = self._session.post(
                self._url,
                json={"query": query, "variables": variables},
                headers={"Content-Type": "application/json"},
                timeout=self._request_timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise IndexUnavailable(f"Subgraph request to {self._url} failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise IndexUnavailable(
                f"Subgraph at {self._url} returned a non-JSON body"
            ) from e
        if not isinstance(payload, dict):
            raise IndexUnavailable("Unexpected subgraph payload format")
        return payload  # type: ignore[return-value]

    async def query(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run a GraphQL query and return its ``data`` object.

        Raises:
            IndexUnavailable: On transport failure or non-2xx status.
            QueryError: If the response carries an ``errors`` payload.
        """
        payload = await asyncio.to_thread(self._post, query, variables)

        errors = payload.get("errors")
        if errors:
            logger.error("GraphQL errors: %s", errors)
            first = errors[0].get("message", "unknown error")
            raise QueryError(f"GraphQL error: {first}", errors=list(errors))

        return payload.get("data") or {}

    async def fetch_page(
        self, query: EntityQuery, first: int, skip: int
    ) -> list[dict[str, Any]]:
        data = await self.query(query.render(), query.variables(first, skip))
        return list(data.get(query.entity) or [])


class SubgraphPager:
    """Collects every record of an ``EntityQuery`` page by page."""

    def __init__(self, fetcher: PageFetcher, *, page_size: int = MAX_SUBGRAPH_PAGE_SIZE):
        self._fetcher = fetcher
        self._page_size = max(1, min(page_size, MAX_SUBGRAPH_PAGE_SIZE))

    @property
    def page_size(self) -> int:
        return self._page_size

    async def fetch_all(self, query: EntityQuery) -> list[dict[str, Any]]:
        """Fetch all pages sequentially until a short page is returned."""
        records: list[dict[str, Any]] = []
        page = 0

        while True:
            skip = page * self._page_size
            batch = await self._fetcher.fetch_page(query, self._page_size, skip)
            records.extend(batch)
            page += 1

            logger.info("Fetched %d %s records so far...", len(records), query.entity)

            if len(batch) < self._page_size:
                break

        return records


REDEEM_REWARDS_FIELDS = (
    "id",
    "user",
    "blockTimestamp",
    "transactionHash",
    "market { id address principalToken createdAt }",
    "rewards { id token amount }",
)

MARKET_REWARDS_FIELDS = ("id", "market", "amount", "timestamp", "blockNumber")

REWARD_UPDATES_FIELDS = (
    "id",
    "market",
    "pendlePerSec",
    "incentiveEndsAt",
    "timestamp",
    "blockNumber",
)


def redeem_rewards_query(user: str, since: int) -> EntityQuery:
    """Reward redemptions of ``user`` at or after ``since``, newest first."""
    return EntityQuery(
        entity="redeemRewards_collection",
        fields=REDEEM_REWARDS_FIELDS,
        where={
            "user": ("Bytes!", user.lower()),
            "blockTimestamp_gte": ("BigInt!", str(since)),
        },
        order_by="blockTimestamp",
    )


def market_rewards_query(market: str, since: int) -> EntityQuery:
    """PENDLE claims of ``market`` at or after ``since``, newest first."""
    return EntityQuery(
        entity="marketRewards",
        fields=MARKET_REWARDS_FIELDS,
        where={
            "market": ("Bytes!", market.lower()),
            "timestamp_gte": ("BigInt!", str(since)),
        },
        order_by="timestamp",
    )


def reward_updates_query(market: str, since: int) -> EntityQuery:
    """Emission rate updates of ``market`` at or after ``since``, newest first."""
    return EntityQuery(
        entity="rewardUpdates",
        fields=REWARD_UPDATES_FIELDS,
        where={
            "market": ("Bytes!", market.lower()),
            "timestamp_gte": ("BigInt!", str(since)),
        },
        order_by="timestamp",
    )
