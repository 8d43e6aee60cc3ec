"""Search aggregation across the stock and generation providers.

A single query fans out to both providers concurrently.  Each branch fails
on its own: a :class:`ProviderError`, or any other exception raised while
calling the provider, is logged and that branch contributes an empty list,
while the other branch's results are still returned.
Credential checks happen in the route before this module is reached.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable

from prompt2visuals.core.provider_models import FreepikResource, OpenAIImageDatum
from prompt2visuals.core.providers import (
    DEFAULT_GENERATION_SIZE,
    FreepikClient,
    OpenAIImageClient,
    ProviderError,
)

logger = logging.getLogger(__name__)

# The stock provider is asked for this many candidates per wanted result so
# that license filtering still leaves enough items.
CANDIDATE_MULTIPLIER = 5


@dataclass(frozen=True)
class SearchOutcome:
    """Combined provider results for one query."""

    stock: list[FreepikResource] = field(default_factory=list)
    generated: list[OpenAIImageDatum] = field(default_factory=list)


def filter_by_license(
    resources: Iterable[FreepikResource],
    license_filter: str,
    max_results: int,
) -> list[FreepikResource]:
    """Keep at most ``max_results`` resources that pass the license filter.

    ``"all"`` passes everything through.  Any other value keeps only
    resources with at least one license whose type contains "free".
    """
    kept: list[FreepikResource] = []
    for resource in resources:
        if len(kept) >= max_results:
            break
        if license_filter != "all" and not resource.has_free_license:
            continue
        kept.append(resource)
    return kept


async def _search_stock(
    stock: FreepikClient,
    query: str,
    *,
    max_results: int,
    safe_search: bool,
    license_filter: str,
) -> list[FreepikResource]:
    try:
        candidates = await stock.search(
            query,
            limit=max_results * CANDIDATE_MULTIPLIER,
            safe_search=safe_search,
        )
    except ProviderError as exc:
        logger.error("Stock search failed (status=%s): %s %s", exc.status, exc, exc.detail)
        return []
    except Exception:
        logger.exception("Stock search raised unexpectedly")
        return []
    return filter_by_license(candidates, license_filter, max_results)


async def _generate(generator: OpenAIImageClient, query: str, *, count: int) -> list[OpenAIImageDatum]:
    try:
        return await generator.generate(query, n=count, size=DEFAULT_GENERATION_SIZE)
    except ProviderError as exc:
        logger.error("Image generation failed (status=%s): %s %s", exc.status, exc, exc.detail)
        return []
    except Exception:
        logger.exception("Image generation raised unexpectedly")
        return []


async def aggregate_search(
    query: str,
    *,
    stock: FreepikClient,
    generator: OpenAIImageClient,
    max_results: int,
    safe_search: bool,
    license_filter: str,
) -> SearchOutcome:
    """Run the stock search and the image generation for ``query``.

    Both calls are issued concurrently and awaited together.  Neither
    branch can fail the other.

    Args:
        query: Non-empty search text, also used as the generation prompt.
        stock: Stock photo client.
        generator: Image generation client.
        max_results: Upper bound on items per branch.
        safe_search: Safe-search flag for the stock provider.
        license_filter: ``"all"`` or a free-only filter value.

    Returns:
        A :class:`SearchOutcome` with whatever each branch produced.
    """
    stock_results, generated_results = await asyncio.gather(
        _search_stock(
            stock,
            query,
            max_results=max_results,
            safe_search=safe_search,
            license_filter=license_filter,
        ),
        _generate(generator, query, count=max_results),
    )
    logger.info(
        "Search %r: %d stock, %d generated",
        query,
        len(stock_results),
        len(generated_results),
    )
    return SearchOutcome(stock=stock_results, generated=generated_results)
