"""Deduplicated batch resolution of cross-references between documents."""

import asyncio
from typing import Callable, Iterable, TypeVar

from ..logging_config import get_logger
from ..store import Document, IDocumentStore

logger = get_logger(__name__)

T = TypeVar("T")


async def resolve_references(
    store: IDocumentStore,
    collection: str,
    ids: Iterable[str | None],
    parse: Callable[[Document], T],
) -> dict[str, T]:
    """Point-read every distinct id in parallel and return an id-keyed table.

    Missing documents are simply absent from the table. A failed lookup is
    logged and treated as missing; it never fails the whole batch.
    """
    unique_ids = list(dict.fromkeys(ref_id for ref_id in ids if ref_id))
    if not unique_ids:
        return {}

    results = await asyncio.gather(
        *[store.get(collection, ref_id) for ref_id in unique_ids],
        return_exceptions=True,
    )

    table: dict[str, T] = {}
    for ref_id, result in zip(unique_ids, results):
        if isinstance(result, Exception):
            logger.warning(
                "Lookup of %s/%s failed, leaving it unresolved: %s",
                collection,
                ref_id,
                result,
            )
            continue
        if result is None:
            continue
        table[ref_id] = parse(result)

    return table
