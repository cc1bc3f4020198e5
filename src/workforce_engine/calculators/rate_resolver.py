"""Hourly rate resolution with tiered scope matching."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from workforce_engine.domain.types import RateEntry
from workforce_engine.exceptions import OverlappingRateError, RateNotFoundError
from workforce_engine.storage.base import Storage


def rate_tier(entry: RateEntry, user_id: UUID, project_id: UUID | None) -> int | None:
    """Score how specifically an entry matches (user, project).

    Returns 3 for user+project, 2 for project-wide, 1 for user-wide and None
    when the entry does not apply. Entries scoped to neither never apply.
    """
    if entry.user_id is not None and entry.user_id != user_id:
        return None
    if entry.project_id is not None and entry.project_id != project_id:
        return None
    if entry.user_id is not None and entry.project_id is not None:
        return 3
    if entry.project_id is not None:
        return 2
    if entry.user_id is not None:
        return 1
    return None


def select_rate(
    entries: Iterable[RateEntry],
    user_id: UUID,
    project_id: UUID | None,
    as_of_date: date,
) -> RateEntry:
    """Pick the single applicable entry from candidates.

    Search order: user+project > project-wide > user-wide.

    Raises:
        RateNotFoundError: nothing covers the date.
        OverlappingRateError: two entries of the winning tier are effective.
    """
    best_tier = 0
    best: list[RateEntry] = []

    for entry in entries:
        if not entry.is_active_on(as_of_date):
            continue
        tier = rate_tier(entry, user_id, project_id)
        if tier is None:
            continue
        if tier > best_tier:
            best_tier = tier
            best = [entry]
        elif tier == best_tier:
            best.append(entry)

    if not best:
        raise RateNotFoundError(user_id, project_id, as_of_date)
    if len(best) > 1:
        raise OverlappingRateError([e.id for e in best], as_of_date)
    return best[0]


def find_overlapping_rates(entries: Iterable[RateEntry]) -> list[tuple[RateEntry, RateEntry]]:
    """Find pairs of same-scope entries whose effective ranges intersect."""
    by_scope: dict[tuple[UUID | None, UUID | None], list[RateEntry]] = {}
    for entry in entries:
        by_scope.setdefault((entry.user_id, entry.project_id), []).append(entry)

    overlaps: list[tuple[RateEntry, RateEntry]] = []
    for scoped in by_scope.values():
        scoped.sort(key=lambda e: e.effective_date)
        for i, first in enumerate(scoped):
            for second in scoped[i + 1:]:
                if first.overlaps(second):
                    overlaps.append((first, second))
    return overlaps


class RateResolver:
    """Resolves the hourly rate for a (user, project, date).

    Lookups are cached for the resolver's lifetime; create one per batch.
    A missing rate is always an error, never zero.
    """

    def __init__(self, storage: Storage):
        self.storage = storage
        self._cache: dict[tuple[UUID, UUID | None, date], Decimal] = {}

    async def resolve_rate(
        self,
        user_id: UUID,
        project_id: UUID | None,
        as_of_date: date,
    ) -> Decimal:
        """Resolve the hourly rate.

        Raises:
            RateNotFoundError: If no entry covers the date
            OverlappingRateError: If the winning tier is ambiguous
        """
        key = (user_id, project_id, as_of_date)
        if key in self._cache:
            return self._cache[key]

        candidates = await self.storage.list_rate_entries(user_id, project_id, as_of_date)
        entry = select_rate(candidates, user_id, project_id, as_of_date)
        self._cache[key] = entry.hourly_rate
        return entry.hourly_rate
