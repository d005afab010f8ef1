"""Pure candidate selection helpers for the rotation engine.

Nothing in here touches the database: callers load developer pools and
hand them over as plain dataclasses, which keeps the ordering and quota
rules easy to unit test.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Mapping

from ...models.developer import DeveloperLevel
from ...shared.utils import ensure_utc
from .errors import InvalidSelectionError

DEFAULT_RESPONSE_TIME_MS = 60000
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Pools are gathered most-experienced first
LEVEL_GATHER_ORDER = (DeveloperLevel.EXPERT, DeveloperLevel.MID, DeveloperLevel.FRESHER)


@dataclass(frozen=True)
class BatchSelection:
    fresher_count: int
    mid_count: int
    expert_count: int

    @property
    def total(self) -> int:
        return self.fresher_count + self.mid_count + self.expert_count

    def count_for(self, level: str) -> int:
        return {
            DeveloperLevel.FRESHER: self.fresher_count,
            DeveloperLevel.MID: self.mid_count,
            DeveloperLevel.EXPERT: self.expert_count,
        }.get(level, 0)

    def as_dict(self) -> dict:
        return {
            "fresherCount": self.fresher_count,
            "midCount": self.mid_count,
            "expertCount": self.expert_count,
        }


@dataclass
class PoolEntry:
    """An eligible developer inside a (skill, level) pool."""

    developer_id: int
    level: str
    last_responded_at: datetime | None = None
    accepted_count: int = 0
    usual_response_time_ms: int = DEFAULT_RESPONSE_TIME_MS


@dataclass
class DeveloperCandidate:
    developer_id: int
    level: str
    skill_ids: list[int] = field(default_factory=list)
    usual_response_time_ms: int = DEFAULT_RESPONSE_TIME_MS


def resolve_selection(
    overrides: Mapping[str, int | None] | None,
    defaults: BatchSelection,
    max_per_level: int,
) -> BatchSelection:
    """Merge per-level overrides onto the defaults and validate bounds.

    ``overrides`` uses the snake_case keys of :class:`BatchSelection`;
    missing or ``None`` values keep the default.
    """
    values = {
        "fresher_count": defaults.fresher_count,
        "mid_count": defaults.mid_count,
        "expert_count": defaults.expert_count,
    }
    for key, value in (overrides or {}).items():
        if key not in values:
            raise InvalidSelectionError(f"Unknown selection field: {key}")
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidSelectionError(f"{key} must be an integer")
        if value < 0 or value > max_per_level:
            raise InvalidSelectionError(f"{key} must be between 0 and {max_per_level}")
        values[key] = value
    return BatchSelection(**values)


def exclusion_window(existing_batches: int) -> int:
    """How many of the most recent batches to exclude developers from."""
    if existing_batches >= 5:
        return 2
    if existing_batches >= 3:
        return 1
    return 0


def calculate_response_time(
    responses: Iterable[tuple[datetime | None, datetime | None]],
    default: int = DEFAULT_RESPONSE_TIME_MS,
) -> int:
    """Average ``responded_at - assigned_at`` in milliseconds.

    ``responses`` yields ``(assigned_at, responded_at)`` pairs; pairs
    missing either side are ignored.
    """
    durations = []
    for assigned_at, responded_at in responses:
        if assigned_at is None or responded_at is None:
            continue
        delta = ensure_utc(responded_at) - ensure_utc(assigned_at)
        durations.append(delta.total_seconds() * 1000)
    if not durations:
        return default
    return int(round(sum(durations) / len(durations)))


def apply_fair_ordering(pool: list[PoolEntry], last_developer_ids: Iterable[int] | None) -> list[PoolEntry]:
    """Rotate the pool so selection resumes right after the last pick.

    The cut goes after the furthest cursor hit in pool order.

    Without a cursor hit, developers who responded longest ago come first,
    ties broken by fewer acceptances. ``pool`` must already be id-ordered.
    """
    last_ids = set(last_developer_ids or [])
    if last_ids:
        last_index = max((i for i, entry in enumerate(pool) if entry.developer_id in last_ids), default=-1)
        if last_index >= 0:
            return pool[last_index + 1:] + pool[: last_index + 1]

    return sorted(
        pool,
        key=lambda entry: (ensure_utc(entry.last_responded_at) or _EPOCH, entry.accepted_count),
    )


def merge_by_developer(candidates: Iterable[DeveloperCandidate]) -> list[DeveloperCandidate]:
    """Collapse candidates gathered for several skills into one per developer."""
    merged: dict[int, DeveloperCandidate] = {}
    for candidate in candidates:
        existing = merged.get(candidate.developer_id)
        if existing is None:
            merged[candidate.developer_id] = DeveloperCandidate(
                developer_id=candidate.developer_id,
                level=candidate.level,
                skill_ids=list(candidate.skill_ids),
                usual_response_time_ms=candidate.usual_response_time_ms,
            )
            continue
        for skill_id in candidate.skill_ids:
            if skill_id not in existing.skill_ids:
                existing.skill_ids.append(skill_id)
    return list(merged.values())


def adaptive_quota(target: BatchSelection, found: Mapping[str, int]) -> BatchSelection:
    """Shrink the target to what the pool can fill, promoting lower levels upward.

    Expert shortfall is covered from mid developers, then mid shortfall
    from freshers.
    """
    fresher = found.get(DeveloperLevel.FRESHER, 0)
    mid = found.get(DeveloperLevel.MID, 0)
    expert = found.get(DeveloperLevel.EXPERT, 0)

    if fresher + mid + expert < target.total:
        if expert < target.expert_count and mid > 0:
            promote = min(target.expert_count - expert, mid)
            expert += promote
            mid -= promote
        if mid < target.mid_count and fresher > 0:
            promote = min(target.mid_count - mid, fresher)
            mid += promote
            fresher -= promote

    return BatchSelection(
        fresher_count=min(target.fresher_count, fresher),
        mid_count=min(target.mid_count, mid),
        expert_count=min(target.expert_count, expert),
    )


def rebalance_and_trim(candidates: list[DeveloperCandidate], selection: BatchSelection) -> list[DeveloperCandidate]:
    """Trim candidates to the level quotas, back-filling expert then mid slots."""
    by_level: dict[str, list[DeveloperCandidate]] = {level: [] for level in DeveloperLevel.ALL}
    for candidate in candidates:
        by_level.setdefault(candidate.level, []).append(candidate)

    adjusted = adaptive_quota(selection, {level: len(items) for level, items in by_level.items()})

    expert = by_level[DeveloperLevel.EXPERT][: adjusted.expert_count]
    mid = by_level[DeveloperLevel.MID][: adjusted.mid_count]
    fresher = by_level[DeveloperLevel.FRESHER][: adjusted.fresher_count]

    # Spare lower-level developers, in pool order
    spare_mid = by_level[DeveloperLevel.MID][adjusted.mid_count:]
    spare_fresher = by_level[DeveloperLevel.FRESHER][adjusted.fresher_count:]

    need_expert = adjusted.expert_count - len(expert)
    if need_expert > 0:
        take = spare_mid[:need_expert]
        spare_mid = spare_mid[len(take):]
        expert.extend(take)
        still_need = need_expert - len(take)
        if still_need > 0:
            take = spare_fresher[:still_need]
            spare_fresher = spare_fresher[len(take):]
            expert.extend(take)

    need_mid = adjusted.mid_count - len(mid)
    if need_mid > 0:
        mid.extend(spare_fresher[:need_mid])

    return fresher + mid + expert


def cursor_updates(skill_ids: Iterable[int], candidates: Iterable[DeveloperCandidate]) -> dict[tuple[int, str], list[int]]:
    """Developer ids selected per (skill, level), for rotation cursor upserts."""
    candidates = list(candidates)
    updates: dict[tuple[int, str], list[int]] = {}
    for skill_id in skill_ids:
        for level in LEVEL_GATHER_ORDER:
            picked = [c.developer_id for c in candidates if c.level == level and skill_id in c.skill_ids]
            if picked:
                updates[(skill_id, level)] = picked
    return updates
