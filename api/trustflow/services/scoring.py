"""Trust Flow scoring.

Trust Flow for a user is

    TF = max(MIN_VALUE, BASE_VALUE + sum(contribution_i) + sum(adjustment_k))

over every push the user has received and every admin adjustment k
(services/adjustments.py), where for push i from pusher p:

    base_weight_i      = tier(current cached Trust Flow of p)   (1.5 / 2.0 / 2.5)
    repeat_count_i     = earlier pushes from p to the same target no more than
                         `repeat_window` (30 days) before push i
    effective_weight_i = base_weight_i * repeat_decay ** repeat_count_i
    contribution_i     = +effective_weight_i (positive) / -effective_weight_i (negative)

The breakdown of a push is frozen into the contribution archive the first
time it is computed and replayed verbatim afterwards. Only pushes without a
record pick up the pusher's *current* tier, so recompute is an additive
replay and a pusher's later rise or fall never rewrites past contributions.

`compile_trust_flow` is the pure part and takes everything it needs as
arguments. `recompute_trust_flow` loads the snapshot, archives new
breakdowns and writes the cache; the caller owns the transaction.
"""

import math
import time
import uuid
from collections import defaultdict, deque
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Optional, Protocol

import structlog
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from trustflow.config import Settings, settings
from trustflow.exceptions import TransientStoreError
from trustflow.metrics import recompute_duration
from trustflow.models.push import PushKind
from trustflow.models.reputation import ChangeReason, ColorBand
from trustflow.services.adjustments import total_adjustments
from trustflow.services.archive import get_by_push_ids, record_if_absent
from trustflow.services.bands import base_weight_for, color_band_for
from trustflow.services.cache import get_cached_values, put_cached
from trustflow.services.ledger import list_received_by
from trustflow.timeutils import as_utc, utcnow

log = structlog.get_logger()

BASE_VALUE = 5.0
MIN_VALUE = -50.0
REPEAT_WINDOW = timedelta(days=30)
REPEAT_DECAY = 0.67

TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


class PushLike(Protocol):
    id: int
    from_user_id: uuid.UUID
    kind: PushKind
    created_at: datetime


class FrozenContribution(Protocol):
    pusher_value: float
    base_weight: float
    repeat_count: int
    effective_weight: float
    contribution: float


@dataclass(frozen=True)
class ScoringParams:
    base_value: float = BASE_VALUE
    min_value: float = MIN_VALUE
    repeat_window: timedelta = REPEAT_WINDOW
    repeat_decay: float = REPEAT_DECAY

    @classmethod
    def from_settings(cls, app_settings: Settings = settings) -> "ScoringParams":
        return cls(
            base_value=app_settings.trust_flow_base_value,
            min_value=app_settings.trust_flow_min_value,
            repeat_window=timedelta(days=app_settings.repeat_window_days),
            repeat_decay=app_settings.repeat_decay,
        )


@dataclass(frozen=True)
class ContributionBreakdown:
    push_id: int
    from_user_id: uuid.UUID
    kind: PushKind
    created_at: datetime
    pusher_value: float
    base_weight: float
    repeat_count: int
    effective_weight: float
    contribution: float
    frozen: bool = False


@dataclass(frozen=True)
class TrustFlowResult:
    user_id: uuid.UUID
    value: float
    color_band: ColorBand
    computed_at: datetime
    contributions: list[ContributionBreakdown] = field(default_factory=list)
    adjustments: float = 0.0
    cache_applied: bool = False

    @property
    def push_ids(self) -> frozenset[int]:
        return frozenset(c.push_id for c in self.contributions)


def signed_contribution(kind: PushKind, effective_weight: float) -> float:
    kind = PushKind(kind)
    if kind is PushKind.positive:
        return effective_weight
    if kind is PushKind.negative:
        return -effective_weight
    raise ValueError(f"Unhandled push kind: {kind!r}")


def clamp_value(raw: float, params: ScoringParams) -> float:
    return max(params.min_value, raw)


def _ledger_order(push: PushLike) -> tuple[datetime, int]:
    return as_utc(push.created_at), push.id


def compile_trust_flow(
    target_user_id: uuid.UUID,
    pushes: Sequence[PushLike],
    pusher_values: Mapping[uuid.UUID, float],
    frozen: Mapping[int, FrozenContribution],
    params: ScoringParams = ScoringParams(),
    computed_at: Optional[datetime] = None,
    *,
    adjustments: float = 0.0,
) -> TrustFlowResult:
    """Compile a Trust Flow value from a ledger snapshot.

    Args:
        target_user_id: The user whose Trust Flow is computed.
        pushes: Every push received by the target. Order does not matter;
            they are re-sorted by (created_at, id).
        pusher_values: Current cached Trust Flow per pusher. Pushers missing
            from the mapping are treated as BASE_VALUE.
        frozen: Archived contributions keyed by push id. These are reused
            as-is instead of being recomputed.
        params: Base value, floor, repeat window and decay.
        computed_at: Snapshot time recorded on the result.
        adjustments: Sum of admin bonuses and penalties, added before the
            floor clamp.

    Returns:
        TrustFlowResult with value, band and a per-push breakdown in ledger order.
    """
    ordered = sorted(pushes, key=_ledger_order)
    by_pusher: dict[uuid.UUID, list[PushLike]] = defaultdict(list)
    for push in ordered:
        by_pusher[push.from_user_id].append(push)

    breakdown: dict[int, ContributionBreakdown] = {}
    for pusher_id, group in by_pusher.items():
        pusher_value = pusher_values.get(pusher_id, params.base_value)
        base_weight = base_weight_for(pusher_value)
        recent: deque[datetime] = deque()

        for push in group:
            at = as_utc(push.created_at)
            while recent and at - recent[0] > params.repeat_window:
                recent.popleft()
            repeat_count = len(recent)
            recent.append(at)

            record = frozen.get(push.id)
            if record is not None:
                breakdown[push.id] = ContributionBreakdown(
                    push_id=push.id,
                    from_user_id=pusher_id,
                    kind=PushKind(push.kind),
                    created_at=push.created_at,
                    pusher_value=record.pusher_value,
                    base_weight=record.base_weight,
                    repeat_count=record.repeat_count,
                    effective_weight=record.effective_weight,
                    contribution=record.contribution,
                    frozen=True,
                )
                continue

            effective_weight = base_weight * params.repeat_decay ** repeat_count
            breakdown[push.id] = ContributionBreakdown(
                push_id=push.id,
                from_user_id=pusher_id,
                kind=PushKind(push.kind),
                created_at=push.created_at,
                pusher_value=pusher_value,
                base_weight=base_weight,
                repeat_count=repeat_count,
                effective_weight=effective_weight,
                contribution=signed_contribution(push.kind, effective_weight),
            )

    contributions = [breakdown[push.id] for push in ordered]
    value = clamp_value(
        params.base_value + math.fsum(c.contribution for c in contributions) + adjustments,
        params,
    )
    return TrustFlowResult(
        user_id=target_user_id,
        value=value,
        color_band=color_band_for(value),
        computed_at=computed_at or utcnow(),
        contributions=contributions,
        adjustments=adjustments,
    )


async def resolve_pusher_values(
    db: AsyncSession,
    pusher_ids: Iterable[uuid.UUID],
    base_value: float = BASE_VALUE,
) -> dict[uuid.UUID, float]:
    """Look up each pusher's current Trust Flow in the cache.

    Pushers without a cached value resolve to `base_value`; they are not
    recomputed here.
    """
    ids = set(pusher_ids)
    cached = await get_cached_values(db, ids)
    return {pusher_id: cached.get(pusher_id, base_value) for pusher_id in ids}


async def recompute_trust_flow(
    db: AsyncSession,
    target_user_id: uuid.UUID,
    *,
    params: Optional[ScoringParams] = None,
    change_reason: ChangeReason = ChangeReason.manual_recalc,
    push_id: Optional[int] = None,
    calculated_by: str = "api",
    now: Optional[datetime] = None,
) -> TrustFlowResult:
    """Recompute a user's Trust Flow, archive new breakdowns and update the cache.

    The caller commits. Database failures that are worth retrying are raised
    as TransientStoreError; the cache is left untouched in that case.
    """
    params = params or ScoringParams.from_settings()
    computed_at = now or utcnow()
    started = time.monotonic()

    try:
        pushes = await list_received_by(db, target_user_id)
        frozen = await get_by_push_ids(db, [p.id for p in pushes])
        adjustments = await total_adjustments(db, target_user_id)
        pusher_values = await resolve_pusher_values(
            db,
            {p.from_user_id for p in pushes if p.id not in frozen},
            base_value=params.base_value,
        )
        result = compile_trust_flow(
            target_user_id, pushes, pusher_values, frozen, params, computed_at,
            adjustments=adjustments,
        )

        lost_race: list[int] = []
        for item in result.contributions:
            if item.frozen:
                continue
            inserted = await record_if_absent(
                db,
                push_id=item.push_id,
                pusher_value=item.pusher_value,
                base_weight=item.base_weight,
                repeat_count=item.repeat_count,
                effective_weight=item.effective_weight,
                contribution=item.contribution,
            )
            if not inserted:
                lost_race.append(item.push_id)

        if lost_race:
            # Another recompute archived these first; its records are authoritative
            frozen = {**frozen, **await get_by_push_ids(db, lost_race)}
            result = compile_trust_flow(
                target_user_id, pushes, pusher_values, frozen, params, computed_at,
                adjustments=adjustments,
            )

        applied = await put_cached(
            db,
            target_user_id,
            result.value,
            computed_at,
            change_reason=change_reason,
            push_id=push_id,
            calculated_by=calculated_by,
        )
    except TRANSIENT_DB_ERRORS as exc:
        log.warning(
            "trust_flow_recompute_failed",
            user_id=str(target_user_id),
            error_type=type(exc).__name__,
        )
        raise TransientStoreError(
            f"Recompute for {target_user_id} failed: {type(exc).__name__}",
            operation="recompute",
        ) from exc
    finally:
        recompute_duration.observe(time.monotonic() - started)

    log.info(
        "trust_flow_recomputed",
        user_id=str(target_user_id),
        value=round(result.value, 4),
        color_band=result.color_band.value,
        push_count=len(result.contributions),
        cache_applied=applied,
    )
    return replace(result, cache_applied=applied)
