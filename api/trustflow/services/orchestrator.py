"""Recompute flows used by the API: after a push, on read, and on demand.

Every attempt runs in its own session and transaction so a failed or stale
attempt never leaves a half-written cache row behind. When every attempt
fails, readers get the last cached value, or BASE_VALUE if there is none,
never an error and never zero.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trustflow.config import settings
from trustflow.exceptions import TransientStoreError
from trustflow.metrics import recompute_outcomes
from trustflow.models.reputation import ChangeReason, ColorBand, UserTrustFlow
from trustflow.services.bands import color_band_for
from trustflow.services.cache import get_cached
from trustflow.services.retry import retry_with_fallback
from trustflow.services.scoring import (
    TRANSIENT_DB_ERRORS,
    ScoringParams,
    TrustFlowResult,
    recompute_trust_flow,
)

log = structlog.get_logger()

SessionFactory = async_sessionmaker[AsyncSession]


@dataclass(frozen=True)
class TrustFlowReading:
    """What a caller shows: a value, its band, and whether it is a fallback."""

    user_id: uuid.UUID
    value: float
    color_band: ColorBand
    computed_at: Optional[datetime]
    stale: bool = False

    @classmethod
    def from_result(cls, result: TrustFlowResult) -> "TrustFlowReading":
        return cls(result.user_id, result.value, result.color_band, result.computed_at)

    @classmethod
    def from_cache(cls, row: UserTrustFlow, stale: bool = False) -> "TrustFlowReading":
        return cls(row.user_id, row.value, row.color_band, row.computed_at, stale)

    @classmethod
    def default(cls, user_id: uuid.UUID, base_value: float) -> "TrustFlowReading":
        return cls(user_id, base_value, color_band_for(base_value), None, stale=True)


async def cached_or_default(
    session_factory: SessionFactory,
    user_id: uuid.UUID,
    base_value: float,
) -> TrustFlowReading:
    try:
        async with session_factory() as db:
            row = await get_cached(db, user_id)
    except TRANSIENT_DB_ERRORS as exc:
        log.warning("trust_flow_cache_unavailable", user_id=str(user_id), error_type=type(exc).__name__)
        row = None
    if row is None:
        return TrustFlowReading.default(user_id, base_value)
    return TrustFlowReading.from_cache(row, stale=True)


async def recompute_with_retry(
    session_factory: SessionFactory,
    user_id: uuid.UUID,
    *,
    must_include: Optional[int] = None,
    change_reason: ChangeReason = ChangeReason.manual_recalc,
    calculated_by: str = "api",
    params: Optional[ScoringParams] = None,
    attempts: Optional[int] = None,
    delay: Optional[float] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> TrustFlowReading:
    """Recompute `user_id` with bounded retries.

    Args:
        session_factory: Opens one session per attempt.
        user_id: The user to recompute.
        must_include: A just-appended push id. A snapshot that does not see it
            is treated as a lagging read: rolled back and retried.
        change_reason: Recorded in trust_flow_changes when the value moves.
        calculated_by: Actor label for trust_flow_changes.
        params: Scoring parameters; defaults come from settings.
        attempts: Max attempts (default settings.recompute_max_attempts).
        delay: Seconds between attempts (default settings.recompute_retry_delay_ms).
        sleep: Injected for tests.
    """
    params = params or ScoringParams.from_settings()
    attempts = attempts or settings.recompute_max_attempts
    if delay is None:
        delay = settings.recompute_retry_delay_ms / 1000.0

    async def attempt() -> TrustFlowReading:
        async with session_factory() as db:
            try:
                result = await recompute_trust_flow(
                    db,
                    user_id,
                    params=params,
                    change_reason=change_reason,
                    push_id=must_include,
                    calculated_by=calculated_by,
                )
                lagging = must_include is not None and must_include not in result.push_ids
                if lagging:
                    await db.rollback()
                else:
                    await db.commit()
            except TRANSIENT_DB_ERRORS as exc:
                raise TransientStoreError(
                    f"Commit for {user_id} failed: {type(exc).__name__}",
                    operation="commit",
                ) from exc
        return replace(TrustFlowReading.from_result(result), stale=lagging)

    async def fallback() -> TrustFlowReading:
        return await cached_or_default(session_factory, user_id, params.base_value)

    outcome = await retry_with_fallback(
        attempt,
        fallback=fallback,
        attempts=attempts,
        delay=delay,
        accept=lambda reading: not reading.stale,
        sleep=sleep,
        name="recompute_trust_flow",
    )

    if outcome.fell_back:
        recompute_outcomes.labels(outcome="fallback").inc()
        log.warning(
            "trust_flow_fallback_served",
            user_id=str(user_id),
            attempts=outcome.attempts,
            value=outcome.value.value,
        )
    else:
        recompute_outcomes.labels(outcome="fresh").inc()
    return outcome.value


async def read_trust_flow(
    session_factory: SessionFactory,
    user_id: uuid.UUID,
    *,
    recalculate: bool = False,
    params: Optional[ScoringParams] = None,
) -> TrustFlowReading:
    """Serve a user's Trust Flow.

    Without `recalculate` the cache answers; a user with no cache row is
    computed once and cached. With `recalculate` a fresh recompute always runs.
    """
    params = params or ScoringParams.from_settings()
    if not recalculate:
        try:
            async with session_factory() as db:
                row = await get_cached(db, user_id)
        except TRANSIENT_DB_ERRORS as exc:
            log.warning("trust_flow_cache_unavailable", user_id=str(user_id), error_type=type(exc).__name__)
            row = None
        if row is not None:
            return TrustFlowReading.from_cache(row)

    return await recompute_with_retry(
        session_factory,
        user_id,
        change_reason=ChangeReason.manual_recalc if recalculate else ChangeReason.lazy_fill,
        params=params,
    )
