"""Tests for push validation, transactional admission and ledger queries."""

import asyncio
import uuid
from datetime import timedelta

import pytest

from conftest import REASON, create_users
from trustflow.exceptions import EligibilityRejection, PushValidationError
from trustflow.models.push import ContextType, PushKind
from trustflow.services.eligibility import RateLimitPolicy
from trustflow.services.ledger import (
    append_push,
    list_between,
    list_received_by,
    list_targets_with_pushes,
    sender_lock_key,
    validate_push,
)
from trustflow.timeutils import as_utc, utcnow


class TestValidatePush:
    def test_accepts_and_strips_reason(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        assert validate_push(a, b, f"  {REASON}\n", 100) == REASON

    def test_rejects_self_push(self):
        a = uuid.uuid4()
        with pytest.raises(PushValidationError) as exc_info:
            validate_push(a, a, REASON, 100)
        assert exc_info.value.message == "Cannot push yourself"

    def test_whitespace_does_not_count_toward_length(self):
        padded = " " * 50 + "x" * 99 + " " * 50
        with pytest.raises(PushValidationError) as exc_info:
            validate_push(uuid.uuid4(), uuid.uuid4(), padded, 100)
        assert exc_info.value.field == "reason"
        assert "at least 100 characters" in exc_info.value.message

    def test_exactly_minimum_length_is_accepted(self):
        assert len(validate_push(uuid.uuid4(), uuid.uuid4(), "y" * 100, 100)) == 100


def test_sender_lock_key_is_stable_signed_64_bit():
    sender = uuid.UUID("ffffffff-ffff-ffff-0000-000000000000")
    assert sender_lock_key(sender) == sender_lock_key(sender)
    assert sender_lock_key(sender) == -1
    assert -(2**63) <= sender_lock_key(uuid.uuid4()) < 2**63


async def test_append_push_persists_normalized_push(make_user, db):
    sender, _ = await make_user()
    target, _ = await make_user()

    push = await append_push(
        db,
        sender.id,
        target.id,
        PushKind.negative,
        f"   {REASON}   ",
        context_type=ContextType.comment,
        context_id="c-42",
    )
    await db.commit()

    assert push.id is not None
    stored = await list_received_by(db, target.id)
    assert [p.id for p in stored] == [push.id]
    assert stored[0].reason == REASON
    assert stored[0].kind is PushKind.negative
    assert stored[0].context_type is ContextType.comment


async def test_append_push_enforces_limits_in_transaction(make_user, db):
    sender, _ = await make_user()
    target, _ = await make_user()
    policy = RateLimitPolicy(2, timedelta(days=30), 30, timedelta(hours=24))

    for _ in range(2):
        await append_push(db, sender.id, target.id, PushKind.positive, REASON, policy=policy)

    # Third push in the same transaction sees the two flushed rows
    with pytest.raises(EligibilityRejection) as exc_info:
        await append_push(db, sender.id, target.id, PushKind.positive, REASON, policy=policy)
    assert exc_info.value.reason == "Maximum 2 pushes to this user per 30 days reached"
    await db.commit()

    assert len(await list_between(db, sender.id, target.id)) == 2


async def test_append_push_rejects_self_push_before_touching_ledger(make_user, db):
    user, _ = await make_user()
    with pytest.raises(PushValidationError):
        await append_push(db, user.id, user.id, PushKind.positive, REASON)
    assert await list_received_by(db, user.id) == []


async def test_list_received_by_orders_by_time_then_id(make_user, add_push, db):
    a, _ = await make_user()
    b, _ = await make_user()
    target, _ = await make_user()
    at = utcnow() - timedelta(days=1)
    later = await add_push(a.id, target.id, created_at=at + timedelta(hours=1))
    first = await add_push(b.id, target.id, created_at=at)
    tie = await add_push(a.id, target.id, created_at=at)

    pushes = await list_received_by(db, target.id)
    assert [p.id for p in pushes] == [first.id, tie.id, later.id]
    assert as_utc(pushes[0].created_at) == at


async def test_list_targets_with_pushes_orders_by_count(make_user, add_push, db):
    sender, _ = await make_user()
    busy, _ = await make_user()
    quiet, _ = await make_user()
    for _ in range(3):
        await add_push(sender.id, busy.id)
    await add_push(sender.id, quiet.id)

    assert await list_targets_with_pushes(db, limit=10) == [(busy.id, 3), (quiet.id, 1)]
    assert await list_targets_with_pushes(db, limit=1, offset=1) == [(quiet.id, 1)]


async def test_concurrent_submissions_admit_only_up_to_limit(file_session_factory):
    sender, target = await create_users(file_session_factory, 2)
    policy = RateLimitPolicy(1, timedelta(days=30), 0, timedelta(hours=24))

    async def submit() -> str:
        async with file_session_factory() as session:
            try:
                await append_push(
                    session, sender.id, target.id, PushKind.positive, REASON, policy=policy
                )
            except EligibilityRejection:
                await session.rollback()
                return "rejected"
            await session.commit()
            return "accepted"

    outcomes = await asyncio.gather(*(submit() for _ in range(4)))
    assert sorted(outcomes) == ["accepted", "rejected", "rejected", "rejected"]

    async with file_session_factory() as session:
        assert len(await list_between(session, sender.id, target.id)) == 1
