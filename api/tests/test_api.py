"""HTTP tests: routing, auth, status codes and the camelCase wire format."""

import uuid

import pytest

from conftest import REASON


def push_body(to_user_id, kind="positive", reason=REASON, **extra):
    return {"toUserId": str(to_user_id), "kind": kind, "reason": reason, **extra}


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


async def test_issue_and_verify_token(client):
    resp = await client.post("/api/v1/keys", json={"email": "new@example.test"})
    assert resp.status_code == 201
    body = resp.json()

    verify = await client.get(
        "/api/v1/keys/verify", headers={"Authorization": f"Bearer {body['token']}"}
    )
    assert verify.status_code == 200
    assert verify.json()["userId"] == body["userId"]

    duplicate = await client.post("/api/v1/keys", json={"email": "new@example.test"})
    assert duplicate.status_code == 409


async def test_missing_or_bad_token_is_401(client):
    assert (await client.get("/api/v1/keys/verify")).status_code == 401
    resp = await client.get("/api/v1/keys/verify", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.headers["WWW-Authenticate"] == "Bearer"


async def test_submit_push_returns_refreshed_trust_flow(client, make_user):
    _, headers = await make_user()
    target, _ = await make_user()

    resp = await client.post(
        "/api/v1/pushes",
        json=push_body(target.id, contextType="post", contextId="p-1"),
        headers=headers,
    )
    assert resp.status_code == 201
    body = resp.json()
    assert isinstance(body["id"], int)
    assert body["trustFlow"] == {"value": 6.5, "colorBand": "gray"}

    second = await client.post("/api/v1/pushes", json=push_body(target.id), headers=headers)
    assert second.json()["trustFlow"]["value"] == pytest.approx(7.505)


async def test_submit_push_validation_errors(client, make_user):
    me, headers = await make_user()
    target, _ = await make_user()

    self_push = await client.post("/api/v1/pushes", json=push_body(me.id), headers=headers)
    assert self_push.status_code == 400
    assert self_push.json()["detail"] == "Cannot push yourself"

    short = await client.post(
        "/api/v1/pushes", json=push_body(target.id, reason="too short"), headers=headers
    )
    assert short.status_code == 400
    assert "at least 100 characters" in short.json()["detail"]

    bad_kind = await client.post(
        "/api/v1/pushes", json=push_body(target.id, kind="neutral"), headers=headers
    )
    assert bad_kind.status_code == 422


async def test_submit_push_unknown_target_is_404(client, make_user):
    _, headers = await make_user()
    resp = await client.post("/api/v1/pushes", json=push_body(uuid.uuid4()), headers=headers)
    assert resp.status_code == 404


async def test_sixth_push_to_same_target_is_rejected(client, make_user):
    _, headers = await make_user()
    target, _ = await make_user()

    for _ in range(5):
        resp = await client.post("/api/v1/pushes", json=push_body(target.id), headers=headers)
        assert resp.status_code == 201

    check = await client.post(
        "/api/v1/pushes/eligibility", json={"toUserId": str(target.id)}, headers=headers
    )
    assert check.json() == {
        "canPush": False,
        "reason": "Maximum 5 pushes to this user per 30 days reached",
    }

    resp = await client.post("/api/v1/pushes", json=push_body(target.id), headers=headers)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Maximum 5 pushes to this user per 30 days reached"


async def test_eligibility_ok_omits_reason(client, make_user):
    _, headers = await make_user()
    target, _ = await make_user()
    resp = await client.post(
        "/api/v1/pushes/eligibility", json={"toUserId": str(target.id)}, headers=headers
    )
    assert resp.json() == {"canPush": True}


async def test_get_trust_flow(client, make_user, add_push):
    pusher, headers = await make_user()
    target, _ = await make_user()
    await add_push(pusher.id, target.id)

    resp = await client.get(f"/api/v1/users/{target.id}/trust-flow", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["userId"] == str(target.id)
    assert body["value"] == 6.5
    assert body["colorBand"] == "gray"
    assert body["label"] == "Newcomer"
    assert body["stale"] is False

    await add_push(pusher.id, target.id)
    resp = await client.get(
        f"/api/v1/users/{target.id}/trust-flow",
        params={"recalculate": "true"},
        headers=headers,
    )
    assert resp.json()["value"] == pytest.approx(7.505)


async def test_get_trust_flow_unknown_user_is_404(client, make_user):
    _, headers = await make_user()
    resp = await client.get(f"/api/v1/users/{uuid.uuid4()}/trust-flow", headers=headers)
    assert resp.status_code == 404


async def test_history_is_private_and_admins_see_contributions(client, make_user, add_push):
    pusher, pusher_headers = await make_user()
    target, target_headers = await make_user()
    _, admin_headers = await make_user(is_admin=True)
    await add_push(pusher.id, target.id)
    await client.get(f"/api/v1/users/{target.id}/trust-flow", headers=target_headers)

    url = f"/api/v1/users/{target.id}/trust-flow/history"
    assert (await client.get(url, headers=pusher_headers)).status_code == 403

    own = (await client.get(url, headers=target_headers)).json()
    assert len(own["pushes"]) == 1
    assert own["pushes"][0]["fromUserId"] == str(pusher.id)
    assert "contribution" not in own["pushes"][0]

    admin = (await client.get(url, headers=admin_headers)).json()
    assert admin["pushes"][0]["contribution"]["baseWeight"] == 1.5
    assert admin["pushes"][0]["contribution"]["repeatCount"] == 0


async def test_backfill_requires_admin(client, make_user, add_push):
    pusher, headers = await make_user()
    target, _ = await make_user()
    _, admin_headers = await make_user(is_admin=True)
    await add_push(pusher.id, target.id)

    url = "/api/v1/admin/trust-flow/backfill"
    assert (await client.post(url, headers=headers)).status_code == 403

    resp = await client.post(url, params={"limit": 10}, headers=admin_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["processed"] == 1
    assert body["changed"] == 1
    assert body["failed"] == 0
    assert body["results"][0]["newValue"] == 6.5


async def test_admin_bonus_and_penalty_adjust_trust_flow(client, make_user):
    target, _ = await make_user()
    admin, admin_headers = await make_user(is_admin=True)
    url = "/api/v1/admin/trust-flow/adjustments"

    bonus = await client.post(
        url,
        json={"userId": str(target.id), "kind": "bonus", "points": 10, "reason": "Helpful mod"},
        headers=admin_headers,
    )
    assert bonus.status_code == 201
    body = bonus.json()
    assert body["points"] == 10.0
    assert body["createdBy"] == str(admin.id)
    assert body["trustFlow"] == {"value": 15.0, "colorBand": "yellow"}

    penalty = await client.post(
        url, json={"userId": str(target.id), "kind": "penalty", "points": 12}, headers=admin_headers
    )
    assert penalty.status_code == 201
    assert penalty.json()["points"] == -12.0
    assert penalty.json()["trustFlow"] == {"value": 3.0, "colorBand": "gray"}

    public = await client.get(f"/api/v1/users/{target.id}/trust-flow", headers=admin_headers)
    assert public.json()["value"] == 3.0

    listing = await client.get(f"{url}/{target.id}", headers=admin_headers)
    assert listing.status_code == 200
    assert listing.json()["total"] == -2.0
    assert [a["kind"] for a in listing.json()["adjustments"]] == ["bonus", "penalty"]


async def test_admin_penalty_is_clamped_at_floor(client, make_user):
    target, _ = await make_user()
    _, admin_headers = await make_user(is_admin=True)

    resp = await client.post(
        "/api/v1/admin/trust-flow/adjustments",
        json={"userId": str(target.id), "kind": "penalty", "points": 1000},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["trustFlow"] == {"value": -50.0, "colorBand": "red"}


async def test_adjustments_require_admin_and_valid_input(client, make_user):
    target, headers = await make_user()
    _, admin_headers = await make_user(is_admin=True)
    url = "/api/v1/admin/trust-flow/adjustments"
    body = {"userId": str(target.id), "kind": "bonus", "points": 5}

    assert (await client.post(url, json=body, headers=headers)).status_code == 403
    assert (await client.get(f"{url}/{target.id}", headers=headers)).status_code == 403

    unknown = await client.post(
        url, json={**body, "userId": str(uuid.uuid4())}, headers=admin_headers
    )
    assert unknown.status_code == 404

    for points in (0, -5):
        resp = await client.post(url, json={**body, "points": points}, headers=admin_headers)
        assert resp.status_code == 422

    bad_kind = await client.post(url, json={**body, "kind": "refund"}, headers=admin_headers)
    assert bad_kind.status_code == 422


async def test_http_throttle_returns_429(client, make_user, mock_redis_client):
    target, headers = await make_user()
    mock_redis_client.eval.return_value = [61, 42]

    resp = await client.get(f"/api/v1/users/{target.id}/trust-flow", headers=headers)
    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "42"


async def test_request_id_is_echoed(client):
    resp = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"
