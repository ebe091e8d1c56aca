"""End-to-end tests of the HTTP boundary with FastAPI's TestClient."""

import hashlib
import hmac
import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from feedrelay.database.db_connection import ConnectionManager
from feedrelay.errors import DispatchError
from feedrelay.ingestion.item_normalizer import ItemNormalizer
from feedrelay.moderation.content_classifier import ContentClassifier
from feedrelay.moderation.lexicon import load_lexicon
from feedrelay.pipeline.dedup_guard import DedupGuard
from feedrelay.pipeline.feed_processor import FeedProcessor
from feedrelay.security.rate_limiter import RateLimiter
from feedrelay.security.signature_verifier import SignatureVerifier
from feedrelay.web.app import RelayServices, create_app

SECRET = "test-secret"


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _sign(body: bytes) -> str:
    return "sha256=" + hmac.new(SECRET.encode(), body, hashlib.sha256).hexdigest()


def _envelope(*guids: str, drop_guid_at: int | None = None) -> bytes:
    items = []
    for index, guid in enumerate(guids):
        item = {"guid": guid, "title": f"Post {guid}", "link": f"https://www.instagram.com/p/{guid}/"}
        if index == drop_guid_at:
            del item["guid"]
        items.append(item)
    return json.dumps({"feed": {"id": "f1", "title": "Feed"}, "items": items}).encode()


def _build(tmp_path: Path, dispatcher, secret=SECRET, rate_limiter=None, **kwargs) -> RelayServices:
    db = ConnectionManager()
    processor = FeedProcessor(
        normalizer=ItemNormalizer(),
        classifier=ContentClassifier(load_lexicon()),
        dedup=DedupGuard(db),
        dispatcher=dispatcher,
    )
    return RelayServices(
        verifier=SignatureVerifier(secret),
        rate_limiter=rate_limiter or RateLimiter(60, 1000),
        processor=processor,
        db=db,
        database_path=tmp_path / "relay.db",
        **kwargs,
    )


def _post_webhook(client: TestClient, body: bytes, signature: str | None = None):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["X-Webhook-Signature"] = signature
    return client.post("/webhook", content=body, headers=headers)


@pytest.fixture()
def services(tmp_path: Path, fake_dispatcher) -> RelayServices:
    return _build(tmp_path, fake_dispatcher)


def test_valid_webhook_posts_every_item(services, fake_dispatcher):
    body = _envelope("A", "B", "C")
    with TestClient(create_app(services)) as client:
        response = _post_webhook(client, body, _sign(body))

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["processed"] == {"success": 3, "filtered": 0, "failed": 0}
    assert data["message"] == "Processed 3 items: 3 posted, 0 filtered, 0 failed"
    assert [item["outcome"] for item in data["items"]] == ["success"] * 3
    assert len(fake_dispatcher.calls) == 3


@pytest.mark.parametrize("signature, error", [
    (None, "Missing signature"),
    ("sha256=" + "0" * 64, "Invalid signature"),
])
def test_bad_signature_is_rejected_before_processing(services, fake_dispatcher, signature, error):
    body = _envelope("A")
    with TestClient(create_app(services)) as client:
        response = _post_webhook(client, body, signature)

    assert response.status_code == 401
    assert response.json() == {"error": error}
    assert fake_dispatcher.calls == []


def test_missing_secret_is_a_configuration_error(tmp_path, fake_dispatcher):
    services = _build(tmp_path, fake_dispatcher, secret=None)
    body = _envelope("A")
    with TestClient(create_app(services)) as client:
        response = _post_webhook(client, body, _sign(body))
        health = client.get("/health").json()

    assert response.status_code == 500
    assert response.json() == {"error": "Webhook not properly configured", "code": "configuration_error"}
    assert health["checks"]["configuration"] == "missing_webhook_secret"
    assert fake_dispatcher.calls == []


def test_redelivery_is_deduplicated(services, fake_dispatcher):
    body = _envelope("A", "B")
    with TestClient(create_app(services)) as client:
        first = _post_webhook(client, body, _sign(body)).json()
        second = _post_webhook(client, body, _sign(body)).json()

    assert first["processed"]["success"] == 2
    assert second["processed"]["success"] == 2
    assert all(item["deduplicated"] for item in second["items"])
    assert fake_dispatcher.calls == ["instagram:A", "instagram:B"]


def test_rate_limit_denies_fourth_request_then_recovers(tmp_path, fake_dispatcher):
    clock = FakeClock()
    services = _build(tmp_path, fake_dispatcher, rate_limiter=RateLimiter(60, 3, clock=clock))
    body = _envelope("A")
    with TestClient(create_app(services)) as client:
        statuses = [_post_webhook(client, body, _sign(body)).status_code for _ in range(3)]
        denied = _post_webhook(client, body, _sign(body))
        clock.now = 61
        allowed = _post_webhook(client, body, _sign(body))

    assert statuses == [200, 200, 200]
    assert denied.status_code == 429
    assert denied.json()["retryAfterSeconds"] > 0
    assert denied.headers["Retry-After"] == str(denied.json()["retryAfterSeconds"])
    assert allowed.status_code == 200


def test_forwarded_for_is_only_trusted_when_enabled(tmp_path, fake_dispatcher):
    body = _envelope("A")

    untrusted = _build(tmp_path, fake_dispatcher, rate_limiter=RateLimiter(60, 1, clock=FakeClock()))
    with TestClient(create_app(untrusted)) as client:
        _post_webhook(client, body, _sign(body))
        response = client.post(
            "/webhook", content=body,
            headers={"X-Webhook-Signature": _sign(body), "X-Forwarded-For": "9.9.9.9"},
        )
    assert response.status_code == 429

    trusted = _build(
        tmp_path, fake_dispatcher, rate_limiter=RateLimiter(60, 1, clock=FakeClock()), trust_forwarded_for=True
    )
    with TestClient(create_app(trusted)) as client:
        _post_webhook(client, body, _sign(body))
        response = client.post(
            "/webhook", content=body,
            headers={"X-Webhook-Signature": _sign(body), "X-Forwarded-For": "9.9.9.9, 10.0.0.1"},
        )
    assert response.status_code == 200


def test_second_item_without_guid_rejects_the_batch(services, fake_dispatcher):
    body = _envelope("A", "B", drop_guid_at=1)
    with TestClient(create_app(services)) as client:
        response = _post_webhook(client, body, _sign(body))

    assert response.status_code == 400
    assert response.json()["field"] == "items[1].guid"
    assert fake_dispatcher.calls == []


def test_invalid_json_is_a_validation_error(services):
    body = b"{not json"
    with TestClient(create_app(services)) as client:
        response = _post_webhook(client, body, _sign(body))

    assert response.status_code == 400
    assert response.json()["field"] == "body"


def test_batch_isolation(services, fake_dispatcher):
    fake_dispatcher.results["instagram:B"] = DispatchError("gateway timeout")
    body = _envelope("A", "B", "C")
    with TestClient(create_app(services)) as client:
        data = _post_webhook(client, body, _sign(body)).json()

    assert data["processed"] == {"success": 2, "filtered": 0, "failed": 1}
    assert [item["post_id"] for item in data["items"]] == ["instagram:A", "instagram:B", "instagram:C"]


def test_unexpected_processing_error_is_retryable_500(services):
    body = _envelope("A")
    with TestClient(create_app(services)) as client:
        services.processor.process_envelope = AsyncMock(side_effect=RuntimeError("boom"))
        response = _post_webhook(client, body, _sign(body))

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal processing error", "retryable": True}


def test_manual_submission_matches_webhook_post_id(services, fake_dispatcher):
    with TestClient(create_app(services)) as client:
        manual = client.post("/manual", json={"instagram_url": "https://example.com/p/ABC123DEF/", "caption": "Test"})

        body = json.dumps({"items": [{
            "guid": "ABC123DEF", "title": "Test", "link": "https://example.com/p/ABC123DEF/",
        }]}).encode()
        webhook = _post_webhook(client, body, _sign(body))

    assert manual.status_code == 200
    assert manual.json()["success"] is True
    assert manual.json()["post_id"] == "instagram:ABC123DEF"
    item = webhook.json()["items"][0]
    assert item["post_id"] == "instagram:ABC123DEF"
    assert item["deduplicated"] is True
    assert fake_dispatcher.calls == ["instagram:ABC123DEF"]


def test_manual_field_errors(services):
    with TestClient(create_app(services)) as client:
        response = client.post("/manual", json={"instagram_url": "https://example.com/x/1", "caption": "Test"})

    assert response.status_code == 400
    assert response.json()["field"] == "instagram_url"


def test_manual_filtered_and_failed_outcomes(services, fake_dispatcher):
    fake_dispatcher.results["instagram:FAIL1"] = DispatchError("discord down")
    with TestClient(create_app(services)) as client:
        filtered = client.post("/manual", json={"instagram_url": "https://example.com/p/SPAM1/", "caption": "DM me now"})
        failed = client.post("/manual", json={"instagram_url": "https://example.com/p/FAIL1/", "caption": "Hello"})

    assert filtered.status_code == 200
    assert filtered.json()["filtered"] is True
    assert filtered.json()["reason"] == "Contains spam indicator: dm me"
    assert failed.status_code == 503
    assert failed.json()["retryable"] is True


def test_manual_form_is_served(services):
    with TestClient(create_app(services)) as client:
        response = client.get("/manual")

    assert response.status_code == 200
    assert "text/html" in response.headers["content-type"]
    assert 'id="manual-form"' in response.text


def test_health_and_stats(services):
    body = _envelope("A")
    with TestClient(create_app(services)) as client:
        _post_webhook(client, body, _sign(body))
        health = client.get("/health").json()
        stats = client.get("/stats").json()

    assert health["service"] == "feedrelay"
    assert health["status"] == "healthy"
    assert health["checks"] == {"configuration": "ok", "discord": "ready", "database": "ok"}
    assert stats["stats"]["totalProcessed"] == 1
    assert stats["stats"]["successfulPosts"] == 1
    assert stats["stats"]["successRate"] == 100.0
    assert stats["stats"]["rateLimiting"]["maxRequests"] == 1000
    assert stats["stats"]["dedup"]["totalRecorded"] == 1


def test_unexpected_route_error_is_retryable_500(services, monkeypatch):
    def broken_validation(payload):
        raise RuntimeError("unexpected")

    monkeypatch.setattr("feedrelay.web.app.validate_envelope", broken_validation)
    body = _envelope("A")
    with TestClient(create_app(services), raise_server_exceptions=False) as client:
        response = _post_webhook(client, body, _sign(body))

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal processing error", "retryable": True}


def test_stats_reports_feed_throttle(tmp_path, fake_dispatcher):
    services = _build(tmp_path, fake_dispatcher)
    services.processor.feed_throttle = RateLimiter(3600, 1)
    body = _envelope("A", "B")
    with TestClient(create_app(services)) as client:
        data = _post_webhook(client, body, _sign(body)).json()
        stats = client.get("/stats").json()

    assert data["processed"] == {"success": 1, "filtered": 1, "failed": 0}
    assert data["items"][1]["reason"] == "Rate limit exceeded for feed source"
    assert stats["stats"]["feedThrottle"] == {"maxPostsPerHour": 1, "activeSources": 1}
    assert fake_dispatcher.calls == ["instagram:A"]
