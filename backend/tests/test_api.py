"""
VoiceGrade Backend - API Endpoint Tests
=========================================

What:  The HTTP surface over ASGITransport with a real sqlite database and a
       mocked speech provider.

What we test:
    ✅ Upload URL → raw upload → pipeline → history, with camelCase bodies
    ✅ Error bodies and status codes (400, 404, 422, 429, 502)
    ✅ Identity isolation for records and blobs
    ✅ Request id propagation and health reporting
"""

from unittest.mock import patch
from urllib.parse import urlparse
from uuid import uuid4

import pytest

from voicegrade.config import settings
from voicegrade.exceptions import RateLimitExceededError

USER_A = {"X-User-ID": "user-a"}
USER_B = {"X-User-ID": "user-b"}


async def _upload(client, audio, headers=None, content_type="audio/webm"):
    reply = await client.post("/api/uploads", headers=headers or {})
    assert reply.status_code == 201
    upload_url = reply.json()["uploadUrl"]
    stored = await client.post(
        urlparse(upload_url).path,
        content=audio,
        headers={"Content-Type": content_type},
    )
    return stored


class TestUploads:

    @pytest.mark.asyncio
    async def test_generate_upload_url(self, test_client):
        response = await test_client.post("/api/uploads", headers=USER_A)

        assert response.status_code == 201
        body = response.json()
        assert body["uploadUrl"].startswith("http://test/api/uploads/")
        assert "expiresAt" in body

    @pytest.mark.asyncio
    async def test_upload_returns_storage_id(self, test_client, sample_audio_bytes):
        response = await _upload(test_client, sample_audio_bytes, USER_A)
        assert response.status_code == 201
        assert "storageId" in response.json()

    @pytest.mark.asyncio
    async def test_upload_url_is_single_use(self, test_client, sample_audio_bytes):
        reply = await test_client.post("/api/uploads")
        path = urlparse(reply.json()["uploadUrl"]).path

        first = await test_client.post(path, content=sample_audio_bytes, headers={"Content-Type": "audio/webm"})
        second = await test_client.post(path, content=sample_audio_bytes, headers={"Content-Type": "audio/webm"})

        assert first.status_code == 201
        assert second.status_code == 400
        assert second.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_short_recording_rejected(self, test_client):
        response = await _upload(test_client, b"\x00" * 100)
        assert response.status_code == 400
        assert response.json()["message"] == "Recording too short. Please record for at least 1 second."

    @pytest.mark.asyncio
    async def test_non_audio_rejected(self, test_client, sample_audio_bytes):
        response = await _upload(test_client, sample_audio_bytes, content_type="text/plain")
        assert response.status_code == 400


class TestTranscriptions:

    @pytest.mark.asyncio
    async def test_full_flow(self, test_client, sample_audio_bytes, fake_provider):
        storage_id = (await _upload(test_client, sample_audio_bytes, USER_A)).json()["storageId"]

        with patch("voicegrade.services.pipeline_service.openai_service", fake_provider()):
            response = await test_client.post(
                "/api/transcriptions", json={"storageId": storage_id}, headers=USER_A
            )

        assert response.status_code == 201
        body = response.json()
        assert body["originalText"] == "The cat is happy"
        assert body["grammarScore"] == 9
        assert body["issues"] == []
        assert body["processingTime"] >= 0

        history = await test_client.get("/api/transcriptions", headers=USER_A)
        assert history.status_code == 200
        items = history.json()
        assert len(items) == 1
        assert items[0]["id"] == body["id"]
        assert items[0]["scoreLabel"] == "Excellent"
        assert items[0]["scoreTone"] == "good"
        assert "creationTime" in items[0]

        detail = await test_client.get(f"/api/transcriptions/{body['id']}", headers=USER_A)
        assert detail.status_code == 200
        assert detail.json()["originalText"] == "The cat is happy"

    @pytest.mark.asyncio
    async def test_upstream_failure_is_502_and_persists_nothing(self, test_client, sample_audio_bytes, fake_provider):
        storage_id = (await _upload(test_client, sample_audio_bytes, USER_A)).json()["storageId"]

        with patch("voicegrade.services.pipeline_service.openai_service", fake_provider(transcription_status=500)):
            response = await test_client.post(
                "/api/transcriptions", json={"storageId": storage_id}, headers=USER_A
            )

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "upstream_service_error"
        assert body["details"] == {"service": "transcription", "status_code": 500}
        assert "transcription upstream failure" not in response.text

        history = await test_client.get("/api/transcriptions", headers=USER_A)
        assert history.json() == []

    @pytest.mark.asyncio
    async def test_empty_transcript_is_422(self, test_client, sample_audio_bytes, fake_provider):
        storage_id = (await _upload(test_client, sample_audio_bytes)).json()["storageId"]

        with patch("voicegrade.services.pipeline_service.openai_service", fake_provider(transcript="")):
            response = await test_client.post("/api/transcriptions", json={"storageId": storage_id})

        assert response.status_code == 422
        assert response.json()["error"] == "empty_transcript"

    @pytest.mark.asyncio
    async def test_unknown_storage_id_is_404(self, test_client):
        response = await test_client.post("/api/transcriptions", json={"storageId": str(uuid4())})
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_other_users_blob_is_404(self, test_client, sample_audio_bytes):
        storage_id = (await _upload(test_client, sample_audio_bytes, USER_A)).json()["storageId"]

        response = await test_client.post(
            "/api/transcriptions", json={"storageId": storage_id}, headers=USER_B
        )
        assert response.status_code == 404

        download = await test_client.get(f"/api/files/{storage_id}", headers=USER_B)
        assert download.status_code == 404

    @pytest.mark.asyncio
    async def test_history_is_per_user(self, test_client, sample_audio_bytes, fake_provider):
        storage_id = (await _upload(test_client, sample_audio_bytes, USER_A)).json()["storageId"]
        with patch("voicegrade.services.pipeline_service.openai_service", fake_provider()):
            created = await test_client.post(
                "/api/transcriptions", json={"storageId": storage_id}, headers=USER_A
            )

        assert (await test_client.get("/api/transcriptions", headers=USER_B)).json() == []
        assert (await test_client.get("/api/transcriptions")).json() == []
        other = await test_client.get(f"/api/transcriptions/{created.json()['id']}", headers=USER_B)
        assert other.status_code == 404

    @pytest.mark.asyncio
    async def test_owner_downloads_audio(self, test_client, sample_audio_bytes):
        storage_id = (await _upload(test_client, sample_audio_bytes, USER_A)).json()["storageId"]

        response = await test_client.get(f"/api/files/{storage_id}", headers=USER_A)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("audio/webm")
        assert response.content == sample_audio_bytes

    @pytest.mark.asyncio
    async def test_submissions_are_rate_limited(self, test_client):
        with patch.object(settings, "rate_limit_requests", 2):
            statuses = []
            for _ in range(3):
                response = await test_client.post(
                    "/api/transcriptions", json={"storageId": str(uuid4())}, headers=USER_A
                )
                statuses.append(response.status_code)

            other_user = await test_client.post(
                "/api/transcriptions", json={"storageId": str(uuid4())}, headers=USER_B
            )
            history = await test_client.get("/api/transcriptions", headers=USER_A)

        assert statuses == [404, 404, 429]
        assert other_user.status_code == 404
        assert history.status_code == 200

    @pytest.mark.asyncio
    async def test_rate_limited_response_has_retry_after(self, test_client):
        with patch.object(settings, "rate_limit_requests", 1):
            await test_client.post("/api/transcriptions", json={"storageId": str(uuid4())})
            response = await test_client.post("/api/transcriptions", json={"storageId": str(uuid4())})

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        body = response.json()
        assert body["error"] == "rate_limit_exceeded"
        assert body["details"]["retry_after"] == int(response.headers["Retry-After"])

    @pytest.mark.asyncio
    async def test_no_app_handler_for_rate_limit(self, app):
        # The 429 comes from RateLimitMiddleware, which runs outside the app's handlers.
        assert RateLimitExceededError not in app.exception_handlers


class TestCrossCutting:

    @pytest.mark.asyncio
    async def test_request_id_generated(self, test_client):
        response = await test_client.get("/api/transcriptions")
        assert len(response.headers["X-Request-ID"]) == 8

    @pytest.mark.asyncio
    async def test_request_id_echoed_into_error_body(self, test_client):
        response = await test_client.get(
            f"/api/transcriptions/{uuid4()}",
            headers={**USER_A, "X-Request-ID": "abc12345"},
        )
        assert response.status_code == 404
        assert response.headers["X-Request-ID"] == "abc12345"
        assert response.json()["request_id"] == "abc12345"

    @pytest.mark.asyncio
    async def test_health(self, test_client, fake_provider):
        with patch("voicegrade.routes.health.openai_service", fake_provider()):
            response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["speech_provider"] == "available"

    @pytest.mark.asyncio
    async def test_health_degraded_when_provider_down(self, test_client, fake_provider):
        with patch("voicegrade.routes.health.openai_service", fake_provider(models_status=500)):
            response = await test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["speech_provider"] == "unavailable"
