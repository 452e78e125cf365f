"""
VoiceGrade Backend - Pipeline Service Tests
=============================================

What:  PipelineService end to end over sqlite and a mocked provider.
How:   The provider singleton is patched at its import site in
       voicegrade.services.pipeline_service; storage uses a temp directory.

What we test:
    ✅ Successful run persists one record and returns it
    ✅ Unparsable grading reply still persists with the fallback report
    ✅ Upstream failures and empty transcripts persist nothing
    ✅ Grading is never called when transcription fails
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from voicegrade.exceptions import EmptyTranscriptError, NotFoundError, UpstreamServiceError
from voicegrade.models.transcription import Transcription
from voicegrade.schemas.upstream import FALLBACK_FEEDBACK, GradingReport
from voicegrade.services.pipeline_service import PipelineService
from voicegrade.services.storage_service import StorageService


async def _count_records(db) -> int:
    result = await db.execute(select(func.count()).select_from(Transcription))
    return result.scalar_one()


class TestPipeline:

    def setup_method(self):
        self.service = PipelineService()

    async def _stored_blob(self, db, storage, audio, owner_id="user-a"):
        target = await storage.generate_upload_url(db, owner_id)
        return await storage.store_upload(db, target.token, audio, "audio/webm")

    @pytest.mark.asyncio
    async def test_successful_run(self, db_session, temp_storage, sample_audio_bytes, fake_provider):
        storage = StorageService(storage_root=temp_storage)
        blob = await self._stored_blob(db_session, storage, sample_audio_bytes)
        provider = fake_provider(transcript="The cat is happy")

        with patch("voicegrade.services.pipeline_service.storage_service", storage), \
             patch("voicegrade.services.pipeline_service.openai_service", provider):
            result = await self.service.process(db_session, blob.id, "user-a")

        assert result.original_text == "The cat is happy"
        assert result.grammar_score == 9
        assert result.issues == []
        assert result.processing_time >= 0
        assert result.score_label == "Excellent"

        record = await db_session.get(Transcription, result.id)
        assert record.owner_id == "user-a"
        assert record.audio_ref == blob.id
        assert await _count_records(db_session) == 1

    @pytest.mark.asyncio
    async def test_not_json_grading_still_persists(self, db_session, temp_storage, sample_audio_bytes, fake_provider):
        storage = StorageService(storage_root=temp_storage)
        blob = await self._stored_blob(db_session, storage, sample_audio_bytes)
        provider = fake_provider(transcript="me and him goes", grading_content="not-json")

        with patch("voicegrade.services.pipeline_service.storage_service", storage), \
             patch("voicegrade.services.pipeline_service.openai_service", provider):
            result = await self.service.process(db_session, blob.id, "user-a")

        assert result.original_text == "me and him goes"
        assert result.grammar_score == 5
        assert result.feedback == FALLBACK_FEEDBACK
        assert result.issues == []
        assert await _count_records(db_session) == 1

    @pytest.mark.asyncio
    async def test_nan_score_keeps_transcript(self, db_session, temp_storage, sample_audio_bytes, fake_provider):
        storage = StorageService(storage_root=temp_storage)
        blob = await self._stored_blob(db_session, storage, sample_audio_bytes)
        provider = fake_provider(
            transcript="she go there",
            grading_content='{"score": NaN, "feedback": "f", "issues": []}',
        )

        with patch("voicegrade.services.pipeline_service.storage_service", storage), \
             patch("voicegrade.services.pipeline_service.openai_service", provider):
            result = await self.service.process(db_session, blob.id, "user-a")

        assert result.original_text == "she go there"
        assert result.grammar_score == 5
        assert result.feedback == FALLBACK_FEEDBACK
        assert await _count_records(db_session) == 1

    @pytest.mark.asyncio
    async def test_transcription_failure_persists_nothing(self, db_session, temp_storage, sample_audio_bytes, fake_provider):
        storage = StorageService(storage_root=temp_storage)
        blob = await self._stored_blob(db_session, storage, sample_audio_bytes)
        provider = fake_provider(transcription_status=500)

        with patch("voicegrade.services.pipeline_service.storage_service", storage), \
             patch("voicegrade.services.pipeline_service.openai_service", provider):
            with pytest.raises(UpstreamServiceError) as exc_info:
                await self.service.process(db_session, blob.id, "user-a")

        assert exc_info.value.status_code == 500
        assert [r.url.path for r in provider.requests] == ["/v1/audio/transcriptions"]
        assert await _count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_grading_failure_persists_nothing(self, db_session, temp_storage, sample_audio_bytes, fake_provider):
        storage = StorageService(storage_root=temp_storage)
        blob = await self._stored_blob(db_session, storage, sample_audio_bytes)
        provider = fake_provider(grading_status=503)

        with patch("voicegrade.services.pipeline_service.storage_service", storage), \
             patch("voicegrade.services.pipeline_service.openai_service", provider):
            with pytest.raises(UpstreamServiceError):
                await self.service.process(db_session, blob.id, "user-a")

        assert await _count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_empty_transcript_skips_grading(self, db_session, temp_storage, sample_audio_bytes, fake_provider):
        storage = StorageService(storage_root=temp_storage)
        blob = await self._stored_blob(db_session, storage, sample_audio_bytes)
        provider = fake_provider(transcript="   ")

        with patch("voicegrade.services.pipeline_service.storage_service", storage), \
             patch("voicegrade.services.pipeline_service.openai_service", provider):
            with pytest.raises(EmptyTranscriptError):
                await self.service.process(db_session, blob.id, "user-a")

        assert len(provider.requests) == 1
        assert await _count_records(db_session) == 0

    @pytest.mark.asyncio
    async def test_foreign_reference_never_reaches_provider(self, db_session, temp_storage, sample_audio_bytes):
        storage = StorageService(storage_root=temp_storage)
        blob = await self._stored_blob(db_session, storage, sample_audio_bytes, owner_id="user-a")

        with patch("voicegrade.services.pipeline_service.storage_service", storage), \
             patch("voicegrade.services.pipeline_service.openai_service") as mock_provider:
            mock_provider.transcribe = AsyncMock()
            with pytest.raises(NotFoundError):
                await self.service.process(db_session, blob.id, "user-b")

        mock_provider.transcribe.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blob_content_type_passed_to_transcription(self, db_session, temp_storage, sample_audio_bytes):
        storage = StorageService(storage_root=temp_storage)
        target = await storage.generate_upload_url(db_session, None)
        blob = await storage.store_upload(db_session, target.token, sample_audio_bytes, "audio/ogg")

        with patch("voicegrade.services.pipeline_service.storage_service", storage), \
             patch("voicegrade.services.pipeline_service.openai_service") as mock_provider:
            mock_provider.transcribe = AsyncMock(return_value="Hello there")
            mock_provider.grade = AsyncMock(
                return_value=GradingReport(score=8, feedback="Fine", issues=["x"])
            )
            result = await self.service.process(db_session, blob.id, None)

        mock_provider.transcribe.assert_awaited_once_with(sample_audio_bytes, content_type="audio/ogg")
        mock_provider.grade.assert_awaited_once_with("Hello there")
        assert result.issues == ["x"]
