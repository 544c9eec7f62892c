"""Tests for the IngestPipeline facade."""
import pytest

from conftest import make_file
from maestro.config import AppConfig
from maestro.files.schemas import FileStatus
from maestro.pipeline import IngestPipeline


class TestIngestPipeline:
    """Test the surface used by the UI/session layers."""

    @pytest.mark.asyncio
    async def test_ingest_updates_snapshot(self, pipeline):
        """Test that streamed records land in the snapshot."""
        streamed = [r async for r in pipeline.ingest([make_file("a.txt")])]

        assert streamed[-1].status is FileStatus.COMPLETED
        assert pipeline.current_records() == [streamed[-1]]

    @pytest.mark.asyncio
    async def test_selection_roundtrip(self, pipeline):
        """Test toggling a file in and out of the selection."""
        [r async for r in pipeline.ingest([make_file("a.txt"), make_file("b.txt")])]

        assert pipeline.toggle_selection("b.txt") is True
        assert [r.name for r in pipeline.selected_records()] == ["b.txt"]
        assert pipeline.toggle_selection("b.txt") is False
        assert pipeline.selected_records() == []

    @pytest.mark.asyncio
    async def test_notify_setting_reaches_uploads(self, backend):
        """Test that backend.notify_enabled turns on the notify stage."""
        config = AppConfig.model_validate({"backend": {"notify_enabled": True}})
        pipeline = IngestPipeline(backend, config)
        [r async for r in pipeline.ingest([make_file("a.txt")])]
        assert ("notify", "a.txt") in backend.calls

    @pytest.mark.asyncio
    async def test_each_batch_gets_a_fresh_coordinator(self, pipeline):
        """Test that coordinators are not shared between batches."""
        assert pipeline.coordinator() is not pipeline.coordinator()

    @pytest.mark.asyncio
    async def test_aclose_closes_backend(self, pipeline, backend):
        """Test that aclose() closes the upload backend."""
        await pipeline.aclose()
        assert backend.closed
