"""
StudySnap Backend - Ingestion Controller Tests
================================================

What we test:
    ✅ submit() returns the outcome and sets the status banner
    ✅ busy flag blocks a second submit (IngestionBusyError)
    ✅ cancel() stops the running photo, stores nothing, returns to idle
    ✅ pending input is cleared after every run
    ✅ dismiss() clears the banner
    ✅ an unexpected fault still leaves an error banner
"""

import asyncio

import pytest

from studysnap.exceptions import ErrorKind, ExtractionTransportError, IngestionBusyError
from studysnap.services.ingestion_pipeline import IngestionState


class TestSubmit:
    @pytest.mark.asyncio
    async def test_success_sets_banner(self, controller, raw_image):
        outcome = await controller.submit(raw_image)

        assert outcome.ok is True
        assert controller.busy is False
        assert controller.state == IngestionState.IDLE
        assert controller.pending_input is None
        assert controller.message.kind == "success"
        assert "Calc I" in controller.message.text

    @pytest.mark.asyncio
    async def test_fallback_banner_mentions_demo(self, controller, fake_client, raw_image):
        fake_client.available = False

        await controller.submit(raw_image)

        assert controller.message.kind == "success"
        assert "Demo" in controller.message.text

    @pytest.mark.asyncio
    async def test_failure_sets_error_banner(self, controller, fake_client, raw_image):
        fake_client.responses = [ExtractionTransportError(429)]

        outcome = await controller.submit(raw_image)

        assert outcome.reason == ErrorKind.EXTRACTION_TRANSPORT_ERROR
        assert controller.message.kind == "error"
        assert controller.message.text == "API request failed: 429"
        assert controller.busy is False
        assert controller.pending_input is None

    @pytest.mark.asyncio
    async def test_unexpected_error_sets_error_banner(self, controller, fake_client, raw_image):
        fake_client.responses = [RuntimeError("bug in client")]

        with pytest.raises(RuntimeError):
            await controller.submit(raw_image)

        assert controller.message.kind == "error"
        assert controller.snapshot().message.kind == "error"
        assert controller.busy is False
        assert controller.state == IngestionState.IDLE

    @pytest.mark.asyncio
    async def test_missing_input(self, controller):
        outcome = await controller.submit(None)
        assert outcome.reason == ErrorKind.INPUT_MISSING
        assert controller.message.kind == "error"

    @pytest.mark.asyncio
    async def test_dismiss_clears_banner(self, controller, raw_image):
        await controller.submit(raw_image)

        controller.dismiss()

        assert controller.message is None
        assert controller.snapshot().message is None


class TestBusyAndCancel:
    @pytest.mark.asyncio
    async def test_second_submit_while_busy_is_rejected(self, controller, fake_client, raw_image):
        fake_client.block = True
        first = asyncio.create_task(controller.submit(raw_image))
        await asyncio.wait_for(fake_client.started.wait(), timeout=2)

        assert controller.busy is True
        assert controller.state == IngestionState.EXTRACTING
        assert controller.pending_input is raw_image

        with pytest.raises(IngestionBusyError):
            await controller.submit(raw_image)

        assert controller.cancel() is True
        assert await first is None

    @pytest.mark.asyncio
    async def test_cancel_returns_to_idle_and_stores_nothing(
        self, controller, fake_client, repository, raw_image
    ):
        fake_client.block = True
        task = asyncio.create_task(controller.submit(raw_image))
        await asyncio.wait_for(fake_client.started.wait(), timeout=2)

        assert controller.cancel() is True
        outcome = await task

        assert outcome is None
        assert controller.busy is False
        assert controller.state == IngestionState.IDLE
        assert controller.pending_input is None
        assert controller.message is None
        assert await repository.count() == 0

    @pytest.mark.asyncio
    async def test_cancel_when_idle(self, controller):
        assert controller.cancel() is False

    @pytest.mark.asyncio
    async def test_can_submit_again_after_cancel(self, controller, fake_client, raw_image):
        fake_client.block = True
        task = asyncio.create_task(controller.submit(raw_image))
        await asyncio.wait_for(fake_client.started.wait(), timeout=2)
        controller.cancel()
        await task

        fake_client.block = False
        outcome = await controller.submit(raw_image)

        assert outcome.ok is True

    @pytest.mark.asyncio
    async def test_snapshot_while_busy(self, controller, fake_client, raw_image):
        fake_client.block = True
        task = asyncio.create_task(controller.submit(raw_image))
        await asyncio.wait_for(fake_client.started.wait(), timeout=2)

        snapshot = controller.snapshot()

        assert snapshot.busy is True
        assert snapshot.state == "extracting"
        controller.cancel()
        await task
