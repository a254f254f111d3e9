"""
End-to-end tests for the session state machine with a scripted Veo service.
"""

import asyncio
import os

from cleanview.pipeline.errors import ExtractionFailed
from cleanview.pipeline.models import AspectRatio, CredentialState, MediaReference, SessionStatus
from cleanview.veo import VeoAPIError

from conftest import (
    RESULT_URI,
    FakeExtractor,
    FakeProvider,
    FakeService,
    finished,
    make_controller,
    pending,
    run,
)


def _load_clip(controller, store, **kwargs):
    source = store.save_source(b"fake mp4 bytes", filename="clip.mp4", **kwargs)
    controller.load_source(source)
    return source


class TestScenarios:
    def test_two_polls_then_completed(self, store):
        """Upload clip.mp4, key present, done on the second poll."""
        service = FakeService([pending(), pending(), finished()])
        controller = make_controller(store, service, provider=FakeProvider(selected=True))
        _load_clip(controller, store)

        async def scenario():
            assert await controller.gate.check_credential() == CredentialState.PRESENT
            return await controller.start()

        state = run(scenario())

        assert state.status == SessionStatus.COMPLETED
        assert len(service.refreshed) == 2
        assert state.result.source_uri == RESULT_URI
        assert os.path.exists(state.result.path)
        assert controller.auth_required is False

    def test_auth_failure_reprompts_then_recovers(self, store):
        """Key present but rejected; prompt shows; selecting a key hides it."""
        service = FakeService(submit_error=Exception("Requested entity was not found."))
        controller = make_controller(store, service, provider=FakeProvider(selected=True))
        _load_clip(controller, store)

        async def rejected():
            await controller.gate.check_credential()
            return await controller.start()

        state = run(rejected())

        assert state.status == SessionStatus.IDLE
        assert state.error is None
        assert controller.auth_required is True
        assert controller.gate.prompt_visible
        assert controller.gate.state == CredentialState.PRESENT

        run(controller.gate.prompt_for_credential())

        assert controller.auth_required is False
        assert not controller.gate.prompt_visible

    def test_generic_failure_surfaces_message(self, store):
        service = FakeService(submit_error=Exception("Network timeout"))
        controller = make_controller(store, service)
        _load_clip(controller, store)

        state = run(controller.start())

        assert state.status == SessionStatus.ERROR
        assert state.error == "Network timeout"
        assert controller.auth_required is False

    def test_structured_auth_error_on_poll(self, store):
        service = FakeService(
            [pending()],
            refresh_error=VeoAPIError("denied", http_status=403, status="PERMISSION_DENIED"),
        )
        controller = make_controller(store, service)
        _load_clip(controller, store)

        state = run(controller.start())

        assert state.status == SessionStatus.IDLE
        assert controller.auth_required is True

    def test_no_result_is_error_not_auth(self, store):
        service = FakeService([pending(), pending().model_copy(update={"done": True})])
        controller = make_controller(store, service)
        _load_clip(controller, store)

        state = run(controller.start())

        assert state.status == SessionStatus.ERROR
        assert state.error == "Video generation failed: No URI returned."
        assert controller.auth_required is False

    def test_poll_ceiling_is_error(self, store):
        service = FakeService([pending() for _ in range(5)])
        controller = make_controller(store, service, max_poll_attempts=2)
        _load_clip(controller, store)

        state = run(controller.start())

        assert state.status == SessionStatus.ERROR
        assert "timed out" in state.error

    def test_extraction_failure_is_error(self, store):
        service = FakeService([finished()])
        extractor = FakeExtractor(error=ExtractionFailed("Could not read the first frame of the video"))
        controller = make_controller(store, service, extractor=extractor)
        _load_clip(controller, store)

        state = run(controller.start())

        assert state.status == SessionStatus.ERROR
        assert state.error == "Could not read the first frame of the video"
        assert service.submitted == []


class TestTransitions:
    def test_start_without_source_is_noop(self, store):
        service = FakeService([finished()])
        controller = make_controller(store, service)

        state = run(controller.start())

        assert state.status == SessionStatus.IDLE
        assert service.submitted == []

    def test_start_while_processing_is_noop(self, store):
        service = FakeService([pending(), finished()])
        controller = make_controller(store, service)
        _load_clip(controller, store)

        async def scenario():
            service.release = asyncio.Event()
            first = asyncio.create_task(controller.start())
            while not service.refreshed:
                await asyncio.sleep(0)
            assert controller.is_processing

            second = await controller.start()
            assert second.status == SessionStatus.PROCESSING
            assert controller.start_background() is False

            service.release.set()
            return await first

        state = run(scenario())

        assert state.status == SessionStatus.COMPLETED
        assert len(service.submitted) == 1

    def test_start_background_enters_processing_before_returning(self, store):
        service = FakeService([finished()])
        controller = make_controller(store, service)
        _load_clip(controller, store)

        async def scenario():
            assert controller.start_background() is True
            assert controller.is_processing
            task = controller._task

            assert controller.start_background() is False
            assert controller._task is task
            return await task

        state = run(scenario())

        assert state.status == SessionStatus.COMPLETED
        assert len(service.submitted) == 1

    def test_dismiss_error_returns_to_idle(self, store):
        controller = make_controller(store, FakeService(submit_error=Exception("boom")))
        _load_clip(controller, store)
        run(controller.start())

        controller.dismiss()

        assert controller.state.status == SessionStatus.IDLE

    def test_dismiss_ignored_outside_error(self, store):
        controller = make_controller(store, FakeService([finished()]))
        _load_clip(controller, store)
        run(controller.start())

        controller.dismiss()

        assert controller.state.status == SessionStatus.COMPLETED

    def test_reset_releases_source_and_result(self, store):
        controller = make_controller(store, FakeService([finished()]))
        source = _load_clip(controller, store)
        state = run(controller.start())

        controller.reset()

        assert controller.state.status == SessionStatus.IDLE
        assert controller.source is None
        assert not os.path.exists(state.result.path)
        assert not os.path.exists(source.path)
        assert store.live_paths() == []

    def test_retry_releases_previous_result(self, store):
        service = FakeService([finished(), finished()])
        controller = make_controller(store, service)
        _load_clip(controller, store)

        first = run(controller.start())
        second = run(controller.start())

        assert second.status == SessionStatus.COMPLETED
        assert not os.path.exists(first.result.path)
        assert os.path.exists(second.result.path)
        assert len(service.submitted) == 2

    def test_new_upload_cancels_inflight_poll(self, store):
        service = FakeService([pending(), pending(), finished()])
        controller = make_controller(store, service)
        first_source = _load_clip(controller, store)

        async def scenario():
            service.release = asyncio.Event()
            task = asyncio.create_task(controller.start())
            while not service.refreshed:
                await asyncio.sleep(0)

            second_source = _load_clip(controller, store)
            service.release.set()
            await task
            return second_source

        second_source = run(scenario())

        assert controller.state.status == SessionStatus.IDLE
        assert controller.source == second_source
        assert not os.path.exists(first_source.path)
        assert service.fetched == []
        assert store.live_paths() == [second_source.path]

    def test_listeners_see_each_transition(self, store):
        controller = make_controller(store, FakeService([pending(), finished()]))
        _load_clip(controller, store)
        seen = []
        controller.subscribe(lambda state: seen.append(state.status))

        run(controller.start())

        assert seen == [SessionStatus.PROCESSING, SessionStatus.COMPLETED]


class TestRequestBuilding:
    def test_aspect_ratio_from_frame(self, store):
        portrait = MediaReference(data=b"png", width=720, height=1280)
        service = FakeService([finished()])
        controller = make_controller(store, service, extractor=FakeExtractor(reference=portrait))
        _load_clip(controller, store)

        run(controller.start())

        assert service.submitted[0].aspect_ratio == AspectRatio.PORTRAIT

    def test_aspect_ratio_override_wins(self, store):
        portrait = MediaReference(data=b"png", width=720, height=1280)
        service = FakeService([finished()])
        controller = make_controller(store, service, extractor=FakeExtractor(reference=portrait))
        _load_clip(controller, store, aspect_ratio=AspectRatio.LANDSCAPE)

        run(controller.start())

        assert service.submitted[0].aspect_ratio == AspectRatio.LANDSCAPE

    def test_preset_and_extra_instructions(self, store):
        service = FakeService([finished()])
        controller = make_controller(store, service)
        _load_clip(controller, store)
        controller.configure("subtitles", "Keep the red car.")

        run(controller.start())

        text = service.submitted[0].instruction_text
        assert text.startswith("Professionally remove all text")
        assert "burned-in subtitles" in text
        assert text.endswith("Keep the red car.")

    def test_each_attempt_builds_a_fresh_request(self, store):
        service = FakeService([finished(), finished()])
        controller = make_controller(store, service)
        _load_clip(controller, store)

        run(controller.start())
        run(controller.start())

        assert service.submitted[0] is not service.submitted[1]
