"""Shared fakes for the pipeline tests."""

import asyncio

import pytest

from cleanview import metrics
from cleanview.pipeline.credentials import CredentialGate
from cleanview.pipeline.generation import GenerationClient
from cleanview.pipeline.models import (
    GenerationJob,
    GenerationRequest,
    MediaReference,
)
from cleanview.pipeline.orchestrator import SessionController
from cleanview.pipeline.storage import ResultStore

RESULT_URI = "https://generativelanguage.googleapis.com/v1beta/files/abc:download?alt=media"
VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42fake-video"


class FakeService:
    """Scripted GenerationService: submit returns snapshots[0], each refresh the next one."""

    def __init__(self, snapshots=None, submit_error=None, refresh_error=None, video=VIDEO_BYTES):
        self.snapshots = list(snapshots or [])
        self.submit_error = submit_error
        self.refresh_error = refresh_error
        self.video = video
        self.submitted = []
        self.refreshed = []
        self.fetched = []
        self.release = None  # optional asyncio.Event that blocks refresh

    async def submit(self, request):
        self.submitted.append(request)
        if self.submit_error is not None:
            raise self.submit_error
        return self.snapshots.pop(0)

    async def refresh(self, job):
        self.refreshed.append(job)
        if self.release is not None:
            await self.release.wait()
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.snapshots.pop(0)

    async def fetch_result(self, uri):
        self.fetched.append(uri)
        return self.video


class FakeProvider:
    def __init__(self, selected=True, check_error=None, select_error=None):
        self.selected = selected
        self.check_error = check_error
        self.select_error = select_error
        self.checks = 0
        self.selections = 0

    async def has_selected_credential(self):
        self.checks += 1
        if self.check_error is not None:
            raise self.check_error
        return self.selected

    async def open_credential_selector(self):
        self.selections += 1
        if self.select_error is not None:
            raise self.select_error
        self.selected = True


class FakeExtractor:
    def __init__(self, reference=None, error=None):
        self.reference = reference or MediaReference(data=b"png-bytes", width=1280, height=720)
        self.error = error
        self.calls = []

    async def extract(self, path):
        self.calls.append(path)
        if self.error is not None:
            raise self.error
        return self.reference


def pending(name="models/veo/operations/op-1"):
    return GenerationJob(name=name, done=False)


def finished(uri=RESULT_URI, name="models/veo/operations/op-1"):
    return GenerationJob(name=name, done=True, result_uri=uri)


def make_request(**overrides):
    fields = {
        "reference_image": MediaReference(data=b"png-bytes", width=1280, height=720),
        "instruction_text": "remove text",
    }
    fields.update(overrides)
    return GenerationRequest(**fields)


@pytest.fixture(autouse=True)
def _clean_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def store(tmp_path):
    return ResultStore(root=str(tmp_path / "media"))


def make_controller(store, service, provider=None, extractor=None, max_poll_attempts=10, poll_interval=0):
    client = GenerationClient(service, store, poll_interval=poll_interval, max_poll_attempts=max_poll_attempts)
    gate = CredentialGate(provider or FakeProvider())
    return SessionController(
        extractor=extractor or FakeExtractor(),
        client=client,
        gate=gate,
        store=store,
    )


def run(coro):
    return asyncio.run(coro)
