"""
Veo 3.1 client: Gemini API long-running video generation over REST.

  submit:  POST {API_BASE}/models/{model}:predictLongRunning   → {"name": "models/.../operations/..."}
  refresh: GET  {API_BASE}/{operation name}                     → {"done": bool, "response": {...}}
  fetch:   GET  {video uri}&key={api key}                       → mp4 bytes

The reference frame goes in as an image-to-video input; the instruction
text asks Veo to regenerate the scene without the overlays.
"""

import logging
from typing import Callable, Optional

import httpx

from .config import HTTP_TIMEOUT, VEO_API_BASE, VEO_MODEL
from .pipeline.errors import AuthRequired
from .pipeline.models import GenerationJob, GenerationRequest, JobError

logger = logging.getLogger(__name__)


class VeoAPIError(Exception):
    """Structured error from the Google API error envelope."""

    def __init__(self, message: str, http_status: Optional[int] = None, status: str = ""):
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.status = status


def _error_from_response(resp: httpx.Response) -> VeoAPIError:
    try:
        body = resp.json()
    except ValueError:
        body = {}
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        return VeoAPIError(
            err.get("message") or resp.text[:500],
            http_status=err.get("code") or resp.status_code,
            status=err.get("status", ""),
        )
    return VeoAPIError(f"Veo API error {resp.status_code}: {resp.text[:500]}", http_status=resp.status_code)


def _result_uri(operation: dict) -> Optional[str]:
    response = operation.get("response") or {}
    samples = (response.get("generateVideoResponse") or {}).get("generatedSamples") or []
    if not samples or not isinstance(samples[0], dict):
        return None
    return (samples[0].get("video") or {}).get("uri")


def parse_operation(payload: dict) -> GenerationJob:
    """Turn an operation resource into a GenerationJob snapshot."""
    name = payload.get("name")
    if not name:
        raise VeoAPIError(f"Veo returned an operation without a name: {payload}")

    error = None
    raw_error = payload.get("error")
    if isinstance(raw_error, dict):
        error = JobError(
            code=raw_error.get("code"),
            status=raw_error.get("status", ""),
            message=raw_error.get("message", ""),
        )

    return GenerationJob(
        name=name,
        done=bool(payload.get("done", False)),
        result_uri=_result_uri(payload),
        error=error,
    )


def build_payload(request: GenerationRequest) -> dict:
    image = request.reference_image
    return {
        "instances": [
            {
                "prompt": request.instruction_text,
                "image": {
                    "bytesBase64Encoded": image.payload_base64,
                    "mimeType": image.mime_type,
                },
            }
        ],
        "parameters": {
            "aspectRatio": request.aspect_ratio.value,
            "resolution": request.resolution.value,
            "sampleCount": request.sample_count,
        },
    }


class VeoClient:
    """
    GenerationService backed by the Gemini API.

    Args:
        api_key:   Callable returning the current key; read on every call so
                   a freshly selected key is used without a restart.
        model:     Veo model id.
        transport: Optional httpx transport (tests pass a MockTransport).
    """

    def __init__(
        self,
        api_key: Callable[[], str],
        model: str = VEO_MODEL,
        api_base: str = VEO_API_BASE,
        timeout: float = HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _key(self) -> str:
        key = self._api_key()
        if not key:
            raise AuthRequired("No API key selected")
        return key

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def submit(self, request: GenerationRequest) -> GenerationJob:
        url = f"{self.api_base}/models/{self.model}:predictLongRunning"
        headers = {"x-goog-api-key": self._key(), "Content-Type": "application/json"}

        logger.info(
            f"Veo submit: model={self.model}, aspect={request.aspect_ratio.value}, "
            f"resolution={request.resolution.value}"
        )
        async with self._client() as client:
            resp = await client.post(url, headers=headers, json=build_payload(request))
        if resp.status_code != 200:
            raise _error_from_response(resp)

        job = parse_operation(resp.json())
        logger.info(f"Veo operation started: {job.name}")
        return job

    async def refresh(self, job: GenerationJob) -> GenerationJob:
        url = f"{self.api_base}/{job.name}"
        async with self._client() as client:
            resp = await client.get(url, headers={"x-goog-api-key": self._key()})
        if resp.status_code != 200:
            raise _error_from_response(resp)
        return parse_operation(resp.json())

    async def fetch_result(self, uri: str) -> bytes:
        # The URI already carries alt=media; the key is merged alongside it
        url = httpx.URL(uri).copy_merge_params({"key": self._key()})
        async with self._client() as client:
            resp = await client.get(url, follow_redirects=True)
        if resp.status_code != 200:
            raise _error_from_response(resp)
        return resp.content
