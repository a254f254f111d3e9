"""
Pydantic models and enums for the text-removal pipeline.
"""

import base64
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from ..config import DOWNLOAD_FILENAME, VEO_RESOLUTION


# ── Enums ────────────────────────────────────────────────────────────────────

class AspectRatio(str, Enum):
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"


class Resolution(str, Enum):
    HD = "720p"
    FULL_HD = "1080p"


class CredentialState(str, Enum):
    UNKNOWN = "unknown"
    ABSENT = "absent"
    PRESENT = "present"


class SessionStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


# ── Media ────────────────────────────────────────────────────────────────────

class MediaReference(BaseModel):
    """A single encoded still frame used as the visual anchor for generation."""

    model_config = ConfigDict(frozen=True)

    mime_type: str = "image/png"
    data: bytes
    width: int = 0
    height: int = 0

    @property
    def payload_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.payload_base64}"

    @classmethod
    def from_data_uri(cls, uri: str) -> "MediaReference":
        """Parse a `data:<mime>;base64,<payload>` string."""
        if not uri.startswith("data:") or "," not in uri:
            raise ValueError("Not a base64 data URI")
        header, payload = uri.split(",", 1)
        mime = header[len("data:"):].split(";")[0] or "application/octet-stream"
        return cls(mime_type=mime, data=base64.b64decode(payload))


class SourceVideo(BaseModel):
    """An uploaded video held on local disk by the ResultStore."""

    model_config = ConfigDict(frozen=True)

    media_id: str
    path: str
    filename: str
    content_type: str = "video/mp4"
    aspect_ratio: Optional[AspectRatio] = None  # None = derive from the frame


class ResultHandle(BaseModel):
    """A fetched result, playable from local disk until released."""

    model_config = ConfigDict(frozen=True)

    media_id: str
    path: str
    content_type: str = "video/mp4"
    size_bytes: int = 0
    source_uri: Optional[str] = None
    download_name: str = DOWNLOAD_FILENAME


# ── Generation ───────────────────────────────────────────────────────────────

class GenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    reference_image: MediaReference
    instruction_text: str
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE
    resolution: Resolution = Resolution(VEO_RESOLUTION)
    sample_count: int = 1


class JobError(BaseModel):
    code: Optional[int] = None
    status: str = ""
    message: str = ""


class GenerationJob(BaseModel):
    """One snapshot of a remote long-running operation."""

    model_config = ConfigDict(frozen=True)

    name: str
    done: bool = False
    result_uri: Optional[str] = None
    error: Optional[JobError] = None


# ── Presentation state ───────────────────────────────────────────────────────

class UIState(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: SessionStatus = SessionStatus.IDLE
    message: Optional[str] = None
    result: Optional[ResultHandle] = None
    error: Optional[str] = None

    @classmethod
    def idle(cls) -> "UIState":
        return cls(status=SessionStatus.IDLE)

    @classmethod
    def processing(cls, message: str) -> "UIState":
        return cls(status=SessionStatus.PROCESSING, message=message)

    @classmethod
    def completed(cls, result: ResultHandle) -> "UIState":
        return cls(status=SessionStatus.COMPLETED, result=result)

    @classmethod
    def failed(cls, error: str) -> "UIState":
        return cls(status=SessionStatus.ERROR, error=error)


# ── API Request / Response Models ────────────────────────────────────────────

class StartRequest(BaseModel):
    """Optional knobs for a removal attempt."""
    preset_id: str = Field("all-text", description="Key into cleanview.presets.PRESETS")
    extra_instructions: Optional[str] = None
    aspect_ratio: Optional[AspectRatio] = None


class SessionStateResponse(BaseModel):
    status: SessionStatus
    message: Optional[str] = None
    error: Optional[str] = None
    result_url: Optional[str] = None
    download_name: Optional[str] = None
    auth_required: bool = False
    prompt_visible: bool = False
    credential_state: CredentialState = CredentialState.UNKNOWN
    source_filename: Optional[str] = None


class CredentialStatusResponse(BaseModel):
    state: CredentialState
    prompt_visible: bool
