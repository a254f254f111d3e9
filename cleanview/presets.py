"""
Preset Library: instructions sent to Veo for each kind of clean-up.
Users pick what to remove, we inject the actual prompt.
"""

from typing import Optional

# Prepended to every instruction; Veo gets no other description of the task.
BASE_INSTRUCTION = (
    "Professionally remove all text, watermarks, subtitles, and overlays from this video. "
    "Regenerate the underlying scene with high visual consistency and no artifacts."
)

PRESETS = {
    "all-text": {
        "id": "all-text",
        "name": "All Text",
        "prompt": (
            "Remove any writing, logos or subtitles. "
            "Rebuild the background realistically."
        ),
    },
    "watermark": {
        "id": "watermark",
        "name": "Watermark",
        "prompt": (
            "Focus on semi-transparent watermarks and channel logos, usually in a corner. "
            "Reconstruct the covered area so it matches the surrounding texture and motion."
        ),
    },
    "subtitles": {
        "id": "subtitles",
        "name": "Subtitles",
        "prompt": (
            "Focus on burned-in subtitles and captions along the bottom third of the frame. "
            "Restore the scene beneath them with consistent lighting."
        ),
    },
    "overlays": {
        "id": "overlays",
        "name": "Overlays",
        "prompt": (
            "Remove graphic overlays such as lower thirds, banners, stickers and timestamps. "
            "Keep people, objects and camera motion unchanged."
        ),
    },
}


def get_prompt(preset_id: str) -> str:
    """Get the instruction for a preset. Raises if preset not found."""
    preset = PRESETS.get(preset_id)
    if not preset:
        raise ValueError(f"Unknown preset: {preset_id}. Available: {list(PRESETS.keys())}")
    return preset["prompt"]


def build_instruction(preset_id: str = "all-text", extra: Optional[str] = None) -> str:
    """Full instruction text: base task, preset focus, then any user notes."""
    parts = [BASE_INSTRUCTION, get_prompt(preset_id)]
    if extra and extra.strip():
        parts.append(extra.strip())
    return " ".join(parts)
