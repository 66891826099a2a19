"""Pydantic schemas for per-segment visual state snapshots.

SegmentVisualState is the value passed between segments of a generation run.
VisualStatePayload is the lenient model used to normalise the untrusted JSON
returned by the text-generation service before it becomes a state.
"""

import json
from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

FALLBACK_FRAME_DESCRIPTION = "Unable to extract visual state from prompt"
FALLBACK_LIGHTING_STATE = "Natural lighting"
FALLBACK_CAMERA_POSITION = "Medium shot"
FALLBACK_MOOD_ATMOSPHERE = "Neutral"


def utc_now_iso() -> str:
    """Return the current instant as an ISO-8601 UTC string (millisecond precision)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce_to_str(v: Any) -> str:
    """Coerce whatever the provider sent for a text field to a string.

    Some providers return arrays, nulls, numbers or nested objects for fields
    declared as strings. Nested objects are kept as compact JSON; any other
    unusable value becomes empty so one bad field never sinks the rest.
    """
    if v is None:
        return ""
    if isinstance(v, str):
        return v
    if isinstance(v, list):
        return ", ".join(_coerce_to_str(item) for item in v if item is not None)
    if isinstance(v, dict):
        return json.dumps(v)
    if isinstance(v, (bool, int, float)):
        return str(v)
    return ""


def _coerce_positions(v: Any) -> dict[str, str]:
    """Normalise the character position map; anything but an object becomes empty."""
    if not isinstance(v, dict):
        return {}
    return {str(name): _coerce_to_str(position) for name, position in v.items()}


def _coerce_elements(v: Any) -> list[str]:
    """Normalise the visual element list; a lone string is a one-item list."""
    if v is None:
        return []
    if isinstance(v, list):
        return [_coerce_to_str(item) for item in v if item is not None]
    element = _coerce_to_str(v)
    return [element] if element else []


CoercedStr = Annotated[str, BeforeValidator(_coerce_to_str)]
CoercedPositions = Annotated[dict[str, str], BeforeValidator(_coerce_positions)]
CoercedElements = Annotated[list[str], BeforeValidator(_coerce_elements)]


class SegmentVisualState(BaseModel):
    """Snapshot of the salient visual facts at the end of one segment.

    Every field has an empty default rather than being optional. Instances
    are frozen; merging and extraction always build new values.
    """

    model_config = ConfigDict(frozen=True)

    final_frame_description: str = Field(
        default="",
        description="What the last visible frame of the segment shows",
    )
    character_positions: dict[str, str] = Field(
        default_factory=dict,
        description="Character name -> position/pose description",
    )
    lighting_state: str = Field(default="", description="Illumination at segment end")
    camera_position: str = Field(default="", description="Shot framing and angle")
    mood_atmosphere: str = Field(default="", description="Emotional tone")
    key_visual_elements: list[str] = Field(
        default_factory=list,
        description="Salient objects or motifs, in insertion order",
    )
    timestamp: str = Field(
        default_factory=utc_now_iso,
        description="ISO-8601 instant of extraction",
    )


def fallback_visual_state() -> SegmentVisualState:
    """Build the low-information state returned when extraction fails."""
    return SegmentVisualState(
        final_frame_description=FALLBACK_FRAME_DESCRIPTION,
        character_positions={},
        lighting_state=FALLBACK_LIGHTING_STATE,
        camera_position=FALLBACK_CAMERA_POSITION,
        mood_atmosphere=FALLBACK_MOOD_ATMOSPHERE,
        key_visual_elements=[],
        timestamp=utc_now_iso(),
    )


class VisualStatePayload(BaseModel):
    """Structured output expected from the extraction call.

    All fields are optional with typed defaults; unknown keys are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    final_frame_description: CoercedStr = ""
    character_positions: CoercedPositions = Field(default_factory=dict)
    lighting_state: CoercedStr = ""
    camera_position: CoercedStr = ""
    mood_atmosphere: CoercedStr = ""
    key_visual_elements: CoercedElements = Field(default_factory=list)

    def to_visual_state(self) -> SegmentVisualState:
        """Materialise a SegmentVisualState stamped with the current instant."""
        return SegmentVisualState(
            final_frame_description=self.final_frame_description,
            character_positions=dict(self.character_positions),
            lighting_state=self.lighting_state,
            camera_position=self.camera_position,
            mood_atmosphere=self.mood_atmosphere,
            key_visual_elements=list(self.key_visual_elements),
            timestamp=utc_now_iso(),
        )


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExtractionOptions(_CamelModel):
    """Hints appended to the extraction request."""

    character_ids: list[str] = Field(default_factory=list)
    focus_areas: list[str] = Field(default_factory=list)


class SegmentPrompt(_CamelModel):
    """One batch extraction input."""

    segment_id: str
    prompt: str


class SegmentVisualStateResult(_CamelModel):
    """One batch extraction output, paired with its segment id."""

    segment_id: str
    visual_state: SegmentVisualState
