"""Continuity context block: rendering and re-parsing.

The block produced by render_continuity_context() is embedded in the next
segment's generation prompt. The validator later re-reads the same block
with parse_continuity_context(). Both sides use the label constants below,
so the format is defined in exactly one place.

Block layout (sections for empty collections are omitted):

    === VISUAL CONTINUITY FROM PREVIOUS SEGMENT ===
    PREVIOUS SEGMENT ENDED WITH: <final frame>
    LIGHTING: <lighting>
    CAMERA: <camera>
    MOOD/ATMOSPHERE: <mood>

    CHARACTER POSITIONS:
    - <name>: <position>

    KEY VISUAL ELEMENTS TO MAINTAIN:
    - <element>

    CRITICAL: ...
    === END CONTINUITY CONTEXT ===
"""

import re

from pydantic import BaseModel, ConfigDict, Field

from vidcontinuity.schemas.visual_state import SegmentVisualState

# ---------------------------------------------------------------------------
# Grammar constants
# ---------------------------------------------------------------------------

CONTEXT_HEADER = "=== VISUAL CONTINUITY FROM PREVIOUS SEGMENT ==="
CONTEXT_FOOTER = "=== END CONTINUITY CONTEXT ==="

ENDED_WITH_LABEL = "PREVIOUS SEGMENT ENDED WITH:"
LIGHTING_LABEL = "LIGHTING:"
CAMERA_LABEL = "CAMERA:"
MOOD_LABEL = "MOOD/ATMOSPHERE:"
CHARACTER_POSITIONS_LABEL = "CHARACTER POSITIONS:"
KEY_ELEMENTS_LABEL = "KEY VISUAL ELEMENTS TO MAINTAIN:"

LIST_ITEM_PREFIX = "- "
KEY_VALUE_SEPARATOR = ": "

CONTINUITY_INSTRUCTION = (
    "CRITICAL: Maintain visual continuity with the previous segment. "
    "Characters, lighting, camera framing and mood must pick up exactly where "
    "the previous segment ended, with smooth transitions for any change."
)


def _labelled_value_pattern(label: str) -> re.Pattern:
    # Label anywhere in the text, one space, then the rest of that line.
    # Free-form briefs put markers mid-sentence too.
    return re.compile(rf"{re.escape(label)} ([^\r\n]+)", re.IGNORECASE)


_LIGHTING_RE = _labelled_value_pattern(LIGHTING_LABEL)
_CAMERA_RE = _labelled_value_pattern(CAMERA_LABEL)
_MOOD_RE = _labelled_value_pattern(MOOD_LABEL)
_CHARACTER_BLOCK_RE = re.compile(
    rf"^[ \t]*{re.escape(CHARACTER_POSITIONS_LABEL)}[ \t]*\r?\n"
    rf"((?:[ \t]*{re.escape(LIST_ITEM_PREFIX)}[^\r\n]+(?:\r?\n|$))+)",
    re.IGNORECASE | re.MULTILINE,
)
_CHARACTER_LINE_RE = re.compile(
    rf"^[ \t]*{re.escape(LIST_ITEM_PREFIX)}(.+?){re.escape(KEY_VALUE_SEPARATOR)}(.+)$"
)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def render_continuity_context(state: SegmentVisualState) -> str:
    """Render a visual state into the continuity block for the next prompt.

    Deterministic: the same state always yields the same text.
    """
    lines = [
        CONTEXT_HEADER,
        f"{ENDED_WITH_LABEL} {state.final_frame_description}",
        f"{LIGHTING_LABEL} {state.lighting_state}",
        f"{CAMERA_LABEL} {state.camera_position}",
        f"{MOOD_LABEL} {state.mood_atmosphere}",
    ]

    if state.character_positions:
        lines.append("")
        lines.append(CHARACTER_POSITIONS_LABEL)
        for name, position in state.character_positions.items():
            lines.append(f"{LIST_ITEM_PREFIX}{name}{KEY_VALUE_SEPARATOR}{position}")

    if state.key_visual_elements:
        lines.append("")
        lines.append(KEY_ELEMENTS_LABEL)
        for element in state.key_visual_elements:
            lines.append(f"{LIST_ITEM_PREFIX}{element}")

    lines.append("")
    lines.append(CONTINUITY_INSTRUCTION)
    lines.append(CONTEXT_FOOTER)
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class ParsedContext(BaseModel):
    """Dimensions recovered from a continuity block.

    A section missing from the text leaves its dimension empty.
    """

    model_config = ConfigDict(frozen=True)

    character_positions: dict[str, str] = Field(default_factory=dict)
    lighting: str = ""
    camera: str = ""
    mood: str = ""

    @classmethod
    def from_visual_state(cls, state: SegmentVisualState) -> "ParsedContext":
        """Build the comparison view of a state without a text round-trip."""
        return cls(
            character_positions=dict(state.character_positions),
            lighting=state.lighting_state,
            camera=state.camera_position,
            mood=state.mood_atmosphere,
        )


def _first_group(pattern: re.Pattern, text: str) -> str:
    match = pattern.search(text)
    return match.group(1) if match else ""


def parse_continuity_context(text: str) -> ParsedContext:
    """Recover character positions, lighting, camera and mood from a block.

    Matching is case-insensitive and tolerant: any section that is absent or
    malformed simply comes back empty.
    """
    positions: dict[str, str] = {}
    block = _CHARACTER_BLOCK_RE.search(text)
    if block:
        for line in block.group(1).splitlines():
            if not line.strip():
                continue
            match = _CHARACTER_LINE_RE.match(line)
            if match:
                positions[match.group(1)] = match.group(2)

    return ParsedContext(
        character_positions=positions,
        lighting=_first_group(_LIGHTING_RE, text),
        camera=_first_group(_CAMERA_RE, text),
        mood=_first_group(_MOOD_RE, text),
    )
