"""Visual state extraction for multi-segment video generation.

Asks a text-generation model to describe how a segment's prompt ends
visually (final frame, character positions, lighting, camera, mood, key
elements) and normalises the answer into a SegmentVisualState.

Extraction never raises for service problems. Failed calls and unusable
answers produce the fallback state instead.

Called from:
  - the segment generation loop, once per generated segment
  - orchestrator.anchor, indirectly, through merge_visual_states()
"""

import asyncio
import json
import logging
from typing import Optional, Sequence

from pydantic import ValidationError

from vidcontinuity.config import settings
from vidcontinuity.schemas.visual_state import (
    ExtractionOptions,
    SegmentPrompt,
    SegmentVisualState,
    SegmentVisualStateResult,
    VisualStatePayload,
    fallback_visual_state,
)
from vidcontinuity.services.continuity_context import render_continuity_context
from vidcontinuity.services.llm import LLMAdapter, get_adapter

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# System prompt constants
# ---------------------------------------------------------------------------

EXTRACTION_SYSTEM_PROMPT = """You are a visual continuity analyzer for multi-segment AI video generation.
Read a video generation prompt and describe the visual state at the END of the segment it produces,
so the next segment can continue seamlessly.

Extract:
1. Final frame description: what the last visible frame shows (subjects, action, setting)
2. Character positions: for each character, where they are and their pose at the end
3. Lighting state: light sources, quality, color temperature, time of day
4. Camera position: shot size, angle and framing of the final shot
5. Mood/atmosphere: the emotional tone at the end of the segment
6. Key visual elements: objects, props or motifs that must persist into the next segment

Respond with a single JSON object with exactly these keys:
{
  "final_frame_description": string,
  "character_positions": {"<character name>": "<position and pose>"},
  "lighting_state": string,
  "camera_position": string,
  "mood_atmosphere": string,
  "key_visual_elements": [string]
}
Be specific and concrete. Do not invent characters that the prompt does not mention."""

KNOWN_CHARACTERS_HEADER = "KNOWN CHARACTERS TO TRACK:"
FOCUS_AREAS_HEADER = "FOCUS AREAS:"


def build_extraction_prompt(prompt: str, options: Optional[ExtractionOptions] = None) -> str:
    """Assemble the user message: the segment prompt plus optional hint blocks."""
    options = options or ExtractionOptions()
    sections = [prompt]

    if options.character_ids:
        sections.append("")
        sections.append(KNOWN_CHARACTERS_HEADER)
        sections.extend(f"- {character_id}" for character_id in options.character_ids)

    if options.focus_areas:
        sections.append("")
        sections.append(FOCUS_AREAS_HEADER)
        sections.extend(f"- {area}" for area in options.focus_areas)

    return "\n".join(sections)


def _parse_visual_state(content: str) -> SegmentVisualState:
    """Normalise the raw JSON text into a state.

    Raises:
        ValueError: If the text is not a JSON object (json.JSONDecodeError
            is a ValueError subclass).
    """
    parsed = json.loads(content)
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return VisualStatePayload.model_validate(parsed).to_visual_state()


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

async def extract_visual_state(
    prompt: str,
    options: Optional[ExtractionOptions] = None,
    *,
    adapter: Optional[LLMAdapter] = None,
) -> SegmentVisualState:
    """Extract the end-of-segment visual state from a generation prompt.

    Args:
        prompt: The segment's full generation prompt.
        options: Characters to track and areas to focus on.
        adapter: LLM adapter to use; defaults to the configured extraction model.

    Returns:
        The extracted state, or the fallback state if the service call
        failed or its answer could not be parsed.
    """
    user_prompt = build_extraction_prompt(prompt, options)

    try:
        if adapter is None:
            adapter = get_adapter(settings.models.extraction_model)
        content = await adapter.generate_text(
            user_prompt,
            system_prompt=EXTRACTION_SYSTEM_PROMPT,
            temperature=settings.extraction.temperature,
            max_tokens=settings.extraction.max_tokens,
            json_output=True,
            max_retries=settings.llm.max_retries,
        )
    except Exception as e:
        logger.error(f"Visual state extraction call failed: {type(e).__name__}: {e}")
        return fallback_visual_state()

    if not content:
        logger.warning("Visual state extraction returned empty content, using fallback state")
        return fallback_visual_state()

    try:
        return _parse_visual_state(content)
    except (ValueError, ValidationError) as e:
        logger.warning(f"Could not parse visual state response: {e}")
        return fallback_visual_state()


async def batch_extract_visual_states(
    items: Sequence[SegmentPrompt],
    options: Optional[ExtractionOptions] = None,
    *,
    adapter: Optional[LLMAdapter] = None,
) -> list[SegmentVisualStateResult]:
    """Extract visual states for several segments concurrently.

    Output order matches input order. Each item resolves independently,
    a failed extraction yields the fallback state for that item only.
    """
    if not items:
        return []

    if adapter is None:
        try:
            adapter = get_adapter(settings.models.extraction_model)
        except Exception as e:
            logger.error(f"Could not create extraction adapter: {type(e).__name__}: {e}")
            return [
                SegmentVisualStateResult(segment_id=item.segment_id, visual_state=fallback_visual_state())
                for item in items
            ]

    states = await asyncio.gather(*[
        extract_visual_state(item.prompt, options, adapter=adapter) for item in items
    ])

    logger.info(f"Extracted visual states for {len(items)} segments")
    return [
        SegmentVisualStateResult(segment_id=item.segment_id, visual_state=state)
        for item, state in zip(items, states)
    ]


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def build_continuity_context(state: SegmentVisualState) -> str:
    """Render a state into the continuity block for the next segment's prompt."""
    return render_continuity_context(state)


def is_visual_state_valid(state: SegmentVisualState) -> bool:
    """Cheap "looks populated" check.

    Note the fallback state also passes: its description is longer than
    20 characters. This is not an "extraction succeeded" signal.
    """
    return (
        len(state.final_frame_description) > 20
        and bool(state.lighting_state)
        and bool(state.camera_position)
    )


def merge_visual_states(states: Sequence[SegmentVisualState]) -> SegmentVisualState:
    """Fold several states into one representative state.

    The last state in the sequence wins for every scalar field, including
    timestamp. Character positions are overwritten left to right, and key
    visual elements are de-duplicated keeping first-seen order.

    Raises:
        ValueError: If states is empty.
    """
    if not states:
        raise ValueError("Cannot merge an empty sequence of visual states")

    if len(states) == 1:
        return states[0]

    latest = states[-1]

    positions: dict[str, str] = {}
    for state in states:
        positions.update(state.character_positions)

    elements: list[str] = []
    seen: set[str] = set()
    for state in states:
        for element in state.key_visual_elements:
            if element not in seen:
                seen.add(element)
                elements.append(element)

    return SegmentVisualState(
        final_frame_description=latest.final_frame_description,
        character_positions=positions,
        lighting_state=latest.lighting_state,
        camera_position=latest.camera_position,
        mood_atmosphere=latest.mood_atmosphere,
        key_visual_elements=elements,
        timestamp=latest.timestamp,
    )
