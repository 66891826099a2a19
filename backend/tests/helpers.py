"""Test helpers: a recording fake LLM adapter and visual state builders."""

import json
from typing import Callable, Optional, Union

from vidcontinuity.schemas.visual_state import SegmentVisualState
from vidcontinuity.services.llm.base import LLMAdapter

Response = Union[str, None, Exception]


class FakeAdapter(LLMAdapter):
    """LLMAdapter that records every call and answers from a script.

    `responder` is either a fixed response or a callable taking the user
    prompt. A response that is an Exception instance is raised.
    """

    def __init__(self, responder: Union[Response, Callable[[str], Response]] = None):
        self.responder = responder
        self.calls: list[dict] = []

    async def generate_text(
        self,
        prompt,
        *,
        system_prompt=None,
        temperature=0.7,
        max_tokens=None,
        json_output=False,
        max_retries=1,
    ):
        self.calls.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "json_output": json_output,
            "max_retries": max_retries,
        })
        response = self.responder(prompt) if callable(self.responder) else self.responder
        if isinstance(response, Exception):
            raise response
        return response


def visual_state_json(**overrides) -> str:
    """A complete extraction response, with optional field overrides."""
    payload = {
        "final_frame_description": "A dramatic sunset scene with silhouetted figures",
        "character_positions": {
            "protagonist": "standing in foreground, facing camera",
            "antagonist": "partially visible in background shadows",
        },
        "lighting_state": "Golden hour, warm orange backlight",
        "camera_position": "Wide shot, low angle",
        "mood_atmosphere": "Tense anticipation",
        "key_visual_elements": ["setting sun", "long shadows", "dust particles"],
    }
    payload.update(overrides)
    return json.dumps(payload)


def make_state(
    final_frame_description: str = "Hero standing in doorway with light behind",
    character_positions: Optional[dict] = None,
    lighting_state: str = "bright day",
    camera_position: str = "Medium shot",
    mood_atmosphere: str = "calm",
    key_visual_elements: Optional[list] = None,
    timestamp: str = "2024-01-01T00:00:00.000Z",
) -> SegmentVisualState:
    return SegmentVisualState(
        final_frame_description=final_frame_description,
        character_positions=character_positions if character_positions is not None else {},
        lighting_state=lighting_state,
        camera_position=camera_position,
        mood_atmosphere=mood_atmosphere,
        key_visual_elements=key_visual_elements if key_visual_elements is not None else [],
        timestamp=timestamp,
    )
