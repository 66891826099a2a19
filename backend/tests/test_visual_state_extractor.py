"""Tests for visual state extraction, merging and validity checks.

Usage:
    python -m pytest backend/tests/test_visual_state_extractor.py -v
"""

import asyncio
import json

import pytest

from helpers import FakeAdapter, make_state, visual_state_json
from vidcontinuity.schemas.visual_state import (
    FALLBACK_FRAME_DESCRIPTION,
    ExtractionOptions,
    SegmentPrompt,
)
from vidcontinuity.services.visual_state_extractor import (
    EXTRACTION_SYSTEM_PROMPT,
    batch_extract_visual_states,
    extract_visual_state,
    is_visual_state_valid,
    merge_visual_states,
)


def _assert_fallback(state):
    assert state.final_frame_description == FALLBACK_FRAME_DESCRIPTION
    assert state.character_positions == {}
    assert state.lighting_state == "Natural lighting"
    assert state.camera_position == "Medium shot"
    assert state.mood_atmosphere == "Neutral"
    assert state.key_visual_elements == []
    assert state.timestamp


# ---------------------------------------------------------------------------
# extract_visual_state
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_extracts_all_fields(fake_adapter):
    adapter = fake_adapter(visual_state_json())
    state = await extract_visual_state("A hero walks into the sunset", adapter=adapter)

    assert state.final_frame_description == "A dramatic sunset scene with silhouetted figures"
    assert state.character_positions == {
        "protagonist": "standing in foreground, facing camera",
        "antagonist": "partially visible in background shadows",
    }
    assert state.lighting_state == "Golden hour, warm orange backlight"
    assert state.camera_position == "Wide shot, low angle"
    assert state.mood_atmosphere == "Tense anticipation"
    assert state.key_visual_elements == ["setting sun", "long shadows", "dust particles"]


@pytest.mark.asyncio
async def test_partial_response_is_filled_with_defaults():
    adapter = FakeAdapter(json.dumps({
        "final_frame_description": "Partial scene",
        "lighting_state": "Natural",
    }))
    state = await extract_visual_state("prompt", adapter=adapter)

    assert state.final_frame_description == "Partial scene"
    assert state.lighting_state == "Natural"
    assert state.character_positions == {}
    assert state.camera_position == ""
    assert state.mood_atmosphere == ""
    assert state.key_visual_elements == []


@pytest.mark.asyncio
async def test_empty_object_yields_empty_state():
    state = await extract_visual_state("prompt", adapter=FakeAdapter("{}"))

    assert state.final_frame_description == ""
    assert state.character_positions == {}
    assert state.lighting_state == ""
    assert state.camera_position == ""
    assert state.mood_atmosphere == ""
    assert state.key_visual_elements == []
    assert state.timestamp


@pytest.mark.asyncio
async def test_null_and_list_values_are_normalised():
    adapter = FakeAdapter(json.dumps({
        "final_frame_description": None,
        "character_positions": None,
        "lighting_state": ["neon", "rain-soaked"],
        "key_visual_elements": ["umbrella", None, 7],
    }))
    state = await extract_visual_state("prompt", adapter=adapter)

    assert state.final_frame_description == ""
    assert state.character_positions == {}
    assert state.lighting_state == "neon, rain-soaked"
    assert state.key_visual_elements == ["umbrella", "7"]


@pytest.mark.asyncio
async def test_lone_string_element_becomes_list():
    adapter = FakeAdapter(visual_state_json(key_visual_elements="rain on glass"))
    state = await extract_visual_state("prompt", adapter=adapter)

    assert state.key_visual_elements == ["rain on glass"]
    assert state.final_frame_description == "A dramatic sunset scene with silhouetted figures"
    assert state.lighting_state == "Golden hour, warm orange backlight"


@pytest.mark.asyncio
async def test_nested_and_boolean_values_become_strings():
    adapter = FakeAdapter(visual_state_json(
        character_positions={"hero": {"position": "left"}, "dog": True},
        mood_atmosphere={"tone": "grim"},
    ))
    state = await extract_visual_state("prompt", adapter=adapter)

    assert state.character_positions == {"hero": '{"position": "left"}', "dog": "True"}
    assert state.mood_atmosphere == '{"tone": "grim"}'
    assert state.camera_position == "Wide shot, low angle"


@pytest.mark.asyncio
async def test_mistyped_field_keeps_the_rest():
    adapter = FakeAdapter(visual_state_json(character_positions=["not", "a", "map"]))
    state = await extract_visual_state("prompt", adapter=adapter)

    assert state.character_positions == {}
    assert state.final_frame_description == "A dramatic sunset scene with silhouetted figures"
    assert state.lighting_state == "Golden hour, warm orange backlight"
    assert state.camera_position == "Wide shot, low angle"
    assert state.mood_atmosphere == "Tense anticipation"
    assert state.key_visual_elements == ["setting sun", "long shadows", "dust particles"]


@pytest.mark.asyncio
async def test_unknown_keys_are_ignored():
    adapter = FakeAdapter(visual_state_json(extra_field="ignored"))
    state = await extract_visual_state("prompt", adapter=adapter)
    assert not hasattr(state, "extra_field")


@pytest.mark.asyncio
async def test_request_parameters(fake_adapter):
    adapter = fake_adapter(visual_state_json())
    await extract_visual_state("A quiet street at dawn", adapter=adapter)

    call = adapter.calls[0]
    assert call["json_output"] is True
    assert call["temperature"] == 0.3
    assert call["max_tokens"] == 800
    assert call["max_retries"] == 1
    assert call["system_prompt"] == EXTRACTION_SYSTEM_PROMPT
    assert "visual continuity analyzer" in call["system_prompt"]
    assert "Final frame description" in call["system_prompt"]
    assert "Character positions" in call["system_prompt"]
    assert call["prompt"].startswith("A quiet street at dawn")


@pytest.mark.asyncio
async def test_character_ids_and_focus_areas_are_appended():
    adapter = FakeAdapter(visual_state_json())
    options = ExtractionOptions(character_ids=["char_001", "char_002"], focus_areas=["lighting", "camera movement"])
    await extract_visual_state("prompt", options, adapter=adapter)

    user_prompt = adapter.calls[0]["prompt"]
    assert "KNOWN CHARACTERS TO TRACK" in user_prompt
    assert "char_001" in user_prompt
    assert "char_002" in user_prompt
    assert "FOCUS AREAS" in user_prompt
    assert "camera movement" in user_prompt
    assert user_prompt.index("KNOWN CHARACTERS TO TRACK") < user_prompt.index("FOCUS AREAS")


@pytest.mark.asyncio
async def test_empty_options_add_no_blocks():
    adapter = FakeAdapter(visual_state_json())
    await extract_visual_state("prompt", ExtractionOptions(character_ids=[]), adapter=adapter)

    user_prompt = adapter.calls[0]["prompt"]
    assert user_prompt == "prompt"
    assert "KNOWN CHARACTERS TO TRACK" not in user_prompt
    assert "FOCUS AREAS" not in user_prompt


@pytest.mark.asyncio
async def test_options_accept_camel_case_keys():
    adapter = FakeAdapter(visual_state_json())
    options = ExtractionOptions.model_validate({"characterIds": ["hero"]})
    await extract_visual_state("prompt", options, adapter=adapter)
    assert "- hero" in adapter.calls[0]["prompt"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        RuntimeError("API Error"),
        TimeoutError("Request timeout"),
        None,
        "",
        "not valid json {{{",
        "[1, 2, 3]",
        '"just a string"',
    ],
    ids=["error", "timeout", "none", "empty", "bad-json", "array", "scalar"],
)
async def test_failures_return_fallback_state(response):
    state = await extract_visual_state("prompt", adapter=FakeAdapter(response))
    _assert_fallback(state)


@pytest.mark.asyncio
async def test_timestamp_is_stamped_at_extraction():
    first = await extract_visual_state("prompt", adapter=FakeAdapter(visual_state_json()))
    second = await extract_visual_state("prompt", adapter=FakeAdapter(RuntimeError("down")))
    assert first.timestamp.endswith("Z")
    assert second.timestamp >= first.timestamp


# ---------------------------------------------------------------------------
# batch_extract_visual_states
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_batch_preserves_order_and_ids():
    adapter = FakeAdapter(lambda prompt: visual_state_json(final_frame_description=f"End of {prompt}"))
    items = [SegmentPrompt(segment_id=f"seg_00{i}", prompt=f"prompt {i}") for i in range(1, 4)]

    results = await batch_extract_visual_states(items, adapter=adapter)

    assert [r.segment_id for r in results] == ["seg_001", "seg_002", "seg_003"]
    assert [r.visual_state.final_frame_description for r in results] == [
        "End of prompt 1",
        "End of prompt 2",
        "End of prompt 3",
    ]


@pytest.mark.asyncio
async def test_batch_empty_input_makes_no_calls():
    adapter = FakeAdapter(visual_state_json())
    assert await batch_extract_visual_states([], adapter=adapter) == []
    assert adapter.calls == []


@pytest.mark.asyncio
async def test_batch_isolates_failures():
    def responder(prompt):
        if prompt.startswith("second"):
            return RuntimeError("API Error")
        return visual_state_json(final_frame_description=f"Extracted {prompt.split()[0]}")

    items = [
        SegmentPrompt(segment_id="a", prompt="first prompt"),
        SegmentPrompt(segment_id="b", prompt="second prompt"),
        SegmentPrompt(segment_id="c", prompt="third prompt"),
    ]
    results = await batch_extract_visual_states(items, adapter=FakeAdapter(responder))

    assert [r.segment_id for r in results] == ["a", "b", "c"]
    assert results[0].visual_state.final_frame_description == "Extracted first"
    _assert_fallback(results[1].visual_state)
    assert results[2].visual_state.final_frame_description == "Extracted third"


@pytest.mark.asyncio
async def test_batch_runs_concurrently_and_passes_options():
    in_flight = 0
    peak = 0

    class SlowAdapter(FakeAdapter):
        async def generate_text(self, prompt, **kwargs):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return await super().generate_text(prompt, **kwargs)

    adapter = SlowAdapter(visual_state_json())
    items = [SegmentPrompt(segment_id=str(i), prompt=f"p{i}") for i in range(3)]
    await batch_extract_visual_states(items, ExtractionOptions(character_ids=["hero"]), adapter=adapter)

    assert peak == 3
    assert all("hero" in call["prompt"] for call in adapter.calls)


def test_batch_items_accept_camel_case():
    item = SegmentPrompt.model_validate({"segmentId": "seg_001", "prompt": "p"})
    assert item.segment_id == "seg_001"


# ---------------------------------------------------------------------------
# is_visual_state_valid
# ---------------------------------------------------------------------------

def test_valid_state():
    assert is_visual_state_valid(make_state())


def test_description_length_boundary():
    assert not is_visual_state_valid(make_state(final_frame_description="x" * 20))
    assert is_visual_state_valid(make_state(final_frame_description="x" * 21))


@pytest.mark.parametrize(
    "overrides",
    [
        {"final_frame_description": "Too short"},
        {"final_frame_description": ""},
        {"lighting_state": ""},
        {"camera_position": ""},
    ],
)
def test_invalid_states(overrides):
    assert not is_visual_state_valid(make_state(**overrides))


@pytest.mark.asyncio
async def test_fallback_state_still_counts_as_valid():
    state = await extract_visual_state("prompt", adapter=FakeAdapter(None))
    assert is_visual_state_valid(state)


# ---------------------------------------------------------------------------
# merge_visual_states
# ---------------------------------------------------------------------------

def test_merge_empty_raises():
    with pytest.raises(ValueError):
        merge_visual_states([])


def test_merge_single_returns_same_object():
    state = make_state()
    assert merge_visual_states([state]) is state


def test_merge_last_state_is_authoritative():
    s1 = make_state(
        final_frame_description="first frame description here",
        character_positions={"hero": "left side", "villain": "background"},
        lighting_state="dawn",
        camera_position="wide",
        mood_atmosphere="calm",
        key_visual_elements=["sword", "castle"],
        timestamp="2024-01-03T00:00:00.000Z",
    )
    s2 = make_state(
        character_positions={"hero": "center", "sidekick": "right"},
        key_visual_elements=["castle", "banner"],
        timestamp="2024-01-01T00:00:00.000Z",
    )
    s3 = make_state(
        final_frame_description="third frame description here",
        character_positions={"villain": "foreground"},
        lighting_state="dusk",
        camera_position="close-up",
        mood_atmosphere="tense",
        key_visual_elements=["sword", "smoke"],
        timestamp="2024-01-02T00:00:00.000Z",
    )

    merged = merge_visual_states([s1, s2, s3])

    assert merged.final_frame_description == "third frame description here"
    assert merged.lighting_state == "dusk"
    assert merged.camera_position == "close-up"
    assert merged.mood_atmosphere == "tense"
    # Positional recency, not timestamp order
    assert merged.timestamp == "2024-01-02T00:00:00.000Z"
    assert merged.character_positions == {
        "hero": "center",
        "villain": "foreground",
        "sidekick": "right",
    }
    assert merged.key_visual_elements == ["sword", "castle", "banner", "smoke"]


def test_merge_does_not_mutate_inputs():
    s1 = make_state(character_positions={"hero": "left"}, key_visual_elements=["a"])
    s2 = make_state(character_positions={"hero": "right"}, key_visual_elements=["b"])
    merge_visual_states([s1, s2])
    assert s1.character_positions == {"hero": "left"}
    assert s1.key_visual_elements == ["a"]
