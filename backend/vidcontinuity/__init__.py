"""Video Continuity - visual state tracking across multi-segment video generation.

This package extracts a structured visual state from each generated segment's
prompt, renders it into a continuity block for the next segment's prompt, and
validates that consecutive segments do not jump discontinuously in character
placement, lighting, camera framing, or mood.

Typical flow:
    state = await extract_visual_state(prompt)
    context = build_continuity_context(state)
    result = await validate_continuity(state, next_context, ValidationOptions())
"""

import logging

__version__ = "0.1.0"

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())
