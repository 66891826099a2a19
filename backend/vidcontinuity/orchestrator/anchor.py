"""Anchor-point refresh of the running continuity state.

While segments are generated one after another, the state carried forward is
normally the last extracted one. Every `interval` segments (an anchor point)
the states recorded since the previous anchor are merged instead, so
characters and visual elements seen a few segments back are not forgotten.

Usage:
    tracker = AnchorPointTracker(interval=3)
    for number, segment in enumerate(segments, start=1):
        state = tracker.current_state_for(number)   # None for the first segment
        ...generate segment using build_continuity_context(state)...
        tracker.record(await extract_visual_state(prompt))
"""

import logging
import math
from typing import Optional

from vidcontinuity.config import settings
from vidcontinuity.schemas.visual_state import SegmentVisualState
from vidcontinuity.services.visual_state_extractor import merge_visual_states

logger = logging.getLogger(__name__)


class AnchorPointTracker:
    """Carries the visual state between segments and refreshes it at anchor points."""

    def __init__(self, interval: Optional[int] = None):
        """Create a tracker.

        Args:
            interval: Anchor point every `interval` segments (1-based numbering).
                Defaults to settings.validation.anchor_point_interval.

        Raises:
            ValueError: If interval is less than 1.
        """
        if interval is None:
            interval = settings.validation.anchor_point_interval
        if interval < 1:
            raise ValueError(f"Anchor point interval must be >= 1, got {interval}")
        self.interval = interval
        self.current_state: Optional[SegmentVisualState] = None
        self._window: list[SegmentVisualState] = []

    @property
    def pending_states(self) -> int:
        """Number of states recorded since the last anchor point."""
        return len(self._window)

    def is_anchor_point(self, segment_number: int) -> bool:
        """Return True if the 1-based segment number is an anchor point."""
        return segment_number % self.interval == 0

    def record(self, state: SegmentVisualState) -> None:
        """Record the state extracted from the segment just generated."""
        self.current_state = state
        self._window.append(state)

    def current_state_for(self, segment_number: int) -> Optional[SegmentVisualState]:
        """Return the state to carry into the given segment.

        At an anchor point with recorded states, the window is merged into a
        fresh current state and cleared.
        """
        if self.is_anchor_point(segment_number) and self._window:
            logger.info(
                f"Anchor point at segment {segment_number} - refreshing context "
                f"from {len(self._window)} recent states"
            )
            self.current_state = merge_visual_states(self._window)
            self._window = []
        return self.current_state

    def anchor_points_used(self, total_segments: int) -> int:
        """Number of anchor windows spanned by a run of total_segments."""
        return math.ceil(total_segments / self.interval)
