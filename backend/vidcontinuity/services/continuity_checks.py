"""Per-dimension continuity checks.

Each dimension (character position, lighting, camera, mood) compares the
previous segment's state with the parsed current context and emits zero or
more ContinuityIssue values. The comparison itself is a fixed table of
opposite terms matched as case-insensitive substrings in either direction:
simple, explainable, and the basis the severity weights are calibrated to.

Checks are plain objects so a ContinuityChecker can be assembled from
different ones (or from the same ones with a different matcher) without
touching the validator.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

from vidcontinuity.schemas.continuity import ContinuityIssue, IssueSeverity, IssueType
from vidcontinuity.schemas.visual_state import SegmentVisualState
from vidcontinuity.services.continuity_context import ParsedContext

OppositePair = tuple[str, str]
Matcher = Callable[[str, str], bool]

# ---------------------------------------------------------------------------
# Opposite-term tables
# ---------------------------------------------------------------------------

POSITION_OPPOSITES: tuple[OppositePair, ...] = (
    ("left", "right"),
    ("foreground", "background"),
    ("inside", "outside"),
    ("ground", "air"),
)

LIGHTING_OPPOSITES: tuple[OppositePair, ...] = (
    ("day", "night"),
    ("sunrise", "sunset"),
    ("bright", "dark"),
)

CAMERA_JARRING_JUMPS: tuple[OppositePair, ...] = (
    ("close-up", "wide"),
    ("low angle", "high angle"),
    ("first person", "third person"),
)

MOOD_OPPOSITES: tuple[OppositePair, ...] = (
    ("tense", "relaxed"),
    ("happy", "sad"),
    ("calm", "chaotic"),
    ("bright", "dark"),
)


class OppositePairMatcher:
    """True when one description holds one term of a pair and the other holds its opposite."""

    def __init__(self, pairs: Sequence[OppositePair]):
        self.pairs = tuple((a.lower(), b.lower()) for a, b in pairs)

    def __call__(self, previous: str, current: str) -> bool:
        prev_lower = previous.lower()
        curr_lower = current.lower()
        for term_a, term_b in self.pairs:
            if (term_a in prev_lower and term_b in curr_lower) or (
                term_b in prev_lower and term_a in curr_lower
            ):
                return True
        return False


# ---------------------------------------------------------------------------
# Dimension checks
# ---------------------------------------------------------------------------

class DimensionCheck(ABC):
    """One comparison dimension."""

    issue_type: IssueType

    @abstractmethod
    def check(
        self, previous: SegmentVisualState, current: ParsedContext
    ) -> list[ContinuityIssue]:
        """Return the issues found on this dimension (possibly none)."""
        ...


class CharacterPositionCheck(DimensionCheck):
    """Flags characters that vanish or jump to an opposite position."""

    issue_type = IssueType.CHARACTER_POSITION

    def __init__(self, matcher: Optional[Matcher] = None):
        self.matcher = matcher or OppositePairMatcher(POSITION_OPPOSITES)

    def check(self, previous, current):
        issues = []
        for character, prev_position in previous.character_positions.items():
            curr_position = current.character_positions.get(character)

            if not curr_position:
                issues.append(ContinuityIssue(
                    type=self.issue_type,
                    severity=IssueSeverity.HIGH,
                    description=(
                        f'Character "{character}" was present but is not mentioned '
                        "in current segment"
                    ),
                    previous_state=prev_position,
                    current_state="Not mentioned",
                    suggestion=(
                        f'Add transition: "{character} exits frame" or include '
                        "character in current segment"
                    ),
                ))
                continue

            if self.matcher(prev_position, curr_position):
                issues.append(ContinuityIssue(
                    type=self.issue_type,
                    severity=IssueSeverity.MEDIUM,
                    description=f'Character "{character}" position changed abruptly',
                    previous_state=prev_position,
                    current_state=curr_position,
                    suggestion=(
                        f'Add transition movement: "{character} moves from '
                        f'{prev_position} to {curr_position}"'
                    ),
                ))
        return issues


class LightingCheck(DimensionCheck):
    """Opposite lighting is a high-severity jump; any other change is low."""

    issue_type = IssueType.LIGHTING

    def __init__(self, matcher: Optional[Matcher] = None):
        self.matcher = matcher or OppositePairMatcher(LIGHTING_OPPOSITES)

    def check(self, previous, current):
        prev_lighting = previous.lighting_state
        curr_lighting = current.lighting
        if not curr_lighting or curr_lighting == prev_lighting:
            return []

        if self.matcher(prev_lighting, curr_lighting):
            return [ContinuityIssue(
                type=self.issue_type,
                severity=IssueSeverity.HIGH,
                description="Lighting changed dramatically between segments",
                previous_state=prev_lighting,
                current_state=curr_lighting,
                suggestion=(
                    f'Add transition: "Time passes as lighting shifts from '
                    f'{prev_lighting} to {curr_lighting}"'
                ),
            )]

        return [ContinuityIssue(
            type=self.issue_type,
            severity=IssueSeverity.LOW,
            description="Lighting conditions changed slightly",
            previous_state=prev_lighting,
            current_state=curr_lighting,
            suggestion="Ensure lighting transition is smooth and motivated by narrative",
        )]


class CameraCheck(DimensionCheck):
    """Only jarring framing jumps are flagged."""

    issue_type = IssueType.CAMERA

    def __init__(self, matcher: Optional[Matcher] = None):
        self.matcher = matcher or OppositePairMatcher(CAMERA_JARRING_JUMPS)

    def check(self, previous, current):
        prev_camera = previous.camera_position
        curr_camera = current.camera
        if not curr_camera or curr_camera == prev_camera:
            return []
        if not self.matcher(prev_camera, curr_camera):
            return []
        return [ContinuityIssue(
            type=self.issue_type,
            severity=IssueSeverity.MEDIUM,
            description="Camera angle changed dramatically",
            previous_state=prev_camera,
            current_state=curr_camera,
            suggestion=f"Consider intermediate shot between {prev_camera} and {curr_camera}",
        )]


class MoodCheck(DimensionCheck):
    """Only opposing moods are flagged."""

    issue_type = IssueType.MOOD

    def __init__(self, matcher: Optional[Matcher] = None):
        self.matcher = matcher or OppositePairMatcher(MOOD_OPPOSITES)

    def check(self, previous, current):
        prev_mood = previous.mood_atmosphere
        curr_mood = current.mood
        if not curr_mood or curr_mood == prev_mood:
            return []
        if not self.matcher(prev_mood, curr_mood):
            return []
        return [ContinuityIssue(
            type=self.issue_type,
            severity=IssueSeverity.MEDIUM,
            description="Mood/atmosphere shifted dramatically",
            previous_state=prev_mood,
            current_state=curr_mood,
            suggestion=(
                f"Narrative should justify mood transition from {prev_mood} to {curr_mood}"
            ),
        )]


class ContinuityChecker:
    """Runs a sequence of dimension checks in order and concatenates their issues."""

    def __init__(self, checks: Optional[Sequence[DimensionCheck]] = None):
        if checks is None:
            checks = (CharacterPositionCheck(), LightingCheck(), CameraCheck(), MoodCheck())
        self.checks = tuple(checks)

    def check(
        self, previous: SegmentVisualState, current: ParsedContext
    ) -> list[ContinuityIssue]:
        issues: list[ContinuityIssue] = []
        for dimension in self.checks:
            issues.extend(dimension.check(previous, current))
        return issues


default_checker = ContinuityChecker()
