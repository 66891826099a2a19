"""Pydantic schemas for continuity validation between adjacent segments.

JSON serialisation uses camelCase aliases (isValid, overallScore, ...) so the
results can be handed to the calling application unchanged.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from vidcontinuity.schemas.visual_state import SegmentVisualState


class IssueType(str, Enum):
    """Dimension a continuity issue was found on."""

    CHARACTER_POSITION = "character_position"
    LIGHTING = "lighting"
    CAMERA = "camera"
    MOOD = "mood"
    VISUAL_ELEMENT = "visual_element"
    CRITICAL = "critical"


class IssueSeverity(str, Enum):
    """Severity, in increasing order of score penalty."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ContinuityIssue(_CamelModel):
    """One detected discontinuity between two adjacent segments."""

    type: IssueType
    severity: IssueSeverity
    description: str
    previous_state: str
    current_state: str
    suggestion: str


class ContinuityValidationResult(_CamelModel):
    """Outcome of one pairwise validation.

    auto_correction is only set when a correction was requested and at least
    one issue survived filtering.
    """

    is_valid: bool
    issues: list[ContinuityIssue] = Field(default_factory=list)
    overall_score: int = Field(ge=0, le=100)
    auto_correction: Optional[str] = None


class ValidationOptions(_CamelModel):
    """Per-call validation switches."""

    strict_mode: bool = False
    allowed_discrepancies: set[IssueType] = Field(default_factory=set)
    auto_correct: bool = False


class ChainSegment(_CamelModel):
    """A generated segment's extracted state and the context built for it."""

    visual_state: SegmentVisualState
    context: str


class ChainValidation(_CamelModel):
    """Validation of the pair (segment_index - 1, segment_index)."""

    segment_index: int = Field(ge=1)
    validation: ContinuityValidationResult
