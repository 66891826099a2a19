"""Continuity report summarising the validations of one generation run."""

import math
from collections import Counter
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from vidcontinuity.schemas.continuity import ChainValidation

# Label thresholds, highest first
SCORE_LABELS = (
    (90, "Excellent"),
    (75, "Good"),
    (60, "Fair"),
)


def score_label(score: int) -> str:
    """Human-readable band for a 0-100 continuity score."""
    for threshold, label in SCORE_LABELS:
        if score >= threshold:
            return label
    return "Poor"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IssueSummary(_CamelModel):
    type: str
    severity: str
    description: str


class SegmentValidationSummary(_CamelModel):
    """Per-segment line of the report."""

    segment_number: int
    is_valid: bool
    score: int
    issue_count: int
    issues: list[IssueSummary] = Field(default_factory=list)
    auto_correction: Optional[str] = None


class ContinuityReport(_CamelModel):
    """Aggregate view of a run's continuity validations."""

    total_segments: int
    validated_segments: int
    average_score: Optional[int] = None
    issues_by_type: dict[str, int] = Field(default_factory=dict)
    issues_by_severity: dict[str, int] = Field(default_factory=dict)
    segments_with_issues: int = 0
    validations: list[SegmentValidationSummary] = Field(default_factory=list)

    @property
    def valid_segments(self) -> int:
        return self.validated_segments - self.segments_with_issues

    @property
    def label(self) -> Optional[str]:
        if self.average_score is None:
            return None
        return score_label(self.average_score)


def build_continuity_report(
    chain_results: Sequence[ChainValidation],
    total_segments: int,
) -> ContinuityReport:
    """Aggregate chain validation results into a report.

    Args:
        chain_results: Output of validate_segment_chain (or equivalent).
        total_segments: Number of segments in the run, validated or not.

    Returns:
        ContinuityReport; average_score is None when nothing was validated.
    """
    by_type: Counter = Counter()
    by_severity: Counter = Counter()
    summaries = []

    for result in chain_results:
        validation = result.validation
        for issue in validation.issues:
            by_type[issue.type.value] += 1
            by_severity[issue.severity.value] += 1
        summaries.append(SegmentValidationSummary(
            segment_number=result.segment_index,
            is_valid=validation.is_valid,
            score=validation.overall_score,
            issue_count=len(validation.issues),
            issues=[
                IssueSummary(
                    type=issue.type.value,
                    severity=issue.severity.value,
                    description=issue.description,
                )
                for issue in validation.issues
            ],
            auto_correction=validation.auto_correction,
        ))

    average_score = None
    if summaries:
        # Half-up, so 82.5 reports as 83
        average_score = math.floor(sum(s.score for s in summaries) / len(summaries) + 0.5)

    return ContinuityReport(
        total_segments=total_segments,
        validated_segments=len(summaries),
        average_score=average_score,
        issues_by_type=dict(by_type),
        issues_by_severity=dict(by_severity),
        segments_with_issues=sum(1 for s in summaries if not s.is_valid),
        validations=summaries,
    )
