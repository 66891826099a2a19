"""Continuity validation between consecutive video segments.

Compares the previous segment's visual state with the continuity context
prepared for the current segment, ranks the discontinuities found, scores
the pair 0-100, and can ask a text-generation model for a short correction
to append to the next prompt.

Scoring:
  penalty per issue  low   medium  high  critical
  normal mode          2       10    20        50
  strict mode          5       15    30        50
  score = max(0, 100 - total penalty); valid at >= 75 (normal) / >= 90 (strict)
"""

import asyncio
import logging
from typing import Iterable, Optional, Sequence, Union

from vidcontinuity.config import settings
from vidcontinuity.schemas.continuity import (
    ChainSegment,
    ChainValidation,
    ContinuityIssue,
    ContinuityValidationResult,
    IssueSeverity,
    IssueType,
    ValidationOptions,
)
from vidcontinuity.schemas.visual_state import SegmentVisualState
from vidcontinuity.services.continuity_checks import ContinuityChecker, default_checker
from vidcontinuity.services.continuity_context import ParsedContext, parse_continuity_context
from vidcontinuity.services.llm import LLMAdapter, get_adapter

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Scoring constants
# ---------------------------------------------------------------------------

SEVERITY_PENALTIES = {
    IssueSeverity.LOW: 2,
    IssueSeverity.MEDIUM: 10,
    IssueSeverity.HIGH: 20,
    IssueSeverity.CRITICAL: 50,
}

STRICT_SEVERITY_PENALTIES = {
    IssueSeverity.LOW: 5,
    IssueSeverity.MEDIUM: 15,
    IssueSeverity.HIGH: 30,
    IssueSeverity.CRITICAL: 50,
}

PASS_THRESHOLD = 75
STRICT_PASS_THRESHOLD = 90

# ---------------------------------------------------------------------------
# Auto-correction prompt constants
# ---------------------------------------------------------------------------

CORRECTION_SYSTEM_PROMPT = """You are a video continuity expert. Given a previous segment's visual state and a list of continuity issues, generate brief correction instructions that can be added to the next segment's prompt to fix the issues.

Keep corrections concise and actionable. Focus on transitions and adjustments that maintain visual flow."""

CORRECTION_UNAVAILABLE = "Auto-correction unavailable - please review issues manually"
CORRECTION_EMPTY = "Unable to generate auto-correction"


def filter_allowed_issues(
    issues: list[ContinuityIssue],
    allowed_discrepancies: Iterable[IssueType],
) -> list[ContinuityIssue]:
    """Drop issues whose type the caller has chosen to tolerate."""
    allowed = set(allowed_discrepancies)
    if not allowed:
        return issues
    return [issue for issue in issues if issue.type not in allowed]


def calculate_continuity_score(issues: Iterable[ContinuityIssue], strict_mode: bool = False) -> int:
    """Score a set of issues from 0 (broken) to 100 (seamless)."""
    penalties = STRICT_SEVERITY_PENALTIES if strict_mode else SEVERITY_PENALTIES
    total_penalty = sum(penalties[issue.severity] for issue in issues)
    return round(max(0, 100 - total_penalty))


def pass_threshold(strict_mode: bool = False) -> int:
    """Minimum score for a pair to count as valid."""
    return STRICT_PASS_THRESHOLD if strict_mode else PASS_THRESHOLD


async def validate_continuity(
    previous_state: SegmentVisualState,
    current_context: Union[str, SegmentVisualState],
    options: Optional[ValidationOptions] = None,
    *,
    adapter: Optional[LLMAdapter] = None,
    checker: Optional[ContinuityChecker] = None,
) -> ContinuityValidationResult:
    """Validate continuity between two consecutive segments.

    Args:
        previous_state: Visual state extracted from the previous segment.
        current_context: Continuity context text prepared for the current
            segment. A SegmentVisualState is compared directly, skipping
            the text round-trip.
        options: Strictness, tolerated issue types, and auto-correction.
        adapter: LLM adapter for auto-correction; defaults to the configured
            correction model. Only used when a correction is generated.
        checker: Dimension checks to run; defaults to the opposite-term
            heuristics.

    Returns:
        ContinuityValidationResult with the surviving issues and score.
    """
    options = options or ValidationOptions()
    checker = checker or default_checker

    if isinstance(current_context, SegmentVisualState):
        current = ParsedContext.from_visual_state(current_context)
    else:
        current = parse_continuity_context(current_context)

    issues = checker.check(previous_state, current)
    issues = filter_allowed_issues(issues, options.allowed_discrepancies)

    score = calculate_continuity_score(issues, options.strict_mode)

    auto_correction = None
    if options.auto_correct and issues:
        auto_correction = await generate_auto_correction(previous_state, issues, adapter=adapter)

    return ContinuityValidationResult(
        is_valid=score >= pass_threshold(options.strict_mode),
        issues=issues,
        overall_score=score,
        auto_correction=auto_correction,
    )


def build_correction_prompt(previous_state: SegmentVisualState, issues: Sequence[ContinuityIssue]) -> str:
    """Assemble the user message for the auto-correction call."""
    issue_lines = "\n".join(
        f"{i}. [{issue.severity.value}] {issue.description}\n   Suggestion: {issue.suggestion}"
        for i, issue in enumerate(issues, start=1)
    )
    return (
        "PREVIOUS SEGMENT VISUAL STATE:\n"
        f"{previous_state.model_dump_json(indent=2)}\n\n"
        "CONTINUITY ISSUES DETECTED:\n"
        f"{issue_lines}\n\n"
        "Generate brief correction instructions (2-4 sentences) to add to the next segment's prompt."
    )


async def generate_auto_correction(
    previous_state: SegmentVisualState,
    issues: Sequence[ContinuityIssue],
    *,
    adapter: Optional[LLMAdapter] = None,
) -> str:
    """Ask the correction model for a short fix to inject into the next prompt.

    Never raises: a failed call yields CORRECTION_UNAVAILABLE and an empty
    answer yields CORRECTION_EMPTY.
    """
    user_prompt = build_correction_prompt(previous_state, issues)

    try:
        if adapter is None:
            adapter = get_adapter(settings.models.correction_model)
        content = await adapter.generate_text(
            user_prompt,
            system_prompt=CORRECTION_SYSTEM_PROMPT,
            temperature=settings.correction.temperature,
            max_tokens=settings.correction.max_tokens,
            max_retries=settings.llm.max_retries,
        )
    except Exception as e:
        logger.error(f"Auto-correction generation error: {type(e).__name__}: {e}")
        return CORRECTION_UNAVAILABLE

    return content or CORRECTION_EMPTY


async def validate_segment_chain(
    segments: Sequence[ChainSegment],
    options: Optional[ValidationOptions] = None,
    *,
    adapter: Optional[LLMAdapter] = None,
    checker: Optional[ContinuityChecker] = None,
) -> list[ChainValidation]:
    """Validate every adjacent pair in a run of segments.

    Pair i compares segment i-1's visual state with segment i's context.
    Pairs are independent, so they are validated concurrently; results are
    returned in segment order, one per pair (N-1 for N segments).
    """
    if len(segments) < 2:
        return []

    validations = await asyncio.gather(*[
        validate_continuity(
            segments[i - 1].visual_state,
            segments[i].context,
            options,
            adapter=adapter,
            checker=checker,
        )
        for i in range(1, len(segments))
    ])

    results = []
    for segment_index, validation in enumerate(validations, start=1):
        if not validation.is_valid:
            logger.warning(
                f"Continuity issues for segment {segment_index} "
                f"(score: {validation.overall_score}):"
            )
            for issue in validation.issues:
                logger.warning(f"  - [{issue.severity.value}] {issue.description}")
        results.append(ChainValidation(segment_index=segment_index, validation=validation))

    return results
