# python/advisor_gateway/services/reconciliation.py
"""
One reconciler per LLM call site: escalation stages -> coercer -> assembler.

Reconcilers are synchronous and stateless. They never raise for bad model
output; an unrecoverable response comes back as a result with success=False
and the per-stage diagnostics.
"""

import logging
from typing import Optional, Sequence, Tuple

from ..models import (
    ChatReply, MatchingResult, ProfileExtractionResult, Scholarship,
    StageDiagnostic, SuggestionResult, TaskRecommendationResult, University,
)
from ..utils.schema_enforcer import (
    DOCUMENT_STAGES, ExhaustedFailure, Outcome, Stage, field_extraction, run_escalation,
)
from .assemblers import (
    assemble_chat_reply, assemble_matches, assemble_recommendations, assemble_suggestions,
)
from .coercers import coerce_matches, coerce_profile, coerce_suggestions, coerce_tasks

logger = logging.getLogger(__name__)

MATCH_STAGES: Tuple[Stage, ...] = DOCUMENT_STAGES + (field_extraction("matches"),)

NO_DOCUMENT_ERROR = "The AI response did not contain any structured data"
UNPARSEABLE_ERROR = "The AI response could not be parsed"


def diagnostics_of(failure: ExhaustedFailure):
    return [StageDiagnostic(stage=d.stage, reason=d.reason) for d in failure.diagnostics]


def failure_fields(failure: ExhaustedFailure) -> dict:
    """success/error/diagnostics for a result model built from an exhausted pipeline"""
    return {
        "success": False,
        "error": NO_DOCUMENT_ERROR if failure.no_document else UNPARSEABLE_ERROR,
        "diagnostics": diagnostics_of(failure),
    }


def _escalate(raw: Optional[str], call_site: str, stages: Sequence[Stage] = DOCUMENT_STAGES) -> Outcome:
    return run_escalation(raw or "", stages, call_site=call_site)


def reconcile_matches(raw: Optional[str], candidates: Sequence[University]) -> MatchingResult:
    """
    Matches resolved against `candidates`, best score first.

    This is the only call site with the field-extraction salvage stage: a
    document that is broken elsewhere still yields its `matches` array.
    """
    outcome = _escalate(raw, "matching", MATCH_STAGES)
    if isinstance(outcome, ExhaustedFailure):
        return MatchingResult(**failure_fields(outcome))

    matches = assemble_matches(coerce_matches(outcome.tree), candidates)
    logger.info(f"Reconciled {len(matches)} university matches via '{outcome.stage}' stage")
    return MatchingResult(success=True, stage=outcome.stage, matches=matches)


def reconcile_suggestions(
    raw: Optional[str],
    existing_universities: Sequence[University] = (),
    existing_scholarships: Sequence[Scholarship] = (),
) -> SuggestionResult:
    outcome = _escalate(raw, "suggestions")
    if isinstance(outcome, ExhaustedFailure):
        return SuggestionResult(**failure_fields(outcome))

    entries = assemble_suggestions(coerce_suggestions(outcome.tree), existing_universities, existing_scholarships)
    new_count = sum(1 for e in entries if e.is_new)
    logger.info(f"Reconciled {len(entries)} suggested universities ({new_count} new)")
    return SuggestionResult(success=True, stage=outcome.stage, suggestions=entries)


def reconcile_tasks(raw: Optional[str]) -> TaskRecommendationResult:
    outcome = _escalate(raw, "tasks")
    if isinstance(outcome, ExhaustedFailure):
        return TaskRecommendationResult(**failure_fields(outcome))

    tasks = assemble_recommendations(coerce_tasks(outcome.tree))
    return TaskRecommendationResult(success=True, stage=outcome.stage, recommendations=tasks)


def reconcile_profile(raw: Optional[str]) -> ProfileExtractionResult:
    outcome = _escalate(raw, "profile")
    if isinstance(outcome, ExhaustedFailure):
        return ProfileExtractionResult(**failure_fields(outcome))

    profile = coerce_profile(outcome.tree)
    if profile is None:
        return ProfileExtractionResult(
            success=False, stage=outcome.stage, error="The AI response did not contain a profile object",
        )
    return ProfileExtractionResult(success=True, stage=outcome.stage, profile=profile)


def reconcile_chat(raw: Optional[str]) -> ChatReply:
    # Chat replies are free text: no document stages
    return assemble_chat_reply(raw)
