# python/advisor_gateway/services/advisor_ai_service.py
"""
Advisor AI Service - async seam between the advisor call sites and the LLM.

Each method awaits the injected `generate(prompt, params)` once, hands the raw
text to the call site's reconciler and returns its typed result. Upstream
errors never propagate: they are logged, counted and turned into failure
results (or a fixed apology for chat).
"""

import logging
from typing import Awaitable, Callable, Optional, Sequence

from prometheus_client import Counter

from ..models import (
    ChatReply, MatchAndSuggestResult, MatchingResult, ProfileExtractionResult,
    Scholarship, SuggestionResult, TaskPriority, TaskRecommendation,
    TaskRecommendationResult, TaskType, University,
)
from .llm_client import CALL_SITE_PARAMS, GenerationParams
from .reconciliation import (
    reconcile_chat, reconcile_matches, reconcile_profile, reconcile_suggestions, reconcile_tasks,
)

logger = logging.getLogger(__name__)

Generate = Callable[[str, GenerationParams], Awaitable[str]]

UPSTREAM_ERROR = "The AI service is unavailable. Please try again."
CHAT_APOLOGY = "I'm sorry, I encountered an error while processing your message. Please try again."

STARTER_TASKS = (
    TaskRecommendation(
        title="Complete standardized test preparation",
        priority=TaskPriority.MUST,
        type=TaskType.GLOBAL,
        notes="Research requirements for target universities and prepare accordingly",
        tags=["preparation", "tests"],
    ),
    TaskRecommendation(
        title="Draft personal statement",
        priority=TaskPriority.MUST,
        type=TaskType.GLOBAL,
        notes="Write compelling personal statement highlighting your goals and experiences",
        tags=["essays", "applications"],
    ),
)

try:
    advisor_upstream_errors_total = Counter(
        "advisor_upstream_errors_total", "LLM calls that raised", ["call_site"]
    )
    advisor_task_fallback_total = Counter(
        "advisor_task_fallback_total", "Task recommendations answered with starter tasks"
    )
except ValueError:
    # metrics already registered
    pass


class AdvisorAIService:
    """LLM-backed matching, suggestions, tasks, chat and CV extraction"""

    def __init__(self, generate: Generate):
        self.generate = generate

    async def _complete(self, call_site: str, prompt: str) -> Optional[str]:
        """Raw completion text, or None when the upstream call failed"""
        try:
            return await self.generate(prompt, CALL_SITE_PARAMS[call_site])
        except Exception as e:
            advisor_upstream_errors_total.labels(call_site=call_site).inc()
            logger.exception(f"LLM call failed for {call_site}: {e}")
            return None

    async def match_universities(self, prompt: str, candidates: Sequence[University]) -> MatchingResult:
        raw = await self._complete("matching", prompt)
        if raw is None:
            return MatchingResult(success=False, error=UPSTREAM_ERROR)
        return reconcile_matches(raw, candidates)

    async def suggest_universities(
        self,
        prompt: str,
        existing_universities: Sequence[University] = (),
        existing_scholarships: Sequence[Scholarship] = (),
    ) -> SuggestionResult:
        raw = await self._complete("suggestions", prompt)
        if raw is None:
            return SuggestionResult(success=False, error=UPSTREAM_ERROR)
        return reconcile_suggestions(raw, existing_universities, existing_scholarships)

    async def match_and_suggest(
        self,
        match_prompt: str,
        suggest_prompt: str,
        candidates: Sequence[University],
        existing_scholarships: Sequence[Scholarship] = (),
    ) -> MatchAndSuggestResult:
        """
        Matching plus new-university suggestions. Suggestions only run after
        a successful match and their failure is reported alongside, never
        instead of, the matches.
        """
        matching = await self.match_universities(match_prompt, candidates)
        if not matching.success:
            return MatchAndSuggestResult(
                success=False, error=matching.error, diagnostics=matching.diagnostics, stage=matching.stage,
            )

        suggestions = await self.suggest_universities(suggest_prompt, candidates, existing_scholarships)
        if not suggestions.success:
            logger.warning(f"Suggestions failed, returning matches only: {suggestions.error}")
        return MatchAndSuggestResult(
            success=True,
            stage=matching.stage,
            matches=matching.matches,
            suggestions=suggestions,
        )

    async def recommend_tasks(self, prompt: str) -> TaskRecommendationResult:
        raw = await self._complete("tasks", prompt)
        if raw is None:
            result = TaskRecommendationResult(success=False, error=UPSTREAM_ERROR)
        else:
            result = reconcile_tasks(raw)
        if result.success:
            return result

        advisor_task_fallback_total.inc()
        logger.info("Task recommendations unavailable, returning starter tasks")
        return result.model_copy(update={"recommendations": list(STARTER_TASKS), "fallback": True})

    async def chat(self, prompt: str) -> ChatReply:
        raw = await self._complete("chat", prompt)
        if raw is None:
            return ChatReply(response=CHAT_APOLOGY)
        return reconcile_chat(raw)

    async def extract_profile(self, prompt: str) -> ProfileExtractionResult:
        raw = await self._complete("profile", prompt)
        if raw is None:
            return ProfileExtractionResult(success=False, error=UPSTREAM_ERROR)
        return reconcile_profile(raw)
