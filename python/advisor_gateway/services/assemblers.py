# Result assemblers: attach caller context to coerced records and fix ordering.
# Pure functions over already-coerced records; none of them touch the LLM text.

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..models import (
    ChatReply, Scholarship, ScholarshipEntry, ScoredMatch, SuggestedUniversity,
    SuggestionEntry, TaskRecommendation, University, UniversityMatch,
)

logger = logging.getLogger(__name__)

MAX_LINKED_SCHOLARSHIPS = 5


def assemble_matches(scored: Iterable[ScoredMatch], candidates: Sequence[University]) -> List[UniversityMatch]:
    """
    Resolve each match against the candidate list and order by score.

    Matches naming an unknown university id are dropped. The sort is stable,
    so equal scores keep the order the model emitted them in.
    """
    by_id: Dict[str, University] = {}
    for university in candidates:
        by_id.setdefault(university.id, university)

    matches = []
    for match in scored:
        university = by_id.get(match.university_id)
        if university is None:
            logger.debug(f"Dropping match for unknown university id '{match.university_id}'")
            continue
        matches.append(UniversityMatch(
            university=university,
            match_score=match.match_score,
            reasoning=match.reasoning,
            strengths=list(match.strengths),
            concerns=list(match.concerns),
        ))

    matches.sort(key=lambda m: m.match_score, reverse=True)
    return matches


def _programs_overlap(programs: Sequence[str], specialties: Sequence[str]) -> bool:
    for program in programs:
        p = program.lower()
        for specialty in specialties:
            s = specialty.lower()
            if p in s or s in p:
                return True
    return False


def match_existing_scholarships(
    country: str,
    specialties: Sequence[str],
    scholarships: Sequence[Scholarship],
    limit: int = MAX_LINKED_SCHOLARSHIPS,
    exclude: Optional[Set[str]] = None,
) -> List[str]:
    """Ids of stored scholarships for `country` open to the university's specialties"""
    exclude = exclude or set()
    same_country = [s for s in scholarships if s.country == country and s.id not in exclude][:limit]
    return [
        s.id for s in same_country
        if not s.eligible_programs or _programs_overlap(s.eligible_programs, specialties)
    ]


def assemble_suggestions(
    suggested: Iterable[SuggestedUniversity],
    existing_universities: Sequence[University] = (),
    existing_scholarships: Sequence[Scholarship] = (),
) -> List[SuggestionEntry]:
    """
    Deduplicate suggestions by exact (name, country) against stored
    universities and earlier suggestions in the batch; the first occurrence
    wins. Scholarships of new universities dedupe by (name, provider) the
    same way. Duplicates carry the first record and no scholarships.
    """
    stored_universities: Dict[Tuple[str, Optional[str]], str] = {}
    for university in existing_universities:
        stored_universities.setdefault((university.name, university.country), university.id)
    stored_scholarships: Dict[Tuple[str, str], str] = {}
    for scholarship in existing_scholarships:
        stored_scholarships.setdefault((scholarship.name, scholarship.provider), scholarship.id)

    seen_universities: Dict[Tuple[str, str], SuggestedUniversity] = {}
    seen_scholarships: Set[Tuple[str, str]] = set()
    entries: List[SuggestionEntry] = []

    for university in suggested:
        key = (university.name, university.country)
        if key in stored_universities:
            entries.append(SuggestionEntry(
                university=university, is_new=False, existing_id=stored_universities[key],
            ))
            continue
        if key in seen_universities:
            logger.debug(f"Duplicate suggestion in batch: {university.name} ({university.country})")
            entries.append(SuggestionEntry(university=seen_universities[key], is_new=False))
            continue
        seen_universities[key] = university

        scholarship_entries = []
        for scholarship in university.scholarships:
            s_key = (scholarship.name, scholarship.provider)
            if s_key in stored_scholarships:
                scholarship_entries.append(ScholarshipEntry(
                    scholarship=scholarship, is_new=False, existing_id=stored_scholarships[s_key],
                ))
            elif s_key in seen_scholarships:
                continue
            else:
                seen_scholarships.add(s_key)
                scholarship_entries.append(ScholarshipEntry(scholarship=scholarship, is_new=True))

        linked = match_existing_scholarships(
            university.country,
            university.specialties,
            existing_scholarships,
            exclude={e.existing_id for e in scholarship_entries if e.existing_id},
        )
        entries.append(SuggestionEntry(
            university=university,
            is_new=True,
            scholarships=scholarship_entries,
            linked_scholarship_ids=linked,
        ))

    return entries


def assemble_recommendations(tasks: Iterable[TaskRecommendation]) -> List[TaskRecommendation]:
    return list(tasks)


def assemble_chat_reply(text: Optional[str]) -> ChatReply:
    return ChatReply(response=(text or "").strip())
