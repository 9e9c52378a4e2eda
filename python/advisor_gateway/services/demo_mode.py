"""
Demo Mode Controller - Deterministic LLM Output for Presentations

- Answers every call site with a canned response, no network access
- Canned responses are deliberately a little messy (fences, prose, a
  quoted number) so demos exercise the same repair path as production
"""

import os
import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)

_CANNED_RESPONSES: Dict[str, str] = {
    "matching": (
        "Here are the best matches for this student:\n"
        "```json\n"
        '{"matches": [\n'
        '  {"universityId": "demo-u1", "matchScore": "88", "reasoning": "Strong CS program within budget",'
        ' "strengths": ["Top-ranked computer science"], "concerns": ["Competitive admission"]},\n'
        '  {"universityId": "demo-u2", "matchScore": 74, "reasoning": "Good fit for research interests",'
        ' "strengths": ["Research funding"], "concerns": []}\n'
        "]}\n"
        "```"
    ),
    "suggestions": (
        '{"suggestions": [{"name": "University of Melbourne", "country": "Australia",'
        ' "location": "Melbourne, VIC", "estimatedMatchScore": 81, "specialties": ["Computer Science"],'
        ' "acceptanceRate": "70%", "scholarships": [{"name": "Melbourne Graduate Scholarship",'
        ' "type": "partially-funded", "provider": "University of Melbourne"}]}]}'
    ),
    "tasks": (
        '{"tasks": [{"title": "Book IELTS test date", "type": "GLOBAL", "priority": "MUST",'
        ' "dueDate": "2026-12-01", "notes": "Aim for 7.0 overall", "tags": ["english-tests"]}]}'
    ),
    "chat": "Start by shortlisting five universities and checking their application deadlines.",
    "profile": (
        '{"fullName": "Demo Student", "targetLevel": "graduate", "intendedMajor": "Computer Science",'
        ' "graduationYear": "2025", "academicScore": "3.7", "scoreScale": "gpa4",'
        ' "englishTests": [{"type": "IELTS", "score": "7.5"}]}'
    ),
}


class DemoMode:
    """Global demo mode controller for consistent behavior"""

    _enabled = None

    @classmethod
    def is_enabled(cls) -> bool:
        """Check if demo mode is active"""
        if cls._enabled is None:
            cls._enabled = os.getenv("DEMO_MODE", "false").lower() == "true"
            if cls._enabled:
                logger.info("🎬 Demo mode activated - using canned LLM responses")
        return cls._enabled

    @classmethod
    def reset(cls) -> None:
        """Forget the cached flag so DEMO_MODE is read again"""
        cls._enabled = None

    @classmethod
    def canned_response(cls, call_site: str) -> Optional[str]:
        """Canned raw response for a call site, or None when demo mode is off"""
        if not cls.is_enabled():
            return None
        return _CANNED_RESPONSES.get(call_site, '{"success": true, "data": "demo_response"}')
