"""
Pydantic models for the advisor gateway reconciliation layer.
Domain records are immutable once assembled; result models carry the
stage-by-stage diagnostic trail for logging.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict
from enum import Enum


class ScholarshipType(str, Enum):
    """Funding coverage of a scholarship"""
    FULLY_FUNDED = "fully-funded"
    PARTIALLY_FUNDED = "partially-funded"
    TUITION_ONLY = "tuition-only"


class TaskPriority(str, Enum):
    """Tracker priority buckets"""
    MUST = "MUST"   # critical
    NEED = "NEED"   # important
    NICE = "NICE"   # optional


class TaskType(str, Enum):
    """Scope of a recommended task"""
    GLOBAL = "GLOBAL"
    UNIV_SPECIFIC = "UNIV_SPECIFIC"
    GROUP = "GROUP"


class TargetLevel(str, Enum):
    UNDERGRADUATE = "undergraduate"
    GRADUATE = "graduate"
    POSTGRADUATE = "postgraduate"


class ScoreScale(str, Enum):
    GPA4 = "gpa4"
    GPA5 = "gpa5"
    PERCENTAGE = "percentage"
    OTHER = "other"


# === Caller context (stored records) ===

class University(BaseModel):
    """University record as stored by the application"""
    id: str
    name: str
    location: Optional[str] = None
    country: Optional[str] = None
    ranking: Optional[int] = None
    type: Optional[str] = None
    tuition_range: Optional[str] = None
    acceptance_rate: Optional[str] = None
    specialties: List[str] = Field(default_factory=list)
    description: Optional[str] = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": "u1",
                "name": "University of Toronto",
                "location": "Toronto, ON",
                "country": "Canada",
                "ranking": 21,
                "type": "public",
                "specialties": ["Computer Science", "Engineering"]
            }
        }


class Scholarship(BaseModel):
    """Scholarship record as stored by the application"""
    id: str
    name: str
    provider: str = "Unknown"
    country: Optional[str] = None
    eligible_programs: List[str] = Field(default_factory=list)

    class Config:
        frozen = True


# === Domain records produced from LLM output ===

class ScoredMatch(BaseModel):
    """Coerced match before the university reference is resolved"""
    university_id: str
    match_score: int = Field(default=0, ge=0, le=100)
    reasoning: str = ""
    strengths: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)

    class Config:
        frozen = True


class UniversityMatch(BaseModel):
    """Match between a student profile and a stored university"""
    university: University
    match_score: int = Field(..., ge=0, le=100)
    reasoning: str = ""
    strengths: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)

    class Config:
        frozen = True


class SuggestedScholarship(BaseModel):
    name: str
    type: ScholarshipType = ScholarshipType.TUITION_ONLY
    amount: str = "Amount varies"
    description: str = "AI suggested scholarship opportunity."
    requirements: List[str] = Field(default_factory=list)
    deadline: str = "Contact for deadline"
    provider: str = "Unknown"
    application_url: Optional[str] = None
    eligible_programs: List[str] = Field(default_factory=list)
    max_recipients: Optional[int] = None

    class Config:
        frozen = True


class SuggestedUniversity(BaseModel):
    """University proposed by the LLM that may not exist in the store yet"""
    name: str
    location: str = ""
    country: str
    reasoning: str = ""
    estimated_match_score: int = Field(default=0, ge=0, le=100)
    specialties: List[str] = Field(default_factory=list)
    type: str = "public"
    ranking: int = 999
    student_count: int = 10000
    established_year: int = 1900
    tuition_range: str = "Contact for details"
    acceptance_rate: str = "50.00"
    description: str = ""
    website: str = "#"
    campus_size: str = "Medium"
    room_board_cost: Optional[str] = None
    books_supplies_cost: Optional[str] = None
    personal_expenses_cost: Optional[str] = None
    facilities_info: Dict[str, str] = Field(default_factory=dict)
    housing_options: List[str] = Field(default_factory=list)
    student_organizations: List[str] = Field(default_factory=list)
    dining_options: List[str] = Field(default_factory=list)
    transportation_info: List[str] = Field(default_factory=list)
    scholarships: List[SuggestedScholarship] = Field(default_factory=list)

    class Config:
        frozen = True


class TaskRecommendation(BaseModel):
    title: str
    priority: TaskPriority = TaskPriority.NEED
    type: TaskType = TaskType.GLOBAL
    due_date: Optional[str] = None
    notes: str = ""
    tags: List[str] = Field(default_factory=list)

    class Config:
        frozen = True


class ChatReply(BaseModel):
    response: str
    # Reserved: chat replies do not carry structured tasks yet
    suggested_tasks: List[TaskRecommendation] = Field(default_factory=list)

    class Config:
        frozen = True


class ExamScore(BaseModel):
    type: str
    score: str
    date: Optional[str] = None

    class Config:
        frozen = True


class Award(BaseModel):
    title: str
    year: Optional[str] = None
    level: Optional[str] = None

    class Config:
        frozen = True


class Extracurricular(BaseModel):
    activity: str
    period: Optional[str] = None
    description: Optional[str] = None

    class Config:
        frozen = True


class ProfileExtraction(BaseModel):
    """Profile fields pulled out of a CV; absent fields stay None"""
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[str] = None
    nationality: Optional[str] = None
    target_level: Optional[TargetLevel] = None
    intended_major: Optional[str] = None
    institution: Optional[str] = None
    graduation_year: Optional[int] = None
    academic_score: Optional[str] = None
    score_scale: Optional[ScoreScale] = None
    english_tests: List[ExamScore] = Field(default_factory=list)
    standardized_tests: List[ExamScore] = Field(default_factory=list)
    awards: List[Award] = Field(default_factory=list)
    extracurriculars: List[Extracurricular] = Field(default_factory=list)

    class Config:
        frozen = True


# === Results ===

class StageDiagnostic(BaseModel):
    """One failed escalation stage, for logs only"""
    stage: str
    reason: str


class ReconcileResult(BaseModel):
    success: bool
    error: Optional[str] = None
    diagnostics: List[StageDiagnostic] = Field(default_factory=list)
    stage: Optional[str] = Field(default=None, description="Stage that produced the parsed document")


class MatchingResult(ReconcileResult):
    matches: List[UniversityMatch] = Field(default_factory=list)


class ScholarshipEntry(BaseModel):
    """Suggested scholarship after (name, provider) deduplication"""
    scholarship: SuggestedScholarship
    is_new: bool
    existing_id: Optional[str] = None


class SuggestionEntry(BaseModel):
    """Suggested university after (name, country) deduplication"""
    university: SuggestedUniversity
    is_new: bool
    existing_id: Optional[str] = None
    scholarships: List[ScholarshipEntry] = Field(default_factory=list)
    # stored scholarships matched by country and program overlap
    linked_scholarship_ids: List[str] = Field(default_factory=list)


class SuggestionResult(ReconcileResult):
    suggestions: List[SuggestionEntry] = Field(default_factory=list)


class MatchAndSuggestResult(MatchingResult):
    suggestions: Optional[SuggestionResult] = None


class TaskRecommendationResult(ReconcileResult):
    recommendations: List[TaskRecommendation] = Field(default_factory=list)
    fallback: bool = False


class ProfileExtractionResult(ReconcileResult):
    profile: Optional[ProfileExtraction] = None
