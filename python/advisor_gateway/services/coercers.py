# Field-spec tables for every record the advisor LLM call sites produce.
# Defaults mirror what the application stores when the model leaves a field out.

from typing import Any, Dict, List, Optional, Set

from ..models import (
    Award, ExamScore, Extracurricular, ProfileExtraction, ScholarshipType,
    ScoreScale, ScoredMatch, SuggestedScholarship, SuggestedUniversity,
    TargetLevel, TaskPriority, TaskRecommendation, TaskType,
)
from ..utils.coercion import FieldKind as K, FieldSpec as F, RecordSpec, coerce_list, coerce_record
from ..utils.json_repair import GenericTree


MATCH_KEYS = ("matches",)
SUGGESTION_KEYS = ("suggestions", "suggestedUniversities")
TASK_KEYS = ("tasks", "recommendations")

MATCH_SPEC = RecordSpec("university_match", ScoredMatch, (
    F("university_id", "universityId", required=True),
    F("match_score", "matchScore", K.INTEGER, default=0, minimum=0, maximum=100),
    F("reasoning", "reasoning", default=""),
    F("strengths", "strengths", K.TEXT_LIST),
    F("concerns", "concerns", K.TEXT_LIST),
))

SCHOLARSHIP_SPEC = RecordSpec("suggested_scholarship", SuggestedScholarship, (
    F("name", "name", required=True),
    F("type", "type", K.CHOICE, default=ScholarshipType.TUITION_ONLY.value,
      choices=tuple(t.value for t in ScholarshipType)),
    F("amount", "amount", default="Amount varies"),
    F("description", "description", default="AI suggested scholarship opportunity."),
    F("requirements", "requirements", K.TEXT_LIST),
    F("deadline", "deadline", default="Contact for deadline"),
    F("provider", "provider", default="Unknown"),
    F("application_url", "applicationUrl"),
    F("eligible_programs", "eligiblePrograms", K.TEXT_LIST),
    F("max_recipients", "maxRecipients", K.INTEGER, minimum=0),
))


def _describe_university(values: Dict[str, Any], present: Set[str]) -> Dict[str, Any]:
    if "description" not in present:
        if "reasoning" in present:
            values["description"] = values["reasoning"]
        else:
            fields = ", ".join(values.get("specialties") or []) or "various fields"
            values["description"] = f"University recommended by AI matching system. Specializes in {fields}."
    return values


SUGGESTED_UNIVERSITY_SPEC = RecordSpec("suggested_university", SuggestedUniversity, (
    F("name", "name", default="Unnamed University"),
    F("location", "location", default=""),
    F("country", "country", default="Unknown"),
    F("reasoning", "reasoning", default=""),
    F("estimated_match_score", "estimatedMatchScore", K.INTEGER, default=0, minimum=0, maximum=100),
    F("specialties", "specialties", K.TEXT_LIST),
    F("type", "type", K.CHOICE, default="public", choices=("public", "private")),
    F("ranking", "ranking", K.INTEGER, default=999, minimum=1),
    F("student_count", "studentCount", K.INTEGER, default=10000, minimum=0),
    F("established_year", "establishedYear", K.INTEGER, default=1900),
    F("tuition_range", "tuitionRange", default="Contact for details"),
    F("acceptance_rate", "acceptanceRate", K.DECIMAL_TEXT, default="50.00"),
    F("description", "description"),
    F("website", "website", default="#"),
    F("campus_size", "campusSize", default="Medium"),
    F("room_board_cost", "roomBoardCost"),
    F("books_supplies_cost", "booksSuppliesCost"),
    F("personal_expenses_cost", "personalExpensesCost"),
    F("facilities_info", "facilitiesInfo", K.TEXT_MAP),
    F("housing_options", "housingOptions", K.TEXT_LIST),
    F("student_organizations", "studentOrganizations", K.TEXT_LIST),
    F("dining_options", "diningOptions", K.TEXT_LIST),
    F("transportation_info", "transportationInfo", K.TEXT_LIST),
    F("scholarships", "scholarships", K.RECORDS, nested=SCHOLARSHIP_SPEC),
), require_any=("name", "country"), finalize=_describe_university)

TASK_SPEC = RecordSpec("task_recommendation", TaskRecommendation, (
    F("title", "title", required=True),
    F("priority", "priority", K.CHOICE, default=TaskPriority.NEED.value,
      choices=tuple(p.value for p in TaskPriority),
      aliases=(("high", "MUST"), ("critical", "MUST"), ("medium", "NEED"), ("low", "NICE"), ("optional", "NICE"))),
    F("type", "type", K.CHOICE, default=TaskType.GLOBAL.value, choices=tuple(t.value for t in TaskType)),
    F("due_date", "dueDate"),
    F("notes", "notes", default=""),
    F("tags", "tags", K.TEXT_LIST),
))

EXAM_SCORE_SPEC = RecordSpec("exam_score", ExamScore, (
    F("type", "type", required=True),
    F("score", "score", required=True),
    F("date", "date"),
))

AWARD_SPEC = RecordSpec("award", Award, (
    F("title", "title", required=True),
    F("year", "year"),
    F("level", "level"),
))

EXTRACURRICULAR_SPEC = RecordSpec("extracurricular", Extracurricular, (
    F("activity", "activity", required=True),
    F("period", "period"),
    F("description", "description"),
))

PROFILE_SPEC = RecordSpec("profile_extraction", ProfileExtraction, (
    F("full_name", "fullName"),
    F("email", "email"),
    F("phone", "phone"),
    F("date_of_birth", "dateOfBirth"),
    F("nationality", "nationality"),
    F("target_level", "targetLevel", K.CHOICE, choices=tuple(t.value for t in TargetLevel)),
    F("intended_major", "intendedMajor"),
    F("institution", "institution"),
    F("graduation_year", "graduationYear", K.INTEGER),
    F("academic_score", "academicScore"),
    F("score_scale", "scoreScale", K.CHOICE, choices=tuple(s.value for s in ScoreScale)),
    F("english_tests", "englishTests", K.RECORDS, nested=EXAM_SCORE_SPEC),
    F("standardized_tests", "standardizedTests", K.RECORDS, nested=EXAM_SCORE_SPEC),
    F("awards", "awards", K.RECORDS, nested=AWARD_SPEC),
    F("extracurriculars", "extracurriculars", K.RECORDS, nested=EXTRACURRICULAR_SPEC),
))


def coerce_match(tree: GenericTree) -> Optional[ScoredMatch]:
    return coerce_record(tree, MATCH_SPEC)


def coerce_suggested_university(tree: GenericTree) -> Optional[SuggestedUniversity]:
    return coerce_record(tree, SUGGESTED_UNIVERSITY_SPEC)


def coerce_scholarship(tree: GenericTree) -> Optional[SuggestedScholarship]:
    return coerce_record(tree, SCHOLARSHIP_SPEC)


def coerce_task(tree: GenericTree) -> Optional[TaskRecommendation]:
    return coerce_record(tree, TASK_SPEC)


def coerce_profile(tree: GenericTree) -> Optional[ProfileExtraction]:
    return coerce_record(tree, PROFILE_SPEC)


def coerce_matches(tree: GenericTree) -> List[ScoredMatch]:
    return coerce_list(tree, MATCH_KEYS, MATCH_SPEC)


def coerce_suggestions(tree: GenericTree) -> List[SuggestedUniversity]:
    return coerce_list(tree, SUGGESTION_KEYS, SUGGESTED_UNIVERSITY_SPEC)


def coerce_tasks(tree: GenericTree) -> List[TaskRecommendation]:
    return coerce_list(tree, TASK_KEYS, TASK_SPEC)
