# python/advisor_gateway/utils/schema_enforcer.py
"""
Escalation controller for LLM JSON output.

Runs an ordered list of parse stages over one raw response and stops at the
first stage that yields a document:

    direct -> normalized -> aggressively-normalized -> field-extracted

Each stage returns a ParseAttempt; nothing here raises for bad input. When
every stage fails the caller gets an ExhaustedFailure carrying the per-stage
diagnostics for logs.
"""

from __future__ import annotations
import logging
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple, Union

from prometheus_client import Counter, Histogram

from .json_repair import (
    GenericTree,
    extract_array_field,
    extract_document,
    normalize_aggressive,
    normalize_mild,
    parse_document,
    repair_balance,
)

logger = logging.getLogger(__name__)

LOG_SAMPLE_CHARS = int(os.getenv("RECONCILE_LOG_SAMPLE_CHARS", "500"))

DIRECT = "direct"
NORMALIZED = "normalized"
AGGRESSIVE = "aggressively-normalized"
FIELD_EXTRACTED = "field-extracted"

try:
    reconcile_stage_total = Counter(
        "reconcile_stage_total", "Escalation stage outcomes", ["call_site", "stage", "result"]
    )
    reconcile_exhausted_total = Counter(
        "reconcile_exhausted_total", "Responses no stage could parse", ["call_site"]
    )
    reconcile_ms = Histogram(
        "reconcile_ms", "Extraction, repair and parse time (ms)", ["call_site"],
        buckets=(1, 2, 5, 10, 25, 50, 100, 250),
    )
except ValueError:
    # metrics already registered
    pass


@dataclass(frozen=True)
class NoDocumentFound:
    """The stage found nothing that looks like a document"""
    stage: str
    reason: str = "no '{' found in response"


@dataclass(frozen=True)
class ParseFailed:
    """The stage produced text the strict parser rejected"""
    stage: str
    reason: str


StageFailure = Union[NoDocumentFound, ParseFailed]


@dataclass(frozen=True)
class ParseAttempt:
    stage: str
    text: Optional[str]
    tree: GenericTree = None
    failure: Optional[StageFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class ParseSuccess:
    stage: str
    tree: GenericTree
    attempts: Tuple[ParseAttempt, ...]
    ms: int = 0


@dataclass(frozen=True)
class ExhaustedFailure:
    diagnostics: Tuple[StageFailure, ...]
    ms: int = 0

    @property
    def no_document(self) -> bool:
        return all(isinstance(d, NoDocumentFound) for d in self.diagnostics)


Outcome = Union[ParseSuccess, ExhaustedFailure]


@dataclass(frozen=True)
class Stage:
    """
    One escalation step. `whole_document` stages need the extractor to find
    a '{'; once one of them reports NoDocumentFound the rest are skipped.
    """
    name: str
    run: Callable[[str], ParseAttempt]
    whole_document: bool = True


def _finish(stage: str, text: str) -> ParseAttempt:
    text = repair_balance(text)
    tree, reason = parse_document(text)
    if reason is not None:
        return ParseAttempt(stage, text, failure=ParseFailed(stage, reason))
    return ParseAttempt(stage, text, tree=tree)


def _whole_document(stage: str, raw: str, normalize: Optional[Callable[[str], str]] = None) -> ParseAttempt:
    span = extract_document(raw)
    if span is None:
        return ParseAttempt(stage, None, failure=NoDocumentFound(stage))
    return _finish(stage, normalize(span) if normalize else span)


def direct_parse(raw: str) -> ParseAttempt:
    return _whole_document(DIRECT, raw)


def normalized_parse(raw: str) -> ParseAttempt:
    return _whole_document(NORMALIZED, raw, normalize_mild)


def aggressive_parse(raw: str) -> ParseAttempt:
    return _whole_document(AGGRESSIVE, raw, normalize_aggressive)


def field_extraction(field: str) -> Stage:
    """Salvage stage: parse only the `field` array, ignoring the rest of the document"""
    def run(raw: str) -> ParseAttempt:
        doc = extract_array_field(raw, field)
        if doc is None:
            return ParseAttempt(
                FIELD_EXTRACTED, None,
                failure=NoDocumentFound(FIELD_EXTRACTED, f"no '{field}' array found"),
            )
        return _finish(FIELD_EXTRACTED, normalize_mild(doc))

    return Stage(FIELD_EXTRACTED, run, whole_document=False)


DOCUMENT_STAGES: Tuple[Stage, ...] = (
    Stage(DIRECT, direct_parse),
    Stage(NORMALIZED, normalized_parse),
    Stage(AGGRESSIVE, aggressive_parse),
)


def run_escalation(raw: str, stages: Sequence[Stage] = DOCUMENT_STAGES, call_site: str = "generic") -> Outcome:
    """
    Run `stages` in order over `raw`; the first parsed document wins.
    Returns ParseSuccess or ExhaustedFailure, never raises for bad input.
    """
    t0 = time.perf_counter()
    raw = raw or ""
    attempts = []
    skip_whole_document = False

    for stage in stages:
        if skip_whole_document and stage.whole_document:
            continue
        attempt = stage.run(raw)
        attempts.append(attempt)

        if attempt.ok:
            ms = int((time.perf_counter() - t0) * 1000)
            reconcile_stage_total.labels(call_site=call_site, stage=stage.name, result="pass").inc()
            reconcile_ms.labels(call_site=call_site).observe(ms)
            if stage.name != DIRECT:
                logger.info(f"{call_site}: document recovered by '{stage.name}' stage")
            return ParseSuccess(stage.name, attempt.tree, tuple(attempts), ms)

        reconcile_stage_total.labels(call_site=call_site, stage=stage.name, result="fail").inc()
        logger.debug(f"{call_site}: stage '{stage.name}' failed: {attempt.failure.reason}")
        if stage.whole_document and isinstance(attempt.failure, NoDocumentFound):
            skip_whole_document = True

    ms = int((time.perf_counter() - t0) * 1000)
    reconcile_ms.labels(call_site=call_site).observe(ms)
    reconcile_exhausted_total.labels(call_site=call_site).inc()
    logger.warning(
        f"{call_site}: no stage could parse response ({len(raw)} chars): "
        f"{raw[:LOG_SAMPLE_CHARS]!r}"
    )
    return ExhaustedFailure(tuple(a.failure for a in attempts), ms)
