"""
Declarative coercion of generic JSON trees into pydantic records.

Each record type is described by a RecordSpec: a table of FieldSpecs
(output name, source key, kind, default, required, choices, bounds, nested
spec). One engine walks the table. Coercion is lenient per field and total
per record: a bad field takes its default or stays absent, a record missing
a required field comes back as None, and nothing here raises.
"""

from __future__ import annotations
import copy
import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple, Type

from prometheus_client import Counter
from pydantic import BaseModel, ValidationError

from .json_repair import GenericTree, parse_document

logger = logging.getLogger(__name__)

try:
    records_dropped_total = Counter(
        "reconcile_records_dropped_total", "Records dropped during coercion", ["record"]
    )
except ValueError:
    # metrics already registered
    pass


class _NoDefault:
    def __repr__(self) -> str:
        return "NO_DEFAULT"


NO_DEFAULT = _NoDefault()

_LEADING_NUMBER_RE = re.compile(r"^[+-]?\d+(?:\.\d+)?")
_THOUSANDS_RE = re.compile(r"(?<=\d),(?=\d{3}\b)")
_CHOICE_KEY_RE = re.compile(r"[\s_\-]+")
_TRUE = {"true", "yes", "y", "1"}
_FALSE = {"false", "no", "n", "0"}


class FieldKind(str, Enum):
    TEXT = "text"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    CHOICE = "choice"
    DECIMAL_TEXT = "decimal_text"
    TEXT_LIST = "text_list"
    TEXT_MAP = "text_map"
    RECORDS = "records"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    source: str
    kind: FieldKind = FieldKind.TEXT
    default: Any = NO_DEFAULT
    required: bool = False
    choices: Tuple[str, ...] = ()
    aliases: Tuple[Tuple[str, str], ...] = ()
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    nested: Optional["RecordSpec"] = None


@dataclass(frozen=True)
class RecordSpec:
    name: str
    model: Type[BaseModel]
    fields: Tuple[FieldSpec, ...]
    # at least one of these must coerce, before defaults are applied
    require_any: Tuple[str, ...] = ()
    # (values, names of fields present in the source) -> values
    finalize: Optional[Callable[[Dict[str, Any], Set[str]], Dict[str, Any]]] = None


# === Scalar coercions: each returns None when the value is unusable ===

def to_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    if not text or text.lower() == "null":
        return None
    return text


def to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        m = _LEADING_NUMBER_RE.match(_THOUSANDS_RE.sub("", value.strip()))
        if m:
            number = float(m.group(0))
            return int(number) if math.isfinite(number) else None
    return None


def to_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        low = value.strip().lower()
        if low in _TRUE:
            return True
        if low in _FALSE:
            return False
    return None


def _choice_key(text: str) -> str:
    return _CHOICE_KEY_RE.sub("", text).lower()


def to_choice(value: Any, choices: Sequence[str], aliases: Sequence[Tuple[str, str]] = ()) -> Optional[str]:
    """Match case- and separator-insensitively: 'Fully Funded' -> 'fully-funded'"""
    text = to_text(value)
    if text is None:
        return None
    table = {_choice_key(c): c for c in choices}
    table.update({_choice_key(alias): target for alias, target in aliases})
    return table.get(_choice_key(text))


def to_decimal_text(value: Any) -> Optional[str]:
    """'65.5%' -> '65.50'"""
    text = to_text(value)
    if text is None:
        return None
    try:
        number = float(text.replace("%", "").strip())
    except ValueError:
        return None
    return f"{number:.2f}" if math.isfinite(number) else None


def _reparse(value: str) -> GenericTree:
    # double-encoded nested data: a list stored as a JSON string
    tree, _ = parse_document(value)
    return tree


def to_text_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = _reparse(value)
    if not isinstance(value, list):
        return []
    return [text for text in (to_text(item) for item in value) if text is not None]


def to_text_map(value: Any) -> Dict[str, str]:
    if isinstance(value, str):
        value = _reparse(value)
    if not isinstance(value, dict):
        return {}
    out = {}
    for key, item in value.items():
        text = to_text(item)
        if text is not None:
            out[str(key)] = text
    return out


def to_records(value: Any, spec: "RecordSpec") -> List[BaseModel]:
    if isinstance(value, str):
        value = _reparse(value)
    if isinstance(value, dict):
        value = [value]
    if not isinstance(value, list):
        return []
    return [record for record in (coerce_record(item, spec) for item in value) if record is not None]


# === Engine ===

def _coerce_field(value: Any, f: FieldSpec) -> Any:
    kind = f.kind
    if kind is FieldKind.TEXT:
        return to_text(value)
    if kind is FieldKind.INTEGER:
        number = to_int(value)
        if number is None:
            return None
        if f.minimum is not None:
            number = max(f.minimum, number)
        if f.maximum is not None:
            number = min(f.maximum, number)
        return number
    if kind is FieldKind.BOOLEAN:
        return to_bool(value)
    if kind is FieldKind.CHOICE:
        return to_choice(value, f.choices, f.aliases)
    if kind is FieldKind.DECIMAL_TEXT:
        return to_decimal_text(value)
    if kind is FieldKind.TEXT_LIST:
        return to_text_list(value)
    if kind is FieldKind.TEXT_MAP:
        return to_text_map(value)
    if kind is FieldKind.RECORDS:
        return to_records(value, f.nested)
    return None


def _lookup(tree: Dict[str, Any], f: FieldSpec) -> Any:
    if f.source in tree:
        return tree[f.source]
    return tree.get(f.name)


def _drop(spec: RecordSpec, why: str) -> None:
    records_dropped_total.labels(record=spec.name).inc()
    logger.debug(f"Dropping {spec.name}: {why}")


def coerce_record(tree: GenericTree, spec: RecordSpec) -> Optional[BaseModel]:
    """Coerce one mapping into `spec.model`; None when the record cannot be satisfied"""
    if not isinstance(tree, dict):
        _drop(spec, f"expected an object, got {type(tree).__name__}")
        return None

    values: Dict[str, Any] = {}
    present: Set[str] = set()
    for f in spec.fields:
        value = _coerce_field(_lookup(tree, f), f)
        if value is not None:
            present.add(f.name)
        elif f.required:
            _drop(spec, f"missing required field '{f.source}'")
            return None
        elif f.default is not NO_DEFAULT:
            value = copy.deepcopy(f.default)
        else:
            continue
        values[f.name] = value

    if spec.require_any and not present.intersection(spec.require_any):
        _drop(spec, f"none of {', '.join(spec.require_any)} present")
        return None

    if spec.finalize is not None:
        values = spec.finalize(values, present)

    try:
        return spec.model(**values)
    except ValidationError as e:
        _drop(spec, f"validation failed: {e.errors()[:1]}")
        return None


def coerce_list(tree: GenericTree, keys: Sequence[str], spec: RecordSpec) -> List[BaseModel]:
    """Coerce the record list found under the first of `keys` present in `tree`"""
    if not isinstance(tree, dict):
        return []
    for key in keys:
        if key in tree:
            return to_records(tree[key], spec)
    return []
