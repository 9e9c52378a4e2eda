"""
Text-level repair of LLM JSON output.

Everything here works on raw text and never raises on bad input:
- code-fence stripping and outermost document span extraction
- mild and aggressive syntax normalization (outside string literals only)
- delimiter balance repair for truncated output
- targeted extraction of one named array field
- the final strict parse into a generic tree
"""

from __future__ import annotations
import json
import re
from typing import Any, Dict, List, Optional, Tuple, Union

GenericTree = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]

_CLOSERS = {"{": "}", "[": "]"}

_FENCE_RE = re.compile(r"```[A-Za-z0-9_+\-]*")
_TRAILING_SEP_RE = re.compile(r",(?:\s*,)*(\s*[}\]])")
_DOUBLE_COLON_RE = re.compile(r":\s*:")
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_$][\w$\-]*)(\s*:)")
_ANY_BARE_KEY_RE = re.compile(r"(?<![\w$\-.])([A-Za-z_$][\w$\-]*)(\s*:)")
_BARE_VALUE_RE = re.compile(r"([:\[,]\s*)([A-Za-z_][^,:\[\]{}\"]*?)(\s*)(?=[,\]}]|$)")
_DOUBLE_SEP_RE = re.compile(r",\s*,")
_LEADING_SEP_RE = re.compile(r"([\[{])\s*,")
_ADJACENT_RECORDS_RE = re.compile(r"}\s*{")
_NUMBER_RE = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?")
_JSON_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?")
_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_OBJECT_MEMBER_RE = re.compile(r'(?:"(?:[^"\\]|\\.)*"|[A-Za-z_$][\w$\-]*)\s*:\s*(.*)$', re.DOTALL)
_LITERALS = ("null", "true", "false")

CODE, STRING, OPEN_STRING = "code", "string", "open_string"


# === Extraction ===

def strip_code_fences(text: str) -> str:
    """Drop ``` fences (with or without a language tag) anywhere in the text"""
    return _FENCE_RE.sub("", text or "")


def extract_document(text: str) -> Optional[str]:
    """
    Slice from the first '{' to the last '}'.
    Returns None when there is no '{' at all; when nothing closes after the
    first '{' the span runs to the end so the balance repairer can close it.
    """
    cleaned = strip_code_fences(text)
    start = cleaned.find("{")
    if start < 0:
        return None
    end = cleaned.rfind("}")
    if end < start:
        return cleaned[start:].rstrip()
    return cleaned[start:end + 1]


def extract_array_field(text: str, field: str) -> Optional[str]:
    """
    Find `field: [ ... ]` by its label and return it wrapped as a one-field
    document. The array runs to its matching ']'; when it never closes the
    wrapper is left open too, for the balance repairer to finish.
    """
    cleaned = strip_code_fences(text)
    label = re.compile(r"(?<![\w$])[\"']?%s[\"']?\s*:\s*\[" % re.escape(field))
    m = label.search(cleaned)
    if not m:
        return None

    start = m.end() - 1
    depth = 0
    in_str = False
    esc = False
    for i in range(start, len(cleaned)):
        ch = cleaned[i]
        if in_str:
            if esc:
                esc = False
            elif ch == "\\":
                esc = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return '{"%s": %s}' % (field, cleaned[start:i + 1])
    return '{"%s": %s' % (field, cleaned[start:].rstrip())


# === Segmentation ===

def split_segments(text: str) -> List[Tuple[str, str]]:
    """
    Split text into (kind, chunk) pairs where kind is CODE, STRING or
    OPEN_STRING (a string literal cut off by the end of the text).
    """
    segments: List[Tuple[str, str]] = []
    n = len(text)
    i = 0
    code_start = 0
    while i < n:
        if text[i] != '"':
            i += 1
            continue
        if i > code_start:
            segments.append((CODE, text[code_start:i]))
        j = i + 1
        closed = False
        while j < n:
            ch = text[j]
            if ch == "\\":
                j += 2
                continue
            if ch == '"':
                closed = True
                break
            j += 1
        end = min(j + 1, n)
        segments.append((STRING if closed else OPEN_STRING, text[i:end]))
        i = end
        code_start = i
    if code_start < n:
        segments.append((CODE, text[code_start:]))
    return segments


def _map_code(text: str, fn) -> str:
    return "".join(fn(chunk) if kind == CODE else chunk for kind, chunk in split_segments(text))


def _unquote_scalar(chunk: str) -> str:
    inner = chunk[1:-1]
    if inner in _LITERALS:
        return inner
    if _NUMBER_RE.fullmatch(inner) and not _DATE_RE.fullmatch(inner):
        return inner
    return chunk


# === Normalization ===

def normalize_mild(text: str) -> str:
    """
    Low-risk rewrites, in order:
    1. trailing separators before a closing delimiter
    2. '::' -> ':'
    3. quote bare keys after '{' or ','
    4. unquote "null" / "true" / "false" values
    5. unquote numeric string values (dates stay quoted)
    """
    out: List[str] = []
    prev_code = ""
    for kind, chunk in split_segments(text):
        if kind == CODE:
            chunk = _TRAILING_SEP_RE.sub(r"\1", chunk)
            chunk = _DOUBLE_COLON_RE.sub(":", chunk)
            chunk = _BARE_KEY_RE.sub(r'\1"\2"\3', chunk)
            prev_code = chunk
        elif kind == STRING and prev_code.rstrip().endswith(":"):
            chunk = _unquote_scalar(chunk)
            prev_code = ""
        else:
            prev_code = ""
        out.append(chunk)
    return "".join(out)


def _quote_bare_value(m: re.Match) -> str:
    prefix, token, _ = m.group(1), m.group(2).strip(), m.group(3)
    low = token.lower()
    if low in _LITERALS:
        return prefix + low
    if low == "none":
        return prefix + "null"
    return prefix + json.dumps(token)


def normalize_aggressive(text: str) -> str:
    """
    Higher-risk rewrites for output the mild pass could not fix: smart
    quotes, single-quoted documents, raw line breaks in strings, every bare
    key, every bare value token, missing separators between records, then
    the mild rules again.
    """
    s = text.replace("“", '"').replace("”", '"')
    s = s.replace("‘", "'").replace("’", "'")
    if '"' not in s and "'" in s:
        s = s.replace("'", '"')

    s = "".join(
        re.sub(r"[\r\n\t]+", " ", chunk) if kind != CODE else chunk
        for kind, chunk in split_segments(s)
    )
    s = _map_code(s, lambda c: _ANY_BARE_KEY_RE.sub(r'"\1"\2', c))
    s = _map_code(s, lambda c: _BARE_VALUE_RE.sub(_quote_bare_value, c))
    s = _map_code(s, lambda c: _ADJACENT_RECORDS_RE.sub("}, {", c))

    def _separators(chunk: str) -> str:
        prev = None
        while prev != chunk:
            prev = chunk
            chunk = _DOUBLE_SEP_RE.sub(",", chunk)
        return _LEADING_SEP_RE.sub(r"\1", chunk)

    s = _map_code(s, _separators)
    return normalize_mild(s)


# === Balance repair ===

def _value_complete(value: str) -> bool:
    v = value.strip()
    if not v:
        return False
    if v[-1] in "}]":
        return True
    if len(v) >= 2 and v[0] == '"' and v[-1] == '"':
        return True
    return v in _LITERALS or bool(_JSON_NUMBER_RE.fullmatch(v))


def _element_complete(tail: str, opener: str) -> bool:
    tail = tail.strip()
    if opener == "[":
        return _value_complete(tail)
    m = _OBJECT_MEMBER_RE.match(tail)
    return bool(m) and _value_complete(m.group(1))


def repair_balance(text: str) -> str:
    """
    Make mapping/list delimiters balance.

    Closing delimiters with no opener are dropped; a closer that matches a
    deeper opener closes the containers above it first. When containers are
    still open at the end, an incomplete trailing element of the innermost
    one is cut back to its last separator; a container with no separator
    is dropped whole (the outermost keeps its opener). The missing closers
    are then appended innermost first.
    """
    out: List[str] = []
    stack: List[List[Any]] = []  # [opener, index in out, index of last separator]
    in_str = False
    esc = False

    for ch in text:
        if in_str:
            out.append(ch)
            if esc:
                esc = False
            elif ch == "\\":
                esc = True
            elif ch == '"':
                in_str = False
            continue

        if ch == '"':
            in_str = True
        elif ch in _CLOSERS:
            stack.append([ch, len(out), None])
        elif ch in "}]":
            openers = [frame[0] for frame in stack]
            want = "{" if ch == "}" else "["
            if want not in openers:
                continue  # stray closer
            while stack[-1][0] != want:
                out.append(_CLOSERS[stack.pop()[0]])
            stack.pop()
        elif ch == "," and stack:
            stack[-1][2] = len(out)
        out.append(ch)

    repaired = "".join(out)
    if not stack:
        return repaired

    # an incomplete container with no separator is dropped whole and the
    # enclosing level is checked again; the outermost one keeps its opener
    while True:
        opener, open_idx, sep_idx = stack[-1]
        start = sep_idx + 1 if sep_idx is not None else open_idx + 1
        if not in_str and _element_complete(repaired[start:], opener):
            break
        in_str = False
        if sep_idx is not None:
            repaired = repaired[:sep_idx]
            break
        if len(stack) == 1:
            repaired = repaired[:open_idx + 1]
            break
        stack.pop()
        repaired = repaired[:open_idx]

    closers = "".join(_CLOSERS[frame[0]] for frame in reversed(stack))
    return repaired.rstrip() + closers


def delimiter_counts(text: str) -> Dict[str, int]:
    """Count structural delimiters outside string literals"""
    counts = {"{": 0, "}": 0, "[": 0, "]": 0}
    for kind, chunk in split_segments(text):
        if kind == CODE:
            for ch in counts:
                counts[ch] += chunk.count(ch)
    return counts


# === Parsing ===

def parse_document(text: str) -> Tuple[Optional[GenericTree], Optional[str]]:
    """Strict JSON decode. Returns (tree, None) or (None, reason); never partial."""
    try:
        return json.loads(text, strict=False), None
    except json.JSONDecodeError as e:
        return None, f"{e.msg} at line {e.lineno} column {e.colno}"
    except ValueError as e:
        # e.g. integer literals past the interpreter's digit limit
        return None, str(e)
    except RecursionError:
        return None, "document nested too deeply"
