"""
Action-aware entity and item extraction from natural language.

Uses regex patterns to pull structured values (task references, priority
levels, sort directives, durations, arithmetic operands) and to decompose
free text into candidate task titles, based on the classified action.
"""

import re
from typing import Any, Dict, List, Optional

from .models import Action, NoteItem, TaskItem


def extract(text: str, action: Action) -> Dict[str, Any]:
    """
    Extract entities from text based on the action.

    Returns a dict of entity names to values. Absent keys mean "not specified".
    """
    extractors = {
        Action.COMPLETE_TASK: _extract_reference,
        Action.DELETE_TASK: _extract_reference,
        Action.UPDATE_PRIORITY: _extract_priority_update,
        Action.LIST_TASKS: _extract_list_tasks,
        Action.SHOW_URGENT: _extract_noop,
        Action.FOCUS: _extract_focus,
        Action.CREATE_TASK: _extract_noop,
        Action.CREATE_NOTE: _extract_noop,
        Action.LIST_NOTES: _extract_noop,
        Action.SEARCH_NOTES: _extract_note_search,
        Action.UPDATE_NOTE: _extract_noop,
        Action.MATH: _extract_math,
        Action.SMALL_TALK: _extract_noop,
        Action.HELP: _extract_noop,
        Action.UNKNOWN: _extract_noop,
    }

    extractor = extractors.get(action, _extract_noop)
    return extractor(text)


def _try_numeric(value: str) -> Any:
    """Try to convert a string to int or float."""
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


def _extract_noop(text: str) -> Dict[str, Any]:
    return {}


# ---------------------------------------------------------------------------
# Task references
# ---------------------------------------------------------------------------

_INDEX_RE = re.compile(r"(?:\b(?:task|item|number|no\.?)\s*#?|#)(\d+)\b", re.I)

_REF_PATTERNS = [
    # "mark <ref> as done"
    re.compile(
        r"\bmark\s+(?:the\s+)?(?:task\s+)?[\"']?(?P<ref>.+?)[\"']?\s+as\s+(?:done|complete|completed|finished)\b",
        re.I,
    ),
    # "I finished <ref>"
    re.compile(
        r"\bi\s+(?:have\s+|'ve\s+)?(?:finished|completed|done\s+with)\s+(?:the\s+|my\s+)?[\"']?(?P<ref>.+?)[\"']?\s*[.!]*$",
        re.I,
    ),
    # "<verb> <ref>"
    re.compile(
        r"^\s*(?:please\s+)?(?:complete|finish|done\s+with|check\s+off|tick\s+off|delete|remove|cancel|drop|trash|erase)"
        r"\s+(?:the\s+|my\s+)?(?:task\s+)?[\"']?(?P<ref>.+?)[\"']?\s*[.!]*$",
        re.I,
    ),
    # "<verb> the priority of <ref> to <level>" / "make <ref> high priority"
    re.compile(
        r"^\s*(?:please\s+)?(?:set|change|make|mark|update|bump|raise|lower)\s+(?:the\s+)?(?:priority\s+(?:of|for|on)\s+)?"
        r"(?:the\s+)?(?:task\s+)?[\"']?(?P<ref>.+?)[\"']?\s+(?:to\s+|as\s+)?(?:high|medium|low|urgent)\b",
        re.I,
    ),
]


def _extract_reference(text: str) -> Dict[str, Any]:
    """Extract which task the user means: an index or a title fragment."""
    params: Dict[str, Any] = {}

    m = _INDEX_RE.search(text)
    if m:
        params["task_index"] = int(m.group(1))
        return params

    m = re.match(r"^\s*\D*?\b(\d+)\s*[.!]*$", text)
    if m:
        params["task_index"] = int(m.group(1))
        return params

    for pattern in _REF_PATTERNS:
        m = pattern.search(text)
        if m:
            ref = m.group("ref").strip(" \"'")
            if ref and ref.lower() not in {"it", "that", "this", "task", "the task", "priority"}:
                params["task_ref"] = ref
            break

    return params


# ---------------------------------------------------------------------------
# Priority
# ---------------------------------------------------------------------------

_LEVEL_PATTERNS = [
    re.compile(r"\b(?:to|as)\s+(high|medium|low|urgent)\b", re.I),
    re.compile(r"\b(high|medium|low|urgent)[\s-]*priority\b", re.I),
    re.compile(r"\bpriority\s+(?:is\s+|of\s+)?(high|medium|low)\b", re.I),
]


def extract_priority(text: str) -> Optional[str]:
    """Return 'high', 'medium' or 'low' if the text names a level."""
    for pattern in _LEVEL_PATTERNS:
        m = pattern.search(text)
        if m:
            level = m.group(1).lower()
            return "high" if level == "urgent" else level
    if re.search(r"\b(?:raise|bump|increase)\b", text, re.I):
        return "high"
    if re.search(r"\b(?:lower|decrease|reduce)\b", text, re.I):
        return "low"
    return None


def _extract_priority_update(text: str) -> Dict[str, Any]:
    params = _extract_reference(text)
    level = extract_priority(text)
    if level:
        params["priority"] = level
    return params


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

_SORT_LANGUAGE_RE = re.compile(
    r"\b(?:sort(?:ed)?|order(?:ed)?|arrange(?:d)?|rank(?:ed)?|group(?:ed)?)\b"
    r"|\bby\s+(?:priority|due\s+date|deadline|date)\b",
    re.I,
)


def extract_sort(text: str) -> Optional[str]:
    """Return the sort directive ('priority', 'due_date', 'created') if any."""
    if not _SORT_LANGUAGE_RE.search(text):
        return None
    if re.search(r"\b(?:priority|importance|urgency)\b", text, re.I):
        return "priority"
    if re.search(r"\b(?:due|deadline|date)\b", text, re.I):
        return "due_date"
    if re.search(r"\b(?:created|newest|oldest|recent|age)\b", text, re.I):
        return "created"
    return None


def _extract_list_tasks(text: str) -> Dict[str, Any]:
    params: Dict[str, Any] = {}

    sort_by = extract_sort(text)
    if sort_by:
        params["sort_by"] = sort_by

    m = re.search(r"\b(high|medium|low)[\s-]priority\s+(?:tasks?|todos?|items?)\b", text, re.I)
    if m:
        params["priority"] = m.group(1).lower()

    if re.search(r"\b(?:completed|finished|done)\s+(?:tasks?|todos?)\b", text, re.I):
        params["status"] = "completed"
    elif re.search(r"\b(?:pending|open|remaining|unfinished)\s+(?:tasks?|todos?)\b", text, re.I):
        params["status"] = "pending"

    return params


# ---------------------------------------------------------------------------
# Focus
# ---------------------------------------------------------------------------

def _extract_focus(text: str) -> Dict[str, Any]:
    """Extract focus session duration in minutes."""
    params: Dict[str, Any] = {}

    m = re.search(r"\b(\d{1,3})\s*(?:m|min|mins|minutes?)\b", text, re.I)
    if m:
        params["duration"] = int(m.group(1))
        return params

    m = re.search(r"\b(\d{1,2})\s*(?:h|hrs?|hours?)\b", text, re.I)
    if m:
        params["duration"] = int(m.group(1)) * 60
        return params

    m = re.search(r"(?:^\s*/f\s+|\bfor\s+)(\d{1,3})\b", text, re.I)
    if m:
        params["duration"] = int(m.group(1))

    return params


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------

_NOTE_PREFIX_RE = re.compile(
    r"^\s*(?:note\s*[:\-]"
    r"|(?:please\s+)?(?:take|make|add|write|create|save)\s+(?:a\s+|an\s+)?(?:quick\s+)?note\s*(?::|-|that\b|about\b|to\b)?"
    r"|remember\s+(?:that\s+)?"
    r"|jot\s+down\s*(?:that\s+)?)\s*",
    re.I,
)

NOTE_TITLE_MAX = 60


def extract_note(text: str) -> Optional[NoteItem]:
    """Build a note from note-taking language; None if nothing remains."""
    body = _NOTE_PREFIX_RE.sub("", text, count=1).strip()
    if not body:
        return None
    first_line = body.split("\n", 1)[0].strip()
    title = first_line if len(first_line) <= NOTE_TITLE_MAX else first_line[:NOTE_TITLE_MAX].rstrip() + "..."
    return NoteItem(title=title, body=body)


def _extract_note_search(text: str) -> Dict[str, Any]:
    m = re.search(
        r"\b(?:search|find|look\s+up|lookup)\s+(?:in\s+)?(?:my\s+)?notes?\s+(?:for|about|on|with)?\s*[\"']?(.+?)[\"']?\s*[.?!]*$",
        text,
        re.I,
    )
    if m and m.group(1).strip():
        return {"query": m.group(1).strip()}
    return {}


# ---------------------------------------------------------------------------
# Math
# ---------------------------------------------------------------------------

MATH_RE = re.compile(
    r"^\s*(\d+(?:\.\d+)?(?:\s*[-+*/x×÷]\s*\d+(?:\.\d+)?)+)\s*=?\s*\??\s*$",
    re.I,
)

_OPERATIONS = {
    "+": "addition",
    "-": "subtraction",
    "*": "multiplication",
    "x": "multiplication",
    "×": "multiplication",
    "/": "division",
    "÷": "division",
}


def _extract_math(text: str) -> Dict[str, Any]:
    """Extract operands and operation from a bare arithmetic expression."""
    m = MATH_RE.match(text)
    if not m:
        return {}

    tokens = re.findall(r"\d+(?:\.\d+)?|[-+*/x×÷]", m.group(1), re.I)
    numbers = [_try_numeric(t) for t in tokens[0::2]]
    operators = [t.lower() for t in tokens[1::2]]

    if len(set(operators)) > 1:
        # Mixed operators: keep the leading binary expression only
        numbers = numbers[:2]
        operators = operators[:1]

    return {"numbers": numbers, "operation": _OPERATIONS[operators[0]]}


# ---------------------------------------------------------------------------
# Task decomposition
# ---------------------------------------------------------------------------

_NUMBERED_LINE_RE = re.compile(r"^[ \t]*\d+[.)][ \t]+(\S.*?)[ \t]*$", re.M)
_INLINE_MARKER_RE = re.compile(r"(?:^|(?<=\s))\d+\)\s*")
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\[\s?\])\s+")
_CREATE_PREFIX_RE = re.compile(
    r"^\s*(?:please\s+)?(?:(?:add|create|make|new)\s+(?:a\s+|an\s+)?(?:new\s+)?(?:tasks?|todos?|to-dos?|reminders?)"
    r"\s*(?::|-|to\b|for\b)?|remind\s+me\s+to\b)\s*",
    re.I,
)
_HIGH_RE = re.compile(r"\b(?:urgent|asap|high[\s-]priority|important)\b", re.I)
_LOW_RE = re.compile(r"\blow[\s-]priority\b", re.I)
_ASSIGNEE_RE = re.compile(r"(?:^|\s)@(\w+)")
_DUE_RE = re.compile(
    r"\b(?:by|due|before|on)\s+(today|tonight|tomorrow|next\s+week|"
    r"monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b",
    re.I,
)


def _task_item(title: str) -> TaskItem:
    priority = "medium"
    if _HIGH_RE.search(title):
        priority = "high"
    elif _LOW_RE.search(title):
        priority = "low"

    assignee = None
    m = _ASSIGNEE_RE.search(title)
    if m:
        assignee = m.group(1)

    due_date = None
    m = _DUE_RE.search(title)
    if m:
        due_date = re.sub(r"\s+", " ", m.group(1).lower())

    return TaskItem(title=title, priority=priority, assignee=assignee, due_date=due_date)


def _marker_candidates(text: str) -> List[str]:
    titles: List[str] = []
    for m in _NUMBERED_LINE_RE.finditer(text):
        # "1) a 2) b" on one line
        titles.extend(_INLINE_MARKER_RE.split(m.group(1)))

    if not titles:
        parts = _INLINE_MARKER_RE.split(text)
        if len(parts) > 2:
            titles = parts[1:]
    return titles


def _clean_titles(titles: List[str]) -> List[str]:
    cleaned = (t.strip().rstrip(".;,").strip() for t in titles)
    return [t for t in cleaned if t]


def numbered_titles(text: str) -> List[str]:
    """Titles introduced by number markers ("1." or "1)"), in order."""
    return _clean_titles(_marker_candidates(text))


def extract_task_titles(text: str) -> List[str]:
    """Locate candidate task titles: numbered markers first, else lines."""
    titles = _marker_candidates(text)

    if not titles:
        lines = [line for line in text.split("\n") if line.strip()]
        if len(lines) == 1:
            titles = [_CREATE_PREFIX_RE.sub("", lines[0], count=1)]
        else:
            titles = [_BULLET_RE.sub("", line) for line in lines]

    return _clean_titles(titles)


def extract_tasks(text: str, cap: int) -> List[TaskItem]:
    """Decompose text into at most `cap` task items."""
    return [_task_item(title) for title in extract_task_titles(text)[:cap]]
