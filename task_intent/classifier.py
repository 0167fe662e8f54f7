"""
Deterministic keyword/regex intent classifier.

No AI models used. This is the fallback path for any chunk the oracle
cannot classify, so it must always return an Intent with an action from
the enumeration. Rules are checked in order against the message's first
non-blank line and the first match wins; with no match the text is
decomposed into tasks to create.
"""

import re
from typing import List, Optional, Tuple

from .entity_extractor import MATH_RE, extract, extract_note, extract_tasks, numbered_titles
from .models import Action, Intent, IntentSource

FALLBACK_TASK_CAP = 50

# Ordered (action, patterns); a rule matches if ANY pattern matches.
_RULES: List[Tuple[Action, List[re.Pattern]]] = []

# Actions a numbered list of two or more items overrides
_LIST_OVERRIDABLE = frozenset({
    Action.FOCUS,
    Action.SHOW_URGENT,
    Action.MATH,
    Action.HELP,
    Action.SMALL_TALK,
})


def _any_kw(*words: str) -> re.Pattern:
    """Build a regex that matches if ANY word appears."""
    escaped = [re.escape(w) for w in words]
    return re.compile(r"\b(?:" + "|".join(escaped) + r")\b", re.IGNORECASE)


def _outside_list_item(pattern: re.Pattern) -> re.Pattern:
    """Restrict a pattern to lines that are not a "1." or "1)" list item."""
    return re.compile(r"^(?!\s*\d+[.)]\s).*?(?:" + pattern.pattern + ")", pattern.flags)


def _build_rules() -> List[Tuple[Action, List[re.Pattern]]]:
    """Build the ordered classification rules."""
    rules = []

    # --- Task changes: most specific first ---
    rules.append((
        Action.COMPLETE_TASK,
        [
            re.compile(r"^\s*(?:please\s+)?(?:complete|finish|done(?:\s+with)?|check\s+off|tick\s+off)\b", re.I),
            re.compile(r"\bmark\b.*\b(?:as\s+)?(?:done|complete|completed|finished)\b", re.I),
            re.compile(r"\bi\s+(?:have\s+|'ve\s+)?(?:finished|completed|done\s+with)\b", re.I),
            re.compile(r"(?:\btask\s*|#)\d+\s+(?:is\s+)?(?:done|complete|completed|finished)\b", re.I),
        ],
    ))

    rules.append((
        Action.DELETE_TASK,
        [
            re.compile(r"^\s*(?:please\s+)?(?:delete|remove|cancel|drop|trash|erase)\b", re.I),
            re.compile(r"\b(?:delete|remove|get\s+rid\s+of)\s+(?:the\s+|my\s+|all\s+)?(?:tasks?|todos?|to-dos?)\b", re.I),
        ],
    ))

    rules.append((
        Action.UPDATE_PRIORITY,
        [
            re.compile(r"\b(?:set|change|make|mark|update|bump|raise|lower)\b.+\b(?:high|medium|low|urgent)[\s-]*priority\b", re.I),
            re.compile(r"\bpriority\b.*\b(?:to|as)\s+(?:high|medium|low|urgent)\b", re.I),
            re.compile(r"\b(?:set|change|update|raise|lower|bump)\s+(?:the\s+)?priority\b", re.I),
        ],
    ))

    # --- Listing ---
    rules.append((
        Action.LIST_TASKS,
        [
            re.compile(
                r"^\s*(?:please\s+)?(?:show|list|view|display|see|get)\s+(?:me\s+)?(?:all\s+|my\s+|the\s+)*"
                r"(?:pending\s+|open\s+|current\s+|completed\s+|remaining\s+)?(?:tasks?|todos?|to-dos?|to-do\s+list)\b",
                re.I,
            ),
            re.compile(r"\b(?:show|list|view|display)\b.*\b(?:high|medium|low)[\s-]priority\s+(?:tasks?|todos?)\b", re.I),
            re.compile(r"\bwhat(?:'s|\s+is|\s+are)\s+(?:on\s+)?my\s+(?:tasks?|todos?|to-do\s+list|list)\b", re.I),
            re.compile(r"^\s*(?:my\s+)?(?:tasks|todos)\s*\??\s*$", re.I),
            re.compile(r"\b(?:sort|order|arrange|rank)\b.*\b(?:tasks?|todos?)\b", re.I),
            re.compile(r"\b(?:tasks?|todos?)\b.*\b(?:sorted|ordered|arranged|ranked)\s+by\b", re.I),
        ],
    ))

    # --- Notes ---
    rules.append((
        Action.LIST_NOTES,
        [
            re.compile(r"^\s*(?:please\s+)?(?:show|list|view|display|see|get)\s+(?:me\s+)?(?:all\s+|my\s+|the\s+)*notes\b", re.I),
            re.compile(r"^\s*(?:my\s+)?notes\s*\??\s*$", re.I),
        ],
    ))

    rules.append((
        Action.SEARCH_NOTES,
        [
            re.compile(r"\b(?:search|find|look\s+up|lookup)\s+(?:in\s+)?(?:my\s+)?notes?\b", re.I),
        ],
    ))

    rules.append((
        Action.CREATE_NOTE,
        [
            re.compile(r"^\s*note\s*[:\-]", re.I),
            re.compile(r"\b(?:take|make|add|write|create|save)\s+(?:a\s+|an\s+)?(?:quick\s+)?note\b", re.I),
            re.compile(r"^\s*(?:remember|jot\s+down)\b", re.I),
        ],
    ))

    # --- Focus and urgency ---
    rules.append((
        Action.FOCUS,
        [
            _outside_list_item(_any_kw("focus", "pomodoro", "deep work")),
            re.compile(r"^\s*/f\b", re.I),
        ],
    ))

    rules.append((
        Action.SHOW_URGENT,
        [
            re.compile(r"\b(?:what(?:'s|\s+is|\s+are)?|show|list|any)\b.*\burgent\b", re.I),
            re.compile(r"^\s*urgent(?:\s+tasks?)?\s*\??\s*$", re.I),
            re.compile(r"\bwhat\s+(?:should|do)\s+i\s+(?:do|work\s+on)\s+(?:first|next|now)\b", re.I),
        ],
    ))

    # --- Conversational ---
    rules.append((Action.MATH, [MATH_RE]))

    rules.append((
        Action.HELP,
        [
            re.compile(r"^\s*/?help\s*[!?.]*\s*$", re.I),
            re.compile(r"\bwhat\s+can\s+you\s+do\b", re.I),
            re.compile(r"^\s*(?:commands|usage)\s*\??\s*$", re.I),
            re.compile(r"\bhow\s+do(?:es)?\s+(?:this|it|you)\s+work\b", re.I),
        ],
    ))

    rules.append((
        Action.SMALL_TALK,
        [
            re.compile(r"^\s*(?:hi|hello|hey|greetings|good\s+(?:morning|afternoon|evening)|sup|yo|howdy)\b", re.I),
            re.compile(r"^\s*(?:thanks|thank\s+you|thx|ty|appreciate\s+it|cheers)\b", re.I),
            re.compile(r"^\s*how\s+are\s+you\b", re.I),
            _outside_list_item(re.compile(r"\bwhat\s+time\b|\btime\s+is\s+it\b|\bwhat\s+day\b", re.I)),
        ],
    ))

    return rules


def _get_rules() -> List[Tuple[Action, List[re.Pattern]]]:
    """Lazy-initialize rules."""
    global _RULES
    if not _RULES:
        _RULES = _build_rules()
    return _RULES


def _command_line(text: str) -> str:
    for line in text.split("\n"):
        if line.strip():
            return line.strip()
    return ""


def match_action(text: str) -> Optional[Action]:
    """Return the first rule's action that matches, or None."""
    command = _command_line(text)
    for action, patterns in _get_rules():
        if any(p.search(command) for p in patterns):
            return action
    return None


def classify(text: str, task_cap: int = FALLBACK_TASK_CAP) -> Intent:
    """
    Classify natural language text into an Intent without the oracle.

    Never raises for any string input; UNKNOWN is a valid result.
    """
    if not text or not text.strip():
        return Intent(action=Action.UNKNOWN, raw_text=text or "", source=IntentSource.FALLBACK)

    text_clean = text.strip()
    action = match_action(text_clean)

    if action in _LIST_OVERRIDABLE and len(numbered_titles(text_clean)) >= 2:
        # "Hi team, tasks for today:\n1) ...\n2) ..." is a task list
        action = None

    if action is None:
        tasks = extract_tasks(text_clean, task_cap)
        if not tasks:
            return Intent(action=Action.UNKNOWN, raw_text=text_clean, source=IntentSource.FALLBACK)
        return Intent(
            action=Action.CREATE_TASK,
            tasks=tasks,
            raw_text=text_clean,
            source=IntentSource.FALLBACK,
        )

    # Sort directives and filters may sit on any line; references are on the command line
    source_text = text_clean if action == Action.LIST_TASKS else _command_line(text_clean)
    entities = extract(source_text, action)

    notes = []
    if action == Action.CREATE_NOTE:
        note = extract_note(text_clean)
        if note is not None:
            notes.append(note)

    return Intent(
        action=action,
        entities=entities,
        notes=notes,
        raw_text=text_clean,
        query=entities.get("task_ref") or entities.get("query"),
        source=IntentSource.FALLBACK,
    )
