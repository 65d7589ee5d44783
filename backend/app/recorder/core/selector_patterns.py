"""
Selector Patterns - Stability Heuristics as Data

Ordered (pattern, rejection reason) tables used to decide whether an id or
class token is stable enough to build a selector on. Kept as data so each
rule can be tested on its own.
"""

import re
from typing import List, Optional, Pattern, Tuple


PatternTable = List[Tuple[Pattern[str], str]]


# ============================================================
# ID STABILITY
# ============================================================

UNSTABLE_ID_PATTERNS: PatternTable = [
    (re.compile(r"^[a-f0-9]{8,}$", re.I), "hex digest"),
    (re.compile(r"^\d+$"), "pure numeric"),
    (re.compile(r"^(react|vue|ng)-", re.I), "framework generated"),
    (re.compile(r"_\d+$"), "trailing counter"),
    (re.compile(r"^generated", re.I), "generated prefix"),
]


# ============================================================
# CLASS STABILITY
# ============================================================

UNSTABLE_CLASS_PATTERNS: PatternTable = [
    (re.compile(r"^[a-f0-9]{8,}$", re.I), "hex digest"),
    (re.compile(r"^\w+_\w+_[a-f0-9]+$", re.I), "css module hash"),
    (re.compile(r"^css-[a-f0-9]+$", re.I), "css-in-js hash"),
    (re.compile(r"^[A-Z][a-zA-Z0-9]{10,}$"), "long PascalCase"),
    (re.compile(r"^\d"), "leading digit"),
]


# ============================================================
# TAG GROUPS
# ============================================================

# Tags that may be addressed by their name attribute
NAMED_FIELD_TAGS = {"input", "select", "textarea"}

# Tags preferred for text selectors
SEMANTIC_TEXT_TAGS = {"button", "a", "label", "span"}

# Tags that can carry a placeholder
PLACEHOLDER_TAGS = {"input", "textarea"}

# Form controls eligible for label association
FORM_CONTROL_TAGS = {"input", "select", "textarea"}


def match_rejection(value: str, table: PatternTable) -> Optional[str]:
    """
    Return the rejection reason of the first pattern matching value.

    Args:
        value: Id or class token
        table: Ordered pattern table

    Returns:
        Rejection reason, or None when the value is stable
    """
    for pattern, reason in table:
        if pattern.search(value):
            return reason
    return None


def is_stable_id(element_id: str) -> bool:
    """Check whether an id is safe to use as a selector basis"""
    return bool(element_id) and match_rejection(element_id, UNSTABLE_ID_PATTERNS) is None


def stable_classes(class_tokens) -> List[str]:
    """Filter a class list (or class string) down to stable tokens"""
    if isinstance(class_tokens, str):
        class_tokens = class_tokens.split()
    return [
        token for token in class_tokens
        if token and match_rejection(token, UNSTABLE_CLASS_PATTERNS) is None
    ]
