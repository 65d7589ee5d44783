"""
Flow Analysis

Summaries of a recording used in the JSON report: which pages were
visited, which forms were completed, how complex the flow is, and which
recorded values look like test data that should be parameterized.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Sequence

from ..capture.actions import (
    ActionRecord,
    ActionKind,
    NavigationAction,
    InputAction,
    ApiCallAction,
    is_submit_control,
)
from .action_parser import field_name


# (pattern, value type) in detection order
DYNAMIC_VALUE_PATTERNS = [
    (re.compile(r"@.*\."), "email"),
    (re.compile(r"^\d{10,}$"), "phone"),
    (re.compile(r"^\d{4}-\d{2}-\d{2}$"), "date"),
    (re.compile(r"^user\d+$", re.I), "username"),
    (re.compile(r"test.*\d+", re.I), "text"),
]


@dataclass
class UserFlow:
    pages: List[str] = field(default_factory=list)
    forms: List[Dict[str, Any]] = field(default_factory=list)
    api_calls: List[Dict[str, Any]] = field(default_factory=list)
    interactions: List[Dict[str, Any]] = field(default_factory=list)
    total_duration_ms: int = 0


def analyze_user_flow(records: Sequence[ActionRecord]) -> UserFlow:
    """Walk the log tracking the current page, form boundaries and API traffic"""
    flow = UserFlow()
    current_page: Optional[str] = None
    form_start: Optional[int] = None

    for i, record in enumerate(records):
        if isinstance(record, NavigationAction):
            current_page = record.url
            if current_page not in flow.pages:
                flow.pages.append(current_page)

        if isinstance(record, InputAction) and form_start is None:
            form_start = i

        if record.kind == ActionKind.CLICK and is_submit_control(record.element) and form_start is not None:
            flow.forms.append({
                "page": current_page,
                "start_timestamp": records[form_start].timestamp,
                "end_timestamp": record.timestamp,
                "fields": sum(1 for r in records[form_start:i + 1] if isinstance(r, InputAction)),
            })
            form_start = None

        if isinstance(record, ApiCallAction):
            flow.api_calls.append({"url": record.url, "method": record.method, "page": current_page})

        flow.interactions.append({
            "kind": record.kind.value,
            "page": current_page,
            "timestamp": record.timestamp,
        })

    if records:
        flow.total_duration_ms = records[-1].timestamp - records[0].timestamp

    return flow


def calculate_complexity(flow: UserFlow) -> int:
    """Score a flow from 1 to 10"""
    score = 0.0
    score += len(flow.interactions) * 0.5
    score += len(flow.pages) * 2
    score += len(flow.forms) * 3
    score += len(flow.api_calls) * 1.5
    return min(10, max(1, round(score / 5)))


def flow_summary(flow: UserFlow) -> Dict[str, Any]:
    return {
        "pages_visited": len(flow.pages),
        "forms_completed": len(flow.forms),
        "api_calls_made": len(flow.api_calls),
        "total_interactions": len(flow.interactions),
        "duration_seconds": round(flow.total_duration_ms / 1000),
        "complexity": calculate_complexity(flow),
    }


def detect_value_type(value: str) -> Optional[str]:
    """Return the dynamic value type of a recorded value, or None if static"""
    for pattern, value_type in DYNAMIC_VALUE_PATTERNS:
        if pattern.search(value):
            return value_type
    return None


def extract_test_data(records: Sequence[ActionRecord]) -> Dict[str, Any]:
    """Collect URLs and form values, separating dynamic-looking values from static ones"""
    urls: List[str] = []
    form_data: Dict[str, str] = {}
    dynamic_values: List[Dict[str, str]] = []
    static_values: List[Dict[str, str]] = []

    for record in records:
        if isinstance(record, NavigationAction) and record.url not in urls:
            urls.append(record.url)

        if isinstance(record, InputAction) and record.value:
            name = field_name(record, "unknown")
            form_data[name] = record.value
            value_type = detect_value_type(record.value)
            if value_type:
                dynamic_values.append({"field": name, "value": record.value, "type": value_type})
            else:
                static_values.append({"field": name, "value": record.value})

    return {
        "urls": urls,
        "form_data": form_data,
        "dynamic_values": dynamic_values,
        "static_values": static_values,
    }
