"""
Unit tests for recording flow analysis used in reports.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from recorder.core.element_descriptor import element_descriptor
from recorder.core.selector_generator import SelectorResult, SelectorKind
from recorder.capture.actions import NavigationAction, ClickAction, InputAction, ApiCallAction
from recorder.synthesis.flow_analysis import (
    UserFlow,
    analyze_user_flow,
    calculate_complexity,
    flow_summary,
    detect_value_type,
    extract_test_data,
)


def selector(primary: str) -> SelectorResult:
    return SelectorResult(primary=primary, kind=SelectorKind.ID, confidence=0.8)


def login_actions():
    return [
        NavigationAction(timestamp=0, url="/login"),
        InputAction(
            timestamp=1000,
            selector=selector("#user"),
            element=element_descriptor("input", id="user"),
            value="alice@example.com",
        ),
        InputAction(
            timestamp=2000,
            selector=selector("#pass"),
            element=element_descriptor("input", id="pass", input_type="password"),
            value="secret",
        ),
        ClickAction(
            timestamp=3000,
            selector=selector("#submit"),
            element=element_descriptor("input", id="submit", input_type="submit"),
        ),
        ApiCallAction(timestamp=3100, url="https://example.com/api/session", method="POST"),
    ]


class TestUserFlow:
    """Test flow analysis over an action log."""

    def test_login_flow(self):
        """Test pages, forms and API calls are collected."""
        flow = analyze_user_flow(login_actions())

        assert flow.pages == ["/login"]
        assert len(flow.forms) == 1
        assert flow.forms[0]["fields"] == 2
        assert flow.forms[0]["page"] == "/login"
        assert flow.api_calls == [
            {"url": "https://example.com/api/session", "method": "POST", "page": "/login"}
        ]
        assert len(flow.interactions) == 5
        assert flow.total_duration_ms == 3100

    def test_summary(self):
        """Test the report summary keys."""
        summary = flow_summary(analyze_user_flow(login_actions()))

        assert summary["pages_visited"] == 1
        assert summary["forms_completed"] == 1
        assert summary["api_calls_made"] == 1
        assert summary["total_interactions"] == 5
        assert summary["duration_seconds"] == 3

    def test_empty_log(self):
        """Test an empty log produces an empty flow."""
        flow = analyze_user_flow([])

        assert flow.pages == []
        assert flow.total_duration_ms == 0


class TestComplexity:
    """Test complexity scoring."""

    def test_minimum_is_one(self):
        """Test an empty flow still scores one."""
        assert calculate_complexity(UserFlow()) == 1

    def test_weighted_score(self):
        """Test interactions, pages, forms and API calls are weighted."""
        flow = UserFlow(
            pages=["/a", "/b", "/c"],
            forms=[{}, {}],
            api_calls=[{}] * 4,
            interactions=[{}] * 20,
        )

        assert calculate_complexity(flow) == 6

    def test_capped_at_ten(self):
        """Test the score never exceeds ten."""
        flow = UserFlow(interactions=[{}] * 500)

        assert calculate_complexity(flow) == 10


class TestTestData:
    """Test dynamic value detection and test data extraction."""

    @pytest.mark.parametrize("value,expected", [
        ("alice@example.com", "email"),
        ("5551234567", "phone"),
        ("2024-01-31", "date"),
        ("user42", "username"),
        ("test run 7", "text"),
        ("hello", None),
    ])
    def test_detect_value_type(self, value, expected):
        """Test each value type is recognized in order."""
        assert detect_value_type(value) == expected

    def test_extract_test_data(self):
        """Test URLs and form values are split into dynamic and static."""
        data = extract_test_data(login_actions())

        assert data["urls"] == ["/login"]
        assert data["form_data"] == {"user": "alice@example.com", "pass": "secret"}
        assert data["dynamic_values"] == [
            {"field": "user", "value": "alice@example.com", "type": "email"}
        ]
        assert data["static_values"] == [{"field": "pass", "value": "secret"}]
