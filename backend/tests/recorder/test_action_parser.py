"""
Unit tests for ActionParser.

Tests redundancy elimination, form grouping, wait insertion, navigation
look-ahead and test step generation.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from recorder.core.element_descriptor import element_descriptor
from recorder.core.selector_generator import SelectorResult, SelectorKind
from recorder.capture.actions import (
    ActionKind,
    WaitStrategy,
    WaitAction,
    NavigationAction,
    ClickAction,
    InputAction,
    SelectAction,
    HoverAction,
    ApiCallAction,
    FormSequence,
    is_submit_control,
)
from recorder.synthesis.action_parser import ActionParser, ParserOptions


def selector(primary: str) -> SelectorResult:
    return SelectorResult(primary=primary, kind=SelectorKind.ID, confidence=0.8)


def login_actions():
    """Navigate to /login, fill user and password, click submit."""
    return [
        NavigationAction(timestamp=0, url="/login"),
        InputAction(
            timestamp=1000,
            selector=selector("#user"),
            element=element_descriptor("input", id="user", input_type="text"),
            value="alice",
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
    ]


def plain_button(text: str = "Go"):
    return element_descriptor("button", input_type="button", text_content=text)


class TestEndToEnd:
    """Test complete recordings."""

    def test_login_recording(self):
        """Test navigate, form sequence and a trailing network-idle wait."""
        steps = ActionParser().optimize(login_actions())

        assert [s.kind for s in steps] == [
            ActionKind.NAVIGATION,
            ActionKind.FORM_SEQUENCE,
            ActionKind.WAIT,
        ]
        assert steps[1].description == "Fill form with 2 fields and submit"
        assert steps[1].code.splitlines() == [
            'await page.locator("#user").fill("alice")',
            'await page.locator("#pass").fill("secret")',
            'await page.locator("#submit").click()',
        ]
        assert steps[2].code == 'await page.wait_for_load_state("networkidle", timeout=10000)'

    def test_navigation_assertions(self):
        """Test URL and expected-element assertions after navigation."""
        steps = ActionParser().optimize(login_actions())
        codes = [a.code for a in steps[0].assertions]

        assert codes[0] == 'await expect(page).to_have_url("/login")'
        assert 'await expect(page.locator("#user")).to_be_visible()' in codes
        assert len(steps[0].assertions) == 4

    def test_navigation_settle_wait_in_code(self):
        """Test the navigation step waits for network idle."""
        steps = ActionParser().optimize(login_actions())

        assert steps[0].code.splitlines() == [
            'await page.goto("/login")',
            'await page.wait_for_load_state("networkidle", timeout=5000)',
        ]

    def test_form_data_payload(self):
        """Test form sequences carry field values."""
        steps = ActionParser().optimize(login_actions())

        assert steps[1].data == {"fields": {"user": "alice", "pass": "secret"}}

    def test_double_click_collapses(self):
        """Test two clicks on one selector become one step."""
        actions = [
            ClickAction(timestamp=100, selector=selector("#btn"), element=plain_button()),
            ClickAction(timestamp=150, selector=selector("#btn"), element=plain_button()),
        ]

        steps = ActionParser().optimize(actions)

        assert len(steps) == 1
        assert steps[0].kind == ActionKind.CLICK
        assert steps[0].timestamp == 150

    def test_idempotent(self):
        """Test optimizing the same input twice gives identical steps."""
        parser = ActionParser()

        first = [s.to_dict() for s in parser.optimize(login_actions())]
        second = [s.to_dict() for s in parser.optimize(login_actions())]

        assert first == second

    def test_empty_input(self):
        """Test an empty log produces no steps."""
        assert ActionParser().optimize([]) == []


class TestRedundancy:
    """Test redundancy elimination."""

    def test_input_last_value_wins(self):
        """Test consecutive inputs on one field keep the last value."""
        field = element_descriptor("input", id="q")
        actions = [
            InputAction(timestamp=1, selector=selector("#q"), element=field, value="ca"),
            InputAction(timestamp=2, selector=selector("#q"), element=field, value="cats"),
        ]

        result = ActionParser().remove_redundant_actions(actions)

        assert len(result) == 1
        assert result[0].value == "cats"

    def test_hover_then_click(self):
        """Test a hover followed by a click on the same element is dropped."""
        actions = [
            HoverAction(timestamp=1, selector=selector("#menu"), element=plain_button()),
            ClickAction(timestamp=2, selector=selector("#menu"), element=plain_button()),
        ]

        result = ActionParser().remove_redundant_actions(actions)

        assert [a.kind for a in result] == [ActionKind.CLICK]

    def test_different_selectors_kept(self):
        """Test clicks on different elements are kept."""
        actions = [
            ClickAction(timestamp=1, selector=selector("#a"), element=plain_button()),
            ClickAction(timestamp=2, selector=selector("#b"), element=plain_button()),
        ]

        assert len(ActionParser().remove_redundant_actions(actions)) == 2


class TestGrouping:
    """Test form sequence grouping and reordering."""

    def test_navigation_flushes_group(self):
        """Test a navigation closes an open form group."""
        actions = login_actions()[1:3] + [NavigationAction(timestamp=5000, url="/home")]

        grouped = ActionParser().group_sequential_actions(actions)

        assert isinstance(grouped[0], FormSequence)
        assert isinstance(grouped[1], NavigationAction)

    def test_single_form_action_not_grouped(self):
        """Test a lone form action stays ungrouped."""
        actions = [login_actions()[1]]

        grouped = ActionParser().group_sequential_actions(actions)

        assert isinstance(grouped[0], InputAction)

    def test_description_without_submit(self):
        """Test the description omits submit when there is no submit control."""
        parser = ActionParser()

        assert parser.describe_form(login_actions()[1:2]) == "Fill form with 1 field"
        assert parser.describe_form(login_actions()[1:3]) == "Fill form with 2 fields"

    def test_inputs_filled_before_click(self):
        """Test sub-actions are ordered input < select < textarea < click."""
        actions = [
            ClickAction(timestamp=1, selector=selector("#go"), element=plain_button()),
            SelectAction(
                timestamp=2,
                selector=selector("#country"),
                element=element_descriptor("select", id="country"),
                value="NZ",
            ),
            InputAction(
                timestamp=3,
                selector=selector("#notes"),
                element=element_descriptor("textarea", id="notes"),
                value="hi",
            ),
            InputAction(
                timestamp=4,
                selector=selector("#name"),
                element=element_descriptor("input", id="name"),
                value="Ann",
            ),
        ]
        parser = ActionParser()

        ordered = parser.reorder_form_sequences(parser.group_sequential_actions(actions))

        assert [a.primary_selector for a in ordered[0].actions] == ["#name", "#country", "#notes", "#go"]


class TestWaitInsertion:
    """Test synthetic wait insertion rules."""

    def test_navigation_followed_by_network_idle(self):
        """Test every navigation is immediately followed by a network-idle wait."""
        actions = [
            NavigationAction(timestamp=0, url="/a"),
            NavigationAction(timestamp=10, url="/b"),
        ]

        with_waits = ActionParser().insert_wait_strategies(actions)

        assert isinstance(with_waits[1], WaitAction)
        assert with_waits[1].strategy == WaitStrategy.NETWORK_IDLE
        assert with_waits[1].timeout_ms == 5000
        assert with_waits[3].strategy == WaitStrategy.NETWORK_IDLE

    def test_click_then_navigation(self):
        """Test a click followed by navigation waits for navigation."""
        parser = ActionParser()
        click = ClickAction(timestamp=0, selector=selector("#next"), element=plain_button("Next"))

        wait = parser.determine_wait_strategy(click, NavigationAction(timestamp=50, url="/b"))

        assert wait.strategy == WaitStrategy.NAVIGATION
        assert wait.timeout_ms == 10000

    def test_click_then_delayed_element(self):
        """Test a delayed follow-up waits for its element to be visible."""
        parser = ActionParser()
        click = ClickAction(timestamp=0, selector=selector("#open"), element=plain_button("Open"))
        hover = HoverAction(timestamp=400, selector=selector("#menu"), element=plain_button("Menu"))

        wait = parser.determine_wait_strategy(click, hover)

        assert wait.strategy == WaitStrategy.VISIBLE
        assert wait.target == "#menu"
        assert wait.timeout_ms == 800

    def test_visible_timeout_capped(self):
        """Test the visible wait timeout never exceeds the maximum."""
        parser = ActionParser(ParserOptions(max_wait_ms=1000))
        click = ClickAction(timestamp=0, selector=selector("#open"), element=plain_button("Open"))
        hover = HoverAction(timestamp=4000, selector=selector("#menu"), element=plain_button("Menu"))

        assert parser.determine_wait_strategy(click, hover).timeout_ms == 1000

    def test_fast_follow_up_needs_no_wait(self):
        """Test no wait is inserted for a quick non-submit follow-up."""
        parser = ActionParser()
        click = ClickAction(timestamp=0, selector=selector("#open"), element=plain_button("Open"))
        hover = HoverAction(timestamp=50, selector=selector("#menu"), element=plain_button("Menu"))

        assert parser.determine_wait_strategy(click, hover) is None

    def test_api_call_waits_for_response(self):
        """Test API calls wait for their response."""
        parser = ActionParser()
        call = ApiCallAction(timestamp=0, url="https://example.com/api/items", method="POST")

        wait = parser.determine_wait_strategy(call, None)

        assert wait.strategy == WaitStrategy.RESPONSE
        assert wait.url == "https://example.com/api/items"
        assert wait.timeout_ms == 5000

    def test_waits_disabled(self):
        """Test wait insertion can be turned off."""
        steps = ActionParser(ParserOptions(insert_waits=False)).optimize(login_actions())

        assert all(s.kind != ActionKind.WAIT for s in steps)


class TestAssertions:
    """Test generated assertions."""

    def test_input_value_assertion(self):
        """Test an input step checks the field value."""
        action = login_actions()[1]

        assertions = ActionParser().generate_assertions(action)

        assert assertions[0].code == 'await expect(page.locator("#user")).to_have_value("alice")'

    def test_lookahead_is_bounded(self):
        """Test navigation look-ahead collects at most three selectors."""
        actions = [NavigationAction(timestamp=0, url="/list")] + [
            ClickAction(timestamp=i * 1000, selector=selector(f"#item{i}"), element=element_descriptor("div"))
            for i in range(1, 6)
        ]

        annotated = ActionParser().annotate_navigation(actions)

        assert annotated[0].expected_selectors == ("#item1", "#item2", "#item3")


class TestSubmitClassification:
    """Test submit control detection."""

    def test_submit_type(self):
        """Test type=submit counts as submit."""
        assert is_submit_control(element_descriptor("input", input_type="submit")) is True

    def test_button_without_type(self):
        """Test a button with no explicit type counts as submit."""
        assert is_submit_control(element_descriptor("button", text_content="Save")) is True

    def test_submit_text(self):
        """Test text mentioning submit counts as submit."""
        assert is_submit_control(element_descriptor("a", text_content="Submit order")) is True

    def test_plain_button(self):
        """Test a typed button is not submit."""
        assert is_submit_control(plain_button()) is False
        assert is_submit_control(None) is False
