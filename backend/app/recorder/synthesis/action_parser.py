"""
Action Parser

Turns the raw, chronologically ordered action log of a recording into a
minimal list of replayable Test Steps.

Pipeline (pure, no DOM access):
1. Redundancy elimination
2. Form sequence grouping
3. Wait strategy insertion
4. Form sequence reordering
5. Navigation look-ahead annotation
6. Navigation settle-wait collapse
7. Conversion to Test Steps with assertions
"""

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Any, Optional, Sequence

from ..capture.actions import (
    ActionRecord,
    ActionKind,
    WaitStrategy,
    WaitAction,
    NavigationAction,
    ClickAction,
    InputAction,
    SelectAction,
    HoverAction,
    KeypressAction,
    SubmitAction,
    ApiCallAction,
    FormSequence,
    is_submit_control,
)

# Configure logging
logger = logging.getLogger(__name__)

FORM_TAGS = {"input", "select", "textarea", "button"}

# Order of actions inside a form sequence
FORM_ORDER = {"input": 0, "select": 1, "textarea": 2, "click": 3}

NAVIGATION_SETTLE_TIMEOUT_MS = 5000
NAVIGATION_WAIT_TIMEOUT_MS = 10000
SUBMIT_SETTLE_TIMEOUT_MS = 10000
RESPONSE_TIMEOUT_MS = 5000


@dataclass
class ParserOptions:
    """Configuration for action optimization"""
    remove_redundant: bool = True
    group_sequences: bool = True
    insert_waits: bool = True
    min_wait_ms: int = 100
    max_wait_ms: int = 5000
    navigation_lookahead: int = 3


@dataclass
class Assertion:
    """A generated check attached to a test step"""
    kind: str
    description: str
    code: str

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "description": self.description, "code": self.code}


@dataclass
class TestStep:
    """One replayable unit derived from one or more action records"""
    index: int
    kind: ActionKind
    description: str
    code: str
    data: Optional[Dict[str, Any]] = None
    assertions: List[Assertion] = field(default_factory=list)
    selector: Optional[str] = None
    timestamp: int = 0

    # Keep pytest from collecting this class
    __test__ = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "kind": self.kind.value,
            "description": self.description,
            "code": self.code,
            "data": self.data,
            "assertions": [a.to_dict() for a in self.assertions],
            "selector": self.selector,
            "timestamp": self.timestamp,
        }


def quote(value: Any) -> str:
    """Render a value as a double-quoted Python string literal"""
    return json.dumps("" if value is None else str(value), ensure_ascii=False)


def field_name(record: ActionRecord, default: str = "field") -> str:
    """Human field name for an element: name, then id, then default"""
    if record.element is None:
        return default
    return record.element.name or record.element.id or default


def form_order(record: ActionRecord) -> int:
    if record.kind == ActionKind.INPUT and record.element and record.element.tag_name == "textarea":
        return FORM_ORDER["textarea"]
    return FORM_ORDER.get(record.kind.value, 0)


def ordered_form_actions(sequence: FormSequence) -> List[ActionRecord]:
    """Sub-actions sorted by element-kind precedence; ties keep recorded order"""
    return sorted(sequence.actions, key=form_order)


class ActionParser:
    """
    Optimizes recorded actions into test steps.

    Running optimize() twice on the same input yields identical output.
    """

    def __init__(self, options: Optional[ParserOptions] = None):
        self.options = options or ParserOptions()

    def optimize(self, records: Sequence[ActionRecord]) -> List[TestStep]:
        """
        Run the full pipeline.

        Args:
            records: Action records in recorded order

        Returns:
            Ordered test steps
        """
        if not records:
            return []

        actions = list(records)
        if self.options.remove_redundant:
            actions = self.remove_redundant_actions(actions)
        if self.options.group_sequences:
            actions = self.group_sequential_actions(actions)
        if self.options.insert_waits:
            actions = self.insert_wait_strategies(actions)
        actions = self.reorder_form_sequences(actions)
        actions = self.annotate_navigation(actions)
        actions = self.collapse_navigation_waits(actions)

        steps = self.convert_to_test_steps(actions)
        logger.info(f"Optimized {len(records)} recorded actions into {len(steps)} steps")
        return steps

    # ==================== 1. Redundancy ====================

    def remove_redundant_actions(self, actions: List[ActionRecord]) -> List[ActionRecord]:
        """Drop the earlier action of click/click, input/input and hover/click pairs on one selector"""
        filtered = []
        for i, current in enumerate(actions):
            following = actions[i + 1] if i + 1 < len(actions) else None
            if following is not None and self._is_redundant(current, following):
                continue
            filtered.append(current)
        return filtered

    def _is_redundant(self, current: ActionRecord, following: ActionRecord) -> bool:
        if current.primary_selector is None or current.primary_selector != following.primary_selector:
            return False
        pair = (current.kind, following.kind)
        return pair in {
            (ActionKind.CLICK, ActionKind.CLICK),
            (ActionKind.INPUT, ActionKind.INPUT),
            (ActionKind.HOVER, ActionKind.CLICK),
        }

    # ==================== 2. Grouping ====================

    def is_form_action(self, record: ActionRecord) -> bool:
        if record.kind not in (ActionKind.INPUT, ActionKind.SELECT, ActionKind.CLICK):
            return False
        element = record.element
        if element is None:
            return False
        return element.tag_name in FORM_TAGS or element.attribute("type") == "submit"

    def group_sequential_actions(self, actions: List[ActionRecord]) -> List[ActionRecord]:
        """Fold contiguous form actions into FormSequence composites"""
        grouped: List[ActionRecord] = []
        group: List[ActionRecord] = []
        group_type: Optional[str] = None

        for action in actions:
            if self.is_form_action(action):
                if group_type != "form":
                    grouped.extend(self._finalize_group(group, group_type))
                    group = []
                    group_type = "form"
                group.append(action)
            elif action.kind == ActionKind.NAVIGATION:
                grouped.extend(self._finalize_group(group, group_type))
                grouped.append(action)
                group = []
                group_type = None
            else:
                if group_type and group_type != "general":
                    grouped.extend(self._finalize_group(group, group_type))
                    group = []
                group.append(action)
                group_type = "general"

        grouped.extend(self._finalize_group(group, group_type))
        return grouped

    def _finalize_group(self, group: List[ActionRecord], group_type: Optional[str]) -> List[ActionRecord]:
        if group_type == "form" and len(group) > 1:
            return [FormSequence(
                timestamp=group[0].timestamp,
                page_url=group[0].page_url,
                actions=tuple(group),
                description=self.describe_form(group),
            )]
        return list(group)

    def describe_form(self, actions: Sequence[ActionRecord]) -> str:
        field_count = sum(1 for a in actions if a.kind in (ActionKind.INPUT, ActionKind.SELECT))
        has_submit = any(a.kind == ActionKind.CLICK and is_submit_control(a.element) for a in actions)

        description = f"Fill form with {field_count} field{'s' if field_count != 1 else ''}"
        if has_submit:
            description += " and submit"
        return description

    # ==================== 3. Waits ====================

    def insert_wait_strategies(self, actions: List[ActionRecord]) -> List[ActionRecord]:
        """Insert at most one synthetic wait after each action"""
        with_waits: List[ActionRecord] = []
        for i, current in enumerate(actions):
            following = actions[i + 1] if i + 1 < len(actions) else None
            with_waits.append(current)
            wait = self.determine_wait_strategy(current, following)
            if wait is not None:
                with_waits.append(wait)
        return with_waits

    def determine_wait_strategy(
        self,
        current: ActionRecord,
        following: Optional[ActionRecord]
    ) -> Optional[WaitAction]:
        """
        Pick the wait (if any) that should follow current.

        Navigation, submit clicks and API calls get a wait even at the end of
        the log; the other rules look at the following action.
        """
        effective = current
        end_timestamp = current.timestamp
        if isinstance(current, FormSequence):
            ordered = ordered_form_actions(current)
            effective = ordered[-1] if ordered else current
            end_timestamp = current.end_timestamp

        def wait(strategy: WaitStrategy, timeout: int, target: Optional[str] = None,
                 url: Optional[str] = None) -> WaitAction:
            return WaitAction(
                timestamp=end_timestamp + 1,
                page_url=current.page_url,
                strategy=strategy,
                timeout_ms=timeout,
                target=target,
                url=url,
            )

        if current.kind == ActionKind.NAVIGATION:
            return wait(WaitStrategy.NETWORK_IDLE, NAVIGATION_SETTLE_TIMEOUT_MS)

        if effective.kind == ActionKind.CLICK:
            if following is not None:
                if following.kind == ActionKind.NAVIGATION:
                    return wait(WaitStrategy.NAVIGATION, NAVIGATION_WAIT_TIMEOUT_MS)

                delta = following.timestamp - end_timestamp
                next_selector = self._leading_selector(following)
                if delta > self.options.min_wait_ms and next_selector:
                    return wait(
                        WaitStrategy.VISIBLE,
                        min(delta * 2, self.options.max_wait_ms),
                        target=next_selector,
                    )

            if is_submit_control(effective.element):
                return wait(WaitStrategy.NETWORK_IDLE, SUBMIT_SETTLE_TIMEOUT_MS)

        if isinstance(current, ApiCallAction):
            return wait(WaitStrategy.RESPONSE, RESPONSE_TIMEOUT_MS, url=current.url)

        return None

    def _leading_selector(self, record: ActionRecord) -> Optional[str]:
        if isinstance(record, FormSequence):
            ordered = ordered_form_actions(record)
            return ordered[0].primary_selector if ordered else None
        return record.primary_selector

    # ==================== 4. Form reordering ====================

    def reorder_form_sequences(self, actions: List[ActionRecord]) -> List[ActionRecord]:
        return [
            replace(a, actions=tuple(ordered_form_actions(a))) if isinstance(a, FormSequence) else a
            for a in actions
        ]

    # ==================== 5. Navigation look-ahead ====================

    def annotate_navigation(self, actions: List[ActionRecord]) -> List[ActionRecord]:
        """Attach the selectors the next few actions expect on the new page"""
        annotated = []
        for i, action in enumerate(actions):
            if isinstance(action, NavigationAction):
                expected = self._expected_selectors(actions[i + 1:])
                annotated.append(replace(action, expected_selectors=tuple(expected)))
            else:
                annotated.append(action)
        return annotated

    def _expected_selectors(self, following: List[ActionRecord]) -> List[str]:
        selectors: List[str] = []
        for action in following:
            if action.kind == ActionKind.NAVIGATION:
                break
            if isinstance(action, WaitAction):
                continue
            members = ordered_form_actions(action) if isinstance(action, FormSequence) else [action]
            for member in members:
                selector = member.primary_selector
                if selector and selector not in selectors:
                    selectors.append(selector)
                if len(selectors) >= self.options.navigation_lookahead:
                    return selectors
        return selectors

    # ==================== 6. Collapse ====================

    def collapse_navigation_waits(self, actions: List[ActionRecord]) -> List[ActionRecord]:
        """Fold the network-idle wait that follows a navigation into it"""
        collapsed: List[ActionRecord] = []
        skip_next = False
        for i, action in enumerate(actions):
            if skip_next:
                skip_next = False
                continue
            following = actions[i + 1] if i + 1 < len(actions) else None
            if (isinstance(action, NavigationAction) and isinstance(following, WaitAction)
                    and following.strategy == WaitStrategy.NETWORK_IDLE):
                collapsed.append(replace(action, settle_wait=following))
                skip_next = True
            else:
                collapsed.append(action)
        return collapsed

    # ==================== 7. Test steps ====================

    def convert_to_test_steps(self, actions: List[ActionRecord]) -> List[TestStep]:
        return [
            TestStep(
                index=i + 1,
                kind=action.kind,
                description=self.describe_step(action),
                code=self.step_code(action),
                data=self.extract_step_data(action),
                assertions=self.generate_assertions(action),
                selector=action.primary_selector,
                timestamp=action.timestamp,
            )
            for i, action in enumerate(actions)
        ]

    def describe_step(self, action: ActionRecord) -> str:
        element = action.element
        if isinstance(action, NavigationAction):
            return f"Navigate to {action.url}"
        if isinstance(action, ClickAction):
            if element and element.text_content:
                return f'Click "{element.text_content[:30]}"'
            return f"Click {element.tag_name if element else 'element'}"
        if isinstance(action, InputAction):
            return f"Enter text in {field_name(action)}"
        if isinstance(action, SelectAction):
            return f"Select option in {field_name(action, 'dropdown')}"
        if isinstance(action, HoverAction):
            return f"Hover over {element.tag_name if element else 'element'}"
        if isinstance(action, KeypressAction):
            return f"Press {action.key} key"
        if isinstance(action, SubmitAction):
            return "Submit form"
        if isinstance(action, WaitAction):
            target = action.target or action.url
            return f"Wait for {action.strategy.value}" + (f" ({target})" if target else "")
        if isinstance(action, FormSequence):
            return action.description or "Fill and submit form"
        if isinstance(action, ApiCallAction):
            return f"API call to {action.method} {action.url}"
        return f"Perform {action.kind.value}"

    def step_code(self, action: ActionRecord) -> str:
        """Replay code for an action against a Playwright `page`"""
        locator = f"page.locator({quote(action.primary_selector)})"

        if isinstance(action, NavigationAction):
            code = f"await page.goto({quote(action.url)})"
            if action.settle_wait is not None:
                code += "\n" + self.wait_code(action.settle_wait)
            return code
        if isinstance(action, FormSequence):
            return "\n".join(self.step_code(a) for a in action.actions)
        if isinstance(action, WaitAction):
            return self.wait_code(action)
        if isinstance(action, KeypressAction):
            return f"await page.keyboard.press({quote(action.key)})"
        if isinstance(action, ApiCallAction):
            return f"# {action.method} {action.url}"

        if action.primary_selector is None:
            return f"# {action.kind.value} on an element without a selector"

        if isinstance(action, ClickAction):
            return f"await {locator}.click()"
        if isinstance(action, InputAction):
            return f"await {locator}.fill({quote(action.value)})"
        if isinstance(action, SelectAction):
            return f"await {locator}.select_option({quote(action.value)})"
        if isinstance(action, HoverAction):
            return f"await {locator}.hover()"
        if isinstance(action, SubmitAction):
            # Replaying the triggering click or key press submits the form
            return f"# form submitted: {action.primary_selector}"
        return f"# {action.kind.value} action"

    def wait_code(self, wait: WaitAction) -> str:
        if wait.strategy == WaitStrategy.VISIBLE:
            return (
                f"await page.locator({quote(wait.target)})"
                f'.wait_for(state="visible", timeout={wait.timeout_ms})'
            )
        if wait.strategy == WaitStrategy.NETWORK_IDLE:
            return f'await page.wait_for_load_state("networkidle", timeout={wait.timeout_ms})'
        if wait.strategy == WaitStrategy.NAVIGATION:
            return f'await page.wait_for_url("**", timeout={wait.timeout_ms})'
        if wait.strategy == WaitStrategy.RESPONSE:
            return (
                f'await page.wait_for_event("response", '
                f"lambda response: response.url == {quote(wait.url)}, timeout={wait.timeout_ms})"
            )
        return f"await page.wait_for_timeout({wait.timeout_ms})"

    def extract_step_data(self, action: ActionRecord) -> Optional[Dict[str, Any]]:
        data: Dict[str, Any] = {}

        if isinstance(action, InputAction) and action.value:
            data["input_value"] = action.value
        if isinstance(action, SelectAction) and action.value:
            data["option_value"] = action.value
        if isinstance(action, FormSequence):
            fields = {
                field_name(a): a.value
                for a in action.actions
                if isinstance(a, (InputAction, SelectAction))
            }
            if fields:
                data["fields"] = fields
        if action.element is not None:
            data["element_text"] = action.element.text_content
            data["element_type"] = action.element.tag_name

        return data or None

    def generate_assertions(self, action: ActionRecord) -> List[Assertion]:
        assertions: List[Assertion] = []

        if isinstance(action, NavigationAction):
            assertions.append(Assertion(
                kind="url",
                description="Verify page URL",
                code=f"await expect(page).to_have_url({quote(action.url)})",
            ))
            for selector in action.expected_selectors:
                assertions.append(Assertion(
                    kind="visibility",
                    description=f"Verify {selector} is visible",
                    code=f"await expect(page.locator({quote(selector)})).to_be_visible()",
                ))

        elif isinstance(action, ClickAction):
            if action.element and action.element.tag_name == "button" and is_submit_control(action.element):
                assertions.append(Assertion(
                    kind="form_submission",
                    description="Verify form submission",
                    code="# Verify form submission was successful",
                ))

        elif isinstance(action, (InputAction, SelectAction)):
            if action.primary_selector:
                assertions.append(self._value_assertion(action))

        elif isinstance(action, FormSequence):
            for member in action.actions:
                if isinstance(member, (InputAction, SelectAction)) and member.primary_selector:
                    assertions.append(self._value_assertion(member))

        return assertions

    def _value_assertion(self, action: ActionRecord) -> Assertion:
        return Assertion(
            kind="input_value",
            description=f"Verify value of {field_name(action)}",
            code=(
                f"await expect(page.locator({quote(action.primary_selector)}))"
                f".to_have_value({quote(getattr(action, 'value', ''))})"
            ),
        )
