"""
Action Records

One immutable record per captured user/browser event. Each action kind is
its own dataclass carrying only its relevant fields, so the parser can
dispatch on type.
"""

from enum import Enum
from dataclasses import dataclass, field, fields
from typing import Dict, Any, Iterable, List, Optional, Tuple, ClassVar

from ..core.element_descriptor import ElementDescriptor
from ..core.selector_generator import SelectorResult


class ActionKind(Enum):
    """Types of recordable (and derived) actions"""
    NAVIGATION = "navigation"
    CLICK = "click"
    INPUT = "input"
    SELECT = "select"
    HOVER = "hover"
    KEYPRESS = "keypress"
    SUBMIT = "submit"
    API_CALL = "api_call"
    WAIT = "wait"
    FORM_SEQUENCE = "form_sequence"


class WaitStrategy(Enum):
    """How a synthetic wait decides the page is ready"""
    NETWORK_IDLE = "networkidle"
    NAVIGATION = "navigation"
    VISIBLE = "visible"
    RESPONSE = "response"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ActionRecord:
    """Fields shared by every action kind"""
    timestamp: int
    selector: Optional[SelectorResult] = None
    element: Optional[ElementDescriptor] = None
    # URL of the page the action happened on
    page_url: str = ""

    kind: ClassVar[ActionKind]

    @property
    def primary_selector(self) -> Optional[str]:
        return self.selector.primary if self.selector else None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, (SelectorResult, ElementDescriptor)):
                value = value.to_dict()
            elif isinstance(value, ActionRecord):
                value = value.to_dict()
            elif isinstance(value, Enum):
                value = value.value
            elif isinstance(value, tuple) and value and isinstance(value[0], ActionRecord):
                value = [v.to_dict() for v in value]
            elif isinstance(value, tuple):
                value = list(value)
            data[f.name] = value
        return data


@dataclass(frozen=True)
class WaitAction(ActionRecord):
    """Synthetic wait inserted by the parser"""
    strategy: WaitStrategy = WaitStrategy.TIMEOUT
    timeout_ms: int = 1000
    target: Optional[str] = None
    url: Optional[str] = None
    kind: ClassVar[ActionKind] = ActionKind.WAIT


@dataclass(frozen=True)
class NavigationAction(ActionRecord):
    url: str = ""
    # Filled by the parser's look-ahead pass
    expected_selectors: Tuple[str, ...] = ()
    # Network-idle wait folded into the navigation step
    settle_wait: Optional[WaitAction] = None
    kind: ClassVar[ActionKind] = ActionKind.NAVIGATION


@dataclass(frozen=True)
class ClickAction(ActionRecord):
    coordinates: Optional[Tuple[float, float]] = None
    kind: ClassVar[ActionKind] = ActionKind.CLICK


@dataclass(frozen=True)
class InputAction(ActionRecord):
    value: str = ""
    kind: ClassVar[ActionKind] = ActionKind.INPUT


@dataclass(frozen=True)
class SelectAction(ActionRecord):
    value: str = ""
    kind: ClassVar[ActionKind] = ActionKind.SELECT


@dataclass(frozen=True)
class HoverAction(ActionRecord):
    kind: ClassVar[ActionKind] = ActionKind.HOVER


@dataclass(frozen=True)
class KeypressAction(ActionRecord):
    key: str = ""
    kind: ClassVar[ActionKind] = ActionKind.KEYPRESS


@dataclass(frozen=True)
class SubmitAction(ActionRecord):
    kind: ClassVar[ActionKind] = ActionKind.SUBMIT


@dataclass(frozen=True)
class ApiCallAction(ActionRecord):
    url: str = ""
    method: str = "GET"
    kind: ClassVar[ActionKind] = ActionKind.API_CALL


@dataclass(frozen=True)
class FormSequence(ActionRecord):
    """Composite of contiguous form actions, built by the parser"""
    actions: Tuple[ActionRecord, ...] = field(default_factory=tuple)
    description: str = ""
    kind: ClassVar[ActionKind] = ActionKind.FORM_SEQUENCE

    @property
    def end_timestamp(self) -> int:
        return max((a.timestamp for a in self.actions), default=self.timestamp)


ELEMENT_BOUND_KINDS = {
    ActionKind.CLICK,
    ActionKind.INPUT,
    ActionKind.SELECT,
    ActionKind.HOVER,
    ActionKind.SUBMIT,
}


def is_submit_control(element: Optional[ElementDescriptor]) -> bool:
    """
    An element counts as a submit control when its type is submit, it is
    a button without an explicit type, or its text mentions "submit".
    """
    if element is None:
        return False
    if element.attribute("type").lower() == "submit" or element.input_type.lower() == "submit":
        return True
    if element.tag_name == "button" and not element.has_explicit_type:
        return True
    return "submit" in element.text_content.lower()


RECORD_TYPES = {
    record_type.kind: record_type
    for record_type in (
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
    )
}


def record_from_dict(data: Dict[str, Any]) -> ActionRecord:
    """
    Rebuild an action record from its to_dict() form.

    Raises:
        ValueError: Unknown kind or a field the kind does not carry
        KeyError: A required nested key is missing
    """
    kind = ActionKind(data["kind"])
    record_type = RECORD_TYPES[kind]
    names = {f.name for f in fields(record_type)}
    unknown = set(data) - names - {"kind"}
    if unknown:
        raise ValueError(f"Unexpected fields for {kind.value}: {', '.join(sorted(unknown))}")

    values: Dict[str, Any] = {}
    for name in names & set(data):
        value = data[name]
        if value is None:
            pass
        elif name == "selector":
            value = SelectorResult.from_dict(value)
        elif name == "element":
            value = ElementDescriptor.load(value)
        elif name == "settle_wait":
            value = record_from_dict(value)
        elif name == "strategy":
            value = WaitStrategy(value)
        elif name == "actions":
            value = tuple(record_from_dict(a) for a in value)
        elif name in ("expected_selectors", "coordinates"):
            value = tuple(value)
        values[name] = value
    return record_type(**values)


def load_records(items: Iterable[Dict[str, Any]]) -> List[ActionRecord]:
    """Rebuild a recorded action list, preserving order"""
    return [record_from_dict(item) for item in items]
