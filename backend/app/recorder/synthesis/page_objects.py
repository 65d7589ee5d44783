"""
Page-Object Synthesizer

Groups recorded actions by the page they happened on and turns each page
into a Page-Object Descriptor: deduplicated element bindings plus methods
inferred from the recorded action patterns.

Grouping happens incrementally while recording (PageObjectAccumulator);
method inference and merging run once, when generation is requested.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Sequence, Tuple, Iterable

from ..core.naming import page_key, to_camel_case, to_pascal_case, python_identifier
from ..core.element_descriptor import ElementDescriptor
from ..capture.actions import (
    ActionRecord,
    ActionKind,
    NavigationAction,
    ClickAction,
    InputAction,
    SelectAction,
    HoverAction,
    KeypressAction,
    SubmitAction,
    ApiCallAction,
    is_submit_control,
)
from ..core.selector_generator import SelectorResult
from .action_parser import ActionParser, field_name, quote

# Configure logging
logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.7

# Attribute names the generated page-object class already uses
RESERVED_BINDING_NAMES = {"page", "url"}

TAG_LABELS = {
    "input": "Input",
    "button": "Button",
    "a": "Link",
    "select": "Select",
    "textarea": "TextArea",
}


@dataclass
class ElementBinding:
    """A named locator on a page object"""
    name: str
    selector: SelectorResult
    tag: str
    description: str

    @property
    def attribute(self) -> str:
        return python_identifier(self.name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "selector": self.selector.to_dict(),
            "tag": self.tag,
            "description": self.description,
        }


@dataclass
class MethodParameter:
    name: str
    type: str = "str"
    description: str = ""
    default: Optional[str] = None

    @property
    def identifier(self) -> str:
        name = python_identifier(self.name, "value")
        return "self_value" if name == "self" else name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "default": self.default,
        }


@dataclass
class PageObjectMethod:
    name: str
    parameters: List[MethodParameter] = field(default_factory=list)
    body: List[str] = field(default_factory=list)
    description: str = ""
    action_count: int = 0
    # Replay operations are always asynchronous
    is_async: bool = True

    @property
    def identifier(self) -> str:
        return python_identifier(self.name, "perform")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "parameters": [p.to_dict() for p in self.parameters],
            "body": list(self.body),
            "description": self.description,
            "action_count": self.action_count,
            "is_async": self.is_async,
        }


@dataclass
class PageObjectDescriptor:
    name: str
    url: str
    elements: Dict[str, ElementBinding] = field(default_factory=dict)
    methods: List[PageObjectMethod] = field(default_factory=list)

    def method(self, name: str) -> Optional[PageObjectMethod]:
        return next((m for m in self.methods if m.name == name), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "elements": {k: v.to_dict() for k, v in self.elements.items()},
            "methods": [m.to_dict() for m in self.methods],
        }


@dataclass
class PageAccumulation:
    """Partial page object built while recording"""
    name: str
    url: str
    elements: Dict[str, ElementBinding] = field(default_factory=dict)
    element_keys: Dict[Tuple[str, str], str] = field(default_factory=dict)
    actions: List[ActionRecord] = field(default_factory=list)


# ==================== Element naming ====================

def element_name(element: ElementDescriptor, kind: ActionKind, counter: int) -> str:
    """Meaningful camelCase name for a recorded element"""
    for source in (element.id, element.attribute("name"), element.attribute("data-testid")):
        name = to_camel_case(source)
        if name:
            return name

    if element.tag_name in ("button", "a") and element.text_content:
        text = to_camel_case(element.text_content)
        if text:
            return text + TAG_LABELS[element.tag_name]

    label = TAG_LABELS.get(element.tag_name, "Element")
    prefix = "clickable" if kind == ActionKind.CLICK else ""
    name = f"{prefix}{label}{counter}"
    return name[:1].lower() + name[1:]


def element_description(element: ElementDescriptor, kind: ActionKind) -> str:
    if element.text_content:
        return f'{kind.value.capitalize()} "{element.text_content[:30]}"'
    if element.placeholder:
        return f'{element.tag_name.capitalize()} with placeholder "{element.placeholder}"'
    return f"{element.tag_name.capitalize()} element"


class PageObjectAccumulator:
    """
    Running map of page key to partial page object.

    Fed one action record at a time, in recorded order.
    """

    def __init__(self, start_url: str = ""):
        self.pages: Dict[str, PageAccumulation] = {}
        self._current_url = start_url
        self._counter = 0

    def add(self, record: ActionRecord) -> PageAccumulation:
        if isinstance(record, NavigationAction):
            self._current_url = record.url
            url = record.url
        else:
            url = record.page_url or self._current_url

        name = page_key(url)
        page = self.pages.get(name)
        if page is None:
            page = PageAccumulation(name=name, url=url)
            self.pages[name] = page

        if record.selector is not None and record.element is not None:
            self._bind_element(page, record)

        page.actions.append(record)
        return page

    def extend(self, records: Iterable[ActionRecord]) -> "PageObjectAccumulator":
        for record in records:
            self.add(record)
        return self

    def _bind_element(self, page: PageAccumulation, record: ActionRecord):
        key = (record.selector.primary, record.element.tag_name)
        if key in page.element_keys:
            return

        self._counter += 1
        name = element_name(record.element, record.kind, self._counter)
        if name in RESERVED_BINDING_NAMES:
            name = f"{name}Element"
        base, suffix = name, 2
        while name in page.elements:
            name = f"{base}{suffix}"
            suffix += 1

        page.elements[name] = ElementBinding(
            name=name,
            selector=record.selector,
            tag=record.element.tag_name,
            description=element_description(record.element, record.kind),
        )
        page.element_keys[key] = name


# ==================== Method similarity ====================

def body_tokens(body: Sequence[str]) -> set:
    return set("\n".join(body).lower().split())


def jaccard_similarity(a: Sequence[str], b: Sequence[str]) -> float:
    tokens_a, tokens_b = body_tokens(a), body_tokens(b)
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def base_method_name(name: str) -> str:
    """Strip trailing digits and Button/Link/Field suffixes"""
    stripped = re.sub(r"\d+$", "", name)
    return re.sub(r"(Button|Link|Field)$", "", stripped) or stripped


class PageObjectSynthesizer:
    """Builds Page-Object Descriptors from accumulated page actions"""

    def __init__(
        self,
        parser: Optional[ActionParser] = None,
        similarity_threshold: float = SIMILARITY_THRESHOLD
    ):
        self.parser = parser or ActionParser()
        self.similarity_threshold = similarity_threshold

    def synthesize(self, accumulator: PageObjectAccumulator) -> List[PageObjectDescriptor]:
        descriptors = [self.build_page(page) for page in accumulator.pages.values()]
        logger.info(f"Synthesized {len(descriptors)} page objects")
        return descriptors

    def synthesize_records(
        self,
        records: Sequence[ActionRecord],
        start_url: str = ""
    ) -> List[PageObjectDescriptor]:
        """Group a complete action log and synthesize it in one pass"""
        return self.synthesize(PageObjectAccumulator(start_url).extend(records))

    def build_page(self, page: PageAccumulation) -> PageObjectDescriptor:
        methods = self.generate_methods(page)
        methods = self.merge_by_base_name(methods)
        methods = self.merge_similar(methods)

        # Instance attributes would shadow methods of the same name
        attributes = {binding.attribute for binding in page.elements.values()}
        for method in methods:
            if method.identifier in attributes:
                method.name = f"{method.name}Action"

        return PageObjectDescriptor(
            name=page.name,
            url=page.url,
            elements=dict(page.elements),
            methods=methods,
        )

    # ==================== Method inference ====================

    def infer_method_name(self, record: ActionRecord) -> str:
        if record.kind == ActionKind.NAVIGATION:
            return "navigateToPage"

        if isinstance(record, ClickAction) and record.element is not None:
            if is_submit_control(record.element):
                return "submitForm"
            text = to_pascal_case(record.element.text_content)
            if text:
                return f"click{text}"

        if isinstance(record, InputAction):
            return f"enter{to_pascal_case(field_name(record)) or 'Field'}"
        if isinstance(record, SelectAction):
            return f"select{to_pascal_case(field_name(record)) or 'Field'}"

        return f"perform{to_pascal_case(record.kind.value)}"

    def generate_methods(self, page: PageAccumulation) -> List[PageObjectMethod]:
        groups: Dict[str, List[ActionRecord]] = {}
        for record in page.actions:
            groups.setdefault(self.infer_method_name(record), []).append(record)

        return [self.create_method(name, records, page) for name, records in groups.items()]

    def create_method(
        self,
        name: str,
        records: List[ActionRecord],
        page: PageAccumulation
    ) -> PageObjectMethod:
        parameters = self.generate_parameters(records)
        body = [self.method_statement(record, page) for record in records]
        return PageObjectMethod(
            name=name,
            parameters=parameters,
            body=body,
            description=self.describe_method(records),
            action_count=len(records),
        )

    def generate_parameters(self, records: Sequence[ActionRecord]) -> List[MethodParameter]:
        params: List[MethodParameter] = []
        seen = set()
        for record in records:
            if isinstance(record, InputAction) and record.value:
                param = MethodParameter(
                    name=self.parameter_name(record),
                    description=f"Text to enter in {field_name(record)}",
                    default=record.value,
                )
            elif isinstance(record, SelectAction) and record.value:
                param = MethodParameter(
                    name=self.parameter_name(record, "option"),
                    description="Option to select",
                    default=record.value,
                )
            else:
                continue
            if param.name not in seen:
                seen.add(param.name)
                params.append(param)
        return params

    def parameter_name(self, record: ActionRecord, suffix: str = "") -> str:
        source = field_name(record, "")
        if source:
            return to_camel_case(f"{source} {suffix}")
        return f"value{suffix.capitalize()}"

    def method_statement(self, record: ActionRecord, page: PageAccumulation) -> str:
        """One replay statement using the page object's bindings"""
        if isinstance(record, NavigationAction):
            return f"await self.page.goto({quote(record.url)})"
        if isinstance(record, KeypressAction):
            return f"await self.page.keyboard.press({quote(record.key)})"
        if isinstance(record, ApiCallAction):
            return f"# {record.method} {record.url}"

        locator = self._locator_expression(record, page)
        if locator is None:
            return f"# {record.kind.value} on an element without a selector"

        if isinstance(record, ClickAction):
            return f"await {locator}.click()"
        if isinstance(record, InputAction):
            param = MethodParameter(self.parameter_name(record)).identifier
            return f"await {locator}.fill({param})" if record.value else f'await {locator}.fill("")'
        if isinstance(record, SelectAction):
            param = MethodParameter(self.parameter_name(record, "option")).identifier
            return f"await {locator}.select_option({param})"
        if isinstance(record, HoverAction):
            return f"await {locator}.hover()"
        if isinstance(record, SubmitAction):
            return f'await {locator}.evaluate("form => form.requestSubmit()")'
        return f"# {record.kind.value} action"

    def _locator_expression(self, record: ActionRecord, page: PageAccumulation) -> Optional[str]:
        if record.selector is None:
            return None
        if record.element is not None:
            name = page.element_keys.get((record.selector.primary, record.element.tag_name))
            if name:
                return f"self.{page.elements[name].attribute}"
        return f"self.page.locator({quote(record.selector.primary)})"

    def describe_method(self, records: Sequence[ActionRecord]) -> str:
        if len(records) == 1:
            return self.parser.describe_step(records[0])
        kinds = list(dict.fromkeys(r.kind.value for r in records))
        return f"Performs {', '.join(kinds)} actions ({len(records)} steps)"

    # ==================== Merging ====================

    def merge_by_base_name(self, methods: List[PageObjectMethod]) -> List[PageObjectMethod]:
        """Merge methods whose names differ only by digits or Button/Link/Field suffixes"""
        by_base: Dict[str, List[PageObjectMethod]] = {}
        for method in methods:
            by_base.setdefault(base_method_name(method.name), []).append(method)

        merged = []
        for base, group in by_base.items():
            if len(group) == 1:
                merged.append(group[0])
            else:
                merged.append(self._combine(base, group))
        return merged

    def merge_similar(self, methods: List[PageObjectMethod]) -> List[PageObjectMethod]:
        """
        Merge methods whose bodies share more than the threshold of tokens.

        Heuristic: shared boilerplate tokens count toward the overlap.
        """
        methods = list(methods)
        merged_any = True
        while merged_any:
            merged_any = False
            for i in range(len(methods)):
                for j in range(i + 1, len(methods)):
                    similarity = jaccard_similarity(methods[i].body, methods[j].body)
                    if similarity > self.similarity_threshold:
                        first, second = methods[i], methods[j]
                        name = self._generic_name([first, second], methods)
                        logger.debug(
                            f"Merging similar methods {first.name} and {second.name} "
                            f"({similarity:.2f}) into {name}"
                        )
                        combined = self._combine(name, [first, second])
                        methods = [m for k, m in enumerate(methods) if k not in (i, j)]
                        methods.insert(i, combined)
                        merged_any = True
                        break
                if merged_any:
                    break
        return methods

    def _generic_name(self, group: List[PageObjectMethod], existing: List[PageObjectMethod]) -> str:
        prefixes = []
        for method in group:
            match = re.match(r"^[a-z]+", method.name)
            prefix = match.group(0) if match else "perform"
            if prefix not in prefixes:
                prefixes.append(prefix)
        base = "perform" + "".join(p.capitalize() for p in prefixes) + "Steps"
        taken = {m.name for m in existing if m not in group}
        name, suffix = base, 2
        while name in taken:
            name = f"{base}{suffix}"
            suffix += 1
        return name

    def _combine(self, name: str, group: List[PageObjectMethod]) -> PageObjectMethod:
        parameters: List[MethodParameter] = []
        seen = set()
        body: List[str] = []
        for method in group:
            for param in method.parameters:
                if param.name not in seen:
                    seen.add(param.name)
                    parameters.append(param)
            body.extend(method.body)

        action_count = sum(m.action_count for m in group)
        return PageObjectMethod(
            name=name,
            parameters=parameters,
            body=body,
            description=f"Combines {', '.join(m.name for m in group)} ({action_count} steps)",
            action_count=action_count,
        )
