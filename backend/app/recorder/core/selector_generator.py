"""
Selector Generator

Turns an element touched during recording into a stable, uniquely
identifying Playwright locator string.

Strategy Order (first validated candidate wins):
1. Preferred attribute (data-testid, data-test, data-cy, id)
2. Stable id
3. Label association (form controls)
4. Name attribute (input/select/textarea)
5. ARIA role, optionally combined with text
6. Visible text
7. Placeholder
8. Shadow DOM path / table cell / list item
9. CSS tag + stable classes
10. XPath

Validation: a candidate is accepted only when it resolves to exactly one
element on the live page and that element is the original one. When every
candidate is rejected a positional composite selector is returned marked
as unvalidated.
"""

import logging
import re
from enum import Enum
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Any, Optional, Callable, Awaitable

from .element_descriptor import ElementDescriptor, ElementDescriptorExtractor, BoundingBox
from .selector_patterns import (
    is_stable_id,
    stable_classes,
    NAMED_FIELD_TAGS,
    SEMANTIC_TEXT_TAGS,
    PLACEHOLDER_TAGS,
    FORM_CONTROL_TAGS,
)

# Configure logging
logger = logging.getLogger(__name__)

CONFIG_VERSION = "1.0.0"


class SelectorKind(Enum):
    """Kinds of locator the generator can produce"""
    DATA_ATTRIBUTE = "data-attribute"
    ID = "id"
    NAME = "name"
    ROLE = "role"
    ROLE_TEXT = "role-text"
    TEXT = "text"
    PLACEHOLDER = "placeholder"
    CSS = "css"
    XPATH = "xpath"
    COMPOSITE = "composite"
    LABEL_ASSOCIATION = "label-association"
    TABLE_CELL = "table-cell"
    TABLE_TEXT = "table-text"
    LIST_ITEM = "list-item"
    SHADOW_DOM = "shadow-dom"
    RELATIVE = "relative"
    CONTEXTUAL = "contextual"


@dataclass
class SelectorResult:
    """A locator plus its confidence and fallback alternatives"""
    primary: str
    kind: SelectorKind
    confidence: float
    fallbacks: List["SelectorResult"] = field(default_factory=list)
    # False only for the last-resort composite and the error fallback
    validated: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary": self.primary,
            "kind": self.kind.value,
            "confidence": self.confidence,
            "validated": self.validated,
            "fallbacks": [f.to_dict() for f in self.fallbacks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SelectorResult":
        return cls(
            primary=data["primary"],
            kind=SelectorKind(data.get("kind", "css")),
            confidence=float(data.get("confidence", 0.0)),
            fallbacks=[cls.from_dict(f) for f in data.get("fallbacks", [])],
            validated=data.get("validated", True),
        )


@dataclass
class SelectorCandidate:
    """An unvalidated selector proposal"""
    selector: str
    kind: SelectorKind
    confidence: float

    def to_result(self, fallbacks: Optional[List[SelectorResult]] = None) -> SelectorResult:
        return SelectorResult(
            primary=self.selector,
            kind=self.kind,
            confidence=self.confidence,
            fallbacks=fallbacks or [],
        )


@dataclass
class SelectorOptions:
    """Configuration for selector generation"""
    preferred_attributes: List[str] = field(
        default_factory=lambda: ["data-testid", "data-test", "data-cy", "id"]
    )
    max_text_length: int = 30
    max_fallbacks: int = 2
    use_cache: bool = False


# ==================== In-page helper scripts ====================

IDENTITY_SCRIPT = "([original, found]) => original === found"

INDEX_SCRIPT = """
(el) => {
    const siblings = Array.from(el.parentElement ? el.parentElement.children : []);
    return siblings.indexOf(el);
}
"""

LABEL_SCRIPT = """
(input) => {
    if (input.id) {
        const label = document.querySelector(`label[for="${CSS.escape(input.id)}"]`);
        if (label) return {source: 'for', text: label.textContent.trim()};
    }
    const parentLabel = input.closest('label');
    if (parentLabel) return {source: 'wrap', text: parentLabel.textContent.trim()};
    if (input.getAttribute('aria-label')) {
        return {source: 'aria', text: input.getAttribute('aria-label')};
    }
    const prev = input.previousElementSibling;
    if (prev && ['label', 'span', 'div'].includes(prev.tagName.toLowerCase())) {
        return {source: 'sibling', text: prev.textContent.trim(), siblingTag: prev.tagName.toLowerCase()};
    }
    return null;
}
"""

TABLE_SCRIPT = """
(el) => {
    const cell = el.closest('td, th');
    const table = el.closest('table');
    if (!cell || !table) return null;
    const row = cell.closest('tr');
    const rows = Array.from(table.querySelectorAll('tr'));
    const cells = Array.from(row.querySelectorAll('td, th'));
    return {
        rowIndex: rows.indexOf(row),
        cellIndex: cells.indexOf(cell),
        cellText: cell.textContent.trim(),
        hasHeader: !!table.querySelector('th'),
        isCell: cell === el
    };
}
"""

LIST_SCRIPT = """
(el) => {
    const list = el.closest('ul, ol, [role="list"]');
    const item = el.closest('li, [role="listitem"]');
    if (!list || !item) return null;
    const items = Array.from(list.querySelectorAll('li, [role="listitem"]'));
    return {
        index: items.indexOf(item),
        text: item.textContent.trim(),
        listType: list.tagName.toLowerCase(),
        isItem: item === el
    };
}
"""

SHADOW_SCRIPT = """
(el) => {
    const describe = (node) => {
        let sel = node.tagName.toLowerCase();
        if (node.id) return sel + '#' + CSS.escape(node.id);
        const cls = (typeof node.className === 'string' ? node.className : '').split(/\\s+/).filter(Boolean);
        if (cls.length) sel += '.' + CSS.escape(cls[0]);
        return sel;
    };
    const path = [];
    let current = el;
    while (current) {
        path.unshift(describe(current));
        const root = current.getRootNode();
        if (root instanceof ShadowRoot) {
            current = root.host;
        } else {
            break;
        }
    }
    return path;
}
"""


# ==================== Text helpers ====================

_CSS_IDENT_SAFE = re.compile(r"[A-Za-z0-9_\-]")


def css_escape(value: str) -> str:
    """Escape an identifier for use after '#' or '.' in a CSS selector"""
    escaped = []
    for i, ch in enumerate(value):
        if _CSS_IDENT_SAFE.match(ch) and not (i == 0 and ch.isdigit()):
            escaped.append(ch)
        elif i == 0 and ch.isdigit():
            escaped.append(f"\\{ord(ch):x} ")
        else:
            escaped.append("\\" + ch)
    return "".join(escaped)


def escape_text(text: str) -> str:
    """Escape quotes and newlines for embedding in a quoted selector string"""
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").strip()


def xpath_literal(value: str) -> str:
    """Quote a string for XPath 1.0, which has no escape sequences"""
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    parts = value.split('"')
    return "concat(" + ", '\"', ".join(f'"{part}"' for part in parts) + ")"


def calculate_spatial_relationship(target: BoundingBox, anchor: BoundingBox) -> str:
    """Pick right-of/left-of/below/above from the dominant axis of the delta"""
    delta_x = target.x - anchor.x
    delta_y = target.y - anchor.y

    if abs(delta_x) > abs(delta_y):
        return "right-of" if delta_x > 0 else "left-of"
    return "below" if delta_y > 0 else "above"


def element_key(descriptor: ElementDescriptor) -> str:
    """Cache key built from the element's identifying properties"""
    parts = [
        descriptor.tag_name,
        descriptor.id,
        descriptor.class_name,
        descriptor.text_content[:20],
        str(descriptor.bounding_box.x),
        str(descriptor.bounding_box.y),
    ]
    return "|".join(p for p in parts if p)


Strategy = Callable[[Any, Any, ElementDescriptor], Awaitable[List[SelectorCandidate]]]


class SelectorGenerator:
    """
    Generates validated, confidence-scored selectors for recorded elements.

    Never raises to its caller: evaluation errors degrade to a positional
    XPath selector.
    """

    def __init__(
        self,
        options: Optional[SelectorOptions] = None,
        extractor: Optional[ElementDescriptorExtractor] = None
    ):
        self.options = options or SelectorOptions()
        self.extractor = extractor or ElementDescriptorExtractor()
        self._cache: Dict[str, SelectorResult] = {}

    # ==================== Public API ====================

    async def generate(self, page, element_handle) -> SelectorResult:
        """
        Generate the best selector for an element.

        Args:
            page: Playwright Page the element lives on
            element_handle: ElementHandle captured during recording

        Returns:
            SelectorResult with up to two validated fallbacks
        """
        try:
            descriptor = await self.extractor.extract(element_handle)
            return await self.generate_for(page, element_handle, descriptor)
        except Exception as e:
            logger.warning(f"Selector generation failed, using positional fallback: {e}")
            return await self._positional_fallback(element_handle)

    async def generate_for(
        self,
        page,
        element_handle,
        descriptor: ElementDescriptor
    ) -> SelectorResult:
        """Generate a selector when the descriptor has already been extracted"""
        try:
            key = element_key(descriptor)
            if self.options.use_cache and key in self._cache:
                return self._cache[key]

            result = await self._select(page, element_handle, descriptor)

            if self.options.use_cache and result.validated:
                self._cache[key] = result
            return result
        except Exception as e:
            logger.warning(f"Selector generation failed, using positional fallback: {e}")
            return await self._positional_fallback(element_handle)

    async def validate(self, page, selector: str, element_handle) -> bool:
        """
        Check that a selector resolves to exactly the original element.

        Zero matches, several matches, or any evaluation error reject it.
        """
        matches = []
        try:
            matches = await page.locator(selector).element_handles()
            if len(matches) != 1:
                return False
            return bool(await page.evaluate(IDENTITY_SCRIPT, [element_handle, matches[0]]))
        except Exception as e:
            logger.debug(f"Selector '{selector}' rejected: {e}")
            return False
        finally:
            await self._dispose(matches)

    async def _dispose(self, handles):
        """Release browser-side handles created while validating"""
        for handle in handles:
            try:
                await handle.dispose()
            except Exception as e:
                logger.debug(f"Handle dispose failed: {e}")

    async def generate_multiple_strategies(self, page, element_handle) -> List[SelectorResult]:
        """Return every validated candidate sorted by confidence"""
        try:
            descriptor = await self.extractor.extract(element_handle)
        except Exception as e:
            logger.warning(f"Could not extract element for strategy report: {e}")
            return []

        results: List[SelectorResult] = []
        seen = set()
        for strategy in self._strategy_chain():
            for candidate in await self._run_strategy(strategy, page, element_handle, descriptor):
                if candidate.selector in seen:
                    continue
                seen.add(candidate.selector)
                if await self.validate(page, candidate.selector, element_handle):
                    results.append(candidate.to_result())

        return sorted(results, key=lambda r: r.confidence, reverse=True)

    async def generate_advanced(
        self,
        page,
        element_handle,
        container_selector: Optional[str] = None
    ) -> SelectorResult:
        """
        Context-aware generation: label association for form fields, a
        container-scoped text selector, then table/list addressing.
        Falls back to generate().
        """
        try:
            descriptor = await self.extractor.extract(element_handle)

            if descriptor.tag_name in FORM_CONTROL_TAGS:
                for candidate in await self._label_association(page, element_handle, descriptor):
                    if await self.validate(page, candidate.selector, element_handle):
                        return candidate.to_result()

            if container_selector and descriptor.text_content:
                candidate = SelectorCandidate(
                    selector=(
                        f'{container_selector} {descriptor.tag_name}'
                        f':has-text("{escape_text(descriptor.text_content)}")'
                    ),
                    kind=SelectorKind.CONTEXTUAL,
                    confidence=0.7
                )
                if await self.validate(page, candidate.selector, element_handle):
                    return candidate.to_result()

            for strategy in (self._table_cell, self._list_item):
                for candidate in await strategy(page, element_handle, descriptor):
                    if await self.validate(page, candidate.selector, element_handle):
                        return candidate.to_result()

            return await self.generate_for(page, element_handle, descriptor)
        except Exception as e:
            logger.warning(f"Advanced selector generation failed: {e}")
            return await self._positional_fallback(element_handle)

    async def generate_relative(self, page, element_handle, anchor_handle) -> Optional[SelectorResult]:
        """
        Express an element by its spatial relationship to an anchor element.

        Returns None when the anchor has no validated selector or the
        relative selector does not validate.
        """
        try:
            target = await self.extractor.extract(element_handle)
            anchor = await self.extractor.extract(anchor_handle)

            anchor_result = await self.generate_for(page, anchor_handle, anchor)
            if not anchor_result.validated:
                return None

            relationship = calculate_spatial_relationship(target.bounding_box, anchor.bounding_box)
            selector = f"{target.tag_name}:{relationship}({anchor_result.primary})"

            if await self.validate(page, selector, element_handle):
                return SelectorResult(primary=selector, kind=SelectorKind.RELATIVE, confidence=0.4)
        except Exception as e:
            logger.warning(f"Error generating relative selector: {e}")
        return None

    # ==================== Configuration ====================

    def export_configuration(self) -> Dict[str, Any]:
        return {"version": CONFIG_VERSION, "options": asdict(self.options)}

    def import_configuration(self, config: Dict[str, Any]) -> bool:
        """Merge exported options back in; unknown versions are ignored"""
        if config.get("version") != CONFIG_VERSION:
            logger.warning(f"Ignoring selector configuration version {config.get('version')}")
            return False
        merged = {**asdict(self.options), **(config.get("options") or {})}
        self.options = SelectorOptions(**merged)
        return True

    def clear_cache(self):
        self._cache.clear()

    # ==================== Selection ====================

    def _strategy_chain(self) -> List[Strategy]:
        return [
            self._preferred_attribute,
            self._stable_id,
            self._label_association,
            self._name_attribute,
            self._role,
            self._text,
            self._placeholder,
            self._shadow_dom,
            self._table_cell,
            self._list_item,
            self._css,
            self._xpath,
        ]

    async def _run_strategy(self, strategy: Strategy, page, element_handle, descriptor) -> List[SelectorCandidate]:
        try:
            return await strategy(page, element_handle, descriptor)
        except Exception as e:
            logger.debug(f"Strategy {strategy.__name__} failed: {e}")
            return []

    async def _select(self, page, element_handle, descriptor: ElementDescriptor) -> SelectorResult:
        tried = set()
        for strategy in self._strategy_chain():
            for candidate in await self._run_strategy(strategy, page, element_handle, descriptor):
                if candidate.selector in tried:
                    continue
                tried.add(candidate.selector)
                if await self.validate(page, candidate.selector, element_handle):
                    fallbacks = await self._generate_fallbacks(page, element_handle, descriptor, candidate)
                    return candidate.to_result(fallbacks)
                logger.debug(f"Rejected {candidate.kind.value} candidate: {candidate.selector}")

        logger.info(f"No unique selector for <{descriptor.tag_name}>, using composite")
        return self._composite(descriptor)

    async def _generate_fallbacks(
        self,
        page,
        element_handle,
        descriptor: ElementDescriptor,
        primary: SelectorCandidate
    ) -> List[SelectorResult]:
        fallbacks: List[SelectorResult] = []
        seen = {primary.selector}

        for strategy in (self._xpath, self._css, self._text):
            if len(fallbacks) >= self.options.max_fallbacks:
                break
            for candidate in await self._run_strategy(strategy, page, element_handle, descriptor):
                if candidate.selector in seen:
                    continue
                seen.add(candidate.selector)
                if await self.validate(page, candidate.selector, element_handle):
                    fallbacks.append(candidate.to_result())
                    break

        return fallbacks

    def _composite(self, descriptor: ElementDescriptor) -> SelectorResult:
        """Last resort: tag + type + name + nth-of-type, returned unvalidated"""
        parts = [descriptor.tag_name or "*"]
        if descriptor.input_type:
            parts.append(f'[type="{escape_text(descriptor.input_type)}"]')
        if descriptor.name:
            parts.append(f'[name="{escape_text(descriptor.name)}"]')
        selector = "".join(parts) + f":nth-of-type({descriptor.sibling_index + 1})"

        return SelectorResult(
            primary=selector,
            kind=SelectorKind.COMPOSITE,
            confidence=0.2,
            validated=False
        )

    async def _positional_fallback(self, element_handle) -> SelectorResult:
        try:
            index = int(await element_handle.evaluate(INDEX_SCRIPT))
        except Exception:
            index = 0
        return SelectorResult(
            primary=f"xpath=//body//*[position()={max(index, 0) + 1}]",
            kind=SelectorKind.XPATH,
            confidence=0.1,
            validated=False
        )

    # ==================== Strategies ====================

    async def _preferred_attribute(self, page, element_handle, d: ElementDescriptor) -> List[SelectorCandidate]:
        for attr in self.options.preferred_attributes:
            value = d.attribute(attr)
            if not value:
                continue
            if attr == "id":
                if is_stable_id(value):
                    return [SelectorCandidate(f"#{css_escape(value)}", SelectorKind.ID, 0.8)]
                continue
            return [SelectorCandidate(f'[{attr}="{escape_text(value)}"]', SelectorKind.DATA_ATTRIBUTE, 0.9)]
        return []

    async def _stable_id(self, page, element_handle, d: ElementDescriptor) -> List[SelectorCandidate]:
        if d.id and is_stable_id(d.id):
            return [SelectorCandidate(f"#{css_escape(d.id)}", SelectorKind.ID, 0.8)]
        return []

    async def _label_association(self, page, element_handle, d: ElementDescriptor) -> List[SelectorCandidate]:
        if d.tag_name not in FORM_CONTROL_TAGS:
            return []

        label = await element_handle.evaluate(LABEL_SCRIPT)
        if not label or not label.get("text"):
            return []

        text = escape_text(label["text"])
        tag = d.tag_name
        source = label.get("source")

        if source == "wrap":
            selector = f'label:has-text("{text}") >> {tag}'
        elif source == "aria":
            selector = f'{tag}[aria-label="{text}"]'
        elif source == "sibling":
            selector = f'{label.get("siblingTag", "label")}:has-text("{text}") + {tag}'
        else:
            selector = f'{tag}:near(:text("{text}"))'

        return [SelectorCandidate(selector, SelectorKind.LABEL_ASSOCIATION, 0.85)]

    async def _name_attribute(self, page, element_handle, d: ElementDescriptor) -> List[SelectorCandidate]:
        if d.name and d.tag_name in NAMED_FIELD_TAGS:
            return [SelectorCandidate(f'{d.tag_name}[name="{escape_text(d.name)}"]', SelectorKind.NAME, 0.7)]
        return []

    async def _role(self, page, element_handle, d: ElementDescriptor) -> List[SelectorCandidate]:
        if not d.role:
            return []

        base = f'[role="{escape_text(d.role)}"]'
        candidates = []
        if d.aria_label:
            candidates.append(SelectorCandidate(
                f'{base}[aria-label="{escape_text(d.aria_label)}"]', SelectorKind.ROLE, 0.6
            ))
        if d.text_content and len(d.text_content) <= self.options.max_text_length:
            candidates.append(SelectorCandidate(
                f'{base}:has-text("{escape_text(d.text_content)}")', SelectorKind.ROLE_TEXT, 0.75
            ))
        if not candidates:
            candidates.append(SelectorCandidate(base, SelectorKind.ROLE, 0.6))
        return candidates

    async def _text(self, page, element_handle, d: ElementDescriptor) -> List[SelectorCandidate]:
        text = d.text_content or d.value
        if not text or len(text) > self.options.max_text_length:
            return []

        if d.tag_name in SEMANTIC_TEXT_TAGS:
            return [SelectorCandidate(f'{d.tag_name}:has-text("{escape_text(text)}")', SelectorKind.TEXT, 0.65)]
        return [SelectorCandidate(f':has-text("{escape_text(text)}")', SelectorKind.TEXT, 0.5)]

    async def _placeholder(self, page, element_handle, d: ElementDescriptor) -> List[SelectorCandidate]:
        if d.placeholder and d.tag_name in PLACEHOLDER_TAGS:
            return [SelectorCandidate(
                f'{d.tag_name}[placeholder="{escape_text(d.placeholder)}"]', SelectorKind.PLACEHOLDER, 0.6
            )]
        return []

    async def _shadow_dom(self, page, element_handle, d: ElementDescriptor) -> List[SelectorCandidate]:
        if not d.in_shadow_root:
            return []
        path = await element_handle.evaluate(SHADOW_SCRIPT)
        if not path:
            return []
        return [SelectorCandidate(" >> ".join(path), SelectorKind.SHADOW_DOM, 0.6)]

    async def _table_cell(self, page, element_handle, d: ElementDescriptor) -> List[SelectorCandidate]:
        if not d.in_table:
            return []
        cell = await element_handle.evaluate(TABLE_SCRIPT)
        if not cell:
            return []

        suffix = "" if cell.get("isCell", True) else f" >> {d.tag_name}"
        if cell.get("hasHeader"):
            selector = (
                f"table >> tr >> nth={cell['rowIndex']} >> "
                f"td, th >> nth={cell['cellIndex']}{suffix}"
            )
            return [SelectorCandidate(selector, SelectorKind.TABLE_CELL, 0.6)]

        if cell.get("cellText"):
            selector = f'table >> :text("{escape_text(cell["cellText"])}"){suffix}'
            return [SelectorCandidate(selector, SelectorKind.TABLE_TEXT, 0.5)]
        return []

    async def _list_item(self, page, element_handle, d: ElementDescriptor) -> List[SelectorCandidate]:
        if not d.in_list:
            return []
        item = await element_handle.evaluate(LIST_SCRIPT)
        if not item or item.get("index", -1) < 0:
            return []

        suffix = "" if item.get("isItem", True) else f" >> {d.tag_name}"
        selector = f"{item.get('listType', 'ul')} >> li:nth-child({item['index'] + 1}){suffix}"
        return [SelectorCandidate(selector, SelectorKind.LIST_ITEM, 0.5)]

    async def _css(self, page, element_handle, d: ElementDescriptor) -> List[SelectorCandidate]:
        if not d.tag_name:
            return []
        parts = [d.tag_name]
        classes = stable_classes(d.classes)
        if classes:
            parts.append("." + ".".join(css_escape(c) for c in classes))
        if d.input_type and d.tag_name == "input":
            parts.append(f'[type="{escape_text(d.input_type)}"]')
        return [SelectorCandidate("".join(parts), SelectorKind.CSS, 0.4)]

    async def _xpath(self, page, element_handle, d: ElementDescriptor) -> List[SelectorCandidate]:
        if not d.tag_name:
            return []
        conditions = []
        if d.id and is_stable_id(d.id):
            conditions.append(f"@id={xpath_literal(d.id)}")
        classes = stable_classes(d.classes)
        if classes:
            conditions.append(f"contains(@class, {xpath_literal(classes[0])})")
        if d.text_content and len(d.text_content) <= self.options.max_text_length:
            conditions.append(f"contains(text(), {xpath_literal(d.text_content)})")

        xpath = f"//{d.tag_name}"
        if conditions:
            xpath += f"[{' and '.join(conditions)}]"
        return [SelectorCandidate(f"xpath={xpath}", SelectorKind.XPATH, 0.3)]
