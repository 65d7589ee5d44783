"""
Element Descriptor

Snapshots the observable state of a DOM element at the moment it is
touched during a recording. Everything downstream (selector generation,
action records, page objects) works from this value object.
"""

import logging
from typing import Dict, List, Any, Optional, Tuple
from dataclasses import dataclass, field

# Configure logging
logger = logging.getLogger(__name__)

# Text content is truncated to this many characters
TEXT_LIMIT = 200


# Runs inside the page with the element as its argument. Must never throw
# for missing data; absent values come back as empty strings.
EXTRACT_SCRIPT = """
(el) => {
    const rect = el.getBoundingClientRect();
    const styles = window.getComputedStyle(el);
    const parent = el.parentElement;
    const attributes = {};
    for (const attr of Array.from(el.attributes || [])) {
        attributes[attr.name] = attr.value;
    }
    const className = typeof el.className === 'string' ? el.className : (el.getAttribute('class') || '');
    const parentClass = parent ? (typeof parent.className === 'string' ? parent.className : (parent.getAttribute('class') || '')) : '';
    return {
        tagName: (el.tagName || '').toLowerCase(),
        id: el.id || '',
        className: className,
        name: el.getAttribute('name') || '',
        type: el.getAttribute('type') || '',
        placeholder: el.getAttribute('placeholder') || '',
        value: el.value || '',
        href: el.getAttribute('href') || '',
        textContent: (el.textContent || '').trim(),
        role: el.getAttribute('role') || '',
        ariaLabel: el.getAttribute('aria-label') || '',
        attributes: attributes,
        parent: {
            tagName: parent ? parent.tagName.toLowerCase() : '',
            className: parentClass,
            id: parent ? (parent.id || '') : ''
        },
        boundingBox: {x: rect.x, y: rect.y, width: rect.width, height: rect.height},
        isVisible: styles.display !== 'none' && styles.visibility !== 'hidden' && rect.width > 0 && rect.height > 0,
        index: parent ? Array.from(parent.children).indexOf(el) : 0,
        inTable: !!el.closest('table'),
        inList: !!el.closest('ul, ol, [role="list"]'),
        inShadowRoot: el.getRootNode() instanceof ShadowRoot
    };
}
"""


@dataclass(frozen=True)
class BoundingBox:
    """Visible bounding box of an element in viewport coordinates"""
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


@dataclass(frozen=True)
class ParentInfo:
    """Tag, class and id of the element's parent"""
    tag_name: str = ""
    class_name: str = ""
    id: str = ""


@dataclass(frozen=True)
class ElementDescriptor:
    """
    Immutable snapshot of a DOM element.

    The attribute map is stored as a sorted tuple of pairs so the
    descriptor stays hashable; use `attributes` for dict access.
    """
    tag_name: str
    id: str = ""
    classes: Tuple[str, ...] = ()
    name: str = ""
    attribute_items: Tuple[Tuple[str, str], ...] = ()
    text_content: str = ""
    bounding_box: BoundingBox = field(default_factory=BoundingBox)
    is_visible: bool = True
    sibling_index: int = 0
    role: str = ""
    aria_label: str = ""
    parent: ParentInfo = field(default_factory=ParentInfo)
    input_type: str = ""
    placeholder: str = ""
    value: str = ""
    href: str = ""
    in_table: bool = False
    in_list: bool = False
    in_shadow_root: bool = False

    @property
    def attributes(self) -> Dict[str, str]:
        return dict(self.attribute_items)

    def attribute(self, name: str) -> str:
        """Get an attribute value, empty string when absent"""
        for key, value in self.attribute_items:
            if key == name:
                return value
        return ""

    @property
    def class_name(self) -> str:
        return " ".join(self.classes)

    @property
    def has_explicit_type(self) -> bool:
        return any(key == "type" for key, _ in self.attribute_items)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ElementDescriptor":
        """
        Build a descriptor from the raw dictionary returned by EXTRACT_SCRIPT.

        Missing keys map to empty values, never to errors.
        """
        data = data or {}
        attributes = {str(k): str(v) for k, v in (data.get("attributes") or {}).items()}
        class_name = data.get("className") or attributes.get("class", "")
        parent = data.get("parent") or {}
        box = data.get("boundingBox") or {}

        return cls(
            tag_name=(data.get("tagName") or "").lower(),
            id=data.get("id") or attributes.get("id", ""),
            classes=tuple(c for c in str(class_name).split() if c),
            name=data.get("name") or attributes.get("name", ""),
            attribute_items=tuple(sorted(attributes.items())),
            text_content=(data.get("textContent") or "").strip()[:TEXT_LIMIT],
            bounding_box=BoundingBox(
                x=float(box.get("x") or 0),
                y=float(box.get("y") or 0),
                width=float(box.get("width") or 0),
                height=float(box.get("height") or 0),
            ),
            is_visible=bool(data.get("isVisible", True)),
            sibling_index=int(data.get("index") or 0),
            role=data.get("role") or attributes.get("role", ""),
            aria_label=data.get("ariaLabel") or attributes.get("aria-label", ""),
            parent=ParentInfo(
                tag_name=(parent.get("tagName") or "").lower(),
                class_name=parent.get("className") or "",
                id=parent.get("id") or "",
            ),
            input_type=data.get("type") or attributes.get("type", ""),
            placeholder=data.get("placeholder") or attributes.get("placeholder", ""),
            value=data.get("value") or "",
            href=data.get("href") or attributes.get("href", ""),
            in_table=bool(data.get("inTable", False)),
            in_list=bool(data.get("inList", False)),
            in_shadow_root=bool(data.get("inShadowRoot", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form used in reports and the API"""
        return {
            "tag_name": self.tag_name,
            "id": self.id,
            "classes": list(self.classes),
            "name": self.name,
            "attributes": self.attributes,
            "text_content": self.text_content,
            "bounding_box": {
                "x": self.bounding_box.x,
                "y": self.bounding_box.y,
                "width": self.bounding_box.width,
                "height": self.bounding_box.height,
            },
            "is_visible": self.is_visible,
            "sibling_index": self.sibling_index,
            "role": self.role,
            "aria_label": self.aria_label,
            "parent": {
                "tag_name": self.parent.tag_name,
                "class_name": self.parent.class_name,
                "id": self.parent.id,
            },
            "input_type": self.input_type,
            "placeholder": self.placeholder,
            "value": self.value,
            "href": self.href,
            "in_table": self.in_table,
            "in_list": self.in_list,
            "in_shadow_root": self.in_shadow_root,
        }

    @classmethod
    def load(cls, data: Dict[str, Any]) -> "ElementDescriptor":
        """Rebuild a descriptor from its to_dict() form"""
        return cls(
            tag_name=data["tag_name"],
            id=data.get("id", ""),
            classes=tuple(data.get("classes") or ()),
            name=data.get("name", ""),
            attribute_items=tuple(sorted((data.get("attributes") or {}).items())),
            text_content=data.get("text_content", ""),
            bounding_box=BoundingBox(**(data.get("bounding_box") or {})),
            is_visible=data.get("is_visible", True),
            sibling_index=data.get("sibling_index", 0),
            role=data.get("role", ""),
            aria_label=data.get("aria_label", ""),
            parent=ParentInfo(**(data.get("parent") or {})),
            input_type=data.get("input_type", ""),
            placeholder=data.get("placeholder", ""),
            value=data.get("value", ""),
            href=data.get("href", ""),
            in_table=data.get("in_table", False),
            in_list=data.get("in_list", False),
            in_shadow_root=data.get("in_shadow_root", False),
        )


def element_descriptor(tag_name: str, **fields: Any) -> ElementDescriptor:
    """
    Convenience constructor taking a plain attribute dict.

    Mostly used in tests; stored descriptors go through ElementDescriptor.load.
    """
    attributes: Dict[str, str] = dict(fields.pop("attributes", {}) or {})
    classes: List[str] = list(fields.pop("classes", []) or [])
    if "id" in fields and fields["id"]:
        attributes.setdefault("id", fields["id"])
    if "name" in fields and fields["name"]:
        attributes.setdefault("name", fields["name"])
    if "input_type" in fields and fields["input_type"]:
        attributes.setdefault("type", fields["input_type"])
    if classes:
        attributes.setdefault("class", " ".join(classes))
    if not fields.get("input_type") and attributes.get("type"):
        fields["input_type"] = attributes["type"]
    return ElementDescriptor(
        tag_name=tag_name.lower(),
        classes=tuple(classes),
        attribute_items=tuple(sorted(attributes.items())),
        **fields
    )


class ElementDescriptorExtractor:
    """Reads an Element Descriptor from a live element handle"""

    async def extract(self, element_handle) -> ElementDescriptor:
        """
        Extract the descriptor for an element.

        Args:
            element_handle: Playwright ElementHandle

        Returns:
            ElementDescriptor snapshot
        """
        raw = await element_handle.evaluate(EXTRACT_SCRIPT)
        return ElementDescriptor.from_dict(raw)

    async def extract_safe(self, element_handle) -> ElementDescriptor:
        """Extract a descriptor, returning an 'unknown' placeholder on failure"""
        try:
            return await self.extract(element_handle)
        except Exception as e:
            logger.warning(f"Could not snapshot element: {e}")
            return ElementDescriptor(tag_name="unknown")
