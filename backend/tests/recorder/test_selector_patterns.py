"""
Unit tests for selector stability pattern tables and element snapshots.
"""

import pytest
from pathlib import Path
from unittest.mock import AsyncMock
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from recorder.core.selector_patterns import (
    UNSTABLE_ID_PATTERNS,
    UNSTABLE_CLASS_PATTERNS,
    match_rejection,
    is_stable_id,
    stable_classes,
)
from recorder.core.element_descriptor import (
    ElementDescriptor,
    ElementDescriptorExtractor,
    element_descriptor,
    TEXT_LIMIT,
)


class TestIdStability:
    """Test id rejection rules."""

    @pytest.mark.parametrize("element_id,reason", [
        ("a1b2c3d4", "hex digest"),
        ("12345", "pure numeric"),
        ("react-select-3", "framework generated"),
        ("ng-input", "framework generated"),
        ("field_12", "trailing counter"),
        ("generatedField", "generated prefix"),
    ])
    def test_unstable_ids(self, element_id, reason):
        """Test each unstable id reports its rejection reason."""
        assert match_rejection(element_id, UNSTABLE_ID_PATTERNS) == reason
        assert is_stable_id(element_id) is False

    def test_stable_ids(self):
        """Test ordinary ids are stable."""
        assert is_stable_id("login-button") is True
        assert is_stable_id("username") is True

    def test_empty_id_is_not_stable(self):
        """Test an empty id never counts as stable."""
        assert is_stable_id("") is False


class TestClassStability:
    """Test class token filtering."""

    def test_filters_generated_classes(self):
        """Test generated-looking classes are dropped."""
        classes = ["btn", "css-a1b2c3d4", "Button_primary_a7f3c", "VeryLongComponentName", "2col", "primary"]

        assert stable_classes(classes) == ["btn", "primary"]

    def test_accepts_class_string(self):
        """Test a space-separated class string is split."""
        assert stable_classes("nav  active") == ["nav", "active"]

    def test_first_matching_rule_wins(self):
        """Test rejection reasons follow table order."""
        assert match_rejection("deadbeef", UNSTABLE_CLASS_PATTERNS) == "hex digest"
        assert match_rejection("css-deadbeef", UNSTABLE_CLASS_PATTERNS) == "css-in-js hash"


class TestElementDescriptor:
    """Test element snapshot construction."""

    def test_from_dict_missing_fields(self):
        """Test absent data maps to empty values."""
        descriptor = ElementDescriptor.from_dict({"tagName": "DIV"})

        assert descriptor.tag_name == "div"
        assert descriptor.id == ""
        assert descriptor.classes == ()
        assert descriptor.attributes == {}
        assert descriptor.attribute("data-testid") == ""

    def test_from_none(self):
        """Test a missing payload still yields a descriptor."""
        assert ElementDescriptor.from_dict(None).tag_name == ""

    def test_text_is_truncated(self):
        """Test text content is bounded."""
        descriptor = ElementDescriptor.from_dict({"tagName": "P", "textContent": "x" * 500})

        assert len(descriptor.text_content) == TEXT_LIMIT

    def test_attribute_order_is_irrelevant(self):
        """Test descriptors with the same attributes compare equal."""
        a = element_descriptor("input", attributes={"name": "q", "type": "text"})
        b = element_descriptor("input", attributes={"type": "text", "name": "q"})

        assert a == b
        assert hash(a) == hash(b)

    def test_explicit_type(self):
        """Test explicit type detection uses the attribute map."""
        assert element_descriptor("button").has_explicit_type is False
        assert element_descriptor("button", input_type="button").has_explicit_type is True


class TestExtractor:
    """Test the element descriptor extractor."""

    @pytest.mark.asyncio
    async def test_extract(self, make_element):
        """Test extraction reads the in-page snapshot."""
        element = make_element({"tagName": "A", "href": "/home", "textContent": " Home "})

        descriptor = await ElementDescriptorExtractor().extract(element)

        assert descriptor.tag_name == "a"
        assert descriptor.href == "/home"
        assert descriptor.text_content == "Home"

    @pytest.mark.asyncio
    async def test_extract_safe_on_failure(self, make_element):
        """Test a detached element yields a placeholder descriptor."""
        element = make_element({})
        element.evaluate = AsyncMock(side_effect=Exception("detached"))

        descriptor = await ElementDescriptorExtractor().extract_safe(element)

        assert descriptor.tag_name == "unknown"
