"""
Code Emitter

Renders Test Steps and Page-Object Descriptors into Python source through
Jinja2 templates. Rendering is pure: the same input always produces
byte-identical output, so previews can be regenerated freely.
"""

import json
import os
import logging
from typing import Dict, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..core.naming import python_identifier, to_snake_case
from ..synthesis.action_parser import TestStep
from ..synthesis.page_objects import PageObjectDescriptor

# Configure logging
logger = logging.getLogger(__name__)

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")


def _quote(value) -> str:
    return json.dumps("" if value is None else str(value), ensure_ascii=False)


def _docstring(value) -> str:
    text = " ".join(str(value or "").split())
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _comment(value) -> str:
    return " ".join(str(value or "").split())


class CodeEmitter:
    """Jinja2-backed renderer for generated tests and page objects"""

    def __init__(self, template_dir: Optional[str] = None):
        self.env = Environment(
            loader=FileSystemLoader(template_dir or TEMPLATE_DIR),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.env.filters["quote"] = _quote
        self.env.filters["identifier"] = python_identifier
        self.env.filters["docstring"] = _docstring
        self.env.filters["comment"] = _comment

    # ==================== File names ====================

    @staticmethod
    def test_module_name(test_name: str) -> str:
        return f"test_{to_snake_case(test_name) or 'recording'}.py"

    @staticmethod
    def page_object_module(descriptor: PageObjectDescriptor) -> str:
        return f"{to_snake_case(descriptor.name)}.py"

    # ==================== Rendering ====================

    def render_page_object(self, descriptor: PageObjectDescriptor) -> str:
        template = self.env.get_template("page_object.py.j2")
        return template.render(
            page=descriptor,
            elements=list(descriptor.elements.values()),
        )

    def render_page_objects(self, descriptors: Sequence[PageObjectDescriptor]) -> Dict[str, str]:
        """Map of module file name to source for each page object"""
        return {self.page_object_module(d): self.render_page_object(d) for d in descriptors}

    def render_test(
        self,
        steps: Sequence[TestStep],
        test_name: str,
        start_url: str,
        browser: str = "chromium",
        headless: bool = True
    ) -> str:
        """
        Render a recorded test as an async pytest module.

        Args:
            steps: Ordered test steps from the action parser
            test_name: Human test name; the function name is derived from it
            start_url: URL the recording started on
            browser: Playwright browser type used by the generated fixture
            headless: Launch mode used by the generated fixture

        Returns:
            Python source text
        """
        template = self.env.get_template("test_file.py.j2")
        source = template.render(
            steps=list(steps),
            test_name=test_name,
            function_name=python_identifier(test_name, "recording"),
            start_url=start_url,
            browser=browser,
            headless=headless,
        )
        logger.debug(f"Rendered test '{test_name}' with {len(steps)} steps")
        return source
