"""
Pytest configuration and shared fixtures for recorder tests.
"""

import pytest
import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock, AsyncMock, patch
from typing import Dict, Any, List, Optional

# Add backend app to path
sys.path.insert(0, str(Path(__file__).parent.parent / "app"))

from recorder.core.element_descriptor import EXTRACT_SCRIPT
from recorder.core.selector_generator import IDENTITY_SCRIPT


# ==================== Fake DOM ====================

class FakeElement:
    """Element handle double that answers in-page scripts from canned data."""

    def __init__(self, raw: Dict[str, Any], scripts: Optional[Dict[str, Any]] = None):
        self.raw = raw
        self.scripts = scripts or {}
        self.evaluate = AsyncMock(side_effect=self._evaluate)
        self.dispose = AsyncMock()

    async def _evaluate(self, script, *args):
        if script == EXTRACT_SCRIPT:
            return self.raw
        return self.scripts.get(script)


class FakePage:
    """Page double whose locators resolve from a selector -> elements map."""

    def __init__(self):
        self.selectors: Dict[str, List[Any]] = {}
        self.locator = Mock(side_effect=self._locator)
        self.evaluate = AsyncMock(side_effect=self._evaluate)

    def register(self, selector: str, *elements):
        self.selectors[selector] = list(elements)

    def _locator(self, selector: str):
        locator = Mock()
        locator.element_handles = AsyncMock(return_value=list(self.selectors.get(selector, [])))
        return locator

    async def _evaluate(self, script, args=None):
        if script == IDENTITY_SCRIPT:
            original, found = args
            return original is found
        return None


@pytest.fixture
def fake_page():
    """Create a fake page with an empty selector map."""
    return FakePage()


@pytest.fixture
def make_element():
    """Factory for fake element handles."""
    def factory(raw: Dict[str, Any], scripts: Optional[Dict[str, Any]] = None) -> FakeElement:
        return FakeElement(raw, scripts)
    return factory


# ==================== Mock Page Fixture ====================

@pytest.fixture
def mock_page():
    """Create a mock Playwright page object."""
    page = AsyncMock()

    # Basic properties
    page.url = "https://example.com/login"

    # Navigation
    page.goto = AsyncMock(return_value=None)

    # Evaluation
    page.evaluate = AsyncMock(return_value=False)

    # Locators
    mock_locator = AsyncMock()
    mock_locator.element_handles = AsyncMock(return_value=[])
    page.locator = Mock(return_value=mock_locator)

    # Event subscription and sync setters
    page.on = Mock()
    page.set_default_navigation_timeout = Mock()

    return page


# ==================== Mock Playwright Fixture ====================

@pytest.fixture
def mock_playwright(mock_page):
    """
    Patch async_playwright in the recorder with a chain of mocks:
    playwright -> browser type -> browser -> context -> page.
    """
    context = AsyncMock()
    context.new_page = AsyncMock(return_value=mock_page)
    context.expose_binding = AsyncMock()
    context.add_init_script = AsyncMock()
    context.close = AsyncMock()

    browser = AsyncMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    playwright = Mock()
    for name in ("chromium", "firefox", "webkit"):
        getattr(playwright, name).launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()

    starter = Mock()
    starter.start = AsyncMock(return_value=playwright)

    with patch("recorder.capture.action_recorder.async_playwright", return_value=starter):
        yield SimpleNamespace(
            playwright=playwright,
            browser=browser,
            context=context,
            page=mock_page,
        )


# ==================== Temp Directory Fixture ====================

@pytest.fixture
def temp_data_dir(tmp_path):
    """Create a temporary recordings directory for tests."""
    data_dir = tmp_path / "data" / "recordings"
    data_dir.mkdir(parents=True)
    return data_dir
