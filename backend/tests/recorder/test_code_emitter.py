"""
Unit tests for CodeEmitter.

Rendered sources must compile and be byte-identical across runs.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from recorder.core.element_descriptor import element_descriptor
from recorder.core.selector_generator import SelectorResult, SelectorKind
from recorder.capture.actions import NavigationAction, ClickAction, InputAction, ActionKind
from recorder.synthesis.action_parser import ActionParser, TestStep
from recorder.synthesis.page_objects import PageObjectSynthesizer
from recorder.generator.code_emitter import CodeEmitter


def selector(primary: str) -> SelectorResult:
    return SelectorResult(primary=primary, kind=SelectorKind.ID, confidence=0.8)


def login_actions():
    return [
        NavigationAction(timestamp=0, url="https://example.com/login"),
        InputAction(
            timestamp=1000,
            selector=selector("#user"),
            element=element_descriptor("input", id="user"),
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


@pytest.fixture
def emitter():
    return CodeEmitter()


@pytest.fixture
def login_page():
    return PageObjectSynthesizer().synthesize_records(login_actions())[0]


class TestFileNames:
    """Test module naming."""

    def test_test_module_name(self):
        """Test names become snake_case test modules."""
        assert CodeEmitter.test_module_name("Login flow") == "test_login_flow.py"
        assert CodeEmitter.test_module_name("!!!") == "test_recording.py"

    def test_page_object_module(self, login_page):
        """Test page objects live in snake_case modules."""
        assert CodeEmitter.page_object_module(login_page) == "login_page.py"


class TestRenderTest:
    """Test rendering of test modules."""

    def test_login_flow(self, emitter):
        """Test a recorded login renders an async pytest function."""
        steps = ActionParser().optimize(login_actions())

        source = emitter.render_test(steps, "Login flow", "https://example.com/login")

        assert "async def test_login_flow(page: Page):" in source
        assert "@pytest.mark.asyncio" in source
        assert "# Step 2: Fill form with 2 fields and submit" in source
        assert '    await page.locator("#user").fill("alice")' in source
        compile(source, "test_login_flow.py", "exec")

    def test_deterministic(self, emitter):
        """Test identical input renders identical bytes."""
        steps = ActionParser().optimize(login_actions())

        first = emitter.render_test(steps, "Login flow", "https://example.com/login")
        second = CodeEmitter().render_test(steps, "Login flow", "https://example.com/login")

        assert first == second

    def test_no_steps(self, emitter):
        """Test an empty recording still compiles."""
        source = emitter.render_test([], "Empty", "https://example.com")

        assert "    pass" in source
        compile(source, "test_empty.py", "exec")

    def test_browser_options(self, emitter):
        """Test the fixture uses the requested browser and launch mode."""
        source = emitter.render_test([], "Empty", "about:blank", browser="firefox", headless=False)

        assert "await playwright.firefox.launch(headless=False)" in source

    def test_only_used_imports(self, emitter):
        """Test the module imports nothing the recorded steps never reference."""
        steps = ActionParser().optimize(login_actions())

        source = emitter.render_test(steps, "Login flow", "https://example.com/login")

        assert "page_objects" not in source
        assert "LoginPage" not in source

    def test_description_is_escaped(self, emitter):
        """Test quotes and newlines in descriptions cannot break the source."""
        step = TestStep(
            index=1,
            kind=ActionKind.CLICK,
            description='Click "OK"\nnow',
            code='await page.locator("#ok").click()',
        )

        source = emitter.render_test([step], 'Say "hi"', "/")

        assert '# Step 1: Click "OK" now' in source
        compile(source, "test_say_hi.py", "exec")


class TestRenderPageObject:
    """Test rendering of page-object modules."""

    def test_login_page(self, emitter, login_page):
        """Test the class, its bindings and its methods."""
        source = emitter.render_page_object(login_page)

        assert "class LoginPage:" in source
        assert 'url = "https://example.com/login"' in source
        assert 'self.user = page.locator("#user")' in source
        assert "async def submit_form(self):" in source
        assert 'async def enter_pass(self, pass_: str = "secret"):' in source
        compile(source, "login_page.py", "exec")

    def test_render_page_objects(self, emitter, login_page):
        """Test page objects are keyed by module file name."""
        files = emitter.render_page_objects([login_page])

        assert list(files) == ["login_page.py"]
        assert files["login_page.py"] == emitter.render_page_object(login_page)
