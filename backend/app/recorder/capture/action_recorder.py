"""
Action Recorder

Drives a live Playwright browser and records what the user does in it.

Page events are pushed onto a single asyncio queue in delivery order and
handled by one consumer task, so selector generation for one action
(including its page round-trips) always finishes before the next action
is handled. When recording stops, the buffered actions go through the
parser, page-object synthesizer and code emitter, and the browser is
released on every exit path.
"""

import os
import json
import time
import asyncio
import logging
from datetime import datetime, timezone
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Any, Optional, Callable

from playwright.async_api import async_playwright

from ..core.element_descriptor import ElementDescriptorExtractor
from ..core.naming import to_kebab_case
from ..core.selector_generator import SelectorGenerator, SelectorOptions
from ..synthesis.action_parser import ActionParser, ParserOptions
from ..synthesis.page_objects import PageObjectAccumulator, PageObjectSynthesizer
from ..synthesis.flow_analysis import analyze_user_flow, flow_summary, extract_test_data
from ..generator.code_emitter import CodeEmitter
from .actions import (
    ActionRecord,
    ELEMENT_BOUND_KINDS,
    NavigationAction,
    ClickAction,
    InputAction,
    SelectAction,
    HoverAction,
    KeypressAction,
    SubmitAction,
    ApiCallAction,
    load_records,
)

# Configure logging
logger = logging.getLogger(__name__)

BINDING_NAME = "__recorderEvent"

BROWSER_ALIASES = {
    "chromium": "chromium",
    "chrome": "chromium",
    "firefox": "firefox",
    "webkit": "webkit",
    "safari": "webkit",
}

API_RESOURCE_TYPES = ("xhr", "fetch")

LISTENER_EVENTS = ("status", "started", "action", "error", "stopped")

# Installed in every document; reports DOM events through the exposed binding.
# Rapid input events on one field are batched into a single report, flushed
# before any other event or after the field has been idle.
CAPTURE_SCRIPT = """
(() => {
  if (window.__recorderInstalled) return;
  window.__recorderInstalled = true;

  const CONFIG = __CONFIG__;
  const send = (payload) => {
    const binding = window[CONFIG.binding];
    if (binding) binding(Object.assign({ url: location.href }, payload));
  };

  let pendingInput = null;
  let inputTimer = null;
  const flushInput = () => {
    clearTimeout(inputTimer);
    if (!pendingInput) return;
    const target = pendingInput;
    pendingInput = null;
    send({ type: 'input', target, value: target.value });
  };
  const emit = (type, target, extra) => {
    flushInput();
    send(Object.assign({ type, target }, extra || {}));
  };

  document.addEventListener('click', (e) => {
    emit('click', e.target, { x: e.clientX, y: e.clientY });
  }, true);

  document.addEventListener('input', (e) => {
    const target = e.target;
    if (target.tagName === 'SELECT') return;
    if (pendingInput && pendingInput !== target) flushInput();
    pendingInput = target;
    clearTimeout(inputTimer);
    inputTimer = setTimeout(flushInput, CONFIG.inputIdleMs);
  }, true);

  document.addEventListener('change', (e) => {
    if (e.target.tagName === 'SELECT') emit('select', e.target, { value: e.target.value });
  }, true);

  document.addEventListener('submit', (e) => emit('submit', e.target), true);

  document.addEventListener('keydown', (e) => {
    if (CONFIG.specialKeys.includes(e.key)) emit('keypress', e.target, { key: e.key });
  }, true);

  if (CONFIG.recordHover) {
    let hoverTimer = null;
    document.addEventListener('mouseover', (e) => {
      clearTimeout(hoverTimer);
      const target = e.target;
      hoverTimer = setTimeout(() => emit('hover', target), CONFIG.hoverDwellMs);
    }, true);
    document.addEventListener('mouseout', () => clearTimeout(hoverTimer), true);
  }
})();
"""

PAYLOAD_SCRIPT = """p => ({
  type: p.type,
  url: p.url || location.href,
  value: p.value === undefined ? null : String(p.value),
  key: p.key === undefined ? null : p.key,
  x: p.x === undefined ? null : p.x,
  y: p.y === undefined ? null : p.y
})"""


class RecorderState(Enum):
    """Recording session lifecycle"""
    IDLE = "idle"
    RECORDING = "recording"
    STOPPING = "stopping"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _same_url(a: Optional[str], b: Optional[str]) -> bool:
    if a is None or b is None:
        return False
    return a.rstrip("/") == b.rstrip("/")


@dataclass
class RecorderConfig:
    """Configuration for a recording session"""
    browser: str = "chromium"
    headless: bool = False
    viewport_width: int = 1280
    viewport_height: int = 720
    navigation_timeout_ms: int = 30000
    output_dir: str = "data/recordings"
    generate_page_objects: bool = True
    record_hover: bool = True
    hover_dwell_ms: int = 500
    input_idle_ms: int = 300
    special_keys: List[str] = field(default_factory=lambda: ["Enter", "Escape", "Tab"])
    selector: SelectorOptions = field(default_factory=SelectorOptions)
    parser: ParserOptions = field(default_factory=ParserOptions)

    @property
    def browser_type(self) -> str:
        """Playwright browser type name; unknown names fall back to chromium"""
        return BROWSER_ALIASES.get(self.browser.lower(), "chromium")

    @property
    def viewport(self) -> Dict[str, int]:
        return {"width": self.viewport_width, "height": self.viewport_height}

    @classmethod
    def from_env(cls) -> "RecorderConfig":
        """Build a config from RECORDER_* environment variables"""
        defaults = cls()
        return cls(
            browser=os.getenv("RECORDER_BROWSER", defaults.browser),
            headless=_env_bool("RECORDER_HEADLESS", defaults.headless),
            viewport_width=int(os.getenv("RECORDER_VIEWPORT_WIDTH", defaults.viewport_width)),
            viewport_height=int(os.getenv("RECORDER_VIEWPORT_HEIGHT", defaults.viewport_height)),
            navigation_timeout_ms=int(os.getenv("RECORDER_NAVIGATION_TIMEOUT_MS", defaults.navigation_timeout_ms)),
            output_dir=os.getenv("RECORDER_OUTPUT_DIR", defaults.output_dir),
            generate_page_objects=_env_bool("RECORDER_PAGE_OBJECTS", defaults.generate_page_objects),
            record_hover=_env_bool("RECORDER_RECORD_HOVER", defaults.record_hover),
        )

    def capture_script(self) -> str:
        config = {
            "binding": BINDING_NAME,
            "inputIdleMs": self.input_idle_ms,
            "hoverDwellMs": self.hover_dwell_ms,
            "recordHover": self.record_hover,
            "specialKeys": list(self.special_keys),
        }
        return CAPTURE_SCRIPT.replace("__CONFIG__", json.dumps(config))


@dataclass
class StartResult:
    """Result of starting a recording"""
    success: bool
    error: Optional[str] = None
    url: Optional[str] = None
    test_name: Optional[str] = None
    # Rejected because another start or recording holds the session
    already_active: bool = False


@dataclass
class StopResult:
    """Result of stopping a recording"""
    success: bool
    error: Optional[str] = None
    test_file_path: Optional[str] = None
    page_object_paths: List[str] = field(default_factory=list)
    report_path: Optional[str] = None
    action_count: int = 0
    duration_seconds: float = 0.0
    # Artifact name -> error message for writes that failed
    errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "error": self.error,
            "test_file_path": self.test_file_path,
            "page_object_paths": list(self.page_object_paths),
            "report_path": self.report_path,
            "action_count": self.action_count,
            "duration_seconds": self.duration_seconds,
            "errors": dict(self.errors),
        }


@dataclass
class RawEvent:
    """An event as delivered by the browser, before any page round-trip"""
    source: str  # dom, navigation, request
    timestamp: int
    payload: Any = None
    url: str = ""
    method: str = "GET"


class RecordingSession:
    """
    One recording of a user's interactions.

    Lifecycle: idle -> recording -> stopping -> idle. Only one recording
    can be active per session; a second start fails immediately.
    """

    def __init__(
        self,
        config: Optional[RecorderConfig] = None,
        storage=None,
        selector_generator: Optional[SelectorGenerator] = None,
        extractor: Optional[ElementDescriptorExtractor] = None,
        emitter: Optional[CodeEmitter] = None
    ):
        """
        Initialize a recording session.

        Args:
            config: RecorderConfig (defaults used when omitted)
            storage: Artifact writer with save_test/save_page_object/save_report;
                     when omitted, stop() renders but writes nothing
            selector_generator: SelectorGenerator used for element-bound actions
            extractor: ElementDescriptorExtractor for element snapshots
            emitter: CodeEmitter for generated source
        """
        self.config = config or RecorderConfig()
        self.storage = storage
        self.extractor = extractor or ElementDescriptorExtractor()
        self.selector_generator = selector_generator or SelectorGenerator(
            self.config.selector, self.extractor
        )
        self.parser = ActionParser(self.config.parser)
        self.synthesizer = PageObjectSynthesizer(self.parser)
        self.emitter = emitter or CodeEmitter()

        self.state = RecorderState.IDLE
        self.test_name: Optional[str] = None
        self.start_url: Optional[str] = None

        self._records: List[ActionRecord] = []
        self._pages = PageObjectAccumulator()
        self._listeners: Dict[str, List[Callable[[Any], Any]]] = {e: [] for e in LISTENER_EVENTS}
        self._lock = asyncio.Lock()
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None
        self._active = False
        self._started_at = 0.0
        self._last_navigation_url: Optional[str] = None

        # Browser resources
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None

    # ==================== Listeners ====================

    def on(self, event: str, callback: Callable[[Any], Any]):
        """Register a listener for status, started, action, error or stopped"""
        if event not in self._listeners:
            raise ValueError(f"Unknown recorder event: {event}")
        self._listeners[event].append(callback)

    def off(self, event: str, callback: Callable[[Any], Any]):
        if callback in self._listeners.get(event, []):
            self._listeners[event].remove(callback)

    def _emit(self, event: str, payload: Any):
        for callback in list(self._listeners[event]):
            try:
                callback(payload)
            except Exception as e:
                logger.warning(f"Recorder listener for '{event}' failed: {e}")

    # ==================== Properties ====================

    @property
    def is_recording(self) -> bool:
        return self.state == RecorderState.RECORDING

    @property
    def is_busy(self) -> bool:
        """True while a recording is starting, running or stopping"""
        return self.state != RecorderState.IDLE or self._lock.locked()

    @property
    def actions(self) -> List[ActionRecord]:
        """Snapshot of the recorded actions"""
        return list(self._records)

    @property
    def elapsed_seconds(self) -> float:
        if not self._started_at:
            return 0.0
        return round(time.monotonic() - self._started_at, 1)

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "test_name": self.test_name,
            "url": self.start_url,
            "action_count": len(self._records),
            "elapsed_seconds": self.elapsed_seconds if self.is_recording else 0.0,
        }

    def _elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started_at) * 1000)

    # ==================== Lifecycle ====================

    async def start(self, url: str, test_name: str) -> StartResult:
        """
        Launch a browser, open the URL and begin recording.

        Args:
            url: Start URL
            test_name: Name for the generated test

        Returns:
            StartResult; on failure the session stays idle
        """
        if self.is_busy:
            return StartResult(
                success=False,
                error="A recording is already in progress",
                already_active=True,
            )

        async with self._lock:
            self._emit("status", f"Launching {self.config.browser_type}")
            try:
                await self._launch()
            except Exception as e:
                logger.error(f"Failed to launch browser: {e}")
                await self._release_browser()
                self._emit("error", {"message": f"Failed to launch browser: {e}"})
                return StartResult(success=False, error=str(e))

            self._reset(url, test_name)
            self._active = True
            self._consumer = asyncio.create_task(self._consume())

            # The opening page load is recorded explicitly
            self._enqueue(RawEvent(source="navigation", timestamp=self._elapsed_ms(), url=url))
            try:
                await self._page.goto(url)
            except Exception as e:
                logger.error(f"Failed to open {url}: {e}")
                self._active = False
                self._consumer.cancel()
                self._consumer = None
                await self._release_browser()
                self._reset(None, None)
                self._emit("error", {"message": f"Failed to open {url}: {e}"})
                return StartResult(success=False, error=str(e))

            self.state = RecorderState.RECORDING
            logger.info(f"Recording '{test_name}' started at {url}")
            self._emit("started", {"url": url, "test_name": test_name})
            return StartResult(success=True, url=url, test_name=test_name)

    async def stop(self) -> StopResult:
        """
        Stop recording and generate the test script, page objects and report.

        The session always returns to idle and the browser is always
        released, even when generation fails.
        """
        if self.state != RecorderState.RECORDING:
            return StopResult(success=False, error="No active recording")

        async with self._lock:
            self.state = RecorderState.STOPPING
            self._active = False
            self._emit("status", "Stopping recording")

            duration = self.elapsed_seconds
            try:
                await self._drain()
                result = self._generate_artifacts(duration)
            except Exception as e:
                logger.error(f"Failed to generate recording artifacts: {e}")
                self._emit("error", {"message": f"Generation failed: {e}"})
                result = StopResult(
                    success=False,
                    error=str(e),
                    action_count=len(self._records),
                    duration_seconds=duration,
                )
            finally:
                await self._release_browser()
                self.state = RecorderState.IDLE

            logger.info(f"Recording '{self.test_name}' stopped with {result.action_count} actions")
            self._emit("stopped", result.to_dict())
            return result

    def preview(self) -> Dict[str, Any]:
        """Render the test and page objects from what has been recorded so far"""
        return self._render(list(self._records), self._pages, self.test_name, self.start_url)

    def regenerate(self, report: Dict[str, Any], dry_run: bool = False) -> Dict[str, Any]:
        """
        Re-render a saved recording from the actions stored in its report.

        The output is byte-identical to what stop() produced for the same
        actions. The report itself is left untouched.

        Args:
            report: A report written by stop()
            dry_run: Render only; write nothing

        Returns:
            Preview dictionary plus dry_run, test_file_path, page_object_paths and errors

        Raises:
            ValueError: The report has no stored actions or they cannot be loaded
        """
        if not isinstance(report, dict) or not isinstance(report.get("actions"), list):
            raise ValueError("Recording has no stored actions")
        try:
            records = load_records(report["actions"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Stored actions are invalid: {e}") from e

        start_url = report.get("url") or ""
        rendered = self._render(
            records,
            PageObjectAccumulator(start_url).extend(records),
            report.get("test_name"),
            start_url,
            browser=report.get("browser"),
            headless=report.get("headless"),
        )

        result = StopResult(success=True, action_count=len(records))
        if not dry_run and self.storage is not None:
            self._write_sources(result, rendered)
        logger.info(f"Regenerated '{rendered['test_name']}' from {len(records)} actions (dry_run={dry_run})")

        rendered.update({
            "dry_run": dry_run,
            "test_file_path": result.test_file_path,
            "page_object_paths": list(result.page_object_paths),
            "errors": dict(result.errors),
        })
        return rendered

    def _reset(self, url: Optional[str], test_name: Optional[str]):
        self.start_url = url
        self.test_name = test_name
        self._records = []
        self._pages = PageObjectAccumulator(url or "")
        self._queue = asyncio.Queue()
        self._last_navigation_url = None
        self._started_at = time.monotonic() if url else 0.0

    # ==================== Browser ====================

    async def _launch(self):
        self._playwright = await async_playwright().start()
        browser_type = getattr(self._playwright, self.config.browser_type)
        self._browser = await browser_type.launch(headless=self.config.headless)
        self._context = await self._browser.new_context(viewport=self.config.viewport)
        await self._context.expose_binding(BINDING_NAME, self._on_binding, handle=True)
        await self._context.add_init_script(script=self.config.capture_script())

        self._page = await self._context.new_page()
        self._page.set_default_navigation_timeout(self.config.navigation_timeout_ms)
        self._page.on("framenavigated", self._on_frame_navigated)
        self._page.on("request", self._on_request)
        logger.info(f"Launched {self.config.browser_type} (headless={self.config.headless})")

    async def _release_browser(self):
        """Close the context, browser and Playwright, each step independently"""
        if self._context:
            try:
                await self._context.close()
            except Exception as e:
                logger.warning(f"Context close error: {e}")
            finally:
                self._context = None
                self._page = None

        if self._browser:
            try:
                await self._browser.close()
            except Exception as e:
                logger.warning(f"Browser close error: {e}")
            finally:
                self._browser = None

        if self._playwright:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.warning(f"Playwright stop error: {e}")
            finally:
                self._playwright = None

    # ==================== Event intake ====================

    def _enqueue(self, event: RawEvent):
        if self._active and self._queue is not None:
            self._queue.put_nowait(event)

    def _on_binding(self, source, payload):
        self._enqueue(RawEvent(source="dom", timestamp=self._elapsed_ms(), payload=payload))

    def _on_frame_navigated(self, frame):
        if frame.parent_frame is not None:
            return
        self._enqueue(RawEvent(source="navigation", timestamp=self._elapsed_ms(), url=frame.url))

    def _on_request(self, request):
        if request.resource_type not in API_RESOURCE_TYPES:
            return
        self._enqueue(RawEvent(
            source="request",
            timestamp=self._elapsed_ms(),
            url=request.url,
            method=request.method,
        ))

    # ==================== Consumer ====================

    async def _consume(self):
        while True:
            event = await self._queue.get()
            if event is None:
                break
            try:
                record = await self._to_record(event)
            except Exception as e:
                logger.warning(f"Dropped {event.source} event: {e}")
                self._emit("error", {"message": f"Could not record {event.source} event: {e}"})
                continue
            if record is not None:
                self._append(record)

    async def _drain(self):
        """Let the consumer finish everything queued before the stop"""
        if self._consumer is None:
            return
        if not self._consumer.done():
            await self._queue.put(None)
        await self._consumer
        self._consumer = None

    def _append(self, record: ActionRecord):
        self._records.append(record)
        self._pages.add(record)
        logger.debug(f"Recorded {record.kind.value} ({record.primary_selector or '-'})")
        self._emit("action", record.to_dict())

    async def _to_record(self, event: RawEvent) -> Optional[ActionRecord]:
        if event.source == "navigation":
            if event.url.startswith("about:") or _same_url(event.url, self._last_navigation_url):
                return None
            self._last_navigation_url = event.url
            return NavigationAction(timestamp=event.timestamp, url=event.url, page_url=event.url)

        page_url = self._last_navigation_url or self.start_url or ""
        if event.source == "request":
            return ApiCallAction(
                timestamp=event.timestamp,
                url=event.url,
                method=event.method,
                page_url=page_url,
            )

        return await self._dom_record(event, page_url)

    async def _dom_record(self, event: RawEvent, page_url: str) -> Optional[ActionRecord]:
        data = await event.payload.evaluate(PAYLOAD_SCRIPT)
        record_type = {
            "click": ClickAction,
            "input": InputAction,
            "select": SelectAction,
            "hover": HoverAction,
            "keypress": KeypressAction,
            "submit": SubmitAction,
        }.get(data.get("type"))
        if record_type is None:
            logger.debug(f"Ignoring unknown DOM event: {data.get('type')}")
            return None

        fields: Dict[str, Any] = {"timestamp": event.timestamp, "page_url": data.get("url") or page_url}

        if record_type.kind in ELEMENT_BOUND_KINDS:
            target = await event.payload.get_property("target")
            element = target.as_element()
            if element is not None:
                descriptor = await self.extractor.extract_safe(element)
                fields["element"] = descriptor
                fields["selector"] = await self.selector_generator.generate_for(
                    self._page, element, descriptor
                )

        if record_type in (InputAction, SelectAction):
            fields["value"] = data.get("value") or ""
        elif record_type is KeypressAction:
            fields["key"] = data.get("key") or ""
        elif record_type is ClickAction and data.get("x") is not None:
            fields["coordinates"] = (data["x"], data["y"])

        return record_type(**fields)

    # ==================== Generation ====================

    def _render(
        self,
        records: List[ActionRecord],
        pages: PageObjectAccumulator,
        test_name: Optional[str],
        start_url: Optional[str],
        browser: Optional[str] = None,
        headless: Optional[bool] = None
    ) -> Dict[str, Any]:
        steps = self.parser.optimize(records)
        descriptors = self.synthesizer.synthesize(pages) if self.config.generate_page_objects else []
        test_source = self.emitter.render_test(
            steps,
            test_name=test_name or "recording",
            start_url=start_url or "",
            browser=browser or self.config.browser_type,
            headless=self.config.headless if headless is None else headless,
        )
        return {
            "test_name": test_name,
            "action_count": len(records),
            "steps": [step.to_dict() for step in steps],
            "test_source": test_source,
            "page_objects": self.emitter.render_page_objects(descriptors),
        }

    def _write_sources(self, result: StopResult, rendered: Dict[str, Any]):
        for file_name, source in rendered["page_objects"].items():
            path = self._save(result, file_name, self.storage.save_page_object, file_name, source)
            if path:
                result.page_object_paths.append(path)

        test_file = self.emitter.test_module_name(rendered["test_name"] or "recording")
        result.test_file_path = self._save(
            result, test_file, self.storage.save_test, test_file, rendered["test_source"]
        )

    def _generate_artifacts(self, duration: float) -> StopResult:
        records = list(self._records)
        rendered = self._render(records, self._pages, self.test_name, self.start_url)

        result = StopResult(success=True, action_count=len(records), duration_seconds=duration)
        if self.storage is None:
            return result

        self._write_sources(result, rendered)

        flow = analyze_user_flow(records)
        report = {
            "test_name": self.test_name,
            "url": self.start_url,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "duration_seconds": duration,
            "action_count": len(records),
            "step_count": len(rendered["steps"]),
            "browser": self.config.browser_type,
            "headless": self.config.headless,
            "viewport": self.config.viewport,
            "page_object_count": len(rendered["page_objects"]),
            "files": {
                "test": result.test_file_path,
                "page_objects": list(result.page_object_paths),
            },
            "flow_summary": flow_summary(flow),
            "test_data": extract_test_data(records),
            # Everything regenerate() needs to re-render without a browser
            "actions": [record.to_dict() for record in records],
        }
        report_name = f"{to_kebab_case(self.test_name or 'recording')}-report.json"
        result.report_path = self._save(result, report_name, self.storage.save_report, report_name, report)
        return result

    def _save(self, result: StopResult, artifact: str, writer: Callable, *args) -> Optional[str]:
        try:
            return writer(*args)
        except Exception as e:
            logger.warning(f"Failed to write {artifact}: {e}")
            result.errors[artifact] = str(e)
            self._emit("error", {"message": f"Failed to write {artifact}: {e}"})
            return None
