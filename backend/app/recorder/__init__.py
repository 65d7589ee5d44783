"""
Browser Interaction Recorder

Records a user's interactions with a live web page and turns them into
replayable tests:
- Validated, confidence-scored selectors for every touched element
- A normalized action log with redundant actions removed
- Form sequences, wait strategies and assertions
- Page objects grouped by page, with inferred methods
- Python Playwright source rendered through Jinja2 templates
"""

from .core.element_descriptor import ElementDescriptor, ElementDescriptorExtractor
from .core.selector_generator import SelectorGenerator, SelectorOptions, SelectorResult, SelectorKind
from .capture.actions import ActionKind, ActionRecord, WaitStrategy
from .capture.action_recorder import (
    RecordingSession,
    RecorderConfig,
    RecorderState,
    StartResult,
    StopResult
)
from .synthesis.action_parser import ActionParser, ParserOptions, TestStep, Assertion
from .synthesis.page_objects import PageObjectSynthesizer, PageObjectDescriptor
from .generator.code_emitter import CodeEmitter

__all__ = [
    # Core
    "ElementDescriptor",
    "ElementDescriptorExtractor",
    "SelectorGenerator",
    "SelectorOptions",
    "SelectorResult",
    "SelectorKind",
    # Capture
    "ActionKind",
    "ActionRecord",
    "WaitStrategy",
    "RecordingSession",
    "RecorderConfig",
    "RecorderState",
    "StartResult",
    "StopResult",
    # Synthesis
    "ActionParser",
    "ParserOptions",
    "TestStep",
    "Assertion",
    "PageObjectSynthesizer",
    "PageObjectDescriptor",
    # Generation
    "CodeEmitter"
]

__version__ = "1.0.0"
