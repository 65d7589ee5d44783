"""Action log optimization and page-object synthesis"""

from .action_parser import ActionParser, ParserOptions, TestStep
from .page_objects import PageObjectSynthesizer, PageObjectAccumulator, PageObjectDescriptor

__all__ = [
    "ActionParser",
    "ParserOptions",
    "TestStep",
    "PageObjectSynthesizer",
    "PageObjectAccumulator",
    "PageObjectDescriptor"
]
