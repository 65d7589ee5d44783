"""Element snapshots and selector generation"""

from .element_descriptor import ElementDescriptor, ElementDescriptorExtractor
from .selector_generator import SelectorGenerator, SelectorOptions, SelectorResult, SelectorKind

__all__ = [
    "ElementDescriptor",
    "ElementDescriptorExtractor",
    "SelectorGenerator",
    "SelectorOptions",
    "SelectorResult",
    "SelectorKind"
]
