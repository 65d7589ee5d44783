"""Source rendering for generated tests and page objects"""

from .code_emitter import CodeEmitter

__all__ = ["CodeEmitter"]
