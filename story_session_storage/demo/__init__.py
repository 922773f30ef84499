"""Read-only demo story support."""

from .loader import DemoDocumentLoader

__all__ = ["DemoDocumentLoader"]
