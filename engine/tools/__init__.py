"""
Quote Engine Tools.

Submodules:
- quote: vendor quote extraction, storage orchestration and comparison
"""

from tools import quote

__all__ = [
    "quote",
]
