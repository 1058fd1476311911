"""
Quote Engine Utils - Modular utility functions.

Submodules:
- core: Logging, errors, and JSON payload helpers
- llm: Gemini client wrapper
- document: Spreadsheet / PDF / image content extraction
- db: PostgreSQL (or in-memory mock) quote store
"""

from utils import core
from utils import llm
from utils import document
from utils import db

__all__ = [
    "core",
    "llm",
    "document",
    "db",
]
