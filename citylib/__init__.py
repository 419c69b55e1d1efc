"""City Library - Core Application Package

This package contains the core application modules including:
- Record codec for the flat text files (codec.py)
- Catalog store with issue/return rules (library.py)
- Data models (book.py, member.py)
- Flat-file storage helpers (storage.py)
"""

from citylib.book import Book
from citylib.library import Library, LoadReport
from citylib.member import Member

__all__ = ["Book", "Library", "LoadReport", "Member"]
