from __future__ import annotations

from dataclasses import dataclass

AVAILABLE = "Available"
ISSUED = "Issued"


@dataclass
class Book:
    """A single book in the catalog."""

    book_id: int
    title: str
    author: str
    category: str
    is_issued: bool = False

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} (ID: {self.book_id})"

    @property
    def status(self) -> str:
        return ISSUED if self.is_issued else AVAILABLE

    def mark_as_issued(self) -> None:
        self.is_issued = True

    def mark_as_returned(self) -> None:
        self.is_issued = False

    def to_dict(self) -> dict:
        return {
            "id": self.book_id,
            "title": self.title,
            "author": self.author,
            "category": self.category,
            "issued": self.is_issued,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            book_id=int(data["id"]),
            title=data["title"],
            author=data["author"],
            category=data.get("category", ""),
            is_issued=bool(data.get("issued", False)),
        )
