from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass
class Member:
    """A registered library member and the ids of the books they hold.

    ``issued_books`` keeps insertion order but behaves as a set: ids are only
    appended when absent and removed by value.
    """

    member_id: int
    name: str
    email: str
    issued_books: List[int] = field(default_factory=list)

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} <{self.email}> (ID: {self.member_id})"

    def holds(self, book_id: int) -> bool:
        return book_id in self.issued_books

    def add_issued_book(self, book_id: int) -> None:
        if book_id not in self.issued_books:
            self.issued_books.append(book_id)

    def return_issued_book(self, book_id: int) -> None:
        if book_id in self.issued_books:
            self.issued_books.remove(book_id)

    def to_dict(self) -> dict:
        return {
            "id": self.member_id,
            "name": self.name,
            "email": self.email,
            "issued_books": list(self.issued_books),
        }

    @staticmethod
    def from_dict(data: dict) -> "Member":
        return Member(
            member_id=int(data["id"]),
            name=data["name"],
            email=data["email"],
            issued_books=[int(i) for i in data.get("issued_books") or []],
        )
