import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set

from citylib import codec
from citylib.book import Book
from citylib.config import settings
from citylib.exceptions import (
    AlreadyIssuedError,
    BookNotFoundError,
    MemberNotFoundError,
    NotIssuedToMemberError,
    ParseError,
    StorageError,
    ValidationError,
)
from citylib.member import Member
from citylib.storage import read_lines, write_lines
from citylib.validators import EmailValidator, TextValidator

logger = logging.getLogger(__name__)

FIRST_BOOK_ID = 100
FIRST_MEMBER_ID = 1000

SORT_KEYS: Dict[str, Callable[[Book], str]] = {
    "title": lambda b: b.title.lower(),
    "author": lambda b: b.author.lower(),
    "category": lambda b: b.category.lower(),
}


@dataclass
class SkippedLine:
    """A record line that could not be decoded during load."""

    file: str
    line_number: int
    line: str
    reason: str


@dataclass
class LoadReport:
    books_loaded: int = 0
    members_loaded: int = 0
    skipped: List[SkippedLine] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


class Library:
    """Manages the book and member catalog and its two data files."""

    def __init__(self, books_file: Optional[str] = None, members_file: Optional[str] = None) -> None:
        self.books_file = Path(books_file or settings.books_file)
        self.members_file = Path(members_file or settings.members_file)

        self.books: Dict[int, Book] = {}
        self.members: Dict[int, Member] = {}
        self.categories: Set[str] = set()

        self.next_book_id = FIRST_BOOK_ID
        self.next_member_id = FIRST_MEMBER_ID

    # ------------------------- Core operations ------------------------- #
    def add_book(self, title: str, author: str, category: str) -> int:
        """Create an unissued book and return its new id."""
        if any(TextValidator.is_blank(v) for v in (title, author, category)):
            raise ValidationError("All fields are required. Book not added.")

        book_id = self.next_book_id
        self.next_book_id += 1
        book = Book(
            book_id=book_id,
            title=TextValidator.normalize(title),
            author=TextValidator.normalize(author),
            category=TextValidator.normalize(category),
        )
        self.books[book_id] = book
        self.categories.add(book.category)
        logger.info(f"Book added: id={book_id}, title={book.title!r}")
        self.save()
        return book_id

    def add_member(self, name: str, email: str) -> int:
        """Register a member with no issued books and return the new id."""
        if TextValidator.is_blank(name) or TextValidator.is_blank(email):
            raise ValidationError("Name and email required. Member not added.")
        email = TextValidator.normalize(email)
        if not EmailValidator.is_valid_email(email):
            raise ValidationError("Invalid email format. Member not added.")

        member_id = self.next_member_id
        self.next_member_id += 1
        self.members[member_id] = Member(
            member_id=member_id,
            name=TextValidator.normalize(name),
            email=email,
        )
        logger.info(f"Member added: id={member_id}")
        self.save()
        return member_id

    def issue_book(self, member_id: int, book_id: int) -> None:
        member = self._get_member(member_id)
        book = self._get_book(book_id)
        # The book's flag is the single source of truth here; other members'
        # issued sets are not consulted.
        if book.is_issued:
            raise AlreadyIssuedError(f"Book {book_id} is already issued.")

        book.mark_as_issued()
        member.add_issued_book(book_id)
        logger.info(f"Book {book_id} issued to member {member_id}")
        self.save()

    def return_book(self, member_id: int, book_id: int) -> None:
        member = self._get_member(member_id)
        book = self._get_book(book_id)
        if not member.holds(book_id):
            raise NotIssuedToMemberError(
                f"Member {member_id} doesn't have book {book_id} issued."
            )

        book.mark_as_returned()
        member.return_issued_book(book_id)
        logger.info(f"Book {book_id} returned by member {member_id}")
        self.save()

    # ------------------------- Queries ------------------------- #
    def search_by_title(self, keyword: str) -> List[Book]:
        return self._search(keyword, lambda b: b.title)

    def search_by_author(self, keyword: str) -> List[Book]:
        return self._search(keyword, lambda b: b.author)

    def search_by_category(self, keyword: str) -> List[Book]:
        return self._search(keyword, lambda b: b.category)

    def sorted_books(self, key: str = "title") -> List[Book]:
        """Books ordered case-insensitively by title, author or category.

        ``sorted`` is stable, so equal keys keep catalog iteration order.
        """
        # Anything other than author or category sorts by title
        sort_key = SORT_KEYS.get((key or "title").strip().lower(), SORT_KEYS["title"])
        return sorted(self.books.values(), key=sort_key)

    def list_books(self) -> List[Book]:
        return list(self.books.values())

    def list_members(self) -> List[Member]:
        return list(self.members.values())

    def list_categories(self) -> List[str]:
        return sorted(self.categories, key=str.lower)

    def find_book(self, book_id: int) -> Optional[Book]:
        return self.books.get(book_id)

    def find_member(self, member_id: int) -> Optional[Member]:
        return self.members.get(member_id)

    def get_statistics(self) -> Dict[str, Any]:
        issued = sum(1 for b in self.books.values() if b.is_issued)
        return {
            "total_books": len(self.books),
            "issued_books": issued,
            "available_books": len(self.books) - issued,
            "total_members": len(self.members),
            "total_categories": len(self.categories),
        }

    # ------------------------- Persistence ------------------------- #
    def load(self) -> LoadReport:
        """Read both data files into memory.

        Undecodable lines are skipped and recorded in the report; a file that
        cannot be read is recorded too and the other file is still loaded.
        Next-id counters are raised above the highest id seen.
        """
        report = LoadReport()

        for line_number, line in self._read(self.books_file, report):
            try:
                book = codec.decode_book(line)
            except ParseError as e:
                self._skip(report, self.books_file, line_number, line, e)
                continue
            self.books[book.book_id] = book
            self.categories.add(book.category)
            self.next_book_id = max(self.next_book_id, book.book_id + 1)
            report.books_loaded += 1

        for line_number, line in self._read(self.members_file, report):
            try:
                member = codec.decode_member(line)
            except ParseError as e:
                self._skip(report, self.members_file, line_number, line, e)
                continue
            self.members[member.member_id] = member
            self.next_member_id = max(self.next_member_id, member.member_id + 1)
            report.members_loaded += 1

        logger.info(
            f"Loaded {report.books_loaded} books and {report.members_loaded} members "
            f"({report.skipped_count} lines skipped)"
        )
        return report

    def save(self) -> None:
        """Rewrite both data files from the in-memory catalog.

        Both files are always attempted. In-memory state is kept whether or
        not the writes succeed.
        """
        failures: List[str] = []
        targets = (
            (self.books_file, [codec.encode_book(b) for b in self.books.values()]),
            (self.members_file, [codec.encode_member(m) for m in self.members.values()]),
        )
        first_error: Optional[OSError] = None
        for path, lines in targets:
            try:
                write_lines(path, lines)
            except OSError as e:
                logger.error(f"Error saving {path}: {e}")
                failures.append(f"{path}: {e}")
                first_error = first_error or e

        if failures:
            raise StorageError("Error saving data: " + "; ".join(failures)) from first_error

    # ------------------------- Utilities ------------------------- #
    def _get_book(self, book_id: int) -> Book:
        book = self.books.get(book_id)
        if book is None:
            raise BookNotFoundError(f"Book {book_id} not found.")
        return book

    def _get_member(self, member_id: int) -> Member:
        member = self.members.get(member_id)
        if member is None:
            raise MemberNotFoundError(f"Member {member_id} not found.")
        return member

    def _search(self, keyword: str, field_of: Callable[[Book], str]) -> List[Book]:
        needle = (keyword or "").strip().lower()
        return [b for b in self.books.values() if needle in field_of(b).lower()]

    @staticmethod
    def _read(path: Path, report: LoadReport):
        """Yield ``(line_number, line)`` for the non-blank lines of ``path``."""
        try:
            lines = list(read_lines(path))
        except (OSError, UnicodeError) as e:
            logger.warning(f"Error loading {path}: {e}")
            report.errors.append(f"{path}: {e}")
            return
        for number, line in enumerate(lines, 1):
            line = line.strip()
            if line:
                yield number, line

    @staticmethod
    def _skip(report: LoadReport, path: Path, line_number: int, line: str, error: Exception) -> None:
        logger.warning(f"Skipping invalid line {line_number} in {path}: {line!r} ({error})")
        report.skipped.append(SkippedLine(str(path), line_number, line, str(error)))
