"""Line codec for the books and members files.

Books:   ``id|title|author|category|flag``  (flag is ``1`` or ``0``)
Members: ``id|name|email|id1,id2,...``

Text fields escape ``\\``, ``|``, newline and carriage return with a
backslash so every record stays on one line.
"""

import re
from typing import List

from citylib.book import Book
from citylib.exceptions import ParseError
from citylib.member import Member

DELIMITER = "|"
ESCAPE = "\\"
ISSUED_FLAG = "1"
NOT_ISSUED_FLAG = "0"

BOOK_FIELDS = 5
MEMBER_FIELDS = 4

_ESCAPES = {
    ESCAPE: ESCAPE + ESCAPE,
    DELIMITER: ESCAPE + DELIMITER,
    "\n": ESCAPE + "n",
    "\r": ESCAPE + "r",
}
_UNESCAPES = {"n": "\n", "r": "\r"}

_ID_PATTERN = re.compile(r"[+-]?[0-9]+")
# Ids are stored as signed 32-bit integers
MIN_ID = -(2 ** 31)
MAX_ID = 2 ** 31 - 1


def escape(text: str) -> str:
    if text is None:
        return ""
    return "".join(_ESCAPES.get(ch, ch) for ch in text)


def unescape(raw: str) -> str:
    if raw is None:
        return ""
    out: List[str] = []
    pending = False
    for ch in raw:
        if pending:
            out.append(_UNESCAPES.get(ch, ch))
            pending = False
        elif ch == ESCAPE:
            pending = True
        else:
            out.append(ch)
    if pending:
        # Lone trailing backslash
        out.append(ESCAPE)
    return "".join(out)


def split_fields(line: str, expected: int, delimiter: str = DELIMITER) -> List[str]:
    """Split ``line`` on unescaped ``delimiter``.

    Escape sequences are left in place so ``unescape`` can translate them;
    an escaped delimiter never ends a field. The result is padded with empty
    strings up to ``expected`` fields.
    """
    fields: List[str] = []
    current: List[str] = []
    pending = False
    for ch in line:
        if pending:
            current.append(ch)
            pending = False
        elif ch == ESCAPE:
            current.append(ch)
            pending = True
        elif ch == delimiter:
            fields.append("".join(current))
            current = []
        else:
            current.append(ch)
    fields.append("".join(current))

    while len(fields) < expected:
        fields.append("")
    return fields


def parse_id(raw: str) -> int:
    if not _ID_PATTERN.fullmatch(raw):
        raise ParseError(f"Invalid id: {raw!r}")
    value = int(raw)
    if not MIN_ID <= value <= MAX_ID:
        raise ParseError(f"Id out of range: {raw!r}")
    return value


def parse_id_list(raw: str) -> List[int]:
    """Parse a comma separated id list, dropping blank or non-numeric tokens."""
    ids: List[int] = []
    for token in raw.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            ids.append(parse_id(token))
        except ParseError:
            continue
    return ids


def encode_book(book: Book) -> str:
    return DELIMITER.join([
        str(book.book_id),
        escape(book.title),
        escape(book.author),
        escape(book.category),
        ISSUED_FLAG if book.is_issued else NOT_ISSUED_FLAG,
    ])


def decode_book(line: str) -> Book:
    parts = split_fields(line, BOOK_FIELDS)
    return Book(
        book_id=parse_id(parts[0]),
        title=unescape(parts[1]),
        author=unescape(parts[2]),
        category=unescape(parts[3]),
        is_issued=parts[4] == ISSUED_FLAG,
    )


def encode_member(member: Member) -> str:
    return DELIMITER.join([
        str(member.member_id),
        escape(member.name),
        escape(member.email),
        ",".join(str(book_id) for book_id in member.issued_books),
    ])


def decode_member(line: str) -> Member:
    parts = split_fields(line, MEMBER_FIELDS)
    return Member(
        member_id=parse_id(parts[0]),
        name=unescape(parts[1]),
        email=unescape(parts[2]),
        issued_books=parse_id_list(parts[3]),
    )
