import pytest

from citylib import storage
from citylib.exceptions import (
    AlreadyIssuedError,
    BookNotFoundError,
    MemberNotFoundError,
    NotFoundError,
    NotIssuedToMemberError,
    StorageError,
    ValidationError,
)
from citylib.library import FIRST_BOOK_ID, FIRST_MEMBER_ID, Library


def _reload(lib):
    other = Library(books_file=str(lib.books_file), members_file=str(lib.members_file))
    other.load()
    return other


def _snapshot(lib):
    return (
        {k: b.to_dict() for k, b in lib.books.items()},
        {k: m.to_dict() for k, m in lib.members.items()},
        set(lib.categories),
        lib.next_book_id,
        lib.next_member_id,
    )


@pytest.fixture
def stocked(lib):
    lib.add_book("Dune", "Frank Herbert", "SciFi")
    lib.add_book("Emma", "Jane Austen", "Classic")
    lib.add_member("Alice", "alice@example.com")
    lib.add_member("Bob", "bob@example.com")
    return lib


def test_empty_catalog(lib):
    assert lib.list_books() == []
    assert lib.list_members() == []
    assert lib.next_book_id == FIRST_BOOK_ID
    assert lib.next_member_id == FIRST_MEMBER_ID


def test_add_book_assigns_ids_from_100(lib):
    first = lib.add_book("Dune", "Frank Herbert", "SciFi")
    second = lib.add_book("Emma", "Jane Austen", "Classic")
    assert first == 100
    assert second == 101
    book = lib.find_book(first)
    assert book.title == "Dune"
    assert book.is_issued is False
    assert lib.categories == {"SciFi", "Classic"}


def test_add_book_trims_fields(lib):
    book_id = lib.add_book("  Dune ", " Frank Herbert", "SciFi  ")
    book = lib.find_book(book_id)
    assert (book.title, book.author, book.category) == ("Dune", "Frank Herbert", "SciFi")


@pytest.mark.parametrize("fields", [("", "A", "C"), ("T", "   ", "C"), ("T", "A", "\t"), (None, "A", "C")])
def test_add_book_blank_field_rejected(lib, fields):
    with pytest.raises(ValidationError):
        lib.add_book(*fields)
    assert lib.list_books() == []
    assert lib.next_book_id == FIRST_BOOK_ID
    assert not lib.books_file.exists()


def test_add_book_persists(lib):
    lib.add_book("Dune", "Frank Herbert", "SciFi")
    assert lib.books_file.read_text(encoding="utf-8") == "100|Dune|Frank Herbert|SciFi|0\n"


def test_add_member_rejects_bad_email(lib):
    with pytest.raises(ValidationError):
        lib.add_member("Alice", "not-an-email")
    assert lib.list_members() == []


def test_add_member_rejects_blank(lib):
    with pytest.raises(ValidationError):
        lib.add_member(" ", "a.b@example.co")
    with pytest.raises(ValidationError):
        lib.add_member("Alice", "")


def test_add_member_success_ids_increase(lib):
    first = lib.add_member("Alice", "a.b@example.co")
    second = lib.add_member("Bob", "bob-x@mail.example.org")
    assert first >= 1000
    assert second > first
    member = lib.find_member(first)
    assert member.issued_books == []
    assert member.email == "a.b@example.co"


def test_issue_book(stocked):
    stocked.issue_book(1000, 100)
    assert stocked.find_book(100).is_issued is True
    assert stocked.find_member(1000).issued_books == [100]
    assert stocked.find_member(1001).issued_books == []


def test_issue_book_persists(stocked):
    stocked.issue_book(1000, 100)
    reloaded = _reload(stocked)
    assert reloaded.find_book(100).is_issued is True
    assert reloaded.find_member(1000).issued_books == [100]


def test_issue_already_issued_book(stocked):
    stocked.issue_book(1000, 100)
    before = _snapshot(stocked)
    with pytest.raises(AlreadyIssuedError):
        stocked.issue_book(1001, 100)
    with pytest.raises(AlreadyIssuedError):
        stocked.issue_book(1000, 100)
    assert _snapshot(stocked) == before


def test_issue_unknown_ids(stocked):
    with pytest.raises(MemberNotFoundError):
        stocked.issue_book(9999, 100)
    with pytest.raises(BookNotFoundError):
        stocked.issue_book(1000, 999)
    with pytest.raises(NotFoundError):
        stocked.issue_book(9999, 999)
    assert stocked.find_book(100).is_issued is False


def test_issue_trusts_book_flag_only(stocked):
    # Member 1001 already (inconsistently) lists book 100 but the flag is clear
    stocked.members[1001].issued_books.append(100)
    stocked.issue_book(1000, 100)
    assert stocked.find_member(1000).issued_books == [100]
    assert stocked.find_member(1001).issued_books == [100]


def test_return_book(stocked):
    stocked.issue_book(1000, 100)
    stocked.return_book(1000, 100)
    assert stocked.find_book(100).is_issued is False
    assert stocked.find_member(1000).issued_books == []
    reloaded = _reload(stocked)
    assert reloaded.find_book(100).is_issued is False


def test_return_not_issued_to_member(stocked):
    stocked.issue_book(1000, 100)
    before = _snapshot(stocked)
    with pytest.raises(NotIssuedToMemberError):
        stocked.return_book(1001, 100)
    with pytest.raises(NotIssuedToMemberError):
        stocked.return_book(1000, 101)
    assert _snapshot(stocked) == before


def test_return_unknown_ids(stocked):
    with pytest.raises(MemberNotFoundError):
        stocked.return_book(42, 100)
    with pytest.raises(BookNotFoundError):
        stocked.return_book(1000, 42)


def test_book_can_be_reissued_after_return(stocked):
    stocked.issue_book(1000, 100)
    stocked.return_book(1000, 100)
    stocked.issue_book(1001, 100)
    assert stocked.find_member(1001).issued_books == [100]


def test_member_holds_several_books(stocked):
    stocked.issue_book(1000, 100)
    stocked.issue_book(1000, 101)
    assert stocked.find_member(1000).issued_books == [100, 101]
    stocked.return_book(1000, 100)
    assert stocked.find_member(1000).issued_books == [101]


def test_search_case_insensitive(stocked):
    stocked.add_book("Dune Messiah", "Frank Herbert", "SciFi")
    assert [b.book_id for b in stocked.search_by_title("dUNe")] == [100, 102]
    assert [b.book_id for b in stocked.search_by_author("AUSTEN")] == [101]
    assert [b.book_id for b in stocked.search_by_category(" sci ")] == [100, 102]
    assert stocked.search_by_title("nothing") == []


def test_sorted_books_by_title_default(lib):
    lib.add_book("zebra", "A", "X")
    lib.add_book("Apple", "B", "Y")
    lib.add_book("mango", "C", "Z")
    assert [b.title for b in lib.sorted_books()] == ["Apple", "mango", "zebra"]


def test_sorted_books_by_author_is_stable(lib):
    lib.add_book("One", "bob", "X")
    lib.add_book("Two", "Alice", "X")
    lib.add_book("Three", "alice", "X")
    assert [b.author for b in lib.sorted_books("author")] == ["Alice", "alice", "bob"]


def test_sorted_books_by_category(lib):
    lib.add_book("One", "A", "poetry")
    lib.add_book("Two", "B", "History")
    assert [b.category for b in lib.sorted_books("category")] == ["History", "poetry"]


def test_sorted_books_unknown_key_sorts_by_title(lib):
    lib.add_book("zebra", "A", "X")
    lib.add_book("Apple", "B", "Y")
    assert [b.title for b in lib.sorted_books("bogus")] == ["Apple", "zebra"]
    assert [b.title for b in lib.sorted_books("")] == ["Apple", "zebra"]


def test_load_missing_files_is_empty(lib):
    report = lib.load()
    assert report.books_loaded == 0
    assert report.members_loaded == 0
    assert report.skipped_count == 0
    assert report.errors == []


def test_load_skips_malformed_lines(lib):
    lib.books_file.write_text("100|Dune|Frank Herbert|SciFi|1\nabc|bad\n", encoding="utf-8")
    report = lib.load()
    assert report.books_loaded == 1
    assert report.skipped_count == 1
    assert report.skipped[0].line == "abc|bad"
    assert report.skipped[0].line_number == 2
    book = lib.find_book(100)
    assert book.title == "Dune"
    assert book.is_issued is True


def test_load_skips_blank_lines_and_raises_counters(lib):
    lib.books_file.write_text("\n250|T|A|Cat|0\n   \n120|U|B|Other|0\n", encoding="utf-8")
    lib.members_file.write_text("1500|Alice|a@b.co|250\n\n", encoding="utf-8")
    report = lib.load()
    assert report.books_loaded == 2
    assert report.members_loaded == 1
    assert report.skipped_count == 0
    assert lib.next_book_id == 251
    assert lib.next_member_id == 1501
    assert lib.categories == {"Cat", "Other"}
    assert lib.add_book("New", "Author", "Cat") == 251
    assert lib.add_member("Bob", "bob@b.co") == 1501


def test_load_low_ids_keep_default_counters(lib):
    lib.books_file.write_text("5|T|A|C|0\n", encoding="utf-8")
    lib.members_file.write_text("7|M|m@x.io|\n", encoding="utf-8")
    lib.load()
    assert lib.next_book_id == FIRST_BOOK_ID
    assert lib.next_member_id == FIRST_MEMBER_ID


def test_load_does_not_mutate_loaded_records(lib):
    # Flag and issued set disagree on disk; load keeps both as written
    lib.books_file.write_text("100|T|A|C|1\n", encoding="utf-8")
    lib.members_file.write_text("1000|M|m@x.io|\n", encoding="utf-8")
    lib.load()
    assert lib.find_book(100).is_issued is True
    assert lib.find_member(1000).issued_books == []


def test_load_then_save_reproduces_records(lib):
    books = ["100|Dune|Frank Herbert|SciFi|1", "101|A\\|B|C\\\\D|E\\nF|0"]
    members = ["1000|Alice|a@b.co|100", "1001|Bob|bob@b.co|"]
    lib.books_file.write_text("\n".join(books) + "\n", encoding="utf-8")
    lib.members_file.write_text("\n".join(members) + "\n", encoding="utf-8")
    lib.load()
    lib.save()
    assert sorted(lib.books_file.read_text(encoding="utf-8").splitlines()) == sorted(books)
    assert sorted(lib.members_file.read_text(encoding="utf-8").splitlines()) == sorted(members)


def test_persistence_round_trip_with_special_text(lib):
    book_id = lib.add_book("Pipes | here", "Back\\slash", "Multi\nline")
    member_id = lib.add_member("Name | with pipe", "pipe.ok@example.com")
    lib.issue_book(member_id, book_id)
    reloaded = _reload(lib)
    assert reloaded.find_book(book_id) == lib.find_book(book_id)
    assert reloaded.find_member(member_id) == lib.find_member(member_id)


def test_load_reports_unreadable_file(lib, monkeypatch):
    lib.books_file.write_text("100|T|A|C|0\n", encoding="utf-8")
    lib.members_file.write_text("1000|M|m@x.io|\n", encoding="utf-8")

    real_read_lines = storage.read_lines

    def fake_read_lines(path):
        if str(path) == str(lib.books_file):
            raise PermissionError("denied")
        return real_read_lines(path)

    monkeypatch.setattr("citylib.library.read_lines", fake_read_lines)
    report = lib.load()
    assert len(report.errors) == 1
    assert report.books_loaded == 0
    assert report.members_loaded == 1


def test_save_failure_keeps_memory_state(lib, monkeypatch):
    def failing_write(path, lines):
        raise OSError("disk full")

    monkeypatch.setattr("citylib.library.write_lines", failing_write)
    with pytest.raises(StorageError):
        lib.add_book("Dune", "Frank Herbert", "SciFi")
    assert lib.find_book(100).title == "Dune"
    assert lib.next_book_id == 101


def test_statistics(stocked):
    stocked.issue_book(1000, 100)
    assert stocked.get_statistics() == {
        "total_books": 2,
        "issued_books": 1,
        "available_books": 1,
        "total_members": 2,
        "total_categories": 2,
    }


def test_list_categories_sorted(stocked):
    stocked.add_book("Poems", "X", "art")
    assert stocked.list_categories() == ["art", "Classic", "SciFi"]


def test_find_unknown_returns_none(lib):
    assert lib.find_book(100) is None
    assert lib.find_member(1000) is None


def test_load_survives_invalid_utf8(lib):
    lib.books_file.write_bytes(b"100|Dune|Frank Herbert|SciFi|1\n101|Caf\xe9|X|Y|0\n")
    lib.members_file.write_bytes(b"1000|Ren\xe9e|renee@example.com|100\n")
    report = lib.load()
    assert report.books_loaded == 2
    assert report.members_loaded == 1
    assert report.errors == []
    assert lib.find_book(100).title == "Dune"
    assert lib.find_book(101).title == "Caf\ufffd"
    assert lib.find_member(1000).issued_books == [100]


def test_load_records_decode_failure(lib, monkeypatch):
    lib.members_file.write_text("1000|M|m@x.io|\n", encoding="utf-8")

    def undecodable(path):
        if str(path) == str(lib.books_file):
            raise UnicodeDecodeError("utf-8", b"\xe9", 0, 1, "invalid start byte")
        return storage.read_lines(path)

    monkeypatch.setattr("citylib.library.read_lines", undecodable)
    report = lib.load()
    assert len(report.errors) == 1
    assert report.members_loaded == 1


def test_load_skips_out_of_range_ids(lib):
    lib.books_file.write_text("2147483648|Big|A|C|0\n2147483647|Max|A|C|0\n", encoding="utf-8")
    report = lib.load()
    assert report.skipped_count == 1
    assert report.books_loaded == 1
    assert lib.find_book(2147483647).title == "Max"
