import pytest

from citylib.config import settings
from citylib.library import Library


@pytest.fixture
def data_files(tmp_path):
    """Per-test books and members file paths."""
    return tmp_path / "books.txt", tmp_path / "members.txt"


@pytest.fixture
def lib(data_files):
    books_file, members_file = data_files
    return Library(books_file=str(books_file), members_file=str(members_file))


@pytest.fixture
def cli_env(data_files, monkeypatch):
    """Point the CLI at per-test data files and drop any cached Library."""
    from main import LibraryManager

    books_file, members_file = data_files
    monkeypatch.setattr(settings, "books_file", str(books_file))
    monkeypatch.setattr(settings, "members_file", str(members_file))
    monkeypatch.setattr(settings, "output_mode", "plain")
    LibraryManager.reset()
    yield data_files
    LibraryManager.reset()
