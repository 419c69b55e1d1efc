import logging
import sys
from typing import Optional, Tuple

import typer
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from citylib.config import settings
from citylib.exceptions import LibraryError, StorageError
from citylib.library import Library, LoadReport, SORT_KEYS
from citylib.ui_helpers import (
    print_book_list,
    print_member_list,
    print_stats_result,
    set_output_mode,
)

logging.basicConfig(level=getattr(logging, settings.log_level, logging.WARNING))

APP_NAME = f"{settings.app_name} Digital Management System"
INVALID_ID_MESSAGE = "Invalid ID - must be numeric."

console = Console()
err_console = Console(stderr=True)


# Single loaded Library per run
class LibraryManager:
    _instance: Optional[Library] = None
    _paths_snapshot: Optional[Tuple[str, str]] = None

    @classmethod
    def get_instance(cls) -> Library:
        """Get the loaded Library, building it on first use."""
        paths = (str(settings.books_file), str(settings.members_file))
        # Rebuild when the configured data files change (e.g. per-test files)
        if cls._instance is None or paths != cls._paths_snapshot:
            lib = Library(*paths)
            _report_load(lib.load())
            cls._instance = lib
            cls._paths_snapshot = paths
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None
        cls._paths_snapshot = None


def _report_load(report: LoadReport) -> None:
    for skipped in report.skipped:
        err_console.print(f"[yellow]Skipping invalid line in {escape(skipped.file)}: {escape(skipped.line)}[/]")
    for error in report.errors:
        err_console.print(f"[red]Error loading data: {escape(error)}[/]")


def _parse_id(raw: str) -> Optional[int]:
    try:
        return int(raw.strip())
    except (ValueError, AttributeError):
        return None


def _report_error(e: LibraryError) -> None:
    if isinstance(e, StorageError):
        print(f"Warning: change kept in memory but not saved. {e}")
    else:
        print(f"Error: {e}")


# --- Typer CLI Application ---
app = typer.Typer(help=f"{settings.app_name} CLI")


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global options for the CLI (e.g. output mode)."""
    if output:
        set_output_mode(output)


@app.command("list")
def cli_list():
    """List all books."""
    print_book_list(LibraryManager.get_instance().list_books())


@app.command("members")
def cli_members():
    """List all members and the books they hold."""
    print_member_list(LibraryManager.get_instance().list_members())


@app.command("categories")
def cli_categories():
    """List every category in the catalog."""
    categories = LibraryManager.get_instance().list_categories()
    if not categories:
        print("No categories yet.")
        return
    print(f"Categories ({len(categories)}):")
    for category in categories:
        print(f"- {category}")


@app.command("add-book")
def cli_add_book(
    title: str = typer.Argument(..., help="Book title"),
    author: str = typer.Argument(..., help="Author"),
    category: str = typer.Argument(..., help="Category"),
):
    """Add a book to the catalog."""
    lib = LibraryManager.get_instance()
    try:
        book_id = lib.add_book(title, author, category)
        print(f"Book added successfully with ID: {book_id}")
    except LibraryError as e:
        _report_error(e)


@app.command("add-member")
def cli_add_member(
    name: str = typer.Argument(..., help="Member name"),
    email: str = typer.Argument(..., help="Member email"),
):
    """Register a new member."""
    lib = LibraryManager.get_instance()
    try:
        member_id = lib.add_member(name, email)
        print(f"Member added successfully with ID: {member_id}")
    except LibraryError as e:
        _report_error(e)


@app.command("issue")
def cli_issue(member_id: str, book_id: str):
    """Issue a book to a member."""
    mid, bid = _parse_id(member_id), _parse_id(book_id)
    if mid is None or bid is None:
        print(INVALID_ID_MESSAGE)
        return
    try:
        LibraryManager.get_instance().issue_book(mid, bid)
        print(f"Book ID {bid} issued to Member ID {mid}")
    except LibraryError as e:
        _report_error(e)


@app.command("return")
def cli_return(member_id: str, book_id: str):
    """Return a book a member holds."""
    mid, bid = _parse_id(member_id), _parse_id(book_id)
    if mid is None or bid is None:
        print(INVALID_ID_MESSAGE)
        return
    try:
        LibraryManager.get_instance().return_book(mid, bid)
        print(f"Book ID {bid} returned by Member ID {mid}")
    except LibraryError as e:
        _report_error(e)


@app.command("search")
def cli_search(
    keyword: str = typer.Argument(..., help="Search keyword"),
    by: str = typer.Option("title", "--by", "-b", help="Field to search: title | author | category"),
):
    """Case-insensitive search on one book field."""
    lib = LibraryManager.get_instance()
    searches = {
        "title": lib.search_by_title,
        "author": lib.search_by_author,
        "category": lib.search_by_category,
    }
    search = searches.get(by.lower().strip())
    if search is None:
        print(f"Unsupported field: {by}. Use title, author or category.")
        return
    print_book_list(search(keyword), title=f"Search: {keyword}", empty_message="No books found.")


@app.command("sort")
def cli_sort(
    by: str = typer.Option("title", "--by", "-b", help="Sort key: title | author | category"),
):
    """List books sorted by title, author or category."""
    books = LibraryManager.get_instance().sorted_books(by)
    print_book_list(books, title=f"Sorted by {by}")


@app.command("stats")
def cli_stats():
    """Show catalog statistics."""
    print_stats_result(LibraryManager.get_instance().get_statistics())


@app.command("menu")
def cli_menu():
    """Start the interactive menu."""
    run_menu()


# --- Interactive menu ---
def _ask_id(prompt: str) -> Optional[int]:
    value = _parse_id(Prompt.ask(prompt))
    if value is None:
        console.print(f"[bold red]{INVALID_ID_MESSAGE}[/]")
    return value


def add_book():
    lib = LibraryManager.get_instance()
    title = Prompt.ask("Enter Book Title", default="")
    author = Prompt.ask("Enter Author", default="")
    category = Prompt.ask("Enter Category", default="")
    try:
        book_id = lib.add_book(title, author, category)
        console.print(Panel.fit(f"[green]Book added successfully with ID:[/] [bold]{book_id}[/]", border_style="green"))
    except LibraryError as e:
        console.print(f"[bold red]{escape(str(e))}[/]")


def add_member():
    lib = LibraryManager.get_instance()
    name = Prompt.ask("Enter Member Name", default="")
    email = Prompt.ask("Enter Email", default="")
    try:
        member_id = lib.add_member(name, email)
        console.print(Panel.fit(f"[green]Member added successfully with ID:[/] [bold]{member_id}[/]", border_style="green"))
    except LibraryError as e:
        console.print(f"[bold red]{escape(str(e))}[/]")


def issue_book():
    lib = LibraryManager.get_instance()
    member_id = _ask_id("Enter Member ID")
    if member_id is None:
        return
    book_id = _ask_id("Enter Book ID to issue")
    if book_id is None:
        return
    try:
        lib.issue_book(member_id, book_id)
        console.print(f"[green]Book ID {book_id} issued to Member ID {member_id}[/]")
    except LibraryError as e:
        console.print(f"[bold red]{escape(str(e))}[/]")


def return_book():
    lib = LibraryManager.get_instance()
    member_id = _ask_id("Enter Member ID")
    if member_id is None:
        return
    book_id = _ask_id("Enter Book ID to return")
    if book_id is None:
        return
    try:
        lib.return_book(member_id, book_id)
        console.print(f"[green]Book ID {book_id} returned by Member ID {member_id}[/]")
    except LibraryError as e:
        console.print(f"[bold red]{escape(str(e))}[/]")


def search_books():
    lib = LibraryManager.get_instance()
    by = Prompt.ask("Search by", choices=["title", "author", "category"], default="title")
    keyword = Prompt.ask(f"Enter {by} keyword", default="")
    searches = {
        "title": lib.search_by_title,
        "author": lib.search_by_author,
        "category": lib.search_by_category,
    }
    print_book_list(searches[by](keyword), title=f"Search: {keyword}", empty_message="No books found.")


def sort_books():
    lib = LibraryManager.get_instance()
    by = Prompt.ask("Sort by", choices=list(SORT_KEYS), default="title")
    print_book_list(lib.sorted_books(by), title=f"Sorted by {by}")


def show_all_books():
    print_book_list(LibraryManager.get_instance().list_books(), title="All books")


def show_all_members():
    print_member_list(LibraryManager.get_instance().list_members())


def show_stats():
    print_stats_result(LibraryManager.get_instance().get_statistics())


def save_and_exit():
    console.print("Saving data and exiting...")
    try:
        LibraryManager.get_instance().save()
        console.print("[green]Saved. Bye![/]")
    except StorageError as e:
        console.print(f"[bold red]{escape(str(e))}[/]")


def run_menu():
    """Interactive menu for the library CLI."""
    menu_items = [
        ("1", "Add Book", add_book),
        ("2", "Add Member", add_member),
        ("3", "Issue Book", issue_book),
        ("4", "Return Book", return_book),
        ("5", "Search Books", search_books),
        ("6", "Sort Books", sort_books),
        ("7", "Show All Books", show_all_books),
        ("8", "Show All Members", show_all_members),
        ("9", "Statistics", show_stats),
        ("0", "Exit", save_and_exit),
    ]
    actions = {key: action for key, _, action in menu_items}

    def render_menu() -> None:
        table = Table.grid(padding=(0, 2))
        table.add_column(justify="right", style="bold cyan", width=4)
        table.add_column(justify="left", style="white")
        for key, label, _ in menu_items:
            table.add_row(f"[reverse]{key}[/]", label)
        console.print(Panel(table, title=APP_NAME, border_style="cyan", box=box.HEAVY, padding=(1, 2)))

    LibraryManager.get_instance()
    while True:
        render_menu()
        choice = Prompt.ask("Enter your choice", choices=list(actions), default="7").strip()
        actions[choice]()
        if choice == "0":
            break
        console.print()


def main() -> None:
    if len(sys.argv) > 1:
        app()
    else:
        run_menu()


if __name__ == "__main__":
    main()
