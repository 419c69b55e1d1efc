import json
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from citylib.book import Book
from citylib.config import settings
from citylib.member import Member

# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODES = {"plain", "json", "rich"}

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in OUTPUT_MODES:
        settings.output_mode = mode


def get_output_mode() -> str:
    mode = (settings.output_mode or "plain").lower()
    return mode if mode in OUTPUT_MODES else "plain"


def format_book(book: Book) -> str:
    return f"{book.book_id} - {book.title} by {book.author} [{book.category}] ({book.status})"


def format_member(member: Member) -> str:
    held = ", ".join(str(i) for i in member.issued_books) or "None"
    return f"{member.member_id} - {member.name} <{member.email}> issued: {held}"


def print_book_list(books: List[Book], title: str = "Books", empty_message: str = "No books in library.") -> None:
    """Print books in the current output mode.
    - plain: 'ID - Title by Author [Category] (Status)' lines
    - json: JSON array of book dicts
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        print(empty_message)
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title=f"📚 {escape(title)}", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Category", style="white")
        table.add_column("Status", style="white")
        for b in books:
            status = "[red]Issued[/]" if b.is_issued else "[green]Available[/]"
            table.add_row(str(b.book_id), escape(b.title), escape(b.author), escape(b.category), status)
        _console.print(table)
    else:
        for b in books:
            print(format_book(b))


def print_member_list(members: List[Member], empty_message: str = "No members registered.") -> None:
    mode = get_output_mode()

    if not members:
        print(empty_message)
        return

    if mode == "json":
        print(json.dumps([m.to_dict() for m in members], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="👥 Members", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Name", style="white")
        table.add_column("Email", style="white")
        table.add_column("Issued Books", style="white")
        for m in members:
            table.add_row(
                str(m.member_id), escape(m.name), escape(m.email),
                ", ".join(str(i) for i in m.issued_books) or "None",
            )
        _console.print(table)
    else:
        for m in members:
            print(format_member(m))


def print_stats_result(stats: Optional[Dict[str, Any]]) -> None:
    """Print catalog statistics in the current output mode."""
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    labels = [
        ("total_books", "Total Books"),
        ("issued_books", "Issued Books"),
        ("available_books", "Available Books"),
        ("total_members", "Total Members"),
        ("total_categories", "Categories"),
    ]

    if mode == "json":
        print(json.dumps({key: stats.get(key, 0) for key, _ in labels}, ensure_ascii=False))
    elif mode == "rich":
        content = "\n".join(f"[bold]{label}:[/] {stats.get(key, 0)}" for key, label in labels)
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        for key, label in labels:
            print(f"{label}: {stats.get(key, 0)}")
