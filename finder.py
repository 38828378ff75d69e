#!/usr/bin/env python3
"""Book Finder CLI - search Open Library, bookmark results, keep a reading list."""
import argparse
import asyncio
import json
import shlex
import sys
from typing import List, Optional
from tabulate import tabulate
from bookfinder.async_client import AsyncOpenLibraryClient
from bookfinder.client import OpenLibraryClient
from bookfinder.config import Config
from bookfinder.controller import (
    QUICK_SEARCHES,
    AsyncSearchController,
    BookCard,
    FinderSession,
    SearchController,
)
from bookfinder.models import SearchField, SearchFilters, SearchQuery
from bookfinder.session import SessionStatus
import logging

logger = logging.getLogger(__name__)

NO_COVER = "No Cover"


def configure_logging(level: str = Config.LOG_LEVEL):
    """Configure root logging once for the CLI process."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def _truncate(text: str, width: int) -> str:
    return text[:width] + "..." if len(text) > width else text


def build_query(args) -> SearchQuery:
    """Build the query model from parsed search arguments."""
    return SearchQuery(
        text=args.query,
        field=SearchField.parse(args.field),
        filters=SearchFilters(
            year_from=args.year_from,
            year_to=args.year_to,
            language=args.language
        )
    )


def display_cards(cards: List[BookCard], format_type: str):
    """Display result cards in specified format."""
    if format_type == "table":
        headers = ["#", "Title", "Authors", "Year", "Cover", "Saved"]
        rows = [
            [
                i,
                _truncate(card.book.title, 50),
                _truncate(card.book.authors_str, 30),
                card.book.year_str,
                card.cover_url or NO_COVER,
                ("B" if card.bookmarked else "") + ("R" if card.in_reading_list else "")
            ]
            for i, card in enumerate(cards, 1)
        ]
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))

    elif format_type == "json":
        cards_dict = [
            {
                "identity": card.book.identity,
                "title": card.book.title,
                "authors": card.book.authors,
                "first_publish_year": card.book.first_publish_year,
                "cover_url": card.cover_url,
                "bookmarked": card.bookmarked,
                "in_reading_list": card.in_reading_list
            }
            for card in cards
        ]
        print(json.dumps(cards_dict, indent=2))

    elif format_type == "compact":
        for i, card in enumerate(cards, 1):
            print(f"{i}. {card.book.title} - {card.book.authors_str} ({card.book.year_str})")


def display_summary(controller):
    """Print the line shown above the result grid."""
    if controller.status == SessionStatus.ERROR:
        print(f"❌ {controller.error_message}")
    elif controller.results:
        more = " (more available)" if controller.has_more else ""
        print(f"Found {len(controller.results)} books{more}")
    elif controller.query.text.strip():
        print(f"No books found for '{controller.query.text}'")


def display_details(card: BookCard):
    """Show everything known about one book."""
    book = card.book
    rows = [
        ["Title", book.title],
        ["Authors", book.authors_str],
        ["First published", book.year_str],
        ["Editions", book.edition_count if book.edition_count is not None else "N/A"],
        ["Languages", ", ".join(book.languages) or "N/A"],
        ["Subjects", _truncate(", ".join(book.subjects[:8]), 80) or "N/A"],
        ["Cover", card.cover_url or NO_COVER],
        ["Key", book.key or "N/A"],
        ["Bookmarked", "yes" if card.bookmarked else "no"],
        ["In reading list", "yes" if card.in_reading_list else "no"],
    ]
    print("\n" + tabulate(rows, tablefmt="simple"))


def display_bookmarks(session: FinderSession):
    if not len(session.bookmarks):
        print("No bookmarks yet")
        return
    print(f"{len(session.bookmarks)} saved books")
    display_cards([session.card(book) for book in session.bookmarks], "table")


def display_reading_list(session: FinderSession):
    if not len(session.reading_list):
        print("No books in reading list yet")
        return
    print(f"{len(session.reading_list)} books to read")
    rows = [
        [
            _truncate(entry.book.title, 50),
            _truncate(entry.book.authors_str, 30),
            entry.added_at.strftime("%Y-%m-%d %H:%M"),
            entry.identity
        ]
        for entry in session.reading_list
    ]
    print("\n" + tabulate(rows, headers=["Title", "Authors", "Added", "ID"], tablefmt="grid"))


def display_suggestions():
    rows = [
        [i, suggestion.label, suggestion.field.value, suggestion.text]
        for i, suggestion in enumerate(QUICK_SEARCHES, 1)
    ]
    print("\n" + tabulate(rows, headers=["#", "Suggestion", "Field", "Query"], tablefmt="simple"))


def search_books_sync(args, config: Config):
    """Search for books using sync client."""
    with OpenLibraryClient(
        base_url=config.OPENLIBRARY_BASE_URL,
        covers_url=config.OPENLIBRARY_COVERS_URL,
        timeout=config.DEFAULT_TIMEOUT
    ) as client:
        session = FinderSession(SearchController(client))
        session.controller.search(build_query(args))

        for _ in range(args.pages - 1):
            if not session.controller.has_more or session.controller.status == SessionStatus.ERROR:
                break
            session.controller.load_more()

        display_summary(session.controller)
        display_cards(session.cards(), args.format)


async def search_books_async(args, config: Config):
    """Search for books using async client."""
    async with AsyncOpenLibraryClient(
        base_url=config.OPENLIBRARY_BASE_URL,
        covers_url=config.OPENLIBRARY_COVERS_URL,
        timeout=config.DEFAULT_TIMEOUT
    ) as client:
        session = FinderSession(AsyncSearchController(client))
        await session.controller.search(build_query(args))

        for _ in range(args.pages - 1):
            if not session.controller.has_more or session.controller.status == SessionStatus.ERROR:
                break
            await session.controller.load_more()

        display_summary(session.controller)
        display_cards(session.cards(), args.format)


SHELL_HELP = """Commands:
  search <text>                 new search with the current field and filters
  field title|author|subject    switch search field (clears results)
  filter year_from|year_to|language <value>
  filters clear                 remove all filters
  more                          load the next page
  quick [n]                     list quick searches, or run number n
  bookmark <n>                  toggle bookmark on result n
  read <n>                      add result n to the reading list
  unread <id>                   remove a book from the reading list
  details <n>                   show details for result n
  results | bookmarks | list    show results, bookmarks, reading list
  help | quit"""


def _result_at(session: FinderSession, arg: str) -> Optional[BookCard]:
    try:
        index = int(arg) - 1
    except ValueError:
        print(f"Not a result number: {arg}")
        return None
    results = session.controller.results
    if not 0 <= index < len(results):
        print(f"No result #{arg}")
        return None
    return session.card(results[index])


def _parse_year(value: str) -> Optional[int]:
    if value.lower() in ("", "none", "-"):
        return None
    return int(value)


def handle_shell_command(session: FinderSession, line: str) -> bool:
    """
    Run one shell command against the session.

    Returns:
        False when the shell should exit
    """
    parts = shlex.split(line)
    if not parts:
        return True
    command, args = parts[0].lower(), parts[1:]
    controller = session.controller
    query = session.query

    if command in ("quit", "exit", "q"):
        return False

    elif command == "help":
        print(SHELL_HELP)

    elif command == "search":
        query.text = " ".join(args)
        controller.search()
        display_summary(controller)
        display_cards(session.cards(), "compact")

    elif command == "field":
        if not args:
            print(f"Searching by {query.field.value}")
        elif controller.change_field(args[0]):
            print(f"Searching by {query.field.value}; results cleared")

    elif command == "filter":
        if len(args) < 2:
            print("Usage: filter year_from|year_to|language <value>")
        elif args[0] in ("year_from", "year_to"):
            setattr(query.filters, args[0], _parse_year(args[1]))
        elif args[0] == "language":
            query.filters.language = args[1] if args[1].lower() != "none" else None
        else:
            print(f"Unknown filter: {args[0]}")

    elif command == "filters":
        if args and args[0] == "clear":
            query.filters.clear()
        print(f"Filters: {query.filters}")

    elif command == "more":
        before = len(controller.results)
        controller.load_more()
        if controller.status == SessionStatus.ERROR:
            display_summary(controller)
        else:
            display_cards(session.cards()[before:], "compact")
            display_summary(controller)

    elif command == "quick":
        if not args:
            display_suggestions()
        else:
            index = int(args[0]) - 1
            if 0 <= index < len(QUICK_SEARCHES):
                session.quick_search(QUICK_SEARCHES[index])
                display_summary(controller)
                display_cards(session.cards(), "compact")
            else:
                print(f"No quick search #{args[0]}")

    elif command in ("bookmark", "read", "details"):
        if not args:
            print(f"Usage: {command} <n>")
            return True
        card = _result_at(session, args[0])
        if card is None:
            return True
        if command == "bookmark":
            added = session.bookmarks.toggle(card.book)
            print(f"{'Bookmarked' if added else 'Removed bookmark'}: {card.book.title}")
        elif command == "read":
            if session.reading_list.add(card.book):
                print(f"Added to reading list: {card.book.title}")
            else:
                print(f"Already in reading list: {card.book.title}")
        else:
            display_details(card)

    elif command == "unread":
        identity = " ".join(args)
        if session.reading_list.remove(identity):
            print(f"Removed from reading list: {identity}")
        else:
            print(f"Not in reading list: {identity}")

    elif command == "results":
        display_summary(controller)
        display_cards(session.cards(), "table")

    elif command == "bookmarks":
        display_bookmarks(session)

    elif command == "list":
        display_reading_list(session)

    else:
        print(f"Unknown command: {command} (try 'help')")

    return True


def run_shell(args, config: Config):
    """Interactive session with bookmarks and reading list kept in memory."""
    with OpenLibraryClient(
        base_url=config.OPENLIBRARY_BASE_URL,
        covers_url=config.OPENLIBRARY_COVERS_URL,
        timeout=config.DEFAULT_TIMEOUT
    ) as client:
        session = FinderSession(SearchController(client))
        if args.field:
            session.controller.change_field(args.field)
        print("📚 Book Finder - type 'help' for commands")

        while True:
            try:
                line = input(f"[{session.query.field.value}]> ")
            except EOFError:
                print()
                break
            try:
                if not handle_shell_command(session, line):
                    break
            except ValueError as e:
                print(f"⚠️  {e}")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Book Finder - Open Library search CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Search titles
  %(prog)s search "1984"

  # Author search, two pages, async client
  %(prog)s search "Stephen King" --field author --pages 2 --async

  # Subject search restricted to English books from the 1990s
  %(prog)s search "psychology" --field subject --year-from 1990 --year-to 1999 --language eng

  # Interactive session with bookmarks and reading list
  %(prog)s shell
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Search command
    search_parser = subparsers.add_parser("search", help="Search for books")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--field", choices=[f.value for f in SearchField], default="title", help="Search field (default: title)")
    search_parser.add_argument("--year-from", type=int, help="Earliest first publication year")
    search_parser.add_argument("--year-to", type=int, help="Latest first publication year")
    search_parser.add_argument("--language", help="Language code, e.g. eng")
    search_parser.add_argument("--pages", type=int, default=1, help="Pages to load (default: 1)")
    search_parser.add_argument("--format", choices=["table", "json", "compact"], default="table", help="Output format")
    search_parser.add_argument("--async", dest="use_async", action="store_true", help="Use async client")

    # Suggestions command
    subparsers.add_parser("suggestions", help="List quick search suggestions")

    # Shell command
    shell_parser = subparsers.add_parser("shell", help="Interactive search session")
    shell_parser.add_argument("--field", choices=[f.value for f in SearchField], help="Initial search field")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = Config()
    configure_logging(config.LOG_LEVEL)

    try:
        if args.command == "search":
            if args.use_async:
                asyncio.run(search_books_async(args, config))
            else:
                search_books_sync(args, config)

        elif args.command == "suggestions":
            display_suggestions()

        elif args.command == "shell":
            run_shell(args, config)

    except KeyboardInterrupt:
        logger.info("\n⚠️  Interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"❌ Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
