"""CSV layout shared by book export and import."""

import csv
import io
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from bookshelf.core.errors import ValidationError
from bookshelf.models.book import Book
from bookshelf.models.genre import GENRE_SEPARATOR

CSV_HEADER = ["Title", "Author", "Genres", "PublishedDate", "Rating", "Edition", "ISBN"]

# Canonical column keys, in header order
COLUMNS = ("title", "author", "genres", "publisheddate", "rating", "edition", "isbn")
REQUIRED_COLUMNS = ("title", "author", "publisheddate", "rating")

HEADER_ALIASES = {
    "book title": "title",
    "book_title": "title",
    "book author": "author",
    "book_author": "author",
    "genre": "genres",
    "published": "publisheddate",
    "published_date": "publisheddate",
    "publish_date": "publisheddate",
    "publication_date": "publisheddate",
}

TEMPLATE_COMMENTS = [
    "# CSV Import Template for Library Books",
    "# Required fields: Title, Author, PublishedDate (YYYY-MM-DD format), Rating (1-5)",
    "# Optional fields: Genres (comma-separated), Edition, ISBN",
    "# Delete the example rows before importing",
]

TEMPLATE_EXAMPLES = [
    [
        "The Great Gatsby",
        "F. Scott Fitzgerald",
        "Fiction,Classic",
        "1925-04-10",
        "5",
        "First Edition",
        "978-0743273565",
    ],
    [
        "1984",
        "George Orwell",
        "Dystopian,Science Fiction",
        "1949-06-08",
        "5",
        "Classic Edition",
        "978-0452284234",
    ],
]


@dataclass
class CsvRow:
    """A data row keyed by canonical column name.

    ``error`` is set when the row could not be mapped onto the header.
    """

    row_number: int
    values: dict[str, str]
    error: str | None = None

    def get(self, column: str) -> str:
        return (self.values.get(column) or "").strip()


def split_genres(value: str) -> list[str]:
    """Split a Genres cell into trimmed, non-empty names."""
    return [name.strip() for name in value.split(GENRE_SEPARATOR) if name.strip()]


def book_to_row(book: Book) -> list[str]:
    """Serialise a book into CSV cells in header order."""
    return [
        book.title,
        book.author,
        GENRE_SEPARATOR.join(sorted(book.genres, key=str.lower)),
        book.published_date.isoformat(),
        str(book.rating),
        book.edition or "",
        book.isbn or "",
    ]


def write_books(books: Iterable[Book]) -> str:
    """Render books as CSV text with a header line."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_HEADER)
    for book in books:
        writer.writerow(book_to_row(book))
    return output.getvalue()


def write_template() -> str:
    """Render an import template with instructions and example rows."""
    output = io.StringIO()
    for comment in TEMPLATE_COMMENTS:
        output.write(comment + "\r\n")
    writer = csv.writer(output)
    writer.writerow(CSV_HEADER)
    writer.writerows(TEMPLATE_EXAMPLES)
    return output.getvalue()


def read_rows(data: bytes) -> list[CsvRow]:
    """Parse an uploaded CSV file into rows keyed by canonical column.

    Leading comment lines (starting with ``#``) and blank lines are ignored.
    Problems with the file as a whole raise ValidationError; rows whose
    field count does not match the header are returned with ``error`` set.
    """
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError("File must be UTF-8 encoded") from e

    lines = text.splitlines(keepends=True)
    skipped = 0
    while skipped < len(lines) and (
        not lines[skipped].strip() or lines[skipped].lstrip().startswith("#")
    ):
        skipped += 1

    reader = csv.reader(io.StringIO("".join(lines[skipped:])))
    try:
        records = list(_numbered_records(reader, skipped))
    except csv.Error as e:
        raise ValidationError(f"Could not parse CSV: {e}") from e

    if not records:
        raise ValidationError("File is empty or has no header row")

    _, header = records[0]
    columns = _map_header(header)

    rows = []
    for line_number, record in records[1:]:
        if not any(cell.strip() for cell in record):
            continue
        if len(record) != len(header):
            rows.append(
                CsvRow(
                    row_number=line_number,
                    values=_partial_values(record, columns),
                    error=f"Malformed row: expected {len(header)} fields but found {len(record)}",
                )
            )
            continue
        values = {column: record[index] for column, index in columns.items()}
        rows.append(CsvRow(row_number=line_number, values=values))
    return rows


def _numbered_records(reader, offset: int) -> Iterator[tuple[int, list[str]]]:
    # A quoted field can span lines, so note where each record starts
    while True:
        start = reader.line_num + 1
        try:
            record = next(reader)
        except StopIteration:
            return
        yield start + offset, record


def _map_header(header: list[str]) -> dict[str, int]:
    columns: dict[str, int] = {}
    for index, name in enumerate(header):
        key = name.strip().lower()
        key = HEADER_ALIASES.get(key, key)
        if key in COLUMNS and key not in columns:
            columns[key] = index

    missing = [
        CSV_HEADER[COLUMNS.index(column)] for column in REQUIRED_COLUMNS if column not in columns
    ]
    if missing:
        raise ValidationError(f"Missing required columns: {', '.join(missing)}")
    return columns


def _partial_values(record: list[str], columns: dict[str, int]) -> dict[str, str]:
    # Enough to name the row in the import report
    return {
        column: record[index]
        for column, index in columns.items()
        if column in ("title", "author") and index < len(record)
    }
