"""Unit tests for the CSV layout."""

import csv
import io
from datetime import date

import pytest

from bookshelf.core.errors import ValidationError
from bookshelf.models.book import Book
from bookshelf.models.genre import BookGenre
from bookshelf.services.csv_format import (
    CSV_HEADER,
    book_to_row,
    read_rows,
    split_genres,
    write_books,
    write_template,
)

HEADER = "Title,Author,Genres,PublishedDate,Rating,Edition,ISBN\n"


class TestWriteBooks:
    """Tests for CSV export formatting."""

    def test_book_to_row(self):
        """Test genres are sorted and joined, and missing fields are blank."""
        book = Book(
            title="Dune",
            author="Frank Herbert",
            published_date=date(1965, 8, 1),
            rating=4,
            genre_links=[BookGenre(genre_name="Science Fiction"), BookGenre(genre_name="classic")],
        )

        assert book_to_row(book) == [
            "Dune",
            "Frank Herbert",
            "classic,Science Fiction",
            "1965-08-01",
            "4",
            "",
            "",
        ]

    def test_special_characters_are_quoted(self):
        """Test commas, quotes and newlines survive a read back."""
        book = Book(
            title='Hello, "World"',
            author="Line\nBreak",
            published_date=date(2000, 1, 2),
            rating=3,
            edition="2nd, revised",
        )

        content = write_books([book])
        records = list(csv.reader(io.StringIO(content)))

        assert records[0] == CSV_HEADER
        assert records[1][0] == 'Hello, "World"'
        assert records[1][1] == "Line\nBreak"
        assert records[1][5] == "2nd, revised"

    def test_empty_export_has_header(self):
        """Test exporting no books yields just the header line."""
        assert write_books([]).splitlines() == [",".join(CSV_HEADER)]

    def test_template(self):
        """Test the template has instructions, a header and examples."""
        lines = write_template().splitlines()

        assert lines[0].startswith("#")
        assert "Title,Author,Genres,PublishedDate,Rating,Edition,ISBN" in lines
        assert any(line.startswith("The Great Gatsby,") for line in lines)


class TestReadRows:
    """Tests for parsing uploaded CSV files."""

    def test_read_rows(self):
        """Test rows are keyed by column and numbered by line."""
        data = (HEADER + "Dune,Frank Herbert,\"Fiction, Classic\",1965-08-01,4,,\n").encode()

        rows = read_rows(data)

        assert len(rows) == 1
        assert rows[0].row_number == 2
        assert rows[0].get("title") == "Dune"
        assert rows[0].get("genres") == "Fiction, Classic"
        assert rows[0].get("isbn") == ""
        assert rows[0].error is None

    def test_header_aliases_and_order(self):
        """Test alternative header names in any order."""
        data = b"Rating,Book Author,Book Title,Published_Date\n5,Ann Author,A Title,2001-01-01\n"

        rows = read_rows(data)

        assert rows[0].get("title") == "A Title"
        assert rows[0].get("author") == "Ann Author"
        assert rows[0].get("publisheddate") == "2001-01-01"
        assert rows[0].get("genres") == ""

    def test_missing_required_columns(self):
        """Test a header without required columns is rejected."""
        message = "Missing required columns: PublishedDate, Rating"
        with pytest.raises(ValidationError, match=message):
            read_rows(b"Title,Author\nDune,Frank Herbert\n")

    def test_comment_lines_skipped(self):
        """Test the downloadable template parses with correct line numbers."""
        rows = read_rows(write_template().encode())

        assert [row.get("title") for row in rows] == ["The Great Gatsby", "1984"]
        assert rows[0].row_number == 6

    def test_blank_rows_skipped(self):
        """Test blank lines between records are ignored."""
        data = (HEADER + "\nDune,Frank Herbert,,1965-08-01,4,,\n,,,,,,\n").encode()

        rows = read_rows(data)

        assert len(rows) == 1
        assert rows[0].row_number == 3

    def test_multiline_field_numbered_by_first_line(self):
        """Test a record spanning lines is numbered by the line it starts on."""
        data = (
            HEADER
            + '"A Title\nOver Three\nLines",Ann Author,,2001-01-01,5,,\n'
            + "Next Book,Ann Author,,2002-01-01,4,,\n"
        ).encode()

        rows = read_rows(data)

        assert rows[0].get("title") == "A Title\nOver Three\nLines"
        assert [row.row_number for row in rows] == [2, 5]

    def test_malformed_row(self):
        """Test a row with the wrong number of fields carries an error."""
        data = (HEADER + "Dune,Frank Herbert,1965-08-01\n").encode()

        rows = read_rows(data)

        assert rows[0].error == "Malformed row: expected 7 fields but found 3"
        assert rows[0].get("title") == "Dune"
        assert rows[0].get("author") == "Frank Herbert"

    def test_byte_order_mark(self):
        """Test a UTF-8 byte order mark does not break the header."""
        data = b"\xef\xbb\xbf" + (HEADER + "Dune,Frank Herbert,,1965-08-01,4,,\n").encode()

        rows = read_rows(data)

        assert rows[0].get("title") == "Dune"

    def test_not_utf8(self):
        """Test non-UTF-8 bytes are rejected."""
        data = HEADER.encode() + "Café,Émile,,2000-01-01,3,,\n".encode("latin-1")

        with pytest.raises(ValidationError, match="UTF-8"):
            read_rows(data)

    @pytest.mark.parametrize("data", [b"", b"\n\n", b"# just a comment\n"])
    def test_empty_file(self, data):
        """Test a file without a header row is rejected."""
        with pytest.raises(ValidationError, match="no header row"):
            read_rows(data)

    def test_header_only(self):
        """Test a header with no data rows yields nothing."""
        assert read_rows(HEADER.encode()) == []


def test_split_genres():
    """Test genre cells split on commas and drop blanks."""
    assert split_genres(" Fiction , ,Classic,") == ["Fiction", "Classic"]
    assert split_genres("") == []
