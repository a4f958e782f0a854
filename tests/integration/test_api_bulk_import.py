"""Integration tests for the bulk import API."""

import uuid
from datetime import datetime, timezone

from httpx import AsyncClient

HEADER = "Title,Author,Genres,PublishedDate,Rating,Edition,ISBN\n"


def _upload(content: str, filename: str = "books.csv", content_type: str = "text/csv") -> dict:
    return {"file": (filename, content.encode(), content_type)}


class TestBulkImportAPI:
    """Integration tests for CSV import endpoints."""

    async def test_import_books(self, client: AsyncClient):
        """Test importing a CSV file."""
        content = HEADER + "Emma,Jane Austen,Classic,1815-12-23,5,,\n" + ",Nobody,,2000-01-01,3,,\n"

        response = await client.post("/api/bulkimport/books", files=_upload(content))

        assert response.status_code == 200
        data = response.json()
        assert data["imported_count"] == 1
        assert data["skipped_count"] == 1
        assert data["total_processed"] == 2
        assert data["status"] == "completed_with_errors"
        assert data["cancelled"] is False
        assert data["skipped_rows"] == [
            {"row_number": 3, "title": "", "author": "Nobody", "reason": "Title is required"}
        ]

        listing = await client.get("/api/books")
        assert [item["title"] for item in listing.json()["items"]] == ["Emma"]

    async def test_import_duplicate_strategy(self, client: AsyncClient, library):
        """Test the duplicate strategy form field."""
        content = HEADER + "Dune,Frank Herbert,,1965-08-01,4,,\n"

        skipped = await client.post("/api/bulkimport/books", files=_upload(content))
        failed = await client.post(
            "/api/bulkimport/books",
            files=_upload(content),
            data={"duplicate_strategy": "fail"},
        )

        assert skipped.json()["skipped_rows"][0]["reason"] == "Already exists in collection"
        assert failed.status_code == 400
        assert failed.json()["detail"] == "Found 1 duplicate books. Import aborted."

    async def test_import_unknown_strategy(self, client: AsyncClient):
        """Test an unknown duplicate strategy is rejected."""
        response = await client.post(
            "/api/bulkimport/books",
            files=_upload(HEADER),
            data={"duplicate_strategy": "merge"},
        )
        assert response.status_code == 422

    async def test_import_wrong_extension(self, client: AsyncClient):
        """Test only .csv files are accepted."""
        response = await client.post(
            "/api/bulkimport/books", files=_upload(HEADER, filename="books.xlsx")
        )
        assert response.status_code == 400
        assert "CSV" in response.json()["detail"]

    async def test_import_wrong_content_type(self, client: AsyncClient):
        """Test non-CSV content types are rejected."""
        response = await client.post(
            "/api/bulkimport/books", files=_upload(HEADER, content_type="image/png")
        )
        assert response.status_code == 400

    async def test_import_too_large(self, client: AsyncClient, monkeypatch):
        """Test files over the size limit are rejected."""
        from bookshelf.core.config import get_settings

        monkeypatch.setattr(get_settings(), "max_import_file_bytes", 64)
        content = HEADER + "Emma,Jane Austen,,1815-12-23,5,,\n" * 5

        response = await client.post("/api/bulkimport/books", files=_upload(content))

        assert response.status_code == 413

    async def test_import_missing_columns(self, client: AsyncClient):
        """Test a file without the required columns is a bad request."""
        response = await client.post(
            "/api/bulkimport/books", files=_upload("Title,Author\nEmma,Jane Austen\n")
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required columns: PublishedDate, Rating"

    async def test_get_import_job(self, client: AsyncClient, other_user_id):
        """Test fetching an import job, and that it is private."""
        content = HEADER + "Emma,Jane Austen,,1815-12-23,5,,\n"
        summary = await client.post(
            "/api/bulkimport/books", files=_upload(content, filename="austen.csv")
        )
        job_id = summary.json()["job_id"]

        response = await client.get(f"/api/bulkimport/jobs/{job_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["file_name"] == "austen.csv"
        assert data["status"] == "completed"
        assert data["imported_rows"] == 1

        other = await client.get(
            f"/api/bulkimport/jobs/{job_id}", headers={"X-User-Id": str(other_user_id)}
        )
        assert other.status_code == 404

    async def test_get_import_job_not_found(self, client: AsyncClient):
        """Test fetching a job that does not exist."""
        response = await client.get(f"/api/bulkimport/jobs/{uuid.uuid4()}")
        assert response.status_code == 404


class TestExportAPI:
    """Integration tests for CSV export endpoints."""

    async def test_export_books(self, client: AsyncClient, library):
        """Test downloading the collection."""
        response = await client.get("/api/bulkimport/export/books")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        today = datetime.now(tz=timezone.utc).date().isoformat()
        assert (
            response.headers["content-disposition"]
            == f'attachment; filename="books-export-{today}.csv"'
        )
        lines = response.text.splitlines()
        assert lines[0] == HEADER.strip()
        assert len(lines) == 3

    async def test_export_empty(self, client: AsyncClient):
        """Test exporting an empty collection gives just the header."""
        response = await client.get("/api/bulkimport/export/books")
        assert response.text.splitlines() == [HEADER.strip()]

    async def test_export_then_import(self, client: AsyncClient, library, other_user_id):
        """Test an export can be imported by another user unchanged."""
        exported = await client.get("/api/bulkimport/export/books")

        response = await client.post(
            "/api/bulkimport/books",
            files=_upload(exported.text),
            headers={"X-User-Id": str(other_user_id)},
        )
        assert response.json()["imported_count"] == 2

        copied = await client.get(
            "/api/bulkimport/export/books", headers={"X-User-Id": str(other_user_id)}
        )
        assert copied.text == exported.text

    async def test_template(self, client: AsyncClient):
        """Test the import template download."""
        del client.headers["X-User-Id"]
        response = await client.get("/api/bulkimport/template")

        assert response.status_code == 200
        assert "books-import-template.csv" in response.headers["content-disposition"]
        assert response.text.startswith("#")
