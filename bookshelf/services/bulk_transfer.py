"""CSV import and export of a user's collection.

Import is not atomic. Each accepted row is committed on its own, so a
failure or cancellation part-way through keeps the rows already imported;
the import job record always reflects what was committed. Duplicates are
checked against books the user owned before the import started, not
against other rows of the same file.
"""

import asyncio
import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from enum import Enum

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bookshelf.core.database import get_db
from bookshelf.core.errors import NotFoundError, StorageError, ValidationError
from bookshelf.core.tracing import set_span_attributes, traced_operation
from bookshelf.models.genre import GENRE_NAME_MAX_LENGTH
from bookshelf.models.import_job import ImportJob, ImportStatus
from bookshelf.services import csv_format
from bookshelf.services.book_store import (
    BookFields,
    BookStore,
    duplicate_key,
    validate_book_fields,
)

logger = logging.getLogger(__name__)

DUPLICATE_REASON = "Already exists in collection"


class DuplicateStrategy(str, Enum):
    """What to do with rows matching a book the user already owns."""

    SKIP = "skip"  # Skip the row and report it
    ALLOW = "allow"  # Import it anyway
    FAIL = "fail"  # Abort the whole import before inserting anything


@dataclass
class SkippedRow:
    """A row left out of an import and why."""

    row_number: int
    title: str
    author: str
    reason: str


@dataclass
class ImportSummary:
    """Outcome of one import call."""

    job_id: uuid.UUID
    status: ImportStatus
    imported_count: int = 0
    skipped_count: int = 0
    cancelled: bool = False
    skipped_rows: list[SkippedRow] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return self.imported_count + self.skipped_count


@dataclass
class _Candidate:
    row_number: int
    title: str
    author: str
    fields: BookFields | None = None
    reason: str | None = None


class BulkTransferService:
    """Moves a user's books in and out as CSV."""

    def __init__(self, db: AsyncSession, store: BookStore | None = None) -> None:
        self.db = db
        self.store = store or BookStore(db)

    async def export_csv(self, user_id: uuid.UUID) -> str:
        """Serialise every book the user owns."""
        with traced_operation("bulk_transfer.export_csv", "export") as span:
            books = await self.store.list_all(user_id)
            content = csv_format.write_books(books)
            set_span_attributes(span, "export", book_count=len(books), size_bytes=len(content))

        logger.info(f"Exported {len(books)} books for user {user_id}")
        return content

    async def import_csv(
        self,
        user_id: uuid.UUID,
        data: bytes,
        file_name: str = "import.csv",
        duplicate_strategy: DuplicateStrategy = DuplicateStrategy.SKIP,
        should_stop: Callable[[], Awaitable[bool]] | None = None,
    ) -> ImportSummary:
        """Import books from CSV bytes into the user's collection.

        Args:
            user_id: Owner of the imported books.
            data: Raw CSV file contents.
            file_name: Name recorded on the import job.
            duplicate_strategy: Handling of rows matching an owned book.
            should_stop: Polled before each row; returning True stops the
                import and reports the rows processed so far.

        Returns:
            ImportSummary with counts and the skipped rows.

        Raises:
            ValidationError: The file itself is unusable, or duplicates were
                found under DuplicateStrategy.FAIL. Nothing is imported.
            StorageError: The database failed mid-import. Rows committed
                before the failure are kept.
            asyncio.CancelledError: The task was cancelled. The job is
                marked cancelled before the error propagates.
        """
        with traced_operation(
            "bulk_transfer.import_csv",
            "import",
            file_name=file_name,
            size_bytes=len(data),
            duplicate_strategy=duplicate_strategy.value,
        ) as span:
            rows = csv_format.read_rows(data)
            candidates = [_to_candidate(row) for row in rows]
            set_span_attributes(span, "import", row_count=len(candidates))

            existing: set[tuple[str, str]] = set()
            if duplicate_strategy != DuplicateStrategy.ALLOW:
                existing = await self.store.existing_duplicate_keys(user_id)

            if duplicate_strategy == DuplicateStrategy.FAIL:
                duplicates = [
                    c for c in candidates
                    if c.fields is not None and duplicate_key(c.title, c.author) in existing
                ]
                if duplicates:
                    raise ValidationError(
                        f"Found {len(duplicates)} duplicate books. Import aborted."
                    )

            logger.info(
                f"Starting import of {len(candidates)} rows from '{file_name}' for user {user_id}"
            )

            job = ImportJob(
                id=uuid.uuid4(),
                user_id=user_id,
                file_name=file_name,
                status=ImportStatus.IN_PROGRESS,
                total_rows=len(candidates),
            )
            self.db.add(job)
            await self.db.commit()

            summary = ImportSummary(job_id=job.id, status=ImportStatus.IN_PROGRESS)
            try:
                await self._run(user_id, job, candidates, existing, summary, should_stop)
            except SQLAlchemyError as e:
                logger.exception(f"Import job {job.id} failed after {summary.imported_count} rows")
                await self._finish_early(job, summary, ImportStatus.FAILED)
                raise StorageError(
                    f"Import failed after {summary.imported_count} books were imported"
                ) from e
            except asyncio.CancelledError:
                logger.warning(
                    f"Import job {job.id} cancelled after {summary.imported_count} rows"
                )
                summary.cancelled = True
                # Record the outcome even if the caller cancels again meanwhile
                await asyncio.shield(self._finish_early(job, summary, ImportStatus.CANCELLED))
                raise

            set_span_attributes(
                span,
                "import",
                imported_count=summary.imported_count,
                skipped_count=summary.skipped_count,
                cancelled=summary.cancelled,
            )

        logger.info(
            f"Finished import job {job.id}: {summary.imported_count} imported, "
            f"{summary.skipped_count} skipped, status {summary.status.value}"
        )
        return summary

    async def get_import_job(self, user_id: uuid.UUID, job_id: uuid.UUID) -> ImportJob:
        """Get one of the user's import jobs, or raise NotFoundError."""
        query = select(ImportJob).where(ImportJob.id == job_id, ImportJob.user_id == user_id)
        job = (await self.db.execute(query)).scalar_one_or_none()
        if job is None:
            raise NotFoundError("Import job not found")
        return job

    async def _run(
        self,
        user_id: uuid.UUID,
        job: ImportJob,
        candidates: list[_Candidate],
        existing: set[tuple[str, str]],
        summary: ImportSummary,
        should_stop: Callable[[], Awaitable[bool]] | None,
    ) -> None:
        for candidate in candidates:
            if should_stop is not None and await should_stop():
                summary.cancelled = True
                logger.warning(f"Import job {job.id} stopped by caller")
                break

            reason = candidate.reason
            if reason is None and duplicate_key(candidate.title, candidate.author) in existing:
                reason = DUPLICATE_REASON

            if reason is None:
                try:
                    await self.store.create(user_id, candidate.fields)
                except ValidationError as e:
                    reason = e.message

            if reason is not None:
                summary.skipped_count += 1
                summary.skipped_rows.append(
                    SkippedRow(
                        row_number=candidate.row_number,
                        title=candidate.title,
                        author=candidate.author,
                        reason=reason,
                    )
                )
                logger.debug(f"Skipped row {candidate.row_number}: {reason}")
                job.skipped_rows = summary.skipped_count
            else:
                summary.imported_count += 1
                job.imported_rows = summary.imported_count

            # Commit per row so progress survives later failures
            await self.db.commit()

        if summary.cancelled:
            summary.status = ImportStatus.CANCELLED
        elif summary.skipped_count:
            summary.status = ImportStatus.COMPLETED_WITH_ERRORS
        else:
            summary.status = ImportStatus.COMPLETED

        job.status = summary.status
        job.error_summary = _error_summary(summary)
        job.completed_at = datetime.now(tz=timezone.utc)
        await self.db.commit()

    async def _finish_early(
        self, job: ImportJob, summary: ImportSummary, status: ImportStatus
    ) -> None:
        # Drop the unfinished row; the job keeps the counts committed so far
        await self.db.rollback()
        await self.db.refresh(job)
        summary.status = status
        job.status = status
        job.error_summary = _error_summary(summary)
        job.completed_at = datetime.now(tz=timezone.utc)
        await self.db.commit()


def _to_candidate(row: csv_format.CsvRow) -> _Candidate:
    title = row.get("title")
    author = row.get("author")
    candidate = _Candidate(row_number=row.row_number, title=title, author=author)

    if row.error:
        candidate.reason = row.error
        return candidate
    if not title:
        candidate.reason = "Title is required"
        return candidate
    if not author:
        candidate.reason = "Author is required"
        return candidate

    try:
        rating = int(row.get("rating"))
    except ValueError:
        candidate.reason = "Rating must be an integer between 1 and 5"
        return candidate

    published_date = _parse_date(row.get("publisheddate"))
    if published_date is None:
        candidate.reason = "Published date must be a valid date (YYYY-MM-DD)"
        return candidate

    genres = csv_format.split_genres(row.get("genres"))
    if any(len(name) > GENRE_NAME_MAX_LENGTH for name in genres):
        candidate.reason = f"Genre names cannot exceed {GENRE_NAME_MAX_LENGTH} characters"
        return candidate

    fields = BookFields(
        title=title,
        author=author,
        published_date=published_date,
        rating=rating,
        edition=row.get("edition"),
        isbn=row.get("isbn"),
        genres=genres,
    ).normalized()
    try:
        validate_book_fields(fields)
    except ValidationError as e:
        candidate.reason = e.message
        return candidate

    candidate.fields = fields
    return candidate


def _parse_date(value: str) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def _error_summary(summary: ImportSummary) -> str | None:
    if not summary.skipped_rows:
        return None
    return json.dumps([asdict(row) for row in summary.skipped_rows])


async def get_bulk_transfer_service(db: AsyncSession = Depends(get_db)) -> BulkTransferService:
    """Dependency that provides the bulk transfer service."""
    return BulkTransferService(db)
