"""Bulk CSV import and export routes."""

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Request,
    Response,
    UploadFile,
    status,
)

from bookshelf.api.schemas import ImportJobResponse, ImportSummaryResponse
from bookshelf.core.auth import get_current_user_id
from bookshelf.core.config import get_settings
from bookshelf.services import csv_format
from bookshelf.services.bulk_transfer import (
    BulkTransferService,
    DuplicateStrategy,
    get_bulk_transfer_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bulkimport", tags=["bulk import"])

ALLOWED_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "text/plain",
    "application/vnd.ms-excel",
    "application/octet-stream",
}


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/books", response_model=ImportSummaryResponse)
async def import_books(
    request: Request,
    file: UploadFile = File(...),
    duplicate_strategy: DuplicateStrategy = Form(DuplicateStrategy.SKIP),
    user_id: UUID = Depends(get_current_user_id),
    bulk: BulkTransferService = Depends(get_bulk_transfer_service),
) -> ImportSummaryResponse:
    """Import books from an uploaded CSV file.

    Bad rows and rows already in the collection are skipped and listed in
    the response. The import is not rolled back if it fails part-way; books
    imported before the failure stay in the collection.
    """
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Please upload a CSV file (.csv).",
        )
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type and content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Please upload a CSV file (.csv).",
        )

    max_bytes = get_settings().max_import_file_bytes
    data = await file.read(max_bytes + 1)
    if len(data) > max_bytes:
        logger.warning(f"Rejected oversized import '{file.filename}' from user {user_id}")
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum allowed size is {max_bytes} bytes.",
        )

    summary = await bulk.import_csv(
        user_id,
        data,
        file_name=file.filename,
        duplicate_strategy=duplicate_strategy,
        should_stop=request.is_disconnected,
    )
    return ImportSummaryResponse.model_validate(summary)


@router.get("/jobs/{job_id}", response_model=ImportJobResponse)
async def get_import_job(
    job_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    bulk: BulkTransferService = Depends(get_bulk_transfer_service),
) -> ImportJobResponse:
    """Get the status of one of the user's imports."""
    return ImportJobResponse.model_validate(await bulk.get_import_job(user_id, job_id))


@router.get("/export/books")
async def export_books(
    user_id: UUID = Depends(get_current_user_id),
    bulk: BulkTransferService = Depends(get_bulk_transfer_service),
) -> Response:
    """Download the user's whole collection as CSV."""
    content = await bulk.export_csv(user_id)
    today = datetime.now(tz=timezone.utc).date().isoformat()
    return _csv_response(content, f"books-export-{today}.csv")


@router.get("/template")
async def download_template() -> Response:
    """Download an example CSV showing the import format."""
    return _csv_response(csv_format.write_template(), "books-import-template.csv")
