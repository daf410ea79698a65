"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation and storage access.
"""

from __future__ import annotations

from fastapi import Depends, File, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from app.repositories.base import SalesLedgerRepository
from app.repositories.sales_repository import SqlAlchemySalesRepository
from app.services.spreadsheet_reader import SUPPORTED_EXTENSIONS, file_extension
from db.session import get_db

SPREADSHEET_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def get_spreadsheet_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Validate that the upload is an xlsx, xls or csv file.

    The extension decides how the file is parsed, so it is required even
    when the MIME type looks right.
    """

    extension = file_extension((file.filename or "").strip())
    content_type = (file.content_type or "").strip().lower()

    if extension not in SUPPORTED_EXTENSIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Only {', '.join(SUPPORTED_EXTENSIONS)} files are allowed.",
        )
    if content_type and content_type not in SPREADSHEET_CONTENT_TYPES and content_type != "application/octet-stream":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported content type {content_type!r}.",
        )

    return file


def get_sales_repository(db: Session = Depends(get_db)) -> SalesLedgerRepository:
    return SqlAlchemySalesRepository(db)
