"""Files API routes: upload, listing and download."""
import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Response, UploadFile, File as FastAPIFile
from fastapi.responses import RedirectResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from upload_gallery.database import get_db
from upload_gallery.dependencies import get_storage
from upload_gallery.errors import StorageError
from upload_gallery.models.file_record import FileRecord, STATUS_STORED
from upload_gallery.schemas.file import FileRecordResponse
from upload_gallery.services.object_storage import ObjectStorage
from upload_gallery.services.storage_keys import build_storage_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@router.post("/upload", status_code=302)
async def upload_file(
    file: UploadFile | None = FastAPIFile(None),
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    """Store the uploaded file, record it, and redirect to the gallery.

    The row is written first in pending state and confirmed once the blob
    and its public URL exist, so a failed upload never leaves a visible row.
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")

    contents = await file.read()
    content_type = file.content_type or DEFAULT_CONTENT_TYPE
    storage_key = build_storage_key(file.filename)

    record = FileRecord(
        name=file.filename,
        type=content_type,
        size=len(contents),
        storage_key=storage_key,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)

    try:
        await storage.save(storage_key, contents, content_type)
    except StorageError as e:
        logger.error("Storage upload error for %s: %s", storage_key, e)
        await _discard_pending(db, record)
        raise HTTPException(status_code=500, detail=str(e))

    public_url = storage.public_url(storage_key)
    if not public_url:
        logger.error("No public URL for %s", storage_key)
        await storage.rollback_upload(storage_key)
        await _discard_pending(db, record)
        raise HTTPException(status_code=500, detail="Failed to get public URL")

    record_id = record.id
    record.url = public_url
    record.status = STATUS_STORED
    try:
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Failed to confirm file record %s", record_id)
        await storage.rollback_upload(storage_key)
        await db.rollback()
        await _discard_pending(db, record)
        raise

    logger.info("Uploaded %s as %s (id=%s, %d bytes)", record.name, storage_key, record_id, record.size)
    return RedirectResponse(url="/gallery", status_code=302)


@router.get("/files", response_model=list[FileRecordResponse])
async def list_files(db: AsyncSession = Depends(get_db)):
    """List every stored file, newest first."""
    try:
        result = await db.execute(
            select(FileRecord)
            .where(FileRecord.status == STATUS_STORED)
            .order_by(FileRecord.uploaded_at.desc(), FileRecord.id.desc())
        )
    except SQLAlchemyError:
        logger.exception("List files error")
        raise HTTPException(status_code=500, detail="Failed to fetch files")
    return [_to_response(f) for f in result.scalars().all()]


@router.get("/download/{file_id}")
async def download_file(
    file_id: int,
    db: AsyncSession = Depends(get_db),
    storage: ObjectStorage = Depends(get_storage),
):
    """Send the stored bytes back as an attachment."""
    file_rec = await get_stored_file(db, file_id)
    if not file_rec:
        raise HTTPException(status_code=404, detail="File not found")

    try:
        contents = await storage.read(file_rec.storage_key)
    except StorageError as e:
        logger.error("Storage download error for %s: %s", file_rec.storage_key, e)
        raise HTTPException(status_code=500, detail="Failed to fetch file from storage")

    return Response(
        content=contents,
        media_type=file_rec.type,
        headers={"Content-Disposition": attachment_header(file_rec.name)},
    )


async def get_stored_file(db: AsyncSession, file_id: int) -> FileRecord | None:
    result = await db.execute(
        select(FileRecord).where(
            FileRecord.id == file_id,
            FileRecord.status == STATUS_STORED,
        )
    )
    return result.scalar_one_or_none()


def attachment_header(filename: str) -> str:
    """Content-Disposition value forcing a download under the original name.

    Header values must be latin-1, so non-ASCII names go in ``filename*``.
    """
    fallback = filename.encode("ascii", "replace").decode("ascii").replace('"', "_")
    fallback = fallback.replace("\r", "").replace("\n", "")
    if fallback == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


async def _discard_pending(db: AsyncSession, record: FileRecord) -> None:
    """Best-effort removal of a pending row whose upload failed.

    Failures are logged, not raised, so the caller's error reaches the client.
    """
    storage_key = record.storage_key
    try:
        await db.delete(record)
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Failed to discard pending file record %s", storage_key)
        await db.rollback()


def _to_response(file_rec: FileRecord) -> dict:
    """Convert SQLAlchemy model to response dict."""
    return {
        "id": file_rec.id,
        "name": file_rec.name,
        "type": file_rec.type,
        "size": file_rec.size,
        "url": file_rec.url,
        "uploaded_at": file_rec.uploaded_at,
    }
