"""HTML page routes: upload form, gallery and file detail."""
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from upload_gallery.database import get_db
from upload_gallery.routes.files import get_stored_file
from upload_gallery.templating import templates

router = APIRouter(tags=["pages"], default_response_class=HTMLResponse)


@router.get("/")
async def upload_form(request: Request):
    return templates.TemplateResponse(request, "upload.html")


@router.get("/gallery")
async def gallery(request: Request):
    """Gallery shell. The page loads /files itself."""
    return templates.TemplateResponse(request, "gallery.html")


@router.get("/file/{file_id}")
async def file_detail(
    request: Request,
    file_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Render the metadata page for one file."""
    file_rec = await get_stored_file(db, file_id)
    if not file_rec:
        raise HTTPException(status_code=404, detail="File not found")
    return templates.TemplateResponse(request, "file.html", {"file": file_rec})
