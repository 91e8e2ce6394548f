"""File API routes: upload, list, preview, download, delete."""

import logging
from typing import Annotated, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.config import get_settings
from app.db.session import get_db
from app.files.gateway import (
    FileGateway,
    FileNotFound,
    UploadMetadata,
    decode_payload,
    get_file_gateway,
    inline_media_type,
    to_metadata,
)
from app.files.models import FileListResponse, StoredFile
from app.limiter import limiter
from app.users.models import User

router = APIRouter(prefix="/api/files", tags=["files"])
log = logging.getLogger(__name__)

_NOT_FOUND = "File not found"


def content_disposition(disposition: str, filename: str) -> str:
    """Content-Disposition value with an ASCII fallback and a UTF-8 filename* (RFC 6266)."""
    fallback = filename.encode("ascii", "replace").decode("ascii")
    fallback = fallback.replace("\\", "_").replace('"', "_").replace("\r", "").replace("\n", "")
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


async def _fetch_or_404(gateway: FileGateway, file_id: str, owner_id: str) -> StoredFile:
    try:
        return await gateway.fetch(file_id, owner_id)
    except FileNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)


@router.post("/upload", status_code=status.HTTP_201_CREATED)
@limiter.limit("120/minute")
async def upload_files(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    gateway: Annotated[FileGateway, Depends(get_file_gateway)],
    session: Annotated[AsyncSession, Depends(get_db)],
    files: Annotated[Optional[List[UploadFile]], File()] = None,
) -> dict:
    """
    Upload one or more files (multipart field "files").
    Each payload is stored base64-encoded; the response lists metadata only.
    """
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files provided")
    max_bytes = get_settings().max_upload_bytes
    uploaded = []
    for upload in files:
        body = await upload.read(max_bytes + 1)
        if len(body) > max_bytes:
            log.warning(
                "upload rejected user=%s name=%r: larger than %d bytes",
                current_user.id, upload.filename, max_bytes,
            )
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File too large: {upload.filename}",
            )
        name = upload.filename or "unnamed"
        record = await gateway.create(
            current_user.id,
            UploadMetadata(
                original_name=name,
                mime_type=upload.content_type or "application/octet-stream",
                file_size=len(body),
            ),
            body,
        )
        uploaded.append(to_metadata(record).model_dump(mode="json"))
    await session.commit()
    log.info("upload user=%s count=%d", current_user.id, len(uploaded))
    return {"files": uploaded}


@router.get("", response_model=FileListResponse)
@limiter.limit("120/minute")
async def list_files(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    gateway: Annotated[FileGateway, Depends(get_file_gateway)],
    q: Optional[str] = None,
    file_type: Annotated[str, Query(alias="type")] = "all",
) -> FileListResponse:
    """List the current user's files, newest first. q filters by name, type by media kind."""
    try:
        files = await gateway.list_for_owner(current_user.id, query=q, kind=file_type)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    log.debug("list_files user=%s count=%d", current_user.id, len(files))
    return FileListResponse(files=files)


@router.get("/{file_id}/preview")
@limiter.limit("300/minute")
async def preview_file(
    request: Request,
    file_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    gateway: Annotated[FileGateway, Depends(get_file_gateway)],
) -> Response:
    """Return the payload inline. Script-capable types are sent as text/plain in a sandbox."""
    record = await _fetch_or_404(gateway, file_id, current_user.id)
    return Response(
        content=decode_payload(record),
        media_type=inline_media_type(record.mime_type),
        headers={
            "Content-Disposition": content_disposition("inline", record.original_name),
            "Content-Security-Policy": "sandbox",
        },
    )


@router.get("/{file_id}/download")
@limiter.limit("300/minute")
async def download_file(
    request: Request,
    file_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    gateway: Annotated[FileGateway, Depends(get_file_gateway)],
) -> Response:
    """Return the payload as an attachment named after the original file."""
    record = await _fetch_or_404(gateway, file_id, current_user.id)
    log.info("download user=%s file=%s", current_user.id, record.id)
    return Response(
        content=decode_payload(record),
        media_type=record.mime_type,
        headers={"Content-Disposition": content_disposition("attachment", record.original_name)},
    )


@router.delete("/{file_id}")
@limiter.limit("120/minute")
async def delete_file(
    request: Request,
    file_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    gateway: Annotated[FileGateway, Depends(get_file_gateway)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Delete one of the current user's files. Someone else's file is a 404, same as a missing one."""
    if not await gateway.delete(file_id, current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    await session.commit()
    return {"message": "File deleted successfully"}
