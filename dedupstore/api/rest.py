"""
REST API for the File Service

Design Decision: API Framework
==============================

Options Considered:
1. FastAPI - Modern, fast, auto-docs, async support
2. Flask - Simple, widely used, but sync-focused
3. aiohttp - Async, but less features
4. Starlette - Lightweight, FastAPI is built on it

Decision: FastAPI
- Native async support (the service is async end to end)
- Automatic OpenAPI documentation
- Pydantic integration for validation
- UploadFile for multipart uploads, StreamingResponse for blob downloads

API Design:
- Thin adapter: every endpoint maps to one FileService operation
- Service errors map to HTTP status codes in one place:
  ValidationError -> 400, NotFoundError -> 404,
  RemoteArchiveError -> 502, PersistenceError -> 500
"""

import logging
import mimetypes
from typing import Optional, List
from contextlib import asynccontextmanager
from urllib.parse import quote

from fastapi import FastAPI, HTTPException, UploadFile, File, Query
from fastapi.responses import StreamingResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from ..errors import (
    FileServiceError,
    ValidationError,
    NotFoundError,
    RemoteArchiveError,
)
from ..service import FileService, LocalDownload

logger = logging.getLogger(__name__)

# Global reference to the file service (set when app is created)
_service: Optional[FileService] = None


# === Pydantic Models ===

class UploadResponse(BaseModel):
    """Response to a successful upload."""
    message: str
    fileId: str
    filename: str
    alreadyExisted: bool


class StagedResponse(BaseModel):
    """Response to a staging-area download."""
    fileId: str
    filename: Optional[str]
    location: str


class DeleteResponse(BaseModel):
    """Response to deleting one file."""
    message: str
    fileId: str
    recordsRemoved: int


class PurgeResponse(BaseModel):
    """Response to deleting all files."""
    message: str
    blobsRemoved: int
    recordsRemoved: int


class ArchivedFileInfo(BaseModel):
    """A file stored in the remote archive."""
    originalName: str
    filename: str
    size: str
    lastModified: Optional[str]


def _http_error(e: FileServiceError) -> HTTPException:
    """Map a service error to an HTTP error (PersistenceError and others -> 500)."""
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, RemoteArchiveError):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def _content_disposition(filename: str) -> str:
    return f"attachment; filename*=UTF-8''{quote(filename)}"


# === API Creation ===

def create_app(service: FileService = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: FileService instance to expose (started with the app)

    Returns:
        FastAPI application
    """
    global _service
    _service = service

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle startup and shutdown."""
        logger.info("API server starting...")
        if _service:
            await _service.start()
        yield
        if _service:
            await _service.stop()
        logger.info("API server stopping...")

    app = FastAPI(
        title="Dedup File Store API",
        description="REST API for the content-addressable file store",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_service() -> FileService:
        if not _service:
            raise HTTPException(status_code=503, detail="Service not initialized")
        return _service

    # === Endpoints ===

    @app.get("/", tags=["General"])
    async def root():
        """API root - basic info."""
        return {
            "name": "Dedup File Store",
            "version": "1.0.0",
            "status": "running" if _service and _service.is_running else "not running"
        }

    @app.get("/stats", tags=["General"])
    async def get_stats():
        """Get blob, record and filter statistics."""
        service = get_service()

        try:
            return await service.get_stats()
        except FileServiceError as e:
            raise _http_error(e)

    # === File Operations ===

    @app.post("/files", response_model=UploadResponse, tags=["Files"])
    async def upload_file(file: UploadFile = File(...)):
        """Upload a file."""
        service = get_service()

        payload = await file.read()
        logger.info(f"Upload request for: {file.filename}")

        try:
            result = await service.upload(payload, file.filename)
        except FileServiceError as e:
            raise _http_error(e)

        return UploadResponse(
            message="File uploaded successfully.",
            fileId=result.file_id,
            filename=result.filename,
            alreadyExisted=result.already_existed,
        )

    @app.get("/files/{file_id}/download/{way}", tags=["Files"])
    async def download_file(
        file_id: str,
        way: str,
        type: Optional[str] = Query(None, description="'user' or 'room' (staging-area)"),
        id: Optional[str] = Query(None, description="User or room ID (staging-area)"),
    ):
        """Download a file locally or push it to the staging area."""
        service = get_service()

        try:
            result = await service.download(file_id, way, archive_type=type, owner_id=id)
        except FileServiceError as e:
            raise _http_error(e)

        if isinstance(result, LocalDownload):
            filename = result.filename or result.path.name
            media_type, _ = mimetypes.guess_type(filename)
            return StreamingResponse(
                result.stream,
                media_type=media_type or "application/octet-stream",
                headers={"Content-Disposition": _content_disposition(filename)},
            )

        return StagedResponse(
            fileId=result.file_id,
            filename=result.filename,
            location=result.location,
        )

    @app.delete("/files/{file_id}", response_model=DeleteResponse, tags=["Files"])
    async def delete_file(file_id: str):
        """Delete a file and every upload sharing its content."""
        service = get_service()

        try:
            result = await service.delete(file_id)
        except FileServiceError as e:
            raise _http_error(e)

        return DeleteResponse(
            message="File deleted successfully",
            fileId=result.file_id,
            recordsRemoved=result.records_removed,
        )

    @app.delete("/files", response_model=PurgeResponse, tags=["Files"])
    async def delete_all_files():
        """Delete every stored file and reset the dedup filter."""
        service = get_service()

        try:
            result = await service.delete_all()
        except FileServiceError as e:
            raise _http_error(e)

        return PurgeResponse(
            message="All files deleted successfully",
            blobsRemoved=result.blobs_removed,
            recordsRemoved=result.records_removed,
        )

    # === Remote Archive ===

    @app.get("/archive/users/{user_id}", response_model=List[ArchivedFileInfo],
             tags=["Archive"])
    async def list_archived_files(user_id: str):
        """List a user's files in the remote archive."""
        service = get_service()

        try:
            files = await service.list_archived(user_id)
        except FileServiceError as e:
            raise _http_error(e)

        return [ArchivedFileInfo(**f.to_dict()) for f in files]

    return app


async def run_api_server(service: FileService, host: str = "0.0.0.0", port: int = 8080):
    """
    Run the API server.

    Args:
        service: FileService instance
        host: Host to bind to
        port: Port to listen on
    """
    import uvicorn

    app = create_app(service)

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()
