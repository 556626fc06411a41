"""FastAPI application for PlagCheck.

Authentication happens upstream: the gateway forwards the caller's id and
role in the ``X-User-Id`` and ``X-User-Role`` headers, and this app only
checks capabilities against them.
"""

import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, BinaryIO
from urllib.parse import quote
from uuid import UUID

from fastapi import Depends, FastAPI, File, Header, HTTPException, Request, UploadFile, status
from fastapi.responses import JSONResponse, Response, StreamingResponse

from plagcheck import __version__
from plagcheck.clients.wordcloud import WordCloudClient
from plagcheck.config import settings
from plagcheck.db import async_session_factory, init_db
from plagcheck.errors import (
    IOFaultError,
    NotFoundError,
    OversizeError,
    SizeMismatchError,
    UploadCancelledError,
)
from plagcheck.schemas import FileInfo, PlagiarismGroupOut
from plagcheck.services import AnalysisService, FileStorageService
from plagcheck.storage import ContentStore

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 64 * 1024


class Role(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"


@dataclass(frozen=True)
class Caller:
    """Authenticated caller, as asserted by the gateway."""

    user_id: UUID
    role: Role


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler."""
    logging.basicConfig(level=settings.log_level)
    await init_db()

    store = ContentStore(
        settings.storage_root,
        max_file_size=settings.max_file_size,
        chunk_size=settings.upload_chunk_size,
        extension=settings.blob_extension,
    )
    wordcloud = WordCloudClient()
    app.state.file_service = FileStorageService(store, async_session_factory)
    app.state.analysis_service = AnalysisService(store, async_session_factory, wordcloud)
    logger.info("Storage root: %s", store.root)

    yield

    await wordcloud.aclose()


app = FastAPI(
    title="PlagCheck",
    description="Content-addressed submission storage with exact-match plagiarism detection",
    version=__version__,
    lifespan=lifespan,
)


# ── Error mapping ────────────────────────────────────────────────────────────


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": detail})


def add_exception_handlers(app: FastAPI) -> None:
    """Map core errors onto HTTP statuses."""

    @app.exception_handler(OversizeError)
    async def oversize_handler(request: Request, err: OversizeError) -> JSONResponse:
        return _error(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, str(err))

    @app.exception_handler(SizeMismatchError)
    async def size_mismatch_handler(request: Request, err: SizeMismatchError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(err))

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, err: NotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(err))

    @app.exception_handler(IOFaultError)
    async def io_fault_handler(request: Request, err: IOFaultError) -> JSONResponse:
        logger.error("%s %s failed: %s", request.method, request.url.path, err)
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "storage unavailable")

    @app.exception_handler(UploadCancelledError)
    async def cancelled_handler(request: Request, err: UploadCancelledError) -> JSONResponse:
        logger.info("%s %s cancelled", request.method, request.url.path)
        return _error(499, str(err))


add_exception_handlers(app)


# ── Dependencies ─────────────────────────────────────────────────────────────


def get_caller(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> Caller:
    """Caller identity forwarded by the gateway."""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")
    try:
        return Caller(user_id=UUID(x_user_id), role=Role(x_user_role))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized") from None


def require_role(role: Role):
    def _check(caller: Annotated[Caller, Depends(get_caller)]) -> Caller:
        if caller.role is not role:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")
        return caller

    return _check


def get_file_service(request: Request) -> FileStorageService:
    return request.app.state.file_service


def get_analysis_service(request: Request) -> AnalysisService:
    return request.app.state.analysis_service


FileServiceDep = Annotated[FileStorageService, Depends(get_file_service)]
AnalysisServiceDep = Annotated[AnalysisService, Depends(get_analysis_service)]


def _upload_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    # Spooled upload without a recorded size: measure it without reading
    upload.file.seek(0, 2)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


def content_disposition(filename: str) -> str:
    """Attachment header carrying any filename.

    Header values must be latin-1, so the plain ``filename`` gets a printable
    ASCII fallback and the exact name travels in RFC 5987 ``filename*``.
    """
    fallback = "".join(c if " " <= c <= "~" and c not in '"\\' else "_" for c in filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def _iter_blob(stream: BinaryIO) -> Iterator[bytes]:
    try:
        while chunk := stream.read(DOWNLOAD_CHUNK_SIZE):
            yield chunk
    finally:
        stream.close()


# ── Routes ───────────────────────────────────────────────────────────────────


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@app.post("/files/upload", status_code=status.HTTP_201_CREATED)
async def upload_file(
    caller: Annotated[Caller, Depends(require_role(Role.STUDENT))],
    service: FileServiceDep,
    file: Annotated[UploadFile, File()],
) -> dict[str, FileInfo]:
    """Upload one solution file as the calling student."""
    record = await service.upload(
        caller.user_id,
        file.filename or "unnamed",
        file.file,
        _upload_size(file),
    )
    return {"file_info": FileInfo.model_validate(record)}


@app.get("/files/download/{file_id}")
async def download_file(
    file_id: int,
    caller: Annotated[Caller, Depends(get_caller)],
    service: FileServiceDep,
) -> StreamingResponse:
    """Download a stored file. Students may only download their own uploads."""
    record = await service.get_file(file_id)
    if caller.role is not Role.TEACHER and caller.user_id != record.student_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")

    headers = {
        "Content-Disposition": content_disposition(record.filename),
        "Content-Length": str(record.file_size),
    }
    stream = await service.open_blob(record)
    return StreamingResponse(_iter_blob(stream), media_type="application/octet-stream", headers=headers)


@app.get("/files/user/{student_id}")
async def list_user_files(
    student_id: UUID,
    caller: Annotated[Caller, Depends(get_caller)],
    service: FileServiceDep,
) -> dict[str, list[FileInfo]]:
    """List a student's uploads in upload order."""
    if caller.role is not Role.TEACHER and caller.user_id != student_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")

    records = await service.list_by_student(student_id)
    return {"files": [FileInfo.model_validate(r) for r in records]}


@app.get("/files/hash/{file_hash}")
async def list_files_by_hash(
    file_hash: str,
    caller: Annotated[Caller, Depends(require_role(Role.TEACHER))],
    service: FileServiceDep,
) -> dict[str, list[FileInfo]]:
    """List every upload of one content hash in upload order."""
    records = await service.list_by_hash(file_hash.lower())
    return {"files": [FileInfo.model_validate(r) for r in records]}


@app.get("/plagiarism/check")
async def check_plagiarism(
    caller: Annotated[Caller, Depends(require_role(Role.TEACHER))],
    service: AnalysisServiceDep,
) -> dict[str, list[PlagiarismGroupOut]]:
    """Report content shared by more than one student."""
    groups = await service.check_plagiarism()
    return {"plagiarism_results": [PlagiarismGroupOut.from_group(g) for g in groups]}


@app.get("/files/{file_id}/wordcloud")
async def word_cloud(
    file_id: int,
    caller: Annotated[Caller, Depends(require_role(Role.TEACHER))],
    service: AnalysisServiceDep,
) -> Response:
    """Render a stored file's text as a PNG word cloud."""
    try:
        image = await service.word_cloud(file_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return Response(content=image, media_type="image/png")
