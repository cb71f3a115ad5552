"""Torrents API routes - upload, download, delete and counter maintenance.

The requesting user arrives in the X-User-Id header, set by the
authentication layer in front of this service.
"""
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.models.torrent import Torrent
from app.models.user import User
from app.schemas.common import CountResponse, DeleteResponse
from app.schemas.torrent import TorrentResponse, TorrentToDelete, UploadedTorrentForm
from app.services.notifications import NotificationError
from app.services.torrents import (
    InvalidIdentifierOrRecord,
    InvalidMetainfo,
    RecordNotFound,
    TorrentLifecycle,
    TorrentServiceError,
)

router = APIRouter(prefix="/api/torrents", tags=["torrents"])


def get_lifecycle(request: Request) -> TorrentLifecycle:
    return request.app.state.torrent_lifecycle


async def get_current_user(
    request: Request,
    x_user_id: int = Header(...),
) -> User:
    """Load the requesting user in a short session of its own.

    The session is closed before the workflow opens its transaction, so the
    lookup never holds locks for the rest of the request.
    """
    async with request.app.state.session_factory() as db:
        user = await db.get(User, x_user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def upload_form(
    edition_group_id: int = Form(...),
    release_name: str = Form(...),
    release_group: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    uploaded_as_anonymous: bool = Form(False),
    mediainfo: str = Form(""),
    duration: Optional[int] = Form(None),
    audio_codec: Optional[str] = Form(None),
    audio_bitrate: Optional[int] = Form(None),
    audio_bitrate_sampling: Optional[str] = Form(None),
    audio_channels: Optional[str] = Form(None),
    video_codec: Optional[str] = Form(None),
    video_resolution: Optional[str] = Form(None),
    container: str = Form(""),
    features: str = Form(""),
    subtitle_languages: str = Form(""),
    languages: str = Form(""),
) -> UploadedTorrentForm:
    """Collect the multipart form fields into an UploadedTorrentForm."""
    try:
        return UploadedTorrentForm(
            edition_group_id=edition_group_id,
            release_name=release_name,
            release_group=release_group,
            description=description,
            uploaded_as_anonymous=uploaded_as_anonymous,
            mediainfo=mediainfo,
            duration=duration,
            audio_codec=audio_codec,
            audio_bitrate=audio_bitrate,
            audio_bitrate_sampling=audio_bitrate_sampling,
            audio_channels=audio_channels,
            video_codec=video_codec,
            video_resolution=video_resolution,
            container=container,
            features=features,
            subtitle_languages=subtitle_languages,
            languages=languages,
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors())


def _to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, InvalidMetainfo):
        return HTTPException(status_code=400, detail=f"Invalid torrent file: {e.detail}")
    if isinstance(e, RecordNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidIdentifierOrRecord):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, NotificationError):
        return HTTPException(status_code=502, detail="Could not notify subscribers")
    return HTTPException(status_code=500, detail="Database error")


@router.post("", response_model=TorrentResponse, status_code=201)
async def upload_torrent(
    torrent_file: UploadFile = File(...),
    form: UploadedTorrentForm = Depends(upload_form),
    user: User = Depends(get_current_user),
    lifecycle: TorrentLifecycle = Depends(get_lifecycle),
):
    """Upload a .torrent file with its release metadata."""
    contents = await torrent_file.read(settings.MAX_TORRENT_FILE_SIZE + 1)
    if len(contents) > settings.MAX_TORRENT_FILE_SIZE:
        raise HTTPException(status_code=413, detail="Torrent file too large")

    try:
        created = await lifecycle.create_torrent(contents, form, user)
    except TorrentServiceError as e:
        raise _to_http_error(e)
    return created.torrent


@router.delete("", response_model=DeleteResponse)
async def delete_torrent(
    body: TorrentToDelete,
    user: User = Depends(get_current_user),
    lifecycle: TorrentLifecycle = Depends(get_lifecycle),
):
    """Archive and delete a torrent."""
    try:
        await lifecycle.remove_torrent(body, user)
    except (TorrentServiceError, NotificationError) as e:
        raise _to_http_error(e)
    return {"deleted": True, "id": body.id}


@router.post(
    "/peer-counts/reconcile",
    response_model=CountResponse,
    dependencies=[Depends(get_current_user)],
)
async def reconcile_peer_counts(
    lifecycle: TorrentLifecycle = Depends(get_lifecycle),
):
    """Recompute seeders/leechers of every torrent from the live peers."""
    try:
        updated = await lifecycle.refresh_peer_counts()
    except TorrentServiceError as e:
        raise _to_http_error(e)
    return {"count": updated}


@router.get("/{torrent_id}", response_model=TorrentResponse)
async def get_torrent(
    torrent_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a torrent's metadata."""
    torrent = await db.get(Torrent, torrent_id)
    if not torrent:
        raise HTTPException(status_code=404, detail="Torrent not found")
    return torrent


@router.get("/{torrent_id}/download")
async def download_torrent(
    torrent_id: int,
    user: User = Depends(get_current_user),
    lifecycle: TorrentLifecycle = Depends(get_lifecycle),
):
    """Download the requesting user's personalized .torrent file."""
    try:
        result = await lifecycle.get_torrent(torrent_id, user)
    except TorrentServiceError as e:
        raise _to_http_error(e)

    filename = quote(f"{result.title}.torrent")
    return Response(
        content=result.file_contents,
        media_type="application/x-bittorrent",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{filename}"},
    )


@router.post(
    "/{torrent_id}/completed",
    response_model=CountResponse,
    dependencies=[Depends(get_current_user)],
)
async def mark_completed(
    torrent_id: int,
    lifecycle: TorrentLifecycle = Depends(get_lifecycle),
):
    """Count a finished download reported by the tracker."""
    try:
        completed = await lifecycle.mark_completed(torrent_id)
    except TorrentServiceError as e:
        raise _to_http_error(e)
    return {"count": completed}
