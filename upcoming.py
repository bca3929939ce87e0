"""
Upcoming Promotion.

Pre-release movies the cinema wants to advertise before any show exists.
Each record owns its poster, optional uploaded trailer and cast portraits;
deleting the record deletes them from the Media Store as well.
"""
import logging
from typing import List, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request
from pymongo import DESCENDING
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool

from database import UPCOMING, get_db, get_objectid, stamp, str_id
from forms import (
    FormError,
    file_field,
    is_youtube_link,
    parse_casts,
    parse_genres,
    parse_positive_int,
    text_field,
    upload_cast_portraits,
)
from media import MediaStore, MediaStoreError, get_media_store, is_image, is_video
from schemas import Upcoming

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/upcoming", tags=["upcoming"])

REQUIRED_FIELDS = ("title", "description", "release_date", "come_date", "language", "runtime")


def owned_media(upcoming: dict) -> List[Tuple[str, str]]:
    """(public_id, resource_type) for every Media Store object the record owns, in deletion order."""
    media = []
    poster = upcoming.get("backdrop_path") or {}
    if poster.get("public_id"):
        media.append((poster["public_id"], "image"))
    trailer = upcoming.get("trailer")
    if isinstance(trailer, dict) and trailer.get("public_id"):
        media.append((trailer["public_id"], "video"))
    for cast in upcoming.get("casts") or []:
        portrait = cast.get("castsImage") or {}
        if portrait.get("public_id"):
            media.append((portrait["public_id"], "image"))
    return media


def delete_media(store: MediaStore, media: List[Tuple[str, str]]) -> int:
    """Delete every object, carrying on past failures. Returns how many failed."""
    failures = 0
    for public_id, resource_type in media:
        try:
            store.delete(public_id, resource_type=resource_type)
        except MediaStoreError as exc:
            failures += 1
            logger.warning("Could not delete %s %s: %s", resource_type, public_id, exc)
    return failures


@router.post("/add", status_code=201)
async def add_upcoming(
    request: Request,
    db: Database = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
):
    form = await request.form()

    fields = {name: text_field(form, name) for name in REQUIRED_FIELDS}
    genres = parse_genres(form)
    if not all(fields.values()) or not genres:
        raise HTTPException(
            status_code=400,
            detail="All fields are required (including at least one genre).",
        )

    trailer_link = text_field(form, "trailer")
    trailer_file = file_field(form, "trailer")
    if trailer_link and not is_youtube_link(trailer_link):
        raise HTTPException(status_code=400, detail="Invalid YouTube trailer link.")
    if trailer_file is not None and not is_video(trailer_file):
        raise HTTPException(status_code=400, detail="Uploaded trailer must be a video.")

    poster = file_field(form, "backdrop_path")
    if poster is None:
        raise HTTPException(status_code=400, detail="Poster (backdrop_path) is required.")
    if not is_image(poster):
        raise HTTPException(status_code=400, detail="Uploaded poster must be an image.")

    try:
        runtime = parse_positive_int(fields.pop("runtime"), "Runtime")
        casts = parse_casts(form)
    except FormError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    try:
        poster_ref = await run_in_threadpool(store.upload, poster, folder="POSTER")
        if trailer_file is not None:
            trailer = await run_in_threadpool(store.upload, trailer_file, folder="TRAILER", resource_type="video")
        else:
            trailer = trailer_link or None
    except MediaStoreError as exc:
        logger.error("Upcoming media upload failed: %s", exc)
        raise HTTPException(status_code=500, detail="Media upload failed.")

    portraits = await run_in_threadpool(upload_cast_portraits, form, casts, store, "CASTS")
    upcoming = Upcoming(
        **fields,
        runtime=runtime,
        genres=genres,
        backdrop_path=poster_ref,
        trailer=trailer,
        casts=portraits,
    )
    data = stamp(upcoming.model_dump())
    await run_in_threadpool(db[UPCOMING].insert_one, data)
    logger.info("Upcoming movie %s added: %s", data["_id"], upcoming.title)

    return {
        "success": True,
        "message": "Upcoming movie added successfully",
        "upcoming": str_id(data),
        "genres_text": ", ".join(genres),
    }


@router.get("/all")
def list_upcoming(db: Database = Depends(get_db)):
    docs = db[UPCOMING].find().sort("created_at", DESCENDING)
    return {"success": True, "upcoming": [str_id(d) for d in docs]}


@router.get("/get-upcoming/{upcoming_id}")
def get_upcoming(upcoming_id: str, db: Database = Depends(get_db)):
    doc = db[UPCOMING].find_one({"_id": get_objectid(upcoming_id)})
    if not doc:
        raise HTTPException(status_code=404, detail="Upcoming movie not found")
    return {"success": True, "upcoming": str_id(doc)}


@router.delete("/delete/{upcoming_id}")
def delete_upcoming(
    upcoming_id: str,
    db: Database = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
):
    doc = db[UPCOMING].find_one({"_id": get_objectid(upcoming_id)})
    if not doc:
        raise HTTPException(status_code=404, detail="Upcoming movie not found")

    failures = delete_media(store, owned_media(doc))
    if failures:
        logger.warning("Upcoming %s deleted with %d media object(s) left behind", upcoming_id, failures)
    db[UPCOMING].delete_one({"_id": doc["_id"]})

    return {"success": True, "message": "Upcoming movie deleted successfully"}
