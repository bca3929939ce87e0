"""
Movie Catalog.

Two sources feed the catalog: the syndicated feed (already loaded into the
``movie`` collection) and movies an administrator enters by hand. Shows may
point at either, so lookups go through ``find_movie``.
"""
import logging
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import TypeAdapter, ValidationError
from pymongo import DESCENDING
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool

from database import MANUAL_MOVIES, MOVIES, get_db, get_objectid, stamp, str_id
from forms import (
    FormError,
    file_field,
    parse_casts,
    parse_genres,
    parse_positive_int,
    text_field,
    upload_cast_portraits,
    youtube_watch_url,
)
from media import MediaStore, MediaStoreError, get_media_store, is_image
from schemas import CatalogMovie, ManualMovie, SyndicatedMovie

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/show", tags=["movies"])

_catalog_movie = TypeAdapter(CatalogMovie)


def to_movie(doc: dict, source: str) -> CatalogMovie:
    data = str_id(dict(doc))
    data["source"] = source
    return _catalog_movie.validate_python(data)


def find_movie(db: Database, movie_id: str) -> Optional[CatalogMovie]:
    """Look the id up in the syndicated catalog first, then among manual movies."""
    # Feed ids may have been stored as numbers
    keys = [movie_id, int(movie_id)] if movie_id.isdigit() else [movie_id]
    doc = db[MOVIES].find_one({"_id": {"$in": keys}})
    if doc:
        try:
            return to_movie(doc, "tmdb")
        except ValidationError as exc:
            # Still schedulable, only the display fields are unusable
            logger.warning("Feed movie %s is malformed: %s", movie_id, exc.errors()[0]["msg"])
            return SyndicatedMovie(id=str(doc["_id"]), title=str(doc.get("title") or ""))
    if ObjectId.is_valid(movie_id):
        doc = db[MANUAL_MOVIES].find_one({"_id": ObjectId(movie_id)})
        if doc:
            return to_movie(doc, "manual")
    return None


@router.get("/now-playing")
def now_playing(db: Database = Depends(get_db)):
    docs = db[MOVIES].find().sort("release_date", DESCENDING)
    movies = []
    for doc in docs:
        try:
            movies.append(SyndicatedMovie.model_validate(str_id(doc)))
        except ValidationError as exc:
            logger.warning("Skipping malformed feed movie %s: %s", doc.get("id"), exc.errors()[0]["msg"])
    return {"success": True, "movies": [m.model_dump() for m in movies]}


@router.post("/manual/add", status_code=201)
async def add_manual_movie(
    request: Request,
    db: Database = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
):
    form = await request.form()

    title = text_field(form, "title")
    overview = text_field(form, "overview")
    release_date = text_field(form, "release_date")
    runtime = text_field(form, "runtime")
    genres = parse_genres(form)
    if not title or not overview or not release_date or not runtime or not genres:
        raise HTTPException(status_code=400, detail="Missing required fields.")

    poster = file_field(form, "backdrop_path")
    if poster is None:
        raise HTTPException(status_code=400, detail="Poster image required.")
    if not is_image(poster):
        raise HTTPException(status_code=400, detail="Poster must be an image.")

    raw_trailer = text_field(form, "trailer") or text_field(form, "trailer_url")
    if not raw_trailer:
        raise HTTPException(status_code=400, detail="Trailer is required.")

    try:
        trailer = youtube_watch_url(raw_trailer)
        runtime_minutes = parse_positive_int(runtime, "Runtime")
        casts = parse_casts(form)
    except FormError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    try:
        vote_average = float(text_field(form, "vote_average") or 0)
    except ValueError:
        vote_average = 0.0

    try:
        poster_ref = await run_in_threadpool(store.upload, poster, folder="MOVIE_POSTER")
    except MediaStoreError as exc:
        logger.error("Poster upload failed: %s", exc)
        raise HTTPException(status_code=500, detail="Poster upload failed.")

    portraits = await run_in_threadpool(upload_cast_portraits, form, casts, store, "MOVIE_CASTS")
    data = stamp({
        "title": title,
        "overview": overview,
        "backdrop_path": poster_ref,
        "trailer": trailer,
        "release_date": release_date,
        "original_language": text_field(form, "original_language") or "en",
        "tagline": text_field(form, "tagline"),
        "genres": genres,
        "casts": portraits,
        "vote_average": vote_average,
        "runtime": runtime_minutes,
    })
    result = await run_in_threadpool(db[MANUAL_MOVIES].insert_one, data)
    data["_id"] = result.inserted_id
    logger.info("Manual movie %s added: %s", result.inserted_id, title)

    return {
        "success": True,
        "message": "Manual movie added successfully.",
        "manualMovie": to_movie(data, "manual").model_dump(),
    }


@router.get("/manual/all")
@router.get("/manual/movies/all")
def list_manual_movies(db: Database = Depends(get_db)):
    docs = db[MANUAL_MOVIES].find().sort("created_at", DESCENDING)
    movies = [ManualMovie.model_validate(str_id(d)) for d in docs]
    return {"success": True, "movies": [m.model_dump() for m in movies]}


@router.get("/manual/{movie_id}")
def get_manual_movie(movie_id: str, db: Database = Depends(get_db)):
    doc = db[MANUAL_MOVIES].find_one({"_id": get_objectid(movie_id)})
    if not doc:
        raise HTTPException(status_code=404, detail="Manual movie not found")
    return {"success": True, "movie": ManualMovie.model_validate(str_id(doc)).model_dump()}
