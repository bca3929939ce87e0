from datetime import datetime, timezone
from functools import lru_cache

from bson import ObjectId
from fastapi import HTTPException
from pymongo import MongoClient
from pymongo.database import Database

import config

MOVIES = "movie"
MANUAL_MOVIES = "manualmovie"
SHOWS = "show"
RESERVATIONS = "reserve"
UPCOMING = "upcoming"
SNACKS = "snack"


@lru_cache(maxsize=1)
def get_client() -> MongoClient:
    # MongoClient connects lazily, so building it here never blocks startup
    return MongoClient(config.DATABASE_URL, serverSelectionTimeoutMS=5000)


def get_db() -> Database:
    """FastAPI dependency returning the application database."""
    return get_client()[config.DATABASE_NAME]


def utcnow() -> datetime:
    # Mongo hands back naive UTC datetimes, so everything we write is naive UTC too
    return datetime.now(timezone.utc).replace(tzinfo=None)


def str_id(doc):
    if not doc:
        return doc
    doc["id"] = str(doc.pop("_id"))
    return doc


def get_objectid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid ID format")


def stamp(data: dict) -> dict:
    now = utcnow()
    data["created_at"] = now
    data["updated_at"] = now
    return data


def close_client() -> None:
    if get_client.cache_info().currsize:
        get_client().close()
        get_client.cache_clear()
