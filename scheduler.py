"""
Show Scheduler.

An admin picks a movie, a price pair and a selection of halls, dates and
times. The selection is expanded into one show per (hall, date, time),
shows that already exist are skipped, and the rest are inserted in a
single batch.

Known limitation: the existence check and the insert are separate calls
with no unique index behind them, so two overlapping requests for the same
slot can both insert it. Serialized requests never create duplicates.
"""
import logging
from datetime import datetime, timezone, tzinfo
from typing import Iterable, Iterator, List, Mapping, Sequence, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException
from pymongo import ASCENDING
from pymongo.database import Database

import config
from catalog import find_movie
from database import SHOWS, get_db, stamp, str_id, utcnow
from schemas import Price, Show, ShowCreate, ShowInput

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/show", tags=["shows"])

Selection = Union[Sequence[ShowInput], Mapping[str, Mapping[str, Sequence[str]]]]
Slot = Tuple[str, str, str]


class ScheduleError(ValueError):
    """The selection can't be turned into shows."""


class NoNewShowsError(ScheduleError):
    """Every requested slot is already scheduled."""


def flatten_selection(selection: Selection) -> Iterator[Slot]:
    """
    Yield (hall, date, time) triples hall-major, then by date, then in the
    order the times were given. Accepts either the request's list of
    ``ShowInput`` rows or a nested ``{hall: {date: [times]}}`` mapping.
    """
    if isinstance(selection, Mapping):
        for hall, dates in selection.items():
            for date, times in dates.items():
                for time in times:
                    yield hall, date, time
    else:
        for row in selection:
            for time in row.times:
                yield row.hall, row.date, time


def show_timezone() -> tzinfo:
    name = config.SHOW_TIMEZONE
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown SHOW_TIMEZONE: {name!r}")


def show_datetime(date: str, time: str, tz: tzinfo = None) -> datetime:
    """Combine a YYYY-MM-DD date and HH:MM time into a naive UTC datetime.

    The wall-clock value is read in ``tz`` (the configured show timezone by
    default) unless the time already carries an offset.
    """
    try:
        local = datetime.fromisoformat(f"{date.strip()}T{time.strip()}")
    except ValueError:
        raise ScheduleError(f"Invalid show date/time: {date} {time}")
    if local.tzinfo is None:
        local = local.replace(tzinfo=tz or show_timezone())
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def show_exists(db: Database, movie_id: str, hall: str, when: datetime) -> bool:
    return db[SHOWS].count_documents(
        {"movie": movie_id, "hall": hall, "showDateTime": when}, limit=1
    ) > 0


def plan_shows(
    db: Database, movie_id: str, show_type: str, price: Price, slots: Iterable[Slot]
) -> List[dict]:
    """Build documents for every slot not already on the schedule."""
    tz = show_timezone()
    seen = set()
    planned = []
    for hall, date, time in slots:
        when = show_datetime(date, time, tz)
        key = (hall, when)
        if key in seen or show_exists(db, movie_id, hall, when):
            logger.debug("Skipping existing show %s %s %s", movie_id, hall, when)
            continue
        seen.add(key)
        show = Show(movie=movie_id, hall=hall, type=show_type, showDateTime=when, price=price)
        planned.append(stamp(show.model_dump()))
    return planned


def schedule_shows(db: Database, movie_id: str, show_type: str, price: Price, selection: Selection) -> List[dict]:
    shows = plan_shows(db, movie_id, show_type, price, flatten_selection(selection))
    if not shows:
        raise NoNewShowsError("No new shows to add. All selected shows already exist.")
    db[SHOWS].insert_many(shows)
    return shows


@router.post("/add", status_code=201)
def add_shows(payload: ShowCreate, db: Database = Depends(get_db)):
    movie = find_movie(db, payload.movieId)
    if movie is None:
        raise HTTPException(status_code=404, detail="Movie not found")

    try:
        shows = schedule_shows(db, payload.movieId, payload.type, payload.price, payload.showsInput)
    except ScheduleError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    logger.info("Added %d show(s) for %s (%s)", len(shows), movie.title, movie.source)
    return {
        "success": True,
        "message": f"{len(shows)} show(s) added successfully for {movie.title}.",
        "totalShowsAdded": len(shows),
        "movieTitle": movie.title,
        "source": movie.source,
    }


def _with_movies(db: Database, docs) -> List[dict]:
    movies = {}
    out = []
    for doc in docs:
        show = str_id(doc)
        movie_id = show["movie"]
        if movie_id not in movies:
            movie = find_movie(db, movie_id)
            movies[movie_id] = movie.model_dump() if movie else None
        show["movie"] = movies[movie_id] or movie_id
        out.append(show)
    return out


@router.get("/all")
def list_upcoming_shows(db: Database = Depends(get_db)):
    docs = db[SHOWS].find({"showDateTime": {"$gte": utcnow()}}).sort("showDateTime", ASCENDING)
    return {"success": True, "shows": _with_movies(db, docs)}


@router.get("/movie/{movie_id}")
def list_movie_shows(movie_id: str, db: Database = Depends(get_db)):
    docs = db[SHOWS].find(
        {"movie": movie_id, "showDateTime": {"$gte": utcnow()}}
    ).sort("showDateTime", ASCENDING)
    return {"success": True, "shows": [str_id(d) for d in docs]}
