"""
Reservation Intake.

Hall booking requests from the public site. A request is persisted
unapproved, then the cinema inbox gets an email about it. If the email
can't be sent the request fails, but the saved reservation stays.
"""
import html
import logging
from datetime import datetime, time

from fastapi import APIRouter, Depends, HTTPException
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

import config
from database import RESERVATIONS, get_db, get_objectid, stamp, str_id, utcnow
from mailer import Mailer, NotificationError, get_mailer
from schemas import Reservation, ReservationCreate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reserve", tags=["reservations"])

OPENING_TIME = "08:00"
CLOSING_TIME = "22:00"


class ReservationError(ValueError):
    """The requested time window is not acceptable."""


def to_minutes(value: str) -> int:
    try:
        parsed = datetime.strptime(value.strip(), "%H:%M")
    except ValueError:
        raise ReservationError(f"Invalid time '{value}', expected HH:MM")
    return parsed.hour * 60 + parsed.minute


def validate_time_window(start: str, end: str) -> None:
    """Both ends inside opening hours (inclusive), end strictly after start."""
    opening, closing = to_minutes(OPENING_TIME), to_minutes(CLOSING_TIME)
    start_total, end_total = to_minutes(start), to_minutes(end)
    if not (opening <= start_total <= closing and opening <= end_total <= closing):
        raise ReservationError(f"Reservation time must be between {OPENING_TIME} and {CLOSING_TIME}")
    if end_total <= start_total:
        raise ReservationError("End time must be after start time")


def to_response(doc: dict) -> dict:
    """Stored reservations keep a datetime; clients get the plain date back."""
    doc = str_id(doc)
    if isinstance(doc.get("ReservedDate"), datetime):
        doc["ReservedDate"] = doc["ReservedDate"].date().isoformat()
    return doc


def notification_body(reservation: dict):
    rows = [
        ("Name", reservation["SenderName"]),
        ("Email", reservation["email"]),
        ("Phone", reservation["phone"]),
        ("Preferred Contact Method", reservation["Talk"]),
        ("Event", reservation["events"]),
        ("People Attending", reservation["peopleAttend"]),
        ("Start Time", reservation["eventStartTime"]),
        ("End Time", reservation["eventEndTime"]),
        ("Date", reservation["ReservedDate"].date().isoformat()),
        ("Message", reservation.get("message") or "No message"),
    ]
    text = "\n".join(f"{label}: {value}" for label, value in rows)
    markup = "<h2>New Hall Reservation</h2>\n" + "\n".join(
        f"<p><strong>{label}:</strong> {html.escape(str(value))}</p>" for label, value in rows
    )
    return text, markup


@router.post("/Add", status_code=201)
def create_reservation(
    payload: ReservationCreate,
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    try:
        validate_time_window(payload.eventStartTime, payload.eventEndTime)
    except ReservationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    data = Reservation(**payload.model_dump()).model_dump()
    # BSON has no date type, store midnight so range queries still work
    data["ReservedDate"] = datetime.combine(data["ReservedDate"], time.min)
    stamp(data)
    db[RESERVATIONS].insert_one(data)
    logger.info("Reservation %s saved for %s", data["_id"], payload.ReservedDate)

    text, markup = notification_body(data)
    try:
        mailer.send(config.RESERVATION_NOTIFY_TO, "New Hall Reservation", text, markup)
    except NotificationError as exc:
        # The reservation is already stored; only the notice failed
        logger.error("Reservation %s saved but notification failed: %s", data["_id"], exc)
        raise HTTPException(status_code=500, detail=f"Reservation saved but email failed: {exc}")

    return {
        "success": True,
        "message": "Reservation created and email sent successfully.",
        "data": to_response(data),
    }


@router.get("/all")
def list_reservations(db: Database = Depends(get_db)):
    docs = [to_response(d) for d in db[RESERVATIONS].find().sort("created_at", DESCENDING)]
    return {"success": True, "count": len(docs), "data": docs}


@router.put("/approve/{reservation_id}")
def approve_reservation(reservation_id: str, db: Database = Depends(get_db)):
    updated = db[RESERVATIONS].find_one_and_update(
        {"_id": get_objectid(reservation_id)},
        {"$set": {"approved": True, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return {"success": True, "message": "Reservation approved successfully", "data": to_response(updated)}


@router.delete("/delete/{reservation_id}")
def delete_reservation(reservation_id: str, db: Database = Depends(get_db)):
    result = db[RESERVATIONS].delete_one({"_id": get_objectid(reservation_id)})
    if not result.deleted_count:
        raise HTTPException(status_code=404, detail="Reservation not found")
    return {"success": True, "message": "Reservation deleted successfully"}
