"""
Helpers for the multipart forms the admin screens post.

Genres and casts arrive in whichever shape the browser produced, so these
functions normalise them before anything is uploaded or persisted.
"""
import json
import logging
import re
from typing import List, Optional

from starlette.datastructures import FormData
from starlette.datastructures import UploadFile as StarletteUploadFile

from media import MediaStore, MediaStoreError, is_image

logger = logging.getLogger(__name__)

YOUTUBE_LINK = re.compile(r"^https?://(www\.)?(youtube\.com|youtu\.be)/")
YOUTUBE_ID = re.compile(r"(?:youtube\.com/(?:watch\?v=|embed/|v/)|youtu\.be/)([A-Za-z0-9_-]{6,20})")


class FormError(ValueError):
    """A submitted form field is missing or malformed."""


def text_field(form: FormData, name: str) -> str:
    value = form.get(name)
    if isinstance(value, str):
        return value.strip()
    return ""


def file_field(form: FormData, name: str) -> Optional[StarletteUploadFile]:
    value = form.get(name)
    # Browsers send an empty part when the file input was left blank
    if isinstance(value, StarletteUploadFile) and value.filename:
        return value
    return None


def parse_genres(form: FormData) -> List[str]:
    """Accept a JSON array, a comma separated string, or repeated fields."""
    values = form.getlist("genres") or form.getlist("genres[]")
    raw: List[str] = [v for v in values if isinstance(v, str)]
    if not raw:
        text = text_field(form, "genres_json") or text_field(form, "genres_text")
        raw = [text] if text else []

    genres: List[str] = []
    for item in raw:
        try:
            parsed = json.loads(item)
        except ValueError:
            parsed = item
        if isinstance(parsed, list):
            genres.extend(str(g).strip() for g in parsed)
        else:
            genres.extend(g.strip() for g in str(parsed).split(","))
    return [g for g in genres if g]


def parse_casts(form: FormData) -> List[dict]:
    raw = text_field(form, "casts")
    if not raw:
        return []
    try:
        casts = json.loads(raw)
    except ValueError:
        raise FormError("Invalid casts JSON.")
    if not isinstance(casts, list):
        raise FormError("Invalid casts JSON.")
    return [c if isinstance(c, dict) else {"name": str(c)} for c in casts]


def parse_positive_int(value: str, field: str) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise FormError(f"{field} must be a whole number.")
    if number <= 0:
        raise FormError(f"{field} must be greater than 0.")
    return number


def is_youtube_link(url: str) -> bool:
    return bool(YOUTUBE_LINK.match(url or ""))


def extract_youtube_id(url: str) -> Optional[str]:
    """Return the video id from watch?v=, youtu.be/, embed/ or v/ links."""
    m = YOUTUBE_ID.search(url or "")
    return m.group(1) if m else None


def youtube_watch_url(url: str) -> str:
    video_id = extract_youtube_id(url)
    if not video_id:
        raise FormError("Invalid YouTube trailer URL.")
    return f"https://www.youtube.com/watch?v={video_id}"


def upload_cast_portraits(form: FormData, casts: List[dict], store: MediaStore, folder: str) -> List[dict]:
    """
    Upload ``castsImage_<i>`` files for each cast entry.

    Portraits are optional: a missing, non-image or failed upload leaves the
    cast member without a picture instead of failing the whole form. Entries
    with no name are dropped; the index still follows the submitted order.
    """
    members = []
    for i, cast in enumerate(casts):
        name = str(cast.get("name") or "").strip()
        if not name:
            continue
        member = {"name": name}
        portrait = file_field(form, f"castsImage_{i}")
        if portrait is not None:
            if not is_image(portrait):
                logger.warning("Cast image for %s is not an image, skipping", name)
            else:
                try:
                    member["castsImage"] = store.upload(portrait, folder=folder)
                except MediaStoreError as exc:
                    logger.warning("Cast image upload failed for %s, skipping image: %s", name, exc)
        members.append(member)
    return members
