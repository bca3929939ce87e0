import logging
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from database import SNACKS, get_db, stamp, str_id, utcnow
from media import MediaStore, MediaStoreError, get_media_store, is_image
from schemas import Snack

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/snack", tags=["snacks"])


def find_snack(db: Database, snack_id: str) -> Optional[dict]:
    # Older snacks were addressed by a plain "id" field
    if ObjectId.is_valid(snack_id):
        doc = db[SNACKS].find_one({"_id": ObjectId(snack_id)})
        if doc:
            return doc
    return db[SNACKS].find_one({"id": snack_id})


def get_snack_or_404(db: Database, snack_id: str) -> dict:
    snack = find_snack(db, snack_id)
    if not snack:
        raise HTTPException(status_code=404, detail="Snack not found")
    return snack


def upload_image(store: MediaStore, image: UploadFile) -> dict:
    if not is_image(image):
        raise HTTPException(status_code=400, detail="Uploaded file must be an image")
    try:
        return store.upload(image, folder="Snacks")
    except MediaStoreError as exc:
        logger.error("Snack image upload failed: %s", exc)
        raise HTTPException(status_code=500, detail="Image upload failed")


def discard_image(store: MediaStore, snack: dict) -> None:
    public_id = (snack.get("image") or {}).get("public_id")
    if not public_id:
        return
    try:
        store.delete(public_id)
    except MediaStoreError as exc:
        logger.warning("Could not delete old snack image %s: %s", public_id, exc)


@router.post("/add", status_code=201)
def create_snack(
    name: str = Form(..., min_length=1),
    desc: str = Form(..., min_length=1),
    price: float = Form(..., ge=0),
    type: Optional[str] = Form(None),
    image: UploadFile = File(None),
    db: Database = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
):
    if image is None or not image.filename:
        raise HTTPException(status_code=400, detail="Image is required")

    snack = Snack(name=name, desc=desc, price=price, type=type, image=upload_image(store, image))
    data = stamp(snack.model_dump())
    db[SNACKS].insert_one(data)
    logger.info("Snack %s created: %s", data["_id"], name)
    return {"success": True, "snack": str_id(data)}


@router.get("/all")
def list_snacks(db: Database = Depends(get_db)):
    docs = db[SNACKS].find().sort("created_at", DESCENDING)
    return {"success": True, "snacks": [str_id(d) for d in docs]}


@router.get("/{snack_id}")
def get_snack(snack_id: str, db: Database = Depends(get_db)):
    return {"success": True, "snack": str_id(get_snack_or_404(db, snack_id))}


@router.put("/update/{snack_id}")
def update_snack(
    snack_id: str,
    name: Optional[str] = Form(None),
    desc: Optional[str] = Form(None),
    price: Optional[float] = Form(None, ge=0),
    type: Optional[str] = Form(None),
    image: UploadFile = File(None),
    db: Database = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
):
    snack = get_snack_or_404(db, snack_id)

    changes = {}
    if name:
        changes["name"] = name
    if desc:
        changes["desc"] = desc
    if price is not None:
        changes["price"] = price
    if type:
        changes["type"] = type

    if image is not None and image.filename:
        if not is_image(image):
            raise HTTPException(status_code=400, detail="Uploaded file must be an image")
        discard_image(store, snack)
        changes["image"] = upload_image(store, image)

    changes["updated_at"] = utcnow()
    updated = db[SNACKS].find_one_and_update(
        {"_id": snack["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    return {"success": True, "snack": str_id(updated)}


@router.delete("/delete/{snack_id}")
def delete_snack(
    snack_id: str,
    db: Database = Depends(get_db),
    store: MediaStore = Depends(get_media_store),
):
    snack = get_snack_or_404(db, snack_id)
    discard_image(store, snack)
    db[SNACKS].delete_one({"_id": snack["_id"]})
    return {"success": True, "message": "Snack deleted"}
