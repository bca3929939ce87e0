import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from starlette.exceptions import HTTPException

import catalog
import config
import reservations
import scheduler
import snacks
import upcoming
from database import close_client, get_db
from mailer import Mailer
from media import MediaStore

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("cinema")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fail at startup rather than on every show submission
    scheduler.show_timezone()
    app.state.media_store = MediaStore(
        config.CLOUDINARY_CLOUD_NAME,
        config.CLOUDINARY_API_KEY,
        config.CLOUDINARY_API_SECRET,
    )
    app.state.mailer = Mailer(
        config.SMTP_HOST,
        config.SMTP_PORT,
        user=config.EMAIL_USER,
        password=config.EMAIL_PASS,
        use_tls=config.SMTP_USE_TLS,
        sender_name="Cinema Hall Booking",
    )
    logger.info("Cinema API started")
    yield
    close_client()
    logger.info("Cinema API stopped")


app = FastAPI(title="Cinema API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Every failure leaves as {"success": false, "message": ...}

@app.exception_handler(HTTPException)
async def http_error(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    fields = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"] if p not in ("body", "query", "path", "form"))
        fields.append(f"{loc or 'body'} ({err['msg']})")
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Missing or invalid fields: " + ", ".join(fields)},
    )


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": str(exc)})


app.include_router(catalog.router)
app.include_router(scheduler.router)
app.include_router(reservations.router)
app.include_router(upcoming.router)
app.include_router(snacks.router)


@app.get("/")
def read_root():
    return {"message": "Cinema Backend Ready"}


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": getattr(db, "name", None),
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        response["collections"] = db.list_collection_names()
        response["connection_status"] = "Connected"
        response["database"] = "✅ Connected & Working"
    except Exception as e:
        response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
