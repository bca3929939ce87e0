import mongomock
import pytest
from fastapi.testclient import TestClient

from database import get_db
from mailer import NotificationError, get_mailer
from media import MediaStoreError, get_media_store
from main import app


class FakeMediaStore:
    """Records every call; ids listed in ``fail_uploads``/``fail_deletes`` raise."""

    def __init__(self):
        self.uploads = []
        self.deletes = []
        self.fail_uploads = set()
        self.fail_deletes = set()

    def upload(self, upload, folder, resource_type="image"):
        self.uploads.append((upload.filename, folder, resource_type))
        if folder in self.fail_uploads or upload.filename in self.fail_uploads:
            raise MediaStoreError(f"upload of {upload.filename} refused")
        public_id = f"{folder}/{upload.filename}"
        return {"public_id": public_id, "url": f"https://media.test/{public_id}"}

    def delete(self, public_id, resource_type="image"):
        self.deletes.append((public_id, resource_type))
        if public_id in self.fail_deletes:
            raise MediaStoreError(f"delete of {public_id} refused")


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, text, html=None):
        if self.fail:
            raise NotificationError("SMTP unavailable")
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})


@pytest.fixture
def db():
    mongo = mongomock.MongoClient()
    yield mongo["cinema_test"]
    mongo.drop_database("cinema_test")


@pytest.fixture
def media_store():
    return FakeMediaStore()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(db, media_store, mailer):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_media_store] = lambda: media_store
    app.dependency_overrides[get_mailer] = lambda: mailer
    yield TestClient(app)
    app.dependency_overrides.clear()