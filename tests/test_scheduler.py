from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import config
import database
from main import app
from scheduler import (
    NoNewShowsError,
    ScheduleError,
    flatten_selection,
    schedule_shows,
    show_datetime,
    show_timezone,
)
from schemas import Price, ShowInput


@pytest.fixture
def tmdb_movie(db):
    db["movie"].insert_one({"_id": "1061474", "title": "Superman", "overview": "Flying", "runtime": 129})
    return "1061474"


@pytest.fixture
def manual_movie(db):
    result = db["manualmovie"].insert_one({
        "title": "Local Legend",
        "overview": "Made here",
        "backdrop_path": {"public_id": "MOVIE_POSTER/a", "url": "https://media.test/a"},
        "trailer": "https://www.youtube.com/watch?v=abcdefg",
        "release_date": "2025-11-01",
        "genres": ["Drama"],
        "runtime": 95,
    })
    return str(result.inserted_id)


def payload(movie_id, shows_input=None, **extra):
    body = {
        "movieId": movie_id,
        "showsInput": shows_input or [{"hall": "C1", "date": "2025-12-20", "times": ["18:00", "21:00"]}],
        "price": {"regular": 150, "vip": 250},
        "type": "2D",
    }
    body.update(extra)
    return body


def test_flatten_nested_mapping_keeps_input_order():
    selection = {"C2": {"2025-12-21": ["21:00", "10:00"], "2025-12-20": ["12:00"]}, "C1": {"2025-12-20": ["09:00"]}}

    assert list(flatten_selection(selection)) == [
        ("C2", "2025-12-21", "21:00"),
        ("C2", "2025-12-21", "10:00"),
        ("C2", "2025-12-20", "12:00"),
        ("C1", "2025-12-20", "09:00"),
    ]


def test_flatten_request_rows():
    rows = [
        ShowInput(hall="C1", date="2025-12-20", times=["18:00", "21:00"]),
        ShowInput(hall="C3", date="2025-12-22", times=["14:30"]),
    ]

    assert list(flatten_selection(rows)) == [
        ("C1", "2025-12-20", "18:00"),
        ("C1", "2025-12-20", "21:00"),
        ("C3", "2025-12-22", "14:30"),
    ]


def test_show_datetime_is_naive_utc():
    assert show_datetime("2025-12-20", "18:00", timezone.utc) == datetime(2025, 12, 20, 18, 0)
    plus_seven = timezone(timedelta(hours=7))
    assert show_datetime("2025-12-20", "01:30", plus_seven) == datetime(2025, 12, 19, 18, 30)


@pytest.mark.parametrize("date,time", [("2025-13-01", "18:00"), ("2025-12-20", "25:00"), ("tomorrow", "18:00")])
def test_show_datetime_rejects_garbage(date, time):
    with pytest.raises(ScheduleError):
        show_datetime(date, time)


def test_schedule_creates_one_show_per_time(db, tmdb_movie):
    selection = {"C1": {"2025-12-20": ["10:00", "13:00"], "2025-12-21": ["10:00"]}, "C2": {"2025-12-20": ["10:00"]}}

    shows = schedule_shows(db, tmdb_movie, "3D", Price(regular=100, vip=200), selection)

    assert len(shows) == 4
    assert db["show"].count_documents({"movie": tmdb_movie}) == 4
    stored = db["show"].find_one({"hall": "C2"})
    assert stored["type"] == "3D"
    assert stored["price"] == {"regular": 100, "vip": 200}
    assert stored["occupiedSeats"] == {"regular": [], "vip": []}


def test_schedule_same_slot_twice_in_one_request(db, tmdb_movie):
    shows = schedule_shows(db, tmdb_movie, "2D", Price(regular=1, vip=2), {"C1": {"2025-12-20": ["18:00", "18:00"]}})

    assert len(shows) == 1


def test_schedule_everything_existing_raises(db, tmdb_movie):
    selection = {"C1": {"2025-12-20": ["18:00"]}}
    schedule_shows(db, tmdb_movie, "2D", Price(regular=1, vip=2), selection)

    with pytest.raises(NoNewShowsError):
        schedule_shows(db, tmdb_movie, "2D", Price(regular=1, vip=2), selection)
    assert db["show"].count_documents({}) == 1


def test_add_shows_on_empty_schedule(client, tmdb_movie):
    res = client.post("/api/show/add", json=payload(tmdb_movie))

    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert body["totalShowsAdded"] == 2
    assert body["movieTitle"] == "Superman"
    assert body["source"] == "tmdb"


def test_add_identical_shows_again_adds_nothing(client, db, tmdb_movie):
    client.post("/api/show/add", json=payload(tmdb_movie))

    res = client.post("/api/show/add", json=payload(tmdb_movie))

    assert res.status_code == 400
    assert res.json()["success"] is False
    assert "no new shows to add" in res.json()["message"].lower()
    assert db["show"].count_documents({}) == 2


def test_add_shows_skips_only_existing_slots(client, db, tmdb_movie):
    client.post("/api/show/add", json=payload(tmdb_movie, [{"hall": "C1", "date": "2025-12-20", "times": ["18:00"]}]))

    res = client.post("/api/show/add", json=payload(tmdb_movie))

    assert res.status_code == 201
    assert res.json()["totalShowsAdded"] == 1
    assert db["show"].count_documents({}) == 2


def test_same_time_in_another_hall_is_a_new_show(client, tmdb_movie):
    client.post("/api/show/add", json=payload(tmdb_movie))

    res = client.post("/api/show/add", json=payload(tmdb_movie, [{"hall": "C2", "date": "2025-12-20", "times": ["18:00"]}]))

    assert res.json()["totalShowsAdded"] == 1


def test_add_shows_for_manual_movie(client, manual_movie):
    res = client.post("/api/show/add", json=payload(manual_movie))

    assert res.status_code == 201
    assert res.json()["source"] == "manual"
    assert res.json()["movieTitle"] == "Local Legend"


def test_add_shows_unknown_movie(client, db):
    res = client.post("/api/show/add", json=payload(str(ObjectId())))

    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Movie not found"}
    assert db["show"].count_documents({}) == 0


def test_add_shows_requires_price(client, tmdb_movie):
    body = payload(tmdb_movie)
    del body["price"]

    res = client.post("/api/show/add", json=body)

    assert res.status_code == 400
    assert "price" in res.json()["message"]


def test_add_shows_requires_a_selection(client, tmdb_movie):
    body = payload(tmdb_movie)
    body["showsInput"] = []

    res = client.post("/api/show/add", json=body)

    assert res.status_code == 400


def test_add_shows_rejects_unknown_hall(client, tmdb_movie):
    res = client.post("/api/show/add", json=payload(tmdb_movie, [{"hall": "Z9", "date": "2025-12-20", "times": ["18:00"]}]))

    assert res.status_code == 400


def test_upcoming_shows_include_movie(client, db, tmdb_movie):
    client.post("/api/show/add", json=payload(tmdb_movie, [{"hall": "C3", "date": "2099-01-01", "times": ["20:00"]}]))
    client.post("/api/show/add", json=payload(tmdb_movie, [{"hall": "C3", "date": "2001-01-01", "times": ["20:00"]}]))

    shows = client.get("/api/show/all").json()["shows"]

    assert len(shows) == 1
    assert shows[0]["movie"]["title"] == "Superman"
    assert shows[0]["showDateTime"].startswith("2099-01-01T20:00")

    per_movie = client.get(f"/api/show/movie/{tmdb_movie}").json()["shows"]
    assert [s["hall"] for s in per_movie] == ["C3"]


def test_add_shows_reads_times_in_configured_zone(client, db, tmdb_movie, monkeypatch):
    monkeypatch.setattr(config, "SHOW_TIMEZONE", "Asia/Phnom_Penh")

    res = client.post("/api/show/add", json=payload(tmdb_movie))

    assert res.status_code == 201
    stored = sorted(d["showDateTime"] for d in db["show"].find())
    assert stored == [datetime(2025, 12, 20, 11, 0), datetime(2025, 12, 20, 14, 0)]


def test_unknown_show_timezone(monkeypatch):
    monkeypatch.setattr(config, "SHOW_TIMEZONE", "Mars/Olympus_Mons")

    with pytest.raises(ValueError, match="Mars/Olympus_Mons"):
        show_timezone()


def test_unknown_show_timezone_stops_startup(monkeypatch):
    monkeypatch.setattr(config, "SHOW_TIMEZONE", "Mars/Olympus_Mons")

    with pytest.raises(ValueError, match="SHOW_TIMEZONE"):
        with TestClient(app):
            pass


def test_shutdown_closes_mongo_client():
    database.get_client()
    assert database.get_client.cache_info().currsize == 1

    with TestClient(app) as client:
        assert client.get("/").status_code == 200

    assert database.get_client.cache_info().currsize == 0


def test_add_shows_for_malformed_feed_movie(client, db):
    db["movie"].insert_one({"_id": "77", "title": "Rough Cut", "runtime": "abc", "vote_average": None})

    res = client.post("/api/show/add", json=payload("77"))

    assert res.status_code == 201
    assert res.json()["movieTitle"] == "Rough Cut"
