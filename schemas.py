"""
Database Schemas for the Cinema back office

Each Pydantic model corresponds to a MongoDB collection (lowercased class name).
- SyndicatedMovie -> "movie"
- ManualMovie -> "manualmovie"
- Show -> "show"
- Reservation -> "reserve"
- Upcoming -> "upcoming"
- Snack -> "snack"
"""
from copy import copy
from datetime import date, datetime
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

Hall = Literal["C1", "C2", "C3"]
ShowType = Literal["2D", "3D"]


class MediaRef(BaseModel):
    public_id: str = Field(..., description="Media Store identifier")
    url: str = Field(..., description="Retrieval URL")


class CastMember(BaseModel):
    name: str = Field(..., description="Actor name")
    castsImage: Optional[MediaRef] = Field(None, description="Portrait, if one was uploaded")


# Movies

class SyndicatedMovie(BaseModel):
    """A movie from the syndicated catalog. Documents are stored as the feed delivers them."""

    source: Literal["tmdb"] = "tmdb"
    id: str
    title: str = ""
    overview: str = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: Optional[str] = None
    original_language: Optional[str] = None
    runtime: Optional[int] = None
    genres: List[Any] = []
    casts: List[Any] = []
    vote_average: float = 0
    vote_count: int = 0
    trailer: Optional[str] = None

    @field_validator("title", "overview", "vote_average", "vote_count", "genres", "casts", mode="before")
    @classmethod
    def null_as_default(cls, value, info):
        # The feed sends null for fields it has no value for
        if value is None:
            return copy(cls.model_fields[info.field_name].default)
        return value


class ManualMovie(BaseModel):
    source: Literal["manual"] = "manual"
    id: str
    title: str
    overview: str
    backdrop_path: MediaRef
    trailer: str = Field(..., description="Canonical YouTube watch URL")
    release_date: str
    original_language: str = "en"
    tagline: str = ""
    genres: List[str]
    casts: List[CastMember] = []
    vote_average: float = 0
    runtime: int
    created_at: Optional[datetime] = None


CatalogMovie = Annotated[Union[SyndicatedMovie, ManualMovie], Field(discriminator="source")]


# Shows

class Price(BaseModel):
    regular: float = Field(..., ge=0, description="Regular seat price")
    vip: float = Field(..., ge=0, description="VIP seat price")


class ShowInput(BaseModel):
    hall: Hall
    date: str = Field(..., description="Show date, YYYY-MM-DD")
    times: List[str] = Field(..., description="Start times in input order, HH:MM")


class ShowCreate(BaseModel):
    movieId: str = Field(..., min_length=1, description="Syndicated or manual movie id")
    showsInput: List[ShowInput] = Field(..., min_length=1)
    price: Price
    type: ShowType = "2D"


class OccupiedSeats(BaseModel):
    regular: List[str] = []
    vip: List[str] = []


class Show(BaseModel):
    movie: str = Field(..., description="Referenced movie id, either source")
    hall: Hall
    type: ShowType
    showDateTime: datetime = Field(..., description="Naive UTC start time")
    price: Price
    occupiedSeats: OccupiedSeats = Field(default_factory=OccupiedSeats)


# Reservations

class ReservationCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    SenderName: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone: str = Field(..., min_length=1)
    events: str = Field(..., min_length=1, description="Requested event type")
    Talk: str = Field(..., min_length=1, description="Preferred contact channel")
    peopleAttend: int = Field(..., ge=1)
    ReservedDate: date
    eventStartTime: str = Field(..., min_length=1, description="HH:MM")
    eventEndTime: str = Field(..., min_length=1, description="HH:MM")
    message: Optional[str] = None


class Reservation(ReservationCreate):
    approved: bool = False


# Upcoming

class Upcoming(BaseModel):
    title: str
    description: str
    release_date: str = Field(..., description="Public release date")
    come_date: str = Field(..., description="Date the cinema intends to show it")
    language: str
    runtime: int = Field(..., ge=1)
    genres: List[str] = Field(..., min_length=1)
    backdrop_path: MediaRef
    trailer: Optional[Union[str, MediaRef]] = Field(None, description="YouTube link or uploaded video")
    casts: List[CastMember] = []


# Snacks

class Snack(BaseModel):
    name: str
    desc: str
    price: float = Field(..., ge=0)
    type: Optional[str] = None
    image: MediaRef
