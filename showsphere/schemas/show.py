from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field


class ShowInput(BaseModel):
    date: str
    time: List[str]


class AddShowRequest(BaseModel):
    movie_id: Optional[str] = Field(default=None, alias="movieId")
    movie_title: Optional[str] = Field(default=None, alias="movieTitle")
    shows_input: Optional[List[ShowInput]] = Field(default=None, alias="showsInput")
    show_price: Optional[Decimal] = Field(default=None, alias="showPrice")

    class Config:
        populate_by_name = True


class MovieResponse(BaseModel):
    id: str
    title: str
    overview: Optional[str] = None
    poster_path: Optional[str] = None

    class Config:
        from_attributes = True


class ShowResponse(BaseModel):
    id: str
    movie_id: str
    show_date_time: datetime
    show_price: Optional[float] = None
    movie: Optional[MovieResponse] = None

    class Config:
        from_attributes = True


class ShowListResponse(BaseModel):
    success: bool = True
    shows: List[ShowResponse]
