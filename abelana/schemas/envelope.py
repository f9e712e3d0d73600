"""
JSON envelopes returned to the mobile client. Every payload carries a ``kind``
so the client can dispatch on it.
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class Status(BaseModel):
    kind: str = "abelana#status"
    status: str = "ok"


class Stats(BaseModel):
    following: int
    followers: int


class TLEntry(BaseModel):
    created: int
    userid: str
    name: str
    photoid: str
    likes: int
    ilike: bool


class Timeline(BaseModel):
    kind: str = "abelana#timeline"
    entries: List[TLEntry] = Field(default_factory=list)


class Person(BaseModel):
    kind: Optional[str] = None
    personid: str
    email: Optional[str] = None
    name: str


class Persons(BaseModel):
    kind: str = "abelana#followerList"
    persons: List[Person] = Field(default_factory=list)


class Comment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    personid: str
    text: str
    time: int


class Comments(BaseModel):
    kind: str = "abelana#comments"
    entries: List[Comment] = Field(default_factory=list)
