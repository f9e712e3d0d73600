from typing import Optional
from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    display_name: str = Field(default="", max_length=200)
    email: Optional[str] = Field(default=None, max_length=320)
    photo_url: Optional[str] = None
