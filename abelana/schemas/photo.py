from pydantic import BaseModel, Field


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=1000)


class ReviewCreate(BaseModel):
    approved: bool = True


class ReviewResult(BaseModel):
    photoid: str
    approvals: int
    visible: bool
