"""Moderator review of flagged photos"""

from typing import Optional

from fastapi import APIRouter

from abelana.api.dependencies import CurrentUserId, Engagement
from abelana.schemas.photo import ReviewCreate, ReviewResult

router = APIRouter(prefix="/moderation", tags=["moderation"])


@router.post("/photos/{photo_id}/review", response_model=ReviewResult)
async def review_photo(
    photo_id: str,
    user_id: CurrentUserId,
    engagement: Engagement,
    review_in: Optional[ReviewCreate] = None,
):
    review_in = review_in or ReviewCreate()
    return await engagement.review(user_id, photo_id, approved=review_in.approved)
