from typing import List

from fastapi import APIRouter, Depends

from icebreaker.routers.deps import get_ai, get_match_service
from icebreaker.schemas.match import AIQuestion, MatchResult, QuestionRequest
from icebreaker.services.ai_service import AIService
from icebreaker.services.match_service import MatchService
from icebreaker.utils.dependencies import get_current_user


router = APIRouter(prefix="/matches", tags=["matches"])


@router.get("", response_model=List[MatchResult])
async def find_matches(current_user: dict = Depends(get_current_user), service: MatchService = Depends(get_match_service)):
    return await service.find_matches(current_user)


@router.post("/question", response_model=AIQuestion)
async def daily_question(body: QuestionRequest | None = None, current_user: dict = Depends(get_current_user), ai: AIService = Depends(get_ai)):
    answers = current_user.get("ai_answers", [])
    return await ai.generate_question(
        current_user["_id"],
        history=[a["answer"] for a in answers],
        preferences=current_user.get("interests", []),
        category=body.category if body else None,
    )
