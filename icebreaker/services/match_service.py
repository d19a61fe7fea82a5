import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from icebreaker.config import Settings
from icebreaker.errors import IcebreakerError, PermissionDeniedError
from icebreaker.repositories.interaction_repository import InteractionRepository
from icebreaker.repositories.user_repository import UserRepository
from icebreaker.schemas.match import MatchLevel, MatchResult, SharedAnswer
from icebreaker.schemas.user import user_public
from icebreaker.services.ai_service import AIService, fallback_insight
from icebreaker.services.connection_status import allows_interaction, resolve_connection_status
from icebreaker.utils.geo import haversine_km


logger = logging.getLogger(__name__)

CANDIDATE_POOL = 100


def word_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the lower-cased word sets."""
    words_a = set(a.lower().split())
    words_b = set(b.lower().split())
    union = words_a | words_b
    return len(words_a & words_b) / len(union) if union else 0.0


def shared_answer_pairs(answers: List[Dict[str, Any]], other_answers: List[Dict[str, Any]]) -> List[Tuple[Dict[str, Any], Dict[str, Any]]]:
    by_question = {a["question_id"]: a for a in other_answers}
    return [(a, by_question[a["question_id"]]) for a in answers if a["question_id"] in by_question]


def default_starter(shared: List[SharedAnswer]) -> str:
    if shared:
        return f"I noticed we both answered '{shared[0].question_text}' similarly. What do you think about that?"
    return "Hey! I saw we have some things in common. How's your day going?"


class MatchService:
    """Nearby, compatible people the caller can still interact with."""

    def __init__(self, user_repo: UserRepository, interaction_repo: InteractionRepository, ai_service: AIService, settings: Settings) -> None:
        self._user_repo = user_repo
        self._interaction_repo = interaction_repo
        self._ai = ai_service
        self._settings = settings

    async def find_matches(self, current_user: Dict[str, Any]) -> List[MatchResult]:
        lat, lon = current_user.get("latitude"), current_user.get("longitude")
        if lat is None or lon is None:
            raise PermissionDeniedError("Location required for matching")

        nearby = await self.find_nearby_users(current_user)
        interactions = await self._interaction_repo.get_many(current_user["_id"], [u["_id"] for u, _ in nearby])
        blocked_me = set(await self._interaction_repo.blocked_by(current_user["_id"]))

        scored: List[Tuple[float, Dict[str, Any], List[SharedAnswer], float]] = []
        for user, distance in nearby:
            interaction = interactions.get(user["_id"])
            if not allows_interaction(interaction["type"] if interaction else None) or user["_id"] in blocked_me:
                continue
            result = await self.analyze_compatibility(current_user, user)
            if result is None:
                continue
            score, shared = result
            if score >= self._settings.min_compatibility:
                scored.append((score, user, shared, distance))

        scored.sort(key=lambda item: item[0], reverse=True)
        matches = []
        for score, user, shared, distance in scored[: self._settings.max_matches]:
            interaction = interactions.get(user["_id"])
            matches.append(
                MatchResult(
                    user=user_public(user, distance_km=round(distance, 2)),
                    compatibility_score=score,
                    match_percentage=round(score * 100, 1),
                    match_level=MatchLevel.for_percentage(score * 100),
                    shared_answers=shared,
                    ai_insight=await self._insight(score, shared, current_user, user),
                    conversation_starter=await self._starter(shared, current_user, user),
                    distance_km=round(distance, 2),
                    connection_status=resolve_connection_status(interaction["type"] if interaction else None),
                    matched_at=datetime.now(timezone.utc),
                )
            )
        logger.info("Found %d matches for %s out of %d nearby users", len(matches), current_user["_id"], len(nearby))
        return matches

    async def find_nearby_users(self, current_user: Dict[str, Any]) -> List[Tuple[Dict[str, Any], float]]:
        candidates = await self._user_repo.list_visible(current_user["_id"], limit=CANDIDATE_POOL)
        nearby = []
        for user in candidates:
            if user["_id"] == current_user["_id"]:
                continue
            distance = haversine_km(current_user["latitude"], current_user["longitude"], user["latitude"], user["longitude"])
            if distance <= self._settings.max_match_distance_km:
                nearby.append((user, distance))
        nearby.sort(key=lambda item: item[1])
        return nearby

    async def analyze_compatibility(self, current_user: Dict[str, Any], other: Dict[str, Any]) -> Optional[Tuple[float, List[SharedAnswer]]]:
        pairs = shared_answer_pairs(current_user.get("ai_answers", []), other.get("ai_answers", []))
        if not pairs:
            return None
        shared: List[SharedAnswer] = []
        for mine, theirs in pairs:
            question = mine.get("question_text") or theirs.get("question_text") or "Unknown question"
            score = await self._answer_score(current_user["_id"], question, mine["answer"], theirs["answer"])
            shared.append(SharedAnswer(question_text=question, user_answer=mine["answer"], match_answer=theirs["answer"], compatibility=score))
        overall = sum(s.compatibility for s in shared) / len(shared)
        return overall, shared

    async def _answer_score(self, user_id: str, question: str, answer: str, other_answer: str) -> float:
        if self._ai.configured:
            try:
                analysis = await self._ai.analyze_compatibility(user_id, question, answer, other_answer)
                return analysis.score
            except IcebreakerError as exc:
                logger.warning("AI compatibility analysis failed (%s), using word similarity", exc.user_message)
        return word_similarity(answer, other_answer)

    async def _insight(self, score: float, shared: List[SharedAnswer], current_user: Dict[str, Any], other: Dict[str, Any]) -> str:
        if self._ai.configured:
            try:
                return await self._ai.match_insight(score, shared, current_user.get("first_name", ""), other.get("first_name", ""))
            except IcebreakerError as exc:
                logger.warning("AI insight failed (%s)", exc.user_message)
        return fallback_insight(score)

    async def _starter(self, shared: List[SharedAnswer], current_user: Dict[str, Any], other: Dict[str, Any]) -> str:
        if self._ai.configured and shared:
            try:
                return await self._ai.conversation_starter(shared, current_user.get("first_name", ""), other.get("first_name", ""))
            except IcebreakerError as exc:
                logger.warning("AI conversation starter failed (%s)", exc.user_message)
        return default_starter(shared)
