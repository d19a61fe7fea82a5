import logging
import random
import uuid
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import openai
from openai import AsyncOpenAI

from icebreaker.config import Settings, get_settings
from icebreaker.errors import AIServiceError, AuthError, IcebreakerError, NetworkError, QuotaExceededError
from icebreaker.schemas.match import AIQuestion, CompatibilityAnalysis, QuestionCategory, SharedAnswer


logger = logging.getLogger(__name__)

PROVIDERS = {
    "deepseek": ("https://api.deepseek.com", "deepseek-chat"),
    "openai": ("https://api.openai.com/v1", "gpt-3.5-turbo"),
}

PLACEHOLDER_KEY = "your-api-key-here"

SYSTEM_PROMPT = (
    "You are an AI assistant specialized in creating meaningful connections between people. "
    "You understand human psychology and communication patterns."
)

FALLBACK_QUESTIONS = {
    QuestionCategory.LIFESTYLE: "What does your ideal Sunday look like?",
    QuestionCategory.FOOD: "What's a dish you could eat every week without getting bored?",
    QuestionCategory.BOOKS: "What's the last book that changed how you see something?",
    QuestionCategory.GOALS: "What's something you're working towards this year?",
    QuestionCategory.DAILY: "What's something interesting that happened to you today?",
}

DEFAULT_SCORE = 50.0


def parse_compatibility(text: str) -> CompatibilityAnalysis:
    """Parse the ``SCORE:``/``REASON:``/``TOPICS:`` reply; score is returned in 0..1."""
    score = DEFAULT_SCORE
    reason = "Similar interests detected"
    topics: List[str] = []
    for line in text.splitlines():
        line = line.strip()
        if line.startswith("SCORE:"):
            raw = line[len("SCORE:"):].strip().rstrip("%")
            try:
                score = float(raw)
            except ValueError:
                score = DEFAULT_SCORE
        elif line.startswith("REASON:"):
            reason = line[len("REASON:"):].strip() or reason
        elif line.startswith("TOPICS:"):
            topics = [t.strip() for t in line[len("TOPICS:"):].split(",") if t.strip()]
    score = min(max(score, 0.0), 100.0) / 100.0
    return CompatibilityAnalysis(score=score, reason=reason, shared_topics=topics)


def fallback_insight(compatibility: float) -> str:
    if compatibility >= 0.8:
        return "You two seem to have a lot in common and similar perspectives!"
    if compatibility >= 0.6:
        return "You share some interesting commonalities worth exploring."
    return "You might have different perspectives that could lead to interesting conversations."


class UsageLimiter:

    def __init__(self, today: Callable[[], date] | None = None) -> None:
        self._today = today or (lambda: datetime.now(timezone.utc).date())
        self._counts: Dict[Tuple[str, str, date], int] = {}

    def used(self, user_id: str, kind: str) -> int:
        return self._counts.get((user_id, kind, self._today()), 0)

    def allow(self, user_id: str, kind: str, limit: int) -> bool:
        return self.used(user_id, kind) < limit

    def record(self, user_id: str, kind: str) -> None:
        key = (user_id, kind, self._today())
        self._counts[key] = self._counts.get(key, 0) + 1


class AIService:
    """Question generation, compatibility scoring and chat help from a hosted LLM."""

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None, limiter: UsageLimiter | None = None) -> None:
        self._settings = settings
        self.provider = settings.ai_provider if settings.ai_provider in PROVIDERS else "deepseek"
        base_url, self.model = PROVIDERS[self.provider]
        self.limiter = limiter or UsageLimiter()
        key = settings.ai_api_key
        self.configured = client is not None or bool(key and key != PLACEHOLDER_KEY)
        if client is not None:
            self._client = client
        elif self.configured:
            self._client = AsyncOpenAI(api_key=key, base_url=base_url)
        else:
            self._client = None

    async def generate_question(
        self,
        user_id: str,
        history: Sequence[str] = (),
        preferences: Sequence[str] = (),
        category: QuestionCategory | None = None,
    ) -> AIQuestion:
        if not self.limiter.allow(user_id, "questions", self._settings.ai_daily_question_limit):
            raise QuotaExceededError("You've answered all of today's questions. Come back tomorrow!")
        chosen = category or random.choice(list(QuestionCategory))
        text = FALLBACK_QUESTIONS[chosen]
        if self.configured:
            try:
                text = await self._complete(self._question_prompt(history, preferences, category), max_tokens=150)
            except IcebreakerError:
                logger.warning("Question generation failed, using the built-in question", exc_info=True)
        self.limiter.record(user_id, "questions")
        return AIQuestion(id=str(uuid.uuid4()), text=text, category=chosen, created_at=datetime.now(timezone.utc))

    async def analyze_compatibility(self, user_id: str, question: str, answer: str, other_answer: str) -> CompatibilityAnalysis:
        if not self.configured:
            raise AIServiceError("AI provider is not configured")
        if not self.limiter.allow(user_id, "analyses", self._settings.ai_match_analysis_limit):
            raise QuotaExceededError("Daily match analysis limit reached")
        self.limiter.record(user_id, "analyses")
        prompt = (
            f'Analyze the compatibility between these two answers to the question: "{question}"\n\n'
            f'Person 1: "{answer}"\n'
            f'Person 2: "{other_answer}"\n\n'
            "Provide a response in this exact format:\n"
            "SCORE: [0-100]\n"
            "REASON: [brief explanation of why they're compatible or different]\n"
            "TOPICS: [shared interests or themes, separated by commas]"
        )
        return parse_compatibility(await self._complete(prompt, max_tokens=300))

    async def conversation_starter(self, shared_answers: Sequence[SharedAnswer], user_name: str, match_name: str) -> str:
        topics = "\n\n".join(
            f"Q: {a.question_text}\n{user_name}: {a.user_answer}\n{match_name}: {a.match_answer}" for a in shared_answers
        )
        prompt = (
            f"Create a natural, engaging conversation starter based on these shared interests:\n\n{topics}\n\n"
            f"Write from {user_name}'s perspective to {match_name}, reference a specific shared interest, "
            "ask a follow-up question, maximum 2 sentences. Return only the conversation starter text."
        )
        return await self._complete(prompt, max_tokens=200)

    async def match_insight(self, compatibility: float, shared_answers: Sequence[SharedAnswer], user_name: str, match_name: str) -> str:
        topics = ", ".join(a.question_text for a in list(shared_answers)[:3])
        prompt = (
            f"Generate a brief insight about why {user_name} and {match_name} are compatible "
            f"({int(compatibility * 100)}% match).\n\nTheir shared topics include: {topics}\n\n"
            "One positive sentence about personality traits or values. Return only the insight text."
        )
        return await self._complete(prompt, max_tokens=150)

    async def suggest_replies(self, last_message: str, count: int = 3) -> List[str]:
        prompt = (
            f'Suggest {count} short, friendly replies to this chat message: "{last_message}"\n'
            "Return one reply per line, without numbering."
        )
        text = await self._complete(prompt, max_tokens=150)
        replies = [line.strip().lstrip("-*• ").strip() for line in text.splitlines()]
        return [r for r in replies if r][:count]

    def _question_prompt(self, history: Sequence[str], preferences: Sequence[str], category: QuestionCategory | None) -> str:
        prompt = (
            "Generate a thoughtful, engaging question for a dating app that helps people connect authentically.\n\n"
            "Requirements:\n"
            "- Ask about genuine experiences, thoughts, or preferences\n"
            "- Keep it under 100 characters\n"
            "- Avoid yes/no questions"
        )
        if category is not None:
            prompt += f"\n- Focus on the {category.display_name.lower()} category"
        if history:
            prompt += f"\n\nUser's recent answers to consider: {', '.join(list(history)[-3:])}"
        if preferences:
            prompt += f"\n\nUser interests: {', '.join(preferences)}"
        return prompt + "\n\nReturn only the question text, no additional formatting or explanation."

    async def _complete(self, prompt: str, max_tokens: int = 500) -> str:
        if self._client is None:
            raise AIServiceError("AI provider is not configured")
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.7,
                max_tokens=max_tokens,
            )
        except openai.AuthenticationError as exc:
            raise AuthError("Invalid AI API key") from exc
        except openai.RateLimitError as exc:
            raise QuotaExceededError("AI quota exceeded. Try again later.") from exc
        except openai.APIConnectionError as exc:
            raise NetworkError("Could not reach the AI service") from exc
        except openai.APIStatusError as exc:
            if exc.status_code == 402 or "Insufficient Balance" in str(exc.message):
                raise QuotaExceededError("Insufficient balance for AI requests") from exc
            raise AIServiceError(f"AI service error: {exc.message}") from exc
        if not response.choices or not response.choices[0].message.content:
            raise AIServiceError("No response from AI service")
        return response.choices[0].message.content.strip()


_ai_service: AIService | None = None


def get_ai_service() -> AIService:
    global _ai_service
    if _ai_service is None:
        _ai_service = AIService(get_settings())
    return _ai_service
