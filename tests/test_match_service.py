import unittest

from icebreaker.config import Settings
from icebreaker.errors import PermissionDeniedError
from icebreaker.repositories.interaction_repository import InteractionRepository
from icebreaker.repositories.user_repository import UserRepository
from icebreaker.schemas.interaction import ConnectionStatus
from icebreaker.schemas.match import MatchLevel
from icebreaker.services.ai_service import AIService
from icebreaker.services.match_service import MatchService, word_similarity
from tests.support import FakeLLM, create_user, make_db


def answer(text, question_id="q1"):
    return {"id": f"a-{question_id}", "question_id": question_id, "question_text": "What does your ideal Sunday look like?", "answer": text}


class WordSimilarityTests(unittest.TestCase):
    def test_jaccard(self):
        self.assertEqual(word_similarity("Hiking in the hills", "hiking in the HILLS"), 1.0)
        self.assertAlmostEqual(word_similarity("a b", "b c"), 1 / 3)
        self.assertEqual(word_similarity("", ""), 0.0)


class MatchServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.db = make_db()
        self.settings = Settings()
        self.interactions = InteractionRepository(self.db)
        self.alice = await create_user(self.db, "Alice", 52.52, 13.40, [answer("I love hiking in the mountains")])
        self.bob = await create_user(self.db, "Bob", 52.53, 13.41, [answer("I love hiking in the mountains too")])
        self.carol = await create_user(self.db, "Carol", 52.50, 13.37, [answer("Pizza and a movie")])
        # far away but a perfect answer
        self.dave = await create_user(self.db, "Dave", 48.14, 11.58, [answer("I love hiking in the mountains")])

    def make(self, ai=None):
        ai = ai or AIService(self.settings)
        return MatchService(UserRepository(self.db), self.interactions, ai, self.settings)

    async def current(self, user_id):
        return await UserRepository(self.db).get_user_by_id(user_id)

    async def test_requires_location(self):
        nowhere = await create_user(self.db, "Eve")
        with self.assertRaises(PermissionDeniedError):
            await self.make().find_matches(await self.current(nowhere))

    async def test_nearby_users_sorted_by_distance(self):
        nearby = await self.make().find_nearby_users(await self.current(self.alice))
        self.assertEqual([u["_id"] for u, _ in nearby], [self.bob, self.carol])
        self.assertLess(nearby[0][1], 2.0)

    async def test_word_similarity_matches(self):
        matches = await self.make().find_matches(await self.current(self.alice))
        self.assertEqual([m.user.id for m in matches], [self.bob])
        match = matches[0]
        self.assertAlmostEqual(match.compatibility_score, 6 / 7)
        self.assertEqual(match.match_level, MatchLevel.GREAT)
        self.assertEqual(match.connection_status, ConnectionStatus.NO_INTERACTION)
        self.assertEqual(len(match.shared_answers), 1)
        self.assertIn("What does your ideal Sunday look like?", match.conversation_starter)

    async def test_passed_and_blocking_users_are_excluded(self):
        await self.interactions.record(self.alice, self.bob, "pass")
        self.assertEqual(await self.make().find_matches(await self.current(self.alice)), [])

        await self.interactions.record(self.alice, self.bob, "wave")
        matches = await self.make().find_matches(await self.current(self.alice))
        self.assertEqual(matches[0].connection_status, ConnectionStatus.WAVE_SENT)

        await self.interactions.record(self.bob, self.alice, "block")
        self.assertEqual(await self.make().find_matches(await self.current(self.alice)), [])

    async def test_hidden_users_are_excluded(self):
        await UserRepository(self.db).update_fields(self.bob, {"is_visible": False})
        self.assertEqual(await self.make().find_matches(await self.current(self.alice)), [])

    async def test_ai_scores_are_used_when_configured(self):
        llm = FakeLLM(["SCORE: 95\nREASON: same\nTOPICS: hiking", "SCORE: 70", "Great fit.", "Want to hike Sunday?"])
        matches = await self.make(AIService(self.settings, client=llm)).find_matches(await self.current(self.alice))
        self.assertEqual([m.user.id for m in matches], [self.bob, self.carol])
        self.assertAlmostEqual(matches[0].compatibility_score, 0.95)
        self.assertEqual(matches[0].match_level, MatchLevel.EXCELLENT)
