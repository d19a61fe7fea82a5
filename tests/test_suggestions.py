import unittest

from icebreaker.services.suggestions import DEFAULT_REPLIES, GREETINGS, contextual_replies


class ContextualRepliesTests(unittest.TestCase):
    def test_greetings_for_empty_conversation(self):
        self.assertEqual(contextual_replies(None), GREETINGS)
        self.assertEqual(contextual_replies(""), GREETINGS)

    def test_keyword_topics(self):
        self.assertIn("What genre do you usually enjoy?", contextual_replies("Just finished a great BOOK"))
        self.assertIn("Where's your dream destination?", contextual_replies("planning a trip"))
        self.assertIn("Do you play any instruments?", contextual_replies("this song is stuck in my head"))

    def test_default_replies(self):
        self.assertEqual(contextual_replies("the weather is nice"), DEFAULT_REPLIES)

    def test_returns_a_copy(self):
        contextual_replies(None).append("x")
        self.assertNotIn("x", GREETINGS)
