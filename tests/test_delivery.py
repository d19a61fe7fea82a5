import unittest

from icebreaker.schemas.chat import DeliveryStatus as S
from icebreaker.services.delivery import can_transition, sources_for


class DeliveryTransitionTests(unittest.TestCase):
    def test_forward_moves_are_allowed(self):
        self.assertTrue(can_transition(S.SENDING, S.SENT))
        self.assertTrue(can_transition(S.SENT, S.DELIVERED))
        self.assertTrue(can_transition(S.DELIVERED, S.READ))
        # a read receipt may arrive before the delivered one
        self.assertTrue(can_transition(S.SENT, S.READ))

    def test_never_moves_backwards(self):
        self.assertFalse(can_transition(S.DELIVERED, S.SENT))
        self.assertFalse(can_transition(S.SENT, S.SENDING))
        self.assertFalse(can_transition(S.SENT, S.SENT))

    def test_terminal_states(self):
        for target in S:
            self.assertFalse(can_transition(S.READ, target))
            self.assertFalse(can_transition(S.FAILED, target))

    def test_failed_from_any_open_state(self):
        for current in (S.SENDING, S.SENT, S.DELIVERED):
            self.assertTrue(can_transition(current, S.FAILED))

    def test_accepts_raw_values(self):
        self.assertTrue(can_transition("sent", "delivered"))

    def test_sources_for(self):
        self.assertEqual(sources_for(S.SENT), ["sending"])
        self.assertEqual(sources_for(S.DELIVERED), ["sending", "sent"])
        self.assertEqual(sources_for(S.READ), ["sending", "sent", "delivered"])
        self.assertEqual(sources_for(S.FAILED), ["sending", "sent", "delivered"])
