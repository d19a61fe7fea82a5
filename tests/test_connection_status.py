import unittest

from icebreaker.schemas.interaction import ConnectionStatus
from icebreaker.services.connection_status import allows_interaction, resolve_connection_status


class ConnectionStatusTests(unittest.TestCase):
    def test_no_interaction_when_nothing_recorded(self):
        self.assertEqual(resolve_connection_status(None), ConnectionStatus.NO_INTERACTION)
        self.assertTrue(allows_interaction(None))

    def test_every_type_maps_to_a_status(self):
        expected = {
            "wave": ConnectionStatus.WAVE_SENT,
            "wave_received": ConnectionStatus.WAVE_RECEIVED,
            "intro_sent": ConnectionStatus.INTRO_SENT,
            "intro_received": ConnectionStatus.INTRO_RECEIVED,
            "conversation": ConnectionStatus.CONNECTED,
            "pass": ConnectionStatus.PASSED,
            "block": ConnectionStatus.BLOCKED,
        }
        for interaction_type, status in expected.items():
            self.assertEqual(resolve_connection_status(interaction_type), status)

    def test_pass_and_block_close_the_pair(self):
        self.assertFalse(allows_interaction("pass"))
        self.assertFalse(allows_interaction("block"))
        for open_type in ("wave", "wave_received", "intro_sent", "intro_received", "conversation"):
            self.assertTrue(allows_interaction(open_type))

    def test_unknown_type_is_rejected(self):
        with self.assertRaises(ValueError):
            resolve_connection_status("poke")
