import unittest
from datetime import datetime, timezone

from bson import ObjectId

from icebreaker.errors import AuthError
from icebreaker.utils.cursors import before_cursor, decode_cursor, encode_cursor, object_id, to_ms
from icebreaker.utils.geo import haversine_km
from icebreaker.utils.security import create_access_token, decode_access_token, hash_password, verify_password


class CursorTests(unittest.TestCase):
    def test_naive_datetimes_are_utc(self):
        naive = datetime(2024, 1, 1, 12, 0, 0)
        aware = naive.replace(tzinfo=timezone.utc)
        self.assertEqual(to_ms(naive), to_ms(aware))

    def test_encode_decode(self):
        oid = str(ObjectId())
        ts, parsed = decode_cursor(encode_cursor(datetime(2024, 1, 1, tzinfo=timezone.utc), oid))
        self.assertEqual(ts, datetime(2024, 1, 1, tzinfo=timezone.utc))
        self.assertEqual(str(parsed), oid)

    def test_malformed_cursor_is_ignored(self):
        self.assertIsNone(decode_cursor("garbage"))
        self.assertEqual(before_cursor("timestamp", "nope:nope"), {})
        self.assertEqual(before_cursor("timestamp", None), {})

    def test_object_id(self):
        self.assertIsNone(object_id("not-an-id"))
        self.assertIsInstance(object_id("507f1f77bcf86cd799439011"), ObjectId)


class GeoTests(unittest.TestCase):
    def test_haversine(self):
        # Berlin to Munich is roughly 504 km
        self.assertAlmostEqual(haversine_km(52.52, 13.405, 48.137, 11.575), 504, delta=5)
        self.assertEqual(haversine_km(1.0, 1.0, 1.0, 1.0), 0.0)


class SecurityTests(unittest.TestCase):
    def test_password_hashing(self):
        hashed = hash_password("secret123")
        self.assertTrue(verify_password("secret123", hashed))
        self.assertFalse(verify_password("secret124", hashed))
        self.assertFalse(verify_password("secret123", ""))

    def test_token_round_trip(self):
        token = create_access_token("user-1")
        self.assertEqual(decode_access_token(token)["sub"], "user-1")

    def test_expired_and_invalid_tokens(self):
        with self.assertRaises(AuthError):
            decode_access_token(create_access_token("user-1", expires_minutes=-1))
        with self.assertRaises(AuthError):
            decode_access_token("not.a.token")
