import unittest

from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketDisconnect

from icebreaker.database.connection import mongo_db_dependency
from icebreaker.main import app
from icebreaker.routers.deps import typing_tracker
from tests.support import make_db


class ChatSocketTests(unittest.TestCase):
    """The chat socket, one connected client at a time.

    Every socket session runs on its own event loop, so messages for the
    connected user are created before the socket opens.
    """

    def setUp(self):
        self.db = make_db()

        async def override_db():
            return self.db

        app.dependency_overrides[mongo_db_dependency] = override_db
        self.client = TestClient(app)
        self.alice, self.alice_token = self.signup("Alice")
        self.bob, self.bob_token = self.signup("Bob")
        resp = self.client.post(f"/interactions/{self.bob}/wave", headers=self.auth(self.alice_token))
        self.assertEqual(resp.status_code, 200, resp.text)
        resp = self.client.post(f"/interactions/{self.alice}/wave/accept", headers=self.auth(self.bob_token))
        self.assertEqual(resp.status_code, 200, resp.text)
        self.conversation_id = resp.json()["conversation"]["id"]

    def tearDown(self):
        app.dependency_overrides.clear()
        typing_tracker.close()

    def signup(self, name):
        email = f"{name.lower()}@icebreaker.dev"
        resp = self.client.post("/auth/register", json={"email": email, "password": "secret123", "first_name": name, "age": 29})
        self.assertEqual(resp.status_code, 201, resp.text)
        user_id = resp.json()["id"]
        resp = self.client.post("/auth/login", data={"username": email, "password": "secret123"})
        self.assertEqual(resp.status_code, 200, resp.text)
        return user_id, resp.json()["access_token"]

    @staticmethod
    def auth(token):
        return {"Authorization": f"Bearer {token}"}

    def socket(self, user_id, token, **params):
        query = "&".join(f"{k}={v}" for k, v in {"token": token, **params}.items())
        return self.client.websocket_connect(f"/messages/ws/chat/{user_id}?{query}")

    def bob_says(self, content):
        resp = self.client.post(f"/messages/send/{self.alice}", json={"content": content}, headers=self.auth(self.bob_token))
        self.assertEqual(resp.status_code, 200, resp.text)
        return resp.json()

    def history(self):
        resp = self.client.get(f"/conversations/{self.conversation_id}/messages", headers=self.auth(self.alice_token))
        return {m["content"]: m["delivery_status"] for m in resp.json()["items"]}

    def sync(self, ws):
        # events are handled in order, so the error reply means everything before it is done
        ws.send_json({"type": "nonsense"})
        self.assertEqual(ws.receive_json(), {"type": "error", "detail": "Invalid message payload"})

    def test_handshake_requires_matching_token(self):
        for path, code in (
            (f"/messages/ws/chat/{self.alice}", 4401),
            (f"/messages/ws/chat/{self.alice}?token=not-a-jwt", 4401),
            (f"/messages/ws/chat/{self.alice}?token={self.bob_token}", 4403),
        ):
            with self.assertRaises(WebSocketDisconnect) as ctx:
                with self.client.websocket_connect(path):
                    pass
            self.assertEqual(ctx.exception.code, code)

    def test_message_is_acknowledged(self):
        with self.socket(self.alice, self.alice_token) as ws:
            ws.send_json({"to": self.bob, "content": " hello bob ", "client_message_id": "c-1"})
            ack = ws.receive_json()
        self.assertEqual(ack["type"], "ack")
        self.assertEqual(ack["message"]["content"], "hello bob")
        self.assertEqual(ack["message"]["client_message_id"], "c-1")
        # bob is offline
        self.assertEqual(ack["message"]["delivery_status"], "sent")

    def test_bad_frames_get_error_events(self):
        with self.socket(self.alice, self.alice_token) as ws:
            ws.send_text("{not json")
            self.assertEqual(ws.receive_json(), {"type": "error", "detail": "Invalid JSON"})
            ws.send_json({"type": "message", "content": "no receiver"})
            self.assertEqual(ws.receive_json(), {"type": "error", "detail": "Invalid message payload"})
            ws.send_json({"type": "delivered"})
            self.assertEqual(ws.receive_json(), {"type": "error", "detail": "'message_id'"})
            ws.send_json({"to": "507f1f77bcf86cd799439011", "content": "hi stranger"})
            error = ws.receive_json()
        self.assertEqual(error["type"], "error")
        self.assertEqual(error["status_code"], 409)

    def test_resume_replays_and_delivers(self):
        first = self.bob_says("are you there?")
        self.bob_says("hello?")
        self.assertEqual(first["delivery_status"], "sent")
        with self.socket(self.alice, self.alice_token, resume_since=0) as ws:
            replayed = [ws.receive_json(), ws.receive_json()]
            self.sync(ws)
        self.assertEqual([e["type"] for e in replayed], ["message", "message"])
        self.assertEqual([e["message"]["content"] for e in replayed], ["are you there?", "hello?"])
        self.assertEqual(self.history(), {"are you there?": "delivered", "hello?": "delivered"})

    def test_receipts(self):
        first = self.bob_says("one")
        second = self.bob_says("two")
        self.bob_says("three")
        with self.socket(self.alice, self.alice_token) as ws:
            ws.send_json({"type": "delivered", "message_id": first["id"]})
            ws.send_json({"type": "seen", "message_id": second["id"]})
            self.sync(ws)
            self.assertEqual(self.history(), {"one": "delivered", "two": "read", "three": "sent"})

            ws.send_json({"type": "read_all", "conversation_id": self.conversation_id})
            self.assertEqual(ws.receive_json(), {"type": "read_all", "conversation_id": self.conversation_id, "updated": 2})
        self.assertEqual(self.history(), {"one": "read", "two": "read", "three": "read"})
        resp = self.client.get("/conversations/unread", headers=self.auth(self.alice_token))
        self.assertEqual(resp.json(), {"unread_count": 0})

    def test_sender_can_mark_failed(self):
        with self.socket(self.alice, self.alice_token) as ws:
            ws.send_json({"to": self.bob, "content": "lost in transit"})
            ack = ws.receive_json()
            ws.send_json({"type": "failed", "message_id": ack["message"]["id"]})
            event = ws.receive_json()
        self.assertEqual(event["type"], "status")
        self.assertEqual(event["message_id"], ack["message"]["id"])
        self.assertEqual(event["delivery_status"], "failed")
        resp = self.client.get("/conversations/unread", headers=self.auth(self.bob_token))
        self.assertEqual(resp.json(), {"unread_count": 0})

    def test_typing_and_stop(self):
        with self.socket(self.alice, self.alice_token) as ws:
            ws.send_json({"type": "typing", "conversation_id": self.conversation_id})
            self.sync(ws)
            self.assertEqual(typing_tracker.typing_users(self.conversation_id), [self.alice])
            resp = self.client.get("/conversations", headers=self.auth(self.bob_token))
            self.assertEqual(resp.json()["items"][0]["typing_users"], [self.alice])

            ws.send_json({"type": "typing_stop", "conversation_id": self.conversation_id})
            self.sync(ws)
            self.assertEqual(typing_tracker.typing_users(self.conversation_id), [])
