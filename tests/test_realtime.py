import json
import unittest

from icebreaker.repositories.conversation_repository import ConversationRepository
from icebreaker.repositories.device_repository import DeviceRepository
from icebreaker.repositories.interaction_repository import InteractionRepository
from icebreaker.repositories.message_repository import MessageRepository
from icebreaker.routers import conversations as conversations_router
from icebreaker.routers.chat import _handle_event, deliver, mark_read, replay_missed
from icebreaker.schemas.chat import MarkReadRequest
from icebreaker.services.chat_service import ChatService
from icebreaker.services.typing_tracker import TypingTracker
from icebreaker.utils.websocket_manager import ConnectionManager, manager
from tests.support import make_db


class FakeSocket:
    def __init__(self):
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        self.sent.append(json.loads(text))


class ConnectionManagerTests(unittest.IsolatedAsyncioTestCase):
    async def test_fans_out_to_every_socket(self):
        mgr = ConnectionManager()
        first, second = FakeSocket(), FakeSocket()
        await mgr.connect("bob", first)
        await mgr.connect("bob", second)
        self.assertTrue(first.accepted)
        self.assertTrue(await mgr.send_event("bob", {"type": "ping"}))
        self.assertEqual(first.sent, [{"type": "ping"}])
        self.assertEqual(second.sent, [{"type": "ping"}])

        mgr.disconnect("bob", first)
        mgr.disconnect("bob", second)
        mgr.disconnect("bob", second)
        self.assertFalse(mgr.is_connected("bob"))
        self.assertFalse(await mgr.send_event("bob", {"type": "ping"}))


class DeliverTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        db = make_db()
        interactions = InteractionRepository(db)
        await interactions.record("alice", "bob", "conversation")
        await interactions.record("bob", "alice", "conversation")
        self.typing = TypingTracker()
        self.service = ChatService(MessageRepository(db), ConversationRepository(db), interactions, self.typing)
        self.devices = DeviceRepository(db)

    async def asyncTearDown(self):
        self.typing.close()

    async def test_online_receiver_gets_delivered(self):
        socket = FakeSocket()
        await manager.connect("bob", socket)
        try:
            stored = await self.service.send_message("alice", "bob", "ping")
            delivered = await deliver(self.service, self.devices, stored)
        finally:
            manager.disconnect("bob", socket)
        self.assertEqual(delivered["delivery_status"], "delivered")
        self.assertEqual(socket.sent[0]["type"], "message")
        self.assertEqual(socket.sent[0]["message"]["content"], "ping")
        # delivered but not yet read
        self.assertEqual(await self.service.total_unread("bob"), 1)

    async def test_offline_receiver_stays_sent(self):
        stored = await self.service.send_message("alice", "bob", "ping")
        result = await deliver(self.service, self.devices, stored)
        self.assertEqual(result["delivery_status"], "sent")


class ReceiptFanoutTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.db = make_db()
        interactions = InteractionRepository(self.db)
        await interactions.record("alice", "bob", "conversation")
        await interactions.record("bob", "alice", "conversation")
        self.typing = TypingTracker()
        self.service = ChatService(MessageRepository(self.db), ConversationRepository(self.db), interactions, self.typing)
        self.devices = DeviceRepository(self.db)
        self.first = await self.service.send_message("alice", "bob", "one")
        self.second = await self.service.send_message("alice", "bob", "two")
        self.conversation_id = self.first["conversation_id"]
        self.alice_socket = FakeSocket()
        await manager.connect("alice", self.alice_socket)

    async def asyncTearDown(self):
        manager.disconnect("alice", self.alice_socket)
        self.typing.close()

    def status_events(self):
        return [(e["message_id"], e["delivery_status"]) for e in self.alice_socket.sent if e["type"] == "status"]

    async def test_read_all_tells_the_sender(self):
        bob_socket = FakeSocket()
        await _handle_event(bob_socket, "bob", {"type": "read_all", "conversation_id": self.conversation_id}, self.service, self.devices)
        self.assertEqual(bob_socket.sent, [{"type": "read_all", "conversation_id": self.conversation_id, "updated": 2}])
        self.assertEqual(self.status_events(), [(self.first["_id"], "read"), (self.second["_id"], "read")])

    async def test_mark_read_endpoints_tell_the_sender(self):
        result = await mark_read(MarkReadRequest(conversation_id=self.conversation_id), {"_id": "bob"}, self.service)
        self.assertEqual(result, {"updated": 2})
        self.assertEqual(self.status_events(), [(self.first["_id"], "read"), (self.second["_id"], "read")])

        third = await self.service.send_message("alice", "bob", "three")
        result = await conversations_router.mark_read(self.conversation_id, {"_id": "bob"}, self.service)
        self.assertEqual(result, {"updated": 1, "unread_count": 0})
        self.assertEqual(self.status_events()[-1], (third["_id"], "read"))

    async def test_resume_delivers_missed_messages(self):
        bob_socket = FakeSocket()
        delivered = await replay_missed(bob_socket, "bob", self.service, 0)
        self.assertEqual([e["message"]["content"] for e in bob_socket.sent], ["one", "two"])
        self.assertEqual([d["_id"] for d in delivered], [self.first["_id"], self.second["_id"]])
        self.assertEqual(self.status_events(), [(self.first["_id"], "delivered"), (self.second["_id"], "delivered")])
        stored = await MessageRepository(self.db).get(self.second["_id"])
        self.assertEqual(stored["delivery_status"], "delivered")
        # delivered messages stay unread until bob reads them
        self.assertEqual(await self.service.total_unread("bob"), 2)

    async def test_resume_skips_messages_before_the_cursor(self):
        bob_socket = FakeSocket()
        delivered = await replay_missed(bob_socket, "bob", self.service, 4102444800000)
        self.assertEqual(bob_socket.sent, [])
        self.assertEqual(delivered, [])
        self.assertEqual(self.status_events(), [])
