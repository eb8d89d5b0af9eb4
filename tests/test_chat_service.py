"""ChatService 单元测试。"""

import pytest

from mindbridge.services.chat_service import ChatService, ChatServiceError


class TestSend:
    """测试 ChatService.send() 方法。"""

    def test_send_requires_accepted_request(self, store):
        """测试没有 accepted 请求时发送消息返回 403。"""
        with pytest.raises(ChatServiceError) as exc:
            ChatService(store).send("seeker", "giver", "Hi there")
        assert exc.value.status == 403
        assert store.chats == {}

    def test_pending_request_is_not_enough(self, store):
        store.insert_support_request({
            "sender_id": "seeker", "receiver_id": "giver", "message": "hi", "status": "pending",
        })
        with pytest.raises(ChatServiceError):
            ChatService(store).send("seeker", "giver", "Hi there")

    def test_send_after_accept(self, connected_store):
        chat = ChatService(connected_store).send("giver", "seeker", "Welcome!", is_anonymous=True)

        assert chat["sender"] == "you"
        assert chat["message"] == "Welcome!"
        assert chat["isAnonymous"] is True
        assert chat["isRead"] is False
        assert chat["receiverId"] == "seeker"

    def test_missing_fields(self, connected_store):
        with pytest.raises(ChatServiceError) as exc:
            ChatService(connected_store).send("giver", "seeker", "")
        assert exc.value.status == 400


class TestGetThread:
    """测试 ChatService.get_thread() 方法。"""

    def test_thread_oldest_first_with_peer(self, connected_store):
        service = ChatService(connected_store)
        service.send("seeker", "giver", "first")
        service.send("giver", "seeker", "second")

        thread = service.get_thread("seeker", "giver")

        assert [m["message"] for m in thread["messages"]] == ["first", "second"]
        assert [m["sender"] for m in thread["messages"]] == ["you", "Jordan Lee"]
        assert thread["peer"]["name"] == "Jordan Lee"

    def test_marks_incoming_messages_read(self, connected_store):
        """测试读取会话时把发给自己的消息标记为已读。"""
        service = ChatService(connected_store)
        service.send("giver", "seeker", "to seeker")
        service.send("seeker", "giver", "to giver")

        service.get_thread("seeker", "giver")

        read = {row["message"]: row["is_read"] for row in connected_store.chats.values()}
        assert read == {"to seeker": True, "to giver": False}

    def test_missing_peer_profile_is_null(self, connected_store):
        del connected_store.profiles["giver"]
        thread = ChatService(connected_store).get_thread("seeker", "giver")
        assert thread["peer"] is None
        assert thread["messages"] == []

    def test_peer_id_required(self, store):
        with pytest.raises(ChatServiceError):
            ChatService(store).get_thread("seeker", None)

    def test_malformed_peer_id_rejected(self, connected_store):
        with pytest.raises(ChatServiceError, match="Invalid peer ID"):
            ChatService(connected_store).get_thread("seeker", "giver),or(receiver_id.eq.seeker")


class TestDeleteThread:
    """测试 ChatService.delete_thread() 方法。"""

    def test_delete_completes_accepted_request(self, connected_store):
        """测试删除会话后 accepted 请求变为 completed。"""
        service = ChatService(connected_store)
        service.send("seeker", "giver", "thanks for everything")

        result = service.delete_thread("giver", "seeker")

        assert result == {"deleted": 1, "completed": 1}
        assert connected_store.chats == {}
        statuses = [row["status"] for row in connected_store.support_requests.values()]
        assert statuses == ["completed"]

    def test_delete_then_new_request_allowed(self, connected_store):
        """测试会话结束后可以再次发起请求。"""
        from mindbridge.services.request_service import SupportRequestService

        ChatService(connected_store).delete_thread("seeker", "giver")
        again = SupportRequestService(connected_store).create("seeker", "giver", "Hi again")
        assert again["status"] == "pending"

    def test_delete_empty_thread(self, store):
        assert ChatService(store).delete_thread("seeker", "giver") == {"deleted": 0, "completed": 0}

    def test_peer_id_required(self, store):
        with pytest.raises(ChatServiceError):
            ChatService(store).delete_thread("seeker", "")

    def test_malformed_peer_id_leaves_other_threads(self, connected_store):
        """测试构造的 peer_id 不能扩大删除范围。"""
        connected_store.insert_chat_message({"sender_id": "seeker", "receiver_id": "giver", "message": "keep"})

        with pytest.raises(ChatServiceError) as exc:
            ChatService(connected_store).delete_thread("seeker", "giver,sender_id.eq.seeker")

        assert exc.value.status == 400
        assert len(connected_store.chats) == 1
        assert connected_store.support_requests["req-1"]["status"] == "accepted"
