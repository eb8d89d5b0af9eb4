"""MindBridgeClient、EntityCache 和命令行测试（不访问网络）。"""

from unittest.mock import MagicMock

import pytest
import requests

from mindbridge import cli
from mindbridge.client import (
    CHAT,
    ENTRIES,
    PEERS,
    PROFILE,
    REQUESTS,
    APIError,
    EntityCache,
    MindBridgeClient,
)


def _response(status=200, body=None):
    response = MagicMock()
    response.status_code = status
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    session = MagicMock()
    session.headers = {}
    return session


@pytest.fixture
def api(session) -> MindBridgeClient:
    return MindBridgeClient("http://api.test/", access_token="tok", session=session)


class TestEntityCache:
    """测试 EntityCache。"""

    def test_put_and_get(self):
        cache = EntityCache()
        cache.put(PROFILE, "u1", {"name": "Maya"})
        assert cache.get(PROFILE, "u1") == {"name": "Maya"}
        assert (PROFILE, "u1") in cache

    def test_invalidate_single_key(self):
        cache = EntityCache()
        cache.put(CHAT, "a", [1])
        cache.put(CHAT, "b", [2])
        cache.invalidate(CHAT, "a")
        assert cache.get(CHAT, "a") is None
        assert cache.get(CHAT, "b") == [2]

    def test_invalidate_whole_kind(self):
        """测试不带 key 时清除该类型的所有条目。"""
        cache = EntityCache()
        cache.put(REQUESTS, "all:", [])
        cache.put(REQUESTS, "sent:pending", [])
        cache.put(PEERS, "{}", [])
        cache.invalidate(REQUESTS)
        assert len(cache) == 1

    def test_clear(self):
        cache = EntityCache()
        cache.put(PEERS, "{}", [])
        cache.clear()
        assert len(cache) == 0


class TestClientCalls:
    """测试请求构造和错误处理。"""

    def test_bearer_header(self, session, api):
        assert session.headers["Authorization"] == "Bearer tok"

    def test_error_body_becomes_api_error(self, session, api):
        session.request.return_value = _response(403, {"error": "You can only cancel requests you sent"})
        with pytest.raises(APIError) as exc:
            api.cancel_request("r1")
        assert exc.value.status == 403
        assert str(exc.value) == "You can only cancel requests you sent"

    def test_error_without_json(self, session, api):
        session.request.return_value = _response(502)
        with pytest.raises(APIError, match="HTTP 502"):
            api.list_requests()

    def test_network_error(self, session, api):
        session.request.side_effect = requests.ConnectionError("offline")
        with pytest.raises(APIError, match="offline"):
            api.ask_companion([{"role": "user", "content": "hi"}])

    def test_list_peers_params(self, session, api):
        session.request.return_value = _response(body={"peers": []})
        api.list_peers(support_type="give", support_preferences=["Grief"], active_only=False)

        args, kwargs = session.request.call_args
        assert args == ("GET", "http://api.test/api/peer-support")
        assert kwargs["params"] == {
            "supportType": "give",
            "supportPreferences": '["Grief"]',
            "activeOnly": "false",
        }


class TestClientCache:
    """测试客户端缓存的失效规则。"""

    def test_profile_falls_back_to_cache(self, session, api):
        """测试获取失败时返回缓存的 profile。"""
        session.request.return_value = _response(body={"id": "u1", "name": "Maya"})
        api.get_profile()

        session.request.side_effect = requests.ConnectionError("offline")
        assert api.get_profile() == {"id": "u1", "name": "Maya"}

    def test_profile_error_without_cache_raises(self, session, api):
        session.request.return_value = _response(401, {"error": "Authentication required"})
        with pytest.raises(APIError):
            api.get_profile()

    def test_save_profile_invalidates_peers(self, session, api):
        session.request.return_value = _response(body={"peers": [{"id": "p1"}]})
        api.list_peers()
        session.request.return_value = _response(body={"id": "u1"})
        api.save_profile({"location": "Boston"})

        assert not any(kind in (PROFILE, PEERS) for kind, _ in api.cache._entries)

    def test_send_request_invalidates_requests(self, session, api):
        session.request.return_value = _response(body={"requests": []})
        api.list_requests("sent")
        assert (REQUESTS, "sent:") in api.cache

        session.request.return_value = _response(body={"request": {"id": "r1"}})
        assert api.send_request("giver", "Hi")["id"] == "r1"
        assert (REQUESTS, "sent:") not in api.cache

    def test_send_message_invalidates_thread(self, session, api):
        session.request.return_value = _response(body={"messages": [], "peer": None})
        api.get_chat("giver")
        api.get_chat("other")

        session.request.return_value = _response(body={"chat": {"id": "m1"}})
        api.send_message("giver", "Thanks")

        assert (CHAT, "giver") not in api.cache
        assert (CHAT, "other") in api.cache

    def test_create_entry_invalidates_entries(self, session, api):
        session.request.return_value = _response(body=[])
        api.list_entries("journal")
        session.request.return_value = _response(201, {"id": "e1", "type": "journal"})
        api.create_entry({"type": "journal", "content": "x"})
        assert (ENTRIES, "journal") not in api.cache

    def test_login_clears_cache(self, session, api):
        api.cache.put(PEERS, "{}", [])
        session.request.return_value = _response(body={"success": True, "user": {"id": "u1"}})
        api.login("m@example.com", "pw")
        assert len(api.cache) == 0
        assert api.user_id == "u1"

    @pytest.mark.parametrize("fetch,result", [
        (lambda c: c.list_peers(sort_by="rating"), {"peers": [{"id": "giver"}]}),
        (lambda c: c.list_requests("received"), {"requests": [{"id": "r1"}]}),
        (lambda c: c.get_chat("giver"), {"messages": [{"id": "m1"}], "peer": None}),
        (lambda c: c.list_entries("gratitude"), [{"id": "e1"}]),
    ])
    def test_reads_fall_back_when_offline(self, session, api, fetch, result):
        """测试各类读取在离线时返回上次缓存的结果。"""
        session.request.return_value = _response(body=result)
        first = fetch(api)

        session.request.side_effect = requests.ConnectionError("offline")
        assert fetch(api) == first

    def test_server_error_uses_cache(self, session, api):
        session.request.return_value = _response(body=[{"id": "e1"}])
        api.list_entries()
        session.request.return_value = _response(503, {"error": "unavailable"})
        assert api.list_entries() == [{"id": "e1"}]

    def test_client_error_is_not_masked_by_cache(self, session, api):
        """测试 4xx 错误不回退到缓存。"""
        session.request.return_value = _response(body=[{"id": "e1"}])
        api.list_entries("journal")
        session.request.return_value = _response(401, {"error": "Authentication required"})
        with pytest.raises(APIError) as exc:
            api.list_entries("journal")
        assert exc.value.status == 401

    def test_fresh_fetch_replaces_cached_copy(self, session, api):
        session.request.return_value = _response(body={"requests": [{"id": "r1"}]})
        api.list_requests()
        session.request.return_value = _response(body={"requests": []})
        assert api.list_requests() == []
        assert api.cache.get(REQUESTS, "all:") == {"requests": []}

    def test_offline_after_invalidation_raises(self, session, api):
        session.request.return_value = _response(body={"messages": [], "peer": None})
        api.get_chat("giver")
        session.request.return_value = _response(body={"chat": {"id": "m1"}})
        api.send_message("giver", "Thanks")

        session.request.side_effect = requests.ConnectionError("offline")
        with pytest.raises(APIError):
            api.get_chat("giver")


class TestCli:
    """测试命令行入口。"""

    def test_parse_peers(self):
        args = cli.parse_args(["--token", "t", "peers", "--preference", "Grief", "--preference", "Stress"])
        assert args.command == "peers"
        assert args.preferences == ["Grief", "Stress"]
        assert args.sort_by == "match"

    def test_missing_token(self, monkeypatch):
        monkeypatch.delenv("MINDBRIDGE_TOKEN", raising=False)
        with pytest.raises(SystemExit):
            cli.main(["streak"])

    def test_streak_output(self, monkeypatch, capsys):
        fake = MagicMock()
        fake.record_streak.return_value = {"data": {"mindfulness": 3}, "streakIncremented": False}
        monkeypatch.setattr(cli, "MindBridgeClient", MagicMock(return_value=fake))

        cli.main(["--token", "t", "streak"])

        assert "3 day streak (already counted today)" in capsys.readouterr().out

    def test_api_error_exits(self, monkeypatch):
        fake = MagicMock()
        fake.ask_companion.side_effect = APIError("Invalid message format", status=400)
        monkeypatch.setattr(cli, "MindBridgeClient", MagicMock(return_value=fake))

        with pytest.raises(SystemExit, match="Invalid message format"):
            cli.main(["--token", "t", "ask", "hello"])

    def test_journal_listing_without_timestamp(self, monkeypatch, capsys):
        fake = MagicMock()
        fake.list_entries.return_value = [{"created_at": None, "mood": "😌", "content": "Quiet morning"}]
        monkeypatch.setattr(cli, "MindBridgeClient", MagicMock(return_value=fake))

        cli.main(["--token", "t", "journal"])

        assert "Quiet morning" in capsys.readouterr().out
