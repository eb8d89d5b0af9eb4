"""测试配置和共享 Fixtures。"""

import itertools
import threading
from datetime import datetime, timedelta, timezone

import pytest

from mindbridge.services.llm_service import LLMService, LLMServiceError
from mindbridge.services.supabase_store import AuthError, DuplicateActiveRequestError, StoreNotFoundError


# ============================================================================
# Mock Services
# ============================================================================

class MockLLMService:
    """测试用 Mock LLM 服务。

    可以通过设置 response 属性来控制返回值。
    可以通过设置 error 来模拟供应商报错。
    """

    def __init__(self):
        self.response = "That sounds really hard. What has helped you before?"
        self.configured = True
        self.error = None
        self.call_count = 0
        self.prompts = []

    def is_configured(self) -> bool:
        return self.configured

    def call(self, prompt: str) -> str:
        self.call_count += 1
        self.prompts.append(prompt)
        if self.error:
            raise LLMServiceError(self.error)
        return self.response

    def reset(self):
        """重置状态。"""
        self.call_count = 0
        self.prompts = []


ACTIVE_PAIR_STATUSES = ("pending", "accepted")
PARTY_COLUMNS = ("name", "avatar_url", "support_preferences", "location", "journey_note")


class InMemoryStore:
    """SupabaseStore 的内存实现。

    方法签名与 SupabaseStore 一致；同一对用户之间只允许一个
    pending/accepted 请求，与 schema.sql 中的唯一索引行为相同。
    """

    def __init__(self):
        self.users = {}
        self.passwords = {}
        self.tokens = {}
        self.profiles = {}
        self.support_requests = {}
        self.chats = {}
        self.entries = {}
        self.streaks = {}
        self._ids = itertools.count(1)
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    # -- helpers ---------------------------------------------------------

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def _tick(self) -> str:
        self._clock += timedelta(seconds=1)
        return self._clock.isoformat()

    def add_user(self, user_id: str, email: str = None, password: str = "secret", with_profile: bool = True, **profile):
        """注册用户并返回其 access token。"""
        email = email or f"{user_id}@example.com"
        self.users[user_id] = {"id": user_id, "email": email}
        self.passwords[email] = (password, user_id)
        token = f"token-{user_id}"
        self.tokens[token] = user_id
        if with_profile:
            self.profiles[user_id] = {"id": user_id, **profile}
        return token

    @staticmethod
    def _pair(a: str, b: str, row: dict) -> bool:
        return {row.get("sender_id"), row.get("receiver_id")} == {a, b}

    def _with_parties(self, row: dict) -> dict:
        full = dict(row)
        for key in ("sender", "receiver"):
            profile = self.profiles.get(row.get(f"{key}_id")) or {}
            full[key] = {column: profile.get(column) for column in PARTY_COLUMNS}
        return full

    # -- auth ------------------------------------------------------------

    def get_user(self, access_token: str) -> dict:
        user_id = self.tokens.get(access_token)
        if user_id is None:
            raise AuthError("Invalid token: invalid JWT", status=401)
        return self.users[user_id]

    def _session_for(self, user_id: str) -> dict:
        return {
            "access_token": f"token-{user_id}",
            "refresh_token": f"refresh-{user_id}",
            "user": self.users[user_id],
        }

    def sign_up(self, email: str, password: str) -> dict:
        if email in self.passwords:
            raise AuthError("User already registered", status=422)
        user_id = self._next_id("user")
        self.users[user_id] = {"id": user_id, "email": email}
        self.passwords[email] = (password, user_id)
        self.tokens[f"token-{user_id}"] = user_id
        return self._session_for(user_id)

    def sign_in(self, email: str, password: str) -> dict:
        stored = self.passwords.get(email)
        if stored is None or stored[0] != password:
            raise AuthError("Invalid login credentials", status=400)
        return self._session_for(stored[1])

    def exchange_code(self, code: str, code_verifier: str = None) -> dict:
        if not code.startswith("code-"):
            raise AuthError("invalid flow state", status=400)
        return self._session_for(code[len("code-"):])

    def sign_out(self, access_token: str) -> None:
        self.tokens.pop(access_token, None)

    # -- profiles --------------------------------------------------------

    def get_profile(self, user_id: str):
        row = self.profiles.get(user_id)
        return dict(row) if row else None

    def list_profiles(self, *, exclude_id=None, support_type=None):
        return [
            dict(row) for row in self.profiles.values()
            if row["id"] != exclude_id
            and (support_type is None or row.get("support_type") == support_type)
        ]

    def insert_profile(self, row: dict) -> dict:
        self.profiles[row["id"]] = dict(row)
        return dict(row)

    def update_profile(self, user_id: str, changes: dict):
        if user_id not in self.profiles:
            return None
        self.profiles[user_id].update(changes)
        return dict(self.profiles[user_id])

    def upsert_profile(self, row: dict) -> dict:
        self.profiles.setdefault(row["id"], {"id": row["id"]}).update(row)
        return dict(self.profiles[row["id"]])

    # -- support requests ------------------------------------------------

    def list_support_requests(self, user_id: str, *, direction="all", status=None):
        rows = []
        for row in self.support_requests.values():
            if direction == "sent" and row["sender_id"] != user_id:
                continue
            if direction == "received" and row["receiver_id"] != user_id:
                continue
            if direction == "all" and user_id not in (row["sender_id"], row["receiver_id"]):
                continue
            if status and row["status"] != status:
                continue
            rows.append(self._with_parties(row))
        return sorted(rows, key=lambda r: r["created_at"], reverse=True)

    def get_support_request(self, request_id: str):
        row = self.support_requests.get(request_id)
        return self._with_parties(row) if row else None

    def find_requests_between(self, a: str, b: str, statuses):
        return self._requests_between(a, b, statuses)

    def _requests_between(self, a: str, b: str, statuses):
        return [
            dict(row) for row in self.support_requests.values()
            if self._pair(a, b, row) and row["status"] in statuses
        ]

    def insert_support_request(self, row: dict) -> dict:
        with self._lock:
            if row.get("status", "pending") in ACTIVE_PAIR_STATUSES and self._requests_between(
                row["sender_id"], row["receiver_id"], ACTIVE_PAIR_STATUSES
            ):
                raise DuplicateActiveRequestError(
                    "duplicate key value violates unique constraint", code="23505", status=409
                )
            stored = {"id": self._next_id("req"), "created_at": self._tick(), **row}
            self.support_requests[stored["id"]] = stored
            return dict(stored)

    def update_support_request(self, request_id: str, changes: dict, *, expected_status: str = None) -> dict:
        row = self.support_requests.get(request_id)
        if row is None or (expected_status and row["status"] != expected_status):
            raise StoreNotFoundError("Support request not found", code="PGRST116")
        row.update(changes)
        return dict(row)

    # -- chats -----------------------------------------------------------

    def list_chat_messages(self, a: str, b: str):
        rows = [dict(row) for row in self.chats.values() if self._pair(a, b, row)]
        return sorted(rows, key=lambda r: r["created_at"])

    def mark_messages_read(self, message_ids):
        for message_id in message_ids:
            self.chats[message_id]["is_read"] = True

    def insert_chat_message(self, row: dict) -> dict:
        stored = {"id": self._next_id("msg"), "created_at": self._tick(), **row}
        self.chats[stored["id"]] = stored
        return dict(stored)

    def delete_chat_messages(self, a: str, b: str):
        deleted = [row for row in self.chats.values() if self._pair(a, b, row)]
        for row in deleted:
            del self.chats[row["id"]]
        return deleted

    # -- mindfulness -----------------------------------------------------

    def list_entries(self, user_id: str, entry_type=None):
        rows = [
            dict(row) for row in self.entries.values()
            if row["user_id"] == user_id and (entry_type is None or row["type"] == entry_type)
        ]
        return sorted(rows, key=lambda r: r["created_at"], reverse=True)

    def get_entry(self, entry_id: str, user_id: str):
        row = self.entries.get(entry_id)
        return dict(row) if row and row["user_id"] == user_id else None

    def insert_entries(self, rows):
        stored = []
        for row in rows:
            self.entries[row["id"]] = dict(row)
            stored.append(dict(row))
        return stored

    def update_entry(self, entry_id: str, user_id: str, changes: dict):
        row = self.entries.get(entry_id)
        if not row or row["user_id"] != user_id:
            return None
        row.update(changes)
        return dict(row)

    def delete_entry(self, entry_id: str, user_id: str) -> bool:
        row = self.entries.get(entry_id)
        if not row or row["user_id"] != user_id:
            return False
        del self.entries[entry_id]
        return True

    def get_streak(self, user_id: str):
        row = self.streaks.get(user_id)
        return dict(row) if row else None

    def insert_streak(self, row: dict) -> dict:
        self.streaks[row["user_id"]] = dict(row)
        return dict(row)

    def update_streak(self, user_id: str, changes: dict) -> dict:
        self.streaks[user_id].update(changes)
        return dict(self.streaks[user_id])


# ============================================================================
# Profile Fixtures
# ============================================================================

@pytest.fixture
def seeker_row() -> dict:
    """创建示例求助者 Profile 行。"""
    return {
        "id": "seeker",
        "name": "Maya Chen",
        "location": "Boston",
        "availability": "evenings",
        "support_type": "support-seeker",
        "support_preferences": ["Anxiety"],
        "completed_setup": True,
    }


@pytest.fixture
def giver_row() -> dict:
    """创建示例支持者 Profile 行。"""
    return {
        "id": "giver",
        "name": "Jordan Lee",
        "location": "Boston",
        "availability": "weekends",
        "support_type": "support-giver",
        "support_preferences": ["anxiety", "Stress"],
        "rating": 4.9,
        "total_ratings": 12,
        "people_supported": 30,
        "journey_note": "Worked through panic attacks in grad school.",
    }


@pytest.fixture
def empty_row() -> dict:
    """创建最小化 Profile 行（用于边界测试）。"""
    return {"id": "empty"}


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def mock_llm() -> MockLLMService:
    """创建 Mock LLM 服务。"""
    return MockLLMService()


@pytest.fixture
def store(seeker_row, giver_row) -> InMemoryStore:
    """创建包含一个求助者和一个支持者的内存 Store。"""
    store = InMemoryStore()
    store.add_user("seeker", **{k: v for k, v in seeker_row.items() if k != "id"})
    store.add_user("giver", **{k: v for k, v in giver_row.items() if k != "id"})
    return store


@pytest.fixture
def connected_store(store) -> InMemoryStore:
    """创建两位用户之间已有 accepted 请求的 Store。"""
    store.insert_support_request({
        "sender_id": "seeker",
        "receiver_id": "giver",
        "message": "Hi, could we talk?",
        "status": "accepted",
        "is_anonymous": False,
    })
    return store


# ============================================================================
# Flask Fixtures
# ============================================================================

@pytest.fixture
def flask_app(store, mock_llm):
    """创建使用内存 Store 和 Mock LLM 的 Flask 应用。"""
    from app import app

    saved = {key: app.config[key] for key in ("TESTING", "STORE_FACTORY")}
    app.config.update(TESTING=True, STORE_FACTORY=lambda access_token=None: store)
    LLMService.set_instance(mock_llm)
    yield app
    app.config.update(saved)
    LLMService.reset()


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture
def seeker_headers() -> dict:
    return {"Authorization": "Bearer token-seeker"}


@pytest.fixture
def giver_headers() -> dict:
    return {"Authorization": "Bearer token-giver"}
