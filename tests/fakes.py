"""
Fake in-memory cho supabase AsyncClient: query builder (PostgREST), auth, storage.
Mọi client (anon / user / admin / session) dùng chung một FakeDB;
nhãn client cho phép giả lập lỗi RLS theo từng loại client.
"""

import itertools
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Tuple

from supabase import PostgrestAPIError

_BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _norm(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value
    return str(value)


def _same(left: Any, right: Any) -> bool:
    left, right = _norm(left), _norm(right)
    if isinstance(left, bool) or isinstance(right, bool):
        return left is right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    return str(left) == str(right) if left is not None and right is not None else left is right


def _ilike(value: Any, pattern: str) -> bool:
    if value is None:
        return False
    needle = pattern.strip("%").lower()
    return needle in str(value).lower()


@dataclass
class FakeUser:
    id: str
    email: Optional[str]
    password: str
    token: str
    refresh_token: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class FakeDB:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.users: Dict[str, FakeUser] = {}
        self.tokens: Dict[str, str] = {}
        self.refresh_tokens: Dict[str, str] = {}
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self.closed: List[str] = []
        self.require_email_confirmation = False
        self._failures: Dict[Tuple[str, str, str], List[Dict[str, Any]]] = {}
        self._upload_failures: List[str] = []
        self._clock = itertools.count(1)

    # ==============================
    # 🧩 DỮ LIỆU
    # ==============================

    def timestamp(self) -> str:
        return (_BASE_TIME + timedelta(seconds=next(self._clock))).isoformat()

    def table(self, name: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(name, [])

    def insert(self, table: str, **row: Any) -> Dict[str, Any]:
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", self.timestamp())
        self.table(table).append(row)
        return row

    def find(self, table: str, **filters: Any) -> List[Dict[str, Any]]:
        return [
            r for r in self.table(table) if all(_same(r.get(k), v) for k, v in filters.items())
        ]

    # ==============================
    # 🧩 GIẢ LẬP LỖI
    # ==============================

    def fail(
        self,
        table: str,
        op: str,
        code: str,
        message: str = "simulated error",
        client: str = "user",
        times: int = 1,
    ) -> None:
        """Lần gọi `op` kế tiếp trên `table` bằng client `client` sẽ ném PostgrestAPIError."""
        self._failures.setdefault((client, table, op), []).extend(
            [{"code": code, "message": message, "details": None, "hint": None}] * times
        )

    def pop_failure(self, client: str, table: str, op: str) -> Optional[Dict[str, Any]]:
        queue = self._failures.get((client, table, op))
        return queue.pop(0) if queue else None

    def fail_upload(self, filename: str) -> None:
        self._upload_failures.append(filename)

    def upload_should_fail(self, path: str) -> bool:
        return any(path.endswith(name) for name in self._upload_failures)

    # ==============================
    # 🧩 IDENTITY
    # ==============================

    def add_identity(self, email: Optional[str], password: str = "secret123", **metadata: Any) -> FakeUser:
        user_id = str(uuid.uuid4())
        user = FakeUser(
            id=user_id,
            email=email,
            password=password,
            token=f"token-{user_id}",
            refresh_token=f"refresh-{user_id}",
            metadata=metadata,
        )
        self.users[user_id] = user
        self.tokens[user.token] = user_id
        self.refresh_tokens[user.refresh_token] = user_id
        return user

    def add_user(
        self,
        role: str = "pengguna",
        email: Optional[str] = None,
        password: str = "secret123",
        full_name: str = "Siti Aminah",
        phone: Optional[str] = None,
        profile: bool = True,
    ) -> FakeUser:
        email = email or f"{uuid.uuid4().hex[:8]}@posyandu.id"
        user = self.add_identity(email, password)
        if profile:
            self.insert(
                "profiles",
                id=user.id,
                full_name=full_name,
                phone=phone,
                email=email,
                address=None,
                role=role,
                profil_url=None,
                updated_at=self.timestamp(),
            )
        return user

    def issue_session(self, user: FakeUser) -> SimpleNamespace:
        token = f"token-{uuid.uuid4().hex}"
        refresh = f"refresh-{uuid.uuid4().hex}"
        self.tokens[token] = user.id
        self.refresh_tokens[refresh] = user.id
        return SimpleNamespace(
            access_token=token,
            refresh_token=refresh,
            expires_at=4102444800,
            expires_in=3600,
            token_type="bearer",
        )

    def user_by_email(self, email: str) -> Optional[FakeUser]:
        return next((u for u in self.users.values() if u.email == email), None)


class FakeResponse:
    def __init__(self, data: List[Dict[str, Any]], count: Optional[int] = None):
        self.data = data
        self.count = count


class FakeQuery:
    """Query builder tối giản mô phỏng postgrest-py (chỉ các filter mà app dùng)."""

    def __init__(self, db: FakeDB, client: str, table: str):
        self.db = db
        self.client = client
        self.table_name = table
        self.op = "select"
        self.columns = "*"
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.ignore_duplicates = False
        self.count_mode: Optional[str] = None
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self.orders: List[Tuple[str, bool]] = []
        self.limit_n: Optional[int] = None
        self.range_bounds: Optional[Tuple[int, int]] = None
        self._negate = False

    # --- operations ---
    def select(self, columns: str = "*", count: Optional[str] = None):
        self.op, self.columns, self.count_mode = "select", columns, count
        return self

    def insert(self, payload):
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def upsert(self, payload, on_conflict: Optional[str] = None, ignore_duplicates: bool = False, **_):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def delete(self):
        self.op = "delete"
        return self

    # --- filters ---
    def _add(self, predicate: Callable[[Dict[str, Any]], bool]):
        if self._negate:
            self._negate = False
            self.filters.append(lambda r, p=predicate: not p(r))
        else:
            self.filters.append(predicate)
        return self

    @property
    def not_(self):
        self._negate = True
        return self

    def eq(self, column: str, value: Any):
        return self._add(lambda r: _same(r.get(column), value))

    def neq(self, column: str, value: Any):
        return self._add(lambda r: not _same(r.get(column), value))

    def in_(self, column: str, values):
        values = list(values)
        return self._add(lambda r: any(_same(r.get(column), v) for v in values))

    def is_(self, column: str, value: Any):
        if value in ("null", None):
            return self._add(lambda r: r.get(column) is None)
        return self._add(lambda r: _same(r.get(column), value))

    def lt(self, column: str, value: Any):
        return self._add(lambda r: r.get(column) is not None and r.get(column) < value)

    def gte(self, column: str, value: Any):
        return self._add(lambda r: r.get(column) is not None and r.get(column) >= value)

    def or_(self, expression: str):
        clauses = []
        for part in expression.split(","):
            column, operator, pattern = part.split(".", 2)
            if operator != "ilike":
                raise NotImplementedError(operator)
            clauses.append((column, pattern))
        return self._add(lambda r: any(_ilike(r.get(c), p) for c, p in clauses))

    # --- modifiers ---
    def order(self, column: str, desc: bool = False, **_):
        self.orders.append((column, desc))
        return self

    def limit(self, n: int):
        self.limit_n = n
        return self

    def range(self, start: int, end: int):
        self.range_bounds = (start, end)
        return self

    # --- execute ---
    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(f(row) for f in self.filters)

    def _project(self, row: Dict[str, Any]) -> Dict[str, Any]:
        if self.columns.strip() == "*":
            return dict(row)
        names = [c.strip() for c in self.columns.split(",") if c.strip()]
        return {n: row.get(n) for n in names}

    def _prepare(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(payload)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", self.db.timestamp())
        return row

    async def execute(self) -> FakeResponse:
        self.db.calls.append((self.client, self.table_name, self.op))
        failure = self.db.pop_failure(self.client, self.table_name, self.op)
        if failure:
            raise PostgrestAPIError(failure)

        rows = self.db.table(self.table_name)
        if self.op == "select":
            matched = [r for r in rows if self._matches(r)]
            for column, desc in reversed(self.orders):
                matched.sort(
                    key=lambda r: (r.get(column) is None, _norm(r.get(column))),
                    reverse=desc,
                )
            count = len(matched) if self.count_mode else None
            if self.range_bounds:
                start, end = self.range_bounds
                matched = matched[start : end + 1]
            if self.limit_n is not None:
                matched = matched[: self.limit_n]
            return FakeResponse([self._project(r) for r in matched], count)

        if self.op == "insert":
            payloads = self.payload if isinstance(self.payload, list) else [self.payload]
            created = [self._prepare(p) for p in payloads]
            rows.extend(created)
            return FakeResponse([dict(r) for r in created])

        if self.op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    updated.append(dict(row))
            return FakeResponse(updated)

        if self.op == "upsert":
            payloads = self.payload if isinstance(self.payload, list) else [self.payload]
            keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
            result = []
            for payload in payloads:
                existing = next(
                    (
                        r
                        for r in rows
                        if all(k in payload and _same(r.get(k), payload[k]) for k in keys)
                    ),
                    None,
                )
                if existing is not None and self.ignore_duplicates:
                    # ON CONFLICT DO NOTHING: không trả về dòng bị bỏ qua
                    continue
                if existing is not None:
                    existing.update(payload)
                    result.append(dict(existing))
                else:
                    row = self._prepare(payload)
                    rows.append(row)
                    result.append(dict(row))
            return FakeResponse(result)

        if self.op == "delete":
            removed = [r for r in rows if self._matches(r)]
            self.db.tables[self.table_name] = [r for r in rows if not self._matches(r)]
            return FakeResponse([dict(r) for r in removed])

        raise NotImplementedError(self.op)


# ==============================
# 🧩 AUTH
# ==============================


class FakeAuthAdmin:
    def __init__(self, db: FakeDB):
        self.db = db

    async def create_user(self, attributes: Dict[str, Any]):
        if self.db.user_by_email(attributes["email"]):
            raise Exception("A user with this email address has already been registered")
        user = self.db.add_identity(
            attributes["email"], attributes["password"], **attributes.get("user_metadata", {})
        )
        return SimpleNamespace(user=SimpleNamespace(id=user.id, email=user.email))

    async def delete_user(self, user_id: str, should_soft_delete: bool = False):
        self.db.users.pop(user_id, None)
        # profiles.id → auth.users(id) on delete cascade
        self.db.tables["profiles"] = [
            p for p in self.db.table("profiles") if str(p.get("id")) != user_id
        ]

    async def update_user_by_id(self, user_id: str, attributes: Dict[str, Any]):
        user = self.db.users[user_id]
        if "email" in attributes:
            user.email = attributes["email"]
        if "password" in attributes:
            user.password = attributes["password"]
        return SimpleNamespace(user=SimpleNamespace(id=user.id, email=user.email))

    async def sign_out(self, jwt: str, scope: str = "global"):
        self.db.tokens.pop(jwt, None)


class FakeAuth:
    def __init__(self, db: FakeDB):
        self.db = db
        self.current: Optional[FakeUser] = None
        self.admin = FakeAuthAdmin(db)

    async def sign_up(self, credentials: Dict[str, Any]):
        if self.db.user_by_email(credentials["email"]):
            raise Exception("User already registered")
        metadata = credentials.get("options", {}).get("data", {})
        user = self.db.add_identity(credentials["email"], credentials["password"], **metadata)
        session = None if self.db.require_email_confirmation else self.db.issue_session(user)
        return SimpleNamespace(user=SimpleNamespace(id=user.id, email=user.email), session=session)

    async def sign_in_with_password(self, credentials: Dict[str, Any]):
        user = self.db.user_by_email(credentials.get("email"))
        if not user or user.password != credentials.get("password"):
            raise Exception("Invalid login credentials")
        self.current = user
        return SimpleNamespace(
            user=SimpleNamespace(id=user.id, email=user.email),
            session=self.db.issue_session(user),
        )

    async def refresh_session(self, refresh_token: Optional[str] = None):
        user_id = self.db.refresh_tokens.get(refresh_token or "")
        if not user_id:
            raise Exception("Invalid Refresh Token")
        user = self.db.users[user_id]
        return SimpleNamespace(
            user=SimpleNamespace(id=user.id, email=user.email),
            session=self.db.issue_session(user),
        )

    async def get_user(self, jwt: Optional[str] = None):
        user_id = self.db.tokens.get(jwt or "")
        if not user_id or user_id not in self.db.users:
            raise Exception("invalid JWT")
        user = self.db.users[user_id]
        return SimpleNamespace(user=SimpleNamespace(id=user.id, email=user.email))

    async def update_user(self, attributes: Dict[str, Any]):
        if not self.current:
            raise Exception("Auth session missing!")
        if "password" in attributes:
            self.current.password = attributes["password"]
        return SimpleNamespace(user=SimpleNamespace(id=self.current.id, email=self.current.email))

    async def sign_out(self, options: Any = None):
        self.current = None


# ==============================
# 🧩 STORAGE
# ==============================


class FakeBucket:
    def __init__(self, db: FakeDB, name: str):
        self.db = db
        self.name = name

    async def upload(self, path: str, file: bytes, file_options: Optional[Dict[str, Any]] = None):
        if self.db.upload_should_fail(path):
            raise Exception(f"upload failed for {path}")
        self.db.objects[(self.name, path)] = file
        return SimpleNamespace(path=path, full_path=f"{self.name}/{path}")

    async def get_public_url(self, path: str, options: Any = None) -> str:
        return f"https://fake.supabase.co/storage/v1/object/public/{self.name}/{path}"

    async def remove(self, paths: List[str]):
        for path in paths:
            self.db.objects.pop((self.name, path), None)
        return [{"name": p} for p in paths]


class FakeStorage:
    def __init__(self, db: FakeDB):
        self.db = db

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self.db, bucket)


class _FakeSession:
    def __init__(self, db: FakeDB, label: str):
        self.db = db
        self.label = label

    async def aclose(self):
        self.db.closed.append(self.label)


class FakeClient:
    def __init__(self, db: FakeDB, label: str):
        self.db = db
        self.label = label
        self._postgrest = _FakeSession(db, label)
        self.auth = FakeAuth(db)
        self.storage = FakeStorage(db)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.db, self.label, name)


class FakeStoreFactory:
    """Thay thế StoreFactory: cùng interface (anon, admin, for_user, open_session)."""

    def __init__(self, db: FakeDB, with_admin: bool = True):
        self.db = db
        self.anon = FakeClient(db, "anon")
        self.admin = FakeClient(db, "admin") if with_admin else None

    async def for_user(self, token: str) -> FakeClient:
        return FakeClient(self.db, "user")

    async def open_session(self) -> FakeClient:
        return FakeClient(self.db, "session")


def auth_header(user: FakeUser) -> Dict[str, str]:
    return {"Authorization": f"Bearer {user.token}"}
