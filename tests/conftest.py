"""
Pytest fixtures and test configuration for hotwills tests.

``FakeSupabase`` is a small in-memory stand-in for the sync Supabase client:
tables answer the PostgREST builder chain used by the record store, the
storage bucket keeps objects in a dict and lists folders the way storage3
does (sub-folders come back without an ``id``).
"""

import os
import re
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

os.environ.setdefault("HOTWILLS_SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("HOTWILLS_SUPABASE_ANON_KEY", "test-anon-key")

from hotwills.sync import (  # noqa: E402
    AssetPathResolver,
    AssetStore,
    LocalBlob,
    ProfileDirectory,
    ReconciliationEngine,
    RecordStoreClient,
    SyncContext,
)
from hotwills.types import CallerIdentity  # noqa: E402

ALICE = "11111111-1111-4111-8111-111111111111"
BOB = "22222222-2222-4222-8222-222222222222"
CAROL = "33333333-3333-4333-8333-333333333333"


# =============================================================================
# In-memory Supabase
# =============================================================================


def _split_or_terms(filters: str) -> List[str]:
    """Split a PostgREST ``or`` filter on commas outside double quotes."""
    terms, current, quoted, escaped = [], "", False, False
    for ch in filters:
        if escaped:
            escaped = False
        elif ch == "\\" and quoted:
            escaped = True
        elif ch == '"':
            quoted = not quoted
        elif ch == "," and not quoted:
            terms.append(current)
            current = ""
            continue
        current += ch
    terms.append(current)
    return terms


def _ilike_matcher(term: str):
    """Row predicate for one ``column.ilike.value`` term (backslash escapes)."""
    column, op, value = term.split(".", 2)
    assert op == "ilike", term
    if value.startswith('"') and value.endswith('"'):
        value = re.sub(r"\\(.)", r"\1", value[1:-1])
    pattern, i = "", 0
    while i < len(value):
        ch = value[i]
        if ch == "\\" and i + 1 < len(value):
            pattern += re.escape(value[i + 1])
            i += 2
            continue
        pattern += ".*" if ch in "%*" else "." if ch == "_" else re.escape(ch)
        i += 1
    regex = re.compile(pattern, re.IGNORECASE | re.DOTALL)
    return lambda row: regex.fullmatch(row.get(column) or "") is not None


class FakeQuery:
    """One PostgREST request being built."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.action = "select"
        self.columns: Optional[List[str]] = None
        self.count: Optional[str] = None
        self.head = False
        self.filters: List[Any] = []
        self.orders: List[Any] = []
        self.window: Optional[Any] = None
        self.payload: List[Dict[str, Any]] = []
        self.on_conflict: Optional[str] = None

    def select(self, columns: str = "*", count: Optional[str] = None, head: bool = False):
        self.action = "select"
        self.columns = None if columns == "*" else [c.strip() for c in columns.split(",")]
        self.count = count
        self.head = head
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        wanted = list(values)
        self.filters.append(lambda row: row.get(column) in wanted)
        return self

    def or_(self, filters: str):
        terms = [_ilike_matcher(term) for term in _split_or_terms(filters)]
        self.filters.append(lambda row: any(match(row) for match in terms))
        return self

    def order(self, column, desc: bool = False):
        self.orders.append((column, desc))
        return self

    def range(self, start: int, end: int):
        self.window = (start, end)
        return self

    def delete(self):
        self.action = "delete"
        return self

    def upsert(self, rows, on_conflict: Optional[str] = None):
        self.action = "upsert"
        self.payload = [dict(r) for r in (rows if isinstance(rows, list) else [rows])]
        self.on_conflict = on_conflict
        return self

    def _matching(self) -> List[Dict[str, Any]]:
        rows = [r for r in self.db.tables.setdefault(self.table, []) if all(f(r) for f in self.filters)]
        for column, desc in reversed(self.orders):
            rows.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
        return rows

    def execute(self):
        self.db.calls.append((self.table, self.action))
        failure = self.db.failures.get((self.table, self.action))
        if failure is not None:
            raise failure

        if self.action == "delete":
            rows = self.db.tables.setdefault(self.table, [])
            doomed = [r for r in rows if all(f(r) for f in self.filters)]
            self.db.tables[self.table] = [r for r in rows if r not in doomed]
            return SimpleNamespace(data=doomed, count=None)

        if self.action == "upsert":
            rows = self.db.tables.setdefault(self.table, [])
            written = []
            for new in self.payload:
                existing = None
                if self.on_conflict:
                    keys = [k.strip() for k in self.on_conflict.split(",")]
                    existing = next(
                        (r for r in rows if all(r.get(k) == new.get(k) for k in keys)),
                        None,
                    )
                if existing is None:
                    new.setdefault("id", self.db.next_id())
                    rows.append(new)
                    written.append(new)
                else:
                    existing.update(new)
                    written.append(existing)
            return SimpleNamespace(data=[dict(r) for r in written], count=None)

        rows = self._matching()
        total = len(rows)
        if self.window is not None:
            start, end = self.window
            rows = rows[start : end + 1]
        if self.head:
            rows = []
        if self.columns is not None:
            rows = [{c: r.get(c) for c in self.columns} for r in rows]
        else:
            rows = [dict(r) for r in rows]
        return SimpleNamespace(data=rows, count=total if self.count == "exact" else None)


class FakeBucket:
    def __init__(self, db: "FakeSupabase", name: str):
        self.db = db
        self.name = name

    @property
    def objects(self) -> Dict[str, bytes]:
        return self.db.buckets.setdefault(self.name, {})

    def upload(self, path, data, file_options=None):
        if ("storage", "upload") in self.db.failures:
            raise self.db.failures[("storage", "upload")]
        self.objects[path] = bytes(data)
        self.db.uploads.append((path, dict(file_options or {})))
        return SimpleNamespace(path=path)

    def remove(self, paths):
        self.db.removals.append(list(paths))
        for path in paths:
            self.objects.pop(path, None)
        return [{"name": p} for p in paths]

    def list(self, path=None, options=None):
        options = options or {}
        prefix = f"{path}/" if path else ""
        files, folders = {}, set()
        for key in self.objects:
            if not key.startswith(prefix):
                continue
            rest = key[len(prefix) :]
            if "/" in rest:
                folders.add(rest.split("/", 1)[0])
            else:
                files[rest] = key
        items = [{"name": f, "id": None} for f in folders]
        items += [{"name": n, "id": f"obj-{k}"} for n, k in files.items()]
        items.sort(key=lambda i: i["name"])
        offset = options.get("offset", 0)
        limit = options.get("limit", 100)
        return items[offset : offset + limit]

    def download(self, path):
        return self.objects[path]

    def get_public_url(self, path):
        return f"https://test.supabase.co/storage/v1/object/public/{self.name}/{path}"


class FakeAuth:
    def __init__(self):
        self.session = None
        self.restored = None

    def get_session(self):
        return self.session

    def set_session(self, access_token, refresh_token):
        self.restored = (access_token, refresh_token)
        return self.session

    def sign_in_as(self, user_id: str, email: Optional[str] = None):
        user = SimpleNamespace(id=user_id, email=email)
        self.session = SimpleNamespace(
            user=user, access_token="access-token", refresh_token="refresh-token"
        )


class FakeSupabase:
    """Subset of ``supabase.Client`` backed by dicts."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {"models": [], "profiles": []}
        self.buckets: Dict[str, Dict[str, bytes]] = {}
        self.calls: List[Any] = []
        self.uploads: List[Any] = []
        self.removals: List[List[str]] = []
        self.failures: Dict[Any, Exception] = {}
        self.auth = FakeAuth()
        self.storage = SimpleNamespace(from_=lambda name: FakeBucket(self, name))
        self._id = 0

    def next_id(self) -> int:
        self._id += 1
        return self._id

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    # Seeding helpers

    def add_entry(self, owner: str, name: str, code: str, image: str, year: str = "2020", link=None):
        row = {
            "id": self.next_id(),
            "name": name,
            "year": year,
            "code": code,
            "image_file": image,
            "source_link": link,
            "created_by": owner,
        }
        self.tables["models"].append(row)
        return row

    def add_profile(self, user_id: str, email: str):
        self.tables["profiles"].append({"user_id": user_id, "email": email})

    def put_object(self, key: str, data: bytes = b"img", bucket: str = "model-images"):
        self.buckets.setdefault(bucket, {})[key] = data

    def rows_for(self, owner: str) -> List[Dict[str, Any]]:
        return [r for r in self.tables["models"] if r.get("created_by") == owner]

    def object_keys(self, bucket: str = "model-images") -> List[str]:
        return sorted(self.buckets.get(bucket, {}))


class DictBlobProvider:
    """Local-import cache keyed by file name."""

    def __init__(self, blobs: Optional[Dict[str, bytes]] = None):
        self.blobs = dict(blobs or {})
        self.requests: List[str] = []

    def get_local_blob_by_name(self, name: str):
        self.requests.append(name)
        data = self.blobs.get(name)
        if data is None:
            return None
        return LocalBlob(name=name, data=data, content_type="image/jpeg")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep credentials, state and logs inside the test's tmp dir."""
    home = tmp_path / "hotwills-home"
    monkeypatch.setenv("HOTWILLS_DATA_DIR", str(home))
    return home


@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def context():
    """Context signed in as ALICE, viewing her own catalog."""
    return SyncContext(caller=CallerIdentity(id=ALICE, email="alice@example.com"))


@pytest.fixture
def records(fake_db):
    return RecordStoreClient(fake_db, page_size=2)


@pytest.fixture
def assets(fake_db, context):
    return AssetStore(fake_db, context, chunk_size=2)


@pytest.fixture
def blob_provider():
    return DictBlobProvider()


@pytest.fixture
def bundled_dir(tmp_path):
    directory = tmp_path / "img"
    directory.mkdir()
    return directory


@pytest.fixture
def resolver(assets, blob_provider, bundled_dir):
    return AssetPathResolver.default_chain(
        assets, assets_dir=bundled_dir, local_blobs=blob_provider
    )


@pytest.fixture
def engine(context, records, assets, resolver, isolated_home):
    return ReconciliationEngine(context, records, assets, resolver, event_log_dir=isolated_home)


@pytest.fixture
def profiles(fake_db):
    return ProfileDirectory(fake_db, chunk_size=2, page_size=2)
