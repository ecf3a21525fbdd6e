# conftest.py
"""
Shared pytest fixtures.

Firestore and the storage bucket are replaced by small in-memory doubles so
the whole app runs without Firebase credentials. The doubles implement the
subset of the client API the services use.
"""

import copy
import uuid

import pytest
from firebase_admin import firestore
from flask_jwt_extended import create_access_token, create_refresh_token
from google.api_core.exceptions import AlreadyExists, InvalidArgument, NotFound

from app import create_app
from app.api.auth.services import AuthService
from app.services.storage_service import StorageService


# ---------------------------------------------------------------------------
# Firestore double
# ---------------------------------------------------------------------------

def _get_path(data, path):
    current = data
    for part in path.split('.'):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _set_path(data, path, value):
    parts = path.split('.')
    current = data
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


class _Missing:
    pass


_MISSING = _Missing()


def _apply_value(current, value):
    if isinstance(value, firestore.Increment):
        return (current if isinstance(current, (int, float)) else 0) + value.value
    if isinstance(value, firestore.ArrayUnion):
        items = list(current) if isinstance(current, list) else []
        return items + [v for v in value.values if v not in items]
    if isinstance(value, firestore.ArrayRemove):
        items = list(current) if isinstance(current, list) else []
        return [v for v in items if v not in value.values]
    return copy.deepcopy(value)


# Firestore caps the value list of in, not-in and array_contains_any filters.
MAX_DISJUNCTION_VALUES = 30


def _matches(value, op, expected):
    if value is _MISSING:
        return False
    try:
        if op == '==':
            return value == expected
        if op == '!=':
            return value != expected
        if op == '<':
            return value < expected
        if op == '<=':
            return value <= expected
        if op == '>':
            return value > expected
        if op == '>=':
            return value >= expected
        if op == 'in':
            return value in expected
        if op == 'not-in':
            return value not in expected
        if op == 'array_contains':
            return isinstance(value, list) and expected in value
        if op == 'array_contains_any':
            return isinstance(value, list) and any(v in value for v in expected)
    except TypeError:
        return False
    raise ValueError(f"Unsupported operator: {op}")


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None

    def get(self, field):
        value = _get_path(self._data or {}, field)
        return None if value is _MISSING else value


class FakeDocumentReference:
    def __init__(self, db, collection_name, doc_id):
        self._db = db
        self._collection = collection_name
        self.id = doc_id

    @property
    def _store(self):
        return self._db._data.setdefault(self._collection, {})

    @property
    def path(self):
        return f"{self._collection}/{self.id}"

    def get(self, transaction=None):
        return FakeSnapshot(self, copy.deepcopy(self._store.get(self.id)))

    def create(self, data):
        if self.id in self._store:
            raise AlreadyExists(f"Document already exists: {self.path}")
        self.set(data)

    def set(self, data, merge=False):
        if merge and self.id in self._store:
            self.update(data)
            return
        document = {}
        for key, value in data.items():
            document[key] = _apply_value(_MISSING, value)
        self._store[self.id] = document

    def update(self, data):
        if self.id not in self._store:
            raise NotFound(f"No document to update: {self.path}")
        document = self._store[self.id]
        for key, value in data.items():
            current = _get_path(document, key)
            _set_path(document, key, _apply_value(current, value))

    def delete(self):
        self._store.pop(self.id, None)


class FakeAggregationResult:
    def __init__(self, value):
        self.value = value


class FakeAggregationQuery:
    def __init__(self, query):
        self._query = query

    def get(self, transaction=None):
        return [[FakeAggregationResult(len(self._query._run()))]]


class FakeQuery:
    def __init__(self, db, collection_name, filters=None, orders=None, limit=None, offset=0, start_after=None):
        self._db = db
        self._collection = collection_name
        self._filters = filters or []
        self._orders = orders or []
        self._limit = limit
        self._offset = offset
        self._start_after = start_after

    def _copy(self, **changes):
        params = dict(filters=list(self._filters), orders=list(self._orders), limit=self._limit,
                      offset=self._offset, start_after=self._start_after)
        params.update(changes)
        return FakeQuery(self._db, self._collection, **params)

    def where(self, field, op, value):
        if op in ('in', 'not-in', 'array_contains_any') and len(value) > MAX_DISJUNCTION_VALUES:
            raise InvalidArgument(f"'{op}' filters support a maximum of {MAX_DISJUNCTION_VALUES} elements")
        return self._copy(filters=self._filters + [(field, op, value)])

    def order_by(self, field, direction=firestore.Query.ASCENDING):
        return self._copy(orders=self._orders + [(field, direction)])

    def limit(self, count):
        return self._copy(limit=count)

    def offset(self, count):
        return self._copy(offset=count)

    def start_after(self, snapshot):
        return self._copy(start_after=snapshot.id)

    def count(self):
        return FakeAggregationQuery(self._copy(limit=None, offset=0, start_after=None))

    def _run(self):
        store = self._db._data.get(self._collection, {})
        rows = [(doc_id, data) for doc_id, data in store.items()
                if all(_matches(_get_path(data, f), op, v) for f, op, v in self._filters)]

        rows.sort(key=lambda row: row[0])
        for field, direction in reversed(self._orders):
            rows = [row for row in rows if _get_path(row[1], field) is not _MISSING]
            rows.sort(key=lambda row: _get_path(row[1], field),
                      reverse=direction == firestore.Query.DESCENDING)

        if self._start_after is not None:
            ids = [doc_id for doc_id, _ in rows]
            if self._start_after in ids:
                rows = rows[ids.index(self._start_after) + 1:]
        rows = rows[self._offset:]
        if self._limit is not None:
            rows = rows[:self._limit]

        collection = FakeCollection(self._db, self._collection)
        return [FakeSnapshot(collection.document(doc_id), copy.deepcopy(data)) for doc_id, data in rows]

    def stream(self, transaction=None):
        return iter(self._run())

    def get(self, transaction=None):
        return self._run()


class FakeCollection(FakeQuery):
    def __init__(self, db, name):
        super().__init__(db, name)
        self.id = name

    def document(self, doc_id=None):
        return FakeDocumentReference(self._db, self._collection, doc_id or uuid.uuid4().hex)


class FakeWriteBatch:
    # Firestore rejects commits with more writes than this.
    MAX_WRITES = 500

    def __init__(self):
        self._operations = []

    def create(self, reference, data):
        self._operations.append(lambda: reference.create(data))

    def set(self, reference, data, merge=False):
        self._operations.append(lambda: reference.set(data, merge=merge))

    def update(self, reference, data):
        self._operations.append(lambda: reference.update(data))

    def delete(self, reference):
        self._operations.append(reference.delete)

    def commit(self):
        operations, self._operations = self._operations, []
        if len(operations) > self.MAX_WRITES:
            raise InvalidArgument(f"maximum {self.MAX_WRITES} writes allowed per request")
        for operation in operations:
            operation()


class FakeTransaction:
    """Applies writes immediately; services read everything before writing."""

    def create(self, reference, data):
        reference.create(data)

    def set(self, reference, data, merge=False):
        reference.set(data, merge=merge)

    def update(self, reference, data):
        reference.update(data)

    def delete(self, reference):
        reference.delete()


class FakeFirestore:
    def __init__(self):
        self._data = {}

    def collection(self, name):
        return FakeCollection(self, name)

    def transaction(self):
        return FakeTransaction()

    def batch(self):
        return FakeWriteBatch()

    def get_all(self, references):
        return [reference.get() for reference in references]


# ---------------------------------------------------------------------------
# Storage bucket double
# ---------------------------------------------------------------------------

class FakeBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name

    def exists(self):
        return self.name in self.bucket.blobs

    def upload_from_string(self, data, content_type=None):
        self.bucket.upload_calls += 1
        if self.bucket.upload_failures:
            raise self.bucket.upload_failures.pop(0)
        self.bucket.blobs[self.name] = (data, content_type)

    def make_public(self):
        self.bucket.public.add(self.name)

    @property
    def public_url(self):
        return f"https://storage.googleapis.com/{self.bucket.name}/{self.name}"

    def delete(self):
        self.bucket.blobs.pop(self.name, None)

    def generate_signed_url(self, version, expiration, method, content_type=None):
        return f"https://signed.example/{self.bucket.name}/{self.name}?method={method}"


class FakeBucket:
    def __init__(self, name='test-bucket'):
        self.name = name
        self.blobs = {}
        self.public = set()
        self.upload_failures = []
        self.upload_calls = 0

    def blob(self, name):
        return FakeBlob(self, name)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def run_transactions_inline(monkeypatch):
    """Transactions run the wrapped function once against the double."""
    monkeypatch.setattr(firestore, 'transactional', lambda fn: fn)


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def bucket():
    return FakeBucket()


@pytest.fixture
def storage_service(bucket):
    service = StorageService(max_attempts=3, retry_wait=0)
    service.bucket = bucket
    return service


@pytest.fixture
def make_app(db, storage_service):
    def _make_app(**services):
        services.setdefault('db', db)
        services.setdefault('storage', storage_service)
        return create_app('testing', services=services)
    return _make_app


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(db):
    """Register a user straight through AuthService and return its document."""
    auth_service = AuthService(db)
    counter = {'n': 0}

    def _make_user(username=None, name=None, email=None, password='secret123'):
        counter['n'] += 1
        username = username or f"user{counter['n']}"
        return auth_service.register_user(
            name=name or username.title(),
            username=username,
            email=email or f"{username}@example.com",
            password=password,
        )
    return _make_user


@pytest.fixture
def auth_headers(app):
    def _auth_headers(user_id):
        with app.app_context():
            token = create_access_token(identity=user_id)
        return {'Authorization': f'Bearer {token}'}
    return _auth_headers


@pytest.fixture
def refresh_headers(app):
    def _refresh_headers(user_id):
        with app.app_context():
            token = create_refresh_token(identity=user_id)
        return {'Authorization': f'Bearer {token}'}
    return _refresh_headers
