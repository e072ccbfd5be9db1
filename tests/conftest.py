import copy

import pytest

from app import create_app
from services.geocode import Suggestion

DETROIT = (42.33, -83.05)


class FakeDocument:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeWatch:
    def __init__(self, collection, callback):
        self.collection = collection
        self.callback = callback
        self.is_active = True
        self.unsubscribed = False

    def unsubscribe(self):
        self.unsubscribed = True
        self.is_active = False
        if self in self.collection.watches:
            self.collection.watches.remove(self)


class FakeDocumentRef:
    def __init__(self, collection, doc_id):
        self.collection = collection
        self.id = doc_id

    def get(self):
        return FakeDocument(self.id, self.collection.docs.get(self.id))

    def set(self, data, merge=False):
        current = self.collection.docs.get(self.id) if merge else None
        self.collection.docs[self.id] = {**(current or {}), **copy.deepcopy(data)}
        self.collection.notify()

    def delete(self):
        self.collection.docs.pop(self.id, None)
        self.collection.notify()


class FakeQuery:
    def __init__(self, collection, filters=(), limit=None):
        self.collection = collection
        self.filters = filters
        self._limit = limit

    def where(self, field, op, value):
        assert op == "=="
        return FakeQuery(self.collection, self.filters + ((field, value),), self._limit)

    def limit(self, n):
        return FakeQuery(self.collection, self.filters, n)

    def stream(self):
        docs = [FakeDocument(doc_id, data) for doc_id, data in self.collection.docs.items()
                if all(data.get(field) == value for field, value in self.filters)]
        if self._limit is not None:
            docs = docs[:self._limit]
        return iter(docs)


class FakeCollection(FakeQuery):
    def __init__(self):
        super().__init__(self)
        self.docs = {}
        self.watches = []

    def document(self, doc_id):
        return FakeDocumentRef(self, doc_id)

    def snapshot(self):
        return [FakeDocument(doc_id, data) for doc_id, data in self.docs.items()]

    def on_snapshot(self, callback):
        watch = FakeWatch(self, callback)
        self.watches.append(watch)
        callback(self.snapshot(), [], None)
        return watch

    def notify(self):
        for watch in list(self.watches):
            watch.callback(self.snapshot(), [], None)


class FakeFirestore:
    def __init__(self, docs=None, collection="clinics"):
        self.collections = {}
        if docs:
            self.collection(collection).docs.update(copy.deepcopy(docs))

    def collection(self, name):
        return self.collections.setdefault(name, FakeCollection())


class FakeGeocoder:
    def __init__(self, suggestions=None):
        self.suggestions = suggestions or []
        self.queries = []

    def search(self, query, limit=8):
        self.queries.append(query)
        if len((query or "").strip()) < 3:
            return []
        return list(self.suggestions)

    def geocode(self, address):
        suggestions = self.search(address, limit=1)
        return (suggestions[0].lat, suggestions[0].lon) if suggestions else None


SAMPLE_CLINICS = {
    "detroit-dental": {
        "name": "Detroit Mercy Dental",
        "address": "2700 Martin Luther King Jr Blvd, Detroit, MI 48208",
        "coords": [42.35, -83.07],
        "services": ["Dental"],
        "languages": "English, Spanish",
        "verified": True,
        "url": "https://dental.example.org",
        "summary": "Free dental care.",
        "summary_es": "Atención dental gratuita.",
        "slug": "detroit-mercy-dental",
    },
    "ann-arbor": {
        "name": "Washtenaw Free Clinic",
        "address": "123 Main St, Ann Arbor, MI 48104",
        "coords": [-83.74, 42.28],
        "services": "Medical, Pediatrics",
        "verified": False,
    },
    "troy-counseling": {
        "name": "Troy Counseling Center",
        "address": "500 Big Beaver Rd, Troy, MI 48083",
        "coords": {"lat": "42.56", "lng": "-83.15"},
        "services": '["Mental Health","Counseling"]',
        "verified": True,
    },
    "no-coords": {
        "name": "Nowhere Clinic",
        "address": "1 Null Island",
        "coords": [0, 0],
        "services": ["Medical"],
    },
}


@pytest.fixture
def firestore_db():
    return FakeFirestore(SAMPLE_CLINICS)


@pytest.fixture
def geocoder():
    return FakeGeocoder([Suggestion("Detroit, Wayne County, Michigan", 42.33, -83.05)])


@pytest.fixture
def app_config(tmp_path, firestore_db, geocoder):
    return {
        "TESTING": True,
        "FIRESTORE_CLIENT": firestore_db,
        "FIREBASE_CREDENTIALS": str(tmp_path / "missing.json"),
        "FIREBASE_ADMIN_PROJECT_ID": None,
        "FIREBASE_ADMIN_CLIENT_EMAIL": None,
        "FIREBASE_ADMIN_PRIVATE_KEY": None,
        "CLINICS_LOCAL_FILE": str(tmp_path / "clinics.json"),
        "CLINIC_STREAM_ENABLED": True,
        "GEOCODER": geocoder,
        "LLM": None,
        "OPENAI_API_KEY": None,
        "TRIAGE_SERVICE_URL": None,
    }


@pytest.fixture
def app(app_config):
    app = create_app(app_config)
    yield app
    stream = app.extensions.get("clinic_stream")
    if stream is not None:
        stream.close()


@pytest.fixture
def client(app):
    return app.test_client()
