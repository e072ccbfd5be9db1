import json

from app import create_app
from tests.conftest import FakeFirestore


def test_list_clinics_without_reference_returns_all(client):
    resp = client.get("/api/v1/clinics")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["count"] == 3
    assert data["reference"] is None
    assert data["stale"] is False
    assert all(c["miles"] is None for c in data["clinics"])


def test_list_clinics_with_reference_and_radius(client):
    data = client.get("/api/v1/clinics?lat=42.33&lng=-83.05&radius=25").get_json()
    assert [c["id"] for c in data["clinics"]] == ["detroit-dental", "troy-counseling"]
    assert data["message"] == "Showing 2 clinics within 25 miles."

    data = client.get("/api/v1/clinics?lat=42.33&lng=-83.05&radius=50").get_json()
    assert [c["id"] for c in data["clinics"]][-1] == "ann-arbor"
    assert 25 < data["clinics"][-1]["miles"] < 50


def test_list_clinics_filters(client):
    data = client.get("/api/v1/clinics?service=dental&verified=true").get_json()
    assert [c["id"] for c in data["clinics"]] == ["detroit-dental"]

    data = client.get("/api/v1/clinics?lat=45.0&lng=-120.0&radius=10&lang=es").get_json()
    assert data["clinics"] == []
    assert "10 millas" in data["message"]


def test_bad_reference_degrades_to_no_reference(client):
    data = client.get("/api/v1/clinics?lat=denied&lng=&radius=abc").get_json()
    assert data["reference"] is None
    assert data["radius"] == 50
    assert data["count"] == 3


def test_list_reflects_live_changes(app, client, firestore_db):
    firestore_db.collection("clinics").document("troy-counseling").delete()
    data = client.get("/api/v1/clinics").get_json()
    assert {c["id"] for c in data["clinics"]} == {"detroit-dental", "ann-arbor"}


def test_subscription_failure_is_visible_but_not_fatal(client, firestore_db):
    firestore_db.collection("clinics").watches[0].is_active = False
    data = client.get("/api/v1/clinics").get_json()
    assert data["stale"] is True
    assert data["error"]
    assert data["count"] == 3


def test_clinic_detail_by_slug_with_language(client):
    resp = client.get("/api/v1/clinics/detroit-mercy-dental?lang=es")
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["id"] == "detroit-dental"
    assert data["languages"] == ["English", "Spanish"]
    assert data["summary_localized"] == "Atención dental gratuita."


def test_clinic_detail_not_found(client):
    assert client.get("/api/v1/clinics/nope").status_code == 404


def test_map_payload(client):
    data = client.get("/api/v1/map?lat=42.33&lng=-83.05&radius=50&selected=ann-arbor").get_json()
    assert [m["key"] for m in data["markers"]] == ["detroit-dental", "troy-counseling", "ann-arbor"]
    assert data["reference"]["position"] == [42.33, -83.05]
    assert data["fit"]["animate"] is False
    assert data["markers"][-1]["selected"] is True

    data = client.get("/api/v1/map?lat=42.33&lng=-83.05&refit=1").get_json()
    assert data["fit"]["animate"] is True


def test_geocode_endpoint(client, geocoder):
    data = client.get("/api/v1/geocode?q=Detroit").get_json()
    assert data == [{"label": "Detroit, Wayne County, Michigan", "lat": 42.33, "lon": -83.05}]
    assert client.get("/api/v1/geocode?q=De").get_json() == []
    assert client.get("/api/v1/geocode").get_json() == []


def test_metrics(client):
    data = client.get("/api/v1/metrics").get_json()
    assert data["clinics"] == 3
    assert data["counties"] == 3


def test_set_lang_cookie(client):
    resp = client.post("/api/v1/lang", json={"lang": "es"})
    assert resp.status_code == 200
    assert "zbi-lang=es" in resp.headers["Set-Cookie"]

    data = client.get("/api/v1/clinics/detroit-dental").get_json()
    assert data["summary_localized"] == "Atención dental gratuita."

    assert client.post("/api/v1/lang", json={"lang": "fr"}).status_code == 400


def test_triage_endpoint(client):
    assert client.post("/api/v1/triage", json={"question": "  "}).status_code == 400
    resp = client.post("/api/v1/triage", json={"question": "I have a toothache", "history": "junk"})
    assert resp.status_code == 200
    assert "dental clinic" in resp.get_json()["message"]


def test_ai_health_without_model(client):
    resp = client.get("/api/v1/ai/health")
    assert resp.status_code == 500
    assert resp.get_json()["ok"] is False


def test_falls_back_to_local_file_without_firestore(tmp_path, app_config):
    local = tmp_path / "clinics.json"
    local.write_text(json.dumps([
        {"id": "file-clinic", "slug": "file", "name": "File Clinic", "address": "1 Main St, Detroit, MI 48201",
         "coords": [42.33, -83.05], "services": "Medical"},
    ]), encoding="utf-8")
    app = create_app({**app_config, "FIRESTORE_CLIENT": None, "CLINICS_LOCAL_FILE": str(local)})
    client = app.test_client()

    assert app.extensions["clinic_stream"] is None
    data = client.get("/api/v1/clinics").get_json()
    assert [c["id"] for c in data["clinics"]] == ["file-clinic"]
    assert client.get("/api/v1/clinics/file").get_json()["name"] == "File Clinic"
    assert client.get("/api/v1/clinics/other").status_code == 404


def test_one_shot_read_when_stream_disabled(app_config):
    db = FakeFirestore({"a": {"name": "A", "address": "1 Main St, Troy, MI 48083", "coords": [42.56, -83.15]}})
    app = create_app({**app_config, "FIRESTORE_CLIENT": db, "CLINIC_STREAM_ENABLED": False})
    data = app.test_client().get("/api/v1/clinics").get_json()
    assert [c["id"] for c in data["clinics"]] == ["a"]
    assert data["stale"] is False


def test_ai_health_with_model(app_config):
    from langchain_core.language_models.fake_chat_models import FakeListChatModel

    from components.llm import LLM

    llm = LLM(model_name="test-model", api_key="sk-test", chat_model=FakeListChatModel(responses=["ok"]))
    resp = create_app({**app_config, "LLM": llm}).test_client().get("/api/v1/ai/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True, "model": "test-model", "sample": "ok"}


def test_address_resolves_reference_point(client, geocoder):
    data = client.get("/api/v1/clinics?address=Detroit&radius=25").get_json()
    assert data["reference"] == [42.33, -83.05]
    assert [c["id"] for c in data["clinics"]] == ["detroit-dental", "troy-counseling"]
    assert "Detroit" in geocoder.queries

    data = client.get("/api/v1/clinics?address=De&radius=25").get_json()
    assert data["reference"] is None
    assert data["count"] == 3
