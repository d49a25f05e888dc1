"""Tests for FastAPI endpoints."""
import pytest
from fastapi.testclient import TestClient

from pipeline_pilot import main as main_mod
from pipeline_pilot import session as session_mod
from pipeline_pilot.response_parser import parse_response
from pipeline_pilot.session import SessionStore

REPLY = (
    '```json\n{"task_type": "clustering", "target_column": null, "main_model_choices": ["KMeans", "DBSCAN"]}\n```\n'
    "### (2) HUMAN SUMMARY\n- Scale features first\n### (3) PYTHON CODE\n"
    "```python\n# MODEL: KMeans\nkm = 1\n```\n"
    "```python\n# MODEL: DBSCAN\ndb = 1\n```\n"
)


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(main_mod, "sessions", SessionStore())
    return TestClient(main_mod.app)


@pytest.fixture
def seen(monkeypatch):
    calls = []

    def fake_analyze(dataset, user_target=None):
        calls.append((dataset, user_target))
        return parse_response(REPLY)

    monkeypatch.setattr(session_mod, "analyze_dataset", fake_analyze)
    return calls


def test_healthz_reports_llm_configuration(client, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    assert client.get("/healthz").json() == {"ok": True, "llm_configured": False}

    monkeypatch.setenv("GEMINI_API_KEY", "k")
    assert client.get("/healthz").json()["llm_configured"] is True


def test_root_serves_page(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "PipelinePilot" in r.text


def test_analyze_pasted_data(client, seen):
    r = client.post("/analyze", data={"pasted_data": "x,y\n1,2\n3,4", "target": ""})

    assert r.status_code == 200
    body = r.json()
    assert body["phase"] == "result"
    assert body["selected_model"] == "KMeans"
    assert body["active_code"] == "# MODEL: KMeans\nkm = 1"
    assert body["result"]["json_summary"]["task_type"] == "clustering"
    assert body["result"]["human_summary"] == "- Scale features first"

    dataset, target = seen[0]
    assert dataset.filename == "pasted_data.csv"
    assert dataset.row_count == 3
    assert dataset.columns == ["x", "y"]


def test_analyze_uploaded_file(client, seen):
    files = {"file": ("iris.csv", b"sepal,petal,species\n5.1,1.4,setosa\n", "text/csv")}
    r = client.post("/analyze", data={"target": "species"}, files=files)

    assert r.status_code == 200
    dataset, target = seen[0]
    assert dataset.filename == "iris.csv"
    assert dataset.col_count == 3
    assert target == "species"


def test_analyze_requires_input(client, seen):
    r = client.post("/analyze", data={"pasted_data": "   "})

    assert r.status_code == 400
    assert seen == []


def test_analyze_accepts_non_utf8_upload(client, seen):
    files = {"file": ("villes.csv", "ville,région\nMontréal,Québec\n".encode("latin-1"), "text/csv")}
    r = client.post("/analyze", files=files)

    assert r.status_code == 200
    dataset, _ = seen[0]
    assert dataset.row_count == 2
    assert dataset.columns == ["ville", "r\ufffdgion"]
    assert "Montr\ufffdal" in dataset.sample


def test_second_analyze_from_result_conflicts_until_reset(client, seen):
    headers = {"x-session-id": "again"}
    assert client.post("/analyze", data={"pasted_data": "a,b\n1,2"}, headers=headers).json()["phase"] == "result"

    r = client.post("/analyze", data={"pasted_data": "a,b\n3,4"}, headers=headers)
    assert r.status_code == 409
    assert len(seen) == 1

    client.post("/reset", headers=headers)
    r = client.post("/analyze", data={"pasted_data": "a,b\n3,4"}, headers=headers)
    assert r.status_code == 200
    assert len(seen) == 2


def test_llm_failure_is_returned_as_session_error(client, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("LLM_API_KEY", raising=False)

    r = client.post("/analyze", data={"pasted_data": "a,b\n1,2"})

    assert r.status_code == 200
    body = r.json()
    assert body["phase"] == "input"
    assert "API key is missing" in body["error"]


def test_select_model_and_reset(client, seen):
    headers = {"x-session-id": "s1"}
    client.post("/analyze", data={"pasted_data": "a,b\n1,2"}, headers=headers)

    r = client.post("/session/model", json={"model": "DBSCAN"}, headers=headers)
    assert r.json()["active_code"] == "# MODEL: DBSCAN\ndb = 1"
    assert client.get("/session", headers=headers).json()["selected_model"] == "DBSCAN"

    # other sessions are untouched
    assert client.get("/session", headers={"x-session-id": "s2"}).json()["phase"] == "input"

    r = client.post("/reset", headers=headers)
    assert r.json() == {
        "phase": "input",
        "error": None,
        "result": None,
        "selected_model": None,
        "active_code": "",
    }
