import pytest
from fastapi.testclient import TestClient

from graphscript.server.main import app


@pytest.fixture
def client():
    return TestClient(app)


def graph(**overrides):
    data = {
        "id": "wf_api",
        "nodes": [
            {"id": "n1", "type": "trigger", "op": "trigger.core:manual"},
            {"id": "n2", "type": "action", "op": "action.core:log",
             "params": {"message": {"mode": "static", "value": "hello"}}},
        ],
        "edges": [{"id": "e1", "source": "n1", "target": "n2"}],
    }
    data.update(overrides)
    return data


class TestServer:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_compile(self, client):
        response = client.post("/api/compile", json={"graph": graph()})
        assert response.status_code == 200
        body = response.json()
        assert body["workflowId"] == "wf_api"
        assert body["stats"] == {"nodes": 2, "triggers": 1, "actions": 1, "transforms": 0}
        assert body["files"][0]["path"] == "Code.gs"
        assert "function main(ctx)" in body["files"][0]["content"]
        assert body["diagnostics"] == []

    def test_compile_reports_diagnostics(self, client):
        data = graph()
        data["edges"].append({"id": "e2", "source": "n2", "target": "ghost"})
        body = client.post("/api/compile", json={"graph": data}).json()
        assert body["diagnostics"] == [{
            "level": "warning",
            "code": "dangling-edge",
            "message": "edge 'e2' references missing node(s): 'ghost'",
            "nodeId": None,
            "edgeId": "e2",
        }]

    def test_schema_error_is_422(self, client):
        response = client.post("/api/compile", json={"graph": {"nodes": {}, "edges": []}})
        assert response.status_code == 422
        assert "nodes must be a list" in response.json()["detail"]

    def test_missing_graph_is_422(self, client):
        assert client.post("/api/compile", json={"strict": True}).status_code == 422

    def test_strict_cycle_is_409(self, client):
        data = graph()
        data["edges"].append({"id": "back", "source": "n2", "target": "n1"})
        response = client.post("/api/compile", json={"graph": data, "strict": True})
        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["diagnostics"][-1]["code"] == "cycle"

    def test_operations(self, client):
        response = client.get("/api/operations")
        assert response.status_code == 200
        keys = [entry["key"] for entry in response.json()]
        assert "action.http:request" in keys
        assert keys == sorted(keys)
        http = next(entry for entry in response.json() if entry["key"] == "action.http:request")
        assert http["runtime"] == ["http"]
