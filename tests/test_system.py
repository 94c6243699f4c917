from fastapi.testclient import TestClient


def get_client():
    # Import lazily so env set in conftest applies before the app loads
    from link_preview.main import app
    return TestClient(app)


def test_health_ok():
    client = get_client()
    r = client.get("/api/v1/health")
    assert r.status_code == 200
    body = r.json()
    assert body.get("status") == "healthy"
    assert body.get("cache_state") in {"disconnected", "connecting", "ready"}


def test_root_reports_service():
    client = get_client()
    r = client.get("/")
    assert r.status_code == 200
    body = r.json()
    assert body["service"] == "Link Preview Service"
    assert body["status"] == "running"
