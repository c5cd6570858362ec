"""
Health and root endpoints
"""


def test_health_reports_database(client):
    body = client.get("/health").json()

    assert body["status"] == "healthy"
    assert body["database"] == "healthy"
    assert body["service"] == "order-saga-service"


def test_root(client):
    assert client.get("/").json()["docs"] == "/docs"
