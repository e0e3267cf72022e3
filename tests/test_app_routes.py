import pytest
from fastapi.testclient import TestClient

from app import app


def route_table():
    return {
        (method, route.path)
        for route in app.routes
        for method in getattr(route, "methods", None) or ()
    }


@pytest.mark.parametrize(
    "method, path",
    [
        ("GET", "/api/listings"),
        ("POST", "/api/listings"),
        ("GET", "/api/cart"),
        ("POST", "/api/cart"),
        ("DELETE", "/api/cart"),
        ("GET", "/api/cart/count"),
        ("GET", "/api/conversations"),
        ("POST", "/api/conversations"),
        ("GET", "/api/messages"),
        ("POST", "/api/messages"),
        ("POST", "/api/messages/{message_id}/read"),
        ("POST", "/api/reports"),
        ("POST", "/api/contact"),
        ("GET", "/api/notifications"),
        ("GET", "/api/notifications/unread-count"),
        ("POST", "/api/notifications/read-all"),
        ("POST", "/api/notifications/{notification_id}/read"),
        ("GET", "/api/admin/reports"),
    ],
)
def test_collection_routes_are_mounted_without_trailing_slash(method, path):
    assert (method, path) in route_table()


def test_notifications_require_sign_in():
    res = TestClient(app).get("/api/notifications/unread-count")

    assert res.status_code == 401
