import base64

from fastapi.testclient import TestClient

from htmlhost.core.config import settings
from tests.conftest import FakeClock, build_zip

HTML = "<!DOCTYPE html><html><body>hello</body></html>"
API = settings.API_V1_STR


def _upload(client: TestClient, headers: dict[str, str], **body) -> dict:
    response = client.post(f"{API}/upload", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_serves_document_and_counts_access(
    client: TestClient, api_headers: dict[str, str]
) -> None:
    _upload(client, api_headers, html=HTML, slug="page")

    response = client.get("/page/")
    assert response.status_code == 200
    assert response.text == HTML
    assert response.headers["content-type"].startswith("text/html")
    assert response.headers["x-content-type-options"] == "nosniff"

    client.get("/PAGE/")
    info = client.get(f"{API}/file/page", headers=api_headers).json()
    assert info["access_count"] == 2


def test_bare_slug_redirects(client: TestClient, api_headers: dict[str, str]) -> None:
    _upload(client, api_headers, html=HTML, slug="page")
    response = client.get("/page", follow_redirects=False)
    assert response.status_code == 301
    assert response.headers["location"] == "/page/"


def test_serves_bundle_assets(client: TestClient, api_headers: dict[str, str]) -> None:
    data = build_zip({"proj/index.html": HTML, "proj/css/a.css": "a{}"})
    _upload(client, api_headers, zip=base64.b64encode(data).decode(), slug="site")

    response = client.get("/site/css/a.css")
    assert response.status_code == 200
    assert response.text == "a{}"
    assert client.get("/site/proj/index.html").status_code == 404
    assert client.get("/site/..%2F..%2Fhosting.db").status_code == 404

    # Assets do not count as page views
    info = client.get(f"{API}/file/site", headers=api_headers).json()
    assert info["access_count"] == 0


def test_expired_and_missing_pages(
    client: TestClient, api_headers: dict[str, str], clock: FakeClock
) -> None:
    _upload(client, api_headers, html=HTML, slug="brief", duration="1day")
    clock.advance(days=1, seconds=1)

    response = client.get("/brief/")
    assert response.status_code == 410
    assert "Content Expired" in response.text

    assert client.get("/nothing-here/").status_code == 404


def test_archived_pages_are_hidden(client: TestClient, api_headers: dict[str, str]) -> None:
    _upload(client, api_headers, html=HTML, slug="page")
    client.post(f"{API}/archive/page", headers=api_headers)
    assert client.get("/page/").status_code == 404


def test_password_protected_page(client: TestClient, api_headers: dict[str, str]) -> None:
    _upload(client, api_headers, html=HTML, slug="secret", password="hunter2")

    response = client.get("/secret/")
    assert response.status_code == 401
    assert response.headers["www-authenticate"].startswith("Basic")
    assert client.get("/secret/", auth=("viewer", "wrong")).status_code == 401

    response = client.get("/secret/", auth=("viewer", "hunter2"))
    assert response.status_code == 200
    assert response.text == HTML


def test_cache_headers_depend_on_protection(
    client: TestClient, api_headers: dict[str, str]
) -> None:
    _upload(client, api_headers, html=HTML, slug="open")
    _upload(client, api_headers, html=HTML, slug="locked", password="pw")

    assert client.get("/open/").headers["cache-control"] == "public, max-age=3600"
    response = client.get("/locked/", auth=("viewer", "pw"))
    assert response.status_code == 200
    assert response.headers["cache-control"] == "private, no-store"
