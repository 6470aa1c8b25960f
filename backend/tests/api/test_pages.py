import base64
from pathlib import Path

from fastapi.testclient import TestClient

from htmlhost.core.config import settings
from tests.conftest import FakeClock, build_zip

HTML = "<!DOCTYPE html><html><body>hello</body></html>"
API = settings.API_V1_STR


def _zip_b64(files: dict[str, str]) -> str:
    return base64.b64encode(build_zip(files)).decode("ascii")


def test_health_check(client: TestClient) -> None:
    response = client.get(f"{API}/utils/health-check/")
    assert response.status_code == 200
    assert response.json() is True


def test_api_key_required(client: TestClient) -> None:
    response = client.post(f"{API}/upload", json={"html": HTML})
    assert response.status_code == 401
    response = client.post(f"{API}/upload", json={"html": HTML}, headers={"X-API-Key": "wrong"})
    assert response.status_code == 403


def test_upload_html(client: TestClient, api_headers: dict[str, str], uploads_dir: Path) -> None:
    response = client.post(
        f"{API}/upload",
        json={"html": HTML, "slug": "Hello", "description": "greeting"},
        headers=api_headers,
    )
    assert response.status_code == 201
    content = response.json()
    assert content["slug"] == "hello"
    assert content["url"] == "http://testserver/hello/"
    assert content["kind"] == "single-document"
    assert content["is_owner"] is True
    assert content["password_protected"] is False
    assert len(list(uploads_dir.iterdir())) == 1


def test_upload_zip_bearer_auth(client: TestClient, other_api_headers: dict[str, str]) -> None:
    response = client.post(
        f"{API}/upload",
        json={"zip": _zip_b64({"site/index.html": HTML, "site/a.css": "a{}"}), "filename": "site.zip"},
        headers=other_api_headers,
    )
    assert response.status_code == 201
    content = response.json()
    assert content["kind"] == "bundle"
    assert content["file_count"] == 2
    assert content["original_name"] == "site.zip"


def test_upload_requires_exactly_one_payload(client: TestClient, api_headers: dict[str, str]) -> None:
    assert client.post(f"{API}/upload", json={}, headers=api_headers).status_code == 422
    both = {"html": HTML, "zip": _zip_b64({"index.html": HTML})}
    assert client.post(f"{API}/upload", json=both, headers=api_headers).status_code == 422


def test_upload_errors_use_typed_payload(client: TestClient, api_headers: dict[str, str]) -> None:
    response = client.post(f"{API}/upload", json={"html": "plain text"}, headers=api_headers)
    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Invalid HTML content. Must contain valid HTML structure.",
        "reason": "invalid_document",
        "retryable": False,
    }

    response = client.post(
        f"{API}/upload",
        json={"zip": _zip_b64({"index.html": HTML, "evil.php": "x"})},
        headers=api_headers,
    )
    assert response.status_code == 400
    assert response.json()["reason"] == "bundle_rejected"
    assert response.json()["errors"] == ["Blocked file type: evil.php"]

    response = client.post(f"{API}/upload", json={"zip": "not base64!!"}, headers=api_headers)
    assert response.status_code == 400
    assert response.json()["reason"] == "invalid_input"

    response = client.post(f"{API}/upload", json={"html": HTML, "slug": "api"}, headers=api_headers)
    assert response.status_code == 409
    assert response.json()["reason"] == "slug_reserved"


def test_duplicate_slug_conflicts(client: TestClient, api_headers: dict[str, str]) -> None:
    body = {"html": HTML, "slug": "dup"}
    assert client.post(f"{API}/upload", json=body, headers=api_headers).status_code == 201
    response = client.post(f"{API}/upload", json=body, headers=api_headers)
    assert response.status_code == 409
    assert response.json()["reason"] == "slug_conflict"


def test_replace_and_ownership(
    client: TestClient, api_headers: dict[str, str], other_api_headers: dict[str, str]
) -> None:
    created = client.post(
        f"{API}/upload", json={"html": HTML, "slug": "page", "password": "pw"}, headers=api_headers
    ).json()

    response = client.put(f"{API}/upload/page", json={"html": HTML}, headers=other_api_headers)
    assert response.status_code == 403

    response = client.put(
        f"{API}/upload/page",
        json={"zip": _zip_b64({"index.html": HTML, "b.js": "1"}), "description": "v2"},
        headers=api_headers,
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["id"] == created["id"]
    assert updated["kind"] == "bundle"
    assert updated["description"] == "v2"
    assert updated["password_protected"] is True
    assert updated["expires_at"] == created["expires_at"]

    response = client.put(
        f"{API}/upload/page", json={"html": HTML, "password": None}, headers=api_headers
    )
    assert response.json()["password_protected"] is False

    response = client.put(f"{API}/upload/missing", json={"html": HTML}, headers=api_headers)
    assert response.status_code == 404


def test_file_info_archive_and_delete(
    client: TestClient, api_headers: dict[str, str], uploads_dir: Path
) -> None:
    client.post(f"{API}/upload", json={"html": HTML, "slug": "page"}, headers=api_headers)

    info = client.get(f"{API}/file/page", headers=api_headers)
    assert info.status_code == 200
    assert info.json()["archived"] is False

    assert client.post(f"{API}/archive/page", headers=api_headers).json()["success"] is True
    assert client.get(f"{API}/file/page", headers=api_headers).json()["archived"] is True
    assert client.post(f"{API}/unarchive/page", headers=api_headers).status_code == 200
    assert client.post(f"{API}/archive/missing", headers=api_headers).status_code == 404

    assert client.delete(f"{API}/file/page", headers=api_headers).status_code == 200
    assert list(uploads_dir.iterdir()) == []
    assert client.get(f"{API}/file/page", headers=api_headers).status_code == 404


def test_check_slug(client: TestClient, api_headers: dict[str, str]) -> None:
    client.post(f"{API}/upload", json={"html": HTML, "slug": "taken"}, headers=api_headers)
    assert client.get(f"{API}/check-slug/free", headers=api_headers).json() == {
        "available": True,
        "reason": None,
    }
    assert client.get(f"{API}/check-slug/taken", headers=api_headers).json()["reason"] == "taken"


def test_list_and_stats(
    client: TestClient, api_headers: dict[str, str], clock: FakeClock
) -> None:
    for slug, duration in [("one", "1day"), ("two", "permanent"), ("three", "30days")]:
        client.post(
            f"{API}/upload", json={"html": HTML, "slug": slug, "duration": duration}, headers=api_headers
        )
        clock.advance(seconds=1)

    listing = client.get(f"{API}/files", params={"limit": 2}, headers=api_headers).json()
    assert listing["count"] == 3
    assert [f["slug"] for f in listing["data"]] == ["three", "two"]

    clock.advance(days=2)
    stats = client.get(f"{API}/stats", headers=api_headers).json()
    assert stats["total_files"] == 3
    assert stats["expired_files"] == 1
    assert stats["active_size"] == 2 * len(HTML)
    expired = client.get(f"{API}/files", params={"search": "one"}, headers=api_headers).json()
    assert expired["data"][0]["expired"] is True


def test_upload_accepts_line_wrapped_base64(
    client: TestClient, api_headers: dict[str, str]
) -> None:
    # Pad the bundle so the encoded form spans several 76-column lines
    data = build_zip({"index.html": HTML, "notes.txt": "x" * 300})
    wrapped = base64.encodebytes(data).decode("ascii")
    assert "\n" in wrapped.strip()

    response = client.post(f"{API}/upload", json={"zip": wrapped}, headers=api_headers)
    assert response.status_code == 201, response.text
    assert response.json()["file_count"] == 2
