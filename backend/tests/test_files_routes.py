"""API tests for file upload, listing, preview, download and delete."""

import pytest
from fastapi.testclient import TestClient

from app.files.routes import content_disposition
from app.main import create_app


@pytest.fixture
def client(tmp_path, monkeypatch):
    """TestClient on a fresh database, lifespan running."""
    monkeypatch.setenv("FILEVAULT_DB_URL", f"sqlite+aiosqlite:///{tmp_path / 'files.db'}")
    with TestClient(create_app()) as c:
        yield c


def register(client: TestClient, username: str) -> str:
    """Register username (which logs the client in as them) and return the session id."""
    r = client.post(
        "/api/register",
        json={"username": username, "password": "testpass123", "email": f"{username}@example.com"},
    )
    assert r.status_code == 201
    return r.cookies["filevault_sid"]


def act_as(client: TestClient, sid: str) -> TestClient:
    """Switch the client to another user's session."""
    client.cookies.clear()
    client.cookies.set("filevault_sid", sid)
    return client


@pytest.fixture
def alice(client):
    register(client, "alice")
    return client


def _upload(client: TestClient, *files):
    return client.post(
        "/api/files/upload",
        files=[("files", (name, data, mime)) for name, data, mime in files],
    )


def test_upload_requires_auth(client: TestClient) -> None:
    r = _upload(client, ("a.txt", b"hi", "text/plain"))
    assert r.status_code == 401
    assert client.get("/api/files").status_code == 401


def test_upload_and_list(alice: TestClient) -> None:
    r = _upload(
        alice,
        ("notes.txt", b"hello", "text/plain"),
        ("photo.png", b"\x89PNG\r\n", "image/png"),
    )
    assert r.status_code == 201
    uploaded = r.json()["files"]
    assert [f["original_name"] for f in uploaded] == ["notes.txt", "photo.png"]
    assert uploaded[0]["file_size"] == 5
    assert "file_data" not in uploaded[0]

    listed = alice.get("/api/files").json()["files"]
    assert [f["original_name"] for f in listed] == ["photo.png", "notes.txt"]
    assert listed[0]["preview"] == "image"


def test_upload_without_files(alice: TestClient) -> None:
    r = alice.post("/api/files/upload", data={"other": "x"})
    assert r.status_code == 400
    assert r.json()["detail"] == "No files provided"


def test_upload_too_large(alice: TestClient, monkeypatch) -> None:
    monkeypatch.setenv("FILEVAULT_MAX_UPLOAD_BYTES", "4")
    r = _upload(alice, ("big.bin", b"12345", "application/octet-stream"))
    assert r.status_code == 413
    assert alice.get("/api/files").json()["files"] == []


def test_list_search_and_type_filter(alice: TestClient) -> None:
    _upload(
        alice,
        ("Trip.jpg", b"j", "image/jpeg"),
        ("trip.mp4", b"v", "video/mp4"),
        ("cv.pdf", b"p", "application/pdf"),
    )
    names = {f["original_name"] for f in alice.get("/api/files", params={"q": "TRIP"}).json()["files"]}
    assert names == {"Trip.jpg", "trip.mp4"}
    docs = alice.get("/api/files", params={"type": "documents"}).json()["files"]
    assert [f["original_name"] for f in docs] == ["cv.pdf"]
    assert alice.get("/api/files", params={"type": "bogus"}).status_code == 400


def test_preview_and_download(alice: TestClient) -> None:
    payload = b"\x00\x01\x02binary"
    file_id = _upload(alice, ("report 1.bin", payload, "application/octet-stream")).json()["files"][0]["id"]

    preview = alice.get(f"/api/files/{file_id}/preview")
    assert preview.status_code == 200
    assert preview.content == payload
    assert preview.headers["content-type"] == "application/octet-stream"
    assert preview.headers["content-disposition"].startswith("inline;")

    download = alice.get(f"/api/files/{file_id}/download")
    assert download.status_code == 200
    assert download.content == payload
    assert download.headers["content-length"] == str(len(payload))
    disposition = download.headers["content-disposition"]
    assert disposition.startswith("attachment;")
    assert "filename*=UTF-8''report%201.bin" in disposition


def test_other_owner_sees_not_found(client: TestClient) -> None:
    """Bob gets the same 404 for Alice's file as for a file that does not exist."""
    alice_sid = register(client, "alice")
    file_id = _upload(client, ("secret.txt", b"s3cret", "text/plain")).json()["files"][0]["id"]
    missing = "00000000-0000-0000-0000-000000000000"

    register(client, "bob")
    for suffix in ("/preview", "/download"):
        foreign = client.get(f"/api/files/{file_id}{suffix}")
        absent = client.get(f"/api/files/{missing}{suffix}")
        assert foreign.status_code == absent.status_code == 404
        assert foreign.json() == absent.json() == {"detail": "File not found"}

    assert client.get("/api/files").json()["files"] == []

    foreign_delete = client.delete(f"/api/files/{file_id}")
    absent_delete = client.delete(f"/api/files/{missing}")
    assert foreign_delete.status_code == absent_delete.status_code == 404
    assert foreign_delete.json() == absent_delete.json()

    # Still there for Alice
    act_as(client, alice_sid)
    assert client.get(f"/api/files/{file_id}/download").content == b"s3cret"


def test_delete_own_file(alice: TestClient) -> None:
    file_id = _upload(alice, ("a.txt", b"a", "text/plain")).json()["files"][0]["id"]
    r = alice.delete(f"/api/files/{file_id}")
    assert r.status_code == 200
    assert r.json() == {"message": "File deleted successfully"}
    assert alice.get(f"/api/files/{file_id}/preview").status_code == 404
    assert alice.delete(f"/api/files/{file_id}").status_code == 404


def test_content_disposition_ascii_fallback() -> None:
    """Quotes and non-ASCII characters never break out of the quoted filename."""
    value = content_disposition("attachment", 'a"bé.txt')
    assert value.startswith('attachment; filename="a_b?.txt";')
    assert value.endswith("filename*=UTF-8''a%22b%C3%A9.txt")


def test_preview_active_content_served_as_text(alice: TestClient) -> None:
    """HTML and SVG previews are sent as text/plain in a sandbox; download keeps the declared type."""
    html = b"<script>alert(1)</script>"
    html_id = _upload(alice, ("page.html", html, "text/html")).json()["files"][0]["id"]
    svg_id = _upload(alice, ("logo.svg", b"<svg/>", "image/svg+xml")).json()["files"][0]["id"]

    for file_id in (html_id, svg_id):
        preview = alice.get(f"/api/files/{file_id}/preview")
        assert preview.status_code == 200
        assert preview.headers["content-type"].startswith("text/plain")
        assert preview.headers["content-security-policy"] == "sandbox"

    assert alice.get(f"/api/files/{html_id}/preview").content == html
    download = alice.get(f"/api/files/{html_id}/download")
    assert download.headers["content-type"].startswith("text/html")
    assert download.headers["content-disposition"].startswith("attachment;")
