from fastapi.testclient import TestClient

from whatsapp_ai_bot.web.app import create_app


class StubSource:
    def __init__(self, qr_code_data: str = ""):
        self.qr_code_data = qr_code_data

    def status_snapshot(self):
        return {"state": "qr_pending", "aiSelected": "GEMINI"}


def test_qrcode_returns_latest_code():
    client = TestClient(create_app(StubSource("data:image/png;base64,AAAA")))

    response = client.get("/qrcode")

    assert response.status_code == 200
    assert response.json() == {"qrCodeData": "data:image/png;base64,AAAA"}


def test_qrcode_is_empty_before_first_code():
    client = TestClient(create_app(StubSource()))

    assert client.get("/qrcode").json() == {"qrCodeData": ""}


def test_qrcode_follows_source_updates():
    source = StubSource("first")
    client = TestClient(create_app(source))

    source.qr_code_data = "second"

    assert client.get("/qrcode").json()["qrCodeData"] == "second"


def test_status_endpoint():
    client = TestClient(create_app(StubSource()))

    assert client.get("/status").json() == {"state": "qr_pending", "aiSelected": "GEMINI"}


def test_index_page_is_served():
    client = TestClient(create_app(StubSource()))

    response = client.get("/")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "/qrcode" in response.text


def test_static_files_and_missing_paths(tmp_path):
    (tmp_path / "index.html").write_text("<html>login</html>")
    (tmp_path / "app.css").write_text("body {}")
    client = TestClient(create_app(StubSource(), public_dir=tmp_path))

    assert client.get("/").text == "<html>login</html>"
    assert client.get("/app.css").text == "body {}"
    assert client.get("/missing.js").status_code == 404
