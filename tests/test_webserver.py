"""Tests for the Flask preview server."""
from __future__ import annotations

import pytest
from werkzeug.exceptions import Forbidden

from autodir.app.direction import Direction
from autodir.webserver.server import WebServer


@pytest.fixture
def notes(tmp_path):
    root = tmp_path / "notes"
    root.mkdir()
    (root / "note.md").write_text("שלום עולם\n\nHello", encoding="utf-8")
    (root / "sub").mkdir()
    (root / "sub" / "english.txt").write_text("Just text", encoding="utf-8")
    (root / "image.png").write_bytes(b"\x89PNG")
    (tmp_path / "secret.md").write_text("secret", encoding="utf-8")
    return root


@pytest.fixture
def client(notes):
    server = WebServer(str(notes))
    return server.app.test_client()


def test_index_lists_notes(client):
    resp = client.get("/")
    assert resp.status_code == 200
    body = resp.get_data(as_text=True)
    assert "/wiki/note" in body
    assert "/wiki/sub/english" in body
    assert "image.png" not in body


def test_page_rendered_with_direction_classes(client):
    resp = client.get("/wiki/note")
    assert resp.status_code == 200
    body = resp.get_data(as_text=True)
    assert '<article class="markdown-preview-view">' in body
    assert '<p class="esm-rtl">שלום עולם</p>' in body
    assert '<p class="esm-ltr">Hello</p>' in body


def test_txt_extension_resolved(client):
    resp = client.get("/wiki/sub/english")
    assert resp.status_code == 200
    assert "esm-ltr" in resp.get_data(as_text=True)


def test_fixed_direction_sets_container(client):
    body = client.get("/wiki/note?dir=rtl").get_data(as_text=True)
    assert '<article class="markdown-preview-view" dir="rtl">' in body
    assert "esm-rtl" not in body


def test_server_default_direction(notes):
    server = WebServer(str(notes), direction=Direction.LTR)
    body = server.app.test_client().get("/wiki/note").get_data(as_text=True)
    assert 'dir="ltr"' in body


def test_missing_page_is_404(client):
    assert client.get("/wiki/missing").status_code == 404


def test_path_outside_folder_is_forbidden(notes):
    server = WebServer(str(notes))
    with pytest.raises(Forbidden):
        server._resolve_inside_vault("../secret.md")


def test_stylesheet_served(client):
    resp = client.get("/static/autodir.css")
    assert resp.status_code == 200
    assert ".esm-rtl" in resp.get_data(as_text=True)
    resp.close()
    assert client.get("/static/missing.css").status_code == 404


def test_start_and_stop(notes, monkeypatch):
    server = WebServer(str(notes))
    calls = []
    monkeypatch.setattr(server.app, "run", lambda **kwargs: calls.append(kwargs))
    assert server.get_url() is None
    server.stop()

    assert server.start("127.0.0.1", 5123) == ("127.0.0.1", 5123)
    server.server_thread.join(timeout=5)
    assert calls == [{"host": "127.0.0.1", "port": 5123, "debug": False, "use_reloader": False}]
    assert server.get_url() == "http://127.0.0.1:5123/"
    assert server.start("127.0.0.1", 6000) == ("127.0.0.1", 5123)

    server.stop()
    assert server.get_url() is None
    assert server.is_running is False
