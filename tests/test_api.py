import fitz
import pytest

from launchpad.database import crud
from launchpad.database.database import db_session
from launchpad.exceptions import ConfigurationError, ProviderError
from launchpad.storage.pdf_extract import extract_pdf
from launchpad.storage.supabase import pitch_deck_uploader

from conftest import auth


def make_pdf(text="Our market is huge"):
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


# --------------------------------------------------------------------------- #
# PDF extraction
# --------------------------------------------------------------------------- #
class TestPdfExtract:
    def test_no_file(self, client):
        res = client.post("/api/pdf-extract")
        assert res.status_code == 400
        assert res.json() == {"error": "No file provided"}

    def test_wrong_type(self, client):
        res = client.post("/api/pdf-extract", files={"file": ("deck.txt", b"hello", "text/plain")})
        assert res.status_code == 400
        assert res.json() == {"error": "File must be a PDF"}

    def test_too_large(self, client):
        big = b"0" * (10 * 1024 * 1024 + 1)
        res = client.post("/api/pdf-extract", files={"file": ("deck.pdf", big, "application/pdf")})
        assert res.status_code == 400
        assert res.json() == {"error": "File size must be less than 10MB"}

    def test_unreadable_pdf_falls_back(self, client):
        res = client.post("/api/pdf-extract", files={"file": ("deck.pdf", b"not a pdf", "application/pdf")})
        body = res.json()
        assert res.status_code == 200
        assert body["method"] == "fallback"
        assert body["pages"] == 1
        assert "deck.pdf" in body["text"]

    def test_text_layer(self, client):
        res = client.post("/api/pdf-extract", files={"file": ("deck.pdf", make_pdf(), "application/pdf")})
        body = res.json()
        assert res.status_code == 200
        assert body["success"] is True
        assert body["method"] == "pymupdf"
        assert body["pages"] == 1
        assert "Our market is huge" in body["text"]


def test_extract_pdf_title_defaults_to_filename():
    result = extract_pdf(make_pdf(), "seed.pdf")
    assert result["info"]["title"] == "seed.pdf"


# --------------------------------------------------------------------------- #
# Pitch-deck storage
# --------------------------------------------------------------------------- #
class FakeBucket:
    def __init__(self, failures=0):
        self.failures = failures
        self.uploads = []

    def upload(self, path, file, file_options):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("storage unavailable")
        self.uploads.append((path, file_options))

    def get_public_url(self, path):
        return f"https://cdn.example/{path}"


class FakeSupabase:
    def __init__(self, bucket):
        self.bucket = bucket
        self.storage = self
        self.buckets = []

    def from_(self, name):
        self.buckets.append(name)
        return self.bucket


def test_pitch_deck_key():
    assert pitch_deck_key_value("deck.pdf") == "pitch-deck-1700000000000-deck.pdf"
    assert pitch_deck_key_value("a/b.pdf") == "pitch-deck-1700000000000-a_b.pdf"


def pitch_deck_key_value(name):
    return pitch_deck_uploader.pitch_deck_key(name, now_ms=1700000000000)


def test_upload_retries_then_succeeds(monkeypatch):
    bucket = FakeBucket(failures=1)
    fake = FakeSupabase(bucket)
    monkeypatch.setattr(pitch_deck_uploader, "get_supabase", lambda: fake)

    stored = pitch_deck_uploader.upload_pitch_deck(b"%PDF", "deck.pdf", retry_delay=0)

    assert stored["storage_path"].startswith("pitch-deck-")
    assert stored["public_url"] == f"https://cdn.example/{stored['storage_path']}"
    assert len(bucket.uploads) == 1
    assert set(fake.buckets) == {"pitch-decks"}


def test_upload_gives_up(monkeypatch):
    fake = FakeSupabase(FakeBucket(failures=5))
    monkeypatch.setattr(pitch_deck_uploader, "get_supabase", lambda: fake)
    with pytest.raises(ProviderError):
        pitch_deck_uploader.upload_pitch_deck(b"%PDF", "deck.pdf", max_retries=2, retry_delay=0)


def test_upload_without_credentials():
    with pytest.raises(ConfigurationError):
        pitch_deck_uploader.upload_pitch_deck(b"%PDF", "deck.pdf")


def test_pitch_deck_route(client, founder, investor, monkeypatch):
    monkeypatch.setattr(
        "launchpad.api.router.upload_pitch_deck",
        lambda data, filename: {"storage_path": "pitch-deck-1-deck.pdf", "public_url": "https://cdn/deck.pdf"},
    )
    files = {"file": ("deck.pdf", make_pdf("Traction slide"), "application/pdf")}

    res = client.post("/api/pitch-decks", files=files, headers=auth(founder.user_id))
    assert res.status_code == 201
    assert res.json()["pitch_deck_url"] == "https://cdn/deck.pdf"
    assert "Traction slide" in res.json()["pitch_deck_text"]

    res = client.post("/api/pitch-decks", files=files, headers=auth(investor.user_id))
    assert res.status_code == 403


# --------------------------------------------------------------------------- #
# Auth + marketplace routes
# --------------------------------------------------------------------------- #
def test_requires_token(client):
    res = client.get("/api/dashboard")
    assert res.status_code == 401
    assert res.json()["code"] == "AUTHENTICATION_ERROR"


def test_unknown_profile(client):
    res = client.get("/api/dashboard", headers=auth("ghost"))
    assert res.status_code == 401
    assert res.json()["detail"] == "Profile not found. Please complete signup."


def test_startup_flow(client, founder, investor):
    res = client.post(
        "/api/startups",
        json={"name": "Foo", "tagline": "Payments", "funding_ask": 100000, "equity_offered": 10},
        headers=auth(founder.user_id),
    )
    assert res.status_code == 201
    startup = res.json()
    assert startup["current_valuation"] == 1_000_000

    assert client.get(f"/api/startups/{startup['id']}").json()["name"] == "Foo"
    assert client.get("/api/startups/missing").status_code == 404
    assert [s["id"] for s in client.get("/api/startups", params={"search": "pay"}).json()] == [startup["id"]]

    res = client.post("/api/investments", json={"startup_id": startup["id"], "amount": 5000},
                      headers=auth(investor.user_id))
    assert res.status_code == 201
    offer = res.json()

    res = client.post(f"/api/investments/{offer['id']}/respond", json={"accept": True},
                      headers=auth(founder.user_id))
    assert res.json()["total_invested"] == 5000

    board = client.get("/api/leaderboard").json()
    assert board[0]["rank"] == 1
    assert client.get("/api/leaderboard", params={"tab": "nope"}).status_code == 400

    stats = client.get("/api/dashboard", headers=auth(founder.user_id)).json()
    assert stats["total_invested"] == 5000


def test_investor_cannot_create_startup(client, investor):
    res = client.post("/api/startups", json={"name": "Foo"}, headers=auth(investor.user_id))
    assert res.status_code == 403


def test_field_suggestion(client, founder):
    res = client.post("/api/startups/suggest", json={"name": "Foo", "field": "tagline"},
                      headers=auth(founder.user_id))
    assert res.status_code == 200
    assert res.json() == {"field": "tagline", "suggestion": "ok"}


def test_pitch_session_routes(client, founder, investor, startup):
    res = client.post(
        "/api/pitch-sessions",
        json={"startup_id": startup.id, "session_name": "Demo day", "duration_minutes": 30},
        headers=auth(founder.user_id),
    )
    assert res.status_code == 201
    session_id = res.json()["id"]
    assert [s["id"] for s in client.get("/api/pitch-sessions").json()] == [session_id]

    res = client.post(f"/api/pitch-sessions/{session_id}/messages", json={"message": "Hi"},
                      headers=auth(investor.user_id))
    assert res.status_code == 201

    # the AI reply runs as a background task after the response
    messages = client.get(f"/api/pitch-sessions/{session_id}/messages", headers=auth(investor.user_id)).json()
    assert [m["message_type"] for m in messages] == ["text", "ai_response"]
    assert messages[1]["user_id"] == crud.ai_investor_id(session_id)

    res = client.post(f"/api/pitch-sessions/{session_id}/messages", json={"message": "  "},
                      headers=auth(investor.user_id))
    assert res.status_code == 400

    res = client.post(f"/api/pitch-sessions/{session_id}/ai", json={"provider": "gemini"},
                      headers=auth(founder.user_id))
    assert res.status_code == 201
    assert res.json()["ai_provider"] == "gemini"


def test_pitch_room_socket(client, founder, investor, pitch_session):
    with db_session() as db:
        crud.create_chat_message(db, pitch_session.id, founder.user_id, "welcome")

    url = f"/api/pitch-sessions/{pitch_session.id}/ws?token={investor.user_id}"
    with client.websocket_connect(url) as ws:
        history = ws.receive_json()
        assert history["type"] == "history"
        assert [m["message"] for m in history["messages"]] == ["welcome"]

        ws.send_json({"message": "Question about churn"})
        echoed = ws.receive_json()
        assert echoed["type"] == "message"
        assert echoed["message"]["message"] == "Question about churn"

        reply = ws.receive_json()
        assert reply["message"]["message_type"] == "ai_response"
        assert reply["message"]["html"] == "<p>ok</p>"


def test_pitch_room_socket_rejects_non_object_frames(client, investor, pitch_session):
    url = f"/api/pitch-sessions/{pitch_session.id}/ws?token={investor.user_id}"
    with client.websocket_connect(url) as ws:
        assert ws.receive_json()["type"] == "history"

        ws.send_json(["not", "an", "object"])
        error = ws.receive_json()
        assert error["type"] == "error"
        assert error["code"] == "INVALID_INPUT"

        ws.send_json({"message": "Still here?"})
        assert ws.receive_json()["message"]["message"] == "Still here?"
        assert ws.receive_json()["message"]["message_type"] == "ai_response"


def test_pitch_room_socket_rejects_bad_token(client, pitch_session):
    with client.websocket_connect(f"/api/pitch-sessions/{pitch_session.id}/ws") as ws:
        assert ws.receive_json()["code"] == "AUTHENTICATION_ERROR"


def test_direct_message_routes(client, founder, investor, startup):
    res = client.post("/api/messages/start", json={"founder_id": founder.user_id},
                      headers=auth(investor.user_id))
    assert res.status_code == 201

    res = client.post(f"/api/messages/{founder.user_id}", json={"message": "Hello"},
                      headers=auth(investor.user_id))
    assert res.status_code == 201
    assert res.json()["mirror_event_id"]

    conversations = client.get("/api/messages", headers=auth(investor.user_id)).json()
    assert conversations[0]["founder_id"] == founder.user_id

    thread = client.get(f"/api/messages/{founder.user_id}", headers=auth(investor.user_id)).json()
    assert [e["source"] for e in thread] == ["direct", "pitch_session"]

    assert client.get("/api/notifications", headers=auth(founder.user_id)).json() == []
    res = client.post("/api/notifications/read", json={}, headers=auth(founder.user_id))
    assert res.json() == {"updated": 0}
