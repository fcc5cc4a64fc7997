from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from soapscribe.core.settings import get_settings
from soapscribe.generation.client import EmptyResponse, NetworkFailure
from soapscribe.generation.deps import get_generation_client
from soapscribe.main import create_app
from tests.sessions._helpers import ScriptedGenerationClient

MISSING_ID = "00000000-0000-0000-0000-000000000000"


@pytest.fixture
def generation() -> ScriptedGenerationClient:
    return ScriptedGenerationClient(
        {
            1: "SUBJECTIVE: Cough x4 days. PLAN: Fluids.",
            2: NetworkFailure("offline"),
            3: EmptyResponse("blank"),
            4: {"notes": "no section keys"},
        }
    )


@pytest.fixture
def session_client(generation: ScriptedGenerationClient) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_generation_client] = lambda: generation
    with TestClient(app) as c:
        yield c


def _open_session(client: TestClient, **body) -> str:
    # Never follow redirects on POST; a 307/308 would re-POST and open a second session.
    res = client.post("/sessions", json=body, follow_redirects=False)
    assert res.status_code == 201, res.text
    return res.json()["id"]


def test_create_get_and_delete_session(session_client: TestClient) -> None:
    res = session_client.post(
        "/sessions",
        json={"note": {"plan": "Rest."}, "appointment_type": "follow_up"},
    )
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["note"] == {"subjective": "", "objective": "", "assessment": "", "plan": "Rest."}
    assert body["pending"] is None
    assert body["latest_token"] == 0
    assert body["appointment_type"] == "follow_up"

    session_id = body["id"]
    assert session_client.get(f"/sessions/{session_id}").status_code == 200
    assert session_client.delete(f"/sessions/{session_id}").status_code == 204
    assert session_client.get(f"/sessions/{session_id}").status_code == 404
    assert session_client.delete(f"/sessions/{session_id}").status_code == 404


def test_unknown_session_returns_404(session_client: TestClient) -> None:
    res = session_client.post(
        f"/sessions/{MISSING_ID}/suggestions", json={"query": "x", "target_section": "plan"}
    )
    assert res.status_code == 404


def test_suggestion_then_approve_updates_note(session_client: TestClient) -> None:
    session_id = _open_session(session_client, note={"plan": "Rest."})

    res = session_client.post(
        f"/sessions/{session_id}/suggestions",
        json={"query": "summarize", "target_section": "subjective"},
    )
    assert res.status_code == 200, res.text
    outcome = res.json()
    assert outcome["status"] == "suggested"
    assert outcome["token"] == 1
    assert outcome["suggestion"]["content"]["subjective"] == "Cough x4 days."
    assert outcome["suggestion"]["status"] == "pending"

    # The note is unchanged until approval.
    assert session_client.get(f"/sessions/{session_id}").json()["note"]["plan"] == "Rest."

    res = session_client.post(
        f"/sessions/{session_id}/suggestion/approve",
        json={"mode": "append", "targets": ["subjective", "plan"]},
    )
    assert res.status_code == 200, res.text
    assert res.json() == {
        "subjective": "Cough x4 days.",
        "objective": "",
        "assessment": "",
        "plan": "Rest.\n\nFluids.",
    }

    session = session_client.get(f"/sessions/{session_id}").json()
    assert session["pending"] is None
    assert session["note"]["plan"] == "Rest.\n\nFluids."


def test_approve_without_pending_returns_409(session_client: TestClient) -> None:
    session_id = _open_session(session_client)

    res = session_client.post(
        f"/sessions/{session_id}/suggestion/approve",
        json={"mode": "replace", "targets": ["plan"]},
    )
    assert res.status_code == 409


def test_generation_failures_return_502_and_parse_failures_422(
    session_client: TestClient,
) -> None:
    session_id = _open_session(session_client, note={"assessment": "URI."})
    url = f"/sessions/{session_id}/suggestions"
    body = {"query": "plan please", "target_section": "plan"}

    assert session_client.post(url, json=body).status_code == 200  # token 1

    res = session_client.post(url, json=body)  # token 2: network failure
    assert res.status_code == 502
    assert res.json()["detail"] == {"error": "network_failure", "retryable": True}

    res = session_client.post(url, json=body)  # token 3: empty response
    assert res.status_code == 502
    assert res.json()["detail"]["error"] == "empty_response"

    res = session_client.post(url, json=body)  # token 4: nothing to extract
    assert res.status_code == 422
    assert res.json()["detail"] == {"error": "empty_extraction", "retryable": True}

    # Failures never touch the note or the pending suggestion from token 1.
    session = session_client.get(f"/sessions/{session_id}").json()
    assert session["note"]["assessment"] == "URI."
    assert session["pending"]["token"] == 1
    assert session["latest_token"] == 4


def test_discard_clears_pending(session_client: TestClient) -> None:
    session_id = _open_session(session_client)
    session_client.post(
        f"/sessions/{session_id}/suggestions", json={"query": "x", "target_section": "plan"}
    )

    res = session_client.post(f"/sessions/{session_id}/suggestion/discard")
    assert res.status_code == 200
    assert res.json()["pending"] is None


def test_audio_upload_creates_suggestion(
    session_client: TestClient, generation: ScriptedGenerationClient
) -> None:
    session_id = _open_session(session_client)

    res = session_client.post(
        f"/sessions/{session_id}/audio",
        files={"audio": ("recording.webm", b"\x1a\x45\xdf\xa3audio", "audio/webm")},
    )
    assert res.status_code == 200, res.text
    assert res.json()["suggestion"]["content"]["plan"] == "Fluids."

    kind, token, audio = generation.calls[0]
    assert kind == "audio"
    assert token == 1
    assert audio.data == b"\x1a\x45\xdf\xa3audio"
    assert audio.mime_type == "audio/webm"


def test_audio_upload_over_limit_returns_413(
    session_client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("GENERATION_MAX_AUDIO_MB", "1")
    get_settings.cache_clear()
    session_id = _open_session(session_client)

    res = session_client.post(
        f"/sessions/{session_id}/audio",
        files={"audio": ("recording.webm", b"\0" * (1024 * 1024 + 1), "audio/webm")},
    )
    assert res.status_code == 413


def test_audio_upload_requires_file(session_client: TestClient) -> None:
    session_id = _open_session(session_client)

    res = session_client.post(f"/sessions/{session_id}/audio", data={"other": "x"})
    assert res.status_code == 422


def test_invalid_target_section_is_rejected(session_client: TestClient) -> None:
    session_id = _open_session(session_client)

    res = session_client.post(
        f"/sessions/{session_id}/suggestions", json={"query": "x", "target_section": "vitals"}
    )
    assert res.status_code == 422


def test_suggestions_without_generation_service_return_503(client: TestClient) -> None:
    session_id = _open_session(client)

    res = client.post(
        f"/sessions/{session_id}/suggestions", json={"query": "x", "target_section": "plan"}
    )
    assert res.status_code == 503
