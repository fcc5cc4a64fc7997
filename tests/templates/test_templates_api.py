from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

MISSING_ID = "00000000-0000-0000-0000-000000000000"


def _create_template(client: TestClient, **overrides) -> dict:
    body = {
        "name": "Annual physical",
        "specialty": "family_medicine",
        "content": "<h3>Subjective</h3>",
        "author": "dr-a",
        "tags": ["preventive"],
    }
    body.update(overrides)
    # Never follow redirects on POST; a 307/308 would re-POST and create duplicates.
    res = client.post("/templates", json=body, follow_redirects=False)
    assert res.status_code == 201, res.text
    return res.json()


def test_create_and_get_template(client: TestClient) -> None:
    created = _create_template(client)

    assert created["version"] == 1
    assert created["tags"] == ["preventive"]

    res = client.get(f"/templates/{created['id']}")
    assert res.status_code == 200
    assert res.json()["content"] == "<h3>Subjective</h3>"

    assert client.get(f"/templates/{MISSING_ID}").status_code == 404


def test_blank_name_is_a_business_validation_error(client: TestClient) -> None:
    res = client.post("/templates", json={"name": "   ", "content": "x"})

    assert res.status_code == 400
    assert res.json() == {"detail": "Template name must not be empty."}


def test_list_filters_by_specialty(client: TestClient) -> None:
    a = _create_template(client, name="A", specialty="cardiology")
    _create_template(client, name="B", specialty="dermatology")

    res = client.get("/templates", params={"specialty": "cardiology"})
    assert res.status_code == 200
    assert [t["id"] for t in res.json()["items"]] == [a["id"]]

    assert len(client.get("/templates").json()["items"]) == 2


def test_edit_with_current_version_bumps_version(client: TestClient) -> None:
    created = _create_template(client)

    res = client.put(
        f"/templates/{created['id']}",
        json={"content": "v2", "author": "dr-b", "expected_version": 1},
    )
    assert res.status_code == 200, res.text
    assert res.json()["version"] == 2
    assert res.json()["updated_by"] == "dr-b"

    history = client.get(f"/templates/{created['id']}/versions").json()
    assert history["current_version"] == 2
    assert [(v["version"], v["content"]) for v in history["items"]] == [
        (1, "<h3>Subjective</h3>")
    ]


def test_second_edit_on_same_base_version_returns_409(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO, logger="soapscribe.templates")
    created = _create_template(client)
    url = f"/templates/{created['id']}"

    first = client.put(url, json={"content": "from A", "author": "a", "expected_version": 1})
    second = client.put(url, json={"content": "from B", "author": "b", "expected_version": 1})

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["error"] == "version_conflict"
    assert second.json()["expected_version"] == 1

    current = client.get(url).json()
    assert current["version"] == 2
    assert current["content"] == "from A"
    assert len(client.get(f"{url}/versions").json()["items"]) == 1

    conflicts = [r for r in caplog.records if r.getMessage() == "Template version conflict"]
    assert len(conflicts) == 1
    assert conflicts[0].__dict__["template_id"] == created["id"]


def test_restore_adds_version_with_historical_content(client: TestClient) -> None:
    created = _create_template(client, content="original")
    url = f"/templates/{created['id']}"
    client.put(url, json={"content": "changed", "expected_version": 1})

    res = client.post(
        f"{url}/restore", json={"target_version": 1, "author": "dr-c", "expected_version": 2}
    )
    assert res.status_code == 200, res.text
    assert res.json()["version"] == 3
    assert res.json()["content"] == "original"

    history = client.get(f"{url}/versions").json()["items"]
    assert [v["version"] for v in history] == [1, 2]


def test_restore_unknown_version_returns_404(client: TestClient) -> None:
    created = _create_template(client)

    res = client.post(
        f"/templates/{created['id']}/restore",
        json={"target_version": 7, "expected_version": 1},
    )
    assert res.status_code == 404
    assert res.json()["error"] == "template_version_not_found"


def test_restore_with_stale_version_returns_409(client: TestClient) -> None:
    created = _create_template(client)
    url = f"/templates/{created['id']}"
    client.put(url, json={"content": "v2", "expected_version": 1})

    res = client.post(f"{url}/restore", json={"target_version": 1, "expected_version": 1})
    assert res.status_code == 409


def test_duplicate_creates_independent_template(client: TestClient) -> None:
    created = _create_template(client)
    client.put(f"/templates/{created['id']}", json={"content": "v2", "expected_version": 1})

    res = client.post(f"/templates/{created['id']}/duplicate", json={"author": "dr-d"})
    assert res.status_code == 201, res.text
    copy = res.json()
    assert copy["id"] != created["id"]
    assert copy["name"] == "Annual physical (Copy)"
    assert copy["version"] == 1
    assert copy["content"] == "v2"
    assert client.get(f"/templates/{copy['id']}/versions").json()["items"] == []

    res = client.post(f"/templates/{created['id']}/duplicate")
    assert res.status_code == 201


def test_missing_template_returns_404_for_mutations(client: TestClient) -> None:
    assert (
        client.put(f"/templates/{MISSING_ID}", json={"content": "x", "expected_version": 1})
    ).status_code == 404
    assert client.post(f"/templates/{MISSING_ID}/duplicate").status_code == 404
    assert client.get(f"/templates/{MISSING_ID}/versions").status_code == 404
