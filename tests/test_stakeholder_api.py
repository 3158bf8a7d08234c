"""
Stakeholder directory, suggestion and question-assignment API tests.
"""

import pytest

PID = 1
AID = 10


def _create(client, pid=PID, **fields):
    return client.post(f"/api/v1/projects/{pid}/stakeholders", json=fields)


# ── Directory ────────────────────────────────────────────────────────────


def test_create_and_list_stakeholders(client):
    res = _create(
        client,
        name="  Dana  ",
        role="Data Lead",
        knowledge_areas=["DATA", "CLOUD"],
        specializations=["Snowflake", "  "],
        involvement_level="ACCOUNTABLE",
    )
    assert res.status_code == 201
    body = res.get_json()
    assert body["name"] == "Dana"
    assert body["specializations"] == ["Snowflake"]

    listed = client.get(f"/api/v1/projects/{PID}/stakeholders").get_json()
    assert listed["total"] == 1
    assert client.get(f"/api/v1/projects/{PID}/stakeholders/{body['id']}").status_code == 200


def test_stakeholders_are_project_scoped(client):
    other = _create(client, pid=PID + 1, name="Elsewhere").get_json()
    assert client.get(f"/api/v1/projects/{PID}/stakeholders").get_json()["total"] == 0
    assert client.get(f"/api/v1/projects/{PID}/stakeholders/{other['id']}").status_code == 404


def test_create_requires_name(client):
    res = _create(client, role="CTO")
    assert res.status_code == 400
    assert "name" in res.get_json()["error"]


def test_create_rejects_unknown_tier(client):
    res = _create(client, name="Mo", knowledge_areas=["MAINFRAME"])
    assert res.status_code == 422
    assert res.get_json()["details"] == {"knowledge_areas": ["MAINFRAME"]}


def test_create_rejects_unknown_involvement(client):
    assert _create(client, name="Mo", involvement_level="OWNER").status_code == 422


def test_create_rejects_non_list_tags(client):
    assert _create(client, name="Mo", can_approve="sow").status_code == 422


def test_create_rejects_non_string_name(client):
    res = _create(client, name=12)
    assert res.status_code == 400
    assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"


def test_reports_to_same_project_manager(client):
    boss = _create(client, name="Boss").get_json()
    res = _create(client, name="Report", reports_to_id=boss["id"])
    assert res.status_code == 201
    assert res.get_json()["reports_to_id"] == boss["id"]


def test_reports_to_other_project_is_404(client):
    outsider = _create(client, pid=PID + 1, name="Outsider").get_json()
    res = _create(client, name="Report", reports_to_id=outsider["id"])
    assert res.status_code == 404
    assert client.get(f"/api/v1/projects/{PID}/stakeholders").get_json()["total"] == 0


def test_reports_to_unknown_id_is_404(client):
    assert _create(client, name="Report", reports_to_id=99999).status_code == 404


@pytest.mark.parametrize("fields", [
    {"reports_to_id": "1"},
    {"team_id": "ops"},
    {"availability_hours": "forty"},
    {"availability_hours": -1},
    {"role": 3},
    {"involvement_level": ["APPROVER"]},
])
def test_create_rejects_mistyped_fields(client, fields):
    res = _create(client, name="Mo", **fields)
    assert res.status_code == 422
    assert res.get_json()["code"] == "ERR_VALIDATION_CONSTRAINT"


# ── Suggestions ──────────────────────────────────────────────────────────


def test_ranked_suggestions(client):
    expert = _create(
        client, name="Dana", knowledge_areas=["DATA"],
        specializations=["Snowflake"], involvement_level="RESPONSIBLE",
    ).get_json()
    _create(client, name="Uma", knowledge_areas=["UI"])

    res = client.get(
        f"/api/v1/projects/{PID}/stakeholder-suggestions",
        query_string={"tier": "DATA", "phase": "DISCOVERY", "question": "Where does Snowflake sit?"},
    )
    assert res.status_code == 200
    body = res.get_json()
    [top] = body["suggestions"]
    assert top["stakeholder"]["id"] == expert["id"]
    assert top["score"] == 80
    assert top["confidence"] == "high"
    assert top["reasons"] == ["DATA expertise", "Specialization: Snowflake", "RESPONSIBLE"]
    assert body["skipped"] == []


def test_suggestions_require_tier_and_phase(client):
    url = f"/api/v1/projects/{PID}/stakeholder-suggestions"
    assert client.get(url).status_code == 400
    assert client.get(url, query_string={"tier": "DATA"}).status_code == 400


def test_suggestions_reject_unknown_tier(client):
    res = client.get(
        f"/api/v1/projects/{PID}/stakeholder-suggestions",
        query_string={"tier": "COBOL", "phase": "DISCOVERY"},
    )
    assert res.status_code == 422


def test_approver_and_consultant_kinds(client):
    approver = _create(client, name="Gale", involvement_level="APPROVER").get_json()
    consultant = _create(client, name="Cole", involvement_level="CONSULTED").get_json()
    url = f"/api/v1/projects/{PID}/stakeholder-suggestions"

    approvers = client.get(url, query_string={"tier": "API", "kind": "approvers"}).get_json()
    assert [s["id"] for s in approvers["items"]] == [approver["id"]]

    consultants = client.get(url, query_string={"tier": "API", "kind": "consultants"}).get_json()
    assert [s["id"] for s in consultants["items"]] == [consultant["id"]]

    assert client.get(url, query_string={"tier": "API", "kind": "everyone"}).status_code == 400


# ── Question assignments ─────────────────────────────────────────────────


def test_question_assignments(client):
    lead = _create(
        client, name="Dana", role="Data Lead", knowledge_areas=["DATA"],
        involvement_level="RESPONSIBLE", can_approve=["data"],
    ).get_json()
    res = client.post(
        f"/api/v1/projects/{PID}/assessments/{AID}/question-assignments",
        json={
            "tier": "DATA",
            "phase": "FOUNDATION",
            "questions": [
                {"id": "FND-DATA-002", "text": "Which warehouse is the system of record?"},
                {"id": "FND-DATA-003"},
            ],
        },
    )
    assert res.status_code == 200
    body = res.get_json()
    [row] = body["assignments"]
    assert row["responsible"] == [lead["id"]]
    assert row["accountable"] == lead["id"]
    assert [s["id"] for s in body["skipped"]] == ["FND-DATA-003"]


def test_question_assignments_validate_body(client):
    url = f"/api/v1/projects/{PID}/assessments/{AID}/question-assignments"
    assert client.post(url, json={"phase": "DISCOVERY", "questions": []}).status_code == 400
    assert client.post(url, json={"tier": "DATA", "phase": "DISCOVERY", "questions": "q"}).status_code == 400
