"""
Auto-assignment tests.

Tests cover:
  - auto_assign: authority matching, replacement (including with an empty
    set), status re-derivation, skip-and-continue on malformed profiles
  - assign_question_stakeholders: RACI pre-selection, accountable choice,
    skipped questions, upsert
"""

import pytest

from dtplanner.core.exceptions import ValidationError
from dtplanner.models import db
from dtplanner.models.assignment import QuestionStakeholderAssignment
from dtplanner.services import auto_assignment_service as svc
from dtplanner.services import section_approval_service

PROJECT_ID = 1
ASSESSMENT_ID = 10

SECTIONS = [{"name": "Timeline"}, {"name": "Proposed Solution"}]


def _sections() -> dict:
    return {
        a["section_name"]: a
        for a in section_approval_service.get_approval_status(PROJECT_ID, ASSESSMENT_ID)
    }


# ═════════════════════════════════════════════════════════════════════════
# SOW SECTIONS
# ═════════════════════════════════════════════════════════════════════════


class TestAutoAssign:
    def test_authority_tag_matching_section_name(self, make_stakeholder):
        pm = make_stakeholder("Pat", can_approve=["timeline"])
        section_approval_service.initialize_approvals(PROJECT_ID, ASSESSMENT_ID, SECTIONS)
        svc.auto_assign(PROJECT_ID, ASSESSMENT_ID)
        sections = _sections()
        assert sections["Timeline"]["required_approvers"] == [pm.id]
        assert sections["Proposed Solution"]["required_approvers"] == []

    def test_sow_and_executive_authority_cover_every_section(self, make_stakeholder):
        sow = make_stakeholder("Sam", can_approve=["SOW sign-off"])
        exe = make_stakeholder("Eve", can_approve=["Executive"])
        section_approval_service.initialize_approvals(PROJECT_ID, ASSESSMENT_ID, SECTIONS)
        svc.auto_assign(PROJECT_ID, ASSESSMENT_ID)
        for section in _sections().values():
            assert section["required_approvers"] == [sow.id, exe.id]

    def test_approver_involvement_covers_every_section(self, make_stakeholder):
        gate = make_stakeholder("Gale", involvement_level="APPROVER")
        make_stakeholder("Ivy", involvement_level="INFORMED")
        section_approval_service.initialize_approvals(PROJECT_ID, ASSESSMENT_ID, SECTIONS)
        svc.auto_assign(PROJECT_ID, ASSESSMENT_ID)
        for section in _sections().values():
            assert section["required_approvers"] == [gate.id]

    def test_short_tag_matches_inside_section_name(self, make_stakeholder):
        # Either direction: "solution" is a substring of "Proposed Solution"
        arch = make_stakeholder("Ari", can_approve=["SOLUTION"])
        section_approval_service.initialize_approvals(PROJECT_ID, ASSESSMENT_ID, SECTIONS)
        svc.auto_assign(PROJECT_ID, ASSESSMENT_ID)
        assert _sections()["Proposed Solution"]["required_approvers"] == [arch.id]

    def test_replaces_even_with_empty_set(self, make_stakeholder):
        pm = make_stakeholder("Pat", role="Project Manager")
        section_approval_service.initialize_approvals(
            PROJECT_ID, ASSESSMENT_ID, [{"name": "Timeline", "required_roles": ["Project Manager"]}],
        )
        assert _sections()["Timeline"]["required_approvers"] == [pm.id]
        assert _sections()["Timeline"]["status"] == "pending"

        result = svc.auto_assign(PROJECT_ID, ASSESSMENT_ID)
        [timeline] = result.updated
        assert timeline["required_approvers"] == []
        assert timeline["status"] == "approved"

    def test_keeps_decisions_and_rederives_status(self, make_stakeholder):
        a = make_stakeholder("A", can_approve=["timeline"])
        b = make_stakeholder("B")
        section_approval_service.initialize_approvals(PROJECT_ID, ASSESSMENT_ID, [{"name": "Timeline"}])
        timeline = _sections()["Timeline"]
        section_approval_service.set_required_approvers(timeline["id"], [a.id, b.id])
        section_approval_service.submit_decision(timeline["id"], a.id, "approved")
        assert _sections()["Timeline"]["status"] == "pending"

        svc.auto_assign(PROJECT_ID, ASSESSMENT_ID)
        timeline = _sections()["Timeline"]
        assert timeline["required_approvers"] == [a.id]
        assert len(timeline["decisions"]) == 1
        assert timeline["status"] == "approved"

    def test_malformed_profile_is_skipped_once(self, make_stakeholder):
        broken = make_stakeholder("Broken", can_approve=[1, 2])
        ok = make_stakeholder("Ok", can_approve=["sow"])
        section_approval_service.initialize_approvals(PROJECT_ID, ASSESSMENT_ID, SECTIONS)

        result = svc.auto_assign(PROJECT_ID, ASSESSMENT_ID)
        assert [s.entry_id for s in result.skipped] == [broken.id]
        assert all(s["required_approvers"] == [ok.id] for s in result.updated)

    def test_approver_with_malformed_tags_is_still_assigned(self, make_stakeholder):
        gate = make_stakeholder("Gale", involvement_level="APPROVER", can_approve=[1, 2])
        section_approval_service.initialize_approvals(PROJECT_ID, ASSESSMENT_ID, SECTIONS)

        result = svc.auto_assign(PROJECT_ID, ASSESSMENT_ID)
        assert result.skipped == []
        assert all(s["required_approvers"] == [gate.id] for s in result.updated)

    def test_no_sections_is_a_no_op(self, make_stakeholder):
        make_stakeholder("Gale", involvement_level="APPROVER")
        result = svc.auto_assign(PROJECT_ID, ASSESSMENT_ID)
        assert result.updated == []
        assert result.skipped == []


# ═════════════════════════════════════════════════════════════════════════
# INTERVIEW QUESTIONS
# ═════════════════════════════════════════════════════════════════════════


QUESTION = {"id": "MOD-DATA-001", "text": "How is data lineage tracked?"}


@pytest.fixture()
def data_team(make_stakeholder):
    return {
        "lead": make_stakeholder(
            "Lena", role="Data Lead", knowledge_areas=["DATA"],
            involvement_level="RESPONSIBLE", can_approve=["data"],
        ),
        "advisor": make_stakeholder("Ada", role="Engineer", knowledge_areas=["DATA"], involvement_level="CONSULTED"),
        "director": make_stakeholder("Dora", role="Finance Director", involvement_level="APPROVER"),
        "watcher": make_stakeholder("Walt", role="Analyst", knowledge_areas=["DATA"], involvement_level="INFORMED"),
    }


class TestQuestionAssignment:
    def test_raci_pre_selection(self, data_team):
        t = data_team
        result = svc.assign_question_stakeholders(PROJECT_ID, ASSESSMENT_ID, "MODERNIZATION", "DATA", [QUESTION])
        [row] = result.assignments
        assert row["question_id"] == "MOD-DATA-001"
        assert row["phase"] == "MODERNIZATION"
        assert row["tier"] == "DATA"
        assert row["has_knowledge"] == [t["lead"].id, t["advisor"].id, t["watcher"].id]
        assert row["responsible"] == [t["lead"].id]
        assert row["accountable"] == t["lead"].id
        assert row["consulted"] == [t["lead"].id, t["advisor"].id]
        assert row["must_approve"] == [t["lead"].id, t["director"].id]
        assert row["informed"] == []
        assert result.skipped == []

    def test_accountable_prefers_leadership_role(self, make_stakeholder):
        make_stakeholder("Eli", role="Engineer", knowledge_areas=["DATA"], can_approve=["data"])
        director = make_stakeholder("Dora", role="Finance Director", involvement_level="APPROVER")
        result = svc.assign_question_stakeholders(PROJECT_ID, ASSESSMENT_ID, "DISCOVERY", "DATA", [QUESTION])
        assert result.assignments[0]["accountable"] == director.id

    def test_accountable_falls_back_to_first_approver(self, make_stakeholder):
        first = make_stakeholder("Eli", role="Engineer", knowledge_areas=["DATA"], can_approve=["data"])
        make_stakeholder("Ana", role="Analyst", involvement_level="APPROVER")
        result = svc.assign_question_stakeholders(PROJECT_ID, ASSESSMENT_ID, "DISCOVERY", "DATA", [QUESTION])
        assert result.assignments[0]["accountable"] == first.id

    def test_no_approvers_means_no_accountable(self, make_stakeholder):
        make_stakeholder("Eli", knowledge_areas=["DATA"])
        result = svc.assign_question_stakeholders(PROJECT_ID, ASSESSMENT_ID, "DISCOVERY", "DATA", [QUESTION])
        assert result.assignments[0]["accountable"] is None
        assert result.assignments[0]["must_approve"] == []

    def test_question_without_suggestions_is_skipped(self, make_stakeholder):
        make_stakeholder("Eli", role="Engineer", knowledge_areas=["DATA"])
        questions = [QUESTION, {"id": "MOD-UI-003", "text": "Which design system is used?"}]
        result = svc.assign_question_stakeholders(PROJECT_ID, ASSESSMENT_ID, "MODERNIZATION", "UI", questions)
        assert result.assignments == []
        assert [s.entry_id for s in result.skipped] == ["MOD-DATA-001", "MOD-UI-003"]
        assert db.session.query(QuestionStakeholderAssignment).count() == 0

    def test_incomplete_questions_are_skipped(self, data_team):
        questions = [{"id": "", "text": "No id"}, {"id": "X-1"}, QUESTION]
        result = svc.assign_question_stakeholders(PROJECT_ID, ASSESSMENT_ID, "MODERNIZATION", "DATA", questions)
        assert [a["question_id"] for a in result.assignments] == ["MOD-DATA-001"]
        assert len(result.skipped) == 2

    def test_rerun_overwrites_existing_assignment(self, data_team, make_stakeholder):
        first = svc.assign_question_stakeholders(PROJECT_ID, ASSESSMENT_ID, "MODERNIZATION", "DATA", [QUESTION])
        newcomer = make_stakeholder("Nia", role="Data Director", involvement_level="APPROVER")
        second = svc.assign_question_stakeholders(PROJECT_ID, ASSESSMENT_ID, "MODERNIZATION", "DATA", [QUESTION])

        assert second.assignments[0]["id"] == first.assignments[0]["id"]
        assert newcomer.id in second.assignments[0]["must_approve"]
        assert db.session.query(QuestionStakeholderAssignment).count() == 1

    def test_unknown_tier_is_rejected(self):
        with pytest.raises(ValidationError):
            svc.assign_question_stakeholders(PROJECT_ID, ASSESSMENT_ID, "DISCOVERY", "MAINFRAME", [QUESTION])
