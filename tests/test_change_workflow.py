"""
Tests — change request lifecycle.

Lifecycle under test:
    open -> analyzed -> approved
    open | analyzed | approved -> rejected

Covers:
    - CRUD and the ``created`` history entry
    - AI impact analysis via the local stub provider and a mocked gateway
    - Approval materialising proposed tasks exactly once
    - Guarded transitions (approve before analyze, double approve)
    - History is append-only and survives deletion
"""

import pytest

from app.core.exceptions import AIServiceError
from app.models import db as _db
from app.models.change import (
    ChangeHistory,
    ChangeRequest,
    ChangeRequestAnalysis,
    validate_change_transition,
)
from app.models.planning import Task


def _create_change(client, headers, project, **kw):
    payload = {"title": "Add export button", "change_type": "new_feature", "area": "api"}
    payload.update(kw)
    res = client.post(f"/api/v1/projects/{project.id}/changes", json=payload, headers=headers)
    assert res.status_code == 201
    return res.get_json()["changeRequest"]


def _analyze(client, headers, project, change_id):
    return client.post("/api/v1/ai/analyze-change", json={
        "changeRequestId": change_id, "projectId": project.id,
    }, headers=headers)


def _history_actions(project):
    return [h.action for h in ChangeHistory.query.filter_by(project_id=project.id)
            .order_by(ChangeHistory.id).all()]


# ═════════════════════════════════════════════════════════════════════════════
# TRANSITION TABLE
# ═════════════════════════════════════════════════════════════════════════════

class TestTransitionTable:
    @pytest.mark.parametrize("current,target", [
        ("open", "analyzed"),
        ("open", "rejected"),
        ("analyzed", "analyzed"),
        ("analyzed", "approved"),
        ("analyzed", "rejected"),
        ("approved", "rejected"),
    ])
    def test_allowed(self, current, target):
        assert validate_change_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        ("open", "approved"),
        ("approved", "analyzed"),
        ("approved", "approved"),
        ("rejected", "analyzed"),
        ("rejected", "approved"),
        ("open", "implemented"),
    ])
    def test_blocked(self, current, target):
        assert not validate_change_transition(current, target)


# ═════════════════════════════════════════════════════════════════════════════
# CRUD
# ═════════════════════════════════════════════════════════════════════════════

class TestChangeCRUD:
    def test_create_is_open_with_history(self, client, auth_headers, project):
        change = _create_change(client, auth_headers, project, priority="high")
        assert change["status"] == "open"
        assert change["priority"] == "high"
        assert _history_actions(project) == ["created"]

    def test_create_requires_title(self, client, auth_headers, project):
        res = client.post(f"/api/v1/projects/{project.id}/changes",
                          json={"description": "no title"}, headers=auth_headers)
        assert res.status_code == 400

    def test_create_rejects_unknown_area(self, client, auth_headers, project):
        res = client.post(f"/api/v1/projects/{project.id}/changes",
                          json={"title": "X", "area": "mainframe"}, headers=auth_headers)
        assert res.status_code == 400

    def test_list_includes_analysis(self, client, auth_headers, project):
        _create_change(client, auth_headers, project)
        res = client.get(f"/api/v1/projects/{project.id}/changes", headers=auth_headers)
        assert res.status_code == 200
        items = res.get_json()["changeRequests"]
        assert len(items) == 1
        assert items[0]["analysis"] is None

    def test_patch_descriptive_fields(self, client, auth_headers, project):
        change = _create_change(client, auth_headers, project)
        res = client.patch(f"/api/v1/projects/{project.id}/changes/{change['id']}",
                           json={"title": "Add CSV export", "priority": "low"},
                           headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["changeRequest"]["title"] == "Add CSV export"

    def test_patch_cannot_change_status(self, client, auth_headers, project):
        change = _create_change(client, auth_headers, project)
        res = client.patch(f"/api/v1/projects/{project.id}/changes/{change['id']}",
                           json={"status": "approved"}, headers=auth_headers)
        assert res.status_code == 400
        assert _db.session.get(ChangeRequest, change["id"]).status == "open"

    def test_delete_keeps_history(self, client, auth_headers, project):
        change = _create_change(client, auth_headers, project)
        res = client.delete(f"/api/v1/projects/{project.id}/changes/{change['id']}",
                            headers=auth_headers)
        assert res.status_code == 200
        assert _db.session.get(ChangeRequest, change["id"]) is None
        history = ChangeHistory.query.filter_by(project_id=project.id).all()
        assert len(history) == 1
        assert history[0].change_request_id is None

    def test_other_users_change_is_404(self, client, auth_headers, other_headers, project):
        change = _create_change(client, auth_headers, project)
        res = client.get(f"/api/v1/projects/{project.id}/changes/{change['id']}",
                         headers=other_headers)
        assert res.status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# ANALYZE → APPROVE
# ═════════════════════════════════════════════════════════════════════════════

class TestAnalyzeAndApprove:
    def test_full_workflow(self, client, auth_headers, project):
        change = _create_change(client, auth_headers, project)

        res = _analyze(client, auth_headers, project, change["id"])
        assert res.status_code == 200
        body = res.get_json()
        assert body["analysis"]["effort_hours"] == 12
        assert len(body["analysis"]["new_tasks"]) == 2
        assert body["baselineComparison"]["delta_hours"] == 14
        assert body["baselineComparison"]["delta_days"] == 2
        assert _db.session.get(ChangeRequest, change["id"]).status == "analyzed"
        assert _history_actions(project).count("analyzed") == 1

        res = client.post(f"/api/v1/projects/{project.id}/changes/{change['id']}/approve",
                          headers=auth_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["tasksCreated"] == 2
        assert body["changeRequest"]["status"] == "approved"

        tasks = Task.query.filter_by(project_id=project.id).order_by(Task.order_index).all()
        assert [t.title for t in tasks] == ["Implement change", "Test change"]
        assert [t.priority for t in tasks] == [2, 3]
        assert all(t.status == "pending" for t in tasks)
        assert tasks[0].order_index == 1000
        assert _history_actions(project) == ["created", "analyzed", "approved"]

        approved = ChangeHistory.query.filter_by(action="approved").one()
        assert approved.meta["new_tasks_count"] == 2

    def test_reanalysis_keeps_latest(self, client, auth_headers, project):
        change = _create_change(client, auth_headers, project)
        _analyze(client, auth_headers, project, change["id"])
        res = _analyze(client, auth_headers, project, change["id"])
        assert res.status_code == 200
        assert ChangeRequestAnalysis.query.filter_by(change_request_id=change["id"]).count() == 2
        assert _history_actions(project).count("analyzed") == 2

    def test_approve_before_analyze_rejected(self, client, auth_headers, project):
        change = _create_change(client, auth_headers, project)
        before = len(_history_actions(project))
        res = client.post(f"/api/v1/projects/{project.id}/changes/{change['id']}/approve",
                          headers=auth_headers)
        assert res.status_code == 400
        assert Task.query.filter_by(project_id=project.id).count() == 0
        assert len(_history_actions(project)) == before
        assert _db.session.get(ChangeRequest, change["id"]).status == "open"

    def test_double_approve_creates_tasks_once(self, client, auth_headers, project):
        change = _create_change(client, auth_headers, project)
        _analyze(client, auth_headers, project, change["id"])
        url = f"/api/v1/projects/{project.id}/changes/{change['id']}/approve"

        assert client.post(url, headers=auth_headers).status_code == 200
        assert client.post(url, headers=auth_headers).status_code == 400
        assert Task.query.filter_by(project_id=project.id).count() == 2
        assert _history_actions(project).count("approved") == 1

    def test_analyze_after_approval_rejected(self, client, auth_headers, project):
        change = _create_change(client, auth_headers, project)
        _analyze(client, auth_headers, project, change["id"])
        client.post(f"/api/v1/projects/{project.id}/changes/{change['id']}/approve",
                    headers=auth_headers)
        res = _analyze(client, auth_headers, project, change["id"])
        assert res.status_code == 400

    def test_analyze_requires_change_id(self, client, auth_headers, project):
        res = client.post("/api/v1/ai/analyze-change", json={"projectId": project.id},
                          headers=auth_headers)
        assert res.status_code == 400

    def test_analyze_other_users_project_is_404(self, client, auth_headers, other_headers,
                                                 project):
        change = _create_change(client, auth_headers, project)
        res = _analyze(client, other_headers, project, change["id"])
        assert res.status_code == 404


class TestAnalyzeFailures:
    def test_schema_violation_is_502(self, client, auth_headers, project, fake_gateway):
        change = _create_change(client, auth_headers, project)
        fake_gateway.chat_json.return_value = {"new_tasks": [{"title": ""}]}

        res = _analyze(client, auth_headers, project, change["id"])
        assert res.status_code == 502
        assert res.get_json()["code"] == "ERR_UPSTREAM_CONTRACT"
        assert _db.session.get(ChangeRequest, change["id"]).status == "open"
        assert ChangeRequestAnalysis.query.count() == 0
        assert _history_actions(project) == ["created"]

    def test_non_numeric_effort_is_502(self, client, auth_headers, project, fake_gateway):
        change = _create_change(client, auth_headers, project)
        fake_gateway.chat_json.return_value = {"effort_hours": "a lot"}
        res = _analyze(client, auth_headers, project, change["id"])
        assert res.status_code == 502

    def test_provider_failure_is_500(self, client, auth_headers, project, fake_gateway):
        change = _create_change(client, auth_headers, project)
        fake_gateway.chat_json.side_effect = AIServiceError("AI request failed")
        res = _analyze(client, auth_headers, project, change["id"])
        assert res.status_code == 500
        assert _db.session.get(ChangeRequest, change["id"]).status == "open"

    def test_missing_numbers_default_to_zero(self, client, auth_headers, project, fake_gateway):
        change = _create_change(client, auth_headers, project)
        fake_gateway.chat_json.return_value = {"impact_summary": "Trivial", "effort_hours": None}
        res = _analyze(client, auth_headers, project, change["id"])
        assert res.status_code == 200
        body = res.get_json()
        assert body["analysis"]["effort_hours"] == 0
        assert body["analysis"]["model_used"] == "test-model"
        assert body["baselineComparison"]["new_delivery_date"] is None


# ═════════════════════════════════════════════════════════════════════════════
# REJECT & HISTORY
# ═════════════════════════════════════════════════════════════════════════════

class TestRejectAndHistory:
    def test_reject_with_reason(self, client, auth_headers, project):
        change = _create_change(client, auth_headers, project)
        res = client.post(f"/api/v1/projects/{project.id}/changes/{change['id']}/reject",
                          json={"reason": "Out of scope"}, headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["changeRequest"]["status"] == "rejected"
        entry = ChangeHistory.query.filter_by(action="rejected").one()
        assert entry.meta["rejection_reason"] == "Out of scope"
        assert "Out of scope" in entry.description

    def test_rejected_cannot_be_approved(self, client, auth_headers, project):
        change = _create_change(client, auth_headers, project)
        client.post(f"/api/v1/projects/{project.id}/changes/{change['id']}/reject",
                    headers=auth_headers)
        res = client.post(f"/api/v1/projects/{project.id}/changes/{change['id']}/approve",
                          headers=auth_headers)
        assert res.status_code == 400

    def test_history_only_grows(self, client, auth_headers, project):
        counts = []

        def snapshot():
            res = client.get(f"/api/v1/projects/{project.id}/change-history",
                             headers=auth_headers)
            counts.append(len(res.get_json()["history"]))

        snapshot()
        first = _create_change(client, auth_headers, project)
        snapshot()
        _analyze(client, auth_headers, project, first["id"])
        snapshot()
        client.post(f"/api/v1/projects/{project.id}/changes/{first['id']}/approve",
                    headers=auth_headers)
        snapshot()
        second = _create_change(client, auth_headers, project, title="Drop legacy report")
        client.post(f"/api/v1/projects/{project.id}/changes/{second['id']}/approve",
                    headers=auth_headers)
        snapshot()
        client.delete(f"/api/v1/projects/{project.id}/changes/{second['id']}",
                      headers=auth_headers)
        snapshot()

        assert counts == sorted(counts)
        assert counts[0] == 0
        assert counts[-1] == 4

    def test_history_newest_first(self, client, auth_headers, project):
        change = _create_change(client, auth_headers, project)
        _analyze(client, auth_headers, project, change["id"])
        res = client.get(f"/api/v1/projects/{project.id}/change-history", headers=auth_headers)
        actions = [h["action"] for h in res.get_json()["history"]]
        assert actions == ["analyzed", "created"]
