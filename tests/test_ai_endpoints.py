"""
Tests — AI planning endpoints.

All calls go through the deterministic local provider unless a test swaps
in ``fake_gateway`` to control the completion payload.

Covers:
    - analyze / breakdown / sprint-plan / report / advisor happy paths
    - Input validation (400) before any completion call
    - Schema violations surfacing as 502
    - optimize-workload state and ownership
    - Usage accounting and prompt listing
"""

import pytest

from app.core.exceptions import AIServiceError
from app.models import db as _db
from app.models.ai import AIUsageLog
from app.models.planning import Task
from app.models.resource import Resource, TaskAssignment


class TestPlanningEndpoints:
    def test_analyze(self, client, auth_headers):
        res = client.post("/api/v1/ai/analyze", json={
            "requirements": "A booking site with payments", "projectName": "Bookly",
        }, headers=auth_headers)
        assert res.status_code == 200
        analysis = res.get_json()["analysis"]
        assert analysis["summary"]
        assert analysis["complexity_score"] == 4

    def test_breakdown_from_analysis_only(self, client, auth_headers):
        res = client.post("/api/v1/ai/breakdown", json={"analysis": {"summary": "x"}},
                          headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["breakdown"]["tasks"][0]["title"] == "Set up project"

    def test_sprint_plan(self, client, auth_headers):
        res = client.post("/api/v1/ai/sprint-plan", json={
            "tasks": [{"title": "Set up project", "estimated_hours": 4}],
        }, headers=auth_headers)
        assert res.status_code == 200
        assert len(res.get_json()["sprintPlan"]["sprints"]) == 1

    def test_report(self, client, auth_headers):
        res = client.post("/api/v1/ai/report", json={
            "projectData": {"name": "Bookly"}, "reportType": "sprint_review",
        }, headers=auth_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["report"].startswith("# Project Status Report")
        assert body["reportType"] == "sprint_review"
        assert body["generatedAt"]

    def test_advisor(self, client, auth_headers):
        res = client.post("/api/v1/ai/advisor", json={
            "message": "What should we cut?",
            "conversationHistory": [{"role": "user", "content": "hi"}],
        }, headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["role"] == "assistant"
        assert res.get_json()["response"]

    def test_advisor_ignores_non_object_context(self, client, auth_headers, fake_gateway):
        fake_gateway.chat_json.return_value = {"response": "Trim scope."}
        res = client.post("/api/v1/ai/advisor", json={"message": "hi", "projectContext": "x"},
                          headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["response"] == "Trim scope."
        prompt = fake_gateway.chat_json.call_args.args[0][-1]["content"]
        assert "Current Project Context" not in prompt

    @pytest.mark.parametrize("path,body,message", [
        ("analyze", {}, "Requirements are required"),
        ("breakdown", {}, "Requirements or analysis is required"),
        ("sprint-plan", {"tasks": []}, "Tasks array is required"),
        ("report", {}, "Project data is required"),
        ("advisor", {"message": ""}, "Message is required"),
    ])
    def test_missing_input(self, client, auth_headers, fake_gateway, path, body, message):
        res = client.post(f"/api/v1/ai/{path}", json=body, headers=auth_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == message
        fake_gateway.chat_json.assert_not_called()

    def test_requires_auth(self, client):
        res = client.post("/api/v1/ai/analyze", json={"requirements": "x"})
        assert res.status_code == 401


class TestGatewayControl:
    def test_sprint_plan_uses_user_settings(self, client, auth_headers, user, fake_gateway):
        user.weekly_capacity_hours = 30
        user.default_sprint_length_days = 10
        _db.session.commit()
        fake_gateway.chat_json.return_value = {"sprints": []}

        res = client.post("/api/v1/ai/sprint-plan", json={
            "tasks": [{"title": "A"}], "startDate": "2025-04-07",
        }, headers=auth_headers)
        assert res.status_code == 200
        messages = fake_gateway.chat_json.call_args.args[0]
        prompt = messages[-1]["content"]
        assert "Weekly Capacity: 30 hours" in prompt
        assert "Preferred Sprint Length: 10 days" in prompt
        assert "Start Date: 2025-04-07" in prompt

    def test_report_tone_from_settings(self, client, auth_headers, user, fake_gateway):
        user.ai_report_tone = "client"
        _db.session.commit()
        fake_gateway.chat_json.return_value = {"content": "# Report"}
        client.post("/api/v1/ai/report", json={"projectData": {"name": "X"}},
                    headers=auth_headers)
        prompt = fake_gateway.chat_json.call_args.args[0][-1]["content"]
        assert "Write for the client" in prompt

    def test_breakdown_without_tasks_is_502(self, client, auth_headers, fake_gateway):
        fake_gateway.chat_json.return_value = {"total_estimated_hours": 10}
        res = client.post("/api/v1/ai/breakdown", json={"requirements": "x"},
                          headers=auth_headers)
        assert res.status_code == 502
        details = res.get_json()["details"]
        assert details["purpose"] == "task_breakdown"
        assert any(e.startswith("tasks") for e in details["errors"])

    def test_provider_failure_is_500(self, client, auth_headers, fake_gateway):
        fake_gateway.chat_json.side_effect = AIServiceError("No response from AI")
        res = client.post("/api/v1/ai/advisor", json={"message": "hello"},
                          headers=auth_headers)
        assert res.status_code == 500
        assert res.get_json()["error"] == "No response from AI"

    def test_report_falls_back_to_json(self, client, auth_headers, fake_gateway):
        fake_gateway.chat_json.return_value = {"sections": ["a"]}
        res = client.post("/api/v1/ai/report", json={"projectData": {"name": "X"}},
                          headers=auth_headers)
        assert '"sections"' in res.get_json()["report"]


class TestOptimizeWorkload:
    def test_state_and_optimization(self, client, auth_headers, project, user):
        assigned = Task(project_id=project.id, title="Checkout API", estimated_hours=30)
        loose = Task(project_id=project.id, title="Copy review", estimated_hours=4)
        dana = Resource(user_id=user.id, name="Dana", weekly_capacity_hours=20)
        _db.session.add_all([assigned, loose, dana])
        _db.session.flush()
        _db.session.add(TaskAssignment(task_id=assigned.id, resource_id=dana.id))
        _db.session.commit()

        res = client.post("/api/v1/ai/optimize-workload", json={"projectId": project.id},
                          headers=auth_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["optimization"]["health_score"] == 6
        state = body["current_state"]
        assert state["unassigned_tasks"] == 1
        assert state["resources"][0]["utilization_percentage"] == 150
        assert state["resources"][0]["is_overloaded"] is True
        assert state["team_summary"]["overloaded_resources"] == 1

    def test_requires_project_id(self, client, auth_headers):
        res = client.post("/api/v1/ai/optimize-workload", json={}, headers=auth_headers)
        assert res.status_code == 400

    def test_foreign_project_is_404(self, client, other_headers, project):
        res = client.post("/api/v1/ai/optimize-workload", json={"projectId": project.id},
                          headers=other_headers)
        assert res.status_code == 404


class TestUsageAndPrompts:
    def test_usage_recorded_per_call(self, client, auth_headers, user):
        client.post("/api/v1/ai/advisor", json={"message": "hi"}, headers=auth_headers)
        client.post("/api/v1/ai/analyze", json={"requirements": "x"}, headers=auth_headers)

        logs = AIUsageLog.query.filter_by(user_id=user.id).all()
        assert sorted(log.purpose for log in logs) == ["advisor", "project_analysis"]
        assert all(log.provider == "local" for log in logs)

        res = client.get("/api/v1/ai/usage", headers=auth_headers)
        assert res.status_code == 200
        stats = res.get_json()
        assert stats["total_calls"] == 2
        assert stats["by_purpose"]["advisor"]["calls"] == 1
        assert stats["error_count"] == 0

    def test_usage_is_per_user(self, client, auth_headers, other_headers):
        client.post("/api/v1/ai/advisor", json={"message": "hi"}, headers=auth_headers)
        res = client.get("/api/v1/ai/usage", headers=other_headers)
        assert res.get_json()["total_calls"] == 0

    def test_prompt_listing(self, client, auth_headers):
        res = client.get("/api/v1/ai/prompts", headers=auth_headers)
        names = {p["name"] for p in res.get_json()["prompts"]}
        assert names == {
            "project_analysis", "task_breakdown", "sprint_planner", "report_generator",
            "advisor", "change_impact", "workload_optimization",
        }


class TestNonObjectBodies:
    @pytest.mark.parametrize("path", ["analyze-change", "optimize-workload", "analyze"])
    def test_array_body_is_400(self, client, auth_headers, fake_gateway, path):
        res = client.post(f"/api/v1/ai/{path}", json=[1], headers=auth_headers)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
        fake_gateway.chat_json.assert_not_called()

    def test_report_type_must_be_string(self, client, auth_headers, fake_gateway):
        res = client.post("/api/v1/ai/report", json={
            "projectData": {"name": "Bookly"}, "reportType": ["custom"],
        }, headers=auth_headers)
        assert res.status_code == 400
        fake_gateway.chat_json.assert_not_called()
