"""
Tests — projects, tasks, sprints and inputs.

Covers:
    - Project CRUD, enum validation and progress clamping
    - Bulk task creation, ordering and sprint scoping
    - Sprint creation and task embedding
    - Versioned project inputs
"""

import pytest

from app.models import db as _db
from app.models.planning import Task
from app.models.project import Project


def _tasks_url(project):
    return f"/api/v1/projects/{project.id}/tasks"


def _sprints_url(project):
    return f"/api/v1/projects/{project.id}/sprints"


# ═════════════════════════════════════════════════════════════════════════════
# PROJECTS
# ═════════════════════════════════════════════════════════════════════════════

class TestProjects:
    def test_create_with_defaults(self, client, auth_headers):
        res = client.post("/api/v1/projects", json={
            "name": "  Mobile App  ", "deadline": "2025-12-01",
        }, headers=auth_headers)
        assert res.status_code == 201
        project = res.get_json()["project"]
        assert project["name"] == "Mobile App"
        assert project["status"] == "planning"
        assert project["health"] == "healthy"
        assert project["progress"] == 0
        assert project["deadline"] == "2025-12-01"

    def test_create_requires_name(self, client, auth_headers):
        res = client.post("/api/v1/projects", json={"description": "x"}, headers=auth_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == "Project name is required"

    def test_array_body_rejected(self, client, auth_headers):
        res = client.post("/api/v1/projects", json=["Checkout"], headers=auth_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == "Request body must be a JSON object"

    def test_invalid_status(self, client, auth_headers):
        res = client.post("/api/v1/projects", json={"name": "X", "status": "someday"},
                          headers=auth_headers)
        assert res.status_code == 400

    def test_list_newest_first(self, client, auth_headers):
        for name in ("First", "Second"):
            client.post("/api/v1/projects", json={"name": name}, headers=auth_headers)
        res = client.get("/api/v1/projects", headers=auth_headers)
        assert [p["name"] for p in res.get_json()["projects"]] == ["Second", "First"]

    @pytest.mark.parametrize("value,expected", [(150, 100), (-20, 0), (42, 42)])
    def test_progress_clamped(self, client, auth_headers, project, value, expected):
        res = client.patch(f"/api/v1/projects/{project.id}", json={"progress": value},
                           headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json()["project"]["progress"] == expected

    def test_update_health(self, client, auth_headers, project):
        res = client.patch(f"/api/v1/projects/{project.id}", json={"health": "at_risk"},
                           headers=auth_headers)
        assert res.get_json()["project"]["health"] == "at_risk"

    def test_delete_cascades_tasks(self, client, auth_headers, project):
        _db.session.add(Task(project_id=project.id, title="Orphan?", estimated_hours=1))
        _db.session.commit()
        project_id = project.id

        res = client.delete(f"/api/v1/projects/{project_id}", headers=auth_headers)
        assert res.status_code == 200
        assert res.get_json() == {"success": True}
        assert _db.session.get(Project, project_id) is None
        assert Task.query.filter_by(project_id=project_id).count() == 0


# ═════════════════════════════════════════════════════════════════════════════
# TASKS
# ═════════════════════════════════════════════════════════════════════════════

class TestTasks:
    def test_bulk_create_in_order(self, client, auth_headers, project):
        res = client.post(_tasks_url(project), json={"tasks": [
            {"title": "Design schema", "task_type": "database", "estimated_hours": "6"},
            {"title": "Build endpoints", "task_type": "api", "estimated_hours": 12},
        ]}, headers=auth_headers)
        assert res.status_code == 201
        tasks = res.get_json()["tasks"]
        assert [t["order_index"] for t in tasks] == [0, 1]
        assert tasks[0]["estimated_hours"] == 6
        assert tasks[0]["status"] == "pending"
        assert tasks[0]["priority"] == 2

        res = client.get(_tasks_url(project), headers=auth_headers)
        assert [t["title"] for t in res.get_json()["tasks"]] == [
            "Design schema", "Build endpoints",
        ]

    def test_requires_array(self, client, auth_headers, project):
        res = client.post(_tasks_url(project), json={"tasks": []}, headers=auth_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == "Tasks array is required"

    def test_missing_title_rejects_whole_batch(self, client, auth_headers, project):
        res = client.post(_tasks_url(project), json={"tasks": [
            {"title": "Fine"}, {"estimated_hours": 3},
        ]}, headers=auth_headers)
        assert res.status_code == 400
        assert Task.query.filter_by(project_id=project.id).count() == 0

    def test_unknown_task_type(self, client, auth_headers, project):
        res = client.post(_tasks_url(project), json={"tasks": [
            {"title": "Paint office", "task_type": "carpentry"},
        ]}, headers=auth_headers)
        assert res.status_code == 400

    def test_sprint_from_other_project_rejected(self, client, auth_headers, project, user):
        other = Project(user_id=user.id, name="Side project")
        _db.session.add(other)
        _db.session.commit()
        res = client.post(_sprints_url(other), json={"sprints": [
            {"name": "Elsewhere", "start_date": "2025-01-06", "end_date": "2025-01-20"},
        ]}, headers=auth_headers)
        sprint_id = res.get_json()["sprints"][0]["id"]

        res = client.post(_tasks_url(project), json={"tasks": [
            {"title": "Misfiled", "sprint_id": sprint_id},
        ]}, headers=auth_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == "Sprint does not belong to this project"

    def test_patch_task(self, client, auth_headers, project):
        res = client.post(_tasks_url(project), json={"tasks": [{"title": "Draft"}]},
                          headers=auth_headers)
        task_id = res.get_json()["tasks"][0]["id"]
        res = client.patch(f"{_tasks_url(project)}/{task_id}",
                           json={"status": "completed", "actual_hours": 5},
                           headers=auth_headers)
        assert res.status_code == 200
        task = res.get_json()["task"]
        assert task["status"] == "completed"
        assert task["actual_hours"] == 5

    def test_patch_unknown_task_is_404(self, client, auth_headers, project):
        res = client.patch(f"{_tasks_url(project)}/9999", json={"status": "completed"},
                           headers=auth_headers)
        assert res.status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# SPRINTS
# ═════════════════════════════════════════════════════════════════════════════

class TestSprints:
    def test_create_and_embed_tasks(self, client, auth_headers, project):
        res = client.post(_sprints_url(project), json={"sprints": [
            {"name": "Iteration 1", "start_date": "2025-01-06", "end_date": "2025-01-19"},
            {"name": "Iteration 2", "start_date": "2025-01-20", "end_date": "2025-02-02"},
        ]}, headers=auth_headers)
        assert res.status_code == 201
        first = res.get_json()["sprints"][0]
        assert first["status"] == "planned"

        client.post(_tasks_url(project), json={"tasks": [
            {"title": "Login form", "sprint_id": first["id"], "estimated_hours": 8},
        ]}, headers=auth_headers)

        res = client.get(_sprints_url(project), headers=auth_headers)
        sprints = res.get_json()["sprints"]
        assert [s["name"] for s in sprints] == ["Iteration 1", "Iteration 2"]
        assert [t["title"] for t in sprints[0]["tasks"]] == ["Login form"]
        assert sprints[1]["tasks"] == []

    def test_end_before_start(self, client, auth_headers, project):
        res = client.post(_sprints_url(project), json={"sprints": [
            {"name": "Backwards", "start_date": "2025-02-01", "end_date": "2025-01-01"},
        ]}, headers=auth_headers)
        assert res.status_code == 400

    def test_requires_dates(self, client, auth_headers, project):
        res = client.post(_sprints_url(project), json={"sprints": [{"name": "Undated"}]},
                          headers=auth_headers)
        assert res.status_code == 400

    def test_requires_array(self, client, auth_headers, project):
        res = client.post(_sprints_url(project), json={}, headers=auth_headers)
        assert res.get_json()["error"] == "Sprints array is required"


# ═════════════════════════════════════════════════════════════════════════════
# INPUTS
# ═════════════════════════════════════════════════════════════════════════════

class TestInputs:
    def test_versions_increment(self, client, auth_headers, project):
        url = f"/api/v1/projects/{project.id}/inputs"
        first = client.post(url, json={"content": "v1 requirements"}, headers=auth_headers)
        second = client.post(url, json={"content": "v2", "inputType": "note"},
                             headers=auth_headers)
        assert first.status_code == 201
        assert first.get_json()["input"]["version"] == 1
        assert first.get_json()["input"]["input_type"] == "prd_text"
        assert second.get_json()["input"]["version"] == 2

        res = client.get(url, headers=auth_headers)
        assert [i["version"] for i in res.get_json()["inputs"]] == [2, 1]

    def test_blank_content(self, client, auth_headers, project):
        res = client.post(f"/api/v1/projects/{project.id}/inputs", json={"content": "  "},
                          headers=auth_headers)
        assert res.status_code == 400
        assert res.get_json()["error"] == "Content is required"

    def test_unknown_input_type(self, client, auth_headers, project):
        res = client.post(f"/api/v1/projects/{project.id}/inputs",
                          json={"content": "x", "inputType": "poem"}, headers=auth_headers)
        assert res.status_code == 400
