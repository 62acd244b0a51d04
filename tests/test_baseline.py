"""
Tests — plan baselines and drift.

Covers:
    - Pure comparison arithmetic (with and without a baseline)
    - Sprint overload against the flat 40h/week model
    - Baseline snapshots over HTTP, naming and the history entry
"""

from datetime import date
from types import SimpleNamespace

from app.models import db as _db
from app.models.change import ChangeHistory
from app.models.planning import Sprint, Task
from app.models.resource import Resource
from app.services import baseline_service as bs
from app.services import workload_service as ws


def _project(deadline=None, health="healthy"):
    return SimpleNamespace(deadline=deadline, health=health)


def _sprint(id, start, end, name=None):
    return SimpleNamespace(id=id, name=name or f"Iteration {id}", start_date=start, end_date=end,
                           status="planned")


def _task(hours, sprint_id=None):
    return SimpleNamespace(estimated_hours=hours, sprint_id=sprint_id)


class TestCompareToBaseline:
    def test_no_baseline_means_zero_delta(self):
        tasks = [_task(10), _task(20), _task(15)]
        result = bs.compare_to_baseline(None, tasks, [], _project(date(2025, 6, 30)))
        assert result["has_baseline"] is False
        assert result["baseline"] is None
        assert result["current"]["total_hours"] == 45
        assert result["current"]["task_count"] == 3
        assert result["current"]["planned_delivery_date"] == "2025-06-30"
        assert result["delta"] == {"hours": 0, "tasks": 0, "sprints": 0, "days": 0}

    def test_delta_against_baseline(self):
        baseline = SimpleNamespace(
            total_hours=40, task_count=2, sprint_count=1,
            planned_delivery_date=date(2025, 3, 14),
            to_dict=lambda include_snapshots=False: {"name": "Kickoff"},
        )
        sprints = [
            _sprint(1, date(2025, 3, 3), date(2025, 3, 14)),
            _sprint(2, date(2025, 3, 17), date(2025, 3, 28)),
        ]
        tasks = [_task(10, 1), _task(20, 1), _task(25, 2)]
        result = bs.compare_to_baseline(baseline, tasks, sprints, _project())
        assert result["has_baseline"] is True
        assert result["delta"] == {"hours": 15, "tasks": 1, "sprints": 1, "days": 14}

    def test_delivery_date_falls_back_to_deadline(self):
        assert bs.delivery_date([], _project(date(2025, 9, 1))) == date(2025, 9, 1)


class TestSprintOverload:
    def test_two_week_sprint_over_ninety_percent(self):
        sprint = _sprint(1, date(2025, 1, 6), date(2025, 1, 20), name="Iteration A")
        tasks = [_task(40, 1), _task(35, 1)]
        assert bs.overloaded_sprints([sprint], tasks) == ["Iteration A"]

    def test_exactly_ninety_percent_not_flagged(self):
        sprint = _sprint(1, date(2025, 1, 6), date(2025, 1, 20))
        assert bs.overloaded_sprints([sprint], [_task(72, 1)]) == []

    def test_capacity_parameters(self):
        sprint = _sprint(1, date(2025, 1, 6), date(2025, 1, 20))
        tasks = [_task(30, 1)]
        assert bs.overloaded_sprints([sprint], tasks, weekly_capacity_hours=16) == ["Iteration 1"]
        assert bs.overloaded_sprints([sprint], tasks, overload_ratio=0.3) == ["Iteration 1"]

    def test_flat_and_team_models_differ(self):
        """A one-person team overloads a sprint the flat model calls fine."""
        sprint = _sprint(1, date(2025, 1, 6), date(2025, 1, 20))
        tasks = [_task(50, 1)]
        resources = [SimpleNamespace(weekly_capacity_hours=20)]

        assert bs.overloaded_sprints([sprint], tasks) == []
        load = ws.sprint_team_loads([sprint], tasks, resources)[0]
        assert load["capacity"] == 40
        assert load["utilization_percentage"] == 125


class TestBaselineAPI:
    def _plan(self, project):
        sprint = Sprint(project_id=project.id, name="Iteration 1",
                        start_date=date(2025, 1, 6), end_date=date(2025, 1, 20))
        _db.session.add(sprint)
        _db.session.flush()
        _db.session.add_all([
            Task(project_id=project.id, title="A", estimated_hours=10, sprint_id=sprint.id),
            Task(project_id=project.id, title="B", estimated_hours=20, sprint_id=sprint.id),
            Task(project_id=project.id, title="C", estimated_hours=15),
        ])
        _db.session.commit()
        return sprint

    def test_comparison_without_baseline(self, client, auth_headers, project):
        self._plan(project)
        res = client.get(f"/api/v1/projects/{project.id}/baseline-comparison",
                         headers=auth_headers)
        assert res.status_code == 200
        comparison = res.get_json()["comparison"]
        assert comparison["has_baseline"] is False
        assert comparison["current"]["total_hours"] == 45
        assert comparison["current"]["planned_delivery_date"] == "2025-01-20"
        assert all(v == 0 for v in comparison["delta"].values())
        assert comparison["sprint_overload"] == []

    def test_create_baseline_snapshot(self, client, auth_headers, project):
        self._plan(project)
        res = client.post(f"/api/v1/projects/{project.id}/baseline",
                          json={}, headers=auth_headers)
        assert res.status_code == 201
        baseline = res.get_json()["baseline"]
        assert baseline["name"] == "Baseline 1"
        assert baseline["total_hours"] == 45
        assert baseline["task_count"] == 3
        assert baseline["sprint_count"] == 1
        assert baseline["planned_delivery_date"] == "2025-01-20"

        entry = ChangeHistory.query.filter_by(project_id=project.id).one()
        assert entry.action == "baseline_created"
        assert entry.change_request_id is None

    def test_delta_after_more_work(self, client, auth_headers, project):
        sprint = self._plan(project)
        client.post(f"/api/v1/projects/{project.id}/baseline",
                    json={"name": "Kickoff"}, headers=auth_headers)
        _db.session.add(Task(project_id=project.id, title="D", estimated_hours=50,
                             sprint_id=sprint.id))
        _db.session.commit()

        res = client.get(f"/api/v1/projects/{project.id}/baseline-comparison",
                         headers=auth_headers)
        comparison = res.get_json()["comparison"]
        assert comparison["has_baseline"] is True
        assert comparison["baseline"]["name"] == "Kickoff"
        assert comparison["delta"]["hours"] == 50
        assert comparison["delta"]["tasks"] == 1
        assert comparison["sprint_overload"] == ["Iteration 1"]

    def test_list_newest_first(self, client, auth_headers, project):
        for name in ("First", "Second"):
            client.post(f"/api/v1/projects/{project.id}/baseline",
                        json={"name": name}, headers=auth_headers)
        res = client.get(f"/api/v1/projects/{project.id}/baseline", headers=auth_headers)
        names = [b["name"] for b in res.get_json()["baselines"]]
        assert names == ["Second", "First"]

    def test_comparison_uses_latest_baseline(self, client, auth_headers, project):
        sprint = self._plan(project)
        client.post(f"/api/v1/projects/{project.id}/baseline",
                    json={"name": "Kickoff"}, headers=auth_headers)
        _db.session.add(Task(project_id=project.id, title="D", estimated_hours=30,
                             sprint_id=sprint.id))
        _db.session.commit()
        client.post(f"/api/v1/projects/{project.id}/baseline",
                    json={"name": "Rescope"}, headers=auth_headers)
        _db.session.add(Task(project_id=project.id, title="E", estimated_hours=5))
        _db.session.commit()

        res = client.get(f"/api/v1/projects/{project.id}/baseline-comparison",
                         headers=auth_headers)
        comparison = res.get_json()["comparison"]
        assert comparison["baseline"]["name"] == "Rescope"
        assert comparison["baseline"]["total_hours"] == 75
        assert comparison["delta"]["hours"] == 5
        assert comparison["delta"]["tasks"] == 1
        assert comparison["delta"]["sprints"] == 0

    def test_resources_do_not_change_flat_overload(self, client, auth_headers, project, user):
        self._plan(project)
        _db.session.add(Resource(user_id=user.id, name="Solo", weekly_capacity_hours=5))
        _db.session.commit()
        res = client.get(f"/api/v1/projects/{project.id}/baseline-comparison",
                         headers=auth_headers)
        assert res.get_json()["comparison"]["sprint_overload"] == []
