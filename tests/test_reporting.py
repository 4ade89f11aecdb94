"""
Tests — Project rollups and the fail-soft portfolio overview.

Covers:
    - project_progress hours / percent (halves round up), zero-hours project
    - backlog_health over active stories only
    - top_stories ranking and completed-story exclusion
    - stories_without_issues ordering
    - sprint_summary ordering (active first, newest end date next)
    - status_distribution has every column
    - portfolio_overview keeps going past a missing project or a store failure
"""

from datetime import date, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from board_service.core.exceptions import NotFoundError
from board_service.services import (
    backlog_service,
    board_service,
    project_service,
    reporting_service,
    sprint_service,
)


def _make_story(project, actor, title, bv=0, urg=0, sp=None, **extra):
    data = {"title": title, "business_value": bv, "urgency": urg, "story_points": sp}
    data.update(extra)
    return backlog_service.create_story(project.id, data, actor)


def _make_issue(story, actor, title, hours=0, status=None):
    data = {"title": title, "time_estimate": hours}
    if status:
        data["status"] = status
    return board_service.create_issue(story.id, data, actor)


# ═════════════════════════════════════════════════════════════════════════════
# PROGRESS & HEALTH
# ═════════════════════════════════════════════════════════════════════════════

class TestProjectProgress:

    def test_no_hours_is_zero_percent(self, project):
        assert reporting_service.project_progress(project.id) == {
            "total_hours": 0, "completed_hours": 0, "percent": 0,
        }

    def test_only_unestimated_issues(self, story, sm, actor):
        _make_issue(story, actor(sm), "No estimate", hours=0, status="DONE")
        assert reporting_service.project_progress(story.project_id)["percent"] == 0

    def test_hours_rollup(self, project, story, issue, sm, actor):
        done = _make_issue(story, actor(sm), "Tests", hours=2)
        board_service.move_issue(done.id, "DONE", actor(sm))
        progress = reporting_service.project_progress(project.id)
        assert progress == {"total_hours": 8.0, "completed_hours": 2.0, "percent": 25}

    def test_percent_rounds_half_up(self, project, story, sm, actor):
        done = _make_issue(story, actor(sm), "Quick fix", hours=1)
        _make_issue(story, actor(sm), "Long haul", hours=7)
        board_service.move_issue(done.id, "DONE", actor(sm))
        assert reporting_service.project_progress(project.id)["percent"] == 13

    def test_unknown_project(self):
        with pytest.raises(NotFoundError):
            reporting_service.project_progress(424242)


class TestBacklogHealth:

    def test_empty_backlog(self, project):
        assert reporting_service.backlog_health(project.id) == 0

    def test_ratio_of_estimated_active_stories(self, project, story, po, actor):
        _make_story(project, actor(po), "Unestimated")
        _make_story(project, actor(po), "Zero points", sp=0)
        _make_story(project, actor(po), "Estimated", sp=3)
        # story fixture (5 pts) + Estimated out of four active stories
        assert reporting_service.backlog_health(project.id) == 50

    def test_completed_stories_not_counted(self, project, po, actor):
        _make_story(project, actor(po), "Unestimated")
        _make_story(project, actor(po), "Shipped", sp=8, status="DONE")
        assert reporting_service.backlog_health(project.id) == 0


# ═════════════════════════════════════════════════════════════════════════════
# STORY LISTS
# ═════════════════════════════════════════════════════════════════════════════

class TestTopStories:

    def test_ranked_by_score(self, project, story, po, actor):
        low = _make_story(project, actor(po), "Low", bv=5, urg=0, sp=5)
        high = _make_story(project, actor(po), "High", bv=100, urg=100, sp=1)
        ids = [s.id for s in reporting_service.top_stories(project.id, n=3)]
        assert ids == [high.id, story.id, low.id]

    def test_limit(self, project, story, po, actor):
        _make_story(project, actor(po), "Another", bv=1)
        assert len(reporting_service.top_stories(project.id, n=1)) == 1
        assert reporting_service.top_stories(project.id, n=0) == []

    def test_story_dropped_once_all_issues_done(self, project, story, issue, sm, actor):
        assert story in reporting_service.top_stories(project.id)
        board_service.move_issue(issue.id, "DONE", actor(sm))
        assert story not in reporting_service.top_stories(project.id)


class TestStoriesWithoutIssues:

    def test_number_order(self, project, story, issue, po, actor):
        later = _make_story(project, actor(po), "Later", bv=90, urg=90, sp=1)
        earlier_empty = _make_story(project, actor(po), "Plain")
        result = reporting_service.stories_without_issues(project.id)
        assert [s.id for s in result] == [later.id, earlier_empty.id]
        assert story not in result


# ═════════════════════════════════════════════════════════════════════════════
# SPRINTS & COLUMNS
# ═════════════════════════════════════════════════════════════════════════════

class TestSprintSummary:

    def test_active_first_then_newest(self, project, sprint, issue, sm, actor):
        today = date.today()
        old = sprint_service.create_sprint(
            project.id,
            {"name": "Old", "start_date": (today - timedelta(days=60)).isoformat(),
             "end_date": (today - timedelta(days=46)).isoformat()},
            actor(sm),
        )
        future = sprint_service.create_sprint(
            project.id,
            {"name": "Next", "start_date": (today + timedelta(days=20)).isoformat(),
             "end_date": (today + timedelta(days=34)).isoformat()},
            actor(sm),
        )
        board_service.assign_to_sprint(issue.id, sprint.id, actor(sm))

        rows = reporting_service.sprint_summary(project.id)
        assert [r["id"] for r in rows] == [sprint.id, future.id, old.id]
        assert rows[0]["is_active"] is True
        assert rows[0]["issue_count"] == 1
        assert rows[0]["total_hours"] == 6.0
        assert rows[1]["issue_count"] == 0


class TestStatusDistribution:

    def test_every_column_present(self, project, story, issue, sm, actor):
        blocked = _make_issue(story, actor(sm), "Waiting on vendor")
        board_service.move_issue(blocked.id, "BLOCKED", actor(sm))
        dist = reporting_service.status_distribution(project.id)
        assert dist == {
            "TO_DO": 1, "IN_PROGRESS": 0, "CODE_REVIEW": 0,
            "QA": 0, "BLOCKED": 1, "DONE": 0,
        }


class TestDashboard:

    def test_dashboard_sections(self, project, story, issue):
        dash = reporting_service.project_dashboard(project.id)
        assert dash["project"]["id"] == project.id
        assert dash["progress"]["total_hours"] == 6.0
        assert dash["backlog_health"] == 100
        assert dash["top_stories"][0]["id"] == story.id
        assert dash["stories_without_issues"] == []


# ═════════════════════════════════════════════════════════════════════════════
# PORTFOLIO
# ═════════════════════════════════════════════════════════════════════════════

class TestPortfolioOverview:

    def test_missing_project_reported_not_fatal(self, project, issue):
        result = reporting_service.portfolio_overview([project.id, 999])
        assert [p["project"]["id"] for p in result["projects"]] == [project.id]
        assert result["failed"] == [
            {"project_id": 999, "type": "ERR_NOT_FOUND", "error": result["failed"][0]["error"]},
        ]
        assert "999" in result["failed"][0]["error"]

    def test_all_projects_by_default(self, project, story):
        result = reporting_service.portfolio_overview()
        assert len(result["projects"]) == 1
        rollup = result["projects"][0]
        assert rollup["active_stories"] == 1
        assert rollup["stories_without_issues"] == 1
        assert result["failed"] == []

    def test_store_failure_reported_not_fatal(self, project, admin, po, actor):
        other = project_service.create_project({"name": "Warehouse", "owner_id": po.id}, actor(admin))
        real_progress = reporting_service.project_progress

        def flaky(project_id):
            if project_id == project.id:
                raise OperationalError("SELECT issues", {}, Exception("database is locked"))
            return real_progress(project_id)

        with patch.object(reporting_service, "project_progress", side_effect=flaky):
            result = reporting_service.portfolio_overview([project.id, other.id])

        assert [p["project"]["id"] for p in result["projects"]] == [other.id]
        assert result["failed"] == [
            {"project_id": project.id, "type": "ERR_TRANSIENT", "error": "OperationalError"},
        ]
