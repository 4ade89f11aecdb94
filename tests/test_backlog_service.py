"""
Tests for board_service/services/backlog_service.py — number allocation.

Epic and story numbers come from the project row read under lock. A copy of
the project already sitting in the session must not stand in for that read.

Scenarios covered:
  1. story_number follows the stored counter, not a stale in-session copy
  2. epic_number follows the stored counter, not a stale in-session copy
"""

from sqlalchemy import update

from board_service.models import db as _db
from board_service.models.project import Project
from board_service.services import backlog_service


def _bump_counter_behind_session(project, **values):
    """Change the project row without refreshing the loaded instance,
    as a concurrent writer would."""
    _db.session.execute(
        update(Project).where(Project.id == project.id).values(**values),
        execution_options={"synchronize_session": False},
    )


class TestNumberAllocation:

    def test_story_number_read_under_lock(self, project, po, actor):
        assert project.next_story_number == 1
        _bump_counter_behind_session(project, next_story_number=5)

        story = backlog_service.create_story(project.id, {"title": "Late arrival"}, actor(po))

        assert story.story_number == 5
        assert _db.session.get(Project, project.id).next_story_number == 6

    def test_epic_number_read_under_lock(self, project, po, actor):
        assert project.next_epic_number == 1
        _bump_counter_behind_session(project, next_epic_number=3)

        epic = backlog_service.create_epic(project.id, {"title": "Late epic"}, actor(po))

        assert epic.epic_number == 3
        assert _db.session.get(Project, project.id).next_epic_number == 4
