"""
Tests — Role parsing, access policy and the user lifecycle.

Covers:
    - role tag synonyms → closed Role enum; unknown tags rejected
    - access policy matrix for the main actions
    - create / update user (email normalization, duplicates)
    - self-edit of own name / email; roles and other accounts refused
    - deactivation: CRITICAL_DEPENDENCY, REASSIGNMENT_NEEDED, replacement
    - activation
"""

import pytest

from board_service.core.context import Actor, Role
from board_service.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from board_service.models import db as _db
from board_service.models.auth import User
from board_service.services import access_policy, board_service, project_service, user_service


# ═════════════════════════════════════════════════════════════════════════════
# ROLES
# ═════════════════════════════════════════════════════════════════════════════

class TestRoleParsing:

    @pytest.mark.parametrize("tag,role", [
        ("PO", Role.PO),
        ("product_owner", Role.PO),
        ("ROLE_PO", Role.PO),
        ("Scrum_Master", Role.SM),
        ("sm", Role.SM),
        ("developer", Role.DEV),
        ("ROLE_ADMIN", Role.ADMIN),
        ("owner", Role.OWNER),
    ])
    def test_synonyms(self, tag, role):
        assert Role.parse(tag) is role

    @pytest.mark.parametrize("tag", ["", "  ", "TESTER", "ROLE_", None, 7])
    def test_unknown_rejected(self, tag):
        with pytest.raises(ValidationError):
            Role.parse(tag)

    def test_parse_many_dedupes(self):
        assert Role.parse_many(["PO", "product_owner", "DEV"]) == frozenset({Role.PO, Role.DEV})

    def test_superuser(self):
        assert Actor(user_id=1, roles=frozenset({Role.ADMIN})).is_superuser
        assert not Actor(user_id=1, roles=frozenset({Role.PO, Role.SM})).is_superuser


# ═════════════════════════════════════════════════════════════════════════════
# ACCESS POLICY
# ═════════════════════════════════════════════════════════════════════════════

class TestAccessPolicy:

    def test_only_superusers_manage_users(self, admin, po, sm, dev, actor):
        access_policy.ensure_can_manage_users(actor(admin))
        for user in (po, sm, dev):
            with pytest.raises(AuthorizationError) as exc:
                access_policy.ensure_can_manage_users(actor(user))
            assert "ADMIN" in exc.value.details["required"]

    def test_backlog_limited_to_owning_po(self, project, po, make_user, actor):
        access_policy.ensure_can_manage_backlog(actor(po), project)
        other_po = make_user("Other Owner", ["PO"])
        with pytest.raises(AuthorizationError):
            access_policy.ensure_can_manage_backlog(actor(other_po), project)

    def test_sm_manages_sprints_and_issues(self, sm, dev, actor):
        access_policy.ensure_can_manage_sprints(actor(sm))
        access_policy.ensure_can_manage_issues(actor(sm))
        with pytest.raises(AuthorizationError):
            access_policy.ensure_can_manage_sprints(actor(dev))

    def test_multi_role_user(self, make_user, issue, actor):
        hybrid = make_user("Hybrid", ["PO", "SM"])
        access_policy.ensure_can_create_project(actor(hybrid))
        access_policy.ensure_can_move_issue(actor(hybrid), issue)


# ═════════════════════════════════════════════════════════════════════════════
# CREATE / UPDATE
# ═════════════════════════════════════════════════════════════════════════════

class TestCreateUser:

    def test_create_normalizes_and_resolves_roles(self, admin, actor):
        user = user_service.create_user(
            {"email": "Grace@Example.com", "full_name": " Grace Hopper ", "roles": ["developer", "ROLE_SM"]},
            actor(admin),
        )
        assert user.email == "Grace@example.com"
        assert user.full_name == "Grace Hopper"
        assert user.roles == frozenset({Role.DEV, Role.SM})
        assert user.is_active

    def test_duplicate_email(self, admin, dev, actor):
        with pytest.raises(ConflictError) as exc:
            user_service.create_user({"email": dev.email, "full_name": "Clone", "roles": ["DEV"]}, actor(admin))
        assert exc.value.error_type == "ERR_CONFLICT_DUPLICATE"

    def test_bad_email(self, admin, actor):
        with pytest.raises(ValidationError):
            user_service.create_user({"email": "not-an-email", "full_name": "X", "roles": ["DEV"]}, actor(admin))

    def test_unknown_role(self, admin, actor):
        with pytest.raises(ValidationError):
            user_service.create_user({"email": "a@example.com", "full_name": "X", "roles": ["TESTER"]}, actor(admin))

    def test_non_admin_denied(self, po, actor):
        with pytest.raises(AuthorizationError):
            user_service.create_user({"email": "a@example.com", "full_name": "X", "roles": ["DEV"]}, actor(po))
        assert User.query.filter_by(email="a@example.com").first() is None

    def test_update_roles(self, admin, dev, actor):
        updated = user_service.update_user(dev.id, {"roles": ["SM"]}, actor(admin))
        assert updated.roles == frozenset({Role.SM})


class TestSelfEdit:

    def test_own_name_and_email(self, dev, actor):
        updated = user_service.update_user(
            dev.id, {"full_name": "Dev Renamed", "email": "dev.renamed@example.com"}, actor(dev),
        )
        assert updated.full_name == "Dev Renamed"
        assert updated.email == "dev.renamed@example.com"

    def test_own_roles_refused(self, dev, actor):
        with pytest.raises(AuthorizationError, match="roles"):
            user_service.update_user(dev.id, {"full_name": "Boss", "roles": ["ADMIN"]}, actor(dev))
        _db.session.expire_all()
        reloaded = _db.session.get(User, dev.id)
        assert reloaded.roles == frozenset({Role.DEV})
        assert reloaded.full_name != "Boss"

    def test_other_user_refused(self, dev, dev2, actor):
        with pytest.raises(AuthorizationError):
            user_service.update_user(dev2.id, {"full_name": "Hijacked"}, actor(dev))

    def test_own_email_still_unique(self, dev, dev2, actor):
        with pytest.raises(ConflictError):
            user_service.update_user(dev.id, {"email": dev2.email}, actor(dev))


# ═════════════════════════════════════════════════════════════════════════════
# DEACTIVATION
# ═════════════════════════════════════════════════════════════════════════════

class TestDeactivate:

    def test_sole_po_of_active_project_is_critical(self, project, admin, po, actor):
        with pytest.raises(ConflictError) as exc:
            user_service.deactivate_user(po.id, actor(admin))
        assert exc.value.reason == ConflictError.CRITICAL
        assert exc.value.details["projects"] == [{"id": project.id, "name": project.name, "role": "PO"}]
        assert _db.session.get(User, po.id).is_active

    def test_sm_of_active_project_is_critical(self, project, admin, sm, actor):
        with pytest.raises(ConflictError) as exc:
            user_service.deactivate_user(sm.id, actor(admin))
        assert exc.value.details["projects"][0]["role"] == "SM"

    def test_completed_project_does_not_block(self, project, admin, po, actor):
        project_service.update_project(project.id, {"status": "COMPLETED"}, actor(admin))
        assert user_service.deactivate_user(po.id, actor(admin)).is_active is False

    def test_unfinished_issue_needs_replacement(self, issue, admin, dev, actor):
        with pytest.raises(ConflictError) as exc:
            user_service.deactivate_user(dev.id, actor(admin))
        assert exc.value.reason == ConflictError.REASSIGNMENT_NEEDED
        assert exc.value.details["issue_ids"] == [issue.id]
        assert _db.session.get(User, dev.id).is_active

    def test_replacement_takes_over_issues(self, project, issue, admin, dev, dev2, actor):
        result = user_service.deactivate_user(dev.id, actor(admin), replacement_user_id=dev2.id)
        assert result.is_active is False
        reloaded = board_service.get_issue(issue.id)
        assert [u.id for u in reloaded.assignees] == [dev2.id]
        assert dev2 in project.members

    def test_done_issues_do_not_block(self, issue, admin, sm, dev, actor):
        board_service.move_issue(issue.id, "DONE", actor(sm))
        assert user_service.deactivate_user(dev.id, actor(admin)).is_active is False
        # finished work keeps its history
        assert board_service.get_issue(issue.id).is_assigned_to(dev.id)

    def test_replacement_must_be_active_dev(self, issue, admin, po, dev, make_user, actor):
        retired = make_user("Retired Dev", ["DEV"], is_active=False)
        for bad in (dev.id, po.id, retired.id):
            with pytest.raises(ValidationError):
                user_service.deactivate_user(dev.id, actor(admin), replacement_user_id=bad)
        with pytest.raises(NotFoundError):
            user_service.deactivate_user(dev.id, actor(admin), replacement_user_id=31337)
        assert board_service.get_issue(issue.id).is_assigned_to(dev.id)

    def test_already_inactive_is_noop(self, admin, make_user, actor):
        gone = make_user("Gone", ["DEV"], is_active=False)
        assert user_service.deactivate_user(gone.id, actor(admin)).is_active is False

    def test_non_admin_denied(self, sm, dev, actor):
        with pytest.raises(AuthorizationError):
            user_service.deactivate_user(dev.id, actor(sm))


class TestActivate:

    def test_activate(self, admin, make_user, actor):
        gone = make_user("Back Again", ["DEV"], is_active=False)
        assert user_service.activate_user(gone.id, actor(admin)).is_active is True

    def test_list_filters(self, admin, po, dev, make_user):
        make_user("Sleeper", ["DEV"], is_active=False)
        active_devs = user_service.list_users(active=True, role="developer")
        assert [u.id for u in active_devs] == [dev.id]
