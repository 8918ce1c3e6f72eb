"""
Access policy tests.

Verifies:
- Users may only create/read/update their own record, never delete
- Bikes: admin-only create; available bikes readable by anyone signed in;
  owner or admin for everything else
- Jobs: any signed-in user creates; owner or admin for the rest
- Anonymous requesters are denied every rule
- List filters agree with the per-document rules
"""

import itertools
from types import SimpleNamespace

import pytest

from bikeshop.extensions import db
from bikeshop.models import Bike, SecurityEvent, User
from bikeshop.services import access_policy, bike_service, job_service
from bikeshop.services.access_policy import (
    ANONYMOUS,
    AccessDeniedError,
    DENIED_MESSAGE,
    Requester,
    can_access,
    require_access,
    requester_for,
)
from conftest import requester


ALICE = Requester(uid="alice", role="user")
BOB = Requester(uid="bob", role="user")
ADMIN = Requester(uid="root", role="admin")

STATUSES = ("available", "sold", "maintenance")


def _bike(owner="alice", status="available"):
    return SimpleNamespace(id="b1", user_id=owner, status=status)


def _job(owner="alice"):
    return SimpleNamespace(id="j1", user_id=owner)


class TestUserRules:
    @pytest.mark.parametrize("action", ["create", "read", "update"])
    def test_self_allowed(self, action):
        assert can_access(ALICE, "users", action, doc_id="alice")

    @pytest.mark.parametrize("action", ["create", "read", "update"])
    def test_other_user_denied(self, action):
        assert not can_access(ALICE, "users", action, doc_id="bob")

    @pytest.mark.parametrize("who", [ALICE, ADMIN])
    def test_delete_never_allowed(self, who):
        assert not can_access(who, "users", "delete", doc_id=who.uid)

    def test_admin_gets_no_special_access_to_user_records(self):
        assert not can_access(ADMIN, "users", "read", doc_id="alice")


class TestBikeRules:
    def test_only_admin_creates(self):
        assert can_access(ADMIN, "bikes", "create")
        assert not can_access(ALICE, "bikes", "create")

    @pytest.mark.parametrize("status", STATUSES)
    def test_read_rule_matches_formula(self, status):
        bike = _bike(owner="alice", status=status)
        for who in (ALICE, BOB, ADMIN):
            expected = status == "available" or who.uid == "alice" or who.is_admin
            assert can_access(who, "bikes", "read", doc=bike) is expected

    @pytest.mark.parametrize("action,status", itertools.product(["update", "delete"], STATUSES))
    def test_write_rule_is_owner_or_admin(self, action, status):
        bike = _bike(owner="alice", status=status)
        assert can_access(ALICE, "bikes", action, doc=bike)
        assert can_access(ADMIN, "bikes", action, doc=bike)
        assert not can_access(BOB, "bikes", action, doc=bike)

    def test_unowned_bike_is_not_writable_by_users(self):
        bike = _bike(owner=None)
        assert not can_access(ALICE, "bikes", "update", doc=bike)
        assert can_access(ADMIN, "bikes", "update", doc=bike)


class TestJobRules:
    def test_anyone_signed_in_creates(self):
        assert can_access(ALICE, "jobs", "create")
        assert can_access(BOB, "jobs", "create")

    @pytest.mark.parametrize("action", ["read", "update", "delete"])
    def test_owner_or_admin(self, action):
        job = _job(owner="alice")
        assert can_access(ALICE, "jobs", action, doc=job)
        assert can_access(ADMIN, "jobs", action, doc=job)
        assert not can_access(BOB, "jobs", action, doc=job)


class TestAnonymous:
    @pytest.mark.parametrize(
        "collection,action",
        list(itertools.product(["users", "bikes", "jobs"], ["create", "read", "update", "delete"])),
    )
    def test_denied_everywhere(self, collection, action):
        doc = _bike(owner=None) if collection == "bikes" else _job(owner=None)
        assert not can_access(ANONYMOUS, collection, action, doc=doc, doc_id=None)

    def test_anonymous_is_never_admin(self):
        assert not Requester(uid=None, role="admin").is_admin


class TestPolicyErrors:
    def test_unknown_collection_rejected(self):
        with pytest.raises(ValueError):
            can_access(ALICE, "clients", "read")

    def test_unknown_action_rejected(self):
        with pytest.raises(ValueError):
            can_access(ALICE, "bikes", "purchase", doc=_bike())

    def test_denial_uses_generic_message_and_is_audited(self, db_session):
        with pytest.raises(AccessDeniedError) as excinfo:
            require_access(BOB, access_policy.BIKES, access_policy.UPDATE, doc=_bike(owner="alice"))
        assert str(excinfo.value) == DENIED_MESSAGE

        event = db_session.query(SecurityEvent).filter_by(event_type="ACCESS_DENIED").one()
        assert event.resource == "bikes/b1"
        assert event.action == "update"
        assert event.success is False


class TestRoleResolution:
    def test_role_read_from_user_record(self, admin_user, staff_user):
        assert requester_for(admin_user.id).is_admin
        assert not requester_for(staff_user.id).is_admin

    def test_missing_user_resolves_to_user(self, db_session):
        assert requester_for("does-not-exist").role == "user"

    def test_unknown_role_resolves_to_user(self, db_session, staff_user):
        db_session.get(User, staff_user.id).role = "superuser"
        db_session.commit()
        assert requester_for(staff_user.id).role == "user"

    def test_inactive_admin_loses_admin(self, db_session, admin_user):
        db_session.get(User, admin_user.id).is_active = False
        db_session.commit()
        assert not requester_for(admin_user.id).is_admin

    def test_no_uid_is_anonymous(self):
        assert requester_for(None) is ANONYMOUS


class TestListFilters:
    """List queries return exactly the documents the read rule allows."""

    def test_bike_listing_matches_read_rule(self, db_session, admin_user, staff_user, other_user, make_bike):
        make_bike(admin_user, status="available")
        make_bike(admin_user, status="maintenance")
        make_bike(staff_user, status="sold")
        make_bike(other_user, status="maintenance")

        all_bikes = db.session.query(Bike).all()
        for user in (admin_user, staff_user, other_user):
            who = requester(user)
            listed = {b["id"] for b in bike_service.list_bikes(requester=who)["items"]}
            allowed = {b.id for b in all_bikes if can_access(who, "bikes", "read", doc=b)}
            assert listed == allowed

    def test_job_listing_matches_read_rule(self, db_session, admin_user, staff_user, other_user):
        patch = {
            "customer_name": "Jo", "customer_phone": "0400000000",
            "bike_model": "Giant TCR", "work_required": "Service",
        }
        job_service.create_job(patch=dict(patch), requester=requester(staff_user))
        job_service.create_job(patch=dict(patch), requester=requester(other_user))

        assert len(job_service.list_jobs(requester=requester(staff_user))) == 1
        assert len(job_service.list_jobs(requester=requester(other_user))) == 1
        assert len(job_service.list_jobs(requester=requester(admin_user))) == 2
