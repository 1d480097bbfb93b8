"""
Tests for the UserService: identity store and role bindings.
"""

import pytest
from sqlalchemy import select

from opsdesk.errors import AlreadyExistsError, ForbiddenError, NotFoundError
from opsdesk.models.audit_log import AuditLog
from opsdesk.models.enums import BindingMode, UserStatus
from opsdesk.models.user import User
from opsdesk.schemas.auth import Claims
from opsdesk.schemas.role import RoleCreate
from opsdesk.schemas.user import UserCreate, UserUpdate
from opsdesk.services.role_service import RoleService
from opsdesk.services.user_service import UserService

ACTOR = Claims(user_id=999, email="actor@test.com", name="Actor")


def make_user(service, email="jane@test.com", role_ids=None, **kwargs):
    return service.create_user(ACTOR, UserCreate(
        name=kwargs.pop("name", "Jane Doe"),
        email=email,
        password=kwargs.pop("password", "password123"),
        role_ids=role_ids or [],
        **kwargs,
    ))


def make_roles(db, *names):
    service = RoleService(db)
    return [service.create_role(ACTOR, RoleCreate(name=name)) for name in names]


def role_ids(user):
    return sorted(r.id for r in user.roles)


def user_audit(db, user_id):
    return db.execute(
        select(AuditLog)
        .where(AuditLog.resource == "USER", AuditLog.resource_id == user_id)
        .order_by(AuditLog.sequence)
    ).scalars().all()


class TestCreateUser:

    def test_create_user(self, db_session):
        service = UserService(db_session)
        user = make_user(service, department="Platform")
        db_session.commit()

        assert user.id is not None
        assert user.status == UserStatus.ACTIVE
        assert user.password_hash != "password123"
        assert user.department == "Platform"

    def test_email_is_normalized(self, db_session):
        user = make_user(UserService(db_session), email="  Jane@Test.COM ")
        assert user.email == "jane@test.com"

    def test_duplicate_email_rejected(self, db_session):
        service = UserService(db_session)
        make_user(service)
        db_session.commit()

        with pytest.raises(AlreadyExistsError, match="already exists"):
            make_user(service, email="JANE@test.com")

    def test_create_with_roles(self, db_session):
        ops, dev = make_roles(db_session, "ops", "dev")
        user = make_user(UserService(db_session), role_ids=[ops.id, dev.id])
        db_session.commit()

        assert role_ids(user) == sorted([ops.id, dev.id])

    def test_unknown_role_rejected(self, db_session):
        with pytest.raises(NotFoundError, match="Roles not found"):
            make_user(UserService(db_session), role_ids=[404])

    def test_audit_never_contains_password(self, db_session):
        user = make_user(UserService(db_session))
        db_session.commit()

        entity = user_audit(db_session, user.id)[0].details["entity"]
        assert entity["email"] == "jane@test.com"
        assert "password" not in entity
        assert "password_hash" not in entity


class TestAuthenticate:

    def test_valid_credentials(self, db_session):
        service = UserService(db_session)
        user = make_user(service)
        db_session.commit()

        assert service.authenticate("jane@test.com", "password123").id == user.id

    def test_wrong_password(self, db_session):
        service = UserService(db_session)
        make_user(service)
        db_session.commit()

        assert service.authenticate("jane@test.com", "wrong-password") is None

    def test_inactive_user(self, db_session):
        service = UserService(db_session)
        make_user(service, status=UserStatus.INACTIVE)
        db_session.commit()

        assert service.authenticate("jane@test.com", "password123") is None


class TestUpdateUser:

    def test_update_profile_fields(self, db_session):
        service = UserService(db_session)
        user = make_user(service)
        db_session.commit()

        user = service.update_user(
            ACTOR, user.id, UserUpdate(name="Jane Smith", department="SRE")
        )
        db_session.commit()

        assert user.name == "Jane Smith"
        assert user.department == "SRE"
        audit = user_audit(db_session, user.id)[-1]
        assert audit.action == "UPDATE"
        assert audit.details["before"]["name"] == "Jane Doe"
        assert audit.details["after"]["name"] == "Jane Smith"

    def test_role_ids_replace(self, db_session):
        ops, dev, qa = make_roles(db_session, "ops", "dev", "qa")
        service = UserService(db_session)
        user = make_user(service, role_ids=[ops.id, dev.id])
        db_session.commit()

        user = service.update_user(ACTOR, user.id, UserUpdate(role_ids=[dev.id, qa.id]))
        db_session.commit()

        assert role_ids(user) == sorted([dev.id, qa.id])


class TestDeleteUser:

    def test_soft_delete(self, db_session):
        (ops,) = make_roles(db_session, "ops")
        service = UserService(db_session)
        user = make_user(service, role_ids=[ops.id])
        db_session.commit()
        user_id = user.id

        service.delete_user(ACTOR, user_id)
        db_session.commit()

        row = db_session.get(User, user_id)
        assert row is not None
        assert row.deleted_at is not None
        assert row.roles == []

        with pytest.raises(NotFoundError):
            service.get_user(user_id)
        assert service.get_by_email("jane@test.com") is None

    def test_deleted_users_keep_email_reserved(self, db_session):
        service = UserService(db_session)
        user = make_user(service)
        db_session.commit()
        service.delete_user(ACTOR, user.id)
        db_session.commit()

        with pytest.raises(AlreadyExistsError):
            make_user(service)

    def test_deleted_users_are_not_listed(self, db_session):
        service = UserService(db_session)
        keep = make_user(service, email="keep@test.com")
        gone = make_user(service, email="gone@test.com")
        db_session.commit()
        service.delete_user(ACTOR, gone.id)
        db_session.commit()

        items, total = service.list_users()
        assert total == 1
        assert items[0].id == keep.id

    def test_delete_is_audited_with_pre_image(self, db_session):
        service = UserService(db_session)
        user = make_user(service)
        db_session.commit()

        service.delete_user(ACTOR, user.id)
        db_session.commit()

        audit = user_audit(db_session, user.id)[-1]
        assert audit.action == "DELETE"
        assert audit.details["deleted"]["email"] == "jane@test.com"

    def test_cannot_delete_self(self, db_session):
        service = UserService(db_session)
        user = make_user(service)
        db_session.commit()

        me = Claims(user_id=user.id, email=user.email, name=user.name)
        with pytest.raises(ForbiddenError):
            service.delete_user(me, user.id)


class TestListUsers:

    def test_email_filter_matches_underscore_literally(self, db_session):
        service = UserService(db_session)
        make_user(service, email="ops_lead@test.com")
        make_user(service, email="opsxlead@test.com")
        db_session.commit()

        items, total = service.list_users(email="ops_lead")
        assert total == 1
        assert items[0].email == "ops_lead@test.com"


class TestAssignRoles:

    def test_replace_sets_exact_role_set(self, db_session):
        ops, dev, qa = make_roles(db_session, "ops", "dev", "qa")
        service = UserService(db_session)
        user = make_user(service, role_ids=[ops.id, dev.id])
        db_session.commit()

        user = service.assign_roles_to_user(
            ACTOR, user.id, [dev.id, qa.id], BindingMode.REPLACE
        )
        db_session.commit()

        assert role_ids(user) == sorted([dev.id, qa.id])

    def test_replace_with_empty_list_clears(self, db_session):
        (ops,) = make_roles(db_session, "ops")
        service = UserService(db_session)
        user = make_user(service, role_ids=[ops.id])
        db_session.commit()

        user = service.assign_roles_to_user(ACTOR, user.id, [], BindingMode.REPLACE)
        db_session.commit()

        assert user.roles == []

    def test_add_unions(self, db_session):
        ops, dev = make_roles(db_session, "ops", "dev")
        service = UserService(db_session)
        user = make_user(service, role_ids=[ops.id])
        db_session.commit()

        user = service.assign_roles_to_user(
            ACTOR, user.id, [ops.id, dev.id], BindingMode.ADD
        )
        db_session.commit()

        assert role_ids(user) == sorted([ops.id, dev.id])

    def test_assignment_is_audited(self, db_session):
        (ops,) = make_roles(db_session, "ops")
        service = UserService(db_session)
        user = make_user(service)
        db_session.commit()

        service.assign_roles_to_user(ACTOR, user.id, [ops.id], BindingMode.ADD)
        db_session.commit()

        audit = user_audit(db_session, user.id)[-1]
        assert audit.action == "UPDATE"
        assert audit.details["before"]["roles"] == []
        assert audit.details["after"]["roles"] == [{"id": ops.id, "name": "ops"}]

    def test_unknown_role(self, db_session):
        service = UserService(db_session)
        user = make_user(service)
        db_session.commit()

        with pytest.raises(NotFoundError):
            service.assign_roles_to_user(ACTOR, user.id, [404], BindingMode.ADD)

    def test_unknown_user(self, db_session):
        (ops,) = make_roles(db_session, "ops")
        with pytest.raises(NotFoundError, match="User 404"):
            UserService(db_session).assign_roles_to_user(
                ACTOR, 404, [ops.id], BindingMode.REPLACE
            )


class TestRemoveRoles:

    def test_remove_held_role(self, db_session):
        ops, dev = make_roles(db_session, "ops", "dev")
        service = UserService(db_session)
        user = make_user(service, role_ids=[ops.id, dev.id])
        db_session.commit()

        user = service.remove_roles_from_user(ACTOR, user.id, [ops.id])
        db_session.commit()

        assert role_ids(user) == [dev.id]

    def test_remove_never_held_role_succeeds(self, db_session):
        ops, dev = make_roles(db_session, "ops", "dev")
        service = UserService(db_session)
        user = make_user(service, role_ids=[dev.id])
        db_session.commit()

        user = service.remove_roles_from_user(ACTOR, user.id, [ops.id])
        db_session.commit()

        assert role_ids(user) == [dev.id]

    def test_empty_list_is_a_no_op(self, db_session):
        (ops,) = make_roles(db_session, "ops")
        service = UserService(db_session)
        user = make_user(service, role_ids=[ops.id])
        db_session.commit()
        before = len(user_audit(db_session, user.id))

        user = service.remove_roles_from_user(ACTOR, user.id, [])
        db_session.commit()

        assert role_ids(user) == [ops.id]
        assert len(user_audit(db_session, user.id)) == before

    def test_unknown_role_id(self, db_session):
        service = UserService(db_session)
        user = make_user(service)
        db_session.commit()

        with pytest.raises(NotFoundError):
            service.remove_roles_from_user(ACTOR, user.id, [404])
