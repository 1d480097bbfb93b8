"""
Tests for the AuthService and the seed data it logs in against.
"""

import logging

import pytest
from sqlalchemy import select

from opsdesk.errors import UnauthorizedError
from opsdesk.models.audit_log import AuditLog
from opsdesk.models.permission import Permission
from opsdesk.schemas.auth import ClientMeta
from opsdesk.security import decode_access_token
from opsdesk.seed import ACTIONS, RESOURCES, seed_defaults
from opsdesk.services.audit_service import AuditRecorder
from opsdesk.services.auth_service import AuthService, claims_for
from opsdesk.services.authorization import Authorizer

# Credentials of the admin fixture in conftest.py
ADMIN_EMAIL = "admin@opsdesk.test"
ADMIN_PASSWORD = "admin-password"


class TestLogin:

    def test_login_issues_token(self, db_session, admin):
        token, user = AuthService(db_session).login(ADMIN_EMAIL, ADMIN_PASSWORD)

        payload = decode_access_token(token)
        assert payload["sub"] == str(admin.id)
        assert payload["email"] == ADMIN_EMAIL
        assert user.id == admin.id

    def test_login_is_audited(self, db_session, admin):
        audit = AuditRecorder(db_session, ClientMeta(ip_address="192.0.2.1"))
        AuthService(db_session, audit).login(ADMIN_EMAIL, ADMIN_PASSWORD)
        db_session.commit()

        entry = db_session.execute(
            select(AuditLog).where(AuditLog.action == "LOGIN")
        ).scalar_one()
        assert entry.user_id == admin.id
        assert entry.resource == "USER"
        assert entry.resource_id == admin.id
        assert entry.ip_address == "192.0.2.1"

    def test_wrong_password_rejected_and_not_audited(self, db_session, admin, caplog):
        with caplog.at_level(logging.WARNING, logger="opsdesk.services.auth_service"):
            with pytest.raises(UnauthorizedError):
                AuthService(db_session).login(ADMIN_EMAIL, "not-the-password")

        assert "Failed login" in caplog.text
        assert db_session.execute(
            select(AuditLog).where(AuditLog.action == "LOGIN")
        ).first() is None

    def test_unknown_email_rejected(self, db_session, admin):
        with pytest.raises(UnauthorizedError):
            AuthService(db_session).login("nobody@opsdesk.test", ADMIN_PASSWORD)

    def test_logout_is_audited(self, db_session, admin):
        AuthService(db_session).logout(claims_for(admin))
        db_session.commit()

        entry = db_session.execute(
            select(AuditLog).where(AuditLog.action == "LOGOUT")
        ).scalar_one()
        assert entry.user_id == admin.id


class TestSeed:

    def test_catalog_is_complete(self, db_session, admin):
        keys = {p.key for p in db_session.execute(select(Permission)).scalars()}
        assert keys == {f"{r}:{a}" for r in RESOURCES for a in ACTIONS}

    def test_admin_holds_every_permission(self, db_session, admin):
        authorizer = Authorizer(db_session)
        claims = claims_for(admin)
        for resource in RESOURCES:
            for action in ACTIONS:
                assert authorizer.authorize(claims, resource, action)

    def test_seeding_twice_changes_nothing(self, db_session, admin):
        before = db_session.execute(select(AuditLog)).scalars().all()

        seed_defaults(db_session, admin_email=ADMIN_EMAIL, admin_password=ADMIN_PASSWORD)
        db_session.commit()

        after = db_session.execute(select(AuditLog)).scalars().all()
        assert len(after) == len(before)
