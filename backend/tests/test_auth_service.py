# Overview: Pytest coverage for passwords, sessions and the CLI bootstrap commands.

from datetime import timedelta

import pytest

from motopos.models import Order, SessionToken, Tenant, User
from motopos.services import auth_service, session_service
from motopos.services.auth_service import PasswordValidationError
from motopos.time_utils import utcnow
from motopos.validation import ConflictError, NotFoundError


class TestPasswords:
    @pytest.mark.parametrize("password", ["", "Ab1", "soloLetras", "12345678"])
    def test_weak_passwords(self, app, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_hash_and_verify(self, db_session):
        hashed = auth_service.hash_password("Clave1234")
        assert hashed.startswith("$2")
        assert auth_service.verify_password("Clave1234", hashed)
        assert not auth_service.verify_password("Clave12345", hashed)

    def test_malformed_hash_never_matches(self):
        assert auth_service.verify_password("Clave1234", "not-a-bcrypt-hash") is False


class TestUsers:
    def test_authenticate(self, db_session, user_a):
        assert auth_service.authenticate("ANA@llano.com", "Clave1234").id == user_a.id
        assert db_session.get(User, user_a.id).last_login_at is not None
        assert auth_service.authenticate(user_a.email, "Otra12345") is None

    def test_inactive_user_cannot_log_in(self, db_session, user_a):
        user_a.is_active = False
        db_session.commit()
        assert auth_service.authenticate(user_a.email, "Clave1234") is None

    def test_create_user(self, db_session, tenant_a):
        user = auth_service.create_user(
            tenant_id=tenant_a.id, name="Luis", email="Luis@Llano.com", password="Clave1234",
        )
        assert user.email == "luis@llano.com"
        assert user.role == "USER"

    def test_create_user_duplicate_email(self, db_session, user_a):
        with pytest.raises(ConflictError):
            auth_service.create_user(
                tenant_id=user_a.tenant_id, name="Otra", email=user_a.email, password="Clave1234",
            )

    def test_create_user_unknown_tenant(self, db_session):
        with pytest.raises(NotFoundError):
            auth_service.create_user(tenant_id=999, name="X", email="x@x.com", password="Clave1234")


class TestSessions:
    def test_validate_session(self, db_session, user_a):
        session, token = session_service.create_session(user_a.id)

        context = session_service.validate_session(token)
        assert context.user.id == user_a.id
        assert context.tenant_id == user_a.tenant_id
        assert session.token_hash == session_service.hash_token(token)

    def test_expired_session(self, db_session, user_a):
        session, token = session_service.create_session(user_a.id)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_idle_session_is_revoked(self, db_session, app, user_a):
        session, token = session_service.create_session(user_a.id)
        idle_hours = app.config["SESSION_IDLE_TIMEOUT_HOURS"]
        session.last_used_at = utcnow() - timedelta(hours=idle_hours + 1)
        db_session.commit()

        assert session_service.validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_inactive_tenant_cannot_start_session(self, db_session, user_a, tenant_a):
        tenant_a.is_active = False
        db_session.commit()
        with pytest.raises(ValueError):
            session_service.create_session(user_a.id)

    def test_revoke_twice(self, db_session, user_a):
        _, token = session_service.create_session(user_a.id)
        assert session_service.revoke_session(token) is True
        assert session_service.revoke_session(token) is False


class TestCli:
    def test_tenants_create(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "tenants", "create",
            "--business-name", "Motos del Sur",
            "--name", "Sara",
            "--email", "sara@sur.com",
            "--password", "Clave1234",
        ])
        assert "PASS Created tenant" in result.output
        assert db_session.query(Tenant).filter_by(slug="motos-del-sur").count() == 1

    def test_restock_low_stock_job(self, app, db_session, tenant_a, scarce_product_a):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["orders", "restock-low-stock", "--tenant-id", str(tenant_a.id)])

        assert "PASS Created PED-" in result.output
        order = db_session.query(Order).one()
        assert order.history[0].created_by == "Sistema"
