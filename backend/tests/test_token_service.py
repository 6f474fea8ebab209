# Overview: Pytest coverage for session token issue, verification and revocation.

from datetime import timedelta

import jwt
import pytest

from shopapi.extensions import db
from shopapi.models import RevokedToken, Role
from shopapi.services import token_service
from shopapi.services.token_service import TokenError
from shopapi.time_utils import utcnow


def _kind(token):
    with pytest.raises(TokenError) as exc_info:
        token_service.verify(token)
    return exc_info.value.kind


class TestIssueAndVerify:

    def test_round_trip_claims(self, customer):
        token = token_service.issue(customer.id, customer.role)
        claims = token_service.verify(token)

        assert claims.subject_id == customer.id
        assert claims.role is Role.CUSTOMER
        assert claims.expires_at - claims.issued_at == timedelta(seconds=7 * 24 * 60 * 60)
        assert claims.jti

    def test_every_token_has_unique_jti(self, customer):
        first = token_service.verify(token_service.issue(customer.id, Role.CUSTOMER))
        second = token_service.verify(token_service.issue(customer.id, Role.CUSTOMER))
        assert first.jti != second.jti

    def test_unknown_role_cannot_be_issued(self):
        with pytest.raises(ValueError):
            token_service.issue(1, "superuser")


class TestVerificationFailures:

    def test_expired(self, app, customer):
        lifetime = app.config["JWT_EXPIRES_IN"]
        token = token_service.issue(customer.id, Role.CUSTOMER, now=utcnow() - timedelta(seconds=lifetime + 60))
        assert _kind(token) == token_service.EXPIRED

    def test_bad_signature(self, customer):
        forged = jwt.encode({
            "sub": str(customer.id),
            "role": "admin",
            "iat": 1,
            "exp": 9999999999,
            "jti": "forged",
        }, "another-secret-entirely-0123456789abcdef", algorithm="HS256")
        assert _kind(forged) == token_service.BAD_SIGNATURE

    def test_tampered_payload(self, customer):
        header, payload, signature = token_service.issue(customer.id, Role.CUSTOMER).split(".")
        tampered = ".".join([header, payload[:-2] + ("A" if payload[-2] != "A" else "B") + payload[-1], signature])
        assert _kind(tampered) in (token_service.BAD_SIGNATURE, token_service.MALFORMED)

    @pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c", None])
    def test_malformed(self, token):
        assert _kind(token) == token_service.MALFORMED

    def test_missing_jti_is_malformed(self, app):
        token = jwt.encode(
            {"sub": "1", "role": "customer", "iat": 1, "exp": 9999999999},
            app.config["JWT_SECRET"],
            algorithm="HS256",
        )
        assert _kind(token) == token_service.MALFORMED

    def test_unknown_role_claim_is_malformed(self, app):
        token = jwt.encode(
            {"sub": "1", "role": "superuser", "iat": 1, "exp": 9999999999, "jti": "x"},
            app.config["JWT_SECRET"],
            algorithm="HS256",
        )
        assert _kind(token) == token_service.MALFORMED


class TestRevocation:

    def test_revoked_token_fails_verification(self, customer):
        token = token_service.issue(customer.id, Role.CUSTOMER)
        assert token_service.revoke(token) is True
        assert _kind(token) == token_service.REVOKED

    def test_revoke_is_idempotent(self, customer):
        token = token_service.issue(customer.id, Role.CUSTOMER)
        assert token_service.revoke(token) is True
        assert token_service.revoke(token) is False
        assert db.session.query(RevokedToken).count() == 1

    def test_revoking_one_token_leaves_others_valid(self, customer):
        revoked = token_service.issue(customer.id, Role.CUSTOMER)
        kept = token_service.issue(customer.id, Role.CUSTOMER)
        token_service.revoke(revoked)
        assert token_service.verify(kept).subject_id == customer.id

    def test_expired_token_needs_no_record(self, app, customer):
        lifetime = app.config["JWT_EXPIRES_IN"]
        token = token_service.issue(customer.id, Role.CUSTOMER, now=utcnow() - timedelta(seconds=lifetime + 60))
        assert token_service.revoke(token) is False
        assert db.session.query(RevokedToken).count() == 0

    def test_revocation_record_expires_with_token(self, customer):
        token = token_service.issue(customer.id, Role.CUSTOMER)
        claims = token_service.verify(token)
        token_service.revoke(token)

        record = db.session.query(RevokedToken).filter_by(jti=claims.jti).one()
        assert record.expires_at == claims.expires_at

    def test_cleanup_removes_only_expired_records(self, customer):
        now = utcnow()
        db.session.add_all([
            RevokedToken(jti="old", user_id=customer.id, revoked_at=now - timedelta(days=8), expires_at=now - timedelta(days=1)),
            RevokedToken(jti="live", user_id=customer.id, revoked_at=now, expires_at=now + timedelta(days=1)),
        ])
        db.session.commit()

        assert token_service.cleanup_expired_revocations() == 1
        assert [r.jti for r in db.session.query(RevokedToken).all()] == ["live"]
