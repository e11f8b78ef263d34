"""Tests for gatekeeper/auth/otp.py - OTP issuance and verification."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, create_engine, select

from gatekeeper.auth.exceptions import OtpRateLimitError
from gatekeeper.auth.models import OtpCode, OtpPurpose
from gatekeeper.auth.otp import (
    OtpFailureReason,
    OtpManager,
    OtpRejected,
    OtpVerified,
    generate_code,
)
from gatekeeper.auth.rate_limit import RateLimiter
from gatekeeper.user.models import User


def _wrong(code: str) -> str:
    return "000000" if code != "000000" else "111111"


class TestGenerateCode:
    def test_always_six_digits(self):
        for _ in range(500):
            code = generate_code()
            assert len(code) == 6
            assert code.isdigit()
            assert code[0] != "0"


class TestGenerate:
    def test_issues_code_with_expiry(self, otp_manager: OtpManager, test_user: User, clock):
        issued = otp_manager.generate(test_user.id, OtpPurpose.login)

        assert len(issued.code) == 6
        assert issued.expires_at == clock.now + timedelta(minutes=10)

    def test_replaces_previous_unverified_code(
        self, otp_manager: OtpManager, test_user: User, session: Session
    ):
        first = otp_manager.generate(test_user.id, OtpPurpose.login)
        second = otp_manager.generate(test_user.id, OtpPurpose.login)

        codes = session.exec(select(OtpCode).where(OtpCode.user_id == test_user.id)).all()
        assert len(codes) == 1
        assert codes[0].code == second.code
        if first.code != second.code:
            assert isinstance(
                otp_manager.verify(test_user.id, first.code, OtpPurpose.login), OtpRejected
            )

    def test_purposes_are_independent(
        self, otp_manager: OtpManager, test_user: User, session: Session
    ):
        otp_manager.generate(test_user.id, OtpPurpose.login)
        otp_manager.generate(test_user.id, OtpPurpose.email_verification)

        codes = session.exec(select(OtpCode).where(OtpCode.user_id == test_user.id)).all()
        assert {c.purpose for c in codes} == {OtpPurpose.login, OtpPurpose.email_verification}

    def test_hourly_issuance_limit(self, otp_manager: OtpManager, test_user: User):
        for _ in range(5):
            otp_manager.generate(test_user.id, OtpPurpose.login)

        with pytest.raises(OtpRateLimitError) as exc_info:
            otp_manager.generate(test_user.id, OtpPurpose.login)

        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after is not None
        assert exc_info.value.retry_after > 0

    def test_issuance_limit_resets_after_an_hour(
        self, otp_manager: OtpManager, test_user: User, clock
    ):
        for _ in range(5):
            otp_manager.generate(test_user.id, OtpPurpose.login)
        clock.advance(hours=1, seconds=1)

        assert otp_manager.generate(test_user.id, OtpPurpose.login).code


class TestVerify:
    def test_correct_code(self, otp_manager: OtpManager, test_user: User):
        issued = otp_manager.generate(test_user.id, OtpPurpose.login)
        result = otp_manager.verify(test_user.id, issued.code, OtpPurpose.login)
        assert isinstance(result, OtpVerified)
        assert result.success

    def test_code_cannot_be_reused(self, otp_manager: OtpManager, test_user: User):
        issued = otp_manager.generate(test_user.id, OtpPurpose.login)
        otp_manager.verify(test_user.id, issued.code, OtpPurpose.login)

        result = otp_manager.verify(test_user.id, issued.code, OtpPurpose.login)

        assert result == OtpRejected(OtpFailureReason.invalid_or_expired, 0)

    def test_no_code(self, otp_manager: OtpManager, test_user: User):
        result = otp_manager.verify(test_user.id, "123456", OtpPurpose.login)
        assert result == OtpRejected(OtpFailureReason.invalid_or_expired, 0)

    def test_expired_code(self, otp_manager: OtpManager, test_user: User, clock):
        issued = otp_manager.generate(test_user.id, OtpPurpose.login)
        clock.advance(minutes=10, seconds=1)

        result = otp_manager.verify(test_user.id, issued.code, OtpPurpose.login)

        assert result.reason is OtpFailureReason.invalid_or_expired

    def test_wrong_purpose(self, otp_manager: OtpManager, test_user: User):
        issued = otp_manager.generate(test_user.id, OtpPurpose.email_verification)
        result = otp_manager.verify(test_user.id, issued.code, OtpPurpose.login)
        assert result.reason is OtpFailureReason.invalid_or_expired

    def test_mismatch_counts_down(self, otp_manager: OtpManager, test_user: User):
        issued = otp_manager.generate(test_user.id, OtpPurpose.login)
        wrong = _wrong(issued.code)

        left = [
            otp_manager.verify(test_user.id, wrong, OtpPurpose.login).attempts_left
            for _ in range(3)
        ]

        assert left == [4, 3, 2]

    def test_locks_after_max_attempts(self, otp_manager: OtpManager, test_user: User):
        issued = otp_manager.generate(test_user.id, OtpPurpose.login)
        wrong = _wrong(issued.code)
        for _ in range(5):
            otp_manager.verify(test_user.id, wrong, OtpPurpose.login)

        locked = otp_manager.verify(test_user.id, issued.code, OtpPurpose.login)
        after = otp_manager.verify(test_user.id, issued.code, OtpPurpose.login)

        assert locked == OtpRejected(OtpFailureReason.max_attempts_exceeded, 0)
        assert after.reason is OtpFailureReason.invalid_or_expired

    @pytest.mark.parametrize("failures", range(5))
    def test_correct_code_accepted_below_limit(
        self, otp_manager: OtpManager, test_user: User, failures
    ):
        """A correct code still works after fewer than max failures."""
        issued = otp_manager.generate(test_user.id, OtpPurpose.login)
        for _ in range(failures):
            otp_manager.verify(test_user.id, _wrong(issued.code), OtpPurpose.login)

        assert isinstance(
            otp_manager.verify(test_user.id, issued.code, OtpPurpose.login), OtpVerified
        )


class TestHousekeeping:
    def test_consume_deletes_codes_for_purpose(
        self, otp_manager: OtpManager, test_user: User, session: Session
    ):
        otp_manager.generate(test_user.id, OtpPurpose.login)
        otp_manager.generate(test_user.id, OtpPurpose.email_verification)

        assert otp_manager.consume(test_user.id, OtpPurpose.login) == 1
        remaining = session.exec(select(OtpCode)).all()
        assert [c.purpose for c in remaining] == [OtpPurpose.email_verification]

    def test_invalidate_all_purposes(self, otp_manager: OtpManager, test_user: User):
        otp_manager.generate(test_user.id, OtpPurpose.login)
        otp_manager.generate(test_user.id, OtpPurpose.email_verification)
        assert otp_manager.invalidate(test_user.id) == 2

    def test_status(self, otp_manager: OtpManager, test_user: User):
        assert not otp_manager.status(test_user.id, OtpPurpose.login).has_active_otp

        issued = otp_manager.generate(test_user.id, OtpPurpose.login)
        otp_manager.verify(test_user.id, _wrong(issued.code), OtpPurpose.login)
        status = otp_manager.status(test_user.id, OtpPurpose.login)

        assert status.has_active_otp
        assert status.attempts_used == 1
        assert status.attempts_left == 4
        assert status.expires_at == issued.expires_at

    def test_sweep_expired(self, otp_manager: OtpManager, make_user, clock):
        old_user, new_user = make_user(), make_user()
        otp_manager.generate(old_user.id, OtpPurpose.login)
        clock.advance(minutes=11)
        otp_manager.generate(new_user.id, OtpPurpose.login)

        assert otp_manager.sweep_expired() == 1
        assert otp_manager.status(new_user.id, OtpPurpose.login).has_active_otp

    def test_stats(self, otp_manager: OtpManager, make_user, clock):
        a, b, c = make_user(), make_user(), make_user()
        expired = otp_manager.generate(a.id, OtpPurpose.login)
        clock.advance(minutes=11)
        verified = otp_manager.generate(b.id, OtpPurpose.login)
        otp_manager.verify(b.id, verified.code, OtpPurpose.login)
        otp_manager.generate(c.id, OtpPurpose.login)

        stats = otp_manager.stats()

        assert expired.code
        assert stats.total == 3
        assert stats.expired == 1
        assert stats.verified == 1
        assert stats.active == 1


class TestOpenCodeConstraint:
    def test_second_open_code_rejected(self, otp_manager: OtpManager, test_user, session, clock):
        otp_manager.generate(test_user.id, OtpPurpose.login)

        session.add(
            OtpCode(
                user_id=test_user.id,
                code="123456",
                purpose=OtpPurpose.login,
                expires_at=clock.now + timedelta(minutes=10),
            )
        )
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_verified_code_does_not_block_new_one(
        self, otp_manager: OtpManager, test_user, session: Session
    ):
        issued = otp_manager.generate(test_user.id, OtpPurpose.login)
        assert isinstance(
            otp_manager.verify(test_user.id, issued.code, OtpPurpose.login), OtpVerified
        )

        otp_manager.generate(test_user.id, OtpPurpose.login)

        codes = session.exec(select(OtpCode).where(OtpCode.user_id == test_user.id)).all()
        assert sorted(code.verified for code in codes) == [False, True]


class TestConcurrentVerify:
    @pytest.fixture(name="engine")
    def engine_fixture(self, tmp_path):
        engine = create_engine(f"sqlite:///{tmp_path / 'otp.db'}")
        SQLModel.metadata.create_all(engine)
        yield engine
        engine.dispose()

    def _manager(self, session: Session, clock) -> OtpManager:
        return OtpManager(session, RateLimiter(clock), clock=clock)

    def test_wrong_guesses_from_two_sessions_both_count(self, engine, clock):
        with Session(engine) as setup:
            user = User(email="race@example.com", name="Race")
            setup.add(user)
            setup.commit()
            user_id = user.id
            issued = self._manager(setup, clock).generate(user_id, OtpPurpose.login)

        with Session(engine) as first, Session(engine) as second:
            first_manager = self._manager(first, clock)
            second_manager = self._manager(second, clock)
            # Both sessions hold the code before either guess is stored.
            assert first_manager.status(user_id, OtpPurpose.login).attempts_used == 0
            assert second_manager.status(user_id, OtpPurpose.login).attempts_used == 0

            first_result = first_manager.verify(user_id, _wrong(issued.code), OtpPurpose.login)
            second_result = second_manager.verify(user_id, _wrong(issued.code), OtpPurpose.login)

        assert first_result.attempts_left == 4
        assert second_result.attempts_left == 3
        with Session(engine) as check:
            stored = check.exec(select(OtpCode).where(OtpCode.user_id == user_id)).one()
            assert stored.attempts == 2
