"""Unit tests for OtpAuthenticator - code issue, verification and replay."""
import asyncio
import re
from datetime import timedelta

import pytest

from spark.exceptions import (
    AlreadyConsumedError,
    ExpiredError,
    MismatchError,
    NotFoundError,
    ValidationError,
)
from spark.services.otp_service import OtpAuthenticator, normalise_email


@pytest.fixture
def scripted_codes(auth, monkeypatch):
    """Make the authenticator hand out a known sequence of codes."""
    codes = iter(["111111", "222222", "333333", "444444"])
    monkeypatch.setattr(auth, "_generate_code", lambda: next(codes))
    return auth


class TestRequestCode:

    async def test_code_sent_but_not_echoed(self, auth, sender):
        issued = await auth.request_code("a@x.com")
        assert issued.code is None
        assert issued.email == "a@x.com"
        assert re.fullmatch(r"\d{6}", sender.last_code("a@x.com"))

    async def test_expiry_is_ttl_after_issue(self, auth, clock):
        issued = await auth.request_code("a@x.com")
        assert issued.expires_at == clock() + timedelta(minutes=10)

    async def test_echo_mode_returns_code(self, session_factory, profiles, sender, locks, clock):
        demo = OtpAuthenticator(
            session_factory, profiles, sender, locks, clock=clock, echo_code=True
        )
        issued = await demo.request_code("a@x.com")
        assert issued.code == sender.last_code()

    @pytest.mark.parametrize("email", ["", "not-an-email", "a@", "@x.com", "a b@x.com"])
    async def test_malformed_email_rejected(self, auth, sender, email):
        with pytest.raises(ValidationError):
            await auth.request_code(email)
        assert sender.sent == []

    def test_email_normalised(self):
        assert normalise_email("  Ana@Example.COM ") == "ana@example.com"


class TestVerifyCode:

    async def test_first_verify_creates_profile(self, auth, sender, profiles):
        await auth.request_code("a@x.com")
        profile_id = await auth.verify_code("a@x.com", sender.last_code())

        profile = await profiles.get_profile(profile_id)
        assert profile.email == "a@x.com"
        assert profile.interests == []

    async def test_same_email_resolves_same_profile(self, auth, sender):
        await auth.request_code("a@x.com")
        first = await auth.verify_code("a@x.com", sender.last_code())
        await auth.request_code("A@X.com")
        second = await auth.verify_code("a@x.com", sender.last_code())
        assert first == second

    async def test_wrong_code_mismatch(self, scripted_codes):
        await scripted_codes.request_code("a@x.com")
        with pytest.raises(MismatchError):
            await scripted_codes.verify_code("a@x.com", "999999")

    async def test_mismatch_leaves_challenge_usable(self, scripted_codes):
        await scripted_codes.request_code("a@x.com")
        with pytest.raises(MismatchError):
            await scripted_codes.verify_code("a@x.com", "999999")
        assert await scripted_codes.verify_code("a@x.com", "111111")

    async def test_replay_fails(self, scripted_codes):
        await scripted_codes.request_code("a@x.com")
        await scripted_codes.verify_code("a@x.com", "111111")
        with pytest.raises(AlreadyConsumedError):
            await scripted_codes.verify_code("a@x.com", "111111")

    async def test_concurrent_verifies_consume_once(self, scripted_codes, profiles):
        await scripted_codes.request_code("a@x.com")
        results = await asyncio.gather(
            scripted_codes.verify_code("a@x.com", "111111"),
            scripted_codes.verify_code("a@x.com", "111111"),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], AlreadyConsumedError)
        assert (await profiles.get_profile(winners[0])).email == "a@x.com"

    async def test_replay_is_an_expired_error(self):
        assert issubclass(AlreadyConsumedError, ExpiredError)

    async def test_new_request_invalidates_previous_code(self, scripted_codes):
        await scripted_codes.request_code("a@x.com")
        await scripted_codes.request_code("a@x.com")
        with pytest.raises(ExpiredError):
            await scripted_codes.verify_code("a@x.com", "111111")
        assert await scripted_codes.verify_code("a@x.com", "222222")

    async def test_expired_after_ttl(self, scripted_codes, clock):
        await scripted_codes.request_code("a@x.com")
        clock.advance(minutes=10)
        with pytest.raises(ExpiredError):
            await scripted_codes.verify_code("a@x.com", "111111")

    async def test_valid_just_before_ttl(self, scripted_codes, clock):
        await scripted_codes.request_code("a@x.com")
        clock.advance(minutes=9, seconds=59)
        assert await scripted_codes.verify_code("a@x.com", "111111")

    async def test_wrong_code_after_ttl_reports_expiry(self, scripted_codes, clock):
        await scripted_codes.request_code("a@x.com")
        clock.advance(hours=1)
        with pytest.raises(ExpiredError):
            await scripted_codes.verify_code("a@x.com", "999999")

    async def test_no_challenge_not_found(self, auth):
        with pytest.raises(NotFoundError):
            await auth.verify_code("nobody@x.com", "123456")

    async def test_wrong_code_after_consumption_not_found(self, scripted_codes):
        await scripted_codes.request_code("a@x.com")
        await scripted_codes.verify_code("a@x.com", "111111")
        with pytest.raises(NotFoundError):
            await scripted_codes.verify_code("a@x.com", "999999")

    async def test_codes_are_scoped_to_email(self, scripted_codes):
        await scripted_codes.request_code("a@x.com")
        await scripted_codes.request_code("b@x.com")
        with pytest.raises(MismatchError):
            await scripted_codes.verify_code("b@x.com", "111111")
