"""
Tests for access link issuing, validation and consumption.
"""
import pytest
from datetime import timedelta

from app.core.exceptions import (
    AccessLinkDeactivatedException,
    AccessLinkExhaustedException,
    AccessLinkExpiredException,
    AccessLinkInvalidException,
    InvalidParameterException,
    ResourceNotFoundException,
)
from app.core.timeutils import ensure_utc, utcnow
from app.models.access_link import AccessLink, LinkKind, PaymentStatus
from app.services.access_link_service import AccessLinkService


async def _issue(db, submission, max_uses=3, kind=LinkKind.DOCUMENT, **kwargs):
    return await AccessLinkService.issue_link(
        db,
        submission_id=submission.id,
        kind=kind,
        expires_in_days=7,
        max_uses=max_uses,
        **kwargs
    )


class TestIssueLink:
    """Tests for link creation."""

    async def test_new_link_is_active_with_all_uses(self, db_session, submission):
        link = await _issue(db_session, submission, max_uses=3)

        assert link.is_active
        assert link.max_uses == 3
        assert link.uses_remaining == 3
        assert link.upload_count == 0
        assert ensure_utc(link.expires_at) > utcnow() + timedelta(days=6)

    async def test_tokens_are_unique_and_unguessable(self, db_session, submission):
        first = await _issue(db_session, submission)
        second = await _issue(db_session, submission)

        assert first.token != second.token
        assert len(first.token) >= 32

    async def test_zero_max_uses_is_rejected(self, db_session, submission):
        with pytest.raises(InvalidParameterException):
            await _issue(db_session, submission, max_uses=0)

    async def test_zero_lifetime_is_rejected(self, db_session, submission):
        with pytest.raises(InvalidParameterException):
            await AccessLinkService.issue_link(
                db_session, submission_id=submission.id, kind=LinkKind.DOCUMENT,
                expires_in_days=0, max_uses=1
            )

    async def test_unknown_submission(self, db_session, setup_database):
        with pytest.raises(ResourceNotFoundException):
            await AccessLinkService.issue_link(
                db_session, submission_id=404, kind=LinkKind.DOCUMENT, expires_in_days=1, max_uses=1
            )

    async def test_payment_link_requires_amount(self, db_session, submission):
        with pytest.raises(InvalidParameterException):
            await _issue(db_session, submission, max_uses=1, kind=LinkKind.PAYMENT)

    async def test_payment_link_snapshot(self, db_session, submission):
        link = await _issue(
            db_session, submission, max_uses=1, kind=LinkKind.PAYMENT, amount=250.0, currency="eur"
        )

        assert link.currency == "EUR"
        assert link.payment_status == PaymentStatus.PENDING
        assert isinstance(link.bank_details, dict)

    async def test_link_url(self, db_session, submission):
        link = await _issue(db_session, submission)

        assert AccessLinkService.build_link_url(link).endswith(f"/upload/{link.token}")


class TestValidateLink:
    """Tests for the validation order: unknown, deactivated, expired, exhausted."""

    async def test_valid_link(self, db_session, submission):
        link = await _issue(db_session, submission)

        result = await AccessLinkService.validate_link(db_session, link.token, LinkKind.DOCUMENT)

        assert result.id == link.id
        assert result.submission.name == "Jane Doe"

    async def test_unknown_token(self, db_session, setup_database):
        with pytest.raises(AccessLinkInvalidException):
            await AccessLinkService.validate_link(db_session, "does-not-exist")

    async def test_wrong_kind_is_unknown(self, db_session, submission):
        link = await _issue(db_session, submission)

        with pytest.raises(AccessLinkInvalidException):
            await AccessLinkService.validate_link(db_session, link.token, LinkKind.PAYMENT)

    async def test_expired_link(self, db_session, submission):
        link = await _issue(db_session, submission)
        link.expires_at = utcnow() - timedelta(seconds=1)
        await db_session.commit()

        with pytest.raises(AccessLinkExpiredException):
            await AccessLinkService.validate_link(db_session, link.token)

    async def test_deactivated_wins_over_expired(self, db_session, submission):
        link = await _issue(db_session, submission)
        link.expires_at = utcnow() - timedelta(days=1)
        link.is_active = False
        await db_session.commit()

        with pytest.raises(AccessLinkDeactivatedException):
            await AccessLinkService.validate_link(db_session, link.token)

    def test_expiry_boundary_is_exclusive(self):
        now = utcnow()
        link = AccessLink(is_active=True, expires_at=now, uses_remaining=1, max_uses=1)

        with pytest.raises(AccessLinkExpiredException):
            AccessLinkService.check_usable(link, now)
        AccessLinkService.check_usable(link, now - timedelta(microseconds=1))

    def test_exhausted_link(self):
        link = AccessLink(
            is_active=True, expires_at=utcnow() + timedelta(days=1), uses_remaining=0, max_uses=2
        )

        with pytest.raises(AccessLinkExhaustedException):
            AccessLinkService.check_usable(link)


class TestConsume:
    """Tests for claiming uses."""

    async def test_consume_decrements(self, db_session, submission):
        link = await _issue(db_session, submission, max_uses=3)

        claimed = await AccessLinkService.consume(db_session, link.token, LinkKind.DOCUMENT, count=2)
        await db_session.commit()

        assert claimed.uses_remaining == 1
        assert claimed.upload_count == 2
        assert claimed.last_used_at is not None

    async def test_claim_more_than_remaining(self, db_session, submission):
        link = await _issue(db_session, submission, max_uses=2)

        with pytest.raises(AccessLinkExhaustedException) as exc_info:
            await AccessLinkService.consume(db_session, link.token, LinkKind.DOCUMENT, count=3)

        assert "Only 2 upload(s) remaining" in exc_info.value.detail
        await db_session.rollback()
        await db_session.refresh(link)
        assert link.uses_remaining == 2

    async def test_single_use_link_is_exhausted_after_use(self, db_session, submission):
        link = await _issue(db_session, submission, max_uses=1)
        await AccessLinkService.consume(db_session, link.token, LinkKind.DOCUMENT)
        await db_session.commit()

        with pytest.raises(AccessLinkExhaustedException):
            await AccessLinkService.consume(db_session, link.token, LinkKind.DOCUMENT)

    async def test_deactivated_link_cannot_be_consumed(self, db_session, submission):
        link = await _issue(db_session, submission)
        await AccessLinkService.deactivate_link(db_session, link.id)

        with pytest.raises(AccessLinkDeactivatedException):
            await AccessLinkService.consume(db_session, link.token, LinkKind.DOCUMENT)

    async def test_non_positive_count(self, db_session, submission):
        link = await _issue(db_session, submission)

        with pytest.raises(InvalidParameterException):
            await AccessLinkService.claim_uses(db_session, link, 0)

    async def test_concurrent_claims_never_overspend(self, db_session, submission, session_factory):
        """The loser of a race on the last use gets an exhausted error."""
        link = await _issue(db_session, submission, max_uses=1)

        async with session_factory() as session_a, session_factory() as session_b:
            link_a = await AccessLinkService.validate_link(session_a, link.token, LinkKind.DOCUMENT)

            await AccessLinkService.consume(session_b, link.token, LinkKind.DOCUMENT)
            await session_b.commit()

            with pytest.raises(AccessLinkExhaustedException):
                await AccessLinkService.claim_uses(session_a, link_a, 1)
            await session_a.rollback()

        await db_session.refresh(link)
        assert link.uses_remaining == 0

    async def test_restore_use_is_capped(self, db_session, submission):
        link = await _issue(db_session, submission, max_uses=1)

        await AccessLinkService.restore_use(db_session, link)
        await db_session.commit()

        assert link.uses_remaining == 1


class TestDeactivate:
    """Tests for staff deactivation."""

    async def test_deactivate_link(self, db_session, submission):
        link = await _issue(db_session, submission)

        result = await AccessLinkService.deactivate_link(db_session, link.id, LinkKind.DOCUMENT)

        assert not result.is_active

    async def test_deactivate_wrong_kind(self, db_session, submission):
        link = await _issue(db_session, submission)

        with pytest.raises(ResourceNotFoundException):
            await AccessLinkService.deactivate_link(db_session, link.id, LinkKind.PAYMENT)

    async def test_deactivate_active_links_only_touches_kind(self, db_session, submission):
        document_link = await _issue(db_session, submission)
        payment_link = await _issue(db_session, submission, max_uses=1, kind=LinkKind.PAYMENT, amount=10)

        count = await AccessLinkService.deactivate_active_links(db_session, submission.id, LinkKind.DOCUMENT)
        await db_session.commit()
        await db_session.refresh(document_link)
        await db_session.refresh(payment_link)

        assert count == 1
        assert not document_link.is_active
        assert payment_link.is_active

    async def test_list_links_newest_first(self, db_session, submission):
        first = await _issue(db_session, submission)
        second = await _issue(db_session, submission)

        links = await AccessLinkService.list_links(db_session, submission.id, LinkKind.DOCUMENT)

        assert [link.id for link in links] == [second.id, first.id]
