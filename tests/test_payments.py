"""
Tests for payment links, receipt uploads and receipt review.
"""
import io
import pytest
from starlette.datastructures import Headers, UploadFile

from app.core.exceptions import (
    AccessLinkExhaustedException,
    AccessLinkInvalidException,
    InvalidParameterException,
    InvalidTransitionException,
)
from app.models.access_link import LinkKind, PaymentStatus
from app.models.payment_receipt import ReceiptStatus
from app.models.submission import WorkflowStatus
from app.services.payment_service import PaymentService
from app.services.workflow_service import WorkflowService


def make_receipt(filename="receipt.pdf", content=b"%PDF-1.4 receipt", content_type="application/pdf"):
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type})
    )


class TestPaymentLink:
    """Tests for payment link generation."""

    async def test_generate_link_is_single_use(self, db_session, submission, agent_user):
        link = await PaymentService.generate_link(db_session, submission.id, 1500.0, agent_user.id, currency="mad")

        assert link.kind == LinkKind.PAYMENT
        assert link.max_uses == 1
        assert link.uses_remaining == 1
        assert link.amount == 1500.0
        assert link.currency == "MAD"
        assert link.payment_status == PaymentStatus.PENDING

    async def test_generate_link_does_not_move_workflow(self, db_session, submission, agent_user):
        await PaymentService.generate_link(db_session, submission.id, 100.0, agent_user.id)
        await db_session.refresh(submission)

        assert submission.workflow_status == WorkflowStatus.PENDING_VALIDATION

    async def test_non_positive_amount(self, db_session, submission, agent_user):
        with pytest.raises(InvalidParameterException):
            await PaymentService.generate_link(db_session, submission.id, 0, agent_user.id)

    async def test_rejected_submission(self, db_session, submission, agent_user):
        await WorkflowService.reject(db_session, submission.id, agent_user.id)

        with pytest.raises(InvalidTransitionException):
            await PaymentService.generate_link(db_session, submission.id, 100.0, agent_user.id)


class TestReceiptUpload:
    """Tests for uploading and reviewing a receipt."""

    async def test_upload_consumes_link(self, db_session, submission, agent_user, storage):
        link = await PaymentService.generate_link(db_session, submission.id, 200.0, agent_user.id)
        service = PaymentService(storage)

        claimed, receipt = await service.upload_receipt(db_session, link.token, make_receipt())

        assert claimed.uses_remaining == 0
        assert claimed.payment_status == PaymentStatus.RECEIPT_UPLOADED
        assert receipt.status == ReceiptStatus.PENDING
        assert receipt.amount == 200.0
        assert receipt.file_name.startswith("Jane_Doe_payment_receipt_")
        assert storage.exists(receipt.storage_key)

        with pytest.raises(AccessLinkExhaustedException):
            await service.upload_receipt(db_session, link.token, make_receipt())

    async def test_document_token_is_not_a_payment_token(self, db_session, submission, agent_user, storage):
        await WorkflowService.validate(db_session, submission.id, agent_user.id)
        await WorkflowService.confirm_call(db_session, submission.id, agent_user.id)
        _, document_link = await WorkflowService.request_documents(db_session, submission.id, agent_user.id)

        with pytest.raises(AccessLinkInvalidException):
            await PaymentService(storage).upload_receipt(db_session, document_link.token, make_receipt())

    async def test_confirm_receipt(self, db_session, submission, agent_user, storage):
        link = await PaymentService.generate_link(db_session, submission.id, 200.0, agent_user.id)
        service = PaymentService(storage)
        _, receipt = await service.upload_receipt(db_session, link.token, make_receipt())

        reviewed, reviewed_link = await service.verify_receipt(
            db_session, receipt.id, agent_user.id, ReceiptStatus.CONFIRMED
        )

        assert reviewed.status == ReceiptStatus.CONFIRMED
        assert reviewed.reviewed_by == agent_user.id
        assert reviewed_link.payment_status == PaymentStatus.CONFIRMED
        assert reviewed_link.uses_remaining == 0

        with pytest.raises(InvalidTransitionException):
            await service.verify_receipt(db_session, receipt.id, agent_user.id, ReceiptStatus.REJECTED)

    async def test_rejecting_receipt_reopens_link(self, db_session, submission, agent_user, storage):
        link = await PaymentService.generate_link(db_session, submission.id, 200.0, agent_user.id)
        service = PaymentService(storage)
        _, receipt = await service.upload_receipt(db_session, link.token, make_receipt())

        reviewed, reviewed_link = await service.verify_receipt(
            db_session, receipt.id, agent_user.id, ReceiptStatus.REJECTED, rejection_reason="Wrong amount"
        )

        assert reviewed.rejection_reason == "Wrong amount"
        assert reviewed_link.payment_status == PaymentStatus.REJECTED
        assert reviewed_link.uses_remaining == 1

        _, second = await service.upload_receipt(db_session, link.token, make_receipt("retry.png", b"\x89PNG", "image/png"))
        assert second.id != receipt.id
        assert len(await service.list_receipts(db_session, submission.id)) == 2

    async def test_review_must_decide(self, db_session, agent_user, storage):
        with pytest.raises(InvalidParameterException):
            await PaymentService(storage).verify_receipt(db_session, 1, agent_user.id, ReceiptStatus.PENDING)
