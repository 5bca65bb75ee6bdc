"""
Tests for the submission workflow: transition table and WorkflowService operations.
"""
import pytest
from sqlalchemy import select

from app.core.exceptions import InvalidTransitionException, ResourceNotFoundException
from app.core.workflow import WorkflowAction, allowed_actions, is_allowed, next_status
from app.models.access_link import AccessLink, LinkKind
from app.models.document import Document, DocumentStatus, DocumentType
from app.models.notification import Notification, NotificationType
from app.models.submission import SubmissionNote, SubmissionStatus, WorkflowStatus
from app.services.workflow_service import WorkflowService


class TestTransitionTable:
    """Tests for the pure state machine."""

    def test_happy_path_order(self):
        """Each action leads to the next stage in order."""
        stage = WorkflowStatus.PENDING_VALIDATION
        for action, expected in [
            (WorkflowAction.VALIDATE, WorkflowStatus.VALIDATED),
            (WorkflowAction.CONFIRM_CALL, WorkflowStatus.CALL_CONFIRMED),
            (WorkflowAction.REQUEST_DOCUMENTS, WorkflowStatus.DOCUMENTS_REQUESTED),
            (WorkflowAction.RECORD_UPLOAD, WorkflowStatus.DOCUMENTS_UPLOADED),
            (WorkflowAction.VERIFY_DOCUMENTS, WorkflowStatus.DOCUMENTS_VERIFIED),
            (WorkflowAction.CONVERT, WorkflowStatus.CONVERTED_TO_CLIENT),
        ]:
            stage = next_status(stage, action)
            assert stage == expected

    def test_skipping_a_stage_is_refused(self):
        """Confirming a call before validation is not allowed."""
        with pytest.raises(InvalidTransitionException) as exc_info:
            next_status(WorkflowStatus.PENDING_VALIDATION, WorkflowAction.CONFIRM_CALL)

        assert "pending_validation" in exc_info.value.detail

    def test_no_backward_transition(self):
        """A verified submission cannot be validated again."""
        with pytest.raises(InvalidTransitionException):
            next_status(WorkflowStatus.DOCUMENTS_VERIFIED, WorkflowAction.VALIDATE)

    def test_legacy_row_without_stage_can_be_validated(self):
        assert next_status(None, WorkflowAction.VALIDATE) == WorkflowStatus.VALIDATED

    def test_repeated_upload_keeps_uploaded_stage(self):
        assert next_status(WorkflowStatus.DOCUMENTS_UPLOADED, WorkflowAction.RECORD_UPLOAD) == \
            WorkflowStatus.DOCUMENTS_UPLOADED

    def test_reissue_keeps_stage(self):
        assert next_status(WorkflowStatus.DOCUMENTS_UPLOADED, WorkflowAction.REISSUE_DOCUMENT_LINK) == \
            WorkflowStatus.DOCUMENTS_UPLOADED

    def test_rejected_submission_accepts_nothing(self):
        for action in WorkflowAction:
            with pytest.raises(InvalidTransitionException) as exc_info:
                next_status(WorkflowStatus.VALIDATED, action, SubmissionStatus.REJECTED)
            assert "rejected" in exc_info.value.detail

    def test_converted_is_terminal(self):
        assert allowed_actions(WorkflowStatus.CONVERTED_TO_CLIENT) == []

    def test_allowed_actions_for_uploaded(self):
        actions = allowed_actions(WorkflowStatus.DOCUMENTS_UPLOADED)

        assert WorkflowAction.VERIFY_DOCUMENTS in actions
        assert WorkflowAction.REISSUE_DOCUMENT_LINK in actions
        assert WorkflowAction.CONVERT not in actions
        assert not is_allowed(WorkflowStatus.DOCUMENTS_UPLOADED, WorkflowAction.REQUEST_DOCUMENTS)


async def _add_document(db, submission, status=DocumentStatus.UNVERIFIED):
    document = Document(
        submission_id=submission.id,
        document_type=DocumentType.PASSPORT,
        original_name="passport.pdf",
        file_name="Jane_Doe_passport_1_0.pdf",
        storage_key=f"documents/{submission.id}/Jane_Doe_passport_1_0.pdf",
        file_size=10,
        mime_type="application/pdf",
        status=status
    )
    db.add(document)
    await db.commit()
    return document


async def _advance_to_requested(db, submission, user):
    await WorkflowService.validate(db, submission.id, user.id)
    await WorkflowService.confirm_call(db, submission.id, user.id)
    return await WorkflowService.request_documents(db, submission.id, user.id)


class TestWorkflowService:
    """Tests for the persisted workflow operations."""

    async def test_validate_records_reviewer(self, db_session, submission, agent_user):
        result = await WorkflowService.validate(db_session, submission.id, agent_user.id)

        assert result.workflow_status == WorkflowStatus.VALIDATED
        assert result.status == SubmissionStatus.IN_REVIEW
        assert result.validated_by == agent_user.id
        assert result.validated_at is not None

    async def test_validate_twice_fails(self, db_session, submission, agent_user):
        await WorkflowService.validate(db_session, submission.id, agent_user.id)

        with pytest.raises(InvalidTransitionException):
            await WorkflowService.validate(db_session, submission.id, agent_user.id)

    async def test_unknown_submission(self, db_session, agent_user):
        with pytest.raises(ResourceNotFoundException):
            await WorkflowService.validate(db_session, 9999, agent_user.id)

    async def test_confirm_call_stores_notes(self, db_session, submission, agent_user):
        await WorkflowService.validate(db_session, submission.id, agent_user.id)
        result = await WorkflowService.confirm_call(db_session, submission.id, agent_user.id, "Client is motivated")

        assert result.workflow_status == WorkflowStatus.CALL_CONFIRMED
        assert result.call_notes == "Client is motivated"
        notes = (await db_session.execute(
            select(SubmissionNote).where(SubmissionNote.submission_id == submission.id)
        )).scalars().all()
        assert [n.content for n in notes] == ["Client is motivated"]

    async def test_request_documents_issues_link(self, db_session, submission, agent_user):
        result, link = await _advance_to_requested(db_session, submission, agent_user)

        assert result.workflow_status == WorkflowStatus.DOCUMENTS_REQUESTED
        assert link.kind == LinkKind.DOCUMENT
        assert link.is_active
        assert link.uses_remaining == link.max_uses == 10

    async def test_request_documents_before_call_leaves_no_link(self, db_session, submission, agent_user):
        await WorkflowService.validate(db_session, submission.id, agent_user.id)

        with pytest.raises(InvalidTransitionException):
            await WorkflowService.request_documents(db_session, submission.id, agent_user.id)

        links = (await db_session.execute(select(AccessLink))).scalars().all()
        assert links == []

    async def test_reissue_deactivates_previous_link(self, db_session, submission, agent_user):
        _, first = await _advance_to_requested(db_session, submission, agent_user)

        result, second = await WorkflowService.request_documents(
            db_session, submission.id, agent_user.id, max_uploads=2
        )
        await db_session.refresh(first)

        assert result.workflow_status == WorkflowStatus.DOCUMENTS_REQUESTED
        assert not first.is_active
        assert second.is_active
        assert second.max_uses == 2

    async def test_verify_documents_requires_all_verified(self, db_session, submission, agent_user):
        await _advance_to_requested(db_session, submission, agent_user)
        await _add_document(db_session, submission, DocumentStatus.VERIFIED)
        await _add_document(db_session, submission, DocumentStatus.UNVERIFIED)
        submission.workflow_status = WorkflowStatus.DOCUMENTS_UPLOADED
        await db_session.commit()

        with pytest.raises(InvalidTransitionException) as exc_info:
            await WorkflowService.verify_documents(db_session, submission.id, agent_user.id)

        assert "(1/2 verified)" in exc_info.value.detail

    async def test_verify_documents_without_documents_fails(self, db_session, submission, agent_user):
        await _advance_to_requested(db_session, submission, agent_user)
        submission.workflow_status = WorkflowStatus.DOCUMENTS_UPLOADED
        await db_session.commit()

        with pytest.raises(InvalidTransitionException):
            await WorkflowService.verify_documents(db_session, submission.id, agent_user.id)

    async def test_convert_creates_client(self, db_session, submission, agent_user):
        await _advance_to_requested(db_session, submission, agent_user)
        await _add_document(db_session, submission, DocumentStatus.VERIFIED)
        submission.workflow_status = WorkflowStatus.DOCUMENTS_UPLOADED
        await db_session.commit()
        await WorkflowService.verify_documents(db_session, submission.id, agent_user.id)

        result, client = await WorkflowService.convert_to_client(db_session, submission.id, agent_user.id)

        assert result.workflow_status == WorkflowStatus.CONVERTED_TO_CLIENT
        assert result.status == SubmissionStatus.COMPLETED
        assert result.converted_to_client
        assert result.client_id == client.id
        assert client.name == "Jane Doe"
        assert client.email == "jane@example.com"
        assert client.phone == "0612345678"

        with pytest.raises(InvalidTransitionException):
            await WorkflowService.convert_to_client(db_session, submission.id, agent_user.id)

    async def test_reject_blocks_further_actions(self, db_session, submission, agent_user):
        _, link = await _advance_to_requested(db_session, submission, agent_user)

        result = await WorkflowService.reject(db_session, submission.id, agent_user.id, "Incomplete file")
        await db_session.refresh(link)

        assert result.status == SubmissionStatus.REJECTED
        assert result.rejection_reason == "Incomplete file"
        assert result.workflow_status == WorkflowStatus.DOCUMENTS_REQUESTED
        assert not link.is_active

        with pytest.raises(InvalidTransitionException):
            await WorkflowService.request_documents(db_session, submission.id, agent_user.id)
        with pytest.raises(InvalidTransitionException):
            await WorkflowService.reject(db_session, submission.id, agent_user.id)

    async def test_transitions_notify_admins(self, db_session, submission, admin_user, agent_user):
        await WorkflowService.validate(db_session, submission.id, agent_user.id)

        types = (await db_session.execute(
            select(Notification.type).where(Notification.recipient_id == admin_user.id)
        )).scalars().all()
        assert NotificationType.SUBMISSION_VALIDATED in types
