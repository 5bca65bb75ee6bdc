"""
Submission workflow state machine.

Every stage change goes through ``next_status``; an action that is not in
the table for the current stage raises ``InvalidTransitionException``.
"""
import enum
from typing import Dict, FrozenSet, NamedTuple, Optional
from app.core.exceptions import InvalidTransitionException
from app.models.submission import SubmissionStatus, WorkflowStatus


class WorkflowAction(str, enum.Enum):
    """Actions that may move a submission along its workflow."""
    VALIDATE = "validate"
    CONFIRM_CALL = "confirm_call"
    REQUEST_DOCUMENTS = "request_documents"
    REISSUE_DOCUMENT_LINK = "reissue_document_link"
    RECORD_UPLOAD = "record_upload"
    VERIFY_DOCUMENTS = "verify_documents"
    CONVERT = "convert"


class Transition(NamedTuple):
    allowed_from: FrozenSet[Optional[WorkflowStatus]]
    target: Optional[WorkflowStatus]  # None keeps the current stage


TRANSITIONS: Dict[WorkflowAction, Transition] = {
    WorkflowAction.VALIDATE: Transition(
        frozenset({None, WorkflowStatus.PENDING_VALIDATION}),
        WorkflowStatus.VALIDATED,
    ),
    WorkflowAction.CONFIRM_CALL: Transition(
        frozenset({WorkflowStatus.VALIDATED}),
        WorkflowStatus.CALL_CONFIRMED,
    ),
    WorkflowAction.REQUEST_DOCUMENTS: Transition(
        frozenset({WorkflowStatus.CALL_CONFIRMED}),
        WorkflowStatus.DOCUMENTS_REQUESTED,
    ),
    WorkflowAction.REISSUE_DOCUMENT_LINK: Transition(
        frozenset({WorkflowStatus.DOCUMENTS_REQUESTED, WorkflowStatus.DOCUMENTS_UPLOADED}),
        None,
    ),
    WorkflowAction.RECORD_UPLOAD: Transition(
        frozenset({WorkflowStatus.DOCUMENTS_REQUESTED, WorkflowStatus.DOCUMENTS_UPLOADED}),
        WorkflowStatus.DOCUMENTS_UPLOADED,
    ),
    WorkflowAction.VERIFY_DOCUMENTS: Transition(
        frozenset({WorkflowStatus.DOCUMENTS_UPLOADED}),
        WorkflowStatus.DOCUMENTS_VERIFIED,
    ),
    WorkflowAction.CONVERT: Transition(
        frozenset({WorkflowStatus.DOCUMENTS_VERIFIED}),
        WorkflowStatus.CONVERTED_TO_CLIENT,
    ),
}


def is_allowed(current: Optional[WorkflowStatus], action: WorkflowAction) -> bool:
    """Whether ``action`` may be taken from ``current``."""
    return current in TRANSITIONS[action].allowed_from


def allowed_actions(current: Optional[WorkflowStatus]) -> list[WorkflowAction]:
    """Actions available from ``current``, in table order."""
    return [action for action in TRANSITIONS if is_allowed(current, action)]


def next_status(
    current: Optional[WorkflowStatus],
    action: WorkflowAction,
    status: Optional[SubmissionStatus] = None
) -> WorkflowStatus:
    """
    Resolve the stage reached by taking ``action`` from ``current``.

    Args:
        current: Current workflow stage (None for legacy rows without one)
        action: Requested action
        status: Coarse submission status; rejected submissions accept no action

    Returns:
        The next workflow stage

    Raises:
        InvalidTransitionException if the action is not allowed
    """
    if status == SubmissionStatus.REJECTED:
        raise InvalidTransitionException(
            detail=f"Cannot {action.value.replace('_', ' ')}: submission has been rejected"
        )

    transition = TRANSITIONS[action]
    if current not in transition.allowed_from:
        stage = current.value if current else "unset"
        raise InvalidTransitionException(
            detail=f"Cannot {action.value.replace('_', ' ')} from stage '{stage}'"
        )

    return transition.target if transition.target is not None else current
