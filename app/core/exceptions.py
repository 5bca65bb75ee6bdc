from fastapi import HTTPException, status


class BackOfficeException(HTTPException):
    """Base class for domain errors returned as structured client responses."""

    error_code: str = "error"
    status_code_default: int = status.HTTP_400_BAD_REQUEST
    detail_default: str = "Request failed"

    def __init__(self, detail: str = None):
        super().__init__(
            status_code=self.status_code_default,
            detail=detail or self.detail_default
        )


class ResourceNotFoundException(BackOfficeException):
    """Exception raised when a record does not exist."""

    error_code = "not_found"
    status_code_default = status.HTTP_404_NOT_FOUND
    detail_default = "Resource not found"


class InvalidParameterException(BackOfficeException):
    """Exception raised for malformed or out-of-range input."""

    error_code = "invalid_parameter"
    status_code_default = status.HTTP_422_UNPROCESSABLE_ENTITY
    detail_default = "Invalid parameter"


class InvalidTransitionException(BackOfficeException):
    """Exception raised when a workflow action is not allowed from the current stage."""

    error_code = "invalid_transition"
    status_code_default = status.HTTP_409_CONFLICT
    detail_default = "Action not allowed in the current workflow stage"


class AccessLinkInvalidException(BackOfficeException):
    """Exception raised when access link token is unknown."""

    error_code = "link_not_found"
    status_code_default = status.HTTP_404_NOT_FOUND
    detail_default = "Invalid access link"


class AccessLinkExpiredException(BackOfficeException):
    """Exception raised when access link has expired."""

    error_code = "link_expired"
    status_code_default = status.HTTP_410_GONE
    detail_default = "Access link has expired"


class AccessLinkDeactivatedException(BackOfficeException):
    """Exception raised when access link was deactivated by staff."""

    error_code = "link_deactivated"
    status_code_default = status.HTTP_403_FORBIDDEN
    detail_default = "Access link has been deactivated"


class AccessLinkExhaustedException(BackOfficeException):
    """Exception raised when access link has no uses left."""

    error_code = "link_exhausted"
    status_code_default = status.HTTP_409_CONFLICT
    detail_default = "Access link has already been used"


class DocumentUploadException(BackOfficeException):
    """Exception raised when an uploaded file is rejected."""

    error_code = "upload_rejected"
    status_code_default = status.HTTP_400_BAD_REQUEST
    detail_default = "Document upload failed"


class PermissionDeniedException(BackOfficeException):
    """Exception raised when user doesn't have permission."""

    error_code = "forbidden"
    status_code_default = status.HTTP_403_FORBIDDEN
    detail_default = "Permission denied"


class StorageFailureException(BackOfficeException):
    """Exception raised when persisting or removing a stored file fails."""

    error_code = "storage_failure"
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail_default = "Storage operation failed"


class ExternalAPIException(BackOfficeException):
    """Exception raised when external API call fails."""

    error_code = "external_api_error"
    status_code_default = status.HTTP_502_BAD_GATEWAY
    detail_default = "External API call failed"
