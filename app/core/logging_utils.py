import re
from typing import Any, Dict, Optional
from fastapi import Request

MASK = "***MASKED***"

# Keys whose values are replaced entirely
_SECRET_KEY_TERMS = (
    "token", "jwt", "authorization", "bearer",
    "password", "secret", "private_key", "api_key", "apikey",
)

# Keys that are partially masked, keeping the last digits
_PHONE_KEYS = {"phone", "phone_number", "to"}
_BANK_KEYS = {"rib", "account_number", "iban"}


def mask_email(email: Optional[str], mask_string: str = MASK) -> Optional[str]:
    """
    Partially mask an email address: first three characters and the domain stay visible.

    Args:
        email: Email address (may be None)
        mask_string: Replacement when the address is too short to partially mask

    Returns:
        Masked email, or None when no email was given
    """
    if not email:
        return None
    parts = email.split("@")
    if len(parts) != 2:
        return mask_string
    local, domain = parts
    if len(local) <= 3:
        return mask_string
    return f"{local[:3]}***@{domain}"


def mask_tail(value: str, visible: int = 4) -> str:
    """Replace all but the last ``visible`` characters with asterisks."""
    if len(value) <= visible:
        return MASK
    return "*" * (len(value) - visible) + value[-visible:]


def mask_sensitive_data(data: Any, mask_string: str = MASK) -> Any:
    """
    Recursively mask sensitive data in dictionaries, lists, and strings.

    Args:
        data: Data structure to mask (dict, list, str, or other)
        mask_string: String to use for masking

    Returns:
        Masked data structure
    """
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            key_lower = str(key).lower()

            # request_id is kept for traceability
            if key_lower in ("requestid", "request_id"):
                masked[key] = value
            elif any(term in key_lower for term in _SECRET_KEY_TERMS):
                masked[key] = mask_string
            elif key_lower in _PHONE_KEYS or key_lower in _BANK_KEYS:
                masked[key] = mask_tail(value) if isinstance(value, str) else mask_string
            elif key_lower == "email" and isinstance(value, str):
                masked[key] = mask_email(value, mask_string)
            else:
                masked[key] = mask_sensitive_data(value, mask_string)

        return masked

    elif isinstance(data, list):
        return [mask_sensitive_data(item, mask_string) for item in data]

    elif isinstance(data, str):
        # JWTs
        if data.startswith("eyJ") and len(data) > 50:
            return mask_string
        # Link tokens and other long url-safe secrets (UUIDs contain hyphens and are kept)
        if len(data) > 32 and re.match(r'^[A-Za-z0-9_-]+$', data) and '-' not in data:
            return mask_string

        return data

    return data


def mask_headers(headers: Dict[str, str]) -> Dict[str, str]:
    """
    Mask sensitive HTTP headers.

    Args:
        headers: Dictionary of HTTP headers

    Returns:
        Dictionary with sensitive headers masked
    """
    sensitive_headers = ("authorization", "x-csrf-token", "cookie", "set-cookie")
    return {
        key: MASK if any(s in key.lower() for s in sensitive_headers) else value
        for key, value in headers.items()
    }


def mask_path(path: str) -> str:
    """Hide access-link tokens embedded in request paths."""
    return re.sub(r'/([A-Za-z0-9_-]{33,})(?=/|$)', '/' + MASK, path)


def get_request_id(request: Optional[Request]) -> Optional[str]:
    """
    Extract request ID from request state.

    Args:
        request: FastAPI Request object (can be None)

    Returns:
        Request ID (UUID string) or None if not available
    """
    if request and hasattr(request.state, "request_id"):
        return request.state.request_id
    return None


def sanitize_log_message(message: str, **kwargs: Any) -> str:
    """
    Sanitize log message by masking sensitive data in keyword arguments.

    RequestID is appended last so RequestIDFormatter can lift it into the
    record prefix.

    Args:
        message: Base log message
        **kwargs: Additional context to include (will be masked)

    Returns:
        Message with masked ``key: value`` context appended
    """
    request_id = kwargs.pop('RequestID', None) or kwargs.pop('request_id', None)

    masked_kwargs = mask_sensitive_data(kwargs)

    context_parts = []
    for key, value in masked_kwargs.items():
        if isinstance(value, (dict, list)):
            context_parts.append(f"{key}: {str(value)[:200]}")
        else:
            context_parts.append(f"{key}: {value}")

    formatted_message = f"{message} | {' | '.join(context_parts)}" if context_parts else message

    if request_id:
        formatted_message = f"{formatted_message} | RequestID: {request_id}"

    return formatted_message
