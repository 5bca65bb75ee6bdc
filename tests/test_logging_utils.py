"""
Tests for log masking helpers.
"""
from app.core.logging_utils import (
    MASK,
    mask_email,
    mask_headers,
    mask_path,
    mask_sensitive_data,
    sanitize_log_message,
)


class TestMasking:
    """Tests for masking personal data and secrets."""

    def test_mask_email(self):
        assert mask_email("jane.doe@example.com") == "jan***@example.com"
        assert mask_email("jo@example.com") == MASK
        assert mask_email(None) is None

    def test_secret_keys_are_masked(self):
        masked = mask_sensitive_data({"password": "hunter2", "access_token": "abc", "name": "Jane"})

        assert masked == {"password": MASK, "access_token": MASK, "name": "Jane"}

    def test_phone_keeps_last_digits(self):
        assert mask_sensitive_data({"phone": "0612345678"})["phone"] == "******5678"

    def test_nested_structures(self):
        masked = mask_sensitive_data({"data": [{"email": "jane.doe@example.com"}]})

        assert masked["data"][0]["email"] == "jan***@example.com"

    def test_long_tokens_in_values(self):
        token = "a" * 43
        assert mask_sensitive_data(token) == MASK
        assert mask_sensitive_data("550e8400-e29b-41d4-a716-446655440000") == "550e8400-e29b-41d4-a716-446655440000"

    def test_mask_headers(self):
        masked = mask_headers({"Authorization": "Bearer x", "Accept": "application/json"})

        assert masked == {"Authorization": MASK, "Accept": "application/json"}

    def test_mask_path_hides_link_tokens(self):
        token = "Zk3" * 15
        assert mask_path(f"/api/v1/documents/upload/{token}") == f"/api/v1/documents/upload/{MASK}"
        assert mask_path("/api/v1/submissions/12") == "/api/v1/submissions/12"


class TestSanitizeLogMessage:
    """Tests for structured log lines."""

    def test_context_is_appended(self):
        message = sanitize_log_message("Submission created", SubmissionID=3, phone="0612345678")

        assert message == "Submission created | SubmissionID: 3 | phone: ******5678"

    def test_request_id_goes_last(self):
        message = sanitize_log_message("Done", RequestID="req-1", Status=200)

        assert message.endswith("| RequestID: req-1")
        assert message.startswith("Done | Status: 200")

    def test_plain_message(self):
        assert sanitize_log_message("Startup") == "Startup"
