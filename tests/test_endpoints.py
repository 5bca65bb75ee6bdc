"""
Tests for API endpoints including health checks, error responses and the submission workflow over HTTP.
"""
from sqlalchemy import select

from app.models.audit_log import ActionType, AuditLog
from app.models.submission import ServiceType
from app.services.submission_service import SubmissionService
from conftest import TEST_PASSWORD, auth_headers_for


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_health_check(self, client):
        """Health check endpoint should return healthy status."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data

    def test_root_endpoint(self, client):
        """Root endpoint should return API info."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Immigration Back Office API"
        assert "version" in data
        assert "docs" in data


class TestSecurityHeaders:
    """Tests for security headers in responses."""

    def test_csp_header(self, client):
        """Response should include Content-Security-Policy header."""
        response = client.get("/health")

        assert "Content-Security-Policy" in response.headers
        csp = response.headers["Content-Security-Policy"]
        assert "default-src 'none'" in csp

    def test_no_legacy_xss_header(self, client):
        """The deprecated X-XSS-Protection header is not sent."""
        response = client.get("/health")

        assert "X-XSS-Protection" not in response.headers

    def test_content_type_options_header(self, client):
        response = client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_frame_options_header(self, client):
        response = client.get("/health")

        assert response.headers["X-Frame-Options"] == "DENY"

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"


class TestErrorResponses:
    """Tests for error response handling."""

    def test_404_not_found(self, client):
        """Non-existent endpoint should return 404."""
        response = client.get("/api/v1/nonexistent")

        assert response.status_code == 404

    async def test_unknown_link_token(self, async_client):
        response = await async_client.get("/api/v1/documents/validate-link/unknown_token_abc123")

        assert response.status_code == 404
        assert response.json() == {"detail": "Invalid access link", "code": "link_not_found"}

    async def test_invalid_transition_is_conflict(self, async_client, submission, agent_headers):
        response = await async_client.post(
            f"/api/v1/submissions/{submission.id}/confirm-call", headers=agent_headers
        )

        assert response.status_code == 409
        assert response.json()["code"] == "invalid_transition"

    async def test_unauthenticated_staff_endpoint(self, async_client, submission):
        response = await async_client.get("/api/v1/submissions")

        assert response.status_code == 401


class TestAuthEndpoints:
    """Tests for login."""

    async def test_login_success(self, async_client, db_session, agent_user):
        response = await async_client.post(
            "/api/v1/auth/login", json={"email": "agent@example.com", "password": TEST_PASSWORD}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["role"] == "agent"

        me = await async_client.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"}
        )
        assert me.json()["email"] == "agent@example.com"

    async def test_login_failure_is_audited(self, async_client, db_session, agent_user):
        response = await async_client.post(
            "/api/v1/auth/login", json={"email": "agent@example.com", "password": "wrong-password"}
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

        entries = (await db_session.execute(
            select(AuditLog).where(AuditLog.action_type == ActionType.USER_LOGIN)
        )).scalars().all()
        assert len(entries) == 1
        assert entries[0].status == "error"


class TestTracking:
    """Tests for the public status lookup."""

    async def test_track_by_phone(self, async_client, submission):
        response = await async_client.post("/api/v1/submissions/track", json={"phone": "0612345678"})

        assert response.status_code == 200
        data = response.json()
        assert data["workflow_status"] == "pending_validation"
        assert data["email"] == "jan***@example.com"
        assert data["document_stats"] == {"total": 0, "verified": 0}
        assert "id" not in data
        assert "notes" not in data

    async def test_track_by_email_is_case_insensitive(self, async_client, submission):
        response = await async_client.post("/api/v1/submissions/track", json={"email": "JANE@example.com"})

        assert response.status_code == 200

    async def test_track_requires_a_key(self, async_client, setup_database):
        response = await async_client.post("/api/v1/submissions/track", json={})

        assert response.status_code == 422
        assert response.json()["code"] == "invalid_parameter"

    async def test_track_unknown(self, async_client, submission):
        response = await async_client.post("/api/v1/submissions/track", json={"phone": "0700000000"})

        assert response.status_code == 404
        assert response.json()["detail"] == "No application found with the provided details"

    async def test_track_with_both_keys_requires_both_to_match(self, async_client, db_session, submission):
        await SubmissionService.create_submission(
            db_session,
            name="John Smith",
            phone="0698765432",
            email="john@example.com",
            service=ServiceType.STUDY_ABROAD,
            message="Study abroad"
        )

        mismatched = await async_client.post(
            "/api/v1/submissions/track", json={"phone": "0612345678", "email": "john@example.com"}
        )
        assert mismatched.status_code == 404
        assert mismatched.json()["detail"] == "No application found with the provided details"

        matched = await async_client.post(
            "/api/v1/submissions/track", json={"phone": "0612345678", "email": "jane@example.com"}
        )
        assert matched.status_code == 200
        assert matched.json()["service"] == "work_visa"


class TestSubmissionWorkflow:
    """End-to-end: website lead to converted client."""

    async def test_full_workflow(self, async_client, admin_user, agent_headers):
        created = await async_client.post("/api/v1/submissions", json={
            "name": "Jane Doe",
            "phone": "0612345678",
            "email": "jane@example.com",
            "service": "work_visa",
            "message": "I would like to work in Canada"
        })
        assert created.status_code == 201
        submission_id = created.json()["id"]
        assert created.json()["workflow_status"] == "pending_validation"

        validated = await async_client.post(f"/api/v1/submissions/{submission_id}/validate", headers=agent_headers)
        assert validated.status_code == 200
        assert validated.json()["workflow_status"] == "validated"
        assert validated.json()["allowed_actions"] == ["confirm_call"]

        confirmed = await async_client.post(
            f"/api/v1/submissions/{submission_id}/confirm-call",
            json={"call_notes": "Has a job offer"},
            headers=agent_headers
        )
        assert confirmed.status_code == 200
        assert confirmed.json()["workflow_status"] == "call_confirmed"
        assert confirmed.json()["notes"][0]["content"] == "Has a job offer"

        generated = await async_client.post(
            "/api/v1/documents/generate-link",
            json={"submission_id": submission_id, "expires_in_days": 7, "max_uploads": 3},
            headers=agent_headers
        )
        assert generated.status_code == 201
        link = generated.json()["link"]
        assert generated.json()["submission"]["workflow_status"] == "documents_requested"
        assert link["uses_remaining"] == 3
        assert link["url"].endswith(f"/upload/{link['token']}")

        checked = await async_client.get(f"/api/v1/documents/validate-link/{link['token']}")
        assert checked.status_code == 200
        assert checked.json()["submission_name"] == "Jane Doe"
        assert "passport" in checked.json()["accepted_document_types"]

        uploaded = await async_client.post(
            f"/api/v1/documents/upload/{link['token']}",
            files=[("documents", ("passport.pdf", b"%PDF-1.4 passport", "application/pdf"))],
            data={"document_types": '["passport"]'}
        )
        assert uploaded.status_code == 201
        assert uploaded.json()["uploaded"] == 1
        assert uploaded.json()["uses_remaining"] == 2
        assert uploaded.json()["message"] == "1 document(s) uploaded successfully"
        document_id = uploaded.json()["documents"][0]["id"]

        detail = await async_client.get(f"/api/v1/submissions/{submission_id}", headers=agent_headers)
        assert detail.json()["workflow_status"] == "documents_uploaded"
        assert detail.json()["document_stats"] == {"total": 1, "verified": 0}

        downloaded = await async_client.get(f"/api/v1/documents/{document_id}/download", headers=agent_headers)
        assert downloaded.status_code == 200
        assert downloaded.content == b"%PDF-1.4 passport"

        verified = await async_client.patch(
            f"/api/v1/documents/{document_id}/verify", json={"status": "verified"}, headers=agent_headers
        )
        assert verified.status_code == 200
        assert verified.json()["submission_advanced"] is True
        assert verified.json()["workflow_status"] == "documents_verified"

        converted = await async_client.post(f"/api/v1/submissions/{submission_id}/convert", headers=agent_headers)
        assert converted.status_code == 200
        assert converted.json()["submission"]["workflow_status"] == "converted_to_client"
        client_id = converted.json()["client"]["id"]

        client = await async_client.get(f"/api/v1/clients/{client_id}", headers=agent_headers)
        assert client.json()["name"] == "Jane Doe"

        notifications = await async_client.get(
            "/api/v1/notifications/unread/count", headers=auth_headers_for(admin_user)
        )
        assert notifications.json()["count"] >= 7

    async def test_deactivated_link_upload_is_refused(self, async_client, submission, agent_headers):
        await async_client.post(f"/api/v1/submissions/{submission.id}/validate", headers=agent_headers)
        await async_client.post(f"/api/v1/submissions/{submission.id}/confirm-call", headers=agent_headers)
        generated = await async_client.post(
            "/api/v1/documents/generate-link",
            json={"submission_id": submission.id, "max_uploads": 2},
            headers=agent_headers
        )
        link = generated.json()["link"]

        deactivated = await async_client.patch(
            f"/api/v1/documents/links/{link['id']}/deactivate", headers=agent_headers
        )
        assert deactivated.json()["is_active"] is False

        response = await async_client.post(
            f"/api/v1/documents/upload/{link['token']}",
            files=[("documents", ("passport.pdf", b"%PDF", "application/pdf"))]
        )
        assert response.status_code == 403
        assert response.json()["code"] == "link_deactivated"

    async def test_payment_flow(self, async_client, submission, agent_headers):
        generated = await async_client.post(
            "/api/v1/payments/generate-link",
            json={"submission_id": submission.id, "amount": 1500, "currency": "MAD"},
            headers=agent_headers
        )
        assert generated.status_code == 201
        token = generated.json()["token"]
        assert generated.json()["max_uses"] == 1

        checked = await async_client.get(f"/api/v1/payments/validate-link/{token}")
        assert checked.json()["amount"] == 1500

        uploaded = await async_client.post(
            f"/api/v1/payments/upload-receipt/{token}",
            files={"receipt": ("receipt.pdf", b"%PDF receipt", "application/pdf")}
        )
        assert uploaded.status_code == 201

        again = await async_client.post(
            f"/api/v1/payments/upload-receipt/{token}",
            files={"receipt": ("receipt.pdf", b"%PDF receipt", "application/pdf")}
        )
        assert again.status_code == 409
        assert again.json()["code"] == "link_exhausted"

    async def test_viewer_cannot_act(self, async_client, submission, viewer_headers):
        response = await async_client.post(
            "/api/v1/documents/generate-link",
            json={"submission_id": submission.id},
            headers=viewer_headers
        )

        assert response.status_code == 403
