"""
Tests for staff notifications.
"""
import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import ResourceNotFoundException
from app.models.notification import NotificationType
from app.services import notification_service
from app.services.notification_service import NotificationService


async def _notify(db, title="New submission"):
    return await NotificationService.notify_admins(
        db,
        NotificationType.NEW_SUBMISSION,
        title=title,
        message="New work visa request from Jane Doe",
        link="/admin/submissions/1",
        data={"submission_id": 1}
    )


class TestNotificationService:
    """Tests for fan-out and read state."""

    async def test_only_active_admins_are_notified(self, db_session, admin_user, agent_user):
        count = await _notify(db_session)

        assert count == 1
        assert await NotificationService.unread_count(db_session, admin_user.id) == 1
        assert await NotificationService.unread_count(db_session, agent_user.id) == 0

    async def test_no_admins(self, db_session, agent_user):
        assert await _notify(db_session) == 0

    async def test_inactive_admin_is_skipped(self, db_session, admin_user):
        admin_user.is_active = False
        await db_session.commit()

        assert await _notify(db_session) == 0

    async def test_mark_read(self, db_session, admin_user):
        await _notify(db_session)
        items, total = await NotificationService.list_notifications(db_session, admin_user.id)

        notification = await NotificationService.mark_read(db_session, items[0].id, admin_user.id)

        assert total == 1
        assert notification.is_read
        assert notification.read_at is not None
        assert await NotificationService.unread_count(db_session, admin_user.id) == 0

    async def test_cannot_touch_other_users_notifications(self, db_session, admin_user, agent_user):
        await _notify(db_session)
        items, _ = await NotificationService.list_notifications(db_session, admin_user.id)

        with pytest.raises(ResourceNotFoundException):
            await NotificationService.mark_read(db_session, items[0].id, agent_user.id)

    async def test_mark_all_read_and_clear(self, db_session, admin_user):
        await _notify(db_session, "first")
        await _notify(db_session, "second")

        assert await NotificationService.mark_all_read(db_session, admin_user.id) == 2
        assert await NotificationService.clear_read(db_session, admin_user.id) == 2
        _, total = await NotificationService.list_notifications(db_session, admin_user.id)
        assert total == 0

    async def test_unread_only_filter(self, db_session, admin_user):
        await _notify(db_session, "first")
        await _notify(db_session, "second")
        items, _ = await NotificationService.list_notifications(db_session, admin_user.id)
        await NotificationService.mark_read(db_session, items[0].id, admin_user.id)

        unread, total = await NotificationService.list_notifications(db_session, admin_user.id, unread_only=True)

        assert total == 1
        assert unread[0].id == items[1].id


class TestNotificationEndpoints:
    """Tests for the notification API."""

    async def test_list_and_read(self, async_client, db_session, admin_user, admin_headers):
        await _notify(db_session)

        listed = await async_client.get("/api/v1/notifications", headers=admin_headers)
        assert listed.status_code == 200
        assert listed.json()["unread_count"] == 1
        notification_id = listed.json()["items"][0]["id"]

        read = await async_client.put(f"/api/v1/notifications/{notification_id}/read", headers=admin_headers)
        assert read.json()["is_read"] is True

        cleared = await async_client.delete("/api/v1/notifications/clear-read", headers=admin_headers)
        assert cleared.json()["count"] == 1


def _broken_notification(**kwargs):
    raise OperationalError("INSERT INTO notifications", {}, Exception("disk I/O error"))


class TestNotificationFailures:
    """A failed notification write never undoes or breaks the action that raised it."""

    async def test_failure_returns_zero_and_keeps_loaded_objects(self, db_session, admin_user, submission, monkeypatch):
        monkeypatch.setattr(notification_service, "Notification", _broken_notification)

        assert await _notify(db_session) == 0
        assert submission.name == "Jane Doe"
        assert admin_user.email == "admin@example.com"

        monkeypatch.undo()
        assert await NotificationService.unread_count(db_session, admin_user.id) == 0

    async def test_transition_succeeds_when_notifications_fail(
        self, async_client, db_session, admin_user, submission, agent_headers, monkeypatch
    ):
        monkeypatch.setattr(notification_service, "Notification", _broken_notification)

        response = await async_client.post(
            f"/api/v1/submissions/{submission.id}/validate", headers=agent_headers
        )

        assert response.status_code == 200
        assert response.json()["workflow_status"] == "validated"
        assert await NotificationService.unread_count(db_session, admin_user.id) == 0
