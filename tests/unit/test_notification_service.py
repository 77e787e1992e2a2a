"""NotificationService tests."""

from __future__ import annotations

import pytest

from victor_commons.exceptions import ServiceError
from victor_service.services.notification_service import NotificationService
from victor_service.services.notification_store import NotificationStore


@pytest.fixture
def service(tmp_path):
    """A NotificationService on a temporary database."""
    notifications = NotificationService(NotificationStore(db_path=str(tmp_path / "notes.db")))
    yield notifications
    notifications.close()


@pytest.mark.unit
class TestNotificationService:
    """Creating and reading notifications."""

    def test_notify_and_list(self, service: NotificationService) -> None:
        """Notifications carry their references and start unread."""
        created = service.notify(
            "u-a",
            "offer_received",
            "Bob offered 50",
            sender_id="u-b",
            task_id="t-1",
            offer_id="off-1",
        )
        assert created["notification_id"].startswith("ntf-")
        assert created["read"] is False

        listed = service.list_notifications("u-a", unread_only=False, limit=None)
        assert listed["unread_count"] == 1
        assert listed["notifications"] == [created]

    def test_unknown_type(self, service: NotificationService) -> None:
        """Only known notification types are accepted."""
        with pytest.raises(ValueError, match="Unknown notification type"):
            service.notify("u-a", "carrier_pigeon", "coo")

    def test_mark_read_of_missing(self, service: NotificationService) -> None:
        """Marking a missing notification is a 404."""
        with pytest.raises(ServiceError) as exc_info:
            service.mark_read("ntf-missing", "u-a")
        assert exc_info.value.error == "NOTIFICATION_NOT_FOUND"
        assert exc_info.value.status_code == 404

    def test_mark_all_read(self, service: NotificationService) -> None:
        """mark_all_read reports how many changed."""
        service.notify("u-a", "system", "one")
        service.notify("u-a", "system", "two")
        assert service.mark_all_read("u-a") == {"marked": 2}
        assert service.list_notifications("u-a", unread_only=True, limit=None)["notifications"] == []
