"""Outbound account notifications.

E-mail delivery lives outside this service; the orchestrators talk to the
``NotificationService`` interface and the default implementation only records
the event in the application log.
"""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class NotificationService(ABC):
    """Interface for the notification collaborator."""

    @abstractmethod
    def send_welcome(self, email: str, name: str):
        ...

    @abstractmethod
    def send_password_reset(self, email: str, new_password: str):
        """Deliver a generated password. Implementations must not persist or log it."""

    @abstractmethod
    def send_account_status_changed(self, email: str, name: str, is_active: bool):
        ...

    @abstractmethod
    def send_role_assigned(self, email: str, name: str, role_name: str):
        ...


class LoggingNotificationService(NotificationService):
    """Records notifications in the log instead of sending them."""

    def send_welcome(self, email: str, name: str):
        logger.info(f"Notification: welcome message for {email}")

    def send_password_reset(self, email: str, new_password: str):
        logger.info(f"Notification: password reset message for {email}")

    def send_account_status_changed(self, email: str, name: str, is_active: bool):
        state = "activated" if is_active else "deactivated"
        logger.info(f"Notification: account {state} message for {email}")

    def send_role_assigned(self, email: str, name: str, role_name: str):
        logger.info(f"Notification: role '{role_name}' assigned message for {email}")


_notification_service: NotificationService = LoggingNotificationService()


def get_notification_service() -> NotificationService:
    """FastAPI dependency returning the configured notification sender."""
    return _notification_service
