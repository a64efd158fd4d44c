"""
Notification system for certificate expiry alerts.

Supports multiple notification channels:
- Email via SendGrid API
- Slack via incoming webhook
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, TYPE_CHECKING

import requests

from .logger import get_logger

if TYPE_CHECKING:
    from .config_loader import NotificationsConfig, EmailNotificationConfig, SlackNotificationConfig


SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


@dataclass
class AlertContext:
    """Context data for an expiry alert."""
    cert_uid: str
    common_name: str
    expiry_date: str
    days_until_expiry: int
    status: str  # "WARNING", "CRITICAL" or "EXPIRED"

    @property
    def summary(self) -> str:
        return (
            f"Certificate Alert: {self.status} - {self.common_name} "
            f"expires in {self.days_until_expiry} days"
        )


class NotificationSender(ABC):
    """Abstract base class for notification senders."""

    @abstractmethod
    def send(self, context: AlertContext) -> bool:
        """
        Send a notification.

        Args:
            context: Alert context with certificate details

        Returns:
            True if notification was sent successfully, False otherwise
        """
        pass


class SendGridNotifier(NotificationSender):
    """Send email alerts via SendGrid API."""

    def __init__(self, config: "EmailNotificationConfig"):
        self.config = config
        self.api_key = os.environ.get("SENDGRID_API_KEY", "")
        self.logger = get_logger()

    @staticmethod
    def render_body(context: AlertContext) -> str:
        """Plain-text alert body."""
        return (
            "Certificate Alert\n\n"
            f"Status: {context.status}\n"
            f"Certificate UID: {context.cert_uid}\n"
            f"Common Name: {context.common_name}\n"
            f"Expiry Date: {context.expiry_date}\n"
            f"Days Until Expiry: {context.days_until_expiry}"
        )

    def build_payload(self, context: AlertContext) -> Dict[str, Any]:
        return {
            "personalizations": [
                {"to": [{"email": email} for email in self.config.to_emails]}
            ],
            "from": {"email": self.config.from_email},
            "subject": context.summary,
            "content": [
                {"type": "text/plain", "value": self.render_body(context)}
            ],
        }

    def send(self, context: AlertContext) -> bool:
        if not self.api_key:
            self.logger.warning("SENDGRID_API_KEY not set, skipping email notification")
            return False

        if not self.config.from_email:
            self.logger.warning("Email from_email not configured, skipping email notification")
            return False

        if not self.config.to_emails:
            self.logger.warning("Email to_emails not configured, skipping email notification")
            return False

        try:
            response = requests.post(
                SENDGRID_URL,
                json=self.build_payload(context),
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=30,
            )
        except requests.RequestException as e:
            self.logger.error(f"Failed to send email notification: {e}")
            return False

        if response.status_code in (200, 202):
            self.logger.info(f"Email alert sent to {', '.join(self.config.to_emails)}")
            return True

        self.logger.error(f"SendGrid API error: {response.status_code} - {response.text}")
        return False


class SlackWebhookNotifier(NotificationSender):
    """Send alerts to Slack via incoming webhook."""

    COLORS = {
        "WARNING": "warning",
        "CRITICAL": "danger",
        "EXPIRED": "danger",
    }

    def __init__(self, config: "SlackNotificationConfig"):
        self.config = config
        self.logger = get_logger()

    def build_payload(self, context: AlertContext) -> Dict[str, Any]:
        """Slack attachment payload for an alert."""
        return {
            "attachments": [
                {
                    "fallback": context.summary,
                    "color": self.COLORS.get(context.status, "good"),
                    "title": f"Certificate Alert: {context.status}",
                    "fields": [
                        {"title": "Certificate UID", "value": context.cert_uid, "short": True},
                        {"title": "Common Name", "value": context.common_name, "short": True},
                        {"title": "Expiry Date", "value": context.expiry_date, "short": True},
                        {
                            "title": "Days Until Expiry",
                            "value": str(context.days_until_expiry),
                            "short": True,
                        },
                    ],
                }
            ]
        }

    def send(self, context: AlertContext) -> bool:
        webhook_url = self.config.webhook_url
        if not webhook_url:
            self.logger.warning("Slack webhook URL not configured, skipping Slack notification")
            return False

        try:
            response = requests.post(
                webhook_url,
                json=self.build_payload(context),
                headers={"Content-Type": "application/json"},
                timeout=30,
            )
        except requests.RequestException as e:
            self.logger.error(f"Failed to send Slack notification: {e}")
            return False

        if response.status_code == 200:
            self.logger.info("Slack alert sent")
            return True

        self.logger.error(f"Slack webhook error: {response.status_code} - {response.text}")
        return False


class NotificationManager:
    """
    Manages all notification channels.

    Notification failures never interrupt the monitoring run.
    """

    def __init__(self, config: "NotificationsConfig"):
        self.config = config
        self.logger = get_logger()
        self.notifiers: List[NotificationSender] = []

        if config.email.enabled:
            self.notifiers.append(SendGridNotifier(config.email))
            self.logger.info("Email notifications enabled")

        if config.slack.enabled:
            self.notifiers.append(SlackWebhookNotifier(config.slack))
            self.logger.info("Slack notifications enabled")

        if not self.notifiers:
            self.logger.info("No notification channels enabled")

    def notify(self, context: AlertContext) -> int:
        """
        Send an alert through all enabled channels.

        Never raises; errors are logged.

        Returns:
            Number of channels that delivered the alert
        """
        delivered = 0

        for notifier in self.notifiers:
            try:
                if notifier.send(context):
                    delivered += 1
            except Exception as e:
                notifier_name = type(notifier).__name__
                self.logger.error(f"Notification failed ({notifier_name}): {e}")

        return delivered

    def is_enabled(self) -> bool:
        """Check if any notification channel is enabled."""
        return len(self.notifiers) > 0
