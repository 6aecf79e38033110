import asyncio
import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from typing import Optional

from fastapi import BackgroundTasks
from jinja2 import Environment, PackageLoader, select_autoescape

from carmarket.core.config import (
    EMAIL_FROM,
    EMAIL_NOTIFICATIONS_ENABLED,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USE_TLS,
    SMTP_USERNAME,
)

logger = logging.getLogger(__name__)

templates = Environment(
    loader=PackageLoader("carmarket", "templates/emails"),
    autoescape=select_autoescape(["html"]),
)


def _send_smtp(to: str, subject: str, html_body: str) -> None:
    message = EmailMessage()
    message["From"] = EMAIL_FROM
    message["To"] = to
    message["Subject"] = subject
    message.set_content("This message requires an HTML capable mail client.")
    message.add_alternative(html_body, subtype="html")

    with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=10) as smtp:
        if SMTP_USE_TLS:
            smtp.starttls()
        if SMTP_USERNAME:
            smtp.login(SMTP_USERNAME, SMTP_PASSWORD)
        smtp.send_message(message)


class NotificationService:
    """
    E-mail notifications for dealers.

    Messages are rendered from the Jinja2 templates in ``templates/emails`` while the
    request is still open, then handed to FastAPI background tasks so the SMTP
    round-trip happens after the response is sent. Delivery failures are logged
    and never propagate to the caller.
    """

    def __init__(self, background_tasks: Optional[BackgroundTasks] = None, enabled: bool = EMAIL_NOTIFICATIONS_ENABLED):
        self.background_tasks = background_tasks
        self.enabled = enabled

    @staticmethod
    def render(template_name: str, **context) -> str:
        context.setdefault("current_date", datetime.now().strftime("%Y-%m-%d %H:%M"))
        return templates.get_template(template_name).render(**context)

    async def send_email(self, to: str, subject: str, html_body: str) -> bool:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _send_smtp, to, subject, html_body)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send e-mail '{subject}' to {to}: {e}")
            return False

        logger.info(f"E-mail '{subject}' sent to {to}")
        return True

    def _dispatch(self, to: Optional[str], subject: str, template_name: str, **context) -> bool:
        if not self.enabled:
            logger.debug(f"E-mail notifications disabled, skipping '{subject}'")
            return False
        if not to:
            logger.error(f"No recipient for '{subject}'")
            return False
        if self.background_tasks is None:
            logger.warning(f"No background task runner, dropping '{subject}'")
            return False

        html_body = self.render(template_name, **context)
        self.background_tasks.add_task(self.send_email, to, subject, html_body)
        return True

    def _notify_dealer(self, car, subject: str, template_name: str, **context) -> bool:
        if car.dealer is None or car.dealer.user is None:
            logger.error(f"Dealer not found for car {car.id}")
            return False
        return self._dispatch(
            car.dealer.user.email,
            subject,
            template_name,
            dealer_name=car.dealer.name,
            car=car,
            **context,
        )

    def notify_dealer_of_buyer_interest(self, car, buyer_email: Optional[str], message: str) -> bool:
        return self._notify_dealer(
            car,
            f"New Buyer Interest in Your Car: {car.make} {car.model}",
            "buyer_interest.html",
            buyer_email=buyer_email or "Anonymous",
            message=message,
        )

    def notify_dealer_of_car_favorited(self, car, buyer_email: Optional[str]) -> bool:
        return self._notify_dealer(
            car,
            f"Your Car Was Added to Favorites: {car.make} {car.model}",
            "car_favorited.html",
            buyer_email=buyer_email or "Anonymous",
        )

    def notify_dealer_of_car_status_change(self, car, old_status: str, new_status: str) -> bool:
        return self._notify_dealer(
            car,
            f"Car Status Updated: {car.make} {car.model}",
            "car_status_change.html",
            old_status=old_status,
            new_status=new_status,
        )

    def send_dealer_welcome_email(self, dealer_name: str, email: str) -> bool:
        return self._dispatch(
            email,
            "Welcome to CarMarket - Account Created Successfully",
            "dealer_welcome.html",
            dealer_name=dealer_name,
            email=email,
        )


def get_notification_service(background_tasks: BackgroundTasks) -> NotificationService:
    return NotificationService(background_tasks)
