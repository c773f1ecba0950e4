import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from shared.core.config import settings
from shared.models.owners import Owner
from shared.utils.email_client import EmailClient

from ...enum.bill_enum import NotificationSeverity
from ...schemas.financials.bills_schemas import GenerationResult

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Fire-and-forget owner notifications.

    Without an SMTP host the message is only logged. Delivery failures are
    logged and never raised to the caller.
    """

    def __init__(self, mailer: Optional[EmailClient] = None):
        self.mailer = mailer or EmailClient.from_settings(settings)

    def notify(self, owner_email: str, subject: str, body: str,
               severity: NotificationSeverity = NotificationSeverity.success) -> bool:
        if not owner_email:
            return False

        if self.mailer is None:
            logger.info(
                f"[{severity.value}] notification to {owner_email}: {subject}")
            return True

        try:
            return self.mailer.send_email(
                sender=settings.EMAIL_SENDER,
                recipients=[owner_email],
                subject=f"[{severity.value.upper()}] {subject}",
                text_body=body,
            )
        except Exception:
            logger.exception(f"Notification to {owner_email} failed")
            return False

    def notify_owners(self, db: Session, subject: str, body: str, severity: NotificationSeverity) -> int:
        """Send one message to every owner with an email. Returns the number of owners addressed."""
        emails: List[str] = [
            email for (email,) in db.query(Owner.email).filter(Owner.email.isnot(None)).all()
        ]
        for email in emails:
            self.notify(email, subject, body, severity)
        return len(emails)

    def notify_generation_result(self, db: Session, result: GenerationResult) -> int:
        severity = NotificationSeverity.warning if result.errors else NotificationSeverity.success
        subject = f"Bills generated - {result.period}"
        body = build_generation_report(result)
        return self.notify_owners(db, subject, body, severity)

    def notify_generation_failure(self, db: Session, period: Optional[str], error: str) -> int:
        subject = "Bill generation - errors detected"
        body = (
            f"Bill generation for {period or 'the current month'} did not complete.\n"
            f"Error: {error}\n"
            "Please check the server logs for details."
        )
        return self.notify_owners(db, subject, body, NotificationSeverity.error)


def build_generation_report(result: GenerationResult) -> str:
    lines = [
        f"Period: {result.period}",
        f"Bills generated: {result.bills_generated}",
        f"Active leases: {result.total_leases}",
        f"Bills skipped (already existing): {result.bills_skipped}",
        f"Errors: {result.errors}",
    ]
    if result.errors:
        lines.append("Some bills could not be generated:")
        lines.extend(
            f"  - {detail.tenant_name or detail.tenant_id}: {detail.error}"
            for detail in result.error_details
        )
    return "\n".join(lines)
