import logging

from core.asyncio_threads import spawn_background
from email_notify.email_service import send_report_notification_email
from models.models import Report

logger = logging.getLogger(__name__)


class AsyncioReport:
    async def notify_support(
        self,
        report_id: str,
        reason: str,
        listing_title: str | None,
        reporter_email: str | None,
    ) -> bool:
        sent = await send_report_notification_email(
            report_id, reason, listing_title, reporter_email
        )
        if not sent:
            logger.warning(f"Support was not emailed about report {report_id}")
        return sent

    def report_created(self, report: Report):
        # values are read now, the report's session is gone when the task runs
        return spawn_background(
            self.notify_support(
                str(report.id),
                report.reason,
                report.listing.title if report.listing else None,
                report.reporter.email if report.reporter else None,
            ),
            name=f"report-notify:{report.id}",
        )
