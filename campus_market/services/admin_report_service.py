import csv
import io
import logging
import uuid
from datetime import datetime, timezone

from fastapi import HTTPException
from fastapi.responses import Response

from core.breaker import breaker
from core.check_permission import AdminIdentity
from core.mapper import ORMMapper
from models.enums import ReportStatus
from models.models import Report
from repos.report_repo import ReportRepo
from schemas.schema import ReportOut, ReportStatusUpdateIn

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "Report ID",
    "Created At",
    "Status",
    "Reason",
    "Description",
    "Reporter ID",
    "Reporter Email",
    "Reporter Name",
    "Listing ID",
    "Listing Title",
    "Listing Owner ID",
    "Resolved At",
    "Resolution Notes",
]
TERMINAL_STATUSES = {ReportStatus.RESOLVED.value, ReportStatus.DISMISSED.value}


def _iso(value: datetime | None) -> str:
    return value.isoformat() if value else ""


def report_csv_row(report: Report) -> list[str]:
    reporter = report.reporter
    listing = report.listing
    return [
        str(report.id),
        _iso(report.created_at),
        report.status.value,
        report.reason,
        report.description or "",
        str(report.reporter_id),
        reporter.email if reporter else "N/A",
        (reporter.display_name if reporter else None) or "N/A",
        str(report.listing_id),
        listing.title if listing else "N/A",
        str(listing.user_id) if listing else "N/A",
        _iso(report.resolved_at),
        report.resolution_notes or "",
    ]


def reports_to_csv(reports: list[Report]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for report in reports:
        writer.writerow(report_csv_row(report))
    return buffer.getvalue()


class AdminReportService:
    def __init__(self, db):
        self.repo: ReportRepo = ReportRepo(db)
        self.mapper: ORMMapper = ORMMapper()

    async def list(self, status: ReportStatus | None = None) -> list[ReportOut]:
        async def handler():
            reports = await self.repo.list_all(status)
            return self.mapper.many(reports, ReportOut)

        return await breaker.call(handler)

    async def get(self, report_id: uuid.UUID) -> ReportOut:
        async def handler():
            report = await self.repo.get_report_by_id(report_id)
            if not report:
                raise HTTPException(status_code=404, detail="Report not found")
            return self.mapper.one(report, ReportOut)

        return await breaker.call(handler)

    async def update_status(
        self, admin: AdminIdentity, report_id: uuid.UUID, data: ReportStatusUpdateIn
    ) -> dict:
        if data.status not in TERMINAL_STATUSES:
            raise HTTPException(
                status_code=400,
                detail='Invalid status. Must be "resolved" or "dismissed"',
            )

        async def handler():
            updated = await self.repo.set_status(
                report_id,
                ReportStatus(data.status),
                resolved_by=admin.id,
                now=datetime.now(timezone.utc),
                notes=data.notes,
            )
            if not updated:
                raise HTTPException(status_code=404, detail="Report not found")
            logger.info(f"Report {report_id} marked {data.status} by {admin.email}")
            return {"success": True, "status": data.status}

        return await breaker.call(handler)

    async def export_csv(self) -> Response:
        async def handler():
            return reports_to_csv(await self.repo.list_all())

        content = await breaker.call(handler)
        filename = f"reports-{datetime.now(timezone.utc).date().isoformat()}.csv"
        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
