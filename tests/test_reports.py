import csv
import io
import uuid

import pytest
from fastapi import HTTPException

from core.check_permission import AdminIdentity
from fakes import T0, FakeConversationRepo, FakeListingRepo, FakeSession, make_listing, make_user
from models.enums import ReportStatus
from models.models import Report
from schemas.schema import ConversationReportIn, ReportCreateIn, ReportStatusUpdateIn
from services.admin_report_service import CSV_COLUMNS, AdminReportService, reports_to_csv
from services.conversation_service import canonical_participants
from services.report_service import CHAT_REPORT_PREFIX, ReportService


class FakeReportRepo:
    def __init__(self, people):
        self.people = people
        self.rows = []
        self.updates = []

    async def create(self, reporter_id, listing_id, reason, description=None):
        report = Report(
            id=uuid.uuid4(),
            reporter_id=reporter_id,
            listing_id=listing_id,
            reason=reason,
            description=description,
            status=ReportStatus.PENDING,
            created_at=T0,
            reporter=self.people.get(reporter_id),
        )
        self.rows.append(report)
        return report

    async def set_status(self, report_id, status, resolved_by, now, notes=None):
        self.updates.append((report_id, status, resolved_by, notes))
        return any(r.id == report_id for r in self.rows)


class SpyReportNotifier:
    def __init__(self):
        self.reports = []

    def report_created(self, report):
        self.reports.append(report)


@pytest.fixture
def people():
    seller = make_user("seller@state.edu")
    buyer = make_user("buyer@state.edu", display_name="Bea")
    return seller, buyer


@pytest.fixture
def report_service(people):
    seller, buyer = people
    listing = make_listing(seller)
    svc = ReportService(FakeSession())
    svc.repo = FakeReportRepo({seller.id: seller, buyer.id: buyer})
    svc.listing_repo = FakeListingRepo(listing)
    svc.convos = FakeConversationRepo()
    svc.fire_and_forget = SpyReportNotifier()
    svc.listing = listing
    return svc


async def test_report_listing_notifies_support(report_service, people):
    _, buyer = people
    listing = report_service.listing

    out = await report_service.report_listing(
        buyer, ReportCreateIn(listing_id=listing.id, reason="  Counterfeit  ")
    )

    assert out.reason == "Counterfeit"
    assert out.status == ReportStatus.PENDING
    assert report_service.fire_and_forget.reports[0].id == out.id


async def test_report_unknown_listing(report_service, people):
    with pytest.raises(HTTPException) as exc:
        await report_service.report_listing(
            people[1], ReportCreateIn(listing_id=uuid.uuid4(), reason="spam")
        )
    assert exc.value.status_code == 404


async def test_chat_report_requires_conversation(report_service, people):
    seller, buyer = people
    data = ConversationReportIn(
        listing_id=report_service.listing.id, other_user_id=seller.id, reason="Rude"
    )

    with pytest.raises(HTTPException) as exc:
        await report_service.report_conversation(buyer, data)
    assert exc.value.status_code == 404

    await report_service.convos.get_or_create(
        data.listing_id, *canonical_participants(buyer.id, seller.id)
    )
    out = await report_service.report_conversation(buyer, data)

    assert out.reason == f"{CHAT_REPORT_PREFIX}Rude"


def test_csv_export_header_and_quoting(people):
    seller, buyer = people
    listing = make_listing(seller, title='Lamp, "vintage"')
    report = Report(
        id=uuid.uuid4(),
        reporter_id=buyer.id,
        listing_id=listing.id,
        reason="Scam",
        description=None,
        status=ReportStatus.PENDING,
        created_at=T0,
        reporter=buyer,
        listing=listing,
    )

    text = reports_to_csv([report])

    rows = list(csv.reader(io.StringIO(text)))
    assert rows[0] == CSV_COLUMNS
    row = dict(zip(CSV_COLUMNS, rows[1]))
    assert row["Listing Title"] == 'Lamp, "vintage"'
    assert row["Reporter Email"] == "buyer@state.edu"
    assert row["Description"] == ""
    assert row["Resolved At"] == ""
    assert text.startswith('"Report ID","Created At"')


def test_csv_export_without_reports():
    assert reports_to_csv([]).strip() == ",".join(f'"{c}"' for c in CSV_COLUMNS)


async def test_status_must_be_terminal():
    svc = AdminReportService(FakeSession())
    admin = AdminIdentity(id=uuid.uuid4(), email="dean@state.edu")

    with pytest.raises(HTTPException) as exc:
        await svc.update_status(admin, uuid.uuid4(), ReportStatusUpdateIn(status="pending"))

    assert exc.value.status_code == 400


async def test_status_update_records_admin(people):
    svc = AdminReportService(FakeSession())
    svc.repo = FakeReportRepo({})
    report = await svc.repo.create(people[1].id, uuid.uuid4(), "spam")
    admin = AdminIdentity(id=uuid.uuid4(), email="dean@state.edu")

    out = await svc.update_status(
        admin, report.id, ReportStatusUpdateIn(status="dismissed", notes="duplicate")
    )

    assert out == {"success": True, "status": "dismissed"}
    assert svc.repo.updates == [(report.id, ReportStatus.DISMISSED, admin.id, "duplicate")]
    with pytest.raises(HTTPException) as exc:
        await svc.update_status(admin, uuid.uuid4(), ReportStatusUpdateIn(status="resolved"))
    assert exc.value.status_code == 404
