"""
End-to-end tests for the applications API against an in-memory database.
Each test gets a fresh database: disposing the engine drops the single
in-memory connection.
"""
import json
import tempfile
import unittest
from unittest.mock import patch

from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.orm import Session

from config import MailConfig, settings
from database import AsyncSessionLocal, dispose_db, init_db
from main import app
from models import Application
from scripts.seed_loans import seed_catalog
from services.notifications import DeliveryResult, EmailDispatcher
from services.storage import LocalUploadStore

USER = {"X-User-Id": "user-1", "X-User-Email": "asha@example.com"}
OTHER_USER = {"X-User-Id": "user-2"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "admin"}


class RecordingNotifier:
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.sent = []

    async def send_email(self, to, subject, html, text=None):
        self.sent.append({"to": to, "subject": subject, "html": html})
        if self.succeed:
            return DeliveryResult(success=True, message_id="<test@example.com>")
        return DeliveryResult(success=False, error="SMTP config incomplete", code="ENV_MISSING")

    async def verify(self):
        return DeliveryResult(success=self.succeed)


def _personal_info(**overrides):
    info = {"fullName": "Asha Rao", "email": "asha@example.com", "phone": "9876543210"}
    info.update(overrides)
    return info


def _payload(**overrides):
    body = {
        "loanId": "personal-loan",
        "personalInfo": _personal_info(),
        "employmentInfo": {"employmentType": "Salaried", "monthlyIncome": 85000, "companyName": " Acme "},
        "loanDetails": {"loanAmount": 100000, "loanTenure": 12, "purpose": "Wedding"},
    }
    body.update(overrides)
    return body


class ApiTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        await init_db()
        async with AsyncSessionLocal() as session:
            await seed_catalog(session)
        self.notifier = RecordingNotifier()
        self.upload_dir = tempfile.mkdtemp(prefix="loan-intake-test-")
        app.state.notifier = self.notifier
        app.state.upload_store = LocalUploadStore(self.upload_dir)
        self.client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    async def asyncTearDown(self):
        await self.client.aclose()
        await dispose_db()

    async def submit(self, payload=None, headers=USER):
        return await self.client.post("/api/applications", json=payload or _payload(), headers=headers)

    async def count_applications(self):
        response = await self.client.get("/api/applications", headers=ADMIN)
        return response.json()["count"]


class TestSubmission(ApiTestCase):
    async def test_json_submission(self):
        response = await self.submit()
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "Application submitted successfully")
        data = body["data"]
        self.assertEqual(data["status"], "Submitted")
        self.assertEqual(data["applicationNumber"], "APP000001")
        self.assertEqual(data["userId"], "user-1")
        self.assertEqual(data["loanType"], "Personal")
        self.assertEqual(
            data["loanDetails"],
            {"loanAmount": 100000, "loanTenure": 12, "interestRate": 12, "emi": 8885, "purpose": "Wedding"},
        )
        self.assertEqual(data["employmentInfo"]["companyName"], "Acme")
        self.assertEqual(data["personalInfo"]["fullName"], "Asha Rao")
        self.assertIsNotNone(data["submittedAt"])
        self.assertEqual(len(self.notifier.sent), 1)
        self.assertEqual(self.notifier.sent[0]["to"], "asha@example.com")
        self.assertIn("APP000001", self.notifier.sent[0]["html"])

    async def test_numbers_are_sequential(self):
        first = await self.submit()
        second = await self.submit()
        self.assertEqual(first.json()["data"]["applicationNumber"], "APP000001")
        self.assertEqual(second.json()["data"]["applicationNumber"], "APP000002")

    async def test_multipart_with_files(self):
        form = {
            "loanId": "home-loan",
            "personalInfo": json.dumps(_personal_info()),
            "address": json.dumps({"current": {"city": "Pune", "pincode": 411001}}),
            "employmentInfo": json.dumps({"employmentType": "Salaried", "monthlyIncome": "150000"}),
            "loanDetails": json.dumps({"loanAmount": "2000000", "loanTenure": "240"}),
            "dynamicFields": json.dumps({"propertyValue": "5000000", "collateralType": "Property"}),
        }
        files = [
            ("selfie", ("front.jpg", b"first", "image/jpeg")),
            ("selfie", ("second.jpg", b"second", "image/jpeg")),
            ("idProof", ("pan.pdf", b"pan", "application/pdf")),
            ("dynamicFiles_saleDeed", ("deed.pdf", b"deed", "application/pdf")),
        ]
        response = await self.client.post("/api/applications", data=form, files=files, headers=USER)
        self.assertEqual(response.status_code, 201, response.text)
        data = response.json()["data"]

        self.assertEqual([d["type"] for d in data["documents"]], ["ID", "Selfie", "Dynamic: saleDeed"])
        self.assertEqual(data["documents"][1]["name"], "front.jpg")
        self.assertTrue(all(d["status"] == "Pending" for d in data["documents"]))
        self.assertTrue(all(d["url"].startswith("/uploads/") for d in data["documents"]))

        dynamic = data["dynamicFields"]
        self.assertEqual(dynamic["propertyValue"], 5000000)
        self.assertEqual(dynamic["collateralType"], "Property")
        self.assertEqual(dynamic["saleDeed"][0]["name"], "deed.pdf")
        self.assertEqual(data["address"]["current"]["pincode"], "411001")
        self.assertEqual(data["loanDetails"]["loanTenure"], 240)

    async def test_malformed_section(self):
        form = {
            "loanId": "personal-loan",
            "personalInfo": "{not json",
            "employmentInfo": json.dumps({"employmentType": "Salaried", "monthlyIncome": 50000}),
            "loanDetails": json.dumps({"loanAmount": 100000, "loanTenure": 12}),
        }
        response = await self.client.post("/api/applications", data=form, headers=USER)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["message"],
            "Personal information could not be read. Please send personalInfo as a JSON object.",
        )

    async def test_blank_employment_type(self):
        payload = _payload(employmentInfo={"employmentType": "   ", "monthlyIncome": 50000})
        response = await self.submit(payload)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["message"], "Employment type is required. Please select your employment type."
        )

    async def test_negative_amount_writes_nothing(self):
        response = await self.submit(_payload(loanDetails={"loanAmount": -5, "loanTenure": 12}))
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["message"], "Loan amount must be greater than 0. Received: -5")
        self.assertEqual(await self.count_applications(), 0)
        self.assertEqual(self.notifier.sent, [])

    async def test_unknown_loan(self):
        response = await self.submit(_payload(loanId="no-such-loan"))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Loan not found")

    async def test_invalid_loan_reference(self):
        response = await self.submit(_payload(loanId="bad id!"))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Valid loanId required")

    async def test_requires_identity(self):
        response = await self.client.post("/api/applications", json=_payload())
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"success": False, "message": "Not authorized, no token"})

    async def test_tenure_too_long(self):
        response = await self.submit(_payload(loanDetails={"loanAmount": 100000, "loanTenure": 100000}))
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["field"], "loanTenure")
        self.assertIn("at most 600 months", body["message"])
        self.assertEqual(await self.count_applications(), 0)

    async def test_amount_beyond_float_range(self):
        response = await self.submit(_payload(loanDetails={"loanAmount": 10 ** 400, "loanTenure": 12}))
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["field"], "loanAmount")
        self.assertTrue(body["message"].startswith("Loan amount must be a valid number"))

    async def test_income_beyond_float_range(self):
        payload = _payload(employmentInfo={"employmentType": "Salaried", "monthlyIncome": 10 ** 400})
        response = await self.submit(payload)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "monthlyIncome")

    async def test_required_dynamic_field(self):
        payload = _payload(
            loanId="home-loan",
            loanDetails={"loanAmount": 2000000, "loanTenure": 240},
            dynamicFields={"collateralType": "Property"},
        )
        response = await self.submit(payload)
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["message"], "Property value is required.")
        self.assertEqual(body["field"], "dynamicFields.propertyValue")

    async def test_zero_rate_loan(self):
        payload = _payload(loanId="gold-loan", loanDetails={"loanAmount": 12000, "loanTenure": 6},
                           dynamicFields={"collateralType": "Gold"})
        response = await self.submit(payload)
        self.assertEqual(response.status_code, 201, response.text)
        self.assertEqual(response.json()["data"]["loanDetails"]["emi"], 0)


class TestSubmissionEmail(ApiTestCase):
    async def test_strict_failure_reports_saved_number(self):
        self.notifier.succeed = False
        response = await self.submit()
        self.assertEqual(response.status_code, 502)
        body = response.json()
        self.assertEqual(body["data"], {"applicationNumber": "APP000001"})
        self.assertIn("APP000001", body["message"])
        self.assertEqual(await self.count_applications(), 1)

    async def test_lenient_failure_still_succeeds(self):
        self.notifier.succeed = False
        with patch.object(settings, "strict_submission_notifications", False):
            response = await self.submit()
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"]["applicationNumber"], "APP000001")


class TestDecisions(ApiTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.app_id = (await self.submit()).json()["data"]["id"]
        self.notifier.sent.clear()

    async def test_approve(self):
        response = await self.client.post(f"/api/applications/{self.app_id}/approve", headers=ADMIN)
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["status"], "Approved")
        self.assertEqual(data["approvedBy"], "admin-1")
        self.assertEqual(data["applicationNumber"], "APP000001")
        self.assertEqual(self.notifier.sent[0]["subject"], "Loan Application Approved")

    async def test_approve_twice_is_allowed(self):
        await self.client.post(f"/api/applications/{self.app_id}/approve", headers=ADMIN)
        again = await self.client.post(f"/api/applications/{self.app_id}/approve", headers=ADMIN)
        self.assertEqual(again.status_code, 200)
        self.assertEqual(again.json()["data"]["applicationNumber"], "APP000001")
        self.assertEqual(len(self.notifier.sent), 2)

    async def test_guarded_repeat_approval_is_noop(self):
        with patch.object(settings, "guard_terminal_transitions", True):
            await self.client.post(f"/api/applications/{self.app_id}/approve", headers=ADMIN)
            stored = await self.client.get(f"/api/applications/{self.app_id}", headers=ADMIN)
            again = await self.client.post(f"/api/applications/{self.app_id}/approve", headers=ADMIN)
        self.assertEqual(again.status_code, 200)
        self.assertEqual(again.json()["data"]["approvedAt"], stored.json()["data"]["approvedAt"])
        self.assertEqual(len(self.notifier.sent), 1)

    async def test_non_admin_cannot_decide(self):
        for action in ("approve", "reject"):
            response = await self.client.post(f"/api/applications/{self.app_id}/{action}", headers=USER)
            self.assertEqual(response.status_code, 403)

    async def test_reject_with_reason(self):
        response = await self.client.post(
            f"/api/applications/{self.app_id}/reject", json={"rejectionReason": "Income too low"}, headers=ADMIN
        )
        data = response.json()["data"]
        self.assertEqual(data["status"], "Rejected")
        self.assertEqual(data["rejectionReason"], "Income too low")
        self.assertIsNotNone(data["rejectedAt"])
        self.assertIn("Income too low", self.notifier.sent[0]["html"])

    async def test_reject_default_reason(self):
        response = await self.client.post(f"/api/applications/{self.app_id}/reject", headers=ADMIN)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["rejectionReason"], settings.default_rejection_reason)

    async def test_decision_is_committed_before_email(self):
        events = []

        def on_commit(session):
            events.append("commit")

        async def send_email(to, subject, html, text=None):
            events.append("email")
            return DeliveryResult(success=True)

        event.listen(Session, "after_commit", on_commit)
        self.addCleanup(event.remove, Session, "after_commit", on_commit)
        self.notifier.send_email = send_email
        for action in ("approve", "reject"):
            events.clear()
            response = await self.client.post(f"/api/applications/{self.app_id}/{action}", headers=ADMIN)
            self.assertEqual(response.status_code, 200)
            self.assertIn("email", events)
            self.assertLess(events.index("commit"), events.index("email"))

    async def test_decision_email_failure_is_not_an_error(self):
        self.notifier.succeed = False
        response = await self.client.post(f"/api/applications/{self.app_id}/approve", headers=ADMIN)
        self.assertEqual(response.status_code, 200)

    async def test_unknown_application(self):
        response = await self.client.post("/api/applications/app-missing/approve", headers=ADMIN)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "Application not found")


class TestViewing(ApiTestCase):
    async def test_owner_and_admin_can_view(self):
        app_id = (await self.submit()).json()["data"]["id"]
        own = await self.client.get(f"/api/applications/{app_id}", headers=USER)
        self.assertEqual(own.status_code, 200)
        admin = await self.client.get(f"/api/applications/{app_id}", headers=ADMIN)
        self.assertEqual(admin.status_code, 200)
        other = await self.client.get(f"/api/applications/{app_id}", headers=OTHER_USER)
        self.assertEqual(other.status_code, 403)

    async def test_list_scopes_and_filters(self):
        app_id = (await self.submit()).json()["data"]["id"]
        await self.submit(headers=OTHER_USER)
        await self.client.post(f"/api/applications/{app_id}/approve", headers=ADMIN)

        mine = await self.client.get("/api/applications", headers=USER)
        self.assertEqual(mine.json()["count"], 1)
        everyone = await self.client.get("/api/applications", headers=ADMIN)
        self.assertEqual(everyone.json()["count"], 2)
        approved = await self.client.get("/api/applications", params={"status": "Approved"}, headers=ADMIN)
        self.assertEqual([a["id"] for a in approved.json()["data"]], [app_id])

    async def test_unknown_status_filter(self):
        response = await self.client.get("/api/applications", params={"status": "Lost"}, headers=ADMIN)
        self.assertEqual(response.status_code, 400)


class TestUpdates(ApiTestCase):
    async def _insert_draft(self):
        async with AsyncSessionLocal() as session:
            session.add(Application(
                id="app-draft",
                user_id="user-1",
                loan_id="personal-loan",
                loan_type="Personal",
                status="Draft",
                personal_info={"full_name": "Asha Rao", "email": "asha@example.com", "phone": "9876543210"},
                employment_info={"employment_type": "Salaried", "monthly_income": 85000},
                loan_details={"loan_amount": 100000, "loan_tenure": 12, "interest_rate": 12, "emi": 8885},
                documents=[],
                dynamic_fields={},
                admin_notes=[],
            ))
            await session.commit()
        return "app-draft"

    async def test_owner_edits_and_submits_draft(self):
        app_id = await self._insert_draft()
        response = await self.client.put(
            f"/api/applications/{app_id}",
            json={"loanDetails": {"loanAmount": 200000}, "status": "Submitted"},
            headers=USER,
        )
        self.assertEqual(response.status_code, 200, response.text)
        data = response.json()["data"]
        self.assertEqual(data["status"], "Submitted")
        self.assertEqual(data["applicationNumber"], "APP000001")
        self.assertEqual(data["loanDetails"]["loanTenure"], 12)
        self.assertEqual(data["loanDetails"]["emi"], 17770)
        self.assertEqual(len(self.notifier.sent), 1)
        self.assertEqual(self.notifier.sent[0]["subject"], "Loan Application Submitted")
        self.assertIn("APP000001", self.notifier.sent[0]["html"])

    async def test_owner_cannot_edit_after_submission(self):
        app_id = (await self.submit()).json()["data"]["id"]
        response = await self.client.put(
            f"/api/applications/{app_id}", json={"personalInfo": {"phone": "9000000000"}}, headers=USER
        )
        self.assertEqual(response.status_code, 403)

    async def test_admin_moves_to_review(self):
        app_id = (await self.submit()).json()["data"]["id"]
        response = await self.client.put(
            f"/api/applications/{app_id}", json={"status": "Under Review"}, headers=ADMIN
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["status"], "Under Review")
        self.assertEqual(data["applicationNumber"], "APP000001")
        # only the original submission email
        self.assertEqual(len(self.notifier.sent), 1)

    async def test_update_cannot_decide(self):
        app_id = (await self.submit()).json()["data"]["id"]
        response = await self.client.put(f"/api/applications/{app_id}", json={"status": "Approved"}, headers=ADMIN)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["field"], "status")

    async def test_update_is_revalidated(self):
        app_id = await self._insert_draft()
        response = await self.client.put(
            f"/api/applications/{app_id}", json={"employmentInfo": {"monthlyIncome": 0}}, headers=USER
        )
        self.assertEqual(response.status_code, 400)
        stored = await self.client.get(f"/api/applications/{app_id}", headers=USER)
        self.assertEqual(stored.json()["data"]["employmentInfo"]["monthlyIncome"], 85000)


class TestNotes(ApiTestCase):
    async def test_admin_adds_note(self):
        app_id = (await self.submit()).json()["data"]["id"]
        response = await self.client.post(
            f"/api/applications/{app_id}/notes", json={"note": " Called applicant "}, headers=ADMIN
        )
        self.assertEqual(response.status_code, 200)
        note = response.json()["data"]["adminNotes"][0]
        self.assertEqual(note["note"], "Called applicant")
        self.assertEqual(note["addedBy"], "admin-1")

    async def test_user_cannot_add_note(self):
        app_id = (await self.submit()).json()["data"]["id"]
        response = await self.client.post(f"/api/applications/{app_id}/notes", json={"note": "x"}, headers=USER)
        self.assertEqual(response.status_code, 403)


class TestFormFieldsAndHealth(ApiTestCase):
    async def test_form_fields_include_category_fields(self):
        response = await self.client.get("/api/form-fields/loan/home-loan", headers=USER)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["count"], 3)
        self.assertEqual(
            {f["name"] for f in body["data"]}, {"propertyValue", "saleDeed", "collateralType"}
        )
        self.assertEqual(body["data"][0]["section"], "documents")

    async def test_form_fields_unknown_loan(self):
        response = await self.client.get("/api/form-fields/loan/nope", headers=USER)
        self.assertEqual(response.status_code, 404)

    async def test_mail_health_unconfigured(self):
        app.state.notifier = EmailDispatcher(MailConfig())
        response = await self.client.get("/health/mail")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["data"]["code"], "ENV_MISSING")

    async def test_health(self):
        response = await self.client.get("/health")
        self.assertEqual(response.json(), {"status": "ok"})


if __name__ == "__main__":
    unittest.main()
