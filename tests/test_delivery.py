import json

from analysis.dispatcher import dispatch
from analysis.models import PAGESPEED, STRUCTURE, ReportRequest, SubResult
from analysis.completion import check_completion
from notifications.delivery import handle_pdf_task
from storage import reports as report_store


def test_pdf_task_writes_report_export(db, settings):
    report_id = dispatch(ReportRequest("https://example.com", email="a@b.c", enabled_services=[]), settings)
    report_store.upsert_sub_result(report_id, PAGESPEED, SubResult.skipped("no key"), "t1")
    report_store.upsert_sub_result(report_id, STRUCTURE, SubResult.failed("down"), "t2")
    check_completion(report_id)

    path = handle_pdf_task({"documentId": report_id, "recipientEmail": "a@b.c"}, settings)

    assert path == settings.reports_dir / f"{report_id}.json"
    doc = json.loads(path.read_text(encoding="utf-8"))
    assert doc["reportId"] == report_id
    assert doc["status"] == "completed"
    assert doc["pageSpeed"]["reason"] == "no key"
    assert set(doc["partialResults"]) == {PAGESPEED, STRUCTURE}
    assert "exported_at" in doc


def test_pdf_task_for_unknown_report(db, settings):
    assert handle_pdf_task({"documentId": "missing"}, settings) is None
    assert handle_pdf_task({}, settings) is None
