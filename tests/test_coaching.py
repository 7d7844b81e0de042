"""Tests for the daily coaching job and the report read path."""
from datetime import datetime, timedelta

from database.schema import ACTIVITY_LOG, COACHING_REPORTS, ERRORS, USERS, build_row
from services.coaching import (
    FORBIDDEN_REPORT_CONTENT,
    NO_REPORT_CONTENT,
    get_daily_activity_summary,
    get_latest_coaching_report,
    get_report_hour,
    next_run_at,
    run_daily_analysis,
)
from services.directory import update_setting
from shared.timestamps import parse_timestamp

from conftest import ADMIN_EMAIL, USER_EMAIL

NOW = datetime(2024, 5, 14, 20, 0, 0)


def _activity(store, user, timestamp, activity_type="CHAT_MESSAGE", details="hello"):
    store.open_table(ACTIVITY_LOG).append_row(build_row(ACTIVITY_LOG, {
        "Activity_ID": f"ACT-{timestamp}",
        "User_ID": user,
        "Activity_Type": activity_type,
        "Activity_Details": details,
        "Timestamp": timestamp,
    }))


def _report(store, user, date, content, report_id):
    store.open_table(COACHING_REPORTS).append_row(build_row(COACHING_REPORTS, {
        "Report_ID": report_id,
        "User_ID": user,
        "Report_Date": date,
        "Report_Content": content,
    }))


def test_summary_covers_only_today(store):
    _activity(store, USER_EMAIL, "2024-05-13T23:59:59", details="yesterday")
    _activity(store, USER_EMAIL, "2024-05-14T09:15:00", details="morning")
    _activity(store, ADMIN_EMAIL, "2024-05-14T10:00:00", details="someone else")
    _activity(store, USER_EMAIL, "2024-05-14T08:00:00", "CREATE_PROJECT", "Created project X")

    summary = get_daily_activity_summary(store, USER_EMAIL, NOW)

    assert summary.startswith("Total activities today: 2\n\nActivity Timeline:\n")
    # Append order, not timestamp order
    assert summary.index("[09:15:00] CHAT_MESSAGE: morning") < summary.index("[08:00:00] CREATE_PROJECT")
    assert "yesterday" not in summary
    assert "someone else" not in summary


def test_summary_none_without_activity(store):
    assert get_daily_activity_summary(store, USER_EMAIL, NOW) is None


def test_run_daily_analysis_generates_and_skips(store, fake_llm, make_ctx):
    store.open_table(USERS).append_row(build_row(USERS, {"User_ID": USER_EMAIL, "Role": "User"}))
    _activity(store, USER_EMAIL, "2024-05-14T09:00:00", details="asked about SQL")

    stats = run_daily_analysis(make_ctx("system"), current_time=NOW)

    assert stats == {"generated": 1, "skipped": 1, "failed": 0}
    assert len(fake_llm.prompts) == 1
    assert "asked about SQL" in fake_llm.prompts[0]
    assert "--- USER ACTIVITY SUMMARY ---" in fake_llm.prompts[0]
    assert fake_llm.temperatures == [0.5]

    reports = store.open_table(COACHING_REPORTS).records()
    assert len(reports) == 1
    assert reports[0]["User_ID"] == USER_EMAIL
    assert reports[0]["Report_ID"].startswith("REP-")
    assert reports[0]["Report_Content"] == "Fake answer"
    written = parse_timestamp(reports[0]["Report_Date"])
    assert abs(datetime.now() - written) < timedelta(seconds=30)


def test_run_daily_analysis_isolates_failures(store, fake_llm, make_ctx):
    store.open_table(USERS).append_row(build_row(USERS, {"User_ID": USER_EMAIL, "Role": "User"}))
    _activity(store, ADMIN_EMAIL, "2024-05-14T09:00:00")
    _activity(store, USER_EMAIL, "2024-05-14T09:30:00")

    answers = iter([RuntimeError("rate limited"), None])
    original_invoke = fake_llm.invoke

    def flaky_invoke(messages):
        error = next(answers)
        if error is not None:
            raise error
        return original_invoke(messages)

    fake_llm.invoke = flaky_invoke

    stats = run_daily_analysis(make_ctx("system"), current_time=NOW)

    assert stats == {"generated": 1, "skipped": 0, "failed": 1}
    reports = store.open_table(COACHING_REPORTS).records()
    assert [r["User_ID"] for r in reports] == [USER_EMAIL]
    errors = store.open_table(ERRORS).records()
    assert errors[-1]["Function_Name"] == "run_daily_analysis"
    assert errors[-1]["User_ID"] == ADMIN_EMAIL


def test_latest_report_picks_greatest_date(store, user_ctx):
    _report(store, USER_EMAIL, "2024-05-12T20:00:00", "old", "REP-1")
    _report(store, USER_EMAIL, "2024-05-14T20:00:00", "newest", "REP-2")
    _report(store, USER_EMAIL, "2024-05-13T20:00:00", "middle", "REP-3")
    _report(store, ADMIN_EMAIL, "2024-05-15T20:00:00", "not mine", "REP-4")

    report = get_latest_coaching_report(user_ctx)

    assert report["found"] is True
    assert report["Report_ID"] == "REP-2"
    assert report["Report_Content"] == "newest"
    assert report["Report_Date"] == "2024-05-14T20:00:00"


def test_latest_report_tie_goes_to_later_row(store, user_ctx):
    _report(store, USER_EMAIL, "2024-05-14T20:00:00", "first", "REP-1")
    _report(store, USER_EMAIL, "2024-05-14T20:00:00", "second", "REP-2")

    assert get_latest_coaching_report(user_ctx)["Report_ID"] == "REP-2"


def test_admin_reads_other_users_report(store, admin_ctx):
    _report(store, USER_EMAIL, "2024-05-14T20:00:00", "user report", "REP-9")
    assert get_latest_coaching_report(admin_ctx, USER_EMAIL)["Report_Content"] == "user report"


def test_user_cannot_read_other_users_report(store, user_ctx):
    _report(store, ADMIN_EMAIL, "2024-05-14T20:00:00", "admin report", "REP-9")

    report = get_latest_coaching_report(user_ctx, ADMIN_EMAIL)

    assert report == {"found": False, "Report_ID": None, "Report_Date": None, "Report_Content": FORBIDDEN_REPORT_CONTENT}


def test_own_email_with_other_case_is_allowed(store, user_ctx):
    _report(store, USER_EMAIL, "2024-05-14T20:00:00", "mine", "REP-1")
    assert get_latest_coaching_report(user_ctx, USER_EMAIL.upper())["Report_Content"] == "mine"


def test_no_report_is_not_an_error(store, user_ctx):
    report = get_latest_coaching_report(user_ctx)
    assert report == {"found": False, "Report_ID": None, "Report_Date": None, "Report_Content": NO_REPORT_CONTENT}


def test_report_read_never_raises(store, user_ctx, monkeypatch):
    def boom(name):
        raise RuntimeError("sheet offline")

    monkeypatch.setattr(store, "open_table", boom)

    report = get_latest_coaching_report(user_ctx)

    assert report["found"] is False
    assert "sheet offline" in report["Report_Content"]


def test_next_run_at():
    assert next_run_at(datetime(2024, 5, 14, 19, 30), 20) == datetime(2024, 5, 14, 20, 0)
    assert next_run_at(datetime(2024, 5, 14, 20, 0), 20) == datetime(2024, 5, 15, 20, 0)
    assert next_run_at(datetime(2024, 5, 14, 23, 0), 20) == datetime(2024, 5, 15, 20, 0)


def test_report_hour_follows_setting(store, admin_ctx):
    assert get_report_hour(store, 7) == 20

    update_setting(admin_ctx, "DAILY_REPORT_HOUR", "6")

    assert get_report_hour(store, 20) == 6


def test_report_hour_ignores_bad_values(store, admin_ctx):
    update_setting(admin_ctx, "DAILY_REPORT_HOUR", "evening")
    assert get_report_hour(store, 20) == 20

    update_setting(admin_ctx, "DAILY_REPORT_HOUR", "25")
    assert get_report_hour(store, 20) == 20
