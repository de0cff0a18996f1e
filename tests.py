"""
Unit tests for the Attendance Processor and its exporters
"""
import io
import os
import tempfile
import unittest
import zipfile
from contextlib import redirect_stdout
from datetime import date, datetime
from unittest import mock

import openpyxl
import requests

import report_export
import timesheet_sync
from attendance_processor import (
    DOUBLE_TAP_WINDOW, FALLBACK_SESSION_HOURS, AttendanceProcessor, Direction,
    Session, SessionStatus, build_report, list_employee_ids, main,
    parse_period
)

SAMPLE_LOG = """101 2024-03-01 09:00:00 1 0
101 2024-03-01 18:00:00 1 1
101 2024-03-02 09:05:00 1 0
"""


def make_log(*lines):
    return "\n".join(lines) + "\n"


class TestParser(unittest.TestCase):
    """Test cases for line parsing"""

    def setUp(self):
        self.processor = AttendanceProcessor()

    def test_parse_valid_in_line(self):
        """Test that status 0 is an IN scan"""
        record = self.processor.parse_scan_line("101 2024-03-01 09:00:00 1 0 0 0")
        self.assertEqual(record.employee_id, "101")
        self.assertEqual(record.date, date(2024, 3, 1))
        self.assertEqual(record.timestamp, datetime(2024, 3, 1, 9, 0, 0))
        self.assertEqual(record.direction, Direction.IN)
        self.assertFalse(record.is_duplicate)

    def test_parse_any_other_integer_is_out(self):
        """Test that any non-zero status is an OUT scan"""
        for status in ("1", "2", "5"):
            record = self.processor.parse_scan_line(f"101 2024-03-01 09:00:00 1 {status}")
            self.assertEqual(record.direction, Direction.OUT)

    def test_parse_too_few_fields(self):
        """Test that lines with fewer than 5 fields are ignored"""
        self.assertIsNone(self.processor.parse_scan_line("101 2024-03-01 09:00:00 1"))
        self.assertIsNone(self.processor.parse_scan_line(""))

    def test_parse_invalid_date_is_dropped(self):
        """Test that an impossible date drops the line instead of raising"""
        self.assertIsNone(self.processor.parse_scan_line("101 2024-02-30 09:00:00 1 0"))
        self.assertIsNone(self.processor.parse_scan_line("101 2024-03-01 25:00:00 1 0"))

    def test_parse_non_numeric_status_is_dropped(self):
        """Test that a non-integer IN/OUT status drops the line"""
        self.assertIsNone(self.processor.parse_scan_line("101 2024-03-01 09:00:00 1 X"))

    def test_records_filtered_and_sorted(self):
        """Test employee filtering, noise skipping and chronological order"""
        log = make_log(
            "101 2024-03-02 09:00:00 1 0",
            "202 2024-03-01 08:00:00 1 0",
            "garbage",
            "",
            "101 2024-03-01 18:00:00 1 1",
            "101 2024-03-01 09:00:00 1 0",
        )
        records = self.processor.parse_scan_records(log, "101")
        self.assertEqual(len(records), 3)
        self.assertEqual(
            [r.timestamp for r in records],
            sorted(r.timestamp for r in records)
        )
        self.assertTrue(all(r.employee_id == "101" for r in records))

    def test_equal_timestamps_keep_file_order(self):
        """Test that the sort is stable for identical timestamps"""
        log = make_log(
            "101 2024-03-01 09:00:00 1 1",
            "101 2024-03-01 09:00:00 1 0",
        )
        records = self.processor.parse_scan_records(log, "101")
        self.assertEqual([r.direction for r in records], [Direction.OUT, Direction.IN])
        self.assertEqual([r.line_no for r in records], [1, 2])

    def test_only_newline_separates_records(self):
        """Test that a form feed inside a line is whitespace, not a line break"""
        log = "101 2024-03-01\x0c09:00:00 1 0\n101 2024-03-01 18:00:00\x0b1 1\n"
        records = self.processor.parse_scan_records(log, "101")
        self.assertEqual([r.direction for r in records], [Direction.IN, Direction.OUT])
        self.assertEqual(list_employee_ids("7\x0c2024-03-01 09:00:00 1 0\n"), ["7"])

    def test_windows_line_endings(self):
        """Test that CRLF logs parse the same as LF logs"""
        records = self.processor.parse_scan_records(SAMPLE_LOG.replace("\n", "\r\n"), "101")
        self.assertEqual(len(records), 3)


class TestEmployeeDiscovery(unittest.TestCase):
    """Test cases for employee id discovery"""

    def test_numeric_ids_sort_by_value(self):
        """Test that numeric ids sort numerically, not as text"""
        log = make_log(
            "10 2024-03-01 09:00:00 1 0",
            "2 2024-03-01 09:00:00 1 0",
            "100 2024-03-01 09:00:00 1 0",
        )
        self.assertEqual(list_employee_ids(log), ["2", "10", "100"])

    def test_mixed_ids_numeric_first(self):
        """Test that numeric ids come before other ids, which sort lexically"""
        log = make_log(
            "abc 2024-03-01 09:00:00 1 0",
            "10 2024-03-01 09:00:00 1 0",
            "B7 2024-03-01",
            "2 2024-03-01 09:00:00 1 0",
        )
        self.assertEqual(list_employee_ids(log), ["2", "10", "B7", "abc"])

    def test_ids_are_unique(self):
        """Test that repeated ids appear once"""
        ids = list_employee_ids(SAMPLE_LOG + "\n\n")
        self.assertEqual(ids, ["101"])

    def test_empty_log(self):
        self.assertEqual(list_employee_ids(""), [])


class TestDoubleTaps(unittest.TestCase):
    """Test cases for double tap detection"""

    def setUp(self):
        self.processor = AttendanceProcessor()

    def records(self, *lines):
        records = self.processor.parse_scan_records(make_log(*lines), "1")
        return self.processor.mark_double_taps(records)

    def test_window_constant(self):
        self.assertEqual(DOUBLE_TAP_WINDOW.total_seconds(), 3600)

    def test_same_direction_within_window(self):
        """Test that a repeated IN within an hour is flagged"""
        records = self.records(
            "1 2024-03-01 08:00:00 1 0",
            "1 2024-03-01 08:10:00 1 0",
        )
        self.assertFalse(records[0].is_duplicate)
        self.assertTrue(records[1].is_duplicate)

    def test_exactly_one_hour_is_not_duplicate(self):
        """Test that the window is exclusive at one hour"""
        records = self.records(
            "1 2024-03-01 08:00:00 1 0",
            "1 2024-03-01 09:00:00 1 0",
        )
        self.assertFalse(records[1].is_duplicate)

    def test_window_measured_from_last_valid_scan(self):
        """Test that chained taps are compared with the first valid scan"""
        records = self.records(
            "1 2024-03-01 08:00:00 1 0",
            "1 2024-03-01 08:40:00 1 0",
            "1 2024-03-01 08:59:00 1 0",
            "1 2024-03-01 09:05:00 1 0",
        )
        self.assertEqual([r.is_duplicate for r in records], [False, True, True, False])

    def test_opposite_direction_is_never_duplicate(self):
        """Test that IN then OUT inside the window are both kept"""
        records = self.records(
            "1 2024-03-01 08:00:00 1 0",
            "1 2024-03-01 08:20:00 1 1",
        )
        self.assertFalse(any(r.is_duplicate for r in records))


class TestSessionPairing(unittest.TestCase):
    """Test cases for the IN/OUT pairing state machine"""

    def setUp(self):
        self.processor = AttendanceProcessor()

    def pair(self, *lines):
        records = self.processor.parse_scan_records(make_log(*lines), "1")
        self.processor.mark_double_taps(records)
        return records, self.processor.pair_sessions(records)

    def test_normal_pair(self):
        """Test that an IN followed by an OUT forms a NORMAL session"""
        records, sessions = self.pair(
            "1 2024-03-01 09:00:00 1 0",
            "1 2024-03-01 17:30:00 1 1",
        )
        self.assertEqual(len(sessions), 1)
        session = sessions[0]
        self.assertEqual(session.status, SessionStatus.NORMAL)
        self.assertEqual(session.attributed_date, date(2024, 3, 1))
        self.assertFalse(session.crosses_midnight)
        self.assertEqual(session.hours, 8.5)
        self.assertEqual([r.report_date for r in records], [date(2024, 3, 1)] * 2)

    def test_cross_midnight_out_attributed_to_in_date(self):
        """Test that a next-day OUT belongs to the shift start day"""
        records, sessions = self.pair(
            "1 2024-01-31 23:50:00 1 0",
            "1 2024-02-01 00:10:00 1 1",
        )
        self.assertEqual(len(sessions), 1)
        self.assertTrue(sessions[0].crosses_midnight)
        self.assertEqual(sessions[0].attributed_date, date(2024, 1, 31))
        self.assertEqual(records[1].report_date, date(2024, 1, 31))

    def test_in_after_in_closes_out_missing(self):
        """Test that a second IN closes the first as OUT_MISSING"""
        _, sessions = self.pair(
            "1 2024-03-01 09:00:00 1 0",
            "1 2024-03-02 09:00:00 1 0",
            "1 2024-03-02 17:00:00 1 1",
        )
        self.assertEqual(
            [s.status for s in sessions],
            [SessionStatus.OUT_MISSING, SessionStatus.NORMAL]
        )
        self.assertIsNone(sessions[0].out_scan)
        self.assertEqual(sessions[0].attributed_date, date(2024, 3, 1))

    def test_trailing_in_closes_out_missing(self):
        """Test that an IN still open at the end of the log is OUT_MISSING"""
        _, sessions = self.pair("1 2024-03-01 09:00:00 1 0")
        self.assertEqual(len(sessions), 1)
        self.assertEqual(sessions[0].status, SessionStatus.OUT_MISSING)
        self.assertEqual(sessions[0].hours, FALLBACK_SESSION_HOURS)

    def test_orphan_out_goes_to_previous_day(self):
        """Test that an OUT without an open IN is NO_IN_RECORD on the day before"""
        records, sessions = self.pair("1 2024-03-05 17:00:00 1 1")
        self.assertEqual(len(sessions), 1)
        self.assertEqual(sessions[0].status, SessionStatus.NO_IN_RECORD)
        self.assertEqual(sessions[0].attributed_date, date(2024, 3, 4))
        self.assertIsNone(sessions[0].in_scan)
        self.assertEqual(records[0].report_date, date(2024, 3, 4))

    def test_orphan_out_on_first_of_month(self):
        """Test that the previous-day rule crosses month boundaries"""
        _, sessions = self.pair("1 2024-03-01 06:00:00 1 1")
        self.assertEqual(sessions[0].attributed_date, date(2024, 2, 29))

    def test_consecutive_outs_each_orphaned(self):
        """Test that two OUTs with no IN become two NO_IN_RECORD sessions"""
        _, sessions = self.pair(
            "1 2024-03-05 17:00:00 1 1",
            "1 2024-03-06 17:00:00 1 1",
        )
        self.assertEqual(
            [(s.status, s.attributed_date) for s in sessions],
            [(SessionStatus.NO_IN_RECORD, date(2024, 3, 4)),
             (SessionStatus.NO_IN_RECORD, date(2024, 3, 5))]
        )

    def test_duplicates_skip_pairing_and_inherit_report_date(self):
        """Test that a double-tap OUT after midnight follows its donor's day"""
        records, sessions = self.pair(
            "1 2024-03-01 22:00:00 1 0",
            "1 2024-03-02 06:00:00 1 1",
            "1 2024-03-02 06:05:00 1 1",
        )
        self.assertEqual(len(sessions), 1)
        self.assertTrue(records[2].is_duplicate)
        self.assertEqual(records[2].report_date, date(2024, 3, 1))

    def test_sessions_never_empty(self):
        """Test that every session holds at least one scan"""
        _, sessions = self.pair(
            "1 2024-03-01 06:00:00 1 1",
            "1 2024-03-01 09:00:00 1 0",
            "1 2024-03-01 12:00:00 1 0",
            "1 2024-03-01 18:00:00 1 1",
            "1 2024-03-01 20:00:00 1 1",
            "1 2024-03-02 09:00:00 1 0",
        )
        self.assertEqual(len(sessions), 5)
        for session in sessions:
            self.assertTrue(session.in_scan is not None or session.out_scan is not None)

    def test_session_requires_a_scan(self):
        with self.assertRaises(ValueError):
            Session(date(2024, 3, 1), None, None, SessionStatus.NORMAL)

    def test_same_instant_pair_has_zero_hours(self):
        """Test that an IN and OUT at the same instant never go negative"""
        _, sessions = self.pair(
            "1 2024-03-01 09:00:00 1 0",
            "1 2024-03-01 09:00:00 1 1",
        )
        self.assertEqual(sessions[0].hours, 0.0)


class TestReport(unittest.TestCase):
    """Test cases for the full report pipeline"""

    def test_end_to_end_scenario(self):
        """Test the three-line sample log for March 2024"""
        report = build_report(SAMPLE_LOG, "101", 3, 2024)

        self.assertEqual(len(report.daily_records), 2)
        day1, day2 = report.daily_records
        self.assertEqual(day1.date, date(2024, 3, 1))
        self.assertEqual(day1.status, SessionStatus.NORMAL)
        self.assertEqual(day1.total_hours, 9.0)
        self.assertEqual((day1.in_time, day1.out_time), ("09:00", "18:00"))
        self.assertEqual(day1.scan_count, 2)

        self.assertEqual(day2.status, SessionStatus.OUT_MISSING)
        self.assertEqual(day2.total_hours, 8.0)
        self.assertEqual((day2.in_time, day2.out_time), ("09:05", "-"))
        self.assertEqual(day2.scan_count, 1)

        self.assertEqual(report.summary.total_days_with_records, 2)
        self.assertEqual(report.summary.total_normal_days, 1)
        self.assertEqual(report.summary.total_out_missing_days, 1)

    def test_cross_midnight_report(self):
        """Test that a shift over midnight is reported under its start day"""
        log = make_log(
            "7 2024-01-31 23:50:00 1 0",
            "7 2024-02-01 00:10:00 1 1",
        )
        report = build_report(log, "7", 1, 2024)
        self.assertEqual(len(report.daily_records), 1)
        day = report.daily_records[0]
        self.assertEqual(day.date, date(2024, 1, 31))
        self.assertTrue(day.crosses_midnight)
        self.assertAlmostEqual(day.total_hours, 0.33, places=2)
        self.assertEqual(day.scan_count, 2)
        self.assertEqual([entry.date for entry in day.logs], ["2024-01-31", "2024-02-01"])

        february = build_report(log, "7", 2, 2024)
        self.assertEqual(february.daily_records, ())

    def test_double_tap_report(self):
        """Test that a double IN yields one NORMAL session and three scans"""
        log = make_log(
            "8 2024-03-04 08:00:00 1 0",
            "8 2024-03-04 08:10:00 1 0",
            "8 2024-03-04 16:00:00 1 1",
        )
        report = build_report(log, "8", 3, 2024)
        day = report.daily_records[0]
        self.assertEqual(day.status, SessionStatus.NORMAL)
        self.assertEqual(day.total_hours, 8.0)
        self.assertEqual(day.in_time, "08:00")
        self.assertEqual(day.scan_count, 3)
        self.assertEqual([entry.is_duplicate for entry in day.logs], [False, True, False])
        self.assertEqual([entry.type for entry in day.logs], [Direction.IN, Direction.IN, Direction.OUT])

    def test_orphan_out_on_first_representable_day_is_dropped(self):
        """Test that an OUT with no day before it is skipped, not fatal"""
        log = make_log(
            "1 0001-01-01 06:00:00 1 1",
            "1 2024-03-01 09:00:00 1 0",
            "1 2024-03-01 17:00:00 1 1",
        )
        report = build_report(log, "1", 3, 2024)
        self.assertEqual(len(report.daily_records), 1)
        day = report.daily_records[0]
        self.assertEqual(day.date, date(2024, 3, 1))
        self.assertEqual(day.status, SessionStatus.NORMAL)
        self.assertEqual(day.total_hours, 8.0)
        self.assertEqual(build_report(log, "1", 1, 1).daily_records, ())

    def test_orphan_out_report(self):
        """Test that a lone OUT makes a NO_IN_RECORD day before the scan"""
        report = build_report("5 2024-03-05 17:00:00 1 1\n", "5", 3, 2024)
        day = report.daily_records[0]
        self.assertEqual(day.date, date(2024, 3, 4))
        self.assertEqual(day.status, SessionStatus.NO_IN_RECORD)
        self.assertEqual((day.in_time, day.out_time), ("-", "17:00"))
        self.assertEqual(day.total_hours, FALLBACK_SESSION_HOURS)
        self.assertEqual(report.summary.total_days_with_records, 1)
        self.assertEqual(report.summary.total_normal_days, 0)
        self.assertEqual(report.summary.total_out_missing_days, 0)

    def test_out_missing_takes_precedence(self):
        """Test day status and fallback hours with mixed sessions on one day"""
        log = make_log(
            "3 2024-03-10 08:00:00 1 0",
            "3 2024-03-10 12:00:00 1 0",
            "3 2024-03-10 13:00:00 1 1",
            "3 2024-03-11 07:00:00 1 1",
        )
        report = build_report(log, "3", 3, 2024)
        self.assertEqual(len(report.daily_records), 1)
        day = report.daily_records[0]
        self.assertEqual(day.status, SessionStatus.OUT_MISSING)
        self.assertEqual(day.total_hours, 17.0)
        self.assertEqual((day.in_time, day.out_time), ("08:00", "07:00"))
        self.assertEqual(day.scan_count, 4)

    def test_period_filter_uses_attributed_date(self):
        """Test that a shift starting on the last day of a month stays there"""
        log = make_log(
            "4 2024-02-29 22:00:00 1 0",
            "4 2024-03-01 06:00:00 1 1",
            "4 2024-03-01 22:00:00 1 0",
            "4 2024-03-02 06:00:00 1 1",
        )
        february = build_report(log, "4", 2, 2024)
        march = build_report(log, "4", 3, 2024)
        self.assertEqual([d.date for d in february.daily_records], [date(2024, 2, 29)])
        self.assertEqual([d.date for d in march.daily_records], [date(2024, 3, 1)])
        self.assertEqual(march.daily_records[0].scan_count, 2)
        self.assertEqual(february.daily_records[0].total_hours, 8.0)

    def test_period_filter_checks_year(self):
        self.assertEqual(build_report(SAMPLE_LOG, "101", 3, 2023).daily_records, ())

    def test_unknown_employee_gives_empty_report(self):
        """Test that no matching employee is an empty report, not an error"""
        report = build_report(SAMPLE_LOG, "999", 3, 2024)
        self.assertEqual(report.daily_records, ())
        self.assertEqual(report.summary.total_days_with_records, 0)
        self.assertEqual(report.summary.total_normal_days, 0)
        self.assertEqual(report.summary.total_out_missing_days, 0)

    def test_daily_records_ascending(self):
        log = make_log(
            "1 2024-03-20 09:00:00 1 0",
            "1 2024-03-20 17:00:00 1 1",
            "1 2024-03-03 09:00:00 1 0",
            "1 2024-03-03 17:00:00 1 1",
        )
        dates = [d.date for d in build_report(log, "1", 3, 2024).daily_records]
        self.assertEqual(dates, [date(2024, 3, 3), date(2024, 3, 20)])

    def test_build_report_is_idempotent(self):
        """Test that identical input gives identical output"""
        processor = AttendanceProcessor()
        first = processor.build_report(SAMPLE_LOG, "101", 3, 2024)
        second = processor.build_report(SAMPLE_LOG, "101", 3, 2024)
        self.assertEqual(first, second)
        self.assertEqual(first.to_dict(), build_report(SAMPLE_LOG, "101", 3, 2024).to_dict())

    def test_to_dict(self):
        """Test the JSON-ready form of a report"""
        data = build_report(SAMPLE_LOG, "101", 3, 2024).to_dict()
        self.assertEqual(data["employee_id"], "101")
        self.assertEqual(data["summary"]["total_normal_days"], 1)
        first = data["daily_records"][0]
        self.assertEqual(first["date"], "2024-03-01")
        self.assertEqual(first["status"], "NORMAL")
        self.assertEqual(first["logs"][0]["type"], "IN")
        self.assertEqual(first["logs"][0]["timestamp"], "2024-03-01T09:00:00")

    def test_print_report(self):
        """Test that the console table lists every day"""
        processor = AttendanceProcessor()
        out = io.StringIO()
        with redirect_stdout(out):
            processor.print_report(processor.build_report(SAMPLE_LOG, "101", 3, 2024))
        text = out.getvalue()
        self.assertIn("2024-03-01", text)
        self.assertIn("OUT_MISSING", text)
        self.assertIn("TOTAL HOURS: 17.00", text)


class TestExports(unittest.TestCase):
    """Test cases for CSV, Excel, PDF and ZIP output"""

    def setUp(self):
        self.report = build_report(SAMPLE_LOG, "101", 3, 2024)
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        patcher = mock.patch('sys.stdout', new_callable=io.StringIO)
        patcher.start()
        self.addCleanup(patcher.stop)

    def path(self, name):
        return os.path.join(self.tmp.name, name)

    def test_report_to_frame(self):
        df = report_export.report_to_frame(self.report)
        self.assertEqual(list(df.columns), report_export.REPORT_COLUMNS)
        self.assertEqual(len(df), 2)
        self.assertEqual(list(df["status"]), ["NORMAL", "OUT_MISSING"])

    def test_csv_export(self):
        """Test the CSV columns and values"""
        output_file = self.path("report.csv")
        report_export.write_csv(self.report, output_file)
        with open(output_file, encoding="utf-8") as f:
            lines = f.read().splitlines()
        self.assertEqual(lines[0], "employee_id,date,in_time,out_time,total_hours,scan_count,status")
        self.assertEqual(lines[1], "101,2024-03-01,09:00,18:00,9.0,2,NORMAL")
        self.assertEqual(lines[2], "101,2024-03-02,09:05,-,8.0,1,OUT_MISSING")

    def test_excel_file_generated(self):
        """Test that the workbook holds the daily table and the scan log"""
        output_file = self.path("report.xlsx")
        report_export.generate_excel(self.report, output_file)
        self.assertTrue(os.path.exists(output_file))

        wb = openpyxl.load_workbook(output_file)
        self.assertEqual(wb.sheetnames, ["Attendance", "Scan Log"])
        ws = wb["Attendance"]
        self.assertEqual(ws["A1"].value, "Employee ID")
        self.assertEqual(ws["B2"].value, "2024-03-01")
        self.assertEqual(ws["E2"].value, 9.0)
        self.assertEqual(ws["G3"].value, "OUT_MISSING")
        self.assertEqual(wb["Scan Log"].max_row, 4)

    def test_pdf_export(self):
        self.assertTrue(report_export.generate_pdf(self.report).startswith(b"%PDF"))
        empty = build_report(SAMPLE_LOG, "999", 3, 2024)
        self.assertTrue(report_export.generate_pdf(empty).startswith(b"%PDF"))

    def test_zip_bundle(self):
        """Test that the ZIP holds one CSV and one XLSX per report"""
        other = build_report("202 2024-03-05 08:00:00 1 0\n", "202", 3, 2024)
        output_file = self.path("bundle.zip")
        report_export.build_zip([self.report, other], output_file)
        with zipfile.ZipFile(output_file) as zf:
            self.assertEqual(sorted(zf.namelist()), [
                "Attendance_101_3_2024.csv", "Attendance_101_3_2024.xlsx",
                "Attendance_202_3_2024.csv", "Attendance_202_3_2024.xlsx",
            ])


class TestTimesheetSync(unittest.TestCase):
    """Test cases for the ERP timesheet push"""

    def setUp(self):
        self.report = build_report(SAMPLE_LOG, "101", 3, 2024)

    def test_build_payloads_from_report(self):
        payloads = timesheet_sync.build_timesheet_payloads(
            report_export.report_to_frame(self.report), company="ACME"
        )
        self.assertEqual(len(payloads), 2)
        self.assertEqual(payloads[0]["company"], "ACME")
        self.assertEqual(payloads[0]["employee"], "101")
        self.assertEqual(payloads[0]["time_logs"][0]["from_time"], "2024-03-01")
        self.assertEqual(payloads[0]["time_logs"][0]["hours"], 9.0)

    def test_build_payloads_single_day(self):
        payloads = timesheet_sync.build_timesheet_payloads(
            report_export.report_to_frame(self.report), day="2024-03-02"
        )
        self.assertEqual(len(payloads), 1)
        self.assertEqual(payloads[0]["time_logs"][0]["hours"], 8.0)

    def test_load_report_frame_skips_summary(self):
        """Test that only daily rows are read back from the workbook"""
        with tempfile.TemporaryDirectory() as tmp:
            output_file = os.path.join(tmp, "report.xlsx")
            with redirect_stdout(io.StringIO()):
                report_export.generate_excel(self.report, output_file)
            df = timesheet_sync.load_report_frame(output_file)

        self.assertEqual(len(df), 2)
        self.assertEqual(list(df["employee_id"]), ["101", "101"])
        self.assertEqual(list(df["total_hours"]), [9.0, 8.0])

    def test_push_counts_created_and_failed(self):
        """Test that HTTP errors and connection errors count as failures"""
        session = mock.Mock()
        session.post.side_effect = [
            mock.Mock(status_code=201),
            mock.Mock(status_code=500, text="server error"),
            requests.ConnectionError("unreachable"),
        ]
        payloads = timesheet_sync.build_timesheet_payloads(
            report_export.report_to_frame(self.report)
        )
        payloads.append(payloads[0])

        with redirect_stdout(io.StringIO()):
            created, failed = timesheet_sync.push_timesheets(
                payloads, url="http://erp.test/api/resource/Timesheet",
                api_key="key", api_secret="secret", session=session
            )

        self.assertEqual((created, failed), (1, 2))
        _, kwargs = session.post.call_args
        self.assertEqual(kwargs["headers"]["Authorization"], "token key:secret")
        self.assertEqual(kwargs["json"]["employee"], "101")


class TestTimesheetCommandLine(unittest.TestCase):
    """Test cases for the timesheet push entry point"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.workbook = os.path.join(self.tmp.name, "report.xlsx")
        with redirect_stdout(io.StringIO()):
            report_export.generate_excel(build_report(SAMPLE_LOG, "101", 3, 2024), self.workbook)

    def run_main(self, *args):
        out = io.StringIO()
        with redirect_stdout(out):
            timesheet_sync.main(list(args))
        return out.getvalue()

    def test_per_day_pushes_every_row(self):
        """Test that --per-day sends one timesheet per daily row"""
        with mock.patch.object(timesheet_sync, "push_timesheets", return_value=(2, 0)) as push:
            text = self.run_main(self.workbook, "--per-day")

        payloads = push.call_args[0][0]
        self.assertEqual([p["time_logs"][0]["from_time"] for p in payloads], ["2024-03-01", "2024-03-02"])
        self.assertIn("Created: 2 | Failed: 0", text)

    def test_single_day(self):
        """Test that a date argument limits the push to that day"""
        with mock.patch.object(timesheet_sync, "push_timesheets", return_value=(1, 0)) as push:
            self.run_main(self.workbook, "2024-03-02")

        payloads = push.call_args[0][0]
        self.assertEqual(len(payloads), 1)
        self.assertEqual(payloads[0]["time_logs"][0]["hours"], 8.0)

    def test_failed_push_exits_with_error(self):
        """Test that any failed timesheet gives exit status 1"""
        with mock.patch.object(timesheet_sync, "push_timesheets", return_value=(1, 1)):
            with self.assertRaises(SystemExit) as ctx:
                self.run_main(self.workbook, "--per-day")
        self.assertEqual(ctx.exception.code, 1)

    def test_failed_request_through_session_exits(self):
        """Test the exit status when the HTTP session reports a server error"""
        session = mock.Mock()
        session.post.return_value = mock.Mock(status_code=500, text="server error")
        with mock.patch.object(timesheet_sync.requests, "Session", return_value=session):
            with self.assertRaises(SystemExit) as ctx:
                self.run_main(self.workbook, "--per-day")
        self.assertEqual(ctx.exception.code, 1)
        self.assertEqual(session.post.call_count, 2)

    def test_wrong_arguments_exit(self):
        with self.assertRaises(SystemExit) as ctx:
            self.run_main(self.workbook)
        self.assertEqual(ctx.exception.code, 1)


class TestCommandLine(unittest.TestCase):
    """Test cases for the command line entry point"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.log_file = os.path.join(self.tmp.name, "attlog.dat")
        with open(self.log_file, "w", encoding="utf-8") as f:
            f.write(SAMPLE_LOG + "202 2024-04-01 09:00:00 1 0\n")

    def run_main(self, *args):
        out = io.StringIO()
        with redirect_stdout(out):
            main(list(args))
        return out.getvalue()

    def test_parse_period(self):
        self.assertEqual(parse_period("3", "2024"), (3, 2024))
        for month, year in (("13", "2024"), ("0", "2024"), ("x", "2024"), ("3", "abc")):
            with self.assertRaises(ValueError):
                parse_period(month, year)

    def test_list_employees(self):
        self.assertEqual(self.run_main("--list-employees", self.log_file).split(), ["101", "202"])

    def test_report_with_csv(self):
        csv_file = os.path.join(self.tmp.name, "out.csv")
        text = self.run_main(self.log_file, "101", "3", "2024", "--csv", csv_file)
        self.assertIn("ATTENDANCE REPORT: Employee 101 - 03/2024", text)
        self.assertTrue(os.path.exists(csv_file))

    def test_report_with_excel_and_pdf(self):
        """Test that --excel and --pdf write their files"""
        xlsx_file = os.path.join(self.tmp.name, "out.xlsx")
        pdf_file = os.path.join(self.tmp.name, "out.pdf")
        text = self.run_main(self.log_file, "101", "3", "2024", "--excel", xlsx_file, "--pdf", pdf_file)

        self.assertIn(f"Excel file generated: {xlsx_file}", text)
        self.assertIn(f"PDF file generated: {pdf_file}", text)
        wb = openpyxl.load_workbook(xlsx_file)
        self.assertEqual(wb["Attendance"]["G2"].value, "NORMAL")
        with open(pdf_file, "rb") as f:
            self.assertTrue(f.read().startswith(b"%PDF"))

    def test_unknown_option_exits(self):
        with self.assertRaises(SystemExit) as ctx:
            self.run_main(self.log_file, "101", "3", "2024", "--html", "out.html")
        self.assertEqual(ctx.exception.code, 1)

    def test_invalid_month_exits(self):
        with self.assertRaises(SystemExit) as ctx:
            self.run_main(self.log_file, "101", "13", "2024")
        self.assertEqual(ctx.exception.code, 1)

    def test_missing_file_exits(self):
        with self.assertRaises(SystemExit) as ctx:
            self.run_main(os.path.join(self.tmp.name, "missing.dat"), "101", "3", "2024")
        self.assertEqual(ctx.exception.code, 1)

    def test_export_all_skips_employees_without_records(self):
        zip_file = os.path.join(self.tmp.name, "all.zip")
        self.run_main("--export-all", self.log_file, "3", "2024", zip_file)
        with zipfile.ZipFile(zip_file) as zf:
            self.assertEqual(sorted(zf.namelist()), [
                "Attendance_101_3_2024.csv", "Attendance_101_3_2024.xlsx"
            ])


if __name__ == '__main__':
    unittest.main(verbosity=2)
