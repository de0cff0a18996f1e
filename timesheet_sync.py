"""
Push daily worked hours from an attendance report to the ERP Timesheet API.
"""
import os
import sys

import pandas as pd
import requests

TIMESHEET_URL = os.environ.get("TIMESHEET_URL", "http://localhost:8000/api/resource/Timesheet")
COMPANY = os.environ.get("TIMESHEET_COMPANY", "Default Company")
API_KEY = os.environ.get("TIMESHEET_API_KEY", "")
API_SECRET = os.environ.get("TIMESHEET_API_SECRET", "")
ACTIVITY_TYPE = "Working Time"
REQUEST_TIMEOUT = 30  # seconds

# Column names of the "Attendance" sheet written by report_export.generate_excel
SHEET_COLUMNS = {
    "Employee ID": "employee_id",
    "Date": "date",
    "Total Hours": "total_hours",
    "Status": "status",
}


def load_report_frame(file_path):
    """Daily rows of an exported workbook, without the summary block."""
    df = pd.read_excel(file_path, sheet_name="Attendance", engine="openpyxl", dtype={"Employee ID": str})
    df = df[df["Status"].notna()]
    return df.rename(columns=SHEET_COLUMNS)[list(SHEET_COLUMNS.values())]


def build_timesheet_payloads(df, company=COMPANY, day=None):
    """One Timesheet document per row with worked hours.

    `df` is a workbook frame from load_report_frame or report_to_frame(report).
    When `day` (YYYY-MM-DD) is given only that day's rows are mapped.
    """
    mapped_data = []

    for _, row in df.iterrows():
        row_date = str(row["date"])[:10]
        hours = float(row["total_hours"])
        if hours <= 0 or (day is not None and row_date != day):
            continue

        mapped_data.append({
            "company": company,
            "employee": str(row["employee_id"]),
            "time_logs": [
                {
                    "activity_type": ACTIVITY_TYPE,
                    "from_time": row_date,
                    "to_time": row_date,
                    "hours": round(hours, 2)
                }
            ]
        })

    return mapped_data


def push_timesheets(payloads, url=TIMESHEET_URL, api_key=API_KEY, api_secret=API_SECRET, session=None):
    """POST every payload; returns (created, failed)."""
    http = session or requests.Session()
    headers = {
        "Authorization": f"token {api_key}:{api_secret}",
        "Content-Type": "application/json",
        "Accept": "application/json"
    }

    created = failed = 0
    for record in payloads:
        label = f"{record['employee']} {record['time_logs'][0]['from_time']}"
        try:
            response = http.post(url, headers=headers, json=record, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            print(f"Failed {label}: {e}")
            failed += 1
            continue

        if response.status_code in (200, 201):
            print(f"Timesheet created: {label}")
            created += 1
        else:
            print(f"Failed {label}. Status: {response.status_code}")
            print(response.text)
            failed += 1

    return created, failed


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 2:
        print("Usage: python timesheet_sync.py <workbook.xlsx> <YYYY-MM-DD>|--per-day")
        sys.exit(1)

    file_path, day = args
    df = load_report_frame(file_path)
    payloads = build_timesheet_payloads(df, day=None if day == "--per-day" else day)
    print(f"Timesheets to push: {len(payloads)}")

    created, failed = push_timesheets(payloads)
    print(f"Created: {created} | Failed: {failed}")
    if failed:
        sys.exit(1)


if __name__ == '__main__':
    main()
