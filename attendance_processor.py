import logging
import sys
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

# Policy constants
DOUBLE_TAP_WINDOW = timedelta(hours=1)  # same-direction scans closer than this are one event
FALLBACK_SESSION_HOURS = 8.0  # credited for a session missing its IN or OUT
MIN_LINE_FIELDS = 5  # EmployeeID Date Time VerifyMode InOutStatus [...]
IN_STATUS_CODE = 0
NO_TIME = '-'
TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'


class Direction(str, Enum):
    IN = 'IN'
    OUT = 'OUT'


class SessionStatus(str, Enum):
    NORMAL = 'NORMAL'
    OUT_MISSING = 'OUT_MISSING'
    NO_IN_RECORD = 'NO_IN_RECORD'


# ------------------------ Data Model ------------------------
@dataclass
class ScanRecord:
    """One clock event. Only is_duplicate and report_date change after parsing."""
    employee_id: str
    date: date
    time: time
    timestamp: datetime
    direction: Direction
    line_no: int = 0
    is_duplicate: bool = False
    report_date: Optional[date] = None
    duplicate_of: Optional['ScanRecord'] = field(default=None, repr=False, compare=False)

    @property
    def display_time(self):
        return self.time.strftime('%H:%M')

    @property
    def display_date(self):
        return self.date.isoformat()


@dataclass(frozen=True)
class Session:
    attributed_date: date
    in_scan: Optional[ScanRecord]
    out_scan: Optional[ScanRecord]
    status: SessionStatus
    crosses_midnight: bool = False

    def __post_init__(self):
        if self.in_scan is None and self.out_scan is None:
            raise ValueError('A session needs at least one of in_scan or out_scan')

    @property
    def hours(self):
        if self.status == SessionStatus.NORMAL:
            return (self.out_scan.timestamp - self.in_scan.timestamp).total_seconds() / 3600
        return FALLBACK_SESSION_HOURS


@dataclass(frozen=True)
class ScanLog:
    date: str
    time: str
    type: Direction
    is_duplicate: bool
    timestamp: datetime


@dataclass(frozen=True)
class DailyRecord:
    date: date
    in_time: str
    out_time: str
    total_hours: float
    scan_count: int
    status: SessionStatus
    crosses_midnight: bool
    logs: tuple = ()


@dataclass(frozen=True)
class ReportSummary:
    total_days_with_records: int = 0
    total_normal_days: int = 0
    total_out_missing_days: int = 0


@dataclass(frozen=True)
class Report:
    employee_id: str
    month: int
    year: int
    summary: ReportSummary
    daily_records: tuple = ()

    def to_dict(self):
        """JSON-ready mapping: dates and timestamps as ISO strings, enums as values."""
        return _jsonable(asdict(self))


def _jsonable(value):
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _employee_sort_key(employee_id):
    if employee_id.isascii() and employee_id.isdigit():
        return (0, int(employee_id), employee_id)
    return (1, 0, employee_id)


class AttendanceProcessor:
    """Turns a raw biometric scan log into a monthly attendance report.

    Holds no per-run state; every method is a pure step of the pipeline
    parse -> mark double taps -> pair -> filter period -> aggregate.
    """

    # ------------------------ Parsing ------------------------
    def parse_scan_line(self, line, line_no=0):
        """Parse one log line into a ScanRecord, or None when it is unusable."""
        parts = line.split()
        if len(parts) < MIN_LINE_FIELDS:
            return None

        employee_id, date_str, time_str, _verify_mode, status = parts[:MIN_LINE_FIELDS]
        try:
            timestamp = datetime.strptime(f"{date_str} {time_str}", TIMESTAMP_FORMAT)
            status_code = int(status)
        except ValueError as e:
            logger.debug("Dropping line %d: %s", line_no, e)
            return None

        direction = Direction.IN if status_code == IN_STATUS_CODE else Direction.OUT
        return ScanRecord(
            employee_id=employee_id,
            date=timestamp.date(),
            time=timestamp.time(),
            timestamp=timestamp,
            direction=direction,
            line_no=line_no,
        )

    def parse_scan_records(self, log_text, employee_id):
        """All scans of one employee, chronological; file order breaks ties."""
        records = []
        for line_no, line in enumerate(log_text.split("\n"), 1):
            if not line.strip():
                continue
            record = self.parse_scan_line(line, line_no)
            if record is not None and record.employee_id == employee_id:
                records.append(record)

        return sorted(records, key=lambda r: r.timestamp)

    def list_employee_ids(self, log_text):
        ids = set()
        for line in log_text.split("\n"):
            parts = line.split()
            if parts:
                ids.add(parts[0])
        return sorted(ids, key=_employee_sort_key)

    # ------------------------ Double Taps ------------------------
    def mark_double_taps(self, records):
        """Flag repeated same-direction scans inside DOUBLE_TAP_WINDOW.

        A flagged record points at the last valid scan it repeats; it takes
        that scan's report date once pairing has attributed it.
        """
        last_valid = None
        for record in records:
            if (last_valid is not None
                    and record.direction == last_valid.direction
                    and record.timestamp - last_valid.timestamp < DOUBLE_TAP_WINDOW):
                record.is_duplicate = True
                record.duplicate_of = last_valid
            else:
                record.is_duplicate = False
                record.duplicate_of = None
                last_valid = record
        return records

    # ------------------------ Session Pairing ------------------------
    def pair_sessions(self, records):
        """Greedy IN/OUT pairing over the non-duplicate records, in order."""
        sessions = []
        open_in = None

        for record in records:
            if record.is_duplicate:
                continue

            if record.direction == Direction.IN:
                if open_in is not None:
                    sessions.append(Session(open_in.date, open_in, None, SessionStatus.OUT_MISSING))
                record.report_date = record.date
                open_in = record
            elif open_in is not None:
                record.report_date = open_in.date
                sessions.append(Session(
                    open_in.date, open_in, record, SessionStatus.NORMAL,
                    crosses_midnight=record.date != open_in.date,
                ))
                open_in = None
            else:
                # A stray OUT closes an unrecorded shift from the day before
                try:
                    previous_day = record.date - timedelta(days=1)
                except OverflowError:
                    logger.debug("Dropping OUT scan on line %d: no day before %s", record.line_no, record.date)
                    continue
                record.report_date = previous_day
                sessions.append(Session(previous_day, None, record, SessionStatus.NO_IN_RECORD))

        if open_in is not None:
            sessions.append(Session(open_in.date, open_in, None, SessionStatus.OUT_MISSING))

        for record in records:
            if record.is_duplicate:
                record.report_date = record.duplicate_of.report_date

        return sessions

    # ------------------------ Period Filter ------------------------
    def filter_period(self, sessions, month, year):
        return [
            s for s in sessions
            if s.attributed_date.year == year and s.attributed_date.month == month
        ]

    # ------------------------ Daily Aggregation ------------------------
    def day_status(self, sessions):
        statuses = {s.status for s in sessions}
        if SessionStatus.OUT_MISSING in statuses:
            return SessionStatus.OUT_MISSING
        if SessionStatus.NO_IN_RECORD in statuses:
            return SessionStatus.NO_IN_RECORD
        return SessionStatus.NORMAL

    def build_daily_records(self, sessions, records):
        sessions_by_day = defaultdict(list)
        for session in sessions:
            sessions_by_day[session.attributed_date].append(session)

        records_by_day = defaultdict(list)
        for record in records:
            records_by_day[record.report_date].append(record)

        daily_records = []
        for day in sorted(sessions_by_day):
            day_sessions = sessions_by_day[day]
            in_scans = [s.in_scan for s in day_sessions if s.in_scan]
            out_scans = [s.out_scan for s in day_sessions if s.out_scan]
            day_scans = sorted(records_by_day[day], key=lambda r: r.timestamp)

            daily_records.append(DailyRecord(
                date=day,
                in_time=in_scans[0].display_time if in_scans else NO_TIME,
                out_time=out_scans[-1].display_time if out_scans else NO_TIME,
                total_hours=round(sum(s.hours for s in day_sessions), 2),
                scan_count=len(day_scans),
                status=self.day_status(day_sessions),
                crosses_midnight=any(s.crosses_midnight for s in day_sessions),
                logs=tuple(
                    ScanLog(r.display_date, r.display_time, r.direction, r.is_duplicate, r.timestamp)
                    for r in day_scans
                ),
            ))

        return daily_records

    def summarize(self, daily_records):
        return ReportSummary(
            total_days_with_records=len(daily_records),
            total_normal_days=sum(1 for d in daily_records if d.status == SessionStatus.NORMAL),
            total_out_missing_days=sum(1 for d in daily_records if d.status == SessionStatus.OUT_MISSING),
        )

    # ------------------------ Report ------------------------
    def build_report(self, log_text, employee_id, month, year):
        """Monthly report for one employee. Month is 1-12; both are validated by the caller."""
        records = self.parse_scan_records(log_text, employee_id)
        self.mark_double_taps(records)
        sessions = self.pair_sessions(records)
        sessions = self.filter_period(sessions, month, year)
        daily_records = self.build_daily_records(sessions, records)

        return Report(
            employee_id=employee_id,
            month=month,
            year=year,
            summary=self.summarize(daily_records),
            daily_records=tuple(daily_records),
        )

    def print_report(self, report):
        """Print the report as a console table."""
        summary = report.summary

        print("\n" + "=" * 100)
        print(f"ATTENDANCE REPORT: Employee {report.employee_id} - {report.month:02d}/{report.year}")
        print("=" * 100)
        print(f"\nDays with records: {summary.total_days_with_records} | "
              f"Normal days: {summary.total_normal_days} | "
              f"Out missing days: {summary.total_out_missing_days}")
        print("-" * 100)
        print(f"{'Date':<12} {'IN':<8} {'OUT':<8} {'Hours':<8} {'Scans':<7} {'Status':<14} Scan Log")
        print("-" * 100)

        for day in report.daily_records:
            scans = ", ".join(
                f"{log.time} {log.type.value}{' (dup)' if log.is_duplicate else ''}" for log in day.logs
            )
            status = day.status.value + (' *' if day.crosses_midnight else '')
            print(f"{day.date.isoformat():<12} {day.in_time:<8} {day.out_time:<8} "
                  f"{day.total_hours:<8.2f} {day.scan_count:<7} {status:<14} {scans}")

        print("-" * 100)
        total_hours = sum(day.total_hours for day in report.daily_records)
        print(f"\nTOTAL HOURS: {total_hours:.2f}   (* shift ends after midnight)")
        print("=" * 100)


def build_report(log_text, employee_id, month, year):
    return AttendanceProcessor().build_report(log_text, employee_id, month, year)


def list_employee_ids(log_text):
    return AttendanceProcessor().list_employee_ids(log_text)


# ------------------------ File Reading ------------------------
def read_log_file(filepath):
    with open(filepath, 'r', encoding='utf-8', errors='replace') as f:
        return f.read()


def parse_period(month_str, year_str):
    """Validate CLI month/year strings; raises ValueError with a readable message."""
    try:
        month = int(month_str)
        year = int(year_str)
    except ValueError:
        raise ValueError(f"Month and year must be numbers, got '{month_str}' and '{year_str}'")

    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    if not 1 <= year <= 9999:
        raise ValueError(f"Year must be between 1 and 9999, got {year}")
    return month, year


# ------------------------ Main Script ------------------------
USAGE = """Usage:
  python attendance_processor.py --list-employees <log_file>
  python attendance_processor.py <log_file> <employee_id> <month> <year> [--excel PATH] [--csv PATH] [--pdf PATH]
  python attendance_processor.py --export-all <log_file> <month> <year> <zip_path>"""


def _parse_output_options(args):
    options = {}
    i = 0
    while i < len(args):
        flag = args[i]
        if flag not in ('--excel', '--csv', '--pdf') or i + 1 >= len(args):
            raise ValueError(f"Unexpected argument: '{flag}'")
        options[flag[2:]] = args[i + 1]
        i += 2
    return options


def _fail(message):
    print(f"Error: {message}")
    print(USAGE)
    sys.exit(1)


def main(argv=None):
    import report_export

    args = sys.argv[1:] if argv is None else argv
    processor = AttendanceProcessor()

    if not args:
        print(USAGE)
        sys.exit(1)

    try:
        if args[0] == '--list-employees':
            if len(args) != 2:
                _fail("--list-employees needs exactly one log file")
            for employee_id in processor.list_employee_ids(read_log_file(args[1])):
                print(employee_id)

        elif args[0] == '--export-all':
            if len(args) != 5:
                _fail("--export-all needs <log_file> <month> <year> <zip_path>")
            month, year = parse_period(args[2], args[3])
            log_text = read_log_file(args[1])

            print("Building reports for all employees...")
            reports = [
                processor.build_report(log_text, employee_id, month, year)
                for employee_id in processor.list_employee_ids(log_text)
            ]
            reports = [r for r in reports if r.daily_records]
            print(f"Employees with records in {month:02d}/{year}: {len(reports)}")
            report_export.build_zip(reports, args[4])

        else:
            if len(args) < 4:
                _fail("expected <log_file> <employee_id> <month> <year>")
            month, year = parse_period(args[2], args[3])
            options = _parse_output_options(args[4:])

            report = processor.build_report(read_log_file(args[0]), args[1], month, year)
            processor.print_report(report)

            if 'excel' in options:
                report_export.generate_excel(report, options['excel'])
            if 'csv' in options:
                report_export.write_csv(report, options['csv'])
            if 'pdf' in options:
                with open(options['pdf'], 'wb') as f:
                    f.write(report_export.generate_pdf(report))
                print(f"PDF file generated: {options['pdf']}")
    except ValueError as e:
        _fail(e)
    except OSError as e:
        print(f"Error reading or writing file: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
