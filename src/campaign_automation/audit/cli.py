"""CLI query interface for campaign automation runs.

Prints the report of a campaign's latest automation session, or the list of
its past sessions, as a table (default) or JSON.

Usage::

    python -m campaign_automation.audit.cli report cmp_1
    python -m campaign_automation.audit.cli history cmp_1 --format json
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

from campaign_automation.audit.logger import AutomationLogger
from campaign_automation.audit.models import AutomationReport, AutomationSession
from campaign_automation.audit.store import (
    AutomationLogStore,
    close_automation_db,
    init_automation_db,
)


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for automation queries.

    Returns:
        A configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(description="Query campaign automation runs")

    parser.add_argument(
        "command",
        choices=["report", "history"],
        help="report: latest session report; history: all sessions",
    )
    parser.add_argument(
        "campaign",
        type=str,
        help="Campaign ID",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["table", "json"],
        default="table",
        dest="output_format",
        help="Output format (default: table)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum sessions for history (default: 50)",
    )
    parser.add_argument(
        "--db",
        type=str,
        default="data/automation.db",
        help="Path to automation database (default: data/automation.db)",
    )

    return parser


def _truncate(value: Any, width: int) -> str:
    s = "" if value is None else str(value)
    if len(s) > width:
        return s[: width - 3] + "..."
    return s


def _render(headers: list[str], widths: list[int], rows: list[list[Any]]) -> list[str]:
    lines: list[str] = []
    header_line = "  ".join(h.ljust(w) for h, w in zip(headers, widths, strict=True))
    lines.append(header_line)
    lines.append("-" * len(header_line))
    for row in rows:
        cells = [_truncate(c, w) for c, w in zip(row, widths, strict=True)]
        lines.append("  ".join(c.ljust(w) for c, w in zip(cells, widths, strict=True)))
    return lines


def format_history_table(sessions: list[AutomationSession]) -> str:
    """Format sessions as a human-readable table.

    Columns: Started, Session, Mode, Status, Progress, Sent, Failed.

    Args:
        sessions: Sessions from ``AutomationLogger.get_history``.

    Returns:
        Formatted table string with header row.
    """
    if not sessions:
        return "No results found."

    headers = ["Started", "Session", "Mode", "Status", "Progress", "Sent", "Failed"]
    widths = [27, 36, 9, 9, 8, 5, 6]
    rows = [
        [
            s.started_at,
            s.session_id,
            s.mode.value,
            s.status.value,
            f"{s.completed_steps}/{s.total_steps}",
            s.successful_communications,
            s.failed_communications,
        ]
        for s in sessions
    ]
    return "\n".join(_render(headers, widths, rows))


def format_report_table(report: AutomationReport | None) -> str:
    """Format a report as a summary block followed by its step and error logs."""
    if report is None:
        return "No results found."

    m = report.metrics
    lines = [
        f"Session:    {report.session_id} ({report.mode.value})",
        f"Status:     {report.status.value}",
        f"Progress:   {report.completed_steps}/{report.total_steps} ({m.success_rate}%)",
        f"Creators:   found={report.creators_found} contacted={report.creators_contacted}",
        f"Contracts:  generated={report.contracts_generated} sent={report.contracts_sent}",
        (
            f"Outreach:   emails={report.emails_sent} calls={report.calls_made} "
            f"ok={report.successful_communications} failed={report.failed_communications}"
        ),
        f"Efficiency: {m.communication_efficiency}",
        f"Duration:   {m.total_duration_ms} ms",
        f"Errors:     {m.total_errors}",
    ]
    if report.last_closed_step is not None:
        lines.append(
            f"Last step:  {report.last_closed_step.step_name} ({report.last_closed_step.status.value})"
        )

    if report.step_log:
        lines.append("")
        lines.extend(
            _render(
                ["Started", "Step", "Status", "Duration"],
                [27, 30, 11, 9],
                [
                    [s.started_at, s.step_name, s.status.value, s.duration_ms]
                    for s in report.step_log
                ],
            )
        )

    if report.error_log:
        lines.append("")
        lines.extend(
            _render(
                ["Timestamp", "Type", "Step", "Message"],
                [27, 20, 20, 40],
                [
                    [e.timestamp, e.error_type, e.step_name, e.error_message]
                    for e in report.error_log
                ],
            )
        )

    return "\n".join(lines)


def format_json(payload: AutomationReport | list[AutomationSession] | None) -> str:
    """Format a report or a session list as a JSON string.

    Args:
        payload: A report, a list of sessions, or ``None``.

    Returns:
        Pretty-printed JSON string.
    """
    if payload is None:
        data: Any = None
    elif isinstance(payload, list):
        data = [s.model_dump(mode="json") for s in payload]
    else:
        data = payload.model_dump(mode="json")
    return json.dumps(data, indent=2)


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, query the automation log, and print results."""
    parser = build_parser()
    args = parser.parse_args(argv)

    db_path = Path(args.db)
    if not db_path.exists():
        db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = init_automation_db(db_path)

    try:
        automation_logger = AutomationLogger(AutomationLogStore(conn))
        if args.command == "report":
            report = automation_logger.get_report(args.campaign)
            output = (
                format_json(report) if args.output_format == "json" else format_report_table(report)
            )
        else:
            sessions = automation_logger.get_history(args.campaign, limit=args.limit)
            output = (
                format_json(sessions)
                if args.output_format == "json"
                else format_history_table(sessions)
            )

        print(output)
    finally:
        close_automation_db(conn)


if __name__ == "__main__":
    main()
