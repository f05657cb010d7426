#!/usr/bin/env python3
"""
CLI tool for interacting with the approval service.

Usage:
    python -m approval_svc.cli list --status open --sort priority
    python -m approval_svc.cli show SUB-1A2B3C4D
    python -m approval_svc.cli approve SUB-1A2B3C4D -m "Meets all criteria"
    python -m approval_svc.cli reject SUB-1A2B3C4D -m "Missing retention policy"
    python -m approval_svc.cli comment SUB-1A2B3C4D -m "Which region?" --phase compliance
    python -m approval_svc.cli summary
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

import httpx
from colorama import Fore, Style, init as colorama_init

colorama_init()


STATUS_COLORS = {
    "pending": Fore.YELLOW,
    "under_review": Fore.BLUE,
    "approved": Fore.GREEN,
    "auto_approved": Fore.GREEN,
    "rejected": Fore.RED,
}

PRIORITY_COLORS = {
    "high": Fore.RED,
    "medium": Fore.YELLOW,
    "low": Fore.CYAN,
}


def colorize(text: str, color: str) -> str:
    return f"{color}{text}{Style.RESET_ALL}"


def format_status(status: str) -> str:
    return colorize(status.replace("_", " ").upper(), STATUS_COLORS.get(status, ""))


def print_json(data: Any, indent: int = 2) -> None:
    print(json.dumps(data, indent=indent, default=str))


def _get_headers(args) -> dict:
    """Build identity headers for the acting user."""
    headers = {}
    if args.user_id:
        headers["X-User-ID"] = args.user_id
    if args.user_name:
        headers["X-User-Name"] = args.user_name
    if args.role:
        headers["X-User-Role"] = args.role
    return headers


async def _call(args, method: str, path: str, **kwargs) -> tuple[int, Any]:
    url = f"{args.base_url}/submissions{path}"
    async with httpx.AsyncClient(timeout=args.timeout) as client:
        response = await client.request(method, url, headers=_get_headers(args), **kwargs)
    try:
        data = response.json()
    except ValueError:
        data = response.text
    return response.status_code, data


def _report_error(status_code: int, data: Any) -> int:
    print(colorize(f"Error: {status_code}", Fore.RED), file=sys.stderr)
    detail = data.get("detail", data) if isinstance(data, dict) else data
    if isinstance(detail, dict):
        print(detail.get("message", ""), file=sys.stderr)
        for item in detail.get("errors", []) + detail.get("failed_checks", []):
            print(f"  - {item}", file=sys.stderr)
        for item in detail.get("suggested_actions", []):
            print(colorize(f"  > {item}", Style.DIM), file=sys.stderr)
    else:
        print(detail, file=sys.stderr)
    return 1


def print_submission_line(s: dict) -> None:
    priority = colorize(f"{s['priority']:<6}", PRIORITY_COLORS.get(s["priority"], ""))
    reviewer = s.get("metadata", {}).get("reviewer") or "-"
    elapsed = s.get("time_elapsed") or ""
    print(
        f"  {colorize(s['id'], Style.BRIGHT):<24} {priority} {format_status(s['status']):<24} "
        f"{s['name'][:40]:<40} {s['type']:<14} {reviewer:<18} {elapsed}"
    )


async def cmd_list(args):
    """List the review queue."""
    params = {
        "status": args.status,
        "sort": args.sort,
        "direction": "asc" if args.asc else "desc",
        "page": args.page,
    }
    if args.search:
        params["search"] = args.search
    if args.type:
        params["type"] = args.type
    if args.reviewer:
        params["reviewer"] = args.reviewer

    status_code, data = await _call(args, "GET", "", params=params)
    if status_code != 200:
        return _report_error(status_code, data)

    if args.json:
        print_json(data)
        return 0

    print(colorize(
        f"\nSubmissions (page {data['page']} of {data['total_pages']}, {data['total_items']} total):",
        Style.BRIGHT,
    ))
    if not data["submissions"]:
        print(colorize("  No submissions match the filters", Style.DIM))
    for s in data["submissions"]:
        print_submission_line(s)
    return 0


async def cmd_show(args):
    """Show one submission with its comments."""
    status_code, data = await _call(args, "GET", f"/{args.submission_id}")
    if status_code != 200:
        return _report_error(status_code, data)

    if args.json:
        print_json(data)
        return 0

    print(colorize(f"\n{data['name']}", Style.BRIGHT), f"({data['id']})")
    print(colorize("Status:", Style.BRIGHT), format_status(data["status"]))
    print(colorize("Priority:", Style.BRIGHT), colorize(data["priority"], PRIORITY_COLORS.get(data["priority"], "")))
    print(colorize("Type:", Style.BRIGHT), data["type"])
    print(colorize("Producer:", Style.BRIGHT), data.get("producer") or "-")
    print(colorize("Risk score:", Style.BRIGHT), data.get("risk_score", 0))
    print(colorize("Auto-approval eligible:", Style.BRIGHT), data.get("auto_approval_eligible", False))
    if data.get("sla"):
        print(colorize("SLA:", Style.BRIGHT), data["sla"].upper())
    if data.get("description"):
        print(colorize("\nDescription:", Style.BRIGHT))
        print(f"  {data['description']}")

    comments = data.get("comments", [])
    print(colorize(f"\nComments ({len(comments)}):", Style.BRIGHT))
    for c in comments:
        phase = colorize(f" [{c['phase']}]", Style.DIM) if c.get("phase") else ""
        print(f"  {colorize(c['author_name'] or c['author_id'], Fore.CYAN)} "
              f"{colorize(c.get('timestamp') or '', Style.DIM)} {c['type']}{phase}")
        print(f"    {c['message']}")
    return 0


async def _decide(args, action: str, past: str):
    status_code, data = await _call(
        args, "POST", f"/{args.submission_id}/{action}", json={"comment": args.message},
    )
    if status_code != 200:
        return _report_error(status_code, data)
    print(colorize(f"{data['id']} {past}", Fore.GREEN), format_status(data["status"]))
    return 0


async def cmd_approve(args):
    return await _decide(args, "approve", "approved")


async def cmd_reject(args):
    return await _decide(args, "reject", "rejected")


async def cmd_comment(args):
    """Add a discussion comment."""
    body = {"message": args.message}
    if args.phase:
        body["phase"] = args.phase
    status_code, data = await _call(args, "POST", f"/{args.submission_id}/comments", json=body)
    if status_code != 200:
        return _report_error(status_code, data)
    print(colorize(f"Comment added to {data['id']} ({data['comment_count']} comments)", Fore.GREEN))
    return 0


async def cmd_summary(args):
    """Show queue counts and reviewer backlog."""
    status_code, data = await _call(args, "GET", "/summary")
    if status_code != 200:
        return _report_error(status_code, data)

    if args.json:
        print_json(data)
        return 0

    print(colorize("\nStatus:", Style.BRIGHT))
    for status, count in data["counts"].items():
        if status == "total":
            continue
        print(f"  {format_status(status):<32} {count}")
    print(f"  {colorize('TOTAL', Style.BRIGHT):<32} {data['counts'].get('total', 0)}")

    print(colorize("\nQueue:", Style.BRIGHT))
    print(f"  High priority pending:   {data['high_priority_pending']}")
    print(f"  Auto-approval eligible:  {data['auto_eligible_pending']}")
    print(f"  Approval rate:           {data['approval_rate']}%")

    print(colorize("\nPending by reviewer:", Style.BRIGHT))
    for r in data.get("reviewers", []):
        color = Fore.RED if r["is_overdue"] else Fore.YELLOW if r["is_aging"] else ""
        age = colorize(f"oldest {r['oldest_pending_days']}d", color) if color else f"oldest {r['oldest_pending_days']}d"
        print(f"  {r['approver']:<28} {r['count']:>3}  {age}")
    return 0


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        description="CLI tool for the approval service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--base-url",
        default="http://localhost:8060",
        help="Base URL of the approval service",
    )
    parser.add_argument("--user-id", help="Acting user ID (X-User-ID)")
    parser.add_argument("--user-name", help="Acting user display name (X-User-Name)")
    parser.add_argument("--role", help="Acting user role: admin | steward | producer | consumer")
    parser.add_argument("--timeout", type=float, default=15.0, help="Request timeout in seconds")
    parser.add_argument("--json", action="store_true", help="Print raw JSON")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # list command
    list_parser = subparsers.add_parser("list", help="List the review queue")
    list_parser.add_argument("--status", default="all", help="Status, 'open' or 'all'")
    list_parser.add_argument("--type", help="dataset | api | stream | model | access_request")
    list_parser.add_argument("--reviewer", help="Assigned reviewer")
    list_parser.add_argument("--search", help="Free-text search")
    list_parser.add_argument("--sort", default="submitted_at", help="Sort column")
    list_parser.add_argument("--asc", action="store_true", help="Sort ascending")
    list_parser.add_argument("--page", type=int, default=1, help="Page number")

    # show command
    show_parser = subparsers.add_parser("show", help="Show a submission")
    show_parser.add_argument("submission_id", help="Submission ID")

    # approve / reject commands
    for name, help_text in (("approve", "Approve a submission"), ("reject", "Reject a submission")):
        decision_parser = subparsers.add_parser(name, help=help_text)
        decision_parser.add_argument("submission_id", help="Submission ID")
        decision_parser.add_argument("-m", "--message", required=True, help="Decision comment")

    # comment command
    comment_parser = subparsers.add_parser("comment", help="Comment on a submission")
    comment_parser.add_argument("submission_id", help="Submission ID")
    comment_parser.add_argument("-m", "--message", required=True, help="Comment text")
    comment_parser.add_argument("--phase", help="Review phase (schema, compliance, ...)")

    # summary command
    subparsers.add_parser("summary", help="Queue summary and reviewer backlog")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "list": cmd_list,
        "show": cmd_show,
        "approve": cmd_approve,
        "reject": cmd_reject,
        "comment": cmd_comment,
        "summary": cmd_summary,
    }
    try:
        return asyncio.run(commands[args.command](args))
    except httpx.HTTPError as e:
        print(colorize(f"Could not reach {args.base_url}: {e}", Fore.RED), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
