"""
ClearDeal CLI - Command-line interface for the job marketplace.

Usage:
    cleardeal --as ADDR create-job TITLE --description D --bounty B
    cleardeal jobs [--mine] [--open]
    cleardeal show JOB_ID
    cleardeal --as ADDR apply JOB_ID
    cleardeal --as ADDR select JOB_ID FREELANCER
    cleardeal --as ADDR submit JOB_ID (--link URL | --file PATH) --description D
    cleardeal --as ADDR approve JOB_ID
    cleardeal --as ADDR reject JOB_ID
    cleardeal --as ADDR status JOB_ID
    cleardeal --as ADDR summary
    cleardeal import EXPORT.json
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from cleardeal.config import get_config
from cleardeal.errors import ClearDealError, SettlementError
from cleardeal.intake import file_submission, link_submission
from cleardeal.jobs.models import Application, Job, format_amount
from cleardeal.jobs.status import describe_status
from cleardeal.logging_config import setup_logging
from cleardeal.marketplace import Marketplace, build_marketplace
from cleardeal.storage.legacy import import_legacy_export

logger = logging.getLogger(__name__)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _format_job(job: Job, currency: str) -> str:
    if job.is_completed:
        state = "completed"
    elif job.selected_freelancer:
        state = f"in progress ({job.selected_freelancer})"
    else:
        state = "open"
    return (
        f"[{job.id}] {job.title}\n"
        f"  bounty: {format_amount(job.bounty)} {currency}"
        f" | fee: {format_amount(job.application_fee)} {currency}"
        f" | {state}\n"
        f"  client: {job.client}"
    )


def _format_application(app: Application) -> str:
    line = f"  {app.freelancer}: {app.status} / {app.work_status}"
    if not app.has_paid_fee:
        line += " (fee unpaid)"
    if app.submission_data:
        line += f"\n    {app.submission_data.type}: {app.submission_data.content}"
        if app.submission_data.description:
            line += f" - {app.submission_data.description}"
    return line


def cmd_create_job(args, market: Marketplace):
    """Post a job as the --as address."""
    job = market.jobs.create_job(args.caller, args.title, args.description, args.bounty)
    if args.json:
        _print_json(job.to_dict())
    else:
        print(f"✓ Job posted: {job.id}")
        print(_format_job(job, market.config.currency))


def cmd_jobs(args, market: Marketplace):
    client = args.caller if args.mine else None
    jobs = market.jobs.list_jobs(client=client, open_only=args.open)
    if args.json:
        _print_json([j.to_dict() for j in jobs])
        return
    if not jobs:
        print("No jobs found.")
        return
    for job in jobs:
        print(_format_job(job, market.config.currency))


def cmd_show(args, market: Marketplace):
    job = market.jobs.get_job(args.job_id)
    if args.caller:
        applications = market.applications.visible_applications(job.id, args.caller)
    else:
        applications = []

    if args.json:
        _print_json({"job": job.to_dict(), "applications": [a.to_dict() for a in applications]})
        return

    print(_format_job(job, market.config.currency))
    print(f"  {job.description}")
    if job.submission:
        print(f"  latest submission: {job.submission.type} {job.submission.content}")
    if applications:
        print(f"Applications ({len(applications)}):")
        for app in applications:
            print(_format_application(app))


def cmd_apply(args, market: Marketplace):
    """Pay the application fee and apply."""
    app = asyncio.run(market.applications.apply(args.job_id, args.caller))
    if args.json:
        _print_json(app.to_dict())
    else:
        job = market.jobs.get_job(app.job_id)
        print(
            f"✓ Applied to {job.id} "
            f"(fee {format_amount(job.application_fee)} {market.config.currency}, "
            f"receipt {app.settlement_receipt})"
        )


def cmd_select(args, market: Marketplace):
    app = market.applications.select(args.job_id, args.freelancer, args.caller)
    if args.json:
        _print_json(app.to_dict())
    else:
        print(f"✓ Selected {app.freelancer} for job {app.job_id}")


def cmd_submit(args, market: Marketplace):
    if args.link:
        submission = link_submission(args.link, args.description)
    else:
        path = Path(args.file)
        if not path.is_file():
            raise FileNotFoundError(f"No such file: {path}")
        submission = file_submission(
            path.name, path.stat().st_size, args.description, content=str(path.resolve())
        )
    app = market.applications.submit_work(args.job_id, args.caller, submission)
    if args.json:
        _print_json(app.to_dict())
    else:
        print(f"✓ Work submitted for job {app.job_id}")


def cmd_approve(args, market: Marketplace):
    """Approve submitted work and release the bounty."""
    app = asyncio.run(market.applications.approve_work(args.job_id, args.caller))
    if args.json:
        _print_json(app.to_dict())
    else:
        job = market.jobs.get_job(app.job_id)
        print(
            f"✓ Work approved; {format_amount(job.bounty)} {market.config.currency} "
            f"released to {app.freelancer} (receipt {app.settlement_receipt})"
        )


def cmd_reject(args, market: Marketplace):
    app = market.applications.reject_work(args.job_id, args.caller)
    if args.json:
        _print_json(app.to_dict())
    else:
        print(f"✓ Work sent back to {app.freelancer} for revision")


def cmd_status(args, market: Marketplace):
    status = market.applications.status_for(args.job_id, args.caller)
    message = describe_status(status)
    if args.json:
        _print_json(
            {
                "job_id": args.job_id,
                "freelancer": args.caller,
                "status": status.value,
                "title": message.title,
                "detail": message.detail,
            }
        )
    else:
        print(f"{message.title}: {message.detail}")


def cmd_summary(args, market: Marketplace):
    as_client = market.jobs.client_summary(args.caller)
    as_freelancer = market.applications.freelancer_summary(args.caller)
    if args.json:
        _print_json(
            {
                "address": args.caller,
                "client": vars(as_client),
                "freelancer": vars(as_freelancer),
            }
        )
        return
    print(f"Dashboard for {args.caller}")
    print(
        f"  As client:     {as_client.jobs_posted} posted, "
        f"{as_client.total_applications} applications, {as_client.completed_jobs} completed"
    )
    print(
        f"  As freelancer: {as_freelancer.available_jobs} available, "
        f"{as_freelancer.applications} applications, {as_freelancer.selected_jobs} selected"
    )


def cmd_import(args, market: Marketplace):
    """Import a browser-storage export."""
    with open(args.file, "r", encoding="utf-8") as f:
        data = json.load(f)
    result = import_legacy_export(market.store, data)
    if args.json:
        _print_json(vars(result))
        return
    print(f"✓ Imported {result.jobs} jobs and {result.applications} applications")
    for reason in result.skipped:
        print(f"  skipped {reason}")


COMMANDS = {
    "create-job": cmd_create_job,
    "jobs": cmd_jobs,
    "show": cmd_show,
    "apply": cmd_apply,
    "select": cmd_select,
    "submit": cmd_submit,
    "approve": cmd_approve,
    "reject": cmd_reject,
    "status": cmd_status,
    "summary": cmd_summary,
    "import": cmd_import,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cleardeal",
        description="Freelance job marketplace with escrowed bounties",
    )
    parser.add_argument("--db", help="Database path (default: $CLEARDEAL_DB_PATH)")
    parser.add_argument("--as", dest="caller", help="Act as this wallet address")
    parser.add_argument("--json", "-j", action="store_true", help="Output as JSON")
    parser.add_argument("--log-level", help="Log level (default: $CLEARDEAL_LOG_LEVEL)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # create-job
    p_create = subparsers.add_parser("create-job", help="Post a job")
    p_create.add_argument("title", help="Job title")
    p_create.add_argument("--description", "-d", required=True, help="What needs doing")
    p_create.add_argument("--bounty", "-b", required=True, help="Bounty amount")

    # jobs
    p_jobs = subparsers.add_parser("jobs", help="List jobs")
    p_jobs.add_argument("--mine", action="store_true", help="Only jobs I posted")
    p_jobs.add_argument("--open", action="store_true", help="Only jobs accepting applications")

    # show
    p_show = subparsers.add_parser("show", help="Show a job and its applications")
    p_show.add_argument("job_id")

    # apply
    p_apply = subparsers.add_parser("apply", help="Pay the fee and apply to a job")
    p_apply.add_argument("job_id")

    # select
    p_select = subparsers.add_parser("select", help="Select a freelancer for your job")
    p_select.add_argument("job_id")
    p_select.add_argument("freelancer", help="Freelancer address")

    # submit
    p_submit = subparsers.add_parser("submit", help="Submit work for review")
    p_submit.add_argument("job_id")
    source = p_submit.add_mutually_exclusive_group(required=True)
    source.add_argument("--link", help="Link to the work (http/https)")
    source.add_argument("--file", help="File containing the work")
    p_submit.add_argument("--description", "-d", required=True, help="Description of the work")

    # approve / reject
    p_approve = subparsers.add_parser("approve", help="Approve work and release the bounty")
    p_approve.add_argument("job_id")
    p_reject = subparsers.add_parser("reject", help="Send work back for revision")
    p_reject.add_argument("job_id")

    # status
    p_status = subparsers.add_parser("status", help="Your status on a job")
    p_status.add_argument("job_id")

    # summary
    subparsers.add_parser("summary", help="Dashboard counts for your address")

    # import
    p_import = subparsers.add_parser("import", help="Import a legacy JSON export")
    p_import.add_argument("file", help="Path to the export")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    config = get_config()
    if args.db:
        config = config.model_copy(update={"db_path": Path(args.db).expanduser()})
    setup_logging(args.log_level or config.log_level)

    try:
        market = build_marketplace(config)
    except Exception as e:
        logger.error(f"Failed to open marketplace: {e}")
        sys.exit(1)

    try:
        COMMANDS[args.command](args, market)
    except SettlementError as e:
        print(f"Error: {e} ({e.reason})", file=sys.stderr)
        sys.exit(1)
    except (ClearDealError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        market.close()


if __name__ == "__main__":
    main()
