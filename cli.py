import argparse
import logging
from datetime import timedelta
from pathlib import Path

from exam_api.config import LOG_LEVEL
from exam_api.database import init_db, session_scope
from exam_api.logging_setup import setup_console_logging
from exam_api.services import access_service, auth_service, ranking_service
from exam_api.services.exam_service import parse_exam_payload, save_exam_payload
from exam_api.utils import json_load, utc_now

setup_console_logging(LOG_LEVEL)
logger = logging.getLogger("cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Exam attempt engine administration")
    commands = parser.add_subparsers(dest="command", required=True)

    import_exam = commands.add_parser(
        "import-exam", help="Validate an exam JSON file and add it to the question bank"
    )
    import_exam.add_argument("file", type=Path, help="Path to exam .json file")

    grant = commands.add_parser(
        "grant-enrollment", help="Give a user access to a test series"
    )
    grant.add_argument("--user", required=True, help="Username (created if missing)")
    grant.add_argument("--series", required=True, help="Test series id")
    grant.add_argument(
        "--days",
        type=int,
        default=None,
        help="Validity in days (no expiry when omitted)",
    )

    refresh = commands.add_parser(
        "refresh-rankings", help="Auto-submit expired attempts and recompute ranks"
    )
    refresh.add_argument("--exam", default=None, help="Only refresh this exam")

    token = commands.add_parser("issue-token", help="Mint a bearer token for local testing")
    token.add_argument("--user", required=True, help="Username (created if missing)")
    token.add_argument("--minutes", type=int, default=60, help="Token lifetime")

    return parser.parse_args(argv)


def import_exam(path: Path) -> None:
    exam = parse_exam_payload(json_load(path.read_text(encoding="utf-8")))
    save_exam_payload(exam)
    print(f"Imported exam {exam.id} ({exam.total_questions} questions)")


def _user(db, username: str):
    user = auth_service.get_user_by_username(db, username)
    if user is None:
        user = auth_service.create_user(db, username)
        logger.info("Created user %s (id=%s)", username, user.id)
    return user


def grant_enrollment(username: str, series: str, days: int | None) -> None:
    with session_scope() as db:
        user = _user(db, username)
        valid_until = utc_now() + timedelta(days=days) if days else None
        access_service.get_or_create_enrollment(db, user.id, series, valid_until)
    print(f"Granted {username} access to {series}")


def refresh_rankings(exam_id: str | None) -> None:
    with session_scope() as db:
        if exam_id:
            counts = {exam_id: ranking_service.refresh_exam_rankings(db, exam_id)}
        else:
            counts = ranking_service.refresh_all_rankings(db)
    for key, count in counts.items():
        print(f"{key}: {count} ranked attempts")


def issue_token(username: str, minutes: int) -> None:
    with session_scope() as db:
        user = _user(db, username)
        token, _ = auth_service.create_access_token(user.id, minutes)
    print(token)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    if args.command == "import-exam":
        import_exam(args.file)
        return

    init_db()
    if args.command == "grant-enrollment":
        grant_enrollment(args.user, args.series, args.days)
    elif args.command == "refresh-rankings":
        refresh_rankings(args.exam)
    elif args.command == "issue-token":
        issue_token(args.user, args.minutes)


if __name__ == "__main__":
    main()
