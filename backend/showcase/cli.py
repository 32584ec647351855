import argparse
import asyncio
import sys

from showcase.core.security import create_access_token
from showcase.db.session import engine, is_healthy
from showcase.models import Base


async def init_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("Tables created")


async def check_db() -> bool:
    healthy = await is_healthy()
    await engine.dispose()
    print("Store healthy" if healthy else "Store unavailable")
    return healthy


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Showcase catalog backend utilities")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("init-db", help="Create catalog tables from the model metadata")
    subparsers.add_parser("check-db", help="Probe store connectivity (exit code 1 when unavailable)")
    token = subparsers.add_parser("issue-admin-token", help="Print a bearer token carrying the admin role")
    token.add_argument("--subject", required=True, help="Principal name stored in the token")
    return parser


def _run_cli_command(args: argparse.Namespace) -> int | None:
    if args.command == "init-db":
        asyncio.run(init_db())
        return 0

    if args.command == "check-db":
        return 0 if asyncio.run(check_db()) else 1

    if args.command == "issue-admin-token":
        print(create_access_token(args.subject))
        return 0

    return None


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    code = _run_cli_command(args)
    if code is None:
        parser.print_help()
        return 2
    return code


if __name__ == "__main__":
    sys.exit(main())
