# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Main entrypoint when running the engine with `python -m agent_engine`.
"""
import sys
import asyncio
import logging
import argparse

from pathlib import Path

from .agent import cleanup_containers, resolve_issue, serve

logger = logging.getLogger(__name__)


def setup_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agent_engine")
    parser.add_argument("--db", type=str, default=None, help="Path to the sqlite event database")

    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve_parser = subparsers.add_parser("resolve", help="Resolve an issue with the coder agent")
    prompt = resolve_parser.add_mutually_exclusive_group(required=True)
    prompt.add_argument("--prompt", type=str, help="The issue text")
    prompt.add_argument(
        "--prompt-file",
        type=str,
        help="A file containing the issue text; useful for longer issues",
    )
    resolve_parser.add_argument("--title", type=str, default=None, help="The issue title")
    resolve_parser.add_argument(
        "--workdir", type=str, default=".", help="Repository checkout the agent works on"
    )
    resolve_parser.add_argument("--repo", type=str, default=None, help="Repository as owner/name")
    resolve_parser.add_argument("--issue", type=int, default=None, help="Issue number")
    resolve_parser.add_argument(
        "--container",
        action="store_true",
        help="Mount the workdir into a fresh container instead of working on the host",
    )
    resolve_parser.add_argument("--image", type=str, default=None, help="Container image")
    resolve_parser.add_argument(
        "--keep-container", action="store_true", help="Do not remove the container afterwards"
    )
    resolve_parser.add_argument(
        "--setup",
        action="append",
        default=[],
        help="Command to run in the container before the agent starts (repeatable)",
    )
    resolve_parser.add_argument(
        "--serve", action="store_true", help="Stream the run over HTTP while it executes"
    )

    cleanup_parser = subparsers.add_parser("cleanup", help="Remove a closed pull request's containers")
    cleanup_parser.add_argument("--repo", type=str, required=True, help="Repository as owner/name")
    cleanup_parser.add_argument("--branch", type=str, required=True, help="The pull request's head branch")

    serve_parser = subparsers.add_parser("serve", help="Serve recorded workflow runs")
    serve_parser.add_argument("--host", type=str, default=None)
    serve_parser.add_argument("--port", type=int, default=None)

    return parser


async def main(argv: list[str] | None = None) -> int:
    args = setup_parser().parse_args(argv)

    if args.command == "resolve":
        problem = args.prompt if args.prompt is not None else Path(args.prompt_file).read_text()
        result = await resolve_issue(
            problem,
            args.workdir,
            title=args.title,
            repository=args.repo,
            issue_number=args.issue,
            use_container=args.container,
            image=args.image,
            keep_container=True if args.keep_container else None,
            setup_commands=args.setup,
            db_path=args.db,
            serve=args.serve,
        )
        print(result)
    elif args.command == "cleanup":
        owner, _, repo = args.repo.partition("/")
        removed = await cleanup_containers(owner, repo, args.branch)
        print("\n".join(removed) if removed else "No containers to remove")
    elif args.command == "serve":
        await serve(args.host, args.port, db_path=args.db)
    return 0


def cli() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    cli()
