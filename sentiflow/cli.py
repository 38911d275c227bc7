"""Sentiflow CLI — run and serve the sentiment workflow.

Usage:
    sentiflow run "I love this"           # Run one execution in-process
    sentiflow run "Eu amo isso" --history # ...and print its state history
    sentiflow describe                    # Print the workflow graph
    sentiflow serve --port 8000           # Start the HTTP gateway
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

logger = logging.getLogger(__name__)


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="sentiflow",
        description="Sentiflow — language-aware sentiment analysis workflows",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )
    parser.add_argument(
        "--provider", choices=["stub", "http"], default=None,
        help="Capability provider (defaults to CAPABILITY_PROVIDER)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # run
    run = subparsers.add_parser("run", help="Run the workflow on a piece of text")
    run.add_argument("text", help="Text to analyze")
    run.add_argument("--timeout", type=float, default=120.0, help="Seconds to wait")
    run.add_argument("--history", action="store_true", help="Include state history")

    # describe
    subparsers.add_parser("describe", help="Print the workflow definition")

    # serve
    srv = subparsers.add_parser("serve", help="Start the HTTP gateway")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()

    from sentiflow.config.settings import settings

    # Logging
    level = logging.DEBUG if args.verbose else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.provider:
        settings = settings.model_copy(update={"CAPABILITY_PROVIDER": args.provider})

    # Dispatch
    try:
        if args.command == "run":
            ok = asyncio.run(_cmd_run(args, settings))
            sys.exit(0 if ok else 2)
        elif args.command == "describe":
            _cmd_describe(settings)
        elif args.command == "serve":
            _cmd_serve(args, settings)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(130)
    except Exception as exc:
        logger.error("Error: %s", exc)
        if args.verbose:
            raise
        sys.exit(1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _cmd_run(args: argparse.Namespace, settings) -> bool:
    """Run one execution to completion and print it as JSON."""
    from sentiflow.capabilities import create_capabilities, task_handlers
    from sentiflow.workflows import ExecutionStatus, WorkflowEngine, build_sentiment_workflow

    engine = WorkflowEngine.from_settings(task_handlers(create_capabilities(settings)), settings)
    definition = build_sentiment_workflow(settings.WORKFLOW_NAME, settings.TARGET_LANGUAGE)

    execution = await engine.run(definition, {"txt": args.text}, timeout=args.timeout)

    data = execution.to_dict()
    if not args.history:
        data.pop("history")
    print(json.dumps(data, indent=2, ensure_ascii=False))
    return execution.status == ExecutionStatus.SUCCEEDED


def _cmd_describe(settings) -> None:
    """Print the workflow graph in a state-machine style JSON layout."""
    from sentiflow.workflows import build_sentiment_workflow

    definition = build_sentiment_workflow(settings.WORKFLOW_NAME, settings.TARGET_LANGUAGE)
    print(json.dumps(definition.to_dict(), indent=2))


def _cmd_serve(args: argparse.Namespace, settings) -> None:
    """Start the HTTP gateway with uvicorn."""
    import uvicorn

    from sentiflow.api.app import create_app

    print(f"Starting Sentiflow gateway on http://{args.host}:{args.port}")
    uvicorn.run(create_app(settings), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
