from __future__ import annotations

import argparse
import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from .config import AppConfig, LoggingConfig, load_config
from .errors import BrowserLaunchError
from .logging_config import configure_logging
from .models import OperationName, OperationRequest
from .orchestrator import RunOrchestrator
from .util.debug_bundle import create_debug_bundle


logger = logging.getLogger("fanqie_publisher")

OPERATION_CHOICES = ("login", "create", "upload", "submit")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="fanqie-publisher",
        description="Log into the Fanqie writer portal (waiting out the slider check) and create/upload/submit.",
    )
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )
    p.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml, optional)")

    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--headful", dest="headless", action="store_false", default=None, help="Show the browser window")
    mode.add_argument("--headless", dest="headless", action="store_true", default=None, help="Hide the browser window")

    p.add_argument(
        "--fresh-session",
        action="store_true",
        help="Do not restore stored cookies. Helpful when the saved session redirects oddly.",
    )
    p.add_argument("--max-rounds", type=int, default=None, help="Verification poll rounds (default: 60)")
    p.add_argument("--poll-interval", type=float, default=None, help="Seconds between poll rounds (default: 2)")
    p.add_argument("--slowmo-ms", type=int, default=None, help="Playwright slow motion in milliseconds (debug).")
    p.add_argument("--step-debug", action="store_true", help="Save step-by-step screenshots under data/debug/.")

    p.add_argument("operation", choices=OPERATION_CHOICES, help="What to do once logged in")
    p.add_argument("project_id", nargs="?", default="", help="Work (book) id for upload/submit (default: none)")
    p.add_argument("title", nargs="?", default="Test Novel", help="Work title for create (default: Test Novel)")
    p.add_argument("genre", nargs="?", default="仙侠", help="Genre for create, e.g. 仙侠/都市/玄幻 (default: 仙侠)")
    p.add_argument("content", nargs="?", default="这是测试章节内容", help="Chapter body for upload")
    return p


def _apply_overrides(cfg: AppConfig, args: argparse.Namespace) -> AppConfig:
    browser: dict = {}
    if args.headless is not None:
        browser["headless"] = args.headless
    if args.slowmo_ms is not None:
        browser["slow_mo_ms"] = args.slowmo_ms

    verification: dict = {}
    if args.max_rounds is not None:
        verification["max_rounds"] = args.max_rounds
    if args.poll_interval is not None:
        verification["poll_interval_seconds"] = args.poll_interval

    # Round-trip through validation so CLI values get the same checks as config values.
    data = cfg.model_dump()
    data["browser"].update(browser)
    data["verification"].update(verification)
    if args.step_debug:
        data["debug"]["step_screenshots"] = True
    return AppConfig.model_validate(data)


def build_request(args: argparse.Namespace) -> OperationRequest:
    return OperationRequest(
        operation=OperationName.parse(args.operation),
        project_id=args.project_id or "",
        work_title=args.title,
        genre=args.genre,
        chapter_content=args.content,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(
        LoggingConfig(
            level=os.getenv("LOG_LEVEL", "INFO"),
            file_path="",
            quiet_level=os.getenv("NOISY_LOG_LEVEL", "WARNING"),
        )
    )

    try:
        cfg = _apply_overrides(load_config(args.config), args)
    except (ValidationError, yaml.YAMLError) as e:
        raise SystemExit(f"Invalid configuration: {e}")
    configure_logging(cfg.logging)

    request = build_request(args)
    orchestrator = RunOrchestrator(cfg, fresh_session=args.fresh_session)

    try:
        outcome = asyncio.run(orchestrator.execute(request))
    except BrowserLaunchError as e:
        logger.error("%s", e)
        logger.error("Install a browser with `playwright install chromium` (or set FANQIE_BROWSER_CHANNEL).")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted.")
        return 130

    if outcome.ok:
        logger.info("Done: %s", outcome.summary())
    else:
        logger.warning("Finished with problems: %s", outcome.summary())

    if outcome.error:
        # Auto-bundle debug artifacts + log for easy sharing.
        try:
            bundle = create_debug_bundle(
                debug_dir=cfg.debug.debug_dir,
                log_file=cfg.logging.file_path or "data/fanqie.log",
                out_dir="data",
                operation=request.operation.value,
                extra_paths=[outcome.screenshot] if outcome.screenshot else None,
                exclude_paths=[cfg.session.cookie_file, args.env_file],
            )
            logger.error("Wrote debug bundle: %s", bundle)
        except OSError:
            logger.debug("Failed to create debug bundle.", exc_info=True)

    # Everything past a successful launch is reported in the log, not the exit code.
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
