"""Entry-point for the reconstruction console.

Supports both:
- `python recon_console/run_gui_app.py` from repository root.
- `recon-console` once the package is installed.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path


def _ensure_repo_root_on_path() -> Path:
    """Add repository root to ``sys.path`` when launched as a loose script."""
    script_path = Path(__file__).resolve()
    repo_root = script_path.parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)
    return repo_root


_ensure_repo_root_on_path()

from recon_console.config import load_console_config
from recon_console.graphical_app.app.controller import AppController
from recon_console.graphical_app.app.errors import ConsoleError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tomography reconstruction operator console")
    parser.add_argument("--config", default=None, help="YAML console configuration")
    parser.add_argument("--set", dest="overrides", action="append", default=[], metavar="KEY=VALUE", help="Override a config value, e.g. engine.steps=40")
    parser.add_argument("--log-level", default=None, help="Override logging.level from the config")
    return parser


def configure_logging(level: str, log_file: str) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.insert(0, logging.FileHandler(log_file, mode="a"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        handlers=handlers,
    )


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = load_console_config(args.config, args.overrides)
    configure_logging(args.log_level or config.logging.level, config.logging.file)
    logger = logging.getLogger("run_gui_app")
    logger.info("Starting console with config=%s overrides=%s", args.config, args.overrides)

    controller = AppController(config)
    started = controller.startup()
    if not started.success:
        logger.error("Engine failed to start: %s", started.message)
        return 1

    from recon_console.graphical_app.ui.main_window import launch

    try:
        return launch(controller)
    except ConsoleError as exc:
        logger.error("Console stopped: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
