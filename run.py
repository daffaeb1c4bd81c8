from __future__ import annotations

"""Entry point: build a dispatcher from configuration and run the scoreboard demo."""

import argparse
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from core.event_bus import Dispatcher
from settings.config_loader import AppConfig, load_config
from tracing.router import TraceRouter

LOGGER = logging.getLogger(__name__)

SCORE_CHANGED = "score_changed"


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="In-process event dispatcher demo")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--env", type=Path, default=None, help="Path to a .env file")
    parser.add_argument("--debug", action="store_true", help="Force dispatcher tracing on")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    return parser.parse_args(argv)


def build_dispatcher(config: AppConfig) -> Dispatcher:
    """Wire the trace router and dispatcher described by ``config``."""

    router = TraceRouter.from_config(config.trace)
    settings = config.dispatcher
    return Dispatcher(
        trace_sink=router,
        debug=settings.effective_debug,
        allow_duplicates=settings.allow_duplicates,
        thread_safe=settings.thread_safe,
    )


class ScoreView:
    """Demo listener recording every score it is notified about."""

    def __init__(self, name: str, calls: List[Tuple[str, int]]) -> None:
        self.name = name
        self._calls = calls

    def on_score(self, score: int) -> None:
        self._calls.append((self.name, score))
        LOGGER.info("%s saw score %s", self.name, score)


def run_demo(dispatcher: Dispatcher) -> List[Tuple[str, int]]:
    """Two regular listeners and one one-shot listener on ``score_changed``."""

    calls: List[Tuple[str, int]] = []
    hud = ScoreView("A", calls)
    scoreboard = ScoreView("B", calls)
    banner = ScoreView("C", calls)

    dispatcher.subscribe(SCORE_CHANGED, hud.on_score)
    dispatcher.subscribe(SCORE_CHANGED, scoreboard.on_score)
    dispatcher.subscribe_once(SCORE_CHANGED, banner.on_score)

    dispatcher.publish(SCORE_CHANGED, 10)
    dispatcher.publish(SCORE_CHANGED, 5)

    for view in (hud, scoreboard, banner):
        dispatcher.unsubscribe(SCORE_CHANGED, view.on_score)
    return calls


def main(argv: Optional[Sequence[str]] = None) -> List[Tuple[str, int]]:
    args = parse_args(argv)
    configure_logging(args.verbose)
    config = load_config(config_path=args.config, env_path=args.env)
    if args.debug:
        config.dispatcher.debug = True
        config.dispatcher.debug_env = None

    dispatcher = build_dispatcher(config)
    try:
        calls = run_demo(dispatcher)
        LOGGER.info("Invocation order: %s", ", ".join(f"{name}({score})" for name, score in calls))
        return calls
    finally:
        dispatcher.close()


if __name__ == "__main__":
    main()
