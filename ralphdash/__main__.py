#!/usr/bin/env python3
"""ralphdash entrypoint.

Settings come from ralph-ui.env / RALPH_UI_* variables; there are no
command-line options.
"""

import logging
import sys

from textual.logging import TextualHandler

from ralphdash.dashboard.app import DashboardApp
from ralphdash.lib.config import DashboardConfig, load_dashboard_config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(config: DashboardConfig) -> None:
    """Route logging away from the terminal the TUI is drawing on."""
    if config.log_file is not None:
        handler = logging.FileHandler(config.log_file)
    else:
        # Visible with `textual console`
        handler = TextualHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=config.log_level, handlers=[handler], force=True)


def main() -> int:
    config = load_dashboard_config()
    setup_logging(config)
    DashboardApp(config).run()
    return 0


if __name__ == '__main__':
    sys.exit(main())
