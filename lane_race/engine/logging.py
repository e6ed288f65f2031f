import logging
import re
from typing_extensions import override

from rich.logging import RichHandler

LANE_PATTERN = re.compile(r"\b(Lane \d+)\b")


# Simple color theme for Rich
COLOR = {
    "lane": "yellow",
    "win": "bold green",
    "heat": "bold magenta",
    "warning": "bold red",
    "prefix": "dim",
}


class RichMarkupFormatter(logging.Formatter):
    @override
    def format(self, record: logging.LogRecord) -> str:
        # lane_race.builder -> builder
        prefix = record.name.rsplit(".", 1)[-1]

        styled = record.getMessage()
        styled = re.sub(r"\bwins\b", f"[{COLOR['win']}]wins[/{COLOR['win']}]", styled)
        styled = re.sub(
            r"\b[Dd]ead heat\b",
            lambda m: f"[{COLOR['heat']}]{m.group(0)}[/{COLOR['heat']}]",
            styled,
        )
        styled = re.sub(
            r"\bMISMATCH\b",
            f"[{COLOR['warning']}]MISMATCH[/{COLOR['warning']}]",
            styled,
        )
        styled = LANE_PATTERN.sub(rf"[{COLOR['lane']}]\1[/{COLOR['lane']}]", styled)

        if record.levelno >= logging.WARNING:
            styled = f"[{COLOR['warning']}]{styled}[/{COLOR['warning']}]"

        return f"[{COLOR['prefix']}]{prefix}[/{COLOR['prefix']}]  {styled}"


def configure_logging(level: int = logging.INFO) -> None:
    logger = logging.getLogger()
    logger.setLevel(level)
    handler = RichHandler(markup=True, show_path=False, show_time=False)
    handler.setFormatter(RichMarkupFormatter())
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False
