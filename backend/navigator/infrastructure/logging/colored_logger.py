"""Colored pipeline logger — ANSI-colored console logging for the matching pipeline.

Provides a PipelineLogger with color-coded output per pipeline stage,
making it easy to visually trace a query (or a learning run) in the terminal.

Color scheme:
    🔵 Blue    — Retrieval
    🟡 Yellow  — Eligibility filtering
    🟣 Magenta — Ranking
    🟠 Cyan    — Explanation / Learning
    🟢 Green   — Delivery
    🔴 Red     — Errors / degraded mode
"""

import logging
import time
from contextlib import contextmanager
from typing import Any


# ── ANSI Color Codes ─────────────────────────────────────────────────

class _Colors:
    """ANSI escape codes for terminal colors."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    GRAY = "\033[90m"


# ── Pipeline Stage Definitions ───────────────────────────────────────

class PipelineStage:
    """Predefined pipeline stages with colors and icons."""

    RETRIEVE = ("RETRIEVE", _Colors.BLUE, "🔎")
    FILTER = ("FILTER", _Colors.YELLOW, "🧾")
    RANK = ("RANK", _Colors.MAGENTA, "📊")
    EXPLAIN = ("EXPLAIN", _Colors.CYAN, "💬")
    DELIVER = ("DELIVER", _Colors.GREEN, "📬")
    LEARN = ("LEARN", _Colors.CYAN, "🧠")
    PUBLISH = ("PUBLISH", _Colors.GREEN, "📦")
    DEGRADED = ("DEGRADED", _Colors.RED, "⚠️")
    ERROR = ("ERROR", _Colors.RED, "❌")


# ── PipelineLogger ───────────────────────────────────────────────────

class PipelineLogger:
    """Color-coded logger for the recommendation pipeline and learning runs.

    Usage:
        log = PipelineLogger("RecommendationPipeline")
        with log.timed_step(PipelineStage.RETRIEVE, "Retrieving candidates", top_k=50):
            candidates = index.retrieve(...)
        log.detail("42 candidates")
    """

    def __init__(self, component_name: str):
        self._logger = logging.getLogger(component_name)
        self._component = component_name

    def step_start(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        """Log the start of a pipeline step with its stage color."""
        label, color, icon = stage
        formatted = (
            f"{color}{_Colors.BOLD}{icon} [{label}]{_Colors.RESET} "
            f"{color}{message}{_Colors.RESET}"
        )
        if kwargs:
            formatted += f" {_Colors.GRAY}({_format_kwargs(kwargs)}){_Colors.RESET}"
        self._logger.info(formatted)

    def step_complete(self, stage: tuple[str, str, str], message: str, **kwargs: Any) -> None:
        """Log the successful completion of a pipeline step."""
        label, color, icon = stage
        formatted = (
            f"{color}{icon} [{label}]{_Colors.RESET} "
            f"{_Colors.GREEN}✓ {message}{_Colors.RESET}"
        )
        if kwargs:
            formatted += f" {_Colors.GRAY}({_format_kwargs(kwargs)}){_Colors.RESET}"
        self._logger.info(formatted)

    def step_error(self, stage: tuple[str, str, str], message: str, error: BaseException | None = None) -> None:
        """Log a pipeline step error in red."""
        label, _, icon = stage
        formatted = (
            f"{_Colors.RED}{_Colors.BOLD}{icon} [{label}]{_Colors.RESET} "
            f"{_Colors.RED}{message}{_Colors.RESET}"
        )
        if error:
            formatted += f" {_Colors.DIM}→ {type(error).__name__}: {error}{_Colors.RESET}"
        self._logger.error(formatted)

    def degraded(self, message: str, **kwargs: Any) -> None:
        """Log a switch to degraded-mode operation (warning, not an error)."""
        label, color, icon = PipelineStage.DEGRADED
        formatted = f"{color}{_Colors.BOLD}{icon} [{label}]{_Colors.RESET} {color}{message}{_Colors.RESET}"
        if kwargs:
            formatted += f" {_Colors.GRAY}({_format_kwargs(kwargs)}){_Colors.RESET}"
        self._logger.warning(formatted)

    def detail(self, message: str, **kwargs: Any) -> None:
        """Log additional detail (gray/dimmed)."""
        formatted = f"   {_Colors.GRAY}├─ {message}{_Colors.RESET}"
        if kwargs:
            formatted += f" {_Colors.DIM}({_format_kwargs(kwargs)}){_Colors.RESET}"
        self._logger.info(formatted)

    def stats(self, **kwargs: Any) -> None:
        """Log statistics / timing information."""
        parts = [f"{k}: {v}" for k, v in kwargs.items()]
        self._logger.info(f"   {_Colors.GRAY}📈 {' | '.join(parts)}{_Colors.RESET}")

    @contextmanager
    def timed_step(self, stage: tuple[str, str, str], message: str, **kwargs: Any):
        """Context manager that logs start/end with elapsed time.

        Usage:
            with log.timed_step(PipelineStage.RANK, "Ranking candidates"):
                result = engine.rank(...)
        """
        self.step_start(stage, message, **kwargs)
        start = time.perf_counter()
        try:
            yield
        except Exception as e:
            elapsed = time.perf_counter() - start
            self.step_error(stage, f"{message} — failed after {elapsed:.3f}s", error=e)
            raise
        else:
            elapsed = time.perf_counter() - start
            self.step_complete(stage, f"{message} — {elapsed:.3f}s")


def _format_kwargs(kwargs: dict[str, Any]) -> str:
    return " | ".join(f"{k}={v}" for k, v in kwargs.items())
