"""Content generator contract and loader.

The engine does not render reports itself. A generator is any object with an
async ``generate(request) -> bytes`` method, or a plain async callable taking
the request. It is configured as a dotted path in settings:

    REPORT_GENERATOR=myapp.reports:PdfReportGenerator
"""

import importlib
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from report_engine.core.exceptions import GeneratorLoadError
from report_engine.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReportRequest:
    """What to render: one entity, one report type, one date range."""

    entity_id: int
    report_type: str
    start_date: datetime
    end_date: datetime


class ContentGenerator(Protocol):
    async def generate(self, request: ReportRequest) -> bytes: ...


class CallableGenerator:
    """Adapts a bare async function to the ContentGenerator protocol."""

    def __init__(self, fn: Callable[[ReportRequest], Awaitable[bytes]]) -> None:
        self._fn = fn

    async def generate(self, request: ReportRequest) -> bytes:
        return await self._fn(request)


def report_filename(report_type: str, report_format: str, when: datetime) -> str:
    """Attachment file name, e.g. ``financial-report-2026-10-19.pdf``."""
    return f"{report_type}-report-{when:%Y-%m-%d}.{report_format}"


def _import_object(path: str) -> Any:
    if ":" in path:
        module_path, attr_path = path.split(":", 1)
    else:
        module_path, _, attr_path = path.rpartition(".")

    if not module_path or not attr_path:
        raise GeneratorLoadError(f"Invalid generator path '{path}'")

    try:
        obj: Any = importlib.import_module(module_path)
        for attr in attr_path.split("."):
            obj = getattr(obj, attr)
    except (ImportError, AttributeError) as e:
        raise GeneratorLoadError(f"Failed to load generator '{path}': {e}") from e
    return obj


def load_generator(path: str) -> ContentGenerator:
    """Resolve a content generator from a dotted path.

    Accepts ``module:attr`` or ``module.attr``. The target may be a
    generator instance, a class (instantiated without arguments) or an
    async function.

    Raises:
        GeneratorLoadError: If the path cannot be imported or the target
            does not look like a generator
    """
    target = _import_object(path)

    if inspect.isclass(target):
        try:
            target = target()
        except TypeError as e:
            raise GeneratorLoadError(f"Cannot instantiate generator '{path}': {e}") from e

    if callable(getattr(target, "generate", None)):
        generator: ContentGenerator = target
    elif inspect.iscoroutinefunction(target):
        generator = CallableGenerator(target)
    else:
        raise GeneratorLoadError(
            f"'{path}' is neither a generator nor an async function"
        )

    logger.bind(path=path, generator=type(generator).__name__).info("report_generator_loaded")
    return generator
