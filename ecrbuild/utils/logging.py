import logging
from enum import Enum

import structlog
from pydantic_settings import BaseSettings
from structlog.typing import Processor


class LogFormats(str, Enum):
    JSON = "json"
    CONSOLE = "console"


class LogSettings(BaseSettings):
    log_format: LogFormats = LogFormats.CONSOLE
    log_level: str = "INFO"


def build_processors(log_format: LogFormats) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.stdlib.ExtraAdder(),
        structlog.processors.CallsiteParameterAdder(
            [
                structlog.processors.CallsiteParameter.PATHNAME,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ],
        ),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if log_format == LogFormats.JSON:
        processors.append(structlog.processors.format_exc_info)

    return processors


def setup_logger(log_level: str | None = None) -> None:
    """Route structlog through stdlib logging with a console or JSON renderer.

    ``log_level`` overrides the LOG_LEVEL setting (e.g. from a --verbose flag).
    """
    settings = LogSettings()
    log_level = log_level or settings.log_level

    log_renderer: Processor
    if settings.log_format == LogFormats.CONSOLE:
        log_renderer = structlog.dev.ConsoleRenderer()
    else:
        log_renderer = structlog.processors.JSONRenderer()

    processors = build_processors(settings.log_format)

    structlog.configure(
        processors=processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            log_renderer,
        ],
    )

    # stderr, so build progress on stdout stays readable
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    for noisy in ["botocore", "boto3", "urllib3", "httpx", "httpcore"]:
        logging.getLogger(noisy).setLevel(logging.WARNING)
