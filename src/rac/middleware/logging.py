"""structlog setup shared by the API and the arq worker.

Domain modules log through stdlib ``logging`` with %-style messages; the
pipeline and HTTP layer use structlog events. Both go through the same
processor chain and renderer, so one process writes one stream.
"""

import logging

import structlog

from rac.config import Settings

HANDLER_NAME = "rac"


def _static_fields(component: str, environment: str) -> structlog.types.Processor:
    def add_fields(
        _logger: object, _method: str, event_dict: structlog.types.EventDict,
    ) -> structlog.types.EventDict:
        event_dict.setdefault("component", component)
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_fields


def setup_logging(settings: Settings, component: str = "api") -> None:
    """Route structlog and stdlib records through one JSON or console renderer."""
    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _static_fields(component, settings.environment),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if settings.log_format == "json":
        render: list[structlog.types.Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        render = [structlog.dev.ConsoleRenderer()]

    handler = logging.StreamHandler()
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *render],
    ))

    root = logging.getLogger()
    # Replace only our own handler when called again.
    for existing in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
