import logging

from loguru import logger

from webmount.core.config import env

# Remove existing handlers
for handler in logging.root.handlers[:]:
    logging.root.removeHandler(handler)


class InterceptHandler(logging.Handler):
    def emit(self, record):
        # Get corresponding Loguru level
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller to get correct stack depth
        frame, depth = logging.currentframe(), 2
        while frame.f_back and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


_file_sink_id = None


def setup_logger(settings=env):
    global _file_sink_id

    loggers = (
        "asyncio",
        "fastapi",
        "prometheus_client",
        "redis",
        "uvicorn",
        "uvicorn.access",
        "uvicorn.asgi",
        "uvicorn.lifespan",
        "uvicorn.server",
        "uvicorn.protocols.http",
        "uvicorn.error",
    )

    for logger_name in loggers:
        logging_logger = logging.getLogger(logger_name)
        logging_logger.handlers = []
        logging_logger.propagate = True

    logging.basicConfig(
        handlers=[InterceptHandler()],
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    )
    if _file_sink_id is not None:
        logger.remove(_file_sink_id)
        _file_sink_id = None
    if settings.LOG_FILE:
        _file_sink_id = logger.add(
            settings.LOG_FILE,
            rotation=settings.LOG_ROTATION,
            compression=settings.LOG_COMPRESSION,
            level=settings.LOG_LEVEL,
            backtrace=True,
            diagnose=True,
        )
