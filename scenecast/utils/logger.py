"""
Logging for the SceneCast worker

Everything logs under the `scenecast` namespace: a rotating file keeps the
full record, the console gets a compact rich rendering.
"""

import logging
import logging.handlers
from pathlib import Path

from rich.logging import RichHandler

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Third-party loggers that are chatty at INFO
NOISY_LIBRARIES = ('aiohttp.access', 'openai', 'httpx', 'asyncio')


def _file_handler(log_file: Path, max_size_mb: int, backup_count: int,
                  formatter: logging.Formatter) -> logging.Handler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding='utf-8'
    )
    handler.setFormatter(formatter)
    return handler


def _console_handler(rich_console: bool, formatter: logging.Formatter) -> logging.Handler:
    if not rich_console:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        return handler
    # rich renders time and level itself
    handler = RichHandler(show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter('%(name)s - %(message)s'))
    return handler


def setup_logging(config: 'Config', rich_console: bool = True) -> logging.Logger:
    """Configure the `scenecast` logger from the `logging` config section.

    Recognised keys: level, format, file, max_size_mb, backup_count. The log
    file defaults to `<paths.logs>/scenecast.log`.
    """
    options = config.logging
    formatter = logging.Formatter(options.get('format', DEFAULT_FORMAT))
    log_file = Path(options.get('file', Path(config.paths.logs) / 'scenecast.log'))

    root = logging.getLogger('scenecast')
    root.setLevel(getattr(logging, str(options.get('level', 'INFO')).upper()))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    root.addHandler(_file_handler(log_file, options.get('max_size_mb', 100),
                                  options.get('backup_count', 5), formatter))
    root.addHandler(_console_handler(rich_console, formatter))

    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root


class LoggerMixin:
    """Gives a class a `scenecast.<ClassName>` logger"""

    @property
    def logger(self) -> logging.Logger:
        if not hasattr(self, '_logger'):
            self._logger = logging.getLogger(f'scenecast.{self.__class__.__name__}')
        return self._logger
