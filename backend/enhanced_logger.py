"""
Enhanced Logging Utility for the Orchestration API
Colored, structured logging with class.function prefixes and highlighting of
execution ids, statuses and key=value pairs
"""

import logging
import os
import re
import sys
import inspect
from typing import Optional
from datetime import datetime


class ColorCodes:
    """ANSI color codes for terminal output"""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'

    RED = '\033[31m'
    CYAN = '\033[36m'
    WHITE = '\033[37m'

    BRIGHT_BLACK = '\033[90m'
    BRIGHT_RED = '\033[91m'
    BRIGHT_GREEN = '\033[92m'
    BRIGHT_YELLOW = '\033[93m'
    BRIGHT_BLUE = '\033[94m'
    BRIGHT_MAGENTA = '\033[95m'
    BRIGHT_CYAN = '\033[96m'

    BG_WHITE = '\033[47m'


LEVEL_COLORS = {
    'DEBUG': ColorCodes.BRIGHT_BLACK,
    'INFO': ColorCodes.BRIGHT_BLUE,
    'WARNING': ColorCodes.BRIGHT_YELLOW,
    'ERROR': ColorCodes.BRIGHT_RED,
    'CRITICAL': ColorCodes.RED + ColorCodes.BG_WHITE + ColorCodes.BOLD,
}

SUCCESS_KEYWORDS = ['completed', 'started', 'running', 'healthy', 'handled']
FAILURE_KEYWORDS = ['failed', 'cancelled', 'skipped', 'timeout', 'error']

# exec-…, agent-exec-…, step-…
EXECUTION_ID = re.compile(r'\b((?:exec|nexec|agent-exec|step|wf)-[0-9a-f]{6,})\b')


def colors_enabled() -> bool:
    """FORCE_COLOR wins over auto-detection; NO_COLOR wins over both"""
    if os.getenv('NO_COLOR') is not None:
        return False
    if os.getenv('FORCE_COLOR', '').lower() in ('1', 'true', 'yes'):
        return True
    return sys.stderr.isatty() and os.getenv('TERM') != 'dumb'


class EnhancedFormatter(logging.Formatter):
    """Custom formatter with colors and enhanced structure"""

    def __init__(self, use_colors: bool = True):
        self.use_colors = use_colors
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]
        reset = ColorCodes.RESET if self.use_colors else ''

        level_str = f"[{record.levelname:8}]"
        if self.use_colors:
            level_str = f"{LEVEL_COLORS.get(record.levelname, ColorCodes.WHITE)}{level_str}{reset}"

        # Records from plain module loggers have no class_func
        class_func = getattr(record, 'class_func', None) or f"{record.name.rsplit('.', 1)[-1]}.{record.funcName}"
        if self.use_colors and '.' in class_func:
            owner, func_name = class_func.split('.', 1)
            class_func = f"{ColorCodes.BRIGHT_CYAN}{owner}{ColorCodes.WHITE}.{ColorCodes.BRIGHT_GREEN}{func_name}{reset}"

        message = record.getMessage()
        if self.use_colors:
            message = self._highlight(message)

        formatted = " ".join([
            f"{ColorCodes.DIM if self.use_colors else ''}{timestamp}{reset}",
            level_str,
            f"[{class_func}]",
            message,
        ])

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)
        return formatted

    def _highlight(self, message: str) -> str:
        """Highlight execution ids, numbers, key=value pairs and status words"""
        message = EXECUTION_ID.sub(f'{ColorCodes.BRIGHT_CYAN}\\1{ColorCodes.RESET}', message)

        message = re.sub(
            r"'([^']*)'",
            f"{ColorCodes.BRIGHT_YELLOW}'\\1'{ColorCodes.RESET}",
            message
        )

        message = re.sub(
            r'\b(\w+)=([^\s,\]}\)]+)',
            f'{ColorCodes.CYAN}\\1{ColorCodes.WHITE}={ColorCodes.BRIGHT_YELLOW}\\2{ColorCodes.RESET}',
            message
        )

        message = re.sub(
            r'(?<![\w-])(\d+(?:\.\d+)?)(ms|s)?\b',
            f'{ColorCodes.BRIGHT_MAGENTA}\\1\\2{ColorCodes.RESET}',
            message
        )

        for keyword in SUCCESS_KEYWORDS:
            message = re.sub(
                rf'\b({keyword})\b',
                f'{ColorCodes.BRIGHT_GREEN}\\1{ColorCodes.RESET}',
                message,
                flags=re.IGNORECASE
            )

        for keyword in FAILURE_KEYWORDS:
            message = re.sub(
                rf'\b({keyword})\b',
                f'{ColorCodes.BRIGHT_RED}\\1{ColorCodes.RESET}',
                message,
                flags=re.IGNORECASE
            )

        return message


def build_handler(use_colors: Optional[bool] = None) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(EnhancedFormatter(use_colors=colors_enabled() if use_colors is None else use_colors))
    return handler


class EnhancedLogger:
    """
    API-level logger that tags each record with the calling Class.method.

    Engine internals log through plain module loggers; this one is for the
    HTTP surface and process lifecycle.
    """

    def __init__(self, name: str = "orchestration-api"):
        self.logger = logging.getLogger(name)
        self._setup_logger()

    def _setup_logger(self):
        self.logger.handlers.clear()
        self.logger.addHandler(build_handler())
        self.logger.setLevel(getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO))
        # Prevent duplicate logs
        self.logger.propagate = False

    @staticmethod
    def _caller(depth: int) -> str:
        frame = inspect.currentframe()
        try:
            for _ in range(depth + 1):
                frame = frame.f_back
            func_name = frame.f_code.co_name
            owner = frame.f_locals.get('self')
            if owner is not None:
                return f"{type(owner).__name__}.{func_name}"
            if 'cls' in frame.f_locals:
                return f"{frame.f_locals['cls'].__name__}.{func_name}"
            return f"Module.{func_name}"
        except AttributeError:
            return "Unknown.unknown"
        finally:
            del frame

    def _log(self, level: int, message: str, args: tuple = (), exc_info=None, depth: int = 2):
        if not self.logger.isEnabledFor(level):
            return
        record = self.logger.makeRecord(self.logger.name, level, "", 0, message, args, exc_info)
        # depth counts frames above _log: the level method, then its caller
        record.class_func = self._caller(depth)
        self.logger.handle(record)

    def debug(self, message: str, *args):
        self._log(logging.DEBUG, message, args)

    def info(self, message: str, *args):
        self._log(logging.INFO, message, args)

    def warning(self, message: str, *args):
        self._log(logging.WARNING, message, args)

    def error(self, message: str, *args, exc_info=None):
        self._log(logging.ERROR, message, args, exc_info=exc_info)

    def log_startup(self, component: str, **settings):
        """One line with the effective settings of a starting component"""
        described = ' '.join(f"{key}={value}" for key, value in settings.items())
        self._log(logging.INFO, f"Component '{component}' started {described}".rstrip())

    def log_api_call(self, method: str, endpoint: str, status_code: int, duration: float):
        level = logging.WARNING if status_code >= 500 else logging.INFO
        self._log(level, f"{method} {endpoint} status={status_code} took {duration * 1000:.1f}ms")

    def log_execution(self, execution):
        """
        Summarize a workflow or agent execution record.

        Failed and cancelled runs log at WARNING with their error.
        """
        metrics = execution.metrics
        tokens = getattr(metrics, 'totalTokens', None)
        if tokens is None:
            tokens = metrics.tokenCount
        summary = f"{execution.id} {execution.status.value} tokens={tokens}"
        if execution.error:
            self._log(logging.WARNING, f"{summary} reason='{execution.error}'")
        else:
            self._log(logging.INFO, summary)


enhanced_logger = EnhancedLogger()


def configure_logging(level: str = "INFO", suppress_uvicorn: bool = True):
    """
    Route the engine's module loggers through the enhanced formatter.

    Everything under the ``orchestration`` package logs via
    ``logging.getLogger(__name__)``; this attaches one handler at the package
    logger so those records share the API logger's format.
    """
    package_logger = logging.getLogger("orchestration")
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)
    package_logger.addHandler(build_handler())
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    package_logger.propagate = False

    if suppress_uvicorn:
        for logger_name in ['uvicorn', 'uvicorn.error', 'uvicorn.access']:
            uvicorn_logger = logging.getLogger(logger_name)
            uvicorn_logger.setLevel(logging.WARNING)
            for handler in uvicorn_logger.handlers[:]:
                uvicorn_logger.removeHandler(handler)
