"""集中式日志配置

为分身引擎的所有服务提供统一的日志格式和行为。

特性:
    - 按模块着色的控制台输出
    - 自动日志轮转（10MB，保留5个备份）
    - 过滤冗余日志（httpx、uvicorn access）
"""
import logging
import logging.handlers
import sys
from typing import Optional
from pathlib import Path


# ============================================================================
# Color Support
# ============================================================================

class LogColors:
    """日志颜色"""
    RESET = '\033[0m'

    # Level colors
    DEBUG = '\033[36m'      # Cyan
    INFO = '\033[37m'       # White
    WARNING = '\033[33m'    # Yellow
    ERROR = '\033[31m'      # Red
    CRITICAL = '\033[35m'   # Magenta

    # Module colors
    API = '\033[94m'        # Blue
    AVATAR = '\033[92m'     # Green
    LLM = '\033[95m'        # Magenta
    VECTOR = '\033[93m'     # Yellow
    QUEUE = '\033[96m'      # Bright Cyan

    DISABLED = False


def should_colorize() -> bool:
    """判断是否应该输出颜色"""
    return not LogColors.DISABLED and hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
TIMESTAMP_FORMAT = '%H:%M:%S'
FILE_TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'


# ============================================================================
# Formatter
# ============================================================================

class ColorFormatter(logging.Formatter):
    """带颜色的日志格式化器"""

    LEVEL_COLORS = {
        logging.DEBUG: LogColors.DEBUG,
        logging.INFO: LogColors.INFO,
        logging.WARNING: LogColors.WARNING,
        logging.ERROR: LogColors.ERROR,
        logging.CRITICAL: LogColors.CRITICAL,
    }

    # 最长前缀优先匹配
    MODULE_COLORS = {
        'api': LogColors.API,
        'services.avatar_pipeline': LogColors.AVATAR,
        'services.avatar_state': LogColors.AVATAR,
        'services.personality': LogColors.AVATAR,
        'services.completion_client': LogColors.LLM,
        'services.response_generator': LogColors.LLM,
        'services.embedding': LogColors.VECTOR,
        'services.vector_index': LogColors.VECTOR,
        'services.vector_sync': LogColors.VECTOR,
        'services.context_retriever': LogColors.VECTOR,
        'services.scheduler': LogColors.QUEUE,
    }

    def format(self, record: logging.LogRecord) -> str:
        result = super().format(record)

        if not should_colorize():
            return result

        level_color = self.LEVEL_COLORS.get(record.levelno, LogColors.INFO)
        level_name = f"{level_color}{record.levelname:8}{LogColors.RESET}"
        module_name = f"{self._get_module_color(record.name)}{record.name:28}{LogColors.RESET}"

        return f"{record.asctime} | {level_name} | {module_name} | {record.getMessage()}"

    def _get_module_color(self, module_name: str) -> str:
        """获取模块对应的颜色"""
        matches = [key for key in self.MODULE_COLORS if module_name.startswith(key)]
        if not matches:
            return LogColors.RESET
        return self.MODULE_COLORS[max(matches, key=len)]


# ============================================================================
# Log Level Configuration
# ============================================================================

def parse_log_level(level_str: str) -> int:
    """Parse log level string to logging constant.

    Unknown names fall back to INFO.
    """
    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return level_map.get(level_str.upper(), logging.INFO)


# ============================================================================
# Quiet Log Filter
# ============================================================================

class QuietLogFilter(logging.Filter):
    """Filter to suppress noisy third-party records.

    Filters out:
    - httpx INFO logs (one line per embedding/completion request)
    - uvicorn access logs (handled by middleware)
    - repeated startup banners
    """

    ONCE_MARKERS = ("Services initialized", "Vector table ready")

    def __init__(self):
        super().__init__()
        self._logged_messages = set()

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == "httpx" and record.levelno <= logging.INFO:
            return False

        if record.name.startswith("uvicorn.access"):
            return False

        message = str(record.msg)
        if any(marker in message for marker in self.ONCE_MARKERS):
            msg_key = f"{record.name}:{message}"
            if msg_key in self._logged_messages:
                return False
            self._logged_messages.add(msg_key)

        return True


# ============================================================================
# Logger Configuration
# ============================================================================

def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
) -> None:
    """Configure application-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path to write logs to
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(parse_log_level(level))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColorFormatter(fmt=LOG_FORMAT, datefmt=TIMESTAMP_FORMAT))
    console_handler.setLevel(parse_log_level(level))
    console_handler.addFilter(QuietLogFilter())
    root_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=FILE_TIMESTAMP_FORMAT))
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with consistent configuration.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Configured logger instance.
    """
    return logging.getLogger(name)
