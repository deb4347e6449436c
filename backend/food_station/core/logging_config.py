"""
日志配置
控制台彩色输出 + 按天一个文件（logs/food_station_YYYY-MM-DD.log）
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from food_station.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# 请求日志、SQL 回显、调度器心跳只保留警告以上
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "apscheduler")


class ColoredFormatter(logging.Formatter):
    """控制台按级别着色"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        # 着色只作用于副本，文件里的级别名保持原样
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{self.COLORS.get(record.levelname, '')}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(log_level: str = "INFO", log_dir: str = None) -> Path:
    """配置根日志器，返回当天的日志文件路径"""
    log_path = Path(log_dir or settings.LOG_DIR)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / f"food_station_{datetime.now():%Y-%m-%d}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, DATE_FORMAT))
    root_logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.info(f"📋 日志系统初始化完成，日志文件: {log_file}")
    return log_file
