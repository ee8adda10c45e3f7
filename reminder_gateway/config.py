"""配置管理 - 提醒服务配置"""
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from loguru import logger

load_dotenv()


def _default_data_dir() -> Path:
    return Path.home() / ".reminder_gateway"


@dataclass
class Settings:
    """服务配置"""

    # 服务配置
    host: str = "0.0.0.0"
    port: int = 8790
    debug: bool = False
    log_level: str = "INFO"

    # 数据存储
    data_dir: Path = field(default_factory=_default_data_dir)
    db_path: Optional[Path] = None

    # 调度器
    staleness_tolerance_seconds: float = 5.0
    shutdown_timeout_seconds: float = 10.0

    # 投递
    delivery_webhook_url: Optional[str] = None
    delivery_timeout_seconds: float = 10.0

    def __post_init__(self):
        if self.db_path is None:
            self.db_path = self.data_dir / "reminders.db"

    @classmethod
    def from_env(cls) -> "Settings":
        """从环境变量加载配置"""
        data_dir = Path(os.getenv("REMINDER_DATA_DIR", str(_default_data_dir()))).expanduser()
        db_path = os.getenv("REMINDER_DB_PATH")

        return cls(
            # 服务
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8790")),
            debug=os.getenv("DEBUG", "").lower() in ("1", "true"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),

            # 路径
            data_dir=data_dir,
            db_path=Path(db_path).expanduser() if db_path else None,

            # 调度器
            staleness_tolerance_seconds=float(os.getenv("STALENESS_TOLERANCE_SECONDS", "5.0")),
            shutdown_timeout_seconds=float(os.getenv("SHUTDOWN_TIMEOUT_SECONDS", "10.0")),

            # 投递
            delivery_webhook_url=os.getenv("DELIVERY_WEBHOOK_URL") or None,
            delivery_timeout_seconds=float(os.getenv("DELIVERY_TIMEOUT_SECONDS", "10")),
        )


def configure_logging(level: str = "INFO") -> None:
    """重置 loguru 输出到 stderr"""
    logger.remove()
    logger.add(sys.stderr, level=level)


# 全局配置实例
settings = Settings.from_env()
