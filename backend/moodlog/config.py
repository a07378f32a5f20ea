from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_APP_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _APP_DIR.parent
_REPO_ROOT = _BACKEND_DIR.parent

_DEFAULT_BUDGETS_MS = {
    "budget_mood_entry_ms": 100.0,
    "budget_analytics_ms": 500.0,
    "budget_database_ms": 50.0,
}


def _load_root_dotenv() -> None:
    """
    统一从仓库根目录读取 `.env`（并保证其优先级最高）。

    说明：
    - 启动脚本通常会 `cd backend`，导致工具默认只会找子目录下的 `.env`。
    - 这里显式加载：先加载 `backend/.env`，再加载根目录 `.env`，并且 `override=True`。
    """

    backend_env = _BACKEND_DIR / ".env"
    root_env = _REPO_ROOT / ".env"

    for env_file in (backend_env, root_env):
        if env_file.exists():
            load_dotenv(env_file, override=True, encoding="utf-8")


def resolve_db_file(db_file: str) -> Path:
    path = Path(db_file)
    if not path.is_absolute():
        path = (_REPO_ROOT / path).resolve()
    return path


class Settings(BaseSettings):
    """Application settings"""

    # Server（供 run.py 使用）
    backend_host: str = "0.0.0.0"
    backend_port: int = 3001
    backend_reload: bool = True

    # Database
    # 优先使用 DATABASE_URL；不配置时再使用 DB_FILE 生成 sqlite URL
    database_url: str | None = None
    db_file: str = "data/moods.db"
    # SQLCipher 密钥：配置后每个新连接都会执行 PRAGMA key
    # - 普通 SQLite 会忽略该 PRAGMA，此时健康检查会报告 encryption=disabled
    db_encryption_key: str | None = None

    # API
    api_prefix: str = "/api"
    debug: bool = True
    # 是否输出 SQLAlchemy 的 SQL 日志；排查 SQL 时再临时打开
    sql_echo: bool = False

    # CORS
    # - 逗号分隔（例如：http://localhost:8080,http://127.0.0.1:8080）
    # - "*" 表示允许所有来源（此时会强制关闭 allow_credentials）
    cors_allow_origins: str = "http://localhost:8080"
    cors_allow_credentials: bool = True
    cors_allow_methods: str = "*"
    cors_allow_headers: str = "*"

    # 性能预算（毫秒）：只做观测，超出时记录 warning，不会中断请求
    budget_mood_entry_ms: float = 100.0
    budget_analytics_ms: float = 500.0
    budget_database_ms: float = 50.0

    @model_validator(mode="after")
    def _build_database_url_if_missing(self) -> "Settings":
        if self.database_url and self.database_url.strip():
            return self

        db_path = resolve_db_file(self.db_file)
        self.database_url = f"sqlite+aiosqlite:///{db_path.as_posix()}"
        return self

    @model_validator(mode="after")
    def _normalize_budgets(self) -> "Settings":
        for name, default in _DEFAULT_BUDGETS_MS.items():
            if getattr(self, name) <= 0:
                setattr(self, name, default)

        key = (self.db_encryption_key or "").strip()
        self.db_encryption_key = key or None
        return self

    def performance_budgets(self) -> dict[str, float]:
        return {
            "mood_entry": self.budget_mood_entry_ms,
            "analytics": self.budget_analytics_ms,
            "database": self.budget_database_ms,
        }

    model_config = SettingsConfigDict(
        case_sensitive=False
    )


_load_root_dotenv()
settings = Settings()
