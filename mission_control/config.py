# mission_control/config.py
from __future__ import annotations
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices
from typing import List, Optional
import json, re


class Settings(BaseSettings):
    """
    Единая конфигурация бота (pydantic-settings).
    Все значения можно задать через .env. Обязательные токены проверяются
    на старте процесса (main.py), а не при импорте.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Discord (основная платформа) ───────────────────────────────────────────
    DISCORD_BOT_TOKEN: Optional[str] = Field(default=None, validation_alias="DISCORD_BOT_TOKEN")
    DISCORD_GUILD_ID: Optional[int] = Field(default=None, validation_alias="DISCORD_GUILD_ID")
    DISCORD_MISSION_CHANNEL_ID: Optional[int] = Field(default=None, validation_alias="DISCORD_MISSION_CHANNEL_ID")
    DISCORD_RESULTS_CHANNEL_ID: Optional[int] = Field(default=None, validation_alias="DISCORD_RESULTS_CHANNEL_ID")
    DISCORD_JUDGE_ROLE_IDS_RAW: str = Field(default="", validation_alias="DISCORD_JUDGE_ROLE_IDS")

    # ── Telegram (опционально) ─────────────────────────────────────────────────
    TELEGRAM_BOT_TOKEN: Optional[str] = Field(default=None, validation_alias="TELEGRAM_BOT_TOKEN")
    TELEGRAM_ALLOWED_CHAT_IDS_RAW: str = Field(default="", validation_alias="TELEGRAM_ALLOWED_CHAT_IDS")
    TELEGRAM_JUDGE_USER_IDS_RAW: str = Field(default="", validation_alias="TELEGRAM_JUDGE_USER_IDS")
    TELEGRAM_ADMIN_USER_IDS_RAW: str = Field(default="", validation_alias="TELEGRAM_ADMIN_USER_IDS")

    # ── Google Sheets ──────────────────────────────────────────────────────────
    GOOGLE_SPREADSHEET_ID: Optional[str] = Field(default=None, validation_alias="GOOGLE_SPREADSHEET_ID")
    GOOGLE_SERVICE_ACCOUNT_EMAIL: Optional[str] = Field(default=None, validation_alias="GOOGLE_SERVICE_ACCOUNT_EMAIL")
    GOOGLE_PRIVATE_KEY_RAW: Optional[str] = Field(default=None, validation_alias="GOOGLE_PRIVATE_KEY")

    # ── Deadlines ──────────────────────────────────────────────────────────────
    DEADLINE_CHECK_INTERVAL_SEC: int = Field(default=300, validation_alias="DEADLINE_CHECK_INTERVAL_SEC")
    DEFAULT_DEADLINE_DAYS: int = Field(default=7, validation_alias="DEFAULT_DEADLINE_DAYS")
    TIMEZONE: str = Field(
        default="UTC",
        validation_alias=AliasChoices("TIMEZONE", "TZ"),
    )

    # ── Web / Logging / Storage ────────────────────────────────────────────────
    BASE_URL: Optional[str] = Field(default=None, validation_alias="BASE_URL")
    WEBHOOK_SECRET: str = Field(default="", validation_alias="WEBHOOK_SECRET")
    PROXY_URL: Optional[str] = Field(default=None, validation_alias="PROXY_URL")
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    STORAGE_DIR: Optional[str] = Field(default=None, validation_alias="STORAGE_DIR")

    # ── helpers: парсинг списков ───────────────────────────────────────────────
    @staticmethod
    def _parse_ids(val: str) -> List[int]:
        if not val:
            return []
        # JSON-массив?
        try:
            data = json.loads(val)
            if isinstance(data, list):
                out: List[int] = []
                for x in data:
                    try:
                        out.append(int(x))
                    except (TypeError, ValueError):
                        pass
                return out
        except ValueError:
            pass
        # CSV/пробелы/скобки
        val = val.strip().strip("[]")
        out = []
        for p in re.split(r"[,\s]+", val):
            m = re.search(r"-?\d+", p.strip())
            if m:
                out.append(int(m.group(0)))
        return out

    @property
    def DISCORD_JUDGE_ROLE_IDS(self) -> List[int]:
        return self._parse_ids(self.DISCORD_JUDGE_ROLE_IDS_RAW)

    @property
    def TELEGRAM_ALLOWED_CHAT_IDS(self) -> List[int]:
        return self._parse_ids(self.TELEGRAM_ALLOWED_CHAT_IDS_RAW)

    @property
    def TELEGRAM_JUDGE_USER_IDS(self) -> List[int]:
        return self._parse_ids(self.TELEGRAM_JUDGE_USER_IDS_RAW)

    @property
    def TELEGRAM_ADMIN_USER_IDS(self) -> List[int]:
        return self._parse_ids(self.TELEGRAM_ADMIN_USER_IDS_RAW)

    @property
    def GOOGLE_PRIVATE_KEY(self) -> Optional[str]:
        """Ключ из .env обычно приходит с литеральными \\n — разворачиваем."""
        if not self.GOOGLE_PRIVATE_KEY_RAW:
            return None
        return self.GOOGLE_PRIVATE_KEY_RAW.replace("\\n", "\n")

    # ── удобные алиасы для кода ────────────────────────────────────────────────
    @property
    def sheets_configured(self) -> bool:
        return bool(
            self.GOOGLE_SPREADSHEET_ID
            and self.GOOGLE_SERVICE_ACCOUNT_EMAIL
            and self.GOOGLE_PRIVATE_KEY_RAW
        )

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.TELEGRAM_BOT_TOKEN)


settings = Settings()
