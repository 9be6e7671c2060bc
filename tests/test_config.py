"""Tests for Settings — list parsing and derived flags."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from mission_control.config import Settings
from mission_control.utils.time import parse_deadline


def _settings(monkeypatch, **env) -> Settings:
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return Settings(_env_file=None)


class TestIdLists:
    @pytest.mark.parametrize("raw", ["[111, 222]", '["111","222"]', "111,222", "111 222", "111, 222,"])
    def test_formats(self, monkeypatch, raw: str) -> None:
        cfg = _settings(monkeypatch, DISCORD_JUDGE_ROLE_IDS=raw)
        assert cfg.DISCORD_JUDGE_ROLE_IDS == [111, 222]

    def test_negative_chat_ids(self, monkeypatch) -> None:
        cfg = _settings(monkeypatch, TELEGRAM_ALLOWED_CHAT_IDS="-1001234, 42")
        assert cfg.TELEGRAM_ALLOWED_CHAT_IDS == [-1001234, 42]

    def test_empty(self, monkeypatch) -> None:
        monkeypatch.delenv("TELEGRAM_ADMIN_USER_IDS", raising=False)
        assert Settings(_env_file=None).TELEGRAM_ADMIN_USER_IDS == []


class TestDerived:
    def test_private_key_unfolded(self, monkeypatch) -> None:
        cfg = _settings(
            monkeypatch,
            GOOGLE_SPREADSHEET_ID="sheet",
            GOOGLE_SERVICE_ACCOUNT_EMAIL="bot@example.iam.gserviceaccount.com",
            GOOGLE_PRIVATE_KEY="-----BEGIN-----\\nabc\\n-----END-----",
        )
        assert cfg.GOOGLE_PRIVATE_KEY == "-----BEGIN-----\nabc\n-----END-----"
        assert cfg.sheets_configured

    def test_sheets_need_all_three(self, monkeypatch) -> None:
        for key in ("GOOGLE_SPREADSHEET_ID", "GOOGLE_SERVICE_ACCOUNT_EMAIL", "GOOGLE_PRIVATE_KEY"):
            monkeypatch.delenv(key, raising=False)
        cfg = _settings(monkeypatch, GOOGLE_SPREADSHEET_ID="sheet")
        assert not cfg.sheets_configured

    def test_timezone_alias_and_defaults(self, monkeypatch) -> None:
        monkeypatch.delenv("TIMEZONE", raising=False)
        monkeypatch.delenv("DEADLINE_CHECK_INTERVAL_SEC", raising=False)
        monkeypatch.delenv("DEFAULT_DEADLINE_DAYS", raising=False)
        cfg = _settings(monkeypatch, TZ="Europe/Kyiv")
        assert cfg.TIMEZONE == "Europe/Kyiv"
        assert cfg.DEADLINE_CHECK_INTERVAL_SEC == 300
        assert cfg.DEFAULT_DEADLINE_DAYS == 7


class TestParseDeadline:
    BASE = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

    def test_relative(self) -> None:
        assert parse_deadline("3d", self.BASE) == self.BASE + timedelta(days=3)
        assert parse_deadline("12h", self.BASE) == self.BASE + timedelta(hours=12)
        assert parse_deadline("90m", self.BASE) == self.BASE + timedelta(minutes=90)

    def test_iso_with_offset(self) -> None:
        assert parse_deadline("2025-04-01T10:00:00+00:00") == datetime(2025, 4, 1, 10, tzinfo=timezone.utc)

    def test_garbage(self) -> None:
        assert parse_deadline("soon") is None
        assert parse_deadline("") is None
        assert parse_deadline("31.02.2025") is None
