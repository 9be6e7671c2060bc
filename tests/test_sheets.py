"""Tests for the sheet export: table layout, tab names, idempotent re-export."""
from __future__ import annotations

from datetime import datetime, timezone

from mission_control.models.mission import Mission
from mission_control.models.submission import Submission, Vote
from mission_control.services.sheets import (
    BASE_HEADERS,
    MissionExporter,
    build_exporter,
    build_table,
    sanitize_title,
    tab_title,
)

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _mission(title: str = "Weekly: Pyth [V3]") -> Mission:
    return Mission(id="mission-1", title=title, thread_id="t1", deadline=T0, created_at=T0)


def _sub(sid: str, votes: dict, content: str = "look https://x.com/1") -> Submission:
    return Submission(
        id=sid,
        message_id=f"msg-{sid}",
        channel_id="t1",
        thread_id="t1",
        mission_id="mission-1",
        user_id=f"user-{sid}",
        user_tag=f"tag-{sid}",
        content=content,
        urls=["https://x.com/1", "https://x.com/2"],
        votes=[Vote(judge_id=j, score=s, timestamp=T0) for j, s in votes.items()],
        submitted_at=T0,
    )


class TestTitle:
    def test_forbidden_chars_replaced(self) -> None:
        assert sanitize_title("Weekly: Pyth [V3]") == "Weekly- Pyth -V3-"
        assert sanitize_title("a*b?c/d\\e'f") == "a-b-c-d-e-f"

    def test_length_capped(self) -> None:
        assert len(sanitize_title("x" * 250)) == 100

    def test_tab_name_carries_mission_id(self) -> None:
        assert tab_title(_mission()) == "Weekly- Pyth -V3- #sion-1"
        assert len(tab_title(_mission("x" * 250))) == 100


class TestTable:
    def test_scores_and_blank_cells(self) -> None:
        judge_a, judge_b = "100000000000AAAAAA", "200000000000BBBBBB"
        headers, rows = build_table([
            _sub("s1", {judge_a: 4, judge_b: 2}),
            _sub("s2", {judge_a: 5}),
        ])
        assert headers == BASE_HEADERS + ["Judge_AAAAAA", "Judge_BBBBBB"]
        assert rows[0][6:] == ["2", "3.00", "4", "2"]
        assert rows[1][6:] == ["1", "5.00", "5", ""]
        assert rows[0][3] == "https://x.com/1"

    def test_no_votes(self) -> None:
        headers, rows = build_table([_sub("s1", {})])
        assert headers == BASE_HEADERS
        assert rows[0][6:] == ["0", "N/A"]

    def test_content_truncated(self) -> None:
        _, rows = build_table([_sub("s1", {}, content="y" * 900)])
        assert len(rows[0][4]) == 500


class TestExporter:
    async def test_reexport_does_not_duplicate(self, destination) -> None:
        exporter = MissionExporter(destination)
        subs = [_sub("s1", {"J1": 3}), _sub("s2", {})]
        first = await exporter.export(_mission(), subs)
        second = await exporter.export(_mission(), subs)
        assert first.success and second.success
        assert second.row_count == 2
        tab = destination.tabs[tab_title(_mission())]
        assert len(tab) == 3  # заголовок + 2 строки

    async def test_zero_submissions_writes_header_only(self, destination) -> None:
        result = await MissionExporter(destination).export(_mission(), [])
        assert result.success and result.row_count == 0
        assert destination.tabs[tab_title(_mission())] == [BASE_HEADERS]
        assert ("append", tab_title(_mission())) not in destination.calls

    async def test_same_title_missions_get_own_tabs(self, destination) -> None:
        first = Mission(id="mission-aaaaaa", title="Weekly", thread_id="t1", deadline=T0, created_at=T0)
        second = Mission(id="mission-bbbbbb", title="Weekly", thread_id="t2", deadline=T0, created_at=T0)
        await MissionExporter(destination).export(first, [_sub("s1", {})])
        await MissionExporter(destination).export(second, [_sub("s2", {}), _sub("s3", {})])
        assert len(destination.tabs[tab_title(first)]) == 2
        assert len(destination.tabs[tab_title(second)]) == 3

    async def test_failure_is_reported_not_raised(self, make_destination) -> None:
        result = await MissionExporter(make_destination(fail_on="append")).export(
            _mission(), [_sub("s1", {})]
        )
        assert not result.success
        assert "append exploded" in result.error


class TestConfig:
    def test_unconfigured_means_no_exporter(self) -> None:
        class Cfg:
            sheets_configured = False

        assert build_exporter(Cfg()) is None
