from __future__ import annotations
from datetime import datetime
from typing import List, Optional, Sequence

from mission_control.models.mission import Mission
from mission_control.models.submission import Submission
from mission_control.services.deadlines import SweepReport
from mission_control.services.missions_service import STATUS
from mission_control.services.sheets import format_average
from mission_control.utils.text import trim
from mission_control.utils.time import fmt_dt

TOP_N = 5

def ranked(submissions: Sequence[Submission]) -> List[Submission]:
    """По среднему (без оценок — в конец), при равенстве — больше голосов выше."""
    return sorted(
        submissions,
        key=lambda s: (s.average_score is not None, s.average_score or 0, len(s.votes)),
        reverse=True,
    )

def _line(i: int, s: Submission) -> str:
    url = s.urls[0] if s.urls else ""
    return f"{i}. {s.user_tag} — {format_average(s)} ({len(s.votes)} votes) {trim(url, 80)}"

def mission_summary_text(mission: Mission, submissions: Sequence[Submission]) -> str:
    lines = [f"⏰ Mission «{mission.title}» has reached its deadline."]
    if not submissions:
        lines.append("No submissions this time.")
        return "\n".join(lines)
    voted = sum(1 for s in submissions if s.votes)
    lines.append(f"{len(submissions)} submission(s), {voted} scored by judges.")
    lines.append("Thread is now closed. Thanks everyone!")
    return "\n".join(lines)

def mission_results_text(mission: Mission, submissions: Sequence[Submission]) -> str:
    lines = [f"🏁 Results: {mission.title}", f"Submissions: {len(submissions)}"]
    for i, s in enumerate(ranked(submissions)[:TOP_N], start=1):
        lines.append(_line(i, s))
    return "\n".join(lines)

def card_text(title: str, deadline: datetime, brief: Optional[str] = None, status: str = "active") -> str:
    lines = [
        f"🎯 MISSION: {title}",
        f"Status: {STATUS.get(status, status)}",
        f"Deadline: {fmt_dt(deadline)}",
    ]
    if brief:
        lines += ["", brief]
    if status == "active":
        lines += ["", "Reply to this message with your link to submit."]
    return "\n".join(lines)

def mission_card_text(mission: Mission, status: Optional[str] = None) -> str:
    return card_text(mission.title, mission.deadline, mission.brief, status or mission.status)

def sweep_report_text(report: SweepReport) -> str:
    if not report.outcomes:
        return "No missions past deadline."
    lines = [f"Processed {len(report.outcomes)} mission(s):"]
    for o in report.outcomes:
        lines.append(f"• {o.title} → {o.status} ({o.submissions} submission(s))")
        for step, reason in o.failures.items():
            lines.append(f"   ⚠️ {step}: {reason}")
        if o.export_error:
            lines.append(f"   ❌ export: {o.export_error}")
    return "\n".join(lines)

def status_text(active: Sequence[Mission], past_deadline: Sequence[Mission]) -> str:
    lines = [
        "Mission Control Status",
        "",
        f"Active missions: {len(active)}",
        f"Past deadline (pending export): {len(past_deadline)}",
    ]
    if active:
        lines += ["", "Active Missions:"]
        for m in list(active)[:TOP_N]:
            lines.append(f"• {m.title} ({fmt_dt(m.deadline, '%Y-%m-%d')}) — {m.id}")
    return "\n".join(lines)
