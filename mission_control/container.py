from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from mission_control.config import Settings, settings as default_settings
from mission_control.db import Storage, get_storage
from mission_control.services.deadlines import DeadlineScanner
from mission_control.services.missions_service import MissionsService
from mission_control.services.sheets import MissionExporter, build_exporter
from mission_control.services.submissions_service import SubmissionsService
from mission_control.services.templates_service import TemplatesService
from mission_control.services.tracker import SubmissionIndex, SubmissionTracker
from mission_control.services.votes import VoteReconciler


@dataclass
class Services:
    """Всё, что нужно хендлерам обеих платформ; собирается один раз на процесс."""

    storage: Storage
    missions: MissionsService
    submissions: SubmissionsService
    templates: TemplatesService
    index: SubmissionIndex
    tracker: SubmissionTracker
    votes: VoteReconciler
    scanner: DeadlineScanner


def build_services(
    storage: Optional[Storage] = None,
    exporter: Optional[MissionExporter] = None,
    cfg: Optional[Settings] = None,
) -> Services:
    cfg = cfg or default_settings
    storage = storage or get_storage()
    missions = MissionsService(storage)
    submissions = SubmissionsService(storage)
    index = SubmissionIndex(submissions)
    return Services(
        storage=storage,
        missions=missions,
        submissions=submissions,
        templates=TemplatesService(storage),
        index=index,
        tracker=SubmissionTracker(missions, submissions, index, cfg.DEFAULT_DEADLINE_DAYS),
        votes=VoteReconciler(submissions),
        scanner=DeadlineScanner(
            missions,
            submissions,
            exporter=exporter or build_exporter(cfg),
            interval_sec=cfg.DEADLINE_CHECK_INTERVAL_SEC,
        ),
    )
