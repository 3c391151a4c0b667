"""
Service dependencies for the API routers.

Services are built from the injected Database on first use and cached on
app.state, so every request shares one RetentionOrchestrator (and its
per-target locks) and one ProbeRecorder.
"""

from fastapi import Depends, Request

from database import Database, get_database
from services.data_retention import RetentionOrchestrator
from services.hard_cutoff import HardCutoffEnforcer
from services.ingest import ProbeRecorder


def get_recorder(request: Request, db: Database = Depends(get_database)) -> ProbeRecorder:
    recorder = getattr(request.app.state, "recorder", None)
    if recorder is None or recorder.db is not db:
        recorder = ProbeRecorder(db)
        request.app.state.recorder = recorder
    return recorder


def get_orchestrator(
    request: Request, db: Database = Depends(get_database)
) -> RetentionOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None or orchestrator.db is not db:
        orchestrator = RetentionOrchestrator(db)
        request.app.state.orchestrator = orchestrator
    return orchestrator


def get_cutoff(
    orchestrator: RetentionOrchestrator = Depends(get_orchestrator),
) -> HardCutoffEnforcer:
    return orchestrator.cutoff
