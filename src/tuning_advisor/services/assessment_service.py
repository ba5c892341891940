"""
tuning_advisor.services.assessment_service

Assessment lifecycle service (transaction + persistence owner).

Responsibilities:
- Create runs and initialise pipeline state from a stored assessment.
- Execute the LangGraph pipeline with a durable checkpoint after every step.
- Persist artifacts, audit events and the assessment verdict.
- Pause runs for reviewer sign-off and resume them with the decision.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tuning_advisor.db.models import ArtifactType, AssessmentStatus, RunStatus
from tuning_advisor.db.repositories.artifacts import ArtifactRepo
from tuning_advisor.db.repositories.assessments import AssessmentRepo
from tuning_advisor.db.repositories.audit import PIPELINE_ACTOR, AuditRepo
from tuning_advisor.db.repositories.runs import RunRepo
from tuning_advisor.observability.logging import get_logger
from tuning_advisor.orchestrator.graph import build_graph
from tuning_advisor.orchestrator.interrupts import ReviewRequired
from tuning_advisor.orchestrator.nodes import OUTCOME_REJECTED
from tuning_advisor.orchestrator.state import AssessmentState
from tuning_advisor.settings import Settings

log = get_logger(__name__)

CONTENT_TYPES: dict[ArtifactType, str] = {
    ArtifactType.tuned_properties: "text/x-java-properties",
    ArtifactType.tuned_yaml: "application/yaml",
    ArtifactType.postgresql_conf: "text/plain",
    ArtifactType.jvm_options: "text/plain",
    ArtifactType.advisory_report: "text/markdown",
}


class NotFoundError(LookupError):
    pass


class RunStateError(Exception):
    """The run is not in a state that allows the requested transition."""


class AssessmentService:
    def __init__(self, *, session: AsyncSession, settings: Settings) -> None:
        self._session = session
        self._settings = settings

        self._assessments = AssessmentRepo(session)
        self._runs = RunRepo(session)
        self._audit = AuditRepo(session)
        self._artifacts = ArtifactRepo(session)

    async def start(self, *, assessment_id: uuid.UUID, actor: str) -> uuid.UUID:
        assessment = await self._assessments.get(assessment_id)
        if assessment is None:
            raise NotFoundError("assessment not found")

        initial_state: AssessmentState = {
            "assessment_id": str(assessment.id),
            "sources": list(assessment.sources),
            "hardware": dict(assessment.hardware),
            "environment": assessment.environment,
            "profile_name": assessment.profile_name,
            "disabled_rules": list(assessment.disabled_rules or []),
            "review_mode": self._settings.review_mode,
            "review": {},
            "audit_log": [],
        }

        run = await self._runs.create(assessment_id=assessment.id, initial_state=dict(initial_state))
        await self._assessments.set_status(assessment.id, AssessmentStatus.in_progress)
        await self._audit.add(
            assessment_id=assessment.id,
            run_id=run.id,
            actor=actor,
            event_type="RUN_CREATED",
            details={"review_mode": self._settings.review_mode},
        )
        await self._session.commit()
        return run.id

    async def execute(self, *, run_id: uuid.UUID, actor: str) -> dict[str, Any]:
        run = await self._runs.get(run_id)
        if run is None:
            raise NotFoundError("run not found")
        if run.status != RunStatus.running:
            raise RunStateError(f"run is {run.status.value}")
        assessment_id = run.assessment_id

        graph = build_graph()
        state: AssessmentState = dict(run.state or {})  # type: ignore[assignment]
        state["run_id"] = str(run_id)

        try:
            final_state = await self._execute_with_checkpoints(
                graph=graph, assessment_id=assessment_id, run_id=run_id, state=state
            )
            outcome = await self._persist_state_success(
                assessment_id=assessment_id, run_id=run_id, actor=actor, state=final_state
            )
            await self._session.commit()
            log.info("run_finished", run_id=str(run_id), outcome=outcome)
            return {
                "status": outcome.value,
                "run_id": str(run_id),
                "assessment_id": str(assessment_id),
                "verdict": final_state.get("verdict"),
                "summary": final_state.get("summary", {}),
            }
        except ReviewRequired as rr:
            refreshed = await self._runs.get(run_id)
            snapshot = dict(refreshed.state if refreshed and refreshed.state else state)
            await self._runs.set_state(
                run_id=run_id,
                status=RunStatus.awaiting_review,
                state=snapshot,
                review_reason=rr.reason,
                review_payload=rr.payload,
            )
            await self._assessments.set_status(assessment_id, AssessmentStatus.awaiting_review)
            await self._assessments.set_result(
                assessment_id=assessment_id,
                verdict=rr.payload.get("verdict"),
                summary=rr.payload.get("summary", {}),
            )
            await self._audit.add(
                assessment_id=assessment_id,
                run_id=run_id,
                actor=PIPELINE_ACTOR,
                event_type="REVIEW_REQUIRED",
                details={"reason": rr.reason, "summary": rr.payload.get("summary", {})},
            )
            await self._session.commit()
            log.info("run_awaiting_review", run_id=str(run_id), reason=rr.reason)
            return {
                "status": RunStatus.awaiting_review.value,
                "run_id": str(run_id),
                "assessment_id": str(assessment_id),
                "reason": rr.reason,
                "review": rr.payload,
            }
        except Exception as e:
            # Persist failure metadata for post-mortems / retries.
            await self._session.rollback()
            await self._runs.set_state(run_id=run_id, status=RunStatus.failed, error=str(e))
            await self._assessments.set_status(assessment_id, AssessmentStatus.failed)
            await self._audit.add(
                assessment_id=assessment_id,
                run_id=run_id,
                actor=PIPELINE_ACTOR,
                event_type="RUN_FAILED",
                details={"error": str(e), "error_type": type(e).__name__},
            )
            await self._session.commit()
            log.warning("run_failed", run_id=str(run_id), error=str(e))
            raise

    async def resume(
        self,
        *,
        run_id: uuid.UUID,
        actor: str,
        decision: dict[str, Any],
    ) -> dict[str, Any]:
        run = await self._runs.get(run_id)
        if run is None:
            raise NotFoundError("run not found")
        if run.status != RunStatus.awaiting_review:
            raise RunStateError(f"run is {run.status.value}, not awaiting review")

        # Decisions live under `state["review"]["decision"]` where the gate node reads them.
        state: AssessmentState = dict(run.state or {})  # type: ignore[assignment]
        review = dict(state.get("review", {}))
        review.update({"decision": decision, "reviewer": actor})
        state["review"] = review

        await self._runs.set_state(
            run_id=run_id, status=RunStatus.running, state=dict(state), clear_review=True
        )
        await self._assessments.set_status(run.assessment_id, AssessmentStatus.in_progress)
        await self._audit.add(
            assessment_id=run.assessment_id,
            run_id=run.id,
            actor=actor,
            event_type="RUN_RESUMED",
            details={"decision": decision},
        )
        await self._session.commit()
        return await self.execute(run_id=run_id, actor=actor)

    async def _persist_state_success(
        self,
        *,
        assessment_id: uuid.UUID,
        run_id: uuid.UUID,
        actor: str,
        state: AssessmentState,
    ) -> RunStatus:
        rejected = state.get("outcome") == OUTCOME_REJECTED
        run_status = RunStatus.rejected if rejected else RunStatus.completed
        await self._runs.set_state(run_id=run_id, status=run_status, state=dict(state))
        await self._assessments.set_status(
            assessment_id,
            AssessmentStatus.rejected if rejected else AssessmentStatus.completed,
        )
        await self._assessments.set_result(
            assessment_id=assessment_id,
            verdict=state.get("verdict"),
            summary=dict(state.get("summary", {})),
        )
        if not rejected:
            await self._persist_artifacts(assessment_id=assessment_id, state=state)
        await self._audit.add(
            assessment_id=assessment_id,
            run_id=run_id,
            actor=actor,
            event_type="RUN_COMPLETED" if not rejected else "RUN_REJECTED",
            details={"verdict": state.get("verdict")},
        )
        return run_status

    async def _persist_artifacts(self, *, assessment_id: uuid.UUID, state: AssessmentState) -> None:
        for raw_type, content in (state.get("artifacts") or {}).items():
            art_type = ArtifactType(raw_type)
            await self._artifacts.upsert(
                assessment_id=assessment_id,
                type=art_type,
                content=content,
                content_type=CONTENT_TYPES[art_type],
            )

    async def _execute_with_checkpoints(
        self,
        *,
        graph: Any,
        assessment_id: uuid.UUID,
        run_id: uuid.UUID,
        state: AssessmentState,
    ) -> AssessmentState:
        """
        Persists the run state after every step (LangGraph stream_mode='values'
        yields the full state each time) and appends new audit entries as they appear.
        """

        last_state: AssessmentState = dict(state)  # type: ignore[assignment]
        persisted_audit_idx = len(state.get("audit_log", []))

        async for snapshot in graph.astream(last_state, stream_mode="values"):
            if not isinstance(snapshot, dict) or not snapshot:
                continue
            last_state = snapshot  # type: ignore[assignment]

            await self._runs.set_state(run_id=run_id, status=RunStatus.running, state=dict(last_state))

            entries = last_state.get("audit_log", [])
            await self._audit.add_pipeline_entries(
                assessment_id=assessment_id,
                run_id=run_id,
                stage=last_state.get("stage"),
                entries=entries[persisted_audit_idx:],
            )
            persisted_audit_idx = len(entries)

            await self._session.commit()

        return last_state


# --- Module Notes -----------------------------------------------------------
# This service is the transaction boundary: it decides when checkpoints are committed and
# how pipeline state maps onto Assessment/AssessmentRun/Artifact/AuditEvent rows.
