"""FastAPI entrypoint wiring the application workflow together."""
from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import Settings, get_settings
from portal.database import init_models
from portal.dependencies import Actor, candidate_actor, db_session
from portal.schemas import (
    AnswerIn,
    CloseResultOut,
    CompletenessOut,
    CoverLetterIn,
    EligibilityOut,
    FileFailureOut,
    IngestReportOut,
    QuickApplyOut,
    StepResultOut,
    UploadedDocumentOut,
    WizardStateOut,
)
from portal.storage import DocumentStorage
from workflow.applied_cache import AppliedOpportunityCache
from workflow.eligibility import (
    can_apply,
    days_until_deadline,
    find_live_application,
    is_deadline_urgent,
    load_opportunity,
    resolve_student,
)
from workflow.errors import Outcome, OutcomeKind, WorkflowError
from workflow.notifier import LoggingNotifier, Notifier
from workflow.profile import calculate_profile_strength, profile_completion_issues
from workflow.quick_apply import QuickApplyService, QuickApplyStatus
from workflow.registry import WizardRegistry
from workflow.submission import SubmissionService
from workflow.uploads import FileFailure, IncomingFile, UploadedDocument
from workflow.validators import ValidationResult
from workflow.wizard import ApplicationWizard, open_wizard

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    OutcomeKind.VALIDATION: 422,
    OutcomeKind.UPLOAD: 502,
    OutcomeKind.DUPLICATE: 409,
    OutcomeKind.NETWORK: 502,
    OutcomeKind.NOT_ELIGIBLE: 403,
}


def _outcome_response(outcome: Outcome) -> JSONResponse:
    status_code = 200 if outcome.ok else STATUS_BY_KIND.get(outcome.kind, 400)
    return JSONResponse(status_code=status_code, content=outcome.model_dump(mode="json"))


def _document_out(document: UploadedDocument) -> UploadedDocumentOut:
    return UploadedDocumentOut(name=document.name, path=document.path, url=document.url, size=document.size)


def _failure_out(failure: FileFailure) -> FileFailureOut:
    return FileFailureOut(filename=failure.filename, kind=failure.kind.value, message=failure.message)


def _wizard_state(session_id: str, wizard: ApplicationWizard) -> WizardStateOut:
    return WizardStateOut(
        session_id=session_id,
        opportunity_id=wizard.opportunity_id,
        step=wizard.step.value,
        steps=[step.value for step in wizard.steps],
        status=wizard.status.value,
        cover_letter=wizard.cover_letter,
        answers=dict(wizard.answers),
        documents=[_document_out(doc) for doc in wizard.documents],
        questions=list(wizard.questions),
        dirty=wizard.is_dirty,
    )


def create_app(
    settings: Settings | None = None,
    *,
    storage: DocumentStorage | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    storage = storage or DocumentStorage(
        settings.document_storage_directory,
        settings.document_bucket,
        settings.document_public_base_url,
    )
    notifier = notifier or LoggingNotifier()
    submission = SubmissionService(settings)
    registry = WizardRegistry()
    caches: dict[str, AppliedOpportunityCache] = {}

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # pragma: no cover - framework hook
        logger.info("Initialising record store at %s", settings.database_url)
        await init_models()
        yield

    app = FastAPI(title="Opportunity Application Workflow", version="0.1.0", lifespan=lifespan)
    app.state.registry = registry
    app.state.caches = caches

    def cache_for(actor: Actor) -> AppliedOpportunityCache:
        return caches.setdefault(actor.actor_id, AppliedOpportunityCache())

    def wizard_for(session_id: str, actor: Actor) -> ApplicationWizard:
        try:
            return registry.get(session_id, actor.actor_id)
        except KeyError:
            raise HTTPException(status_code=404, detail="Application session not found") from None

    def step_result(session_id: str, wizard: ApplicationWizard, check: ValidationResult) -> StepResultOut:
        return StepResultOut(valid=check.valid, error=check.error, state=_wizard_state(session_id, wizard))

    @app.exception_handler(WorkflowError)
    async def _workflow_error(request: Request, exc: WorkflowError) -> JSONResponse:
        return _outcome_response(exc.to_outcome())

    @app.get("/health")
    async def health() -> dict[str, object]:
        return {"status": "ok", "open_wizards": len(registry)}

    @app.get("/opportunities/{opportunity_id}/eligibility", response_model=EligibilityOut)
    async def eligibility(
        opportunity_id: str,
        actor: Actor = Depends(candidate_actor),
        session: AsyncSession = Depends(db_session),
    ) -> EligibilityOut:
        profile = await resolve_student(session, actor.actor_id)
        await cache_for(actor).reconcile(session, profile.id)
        opportunity = await load_opportunity(session, opportunity_id)
        existing = await find_live_application(session, student_id=profile.id, opportunity_id=opportunity_id)
        result = can_apply(opportunity, existing)
        remaining = days_until_deadline(opportunity.application_deadline)
        return EligibilityOut(
            opportunity_id=opportunity_id,
            can_apply=result.can_apply,
            reason=result.reason,
            days_until_deadline=None if math.isinf(remaining) else remaining,
            deadline_urgent=is_deadline_urgent(opportunity.application_deadline),
        )

    @app.post("/opportunities/{opportunity_id}/wizard", response_model=WizardStateOut, status_code=201)
    async def start_wizard(
        opportunity_id: str,
        actor: Actor = Depends(candidate_actor),
        session: AsyncSession = Depends(db_session),
    ) -> WizardStateOut:
        wizard = await open_wizard(
            session,
            actor_id=actor.actor_id,
            opportunity_id=opportunity_id,
            storage=storage,
            submission=submission,
            notifier=notifier,
            settings=settings,
            cache=cache_for(actor),
        )
        session_id = await registry.add(wizard)
        return _wizard_state(session_id, wizard)

    @app.get("/wizards/{session_id}", response_model=WizardStateOut)
    async def wizard_state(session_id: str, actor: Actor = Depends(candidate_actor)) -> WizardStateOut:
        return _wizard_state(session_id, wizard_for(session_id, actor))

    @app.put("/wizards/{session_id}/cover-letter", response_model=WizardStateOut)
    async def update_cover_letter(
        session_id: str, payload: CoverLetterIn, actor: Actor = Depends(candidate_actor)
    ) -> WizardStateOut:
        wizard = wizard_for(session_id, actor)
        wizard.set_cover_letter(payload.text)
        return _wizard_state(session_id, wizard)

    @app.put("/wizards/{session_id}/answers/{question_id}", response_model=WizardStateOut)
    async def update_answer(
        session_id: str, question_id: str, payload: AnswerIn, actor: Actor = Depends(candidate_actor)
    ) -> WizardStateOut:
        wizard = wizard_for(session_id, actor)
        wizard.answer(question_id, payload.answer)
        return _wizard_state(session_id, wizard)

    @app.post("/wizards/{session_id}/documents", response_model=IngestReportOut)
    async def upload_documents(
        session_id: str,
        files: list[UploadFile] = File(...),
        actor: Actor = Depends(candidate_actor),
    ) -> IngestReportOut:
        wizard = wizard_for(session_id, actor)
        incoming = [
            IncomingFile(filename=upload.filename or "document", data=await upload.read(), content_type=upload.content_type)
            for upload in files
        ]
        report = await wizard.ingest(incoming)
        return IngestReportOut(
            accepted=[_document_out(doc) for doc in report.accepted],
            failures=[_failure_out(failure) for failure in report.failures],
            capacity_rejected=report.capacity_rejected,
        )

    @app.delete("/wizards/{session_id}/documents")
    async def remove_document(session_id: str, path: str, actor: Actor = Depends(candidate_actor)) -> JSONResponse:
        wizard = wizard_for(session_id, actor)
        return _outcome_response(await wizard.remove_document(path))

    @app.post("/wizards/{session_id}/next", response_model=StepResultOut)
    async def next_step(session_id: str, actor: Actor = Depends(candidate_actor)) -> StepResultOut:
        wizard = wizard_for(session_id, actor)
        return step_result(session_id, wizard, wizard.next())

    @app.post("/wizards/{session_id}/back", response_model=StepResultOut)
    async def previous_step(session_id: str, actor: Actor = Depends(candidate_actor)) -> StepResultOut:
        wizard = wizard_for(session_id, actor)
        return step_result(session_id, wizard, wizard.back())

    @app.post("/wizards/{session_id}/submit")
    async def submit_wizard(
        session_id: str,
        actor: Actor = Depends(candidate_actor),
        session: AsyncSession = Depends(db_session),
    ) -> JSONResponse:
        wizard = wizard_for(session_id, actor)
        outcome = await wizard.submit(session)
        if outcome.ok:
            registry.discard(session_id)
        return _outcome_response(outcome)

    @app.delete("/wizards/{session_id}", response_model=CloseResultOut)
    async def close_wizard(
        session_id: str, confirm: bool = False, actor: Actor = Depends(candidate_actor)
    ) -> CloseResultOut:
        wizard = wizard_for(session_id, actor)
        result = await wizard.close(confirmed=confirm)
        if result.closed:
            registry.discard(session_id)
        return CloseResultOut(
            closed=result.closed,
            requires_confirmation=result.requires_confirmation,
            cleanup_failures=[_failure_out(failure) for failure in result.cleanup_failures],
        )

    @app.post("/opportunities/{opportunity_id}/quick-apply", response_model=QuickApplyOut)
    async def quick_apply(
        opportunity_id: str,
        actor: Actor = Depends(candidate_actor),
        session: AsyncSession = Depends(db_session),
    ) -> JSONResponse:
        service = QuickApplyService(settings, submission, notifier, cache=cache_for(actor))
        result = await service.apply(session, actor_id=actor.actor_id, opportunity_id=opportunity_id)
        body = QuickApplyOut(
            status=result.status.value,
            ok=result.outcome.ok,
            kind=result.outcome.kind.value if result.outcome.kind else None,
            message=result.outcome.message,
            checklist=result.checklist,
            application_id=result.application_id,
        )
        if result.status in (QuickApplyStatus.SUBMITTED, QuickApplyStatus.ALREADY_APPLIED):
            status_code = 200
        else:
            status_code = STATUS_BY_KIND.get(result.outcome.kind, 400)
        return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))

    @app.get("/profile/completeness", response_model=CompletenessOut)
    async def profile_completeness(
        actor: Actor = Depends(candidate_actor),
        session: AsyncSession = Depends(db_session),
    ) -> CompletenessOut:
        profile = await resolve_student(session, actor.actor_id)
        issues = profile_completion_issues(
            profile,
            min_skills=settings.profile_min_skills,
            min_strength=settings.quick_apply_min_profile_strength,
        )
        return CompletenessOut(
            student_id=profile.id,
            profile_strength=calculate_profile_strength(profile, min_skills=settings.profile_min_skills),
            issues=issues,
            quick_apply_ready=not issues,
        )

    return app


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


configure_logging(get_settings().log_level)
app = create_app()


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run("portal.main:app", host="0.0.0.0", port=8000)
