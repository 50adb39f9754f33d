from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session

from aidjobs.api.deps import get_current_user_id, get_db, get_llm_router
from aidjobs.api.schemas import (
    ConfigCheckResponse,
    DetectRequest,
    DetectResponse,
    DraftResponse,
    DraftSaveRequest,
    DraftSummary,
    GenerateRequest,
    GenerateResponse,
    JobResponse,
    NoticePayload,
    ParseRequest,
    ProgressResponse,
    ProgressUpdateRequest,
    RefineRequest,
    RefineResponse,
    SectionPayload,
    SectionsRequest,
    SectionsResponse,
    UserCreateRequest,
    UserResponse,
)
from aidjobs.config import get_settings
from aidjobs.core.drafts import DraftPersistenceWorkflow, PersistenceResult
from aidjobs.core.generation import JobDescriptionGenerator, validate_generation_input
from aidjobs.core.jd_input import (
    describe_detection,
    detect_jd_input,
    follow_up_questions,
    is_detection_reliable,
)
from aidjobs.core.progress import ProgressFlagSynchronizer
from aidjobs.core.sections import DraftSectionModel, manual_template
from aidjobs.db.repositories import Repository
from aidjobs.errors import (
    AssistantUnavailableError,
    DuplicateSectionError,
    InputValidationError,
    UnknownProgressFlagError,
)
from aidjobs.llm.router import LLMRouter

router = APIRouter(prefix="/api", tags=["api"])

_FAILURE_STATUS = {"busy": 409, "not_found": 404, "gateway": 502}


def _sections_payload(model: DraftSectionModel) -> list[SectionPayload]:
    return [SectionPayload.model_validate(item) for item in model.to_payload()]


def _sections_response(model: DraftSectionModel) -> SectionsResponse:
    return SectionsResponse(text=model.compile(), sections=_sections_payload(model), stats=model.stats())


def _sections_from_request(payload: SectionsRequest) -> DraftSectionModel:
    if payload.sections is not None:
        try:
            return DraftSectionModel.from_payload([section.model_dump() for section in payload.sections])
        except DuplicateSectionError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
    if payload.text is not None:
        return DraftSectionModel.from_text(payload.text)
    raise HTTPException(status_code=422, detail="Provide either text or sections")


def _draft_response(workflow: DraftPersistenceWorkflow) -> DraftResponse:
    return DraftResponse(
        draft_id=workflow.draft_id,
        job_id=workflow.job_id,
        state=workflow.state,
        title=workflow.derive_title(),
        text=workflow.sections.compile(),
        sections=_sections_payload(workflow.sections),
        notices=[NoticePayload(level=notice.level, message=notice.message) for notice in workflow.notices],
    )


def _raise_for_failure(result: PersistenceResult) -> None:
    if result.ok:
        return
    status_code = _FAILURE_STATUS.get(result.failure or "gateway", 502)
    raise HTTPException(status_code=status_code, detail=result.message)


@router.post("/users", response_model=UserResponse)
def register_user(
    payload: UserCreateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> UserResponse:
    repo = Repository(db)
    user = repo.create_user(user_id, email=payload.email)
    ProgressFlagSynchronizer(repo, user.id).ensure_record()
    return UserResponse(id=user.id, email=user.email)


@router.get("/progress", response_model=ProgressResponse)
def get_progress(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)) -> ProgressResponse:
    sync = ProgressFlagSynchronizer(Repository(db), user_id)
    flags = sync.fetch()
    return ProgressResponse(user_id=user_id, flags=flags.model_dump())


@router.patch("/progress", response_model=ProgressResponse)
def update_progress(
    payload: ProgressUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> ProgressResponse:
    sync = ProgressFlagSynchronizer(Repository(db), user_id)
    try:
        updated = sync.update_flags(payload.flags)
    except UnknownProgressFlagError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not updated:
        raise HTTPException(status_code=502, detail="Failed to update progress flags")
    return ProgressResponse(user_id=user_id, flags=sync.fetch().model_dump())


@router.post("/progress/reset", response_model=ProgressResponse)
def reset_progress(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)) -> ProgressResponse:
    sync = ProgressFlagSynchronizer(Repository(db), user_id)
    if not sync.reset_all():
        raise HTTPException(status_code=502, detail="Failed to reset progress flags")
    return ProgressResponse(user_id=user_id, flags=sync.flags.model_dump())


@router.post("/jd/detect", response_model=DetectResponse)
def detect_input(payload: DetectRequest) -> DetectResponse:
    detection = detect_jd_input(payload.message)
    return DetectResponse(
        **detection.to_dict(),
        reliable=is_detection_reliable(detection),
        description=describe_detection(detection),
        follow_up_questions=follow_up_questions(detection),
    )


@router.post("/drafts/parse", response_model=SectionsResponse)
def parse_draft(payload: ParseRequest) -> SectionsResponse:
    return _sections_response(DraftSectionModel.from_text(payload.text))


@router.get("/drafts/template", response_model=SectionsResponse)
def draft_template() -> SectionsResponse:
    return _sections_response(DraftSectionModel.from_text(manual_template()))


@router.post("/drafts/generate", response_model=GenerateResponse)
def generate_draft(
    payload: GenerateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    llm_router: LLMRouter = Depends(get_llm_router),
):
    try:
        generation_input = validate_generation_input(
            brief=payload.brief, org_url=payload.org_url, uploaded_text=payload.uploaded_text
        )
    except InputValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    repo = Repository(db)
    generator = JobDescriptionGenerator(repo, ProgressFlagSynchronizer(repo, user_id), router=llm_router)
    try:
        result = generator.generate(generation_input)
    except AssistantUnavailableError as exc:
        return JSONResponse(
            status_code=503,
            content={
                "detail": str(exc),
                "failures": exc.failures,
                "manual_template": manual_template(),
            },
        )

    return GenerateResponse(
        text=result.sections.compile(),
        sections=_sections_payload(result.sections),
        stats=result.sections.stats(),
        model=result.model,
        method=result.method,
    )


@router.post("/drafts", response_model=DraftResponse)
def save_draft(
    payload: DraftSaveRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> DraftResponse:
    repo = Repository(db)
    workflow = DraftPersistenceWorkflow(
        repo,
        user_id,
        _sections_from_request(payload),
        progress=ProgressFlagSynchronizer(repo, user_id),
        draft_id=payload.draft_id,
    )
    _raise_for_failure(workflow.save())
    return _draft_response(workflow)


@router.get("/drafts", response_model=list[DraftSummary])
def list_drafts(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)) -> list[DraftSummary]:
    rows = Repository(db).list_drafts(user_id)
    return [
        DraftSummary(id=row.id, title=row.title, draft_status=row.draft_status, last_edited_at=row.last_edited_at)
        for row in rows
    ]


@router.get("/drafts/{draft_id}", response_model=DraftResponse)
def load_draft(
    draft_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> DraftResponse:
    workflow = DraftPersistenceWorkflow.load(Repository(db), user_id, draft_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail="Draft not found")
    return _draft_response(workflow)


@router.post("/drafts/publish", response_model=DraftResponse)
def publish_draft(
    payload: DraftSaveRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> DraftResponse:
    repo = Repository(db)
    progress = ProgressFlagSynchronizer(repo, user_id)

    if payload.draft_id and repo.get_draft(payload.draft_id, user_id=user_id) is None:
        raise HTTPException(status_code=404, detail="Draft not found")

    if payload.draft_id and payload.sections is None and payload.text is None:
        workflow = DraftPersistenceWorkflow.load(repo, user_id, payload.draft_id, progress=progress)
    else:
        workflow = DraftPersistenceWorkflow(
            repo,
            user_id,
            _sections_from_request(payload),
            progress=progress,
            draft_id=payload.draft_id,
        )

    _raise_for_failure(workflow.publish())
    return _draft_response(workflow)


@router.post("/sections/refine", response_model=RefineResponse)
def refine_section(
    payload: RefineRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    llm_router: LLMRouter = Depends(get_llm_router),
) -> RefineResponse:
    repo = Repository(db)
    generator = JobDescriptionGenerator(repo, ProgressFlagSynchronizer(repo, user_id), router=llm_router)
    try:
        content = generator.refine_section(
            title=payload.title, content=payload.content, instructions=payload.instructions
        )
    except AssistantUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return RefineResponse(content=content)


@router.get("/jobs", response_model=list[JobResponse])
def list_jobs(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)) -> list[JobResponse]:
    rows = Repository(db).list_published_jobs(user_id)
    return [
        JobResponse(
            id=row.id,
            title=row.title,
            organization_name=row.organization_name,
            status=row.status,
            source_draft_id=row.source_draft_id,
            published_at=row.published_at,
            generation_metadata=row.generation_metadata or {},
        )
        for row in rows
    ]


def _mask(url: str) -> str:
    if not url:
        return ""
    return make_url(url).render_as_string(hide_password=True)


@router.get("/debug/config", response_model=ConfigCheckResponse)
def debug_config() -> ConfigCheckResponse:
    settings = get_settings()
    return ConfigCheckResponse(
        app_env=settings.app_env,
        database_url=_mask(settings.database_url),
        expected_database_url=_mask(settings.expected_database_url),
        backend_target_matches=settings.backend_target_matches(),
        writer_models=settings.writer_model_chain,
        local_llm_enabled=settings.local_llm_enabled,
    )
