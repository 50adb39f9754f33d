from __future__ import annotations

import json
from pathlib import Path

import typer
import uvicorn

from aidjobs.api.app import create_app
from aidjobs.config import check_backend_target, get_settings
from aidjobs.core.drafts import DraftPersistenceWorkflow
from aidjobs.core.generation import JobDescriptionGenerator, validate_generation_input
from aidjobs.core.jd_input import detect_jd_input, follow_up_questions, is_detection_reliable
from aidjobs.core.progress import ProgressFlagSynchronizer
from aidjobs.core.sections import DraftSectionModel, manual_template
from aidjobs.db.init import init_database
from aidjobs.db.repositories import Repository
from aidjobs.db.session import SessionLocal
from aidjobs.errors import AssistantUnavailableError, InputValidationError, UnknownProgressFlagError
from aidjobs.logging_config import configure_logging

app = typer.Typer(help="AidJobs CLI")
user_app = typer.Typer(help="User records")
progress_app = typer.Typer(help="Per-user milestone flags")
draft_app = typer.Typer(help="Job-description drafts")
jobs_app = typer.Typer(help="Published jobs")
config_app = typer.Typer(help="Configuration checks")

app.add_typer(user_app, name="user")
app.add_typer(progress_app, name="progress")
app.add_typer(draft_app, name="draft")
app.add_typer(jobs_app, name="jobs")
app.add_typer(config_app, name="config")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


def _echo(payload: object) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _fail(message: str) -> None:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


def _parse_flag(raw: str) -> tuple[str, bool]:
    name, sep, value = raw.partition("=")
    if not sep or value.strip().lower() not in {"true", "false", "1", "0", "yes", "no"}:
        raise typer.BadParameter(f"expected NAME=true|false, got {raw!r}")
    return name.strip(), value.strip().lower() in {"true", "1", "yes"}


@app.command("init")
def init_cmd() -> None:
    """Initialize the data directory and database tables."""
    configure_logging()
    result = init_database()
    _echo({"ok": True, **result})


@user_app.command("register")
def user_register(
    user_id: str = typer.Option(..., "--user-id"),
    email: str = typer.Option("", "--email"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        repo = Repository(db)
        user = repo.create_user(user_id, email=email)
        created = ProgressFlagSynchronizer(repo, user.id).ensure_record()
        _echo({"id": user.id, "email": user.email, "progress_record": created})


@progress_app.command("show")
def progress_show(user_id: str = typer.Option(..., "--user-id")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        sync = ProgressFlagSynchronizer(Repository(db), user_id)
        _echo({"user_id": user_id, "flags": sync.fetch().model_dump()})


@progress_app.command("set")
def progress_set(
    user_id: str = typer.Option(..., "--user-id"),
    flags: list[str] = typer.Option(..., "--flag", help="NAME=true|false, repeatable"),
) -> None:
    configure_logging()
    ensure_initialized()
    updates = dict(_parse_flag(raw) for raw in flags)
    with SessionLocal() as db:
        sync = ProgressFlagSynchronizer(Repository(db), user_id)
        try:
            ok = sync.update_flags(updates)
        except UnknownProgressFlagError as exc:
            _fail(str(exc))
        if not ok:
            _fail("Failed to update progress flags")
        _echo({"user_id": user_id, "flags": sync.fetch().model_dump()})


@progress_app.command("reset")
def progress_reset(user_id: str = typer.Option(..., "--user-id")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        sync = ProgressFlagSynchronizer(Repository(db), user_id)
        if not sync.reset_all():
            _fail("Failed to reset progress flags")
        _echo({"user_id": user_id, "flags": sync.flags.model_dump()})


@draft_app.command("detect")
def draft_detect(message: str = typer.Option(..., "--message")) -> None:
    detection = detect_jd_input(message)
    _echo(
        {
            **detection.to_dict(),
            "reliable": is_detection_reliable(detection),
            "follow_up_questions": follow_up_questions(detection),
        }
    )


@draft_app.command("parse")
def draft_parse(file: Path = typer.Option(..., "--file", exists=True, readable=True)) -> None:
    model = DraftSectionModel.from_text(file.read_text(encoding="utf-8"))
    _echo({"sections": model.to_payload(), "stats": model.stats()})


@draft_app.command("template")
def draft_template() -> None:
    typer.echo(manual_template())


@draft_app.command("generate")
def draft_generate(
    user_id: str = typer.Option(..., "--user-id"),
    brief: str = typer.Option("", "--brief"),
    org_url: str = typer.Option("", "--org-url"),
    file: Path | None = typer.Option(None, "--file", exists=True, readable=True),
) -> None:
    configure_logging()
    ensure_initialized()
    uploaded_text = file.read_text(encoding="utf-8") if file else ""
    try:
        generation_input = validate_generation_input(brief=brief, org_url=org_url, uploaded_text=uploaded_text)
    except InputValidationError as exc:
        _fail(f"Invalid input: {exc}")

    with SessionLocal() as db:
        repo = Repository(db)
        generator = JobDescriptionGenerator(repo, ProgressFlagSynchronizer(repo, user_id))
        try:
            result = generator.generate(generation_input)
        except AssistantUnavailableError as exc:
            typer.echo(str(exc), err=True)
            typer.echo("Continue manually from this template:", err=True)
            typer.echo(manual_template())
            raise typer.Exit(code=2)
        typer.echo(result.sections.compile())


@draft_app.command("save")
def draft_save(
    user_id: str = typer.Option(..., "--user-id"),
    file: Path = typer.Option(..., "--file", exists=True, readable=True),
    draft_id: str | None = typer.Option(None, "--draft-id"),
) -> None:
    configure_logging()
    ensure_initialized()
    sections = DraftSectionModel.from_text(file.read_text(encoding="utf-8"), keep_text_order=True)
    with SessionLocal() as db:
        repo = Repository(db)
        workflow = DraftPersistenceWorkflow(repo, user_id, sections, draft_id=draft_id)
        result = workflow.save()
        if not result.ok:
            _fail(result.message)
        _echo({"draft_id": result.draft_id, "state": workflow.state, "title": workflow.derive_title()})


@draft_app.command("publish")
def draft_publish(
    user_id: str = typer.Option(..., "--user-id"),
    file: Path | None = typer.Option(None, "--file", exists=True, readable=True),
    draft_id: str | None = typer.Option(None, "--draft-id"),
) -> None:
    configure_logging()
    ensure_initialized()
    if file is None and draft_id is None:
        _fail("Provide --file, --draft-id or both")

    with SessionLocal() as db:
        repo = Repository(db)
        progress = ProgressFlagSynchronizer(repo, user_id)
        if file is None:
            workflow = DraftPersistenceWorkflow.load(repo, user_id, draft_id, progress=progress)
            if workflow is None:
                _fail("Draft not found")
        else:
            sections = DraftSectionModel.from_text(file.read_text(encoding="utf-8"), keep_text_order=True)
            workflow = DraftPersistenceWorkflow(repo, user_id, sections, progress=progress, draft_id=draft_id)

        result = workflow.publish()
        if not result.ok:
            _fail(result.message)
        _echo({"draft_id": result.draft_id, "job_id": result.job_id, "state": workflow.state})


@draft_app.command("list")
def draft_list(user_id: str = typer.Option(..., "--user-id"), limit: int = typer.Option(20, "--limit")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        drafts = Repository(db).list_drafts(user_id, limit=limit)
        _echo(
            [
                {
                    "id": draft.id,
                    "title": draft.title,
                    "draft_status": draft.draft_status,
                    "last_edited_at": draft.last_edited_at.isoformat() if draft.last_edited_at else None,
                }
                for draft in drafts
            ]
        )


@jobs_app.command("list")
def jobs_list(user_id: str = typer.Option(..., "--user-id"), limit: int = typer.Option(20, "--limit")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        jobs = Repository(db).list_published_jobs(user_id, limit=limit)
        _echo(
            [
                {
                    "id": job.id,
                    "title": job.title,
                    "organization_name": job.organization_name,
                    "status": job.status,
                    "source_draft_id": job.source_draft_id,
                    "published_at": job.published_at.isoformat() if job.published_at else None,
                }
                for job in jobs
            ]
        )


@config_app.command("check")
def config_check() -> None:
    configure_logging()
    settings = get_settings()
    matches = check_backend_target(settings)
    _echo(
        {
            "app_env": settings.app_env,
            "backend_target_matches": matches,
            "writer_models": settings.writer_model_chain,
            "local_llm_enabled": settings.local_llm_enabled,
        }
    )
    if matches is False:
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(app_instance, host=host or settings.app_host, port=port or settings.app_port)
