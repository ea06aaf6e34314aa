from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import typer
import uvicorn

from lexdraft.api.app import create_app
from lexdraft.config import get_settings
from lexdraft.core.autosave import Autosaver
from lexdraft.core.lifecycle import DraftLifecycleManager, serialize_draft, serialize_version
from lexdraft.core.polling import wait_for_generation
from lexdraft.core.services import CaseServices, service_scope
from lexdraft.db.init import init_database
from lexdraft.errors import LexdraftError, NotFoundError, PollTimeout
from lexdraft.logging_config import configure_logging
from lexdraft.types import DOCUMENT_TYPES, DraftEdit

app = typer.Typer(help="Lexdraft CLI")
client_app = typer.Typer(help="Manage clients and their evidence")
draft_app = typer.Typer(help="Generate, edit and version drafts")

app.add_typer(client_app, name="client")
app.add_typer(draft_app, name="draft")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


def _echo(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _fail(exc: Exception) -> typer.Exit:
    typer.echo(json.dumps({"ok": False, "error": str(exc)}, indent=2), err=True)
    return typer.Exit(code=1)


def _draft_or_fail(services: CaseServices, draft_id: str) -> None:
    if services.repo.get_draft(draft_id) is None:
        raise typer.BadParameter(f"draft {draft_id} not found")


def _client_or_fail(services: CaseServices, client_id: str) -> None:
    if services.repo.get_client(client_id) is None:
        raise typer.BadParameter(f"client {client_id} not found")


@app.command("init")
def init_cmd() -> None:
    """Initialize the database and data directories."""
    configure_logging()
    result = init_database()
    _echo({"ok": True, **result})


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


@client_app.command("create")
def client_create(
    first_name: str = typer.Option(..., "--first-name"),
    last_name: str = typer.Option(..., "--last-name"),
    field: str = typer.Option("", "--field"),
    email: str = typer.Option("", "--email"),
    vault_id: str = typer.Option("", "--vault-id"),
    profile_file: Path | None = typer.Option(None, "--profile-file", exists=True, readable=True),
) -> None:
    """Create a client, optionally loading intake data and criterion responses from JSON."""
    configure_logging()
    ensure_initialized()
    profile: dict[str, Any] = {}
    if profile_file is not None:
        profile = json.loads(profile_file.read_text(encoding="utf-8"))

    with service_scope() as services:
        criterion_responses = profile.pop("criterionResponses", {})
        client = services.repo.create_client(
            first_name=first_name,
            last_name=last_name,
            field_of_expertise=field,
            email=email,
            vault_id=vault_id,
            profile_json=profile,
        )
        for criterion, responses in criterion_responses.items():
            services.repo.set_criterion_response(client.id, criterion, responses)
        _echo({"id": client.id, "name": client.full_name})


@client_app.command("add-document")
def client_add_document(
    client_id: str = typer.Argument(...),
    name: str = typer.Option(..., "--name"),
    document_type: str = typer.Option("", "--type"),
    document_id: str | None = typer.Option(None, "--document-id"),
) -> None:
    """Register an already-indexed evidence document for a client."""
    configure_logging()
    ensure_initialized()
    with service_scope() as services:
        _client_or_fail(services, client_id)
        document = services.repo.add_evidence_document(
            client_id,
            name=name,
            document_type=document_type,
            document_id=document_id,
        )
        _echo({"id": document.id, "name": document.name})


@draft_app.command("create")
def draft_create(
    client_id: str = typer.Argument(...),
    document_type: str = typer.Option(..., "--type", help=f"One of: {', '.join(DOCUMENT_TYPES)}"),
    recommender_id: str | None = typer.Option(None, "--recommender-id"),
) -> None:
    configure_logging()
    ensure_initialized()
    with service_scope() as services:
        try:
            draft = services.lifecycle.ensure_draft(client_id, document_type, recommender_id)
        except (ValueError, LexdraftError) as exc:
            raise _fail(exc) from exc
        _echo(serialize_draft(draft, include_markup=False))


@draft_app.command("generate")
def draft_generate(draft_id: str = typer.Argument(...)) -> None:
    """Run a full generation in the foreground."""
    configure_logging()
    ensure_initialized()
    with service_scope() as services:
        _draft_or_fail(services, draft_id)
        try:
            draft = asyncio.run(services.lifecycle.generate(draft_id))
        except LexdraftError as exc:
            raise _fail(exc) from exc
        _echo({"id": draft.id, "status": draft.status, "sections": draft.sections_json})


@draft_app.command("regenerate")
def draft_regenerate(
    draft_id: str = typer.Argument(...),
    section_id: str = typer.Option(..., "--section"),
    instruction: str | None = typer.Option(None, "--instruction"),
) -> None:
    configure_logging()
    ensure_initialized()
    with service_scope() as services:
        _draft_or_fail(services, draft_id)
        try:
            draft = asyncio.run(services.lifecycle.regenerate_section(draft_id, section_id, instruction))
        except LexdraftError as exc:
            raise _fail(exc) from exc
        _echo({"id": draft.id, "status": draft.status, "section": section_id})


@draft_app.command("status")
def draft_status(
    draft_id: str = typer.Argument(...),
    show_content: bool = typer.Option(False, "--content"),
) -> None:
    configure_logging()
    ensure_initialized()
    with service_scope() as services:
        _draft_or_fail(services, draft_id)
        state = services.lifecycle.state(draft_id)
        if not show_content:
            state = {key: state[key] for key in ("id", "document_type", "title", "status", "sections", "last_error")}
        _echo(state)


@draft_app.command("wait")
def draft_wait(
    draft_id: str = typer.Argument(...),
    interval: float | None = typer.Option(None, "--interval"),
    max_attempts: int | None = typer.Option(None, "--max-attempts"),
) -> None:
    """Poll a draft until it leaves ``generating``."""
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    with service_scope() as services:
        _draft_or_fail(services, draft_id)

        def read_status() -> str:
            services.repo.session.expire_all()
            return services.repo.require_draft(draft_id).status

        try:
            status = wait_for_generation(
                read_status,
                interval_sec=interval if interval is not None else settings.poll_interval_sec,
                max_attempts=max_attempts or settings.poll_max_attempts,
            )
        except PollTimeout as exc:
            typer.echo(
                json.dumps(
                    {"ok": False, "error": "Generation is taking longer than expected.", "detail": str(exc)},
                    indent=2,
                ),
                err=True,
            )
            raise typer.Exit(code=2) from exc
        _echo({"id": draft_id, "status": status, "last_error": services.repo.require_draft(draft_id).last_error})


def _edit_from_file(path: Path) -> DraftEdit:
    raw = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    if suffix == ".json":
        return DraftEdit(tree=json.loads(raw))
    if suffix in (".html", ".htm"):
        return DraftEdit(markup=raw)
    return DraftEdit(plain_text=raw)


async def _edit_session(manager: DraftLifecycleManager, draft_id: str, path: Path, watch: bool, quiet: float) -> int:
    async def save(edit: DraftEdit) -> None:
        manager.apply_edit(draft_id, edit)

    autosaver = Autosaver(save, quiet_period=quiet)
    autosaver.submit(_edit_from_file(path))
    if watch:
        last_mtime = path.stat().st_mtime
        try:
            while True:
                await asyncio.sleep(0.5)
                mtime = path.stat().st_mtime
                if mtime != last_mtime:
                    last_mtime = mtime
                    autosaver.submit(_edit_from_file(path))
        except (KeyboardInterrupt, asyncio.CancelledError):
            pass
    await autosaver.close()
    return autosaver.writes


@draft_app.command("edit")
def draft_edit(
    draft_id: str = typer.Argument(...),
    file: Path = typer.Option(..., "--file", exists=True, readable=True),
    watch: bool = typer.Option(False, "--watch", help="Keep saving changes to the file until interrupted"),
) -> None:
    """Apply a manual edit from a markdown mirror (.md), markup (.html) or tree (.json) file."""
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    with service_scope() as services:
        _draft_or_fail(services, draft_id)
        try:
            writes = asyncio.run(
                _edit_session(services.lifecycle, draft_id, file, watch, settings.autosave_quiet_period_sec)
            )
        except (ValueError, LexdraftError) as exc:
            raise _fail(exc) from exc
        state = services.lifecycle.state(draft_id)
        _echo({"id": draft_id, "status": state["status"], "writes": writes, "sections": state["sections"]})


@draft_app.command("save-version")
def draft_save_version(
    draft_id: str = typer.Argument(...),
    note: str = typer.Option("", "--note"),
) -> None:
    configure_logging()
    ensure_initialized()
    with service_scope() as services:
        _draft_or_fail(services, draft_id)
        try:
            version = services.lifecycle.save_version(draft_id, note=note, created_by="cli")
        except LexdraftError as exc:
            raise _fail(exc) from exc
        _echo({"id": version.id, "draft_id": draft_id, "note": version.note})


@draft_app.command("restore-version")
def draft_restore_version(
    draft_id: str = typer.Argument(...),
    version_id: str = typer.Argument(...),
) -> None:
    configure_logging()
    ensure_initialized()
    with service_scope() as services:
        _draft_or_fail(services, draft_id)
        try:
            draft = services.lifecycle.restore_version(draft_id, version_id)
        except NotFoundError as exc:
            raise typer.BadParameter(str(exc)) from exc
        except LexdraftError as exc:
            raise _fail(exc) from exc
        _echo({"id": draft.id, "status": draft.status, "restored_from": version_id})


@draft_app.command("versions")
def draft_versions(draft_id: str = typer.Argument(...)) -> None:
    configure_logging()
    ensure_initialized()
    with service_scope() as services:
        _draft_or_fail(services, draft_id)
        rows = services.lifecycle.list_versions(draft_id)
        _echo(
            [
                {key: value for key, value in serialize_version(row).items() if key not in ("content", "plain_text")}
                for row in rows
            ]
        )


@app.command("evaluate")
def evaluate(client_id: str = typer.Argument(...)) -> None:
    """Run the eligibility evaluator and print the verdict."""
    configure_logging()
    ensure_initialized()
    with service_scope() as services:
        _client_or_fail(services, client_id)
        try:
            report = asyncio.run(services.evaluator.evaluate(client_id))
        except LexdraftError as exc:
            raise _fail(exc) from exc
        _echo(
            {
                "client_id": client_id,
                "verdict": report.verdict,
                "scores": {row["slug"]: row["score"] for row in report.criteria_json},
            }
        )


@app.command("suggest-recommenders")
def suggest_recommenders(client_id: str = typer.Argument(...)) -> None:
    configure_logging()
    ensure_initialized()
    with service_scope() as services:
        _client_or_fail(services, client_id)
        try:
            rows = asyncio.run(services.suggester.suggest(client_id))
        except LexdraftError as exc:
            raise _fail(exc) from exc
        _echo([{"id": row.id, "role": row.name, "criteria": row.criteria_relevance_json} for row in rows])


@app.command("gap-analysis")
def gap_analysis(client_id: str = typer.Argument(...)) -> None:
    configure_logging()
    ensure_initialized()
    with service_scope() as services:
        _client_or_fail(services, client_id)
        try:
            gap = asyncio.run(services.gap_analyzer.analyze(client_id))
        except LexdraftError as exc:
            raise _fail(exc) from exc
        _echo(
            {
                "id": gap.id,
                "overall_strength": gap.overall_strength,
                "summary": gap.summary,
                "priority_actions": gap.priority_actions_json,
            }
        )


def main() -> None:
    app()


if __name__ == "__main__":
    main()
