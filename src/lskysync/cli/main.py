"""Command-line interface for lskysync."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import click
from click import Context
from dotenv import load_dotenv
from loguru import logger

from lskysync.cli import ui
from lskysync.cli.commands.config import config as config_group
from lskysync.cli.console import get_console, get_stderr_console
from lskysync.cli.logging_config import print_version, setup_logging
from lskysync.cli.prompts import make_cleanup_confirmer
from lskysync.client import LskyClient, TokenCallback
from lskysync.config import ConfigManager, LskySyncConfig
from lskysync.errors import LskySyncError, PartialBatchFailure
from lskysync.resolver import PathResolver
from lskysync.utils.progress import RichProgress
from lskysync.vault import FileSystemVault
from lskysync.workflow import (
    BatchReport,
    CleanupReport,
    DownloadReport,
    UploadReport,
    cleanup_unused_images,
    collect_used_urls,
    download_all_images,
    download_note_images,
    require_origin,
    upload_note_images,
)

T = TypeVar("T")


# =============================================================================
# Helpers
# =============================================================================


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a workflow on a fresh event loop; fatal errors exit with code 1."""
    try:
        return asyncio.run(coro)
    except LskySyncError as e:
        logger.debug(f"{type(e).__name__}: {e}")
        ui.error(str(e))
        raise SystemExit(1) from e


def _exit_on_failures(report: BatchReport | DownloadReport) -> None:
    try:
        report.raise_for_failures()
    except PartialBatchFailure as e:
        ui.error(str(e))
        raise SystemExit(1) from e


def _state(ctx: Context) -> tuple[ConfigManager, LskySyncConfig, FileSystemVault]:
    obj = ctx.ensure_object(dict)
    manager: ConfigManager = obj["manager"]
    cfg = manager.config
    vault = FileSystemVault(obj["vault_dir"], skip_hidden=cfg.vault.skip_hidden)
    return manager, cfg, vault


def _token_saver(manager: ConfigManager) -> TokenCallback:
    """Persist a refreshed token to the loaded config file."""

    def save(token: str) -> None:
        manager.set("server.token", token)
        path = manager.save()
        logger.debug(f"Token saved to {path}")

    return save


def _client(manager: ConfigManager, cfg: LskySyncConfig) -> LskyClient:
    return LskyClient(
        cfg.server, cfg.pacing, on_token_refreshed=_token_saver(manager)
    )


def _origin(cfg: LskySyncConfig) -> str:
    try:
        return require_origin(cfg.server.url)
    except LskySyncError as e:
        ui.error(str(e))
        raise SystemExit(1) from e


def _note_arg(vault: FileSystemVault, note: str) -> str:
    """Map a NOTE argument (cwd- or vault-relative) to a vault path."""
    for path in (Path(note).expanduser(), vault.root / note):
        resolved = path.resolve()
        if not resolved.is_file():
            continue
        try:
            return resolved.relative_to(vault.root).as_posix()
        except ValueError:
            raise click.BadParameter(
                f"{note} is outside the vault {vault.root}", param_hint="NOTE"
            ) from None
    raise click.BadParameter(f"Note not found: {note}", param_hint="NOTE")


# =============================================================================
# Main CLI app
# =============================================================================


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to configuration file.",
)
@click.option(
    "--vault",
    "vault_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Vault directory (overrides vault.dir).",
)
@click.option("--verbose", "-v", is_flag=True, help="Show progress details.")
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
@click.pass_context
def app(
    ctx: Context, config_path: Path | None, vault_dir: Path | None, verbose: bool
) -> None:
    """Sync Obsidian note images with a Lsky Pro image host."""
    load_dotenv()

    manager = ConfigManager()
    try:
        cfg = manager.load(config_path=config_path)
    except ValueError as e:
        # pydantic ValidationError and json.JSONDecodeError are both ValueErrors
        ui.error("Invalid configuration", detail=str(e))
        raise SystemExit(2) from e

    setup_logging(verbose=verbose, log=cfg.log)
    if manager.config_path:
        logger.debug(f"Loaded config: {manager.config_path}")

    obj = ctx.ensure_object(dict)
    obj["manager"] = manager
    obj["vault_dir"] = vault_dir or Path(cfg.vault.dir).expanduser()
    obj["verbose"] = verbose


app.add_command(config_group, "config")


@app.command()
@click.pass_context
def login(ctx: Context) -> None:
    """Authenticate with the image host and store the token."""
    manager, cfg, _vault = _state(ctx)

    async def _login() -> None:
        async with _client(manager, cfg) as client:
            await client.acquire_token()

    _run(_login())
    ui.summary(f"Logged in to {cfg.server.base_url} as {cfg.server.email}")


@app.command()
@click.argument("note")
@click.pass_context
def upload(ctx: Context, note: str) -> None:
    """Upload the local images of NOTE and link them from the host."""
    manager, cfg, vault = _state(ctx)
    note_path = _note_arg(vault, note)

    async def _upload() -> UploadReport:
        async with _client(manager, cfg) as client:
            with RichProgress("Uploading", console=get_stderr_console()) as progress:
                return await upload_note_images(
                    note_path,
                    store=vault,
                    client=client,
                    resolver=PathResolver(cfg.resolver),
                    progress=progress,
                )

    report = _run(_upload())
    if not report.total:
        ui.info(f"No local images in {note_path}")
        return

    ui.failures(report.failed)
    ui.summary(f"Uploaded {len(report.succeeded)}/{report.total} images in {note_path}")
    _exit_on_failures(report)


@app.command()
@click.argument("note", required=False)
@click.option("--all", "all_notes", is_flag=True, help="Process every note in the vault.")
@click.pass_context
def download(ctx: Context, note: str | None, all_notes: bool) -> None:
    """Download host images of NOTE (or of every note with --all)."""
    manager, cfg, vault = _state(ctx)
    if bool(note) == all_notes:
        raise click.UsageError("Give either a NOTE or --all")
    origin = _origin(cfg)
    note_path = _note_arg(vault, note) if note else None

    async def _download() -> DownloadReport:
        async with _client(manager, cfg) as client:
            title = "Downloading" if note_path else "Downloading notes"
            with RichProgress(title, console=get_stderr_console()) as progress:
                if note_path:
                    return await download_note_images(
                        note_path,
                        store=vault,
                        client=client,
                        origin=origin,
                        progress=progress,
                    )
                return await download_all_images(
                    store=vault, client=client, origin=origin, progress=progress
                )

    report = _run(_download())
    for result in report.notes:
        ui.failures(result.failure_lines())
    ui.summary(
        f"Downloaded {report.succeeded_count} images "
        f"({report.failed_count} failed) in {len(report.notes)} notes"
    )
    _exit_on_failures(report)


@app.command()
@click.option("--yes", "-y", is_flag=True, help="Delete without asking.")
@click.pass_context
def cleanup(ctx: Context, yes: bool) -> None:
    """Delete host images that no note references."""
    manager, cfg, vault = _state(ctx)
    origin = _origin(cfg)

    if cfg.cleanup.confirm_start and not yes:
        if not click.confirm("Scan notes and the image host for unused images?"):
            ui.info("Cancelled")
            return

    async def _cleanup() -> CleanupReport:
        async with _client(manager, cfg) as client:
            confirm = make_cleanup_confirmer(yes)
            with RichProgress("Deleting", console=get_stderr_console()) as progress:
                return await cleanup_unused_images(
                    store=vault,
                    client=client,
                    origin=origin,
                    confirm=confirm,
                    progress=progress,
                    preview_limit=cfg.cleanup.preview_limit,
                )

    report = _run(_cleanup())
    if report.nothing_to_clean:
        ui.summary(f"No unused images ({report.total} on host)")
        return
    if report.cancelled:
        ui.warning("Cleanup cancelled, nothing deleted")
        return

    ui.failures(report.failed)
    ui.summary(
        f"Deleted {len(report.succeeded)}/{report.orphan_count} unused images"
    )
    _exit_on_failures(report)


@app.command()
@click.pass_context
def used(ctx: Context) -> None:
    """List host images referenced by notes."""
    _manager, cfg, vault = _state(ctx)
    origin = _origin(cfg)

    urls = _run(collect_used_urls(vault, origin))
    console = get_console()
    for url in sorted(urls):
        console.print(url, markup=False, highlight=False)
    ui.summary(f"{len(urls)} host images referenced by notes")

