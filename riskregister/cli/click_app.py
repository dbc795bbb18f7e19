"""CLI entrypoint (document commands, adaptive UI)."""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

import click

from ..config import default_config, write_config
from ..drive.client import parse_identifier, share_url, view_link
from ..lib import json as jsonlib
from ..lib.log import configure_logging
from ..sync import SyncResult
from ..ui import create_ui
from .commands.auth import auth_command, sign_out_command
from .helpers import PathPicker, document_session, fail, load_effective_config, require_ok, run_async
from .types import AppEnv


def _should_use_plain(*, plain: bool, interactive: bool) -> bool:
    if plain:
        return True
    if interactive:
        return False
    env_force = os.environ.get("RISKREGISTER_FORCE_PLAIN")
    if env_force and env_force.lower() not in {"0", "false", "no"}:
        return True
    return not (sys.stdout.isatty() and sys.stderr.isatty())


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--plain", is_flag=True, help="Force non-interactive plain output")
@click.option("--interactive", is_flag=True, help="Force interactive output")
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Path to config.json")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def cli(
    ctx: click.Context,
    plain: bool,
    interactive: bool,
    config_path: Optional[Path],
    verbose: bool,
    json_logs: bool,
) -> None:
    """Community risk register documents on disk and on Google Drive."""
    configure_logging(verbose=verbose, json_logs=json_logs)
    use_plain = _should_use_plain(plain=plain, interactive=interactive)
    ctx.obj = AppEnv(ui=create_ui(use_plain), config_path=config_path)


cli.add_command(auth_command)
cli.add_command(sign_out_command)


@cli.command("parse-id")
@click.argument("ref")
def parse_id(ref: str) -> None:
    """Print the Drive file id contained in REF (bare id, view link or ?id= URL)."""
    file_id = parse_identifier(ref)
    if not file_id:
        fail("parse-id", f"No Google Drive file id in {ref!r}")
    click.echo(file_id)


@cli.command()
@click.argument("ref")
@click.pass_obj
def link(env: AppEnv, ref: str) -> None:
    """Print the view link for REF and, when app_url is configured, the shareable app URL."""
    file_id = parse_identifier(ref)
    if not file_id:
        fail("link", f"No Google Drive file id in {ref!r}")
    config = load_effective_config(env)
    click.echo(view_link(file_id))
    if config.drive.app_url:
        click.echo(share_url(config.drive.app_url, file_id))


@cli.command()
@click.argument("ref")
@click.argument("out", type=click.Path(path_type=Path))
@click.pass_obj
def pull(env: AppEnv, ref: str, out: Path) -> None:
    """Download the Drive document REF and save it as the local file OUT."""
    config = load_effective_config(env)

    async def _pull() -> tuple[SyncResult, Optional[SyncResult], str]:
        async with document_session(config, env.ui, picker=PathPicker(out)) as session:
            opened = await session.open_reference(ref)
            if not opened.ok:
                return opened, None, session.status()
            saved = await session.save_as()
            return opened, saved, session.status()

    opened, saved, status = run_async(_pull())
    require_ok("pull", opened)
    assert saved is not None
    require_ok("pull", saved)
    env.ui.document_status(status)


@cli.command()
@click.argument("path", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option("--to", "target", help="Overwrite this existing Drive file (link or id) instead of creating one")
@click.option("--name", help="Drive file name (defaults to the local file name)")
@click.pass_obj
def push(env: AppEnv, path: Path, target: Optional[str], name: Optional[str]) -> None:
    """Upload the local document PATH to Google Drive and print its link."""
    config = load_effective_config(env)

    async def _push() -> tuple[SyncResult, Optional[SyncResult], Optional[str]]:
        async with document_session(config, env.ui, picker=PathPicker(path)) as session:
            opened = await session.open_local()
            if not opened.ok:
                return opened, None, None
            if target:
                saved = await session.save_to_cloud(target, name)
            else:
                saved = await session.save_as_cloud(name or path.name)
            return opened, saved, session.share_link() if saved.ok else None

    opened, saved, shared = run_async(_push())
    require_ok("push", opened)
    assert saved is not None
    require_ok("push", saved)
    if saved.location:
        click.echo(saved.location)
    if shared and shared != saved.location:
        click.echo(shared)


@cli.command("import-link")
@click.argument("url")
@click.argument("out", type=click.Path(path_type=Path))
@click.pass_obj
def import_link(env: AppEnv, url: str, out: Path) -> None:
    """Decode an #import= link and save the register to OUT."""
    config = load_effective_config(env)

    async def _import() -> tuple[SyncResult, Optional[SyncResult], str]:
        async with document_session(config, env.ui, picker=PathPicker(out)) as session:
            imported = session.import_link(url)
            if not imported.ok:
                return imported, None, session.status()
            saved = await session.save_as()
            return imported, saved, session.status()

    imported, saved, status = run_async(_import())
    require_ok("import-link", imported)
    assert saved is not None
    require_ok("import-link", saved)
    env.ui.document_status(status)


@cli.group()
def config() -> None:
    """Config commands."""


@config.command("show")
@click.option("--json", "json_output", is_flag=True, help="Output JSON")
@click.pass_obj
def config_show(env: AppEnv, json_output: bool) -> None:
    cfg = load_effective_config(env)
    payload = cfg.as_dict(redact=True)
    if json_output:
        click.echo(jsonlib.dumps(payload, indent=True))
        return
    drive = cfg.drive
    env.ui.summary(
        "Config",
        [
            f"Path: {cfg.path}",
            f"Drive: {'configured' if drive.configured else 'not configured'}",
            f"App URL: {drive.app_url or '-'}",
            f"Default file name: {cfg.default_file_name}",
            f"Downloads: {cfg.downloads_dir}",
            f"Limits: {cfg.max_items} items, {cfg.max_hazards} hazards, {cfg.max_payload_bytes} bytes",
        ],
    )


@config.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@click.pass_obj
def config_init(env: AppEnv, force: bool) -> None:
    """Write a config file with default settings."""
    cfg = default_config(env.config_path)
    assert cfg.path is not None
    if cfg.path.exists() and not force:
        fail("config init", f"{cfg.path} already exists (use --force to overwrite)")
    write_config(cfg)
    env.ui.success(f"Config written: {cfg.path}")


def main() -> None:
    cli()


__all__ = ["cli", "main"]
