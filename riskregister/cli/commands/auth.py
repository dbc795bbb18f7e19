"""Auth commands for the Google Drive identity provider."""

from __future__ import annotations

from datetime import datetime

import click

from riskregister.cli.helpers import build_tokens, fail, load_effective_config, run_async
from riskregister.cli.types import AppEnv
from riskregister.errors import RiskRegisterError, UserCancelled


@click.command("auth")
@click.option("--silent", is_flag=True, help="Only refresh a stored authorization; never open a browser")
@click.pass_obj
def auth_command(env: AppEnv, silent: bool) -> None:
    """Authorize Google Drive access.

    \b
    Examples:
        riskregister auth           # Browser consent flow
        riskregister auth --silent  # Refresh the stored authorization only
    """
    config = load_effective_config(env)
    tokens = build_tokens(config)
    try:
        tokens.require_configured()
        if not silent:
            env.ui.info("A browser window will open for Google Drive authorization.")
        token = run_async(tokens.ensure_token(interactive=not silent))
    except UserCancelled:
        fail("auth", "Authorization cancelled.")
    except RiskRegisterError as exc:
        fail("auth", str(exc))
    expires = datetime.fromtimestamp(token.expires_at).strftime("%H:%M")
    env.ui.success(f"Google Drive authorized (access token valid until {expires}).")


@click.command("sign-out")
@click.pass_obj
def sign_out_command(env: AppEnv) -> None:
    """Forget the stored Google Drive authorization."""
    config = load_effective_config(env)
    tokens = build_tokens(config)
    if not tokens.configured:
        env.ui.warning("Google Drive is not configured; nothing to sign out of.")
        return
    tokens.sign_out()
    env.ui.success("Signed out of Google Drive.")
