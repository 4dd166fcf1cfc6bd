"""Command line entry point for migrating legacy data into Supabase.

Why:
    The CLI coordinates the staged import of legacy records (users, projects,
    videos, versions, notes, approvals) into the Supabase schema. The
    destination assigns new IDs on insert, so each stage feeds its identity
    map to the next one.

Usage example:

    python -m reelreview.tools.legacy_migration \
        --legacy-url https://legacy.example.com/api \
        --supabase-url https://xyz.supabase.co

Environment variables (LEGACY_API_URL, LEGACY_API_KEY, SUPABASE_URL,
SUPABASE_SERVICE_ROLE_KEY, MIGRATION_HTTP_TIMEOUT, MIGRATION_NOTIFY_USERS,
PASSWORD_RESET_REDIRECT_URL) can be used instead of CLI flags.

Exit codes:
    0 – every stage ran (per-record skips and failures included).
    1 – a bulk fetch failed or the destination could not be reached.
    2 – invalid usage / missing configuration.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path

import click
from dotenv import load_dotenv

from reelreview.migration.config import MigrationSettings, load_settings
from reelreview.migration.errors import MigrationError
from reelreview.migration.legacy_source import LegacySourceReader
from reelreview.migration.pipeline import MigrationPipeline
from reelreview.migration.report import StageReport
from reelreview.migration.sink import DryRunSink, SupabaseSink

logger = logging.getLogger("reelreview.tools.legacy_migration")


def _build_source(settings: MigrationSettings) -> LegacySourceReader:
    return LegacySourceReader(
        settings.legacy_api_url or "",
        settings.legacy_api_key or "",
        timeout=settings.http_timeout,
    )


def _build_sink(settings: MigrationSettings, dry_run: bool):
    if dry_run:
        return DryRunSink()
    return SupabaseSink.from_credentials(
        settings.supabase_url or "",
        settings.service_role_key or "",
        reset_redirect_url=settings.reset_redirect_url,
    )


def _echo_stage(stage_report: StageReport) -> None:
    click.echo(f"Processed {stage_report.summary_line()}")
    for issue in stage_report.failed:
        click.echo(f"  ! {stage_report.stage} {issue.legacy_id}: {issue.reason} {issue.detail or ''}".rstrip(), err=True)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--legacy-url", help="Base URL of the legacy read API (LEGACY_API_URL).")
@click.option("--legacy-key", help="Bearer token for the legacy API (LEGACY_API_KEY).")
@click.option("--supabase-url", help="Supabase project URL (SUPABASE_URL).")
@click.option("--service-role-key", help="Supabase Service Role key (SUPABASE_SERVICE_ROLE_KEY).")
@click.option("--timeout", type=float, default=None, help="HTTP timeout in seconds (MIGRATION_HTTP_TIMEOUT, default 30).")
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Fetch and map all records without writing to Supabase.",
)
@click.option(
    "--notify-users/--no-notify-users",
    default=None,
    help="Send password-reset mails to provisioned users (MIGRATION_NOTIFY_USERS, default on).",
)
@click.option(
    "--reset-redirect-url",
    default=None,
    help="Redirect target of the password-reset mails (PASSWORD_RESET_REDIRECT_URL).",
)
@click.option(
    "--report-json",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the structured migration report to this file.",
)
@click.option(
    "--env-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Load settings from a .env file (existing environment variables win).",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def cli(
    legacy_url: str | None,
    legacy_key: str | None,
    supabase_url: str | None,
    service_role_key: str | None,
    timeout: float | None,
    dry_run: bool,
    notify_users: bool | None,
    reset_redirect_url: str | None,
    report_json: Path | None,
    env_file: Path | None,
    verbose: bool,
) -> None:
    """Migrate legacy users, projects, videos, versions, notes and approvals.

    Behaviour:
        - Runs all six stages in dependency order; a failed bulk fetch aborts.
        - Records that reference a non-migrated parent are skipped and reported.
        - Failed inserts are logged with their legacy id; the stage continues.
        - Prints a summary line per stage so operators can monitor the run.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s:%(name)s:%(message)s",
    )
    if env_file is not None:
        load_dotenv(env_file, override=False)
    settings = load_settings(
        legacy_api_url=legacy_url,
        legacy_api_key=legacy_key,
        supabase_url=supabase_url,
        service_role_key=service_role_key,
        http_timeout=timeout,
        notify_users=notify_users,
        reset_redirect_url=reset_redirect_url,
    )
    missing = settings.missing(dry_run=dry_run)
    if missing:
        raise click.UsageError("Missing required settings: " + ", ".join(missing))

    logger.debug("Legacy API %s, timeout %.1fs", settings.legacy_api_url, settings.http_timeout)
    mode_text = "DRY-RUN" if dry_run else "LIVE"
    click.echo(f"Starting legacy migration ({mode_text})")

    try:
        source = _build_source(settings)
        sink = _build_sink(settings, dry_run)
        pipeline = MigrationPipeline(
            source,
            sink,
            notify_users=settings.notify_users,
            dry_run=dry_run,
            on_stage_complete=_echo_stage,
        )
        result = pipeline.run()
    except MigrationError as exc:
        click.echo(f"Migration failed: {exc}", err=True)
        raise click.Abort() from exc

    if report_json is not None:
        report_json.write_text(json.dumps(result.as_dict(), indent=2), encoding="utf-8")
        click.echo(f"Report written to {report_json}")

    click.echo(f"Totals: migrated {result.migrated}, skipped {result.skipped}, failed {result.failed}")
    if dry_run:
        click.echo("Dry-run complete; no writes were performed.")
    else:
        click.echo("Migration finished successfully.")
        if not settings.notify_users:
            click.echo("Password-reset mails were not sent; notify migrated users separately.")


def main() -> None:
    cli()


if __name__ == "__main__":  # pragma: no cover - manual entry point
    main()
