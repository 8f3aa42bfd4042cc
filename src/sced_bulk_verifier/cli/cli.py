# -*- coding: utf-8 -*-

import logging
from pathlib import Path

import click

from ..core.utils.clients import get_api_url
from ..core.utils.registry import get_session
from ..core.utils.environment import validate_required_env_vars
from ..core.verification.controller import BatchController, validate_upload_file
from ..core.verification.errors import VerificationError
from ..core.verification.poller import PollingPolicy
from ..core.verification.results import ResultRetriever
from .utils import (
    setup_logging,
    _validate_positive_number_callback,
    run_with_api,
    build_policy,
    resolve_batch_id,
    ProgressReporter,
    log_upload_preview,
    log_batch_job,
    save_and_report_results,
)


@click.group()
@click.option(
    '-v', '--verbose', is_flag=True,
    help='Enable verbose (DEBUG) logging'
)
@click.option(
    '-q', '--quiet', is_flag=True,
    help='Only show warnings and errors'
)
@click.option(
    '--api-url', type=str, default=None,
    help=('Base URL of the verification API. Defaults to the configured '
          'URL, then BULK_VERIFY_API_URL, then http://localhost:4000/api/v1.')
)
@click.option(
    '--token', type=str, default=None, envvar='BULK_VERIFY_TOKEN',
    help='Bearer token for the API. Defaults to BULK_VERIFY_TOKEN.'
)
@click.option(
    '--timeout', type=float, default=30.0,
    callback=_validate_positive_number_callback,
    help='Per-request timeout in seconds. Default is 30.'
)
@click.pass_context
def cli(ctx, verbose, quiet, api_url, token, timeout):
    """
    SCED Bulk Verifier CLI - Verify teacher certifications in bulk.

    Upload a CSV of contacts, start a verification batch, follow its
    progress and download the results.

    \b
    Ensure a bearer token is available:
    - BULK_VERIFY_TOKEN (environment variable or .env file), or
    - the --token option
    """
    setup_logging(verbose=verbose, quiet=quiet)

    session = get_session()
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet
    ctx.obj['session'] = session
    ctx.obj['api_url'] = get_api_url(api_url or session.get_api_url())
    ctx.obj['token'] = token
    ctx.obj['timeout'] = timeout
    ctx.obj['policy_overrides'] = session.get_polling()

    if ctx.invoked_subcommand in ['configure', 'cancel']:
        return

    if not token:
        missing = validate_required_env_vars()
        logging.warning(f"Missing required environment variables: {missing}")
        logging.info("Please set the token or create a .env file at the "
                     "repo root directory with:")
        for var in missing:
            logging.info(f"  {var}=your_token_here")


@cli.command()
@click.option('--api-url', 'new_api_url', type=str, default=None,
              help='Base URL of the verification API to store.')
@click.option('--base-interval-ms', type=float, default=None,
              callback=_validate_positive_number_callback,
              help='Baseline polling interval. Default is 5000 ms.')
@click.option('--max-rate-limit-interval-ms', type=float, default=None,
              callback=_validate_positive_number_callback,
              help='Upper bound of the rate-limit backoff. Default is 30000 ms.')
@click.option('--max-failure-interval-ms', type=float, default=None,
              callback=_validate_positive_number_callback,
              help='Upper bound of the failure backoff. Default is 15000 ms.')
@click.option('--decay-factor', type=float, default=None,
              help='Interval decay after a successful poll. Default is 0.8.')
@click.option('--failure-factor', type=float, default=None,
              help='Interval growth after a failed poll. Default is 1.2.')
@click.pass_context
def configure(ctx, new_api_url, base_interval_ms, max_rate_limit_interval_ms,
              max_failure_interval_ms, decay_factor, failure_factor):
    """
    Store the API URL and polling settings for later commands.

    Run without options to display the current configuration.
    """
    session = ctx.obj['session']
    polling = {
        'base_interval_ms': base_interval_ms,
        'max_rate_limit_interval_ms': max_rate_limit_interval_ms,
        'max_failure_interval_ms': max_failure_interval_ms,
        'decay_factor': decay_factor,
        'failure_factor': failure_factor,
    }

    if new_api_url is not None or any(v is not None for v in polling.values()):
        merged = dict(session.get_polling())
        merged.update({k: v for k, v in polling.items() if v is not None})
        try:
            PollingPolicy.from_dict(merged)
        except ValueError as e:
            raise click.BadParameter(str(e))
        session.update_settings(api_url=new_api_url, polling=polling)
        logging.info("Configuration updated successfully!")

    policy = PollingPolicy.from_dict(session.get_polling())
    logging.info("Current configuration:")
    logging.info(f"  api_url: {get_api_url(session.get_api_url())}")
    for key, value in vars(policy).items():
        logging.info(f"  {key}: {value}")


@cli.command()
@click.argument('csv_file', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--cte-only/--all-contacts', default=True,
    help='Which contacts the preview should focus on. Default is --cte-only.'
)
@click.pass_context
def upload(ctx, csv_file, cte_only):
    """
    Upload a CSV of contacts and show the server's analysis.

    The uploaded file is remembered, so 'start' can be run next
    without arguments.
    """
    try:
        validate_upload_file(csv_file)
    except VerificationError as e:
        logging.error(str(e))
        raise SystemExit(1)

    async def _upload(api):
        controller = BatchController(api)
        return await controller.upload(csv_file)

    preview = run_with_api(ctx, _upload)
    ctx.obj['session'].record_upload(
        preview.file_name, preview.file_path,
        preview.total_contacts, preview.cte_contacts
    )
    log_upload_preview(preview, cte_only)
    logging.info("Next step: start verification with 'bulkverify start'")


@cli.command()
@click.option(
    '--file-path', type=str, default=None,
    help='Server file reference to verify. Defaults to the last uploaded file.'
)
@click.option(
    '--cte-only/--all-contacts', default=True,
    help='Verify CTE/WBL contacts only, or every contact. Default is --cte-only.'
)
@click.option(
    '--wait/--no-wait', default=True,
    help='Follow the batch until it finishes. Default is --wait.'
)
@click.option(
    '--output-folder', type=click.Path(file_okay=False), default='.',
    help='Where results and the downloaded CSV are saved. Default is the current folder.'
)
@click.option(
    '--file-type', default='csv',
    type=click.Choice(['csv', 'jsonl', 'parquet'], case_sensitive=False),
    help='Format of the saved results. Default is "csv".'
)
@click.option(
    '--download/--no-download', default=True,
    help='Download the server result CSV once completed. Default is --download.'
)
@click.pass_context
def start(ctx, file_path, cte_only, wait, output_folder, file_type, download):
    """Start verification of an uploaded file."""
    session = ctx.obj['session']
    if file_path is None:
        last_upload = session.get_last_upload()
        if not last_upload:
            raise click.UsageError("No uploaded file found. Use 'upload' first or pass --file-path.")
        file_path = last_upload['file_path']

    policy = build_policy(ctx.obj['policy_overrides'])

    async def _start(api):
        if not wait:
            batch_id = await api.start(file_path, cte_only=cte_only)
            session.record_batch(batch_id, cte_only)
            return batch_id
        controller = BatchController(api, policy=policy)
        return await _start_and_follow(
            ctx, controller, file_path, cte_only,
            output_folder, file_type, download
        )

    batch_id = run_with_api(ctx, _start)
    if not wait:
        logging.info(f"Batch {batch_id} started. Follow it with 'bulkverify watch'")


@cli.command()
@click.argument('csv_file', type=click.Path(exists=True, dir_okay=False))
@click.option(
    '--cte-only/--all-contacts', default=True,
    help='Verify CTE/WBL contacts only, or every contact. Default is --cte-only.'
)
@click.option(
    '--output-folder', type=click.Path(file_okay=False), default='.',
    help='Where results and the downloaded CSV are saved. Default is the current folder.'
)
@click.option(
    '--file-type', default='csv',
    type=click.Choice(['csv', 'jsonl', 'parquet'], case_sensitive=False),
    help='Format of the saved results. Default is "csv".'
)
@click.option(
    '--download/--no-download', default=True,
    help='Download the server result CSV once completed. Default is --download.'
)
@click.pass_context
def verify(ctx, csv_file, cte_only, output_folder, file_type, download):
    """Upload a CSV, verify it and save the results in one step."""
    try:
        validate_upload_file(csv_file)
    except VerificationError as e:
        logging.error(str(e))
        raise SystemExit(1)

    session = ctx.obj['session']
    policy = build_policy(ctx.obj['policy_overrides'])

    async def _verify(api):
        controller = BatchController(api, policy=policy)
        preview = await controller.upload(csv_file)
        session.record_upload(
            preview.file_name, preview.file_path,
            preview.total_contacts, preview.cte_contacts
        )
        log_upload_preview(preview, cte_only)
        return await _start_and_follow(
            ctx, controller, preview.file_path, cte_only,
            output_folder, file_type, download
        )

    run_with_api(ctx, _verify)


@cli.command()
@click.argument('batch_id', required=False)
@click.pass_context
def progress(ctx, batch_id):
    """Check the progress of a batch once."""
    batch_id = resolve_batch_id(ctx, batch_id)

    async def _progress(api):
        return await api.get_progress(batch_id)

    job = run_with_api(ctx, _progress)
    ctx.obj['session'].update_batch_status(job.id, job.status.value)
    log_batch_job(job)


@cli.command()
@click.argument('batch_id', required=False)
@click.option(
    '--output-folder', type=click.Path(file_okay=False), default='.',
    help='Where results and the downloaded CSV are saved. Default is the current folder.'
)
@click.option(
    '--file-type', default='csv',
    type=click.Choice(['csv', 'jsonl', 'parquet'], case_sensitive=False),
    help='Format of the saved results. Default is "csv".'
)
@click.option(
    '--download/--no-download', default=True,
    help='Download the server result CSV once completed. Default is --download.'
)
@click.pass_context
def watch(ctx, batch_id, output_folder, file_type, download):
    """Follow a started batch until it completes or fails."""
    batch_id = resolve_batch_id(ctx, batch_id)
    policy = build_policy(ctx.obj['policy_overrides'])

    async def _watch(api):
        controller = BatchController(api, policy=policy)
        reporter = ProgressReporter(disable=ctx.obj['quiet'])
        controller.on_update = reporter
        controller.watch(batch_id)
        try:
            return await _follow(ctx, controller, reporter, output_folder, file_type, download)
        finally:
            controller.cancel()

    run_with_api(ctx, _watch)


@cli.command()
@click.argument('batch_id', required=False)
@click.option(
    '--output', type=click.Path(dir_okay=False), default=None,
    help='File to save the results to. Defaults to ./batch_<id>_results.<file-type>.'
)
@click.option(
    '--file-type', default='csv',
    type=click.Choice(['csv', 'jsonl', 'parquet'], case_sensitive=False),
    help='Format of the saved results. Default is "csv".'
)
@click.option(
    '--save-summary-dict', is_flag=True, default=False,
    help='Save the summary as JSON apart from text.'
)
@click.pass_context
def results(ctx, batch_id, output, file_type, save_summary_dict):
    """Fetch the results of a completed batch and save them."""
    batch_id = resolve_batch_id(ctx, batch_id)

    async def _results(api):
        return await ResultRetriever(api).fetch_results(batch_id)

    fetched = run_with_api(ctx, _results)
    output_folder = Path(output).parent if output else Path('.')
    if output is None:
        output = output_folder / f"batch_{batch_id}_results.{file_type}"
    save_and_report_results(
        fetched, output_folder, file_type=file_type,
        save_summary_dict=save_summary_dict, output_path=output
    )


@cli.command()
@click.argument('batch_id', required=False)
@click.option(
    '--output-folder', type=click.Path(file_okay=False), default='.',
    help='Where the result CSV is saved. Default is the current folder.'
)
@click.pass_context
def download(ctx, batch_id, output_folder):
    """
    Download the result CSV of a batch.

    WARNING:
      Use this command only once the batch has completed.
    """
    batch_id = resolve_batch_id(ctx, batch_id)

    async def _download(api):
        return await ResultRetriever(api).download(batch_id, output_folder)

    run_with_api(ctx, _download)


@cli.command()
@click.pass_context
def cancel(ctx):
    """
    Forget the last started batch locally.

    The server is not contacted: the batch keeps running remotely and can
    still be followed with 'watch BATCH_ID'.
    """
    if ctx.obj['session'].clear_batch():
        logging.info("Active batch discarded.")
    else:
        logging.info("No active batch.")


#=======================================================================
# Shared flow
#=======================================================================

async def _start_and_follow(ctx, controller, file_path, cte_only,
                            output_folder, file_type, download):
    reporter = ProgressReporter(disable=ctx.obj['quiet'])
    controller.on_update = reporter
    try:
        batch_id = await controller.start(file_path, cte_only=cte_only)
        ctx.obj['session'].record_batch(batch_id, cte_only)
        return await _follow(ctx, controller, reporter, output_folder, file_type, download)
    finally:
        controller.cancel()


async def _follow(ctx, controller, reporter, output_folder, file_type, download):
    """Wait for the active batch, then save its results and download the CSV."""
    batch_id = controller.batch_id
    try:
        job = await controller.wait()
    finally:
        reporter.close()
        if controller.job is not None:
            ctx.obj['session'].update_batch_status(batch_id, controller.job.status.value)

    log_batch_job(job)

    if controller.results_error is not None:
        logging.info(f"Retry later with 'bulkverify results {batch_id}'")
        raise controller.results_error

    save_and_report_results(
        controller.results or [], output_folder,
        file_type=file_type, job=job
    )

    if download:
        await controller.download(output_folder)
    return batch_id
