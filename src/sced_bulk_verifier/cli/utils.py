# -*- coding: utf-8 -*-

import asyncio
import logging
from pathlib import Path
from typing import Optional

import click
from tqdm.auto import tqdm

from ..core.utils.clients import create_verification_api
from ..core.utils.misc import mask_path
from ..core.verification.errors import VerificationError
from ..core.verification.models import BatchJob, UploadPreview, VerificationResult
from ..core.verification.poller import PollingPolicy
from ..core.verification.results import save_results
from ..core.verification.summary import save_results_summary, format_results_summary


def setup_logging(verbose=False, quiet=False):
    """Configure logging for CLI execution."""
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True  # Override any existing configuration
    )

    # Reduce noise from external libraries in non-verbose mode
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    if verbose:
        logging.getLogger(__name__).debug("CLI logging setup completed")


def _validate_positive_number_callback(ctx, param, value):
    """Validate that the provided value is a positive number."""
    if value is not None and value <= 0:
        raise click.BadParameter("Value must be a positive number.")
    return value


#=======================================================================
# Execution Utilities
#=======================================================================

def run_with_api(ctx, func):
    """
    Run ``func(api)`` in a fresh event loop with an API client built from
    the CLI context. Verification errors end the program with exit code 1.
    """
    async def runner():
        async with create_verification_api(
            ctx.obj['api_url'], ctx.obj['token'], ctx.obj['timeout']
        ) as api:
            return await func(api)

    try:
        return asyncio.run(runner())
    except VerificationError as e:
        logging.error(str(e))
        raise SystemExit(1)


def build_policy(polling_overrides: Optional[dict]) -> PollingPolicy:
    try:
        return PollingPolicy.from_dict(polling_overrides)
    except (TypeError, ValueError) as e:
        logging.error(f"Invalid polling configuration: {e}")
        raise SystemExit(1)


def resolve_batch_id(ctx, batch_id: Optional[str]) -> str:
    """Use the given batch ID or fall back to the last started batch."""
    if batch_id:
        return batch_id
    last_batch = ctx.obj['session'].get_last_batch()
    if not last_batch:
        raise click.UsageError("No batch ID given and no batch started yet. "
                               "Use 'start' or 'verify' first, or pass a BATCH_ID.")
    logging.info(f"Using last started batch {last_batch['id']}")
    return last_batch['id']


#=======================================================================
# Display Utilities
#=======================================================================

class ProgressReporter:
    """Mirrors controller status updates on a tqdm progress bar."""

    def __init__(self, disable: bool = False):
        self.disable = disable
        self.bar = None

    def __call__(self, controller):
        view = controller.status_view()
        if self.bar is None:
            if not view.total_contacts:
                return
            self.bar = tqdm(
                total=view.total_contacts,
                desc=f"Batch {view.batch_id}",
                unit="contact",
                disable=self.disable,
            )
        self.bar.n = view.processed_contacts
        postfix = view.status or ""
        if view.current_contact:
            postfix += f" | {view.current_contact}"
        if view.message:
            postfix += f" | {view.message}"
        self.bar.set_postfix_str(postfix)
        self.bar.refresh()

    def close(self):
        if self.bar is not None:
            self.bar.close()
            self.bar = None


def log_upload_preview(preview: UploadPreview, cte_only: bool, max_rows: int = 5):
    logging.info(f"File analysis for {preview.file_name}:")
    logging.info(f"  Total contacts    : {preview.total_contacts}")
    logging.info(f"  CTE/WBL contacts  : {preview.cte_contacts}")
    logging.info(f"  Will be verified  : {preview.contacts_to_verify(cte_only)}")
    sample = preview.cte_contacts_preview if cte_only else preview.contacts
    if sample:
        logging.info("  Sample contacts:")
        for contact in sample[:max_rows]:
            logging.info(f"    - Row {contact.original_row}: {contact.full_name} "
                         f"({contact.type or 'unknown type'}) {contact.email}")


def log_batch_job(job: BatchJob):
    logging.info(f"Batch {job.id} is {job.status.value}")
    logging.info(f"  Processing : {job.processed_contacts} / {job.total_contacts} ({job.progress_percentage}%)")
    logging.info(f"  Verified   : {job.success_count}")
    logging.info(f"  Errors     : {job.error_count}")
    if job.current_contact:
        logging.info(f"  Current    : {job.current_contact}")
    if job.estimated_completion:
        logging.info(f"  Estimated completion: {job.estimated_completion}")


def save_and_report_results(
        results: list[VerificationResult],
        output_folder: str | Path,
        file_type: str = 'csv',
        job: Optional[BatchJob] = None,
        save_summary_dict: bool = False,
        output_path: Optional[str | Path] = None,
    ) -> Path:
    """Save results and their summary, then print the summary."""
    output_folder = Path(output_folder)
    output_folder.mkdir(parents=True, exist_ok=True)
    if output_path is None:
        prefix = f"batch_{job.id}" if job else "batch"
        output_path = output_folder / f"{prefix}_results.{file_type}"
    path = save_results(results, output_path, file_type=file_type)

    summary_path = Path(path).with_name(Path(path).stem + "_summary.txt")
    summary_dict = save_results_summary(results, summary_path, job=job, save_dict=save_summary_dict)
    click.echo(format_results_summary(summary_dict))
    logging.info(f"Results available at {mask_path(path)}")
    return path
