# -*- coding: utf-8 -*-

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..utils.misc import is_csv_file, mask_path
from .errors import InvalidFileError, VerificationError
from .models import BatchJob, UploadPreview, VerificationResult
from .poller import AdaptivePoller, PollingPolicy
from .results import ResultRetriever


@dataclass(frozen=True)
class StatusView:
    """What the presentation layer needs to show for the active batch."""
    batch_id: Optional[str]
    status: Optional[str]
    processed_contacts: int
    total_contacts: int
    percentage: int
    current_contact: Optional[str]
    interval_ms: float
    retry_count: int

    @property
    def message(self) -> Optional[str]:
        if self.retry_count > 0:
            return (f"Rate limited - polling every {round(self.interval_ms / 1000)}s "
                    f"(attempt {self.retry_count})")
        return None


class BatchController:
    """
    Drives one verification batch through upload, start, polling and finalization.

    Only one batch is active at a time: starting a new batch cancels the
    polling of the previous one and discards its state.
    """

    def __init__(
        self,
        api,
        policy: Optional[PollingPolicy] = None,
        retriever: Optional[ResultRetriever] = None,
        on_update: Optional[Callable[["BatchController"], None]] = None,
    ):
        self.api = api
        self.policy = policy or PollingPolicy()
        self.retriever = retriever or ResultRetriever(api)
        self.on_update = on_update

        self.upload_preview: Optional[UploadPreview] = None
        self.batch_id: Optional[str] = None
        self.poller: Optional[AdaptivePoller] = None
        self.results: Optional[list[VerificationResult]] = None
        self.results_error: Optional[Exception] = None

    #=========================================================================
    # Phases
    #=========================================================================

    async def upload(self, file_path: str | Path) -> UploadPreview:
        """
        Upload a contacts CSV. Controller state only changes on success.

        Raises:
            NotAuthenticatedError: If no bearer token is configured.
            InvalidFileError: If the file is missing, empty or not a CSV.
        """
        self.api.require_token()
        validate_upload_file(file_path)

        preview = await self.api.upload(file_path)
        self.upload_preview = preview
        return preview

    async def start(self, file_ref: Optional[str] = None, cte_only: bool = True) -> str:
        """
        Start verification of an uploaded file and begin polling its progress.

        Args:
            file_ref (str, optional): Server file reference. Defaults to the last upload.
            cte_only (bool): Only verify CTE/WBL contacts.

        Returns:
            str: The new batch ID.
        """
        self.api.require_token()
        if file_ref is None:
            if self.upload_preview is None:
                raise InvalidFileError("Please upload a CSV file first")
            file_ref = self.upload_preview.file_path

        self.cancel()

        batch_id = await self.api.start(file_ref, cte_only=cte_only)
        self.watch(batch_id)
        return batch_id

    def watch(self, batch_id: str) -> AdaptivePoller:
        """Begin polling an already started batch, superseding any active one."""
        self.cancel()
        self.batch_id = batch_id
        self.results = None
        self.results_error = None
        self.poller = AdaptivePoller(
            self.api,
            batch_id,
            policy=self.policy,
            on_update=self._on_poll_update,
            on_complete=self._finalize,
        )
        self.poller.start()
        return self.poller

    def cancel(self):
        """Stop polling and forget the active batch. No request is sent."""
        poller = self.poller
        if poller is None:
            return
        self.poller = None
        self.batch_id = None
        self.results = None
        self.results_error = None
        poller.cancel()

    async def wait(self) -> Optional[BatchJob]:
        """Wait for the active batch to stop polling and return its final snapshot."""
        if self.poller is None:
            return None
        poller = self.poller
        job = await poller.wait()
        if poller.failure is not None and poller is self.poller:
            raise poller.failure
        return job

    async def run(self, file_path: str | Path, cte_only: bool = True) -> Optional[BatchJob]:
        """Upload, start and wait for a batch in one go."""
        preview = await self.upload(file_path)
        logging.info(f"Verifying {preview.contacts_to_verify(cte_only)} contacts from {mask_path(file_path)}")
        await self.start(preview.file_path, cte_only=cte_only)
        return await self.wait()

    async def download(self, output_folder: str | Path = ".", filename: Optional[str] = None) -> Path:
        if self.batch_id is None:
            raise VerificationError("No batch to download results for")
        return await self.retriever.download(self.batch_id, output_folder, filename=filename)

    #=========================================================================
    # Presentation
    #=========================================================================

    @property
    def job(self) -> Optional[BatchJob]:
        return self.poller.job if self.poller else None

    def status_view(self) -> StatusView:
        job = self.job
        state = self.poller.state if self.poller else None
        return StatusView(
            batch_id=self.batch_id,
            status=job.status.value if job else None,
            processed_contacts=job.processed_contacts if job else 0,
            total_contacts=job.total_contacts if job else 0,
            percentage=job.progress_percentage if job else 0,
            current_contact=job.current_contact if job else None,
            interval_ms=state.interval_ms if state else self.policy.base_interval_ms,
            retry_count=state.retry_count if state else 0,
        )

    def _on_poll_update(self, poller: AdaptivePoller):
        if poller is not self.poller:
            return
        if self.on_update is not None:
            self.on_update(self)

    async def _finalize(self, job: BatchJob):
        poller = self.poller
        try:
            results = await self.retriever.fetch_results(job.id)
        except VerificationError as e:
            if poller is not self.poller:
                return
            self.results_error = e
            logging.error(f"Failed to fetch verification results for batch {job.id}: {e}")
            return

        # Superseded or cancelled while fetching
        if poller is not self.poller:
            logging.debug(f"Discarding results of superseded batch {job.id}")
            return
        self.results = results


def validate_upload_file(file_path: str | Path):
    """Reject anything that is not an existing, non-empty CSV before uploading."""
    if file_path is None:
        raise InvalidFileError("Please select a CSV file first")
    path = Path(file_path)
    if not path.is_file():
        raise InvalidFileError(f"File not found: {mask_path(path)}")
    if not is_csv_file(path):
        raise InvalidFileError(f"Please select a valid CSV file: {path.name}")
    if path.stat().st_size == 0:
        raise InvalidFileError(f"CSV file is empty: {path.name}")
