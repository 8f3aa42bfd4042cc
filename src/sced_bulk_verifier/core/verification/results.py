# -*- coding: utf-8 -*-

"""
Retrieval of finalized verification results.

Neither call retries: by the time results are requested the batch is
already terminal, so a failure is reported and the caller may simply try
again.
"""

import logging
import os
from datetime import date
from pathlib import Path
from typing import Literal, Optional

import polars as pl

from ..utils.misc import ensure_output_path, mask_path, write_jsonl
from .models import VerificationResult

DOWNLOAD_FILENAME_TEMPLATE = "verification-results-{day}.csv"


def default_download_filename(day: Optional[date] = None) -> str:
    """Name of the downloaded results file, derived from the current date."""
    day = day or date.today()
    return DOWNLOAD_FILENAME_TEMPLATE.format(day=day.isoformat())


class ResultRetriever:
    """Fetches results and the downloadable result file of a completed batch."""

    def __init__(self, api):
        self.api = api

    async def fetch_results(self, batch_id: str) -> list[VerificationResult]:
        """
        Fetch the list of results of a completed batch, in server order.

        Args:
            batch_id (str): The ID of the batch.

        Returns:
            list[VerificationResult]: One entry per verified contact.
        """
        logging.info(f"Fetching results for batch {batch_id}...")
        results = await self.api.get_results(batch_id)
        verified = sum(1 for r in results if r.success)
        logging.info(f"Fetched {len(results)} results ({verified} verified, {len(results) - verified} not found)")
        return results

    async def download(
        self,
        batch_id: str,
        output_folder: str | Path = ".",
        filename: Optional[str] = None,
        day: Optional[date] = None,
    ) -> Path:
        """
        Download the results CSV of a batch and save it in ``output_folder``.

        Args:
            batch_id (str): The ID of the batch.
            output_folder: Folder where the file will be saved.
            filename (str, optional): Overrides the date-derived default name.
            day (date, optional): Date used for the default name. Defaults to today.

        Returns:
            Path: The saved file.
        """
        logging.info(f"Downloading results for batch {batch_id}...")
        content = await self.api.download(batch_id)

        ensure_output_path(str(output_folder), "Download folder")
        result_path = Path(output_folder) / (filename or default_download_filename(day))
        with open(result_path, "wb") as f:
            f.write(content)
        logging.info(f"Results downloaded to {mask_path(result_path)}.")
        return result_path


def results_to_df(results: list[VerificationResult]) -> pl.DataFrame:
    """One row per contact, in the order the server returned them."""
    return pl.DataFrame([r.to_row() for r in results])


def save_results(
    results: list[VerificationResult],
    path: str | Path,
    file_type: Literal['csv', 'jsonl', 'parquet'] = 'csv',
) -> Path:
    """
    Save verification results to disk.

    CSV and Parquet files hold the flattened rows; JSONL keeps the full
    nested result for every contact.
    """
    path = Path(path)
    if path.parent and not path.parent.exists():
        os.makedirs(path.parent, exist_ok=True)

    match file_type:
        case 'jsonl':
            write_jsonl([r.to_dict() for r in results], path)
        case 'csv':
            results_to_df(results).write_csv(path)
        case 'parquet':
            results_to_df(results).write_parquet(path)
        case _:
            raise ValueError(f"Unsupported file type: {file_type}. Expected 'csv', 'jsonl' or 'parquet'.")

    logging.info(f"Saved {len(results)} results to {mask_path(path)}")
    return path
