"""
Command-line interface for the SCED Bulk Verifier.

Command Categories:
    Configuration:
        - configure: Store API URL and polling settings

    Verification:
        - upload: Upload a contacts CSV and show its analysis
        - start: Start verification of the uploaded file
        - verify: Upload, start and follow in one step
        - cancel: Forget the active batch locally

    Monitoring:
        - progress: Check batch progress once
        - watch: Follow a batch until it finishes

    Results:
        - results: Fetch, summarise and save results
        - download: Download the server result CSV

Environment Requirements:
    - BULK_VERIFY_TOKEN (bearer token)
    - BULK_VERIFY_API_URL (optional, API base URL)

Example Workflow:
    # 1. Upload the contacts file
    $ bulkverify upload ./contacts.csv

    # 2. Start verification and follow it to completion
    $ bulkverify start --cte-only --output-folder ./results/

    # 3. Download the result file again later
    $ bulkverify download --output-folder ./results/
"""

from .cli import cli

__all__ = [
    'cli',  # Main CLI interface (Click command group)
]
