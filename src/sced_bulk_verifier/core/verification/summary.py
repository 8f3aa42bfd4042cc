# -*- coding: utf-8 -*-

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Optional

from ..utils.misc import mask_path
from .models import BatchJob, ExpirationAlert, VerificationResult


def get_results_summary_dict(results: list[VerificationResult], job: Optional[BatchJob] = None) -> dict:
    """
    Generate a summary dictionary from the results of a batch.

    Args:
        results (list): Verification results of the batch.
        job (BatchJob, optional): Final progress snapshot of the batch.

    Returns:
        dict: The formatted summary dictionary.
    """
    total = len(results)
    verified = sum(1 for r in results if r.success)
    not_found = total - verified

    severity_counter = Counter()
    certifications_counter = Counter()
    errors_counter = Counter()
    for result in results:
        if result.success:
            for alert in result.expiration_alerts or []:
                severity_counter[alert.severity] += 1
            for name in result.certification_names():
                certifications_counter[name] += 1
        else:
            errors_counter[result.error] += 1

    summary = {
        "batch_id": job.id if job else None,
        "status": job.status.value if job else None,
        "start_time": job.start_time if job else None,
        "contacts": {
            "total": total,
            "verified": verified,
            "not_found": not_found,
        },
        "expiration_alerts": {
            severity: severity_counter.get(severity, 0)
            for severity in ExpirationAlert.SEVERITIES
        },
        "top_certifications": certifications_counter.most_common(10),
        "errors": dict(errors_counter),
    }
    return summary


def format_results_summary(summary_dict: dict) -> str:
    total = summary_dict['contacts']['total']
    verified = summary_dict['contacts']['verified']
    not_found = summary_dict['contacts']['not_found']
    lines = []
    if summary_dict.get('batch_id'):
        lines += [
            f"Batch ID   : {summary_dict['batch_id']}",
            f"Status     : {summary_dict['status']}",
            f"Started at : {summary_dict['start_time'] or 'N/A'}",
            "",
        ]
    lines += [
        "=== Contacts ===",
        f"Total     : {total}",
        f"Verified  : {verified} ({(verified / total * 100) if total else 0:.2f}%)",
        f"Not found : {not_found} ({(not_found / total * 100) if total else 0:.2f}%)",
        "",
        "=== Expiration Alerts ===",
    ]
    for severity, count in summary_dict['expiration_alerts'].items():
        lines.append(f"{severity.capitalize():<9} : {count}")

    if summary_dict['top_certifications']:
        lines += ["", "=== Top Certifications ==="]
        for name, count in summary_dict['top_certifications']:
            lines.append(f"- {name}: {count}")

    if summary_dict['errors']:
        lines += ["", "=== Errors ==="]
        for error, count in summary_dict['errors'].items():
            lines.append(f"- {error}: {count}")

    return "\n".join(lines)


def save_results_summary(
    results: list[VerificationResult],
    summary_path: str | Path,
    job: Optional[BatchJob] = None,
    save_dict: bool = False,
) -> dict:
    """
    Write a text summary of the results, optionally with a JSON copy.

    Returns:
        dict: The summary dictionary.
    """
    summary_dict = get_results_summary_dict(results, job)
    summary = format_results_summary(summary_dict)

    with open(summary_path, "w", encoding="utf-8") as f:
        f.write(summary)
    logging.info(f"Results summary saved to {mask_path(summary_path)}")

    if save_dict:
        json_path = Path(summary_path).with_suffix('.json')
        with open(json_path, "w", encoding="utf-8") as jf:
            json.dump(summary_dict, jf, indent=2, ensure_ascii=False)
        logging.info(f"Results summary dict saved to {mask_path(json_path)}")

    return summary_dict
