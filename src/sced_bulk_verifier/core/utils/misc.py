# -*- coding: utf-8 -*-

import os
import json
import logging
import mimetypes
from pathlib import Path

import yaml


CSV_MIME_TYPES = ('text/csv', 'application/vnd.ms-excel')


#=======================================================================
# JSON / YAML Utilities
#=======================================================================

def write_jsonl(lines, path):
    """
    Write a list of dictionaries to a JSON Lines file.
    Each dictionary is written as a separate line in the file.

    Args:
        lines (list): List of dictionaries to write.
        path (str): Path to the output file.
    """
    with open(path, 'w', encoding='utf-8') as f:
        for line in lines:
            f.write(json.dumps(line, default=str) + '\n')
    return


def read_yaml(path):
    with open(path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f)


def write_yaml(data, path):
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


#=======================================================================
# File Type Utilities
#=======================================================================

def is_csv_file(path) -> bool:
    """
    Whether a file looks like a CSV, by extension or guessed MIME type.

    Spreadsheet exports are often labelled ``application/vnd.ms-excel``
    and are accepted as well.
    """
    path = Path(path)
    if path.suffix.lower() == '.csv':
        return True
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type in CSV_MIME_TYPES


#=======================================================================
# Path Utilities
#=======================================================================

def mask_path(path, base_dir=None):
    """
    Masks or simplifies a path for logging.

    Args:
        path (str): The full path to mask.
        base_dir (str, optional): The base directory to make the path relative to.

    Returns:
        str: The masked or simplified path.
    """
    path = Path(path)

    # Use base_dir if provided, otherwise fallback to PROJECT_DIR from environment
    if base_dir is None:
        base_dir = os.getenv('PROJECT_DIR')

    if base_dir:
        try:
            return str(path.relative_to(Path(base_dir)))
        except ValueError:
            pass  # not under base_dir

    # Replace home directory with "~"
    try:
        return f"~/{path.relative_to(Path.home())}"
    except ValueError:
        return str(path)


def ensure_output_path(path, description="Output folder"):
    """
    Ensure that an output directory exists, creating it if needed.

    Args:
        path (str): Path to the directory.
        description (str): Description of the resource (for logging).
    """
    if not os.path.exists(path):
        logging.info(f"{description} does not exist. Creating it at: {mask_path(path)}")
        os.makedirs(path, exist_ok=True)
