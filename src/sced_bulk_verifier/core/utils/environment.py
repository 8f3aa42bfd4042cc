# -*- coding: utf-8 -*-

"""
Environment configuration: .env loading and required variables.
"""

import os
import logging
from pathlib import Path
from typing import List, Optional
import dotenv

REQUIRED_ENV_VARS = ('BULK_VERIFY_TOKEN',)
ENV_FILE_NAMES = ('.env.local', '.env')

# Repository root when running from a source checkout (src/ layout)
PROJECT_ROOT = Path(__file__).resolve().parents[4]


def env_search_paths() -> List[Path]:
    """Candidate .env files, most specific first: working directory, then project root."""
    roots = [Path.cwd()]
    if PROJECT_ROOT != roots[0]:
        roots.append(PROJECT_ROOT)
    return [root / name for root in roots for name in ENV_FILE_NAMES]


def load_environment_variables(env_file: Optional[str | Path] = None, verbose: bool = False) -> Optional[Path]:
    """
    Load the first .env file found. Variables already set are not overridden.

    Args:
        env_file: Specific .env file path. If None, ``env_search_paths()`` is used.
        verbose: Whether to log which file was loaded.

    Returns:
        The loaded file, or None if no file was found.
    """
    candidates = [Path(env_file)] if env_file else env_search_paths()
    for env_path in candidates:
        if env_path.is_file():
            dotenv.load_dotenv(env_path)
            if verbose:
                logging.debug(f"Loaded environment from: {env_path}")
            return env_path

    if env_file:
        logging.warning(f"Specified .env file not found: {env_file}")
    return None


def validate_required_env_vars() -> list:
    """Return the required environment variables that are not set."""
    return [var for var in REQUIRED_ENV_VARS if not os.getenv(var)]


def setup_environment(verbose: bool = False, env_file: Optional[str | Path] = None) -> bool:
    """
    Set up environment for the package. A missing .env file is not an error.

    Returns:
        True if a .env file was loaded.
    """
    loaded = load_environment_variables(env_file, verbose)

    if verbose and loaded is None:
        logging.debug("No .env file loaded. Relying on system environment variables.")
        logging.debug("Searched:")
        for path in env_search_paths():
            logging.debug(f"  - {path}")

    return loaded is not None
