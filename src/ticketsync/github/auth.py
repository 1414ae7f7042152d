"""GitHub token resolution."""

from __future__ import annotations

import logging
import os
import subprocess

from ticketsync.github.exceptions import TokenNotFoundError

logger = logging.getLogger("ticketsync.github.auth")

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")


def get_github_token() -> str:
    """Get GitHub token from environment or gh CLI.

    Checks GITHUB_TOKEN, then GH_TOKEN, then ``gh auth token``.

    Raises:
        TokenNotFoundError: If no source yields a token.
    """
    for var in TOKEN_ENV_VARS:
        token = os.environ.get(var, "").strip()
        if token:
            logger.debug("Using GitHub token from %s", var)
            return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            check=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        logger.debug("gh auth token failed: %s", e)
    else:
        token = result.stdout.strip()
        if token:
            logger.debug("Using GitHub token from gh CLI")
            return token

    raise TokenNotFoundError(
        "No GitHub token found.\n\n"
        "Options:\n"
        "  1. Set GITHUB_TOKEN environment variable\n"
        "  2. Run 'gh auth login' to authenticate GitHub CLI"
    )
