"""Compute fingerprints with chromaprint's ``fpcalc`` binary."""

import logging
import re
import subprocess

logger = logging.getLogger(__name__)


class FpcalcError(RuntimeError):
    """fpcalc could not fingerprint a file."""


def compute_fingerprint(path: str, *, fpcalc_path: str = "fpcalc", timeout_s: float = 60.0) -> str:
    """Fingerprint an audio (or tracker) file.

    Args:
        path: File to fingerprint
        fpcalc_path: fpcalc executable
        timeout_s: Subprocess timeout in seconds

    Returns:
        Compressed fingerprint text

    Raises:
        FpcalcError: If fpcalc is missing, fails or prints no fingerprint
    """
    try:
        result = subprocess.run(
            [fpcalc_path, path],
            capture_output=True,
            text=True,
            timeout=timeout_s,
            check=False,
        )
    except FileNotFoundError as e:
        raise FpcalcError(f"fpcalc binary not found: {fpcalc_path}") from e
    except subprocess.TimeoutExpired as e:
        raise FpcalcError(f"fpcalc timeout after {timeout_s}s for {path}") from e

    if result.returncode != 0:
        raise FpcalcError(f"fpcalc failed with exit code {result.returncode}: {result.stderr.strip()}")

    match = re.search(r"FINGERPRINT\s*=\s*(\S+)", result.stdout)
    if not match:
        raise FpcalcError("fpcalc output missing FINGERPRINT field")

    logger.debug(f"Computed fingerprint for {path}")
    return match.group(1)
