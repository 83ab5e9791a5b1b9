"""Exit codes for the shipit CLI.

Every fatal outcome (failed precondition, broken transaction, red CI run,
verification mismatch) exits with ``FAILURE`` so shell callers only need to
test for non-zero. That includes an invalid bump kind or ``--repo`` path;
only arguments typer itself rejects exit with its own code 2.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Process exit codes. Values are stable."""

    OK = 0
    FAILURE = 1
