"""
Diff Scope

Measures the footprint of the working branch against the base branch so a
reviewer can judge whether the change stayed on topic. Nothing here
assigns a risk level.
"""

import logging
from typing import Optional

from .commands import CommandExecutor
from .models import DiffScope, FileChange

logger = logging.getLogger(__name__)


def parse_numstat(output: str, base_ref: str) -> DiffScope:
    """
    Parse ``git diff --numstat`` output.

    Binary files are reported by git as ``-\\t-\\tpath``.
    """
    scope = DiffScope(base_ref=base_ref)
    for line in output.splitlines():
        parts = line.split("\t", 2)
        if len(parts) != 3:
            continue
        added, deleted, path = parts
        if added == "-" and deleted == "-":
            scope.files.append(FileChange(path=path, added=0, deleted=0, binary=True))
            continue
        try:
            scope.files.append(FileChange(path=path, added=int(added), deleted=int(deleted)))
        except ValueError:
            logger.debug("Ignoring numstat line: %r", line)
    return scope


def collect_scope(executor: CommandExecutor, base_ref: str) -> Optional[DiffScope]:
    """
    Diff the working tree's HEAD against its merge base with ``base_ref``.

    Returns:
        DiffScope, or None when git could not produce the diff
    """
    outcome = executor.run(["git", "diff", "--numstat", f"{base_ref}...HEAD"])
    if not outcome.ok:
        logger.warning("Could not measure diff against %s: %s", base_ref, outcome.output.strip())
        return None
    return parse_numstat(outcome.output, base_ref)
