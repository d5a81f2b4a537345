"""
Decomposer: turns a unified diff into an ordered list of typed operations.

Every later stage works on these operations, so the decomposer guarantees at
least one of them: a diff that yields nothing becomes a single "modify" on a
generic target carrying the patch description.
"""
import logging
import re
from datetime import datetime, timezone

from patchsandbox.config import MAX_OPERATIONS
from patchsandbox.schemas import Operation, OperationType

logger = logging.getLogger(__name__)

FALLBACK_TARGET = "code"
UNKNOWN_TARGET  = "unknown"

SAFE_TARGET = re.compile(r"^[a-zA-Z0-9_\-/.]+$")
FILE_HEADER = re.compile(r"^[+-]{3}\s+(.+)")
HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")

# Cheap pre-filter for Operation.safe; the detector does the real work later
UNSAFE_HINTS = [
    re.compile(r"\beval\s*\("),
    re.compile(r"\bFunction\s*\("),
    re.compile(r"\brequire\s*\("),
    re.compile(r"\bimport\s+"),
    re.compile(r"\bprocess\."),
    re.compile(r"\bglobal\."),
]


class PolicyError(ValueError):
    """A patch that breaks a structural rule; fatal to the request."""


class TooManyOperationsError(PolicyError):
    def __init__(self, count: int, limit: int):
        super().__init__(f"Too many operations: {count} exceeds limit of {limit}")
        self.count = count
        self.limit = limit


class UnsafeTargetError(PolicyError):
    def __init__(self, target: str, index: int):
        super().__init__(f"Operation {index}: Invalid or unsafe target '{target}'")
        self.target = target
        self.index = index


def looks_safe(content: str | None) -> bool:
    return not any(p.search(content or "") for p in UNSAFE_HINTS)


def _target_from_header(line: str) -> str | None:
    match = FILE_HEADER.match(line)
    if not match:
        return None
    # "+++ b/src/app.js\t2024-01-01 10:00:00" -> "src/app.js"
    path = match.group(1).split("\t")[0].strip()
    return re.sub(r"^[ab]/", "", path)


def decompose(diff: str, description: str = "", max_operations: int = MAX_OPERATIONS) -> list[Operation]:
    """
    Parses unified-diff syntax into add/remove operations.

    Raises TooManyOperationsError when the diff holds more than max_operations
    changes, and UnsafeTargetError when a target is not a plain path.
    """
    parsed_at = datetime.now(timezone.utc)
    raw: list[tuple[OperationType, str, str | None, int]] = []

    current_file = ""
    line_number  = 0
    old_left     = 0          # body lines still owed to the open hunk
    new_left     = 0

    for line in (diff or "").splitlines():
        line = line.rstrip("\r")

        in_hunk = old_left > 0 or new_left > 0
        if line.startswith("diff "):
            old_left = new_left = 0
            continue

        # inside a hunk "+++ x" is an added "++ x", not a file header
        if not in_hunk and (line.startswith("+++") or line.startswith("---")):
            current_file = _target_from_header(line) or current_file
            continue

        if line.startswith("@@"):
            match = HUNK_HEADER.match(line)
            if match:
                old_left    = int(match.group(2) or 1)
                line_number = int(match.group(3))
                new_left    = int(match.group(4) or 1)
            continue

        if line.startswith("+"):
            raw.append((OperationType.ADD, current_file or UNKNOWN_TARGET, line[1:], line_number))
            line_number += 1
            new_left = max(0, new_left - 1)
        elif line.startswith("-"):
            raw.append((OperationType.REMOVE, current_file or UNKNOWN_TARGET, line[1:], line_number))
            old_left = max(0, old_left - 1)
        elif line.startswith(" ") or line == "":
            line_number += 1
            old_left = max(0, old_left - 1)
            new_left = max(0, new_left - 1)
        # "\ No newline at end of file", "diff --git", "index ..." carry no change

    if not raw:
        logger.info("Diff produced no operations, falling back to a generic modify")
        raw.append((OperationType.MODIFY, FALLBACK_TARGET, description, 1))

    if len(raw) > max_operations:
        logger.warning(f"Rejecting diff with {len(raw)} operations (limit {max_operations})")
        raise TooManyOperationsError(len(raw), max_operations)

    operations: list[Operation] = []
    for index, (op_type, target, content, line_no) in enumerate(raw):
        if not SAFE_TARGET.match(target):
            logger.warning(f"Rejecting unsafe target: {target!r}")
            raise UnsafeTargetError(target, index)

        operations.append(Operation(
            type=op_type,
            target=target,
            content=content,
            line=line_no,
            parsed_at=parsed_at,
            safe=looks_safe(content),
        ))

    logger.debug(f"Decomposed diff into {len(operations)} operation(s)")
    return operations
