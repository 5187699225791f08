"""Extractor: isolate one invocation's output from captured pane lines.

Lines are 0-indexed. The boundary is the LAST line containing the marker:
earlier invocations may have left the same kind of line in scrollback.
"""

from collections.abc import Sequence


def find_marker(lines: Sequence[str], marker: str) -> int | None:
    """Index of the last line containing marker, or None when absent."""
    for i in range(len(lines) - 1, -1, -1):
        if marker in lines[i]:
            return i
    return None


def extract(lines: Sequence[str], marker: str, skip_top: int = 0, idle: bool = False) -> list[str]:
    """Lines after the last marker line, minus wrapper and prompt noise.

    skip_top leading lines are dropped (echoed batch body + terminator).
    When idle, the final line is the re-displayed prompt and is dropped too.
    Returns [] when the marker is not present (evicted or never echoed).
    """
    index = find_marker(lines, marker)
    if index is None:
        return []
    output = list(lines[index + 1 + skip_top :])
    if idle and output:
        output.pop()
    return output
