"""Truncator: bound emitted output to a head budget plus a tail budget.

Text accounting is over the emission view: the extracted lines joined with
"\\n", each emitted line counted with its newline. While streaming, output is
emitted verbatim until the head budget H is used up. Past H, output is held
back. The [...truncated...] sentinel goes out exactly once, as soon as the
observed output is known to exceed H + T. At the end, a truncated run emits
the last T characters of the final output; a held run that stayed within
H + T emits the held remainder instead, so nothing is lost and no sentinel
appears.

A budget of 0 disables truncation.
"""

from collections.abc import Sequence

from .types import StreamState

TRUNCATED_SENTINEL = "[...truncated...]"


def tail_of(text: str, n: int) -> str:
    """Last n characters of text; n <= 0 yields ''."""
    return text[-n:] if n > 0 else ""


class Truncator:
    def __init__(self, budget: int = 0, head: int | None = None, tail: int | None = None):
        budget = max(budget, 0)
        self.head = budget // 2 if head is None else head
        self.tail = budget - self.head if tail is None else tail

    @property
    def enabled(self) -> bool:
        return self.head + self.tail > 0

    @property
    def budget(self) -> int:
        return self.head + self.tail

    def feed(self, state: StreamState, view: Sequence[str], new_lines: Sequence[str]) -> list[str]:
        """Chunks to emit for newly extracted lines. Updates state."""
        if not new_lines and not state.held:
            return []
        chunks: list[str] = []
        text = "\n".join(new_lines) + "\n" if new_lines else ""

        if not self.enabled:
            chunks.append(text)
            state.printed_chars += len(text)
            return chunks

        if not state.held:
            remaining = self.head - state.printed_chars
            if len(text) <= remaining:
                chunks.append(text)
                state.printed_chars += len(text)
                return chunks
            cut = text[: max(remaining, 0)]
            if cut:
                chunks.append(cut)
                state.printed_chars += len(cut)
            state.held = True
            state.open_line = bool(cut) and not cut.endswith("\n")

        if not state.truncated and len("\n".join(view)) > self.budget:
            chunks.append(self._sentinel(state))
            state.truncated = True
        return chunks

    def finish(self, state: StreamState, view: Sequence[str], new_lines: Sequence[str]) -> list[str]:
        """Final emission from the complete output: delta, tail or held remainder."""
        chunks = self.feed(state, view, new_lines)
        if not state.held:
            return chunks

        full = "\n".join(view)
        if state.truncated:
            tail = tail_of(full, self.tail)
            if tail:
                chunks.append(tail + "\n")
        else:
            remainder = (full + "\n")[state.printed_chars :]
            if remainder:
                chunks.append(remainder)
                state.printed_chars += len(remainder)
        return chunks

    def _sentinel(self, state: StreamState) -> str:
        # Start on a fresh line when the head was cut mid-line
        prefix = "\n" if state.open_line else ""
        state.open_line = False
        return f"{prefix}{TRUNCATED_SENTINEL}\n"
