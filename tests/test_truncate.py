"""Tests for head/tail truncation of streamed output."""

from tmux_exec.truncate import TRUNCATED_SENTINEL, Truncator, tail_of
from tmux_exec.types import StreamState


def _lines(n: int) -> list[str]:
    return [f"line{i:02d}" for i in range(1, n + 1)]


class TestBudget:
    def test_even_split(self):
        t = Truncator(2000)
        assert (t.head, t.tail) == (1000, 1000)

    def test_odd_budget_gives_tail_the_extra(self):
        t = Truncator(7)
        assert (t.head, t.tail) == (3, 4)

    def test_zero_disables(self):
        assert not Truncator(0).enabled
        assert not Truncator(-5).enabled

    def test_tail_of(self):
        assert tail_of("abcdef", 3) == "def"
        assert tail_of("abc", 10) == "abc"
        assert tail_of("abc", 0) == ""


class TestFeed:
    def test_disabled_passes_everything(self):
        state = StreamState()
        lines = _lines(50)
        chunks = Truncator(0).feed(state, lines, lines)
        assert "".join(chunks) == "\n".join(lines) + "\n"

    def test_under_head_verbatim(self):
        state = StreamState()
        assert Truncator(100).feed(state, ["a", "b"], ["a", "b"]) == ["a\nb\n"]
        assert state.printed_chars == 4
        assert not state.held

    def test_nothing_new(self):
        assert Truncator(100).feed(StreamState(), ["a"], []) == []

    def test_sentinel_once_on_new_line(self):
        t = Truncator(20)
        state = StreamState()
        lines = _lines(10)
        chunks = t.feed(state, lines, lines)
        assert chunks == ["line01\nlin", f"\n{TRUNCATED_SENTINEL}\n"]
        assert state.truncated

        more = lines + ["line11"]
        assert t.feed(state, more, ["line11"]) == []

    def test_held_without_sentinel_while_within_budget(self):
        t = Truncator(20)
        state = StreamState()
        view = ["abcdefgh", "ijklmnop"]
        assert t.feed(state, view, view) == ["abcdefgh\ni"]
        assert state.held
        assert not state.truncated


class TestFinish:
    def test_tail_after_sentinel(self):
        t = Truncator(20)
        state = StreamState()
        lines = _lines(10)
        out = t.feed(state, lines, lines) + t.finish(state, lines, [])
        assert "".join(out) == f"line01\nlin\n{TRUNCATED_SENTINEL}\ne09\nline10\n"

    def test_held_remainder_when_total_fits(self):
        t = Truncator(20)
        state = StreamState()
        view = ["abcdefgh", "ijklmnop"]
        out = t.feed(state, view, view) + t.finish(state, view, [])
        assert "".join(out) == "abcdefgh\nijklmnop\n"
        assert TRUNCATED_SENTINEL not in "".join(out)

    def test_head_filled_exactly_loses_nothing(self):
        t = Truncator(20)
        state = StreamState()
        first = ["abcd", "efgh"]
        out = t.feed(state, first, first)
        assert out == ["abcd\nefgh\n"]

        view = first + ["ij"]
        out += t.feed(state, view, ["ij"])
        out += t.finish(state, view, [])
        assert "".join(out) == "abcd\nefgh\nij\n"

    def test_finish_emits_final_delta(self):
        t = Truncator(100)
        state = StreamState()
        out = t.feed(state, ["a"], ["a"]) + t.finish(state, ["a", "b"], ["b"])
        assert "".join(out) == "a\nb\n"

    def test_output_bounded(self):
        t = Truncator(100)
        state = StreamState()
        lines = [f"row {i}" for i in range(1000)]
        out = "".join(t.feed(state, lines, lines) + t.finish(state, lines, []))
        assert len(out) <= 100 + len(TRUNCATED_SENTINEL) + 3
        assert out.endswith("row 999\n")
        assert out.count(TRUNCATED_SENTINEL) == 1
