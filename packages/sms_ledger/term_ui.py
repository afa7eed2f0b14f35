"""Terminal prompt for choosing a transaction category (prompt_toolkit-based).

Kept apart from the review command so it can be driven headlessly in tests
with a pipe input and ``DummyOutput``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggest, Suggestion
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.styles import Style
from prompt_toolkit.validation import ValidationError, Validator

MAX_CATEGORY_LEN = 64


def normalize_category(text: str, known: Iterable[str]) -> str:
    """Return the known spelling of ``text`` (case-insensitive), else ``text`` trimmed."""

    cleaned = " ".join(text.split())
    canonical = {k.lower(): k for k in known}
    return canonical.get(cleaned.lower(), cleaned)


class _PrefixSuggest(AutoSuggest):
    def __init__(self, vocab: Sequence[str]) -> None:
        self._vocab = list(vocab)

    def get_suggestion(self, buffer, document):
        text = document.text
        if not text:
            return None
        lower = text.lower()
        for w in self._vocab:
            if w.lower() == lower:
                return None
        for w in self._vocab:
            if w.lower().startswith(lower):
                return Suggestion(w[len(text) :])
        return None


class _CategoryValidator(Validator):
    def validate(self, document) -> None:
        name = " ".join(document.text.split())
        if not name:
            raise ValidationError(message="Category cannot be empty.")
        if len(name) > MAX_CATEGORY_LEN:
            raise ValidationError(message=f"Category is longer than {MAX_CATEGORY_LEN} characters.")


def prompt_category(
    categories: Sequence[str] | Iterable[str],
    *,
    default: str = "",
    message: str = "Category (Enter to accept, Esc to skip): ",
    session: PromptSession | None = None,
) -> str | None:
    """Ask for a category, pre-filled with ``default``.

    Known categories complete case-insensitively (Tab, or Enter on a unique
    prefix). Any other non-empty text is returned as a new label. Returns
    ``None`` when the user skips with Esc or Ctrl+C.
    """

    words = list(categories)
    completer = WordCompleter(words, ignore_case=True, match_middle=True, sentence=True)

    def _best_prefix_match(text: str) -> str | None:
        if not text:
            return None
        lower = text.lower()
        if any(w.lower() == lower for w in words):
            return None
        for w in words:
            if w.lower().startswith(lower):
                return w
        return None

    kb = KeyBindings()

    @kb.add("escape", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    @kb.add("c-c", eager=True)
    def _(event) -> None:  # pragma: no cover - exercised indirectly
        event.app.exit(result=None)

    @kb.add("tab", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        b = event.app.current_buffer
        cand = _best_prefix_match(b.document.text)
        if cand:
            b.insert_text(cand[len(b.document.text) :])
        elif b.complete_state is None:
            b.start_completion(select_first=True)
        else:
            b.complete_next()

    @kb.add("enter", eager=True)
    def _(event) -> None:  # pragma: no cover - integration path
        b = event.app.current_buffer
        cs = b.complete_state
        if cs is not None and cs.current_completion is not None:
            b.apply_completion(cs.current_completion)
        else:
            cand = _best_prefix_match(b.document.text)
            if cand:
                b.insert_text(cand[len(b.document.text) :])
        b.validate_and_handle()

    if session is None:
        sess: PromptSession = PromptSession(key_bindings=kb)
    else:
        sess = PromptSession(
            input=getattr(session, "input", None),
            output=getattr(session, "output", None),
            key_bindings=kb,
        )

    result = sess.prompt(
        message,
        default=default,
        completer=completer,
        auto_suggest=_PrefixSuggest(words),
        validator=_CategoryValidator(),
        validate_while_typing=False,
        key_bindings=kb,
        style=Style.from_dict({"auto-suggestion": "fg:#888888"}),
    )
    if result is None:
        return None
    return normalize_category(result, words)


__all__ = ["MAX_CATEGORY_LEN", "normalize_category", "prompt_category"]
