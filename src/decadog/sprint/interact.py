"""User interaction for the sprint session.

The session only talks to an :class:`InteractionSurface`, so it can be driven
by the terminal (:class:`ConsoleSurface`) or by a scripted surface in tests.
"""

from __future__ import annotations

import difflib
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence

FuzzyMatcher = Callable[[str, Sequence[str]], list[str]]

SIMILARITY_CUTOFF = 0.4


class EndOfInput(Exception):
    """Standard input was closed (Ctrl-D) while a choice was pending."""


class InteractionSurface(ABC):
    """Prompts the maintainer and shows progress."""

    @abstractmethod
    def choose_one(self, prompt: str, options: Sequence[str]) -> int:
        """Let the user pick one of ``options``; returns its index.

        Raises:
            EndOfInput: If input ends before a choice is made.
        """

    @abstractmethod
    def prompt_text(self, prompt: str) -> str:
        """Ask for a line of text. Returns an empty string on end of input."""

    @abstractmethod
    def confirm(self, message: str, default: bool = True) -> bool:
        """Ask a yes/no question. End of input is always a "no"."""

    @abstractmethod
    def show(self, message: str) -> None:
        """Display a line of information to the user."""


class ConsoleSurface(InteractionSurface):
    """Terminal implementation using ``input()``/``print()``."""

    def choose_one(self, prompt: str, options: Sequence[str]) -> int:
        if not options:
            raise ValueError("choose_one requires at least 1 option")

        print()
        for i, option in enumerate(options, 1):
            marker = ">" if i == 1 else " "
            print(f"  {marker} {i}. {option}")
        print()

        while True:
            response = self._read(f"{prompt} [1-{len(options)}]")
            if not response:
                return 0
            try:
                index = int(response) - 1
            except ValueError:
                index = -1
            if 0 <= index < len(options):
                return index
            print("Invalid selection, try again.")

    def prompt_text(self, prompt: str) -> str:
        try:
            return self._read(prompt)
        except EndOfInput:
            return ""

    def confirm(self, message: str, default: bool = True) -> bool:
        try:
            response = self._read(f"{message} [{'Y/n' if default else 'y/N'}]").lower()
        except EndOfInput:
            return False
        if not response:
            return default
        return response in ("y", "yes")

    @staticmethod
    def _read(prompt: str) -> str:
        try:
            return input(f"{prompt}: ").strip()
        except EOFError:
            print()
            raise EndOfInput from None

    def show(self, message: str) -> None:
        print(message)


def fuzzy_filter(query: str, candidates: Sequence[str], limit: int = 10) -> list[str]:
    """Narrow ``candidates`` to those resembling ``query``.

    Case-insensitive substring matches come first (shortest first), followed by
    close matches by similarity. Ties are broken alphabetically so the result is
    deterministic for a given input.
    """

    needle = query.strip().lower()
    unique = sorted(set(candidates), key=lambda c: (c.lower(), c))
    if not needle:
        return unique[:limit]

    substring = [c for c in unique if needle in c.lower()]
    substring.sort(key=lambda c: (len(c), c.lower(), c))

    scored: list[tuple[float, str]] = []
    for candidate in unique:
        if candidate in substring:
            continue
        ratio = difflib.SequenceMatcher(None, needle, candidate.lower()).ratio()
        if ratio >= SIMILARITY_CUTOFF:
            scored.append((ratio, candidate))
    scored.sort(key=lambda item: (-item[0], item[1].lower(), item[1]))

    return (substring + [c for _, c in scored])[:limit]
