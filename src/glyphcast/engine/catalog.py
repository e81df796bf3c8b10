from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Sequence

from .types import SpellDefinition, normalize_letters

logger = logging.getLogger(__name__)


class CatalogError(RuntimeError):
    pass


@dataclass(frozen=True)
class CatalogIssue:
    index: int
    spell_id: str
    reason: str


@dataclass(frozen=True)
class ContainedMatch:
    spell: SpellDefinition
    start: int

    @property
    def end(self) -> int:
        return self.start + len(self.spell.normalized_code)


@dataclass
class _TrieNode:
    children: dict[str, "_TrieNode"] = field(default_factory=dict)
    spell: SpellDefinition | None = None


class SpellCatalog:
    """Immutable letter-code lookup built once from spell definitions.

    Keys live in a letter trie, so exact and prefix queries cost
    O(len(sequence)) regardless of catalog size. Invalid and duplicate
    definitions are skipped at build time and recorded in `issues`;
    pass strict=True to raise CatalogError on the first one instead.
    """

    def __init__(self, definitions: Iterable[SpellDefinition], *, strict: bool = False) -> None:
        self._root = _TrieNode()
        self._order: dict[str, int] = {}
        self._spells: list[SpellDefinition] = []
        issues: list[CatalogIssue] = []

        for index, spell in enumerate(definitions):
            reason = self._rejection_reason(spell)
            if reason is not None:
                issue = CatalogIssue(index=index, spell_id=spell.id, reason=reason)
                if strict:
                    raise CatalogError(f"Spell #{index} ({spell.id!r}): {reason}")
                logger.warning("Skipping spell #%d (%r): %s", index, spell.id, reason)
                issues.append(issue)
                continue
            self._insert(spell)

        self._issues: tuple[CatalogIssue, ...] = tuple(issues)
        logger.info("Spell catalog built with %d spells (%d skipped)", len(self._spells), len(issues))

    def _rejection_reason(self, spell: SpellDefinition) -> str | None:
        if not spell.id.strip():
            return "empty id"
        if not spell.name.strip():
            return "empty name"
        code = spell.normalized_code
        if not code.strip():
            return "empty letter code"
        if self._lookup(code) is not None:
            return f"duplicate letter code {code!r}"
        return None

    def _insert(self, spell: SpellDefinition) -> None:
        node = self._root
        for letter in spell.normalized_code:
            node = node.children.setdefault(letter, _TrieNode())
        node.spell = spell
        self._order[spell.normalized_code] = len(self._spells)
        self._spells.append(spell)

    def _walk(self, sequence: str) -> _TrieNode | None:
        node = self._root
        for letter in sequence:
            nxt = node.children.get(letter)
            if nxt is None:
                return None
            node = nxt
        return node

    def _lookup(self, code: str) -> SpellDefinition | None:
        node = self._walk(code)
        return node.spell if node is not None else None

    @property
    def issues(self) -> tuple[CatalogIssue, ...]:
        return self._issues

    def spells(self) -> Sequence[SpellDefinition]:
        return list(self._spells)

    def __len__(self) -> int:
        return len(self._spells)

    def __iter__(self) -> Iterator[SpellDefinition]:
        return iter(list(self._spells))

    def __contains__(self, sequence: object) -> bool:
        return isinstance(sequence, str) and self.try_exact_match(sequence) is not None

    def try_exact_match(self, sequence: str) -> SpellDefinition | None:
        code = normalize_letters(sequence)
        if not code:
            return None
        return self._lookup(code)

    def has_prefix_potential(self, sequence: str) -> bool:
        """True if some registered letter code starts with `sequence`."""
        if not self._spells:
            return False
        node = self._walk(normalize_letters(sequence))
        # Every trie node lies on the path of at least one registered key
        return node is not None

    def _contained(self, code: str) -> list[ContainedMatch]:
        seen: set[str] = set()
        found: list[ContainedMatch] = []
        for start in range(len(code)):
            node = self._root
            for letter in code[start:]:
                nxt = node.children.get(letter)
                if nxt is None:
                    break
                node = nxt
                if node.spell is not None and node.spell.normalized_code not in seen:
                    seen.add(node.spell.normalized_code)
                    found.append(ContainedMatch(spell=node.spell, start=start))
        found.sort(
            key=lambda m: (-len(m.spell.normalized_code), m.start, self._order[m.spell.normalized_code])
        )
        return found

    def find_all_contained_in(self, sequence: str) -> list[SpellDefinition]:
        """Every spell whose code occurs contiguously in `sequence`.

        Longest first; ties go to the earliest occurrence, then to
        registration order.
        """
        return [m.spell for m in self._contained(normalize_letters(sequence))]

    def best_contained_match(self, sequence: str) -> ContainedMatch | None:
        matches = self._contained(normalize_letters(sequence))
        return matches[0] if matches else None
