"""
Legal terminology store.

Bidirectional Arabic/French dictionary tagged by legal domain. Readers work on
an immutable index that carries one precompiled longest-match-first pattern per
direction; writers build a new index under a lock and publish it by swapping a
single reference. Every change appends a version, so any entry can be rolled
back to what it was before.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from puretrans.core.models import Language, LegalDomain, TerminologyEntry
from puretrans.detection.rules import ARABIC_CLASS, LATIN_CLASS
from puretrans.terminology.reference import ReferenceDataset

logger = logging.getLogger(__name__)

Direction = Tuple[Language, Language]
DIRECTIONS: Tuple[Direction, ...] = (
    (Language.FRENCH, Language.ARABIC),
    (Language.ARABIC, Language.FRENCH),
)

_WS_RE = re.compile(r"\s+")


def normalize_term(term: str, language: Language) -> str:
    """Lookup key for a term: whitespace collapsed, case-folded for French."""
    term = _WS_RE.sub(" ", term.strip())
    if language is Language.FRENCH:
        term = term.casefold()
    return term


def _compile_direction(entries: Dict[str, TerminologyEntry], language: Language) -> Optional["re.Pattern[str]"]:
    if not entries:
        return None
    terms = sorted(
        (entry.source_term for entry in entries.values()),
        key=lambda t: (-len(t), t),
    )
    alternatives = "|".join(_WS_RE.sub(r"\\s+", re.escape(t).replace("\\ ", " ")) for t in terms)
    if language is Language.FRENCH:
        boundary = f"{LATIN_CLASS}0-9"
        flags = re.IGNORECASE
    else:
        boundary = ARABIC_CLASS
        flags = 0
    return re.compile(f"(?<![{boundary}])(?:{alternatives})(?![{boundary}])", flags)


@dataclass(frozen=True)
class TerminologyIndex:
    """Immutable read-side view of the active entries."""
    version: int
    entries: Dict[Direction, Dict[str, TerminologyEntry]]
    patterns: Dict[Direction, Optional["re.Pattern[str]"]]

    @classmethod
    def build(cls, version: int, entries: Dict[Direction, Dict[str, TerminologyEntry]]) -> TerminologyIndex:
        frozen = {direction: dict(entries.get(direction, {})) for direction in DIRECTIONS}
        patterns = {
            direction: _compile_direction(frozen[direction], direction[0])
            for direction in DIRECTIONS
        }
        return cls(version=version, entries=frozen, patterns=patterns)


class TerminologyStore:
    """
    Versioned bilingual legal dictionary.

    Features:
    - Seeding from a ReferenceDataset (both directions per pair)
    - Longest-match-first substitution with script-aware boundaries
    - Prompt glossary sections for the engine
    - Domain votes for fallback intent classification
    - Per-entry version history with rollback
    """

    def __init__(self, dataset: Optional[ReferenceDataset] = None):
        self._write_lock = threading.Lock()
        # (source_language, target_language, key) -> every version, oldest first
        self._history: Dict[Tuple[Language, Language, str], List[TerminologyEntry]] = {}
        # (source_language, target_language, key) -> index into history of the active version
        self._active: Dict[Tuple[Language, Language, str], int] = {}
        self._index = TerminologyIndex.build(0, {})
        if dataset is not None:
            self.load(dataset)

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def load(self, dataset: ReferenceDataset) -> int:
        """Register every pair of ``dataset``. Returns the number of entries added."""
        count = 0
        with self._write_lock:
            for pair in dataset.iter_pairs():
                self._append(pair.arabic, pair.french, pair.domain,
                             Language.ARABIC, Language.FRENCH, origin="seed")
                count += 1
                if pair.bidirectional:
                    self._append(pair.french, pair.arabic, pair.domain,
                                 Language.FRENCH, Language.ARABIC, origin="seed")
                    count += 1
            self._publish()
        logger.info("Loaded %d terminology entries (index v%d)", count, self._index.version)
        return count

    def add_entry(
        self,
        source_term: str,
        target_term: str,
        source_language: Language,
        target_language: Language,
        domain: LegalDomain = LegalDomain.GENERAL,
        origin: str = "manual",
        bidirectional: bool = False,
    ) -> TerminologyEntry:
        """Add a term, or a new version of an existing one, and publish."""
        with self._write_lock:
            entry = self._append(source_term, target_term, domain,
                                 source_language, target_language, origin)
            if bidirectional:
                self._append(target_term, source_term, domain,
                             target_language, source_language, origin)
            self._publish()
        logger.info(
            "Terminology %s->%s: %r => %r (v%d)",
            source_language.value, target_language.value,
            source_term, target_term, entry.version,
        )
        return entry

    def rollback_entry(self, source_term: str, source_language: Language, target_language: Language) -> Optional[TerminologyEntry]:
        """
        Re-activate the version preceding the active one.

        Returns:
            The re-activated entry, or None when the term disappears because
            its first version was rolled back
        """
        key = (source_language, target_language, normalize_term(source_term, source_language))
        with self._write_lock:
            if key not in self._active:
                return None
            position = self._active[key] - 1
            if position < 0:
                del self._active[key]
                restored = None
            else:
                self._active[key] = position
                restored = self._history[key][position]
            self._publish()
        logger.info("Rolled back terminology entry %r", source_term)
        return restored

    def _append(
        self,
        source_term: str,
        target_term: str,
        domain: LegalDomain,
        source_language: Language,
        target_language: Language,
        origin: str,
    ) -> TerminologyEntry:
        key = (source_language, target_language, normalize_term(source_term, source_language))
        versions = self._history.setdefault(key, [])
        entry = TerminologyEntry(
            source_term=_WS_RE.sub(" ", source_term.strip()),
            target_term=target_term.strip(),
            domain=domain,
            source_language=source_language,
            target_language=target_language,
            version=len(versions) + 1,
            origin=origin,
        )
        versions.append(entry)
        self._active[key] = len(versions) - 1
        return entry

    def _publish(self) -> None:
        entries: Dict[Direction, Dict[str, TerminologyEntry]] = {d: {} for d in DIRECTIONS}
        for (src, tgt, key), position in self._active.items():
            entries[(src, tgt)][key] = self._history[(src, tgt, key)][position]
        self._index = TerminologyIndex.build(self._index.version + 1, entries)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    @property
    def version(self) -> int:
        return self._index.version

    def snapshot(self) -> TerminologyIndex:
        return self._index

    def lookup(self, term: str, source_language: Language, target_language: Language) -> Optional[str]:
        entry = self._index.entries[(source_language, target_language)].get(
            normalize_term(term, source_language)
        )
        return entry.target_term if entry else None

    def history(self, term: str, source_language: Language, target_language: Language) -> List[TerminologyEntry]:
        key = (source_language, target_language, normalize_term(term, source_language))
        with self._write_lock:
            return list(self._history.get(key, []))

    def bulk_apply(self, text: str, source_language: Language, target_language: Language) -> str:
        """Replace every known source term in ``text``, longest match first."""
        index = self._index
        pattern = index.patterns[(source_language, target_language)]
        if not text or pattern is None:
            return text
        entries = index.entries[(source_language, target_language)]

        def _replace(match: "re.Match[str]") -> str:
            entry = entries.get(normalize_term(match.group(0), source_language))
            return entry.target_term if entry else match.group(0)

        return pattern.sub(_replace, text)

    def find_terms_in_text(self, text: str, source_language: Language, target_language: Language) -> List[TerminologyEntry]:
        """Known terms occurring in ``text``, in order of first appearance, without repeats."""
        index = self._index
        pattern = index.patterns[(source_language, target_language)]
        if not text or pattern is None:
            return []
        entries = index.entries[(source_language, target_language)]
        found: Dict[str, TerminologyEntry] = {}
        for match in pattern.finditer(text):
            key = normalize_term(match.group(0), source_language)
            if key in entries and key not in found:
                found[key] = entries[key]
        return list(found.values())

    def generate_prompt_section(
        self,
        source_text: str,
        source_language: Language,
        target_language: Language,
        max_terms: int = 20,
    ) -> str:
        """Glossary block for the engine prompt; empty when no term is present."""
        terms = self.find_terms_in_text(source_text, source_language, target_language)[:max_terms]
        if not terms:
            return ""
        lines = ["Use these terminology translations:"]
        for entry in terms:
            lines.append(f"  • \"{entry.source_term}\" → \"{entry.target_term}\"")
        return "\n".join(lines)

    def domain_votes(self, text: str, language: Language) -> Dict[LegalDomain, int]:
        """Count known terms of ``language`` in ``text`` per legal domain."""
        votes: Dict[LegalDomain, int] = {}
        for entry in self.find_terms_in_text(text, language, language.other):
            votes[entry.domain] = votes.get(entry.domain, 0) + 1
        return votes

    def entries_for_domain(
        self,
        domain: LegalDomain,
        source_language: Optional[Language] = None,
    ) -> List[TerminologyEntry]:
        index = self._index
        result = []
        for (src, _tgt), entries in index.entries.items():
            if source_language is not None and src is not source_language:
                continue
            result.extend(e for e in entries.values() if e.domain is domain)
        return sorted(result, key=lambda e: (e.source_language.value, e.source_term))

    def stats(self) -> Dict[str, object]:
        index = self._index
        by_domain: Dict[str, int] = {}
        for entries in index.entries.values():
            for entry in entries.values():
                by_domain[entry.domain.value] = by_domain.get(entry.domain.value, 0) + 1
        return {
            "version": index.version,
            "total_terms": sum(len(e) for e in index.entries.values()),
            "by_direction": {f"{s.value}-{t.value}": len(e) for (s, t), e in index.entries.items()},
            "by_domain": by_domain,
        }

    def __len__(self) -> int:
        return sum(len(e) for e in self._index.entries.values())

    def __repr__(self) -> str:
        return f"TerminologyStore({len(self)} entries, v{self.version})"
