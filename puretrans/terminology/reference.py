"""
Reference datasets used to seed the terminology store.

A dataset yields (french, arabic, domain, bidirectional) pairs. It is read once
at start-up; the store never writes back to it.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from puretrans.core.exceptions import ConfigurationError
from puretrans.core.models import LegalDomain

logger = logging.getLogger(__name__)


def default_dataset_path() -> Path:
    return Path(__file__).parent / "domains" / "legal_ar_fr.json"


@dataclass(frozen=True)
class ReferencePair:
    french: str
    arabic: str
    domain: LegalDomain = LegalDomain.GENERAL
    bidirectional: bool = True


class ReferenceDataset(ABC):
    """Source of seed terminology pairs."""

    @abstractmethod
    def iter_pairs(self) -> Iterator[ReferencePair]:
        """Yield every seed pair."""
        pass


class InMemoryReferenceDataset(ReferenceDataset):
    """Dataset backed by a list, mostly for tests and custom glossaries."""

    def __init__(self, pairs: Iterable[ReferencePair]):
        self._pairs: List[ReferencePair] = list(pairs)

    def iter_pairs(self) -> Iterator[ReferencePair]:
        return iter(self._pairs)


class JsonReferenceDataset(ReferenceDataset):
    """
    Dataset read from a JSON file of the form::

        {"name": "...", "terms": [{"fr": "contrat", "ar": "عقد", "domain": "civil"}, ...]}

    An entry may set ``"bidirectional": false`` to register only the
    Arabic-to-French direction (used for inflected Arabic variants).
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else default_dataset_path()

    def iter_pairs(self) -> Iterator[ReferencePair]:
        if not self.path.exists():
            raise ConfigurationError(
                f"Terminology dataset not found: {self.path}",
                config_key="terminology_path",
                invalid_value=str(self.path),
            )
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)

        default_domain = LegalDomain.parse(data.get("domain")) or LegalDomain.GENERAL
        skipped = 0
        for item in data.get("terms", []):
            french = (item.get("fr") or "").strip()
            arabic = (item.get("ar") or "").strip()
            if not french or not arabic:
                skipped += 1
                continue
            yield ReferencePair(
                french=french,
                arabic=arabic,
                domain=LegalDomain.parse(item.get("domain")) or default_domain,
                bidirectional=item.get("bidirectional", True),
            )
        if skipped:
            logger.warning("Skipped %d incomplete entries in %s", skipped, self.path)
