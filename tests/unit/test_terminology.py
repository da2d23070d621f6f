"""
Tests for the legal terminology store and its reference datasets.
"""

import json

import pytest

from puretrans.core.exceptions import ConfigurationError
from puretrans.core.models import Language, LegalDomain
from puretrans.terminology.reference import (
    InMemoryReferenceDataset,
    JsonReferenceDataset,
    ReferencePair,
)
from puretrans.terminology.store import TerminologyStore, normalize_term

AR = Language.ARABIC
FR = Language.FRENCH


class TestReferenceDataset:
    """Test dataset loading."""

    def test_bundled_dataset_loads(self, store):
        assert len(store) > 100
        assert store.version == 1

    def test_missing_file_raises(self, tmp_path):
        dataset = JsonReferenceDataset(tmp_path / "missing.json")
        with pytest.raises(ConfigurationError):
            list(dataset.iter_pairs())

    def test_incomplete_entries_skipped(self, tmp_path):
        path = tmp_path / "terms.json"
        path.write_text(json.dumps({
            "domain": "criminal",
            "terms": [
                {"fr": "peine", "ar": "العقوبة"},
                {"fr": "", "ar": "الحكم"},
                {"fr": "appel", "ar": "الاستئناف", "domain": "procedural"},
            ],
        }), encoding="utf-8")
        pairs = list(JsonReferenceDataset(path).iter_pairs())
        assert [p.french for p in pairs] == ["peine", "appel"]
        assert pairs[0].domain is LegalDomain.CRIMINAL
        assert pairs[1].domain is LegalDomain.PROCEDURAL


class TestLookup:
    """Test term lookup in both directions."""

    def test_arabic_to_french(self, store):
        assert store.lookup("عقد", AR, FR) == "contrat"
        assert store.lookup("المحكمة", AR, FR) == "tribunal"

    def test_french_to_arabic_is_case_insensitive(self, store):
        assert store.lookup("Tribunal", FR, AR) == "المحكمة"
        assert store.lookup("RESPONSABILITÉ  CIVILE", FR, AR) == "المسؤولية المدنية"

    def test_one_way_variants(self, store):
        assert store.lookup("محامي", AR, FR) == "avocat"
        assert store.lookup("avocat", FR, AR) == "المحامي"
        assert store.lookup("contrat", FR, AR) == "عقد"

    def test_unknown_term(self, store):
        assert store.lookup("inexistant", FR, AR) is None

    def test_normalize_term(self):
        assert normalize_term("  Code   Civil ", FR) == "code civil"
        assert normalize_term(" عقد  البيع ", AR) == "عقد البيع"


class TestBulkApply:
    """Test longest-match-first substitution."""

    def test_longest_match_wins(self, store):
        assert store.bulk_apply("المسؤولية المدنية", AR, FR) == "responsabilité civile"
        assert store.bulk_apply("المسؤولية", AR, FR) == "responsabilité"

    def test_french_source(self, store):
        assert store.bulk_apply("Le Tribunal administratif", FR, AR) == "Le المحكمة الإدارية"

    def test_attached_prefix_is_not_a_match(self, store):
        assert store.bulk_apply("للمحامي", AR, FR) == "للمحامي"

    def test_word_boundaries_in_french(self, store):
        assert store.bulk_apply("contrats", FR, AR) == "contrats"

    def test_empty_text(self, store):
        assert store.bulk_apply("", AR, FR) == ""

    def test_find_terms_in_order_without_repeats(self, store):
        terms = store.find_terms_in_text("المحكمة و المحامي و المحكمة", AR, FR)
        assert [t.target_term for t in terms] == ["tribunal", "avocat"]


class TestPromptAndDomains:

    def test_prompt_section(self, store):
        section = store.generate_prompt_section("أصدرت المحكمة الحكم", AR, FR)
        assert section.startswith("Use these terminology translations:")
        assert '"المحكمة" → "tribunal"' in section
        assert '"الحكم" → "jugement"' in section

    def test_prompt_section_empty_without_terms(self, store):
        assert store.generate_prompt_section("نص عادي", AR, FR) == ""

    def test_domain_votes(self, store):
        votes = store.domain_votes("Le prévenu encourt une peine devant le tribunal.", FR)
        assert votes[LegalDomain.CRIMINAL] == 2
        assert votes[LegalDomain.PROCEDURAL] == 1

    def test_entries_for_domain(self, store):
        family = store.entries_for_domain(LegalDomain.FAMILY, FR)
        assert "divorce" in [e.source_term for e in family]
        assert all(e.source_language is FR for e in family)


class TestVersioning:
    """Test add/rollback and index publication."""

    def test_add_entry_publishes_new_version(self, fresh_store):
        before = fresh_store.version
        entry = fresh_store.add_entry("عقد", "convention", AR, FR, LegalDomain.CIVIL, origin="feedback")
        assert entry.version == 2
        assert entry.origin == "feedback"
        assert fresh_store.version == before + 1
        assert fresh_store.lookup("عقد", AR, FR) == "convention"
        assert fresh_store.bulk_apply("عقد", AR, FR) == "convention"

    def test_rollback_restores_previous(self, fresh_store):
        fresh_store.add_entry("عقد", "convention", AR, FR)
        restored = fresh_store.rollback_entry("عقد", AR, FR)
        assert restored.target_term == "contrat"
        assert fresh_store.lookup("عقد", AR, FR) == "contrat"
        assert [e.target_term for e in fresh_store.history("عقد", AR, FR)] == ["contrat", "convention"]

    def test_rollback_first_version_removes_term(self):
        store = TerminologyStore()
        store.add_entry("astreinte", "الغرامة التهديدية", FR, AR)
        assert store.rollback_entry("astreinte", FR, AR) is None
        assert store.lookup("astreinte", FR, AR) is None

    def test_rollback_unknown(self, fresh_store):
        assert fresh_store.rollback_entry("inconnu", FR, AR) is None

    def test_bidirectional_add(self):
        store = TerminologyStore()
        store.add_entry("astreinte", "الغرامة التهديدية", FR, AR, bidirectional=True)
        assert store.lookup("الغرامة التهديدية", AR, FR) == "astreinte"

    def test_in_memory_dataset(self):
        store = TerminologyStore(InMemoryReferenceDataset([
            ReferencePair("bail", "عقد الإيجار", LegalDomain.CIVIL),
            ReferencePair("avocat", "محامي", LegalDomain.PROCEDURAL, bidirectional=False),
        ]))
        assert len(store) == 3
        stats = store.stats()
        assert stats["by_direction"] == {"fr-ar": 1, "ar-fr": 2}
        assert stats["by_domain"] == {"civil": 2, "procedural": 1}

    def test_snapshot_is_immutable_view(self, fresh_store):
        snapshot = fresh_store.snapshot()
        fresh_store.add_entry("عقد", "convention", AR, FR)
        assert snapshot.entries[(AR, FR)]["عقد"].target_term == "contrat"
