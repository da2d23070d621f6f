"""Legal terminology store and reference datasets."""

from puretrans.terminology.reference import (
    ReferencePair,
    ReferenceDataset,
    InMemoryReferenceDataset,
    JsonReferenceDataset,
)
from puretrans.terminology.store import TerminologyStore

__all__ = [
    'ReferencePair',
    'ReferenceDataset',
    'InMemoryReferenceDataset',
    'JsonReferenceDataset',
    'TerminologyStore',
]
