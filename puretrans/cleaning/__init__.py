"""Removal of detected contamination and engine wrappers."""

from puretrans.cleaning.cleaner import ContentCleaner
from puretrans.cleaning.output_cleaner import clean_engine_output

__all__ = ['ContentCleaner', 'clean_engine_output']
