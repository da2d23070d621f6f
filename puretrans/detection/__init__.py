"""Contamination detection: versioned rule sets and the pattern detector."""

from puretrans.detection.rules import Rule, RuleSet, default_rules
from puretrans.detection.detector import PatternDetector

__all__ = ['Rule', 'RuleSet', 'default_rules', 'PatternDetector']
