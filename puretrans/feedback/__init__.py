"""Feedback-driven rule and terminology improvement."""

from puretrans.feedback.regression import RegressionSuite
from puretrans.feedback.loop import FeedbackLoop

__all__ = ['RegressionSuite', 'FeedbackLoop']
