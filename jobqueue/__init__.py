"""
Asynchronous Job Processing Core

Queue-backed background jobs with deliberate retry, dead-letter and discard
decisions, plus producer-side drivers for immediate, delayed and scheduled
delivery.
"""

__version__ = "1.0.0"
