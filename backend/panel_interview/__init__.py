"""
Panel interview orchestration: multiple interviewer personas, phase
tracking, retrieval-grounded questions and answer comparison.
"""

__version__ = "0.1.0"
