"""
Essay Grader - multi-examiner grading for A-Level essay responses.

Each response is scored independently by one examiner per Assessment
Objective, the scores are aggregated into an overall mark and grade,
and a short summary with improvement suggestions is attached.
"""

__version__ = "1.0.0"
__author__ = "Essay Grader Team"
