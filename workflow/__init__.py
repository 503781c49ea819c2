"""
Review workflow
workflow/

- approval.py    — Question and Paper Pattern approval chains, bulk approve, feedback history
- statistics.py  — per-status counts and review queues per course
"""
