"""Qatar Panel Tracker - bulk import reconciliation and dashboard metrics.

Tracks construction panel manufacturing through projects, buildings,
facades and individual panels.
"""

__version__ = "0.1.0"
