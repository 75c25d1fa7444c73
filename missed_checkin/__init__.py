"""Missed check-in detection and emergency-contact escalation."""

from .scanner import MissedCheckinScanner, ScanSummary

__all__ = ["MissedCheckinScanner", "ScanSummary"]
