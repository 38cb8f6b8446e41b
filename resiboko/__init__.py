"""
ResiboKo - Source Package

A receipt tracker for everyday spending: snap a receipt or say what
you paid, let the AI read it, confirm, and keep a running history.

DESIGN PRINCIPLES:
1. AI suggests → Human confirms → Store persists
2. The live snapshot is the only source of truth for what is displayed
3. No silent completion of incomplete records at save time
4. Every remote failure ends in a visible, recoverable state
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "ResiboKo Team"
