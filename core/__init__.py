"""
Core business logic

This package holds every state-changing operation:
- state machine: the lanpa lifecycle transition table
- managers: lanpa lifecycle, game voting and punishment nominations
- permissions: admin / member guards
- locks: row locks and compare-and-swap status updates
"""
