"""
Releases module.

- Owners create releases in DRAFT, add tracks, then submit for review
- Admins approve, reject (optionally allowing resubmission) or distribute
- Status changes go through lifecycle.py; every change is recorded to the audit trail
"""
