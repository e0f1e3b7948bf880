"""
Independent user requests processed by admins (YouTube claims, YouTube OAC,
social media linking, artist profile linking).

All share the PENDING -> PROCESSING -> COMPLETED/REJECTED status vocabulary.
"""
