"""
Member profiles.

One profile per user. `has_approved_nomination` on the profile (not the
nomination status) is what the directory access gate reads.
"""
