"""
Device-side runtime: the sharer's session flow (start, position updates,
expiry, SOS) and the tracker's live view, driven over the HTTP API.
"""
