"""
Cipherpost server.

Backend core of a key-blind messaging service: contact requests, group
membership, per-recipient message fanout and push notification dispatch.
"""
__version__ = "1.0.0"
