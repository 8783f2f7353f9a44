"""
Remote snapshot sync.

Components:
- snapshot.py: snapshot building, structural fingerprint, legacy migration
- reconciler.py: debounced/immediate writes + inbound reconciliation
"""
