"""
Time tracking subsystem.

Components:
- state.py: TrackerState, the local authoritative per-user index
- sessions.py: SessionTracker, the start/stop/switch state machine
- guard.py: auto-stop check run on the fast tick
- ticker.py: owned repeating timers
- api.py: high-level operations that pair each mutation with a write mode
"""
