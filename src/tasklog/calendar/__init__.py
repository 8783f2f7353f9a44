"""
Calendar import.

Components:
- client.py: Google Calendar v3 events query (httpx)
- events.py: event validation + merge into a day's task list
"""
