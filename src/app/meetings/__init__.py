"""Standup meeting core.

Meeting registry and lifecycle state machine, trigger scheduling, live
sessions with per-participant standup flows, and the finalization
pipeline that summarizes, notifies, escalates and syncs work items.
MeetingService in ``service.py`` is the entry point used by the API.
"""
