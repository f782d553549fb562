"""Participant and escalation notifications.

EmailNotifier renders standup emails (see emails.py) and delivers them
through GmailService, one message per recipient.
"""
