"""Conversation generation for the virtual Scrum Master.

StandupConversationGenerator produces the standup questions, per-answer
acknowledgments, meeting summaries, blocker analyses and team insights
through LLMService, falling back to placeholder text when no model is
configured or a call fails.
"""
