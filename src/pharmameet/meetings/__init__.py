"""Meetings module -- storage, search, feed, save pipeline, and AI summaries.

Provides the Pydantic schemas and SQLAlchemy models for meetings, tags and
audio references, MeetingRepository, the read/search/feed services, the
SaveMeetingPipeline, and the transcript analysis and summary audio services.
"""
