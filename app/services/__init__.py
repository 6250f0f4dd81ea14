"""
Services module for admission-control logic.

Services receive a RecordStore (one per database session) and a clock,
keeping the token bucket and escalation rules separate from the middleware,
the API endpoints and the database models.
"""
