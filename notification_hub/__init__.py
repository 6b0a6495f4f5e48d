"""Contract notification hub.

Targets, stores and pushes contract notifications, and ships the async client
used by consumers to cache them and call the API resiliently.
"""
