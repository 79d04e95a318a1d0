# utils/clock.py
from datetime import datetime, timezone


def utcnow() -> datetime:
	"""Naive UTC timestamp; every datetime stored by the project is naive UTC."""
	return datetime.now(timezone.utc).replace(tzinfo=None)
