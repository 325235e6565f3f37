"""issuesync: local file mirror of a remote issue tracker with two-way sync."""

__version__ = "0.1.0"
