"""Notification dispatch: print to stdout or hand off to a handler program."""
