"""Listener configuration models and loaders."""
