"""Temporal reconstruction and playback engine."""
