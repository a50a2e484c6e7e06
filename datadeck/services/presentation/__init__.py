"""Presentation documents: fragments, assembly, sessions, generation and tweaks."""
