"""Game domain services: sessions, answer matching, scoring, bots and timers.

This package contains pure(ish) domain logic that is imported by the
socket handlers, keeping transport concerns separated from core game
mechanics.
"""
