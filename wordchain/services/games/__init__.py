"""Game domain services: the session reducer, replicas and timers.

This package contains the word chain game logic that HTTP routes and socket
handlers drive, keeping transport concerns separated from core game
mechanics. Nothing in here except ``runtime`` knows about Flask.
"""
