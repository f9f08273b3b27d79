"""Leaderboard domain services: score store, submission gate and the
live-update broadcast layer.

These modules hold no Flask request state. HTTP routes and socket
handlers reach them through the ``LiveLeaderboard`` facade that the
application factory builds and stores on ``app.extensions``.
"""
