"""
Snack Locker Monitor Backend
============================

This is the Python package for the locker monitor API.

HOW IT'S ORGANIZED:
------------------
- models/    = Data structures (what does a door event look like?)
- services/  = Workers (talk to the event store, crunch the numbers)
- routers/   = API endpoints (the doors into our app)
- utils/     = Small helpers for cleaning up user input
- config.py  = Environment settings, read once at startup
- main.py    = Puts it all together and starts the server
"""

__version__ = "1.0.0"
