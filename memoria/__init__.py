"""
Memoria: SM-2 flashcard scheduling with learning steps.

Packages:
- scheduling: interval calculation, learning state machine, session queue
- db: SQLite card store implementing the persistence gateway
- cli: Rich terminal study interface
"""

__version__ = "1.0.0"
