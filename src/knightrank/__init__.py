"""
knightrank - Chess ladder ratings for a small internal group.

Tracks match outcomes between players and maintains a zero-sum Elo-style
rating per player, with weekly inactivity decay redistributed to active
players as an activity bonus.

Main components:
- elo: Rating engine (pure math, decay, population decay runs, match recording)
- db: SQLAlchemy models and session management
- services: Transactional collaborators that persist engine results
"""

__version__ = "1.0.0"
