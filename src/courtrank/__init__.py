"""
courtrank - Rating and bracket engine for racquet-sport leagues

Core of a tennis/pickleball/padel league platform. Everything else in the
platform (HTTP, auth, notifications delivery, storage of images) talks to
this package through a handful of service classes.

Main components:
- rating: Season rating parameters, match rating updates, season replay
- bracket: Single-elimination finals brackets (seeding and advancement)
- db: SQLAlchemy models, session management and the rating store
- collaborators: Match source and notification sink interfaces
"""

__version__ = "1.0.0"
