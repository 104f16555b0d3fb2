"""ClubHub session core: reconciles identity sessions with club-member profiles."""

__version__ = "0.1.0"
