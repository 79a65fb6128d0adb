"""
Charity Platform Services - visit tickets for a community help desk.

Approved help requests are turned into dated visit tickets which front-desk
staff validate and redeem, checking the visitor into the day's queue:

- tickets: bulk issuance, validation, redemption and cancellation
- assistance: the help requests tickets are issued against
- audit: who did what to which ticket
- communications: fire-and-forget visitor notifications
"""

__version__ = "1.0.0"
__author__ = "Lewisham Charity Digital Team"


def get_version() -> str:
    """Get platform services version."""
    return __version__


__all__ = ["__version__", "get_version"]
