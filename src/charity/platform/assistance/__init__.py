"""Visitor help requests: the approved applications that tickets are issued against."""

from .models import HelpCategory, HelpRequest, HelpRequestStatus

__all__ = ["HelpCategory", "HelpRequest", "HelpRequestStatus"]
