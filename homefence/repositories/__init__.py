"""Repository pattern implementations for database access."""

from homefence.repositories.account_repository import AccountRepository
from homefence.repositories.alert_repository import AlertRepository
from homefence.repositories.base import Repository
from homefence.repositories.member_repository import MemberRepository

__all__ = [
    "AccountRepository",
    "AlertRepository",
    "MemberRepository",
    "Repository",
]
