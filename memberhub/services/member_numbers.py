import re
import secrets

from sqlalchemy.orm import Session

from memberhub.core.config import settings
from memberhub.models.subscription import Subscription

MEMBER_NUMBER_PATTERN = re.compile(r"^[A-Z]{2,4}\d{4,8}$")


def _candidate(prefix: str, length: int) -> str:
    return f"{prefix}{secrets.randbelow(10 ** length):0{length}d}"


def generate_member_number(db: Session, prefix: str | None = None, length: int | None = None) -> str:
    """Random member number that no subscription uses yet."""
    prefix = prefix or settings.member_number_prefix
    length = length or settings.member_number_length
    while True:
        number = _candidate(prefix, length)
        if not member_number_taken(db, number):
            return number


def is_valid_member_number(member_number: str) -> bool:
    return bool(MEMBER_NUMBER_PATTERN.match(member_number or ""))


def member_number_taken(db: Session, member_number: str) -> bool:
    return db.query(Subscription.id).filter(Subscription.member_number == member_number).first() is not None
