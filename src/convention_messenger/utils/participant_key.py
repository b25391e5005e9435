import hashlib
from typing import Iterable
from uuid import UUID


def canonical_participants(user_ids: Iterable[UUID]) -> list[UUID]:
    """Sorted, deduplicated participant ids."""
    return sorted(set(user_ids), key=str)


def make_participant_key(user_ids: Iterable[UUID]) -> str:
    """
    Order-independent key of a participant set: sha256 hex of the sorted ids
    joined by commas. Two sets get the same key iff they contain the same ids.
    """
    joined = ",".join(str(user_id) for user_id in canonical_participants(user_ids))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()
