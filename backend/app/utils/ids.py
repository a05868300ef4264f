import uuid


def new_id(length: int = 10) -> str:
    """Short random hex id for sessions, players, teams and matches."""
    return uuid.uuid4().hex[:length]
