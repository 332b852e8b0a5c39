"""Per-user namespace naming for the service mesh member roster."""

DEFAULT_USER_PREFIX = 'user'


def compute(user_count: int, prefix: str) -> list[str]:
    """Return namespace names {prefix}1..{prefix}N in ascending user id order.

    The result only depends on the arguments, so the roster stays stable
    across reconciliation cycles.

    Raises:
        ValueError: If user_count is negative
    """
    if user_count < 0:
        raise ValueError(f"user count must be >= 0, got {user_count}")
    return [f'{prefix}{user_id}' for user_id in range(1, user_count + 1)]


def usernames(user_count: int) -> list[str]:
    """Workshop user names (user1..userN)."""
    return compute(user_count, DEFAULT_USER_PREFIX)
