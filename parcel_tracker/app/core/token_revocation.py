"""
Token Revocation using Redis.

Implements token blacklisting so that signed-out or deleted sessions are
rejected immediately instead of living until the JWT expires.
"""

import logging

logger = logging.getLogger(__name__)

# Redis key prefixes
TOKEN_BLACKLIST_PREFIX = "blacklist:token:"
USER_TOKENS_PREFIX = "user:tokens:"


async def revoke_token(redis, token: str, user_id: str, ttl_seconds: int) -> bool:
    """
    Revoke a specific JWT token by adding it to the blacklist.

    Args:
        redis: Async Redis client
        token: The JWT token string to revoke
        user_id: Account ID who owns the token
        ttl_seconds: How long to remember the revocation (token lifetime)

    Returns:
        True if successfully revoked, False otherwise
    """
    try:
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        await redis.setex(key, ttl_seconds, str(user_id))
        return True
    except Exception as e:
        logger.error("Error revoking token for user %s: %s", user_id, e)
        return False


async def is_token_revoked(redis, token: str) -> bool:
    """
    Check if a token has been revoked.

    Fails open when Redis is unreachable (availability over strictness).
    """
    try:
        key = f"{TOKEN_BLACKLIST_PREFIX}{token}"
        exists = await redis.exists(key)
        return exists > 0
    except Exception as e:
        logger.warning("Error checking token revocation: %s", e)
        return False


async def revoke_all_user_tokens(redis, user_id: str, ttl_seconds: int) -> bool:
    """
    Revoke all active tokens for an account.

    Called when an account is deleted so that outstanding tokens stop working.
    """
    try:
        key = f"{USER_TOKENS_PREFIX}{user_id}:revoked"
        await redis.setex(key, ttl_seconds, "1")
        return True
    except Exception as e:
        logger.error("Error revoking all tokens for user %s: %s", user_id, e)
        return False


async def are_user_tokens_revoked(redis, user_id: str) -> bool:
    """Check if all tokens for an account have been revoked."""
    try:
        key = f"{USER_TOKENS_PREFIX}{user_id}:revoked"
        exists = await redis.exists(key)
        return exists > 0
    except Exception as e:
        logger.warning("Error checking user token revocation: %s", e)
        return False
