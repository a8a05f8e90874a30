"""
Shared slowapi limiter, keyed by client address.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from simdesk.config import settings

limiter = Limiter(key_func=get_remote_address)

CHAT_RATE_LIMIT = f"{settings.RATE_LIMIT_PER_MINUTE}/minute"
