# agenda/core/rate_limit.py
from slowapi import Limiter
from slowapi.util import get_remote_address
from agenda.core.config import settings

# login y registro comparten el mismo límite por IP
limiter = Limiter(key_func=get_remote_address, enabled=True)
AUTH_LIMIT = settings.login_rate_limit
