# cabinetry/core/rate_limit.py
from slowapi import Limiter
from slowapi.util import get_remote_address

from cabinetry.core.settings import settings

# one shared Limiter for the whole app, keyed per client and signed-in user
limiter = Limiter(
    key_func=lambda req: f"{get_remote_address(req)}:{getattr(req.state, 'user_id', None) or 'anon'}",
    enabled=settings.RATE_LIMIT_ENABLED,
)
