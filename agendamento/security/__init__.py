"""Security: authentication, rate limiting, audit, retention."""

from agendamento.security.rate_limiter import rate_limiter

__all__ = ["rate_limiter"]
