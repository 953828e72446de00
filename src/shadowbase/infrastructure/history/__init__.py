"""History tracking: snapshot hooks and their setup."""

from shadowbase.infrastructure.history.attach import attach_history
from shadowbase.infrastructure.history.interceptor import MIRROR_STRATEGIES, MutationInterceptor

__all__ = ["MIRROR_STRATEGIES", "MutationInterceptor", "attach_history"]
