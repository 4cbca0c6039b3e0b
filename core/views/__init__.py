# Views do core

from core.views import api

__all__ = ['api']
