"""HTTP middleware."""

from homefence.api.middleware.request_id import RequestIDMiddleware

__all__ = ["RequestIDMiddleware"]
