from __future__ import annotations


class OceanusError(Exception):
    pass


class ValidationError(OceanusError):
    pass


class AuthError(OceanusError):
    pass


class AccessDeniedError(OceanusError):
    pass


class NotFoundError(OceanusError):
    pass
