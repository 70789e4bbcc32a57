# errors.py
"""Failure kinds shared by the wallet session, the ledger facade and the relay."""


class BridgeError(Exception):
    kind = 'InternalError'
    http_status = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def __repr__(self):
        return f"{type(self).__name__}({self.message!r})"


class ProviderUnavailable(BridgeError):
    """No wallet provider is reachable (the extension is absent)."""
    kind = 'NoProvider'


class NoSession(BridgeError):
    kind = 'NoSession'


class AddressMismatch(BridgeError):
    kind = 'AddressMismatch'


class AccountDrift(BridgeError):
    """The wallet's authorized account no longer equals the stored one."""
    kind = 'AccountDrift'


class ValidationError(BridgeError):
    kind = 'ValidationError'
    http_status = 400


class ChainCallFailed(BridgeError):
    kind = 'ChainCallFailed'


class Unauthorized(ChainCallFailed):
    """The record registry rejected the caller."""
    kind = 'Unauthorized'


class UpstreamAPIError(BridgeError):
    kind = 'UpstreamAPIError'


class InternalError(BridgeError):
    kind = 'InternalError'
