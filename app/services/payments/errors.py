"""Errors raised by the upstream payment clients."""


class PaymentGatewayError(RuntimeError):
    """Upstream provider call failed (transport error, bad body, missing config)."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider
