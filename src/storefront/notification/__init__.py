"""Email channel registry.

Uses the fake adapter by default; the hosting application installs a real
SMTP or API-backed adapter with set_email_channel().
"""

from storefront.notification.email_port import EmailPort
from storefront.notification.fake_email import FakeEmailAdapter

_email_channel: EmailPort | None = None


def get_email_channel() -> EmailPort:
    """Return the configured email adapter (singleton)."""
    global _email_channel
    if _email_channel is None:
        _email_channel = FakeEmailAdapter()
    return _email_channel


def set_email_channel(channel: EmailPort) -> None:
    global _email_channel
    _email_channel = channel


def reset_email_channel() -> None:
    """Reset the channel singleton (useful for testing)."""
    global _email_channel
    _email_channel = None
