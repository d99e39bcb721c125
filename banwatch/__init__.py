"""Steam ban watch bot: tracks profiles and relays ban alerts over Telegram."""

__version__ = "1.0.0"
