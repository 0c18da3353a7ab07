"""aliembed.notify: post-delivery notifications."""
from aliembed.notify.webhook import NullNotifier, Notifier, WebhookNotifier, build_notifier, build_payload

__all__ = ["Notifier", "NullNotifier", "WebhookNotifier", "build_notifier", "build_payload"]
