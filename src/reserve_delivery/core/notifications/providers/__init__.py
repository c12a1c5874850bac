"""Channel providers for guest notifications."""

from .email import (
    EmailNotificationProvider,
    EmailPayload,
    EmailTransport,
    PreviewEmailTransport,
    SmtpEmailTransport,
)
from .sms import (
    SmsNotificationProvider,
    SmsPayload,
    SmsTransport,
    TwilioSmsTransport,
)

__all__ = [
    "EmailNotificationProvider",
    "EmailPayload",
    "EmailTransport",
    "PreviewEmailTransport",
    "SmtpEmailTransport",
    "SmsNotificationProvider",
    "SmsPayload",
    "SmsTransport",
    "TwilioSmsTransport",
]
