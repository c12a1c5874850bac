"""Log-safe rendering of guest contacts."""

from typing import Optional


def mask_email(address: str) -> str:
    local, _, domain = address.partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"


def mask_phone(number: str) -> str:
    digits = [c for c in number if c.isdigit()]
    if len(digits) < 4:
        return "***"
    return "***" + "".join(digits[-4:])


def mask_contact(contact: Optional[str]) -> str:
    """
    Mask an email address or phone number for logging.

    >>> mask_contact("anna@example.com")
    'a***@example.com'
    >>> mask_contact("+355 69 123 1234")
    '***1234'
    """
    if not contact:
        return "<none>"
    contact = contact.strip()
    if "@" in contact:
        return mask_email(contact)
    return mask_phone(contact)
