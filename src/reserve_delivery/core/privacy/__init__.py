"""
Privacy Module

PII cipher seam and contact masking for logs.
"""

from .cipher import PiiCipher, PassthroughPiiCipher
from .masking import mask_contact, mask_email, mask_phone

__all__ = [
    "PiiCipher",
    "PassthroughPiiCipher",
    "mask_contact",
    "mask_email",
    "mask_phone",
]
