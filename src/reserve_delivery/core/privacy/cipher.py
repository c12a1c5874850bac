"""
PII collaborator interface.

Guest contacts arrive encrypted at rest. Workers only decrypt at the
provider boundary and never persist plaintext. Key management lives with
the booking platform; this module only defines the seam.
"""

import hashlib
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class PiiCipher(Protocol):
    def encrypt(self, plaintext: str) -> str:
        ...

    def decrypt(self, ciphertext: str, key_version: Optional[int]) -> str:
        ...

    def derive_search_hash(self, plaintext: str) -> str:
        ...


class PassthroughPiiCipher:
    """
    Identity cipher for deployments whose producers store contacts in clear.

    The search hash is still a real digest so lookups behave the same as
    with an encrypting cipher.
    """

    def encrypt(self, plaintext: str) -> str:
        return plaintext

    def decrypt(self, ciphertext: str, key_version: Optional[int]) -> str:
        return ciphertext

    def derive_search_hash(self, plaintext: str) -> str:
        normalized = plaintext.strip().lower()
        return hashlib.sha256(
            b"reserve-platform/privacy/search:" + normalized.encode("utf-8")
        ).hexdigest()
