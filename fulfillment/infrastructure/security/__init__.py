from .field_encryption import (
    EncryptedString,
    FieldCipher,
    configure_field_cipher,
    get_field_cipher,
    lookup_hash,
)

__all__ = [
    "EncryptedString",
    "FieldCipher",
    "configure_field_cipher",
    "get_field_cipher",
    "lookup_hash",
]
