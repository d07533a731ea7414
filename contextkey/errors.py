"""
Context Key error taxonomy.

Every failure the envelope pipeline can report maps to exactly one of these
classes. `public_message` is what an end user may see; it never carries key
material, ciphertext, or anything that separates one failure cause from
another inside the same class.
"""

from typing import Any, Optional


class ContextKeyError(Exception):
    """Base class for all Context Key failures."""

    public_message = "The context key could not be processed."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)


class ValidationError(ContextKeyError):
    """Raised when a record (or caller input) is malformed or cannot be canonicalized."""

    public_message = "The context key contents are invalid."

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class GenerationError(ContextKeyError):
    """Raised when the secure random source cannot supply entropy. Fatal."""

    public_message = "Secure random generation failed."


class AuthenticationError(ContextKeyError):
    """
    Wrong password or corrupted ciphertext.

    The two causes are indistinguishable.
    """

    public_message = "Incorrect password or corrupted context key."

    def __init__(self):
        super().__init__(self.public_message)


class FormatError(ContextKeyError):
    """Raised when a blob or a decrypted envelope does not parse."""

    public_message = "The context key file is not in a supported format."


class SignatureError(ContextKeyError):
    """
    The decrypted envelope's signature does not verify.

    The envelope is attached so that a caller may inspect it at its own risk.
    """

    public_message = "The context key signature is not valid."

    def __init__(self, envelope: Any = None, message: Optional[str] = None):
        self.envelope = envelope
        super().__init__(message)
