# errors.py


class SignNoteError(Exception):
    """Base class for all PySignNote errors."""


class InvalidEncoding(SignNoteError):
    """Input is not valid base64."""


class InvalidFormat(SignNoteError):
    """Decoded bytes are not a structurally valid RSA public key."""


class SigningFailed(SignNoteError):
    """The local private key could not produce a signature."""


class StorageError(SignNoteError):
    """A persistence layer is unavailable or corrupt."""


class IdentityError(StorageError):
    """Persisted identity material is present but unusable.

    Fatal for signing and key export: the identity must not be regenerated,
    since that would break every public key already handed out.
    """
