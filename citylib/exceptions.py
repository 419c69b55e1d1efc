class LibraryError(Exception):
    """Base exception for catalog errors."""


class ParseError(LibraryError, ValueError):
    """A record line could not be decoded."""


class ValidationError(LibraryError, ValueError):
    """Blank required field or malformed email."""


class NotFoundError(LibraryError, LookupError):
    """Requested id does not exist in the catalog."""


class BookNotFoundError(NotFoundError):
    """Requested book id does not exist."""


class MemberNotFoundError(NotFoundError):
    """Requested member id does not exist."""


class AlreadyIssuedError(LibraryError):
    """Book is already issued."""


class NotIssuedToMemberError(LibraryError):
    """Member does not hold the book being returned."""


class StorageError(LibraryError):
    """Data file could not be read or written."""
