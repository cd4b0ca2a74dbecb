"""Exception types raised by the editor core and host bridges."""


class MdpadError(Exception):
    """Base class for all editor errors."""


class PatternError(MdpadError):
    """A search pattern could not be compiled."""


class NotFoundError(MdpadError):
    """A search produced no match."""


class DocumentIOError(MdpadError):
    """Reading, writing or listing files failed."""


class ConversionError(MdpadError):
    """A Word document could not be converted."""


class OcrError(MdpadError):
    """The OCR service failed or returned an unusable reply."""


class StateError(MdpadError):
    """An operation referenced a tab that does not exist."""
