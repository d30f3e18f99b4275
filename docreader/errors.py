"""Error types for docreader."""


class DocReaderError(Exception):
    """Base error for all docreader failures."""


class PermissionDenied(DocReaderError):
    """The content source refused access, or the resource is gone."""


class ContentUnreadable(DocReaderError):
    """The stream opened but could not be read."""


class RenderFailure(DocReaderError):
    """The rendering surface reported a load error."""


class EmptyExtraction(DocReaderError):
    """Plain-text extraction produced no words."""


class DecodeFailed(DocReaderError):
    """An MHT archive held no usable HTML part."""


class StaleSession(DocReaderError):
    """An event addressed a reading session that is no longer open."""


class UnknownDocument(DocReaderError):
    """No document in the list has this key or identity."""


class InvalidEvent(DocReaderError):
    """A session event arrived with a missing or malformed payload field."""
