class PharError(Exception):
    """Base class for PHAR parsing errors."""


# Container / layout
class UnsupportedContainer(PharError):
    pass


class MalformedStub(PharError):
    pass


class MalformedManifest(PharError):
    pass


class MalformedEntry(PharError):
    pass


class UnsupportedCompression(PharError):
    pass


class TruncatedError(PharError, EOFError):
    pass


# Metadata
class MetadataError(PharError):
    pass
