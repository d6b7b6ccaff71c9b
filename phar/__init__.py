"""
phar: read-only parser for PHP PHAR archives.

Features:

- Container sniffing (zip/gzip/bzip2 wrapped archives are detected and rejected).
- Stub extraction up to the ``__HALT_COMPILER();`` terminator, including the
  optional ``?>`` close-tag tail.
- Manifest and entry decoding (API version, global flags, alias, metadata),
  with directory entries for API 1.1.1 and later.
- Entry content decoding for uncompressed and deflate-compressed entries.
- Explicit verification of entry CRC32 checksums and MD5/SHA/OpenSSL signatures.
- A ``phar`` CLI to list, inspect, print, extract and verify archives.

Archives are parsed once into immutable values; see ``phar.reader``.
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "errors",
    "reader",
    "manifest",
    "entry",
    "signature",
    "metadata",
]

# Programmatic API: phar.reader.open_archive / read_archive / ArchiveReader, and
# the CLI functions in phar.cli (cmd_list, cmd_extract, ...) which take normal parameters.
