# Container magic (first bytes of a wrapped archive)
ZIP_MAGIC = b"PK\x03\x04"
GZIP_MAGIC = b"\x1f\x8b\x08"
BZIP2_MAGIC = b"BZh"
SNIFF_SIZE = 4

# Stub terminator and the optional close-tag tail peeked after it
HALT_TOKEN = b"__HALT_COMPILER();"
HALT_PEEK_SIZE = 5

# Manifest
MIN_MANIFEST_LEN = 10
DIR_SUPPORT_VERSION = (1, 1, 1)

# Global (archive-wide) flags
GFLAG_HAS_SIGNATURE = 0x00010000

# Entry flags
ENT_COMPRESSION_MASK = 0x0000F000
ENT_COMPRESSED_NONE = 0x00000000
ENT_COMPRESSED_GZ = 0x00001000
ENT_COMPRESSED_BZ2 = 0x00002000

ENT_PERM_MASK = 0x000001FF
ENT_PERM_DEF_FILE = 0x000001B6  # 0o666
ENT_PERM_DEF_DIR = 0x000001FF  # 0o777

# Signature trailer
SIG_MAGIC = b"GBMB"
SIG_MD5 = 0x0001
SIG_SHA1 = 0x0002
SIG_SHA256 = 0x0003
SIG_SHA512 = 0x0004
SIG_OPENSSL = 0x0010
SIG_OPENSSL_SHA256 = 0x0011
SIG_OPENSSL_SHA512 = 0x0012

SIG_DIGEST_SIZES = {
    SIG_MD5: 16,
    SIG_SHA1: 20,
    SIG_SHA256: 32,
    SIG_SHA512: 64,
}

SIG_NAMES = {
    SIG_MD5: "MD5",
    SIG_SHA1: "SHA1",
    SIG_SHA256: "SHA256",
    SIG_SHA512: "SHA512",
    SIG_OPENSSL: "OpenSSL",
    SIG_OPENSSL_SHA256: "OpenSSL_SHA256",
    SIG_OPENSSL_SHA512: "OpenSSL_SHA512",
}

PUBKEY_SUFFIX = ".pubkey"
