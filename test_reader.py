from __future__ import annotations

import contextlib
import io
import tempfile
import unittest
import zlib
from pathlib import Path

import phpserialize
from Cryptodome.PublicKey import RSA

from phar.constants import (
    GFLAG_HAS_SIGNATURE,
    SIG_MD5,
    SIG_SHA1,
    SIG_SHA256,
    SIG_SHA512,
    SIG_OPENSSL,
    SIG_OPENSSL_SHA256,
)
from phar.errors import MalformedStub, MetadataError, UnsupportedContainer
from phar.metadata import load_metadata
from phar.reader import ArchiveReader, open_archive, read_archive, sniff_container, verify_archive
from phar.signature import parse_signature

from phar_fixtures import DEFAULT_STUB, FileSpec, build_phar, sample_files


class CountingStream(io.BytesIO):
    def __init__(self, data: bytes):
        super().__init__(data)
        self.reads = 0

    def read(self, *args):
        self.reads += 1
        return super().read(*args)


class SniffTests(unittest.TestCase):
    def test_wrappers_rejected_without_further_reads(self):
        for head in (b"PK\x03\x04", b"\x1f\x8b\x08\x00", b"BZh9"):
            with self.subTest(head=head):
                f = CountingStream(head + b"__HALT_COMPILER(); ?>\r\n" + b"\x00" * 64)
                with self.assertRaises(UnsupportedContainer):
                    read_archive(f)
                self.assertEqual(f.reads, 1)

    def test_sniff_names(self):
        self.assertEqual(sniff_container(b"PK\x03\x04"), "zip")
        self.assertEqual(sniff_container(b"\x1f\x8b\x08\x08"), "gzip")
        self.assertEqual(sniff_container(b"BZh1"), "bzip2")
        self.assertIsNone(sniff_container(b"<?ph"))
        self.assertIsNone(sniff_container(b"PK"))

    def test_short_input_is_malformed_stub(self):
        with self.assertRaises(MalformedStub):
            read_archive(io.BytesIO(b"<?"))


class ArchiveTests(unittest.TestCase):
    def run_with_tmpdir(self, func):
        with tempfile.TemporaryDirectory() as tmp:
            func(Path(tmp))

    def test_parse_sample(self):
        data = build_phar(sample_files(), alias="sample.phar")
        a = read_archive(io.BytesIO(data), source_name="sample.phar")
        self.assertEqual(a.stub, DEFAULT_STUB)
        self.assertEqual(a.stub_text, DEFAULT_STUB.decode("ascii"))
        self.assertEqual(a.version, (1, 1, 1))
        self.assertEqual(a.alias, "sample.phar")
        self.assertEqual(a.source_name, "sample.phar")
        self.assertIsNone(a.signature)
        self.assertFalse(a.has_signature)
        self.assertEqual([e.name for e in a.list()], ["src", "src/index.php", "src/lib.php", "README.md"])
        self.assertTrue(a.get("src").is_directory)
        self.assertEqual(a.get_file("src/lib.php").content, "<?php function f() { return 42; }\n" * 20)
        self.assertTrue(a.get_file("src/lib.php").is_compressed)
        self.assertEqual(a.get("readme.md").content, "# Title\nünïcode\n")
        self.assertEqual(a.get("README.md").permissions, 0o644 | 0o666)

    def test_parse_is_idempotent(self):
        data = build_phar(sample_files())
        first = read_archive(io.BytesIO(data))
        second = read_archive(io.BytesIO(data))
        self.assertEqual(dict(first.manifest.entries), dict(second.manifest.entries))
        self.assertEqual(first, second)

    def test_stub_with_shebang(self):
        stub = b"#!/usr/bin/env php\n<?php\nPhar::mapPhar('x.phar');\n__HALT_COMPILER();"
        a = read_archive(io.BytesIO(build_phar([FileSpec("a", b"1")], stub=stub)))
        self.assertEqual(a.stub, stub)
        self.assertEqual(a.get("a").content, "1")

    def test_read_archive_custom_inflate(self):
        data = build_phar(sample_files())
        a = read_archive(io.BytesIO(data), inflate=lambda b: zlib.decompress(b, -zlib.MAX_WBITS))
        self.assertEqual(a.get_file("src/lib.php").content, "<?php function f() { return 42; }\n" * 20)
        seen = []

        def inflate(b):
            seen.append(b)
            return zlib.decompress(b, -zlib.MAX_WBITS)

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "app.phar"
            path.write_bytes(data)
            with ArchiveReader(str(path), inflate=inflate) as reader:
                self.assertTrue(reader.verify())
            self.assertEqual(len(seen), 1)
            self.assertEqual(open_archive(str(path), inflate=inflate).get("README.md").content, "# Title\nünïcode\n")

    def test_open_archive_and_reader(self):
        def scenario(tmp_path: Path):
            path = tmp_path / "app.phar"
            path.write_bytes(build_phar(sample_files()))
            a = open_archive(str(path))
            self.assertEqual(a.source_name, str(path))
            with ArchiveReader(str(path)) as reader:
                self.assertEqual(len(reader.list()), 4)
                self.assertEqual(reader.get_file("src/index.php").content, "<?php echo 'hello';\n")
                self.assertTrue(reader.verify())
                out = tmp_path / "out" / "index.php"
                reader.extract(reader.get_file("src/index.php"), str(out))
                self.assertEqual(out.read_bytes(), b"<?php echo 'hello';\n")
            self.assertIsNone(reader.f)
            with self.assertRaises(RuntimeError):
                reader.list()

        self.run_with_tmpdir(scenario)

    def test_reader_closes_on_failure(self):
        def scenario(tmp_path: Path):
            path = tmp_path / "bad.phar"
            path.write_bytes(b"PK\x03\x04" + b"\x00" * 30)
            reader = ArchiveReader(str(path))
            with self.assertRaises(UnsupportedContainer):
                reader.open()
            self.assertIsNone(reader.f)

        self.run_with_tmpdir(scenario)


class VerifyTests(unittest.TestCase):
    def test_checksums(self):
        data = build_phar(sample_files())
        f = io.BytesIO(data)
        self.assertTrue(verify_archive(f, read_archive(f)))

    def test_bad_checksum_is_stored_not_enforced(self):
        data = build_phar([FileSpec("a.txt", b"abc", crc=0xDEADBEEF)])
        f = io.BytesIO(data)
        a = read_archive(f)
        self.assertEqual(a.get("a.txt").checksum, 0xDEADBEEF)
        self.assertFalse(verify_archive(f, a))

    def test_hash_signatures(self):
        for flags in (SIG_MD5, SIG_SHA1, SIG_SHA256, SIG_SHA512):
            with self.subTest(flags=flags):
                data = build_phar(sample_files(), sig_flags=flags)
                f = io.BytesIO(data)
                a = read_archive(f)
                self.assertTrue(a.has_signature)
                self.assertIsNotNone(a.signature)
                self.assertEqual(a.signature.flags, flags)
                self.assertTrue(verify_archive(f, a))

    def test_tampered_stub_fails_signature(self):
        data = bytearray(build_phar(sample_files(), sig_flags=SIG_SHA256))
        data[2] ^= 0x20
        f = io.BytesIO(bytes(data))
        a = read_archive(f)
        self.assertFalse(verify_archive(f, a))

    def test_missing_trailer(self):
        data = build_phar([FileSpec("a", b"1")], global_flags=GFLAG_HAS_SIGNATURE)
        f = io.BytesIO(data)
        with contextlib.redirect_stderr(io.StringIO()) as err:
            a = read_archive(f)
        self.assertIn("Warning", err.getvalue())
        self.assertIsNone(a.signature)
        self.assertFalse(verify_archive(f, a))

    def test_parse_signature_layouts(self):
        sig = parse_signature(b"\x01" * 16 + b"\x01\x00\x00\x00GBMB", 100)
        self.assertEqual(sig.kind, "MD5")
        self.assertEqual(sig.signed_length, 100)
        self.assertIsNone(parse_signature(b"\x01" * 16 + b"\x01\x00\x00\x00XXXX", 0))
        self.assertIsNone(parse_signature(b"\x01\x00\x00\x00GBMB", 0))
        self.assertIsNone(parse_signature(b"\x00" * 20 + b"\x99\x00\x00\x00GBMB", 0))

    def test_openssl_signature(self):
        key = RSA.generate(1024)
        pub = key.publickey().export_key()
        for flags in (SIG_OPENSSL, SIG_OPENSSL_SHA256):
            with self.subTest(flags=flags):
                data = build_phar(sample_files(), sig_flags=flags, private_key=key)
                f = io.BytesIO(data)
                a = read_archive(f)
                self.assertTrue(a.signature.is_openssl)
                self.assertEqual(len(a.signature.value), 128)
                self.assertTrue(verify_archive(f, a, public_key=pub))
                self.assertFalse(verify_archive(f, a))
                other = RSA.generate(1024).publickey().export_key()
                self.assertFalse(verify_archive(f, a, public_key=other))

    def test_openssl_pubkey_sidecar(self):
        key = RSA.generate(1024)
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "signed.phar"
            path.write_bytes(build_phar(sample_files(), sig_flags=SIG_OPENSSL, private_key=key))
            with ArchiveReader(str(path)) as reader:
                self.assertFalse(reader.verify())
            Path(str(path) + ".pubkey").write_bytes(key.publickey().export_key())
            with ArchiveReader(str(path)) as reader:
                self.assertTrue(reader.verify())


class MetadataTests(unittest.TestCase):
    def test_load_metadata(self):
        blob = phpserialize.dumps({"name": "app", "version": 3})
        self.assertEqual(load_metadata(blob), {"name": "app", "version": 3})

    def test_archive_metadata(self):
        meta = phpserialize.dumps(["a", "b"])
        a = read_archive(io.BytesIO(build_phar([FileSpec("x", b"1", metadata=meta)], metadata=meta)))
        self.assertEqual(a.manifest.global_metadata, meta)
        self.assertEqual(load_metadata(a.get("x").metadata), {0: "a", 1: "b"})

    def test_empty_and_malformed(self):
        self.assertIsNone(load_metadata(b""))
        with self.assertRaises(MetadataError):
            load_metadata(b"a:2:{i:0;")


if __name__ == "__main__":
    unittest.main()
