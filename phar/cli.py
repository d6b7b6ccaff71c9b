from __future__ import annotations

import os
import sys
import argparse
from typing import List, Optional

from phar.codec import compression_name
from phar.constants import SIG_NAMES
from phar.errors import PharError
from phar.pathutil import norm_path
from phar.reader import ArchiveReader


def _safe_chmod(path: str, mode: Optional[int]) -> None:
    """Best‑effort chmod that never raises.

    Args:
        path: Destination filesystem path to update.
        mode: POSIX mode to apply (e.g., 0o644). If None, no change is made.
    """
    if mode is None:
        return
    try:
        os.chmod(path, mode)
    except OSError as exc:
        print(f"Warning: failed to set mode on {path}: {exc}", file=sys.stderr)


def _safe_utime(path: str, mtime: Optional[int]) -> None:
    if not mtime:
        return
    try:
        os.utime(path, (mtime, mtime))
    except OSError as exc:
        print(f"Warning: failed to set timestamps on {path}: {exc}", file=sys.stderr)


def cmd_list(archive: str) -> bool:
    """List archive entries in stream order.

    Args:
        archive: Path to a .phar file.
    """
    with ArchiveReader(archive) as r:
        entries = r.list()
    for e in entries:
        if e.is_directory:
            print(f"dir\t{e.name}")
        else:
            print(f"file\t{e.uncompressed_size}\t{e.name}")
    return True


def cmd_info(archive: str) -> bool:
    """Show archive information.

    Args:
        archive: Path to a .phar file.
    """
    with ArchiveReader(archive) as r:
        a = r.archive
        m = a.manifest
        print(f"Archive: {archive}")
        print(f"  API version: {m.version}")
        print(f"  Alias: {m.alias if m.alias is not None else '-'}")
        print(f"  Flags: 0x{m.global_flags:08x}")
        print(f"  Stub: {len(a.stub)} bytes")
        print(f"  Metadata: {len(m.global_metadata)} bytes")
        print(f"  Entries: {len(m)}")
        print(f"    Files: {len(m.files())}")
        print(f"    Directories: {len(m.directories())}")
        compressed = {}
        for e in m.files():
            if e.is_compressed:
                k = compression_name(e.compression)
                compressed[k] = compressed.get(k, 0) + 1
        for k, n in sorted(compressed.items()):
            print(f"    Compressed ({k}): {n}")
        if a.signature is not None:
            print(f"  Signature: {a.signature.kind}")
        elif a.has_signature:
            print("  Signature: missing")
        else:
            print("  Signature: none")
    return True


def cmd_stub(archive: str) -> bool:
    """Write the raw stub bytes to stdout."""
    with ArchiveReader(archive) as r:
        stub = r.archive.stub
    sys.stdout.buffer.write(stub)
    sys.stdout.flush()
    return True


def cmd_cat(archive: str, name: str) -> bool:
    """Write one file entry's data to stdout.

    Returns:
        False when no file entry has that name.
    """
    with ArchiveReader(archive) as r:
        e = r.get_file(name)
    if e is None:
        print(f"Error: no file entry named {name!r}", file=sys.stderr)
        return False
    sys.stdout.buffer.write(e.data)
    sys.stdout.flush()
    return True


def _file_dir_clashes(entries) -> set:
    """Folded paths of file entries that a directory in the same archive also needs."""
    dirs = set()
    files = set()
    for e in entries:
        parts = norm_path(e.name).casefold().split("/")
        for i in range(1, len(parts)):
            dirs.add("/".join(parts[:i]))
        if e.is_directory:
            dirs.add("/".join(parts))
        else:
            files.add("/".join(parts))
    return files & dirs


def cmd_extract(archive: str, *, outdir: str = ".", paths: Optional[List[str]] = None, quiet: bool = False) -> bool:
    """Extract entries from an archive to a directory.

    A file whose path is also needed as a directory is skipped with a warning.

    Args:
        archive: Path to a .phar file.
        outdir: Destination directory.
        paths: Optional entry names (files or directories) to restrict extraction to.
        quiet: Only print the summary line.
    """
    with ArchiveReader(archive) as r:
        entries = r.list()
        wanted = [norm_path(p).casefold() for p in (paths or [])]
        if wanted:
            entries = [
                e for e in entries
                if any(
                    norm_path(e.name).casefold() == w or norm_path(e.name).casefold().startswith(w + "/")
                    for w in wanted
                )
            ]
        clashes = _file_dir_clashes(entries)
        n_files = 0
        n_dirs = 0
        n_bytes = 0
        n_skipped = 0
        for e in entries:
            rel = norm_path(e.name)
            if not rel:
                continue
            dst = os.path.join(outdir or ".", *rel.split("/"))
            if e.is_directory:
                if not quiet:
                    print(f"   creating: {rel}/")
                r.extract(e, dst)
                n_dirs += 1
                continue
            if rel.casefold() in clashes:
                print(f"Warning: skipping file {rel}: a directory with the same path exists", file=sys.stderr)
                n_skipped += 1
                continue
            if not quiet:
                print(f" extracting: {rel}")
            r.extract(e, dst)
            _safe_chmod(dst, e.stored_permissions or None)
            _safe_utime(dst, e.timestamp)
            n_files += 1
            n_bytes += e.size
    print(f"Done: extracted {n_files} files ({n_bytes} bytes), dirs={n_dirs}, skipped={n_skipped}")
    return True


def cmd_verify(archive: str, *, public_key: Optional[str] = None) -> bool:
    """Verify entry checksums and the archive signature.

    Args:
        archive: Path to a .phar file.
        public_key: PEM public key for OpenSSL-signed archives; defaults to
            ``<archive>.pubkey`` when present.

    Prints:
        "OK" on success, "FAIL" on mismatch.
    """
    with ArchiveReader(archive, public_key=public_key) as r:
        ok = r.verify()
        sig = r.archive.signature
    if sig is not None and sig.is_openssl and not ok and public_key is None:
        print(f"Hint: {SIG_NAMES[sig.flags]} signatures need --public-key or {archive}.pubkey", file=sys.stderr)
    print("OK" if ok else "FAIL")
    return ok


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="phar",
        description="Read-only PHAR archive tool",
        epilog="zip, gzip and bzip2 wrapped archives are detected but not decoded.",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_list = sub.add_parser("list", help="List archive contents")
    ap_list.add_argument("archive", help="Archive path")

    ap_info = sub.add_parser("info", help="Show archive information")
    ap_info.add_argument("archive", help="Archive path")

    ap_stub = sub.add_parser("stub", help="Print the archive stub")
    ap_stub.add_argument("archive", help="Archive path")

    ap_cat = sub.add_parser("cat", help="Print one file entry")
    ap_cat.add_argument("archive", help="Archive path")
    ap_cat.add_argument("name", help="Entry name")

    ap_extract = sub.add_parser("extract", help="Extract entries")
    ap_extract.add_argument("archive", help="Archive path")
    ap_extract.add_argument("--outdir", default=".", help="Output directory")
    ap_extract.add_argument("paths", nargs="*", help="Specific entry names to extract (files or directories)")
    ap_extract.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_verify = sub.add_parser("verify", help="Verify checksums and signature")
    ap_verify.add_argument("archive", help="Archive path")
    ap_verify.add_argument("--public-key", help="PEM public key for OpenSSL signatures")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "list":
            cmd_list(args.archive)
        elif args.cmd == "info":
            cmd_info(args.archive)
        elif args.cmd == "stub":
            cmd_stub(args.archive)
        elif args.cmd == "cat":
            sys.exit(0 if cmd_cat(args.archive, args.name) else 1)
        elif args.cmd == "extract":
            cmd_extract(args.archive, outdir=args.outdir, paths=args.paths, quiet=args.quiet)
        elif args.cmd == "verify":
            sys.exit(0 if cmd_verify(args.archive, public_key=args.public_key) else 1)
        else:
            raise RuntimeError("Unknown command")
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (PharError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
