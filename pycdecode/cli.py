import argparse
import logging
import os
import sys

from .config import DEFAULT_OPTIONS
from .errors import PycDecodeError
from .loader import load_file

logger = logging.getLogger(__name__)


def _summary(pyc) -> str:
    header = pyc.header
    parts = ["%s (magic %d)" % (pyc.version.label, pyc.version.magic)]
    if header is None:
        parts.append("raw marshal, no header")
    elif header.is_hash_based:
        parts.append("hash %s%s" % (header.source_hash.hex(), ", checked" if header.checked else ""))
    else:
        parts.append("mtime %d" % header.mtime)
        if header.source_size is not None:
            parts.append("source size %d" % header.source_size)
    parts.append("%d code objects" % pyc.code_count)
    return ", ".join(parts)


def _bulk(root: str, report_path: str, options) -> int:
    processed = 0
    success = 0
    fail = 0

    with open(report_path, "w", encoding="utf8") as log:
        for dirpath, _dirs, filenames in os.walk(root):
            for name in sorted(filenames):
                if not name.lower().endswith(".pyc"):
                    continue
                infile = os.path.join(dirpath, name)
                processed += 1
                try:
                    pyc = load_file(infile, options)
                    for segment in pyc.store:
                        pyc.instructions(segment)
                except (OSError, PycDecodeError) as exc:
                    fail += 1
                    log.write("FAIL: %s\n" % infile)
                    log.write("error=%s\n\n" % exc)
                    continue
                success += 1
                if pyc.unknown_opcodes:
                    log.write("WARN: %s\n" % infile)
                    log.write("unknown opcodes=%d\n\n" % len(pyc.unknown_opcodes))

        log_summary = "Processed: %d, Success: %d, Fail: %d\n" % (processed, success, fail)
        log.write(log_summary)

    print(log_summary, end="")
    return 1 if fail else 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="pycdecode",
        description="Decode a .pyc file into an addressable instruction listing",
        formatter_class=argparse.RawTextHelpFormatter,
        epilog="Examples:\n"
        "  pycdecode module.pyc\n"
        "  pycdecode module.pyc --code main\n"
        "  pycdecode module.pyc --base 0x400000 --no-resolve\n"
        "  pycdecode module.pyc --cpython-operands\n"
        "  pycdecode --bulk __pycache__ --report decode_report.txt\n",
    )
    parser.add_argument("input", nargs="?", help="input .pyc or raw marshal file")
    parser.add_argument("--bulk", metavar="DIR", help="decode every .pyc under a directory")
    parser.add_argument("--report", default="decode_report.txt", help="bulk report path (default: %(default)s)")
    parser.add_argument("--code", metavar="NAME", help="list only the code object with this name")
    parser.add_argument("--no-resolve", action="store_true", help="show raw operands without names")
    parser.add_argument("--cpython-operands", action="store_true",
                        help="per-opcode name flag bits and byte jumps for 3.6-3.9")
    parser.add_argument("--max-depth", type=int, default=DEFAULT_OPTIONS.max_depth,
                        help="nesting cap (default: %(default)s)")
    parser.add_argument("--base", type=lambda s: int(s, 0), default=DEFAULT_OPTIONS.base_address,
                        help="address of the module code object (default: 0x%x)" % DEFAULT_OPTIONS.base_address)
    parser.add_argument("-v", "--verbose", action="count", default=0, help="more logging (-vv for debug)")
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        options = DEFAULT_OPTIONS.replace(max_depth=args.max_depth, base_address=args.base,
                                          cpython_operands=args.cpython_operands)
    except ValueError as exc:
        print("[!] %s" % exc, file=sys.stderr)
        sys.exit(2)

    if args.bulk:
        if not os.path.isdir(args.bulk):
            print("[!] directory not found: %s" % args.bulk, file=sys.stderr)
            sys.exit(2)
        status = _bulk(args.bulk, args.report, options)
        print("[i] wrote: %s" % args.report)
        sys.exit(status)

    input_path = args.input
    if not input_path or not os.path.exists(input_path):
        print("[!] input not found: %s" % input_path, file=sys.stderr)
        sys.exit(2)

    try:
        pyc = load_file(input_path, options)
    except PycDecodeError as exc:
        print("[!] %s: %s" % (input_path, exc), file=sys.stderr)
        sys.exit(1)

    segment = None
    if args.code:
        segment = pyc.find(args.code)
        if segment is None:
            print("[!] no code object named %s" % args.code, file=sys.stderr)
            sys.exit(1)

    logger.info("decoded %s: %d code objects", input_path, pyc.code_count)
    print("[i] %s" % _summary(pyc))
    for line in pyc.listing(segment, resolve=not args.no_resolve):
        print(line)
    if pyc.unknown_opcodes:
        print("[!] %d unknown opcodes" % len(pyc.unknown_opcodes), file=sys.stderr)
    if pyc.unresolved:
        print("[!] %d unresolved references" % len(pyc.unresolved), file=sys.stderr)


if __name__ == "__main__":
    main()
