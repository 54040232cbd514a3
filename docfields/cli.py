"""Command-line helper listing the field types found in Word 97-2003 documents."""

import argparse
from typing import List, Optional

from .config import configure_logging
from .errors import DocFieldsError
from .reader import inspect_document


def process(path: str) -> None:
    print(path)
    try:
        reports = inspect_document(path)
    except DocFieldsError as exc:
        print("Error processing file: %s" % exc)
        return
    for report in reports:
        print(report.format())


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="docfields",
        description="List the field types present in binary .doc files",
    )
    parser.add_argument("documents", nargs="*", metavar="document", help="path to a .doc file")
    args = parser.parse_args(argv)
    if not args.documents:
        parser.error("missing required argument: path to a word document")
    configure_logging()
    for path in args.documents:
        process(path)


if __name__ == "__main__":
    main()
