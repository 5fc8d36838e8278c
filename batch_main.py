# batch_main.py
"""
Render the batch consultation document for every client in a TSV export.

    python batch_main.py export.tsv
    pbpaste | python batch_main.py -
"""

import argparse
import logging
import sys

from eumlog.record_parser import parse_consultation_data
from eumlog.script_builder import ScriptSequencer
from eumlog.settings import SessionConfig, logger

DOCUMENT_SEPARATOR = "\n\n" + "=" * 40 + "\n\n"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Print batch consultation scripts for a TSV export.")
    parser.add_argument("input", nargs="?", default="-", help="TSV file path, or - for stdin")
    parser.add_argument("--name", help="Only render the client with this name")
    parser.add_argument("--payment-account", default=None, help="Payment account line (overrides PAYMENT_ACCOUNT_TEXT)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def read_input(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8-sig") as f:
        return f.read()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.debug:
        logger.setLevel(logging.DEBUG)

    config = SessionConfig.from_env()
    payment_account = config.payment_account_text if args.payment_account is None else args.payment_account

    records = parse_consultation_data(read_input(args.input))
    if args.name:
        records = [r for r in records if r.name == args.name]
    if not records:
        logger.warning("no client records found in input")
        return 1

    sequencer = ScriptSequencer()
    documents = [sequencer.render_batch(sequencer.build(r), payment_account) for r in records]
    print(DOCUMENT_SEPARATOR.join(documents))
    logger.info(f"rendered {len(documents)} consultation scripts")
    return 0


if __name__ == "__main__":
    sys.exit(main())
