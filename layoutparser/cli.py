#
#  Copyright 2025 The InfiniFlow Authors. All Rights Reserved.
#
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#
import argparse
import json
import logging
import sys

from common.settings import get_settings
from layoutparser.grammar import GrammarLoadError, load_grammar_json
from layoutparser.orchestration.orchestrator import parse_files, read_document
from layoutparser.report import parsed_fields_to_csv
from layoutparser.validation.document import validate_document
from layoutparser.validation.structure import build_layout_report, validate_layout


def _print_json(payload) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def cmd_validate_layout(args) -> int:
    settings = get_settings()
    try:
        grammar = load_grammar_json(args.layout, settings)
    except (OSError, GrammarLoadError) as e:
        logging.error(f"Could not load layout {args.layout}: {e}")
        return 1

    report = build_layout_report(grammar, settings=settings)
    _print_json(
        {
            "layout_id": report.layout_id,
            "layout_name": report.layout_name,
            "is_valid": report.is_valid,
            "total_lines": report.total_lines,
            "valid_lines": report.valid_lines,
            "invalid_lines": report.invalid_lines,
            "errors": [e.__dict__ for e in report.errors],
            "lines": [r.to_dict() for r in validate_layout(grammar, settings)],
        }
    )
    return 0 if report.is_valid else 1


def cmd_validate_document(args) -> int:
    try:
        text = read_document(args.document)
    except (OSError, UnicodeDecodeError) as e:
        logging.error(f"Could not read document {args.document}: {e}")
        return 1

    result = validate_document(text, args.line_width)
    _print_json(result.to_dict())
    return 0 if result.is_valid else 1


def cmd_parse(args) -> int:
    result = parse_files(args.layout, args.document, validate_blocks=not args.no_block_check)
    if args.csv:
        try:
            with open(args.csv, "w", encoding="utf-8", newline="") as f:
                f.write(parsed_fields_to_csv(result.parsed_fields))
        except OSError as e:
            logging.error(f"Could not write CSV {args.csv}: {e}")
            return 1
        logging.info(f"Wrote {len(result.parsed_fields)} fields to {args.csv}")
    _print_json(result.to_dict())
    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="layoutparser", description="Validate and parse fixed-width positional documents")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate-layout", help="Check that every record of a layout adds up to its line width")
    p.add_argument("layout", help="Layout definition (JSON)")
    p.set_defaults(func=cmd_validate_layout)

    p = sub.add_parser("validate-document", help="Check that a document is a sequence of fixed-width blocks")
    p.add_argument("document", help="Document text file")
    p.add_argument("--line-width", type=int, default=None, help="Block width. Default: configured line width")
    p.set_defaults(func=cmd_validate_document)

    p = sub.add_parser("parse", help="Parse a document against a layout")
    p.add_argument("layout", help="Layout definition (JSON)")
    p.add_argument("document", help="Document text file")
    p.add_argument("--csv", default=None, help="Also write the parsed fields to this CSV file")
    p.add_argument("--no-block-check", action="store_true", help="Skip the block alignment gate for non-MQSeries layouts")
    p.set_defaults(func=cmd_parse)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s", stream=sys.stderr)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
