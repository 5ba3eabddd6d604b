"""
Command-line entry point for validating and converting FHIR documents.

Usage:
    fhircodec validate patient.json                  # Print OK or one issue per line
    fhircodec validate obs.xml --strict-references   # Also check reference targets
    fhircodec convert patient.json --to xml          # Re-encode JSON as XML
    fhircodec types                                  # List registered resource types
"""
import argparse
import sys
from pathlib import Path

from fhircodec.codec.json_codec import decode, dumps
from fhircodec.codec.xml_codec import decode_xml, encode_xml
from fhircodec.errors import DecodeError, FhirCodecError, ValidationError
from fhircodec.models.record import Record
from fhircodec.registry import get_registry


def read_document(path: Path, type_name: str | None = None, **options) -> Record:
    """Decode a JSON or XML file, picking the codec from the suffix or content."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DecodeError(f"cannot read {path}: {e.strerror}") from e
    if path.suffix.lower() == ".xml" or text.lstrip().startswith("<"):
        return decode_xml(text, type_name, **options)
    return decode(text, type_name, **options)


def cmd_validate(args: argparse.Namespace) -> int:
    options = {}
    if args.strict_references:
        options["strict_references"] = True
    try:
        read_document(args.file, args.type, **options)
    except ValidationError as e:
        for issue in e.issues:
            print(issue)
        return 1
    except FhirCodecError as e:
        print(f"Error: {e}")
        return 1
    print("OK")
    return 0


def cmd_convert(args: argparse.Namespace) -> int:
    try:
        record = read_document(args.file, args.type)
    except ValidationError as e:
        for issue in e.issues:
            print(issue)
        return 1
    except FhirCodecError as e:
        print(f"Error: {e}")
        return 1

    if args.to == "xml":
        print(encode_xml(record, pretty=True))
    else:
        print(dumps(record, indent=2))
    return 0


def cmd_types(args: argparse.Namespace) -> int:
    registry = get_registry()
    for resource_type in registry.resource_types():
        print(resource_type)
    print(f"\n{len(registry.resource_types())} resource types, {len(registry)} schemas")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fhircodec",
        description="Validate and convert FHIR R4 JSON and XML documents",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Decode and validate a document")
    validate.add_argument("file", type=Path, help="JSON or XML document")
    validate.add_argument("--type", help="Target type (default: from the document)")
    validate.add_argument(
        "--strict-references",
        action="store_true",
        help="Check reference targets against each field's allowed types",
    )
    validate.set_defaults(func=cmd_validate)

    convert = subparsers.add_parser("convert", help="Re-encode a document as JSON or XML")
    convert.add_argument("file", type=Path, help="JSON or XML document")
    convert.add_argument("--to", choices=("json", "xml"), required=True, help="Output format")
    convert.add_argument("--type", help="Target type (default: from the document)")
    convert.set_defaults(func=cmd_convert)

    types = subparsers.add_parser("types", help="List registered resource types")
    types.set_defaults(func=cmd_types)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
