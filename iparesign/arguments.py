import argparse
from pathlib import Path

from rich_argparse import RawDescriptionRichHelpFormatter

from iparesign.src.constants.cli_constants import (
    APP_DESCRIPTION,
    APP_NAME,
    USAGE_EPILOG,
    __version__,
)
from iparesign.src.core.errors import UsageError
from iparesign.src.core.sign_orchestrator import ResignOptions


def create_parser():
    """Create and return an argument parser with resign arguments."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=APP_DESCRIPTION,
        epilog=USAGE_EPILOG,
        formatter_class=RawDescriptionRichHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"{APP_NAME} {__version__}"
    )
    add_resign_arguments(parser)
    return parser


def add_resign_arguments(parser):
    """Add the positional resign arguments to an existing parser."""
    parser.add_argument("ipa_path", type=Path, help="Path to the IPA file to resign")
    parser.add_argument(
        "profile_path", type=Path, help="Path to the provisioning profile to embed"
    )
    parser.add_argument(
        "identity", type=str, help="Signing certificate identity known to codesign"
    )
    parser.add_argument(
        "bundle_id",
        type=str,
        nargs="?",
        default=None,
        help="New bundle identifier (default: keep original)",
    )
    # Trailing arguments are accepted and ignored
    parser.add_argument("extra_args", nargs="*", help=argparse.SUPPRESS)


def create_resign_options(args) -> ResignOptions:
    """Convert parsed arguments to ResignOptions"""
    if not args.ipa_path.is_file():
        raise UsageError(f"IPA file not found: {args.ipa_path}")
    if not args.profile_path.is_file():
        raise UsageError(f"Provisioning profile not found: {args.profile_path}")
    if not args.identity.strip():
        raise UsageError("Signing identity must not be empty")

    return ResignOptions(
        ipa_path=args.ipa_path,
        profile_path=args.profile_path,
        identity=args.identity,
        bundle_id=args.bundle_id or None,
    )
