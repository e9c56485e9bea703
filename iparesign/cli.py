import sys

from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from iparesign.arguments import create_parser
from iparesign.src.constants.cli_constants import (
    __version__,
    get_banner_text,
    APP_DESCRIPTION,
)


def display_banner():
    """Display a banner for iparesign."""
    console = Console()
    banner = get_banner_text()

    version_info = Text(f"v{__version__}", style="blue")
    tagline = Text(APP_DESCRIPTION, style="italic")

    panel = Panel.fit(
        Text.assemble(banner, "\n", tagline, "\n", version_info),
        border_style="green",
        padding=(1, 2),
    )
    console.print(panel)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv

    if "-h" in argv or "--help" in argv:
        display_banner()

    # IPARESIGN_* settings may live in a .env file next to the invocation
    load_dotenv()

    parser = create_parser()
    args = parser.parse_args(argv)

    from iparesign.commands.resign import run_resign_command

    return run_resign_command(args)


if __name__ == "__main__":
    sys.exit(main())
