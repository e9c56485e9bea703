from pathlib import Path
from typing import Optional

from rich.markup import escape

from iparesign.arguments import create_resign_options
from iparesign.logger import get_console, get_error_console
from iparesign.src.core.errors import ResignError
from iparesign.src.core.sign_orchestrator import ResignOrchestrator, ResignOptions
from iparesign.src.utils.config_loader import get_resign_config


def print_configuration_summary(console, options: ResignOptions) -> None:
    """Print the configuration summary."""
    console.print("\n[bold blue]Resign Configuration:[/]")
    console.print(f"[cyan]Input IPA:[/] {escape(str(options.ipa_path))}")
    console.print(
        f"[cyan]Provisioning profile:[/] {escape(str(options.profile_path))}"
    )
    console.print(f"[cyan]Identity:[/] {escape(options.identity)}")
    if options.bundle_id:
        console.print(f"[cyan]New bundle ID:[/] {escape(options.bundle_id)}")
    console.print()


def main(parsed_args, output_dir: Optional[Path] = None) -> int:
    """Run the resign pipeline for parsed CLI arguments and return an exit status"""
    console = get_console()

    extra_args = getattr(parsed_args, "extra_args", None)
    if extra_args:
        console.print(
            "[yellow]Ignoring extra arguments:[/] " + escape(" ".join(extra_args))
        )

    try:
        options = create_resign_options(parsed_args)
        config = get_resign_config()
        print_configuration_summary(console, options)

        result = ResignOrchestrator(config).resign_ipa(options, output_dir)
    except ResignError as e:
        get_error_console().print(
            f"[red]Error:[/] {escape(str(e))}", soft_wrap=True
        )
        return 1

    console.print(str(result.output_path), markup=False, soft_wrap=True)
    return 0


def run_resign_command(args):
    """Entry point for the resign command from CLI"""
    return main(args)
