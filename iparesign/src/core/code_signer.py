import subprocess
from pathlib import Path
from typing import List, Optional

from rich.markup import escape

from iparesign.logger import get_console
from iparesign.src.core.errors import SigningError

FRAMEWORKS_DIR = "Frameworks"
DYLIB_SUFFIX = ".dylib"
FRAMEWORK_SUFFIX = ".framework"


class CodeSigner:
    """Runs codesign for one certificate identity"""

    def __init__(self, identity: str, codesign: str = "codesign"):
        self.console = get_console()
        self.identity = identity
        self.codesign = codesign

    def _run_codesign(self, target: Path, entitlements: Optional[Path] = None) -> None:
        """Sign ``target`` in forced mode, replacing any existing signature"""
        cmd = [self.codesign, "-f", "-s", self.identity]

        if entitlements:
            cmd.extend(["--entitlements", str(entitlements)])

        cmd.append(str(target))

        self.console.log(
            f"[cyan]Running codesign command:[/] {escape(' '.join(cmd))}"
        )

        try:
            result = subprocess.run(cmd, check=True, capture_output=True, text=True)
        except FileNotFoundError:
            raise SigningError(" ".join(cmd), 127, f"{self.codesign} not found")
        except subprocess.CalledProcessError as e:
            self.console.log(f"[red]Codesign failed:[/] {escape(str(target))}")
            raise SigningError(" ".join(cmd), e.returncode, e.stderr or e.stdout)

        output = (result.stderr or "") + (result.stdout or "")
        if output.strip():
            self.console.log(f"[green]Codesign output:[/]\n{escape(output.strip())}")

    def sign_nested(self, app_dir: Path) -> List[Path]:
        """Sign dylibs, then frameworks, found directly in the bundle's Frameworks"""
        frameworks_dir = Path(app_dir) / FRAMEWORKS_DIR
        if not frameworks_dir.is_dir():
            self.console.print("[blue]No Frameworks directory, skipping[/]")
            return []

        entries = sorted(frameworks_dir.iterdir())
        dylibs = [p for p in entries if p.name.endswith(DYLIB_SUFFIX)]
        frameworks = [p for p in entries if p.name.endswith(FRAMEWORK_SUFFIX)]

        self.console.print(
            f"\n[blue]Signing {len(dylibs)} dylibs and {len(frameworks)} frameworks[/]"
        )
        signed = []
        for artifact in dylibs + frameworks:
            self.console.print(f"[blue]Signing:[/] {escape(artifact.name)}")
            self._run_codesign(artifact)
            signed.append(artifact)
        return signed

    def sign_bundle(self, app_dir: Path, entitlements: Path) -> None:
        """Sign the application bundle with its entitlements"""
        self.console.print(
            f"\n[blue]Signing app bundle:[/] {escape(Path(app_dir).name)}"
        )
        self._run_codesign(app_dir, entitlements)
