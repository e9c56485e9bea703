import subprocess
from pathlib import Path

from rich.markup import escape

from iparesign.logger import get_console
from iparesign.src.core.errors import VerificationError


class SignatureVerifier:
    """Checks a freshly signed bundle with codesign --verify"""

    def __init__(self, codesign: str = "codesign"):
        self.console = get_console()
        self.codesign = codesign

    def verify(self, app_dir: Path) -> None:
        cmd = [self.codesign, "--verify", "--deep", "--strict", str(app_dir)]
        try:
            subprocess.run(cmd, check=True, capture_output=True, text=True)
        except FileNotFoundError:
            raise VerificationError(" ".join(cmd), 127, f"{self.codesign} not found")
        except subprocess.CalledProcessError as e:
            raise VerificationError(" ".join(cmd), e.returncode, e.stderr)
        self.console.print(
            f"[green]Verified signature:[/] {escape(Path(app_dir).name)}"
        )
