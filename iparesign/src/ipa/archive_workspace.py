import os
import stat
import tempfile
import zipfile
from pathlib import Path
from typing import List, Optional

from rich.markup import escape

from iparesign.logger import get_console
from iparesign.src.core.errors import (
    AmbiguousBundleError,
    ArchiveError,
    BundleNotFoundError,
)

PAYLOAD_DIR = "Payload"
APP_SUFFIX = ".app"


def output_path_for(
    archive_path: Path, suffix: str = "-resigned", directory: Optional[Path] = None
) -> Path:
    """Derive the resigned archive path: ``<stem><suffix><ext>`` in ``directory``"""
    archive_path = Path(archive_path)
    directory = Path(directory) if directory else Path.cwd()
    return directory / f"{archive_path.stem}{suffix}{archive_path.suffix}"


def is_symlink_entry(info: zipfile.ZipInfo) -> bool:
    return stat.S_ISLNK(info.external_attr >> 16)


def _check_inside(target: Path, path: Path, name: str) -> None:
    if path != target and target not in path.parents:
        raise ArchiveError(f"Archive entry escapes extraction directory: {name}")


def _safe_extract(zf: zipfile.ZipFile, target: Path) -> None:
    target = target.resolve()
    for info in zf.infolist():
        destination = target / info.filename
        _check_inside(target, destination.resolve(), info.filename)

        if is_symlink_entry(info):
            # Framework bundles link Versions/Current and friends; keep them links
            link_target = zf.read(info).decode("utf-8")
            link_path = destination.parent.resolve() / destination.name
            _check_inside(
                target, (link_path.parent / link_target).resolve(), info.filename
            )
            link_path.parent.mkdir(parents=True, exist_ok=True)
            os.symlink(link_target, link_path)
            continue

        extracted = zf.extract(info, target)
        # zipfile drops permission bits, put back the ones recorded in the archive
        mode = (info.external_attr >> 16) & 0o7777
        if mode and not info.is_dir():
            os.chmod(extracted, mode)


def find_app_bundle(extract_dir: Path) -> Path:
    """Locate the single ``.app`` bundle under ``Payload/``"""
    payload_dir = extract_dir / PAYLOAD_DIR
    candidates: List[Path] = []
    if payload_dir.is_dir():
        candidates = sorted(
            p for p in payload_dir.iterdir() if p.name.endswith(APP_SUFFIX)
        )

    if not candidates:
        raise BundleNotFoundError(f"No {APP_SUFFIX} bundle found in {PAYLOAD_DIR}/")
    if len(candidates) > 1:
        raise AmbiguousBundleError([p.name for p in candidates])
    return candidates[0]


class ArchiveWorkspace:
    """Scoped working directory for one resign run.

    Entering extracts the archive and locates the app bundle; leaving removes
    the whole directory, including any documents written next to the tree.
    """

    def __init__(self, archive_path: Path):
        self.archive_path = Path(archive_path)
        self.console = get_console()
        self.work_dir: Optional[Path] = None
        self.extract_dir: Optional[Path] = None
        self.app_dir: Optional[Path] = None
        self._temp_dir: Optional[tempfile.TemporaryDirectory] = None

    def __enter__(self):
        self._temp_dir = tempfile.TemporaryDirectory(prefix="iparesign-")
        self.work_dir = Path(self._temp_dir.name)
        self.extract_dir = self.work_dir / "extracted"
        self.extract_dir.mkdir()
        try:
            self.extract()
            self.app_dir = find_app_bundle(self.extract_dir)
        except BaseException:
            self.cleanup()
            raise
        self.console.print(
            f"[green]Found app bundle:[/] {escape(self.app_dir.name)}"
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()

    def extract(self) -> None:
        """Unpack the input archive into the working directory"""
        self.console.print(
            f"[blue]Extracting archive:[/] {escape(str(self.archive_path))}"
        )
        try:
            with zipfile.ZipFile(self.archive_path) as zf:
                _safe_extract(zf, self.extract_dir)
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as e:
            raise ArchiveError(f"Failed to extract {self.archive_path}: {e}")

    def package(self, output_path: Path) -> Path:
        """Zip every top-level entry of the extracted tree into ``output_path``"""
        output_path = Path(output_path)
        self.console.print("\n[blue]Creating resigned archive[/]")
        entries = sorted(p.name for p in self.extract_dir.iterdir())
        self.console.log(
            f"[cyan]Top-level entries:[/] {escape(', '.join(entries))}"
        )

        try:
            with zipfile.ZipFile(output_path, "w", zipfile.ZIP_DEFLATED) as zf:
                for root, dirs, files in os.walk(self.extract_dir):
                    dirs.sort()
                    root_path = Path(root)
                    if root_path != self.extract_dir:
                        zf.write(root_path, self._arcname(root_path))
                    # os.walk lists linked directories but never enters them
                    linked_dirs = [d for d in dirs if (root_path / d).is_symlink()]
                    dirs[:] = [d for d in dirs if d not in linked_dirs]
                    for name in sorted(files + linked_dirs):
                        file_path = root_path / name
                        if file_path.is_symlink():
                            self._write_symlink(zf, file_path)
                        else:
                            zf.write(file_path, self._arcname(file_path))
        except OSError as e:
            output_path.unlink(missing_ok=True)
            raise ArchiveError(f"Failed to write {output_path}: {e}")
        except BaseException:
            output_path.unlink(missing_ok=True)
            raise

        return output_path

    def _arcname(self, path: Path) -> str:
        return path.relative_to(self.extract_dir).as_posix()

    def _write_symlink(self, zf: zipfile.ZipFile, path: Path) -> None:
        """Store a symlink as a link entry instead of the file it points to"""
        info = zipfile.ZipInfo(self._arcname(path))
        info.create_system = 3
        info.external_attr = (stat.S_IFLNK | 0o777) << 16
        zf.writestr(info, os.readlink(path))

    def cleanup(self) -> None:
        """Remove the working directory"""
        if self._temp_dir is not None:
            self._temp_dir.cleanup()
            self._temp_dir = None
            self.console.log("[green]Cleaned up working directory[/]")
