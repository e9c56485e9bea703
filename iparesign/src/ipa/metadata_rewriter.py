import plistlib
import shutil
from pathlib import Path
from typing import Optional

from rich.markup import escape

from iparesign.logger import get_console
from iparesign.src.core.errors import ArchiveError
from iparesign.src.ipa.entitlements import BUNDLE_IDENTIFIER_KEY
from iparesign.src.ipa.plist_document import PlistDocument

EMBEDDED_PROFILE_NAME = "embedded.mobileprovision"
INFO_PLIST_NAME = "Info.plist"


class MetadataRewriter:
    """Embeds the provisioning profile and patches the bundle's Info.plist"""

    def __init__(self, app_dir: Path):
        self.app_dir = Path(app_dir)
        self.console = get_console()
        self.info_plist = self.app_dir / INFO_PLIST_NAME

    def load_info(self) -> PlistDocument:
        if not self.info_plist.exists():
            raise ArchiveError(
                f"No {INFO_PLIST_NAME} found in {self.app_dir.name}"
            )
        try:
            return PlistDocument.load(self.info_plist)
        except (plistlib.InvalidFileException, ValueError) as e:
            raise ArchiveError(
                f"Unreadable {INFO_PLIST_NAME} in {self.app_dir.name}: {e}"
            )

    def embed_profile(self, profile_path: Path) -> Path:
        """Copy the provisioning profile into the bundle's embedded slot"""
        target = self.app_dir / EMBEDDED_PROFILE_NAME
        try:
            shutil.copyfile(profile_path, target)
        except OSError as e:
            raise ArchiveError(f"Failed to write {EMBEDDED_PROFILE_NAME}: {e}")
        self.console.print(f"[green]Embedded provisioning profile:[/] {target.name}")
        return target

    def rewrite_bundle_id(self, info: PlistDocument, bundle_id: Optional[str]) -> str:
        """Set CFBundleIdentifier if a new one is given, return the one in effect"""
        current = info.get(BUNDLE_IDENTIFIER_KEY, None)
        if not bundle_id:
            self.console.print(
                f"[cyan]Keeping bundle identifier:[/] {escape(str(current))}"
            )
            return current

        self.console.print(
            f"[green]Setting bundle identifier:[/] "
            f"{escape(str(current))} -> {escape(bundle_id)}"
        )
        info.set(BUNDLE_IDENTIFIER_KEY, bundle_id)
        try:
            info.save()
        except OSError as e:
            raise ArchiveError(f"Failed to write {INFO_PLIST_NAME}: {e}")
        return bundle_id

    def apply(
        self, profile_path: Path, info: PlistDocument, bundle_id: Optional[str]
    ) -> str:
        self.embed_profile(profile_path)
        return self.rewrite_bundle_id(info, bundle_id)
