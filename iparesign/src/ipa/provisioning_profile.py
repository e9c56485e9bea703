import plistlib
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

from asn1crypto.cms import ContentInfo
from rich.markup import escape

from iparesign.logger import get_console
from iparesign.src.core.errors import CommandError, ProfileError
from iparesign.src.ipa.plist_document import PlistDocument

ENTITLEMENTS_KEY = "Entitlements"
TEAM_IDENTIFIER_KEY = "com.apple.developer.team-identifier"
APPLICATION_IDENTIFIER_KEY = "application-identifier"


@dataclass
class ProfileInfo:
    """Summary of a decoded provisioning profile"""

    name: Optional[str]
    uuid: Optional[str]
    team_identifier: Optional[str]
    team_name: Optional[str]
    application_identifier: Optional[str]
    expiration_date: Optional[datetime]

    @classmethod
    def from_document(cls, profile: PlistDocument) -> "ProfileInfo":
        team_ids = profile.get("TeamIdentifier", None)
        team_id = profile.get(
            [ENTITLEMENTS_KEY, TEAM_IDENTIFIER_KEY],
            team_ids[0] if isinstance(team_ids, list) and team_ids else None,
        )
        return cls(
            name=profile.get("Name", None),
            uuid=profile.get("UUID", None),
            team_identifier=team_id,
            team_name=profile.get("TeamName", None),
            application_identifier=profile.get(
                [ENTITLEMENTS_KEY, APPLICATION_IDENTIFIER_KEY], None
            ),
            expiration_date=profile.get("ExpirationDate", None),
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expiration_date is None:
            return False
        expires = self.expiration_date
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return expires <= (now or datetime.now(timezone.utc))


def dump_prov(prov_file: Path) -> bytes:
    """Read the plist payload of a provisioning profile without the security command"""
    with open(prov_file, "rb") as f:
        raw = f.read()
    try:
        content_info = ContentInfo.load(raw)
        if content_info["content_type"].native != "signed_data":
            raise ProfileError(f"Provisioning profile is not signed: {prov_file}")
        signed_data = content_info["content"]
        plist_data = signed_data["encap_content_info"]["content"].native
    except ProfileError:
        raise
    except (ValueError, TypeError, KeyError) as e:
        raise ProfileError(f"Malformed provisioning profile {prov_file}: {e}")
    if not plist_data:
        raise ProfileError(f"Provisioning profile has no content: {prov_file}")
    return plist_data


def security_cms_decode(prov_file: Path) -> bytes:
    """Decode a provisioning profile with the macOS security tool"""
    cmd = ["security", "cms", "-D", "-i", str(prov_file)]
    try:
        result = subprocess.run(cmd, capture_output=True, check=True)
    except FileNotFoundError:
        raise ProfileError("The security tool is not available on this system")
    except subprocess.CalledProcessError as e:
        raise CommandError(
            " ".join(cmd), e.returncode, (e.stderr or b"").decode(errors="replace")
        )
    return result.stdout


class ProfileDecoder:
    """Turns a provisioning profile into property list documents"""

    def __init__(self, decoder: str = "asn1"):
        self.console = get_console()
        self.decoder = decoder

    def decode(self, profile_path: Path) -> PlistDocument:
        """Decode the profile into a structured document"""
        self.console.print(
            f"[blue]Decoding provisioning profile:[/] {escape(str(profile_path))}"
        )
        if self.decoder == "security":
            payload = security_cms_decode(profile_path)
        else:
            payload = dump_prov(profile_path)

        try:
            return PlistDocument.from_bytes(payload)
        except (plistlib.InvalidFileException, ValueError) as e:
            raise ProfileError(f"Provisioning profile payload is not a plist: {e}")

    def materialize(
        self, profile_path: Path, work_dir: Path
    ) -> Tuple[PlistDocument, PlistDocument]:
        """Write the decoded profile and its entitlements into ``work_dir``"""
        profile = self.decode(profile_path)
        profile.save(work_dir / "profile.plist")

        entitlements_data = profile.get(ENTITLEMENTS_KEY, None)
        if not isinstance(entitlements_data, dict):
            raise ProfileError(
                f"Provisioning profile has no {ENTITLEMENTS_KEY} dictionary"
            )
        entitlements = PlistDocument(dict(entitlements_data))
        entitlements.save(work_dir / "entitlements.plist")

        info = ProfileInfo.from_document(profile)
        self._print_summary(info)
        return profile, entitlements

    def _print_summary(self, info: ProfileInfo) -> None:
        self.console.print(
            f"[cyan]Profile:[/] {escape(str(info.name))} ({escape(str(info.uuid))})"
        )
        self.console.print(
            f"[cyan]Team:[/] {escape(str(info.team_name))} "
            f"({escape(str(info.team_identifier))})"
        )
        self.console.print(
            f"[cyan]App ID:[/] {escape(str(info.application_identifier))}"
        )
        if info.expiration_date is not None:
            self.console.print(f"[cyan]Expires:[/] {info.expiration_date}")
        if info.is_expired():
            self.console.print(
                "[yellow]Warning: provisioning profile has expired, "
                "the resigned app will not install[/]"
            )
