from rich.markup import escape

from iparesign.logger import get_console
from iparesign.src.core.errors import EntitlementsError
from iparesign.src.ipa.plist_document import PlistDocument
from iparesign.src.ipa.provisioning_profile import (
    APPLICATION_IDENTIFIER_KEY,
    ENTITLEMENTS_KEY,
    TEAM_IDENTIFIER_KEY,
)

WILDCARD_MARKER = "*"
BUNDLE_IDENTIFIER_KEY = "CFBundleIdentifier"


def is_wildcard_identifier(app_id: str) -> bool:
    """Check if an application identifier matches more than one bundle"""
    return WILDCARD_MARKER in app_id


def reconcile_application_identifier(
    entitlements: PlistDocument,
    profile: PlistDocument,
    info: PlistDocument,
) -> str:
    """Concretize a wildcard application-identifier and return the final value.

    ``entitlements`` is rewritten and saved when a wildcard is found, using the
    profile's team identifier and the bundle identifier currently in ``info``.
    """
    console = get_console()

    app_id = entitlements.get(APPLICATION_IDENTIFIER_KEY, None)
    if not isinstance(app_id, str) or not app_id:
        raise EntitlementsError(
            f"Entitlements have no {APPLICATION_IDENTIFIER_KEY} entry"
        )

    if not is_wildcard_identifier(app_id):
        console.print(f"[green]Application identifier:[/] {escape(app_id)}")
        return app_id

    team_id = profile.get([ENTITLEMENTS_KEY, TEAM_IDENTIFIER_KEY], None)
    if not team_id:
        raise EntitlementsError(
            f"Wildcard identifier {app_id} but profile has no {TEAM_IDENTIFIER_KEY}"
        )
    bundle_id = info.get(BUNDLE_IDENTIFIER_KEY, None)
    if not bundle_id:
        raise EntitlementsError(f"Info.plist has no {BUNDLE_IDENTIFIER_KEY} entry")

    new_app_id = f"{team_id}.{bundle_id}"
    console.print(
        f"[yellow]Wildcard application identifier:[/] "
        f"{escape(app_id)} -> {escape(new_app_id)}"
    )
    entitlements.set(APPLICATION_IDENTIFIER_KEY, new_app_id)
    if entitlements.path is not None:
        entitlements.save()
    return new_app_id
