from rich.text import Text

__version__ = "0.1.0"

APP_NAME = "iparesign"
APP_DESCRIPTION = "Re-sign iOS app archives with a new provisioning profile"

USAGE_EPILOG = """\
arguments:
  ipa_path      path to the .ipa archive to resign
  profile_path  path to the .mobileprovision profile to embed
  identity      codesign identity in the keychain,
                e.g. "Apple Distribution: Example (TEAMID)"
  bundle_id     optional replacement CFBundleIdentifier

The resigned archive is written to the current directory as <name>-resigned.ipa
unless another suffix is configured in ~/.iparesign/config.toml.
"""


def get_banner_text() -> Text:
    return Text(APP_NAME, style="bold green")
