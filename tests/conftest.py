"""Shared fixtures: fake IPA archives, CMS-wrapped profiles and a codesign stub."""

import plistlib
import stat
import subprocess
import zipfile
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest
from asn1crypto import cms

TEAM_ID = "TEAMID1234"
BUNDLE_ID = "com.example.app"
IDENTITY = "Apple Distribution: Example"


def build_profile_bytes(entitlements, **extra) -> bytes:
    """Wrap a provisioning profile plist in a CMS SignedData envelope."""
    data = {
        "Name": "Example Profile",
        "UUID": "00000000-1111-2222-3333-444444444444",
        "TeamIdentifier": [TEAM_ID],
        "TeamName": "Example Team",
        "ExpirationDate": datetime(2099, 1, 1),
        "Entitlements": entitlements,
    }
    data.update(extra)
    signed_data = cms.SignedData(
        {
            "version": "v1",
            "digest_algorithms": [],
            "encap_content_info": {
                "content_type": "data",
                "content": plistlib.dumps(data),
            },
            "signer_infos": [],
        }
    )
    content_info = cms.ContentInfo(
        {"content_type": "signed_data", "content": signed_data}
    )
    return content_info.dump()


def build_ipa(
    path: Path,
    app_names=("App.app",),
    bundle_id=BUNDLE_ID,
    frameworks=("libswiftCore.dylib", "Alamofire.framework"),
    extra_entries=("Symbols/ABCDEF.symbols",),
    binary_info=False,
) -> Path:
    """Write a minimal .ipa with one or more app bundles under Payload/."""
    info = {
        "CFBundleIdentifier": bundle_id,
        "CFBundleExecutable": "App",
        "CFBundleName": "App",
    }
    fmt = plistlib.FMT_BINARY if binary_info else plistlib.FMT_XML
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
        for app_name in app_names:
            root = f"Payload/{app_name}"
            zf.writestr(f"{root}/Info.plist", plistlib.dumps(info, fmt=fmt))

            executable = zipfile.ZipInfo(f"{root}/App")
            executable.external_attr = 0o100755 << 16
            zf.writestr(executable, b"\xcf\xfa\xed\xfe fake binary")

            zf.writestr(
                f"{root}/embedded.mobileprovision", b"old profile bytes"
            )
            for name in frameworks:
                if name.endswith(".framework"):
                    stem = name[: -len(".framework")]
                    zf.writestr(f"{root}/Frameworks/{name}/{stem}", b"framework")
                else:
                    zf.writestr(f"{root}/Frameworks/{name}", b"dylib")
        for entry in extra_entries:
            zf.writestr(entry, b"extra")
    return path


def link_entry(name, target):
    """Return a (ZipInfo, data) pair describing a symlink entry."""
    info = zipfile.ZipInfo(name)
    info.create_system = 3
    info.external_attr = (stat.S_IFLNK | 0o777) << 16
    return info, target


@pytest.fixture
def profile_factory(tmp_path):
    """Return a callable writing a .mobileprovision with the given entitlements."""

    def _make(
        app_id=f"{TEAM_ID}.{BUNDLE_ID}", team_id=TEAM_ID, name="profile", **extra
    ):
        entitlements = {"application-identifier": app_id, "get-task-allow": False}
        if team_id:
            entitlements["com.apple.developer.team-identifier"] = team_id
        path = tmp_path / f"{name}.mobileprovision"
        path.write_bytes(build_profile_bytes(entitlements, **extra))
        return path

    return _make


@pytest.fixture
def ipa_factory(tmp_path):
    """Return a callable writing a fake .ipa into the test directory."""

    def _make(name="App.ipa", **kwargs):
        return build_ipa(tmp_path / name, **kwargs)

    return _make


@pytest.fixture
def output_dir(tmp_path):
    out = tmp_path / "out"
    out.mkdir()
    return out


class CodesignRecorder:
    """Stands in for subprocess.run and remembers every codesign call."""

    def __init__(self, fail_on=None):
        self.calls = []
        self.entitlements_at_sign_time = {}
        self.fail_on = fail_on

    def __call__(self, cmd, **kwargs):
        cmd = list(cmd)
        self.calls.append(cmd)
        target = Path(cmd[-1])
        if "--entitlements" in cmd:
            ents_path = Path(cmd[cmd.index("--entitlements") + 1])
            self.entitlements_at_sign_time[target.name] = plistlib.loads(
                ents_path.read_bytes()
            )
        if self.fail_on and target.name == self.fail_on:
            raise subprocess.CalledProcessError(
                1, cmd, output="", stderr=f"{target}: no identity found"
            )
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    @property
    def signed_names(self):
        return [Path(c[-1]).name for c in self.calls if "--verify" not in c]


@pytest.fixture
def codesign():
    """Patch subprocess.run for codesign and the verifier."""
    recorder = CodesignRecorder()
    with patch("subprocess.run", side_effect=recorder):
        yield recorder


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the user's config file and IPARESIGN_* variables out of tests."""
    monkeypatch.setenv("IPARESIGN_CONFIG", str(tmp_path / "missing-config.toml"))
    for name in (
        "IPARESIGN_CODESIGN",
        "IPARESIGN_PROFILE_DECODER",
        "IPARESIGN_VERIFY",
        "IPARESIGN_OUTPUT_SUFFIX",
    ):
        monkeypatch.delenv(name, raising=False)
