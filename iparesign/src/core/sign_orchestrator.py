from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.markup import escape

from iparesign.logger import get_console
from iparesign.src.core.code_signer import CodeSigner
from iparesign.src.core.verifier import SignatureVerifier
from iparesign.src.ipa.archive_workspace import ArchiveWorkspace, output_path_for
from iparesign.src.ipa.entitlements import reconcile_application_identifier
from iparesign.src.ipa.metadata_rewriter import MetadataRewriter
from iparesign.src.ipa.provisioning_profile import ProfileDecoder
from iparesign.src.utils.config_loader import ResignConfig


@dataclass
class ResignOptions:
    """What to resign and with which credentials"""

    ipa_path: Path
    profile_path: Path
    identity: str
    bundle_id: Optional[str] = None  # New bundle ID (None = keep original)


@dataclass
class ResignResult:
    output_path: Path
    bundle_id: str
    application_identifier: str


class ResignOrchestrator:
    """Drives one resign run from input archive to output archive"""

    def __init__(self, config: Optional[ResignConfig] = None):
        self.console = get_console()
        self.config = config or ResignConfig()
        self.decoder = ProfileDecoder(self.config.profile_decoder)
        self.verifier = SignatureVerifier(self.config.codesign)

    def resign_ipa(
        self, options: ResignOptions, output_dir: Optional[Path] = None
    ) -> ResignResult:
        """Resign ``options.ipa_path`` and write the result next to ``output_dir``"""
        output_path = output_path_for(
            options.ipa_path, self.config.output_suffix, output_dir
        ).resolve()
        signer = CodeSigner(options.identity, self.config.codesign)

        self.console.print(
            f"[blue]Resigning IPA:[/] {escape(str(options.ipa_path))}"
        )

        with ArchiveWorkspace(options.ipa_path) as workspace:
            profile, entitlements = self.decoder.materialize(
                options.profile_path, workspace.work_dir
            )

            rewriter = MetadataRewriter(workspace.app_dir)
            info = rewriter.load_info()

            # Reads the bundle identifier before any rewrite below
            app_id = reconcile_application_identifier(entitlements, profile, info)

            bundle_id = rewriter.apply(options.profile_path, info, options.bundle_id)

            signer.sign_nested(workspace.app_dir)
            signer.sign_bundle(workspace.app_dir, entitlements.path)

            if self.config.verify:
                self.verifier.verify(workspace.app_dir)

            workspace.package(output_path)

        self.console.print(
            f"[green]Successfully resigned IPA:[/] {escape(str(output_path))}"
        )
        return ResignResult(
            output_path=output_path,
            bundle_id=bundle_id,
            application_identifier=app_id,
        )
