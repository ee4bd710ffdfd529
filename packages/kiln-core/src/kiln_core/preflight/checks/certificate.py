"""Trusted CA bundle preflight check."""

from __future__ import annotations

from kiln_core.errors import RuntimePrerequisiteError
from kiln_core.image import count_certificates, locate_ca_bundle
from kiln_core.preflight.checks.base import BaseCheck
from kiln_core.preflight.models import CheckResult, CheckStatus
from kiln_core.schemas import RuntimeConfig


class CertificateCheck(BaseCheck):
    """Verify that a trusted CA bundle can be installed into the image."""

    def __init__(self, runtime: RuntimeConfig) -> None:
        super().__init__(name="certificates")
        self.runtime = runtime

    def _execute(self) -> CheckResult:
        try:
            bundle = locate_ca_bundle(self.runtime)
        except RuntimePrerequisiteError as e:
            return self._make_result(
                CheckStatus.FAILED,
                e.user_message,
                hint="Install ca-certificates on the build host or set runtime.ca_bundle",
            )

        certificates = count_certificates(bundle.read_bytes())
        return self._make_result(
            CheckStatus.PASSED,
            f"CA bundle {bundle} ({certificates} certificates)",
            details={"path": str(bundle), "certificates": certificates},
        )
