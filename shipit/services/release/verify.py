from __future__ import annotations

from collections.abc import Iterable

from shipit.core.config import ReleaseConfig
from shipit.core.result import Err, Ok, Result
from shipit.output.console import ConsoleProtocol, Style
from shipit.platform.http import HttpProbe
from shipit.services.release.errors import ReleaseError
from shipit.services.release.gh import CIProvider
from shipit.services.release.model import VerificationResult


def download_url(*, repo_slug: str, tag: str, filename: str) -> str:
    return f"https://github.com/{repo_slug}/releases/download/{tag}/{filename}"


def compare_assets(
    expected: Iterable[str], actual: Iterable[str]
) -> tuple[int, frozenset[str], frozenset[str]]:
    """Return (found count, missing names, extra names)."""
    want = frozenset(expected)
    have = frozenset(actual)
    return len(want & have), want - have, have - want


class ArtifactVerifier:
    def __init__(
        self,
        *,
        ci: CIProvider,
        probe: HttpProbe,
        config: ReleaseConfig,
        console: ConsoleProtocol,
    ) -> None:
        self.ci = ci
        self.probe = probe
        self.config = config
        self.console = console

    def inspect(self, tag: str) -> Result[VerificationResult, ReleaseError]:
        """Collect asset and reachability facts without judging them."""
        release = self.ci.view_release(tag)
        if isinstance(release, Err):
            return release
        if release.value is None:
            return Err(
                ReleaseError(
                    kind="release_not_found",
                    message=f"no release found for {tag}",
                    hint=f"Check https://github.com/{self.ci.repo_slug}/releases",
                )
            )

        found, missing, extra = compare_assets(self.config.artifacts, release.value.assets)

        reachability: dict[str, int] = {}
        for filename in self.config.probe_artifacts:
            url = download_url(repo_slug=self.ci.repo_slug, tag=tag, filename=filename)
            status = self.probe.status(url)
            reachability[url] = status.value if isinstance(status, Ok) else 0

        return Ok(
            VerificationResult(
                found_count=found,
                missing=missing,
                extra=extra,
                reachability=reachability,
                is_draft=release.value.is_draft,
            )
        )

    def verify(self, tag: str) -> Result[VerificationResult, ReleaseError]:
        self.console.step(f"Verifying release assets for {tag}...")
        inspected = self.inspect(tag)
        if isinstance(inspected, Err):
            return inspected
        result = inspected.value
        self.report(result)

        if result.overall_ok:
            self.console.success(f"Release {tag} verified")
            return Ok(result)

        problems: list[str] = []
        if result.missing:
            problems.append(f"{len(result.missing)} missing asset(s)")
        if result.failed_probes:
            problems.append(f"{len(result.failed_probes)} unreachable download(s)")
        return Err(
            ReleaseError(
                kind="verification_mismatch",
                message=f"release {tag} is incomplete: {', '.join(problems)}",
                hint=f"Inspect it with: gh release view {tag}",
            )
        )

    def report(self, result: VerificationResult) -> None:
        expected = len(self.config.artifacts)
        self.console.print(f"assets: {result.found_count}/{expected} found")
        for name in sorted(result.missing):
            self.console.print(f"  missing: {name}", Style.ERROR)
        for name in sorted(result.extra):
            self.console.print(f"  extra: {name}", Style.DIM)

        for url, code in result.reachability.items():
            if code == 200:
                self.console.print(f"  200 {url}", Style.DIM)
            elif code == 0:
                self.console.print(f"  no response {url}", Style.ERROR)
            else:
                self.console.print(f"  {code} {url}", Style.ERROR)

        if result.is_draft:
            self.console.warning("release is still a draft; publish it to make downloads public")
