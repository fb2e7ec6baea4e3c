"""Versions of the tini init process, read from its GitHub releases."""

from __future__ import annotations

import tempfile
from datetime import datetime
from pathlib import Path

from depsources.base import (
    Checksummer,
    DependencyError,
    DepVersion,
    GithubClient,
    GithubRelease,
    LicenseRetriever,
    PURLGenerator,
)

_ORG = "krallin"
_REPO = "tini"


class Tini:
    """The tini source tarball published with each GitHub release."""

    def __init__(
        self,
        *,
        github_client: GithubClient,
        checksummer: Checksummer,
        license_retriever: LicenseRetriever,
        purl_generator: PURLGenerator,
    ) -> None:
        self.github_client = github_client
        self.checksummer = checksummer
        self.license_retriever = license_retriever
        self.purl_generator = purl_generator

    def get_all_version_refs(self) -> list[str]:
        """Return the release tag names in the order the repository lists them."""
        return [release.tag_name for release in self._releases()]

    def get_dependency_version(self, version: str) -> DepVersion:
        """Return the source tarball of the release tagged ``version``."""
        for release in self._releases():
            if release.tag_name == version:
                try:
                    return self._dependency_version(version, release)
                except Exception as exc:
                    raise DependencyError(f"could not create tini version: {exc}") from exc
        raise DependencyError(f"could not find tini version {version}")

    def get_release_date(self, version: str) -> datetime:
        """Return the publication date of the release tagged ``version``."""
        for release in self._releases():
            if release.tag_name == version:
                return release.published_date
        raise DependencyError(f"could not find release date for version {version}")

    def _releases(self) -> list[GithubRelease]:
        try:
            return list(self.github_client.get_release_tags(_ORG, _REPO))
        except Exception as exc:
            raise DependencyError(f"could not get releases: {exc}") from exc

    def _dependency_version(self, version: str, release: GithubRelease) -> DepVersion:
        with tempfile.TemporaryDirectory(prefix="tini") as tarball_dir:
            tarball_path = str(Path(tarball_dir) / f"tini-{version}.tar.gz")

            try:
                tarball_url = self.github_client.download_source_tarball(
                    _ORG, _REPO, version, tarball_path
                )
            except Exception as exc:
                raise DependencyError(f"could not download source tarball: {exc}") from exc

            try:
                sha256 = self.checksummer.get_sha256(tarball_path)
            except Exception as exc:
                raise DependencyError(f"could not get SHA256: {exc}") from exc

        try:
            licenses = self.license_retriever.lookup_licenses("tini", tarball_url)
        except Exception as exc:
            raise DependencyError(f"could not get retrieve licenses: {exc}") from exc

        return DepVersion(
            version=version,
            uri=tarball_url,
            sha256=sha256,
            release_date=release.published_date,
            deprecation_date=None,
            cpe=(
                "cpe:2.3:a:tini_project:tini:"
                f"{version.removeprefix('v')}:*:*:*:*:*:*:*"
            ),
            purl=self.purl_generator.generate("tini", version, sha256, tarball_url),
            licenses=licenses,
        )