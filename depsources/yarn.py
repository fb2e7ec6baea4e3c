"""Versions of the Yarn package manager, read from its signed GitHub release assets."""

from __future__ import annotations

import json
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from depsources.base import (
    AssetNotFoundError,
    Checksummer,
    DependencyError,
    DepVersion,
    FileSystem,
    GithubClient,
    GithubRelease,
    LicenseRetriever,
    NoSourceCodeError,
    PURLGenerator,
    WebClient,
)
from depsources.versions import InvalidVersionError, parse_version

_ORG = "yarnpkg"
_REPO = "yarn"
_KEY_URL = "https://dl.yarnpkg.com/debian/pubkey.gpg"
# Releases before this version carry no source tarball.
_OLDEST_WITH_SOURCE = parse_version("0.7.0")


@dataclass(frozen=True)
class _Asset:
    browser_download_url: str


def _parse_asset(content: bytes) -> _Asset:
    try:
        data = json.loads(content)
    except ValueError as exc:
        raise DependencyError(f"could not unmarshal asset url content: {exc}") from exc
    if not isinstance(data, dict):
        raise DependencyError("could not unmarshal asset url content: not an object")
    url = data.get("browser_download_url")
    return _Asset(browser_download_url="" if url is None else str(url))


class Yarn:
    """The Yarn release tarball, verified against its signature."""

    def __init__(
        self,
        *,
        github_client: GithubClient,
        web_client: WebClient,
        checksummer: Checksummer,
        license_retriever: LicenseRetriever,
        purl_generator: PURLGenerator,
        file_system: FileSystem | None = None,
    ) -> None:
        self.github_client = github_client
        self.web_client = web_client
        self.checksummer = checksummer
        self.license_retriever = license_retriever
        self.purl_generator = purl_generator
        self.file_system = file_system

    def get_all_version_refs(self) -> list[str]:
        """Return final versions from 0.7.0 on, without the "v", in release order."""
        versions = []
        for release in self._releases():
            name = release.tag_name.removeprefix("v")
            try:
                parsed = parse_version(name)
            except InvalidVersionError as exc:
                raise DependencyError(f"failed to parse version: {exc}") from exc
            if parsed < _OLDEST_WITH_SOURCE or parsed.prerelease:
                continue
            versions.append(name)
        return versions

    def get_dependency_version(self, version: str) -> DepVersion:
        """Return the verified release tarball of ``version``.

        Raises NoSourceCodeError when the release has no tarball asset.
        """
        tag_name = f"v{version}"
        for release in self._releases():
            if release.tag_name == tag_name:
                try:
                    return self._dependency_version(version, tag_name, release)
                except NoSourceCodeError:
                    raise
                except Exception as exc:
                    raise DependencyError(f"could not create yarn version: {exc}") from exc
        raise DependencyError(f"could not find yarn version {version}")

    def get_release_date(self, version: str) -> datetime:
        """Return the publication date of the release tagged exactly ``version``."""
        for release in self._releases():
            if release.tag_name == version:
                return release.published_date
        raise DependencyError(f"could not find release date for version {version}")

    def _releases(self) -> list[GithubRelease]:
        try:
            return list(self.github_client.get_release_tags(_ORG, _REPO))
        except Exception as exc:
            raise DependencyError(f"could not get releases: {exc}") from exc

    def _dependency_version(
        self, version: str, tag_name: str, release: GithubRelease
    ) -> DepVersion:
        try:
            key = self.web_client.get(_KEY_URL)
        except Exception as exc:
            raise DependencyError(f"could not get yarn GPG key: {exc}") from exc

        asset_name = f"yarn-{tag_name}.tar.gz"
        with tempfile.TemporaryDirectory(prefix="yarn") as asset_dir:
            asset_path = str(Path(asset_dir) / asset_name)

            try:
                asset_url = self.github_client.download_release_asset(
                    _ORG, _REPO, tag_name, asset_name, asset_path
                )
            except AssetNotFoundError as exc:
                if exc == AssetNotFoundError(asset_name):
                    raise NoSourceCodeError(version) from exc
                raise DependencyError(f"could not download asset url: {exc}") from exc
            except Exception as exc:
                raise DependencyError(f"could not download asset url: {exc}") from exc

            try:
                asset_content = self.web_client.get(asset_url)
            except Exception as exc:
                raise DependencyError(
                    f"could not get asset content from asset url: {exc}"
                ) from exc
            asset = _parse_asset(asset_content)

            try:
                signature = self.github_client.get_release_asset(
                    _ORG, _REPO, tag_name, f"{asset_name}.asc"
                )
            except Exception as exc:
                raise DependencyError(
                    f"could not get release artifact signature: {exc}"
                ) from exc

            try:
                self.checksummer.verify_asc(signature.decode(), asset_path, key.decode())
            except Exception as exc:
                raise DependencyError(
                    f"release artifact signature verification failed: {exc}"
                ) from exc

            try:
                sha256 = self.checksummer.get_sha256(asset_path)
            except Exception as exc:
                raise DependencyError(f"could not get SHA256: {exc}") from exc

        source_url = asset.browser_download_url
        try:
            licenses = self.license_retriever.lookup_licenses("yarn", source_url)
        except Exception as exc:
            raise DependencyError(f"could not get retrieve licenses: {exc}") from exc

        return DepVersion(
            version=version,
            uri=source_url,
            sha256=sha256,
            release_date=release.published_date,
            deprecation_date=None,
            cpe=f"cpe:2.3:a:yarnpkg:yarn:{version}:*:*:*:*:*:*:*",
            purl=self.purl_generator.generate("yarn", version, sha256, source_url),
            licenses=licenses,
        )