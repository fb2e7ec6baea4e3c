"""Versions of the Ruby source archive, read from ruby-lang.org."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone

import yaml

from depsources.base import (
    Checksummer,
    DependencyError,
    DepVersion,
    FileSystem,
    LicenseRetriever,
    NoSourceCodeError,
    PURLGenerator,
    WebClient,
)

_RELEASES_URL = "https://www.ruby-lang.org/en/downloads/releases/"
_RELEASES_YAML_URL = (
    "https://raw.githubusercontent.com/ruby/www.ruby-lang.org/master/_data/releases.yml"
)
_MIRROR_INDEX_URL = "https://cache.ruby-lang.org/pub/ruby/index.txt"

_RELEASE_ROW = re.compile(
    r">Ruby (\d+\.\d+\.\d+)</td>\n<td>(\d\d\d\d-\d\d-\d\d)<", re.ASCII
)


@dataclass(frozen=True)
class RubyRelease:
    """A release listed on the Ruby releases page."""

    version: str
    date: str

    def parsed_date(self) -> datetime:
        """Return the release date as a UTC datetime."""
        try:
            return datetime.strptime(self.date, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        except ValueError as exc:
            raise DependencyError(f"could not parse release date: {exc}") from exc


def _text(value: object) -> str:
    return "" if value is None else str(value)


class Ruby:
    """The Ruby gzipped source tarball."""

    def __init__(
        self,
        *,
        web_client: WebClient,
        license_retriever: LicenseRetriever,
        purl_generator: PURLGenerator,
        checksummer: Checksummer | None = None,
        file_system: FileSystem | None = None,
    ) -> None:
        self.web_client = web_client
        self.license_retriever = license_retriever
        self.purl_generator = purl_generator
        self.checksummer = checksummer
        self.file_system = file_system

    def get_all_version_refs(self) -> list[str]:
        """Return the versions listed on the releases page, in page order."""
        try:
            releases = self._all_releases()
        except Exception as exc:
            raise DependencyError(f"could not get ruby releases: {exc}") from exc
        return [release.version for release in releases]

    def get_dependency_version(self, version: str) -> DepVersion:
        """Return the source tarball of ``version``."""
        try:
            releases = self._all_releases()
        except Exception as exc:
            raise DependencyError(f"could not get releases: {exc}") from exc

        url, sha256 = self._url_and_sha256(version)

        try:
            licenses = self.license_retriever.lookup_licenses("ruby", url)
        except Exception as exc:
            raise DependencyError(f"could not get retrieve licenses: {exc}") from exc

        for release in releases:
            if release.version == version:
                return DepVersion(
                    version=version,
                    uri=url,
                    sha256=sha256,
                    release_date=release.parsed_date(),
                    deprecation_date=None,
                    cpe=f"cpe:2.3:a:ruby-lang:ruby:{version}:*:*:*:*:*:*:*",
                    purl=self.purl_generator.generate("ruby", version, sha256, url),
                    licenses=licenses,
                )
        raise DependencyError(f"could not find version {version}")

    def get_release_date(self, version: str) -> datetime:
        """Return the release date listed on the releases page."""
        try:
            releases = self._all_releases()
        except Exception as exc:
            raise DependencyError(f"could not get releases: {exc}") from exc

        for release in releases:
            if release.version == version:
                return release.parsed_date()
        raise DependencyError(f"could not find release date for version {version}")

    def _all_releases(self) -> list[RubyRelease]:
        try:
            body = self.web_client.get(_RELEASES_URL)
        except Exception as exc:
            raise DependencyError(f"could not get release index: {exc}") from exc

        return [
            RubyRelease(version=version, date=date)
            for version, date in _RELEASE_ROW.findall(body.decode())
        ]

    def _url_and_sha256(self, version: str) -> tuple[str, str]:
        try:
            return self._url_and_sha256_from_yaml(version)
        except NoSourceCodeError:
            return self._url_and_sha256_from_mirror(version)

    def _url_and_sha256_from_yaml(self, version: str) -> tuple[str, str]:
        try:
            body = self.web_client.get(_RELEASES_YAML_URL)
        except Exception as exc:
            raise DependencyError(f"could not get release yaml: {exc}") from exc

        try:
            releases = yaml.safe_load(body) or []
        except yaml.YAMLError as exc:
            raise DependencyError(f"could not unmarshal yaml releases file: {exc}") from exc
        if not isinstance(releases, list):
            raise DependencyError("could not unmarshal yaml releases file: not a list")

        for release in releases:
            if not isinstance(release, dict) or _text(release.get("version")) != version:
                continue
            url = _text((release.get("url") or {}).get("gz"))
            sha256 = _text((release.get("sha256") or {}).get("gz"))
            if url and sha256:
                return url, sha256
            break

        raise NoSourceCodeError(version)

    def _url_and_sha256_from_mirror(self, version: str) -> tuple[str, str]:
        try:
            body = self.web_client.get(_MIRROR_INDEX_URL)
        except Exception as exc:
            raise DependencyError(f"could not get release index: {exc}") from exc

        accepted = {version, f"{version}-0", f"{version}-p0"}
        for line in body.decode().split("\n"):
            if not line.startswith("ruby"):
                continue
            fields = line.split()
            if len(fields) < 4:
                continue
            name = fields[0].removeprefix("ruby-")
            if name in accepted and fields[1].endswith("tar.gz"):
                return fields[1], fields[3]

        raise DependencyError(f"could not find URL and SHA256 for version {version}")