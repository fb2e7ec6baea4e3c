"""Versions of Python packages published as source distributions on PyPI."""

from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime
from functools import cmp_to_key
from typing import Iterator

from depsources.base import (
    Checksummer,
    DependencyError,
    DepVersion,
    FileSystem,
    LicenseRetriever,
    PURLGenerator,
    WebClient,
)
from depsources.versions import InvalidVersionError, parse_version

_CPE_PRODUCTS = {
    "pip": "pypa:pip",
    "pipenv": "pypa:pipenv",
    "poetry": "python-poetry:poetry",
}


@contextmanager
def _reraise(message: str) -> Iterator[None]:
    try:
        yield
    except Exception as exc:
        raise DependencyError(f"{message}: {exc}") from exc


def _semver(text: str):
    try:
        return parse_version(text)
    except InvalidVersionError as exc:
        raise DependencyError(f"could not parse '{text}' as semver") from exc


def _compare_newest_first(a: DepVersion, b: DepVersion) -> int:
    if a.release_date != b.release_date:
        return -1 if a.release_date > b.release_date else 1
    first, second = _semver(a.version), _semver(b.version)
    return -1 if first > second else (1 if second > first else 0)


class PyPi:
    """A package whose final source releases are read from PyPI."""

    def __init__(
        self,
        product_name: str,
        *,
        web_client: WebClient,
        license_retriever: LicenseRetriever,
        purl_generator: PURLGenerator,
        checksummer: Checksummer | None = None,
        file_system: FileSystem | None = None,
    ) -> None:
        self.product_name = product_name
        self.web_client = web_client
        self.license_retriever = license_retriever
        self.purl_generator = purl_generator
        self.checksummer = checksummer
        self.file_system = file_system

    def get_all_version_refs(self) -> list[str]:
        """Return the final source release versions, newest first."""
        releases = self._releases()
        with _reraise("could not sort releases"):
            releases.sort(key=cmp_to_key(_compare_newest_first))
        return [release.version for release in releases]

    def get_dependency_version(self, version: str) -> DepVersion:
        """Return the source release of ``version``."""
        for release in self._releases():
            if release.version == version:
                return release
        raise DependencyError(f"could not find release with version {version}")

    def get_release_date(self, version: str) -> datetime | None:
        """Return the upload time of the source release of ``version``."""
        for release in self._releases():
            if release.version == version:
                return release.release_date
        raise DependencyError(f"could not find release date for version {version}")

    def _cpe(self, version: str) -> str:
        product = _CPE_PRODUCTS.get(self.product_name)
        return f"cpe:2.3:a:{product}:{version}:*:*:*:*:python:*:*" if product else ""

    def _releases(self) -> list[DepVersion]:
        with _reraise("could not get releases"):
            return list(self._read_releases())

    def _read_releases(self) -> Iterator[DepVersion]:
        with _reraise("could not get project metadata"):
            body = self.web_client.get(f"https://pypi.org/pypi/{self.product_name}/json")
        with _reraise("could not unmarshal project metadata"):
            metadata = json.loads(body)

        for version, files in (metadata.get("releases") or {}).items():
            if "b" in version or "dev" in version:
                continue
            for entry in files or []:
                if entry.get("packagetype") != "sdist":
                    continue
                upload_time = entry.get("upload_time_iso_8601") or ""
                with _reraise(
                    f"could not parse upload time '{upload_time}' as date for version {version}"
                ):
                    uploaded = datetime.fromisoformat(upload_time.replace("Z", "+00:00"))
                sha256 = (entry.get("digests") or {}).get("sha256") or ""
                if not sha256:
                    raise DependencyError(f"could not find sha256 for version {version}")
                url = entry.get("url") or ""
                with _reraise("could not get retrieve licenses"):
                    licenses = self.license_retriever.lookup_licenses("pypi", url)
                yield DepVersion(
                    version=version,
                    uri=url,
                    sha256=sha256,
                    release_date=uploaded,
                    cpe=self._cpe(version),
                    purl=self.purl_generator.generate(self.product_name, version, sha256, url),
                    licenses=licenses,
                )