"""Shared records, errors and collaborator interfaces for dependency sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol


@dataclass
class DepVersion:
    """Everything known about one released version of a dependency."""

    version: str
    uri: str = ""
    sha256: str = ""
    release_date: datetime | None = None
    deprecation_date: datetime | None = None
    cpe: str = ""
    purl: str = ""
    licenses: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class GithubRelease:
    """A published release of a GitHub repository."""

    tag_name: str
    published_date: datetime


@dataclass(frozen=True)
class GithubTagCommit:
    """The commit a GitHub tag points at."""

    tag: str
    sha: str
    date: datetime


class DependencyError(Exception):
    """Raised when a dependency source cannot produce the requested data."""


class NoSourceCodeError(DependencyError):
    """Raised when a version has no downloadable source code."""

    def __init__(self, version: str) -> None:
        super().__init__(f"no source code available for version {version}")
        self.version = version

    def __eq__(self, other: object) -> bool:
        return isinstance(other, NoSourceCodeError) and self.version == other.version

    __hash__ = DependencyError.__hash__


class AssetNotFoundError(DependencyError):
    """Raised when a release does not carry the named asset."""

    def __init__(self, asset_name: str) -> None:
        super().__init__(f"could not find asset {asset_name}")
        self.asset_name = asset_name

    def __eq__(self, other: object) -> bool:
        return isinstance(other, AssetNotFoundError) and self.asset_name == other.asset_name

    __hash__ = DependencyError.__hash__


class Checksummer(Protocol):
    """Verifies and computes checksums of downloaded files."""

    def verify_md5(self, path: str, md5: str) -> None: ...

    def verify_asc(self, signature: str, path: str, *pgp_keys: str) -> None: ...

    def get_sha256(self, path: str) -> str: ...


class FileSystem(Protocol):
    """Writes files on behalf of a dependency source."""

    def write_file(self, path: str, contents: str) -> None: ...


class WebClient(Protocol):
    """Fetches documents and files over HTTP."""

    def get(self, url: str, *options: object) -> bytes: ...

    def download(self, url: str, path: str, *options: object) -> None: ...


class GithubClient(Protocol):
    """Reads tags, releases and assets of GitHub repositories."""

    def get_tags(self, org: str, repo: str) -> list[str]: ...

    def get_release_tags(self, org: str, repo: str) -> list[GithubRelease]: ...

    def get_tag_commit(self, org: str, repo: str, tag: str) -> GithubTagCommit: ...

    def download_source_tarball(self, org: str, repo: str, version: str, path: str) -> str: ...

    def download_release_asset(
        self, org: str, repo: str, version: str, filename: str, path: str
    ) -> str: ...

    def get_release_asset(self, org: str, repo: str, version: str, filename: str) -> bytes: ...


class LicenseRetriever(Protocol):
    """Finds the licences that apply to a source archive."""

    def lookup_licenses(self, dependency_name: str, source_url: str) -> list[str]: ...


class PURLGenerator(Protocol):
    """Builds package URLs for dependency versions."""

    def generate(self, name: str, version: str, sha256: str, source_url: str) -> str: ...