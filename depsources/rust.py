"""Versions of the Rust compiler source, read from its tags and signed archives."""

from __future__ import annotations

import tempfile
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from depsources.base import (
    Checksummer,
    DependencyError,
    DepVersion,
    FileSystem,
    GithubClient,
    LicenseRetriever,
    PURLGenerator,
    WebClient,
)
from depsources.versions import InvalidVersionError, parse_version

_KEY_URL = "https://static.rust-lang.org/rust-key.gpg.ascii"
_DIST_URL = "https://static.rust-lang.org/dist/rustc-{}-src.tar.gz"


@contextmanager
def _reraise(message: str) -> Iterator[None]:
    try:
        yield
    except Exception as exc:
        raise DependencyError(f"{message}: {exc}") from exc


class Rust:
    """The Rust compiler source archive."""

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
        """Return the final release tags in the order the repository lists them."""
        with _reraise("could not get tags"):
            tags = self.github_client.get_tags("rust-lang", "rust")

        versions = []
        for tag in tags:
            if tag.startswith("release-"):
                continue
            try:
                parsed = parse_version(tag)
            except InvalidVersionError as exc:
                raise DependencyError(f"failed to parse version {tag}: {exc}") from exc
            if not parsed.prerelease and parsed.major != 0:
                versions.append(tag)
        return versions

    def get_dependency_version(self, version: str) -> DepVersion:
        """Return the verified source archive of ``version``."""
        release_date = self.get_release_date(version)
        url = _DIST_URL.format(version)
        with _reraise("could not get rust sha"):
            sha256 = self._verified_sha256(url, version)
        with _reraise("could not get retrieve licenses"):
            licenses = self.license_retriever.lookup_licenses("rust", url)

        return DepVersion(
            version=version,
            uri=url,
            sha256=sha256,
            release_date=release_date,
            cpe=f"cpe:2.3:a:rust-lang:rust:{version}:*:*:*:*:*:*:*",
            purl=self.purl_generator.generate("rust", version, sha256, url),
            licenses=licenses,
        )

    def get_release_date(self, version: str) -> datetime:
        """Return the date of the commit the version's tag points at."""
        with _reraise("could not get release date"):
            return self.github_client.get_tag_commit("rust-lang", "rust", version).date

    def _verified_sha256(self, url: str, version: str) -> str:
        with _reraise("could not get rust GPG key"):
            key = self.web_client.get(_KEY_URL)
        with _reraise("could not get dependency signature"):
            signature = self.web_client.get(_DIST_URL.format(version) + ".asc")

        with tempfile.TemporaryDirectory(prefix="rust") as output_dir:
            path = str(Path(output_dir) / url.rsplit("/", 1)[-1])
            with _reraise("could not download dependency"):
                self.web_client.download(url, path)
            with _reraise("dependency signature verification failed"):
                self.checksummer.verify_asc(signature.decode(), path, key.decode())
            with _reraise("could not get SHA256"):
                return self.checksummer.get_sha256(path)