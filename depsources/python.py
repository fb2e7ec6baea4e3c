"""Versions of the CPython source archive, read from the python.org download pages."""

from __future__ import annotations

import re
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from depsources.base import (
    Checksummer,
    DependencyError,
    DepVersion,
    FileSystem,
    LicenseRetriever,
    PURLGenerator,
    WebClient,
)

_DOWNLOADS_URL = "https://www.python.org/downloads/"

_RELEASE_NUMBER = re.compile(r"release-number.*Python (\d+\.\d+\.\d+)", re.ASCII)
_RELEASE_DATE = re.compile(r"Release Date:</strong> (\w{3})[\w.]* (\d+, \d+)", re.ASCII)
_SOURCE_URI = re.compile(r'<a href="(.*)">Gzipped source tar ?ball')
_MD5_FROM_FILES = re.compile(r"<td>([0-9a-f]{32})</td>")
_MD5_FROM_PRE = re.compile(r"([0-9a-f]{32}).*\d+.*\.tgz", re.ASCII)
_MD5_FROM_BLOCKQUOTE = re.compile(r"<tt .*>([0-9a-f]{32})</tt>.*\.tgz")
_FULL_END_DATE = re.compile(r'release-end">(\d{4}-\d{2}-\d{2})', re.ASCII)
_MONTH_END_DATE = re.compile(r'release-end">(\d{4}-\d{2})', re.ASCII)

_MONTHS = {
    name: number
    for number, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}

# Versions whose published MD5 is known not to match the archive.
_VERSIONS_WITH_WRONG_CHECKSUM = frozenset({"3.1.0"})


@dataclass(frozen=True)
class _ReleaseMetadata:
    source_uri: str
    release_date: datetime
    potential_md5s: list[str]


def _parse_release_date(month: str, day_and_year: str) -> datetime:
    try:
        month_number = _MONTHS[month.lower()]
        day, year = (int(part) for part in day_and_year.split(", "))
        return datetime(year, month_number, day, tzinfo=timezone.utc)
    except (KeyError, ValueError) as exc:
        raise DependencyError(
            f"could not parse release date: {month} {day_and_year}"
        ) from exc


def _line_after(lines: list[str], index: int, offset: int) -> str:
    target = index + offset
    return lines[target] if target < len(lines) else ""


class Python:
    """The CPython gzipped source tarball."""

    def __init__(
        self,
        *,
        web_client: WebClient,
        checksummer: Checksummer,
        license_retriever: LicenseRetriever,
        purl_generator: PURLGenerator,
        file_system: FileSystem | None = None,
    ) -> None:
        self.web_client = web_client
        self.checksummer = checksummer
        self.license_retriever = license_retriever
        self.purl_generator = purl_generator
        self.file_system = file_system

    def get_all_version_refs(self) -> list[str]:
        """Return the versions listed on the downloads page, in page order."""
        try:
            body = self.web_client.get(_DOWNLOADS_URL)
        except Exception as exc:
            raise DependencyError(f"could not get python downloads: {exc}") from exc

        return [
            match.group(1)
            for line in body.decode().split("\n")
            if (match := _RELEASE_NUMBER.search(line))
        ]

    def get_dependency_version(self, version: str) -> DepVersion:
        """Return the verified source tarball of ``version``."""
        try:
            metadata = self._release_metadata(version)
        except Exception as exc:
            raise DependencyError(f"could not get release metadata: {exc}") from exc

        try:
            sha256 = self._dependency_sha256(
                metadata.source_uri, metadata.potential_md5s, version
            )
        except Exception as exc:
            raise DependencyError(f"could not get dependency SHA256: {exc}") from exc

        try:
            deprecation_date = self._deprecation_date(version)
        except Exception as exc:
            raise DependencyError(
                f"could not get release deprecation date: {exc}"
            ) from exc

        try:
            licenses = self.license_retriever.lookup_licenses("python", metadata.source_uri)
        except Exception as exc:
            raise DependencyError(f"could not get retrieve licenses: {exc}") from exc

        return DepVersion(
            version=version,
            uri=metadata.source_uri,
            sha256=sha256,
            release_date=metadata.release_date,
            deprecation_date=deprecation_date,
            cpe=f"cpe:2.3:a:python:python:{version}:*:*:*:*:*:*:*",
            purl=self.purl_generator.generate("python", version, sha256, metadata.source_uri),
            licenses=licenses,
        )

    def get_release_date(self, version: str) -> datetime:
        """Return the release date shown on the version's download page."""
        try:
            return self._release_metadata(version).release_date
        except Exception as exc:
            raise DependencyError(f"could not get release metadata: {exc}") from exc

    def _release_metadata(self, version: str) -> _ReleaseMetadata:
        slug = version.replace(".", "")
        try:
            body = self.web_client.get(
                f"https://www.python.org/downloads/release/python-{slug}/"
            )
        except Exception as exc:
            raise DependencyError(f"could not get python downloads: {exc}") from exc

        month = day_and_year = source_uri = ""
        md5s: list[str] = []

        lines = body.decode().split("\n")
        for index, line in enumerate(lines):
            if match := _RELEASE_DATE.search(line):
                month, day_and_year = match.group(1), match.group(2)
                continue

            if match := _SOURCE_URI.search(line):
                source_uri = match.group(1)
                if files_match := _MD5_FROM_FILES.search(_line_after(lines, index, 3)):
                    md5s.append(files_match.group(1))
                continue

            if match := _MD5_FROM_PRE.search(line):
                md5s.append(match.group(1))
                continue

            if match := _MD5_FROM_BLOCKQUOTE.search(line):
                md5s.append(match.group(1))
                continue

        if not source_uri:
            raise DependencyError("could not find source URI on download page")
        if not md5s:
            raise DependencyError("could not find MD5 on download page")
        if not day_and_year or not month:
            raise DependencyError("could not find release date on download page")

        return _ReleaseMetadata(
            source_uri=source_uri,
            release_date=_parse_release_date(month, day_and_year),
            potential_md5s=md5s,
        )

    def _dependency_sha256(self, source_uri: str, md5s: list[str], version: str) -> str:
        with tempfile.TemporaryDirectory(prefix="python") as temp_dir:
            path = str(Path(temp_dir) / source_uri.rstrip("/").rsplit("/", 1)[-1])
            try:
                self.web_client.download(source_uri, path)
            except Exception as exc:
                raise DependencyError(f"could not download dependency: {exc}") from exc

            if version not in _VERSIONS_WITH_WRONG_CHECKSUM and not self._any_md5_matches(
                path, md5s
            ):
                raise DependencyError(f"md5 did not match any of [{','.join(md5s)}]")

            try:
                return self.checksummer.get_sha256(path)
            except Exception as exc:
                raise DependencyError(f"could not get sha256: {exc}") from exc

    def _any_md5_matches(self, path: str, md5s: list[str]) -> bool:
        for md5 in md5s:
            try:
                self.checksummer.verify_md5(path, md5)
            except Exception:
                continue
            return True
        return False

    def _deprecation_date(self, version: str) -> datetime | None:
        try:
            body = self.web_client.get(_DOWNLOADS_URL)
        except Exception as exc:
            raise DependencyError(f"could not get python downloads: {exc}") from exc

        version_line = ".".join(version.split(".")[:2])
        matcher = f'release-version">{version_line}'

        lines = body.decode().split("\n")
        for index, line in enumerate(lines):
            if matcher not in line:
                continue
            end_line = _line_after(lines, index, 3)

            if match := _FULL_END_DATE.search(end_line):
                return self._parse_end_date(match.group(1), "%Y-%m-%d")
            if match := _MONTH_END_DATE.search(end_line):
                return self._parse_end_date(match.group(1), "%Y-%m")
        return None

    @staticmethod
    def _parse_end_date(text: str, pattern: str) -> datetime:
        try:
            return datetime.strptime(text, pattern).replace(tzinfo=timezone.utc)
        except ValueError as exc:
            raise DependencyError(f"could not parse deprecation date: {exc}") from exc