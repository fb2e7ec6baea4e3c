from datetime import datetime, timezone

import pytest

from depsources.base import DependencyError, DepVersion
from depsources.python import Python


class FakeWebClient:
    def __init__(self, responses=(), default=b""):
        self.responses = list(responses)
        self.default = default
        self.get_calls = []
        self.download_calls = []

    def get(self, url, *options):
        index = len(self.get_calls)
        self.get_calls.append(url)
        if index < len(self.responses):
            return self.responses[index]
        return self.default

    def download(self, url, path, *options):
        self.download_calls.append((url, path))


class FakeChecksummer:
    def __init__(self, sha256="", failing_md5_calls=()):
        self.sha256 = sha256
        self.failing_md5_calls = set(failing_md5_calls)
        self.md5_calls = []

    def verify_md5(self, path, md5):
        index = len(self.md5_calls)
        self.md5_calls.append((path, md5))
        if index in self.failing_md5_calls:
            raise ValueError("some-error")

    def verify_asc(self, signature, path, *pgp_keys):
        pass

    def get_sha256(self, path):
        return self.sha256


class FakeLicenseRetriever:
    def __init__(self, licenses=None):
        self.licenses = licenses
        self.calls = []

    def lookup_licenses(self, dependency_name, source_url):
        self.calls.append((dependency_name, source_url))
        return self.licenses


class FakePURLGenerator:
    def __init__(self, purl=""):
        self.purl = purl
        self.calls = []

    def generate(self, name, version, sha256, source_url):
        self.calls.append((name, version, sha256, source_url))
        return self.purl


FTP = "https://www.python.org/ftp/python"

_ACTIVE_RELEASES = [
    ("3.8", "bugfix", "2019-10-14", "2024-10"),
    ("3.7", "bugfix", "2018-06-27", "2023-06-27"),
    ("3.6", "security", "2016-12-23", "2021-12-23"),
    ("3.5", "security", "2015-09-13", "2020-09-13"),
    ("2.7", "end-of-life", "2010-07-03", "2020-01-01"),
]

_LISTED_RELEASES = [
    ("3.7.8", "June 27, 2020"),
    ("3.6.11", "June 27, 2020"),
    ("3.8.3", "May 13, 2020"),
    ("2.7.18", "April 20, 2020"),
    ("3.7.7", "March 10, 2020"),
    ("3.8.2", "Feb. 24, 2020"),
    ("3.8.1", "Dec. 18, 2019"),
    ("3.7.6", "Dec. 18, 2019"),
    ("3.6.10", "Dec. 18, 2019"),
    ("3.5.9", "Nov. 2, 2019"),
    ("3.5.8", "Oct. 29, 2019"),
    ("2.7.17", "Oct. 19, 2019"),
    ("3.7.5", "Oct. 15, 2019"),
]


def _span(css_class, content):
    return f'<span class="{css_class}">{content}</span>'


def _full_python_index():
    lines = ["<!doctype html>", _span("release-version", "Python version"), "<ol>"]
    for version, status, start, end in _ACTIVE_RELEASES:
        lines += [
            "<li>",
            _span("release-version", version),
            _span("release-status", status),
            _span("release-start", start),
            _span("release-end", end),
            "</li>",
        ]
    lines += ["</ol>", _span("release-number", "Release version"), "<ol>"]
    for version, date in _LISTED_RELEASES:
        slug = version.replace(".", "")
        link = f'<a href="/downloads/release/python-{slug}/">Python {version}</a>'
        lines += ["<li>", _span("release-number", link), _span("release-date", date), "</li>"]
    lines += ["</ol>", "</html>"]
    return "\n".join(lines)


def _file_row(url, label, md5, size):
    return [
        "<tr>",
        f'<td><a href="{url}">{label}</a></td>',
        "<td>Source release</td>",
        "<td></td>",
        f"<td>{md5}</td>",
        f"<td>{size}</td>",
        f'<td><a href="{url}.asc">SIG</a></td>',
        "</tr>",
    ]


def _download_page(title, release_date, body, rows):
    lines = [
        "<html>",
        f'<h1 class="page-title">Python {title}</h1>',
        f"<p><strong>Release Date:</strong> {release_date}</p>",
        *body,
        "<table>",
        "<tbody>",
    ]
    for row in rows:
        lines += _file_row(*row)
    lines += ["</tbody>", "</table>", "</html>"]
    return "\n".join(lines)


FULL_PYTHON_INDEX = _full_python_index()

PYTHON_378_DOWNLOAD_PAGE = _download_page(
    "3.7.8",
    "June 27, 2020",
    [],
    [
        (f"{FTP}/3.7.8/Python-3.7.8.tgz", "Gzipped source tarball",
         "4d5b16e8c15be38eb0f4b8f04eb68cd0", 23276116),
        (f"{FTP}/3.7.8/Python-3.7.8.tar.xz", "XZ compressed source tarball",
         "a224ef2249a18824f48fba9812f4006f", 17399552),
        (f"{FTP}/3.7.8/python378.chm", "Windows help file",
         "65bb54986e5a921413e179d2211b9bfb", 8186659),
    ],
)

PYTHON_333_DOWNLOAD_PAGE = _download_page(
    "3.3.3",
    "Nov. 17, 2013",
    [
        "<ul>",
        '<li><a class="reference external" href="/ftp/python/3.3.3/Python-3.3.3.tgz">'
        "Gzipped source tar ball (3.3.3)</a></li>",
        "</ul>",
        '<pre class="literal-block">',
        "831d59212568dc12c95df222865d3441  16808057  Python-3.3.3.tgz",
        "f3ebe34d4d8695bf889279b54673e10c  14122529  Python-3.3.3.tar.bz2",
        "c86d6d68ca1a1de7395601a4918314f9   6651185  python333.chm",
        "</pre>",
    ],
    [
        (f"{FTP}/3.3.3/Python-3.3.3.tar.bz2", "bzip2 compressed source tarball",
         "f3ebe34d4d8695bf889279b54673e10c", 14122529),
        (f"{FTP}/3.3.3/Python-3.3.3.tgz", "Gzipped source tarball",
         "a44bec5d1391b1af654cf15e25c282f2", 69120000),
    ],
)

PYTHON_255_DOWNLOAD_PAGE = _download_page(
    "2.5.5",
    "Jan. 31, 2010",
    [
        "<blockquote>",
        '<p><tt class="docutils literal">abc02139ca38f4258e8e372f7da05c88</tt> '
        '<a class="reference external" href="/ftp/python/2.5.5/Python-2.5.5.tgz">'
        "Python-2.5.5.tgz</a>",
        '<p><tt class="docutils literal">1d00e2fb19418e486c30b850df625aa3</tt> '
        '<a class="reference external" href="/ftp/python/2.5.5/Python-2.5.5.tar.bz2">'
        "Python-2.5.5.tar.bz2</a>",
        "</blockquote>",
    ],
    [
        (f"{FTP}/2.5.5/Python-2.5.5.tar.bz2", "bzip2 compressed source tarball",
         "1d00e2fb19418e486c30b850df625aa3", 9822917),
        (f"{FTP}/2.5.5/Python-2.5.5.tgz", "Gzipped source tarball",
         "6953d49c4d2470d88d8577b4e5ed3ce2", 50155520),
    ],
)


def make_python(web_client, checksummer=None, licenses=None, purl=""):
    checksummer = checksummer or FakeChecksummer()
    license_retriever = FakeLicenseRetriever(licenses)
    purl_generator = FakePURLGenerator(purl)
    python = Python(
        web_client=web_client,
        checksummer=checksummer,
        license_retriever=license_retriever,
        purl_generator=purl_generator,
    )
    return python, checksummer, license_retriever, purl_generator


def test_get_all_version_refs_returns_versions_in_page_order():
    web_client = FakeWebClient(default=FULL_PYTHON_INDEX.encode())
    python, *_ = make_python(web_client)

    assert python.get_all_version_refs() == [
        "3.7.8",
        "3.6.11",
        "3.8.3",
        "2.7.18",
        "3.7.7",
        "3.8.2",
        "3.8.1",
        "3.7.6",
        "3.6.10",
        "3.5.9",
        "3.5.8",
        "2.7.17",
        "3.7.5",
    ]
    assert web_client.get_calls[0] == "https://www.python.org/downloads/"


def test_get_dependency_version_returns_full_record():
    web_client = FakeWebClient(
        [PYTHON_378_DOWNLOAD_PAGE.encode(), FULL_PYTHON_INDEX.encode()]
    )
    purl = "pkg:generic/python@3.7.8?checksum=some-sha-256&download_url=https://www.python.org"
    python, checksummer, license_retriever, purl_generator = make_python(
        web_client,
        FakeChecksummer(sha256="some-sha256"),
        licenses=["MIT", "MIT-2"],
        purl=purl,
    )

    actual = python.get_dependency_version("3.7.8")

    assert len(license_retriever.calls) == 1
    assert len(purl_generator.calls) == 1
    assert actual == DepVersion(
        version="3.7.8",
        uri="https://www.python.org/ftp/python/3.7.8/Python-3.7.8.tgz",
        sha256="some-sha256",
        release_date=datetime(2020, 6, 27, tzinfo=timezone.utc),
        deprecation_date=datetime(2023, 6, 27, tzinfo=timezone.utc),
        cpe="cpe:2.3:a:python:python:3.7.8:*:*:*:*:*:*:*",
        purl=purl,
        licenses=["MIT", "MIT-2"],
    )
    assert web_client.get_calls[0] == "https://www.python.org/downloads/release/python-378/"
    assert checksummer.md5_calls[0][1] == "4d5b16e8c15be38eb0f4b8f04eb68cd0"
    assert web_client.download_calls[0][0] == (
        "https://www.python.org/ftp/python/3.7.8/Python-3.7.8.tgz"
    )
    assert web_client.download_calls[0][1].endswith("Python-3.7.8.tgz")


def test_abbreviated_month_in_release_date():
    page = PYTHON_378_DOWNLOAD_PAGE.replace("June 27, 2020", "Sept 2, 2020")
    web_client = FakeWebClient([page.encode(), FULL_PYTHON_INDEX.encode()])
    python, *_ = make_python(web_client)

    dep = python.get_dependency_version("3.7.8")

    assert dep.release_date == datetime(2020, 9, 2, tzinfo=timezone.utc)


def test_deprecation_date_without_day_uses_first_of_month():
    index = FULL_PYTHON_INDEX.replace("2023-06-27", "2023-06")
    web_client = FakeWebClient([PYTHON_378_DOWNLOAD_PAGE.encode(), index.encode()])
    python, *_ = make_python(web_client)

    dep = python.get_dependency_version("3.7.8")

    assert dep.deprecation_date == datetime(2023, 6, 1, tzinfo=timezone.utc)


def test_missing_deprecation_date_is_left_empty():
    index = FULL_PYTHON_INDEX.replace(">3.7<", "><")
    web_client = FakeWebClient([PYTHON_378_DOWNLOAD_PAGE.encode(), index.encode()])
    python, *_ = make_python(web_client)

    dep = python.get_dependency_version("3.7.8")

    assert dep.deprecation_date is None
    assert dep.version == "3.7.8"


def test_tarball_spelled_as_two_words_still_finds_source_uri():
    page = PYTHON_378_DOWNLOAD_PAGE.replace(
        "Gzipped source tarball", "Gzipped source tar ball"
    )
    web_client = FakeWebClient([page.encode(), FULL_PYTHON_INDEX.encode()])
    python, *_ = make_python(web_client)

    dep = python.get_dependency_version("3.7.8")

    assert dep.uri == "https://www.python.org/ftp/python/3.7.8/Python-3.7.8.tgz"


def test_falls_back_to_md5_from_pre_block():
    web_client = FakeWebClient(
        [PYTHON_333_DOWNLOAD_PAGE.encode(), FULL_PYTHON_INDEX.encode()]
    )
    checksummer = FakeChecksummer(sha256="some-sha256", failing_md5_calls={0})
    python, *_ = make_python(web_client, checksummer)

    dep = python.get_dependency_version("3.3.3")

    assert dep.sha256 == "some-sha256"
    tried = sorted(md5 for _, md5 in checksummer.md5_calls[:2])
    assert tried == sorted(
        ["831d59212568dc12c95df222865d3441", "a44bec5d1391b1af654cf15e25c282f2"]
    )


def test_falls_back_to_md5_from_blockquote():
    web_client = FakeWebClient(
        [PYTHON_255_DOWNLOAD_PAGE.encode(), FULL_PYTHON_INDEX.encode()]
    )
    checksummer = FakeChecksummer(sha256="some-sha256", failing_md5_calls={0})
    python, *_ = make_python(web_client, checksummer)

    dep = python.get_dependency_version("2.5.5")

    assert dep.sha256 == "some-sha256"
    tried = sorted(md5 for _, md5 in checksummer.md5_calls[:2])
    assert tried == sorted(
        ["abc02139ca38f4258e8e372f7da05c88", "6953d49c4d2470d88d8577b4e5ed3ce2"]
    )


def test_known_wrong_md5_is_not_verified():
    web_client = FakeWebClient(
        [PYTHON_255_DOWNLOAD_PAGE.encode(), FULL_PYTHON_INDEX.encode()]
    )
    checksummer = FakeChecksummer(sha256="some-sha256")
    python, *_ = make_python(web_client, checksummer)

    dep = python.get_dependency_version("3.1.0")

    assert dep.sha256 == "some-sha256"
    assert checksummer.md5_calls == []


def test_no_matching_md5_raises():
    web_client = FakeWebClient(
        [PYTHON_378_DOWNLOAD_PAGE.encode(), FULL_PYTHON_INDEX.encode()]
    )
    checksummer = FakeChecksummer(sha256="some-sha256", failing_md5_calls={0})
    python, *_ = make_python(web_client, checksummer)

    with pytest.raises(DependencyError, match="md5 did not match any of"):
        python.get_dependency_version("3.7.8")


def test_page_without_source_uri_raises():
    page = PYTHON_378_DOWNLOAD_PAGE.replace("Gzipped source tarball", "Something else")
    web_client = FakeWebClient([page.encode(), FULL_PYTHON_INDEX.encode()])
    python, *_ = make_python(web_client)

    with pytest.raises(DependencyError, match="could not find source URI"):
        python.get_dependency_version("3.7.8")


def test_get_release_date():
    web_client = FakeWebClient(
        [PYTHON_378_DOWNLOAD_PAGE.encode(), FULL_PYTHON_INDEX.encode()]
    )
    python, *_ = make_python(web_client, FakeChecksummer(sha256="some-sha256"))

    assert python.get_release_date("3.7.8") == datetime(2020, 6, 27, tzinfo=timezone.utc)


def test_get_release_date_with_abbreviated_month():
    page = PYTHON_378_DOWNLOAD_PAGE.replace("June 27, 2020", "Sept 2, 2020")
    web_client = FakeWebClient([page.encode(), FULL_PYTHON_INDEX.encode()])
    python, *_ = make_python(web_client)

    assert python.get_release_date("3.7.8") == datetime(2020, 9, 2, tzinfo=timezone.utc)


def test_get_release_date_without_date_raises():
    page = PYTHON_378_DOWNLOAD_PAGE.replace("Release Date:", "Released:")
    web_client = FakeWebClient([page.encode()])
    python, *_ = make_python(web_client)

    with pytest.raises(DependencyError, match="could not find release date"):
        python.get_release_date("3.7.8")