# depsources

`depsources` lists the released versions of a number of runtimes and tools.
For a given version it works out where to download the source archive, its
SHA-256 checksum, the release date and, for CPython, the end-of-support date.
Each release also gets a CPE identifier, a package URL and its licences.

## Supported sources

| Class    | Module               | Where releases come from                                      |
|----------|----------------------|---------------------------------------------------------------|
| `PyPi`   | `depsources.pypi`    | PyPI project JSON (`pip`, `pipenv`, `poetry`, ...)            |
| `Python` | `depsources.python`  | python.org download pages, checked against the published MD5  |
| `Ruby`   | `depsources.ruby`    | ruby-lang.org release list, release YAML and mirror index     |
| `Rust`   | `depsources.rust`    | GitHub tags plus source tarballs with GPG signatures          |
| `Tini`   | `depsources.tini`    | GitHub releases and source tarballs                           |
| `Yarn`   | `depsources.yarn`    | GitHub releases and signed release assets                     |

Every source has the same three methods:

- `get_all_version_refs()` returns the list of version strings.
- `get_dependency_version(version)` returns a `DepVersion` with the URI,
  SHA-256, release date, deprecation date, CPE, PURL and licences.
- `get_release_date(version)` returns the release date as a `datetime`.

A few details differ between sources:

- `PyPi` skips versions containing `b` or `dev` and files that are not
  `sdist`; `get_all_version_refs()` orders them newest upload first, then by
  version.
- `Tini` uses release tag names as they are (for example `v1.0.0`).
- `Yarn` drops the leading `v` in `get_all_version_refs()`, skips
  pre-releases and versions before 0.7.0, and `get_dependency_version`
  takes the version without the `v`. `get_release_date` matches the tag name
  exactly.

## Collaborators

The sources do no network, checksum or signature work themselves. You pass
in objects that do it; they follow the protocols in `depsources.base`:

- `WebClient` fetches a URL's body and downloads files.
- `GithubClient` lists tags and releases and downloads tarballs and assets.
- `Checksummer` computes SHA-256 and verifies MD5 sums and GPG signatures.
- `LicenseRetriever` looks up the licences of a source archive.
- `PURLGenerator` builds package URLs.
- `FileSystem` is accepted as an optional argument by most sources but is
  not used by them.

Downloads go to a temporary directory that is removed afterwards.

## Errors

Failures raise `depsources.base.DependencyError` or a subclass: a failed
request, a page that cannot be parsed, a missing checksum, a failed
verification or an unknown version. Two subclasses mark particular cases:

- `NoSourceCodeError` means a release exists but has no source artifact.
  `Ruby` uses it internally to fall back to the mirror index; `Yarn` raises
  it when the release tarball asset is missing.
- `AssetNotFoundError` is for a `GithubClient` to raise when a named release
  asset does not exist.

Version strings are parsed and compared with `depsources.versions.parse_version`,
which returns a `Version`. A string that is not a valid version raises
`InvalidVersionError`.

## What it does not do

The package ships no HTTP client, GitHub client, checksum or GPG
implementation, and no command-line program. It is a library: you supply
the collaborators and call the sources from your own code.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```