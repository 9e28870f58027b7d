"""
Shared test fixtures and configuration.
"""

import subprocess
import textwrap
from pathlib import Path

import pytest

from reprovision.core.models.inventory import MergedEntry, SourceKind, SourceReference


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point settings lookup at a temp file so no test touches ~/.reprovision."""
    config = tmp_path / "reprovision.yml"
    config.write_text(textwrap.dedent(f"""\
        state_dir: "{(tmp_path / 'state').as_posix()}"
        sources:
          registry: {{enabled: false}}
          winget: {{enabled: false}}
          appx: {{enabled: false}}
          chocolatey:
            root: "{(tmp_path / 'choco').as_posix()}"
    """))
    monkeypatch.setenv("REPROVISION_CONFIG", str(config))
    monkeypatch.delenv("ChocolateyInstall", raising=False)
    return config


@pytest.fixture
def choco_root(tmp_path: Path) -> Path:
    """A Chocolatey root with two packages in its lib cache."""
    root = tmp_path / "choco"
    write_nuspec(root / "lib" / "git", "git", "2.44.0", authors="The Git Development Community")
    write_nuspec(root / "lib" / "7zip", "7zip", "23.1.0", title="7-Zip", authors="Igor Pavlov")
    return root


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for state files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir(exist_ok=True)
    return state_dir


class FakeRunner:
    """Stand-in for ``run_command``: answers by matching a fragment of the command."""

    def __init__(self):
        self.calls: list[list[str]] = []
        self._responses: list[tuple[str, object]] = []

    def on(self, fragment: str, stdout: str = "", returncode: int = 0, stderr: str = ""):
        self._responses.append(
            (fragment, subprocess.CompletedProcess([], returncode, stdout, stderr))
        )

    def raises(self, fragment: str, exc: Exception):
        self._responses.append((fragment, exc))

    def __call__(self, args: list[str], timeout: int = 120):
        self.calls.append(args)
        joined = " ".join(args)
        for fragment, response in self._responses:
            if fragment in joined:
                if isinstance(response, Exception):
                    raise response
                return response
        return subprocess.CompletedProcess(args, 0, "", "")


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


def write_nuspec(
    package_dir: Path,
    package_id: str,
    version: str,
    authors: str | None = None,
    title: str | None = None,
    filename: str | None = None,
) -> Path:
    package_dir.mkdir(parents=True, exist_ok=True)
    extra = ""
    if authors:
        extra += f"<authors>{authors}</authors>"
    if title:
        extra += f"<title>{title}</title>"
    path = package_dir / (filename or f"{package_dir.name}.nuspec")
    path.write_text(
        '<?xml version="1.0" encoding="utf-8"?>'
        '<package xmlns="http://schemas.microsoft.com/packaging/2015/06/nuspec.xsd">'
        f"<metadata><id>{package_id}</id><version>{version}</version>{extra}</metadata>"
        "</package>",
        encoding="utf-8",
    )
    return path


def ref(kind: SourceKind, identifier: str, origin: str | None = None) -> SourceReference:
    return SourceReference(kind=kind, identifier=identifier, origin=origin)


def entry(name: str, *refs: SourceReference, version: str | None = None) -> MergedEntry:
    return MergedEntry(name=name, version=version, source_info=list(refs))
