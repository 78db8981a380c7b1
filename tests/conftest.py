"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from types import SimpleNamespace

import pytest

from tests.helpers import GIT_ENV, FakeEngine, commit_file, git


@pytest.fixture
def engine_binary(tmp_path: Path) -> Path:
    """An existing file standing in for the gitleaks binary."""
    binary = tmp_path / "bin" / "gitleaks"
    binary.parent.mkdir()
    binary.write_text("#!/bin/sh\nexit 0\n")
    binary.chmod(0o755)
    return binary


@pytest.fixture
def fake_engine(monkeypatch) -> FakeEngine:
    """Replace the engine subprocess with a FakeEngine."""
    engine = FakeEngine()
    # Only the invoker module sees the fake; git helpers keep the real subprocess
    monkeypatch.setattr(
        "leakscope.scanner.gitleaks.subprocess",
        SimpleNamespace(run=engine, TimeoutExpired=subprocess.TimeoutExpired),
    )
    return engine


@pytest.fixture
def git_repo(tmp_path: Path, monkeypatch) -> Path:
    """A git repository with one initial commit, used as cwd."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "user.email", "test@example.com")
    git(repo, "config", "commit.gpgsign", "false")
    commit_file(repo, "README.md", "# test repo\n", "initial")
    for key, value in GIT_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.chdir(repo)
    return repo


@pytest.fixture
def empty_git_repo(tmp_path: Path) -> Path:
    """A freshly initialised repository without any commit."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    repo = tmp_path / "fresh"
    repo.mkdir()
    git(repo, "init", "-q")
    return repo


@pytest.fixture
def sample_diff() -> str:
    """Two files, three hunks, one deleted and one binary file."""
    return """diff --git a/app/config.py b/app/config.py
index 83db48f..bf269f4 100644
--- a/app/config.py
+++ b/app/config.py
@@ -1,4 +1,5 @@
 import os
+API_KEY = "abc"
 DEBUG = True
-PORT = 80
+PORT = 8080
 HOST = "0.0.0.0"
@@ -20,3 +21,4 @@ def load():
     return {
         "debug": DEBUG,
+        "token": TOKEN,
     }
diff --git a/assets/logo.png b/assets/logo.png
index 1111111..2222222 100644
Binary files a/assets/logo.png and b/assets/logo.png differ
diff --git a/old.txt b/old.txt
deleted file mode 100644
index 3333333..0000000
--- a/old.txt
+++ /dev/null
@@ -1,2 +0,0 @@
-first
-second
diff --git a/new.env b/new.env
new file mode 100644
index 0000000..4444444
--- /dev/null
+++ b/new.env
@@ -0,0 +1,2 @@
+SECRET=one
+OTHER=two
"""
