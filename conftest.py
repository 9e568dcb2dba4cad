import os
import subprocess

import pytest

from author_stats import AuthorStatsCollector, CommandFailed, ProgressReporter


# Two commits by Alice on the same day (10/2 and 5/0), one by Bob two
# days later with a binary file.
SAMPLE_LOG = (
    "--SPLIT--\n"
    "2024-01-03\n"
    "Bob Jones <bob@example.com>\n"
    "\n"
    "4\t0\tsrc/lib.py\n"
    "-\t-\tassets/logo.png\n"
    "--SPLIT--\n"
    "2024-01-01\n"
    "Alice Smith <alice@example.com>\n"
    "\n"
    "5\t0\tsrc/app.py\n"
    "--SPLIT--\n"
    "2024-01-01\n"
    "Alice Smith <alice@example.com>\n"
    "\n"
    "8\t2\tsrc/app.py\n"
    "2\t0\tREADME.md\n"
)


class FakeRunner:
    """
    Stand-in for GitCommandRunner.

    Responses are keyed by argument-tuple prefixes; the longest matching
    prefix wins. Unmatched commands fail like git would (exit 1).
    """

    DEFAULTS = {
        ("rev-parse", "--git-dir"): ".git\n",
        ("rev-parse", "--abbrev-ref", "HEAD"): "main\n",
        ("branch",): "main\ndev\n",
        ("branch", "-r"): "  origin/HEAD -> origin/main\n  origin/main\n",
        ("show-ref", "--quiet", "--verify", "refs/heads/main"): "",
        ("show-ref", "--quiet", "--verify", "refs/heads/dev"): "",
        ("log",): SAMPLE_LOG,
    }

    def __init__(self, responses=None, failures=None):
        self.responses = dict(self.DEFAULTS)
        self.responses.update(responses or {})
        self.failures = failures or {}
        self.history = []

    @staticmethod
    def _lookup(table, args):
        matches = [key for key in table if tuple(args[: len(key)]) == key]
        if not matches:
            return None
        return max(matches, key=len)

    def run(self, args):
        self.history.append(tuple(args))
        failure = self._lookup(self.failures, args)
        if failure is not None:
            returncode, stderr = self.failures[failure]
            raise CommandFailed(args, returncode, stderr)
        key = self._lookup(self.responses, args)
        if key is None:
            raise CommandFailed(args, 1, f"fatal: unexpected command {args}")
        return self.responses[key]

    def ran(self, *prefix):
        return any(call[: len(prefix)] == prefix for call in self.history)


@pytest.fixture
def quiet_reporter():
    return ProgressReporter(quiet=True)


@pytest.fixture
def sample_log():
    return SAMPLE_LOG


@pytest.fixture
def make_collector(tmp_path):
    """Build a collector over an empty directory backed by a FakeRunner"""

    def factory(responses=None, failures=None):
        runner = FakeRunner(responses=responses, failures=failures)
        collector = AuthorStatsCollector(
            str(tmp_path), runner=runner, reporter=ProgressReporter(quiet=True)
        )
        return collector, runner

    return factory


def _git(repo, *args, date=None, name="Tester", email="tester@test.com"):
    env = dict(os.environ)
    env.update(
        {
            "GIT_AUTHOR_NAME": name,
            "GIT_AUTHOR_EMAIL": email,
            "GIT_COMMITTER_NAME": name,
            "GIT_COMMITTER_EMAIL": email,
        }
    )
    if date:
        env["GIT_AUTHOR_DATE"] = date
        env["GIT_COMMITTER_DATE"] = date
    subprocess.run(
        ["git", "-C", str(repo), "-c", "commit.gpgsign=false"] + list(args),
        check=True,
        capture_output=True,
        env=env,
    )


@pytest.fixture
def git_repo(tmp_path):
    """
    Real repository on branch `main`, plus a `feature` branch:
      2024-01-01 Alice  app.py +10
      2024-01-01 Alice  app.py +7 -2
      2024-01-03 Bob    lib.py +4, data.bin (binary)
    """
    repo = tmp_path / "repo"
    repo.mkdir()

    _git(repo, "init")
    _git(repo, "symbolic-ref", "HEAD", "refs/heads/main")

    alice = dict(name="Alice Smith", email="alice@example.com")
    bob = dict(name="Bob Jones", email="bob@example.com")

    original = [f"line {i}" for i in range(1, 11)]
    (repo / "app.py").write_text("\n".join(original) + "\n", encoding="utf-8")
    _git(repo, "add", ".")
    _git(repo, "commit", "-m", "initial", date="2024-01-01T10:00:00", **alice)

    updated = original[:8] + [f"new {i}" for i in range(1, 8)]
    (repo / "app.py").write_text("\n".join(updated) + "\n", encoding="utf-8")
    _git(repo, "add", ".")
    _git(repo, "commit", "-m", "rework tail", date="2024-01-01T15:00:00", **alice)
    _git(repo, "branch", "feature")

    (repo / "lib.py").write_text("a = 1\nb = 2\nc = 3\nd = 4\n", encoding="utf-8")
    (repo / "data.bin").write_bytes(b"\x00\x01\x02\x03binary\x00")
    _git(repo, "add", ".")
    _git(repo, "commit", "-m", "add lib", date="2024-01-03T09:30:00", **bob)

    return str(repo)


@pytest.fixture
def cloned_repo(git_repo, tmp_path):
    """Clone of git_repo: local `main` plus origin/main, origin/feature, origin/HEAD"""
    clone = tmp_path / "clone"
    subprocess.run(
        ["git", "clone", "--quiet", git_repo, str(clone)],
        check=True,
        capture_output=True,
    )
    return str(clone)
