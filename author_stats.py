#!/usr/bin/env python3
"""
Git Author Statistics (v1.0.0)

Per-author, per-day contribution statistics for a git branch:
- Commit counts per author per day
- Lines added / removed / net per author
- Dense (explicit range) or sparse (observed dates) date axis
- Local + remote branch catalog with stable display names
- Table, JSON and CSV output from the command line

Usage:
    git-author-stats /path/to/repo --start 2024-01-01 --end 2024-01-31
    git-author-stats --preset week --branch "main (origin)" --format json
    git-author-stats --list-branches
"""

import json
import os
import re
import subprocess
import sys
import time
from dataclasses import dataclass
from datetime import date, datetime, time as dt_time, timedelta, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import click
import pandas as pd
import yaml
from colorama import Fore, Style, init as colorama_init
from tqdm import tqdm

colorama_init(autoreset=True)


# Version information
VERSION = "1.0.0"
SCHEMA_VERSION = "1.0.0"

# History query format
COMMIT_SENTINEL = "--SPLIT--"
HISTORY_FORMAT = f"--pretty=format:{COMMIT_SENTINEL}%n%ad%n%an <%ae>"
BINARY_PLACEHOLDER = "-"

# Date handling
DAY_FORMAT = "%Y-%m-%d"
FROM_BEGINNING = "all"
BEGINNING_LABEL = "Beginning"
NOW_LABEL = "Now"

LOCAL = "local"
REMOTE = "remote"

# Bare names with no markers or color codes; lstrip=2 drops "refs/heads/"
LOCAL_BRANCH_QUERY = ["branch", "--no-color", "--format=%(refname:lstrip=2)"]
REMOTE_BRANCH_QUERY = ["branch", "-r", "--no-color"]
BRANCH_MARKERS = ("*", "+")
COMMAND_NOT_STARTED = 127

# Records above this size get a progress bar while aggregating
PROGRESS_BAR_THRESHOLD = 500

DateLike = Union[date, datetime, str]


# ============================================================================
# ERRORS
# ============================================================================


class AuthorStatsError(Exception):
    """Base class for every error raised by the statistics engine."""


class NotARepository(AuthorStatsError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Not a git repository: {path}")


class CommandFailed(AuthorStatsError):
    """
    git exited with a non-zero status, or could not be started at all.

    Carries the argument list, the exit status and the captured stderr so
    the caller can present the diagnostic as-is.
    """

    def __init__(self, args: List[str], returncode: int, stderr: str):
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no error output"
        super().__init__(
            f"git {' '.join(args)} failed (exit {returncode}): {detail}"
        )


class BranchNotFound(AuthorStatsError):
    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(f"Branch '{branch}' does not exist.")


class InvalidRange(AuthorStatsError, ValueError):
    """Start date after end date, or a date string that is not YYYY-MM-DD."""


# ============================================================================
# PROGRESS REPORTING
# ============================================================================


class ProgressReporter:
    """
    Status output for the CLI, written to stderr so stdout carries only
    the table/json/csv result. Errors print even when quiet.
    """

    def __init__(
        self, quiet: bool = False, verbose: bool = False, use_colors: bool = True
    ):
        self.quiet = quiet
        self.verbose = verbose
        self.use_colors = use_colors
        self.start_time = time.time()
        self.stage_times = {}

    def _colorize(self, text: str, color: str) -> str:
        if self.use_colors:
            return f"{color}{text}{Style.RESET_ALL}"
        return text

    def _emit(self, text: str, color: str = "", force: bool = False):
        if self.quiet and not force:
            return
        print(self._colorize(text, color) if color else text, file=sys.stderr)

    def stage_start(self, stage_name: str, message: str = ""):
        if self.quiet:
            return
        self.stage_times[stage_name] = time.time()
        self._emit(f"{stage_name}...", Fore.BLUE)
        if message and self.verbose:
            self._emit(f"  {message}")

    def stage_complete(self, stage_name: str, stats: Dict = None):
        if self.quiet:
            return
        elapsed = time.time() - self.stage_times.get(stage_name, time.time())
        self._emit(f"{stage_name} done ({elapsed:.2f}s)", Fore.GREEN)
        if stats and self.verbose:
            for key, value in stats.items():
                self._emit(f"  {key}: {value}")

    def create_progress_bar(
        self, total: int, desc: str = "Processing"
    ) -> Optional[tqdm]:
        """tqdm bar on stderr, or None when quiet"""
        if self.quiet:
            return None
        return tqdm(total=total, desc=desc, unit=" commits", file=sys.stderr)

    def info(self, message: str):
        self._emit(message)

    def warning(self, message: str):
        self._emit(f"WARNING: {message}", Fore.YELLOW)

    def error(self, message: str):
        self._emit(f"ERROR: {message}", Fore.RED + Style.BRIGHT, force=True)

    def success(self, message: str):
        self._emit(message, Fore.GREEN)

    def summary(self, stats: Dict[str, Any]):
        """Key/value recap plus total elapsed time"""
        if self.quiet:
            return
        width = max(len(key) for key in stats) if stats else 0
        self._emit("")
        for key, value in stats.items():
            self._emit(f"{(key + ':').ljust(width + 1)} {value}")
        self._emit(f"Total time: {time.time() - self.start_time:.2f}s", Fore.CYAN)


# ============================================================================
# DATA STRUCTURES & MODELS
# ============================================================================


@dataclass(frozen=True)
class FileDelta:
    """One numstat line. None means git reported '-' (binary file)."""

    added: Optional[int]
    removed: Optional[int]
    path: str


@dataclass(frozen=True)
class CommitRecord:
    date: str
    author_name: str
    author_email: str
    file_deltas: Tuple[FileDelta, ...] = ()

    @property
    def lines_added(self) -> int:
        return sum(d.added or 0 for d in self.file_deltas)

    @property
    def lines_removed(self) -> int:
        return sum(d.removed or 0 for d in self.file_deltas)


@dataclass(frozen=True)
class AuthorParse:
    """Tagged result of matching a 'Name <email>' line."""

    ok: bool
    name: str = ""
    email: str = ""


@dataclass(frozen=True)
class BranchDescriptor:
    display_name: str
    kind: str
    reference: str

    @property
    def is_remote(self) -> bool:
        return self.kind == REMOTE


@dataclass(frozen=True)
class AuthorTotals:
    """Aggregator output: everything in AggregateResult the Facade doesn't add."""

    author_names: Dict[str, str]
    added_lines: Dict[str, int]
    removed_lines: Dict[str, int]
    net_lines: Dict[str, int]
    commits_by_date: Dict[str, Dict[str, int]]
    total_commits: int = 0


@dataclass(frozen=True)
class AggregateResult:
    """
    Final statistics for one (repository, range, branch) request.

    Created per collect() call and read-only afterwards: the maps are
    wrapped in MappingProxyType copies, so neither attributes nor map
    contents can change. The maps are keyed by author email; author_names
    gives the display name for each.
    """

    author_names: Mapping[str, str]
    added_lines: Mapping[str, int]
    removed_lines: Mapping[str, int]
    net_lines: Mapping[str, int]
    commits_by_date: Mapping[str, Mapping[str, int]]
    date_axis: Tuple[str, ...]
    resolved_start_label: str
    resolved_end_label: str
    branches: Mapping[str, BranchDescriptor]
    resolved_branch_reference: str
    repository_path: str = ""
    total_commits: int = 0

    def __post_init__(self):
        for name in (
            "author_names",
            "added_lines",
            "removed_lines",
            "net_lines",
            "branches",
        ):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))
        object.__setattr__(
            self,
            "commits_by_date",
            MappingProxyType(
                {
                    day: MappingProxyType(dict(per_author))
                    for day, per_author in self.commits_by_date.items()
                }
            ),
        )
        object.__setattr__(self, "date_axis", tuple(self.date_axis))

    def commit_counts(self) -> Dict[str, int]:
        """Total commits per author email across the whole range"""
        counts = {email: 0 for email in self.author_names}
        for per_author in self.commits_by_date.values():
            for email, count in per_author.items():
                counts[email] += count
        return counts

    def author_summaries(self) -> List[Dict[str, Any]]:
        """Per-author rows sorted by commit count (desc), then email"""
        counts = self.commit_counts()
        rows = [
            {
                "email": email,
                "name": name,
                "commits": counts[email],
                "added": self.added_lines.get(email, 0),
                "removed": self.removed_lines.get(email, 0),
                "net": self.net_lines.get(email, 0),
            }
            for email, name in self.author_names.items()
        ]
        rows.sort(key=lambda row: (-row["commits"], row["email"]))
        return rows

    def commit_matrix(self) -> pd.DataFrame:
        """
        Dense date x author commit-count matrix.

        Rows follow date_axis (so a dense axis keeps zero-activity days),
        columns are author emails, missing cells are 0.
        """
        emails = sorted(self.author_names)
        frame = pd.DataFrame(
            [
                [self.commits_by_date.get(day, {}).get(email, 0) for email in emails]
                for day in self.date_axis
            ],
            index=pd.Index(list(self.date_axis), name="date"),
            columns=emails,
            dtype="int64",
        )
        return frame

    def to_dict(self) -> Dict[str, Any]:
        """Interchange form with the camelCase keys consumers expect"""
        return {
            "schemaVersion": SCHEMA_VERSION,
            "workspacePath": self.repository_path,
            "branch": self.resolved_branch_reference,
            "startDate": self.resolved_start_label,
            "endDate": self.resolved_end_label,
            "totalCommits": self.total_commits,
            "authorNames": dict(self.author_names),
            "addedLines": dict(self.added_lines),
            "removedLines": dict(self.removed_lines),
            "netLines": dict(self.net_lines),
            "commitsByDate": {
                day: dict(per_author)
                for day, per_author in self.commits_by_date.items()
            },
            "dateList": list(self.date_axis),
            "branches": {
                name: {"type": branch.kind, "fullName": branch.reference}
                for name, branch in self.branches.items()
            },
        }


# ============================================================================
# COMMAND RUNNER
# ============================================================================


class GitCommandRunner:
    """
    Runs git as a child process inside one working directory.

    Arguments are always passed as a list (no shell). Output is fully
    buffered before it is returned. There is no timeout and no retry: a
    non-zero exit raises CommandFailed immediately. A git binary that cannot
    be started also raises CommandFailed, with the shell's 127 exit code.
    """

    def __init__(self, repo_path: str, git_binary: str = "git"):
        self.repo_path = os.path.abspath(repo_path)
        self.git_binary = git_binary
        self.history: List[Tuple[str, ...]] = []

    def run(self, args: List[str]) -> str:
        self.history.append(tuple(args))
        try:
            result = subprocess.run(
                [self.git_binary] + list(args),
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise CommandFailed(args, COMMAND_NOT_STARTED, str(e)) from e
        if result.returncode != 0:
            raise CommandFailed(args, result.returncode, result.stderr or "")
        return result.stdout


def run_git(repo_path: str, args: List[str]) -> str:
    """Run one git command in repo_path and return its stdout"""
    return GitCommandRunner(repo_path).run(args)


# ============================================================================
# REPOSITORY CHECKS
# ============================================================================


def is_git_repository(path: str) -> bool:
    """True when path is a directory git recognizes as (inside) a repository."""
    if not os.path.isdir(path):
        return False
    try:
        run_git(path, ["rev-parse", "--git-dir"])
    except CommandFailed:
        return False
    return True


def ensure_git_repository(path: str) -> str:
    """Return the absolute path, or raise NotARepository"""
    if not is_git_repository(path):
        raise NotARepository(path)
    return os.path.abspath(path)


def get_repository_root(path: str) -> str:
    return run_git(path, ["rev-parse", "--show-toplevel"]).strip()


def get_current_branch(runner: GitCommandRunner) -> str:
    return runner.run(["rev-parse", "--abbrev-ref", "HEAD"]).strip()


def branch_exists(runner: GitCommandRunner, branch: str) -> bool:
    """Check a local branch with show-ref; a non-zero exit means 'missing'."""
    try:
        runner.run(["show-ref", "--quiet", "--verify", f"refs/heads/{branch}"])
    except CommandFailed:
        return False
    return True


def find_git_repositories(paths: Iterable[str]) -> List[str]:
    """
    Filter candidate folders down to git repositories.

    Keeps input order, resolves to absolute paths and drops duplicates.
    """
    found = []
    for path in paths:
        abs_path = os.path.abspath(path)
        if abs_path in found:
            continue
        if is_git_repository(abs_path):
            found.append(abs_path)
    return found


# ============================================================================
# BRANCH CATALOG
# ============================================================================


def parse_local_branches(output: str) -> List[BranchDescriptor]:
    """
    Parse local branch names, one per line.

    Accepts plain `git branch` output too: the `*` (current) and `+`
    (checked out in another worktree) markers are stripped.
    """
    branches = []
    for line in output.splitlines():
        name = line.strip()
        if name[:1] in BRANCH_MARKERS:
            name = name[1:].strip()
        if not name or name.startswith("("):
            # "(HEAD detached at ...)" is not a branch
            continue
        branches.append(BranchDescriptor(name, LOCAL, name))
    return branches


def parse_remote_branches(output: str) -> List[BranchDescriptor]:
    """Parse `git branch -r` output, skipping symbolic HEAD pointers"""
    branches = []
    for line in output.splitlines():
        reference = line.strip()
        if not reference or "HEAD ->" in reference:
            continue
        remote, sep, name = reference.partition("/")
        if not sep or not name:
            continue
        branches.append(BranchDescriptor(f"{name} ({remote})", REMOTE, reference))
    return branches


def build_branch_catalog(runner: GitCommandRunner) -> Dict[str, BranchDescriptor]:
    """
    Merge local and remote branches into one catalog keyed by display name.

    Remote entries always display as "branch (remote)", so a local `main`
    and `origin/main` land as `main` and `main (origin)`.
    """
    local_output = runner.run(LOCAL_BRANCH_QUERY)
    remote_output = runner.run(REMOTE_BRANCH_QUERY)

    catalog = {}
    for branch in parse_local_branches(local_output) + parse_remote_branches(
        remote_output
    ):
        catalog.setdefault(branch.display_name, branch)
    return catalog


def is_remote_style_reference(reference: str) -> bool:
    """
    Remote-style references (containing '/') skip the local existence check.

    A local branch named like `feature/x` is treated the same way; git
    itself then reports an unknown reference as CommandFailed.
    """
    return "/" in reference


# ============================================================================
# DATE RANGE
# ============================================================================


def parse_day(value: DateLike) -> datetime:
    """Coerce a date, datetime or YYYY-MM-DD string into a datetime"""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, dt_time.min)
    try:
        return datetime.strptime(value.strip(), DAY_FORMAT)
    except (AttributeError, ValueError):
        raise InvalidRange(f"Invalid date '{value}': expected YYYY-MM-DD") from None


def generate_date_range(start: DateLike, end: DateLike) -> List[str]:
    """
    Every calendar day label from start through end, inclusive.

    The end is pushed to the last instant of its day first, so an end with
    a midnight time-of-day still includes that whole day.

    Raises:
        InvalidRange: start falls on a later day than end
    """
    current = parse_day(start)
    end_dt = datetime.combine(parse_day(end).date(), dt_time.max)

    if current.date() > end_dt.date():
        raise InvalidRange(
            f"Start date {current.strftime(DAY_FORMAT)} is after "
            f"end date {end_dt.strftime(DAY_FORMAT)}"
        )

    days = []
    while current <= end_dt:
        days.append(current.strftime(DAY_FORMAT))
        current += timedelta(days=1)
    return days


# ============================================================================
# HISTORY PARSER
# ============================================================================

AUTHOR_PATTERN = re.compile(r"^(?P<name>.*) <(?P<email>[^<>]*)>$")


def parse_author_line(line: str) -> AuthorParse:
    match = AUTHOR_PATTERN.match(line.strip())
    if match is None:
        return AuthorParse(ok=False)
    return AuthorParse(ok=True, name=match.group("name"), email=match.group("email"))


def _parse_count(field_value: str) -> Optional[int]:
    if field_value == BINARY_PLACEHOLDER:
        return None
    if not field_value.isdigit():
        raise ValueError(f"not a line count: {field_value!r}")
    return int(field_value)


def parse_numstat_line(line: str) -> Optional[FileDelta]:
    """
    Parse "<added>\\t<removed>\\t<path>" from git log --numstat.

    Returns None for anything that is not a well-formed numstat line.
    '-' (binary file) becomes an unknown count.
    """
    parts = line.strip().split("\t")
    if len(parts) != 3:
        return None
    added_str, removed_str, path = parts
    try:
        return FileDelta(_parse_count(added_str), _parse_count(removed_str), path)
    except ValueError:
        return None


class HistoryParser:
    """
    Turns raw history-query text into CommitRecords.

    Entry layout (one per sentinel-delimited fragment):
        <YYYY-MM-DD>
        <author name> <<email>>
        <added>\\t<removed>\\t<path>   (zero or more)

    An entry either contributes fully or not at all: too few lines or a
    bad author line drops it. A bad numstat line only drops that line.
    """

    def __init__(self, sentinel: str = COMMIT_SENTINEL):
        self.sentinel = sentinel
        self.entries_seen = 0
        self.entries_dropped = 0
        self.lines_skipped = 0

    def parse(self, text: str) -> List[CommitRecord]:
        self.entries_seen = 0
        self.entries_dropped = 0
        self.lines_skipped = 0

        records = []
        for fragment in text.split(self.sentinel):
            if not fragment.strip():
                continue
            self.entries_seen += 1
            record = self._parse_entry(fragment)
            if record is None:
                self.entries_dropped += 1
            else:
                records.append(record)
        return records

    def _parse_entry(self, fragment: str) -> Optional[CommitRecord]:
        lines = [line for line in fragment.splitlines() if line.strip()]
        if len(lines) < 2:
            return None

        author = parse_author_line(lines[1])
        if not author.ok:
            return None

        deltas = []
        for line in lines[2:]:
            delta = parse_numstat_line(line)
            if delta is None:
                self.lines_skipped += 1
                continue
            deltas.append(delta)

        return CommitRecord(
            date=lines[0].strip(),
            author_name=author.name,
            author_email=author.email,
            file_deltas=tuple(deltas),
        )


# ============================================================================
# AGGREGATOR
# ============================================================================


class StatsAggregator:
    """
    Fold CommitRecords into per-author totals and a date x author matrix.

    Sums don't depend on record order. author_names does: the last name
    folded for an email wins. git log lists newest first, so within one
    run the oldest name in range is the one kept.
    """

    def __init__(self, reporter: Optional[ProgressReporter] = None):
        self.reporter = reporter or ProgressReporter(quiet=True)

    def aggregate(self, records: List[CommitRecord]) -> AuthorTotals:
        author_names: Dict[str, str] = {}
        added: Dict[str, int] = {}
        removed: Dict[str, int] = {}
        commits_by_date: Dict[str, Dict[str, int]] = {}

        progress_bar = None
        if len(records) >= PROGRESS_BAR_THRESHOLD:
            progress_bar = self.reporter.create_progress_bar(
                total=len(records), desc="Aggregating commits"
            )

        for record in records:
            email = record.author_email
            author_names[email] = record.author_name

            per_author = commits_by_date.setdefault(record.date, {})
            per_author[email] = per_author.get(email, 0) + 1

            added[email] = added.get(email, 0) + record.lines_added
            removed[email] = removed.get(email, 0) + record.lines_removed

            if progress_bar:
                progress_bar.update(1)

        if progress_bar:
            progress_bar.close()

        net = {email: added[email] - removed[email] for email in author_names}

        return AuthorTotals(
            author_names=author_names,
            added_lines=added,
            removed_lines=removed,
            net_lines=net,
            commits_by_date=commits_by_date,
            total_commits=len(records),
        )


# ============================================================================
# STATS FACADE
# ============================================================================


def _is_given(value: Optional[str]) -> bool:
    return value is not None and str(value).strip() != ""


class AuthorStatsCollector:
    """
    Orchestrates one statistics request against a repository.

    Steps: check repository -> resolve branch -> validate branch -> build
    query -> run query -> parse -> aggregate -> resolve date axis -> attach
    branch catalog. Nothing is retried; the first error propagates.
    """

    def __init__(
        self,
        repo_path: str,
        runner: Optional[GitCommandRunner] = None,
        reporter: Optional[ProgressReporter] = None,
    ):
        self.repo_path = os.path.abspath(repo_path)
        self.runner = runner or GitCommandRunner(self.repo_path)
        self.reporter = reporter or ProgressReporter(quiet=True)

    def check_repository(self):
        """Raise NotARepository before any other git command runs"""
        if not os.path.isdir(self.repo_path):
            raise NotARepository(self.repo_path)
        try:
            self.runner.run(["rev-parse", "--git-dir"])
        except CommandFailed:
            raise NotARepository(self.repo_path) from None

    def branches(self) -> Dict[str, BranchDescriptor]:
        self.check_repository()
        return build_branch_catalog(self.runner)

    def resolve_branch(
        self, branch_name: Optional[str]
    ) -> Tuple[str, Optional[Dict[str, BranchDescriptor]]]:
        """
        Map a requested branch to the reference to query.

        Returns (reference, catalog); catalog is only built here when a
        branch was given, so display names like "main (origin)" resolve.
        """
        if not _is_given(branch_name):
            return get_current_branch(self.runner), None

        branch_name = branch_name.strip()
        catalog = build_branch_catalog(self.runner)
        if branch_name in catalog:
            return catalog[branch_name].reference, catalog
        return branch_name, catalog

    def validate_branch(self, reference: str):
        # git would parse a leading dash as an option, not a revision
        if reference.startswith("-"):
            raise BranchNotFound(reference)
        if is_remote_style_reference(reference):
            return
        if not branch_exists(self.runner, reference):
            raise BranchNotFound(reference)

    @staticmethod
    def build_query(
        reference: str, since: Optional[str] = None, until: Optional[str] = None
    ) -> List[str]:
        """History query args; bounds are whole days, inclusive on both ends"""
        args = ["log", reference]
        if since:
            args.append(f"--since={since} 00:00:00")
        if until:
            args.append(f"--until={until} 23:59:59")
        # trailing "--" keeps a branch named like a file from being read as a path
        args.extend([HISTORY_FORMAT, "--date=short", "--numstat", "--"])
        return args

    def collect(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        branch_name: Optional[str] = None,
    ) -> AggregateResult:
        self.check_repository()

        self.reporter.stage_start("Branch Resolution", f"Repository: {self.repo_path}")
        reference, catalog = self.resolve_branch(branch_name)
        self.validate_branch(reference)
        self.reporter.stage_complete("Branch Resolution", {"Branch": reference})

        from_beginning = (
            _is_given(start_date) and str(start_date).strip() == FROM_BEGINNING
        )
        has_start = _is_given(start_date) and not from_beginning
        has_end = _is_given(end_date)

        start = parse_day(start_date).strftime(DAY_FORMAT) if has_start else None
        end = parse_day(end_date).strftime(DAY_FORMAT) if has_end else None

        date_axis = None
        if has_start and has_end:
            date_axis = generate_date_range(start, end)

        self.reporter.stage_start("History Query", "Reading git log --numstat...")
        output = self.runner.run(self.build_query(reference, start, end))
        parser = HistoryParser()
        records = parser.parse(output)
        self.reporter.stage_complete(
            "History Query",
            {
                "Entries": f"{parser.entries_seen:,}",
                "Dropped entries": f"{parser.entries_dropped:,}",
                "Skipped numstat lines": f"{parser.lines_skipped:,}",
            },
        )
        if parser.entries_dropped:
            self.reporter.warning(
                f"Dropped {parser.entries_dropped} malformed commit entries"
            )

        totals = StatsAggregator(self.reporter).aggregate(records)

        if date_axis is not None:
            start_label, end_label = start, end
        else:
            date_axis = sorted(totals.commits_by_date)
            start_label = start or BEGINNING_LABEL
            end_label = end or NOW_LABEL
            if date_axis:
                start_label, end_label = date_axis[0], date_axis[-1]

        if catalog is None:
            catalog = build_branch_catalog(self.runner)

        return AggregateResult(
            author_names=totals.author_names,
            added_lines=totals.added_lines,
            removed_lines=totals.removed_lines,
            net_lines=totals.net_lines,
            commits_by_date=totals.commits_by_date,
            date_axis=tuple(date_axis),
            resolved_start_label=start_label,
            resolved_end_label=end_label,
            branches=catalog,
            resolved_branch_reference=reference,
            repository_path=self.repo_path,
            total_commits=totals.total_commits,
        )


def get_author_stats(
    repo_path: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    branch_name: Optional[str] = None,
    reporter: Optional[ProgressReporter] = None,
) -> AggregateResult:
    """Functional entry point: collect statistics for one repository"""
    return AuthorStatsCollector(repo_path, reporter=reporter).collect(
        start_date, end_date, branch_name
    )


# ============================================================================
# EXPORT
# ============================================================================


def export_json(result: AggregateResult, output_path: str) -> Dict[str, Any]:
    """Write the interchange form plus generation metadata"""
    data = result.to_dict()
    data["generatorVersion"] = VERSION
    data["generatedAt"] = datetime.now(timezone.utc).isoformat()

    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return data


def export_commit_matrix_csv(result: AggregateResult, output_path: str) -> pd.DataFrame:
    frame = result.commit_matrix()
    directory = os.path.dirname(output_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    frame.to_csv(output_path, encoding="utf-8")
    return frame


def format_author_table(result: AggregateResult) -> str:
    """Plain-text per-author table for terminal output"""
    rows = result.author_summaries()
    if not rows:
        return "No commits found."

    headers = ["Author", "Email", "Commits", "Added", "Removed", "Net"]
    body = [
        [
            row["name"],
            row["email"],
            str(row["commits"]),
            f"+{row['added']}",
            f"-{row['removed']}",
            f"{row['net']:+d}",
        ]
        for row in rows
    ]
    widths = [
        max(len(headers[i]), *(len(line[i]) for line in body))
        for i in range(len(headers))
    ]

    def fmt(cells):
        return "  ".join(
            cell.ljust(widths[i]) if i < 2 else cell.rjust(widths[i])
            for i, cell in enumerate(cells)
        )

    lines = [fmt(headers), "  ".join("-" * w for w in widths)]
    lines.extend(fmt(line) for line in body)
    return "\n".join(lines)


# ============================================================================
# CONFIGURATION FILE SUPPORT
# ============================================================================

CONFIG_FILE_NAMES = [
    ".author-stats.yaml",
    ".author-stats.yml",
    ".author-stats.json",
]


def load_config_file(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.
    Supports .author-stats.yaml, .author-stats.yml, .author-stats.json
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    file_ext = os.path.splitext(config_path)[1].lower()

    with open(config_path, "r", encoding="utf-8") as f:
        if file_ext in [".yaml", ".yml"]:
            return yaml.safe_load(f) or {}
        elif file_ext == ".json":
            return json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {file_ext}")


def find_config_file(repo_path: str) -> Optional[str]:
    """Auto-discover a config file in the repository, then the current directory"""
    for search_dir in [repo_path, os.getcwd()]:
        for config_name in CONFIG_FILE_NAMES:
            config_path = os.path.join(search_dir, config_name)
            if os.path.exists(config_path):
                return config_path
    return None


def preset_window(name: Optional[str], today: Optional[date] = None) -> Dict[str, Any]:
    """Date window for a named preset, ending today"""
    if not name:
        return {}
    today = today or date.today()
    spans = {"today": 0, "week": 6, "month": 29, "year": 364}

    if name == "all":
        return {"start": FROM_BEGINNING}
    if name not in spans:
        return {}
    return {
        "start": (today - timedelta(days=spans[name])).strftime(DAY_FORMAT),
        "end": today.strftime(DAY_FORMAT),
    }


class ConfigResolver:
    """
    Resolve configuration with precedence: CLI > Config File > Preset > Defaults
    """

    def __init__(
        self,
        cli_args: Dict[str, Any],
        config_path: Optional[str],
        preset_name: Optional[str],
        repo_path: str,
        reporter: Optional[ProgressReporter] = None,
        today: Optional[date] = None,
    ):
        self.cli = {k: v for k, v in cli_args.items() if v is not None}
        self.config = {}
        self.preset = {}
        reporter = reporter or ProgressReporter(quiet=True)

        if config_path:
            self.config = load_config_file(config_path)
        else:
            auto_path = find_config_file(repo_path)
            if auto_path:
                try:
                    self.config = load_config_file(auto_path)
                    reporter.info(f"Auto-discovered configuration: {auto_path}")
                except (OSError, ValueError, yaml.YAMLError) as e:
                    reporter.warning(f"Found config file but failed to load: {e}")

        # kebab-case keys in files map onto CLI option names
        self.config = {k.replace("-", "_"): v for k, v in self.config.items()}

        final_preset_name = preset_name or self.config.get("preset")
        self.preset = preset_window(final_preset_name, today=today)

    def get(self, key: str, default: Any = None) -> Any:
        """Resolve value based on precedence"""
        if key in self.cli:
            return self.cli[key]
        if key in self.config:
            return self.config[key]
        if key in self.preset:
            return self.preset[key]
        return default


# ============================================================================
# CLI INTERFACE
# ============================================================================


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.argument(
    "repo_path",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=".",
    required=False,
)
@click.option("--start", help="Start date (YYYY-MM-DD) or 'all' for the beginning")
@click.option("--end", help="End date (YYYY-MM-DD), inclusive")
@click.option("--branch", help="Branch name, reference or catalog display name")
@click.option(
    "--preset",
    type=click.Choice(["today", "week", "month", "year", "all"]),
    help="Relative date window ending today",
)
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file path (.yaml or .json)",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json", "csv"]),
    default=None,
    help="Output format (default: table)",
)
@click.option(
    "-o", "--output", type=click.Path(dir_okay=False), help="Write json/csv to file"
)
@click.option(
    "--list-branches", is_flag=True, help="List local and remote branches and exit"
)
@click.option(
    "-q", "--quiet", is_flag=True, default=None, help="Suppress progress output"
)
@click.option(
    "-v", "--verbose", is_flag=True, default=None, help="Show detailed progress"
)
@click.option("--no-color", is_flag=True, default=None, help="Disable colored output")
@click.version_option(version=VERSION)
def main(repo_path, config, preset, list_branches, **kwargs):
    """
    Per-author commit and line statistics for a git branch.

    Without --start/--end the whole branch history is analyzed and the
    date axis only holds days with commits.
    """
    resolver = ConfigResolver(kwargs, config, preset, repo_path)

    reporter = ProgressReporter(
        quiet=resolver.get("quiet", False),
        verbose=resolver.get("verbose", False),
        use_colors=not resolver.get("no_color", False),
    )

    output_format = resolver.get("output_format") or resolver.get("format", "table")
    output = resolver.get("output")

    try:
        collector = AuthorStatsCollector(repo_path, reporter=reporter)

        if list_branches:
            for name, branch in collector.branches().items():
                click.echo(f"{name}\t{branch.kind}\t{branch.reference}")
            return

        result = collector.collect(
            start_date=resolver.get("start"),
            end_date=resolver.get("end"),
            branch_name=resolver.get("branch"),
        )

        if output_format == "json":
            if output:
                export_json(result, output)
                reporter.success(f"Statistics written to: {output}")
            else:
                click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        elif output_format == "csv":
            if output:
                export_commit_matrix_csv(result, output)
                reporter.success(f"Commit matrix written to: {output}")
            else:
                click.echo(result.commit_matrix().to_csv(), nl=False)
        else:
            click.echo(format_author_table(result))

        reporter.summary(
            {
                "Repository": result.repository_path,
                "Branch": result.resolved_branch_reference,
                "Range": f"{result.resolved_start_label} .. {result.resolved_end_label}",
                "Days on axis": len(result.date_axis),
                "Commits": f"{result.total_commits:,}",
                "Authors": len(result.author_names),
            }
        )

    except AuthorStatsError as e:
        reporter.error(str(e))
        sys.exit(1)
    except Exception as e:
        reporter.error(f"Analysis failed: {str(e)}")
        if resolver.get("verbose", False):
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
