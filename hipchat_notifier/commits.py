# hipchat_notifier/commits.py
"""
Commit range resolution.

`resolve_commit_range` answers "what is new on tip since base": every commit
reachable from tip that is not reachable from base, oldest contribution
first. The walk reads commit objects through a `Repository`; the
git-backed implementation keeps one `git cat-file --batch` process open for
the duration of a walk and always shuts it down when the walk is released.
"""

import heapq
import logging
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Set, Tuple, Union

from .exceptions import RepositoryAccessError, RevisionNotFound, SetupError
from .models import CommitSummary

logger = logging.getLogger('hipchat-notifier.commits')

# extra commits inspected after only uninteresting ones remain queued (clock skew)
SLOP = 5

_IDENT_RE = re.compile(r'^(?P<name>.*?) ?<(?P<email>[^>]*)> (?P<time>\d+)(?: (?P<tz>[+-]\d{4}))?$')


@dataclass(frozen=True)
class Commit:
    sha: str
    parents: Tuple[str, ...]
    author_name: str
    author_email: Optional[str]
    commit_time: int
    short_message: str


class CommitReader(Protocol):
    def parse_commit(self, sha: str) -> Commit:
        """Raises KeyError when the object is missing or not a commit."""
        ...

    def close(self) -> None: ...


class Repository(Protocol):
    name: str

    def resolve(self, revision: str) -> Optional[str]:
        """Full commit id for a revision expression, None if it does not resolve.

        Raises RepositoryError when the repository itself cannot be read.
        """
        ...

    def open_reader(self) -> CommitReader: ...


class RevWalk:
    """
    Walks commits from the start points, excluding everything reachable
    from the uninteresting ones. Use as a context manager; the reader is
    released on every exit path.
    """

    def __init__(self, repository: Repository):
        self.repository = repository
        self._reader: Optional[CommitReader] = None
        self._commits: Dict[str, Commit] = {}
        self._uninteresting: Set[str] = set()
        self._roots: List[str] = []

    def __enter__(self) -> 'RevWalk':
        self._reader = self.repository.open_reader()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def release(self) -> None:
        if self._reader is not None:
            reader, self._reader = self._reader, None
            reader.close()

    def parse_commit(self, sha: str) -> Commit:
        commit = self._commits.get(sha)
        if commit is not None:
            return commit
        if self._reader is None:
            raise RuntimeError("RevWalk used outside of its context")
        try:
            commit = self._reader.parse_commit(sha)
        except KeyError as e:
            raise RevisionNotFound(sha, self.repository.name, original_error=e)
        self._commits[sha] = commit
        return commit

    def mark_start(self, sha: str) -> None:
        self.parse_commit(sha)
        self._roots.append(sha)

    def mark_uninteresting(self, sha: str) -> None:
        commit = self.parse_commit(sha)
        self._uninteresting.add(sha)
        self._mark_parents_uninteresting(commit)
        self._roots.append(sha)

    def _mark_parents_uninteresting(self, commit: Commit) -> None:
        stack = list(commit.parents)
        while stack:
            sha = stack.pop()
            if sha in self._uninteresting:
                continue
            self._uninteresting.add(sha)
            parsed = self._commits.get(sha)
            if parsed is not None:
                stack.extend(parsed.parents)

    def _everybody_uninteresting(self, queue: List[Tuple[int, int, str]]) -> bool:
        return all(sha in self._uninteresting for _, _, sha in queue)

    def _limit(self) -> List[Commit]:
        """Interesting commits, newest first by commit time."""
        queue: List[Tuple[int, int, str]] = []
        seen: Set[str] = set()
        counter = 0

        def push(sha: str) -> None:
            nonlocal counter
            if sha in seen:
                return
            seen.add(sha)
            commit = self.parse_commit(sha)
            heapq.heappush(queue, (-commit.commit_time, counter, sha))
            counter += 1

        for sha in self._roots:
            push(sha)

        candidates: List[Commit] = []
        slop = SLOP
        while queue:
            _, _, sha = heapq.heappop(queue)
            commit = self._commits[sha]
            if sha in self._uninteresting:
                self._mark_parents_uninteresting(commit)
            else:
                candidates.append(commit)
            for parent in commit.parents:
                push(parent)

            if self._everybody_uninteresting(queue):
                if slop == 0:
                    break
                slop -= 1
            else:
                slop = SLOP

        return [c for c in candidates if c.sha not in self._uninteresting]

    def topo_reverse(self) -> List[Commit]:
        """Topological order (no parent before its children), then reversed."""
        commits = self._limit()
        index = {c.sha: c for c in commits}
        pending_children = {c.sha: 0 for c in commits}
        for commit in commits:
            for parent in commit.parents:
                if parent in index:
                    pending_children[parent] += 1

        stack = [c for c in reversed(commits) if pending_children[c.sha] == 0]
        ordered: List[Commit] = []
        while stack:
            commit = stack.pop()
            ordered.append(commit)
            for parent in reversed(commit.parents):
                if parent not in index:
                    continue
                pending_children[parent] -= 1
                if pending_children[parent] == 0:
                    stack.append(index[parent])
        ordered.reverse()
        return ordered


def trim_string(value: str, max_length: int) -> str:
    if len(value) <= max_length:
        return value
    return value[:max_length - 3] + "..."


def summarize_commit(commit: Commit, short_id_length: int = 6, short_log_length: int = 78) -> CommitSummary:
    if commit.author_email:
        name = commit.author_name
        email = commit.author_email.lower()
        if not name:
            name = email
    else:
        name = commit.author_name
        email = name.lower()
    return CommitSummary(
        sha=commit.sha,
        short_sha=commit.sha[:short_id_length],
        author_name=name,
        author_email=email,
        short_message=trim_string(commit.short_message, short_log_length),
    )


def resolve_commit_range(repository: Repository, base: str, tip: str,
                         short_id_length: int = 6, short_log_length: int = 78) -> List[CommitSummary]:
    """
    Commits reachable from `tip` but not from `base`, oldest first.

    Raises RevisionNotFound if either revision does not resolve and
    RepositoryAccessError if the repository cannot be read. No limit is
    applied; display truncation is up to the caller.
    """
    base_sha = repository.resolve(base)
    if base_sha is None:
        raise RevisionNotFound(base, repository.name)
    tip_sha = repository.resolve(tip)
    if tip_sha is None:
        raise RevisionNotFound(tip, repository.name)

    with RevWalk(repository) as walk:
        walk.mark_start(tip_sha)
        walk.mark_uninteresting(base_sha)
        commits = walk.topo_reverse()
    logger.debug(f"[{repository.name}] {len(commits)} commit(s) in {base_sha[:8]}..{tip_sha[:8]}")
    return [summarize_commit(c, short_id_length, short_log_length) for c in commits]


# --- git executable backed repository ---
def _short_message(message: str) -> str:
    """First paragraph of a commit message, folded onto one line."""
    paragraph = message.strip('\n').split('\n\n', 1)[0]
    return ' '.join(line.strip() for line in paragraph.splitlines()).strip()


def parse_commit_object(sha: str, raw: bytes) -> Commit:
    text = raw.decode('utf-8', errors='replace')
    header, _, message = text.partition('\n\n')
    parents: List[str] = []
    author_name, author_email, commit_time = '', None, 0
    for line in header.splitlines():
        key, _, value = line.partition(' ')
        if key == 'parent':
            parents.append(value.strip())
        elif key in ('author', 'committer'):
            match = _IDENT_RE.match(value)
            if not match:
                continue
            if key == 'author':
                author_name = match.group('name')
                author_email = match.group('email') or None
            else:
                commit_time = int(match.group('time'))
    return Commit(
        sha=sha,
        parents=tuple(parents),
        author_name=author_name,
        author_email=author_email,
        commit_time=commit_time,
        short_message=_short_message(message),
    )


class GitCommitReader:
    """One `git cat-file --batch` process; objects are requested by id over stdin."""

    def __init__(self, repo_path: Path, timeout: int = 30, name: Optional[str] = None):
        self.timeout = timeout
        self.name = name or repo_path.name
        try:
            self.proc = subprocess.Popen(
                ['git', 'cat-file', '--batch'],
                cwd=str(repo_path),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise RepositoryAccessError(self.name, f"Cannot start git cat-file in '{repo_path}': {e}", original_error=e)

    def parse_commit(self, sha: str) -> Commit:
        assert self.proc.stdin is not None and self.proc.stdout is not None
        try:
            self.proc.stdin.write(sha.encode('ascii') + b'\n')
            self.proc.stdin.flush()
            header = self.proc.stdout.readline().decode('ascii', errors='replace').split()
            if len(header) < 3 or header[1] == 'missing':
                raise KeyError(sha)
            object_id, object_type, size = header[0], header[1], int(header[2])
            raw = self.proc.stdout.read(size)
            self.proc.stdout.read(1)  # trailing LF
        except OSError as e:
            raise RepositoryAccessError(self.name, f"git cat-file failed reading {sha}: {e}", original_error=e)
        if object_type != 'commit':
            raise KeyError(sha)
        return parse_commit_object(object_id, raw)

    def close(self) -> None:
        if self.proc.stdin:
            try:
                self.proc.stdin.close()
            except OSError as e:  # process already gone
                logger.debug(f"[{self.name}] git cat-file stdin already closed: {e}")
        try:
            self.proc.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"⏳ git cat-file did not exit within {self.timeout}s, killing it")
            self.proc.kill()
            self.proc.wait()
        finally:
            if self.proc.stdout:
                self.proc.stdout.close()


class GitRepository:
    """Read-only access to a local (bare or working) git repository."""

    def __init__(self, path: Union[str, Path], name: Optional[str] = None, timeout: int = 30):
        if shutil.which('git') is None:
            raise SetupError("`git` executable not found in PATH.")
        self.path = Path(path)
        self.name = name or self.path.name
        self.timeout = timeout

    def resolve(self, revision: str) -> Optional[str]:
        try:
            proc = subprocess.run(
                ['git', 'rev-parse', '--verify', '--quiet', f'{revision}^{{commit}}'],
                cwd=str(self.path),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.error(f"[{self.name}] ⏳ Timeout resolving '{revision}'")
            return None
        except OSError as e:
            raise RepositoryAccessError(self.name, f"Cannot run git in '{self.path}': {e}", original_error=e)
        if proc.returncode != 0:
            return None
        return proc.stdout.strip() or None

    def open_reader(self) -> GitCommitReader:
        return GitCommitReader(self.path, timeout=self.timeout, name=self.name)
