"""
Local working copy access: tags, file inventories, creation dates, commits.
"""

from datetime import date
from pathlib import Path
from typing import Optional

from git import GitCommandError, Repo
from pydriller import Git, Repository

from .exceptions import DataSourceError
from .issues import Commit, TouchedFile


def clone_or_pull(git_url: str, repo_dir: str) -> Path:
    """Clone `git_url` under `repo_dir`, or pull it when already present"""
    name = git_url.rstrip('/').split('/')[-1]
    path = Path(repo_dir) / name
    try:
        if path.exists():
            print(f"  Pulling {name}...", flush=True)
            Repo(path).remotes.origin.pull()
        else:
            print(f"  Cloning {name}, please wait...", flush=True)
            path.parent.mkdir(parents=True, exist_ok=True)
            Repo.clone_from(git_url, path)
    except GitCommandError as e:
        raise DataSourceError('Could not update working copy', {'url': git_url, 'error': str(e)}) from e
    return path


class GitRepository:
    """Queries against a local working copy, limited to one source suffix"""

    def __init__(self, path, source_suffix: str = '.java'):
        self.path = str(path)
        self.source_suffix = source_suffix
        self.git = Git(self.path)
        self._commits = None
        self._created = {}

    def _run(self, *args) -> str:
        try:
            return getattr(self.git.repo.git, args[0])(*args[1:])
        except GitCommandError as e:
            raise DataSourceError('git command failed', {'command': ' '.join(args), 'error': str(e)}) from e

    def is_source(self, path: str) -> bool:
        return path.endswith(self.source_suffix)

    def tag_date(self, tag: str) -> Optional[date]:
        """Committer date of a tag, None when the tag does not exist"""
        try:
            return self.git.get_commit_from_tag(tag).committer_date.date()
        except IndexError:
            return None

    def list_files(self, tag: str) -> list[str]:
        output = self._run('ls_tree', '-r', '--name-only', tag)
        return sorted(p for p in output.splitlines() if self.is_source(p))

    def creation_date(self, path: str) -> Optional[date]:
        """Date of the commit that added `path` (the oldest, if re-added)"""
        if path not in self._created:
            output = self._run('log', '--diff-filter=A', '--format=%cs', '--', path).splitlines()
            self._created[path] = date.fromisoformat(output[-1]) if output else None
        return self._created[path]

    def read_file(self, tag: str, path: str) -> str:
        return self._run('show', f'{tag}:{path}')

    def commits(self) -> list[Commit]:
        """All non-merge commits, oldest first, with their touched source files"""
        if self._commits is None:
            self._commits = [self._to_commit(c) for c in Repository(self.path, only_no_merge=True).traverse_commits()]
        return self._commits

    def commits_between(self, after: Optional[date], until: date) -> list[Commit]:
        """Commits dated in (after, until]"""
        return [
            c for c in self.commits()
            if c.date <= until and (after is None or c.date > after)
        ]

    def _to_commit(self, commit) -> Commit:
        changes = [
            (mod.new_path or mod.old_path, mod.added_lines, mod.deleted_lines)
            for mod in commit.modified_files
            if self.is_source(mod.new_path or mod.old_path)
        ]
        touched = tuple(
            TouchedFile(path, added, deleted, change_set_size=len(changes) - 1)
            for path, added, deleted in changes
        )
        return Commit(
            sha=commit.hash,
            author=commit.author.name,
            date=commit.committer_date.date(),
            message=commit.msg,
            touched_files=touched,
        )
