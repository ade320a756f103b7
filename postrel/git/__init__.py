"""Git operations module.

Usage:
    from postrel.git import GitRepository

    repo = GitRepository(Path("../repos/homebrew"))
    if repo.is_clean():
        repo.pull()
"""

from postrel.git.repository import (
    GitError,
    GitFatalError,
    GitRepository,
    MockRepository,
    RepositoryBackend,
)

__all__ = [
    "GitError",
    "GitFatalError",
    "GitRepository",
    "MockRepository",
    "RepositoryBackend",
]
