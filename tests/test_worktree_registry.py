"""Tests for the worktree registry"""
import os
import shutil

import pytest

from git_worktree_keeper.exceptions import ExternalToolFailure
from git_worktree_keeper.models.repository import Repository
from git_worktree_keeper.services.git.worktrees import (
    WorktreeRegistry,
    parse_porcelain,
    read_gitdir_pointer,
    repository_from_admin_dir,
)
from git_worktree_keeper.utils.paths import normalize_path


PORCELAIN = """worktree /code/app
HEAD 1111111111111111111111111111111111111111
branch refs/heads/main

worktree /wt/feature-x
HEAD 2222222222222222222222222222222222222222
branch refs/heads/feature-x
locked reason given

worktree /wt/detached
HEAD 3333333333333333333333333333333333333333
detached
prunable gitdir file points to non-existent location

"""


class TestParsePorcelain:
    """Test parsing of `git worktree list --porcelain`."""

    def test_records(self):
        repo = Repository.from_path("/code/app")
        worktrees = parse_porcelain(PORCELAIN, repo)

        assert [wt.path for wt in worktrees] == ["/code/app", "/wt/feature-x", "/wt/detached"]
        assert worktrees[0].is_primary
        assert not worktrees[1].is_primary
        assert worktrees[0].branch == "main"
        assert worktrees[1].branch == "feature-x"
        assert worktrees[1].locked
        assert worktrees[2].is_detached
        assert worktrees[2].prunable
        assert worktrees[2].head.startswith("3333")
        assert all(wt.repository == repo for wt in worktrees)

    def test_branch_belongs_to_latest_worktree(self):
        output = "worktree /a\nHEAD aaa\nworktree /b\nHEAD bbb\nbranch refs/heads/topic\n"
        worktrees = parse_porcelain(output)
        assert worktrees[0].branch == ""
        assert worktrees[1].branch == "topic"

    def test_bare_primary(self):
        worktrees = parse_porcelain("worktree /srv/app.git\nbare\n")
        assert worktrees[0].is_bare
        assert worktrees[0].is_primary

    def test_empty_output(self):
        assert parse_porcelain("") == []

    def test_name_is_directory_name(self):
        worktrees = parse_porcelain(PORCELAIN)
        assert worktrees[1].name == "feature-x"


class TestWorktreeRegistry:
    """Test the registry against a real repository."""

    def test_list_primary_only(self, git_repo):
        registry = WorktreeRegistry(Repository.from_path(git_repo.working_dir))
        worktrees = registry.list()
        assert len(worktrees) == 1
        assert worktrees[0].is_primary
        assert worktrees[0].branch == "main"

    def test_add_find_remove(self, git_repo, worktrees_root):
        registry = WorktreeRegistry(Repository.from_path(git_repo.working_dir))
        path = str(worktrees_root / "feature-x")

        registry.add(path, "feature-x", base="main")
        found = registry.find(path)
        assert found is not None
        assert found.branch == "feature-x"
        assert not found.is_primary
        assert "feature-x" in [head.name for head in git_repo.heads]

        assert registry.remove(path) == (True, None)
        assert not registry.is_registered(path)
        assert not os.path.exists(path)

    def test_add_existing_branch_fails(self, git_repo, worktrees_root):
        registry = WorktreeRegistry(Repository.from_path(git_repo.working_dir))
        with pytest.raises(ExternalToolFailure):
            registry.add(str(worktrees_root / "dup"), "main", base="main")

    def test_remove_unknown_path(self, git_repo, worktrees_root):
        registry = WorktreeRegistry(Repository.from_path(git_repo.working_dir))
        removed, error = registry.remove(str(worktrees_root / "nope"))
        assert removed is False
        assert error

    def test_prune_stale_registration(self, git_repo, worktrees_root):
        registry = WorktreeRegistry(Repository.from_path(git_repo.working_dir))
        path = str(worktrees_root / "gone")
        registry.add(path, "gone", base="main")
        shutil.rmtree(path)

        assert registry.is_registered(path)
        assert registry.prune() == (True, None)
        assert not registry.is_registered(path)

    def test_move(self, git_repo, worktrees_root):
        registry = WorktreeRegistry(Repository.from_path(git_repo.working_dir))
        source = str(worktrees_root / "before")
        destination = str(worktrees_root / "after")
        registry.add(source, "before", base="main")

        registry.move(source, destination)
        assert registry.find(destination).branch == "before"
        assert not os.path.exists(source)

    def test_list_outside_repository(self, temp_dir):
        registry = WorktreeRegistry(Repository.from_path(str(temp_dir)))
        with pytest.raises(ExternalToolFailure):
            registry.list()


class TestGitdirPointer:
    """Test reading a linked worktree's .git file."""

    def test_pointer_and_owner(self, git_repo, worktrees_root):
        repo = Repository.from_path(git_repo.working_dir)
        path = str(worktrees_root / "linked")
        WorktreeRegistry(repo).add(path, "linked", base="main")

        admin_dir = read_gitdir_pointer(path)
        assert admin_dir is not None
        assert os.path.isdir(admin_dir)
        assert normalize_path(repository_from_admin_dir(admin_dir).path) == normalize_path(repo.path)

    def test_primary_has_no_pointer(self, git_repo):
        assert read_gitdir_pointer(git_repo.working_dir) is None

    def test_relative_pointer(self, temp_dir):
        worktree = temp_dir / "wt"
        worktree.mkdir()
        (worktree / ".git").write_text("gitdir: ../repo/.git/worktrees/wt\n")
        assert read_gitdir_pointer(str(worktree)) == str(temp_dir / "repo" / ".git" / "worktrees" / "wt")

    def test_garbage_pointer(self, temp_dir):
        (temp_dir / ".git").write_text("not a pointer")
        assert read_gitdir_pointer(str(temp_dir)) is None
