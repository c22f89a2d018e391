import subprocess
from pathlib import Path

from logviewer.log_constants import GIT_REMOTE_RE


def run_git(args: list[str], repo_dir: Path) -> str:
    cmd = ["git", *args]
    try:
        result = subprocess.run(
            cmd, cwd=repo_dir, check=False, capture_output=True, text=True
        )
    except OSError as e:
        raise RuntimeError(f"failed to run {' '.join(cmd)}: {e}") from e
    if result.returncode != 0:
        err = (result.stderr or "").strip()
        raise RuntimeError(f"{' '.join(cmd)} failed ({result.returncode}): {err}")
    return result.stdout.strip()


def parse_owner_and_repo(url: str) -> tuple[str, str]:
    """
    Parse the owner and repository name out of a git remote URL.

    Accepts ssh ("git@github.com:owner/repo.git") and http(s)
    ("https://github.com/owner/repo.git") remotes.
    """
    match = GIT_REMOTE_RE.search(url)
    if not match:
        raise ValueError(f"can't parse owner and repo from remote url: {url!r}")
    return match.group("owner"), match.group("repo")


def get_remote_owner_and_repo(repo_dir: Path) -> tuple[str, str]:
    remotes = [r for r in run_git(["remote"], repo_dir).splitlines() if r.strip()]
    if len(remotes) != 1:
        raise ValueError(
            f"can't parse owner and repo with {len(remotes)} remotes; expected exactly one"
        )
    url = run_git(["remote", "get-url", remotes[0]], repo_dir)
    return parse_owner_and_repo(url)


def get_current_branch(repo_dir: Path) -> str:
    # Works before the first commit, fails on a detached HEAD
    return run_git(["symbolic-ref", "--short", "HEAD"], repo_dir)
