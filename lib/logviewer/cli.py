import argparse
import os
import sys
from pathlib import Path

from logviewer.git_remote import get_current_branch, get_remote_owner_and_repo
from logviewer.github_logs import get_logs
from logviewer.log_constants import DEFAULT_TEST_MARKER
from logviewer.log_filters import (
    extract_summary,
    filter_logs,
    remove_test_name_prefix,
    remove_timestamp_prefix,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Show the output of a single Go test from a GitHub Actions job log."
    )
    parser.add_argument(
        "--owner",
        default="",
        help="Repository owner name. Parsed from the local git repository if not specified.",
    )
    parser.add_argument(
        "--repository",
        default="",
        help="Repository name. Parsed from the local git repository if not specified.",
    )
    parser.add_argument(
        "--workflow",
        default="",
        help="Workflow filename (base filename, not path).",
    )
    parser.add_argument(
        "--branch",
        default="",
        help="Branch name. Defaults to the current branch of the local git repository.",
    )
    parser.add_argument(
        "--job",
        default="",
        help="Job name (within the workflow file).",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--test",
        default="",
        help="Go test name. All log data is returned otherwise.",
    )
    mode.add_argument(
        "--summary",
        action="store_true",
        help="Only print the --- PASS/--- FAIL result lines.",
    )
    parser.add_argument(
        "--keep-prefix",
        action="store_true",
        help="Keep the test name prefix on each log line of --test output.",
    )
    parser.add_argument(
        "--test-marker",
        default=DEFAULT_TEST_MARKER.decode("utf-8"),
        help="Token every test name starts with; ends continuation of a test's output.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Read a saved job log from this path ('-' for stdin) instead of the GitHub API.",
    )
    parser.add_argument(
        "--no-timestamps",
        action="store_true",
        help="Log lines carry no leading timestamp (e.g. local go test output).",
    )
    parser.add_argument(
        "--repo-dir",
        default=".",
        help="Local git repository used to infer owner, repository and branch.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print progress to stderr.",
    )
    return parser


def read_log_file(log_file: str) -> bytes:
    if log_file == "-":
        return sys.stdin.buffer.read()
    return Path(log_file).read_bytes()


def fetch_logs(args: argparse.Namespace) -> bytes:
    """Resolve the job coordinates from flags and git, then download its log."""
    repo_dir = Path(args.repo_dir)
    owner, repo = args.owner, args.repository
    if not owner and not repo:
        owner, repo = get_remote_owner_and_repo(repo_dir)
    branch = args.branch or get_current_branch(repo_dir)
    token = os.getenv("GITHUB_TOKEN")

    if args.verbose:
        auth = "authenticated" if token else "unauthenticated"
        print(
            f"fetching {args.job!r} of {args.workflow} for {owner}/{repo}@{branch} ({auth})",
            file=sys.stderr,
        )
    return get_logs(owner, repo, args.workflow, branch, args.job, token)


def render_logs(logs: bytes, args: argparse.Namespace) -> bytes:
    if not args.no_timestamps:
        logs = remove_timestamp_prefix(logs)

    if args.summary:
        return extract_summary(logs)

    if args.test:
        test_name = args.test.encode("utf-8")
        logs = filter_logs(logs, test_name, test_marker=args.test_marker.encode("utf-8"))
        if not args.keep_prefix:
            logs = remove_test_name_prefix(logs, test_name)
    return logs


def validate_args(args: argparse.Namespace) -> str | None:
    if args.log_file is not None:
        return None
    if not args.owner and args.repository:
        return "--owner is required when --repository is given. see usage via --help"
    if args.owner and not args.repository:
        return "--repository is required when --owner is given. see usage via --help"
    if not args.workflow:
        return "--workflow is a required parameter. see usage via --help"
    if not args.job:
        return "--job is a required parameter. see usage via --help"
    return None


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    error = validate_args(args)
    if error:
        print(error, file=sys.stderr)
        return 2

    try:
        if args.log_file is not None:
            logs = read_log_file(args.log_file)
        else:
            logs = fetch_logs(args)
    except OSError as exc:
        print(f"failed to read logs: {exc}", file=sys.stderr)
        return 1
    except (RuntimeError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if args.verbose:
        print(f"read {len(logs)} bytes of logs", file=sys.stderr)

    output = render_logs(logs, args)
    # Raw bytes; job logs are not guaranteed to be valid UTF-8
    sys.stdout.buffer.write(output + b"\n")
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
