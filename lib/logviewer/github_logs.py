import json
import re
import sys
import time
from typing import Callable, Dict, List, Optional, Tuple
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import HTTPRedirectHandler, Request, build_opener, urlopen

API_ROOT = "https://api.github.com"
USER_AGENT = "gotest-log-viewer"
REQUEST_TIMEOUT = 60
REDIRECT_CODES = (301, 302, 303, 307, 308)

_NEXT_LINK_RE = re.compile(r'<([^>]+)>\s*;\s*rel="next"')


class _NoRedirectHandler(HTTPRedirectHandler):
    # Surface redirects as HTTPError so the Location can be fetched without the API token
    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


def _api_headers(token: Optional[str]) -> Dict[str, str]:
    headers = {
        "Accept": "application/vnd.github+json",
        "User-Agent": USER_AGENT,
        "X-GitHub-Api-Version": "2022-11-28",
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _lowered(headers) -> Dict[str, str]:
    return {k.lower(): v for k, v in (headers.items() if headers else [])}


def _rate_limit_wait(e: HTTPError) -> Optional[int]:
    hdrs = _lowered(e.headers)
    reset = hdrs.get("x-ratelimit-reset")
    if e.code not in (403, 429) or hdrs.get("x-ratelimit-remaining") != "0" or not reset:
        return None
    try:
        return max(1, int(reset) - int(time.time()) + 1)
    except ValueError:
        return 60


def _call_api(
    path: str, token: Optional[str], open_url: Optional[Callable] = None
) -> Tuple[bytes, Dict[str, str]]:
    """
    GET an API path, sleeping through rate limits.

    A redirect that open_url does not follow returns an empty body; the target
    is in the "location" header.
    """
    open_url = open_url or urlopen
    req = Request(f"{API_ROOT}{path}", headers=_api_headers(token))
    while True:
        try:
            with open_url(req, timeout=REQUEST_TIMEOUT) as resp:
                return resp.read(), _lowered(resp.headers)
        except HTTPError as e:
            if e.code in REDIRECT_CODES:
                headers = _lowered(e.headers)
                e.close()
                return b"", headers
            wait = _rate_limit_wait(e)
            if wait is None:
                text = e.read().decode("utf-8", errors="ignore")
                raise RuntimeError(f"GitHub API error {e.code} for {path}: {text[:500]}") from e
            print(f"rate limit hit, sleeping {wait}s...", file=sys.stderr)
            time.sleep(wait)
        except URLError as e:
            raise RuntimeError(f"Network error for {path}: {e}") from e


def github_request(path: str, token: Optional[str]) -> Tuple[dict, Dict[str, str]]:
    body, headers = _call_api(path, token)
    return json.loads(body.decode("utf-8")), headers


def parse_next_link(link_header: Optional[str]) -> Optional[str]:
    """Path of the rel="next" page in a Link header, or None on the last page."""
    m = _NEXT_LINK_RE.search(link_header or "")
    if not m:
        return None
    return m.group(1).removeprefix(API_ROOT)


def find_latest_run_id(
    owner: str, repo: str, workflow: str, branch: str, token: Optional[str]
) -> int:
    """Return the id of the most recent run of a workflow file on a branch."""
    query = urlencode({"branch": branch, "per_page": 1})
    path = (
        f"/repos/{quote(owner)}/{quote(repo)}/actions/workflows/"
        f"{quote(workflow)}/runs?{query}"
    )
    data, _ = github_request(path, token)
    runs = data.get("workflow_runs") if isinstance(data, dict) else None
    if not runs:
        raise RuntimeError(
            f"no runs of {workflow} found for {owner}/{repo} on branch {branch}"
        )
    return int(runs[0]["id"])


def list_jobs(owner: str, repo: str, run_id: int, token: Optional[str]) -> List[dict]:
    path = f"/repos/{quote(owner)}/{quote(repo)}/actions/runs/{run_id}/jobs?per_page=100"
    jobs: List[dict] = []
    while path:
        data, headers = github_request(path, token)
        if not isinstance(data, dict):
            break
        jobs.extend(x for x in data.get("jobs", []) if isinstance(x, dict))
        path = parse_next_link(headers.get("link"))
    return jobs


def find_job_id(
    owner: str, repo: str, run_id: int, job_name: str, token: Optional[str]
) -> int:
    for job in list_jobs(owner, repo, run_id, token):
        if job.get("name") == job_name:
            return int(job["id"])
    raise RuntimeError(f"did not find matching job {job_name!r} in run {run_id}")


def download_job_logs(owner: str, repo: str, job_id: int, token: Optional[str]) -> bytes:
    """
    Download the raw log of a job.

    The logs endpoint answers with a redirect to a short-lived storage URL,
    which is fetched without the API credentials.
    """
    path = f"/repos/{quote(owner)}/{quote(repo)}/actions/jobs/{job_id}/logs"
    opener = build_opener(_NoRedirectHandler)
    body, headers = _call_api(path, token, open_url=opener.open)
    location = headers.get("location")
    if not location:
        # Some proxies resolve the redirect themselves
        return body

    req = Request(location, headers={"User-Agent": USER_AGENT})
    try:
        with urlopen(req, timeout=REQUEST_TIMEOUT) as resp:
            return resp.read()
    except (HTTPError, URLError) as e:
        raise RuntimeError(f"Failed to download logs for job {job_id}: {e}") from e


def get_logs(
    owner: str,
    repo: str,
    workflow: str,
    branch: str,
    job_name: str,
    token: Optional[str],
) -> bytes:
    """Return the log of the named job in the most recent matching workflow run."""
    run_id = find_latest_run_id(owner, repo, workflow, branch, token)
    job_id = find_job_id(owner, repo, run_id, job_name, token)
    return download_job_logs(owner, repo, job_id, token)
