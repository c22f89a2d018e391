import re
from enum import Enum


class ResultMarker(str, Enum):
    PASS = "--- PASS:"
    FAIL = "--- FAIL:"


# go test prints this header before a test's delayed failure output
TEST_FAILURE_PREFIX = b"=== NAME  "
# Every go test function name starts with this token
DEFAULT_TEST_MARKER = b"Test"

GIT_REMOTE_RE = re.compile(
    r"((git@|http(s)?://)([\w.@]+)(/|:))(?P<owner>[\w,\-_]+)/(?P<repo>[\w,\-_]+)(\.git)?(/)?"
)
