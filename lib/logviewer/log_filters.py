from collections.abc import Iterator

from logviewer.log_constants import DEFAULT_TEST_MARKER, TEST_FAILURE_PREFIX, ResultMarker


_SUMMARY_PREFIXES = tuple(marker.value.encode("utf-8") for marker in ResultMarker)


def find_next(logs: bytes, offset: int, delimiter: bytes) -> int:
    """
    Find the next occurrence of a delimiter byte.

    Args:
        logs (bytes): log content
        offset (int): index to start searching from
        delimiter (bytes): single byte to look for
    Returns:
        int: index of the delimiter, or the last index of logs when there is none
    """
    idx = logs.find(delimiter, offset)
    if idx == -1:
        return len(logs) - 1
    return idx


def iter_lines(logs: bytes) -> Iterator[bytes]:
    """Yield each line of logs, keeping its terminator (the last line may have none)."""
    i = 0
    while i < len(logs):
        end_of_line_idx = find_next(logs, i, b"\n")
        yield logs[i : end_of_line_idx + 1]
        i = end_of_line_idx + 1


def has_prefix(logs: bytes, offset: int, prefix: bytes) -> bool:
    """Whether logs, starting at offset, begins with prefix."""
    return logs.startswith(prefix, offset)


def has_test_failure_prefix(
    logs: bytes,
    offset: int,
    test_name: bytes,
    failure_prefix: bytes = TEST_FAILURE_PREFIX,
) -> bool:
    """
    Whether the line at offset is the failure report header for test_name,
    e.g. "=== NAME  TestFoo" or a subtest's "=== NAME  TestFoo/case_1".
    An empty failure_prefix never matches.
    """
    if not failure_prefix:
        return False
    header = failure_prefix + test_name
    if not has_prefix(logs, offset, header):
        return False
    # "=== NAME  TestFooBar" is not a header for TestFoo
    end = offset + len(header)
    next_byte = logs[end : end + 1]
    return not next_byte or next_byte == b"/" or next_byte.isspace()


def remove_timestamp_prefix(logs: bytes) -> bytes:
    """
    Remove the leading timestamp token (and the space after it) from every line.

    Args:
        logs (bytes): raw log content, e.g. b"2023-05-02T19:31:15.2539162Z Done in 219ms."
    Returns:
        bytes: log content without timestamps
    """
    new_logs = []
    for line in iter_lines(logs):
        end_of_timestamp_idx = line.find(b" ")
        if end_of_timestamp_idx == -1:
            # Nothing but a timestamp; keep the line itself so line count is preserved
            new_logs.append(b"\n" if line.endswith(b"\n") else b"")
            continue
        new_logs.append(line[end_of_timestamp_idx + 1 :])
    return b"".join(new_logs)


def remove_test_name_prefix(logs: bytes, test_name: bytes) -> bytes:
    """Remove "<test_name> " from the start of each line that has it."""
    prefix = test_name + b" "
    new_logs = []
    for line in iter_lines(logs):
        if has_prefix(line, 0, prefix):
            new_logs.append(line[len(prefix) :])
        else:
            new_logs.append(line)
    return b"".join(new_logs)


def filter_logs(
    logs: bytes,
    test_name: bytes,
    test_marker: bytes = DEFAULT_TEST_MARKER,
    failure_prefix: bytes = TEST_FAILURE_PREFIX,
) -> bytes:
    """
    Select the lines of one test from interleaved parallel test output.

    A line belongs to the test when it starts with "<test_name> " or is the
    test's failure report header. Lines without that prefix which follow a
    matched line are kept too (stack traces, assertion dumps) until a line
    starting with test_marker shows that output moved on to another test.

    Args:
        logs (bytes): log content without timestamps
        test_name (bytes): name of the test to keep, compared exactly
        test_marker (bytes): token every test name starts with
        failure_prefix (bytes): failure report header preceding the test name
    Returns:
        bytes: the selected lines in their original order
    """
    name_prefix = test_name + b" "
    filtered_logs = []
    prior_line_matched = False

    for line in iter_lines(logs):
        if has_prefix(line, 0, name_prefix) or has_test_failure_prefix(
            line, 0, test_name, failure_prefix
        ):
            filtered_logs.append(line)
            prior_line_matched = True
        elif prior_line_matched:
            if has_prefix(line, 0, test_marker):
                prior_line_matched = False
            else:
                filtered_logs.append(line)

    return b"".join(filtered_logs)


def extract_summary(logs: bytes) -> bytes:
    """
    Keep only "--- PASS:" and "--- FAIL:" lines, including indented subtest results.

    Args:
        logs (bytes): log content without timestamps
    Returns:
        bytes: result lines with their original indentation
    """
    summary = []
    for line in iter_lines(logs):
        if line.lstrip().startswith(_SUMMARY_PREFIXES):
            summary.append(line)
    return b"".join(summary)
