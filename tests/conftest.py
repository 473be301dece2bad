import pytest

LTSV_LINES = [
    "time:2017-03-08T14:12:40+09:00\tmethod:GET\turi:/api/users/1\tstatus:200\tsize:120\tapptime:0.100",
    "time:2017-03-08T14:12:41+09:00\tmethod:GET\turi:/api/users/2\tstatus:200\tsize:80\tapptime:0.300",
    "time:2017-03-08T14:12:42+09:00\tmethod:POST\turi:/api/users\tstatus:201\tsize:10\tapptime:0.500",
    "time:2017-03-08T14:12:43+09:00\tmethod:GET\turi:/api/users/3\tstatus:404\tsize:0\tapptime:0.200",
    "time:2017-03-08T14:12:44+09:00\tmethod:GET\turi:/health\tstatus:200\tsize:2\treqtime:0.001\tapptime:-",
    "this line is not ltsv",
]


@pytest.fixture
def ltsv_log(tmp_path):
    """Write a small LTSV access log and return its path."""
    path = tmp_path / "access.log"
    path.write_text("\n".join(LTSV_LINES) + "\n", encoding="utf-8")
    return path
