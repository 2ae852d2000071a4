import os
import sys
import threading
from datetime import datetime
from datetime import timezone
from types import SimpleNamespace

import pytest
import requests
from github.GithubException import GithubException


REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
PIPELINE_DIR = os.path.join(REPO_ROOT, "pipeline")
if PIPELINE_DIR not in sys.path:
	sys.path.insert(0, PIPELINE_DIR)

from chartlib import github_client


#============================================
def make_stub_client(github_object):
	"""
	Build GitHubClient instance around a fake PyGithub object.
	"""
	client = github_client.GitHubClient.__new__(github_client.GitHubClient)
	client.log_fn = None
	client._counter_lock = threading.Lock()
	client._api_call_count = 0
	client._api_calls_by_context = {}
	client._github_exception_class = GithubException
	client.client = github_object
	return client


#============================================
def make_repo_client(repo_object, overview=None):
	github_object = SimpleNamespace(
		get_repo=lambda full_name: repo_object,
		get_rate_limit=lambda: overview,
	)
	return make_stub_client(github_object)


#============================================
def test_core_rate_limit_snapshot_from_core_attribute() -> None:
	"""
	Rate limit should parse from overview.core shape.
	"""
	reset_time = datetime(2026, 2, 22, 3, 30, 0, tzinfo=timezone.utc)
	overview = SimpleNamespace(core=SimpleNamespace(remaining=42, reset=reset_time))
	client = make_stub_client(SimpleNamespace(get_rate_limit=lambda: overview))
	remaining, parsed_reset = client.get_core_rate_limit_snapshot()
	assert remaining == 42
	assert parsed_reset == reset_time


#============================================
def test_core_rate_limit_snapshot_from_resources_dict() -> None:
	"""
	Rate limit should parse from overview.resources['core'] shape.
	"""
	overview = SimpleNamespace(
		resources={"core": SimpleNamespace(remaining=3, reset=1761110400)}
	)
	client = make_stub_client(SimpleNamespace(get_rate_limit=lambda: overview))
	remaining, parsed_reset = client.get_core_rate_limit_snapshot()
	assert remaining == 3
	assert parsed_reset.tzinfo is not None


#============================================
def test_call_api_rate_limit_error_reports_reset() -> None:
	"""
	403 responses become RateLimitError with remaining and reset details.
	"""
	overview = SimpleNamespace(
		core=SimpleNamespace(remaining=0, reset="2026-02-22T03:35:00+00:00")
	)
	client = make_stub_client(SimpleNamespace(get_rate_limit=lambda: overview))

	def blocked():
		raise GithubException(403, {"message": "API rate limit exceeded"}, None)

	with pytest.raises(github_client.RateLimitError) as error_info:
		client.call_api("GET /repos/octo/demo", blocked)
	message = str(error_info.value)
	assert "remaining=0" in message
	assert "reset_at=2026-02-22T03:35:00+00:00" in message


#============================================
def test_call_api_wraps_http_and_network_errors() -> None:
	"""
	Other HTTP statuses and requests failures become GitHubClientError.
	"""
	client = make_stub_client(SimpleNamespace())

	def missing():
		raise GithubException(404, {"message": "Not Found"}, None)

	def timed_out():
		raise requests.exceptions.ReadTimeout("read timed out")

	with pytest.raises(github_client.GitHubClientError) as error_info:
		client.call_api("GET /repos/octo/missing", missing)
	assert "status=404" in str(error_info.value)
	assert not isinstance(error_info.value, github_client.RateLimitError)
	with pytest.raises(github_client.GitHubClientError):
		client.call_api("GET /repos/octo/slow", timed_out)


#============================================
def test_get_file_content_returns_raw_payload() -> None:
	"""
	File entries are normalized to the REST contents shape.
	"""
	content = SimpleNamespace(
		raw_data={"type": "file", "encoding": "base64", "content": "e30=\n", "path": "package.json"},
	)
	repo = SimpleNamespace(get_contents=lambda path: content)
	client = make_repo_client(repo)
	payload = client.get_file_content("octo/demo", "package.json")
	assert payload["type"] == "file"
	assert payload["encoding"] == "base64"
	assert payload["content"] == "e30=\n"
	assert client.api_usage_snapshot()["api_call_count"] == 2


#============================================
def test_get_file_content_directory_and_missing_return_none() -> None:
	"""
	Directory listings and 404 responses both mean no file.
	"""
	directory_repo = SimpleNamespace(get_contents=lambda path: [SimpleNamespace(), SimpleNamespace()])
	assert make_repo_client(directory_repo).get_file_content("octo/demo", "package.json") is None

	def missing(path):
		raise GithubException(404, {"message": "Not Found"}, None)

	missing_repo = SimpleNamespace(get_contents=missing)
	assert make_repo_client(missing_repo).get_file_content("octo/demo", "package.json") is None


#============================================
def test_get_file_content_auth_failure_raises_client_error() -> None:
	"""
	Authentication rejection is a transport-level failure.
	"""
	def rejected(path):
		raise GithubException(401, {"message": "Bad credentials"}, None)

	client = make_repo_client(SimpleNamespace(get_contents=rejected))
	with pytest.raises(github_client.GitHubClientError):
		client.get_file_content("octo/demo", "package.json")


#============================================
def test_get_file_content_timeout_raises_client_error() -> None:
	"""
	A request timeout while reading contents is a transport-level failure.
	"""
	def slow(path):
		raise requests.exceptions.ReadTimeout("read timed out (timeout=15)")

	client = make_repo_client(SimpleNamespace(get_contents=slow))
	with pytest.raises(github_client.GitHubClientError) as error_info:
		client.get_file_content("octo/demo", "package.json")
	assert "contents/package.json failed" in str(error_info.value)
	assert isinstance(error_info.value.__cause__, requests.exceptions.ReadTimeout)
	assert not isinstance(error_info.value, github_client.RateLimitError)


#============================================
def test_list_commits_respects_limit_and_since() -> None:
	"""
	Commit listing forwards since and stops after limit entries.
	"""
	calls = []

	def get_commits(**kwargs):
		calls.append(kwargs)
		for index in range(10):
			yield SimpleNamespace(
				raw_data={
					"sha": f"sha{index}",
					"commit": {"author": {"date": f"2024-03-0{index}T00:00:00Z"}},
				}
			)

	client = make_repo_client(SimpleNamespace(get_commits=get_commits))
	since = datetime(2024, 3, 1, 0, 0, 0)
	commits = client.list_commits("octo/demo", since=since, limit=3)
	assert [commit["sha"] for commit in commits] == ["sha0", "sha1", "sha2"]
	assert calls == [{"since": since.replace(tzinfo=timezone.utc)}]

	latest = client.list_commits("octo/demo")
	assert len(latest) == 1
	assert calls[-1] == {}


#============================================
def test_commit_to_dict_fills_dates_from_attributes() -> None:
	"""
	Objects without raw payloads still expose author and committer dates.
	"""
	commit_obj = SimpleNamespace(
		sha="abc",
		commit=SimpleNamespace(
			author=SimpleNamespace(date=datetime(2024, 3, 5, 10, 0, 0, tzinfo=timezone.utc)),
			committer=None,
		),
	)
	commit = github_client.commit_to_dict(commit_obj)
	assert commit["sha"] == "abc"
	assert commit["commit"]["author"]["date"] == "2024-03-05T10:00:00+00:00"
	assert "committer" not in commit["commit"]
