import itertools
import threading
from datetime import datetime
from datetime import timezone

import requests


DEFAULT_TIMEOUT_SECONDS = 15
DEFAULT_PER_PAGE = 100


#============================================
class GitHubClientError(RuntimeError):
	"""
	Raised when a GitHub API call fails at the transport or HTTP level.
	"""


#============================================
class RateLimitError(GitHubClientError):
	"""
	Raised when GitHub API rate limits block further requests.
	"""


#============================================
class GitHubClient:
	"""
	Thin PyGithub wrapper exposing the file-content and commit-list calls.
	"""

	def __init__(
		self,
		token: str,
		log_fn=None,
		timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
		per_page: int = DEFAULT_PER_PAGE,
	):
		self.log_fn = log_fn
		self._counter_lock = threading.Lock()
		self._api_call_count = 0
		self._api_calls_by_context: dict[str, int] = {}
		try:
			from github import Auth
			from github import Github
			from github.GithubException import GithubException
		except ModuleNotFoundError as error:
			raise RuntimeError(
				"Missing dependency: PyGithub. Install it with pip install PyGithub."
			) from error
		self._github_exception_class = GithubException
		kwargs = {
			"timeout": int(timeout_seconds),
			"per_page": max(1, int(per_page)),
			"retry": None,
		}
		if token:
			kwargs["auth"] = Auth.Token(token)
		self.client = Github(**kwargs)

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def record_api_call(self, context: str) -> None:
		"""
		Track one outbound GitHub API call.
		"""
		with self._counter_lock:
			self._api_call_count += 1
			if context not in self._api_calls_by_context:
				self._api_calls_by_context[context] = 0
			self._api_calls_by_context[context] += 1

	#============================================
	def api_usage_snapshot(self) -> dict:
		"""
		Return API call counters for reporting.
		"""
		with self._counter_lock:
			return {
				"api_call_count": self._api_call_count,
				"api_calls_by_context": dict(self._api_calls_by_context),
			}

	#============================================
	def normalize_datetime(self, value: datetime) -> datetime:
		"""
		Normalize datetime to timezone-aware UTC.
		"""
		if value.tzinfo is None:
			return value.replace(tzinfo=timezone.utc)
		return value.astimezone(timezone.utc)

	#============================================
	def parse_rate_limit_reset(self, reset_value) -> datetime:
		"""
		Normalize PyGithub reset values to timezone-aware UTC datetime.
		"""
		if isinstance(reset_value, datetime):
			return self.normalize_datetime(reset_value)
		if isinstance(reset_value, (int, float)):
			return datetime.fromtimestamp(float(reset_value), tz=timezone.utc)
		if isinstance(reset_value, str):
			return datetime.fromisoformat(reset_value.replace("Z", "+00:00"))
		raise RuntimeError(f"Unsupported rate-limit reset value: {reset_value!r}")

	#============================================
	def get_core_rate_limit_snapshot(self) -> tuple[int, datetime]:
		"""
		Read core rate-limit remaining/reset across PyGithub versions.
		"""
		self.record_api_call("GET /rate_limit")
		overview = self.client.get_rate_limit()
		rate_limit = getattr(overview, "core", None)
		if rate_limit is None:
			resources = getattr(overview, "resources", None)
			if isinstance(resources, dict):
				rate_limit = resources.get("core")
			elif resources is not None:
				rate_limit = getattr(resources, "core", None)
		if rate_limit is None:
			raise RuntimeError("Rate limit data does not expose core resource fields.")
		remaining = int(getattr(rate_limit, "remaining"))
		reset_time = self.parse_rate_limit_reset(getattr(rate_limit, "reset"))
		return remaining, reset_time

	#============================================
	def call_api(self, context: str, call_fn):
		"""
		Run one API call and translate library errors to GitHubClientError.
		"""
		self.record_api_call(context)
		try:
			return call_fn()
		except self._github_exception_class as error:
			self.raise_from_github_error(error, context)
		except requests.exceptions.RequestException as error:
			raise GitHubClientError(f"{context} failed: {error}") from error

	#============================================
	def raise_from_github_error(self, error: Exception, context: str) -> None:
		"""
		Raise a human-readable rate-limit error or a wrapped client error.
		"""
		status = getattr(error, "status", None)
		if status not in (403, 429):
			raise GitHubClientError(f"{context} failed (status={status}): {error}") from error
		reset_text = "unknown"
		remaining_text = "unknown"
		try:
			remaining, reset_time = self.get_core_rate_limit_snapshot()
			reset_text = reset_time.isoformat()
			remaining_text = str(remaining)
		except (RuntimeError, self._github_exception_class, requests.exceptions.RequestException) as snapshot_error:
			self.log(f"Rate limit check ({context}) unavailable: {snapshot_error}")
		raise RateLimitError(
			"GitHub API rate limit exceeded while "
			+ f"{context}; remaining={remaining_text}; reset_at={reset_text}. "
			+ "Provide settings.yaml github.token or GITHUB_TOKEN for higher limits."
		) from error

	#============================================
	def get_repo(self, full_name: str):
		"""
		Get one repository object by full name.
		"""
		return self.call_api(
			f"GET /repos/{full_name}",
			lambda: self.client.get_repo(full_name),
		)

	#============================================
	def list_commits(
		self,
		repo_full_name: str,
		since: datetime | None = None,
		limit: int = 1,
	) -> list[dict]:
		"""
		List up to limit commit payloads, most recent first.
		"""
		repo_obj = self.get_repo(repo_full_name)
		kwargs = {}
		if since is not None:
			kwargs["since"] = self.normalize_datetime(since)
		return self.call_api(
			f"GET /repos/{repo_full_name}/commits",
			lambda: [
				commit_to_dict(commit_obj)
				for commit_obj in itertools.islice(
					repo_obj.get_commits(**kwargs),
					max(1, int(limit)),
				)
			],
		)

	#============================================
	def get_file_content(self, repo_full_name: str, path: str) -> dict | None:
		"""
		Get one contents payload; None when absent or when path is a directory.
		"""
		repo_obj = self.get_repo(repo_full_name)
		context = f"GET /repos/{repo_full_name}/contents/{path}"
		self.record_api_call(context)
		try:
			content = repo_obj.get_contents(path)
		except self._github_exception_class as error:
			if getattr(error, "status", None) == 404:
				return None
			self.raise_from_github_error(error, context)
		except requests.exceptions.RequestException as error:
			raise GitHubClientError(f"{context} failed: {error}") from error
		if isinstance(content, list):
			return None
		return content_to_dict(content, path)


#============================================
def content_to_dict(content_obj, path: str) -> dict:
	"""
	Normalize a PyGithub ContentFile to REST-like dict shape.
	"""
	if isinstance(content_obj, dict):
		return dict(content_obj)
	data = getattr(content_obj, "raw_data", {}) or {}
	payload = dict(data)
	for key, default_value in (
		("type", ""),
		("encoding", ""),
		("content", None),
		("path", path),
		("sha", ""),
		("size", 0),
	):
		if key not in payload:
			payload[key] = getattr(content_obj, key, default_value)
	return payload


#============================================
def to_utc_iso(value) -> str:
	"""
	Convert datetime-like values to ISO-8601 UTC strings.
	"""
	if value is None:
		return ""
	if isinstance(value, str):
		return value
	if isinstance(value, datetime):
		if value.tzinfo is None:
			value = value.replace(tzinfo=timezone.utc)
		return value.astimezone(timezone.utc).isoformat()
	return str(value)


#============================================
def commit_to_dict(commit_obj) -> dict:
	"""
	Normalize a PyGithub commit object to REST-like dict shape.
	"""
	if isinstance(commit_obj, dict):
		return dict(commit_obj)
	data = getattr(commit_obj, "raw_data", {}) or {}
	commit = dict(data)
	if "sha" not in commit:
		commit["sha"] = getattr(commit_obj, "sha", "")
	if "commit" in commit:
		return commit
	git_commit = getattr(commit_obj, "commit", None)
	commit_payload = {}
	for role in ("author", "committer"):
		actor = getattr(git_commit, role, None)
		if actor is None:
			continue
		commit_payload[role] = {"date": to_utc_iso(getattr(actor, "date", None))}
	commit["commit"] = commit_payload
	return commit
