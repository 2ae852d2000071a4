"""Per-repository version and commit-timestamp retrieval.

Each fetch returns one FetchOutcome variant so the caller can tell a missing
manifest from a parse failure, a quiet repository, or a transport error
without inspecting message text.
"""

# Standard Library
import base64
import binascii
import json
from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta
from datetime import timezone

# local repo modules
from chartlib import github_client
from chartlib.repo_resolver import RepositoryReference


UNKNOWN_TIMESTAMP = "Unknown"
DEFAULT_MANIFEST_PATH = "package.json"
DEFAULT_WINDOW_DAYS = 7
DEFAULT_PAGE_SIZE = 100
STRATEGY_LATEST = "latest"
STRATEGY_WINDOWED = "windowed"


#============================================
@dataclass(frozen=True)
class RepositoryMetadata:
	version: str
	timestamp: str


#============================================
@dataclass(frozen=True)
class FetchSuccess:
	reference: RepositoryReference
	metadata: RepositoryMetadata
	ok = True


#============================================
@dataclass(frozen=True)
class FetchNotFound:
	reference: RepositoryReference
	reason: str
	ok = False


#============================================
@dataclass(frozen=True)
class FetchParseError:
	reference: RepositoryReference
	reason: str
	ok = False


#============================================
@dataclass(frozen=True)
class FetchNoCommits:
	reference: RepositoryReference
	since: datetime | None
	ok = False


#============================================
@dataclass(frozen=True)
class FetchTransportError:
	reference: RepositoryReference
	cause: Exception
	ok = False


FetchOutcome = FetchSuccess | FetchNotFound | FetchParseError | FetchNoCommits | FetchTransportError


#============================================
class ManifestNotFound(Exception):
	pass


#============================================
class ManifestParseError(Exception):
	pass


#============================================
def utc_now() -> datetime:
	"""
	Return UTC now as a timezone-aware datetime.
	"""
	return datetime.now(timezone.utc)


#============================================
def decode_manifest_payload(payload: dict | None, manifest_path: str) -> str:
	"""Decode a contents payload into manifest text.

	Args:
		payload: REST-shaped contents dict, or None when the path is absent.
		manifest_path: Path used in diagnostics.

	Returns:
		Decoded UTF-8 text of the file body.

	Raises:
		ManifestNotFound: payload is absent, not a file, or has no inline body.
		ManifestParseError: body is not valid base64 or not UTF-8.
	"""
	if payload is None:
		raise ManifestNotFound(f"No {manifest_path} found")
	entry_type = str(payload.get("type") or "")
	if entry_type != "file":
		raise ManifestNotFound(f"{manifest_path} is not a file (type={entry_type or 'unknown'})")
	encoding = str(payload.get("encoding") or "")
	content = payload.get("content")
	if encoding != "base64" or not isinstance(content, str):
		raise ManifestNotFound(f"{manifest_path} has no inline content (encoding={encoding or 'none'})")
	try:
		raw_bytes = base64.b64decode(content)
		return raw_bytes.decode("utf-8")
	except (binascii.Error, ValueError) as error:
		raise ManifestParseError(f"{manifest_path} body could not be decoded: {error}") from error


#============================================
def parse_manifest_version(text: str, manifest_path: str = DEFAULT_MANIFEST_PATH) -> str:
	"""
	Parse manifest JSON and return its version string.
	"""
	try:
		document = json.loads(text)
	except json.JSONDecodeError as error:
		raise ManifestParseError(f"{manifest_path} is not valid JSON: {error}") from error
	if not isinstance(document, dict):
		raise ManifestParseError(f"{manifest_path} must contain a JSON object")
	version = document.get("version")
	if isinstance(version, bool) or not isinstance(version, (str, int, float)):
		raise ManifestParseError(f"{manifest_path} has no version field")
	version_text = str(version).strip()
	if not version_text:
		raise ManifestParseError(f"{manifest_path} has an empty version field")
	# one record must stay one chart line
	if any(char.isspace() or not char.isprintable() for char in version_text):
		raise ManifestParseError(f"{manifest_path} version contains whitespace: {version_text!r}")
	return version_text


#============================================
def extract_commit_timestamp(commit: dict, timestamp_field: str = "author") -> str:
	"""
	Read author or committer date from a commit payload, or the sentinel.
	"""
	commit_data = commit.get("commit") or {}
	actor = commit_data.get(timestamp_field) or {}
	value = actor.get("date")
	if not value:
		return UNKNOWN_TIMESTAMP
	return str(value)


#============================================
class MetadataFetcher:
	"""
	Fetch declared version and commit timestamp for one repository at a time.
	"""

	def __init__(
		self,
		client,
		strategy: str = STRATEGY_LATEST,
		timestamp_field: str = "author",
		manifest_path: str = DEFAULT_MANIFEST_PATH,
		window_days: int = DEFAULT_WINDOW_DAYS,
		page_size: int = DEFAULT_PAGE_SIZE,
		clock=utc_now,
		log_fn=None,
	):
		if strategy not in (STRATEGY_LATEST, STRATEGY_WINDOWED):
			raise ValueError(f"Unknown fetch strategy: {strategy}")
		if timestamp_field not in ("author", "committer"):
			raise ValueError(f"Unknown timestamp field: {timestamp_field}")
		if window_days < 1:
			raise ValueError("window days must be >= 1")
		self.client = client
		self.strategy = strategy
		self.timestamp_field = timestamp_field
		self.manifest_path = manifest_path
		self.window_days = int(window_days)
		self.page_size = max(1, int(page_size))
		self.clock = clock
		self.log_fn = log_fn

	#============================================
	def log(self, message: str) -> None:
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def window_start(self) -> datetime:
		"""
		Return the inclusive lower bound of the trailing commit window.
		"""
		return self.clock() - timedelta(days=self.window_days)

	#============================================
	def fetch_version(self, reference: RepositoryReference) -> str:
		payload = self.client.get_file_content(reference.full_name, self.manifest_path)
		text = decode_manifest_payload(payload, self.manifest_path)
		return parse_manifest_version(text, self.manifest_path)

	#============================================
	def fetch_commits(self, reference: RepositoryReference, since: datetime | None) -> list[dict]:
		if since is None:
			return self.client.list_commits(reference.full_name, limit=1)
		return self.client.list_commits(reference.full_name, since=since, limit=self.page_size)

	#============================================
	def fetch(self, reference: RepositoryReference) -> FetchOutcome:
		"""Run manifest and commit lookups for one repository.

		Never raises for repository-scoped failures; each one maps to an
		outcome variant. The lookups are not retried.
		"""
		self.log(f"Fetching {reference.full_name} ({self.strategy} strategy)")
		since = None
		if self.strategy == STRATEGY_WINDOWED:
			since = self.window_start()
		try:
			version = self.fetch_version(reference)
			commits = self.fetch_commits(reference, since)
		except ManifestNotFound as error:
			return FetchNotFound(reference, str(error))
		except ManifestParseError as error:
			return FetchParseError(reference, str(error))
		except github_client.GitHubClientError as error:
			return FetchTransportError(reference, error)
		if not commits:
			return FetchNoCommits(reference, since)
		timestamp = extract_commit_timestamp(commits[0], self.timestamp_field)
		return FetchSuccess(reference, RepositoryMetadata(version=version, timestamp=timestamp))


#============================================
def describe_outcome(outcome) -> str:
	"""
	Build one log line for a non-success outcome.
	"""
	name = outcome.reference.full_name
	if isinstance(outcome, FetchNotFound):
		return f"Error: manifest not found for {name}: {outcome.reason}"
	if isinstance(outcome, FetchParseError):
		return f"Error: manifest parse failed for {name}: {outcome.reason}"
	if isinstance(outcome, FetchNoCommits):
		if outcome.since is None:
			return f"No commits found for {name}; skipping"
		return f"No commits since {outcome.since.isoformat()} for {name}; skipping"
	if isinstance(outcome, FetchTransportError):
		return f"Error fetching info for {name}: {outcome.cause}"
	return f"Fetched {name}"
