"""Repository identifier extraction from URL-like strings.

Grammar: the host ``github.com`` or ``www.github.com``, at the start of the
string or right after ``/`` or ``@``, then ``/<owner>/<name>``. Other
subdomains (``gist.``, ``api.``) and look-alike hosts (``notgithub.com``)
do not match. A segment is any run of characters other than ``/``, ``?``,
``#`` and whitespace, so trailing slashes, deeper paths, query strings and
fragments after the name are ignored.
"""

# Standard Library
import re
from dataclasses import dataclass


REPO_URL_RE = re.compile(r"(?:^|[/@])(?:www\.)?github\.com/([^/?#\s]+)/([^/?#\s]+)")
GIT_SUFFIX = ".git"


#============================================
@dataclass(frozen=True)
class RepositoryReference:
	owner: str
	name: str

	@property
	def full_name(self) -> str:
		return f"{self.owner}/{self.name}"


#============================================
def parse_repo_url(url, strip_git_suffix: bool = True) -> RepositoryReference | None:
	"""Extract owner and name from a repository URL.

	Args:
		url: Any value; only strings containing the host marker can match.
		strip_git_suffix: Remove a trailing ``.git`` from the name.

	Returns:
		RepositoryReference, or None when the pattern does not match.
	"""
	if not isinstance(url, str):
		return None
	match = REPO_URL_RE.search(url.strip())
	if match is None:
		return None
	owner = match.group(1)
	name = match.group(2)
	if strip_git_suffix and name.endswith(GIT_SUFFIX):
		name = name[: -len(GIT_SUFFIX)]
	if not owner or not name:
		return None
	return RepositoryReference(owner=owner, name=name)
