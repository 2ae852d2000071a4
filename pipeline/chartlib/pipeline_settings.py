import os

import yaml


DEFAULT_REPOSITORIES = [
	"https://github.com/facebook/react",
	"https://github.com/vuejs/vue",
	"https://github.com/angular/angular",
]
STRATEGIES = ("latest", "windowed")
TIMESTAMP_FIELDS = ("author", "committer")
GRANULARITIES = ("date", "datetime")
TOKEN_ENV_NAMES = ("GITHUB_TOKEN", "GH_TOKEN")


#============================================
def get_repo_root() -> str:
	"""
	Return repository root based on this module location.
	"""
	module_dir = os.path.dirname(os.path.abspath(__file__))
	pipeline_dir = os.path.dirname(module_dir)
	return os.path.dirname(pipeline_dir)


#============================================
def resolve_settings_path(path_text: str) -> str:
	"""
	Resolve settings path against cwd first, then repo root.
	"""
	if os.path.isabs(path_text):
		return path_text
	cwd_candidate = os.path.abspath(path_text)
	if os.path.isfile(cwd_candidate):
		return cwd_candidate
	repo_candidate = os.path.join(get_repo_root(), path_text)
	return os.path.abspath(repo_candidate)


#============================================
def load_settings(path_text: str) -> tuple[dict, str]:
	"""
	Load YAML settings dict and return it with resolved path.
	"""
	resolved_path = resolve_settings_path(path_text)
	if not os.path.isfile(resolved_path):
		return {}, resolved_path
	with open(resolved_path, "r", encoding="utf-8") as handle:
		data = yaml.safe_load(handle.read())
	if data is None:
		return {}, resolved_path
	if not isinstance(data, dict):
		raise RuntimeError(f"Settings file must contain a mapping: {resolved_path}")
	return data, resolved_path


#============================================
def get_nested_value(settings: dict, keys: list[str], default_value):
	"""
	Read nested mapping value by key path.
	"""
	current = settings
	for key in keys:
		if not isinstance(current, dict):
			return default_value
		if key not in current:
			return default_value
		current = current[key]
	return current


#============================================
def get_setting_str(settings: dict, keys: list[str], default_value: str) -> str:
	"""
	Read a string setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	return str(value).strip()


#============================================
def get_setting_int(settings: dict, keys: list[str], default_value: int) -> int:
	"""
	Read an integer setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	try:
		return int(value)
	except ValueError as error:
		raise RuntimeError(f"Invalid integer for setting path {'.'.join(keys)}: {value}") from error


#============================================
def get_setting_bool(settings: dict, keys: list[str], default_value: bool) -> bool:
	"""
	Read a boolean setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if isinstance(value, bool):
		return value
	if isinstance(value, str):
		text = value.strip().lower()
		if text in {"1", "true", "yes", "on"}:
			return True
		if text in {"0", "false", "no", "off"}:
			return False
		raise RuntimeError(f"Invalid boolean for setting path {'.'.join(keys)}: {value}")
	if isinstance(value, int):
		return value != 0
	if value is None:
		return default_value
	raise RuntimeError(f"Invalid boolean for setting path {'.'.join(keys)}: {value}")


#============================================
def get_setting_choice(
	settings: dict,
	keys: list[str],
	choices: tuple[str, ...],
	default_value: str,
) -> str:
	"""
	Read a string setting that must be one of a fixed set of choices.
	"""
	value = get_setting_str(settings, keys, default_value).lower()
	if not value:
		return default_value
	if value not in choices:
		raise RuntimeError(
			f"Invalid value for setting path {'.'.join(keys)}: {value} "
			+ f"(expected one of: {', '.join(choices)})"
		)
	return value


#============================================
def get_repository_urls(settings: dict) -> list[str]:
	"""
	Resolve configured repository URLs, falling back to the built-in list.
	"""
	value = get_nested_value(settings, ["chart", "repositories"], None)
	if value is None:
		return list(DEFAULT_REPOSITORIES)
	if not isinstance(value, list):
		raise RuntimeError("Invalid settings: chart.repositories must be a list.")
	urls = []
	for item in value:
		text = str(item or "").strip()
		if text:
			urls.append(text)
	return urls


#============================================
def get_fetch_strategy(settings: dict) -> str:
	return get_setting_choice(settings, ["chart", "strategy"], STRATEGIES, "latest")


#============================================
def get_timestamp_field(settings: dict) -> str:
	return get_setting_choice(
		settings,
		["chart", "timestamp_field"],
		TIMESTAMP_FIELDS,
		"author",
	)


#============================================
def get_chart_granularity(settings: dict, strategy: str) -> str:
	"""
	Resolve chart granularity; defaults follow the fetch strategy.
	"""
	default_value = "datetime" if strategy == "windowed" else "date"
	return get_setting_choice(
		settings,
		["chart", "granularity"],
		GRANULARITIES,
		default_value,
	)


#============================================
def get_github_token(settings: dict, environ=None) -> str:
	"""
	Resolve API token from settings, then the process environment.
	"""
	token = get_setting_str(settings, ["github", "token"], "")
	if token:
		return token
	env = os.environ if environ is None else environ
	for name in TOKEN_ENV_NAMES:
		value = (env.get(name, "") or "").strip()
		if value:
			return value
	return ""
