#!/usr/bin/env python3
import argparse
import os
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import rich.console

from chartlib import chart_renderer
from chartlib import github_client
from chartlib import metadata_fetcher
from chartlib import pipeline_settings
from chartlib import repo_resolver


DEFAULT_OUTPUT_PATH = "repo_versions_chart.md"
STYLE_ERROR = "bold red"
STYLE_INFO = "yellow"
RICH_CONSOLE = rich.console.Console()


#============================================
def log_step(message: str, style: str | None = None) -> None:
	"""
	Print one timestamped progress line.

	An explicit style wins; otherwise it is picked from the message text.
	"""
	now_text = datetime.now().strftime("%H:%M:%S")
	line = f"[repo_version_chart {now_text}] {message}"
	if style is None:
		lower = message.lower()
		style = "cyan"
		if ("failed" in lower) or ("error" in lower):
			style = STYLE_ERROR
		elif ("rate limit" in lower) or ("skipping" in lower) or ("unauthenticated" in lower):
			style = STYLE_INFO
		elif ("saved to" in lower) or ("collected" in lower):
			style = "green"
	RICH_CONSOLE.print(line, style=style, markup=False, highlight=False)


#============================================
def outcome_style(outcome) -> str:
	"""
	Map a failed fetch outcome to its log style: quiet repos are info.
	"""
	if isinstance(outcome, metadata_fetcher.FetchNoCommits):
		return STYLE_INFO
	return STYLE_ERROR


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Chart package versions and last commit times for GitHub repositories."
	)
	parser.add_argument(
		"--settings",
		default="settings.yaml",
		help="YAML settings path for defaults.",
	)
	parser.add_argument(
		"--output",
		default="",
		help=f"Markdown output path (falls back to settings.yaml then {DEFAULT_OUTPUT_PATH}).",
	)
	parser.add_argument(
		"--strategy",
		choices=pipeline_settings.STRATEGIES,
		default=None,
		help="Commit lookup: latest commit overall, or commits in the trailing window.",
	)
	parser.add_argument(
		"--granularity",
		choices=pipeline_settings.GRANULARITIES,
		default=None,
		help="Chart timestamp granularity (defaults from strategy).",
	)
	parser.add_argument(
		"--timestamp-field",
		dest="timestamp_field",
		choices=pipeline_settings.TIMESTAMP_FIELDS,
		default=None,
		help="Commit date to chart: author date or committer date.",
	)
	parser.add_argument(
		"--workers",
		type=int,
		default=0,
		help="Concurrent repository fetches (0 uses settings, default 1).",
	)
	args = parser.parse_args(argv)
	return args


#============================================
def resolve_references(repo_urls: list[str], strip_git_suffix: bool, log_fn) -> list:
	"""
	Resolve URLs to references, dropping the ones that do not match.
	"""
	references = []
	for url in repo_urls:
		reference = repo_resolver.parse_repo_url(url, strip_git_suffix=strip_git_suffix)
		if reference is None:
			log_fn(f"Skipping unrecognized repository URL: {url!r}", STYLE_INFO)
			continue
		references.append(reference)
	return references


#============================================
def collect_chart_records(
	repo_urls: list[str],
	fetcher: metadata_fetcher.MetadataFetcher,
	log_fn=log_step,
	workers: int = 1,
	strip_git_suffix: bool = True,
) -> list[chart_renderer.ChartRecord]:
	"""
	Resolve and fetch every repository; keep successes in input order.
	log_fn is called as log_fn(message, style).
	"""
	references = resolve_references(repo_urls, strip_git_suffix, log_fn)
	if workers > 1 and len(references) > 1:
		with ThreadPoolExecutor(max_workers=min(workers, len(references))) as executor:
			outcomes = list(executor.map(fetcher.fetch, references))
	else:
		outcomes = [fetcher.fetch(reference) for reference in references]

	records = []
	for outcome in outcomes:
		if not outcome.ok:
			log_fn(metadata_fetcher.describe_outcome(outcome), outcome_style(outcome))
			continue
		metadata = outcome.metadata
		records.append(
			chart_renderer.ChartRecord(
				label=outcome.reference.full_name,
				version=metadata.version,
				timestamp=metadata.timestamp,
			)
		)
	log_fn(f"Collected {len(records)} of {len(repo_urls)} repositories.", "green")
	return records


#============================================
def write_chart_file(output_path: str, text: str) -> str:
	"""
	Overwrite the chart file and return its absolute path.
	"""
	path = os.path.abspath(output_path)
	output_dir = os.path.dirname(path)
	if output_dir:
		os.makedirs(output_dir, exist_ok=True)
	with open(path, "w", encoding="utf-8") as handle:
		handle.write(text)
	return path


#============================================
def run(args: argparse.Namespace, environ=None, client=None, clock=None) -> str:
	"""
	Run one fetch-and-render pass; return the written output path.
	"""
	settings, settings_path = pipeline_settings.load_settings(args.settings)
	log_step(f"Using settings file: {settings_path}")
	strategy = args.strategy or pipeline_settings.get_fetch_strategy(settings)
	timestamp_field = args.timestamp_field or pipeline_settings.get_timestamp_field(settings)
	granularity = args.granularity or pipeline_settings.get_chart_granularity(settings, strategy)
	page_size = pipeline_settings.get_setting_int(
		settings,
		["chart", "page_size"],
		metadata_fetcher.DEFAULT_PAGE_SIZE,
	)
	workers = args.workers or pipeline_settings.get_setting_int(settings, ["chart", "workers"], 1)
	output_path = (
		args.output.strip()
		or pipeline_settings.get_setting_str(settings, ["chart", "output"], "")
		or DEFAULT_OUTPUT_PATH
	)
	repo_urls = pipeline_settings.get_repository_urls(settings)
	log_step(
		f"Strategy: {strategy}; timestamp field: {timestamp_field}; "
		+ f"granularity: {granularity}; repositories: {len(repo_urls)}"
	)

	if client is None:
		token = pipeline_settings.get_github_token(settings, environ)
		if token:
			log_step("Using authenticated GitHub API mode.")
		else:
			log_step("Using unauthenticated GitHub API mode (lower rate limit).")
		client = github_client.GitHubClient(
			token,
			log_fn=log_step,
			timeout_seconds=pipeline_settings.get_setting_int(
				settings,
				["github", "timeout_seconds"],
				github_client.DEFAULT_TIMEOUT_SECONDS,
			),
			per_page=1 if strategy == metadata_fetcher.STRATEGY_LATEST else page_size,
		)
	fetcher = metadata_fetcher.MetadataFetcher(
		client,
		strategy=strategy,
		timestamp_field=timestamp_field,
		manifest_path=pipeline_settings.get_setting_str(
			settings,
			["chart", "manifest_path"],
			metadata_fetcher.DEFAULT_MANIFEST_PATH,
		),
		window_days=pipeline_settings.get_setting_int(
			settings,
			["chart", "window_days"],
			metadata_fetcher.DEFAULT_WINDOW_DAYS,
		),
		page_size=page_size,
		clock=clock or metadata_fetcher.utc_now,
		log_fn=log_step,
	)

	records = collect_chart_records(
		repo_urls,
		fetcher,
		log_fn=log_step,
		workers=workers,
		strip_git_suffix=pipeline_settings.get_setting_bool(
			settings,
			["chart", "strip_git_suffix"],
			True,
		),
	)
	chart_text = chart_renderer.render_chart(
		records,
		granularity=granularity,
		title=pipeline_settings.get_setting_str(
			settings,
			["chart", "title"],
			chart_renderer.DEFAULT_TITLE,
		),
	)
	written_path = write_chart_file(output_path, chart_text)
	log_step(f"Chart generated and saved to {written_path}")
	if hasattr(client, "api_usage_snapshot"):
		usage = client.api_usage_snapshot()
		log_step(f"GitHub API usage: calls={usage.get('api_call_count', 0)}")
	return written_path


#============================================
def main(argv: list[str] | None = None) -> int:
	"""
	Run the chart pipeline and map unhandled failures to exit status 1.
	"""
	args = parse_args(argv)
	try:
		run(args)
	except Exception as error:
		log_step(f"Run failed: {error}")
		RICH_CONSOLE.print_exception()
		return 1
	return 0


if __name__ == "__main__":
	sys.exit(main())
