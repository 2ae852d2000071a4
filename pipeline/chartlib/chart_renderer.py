"""Mermaid gantt rendering for repository version milestones."""

# Standard Library
from dataclasses import dataclass
from datetime import datetime
from datetime import timezone


DEFAULT_TITLE = "Repository Versions and Last Commit Times"
GRANULARITY_DATE = "date"
GRANULARITY_DATETIME = "datetime"

# granularity -> (strftime pattern, mermaid dateFormat, axisFormat, duration)
GRANULARITY_FORMATS = {
	GRANULARITY_DATE: ("%Y-%m-%d", "YYYY-MM-DD", None, "1d"),
	GRANULARITY_DATETIME: ("%Y-%m-%d %H:%M:%S", "YYYY-MM-DD HH:mm:ss", "%m-%d %H:%M", "1s"),
}


#============================================
@dataclass(frozen=True)
class ChartRecord:
	label: str
	version: str
	timestamp: str


#============================================
def get_granularity_format(granularity: str) -> tuple:
	if granularity not in GRANULARITY_FORMATS:
		raise ValueError(f"Unknown chart granularity: {granularity}")
	return GRANULARITY_FORMATS[granularity]


#============================================
def parse_timestamp(text: str) -> datetime | None:
	"""
	Parse an ISO timestamp string into UTC; None when unparseable.
	"""
	value = (text or "").strip()
	if not value:
		return None
	try:
		parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
	except ValueError:
		return None
	if parsed.tzinfo is None:
		return parsed.replace(tzinfo=timezone.utc)
	return parsed.astimezone(timezone.utc)


#============================================
def format_timestamp(text: str, granularity: str = GRANULARITY_DATE) -> str:
	"""
	Reformat a timestamp to the chart pattern; unparseable text passes through.
	"""
	pattern = get_granularity_format(granularity)[0]
	parsed = parse_timestamp(text)
	if parsed is None:
		return text
	return parsed.strftime(pattern)


#============================================
def single_line(text: str) -> str:
	"""
	Collapse whitespace runs, including newlines, to one space.
	"""
	return " ".join(str(text).split())


#============================================
def render_milestone_line(record: ChartRecord, granularity: str = GRANULARITY_DATE) -> str:
	duration = get_granularity_format(granularity)[3]
	formatted = single_line(format_timestamp(record.timestamp, granularity))
	label = single_line(record.label)
	version = single_line(record.version)
	return f"  {label} v{version} : milestone, {formatted}, {duration}"


#============================================
def render_header(granularity: str = GRANULARITY_DATE, title: str = DEFAULT_TITLE) -> str:
	"""
	Build the fenced gantt preamble ending with one blank separator line.
	"""
	_, date_format, axis_format, _ = get_granularity_format(granularity)
	lines = [
		"```mermaid",
		"gantt",
		f"  dateFormat  {date_format}",
	]
	if axis_format:
		lines.append(f"  axisFormat  {axis_format}")
	lines.append(f"  title {title}")
	return "\n".join(lines) + "\n\n"


#============================================
def render_chart(
	records: list[ChartRecord],
	granularity: str = GRANULARITY_DATE,
	title: str = DEFAULT_TITLE,
) -> str:
	"""Render records as one Mermaid gantt document.

	Args:
		records: Chart records in display order.
		granularity: "date" (YYYY-MM-DD, 1d) or "datetime" (UTC seconds, 1s).
		title: Chart title line text.

	Returns:
		The fenced chart text. Output depends only on the arguments.
	"""
	header = render_header(granularity, title)
	body = "\n".join(render_milestone_line(record, granularity) for record in records)
	return header + body + "\n```\n"
