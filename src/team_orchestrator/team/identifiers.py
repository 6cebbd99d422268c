"""Identifier, path, and name normalization shared across the team modules."""

import re
from pathlib import PurePosixPath, PureWindowsPath
from typing import Iterable

from ..errors import TeamValidationError

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def validate_simple_identifier(value: str, field_name: str) -> str:
	"""
	Trim and validate a path-safe identifier.

	Raises:
		TeamValidationError: blank, or contains '/', '\\' or '..'
	"""
	trimmed = (value or "").strip()
	if not trimmed:
		raise TeamValidationError(f"{field_name} is required.")

	if "/" in trimmed or "\\" in trimmed or ".." in trimmed:
		raise TeamValidationError(
			f"{field_name} must not contain path separators or traversal segments."
		)

	return trimmed


def validate_relative_path(path: str, field_name: str, allow_empty: bool = False) -> PurePosixPath:
	"""
	Validate a user-supplied relative path.

	Only plain name components are allowed: no absolute markers, drive
	letters, backslashes, '.' or '..'. An empty path is the root when
	allow_empty is set.
	"""
	trimmed = (path or "").strip()
	if not trimmed:
		if allow_empty:
			return PurePosixPath()
		raise TeamValidationError(f"{field_name} is required.")

	if trimmed.startswith("/") or PureWindowsPath(trimmed).is_absolute() or PureWindowsPath(trimmed).drive:
		raise TeamValidationError(f"{field_name} must be a relative path.")

	if "\\" in trimmed:
		raise TeamValidationError(
			f"{field_name} must not contain traversal segments or absolute path markers."
		)

	# Empty parts from repeated or trailing slashes collapse away
	for part in trimmed.split("/"):
		if part in (".", ".."):
			raise TeamValidationError(
				f"{field_name} must not contain traversal segments or absolute path markers."
			)

	return PurePosixPath(trimmed)


def normalize_tool_subset(values: Iterable[str]) -> list[str]:
	"""Trim, lowercase, drop blanks and de-duplicate, keeping first-seen order."""
	result: list[str] = []
	seen: set[str] = set()
	for raw in values:
		normalized = str(raw).strip().lower()
		if not normalized or normalized in seen:
			continue
		seen.add(normalized)
		result.append(normalized)
	return result


def normalize_artifact_tags(tags: Iterable[str]) -> list[str]:
	"""Trim, drop blanks, sort case-insensitively and drop case-insensitive duplicates."""
	trimmed = [str(tag).strip() for tag in tags]
	ordered = sorted((tag for tag in trimmed if tag), key=str.lower)
	result: list[str] = []
	for tag in ordered:
		if result and result[-1].lower() == tag.lower():
			continue
		result.append(tag)
	return result


def sanitize_filename(raw: str, fallback: str) -> str:
	"""
	Reduce a free-form name to a safe leaf filename.

	Keeps only the last path component, maps anything outside
	[A-Za-z0-9._-] to '-', collapses runs of '-', strips leading/trailing
	'.' and '-', and defaults the extension to .md.
	"""
	leaf = re.split(r"[\\/]", (raw or "").strip())[-1].strip()
	if not leaf:
		return fallback

	normalized = _UNSAFE_FILENAME_CHARS.sub("-", leaf)
	while "--" in normalized:
		normalized = normalized.replace("--", "-")

	normalized = normalized.strip(".-")
	if not normalized:
		return fallback

	if "." not in normalized:
		normalized += ".md"

	return normalized
