"""Download naming for exported lesson documents."""

from __future__ import annotations

import re
from datetime import date

DEFAULT_EXPORT_TITLE = "Interactive_Lesson"
EXPORT_SUFFIX = "sway"

_TITLE_PATTERN = re.compile(r"<title>(.*?)</title>", re.IGNORECASE)
# Characters that are not portable in file names.
_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')


def build_download_filename(html: str, today: date | None = None) -> str:
  """Derive `{title}-sway-{MM.DD.YY}.html` from the document's first title element."""
  match = _TITLE_PATTERN.search(html)
  title = match.group(1) if match else DEFAULT_EXPORT_TITLE
  title = _UNSAFE_FILENAME_CHARS.sub("-", title).strip()
  stamp = (today or date.today()).strftime("%m.%d.%y")
  return f"{title}-{EXPORT_SUFFIX}-{stamp}.html"
