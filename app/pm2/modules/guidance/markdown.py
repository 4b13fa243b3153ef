from __future__ import annotations

import re

_TABLE_BLOCK_RE = re.compile(r"(?:^(?:\||\+).*$)(?:\r?\n(?:\||\+).*$)*", re.MULTILINE)
_NEW_ITEM_RE = re.compile(r"^([-*•]|\d+\.)\s")
_UNDERLINE_RE = re.compile(r"\{\.?underline\}")
_BARE_LINK_RE = re.compile(r"\[(https?://[^\]]+)\](?!\()")
_URL_TEXT_LINK_RE = re.compile(r"\[(https?://[^\]]+)\]\(([^)]+)\)")
_BARE_URL_RE = re.compile(r"(?<![\[(])(https?://[^\s)<]+)(?![\])])")
_LINK_TARGET_RE = re.compile(r"\]\((https?://[^)]+)\)")
_PLACEHOLDER_RE = re.compile(r"%%%PH(\d+)%%%")
_TRAILING_PUNCT_RE = re.compile(r"[.,;:\s_]+$")

_WIDTH_ATTR_RE = re.compile(r"\{width=.*?\}")
_HEIGHT_ATTR_RE = re.compile(r"\{height=.*?\}")
_FIG_CAPTION_RE = re.compile(r"\*\*\s*Fig\.?\s+(\d+)[._](\d+)\s*\*\*")
_FIG_CAPTION_SPACING_RE = re.compile(r"(\*\*Fig\s+\d+\.\d+\*\*)(?!\s)")
_FIG_EXTRA_STARS_RE = re.compile(r"\*{3,}Fig")
_FIG_TRAILING_STARS_RE = re.compile(r"\d+\*{3,}")

_FIGURE_IMAGE_RE = re.compile(
    r"(?:>\s*)?!\[\]\((.*?)\)(?:\{.*?\})?((?:(?!\[\])[\s\S]){0,1000}?)(?:>\s*)*\*\*Fig\s+(\d+)[._](\d+)",
    re.IGNORECASE,
)

FIGURES_URL_PREFIX = "/pm2/figures"


def _merge_cell(lines: list[str]) -> str:
    """
    Join the wrapped lines of one grid-table cell. Continuation lines are
    joined with a space, new list items with <br>.
    """
    content = [ln.strip() for ln in lines if ln.strip()]
    merged = ""
    for j, raw in enumerate(content):
        line = re.sub(r"^>\s*", "", raw)
        line = re.sub(r"(\*\*|__)", "", line)
        if j == 0:
            merged = line
        elif _NEW_ITEM_RE.match(line):
            merged += "<br>" + line
        else:
            merged += " " + line
    return merged


def _convert_table(match: re.Match) -> str:
    block = match.group(0)
    rows: list[tuple[list[str], bool]] = []
    buffer: list[list[str]] = []

    for raw in re.split(r"\r?\n", block):
        line = raw.strip()
        if line.startswith("+"):
            if buffer:
                col_count = len(buffer[0])
                cells = [_merge_cell([r[c] if c < len(r) else "" for r in buffer]) for c in range(col_count)]
                rows.append((cells, "=" in line))
                buffer = []
        elif line.startswith("|"):
            buffer.append(line.split("|")[1:-1])

    if not rows:
        return block

    header = rows[0][0]
    out = "| " + " | ".join(header) + " |\n"
    out += "| " + " | ".join("---" for _ in header) + " |\n"
    for cells, _ in rows[1:]:
        out += "| " + " | ".join(cells) + " |\n"
    return out


def convert_ascii_tables(text: str) -> str:
    """Rewrite +---+ / |...| grid tables as pipe tables; the first row is the header."""
    return _TABLE_BLOCK_RE.sub(_convert_table, text)


def _trim_url(url: str) -> str:
    return _TRAILING_PUNCT_RE.sub("", url.strip())


def markdown_clean(text: str) -> str:
    """
    Repair markdown produced by document conversion: grid tables,
    {underline} spans, bracketed and bare URLs.
    """
    placeholders: list[str] = []

    def _protect(m: re.Match) -> str:
        placeholders.append(m.group(1))
        return f"](%%%PH{len(placeholders) - 1}%%%)"

    text = convert_ascii_tables(text)
    text = _UNDERLINE_RE.sub("", text)
    text = _BARE_LINK_RE.sub(lambda m: f"[{_trim_url(m.group(1))}]({_trim_url(m.group(1))})", text)
    text = _URL_TEXT_LINK_RE.sub(lambda m: f"[{_trim_url(m.group(1))}]({m.group(2)})", text)
    text = _BARE_URL_RE.sub(r"[\1](\1)", text)
    text = _LINK_TARGET_RE.sub(_protect, text)
    return _PLACEHOLDER_RE.sub(lambda m: placeholders[int(m.group(1))], text)


def clean_figure_markup(text: str) -> str:
    """Drop {width=}/{height=} attributes and normalise captions to **Fig X.Y** Caption."""
    text = _WIDTH_ATTR_RE.sub("", text)
    text = _HEIGHT_ATTR_RE.sub("", text)
    text = _FIG_CAPTION_RE.sub(r"**Fig \1.\2**", text)
    text = _FIG_CAPTION_SPACING_RE.sub(r"\1 ", text)
    text = _FIG_EXTRA_STARS_RE.sub("**Fig", text)
    return _FIG_TRAILING_STARS_RE.sub(lambda m: re.sub(r"\*{3,}", "**", m.group(0), count=1), text)


def remove_blockquotes(text: str) -> str:
    text = re.sub(r"^>\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"^>\n", "\n", text, flags=re.MULTILINE)
    return re.sub(r"\n>\s*", "\n", text)


def figure_url(major: str, minor: str) -> str:
    return f"{FIGURES_URL_PREFIX}/fig-{major}-{minor}.png"


def update_figure_paths(text: str) -> str:
    """
    Point each image that is followed (within 1000 characters, no other
    image in between) by a **Fig X.Y** caption at its extracted figure file.
    """

    def _repoint(m: re.Match) -> str:
        old_path = m.group(1)
        new_path = figure_url(m.group(3), m.group(4))
        if old_path == new_path:
            return m.group(0)
        return m.group(0).replace(old_path, new_path, 1)

    return _FIGURE_IMAGE_RE.sub(_repoint, text)
