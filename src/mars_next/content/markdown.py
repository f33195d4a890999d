"""
Plain-text to markdown conversion for context documents.

Context documents are uploaded as loose text. Before they are handed to
agents they are normalised into markdown so headings and code survive
prompt assembly:

  text_to_markdown()            heuristic conversion (headings, code, links)
  extract_markdown_sections()   split markdown on headings
  process_document_for_agents() convert + rebuild, ready for a prompt
"""

import re
from dataclasses import dataclass

SETEXT_H1 = re.compile(r"^=+$")
SETEXT_H2 = re.compile(r"^-+$")
ATX_HEADING = re.compile(r"^#+ ")
NUMBERED_ITEM = re.compile(r"^\d+\.\s+")
BULLET_ITEM = re.compile(r"^[*\-+]\s+")
INDENTED = re.compile(r"^ {4,}\S")
CODE_RUN = re.compile(r"(\n {4,}[^\n]+)+")
BARE_URL = re.compile(r"(\s|^)(https?://\S+)")
HEADING_LINE = re.compile(r"^#+\s+(.+)$")

CAPS_HEADING_MIN = 10
CAPS_HEADING_MAX = 80


@dataclass
class Section:
    title: str
    content: str


def _is_caps_heading(line: str) -> bool:
    return (
        CAPS_HEADING_MIN < len(line) < CAPS_HEADING_MAX
        and line.upper() == line
        and any(c.isalpha() for c in line)
    )


def _convert_line(line: str) -> str:
    if not line.strip():
        return line
    if ATX_HEADING.match(line) or NUMBERED_ITEM.match(line) or BULLET_ITEM.match(line):
        return line
    if INDENTED.match(line):
        return line
    if _is_caps_heading(line):
        return f"## {line}"
    if len(line) > 1:
        return line + "\n"
    return line


def _fence_code(match: re.Match) -> str:
    body = match.group(0).replace("\n    ", "\n")
    return "\n```" + body + "\n```\n"


def text_to_markdown(text: str) -> str:
    """
    Convert plain text to markdown with a few conservative heuristics.

      - a line underlined with ===== becomes "# line", with ----- becomes "## line"
      - short ALL-CAPS lines become "## LINE"
      - list items and existing headings are left alone
      - prose lines get a trailing blank line (paragraph break)
      - runs of lines indented 4+ spaces become fenced code blocks
      - bare http(s) URLs become [url](url) links
    """
    if not text:
        return ""

    lines = text.split("\n")
    for i in range(len(lines) - 1):
        if lines[i] and lines[i + 1]:
            if SETEXT_H1.match(lines[i + 1]):
                lines[i] = f"# {lines[i]}"
                lines[i + 1] = ""
            elif SETEXT_H2.match(lines[i + 1]):
                lines[i] = f"## {lines[i]}"
                lines[i + 1] = ""

    markdown = "\n".join(_convert_line(line) for line in lines)
    if markdown.startswith("    "):
        markdown = "\n" + markdown
    markdown = CODE_RUN.sub(_fence_code, markdown)
    markdown = BARE_URL.sub(lambda m: f"{m.group(1)}[{m.group(2)}]({m.group(2)})", markdown)
    return markdown


def extract_markdown_sections(markdown: str) -> list[Section]:
    """Split on headings. Text before the first heading becomes "Introduction"."""
    if not markdown:
        return []

    sections: list[Section] = []
    current: Section | None = None
    for line in markdown.split("\n"):
        heading = HEADING_LINE.match(line)
        if heading:
            if current:
                sections.append(current)
            current = Section(title=heading.group(1), content=line + "\n")
        elif current:
            current.content += line + "\n"
        else:
            current = Section(title="Introduction", content=line + "\n")

    if current:
        sections.append(current)
    return sections


def process_document_for_agents(content: str, fmt: str = "text") -> str:
    """Normalise a context document for inclusion in an agent prompt."""
    markdown = content if fmt == "markdown" else text_to_markdown(content)
    return "".join(f"{section.content}\n\n" for section in extract_markdown_sections(markdown))
