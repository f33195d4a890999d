"""Context document preparation."""
from .markdown import (
    Section,
    extract_markdown_sections,
    process_document_for_agents,
    text_to_markdown,
)
