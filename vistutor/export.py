#!/usr/bin/env python3
"""
Export a tutorial document, with its current outputs, as one HTML page.
"""

import base64
import html
import logging
from pathlib import Path
from typing import Optional, Union

from markdown_it import MarkdownIt

from .tutorial.document import Document
from .tutorial.state import ExerciseBlock, LearnerState, Output, OutputKind

logger = logging.getLogger(__name__)

TABLE_ROWS = 20

# same CommonMark parser rich uses for the terminal view; raw HTML is escaped
_MARKDOWN = MarkdownIt('commonmark', {'html': False})

PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ font-family: sans-serif; max-width: 960px; margin: 2em auto; line-height: 1.5; }}
pre.code {{ background: #f6f8fa; padding: 1em; overflow-x: auto; }}
pre.fault {{ background: #fdecea; color: #a4262c; padding: 1em; }}
.warning {{ color: #8a6d3b; }}
.output {{ margin: 1em 0 2em; }}
table.dataframe {{ border-collapse: collapse; }}
table.dataframe td, table.dataframe th {{ border: 1px solid #ddd; padding: 4px 8px; }}
</style>
</head>
<body>
<h1>{title}</h1>
{description}
{sections}
</body>
</html>
"""


def markdown_html(text: str) -> str:
    """Render narrative Markdown as HTML"""
    if not text.strip():
        return ''
    return _MARKDOWN.render(text)


def output_html(output: Output) -> str:
    """HTML fragment for one output"""
    parts = []
    if output.stdout and output.kind != OutputKind.TEXT:
        parts.append(f"<pre>{html.escape(output.stdout)}</pre>")
    if output.kind == OutputKind.TEXT:
        parts.append(f"<pre>{html.escape(output.value or '')}</pre>")
    elif output.kind == OutputKind.TABLE:
        parts.append(output.value.head(TABLE_ROWS).to_html(classes='dataframe', border=0))
    elif output.kind == OutputKind.IMAGE:
        encoded = base64.b64encode(output.value).decode('utf8')
        parts.append(f'<img alt="chart" src="data:image/png;base64,{encoded}">')
    else:
        parts.append(output.value.render())
    for warning in output.warnings:
        parts.append(f'<p class="warning">warning: {html.escape(warning)}</p>')
    return '<div class="output">\n' + '\n'.join(parts) + '\n</div>'


def exercise_html(exercise: ExerciseBlock) -> str:
    parts = [f'<pre class="code" id="{html.escape(exercise.id)}">{html.escape(exercise.code)}</pre>']
    if exercise.fault is not None:
        parts.append(f'<pre class="fault">{html.escape(exercise.fault.describe())}</pre>')
    if exercise.output is not None:
        parts.append(output_html(exercise.output))
    return '\n'.join(parts)


def document_html(document: Document, state: Optional[LearnerState] = None) -> str:
    """
    Render the document as a standalone page.

    Sections the learner has not unlocked are left out when a learner
    state is given.
    """
    sections = []
    for section in document.sections:
        if state is not None and not state.is_unlocked(section.id):
            continue
        body = [f'<h2 id="{html.escape(section.id)}">{html.escape(section.title)}</h2>']
        body.append(markdown_html(section.narrative))
        body.extend(exercise_html(exercise) for exercise in section.exercises)
        sections.append('<section>\n' + '\n'.join(body) + '\n</section>')

    return PAGE_TEMPLATE.format(
        title=html.escape(document.title),
        description=markdown_html(document.description),
        sections='\n'.join(sections),
    )


def export_document(document: Document, path: Union[str, Path], state: Optional[LearnerState] = None) -> Path:
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(document_html(document, state), encoding='utf-8')
    logger.info("Exported %s to %s", document.title, path)
    return path
