#!/usr/bin/env python3
"""
Tutorial document loading.

A document is a mapping (usually YAML or JSON) of title, dataset
declarations and ordered sections with embedded exercises. Markdown
documents with YAML front matter are converted into the same mapping.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import yaml

from ..errors import LoadError
from .datasets import DatasetContext
from .state import ExerciseBlock, Section

logger = logging.getLogger(__name__)

CONTENT_PACKAGE = 'vistutor.content'
DOCUMENT_SUFFIXES = ('.yaml', '.yml', '.json', '.md')

HEADING_RE = re.compile(r'^##\s+(?P<title>.+?)(?:\s+\{#(?P<id>[\w-]+)\})?\s*$')
FENCE_RE = re.compile(r'^```\s*python\s+(?P<role>exercise|hint|solution)=(?P<id>[\w-]+)\s*$')
NARRATIVE_FENCE_RE = re.compile(r'^(?P<marker>`{3,}|~{3,})')
FRONT_MATTER_RE = re.compile(r'\A---\s*\n(?P<meta>.*?)\n---\s*\n', re.DOTALL)


@dataclass
class Document:
    """A loaded tutorial: ordered sections plus the shared datasets"""
    title: str
    sections: List[Section]
    datasets: DatasetContext
    description: str = ''
    progressive: bool = True
    allow_skip: bool = False
    setup: str = ''
    source: Optional[str] = None
    _exercise_index: Dict[str, ExerciseBlock] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        self._exercise_index = {
            exercise.id: exercise
            for section in self.sections
            for exercise in section.exercises
        }

    @property
    def section_ids(self) -> List[str]:
        return [section.id for section in self.sections]

    def get_section(self, section_id: str) -> Optional[Section]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def next_section(self, section_id: str) -> Optional[Section]:
        """The section after section_id, or None at the end"""
        ids = self.section_ids
        index = ids.index(section_id)
        if index + 1 < len(ids):
            return self.sections[index + 1]
        return None

    def get_exercise(self, exercise_id: str) -> Optional[ExerciseBlock]:
        return self._exercise_index.get(exercise_id)

    def exercises(self) -> Iterator[ExerciseBlock]:
        for section in self.sections:
            yield from section.exercises


def _slugify(text: str) -> str:
    slug = re.sub(r'[^a-z0-9]+', '-', text.lower()).strip('-')
    return slug or 'section'


def _text(raw: Dict, key: str, default: str = '') -> str:
    value = raw.get(key, default)
    if value is None:
        return default
    if not isinstance(value, (str, int, float)):
        raise LoadError(f"Field '{key}' must be text, got {type(value).__name__}")
    return str(value)


def _dataset_declarations(raw: Any) -> Dict[str, str]:
    """Normalize `datasets` into name -> source"""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise LoadError("'datasets' must be a mapping of name to source")
    declarations = {}
    for name, value in raw.items():
        if isinstance(value, dict):
            value = value.get('source')
        if not value:
            raise LoadError(f"Dataset '{name}' has no source")
        declarations[str(name)] = str(value)
    return declarations


def _exercise_from_dict(section_id: str, index: int, raw: Any, declared: Dict[str, str]) -> ExerciseBlock:
    if isinstance(raw, str):
        raw = {'code': raw}
    if not isinstance(raw, dict):
        raise LoadError(f"Exercise {index + 1} in section '{section_id}' must be a mapping")

    exercise_id = _text(raw, 'id') or f"{section_id}-{index + 1}"
    references = raw.get('datasets') or []
    if isinstance(references, str):
        references = [references]
    references = [str(name) for name in references]
    for name in references:
        if name not in declared:
            raise LoadError(f"Exercise '{exercise_id}' references undeclared dataset '{name}'")

    return ExerciseBlock(
        id=exercise_id,
        section_id=section_id,
        default_code=_text(raw, 'code').rstrip('\n'),
        hint=_text(raw, 'hint') or None,
        solution=_text(raw, 'solution') or None,
        datasets=references,
    )


def _section_from_dict(position: int, raw: Any, declared: Dict[str, str]) -> Section:
    if not isinstance(raw, dict):
        raise LoadError(f"Section {position + 1} must be a mapping")
    title = _text(raw, 'title').strip()
    if not title:
        raise LoadError(f"Section {position + 1} has no title")
    section_id = _text(raw, 'id').strip() or _slugify(title)

    exercises_raw = raw.get('exercises') or []
    if not isinstance(exercises_raw, list):
        raise LoadError(f"'exercises' in section '{section_id}' must be a list")

    return Section(
        id=section_id,
        title=title,
        position=position,
        narrative=_text(raw, 'narrative') or _text(raw, 'content'),
        exercises=[
            _exercise_from_dict(section_id, index, item, declared)
            for index, item in enumerate(exercises_raw)
        ],
    )


def _validate_unique_ids(sections: List[Section]):
    """Section ids and exercise ids must each be unique across the document"""
    seen_sections = set()
    seen_exercises: Dict[str, str] = {}
    for section in sections:
        if section.id in seen_sections:
            raise LoadError(f"Duplicate section id: {section.id}")
        seen_sections.add(section.id)
        for exercise in section.exercises:
            previous = seen_exercises.get(exercise.id)
            if previous is not None:
                raise LoadError(f"Duplicate exercise id: {exercise.id} (in {previous} and {section.id})")
            seen_exercises[exercise.id] = section.id


def load_document(spec: Any, base_dir: Optional[Path] = None, datasets: Optional[DatasetContext] = None) -> Document:
    """
    Build a Document from a parsed specification.

    Args:
        spec: Mapping with title, datasets and sections
        base_dir: Directory relative dataset paths resolve against
        datasets: Pre-loaded dataset context (skips dataset loading)

    Raises:
        LoadError: If the specification is malformed
    """
    if not isinstance(spec, dict):
        raise LoadError("Document specification must be a mapping")

    title = _text(spec, 'title').strip()
    if not title:
        raise LoadError("Document has no title")

    declared = _dataset_declarations(spec.get('datasets'))

    sections_raw = spec.get('sections')
    if not isinstance(sections_raw, list) or not sections_raw:
        raise LoadError("Document must contain a non-empty list of sections")
    sections = [_section_from_dict(position, raw, declared) for position, raw in enumerate(sections_raw)]
    _validate_unique_ids(sections)

    if datasets is None:
        datasets = DatasetContext.from_declarations(declared, base_dir)
    else:
        missing = [name for name in declared if name not in datasets]
        if missing:
            raise LoadError(f"Dataset context is missing: {', '.join(missing)}")

    document = Document(
        title=title,
        sections=sections,
        datasets=datasets,
        description=_text(spec, 'description'),
        progressive=bool(spec.get('progressive', True)),
        allow_skip=bool(spec.get('allow_skip', False)),
        setup=_text(spec, 'setup'),
    )
    logger.info(
        "Loaded document '%s': %d sections, %d exercises, %d datasets",
        title, len(sections), len(list(document.exercises())), len(datasets),
    )
    return document


def parse_markdown(text: str) -> Dict:
    """
    Convert a Markdown tutorial into a document mapping.

    YAML front matter holds document fields. Each `## Title {#id}` heading
    starts a section; fenced blocks tagged `python exercise=<id>`,
    `python hint=<id>` or `python solution=<id>` become exercise fields.
    Anything else is narrative, including other fenced blocks, whose
    lines are never read as headings.
    """
    spec: Dict[str, Any] = {}
    match = FRONT_MATTER_RE.match(text)
    if match:
        try:
            meta = yaml.safe_load(match.group('meta')) or {}
        except yaml.YAMLError as e:
            raise LoadError(f"Invalid front matter: {e}") from e
        if not isinstance(meta, dict):
            raise LoadError("Front matter must be a mapping")
        spec.update(meta)
        text = text[match.end():]

    sections: List[Dict] = []
    preamble: List[str] = []
    current: Optional[Dict] = None
    narrative: List[str] = preamble
    fence: Optional[Dict] = None
    narrative_fence: Optional[str] = None

    for line in text.splitlines():
        if narrative_fence is not None:
            narrative.append(line)
            stripped = line.strip()
            if stripped.startswith(narrative_fence) and not stripped.strip(narrative_fence[0]):
                narrative_fence = None
            continue

        if fence is not None:
            if line.strip() == '```':
                _attach_fence(current, fence)
                fence = None
            else:
                fence['lines'].append(line)
            continue

        fence_match = FENCE_RE.match(line.strip())
        if fence_match:
            if current is None:
                raise LoadError(f"Exercise '{fence_match.group('id')}' appears before the first section")
            fence = {'role': fence_match.group('role'), 'id': fence_match.group('id'), 'lines': []}
            continue

        other_fence = NARRATIVE_FENCE_RE.match(line.strip())
        if other_fence:
            narrative_fence = other_fence.group('marker')
            narrative.append(line)
            continue

        heading = HEADING_RE.match(line)
        if heading:
            if current is not None:
                current['narrative'] = '\n'.join(narrative).strip()
            current = {'title': heading.group('title').strip(), 'exercises': []}
            if heading.group('id'):
                current['id'] = heading.group('id')
            sections.append(current)
            narrative = []
            continue

        narrative.append(line)

    if fence is not None:
        raise LoadError(f"Unclosed code block for '{fence['id']}'")
    if narrative_fence is not None:
        raise LoadError("Unclosed code block in narrative")
    if current is not None:
        current['narrative'] = '\n'.join(narrative).strip()

    spec.setdefault('description', '\n'.join(preamble).strip())
    spec['sections'] = sections
    return spec


def _attach_fence(section: Dict, fence: Dict):
    """Merge a fenced block into its exercise"""
    code = '\n'.join(fence['lines'])
    exercise = next((item for item in section['exercises'] if item['id'] == fence['id']), None)
    if exercise is None:
        if fence['role'] != 'exercise':
            raise LoadError(f"{fence['role'].title()} for unknown exercise '{fence['id']}'")
        exercise = {'id': fence['id']}
        section['exercises'].append(exercise)
    key = 'code' if fence['role'] == 'exercise' else fence['role']
    exercise[key] = code


def _parse_text(text: str, suffix: str, source: str) -> Dict:
    if suffix == '.md':
        return parse_markdown(text)
    try:
        if suffix == '.json':
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise LoadError(f"Could not parse {source}: {e}") from e


def load_document_file(path: Union[str, Path], **kwargs) -> Document:
    """Load a document from a .yaml/.yml/.json/.md file"""
    path = Path(path).expanduser()
    if not path.is_file():
        raise LoadError(f"Document not found: {path}")
    suffix = path.suffix.lower()
    if suffix not in DOCUMENT_SUFFIXES:
        raise LoadError(f"Unsupported document type '{suffix}'. Use one of {', '.join(DOCUMENT_SUFFIXES)}")
    spec = _parse_text(path.read_text(encoding='utf-8-sig'), suffix, str(path))
    document = load_document(spec, base_dir=path.parent, **kwargs)
    document.source = str(path)
    return document


def list_builtin_documents() -> List[str]:
    """Names of the tutorials bundled with the package"""
    names = []
    for entry in resources.files(CONTENT_PACKAGE).iterdir():
        name = entry.name
        for suffix in DOCUMENT_SUFFIXES:
            if name.endswith(suffix):
                names.append(name[:-len(suffix)])
    return sorted(names)


def load_builtin_document(name: str, **kwargs) -> Document:
    """Load a bundled tutorial by name"""
    for suffix in DOCUMENT_SUFFIXES:
        entry = resources.files(CONTENT_PACKAGE) / f"{name}{suffix}"
        if entry.is_file():
            spec = _parse_text(entry.read_text(encoding='utf-8'), suffix, name)
            document = load_document(spec, **kwargs)
            document.source = f"builtin:{name}"
            return document
    raise LoadError(f"Unknown tutorial '{name}'. Available: {', '.join(list_builtin_documents())}")


def resolve_document(target: str, **kwargs) -> Document:
    """Load a bundled tutorial name or a document path"""
    if target.startswith('builtin:'):
        return load_builtin_document(target[len('builtin:'):], **kwargs)
    if Path(target).expanduser().exists() or Path(target).suffix.lower() in DOCUMENT_SUFFIXES:
        return load_document_file(target, **kwargs)
    return load_builtin_document(target, **kwargs)
