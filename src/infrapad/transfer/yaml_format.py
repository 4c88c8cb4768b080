"""
YAML rendering of project documents.

PyYAML writes multi-line strings as double-quoted scalars full of ``\\n``
escapes, which makes notes unreadable for someone opening the archive by
hand. ``fix_multiline_strings`` rewrites those scalars as literal blocks.
"""

import logging
import re
from typing import List, Optional

import yaml
from pydantic import ValidationError

from infrapad.schemas.transfer import ProjectSchema
from infrapad.transfer.errors import DocumentFormatError

logger = logging.getLogger(__name__)

# <indentation><field name>"<double-quoted contents>"
_QUOTED_FIELD = re.compile(r'^(\s*)([^\s"][^"\n]*)"([^\n]+)"$')
# a field opening a block scalar: "key: |", "- key: |2-", "key: >+"...
_BLOCK_HEADER = re.compile(r'^(\s*)((?:-\s+)*)[^\s].*:\s*[|>][0-9]*[-+]?[0-9]*$')
_DASH_PREFIX = re.compile(r'^(?:-\s+)*')
_ESCAPE = re.compile(r'\\(.)')
_SIMPLE_ESCAPES = {'"': '"', '\\': '\\', 't': '\t'}
_INDENT_STEP = 2


class _DocumentDumper(yaml.SafeDumper):
    pass


_STR_TAG = "tag:yaml.org,2002:str"


def _represent_str(dumper, data):
    return dumper.represent_scalar(_STR_TAG, data, style='"')


def _represent_dict(dumper, data):
    # string values are always double-quoted, field names stay plain
    pairs = [
        (dumper.represent_scalar(_STR_TAG, key), dumper.represent_data(value))
        for key, value in data.items()
    ]
    return yaml.MappingNode("tag:yaml.org,2002:map", pairs, flow_style=False)


_DocumentDumper.add_representer(str, _represent_str)
_DocumentDumper.add_representer(dict, _represent_dict)


def dump_document(document: dict) -> str:
    """Serialize a document dict, keeping key order, with readable multi-line strings."""
    raw = yaml.dump(
        document,
        Dumper=_DocumentDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=float("inf"),
    )
    return fix_multiline_strings(raw)


def dump_project(project: ProjectSchema) -> str:
    return dump_document(project.to_document())


def load_project(text: str, source: str) -> ProjectSchema:
    """Parse and validate one project document; ``source`` names it in errors."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DocumentFormatError(source, str(e)) from e
    if not isinstance(data, dict):
        raise DocumentFormatError(source, "expected a mapping at the top level")
    try:
        return ProjectSchema.model_validate(data)
    except ValidationError as e:
        raise DocumentFormatError(source, str(e)) from e


def _split_escaped_lines(contents: str) -> Optional[List[str]]:
    """
    Unescape a double-quoted scalar body into its lines. Returns None when
    the body uses an escape a literal block cannot express (\\r, \\x..),
    in which case the scalar is left quoted.
    """
    lines = [""]
    pos = 0
    for match in _ESCAPE.finditer(contents):
        lines[-1] += contents[pos:match.start()]
        ch = match.group(1)
        if ch == "n":
            lines.append("")
        elif ch in _SIMPLE_ESCAPES:
            lines[-1] += _SIMPLE_ESCAPES[ch]
        else:
            return None
        pos = match.end()
    lines[-1] += contents[pos:]
    return lines


def _block_literal(indent: str, field: str, contents: str) -> Optional[str]:
    dashes = _DASH_PREFIX.match(field).group(0)
    if dashes == field:
        # bare sequence entries are never multi-line in a project document
        return None
    lines = _split_escaped_lines(contents)
    if lines is None:
        return None
    if lines[-1] == "":
        lines.pop()
        # more than one trailing newline must be kept explicitly
        chomping = "+" if lines and lines[-1] == "" else ""
    else:
        chomping = "-"
    key_column = len(indent) + len(dashes)
    content_indent = " " * (key_column + _INDENT_STEP)
    body = [content_indent + line if line else "" for line in lines]
    header = f"{indent}{field}|{_INDENT_STEP}{chomping}"
    return "\n".join([header] + body)


def fix_multiline_strings(raw_output: str) -> str:
    """
    Rewrite double-quoted scalars containing ``\\n`` as literal blocks with an
    explicit indentation indicator. Other lines are left untouched, and lines
    inside an existing block scalar are never rewritten, so running this
    twice gives the same text as running it once.
    """
    result = []
    block_column = None
    for line in raw_output.split("\n"):
        if block_column is not None:
            stripped = line.lstrip(" ")
            if not stripped or len(line) - len(stripped) > block_column:
                result.append(line)
                continue
            block_column = None

        header = _BLOCK_HEADER.match(line)
        if header:
            block_column = len(header.group(1)) + len(header.group(2))
            result.append(line)
            continue

        match = _QUOTED_FIELD.match(line)
        if match and "\\n" in match.group(3):
            indent, field, contents = match.groups()
            literal = _block_literal(indent, field, contents)
            if literal is not None:
                result.append(literal)
                block_column = len(indent) + len(_DASH_PREFIX.match(field).group(0))
                continue
        result.append(line)
    return "\n".join(result)
