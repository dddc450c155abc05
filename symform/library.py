"""
Named pattern libraries for SYMFORM.

A library holds named patterns ("forms") loaded from a small DSL or JSON,
and reports which of them a given expression tree has the form of.

DSL Format (.forms files):
    # Comment
    @name: template
    @name "Description text": template

    [group]              - following forms are tagged with "group"
    []                   - following forms are untagged
    :include other.forms - load forms from another file

    Examples:
    [trig]
    @sin-double "Double angle": 2 * sin(TREE_x) * cos(TREE_x)
    @pythagoras: sin(TREE_x)^2 + cos(TREE_x)^2

    [algebra]
    @square-of-sum: (TREE_a + TREE_b)^2

JSON Format:
    {
        "name": "trig",
        "forms": [
            {"name": "pythagoras", "template": "sin(TREE_x)^2 + cos(TREE_x)^2",
             "description": "...", "tags": ["trig"]}
        ]
    }
"""

import json
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple, Union

from .expr import ExprType
from .pattern import Pattern
from .syntax import FORMATTERS, get_parser

logger = logging.getLogger(__name__)


class FormMetadata:
    """Metadata for a named form: name, description and group tags."""

    def __init__(self, name: str, description: Optional[str] = None,
                 tags: Optional[List[str]] = None):
        self.name = name
        self.description = description
        self.tags = tags or []

    def __repr__(self) -> str:
        base = f"@{self.name}"
        if self.description:
            base += f' "{self.description}"'
        if self.tags:
            base += f" [{', '.join(self.tags)}]"
        return base


def parse_form_line(line: str) -> Optional[Tuple[FormMetadata, str]]:
    """
    Parse a single form line.

    Formats:
        @name: template
        @name "description": template

    Returns: (metadata, template text) or None for blank and comment lines

    Raises:
        ValueError: If the line is not a form definition
    """
    line = line.strip()

    # Skip empty lines and comments
    if not line or line.startswith('#'):
        return None

    match_obj = re.match(r'@([\w-]+)\s+"([^"]+)":\s*(.+)', line)
    if match_obj:
        return FormMetadata(match_obj.group(1), match_obj.group(2)), match_obj.group(3).strip()

    match_obj = re.match(r'@([\w-]+):\s*(.+)', line)
    if match_obj:
        return FormMetadata(match_obj.group(1)), match_obj.group(2).strip()

    raise ValueError(f"Not a form definition: {line!r}")


def load_patterns_from_dsl(
    text: str,
    syntax: str = "infix",
    base_path: Optional[Path] = None,
    _included_files: Optional[set] = None
) -> List[Tuple[FormMetadata, Pattern]]:
    """
    Load named patterns from DSL text.

    Args:
        text: DSL text containing form definitions
        syntax: Syntax of the templates ("infix" or "sexpr")
        base_path: Base path for resolving relative :include paths
        _included_files: Files on the current include chain, for circular
            include detection

    Returns:
        List of (metadata, pattern) tuples in file order

    Raises:
        ValueError: On malformed lines (with line number) or circular includes
        FileNotFoundError: If an included file does not exist
    """
    parse = get_parser(syntax)
    forms = []
    current_group = None

    if _included_files is None:
        _included_files = set()

    for lineno, line in enumerate(text.split('\n'), 1):
        line_stripped = line.strip()

        # Group declaration: [groupname], or [] to end the current group
        if line_stripped.startswith('[') and line_stripped.endswith(']'):
            current_group = line_stripped[1:-1].strip() or None
            continue

        # Include directive: :include path
        if line_stripped.startswith(':include '):
            include_path_str = line_stripped[9:].strip()
            if base_path:
                include_path = base_path / include_path_str
            else:
                include_path = Path(include_path_str)

            abs_path = include_path.resolve()
            if abs_path in _included_files:
                raise ValueError(f"Circular include detected: {include_path}")
            if not include_path.exists():
                raise FileNotFoundError(f"Include file not found: {include_path}")

            # Only the chain of files being included counts, so siblings
            # may include the same file
            included = load_patterns_from_file(
                include_path, syntax=syntax, _included_files=_included_files | {abs_path}
            )
            for meta, _ in included:
                if current_group and not meta.tags:
                    meta.tags.append(current_group)
            forms.extend(included)
            continue

        try:
            result = parse_form_line(line)
            if result is None:
                continue
            metadata, template = result
            pattern = Pattern(parse(template))
        except ValueError as e:
            raise ValueError(f"line {lineno}: {e}") from e

        if current_group and current_group not in metadata.tags:
            metadata.tags.append(current_group)
        forms.append((metadata, pattern))

    return forms


def load_patterns_from_file(
    path: Union[str, Path],
    syntax: str = "infix",
    _included_files: Optional[set] = None
) -> List[Tuple[FormMetadata, Pattern]]:
    """
    Load named patterns from a .forms or .json file.

    :include paths are resolved relative to the containing file.
    """
    path = Path(path)
    text = path.read_text()
    logger.debug("Loading forms from %s", path)

    if path.suffix == '.json':
        return load_patterns_from_json(text, syntax=syntax)

    if _included_files is None:
        _included_files = {path.resolve()}
    return load_patterns_from_dsl(
        text, syntax=syntax, base_path=path.parent, _included_files=_included_files
    )


def load_patterns_from_json(text: str, syntax: str = "infix") -> List[Tuple[FormMetadata, Pattern]]:
    """
    Load named patterns from JSON text.

    Each entry of "forms" needs "name" and "template"; "description" and
    "tags" are optional.

    Raises:
        ValueError: On invalid JSON or an entry missing a required key
    """
    parse = get_parser(syntax)
    data = json.loads(text)
    forms = []

    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object with a \"forms\" list")

    for i, entry in enumerate(data.get('forms', [])):
        if not isinstance(entry, dict):
            raise ValueError(f"form {i}: expected an object")
        for key in ('name', 'template'):
            if key not in entry:
                raise ValueError(f"form {i}: missing {key!r}")
        metadata = FormMetadata(
            name=entry['name'],
            description=entry.get('description'),
            tags=entry.get('tags'),
        )
        try:
            pattern = Pattern(parse(entry['template']))
        except ValueError as e:
            raise ValueError(f"form {i}: {e}") from e
        forms.append((metadata, pattern))

    return forms


class PatternLibrary:
    """
    A collection of named patterns.

    Example:
        library = PatternLibrary.from_dsl('''
            @sum: TREE + TREE
            @square: TREE^2
            @sum-of-squares: TREE_a^2 + TREE_b^2
        ''')
        library.matching(E("x^2 + y^2"))  # => ["sum", "sum-of-squares"]

    Adding a form under an existing name replaces the earlier form in place.
    """

    def __init__(self, syntax: str = "infix"):
        """
        Initialize an empty library.

        Args:
            syntax: Syntax used for template strings ("infix" or "sexpr")
        """
        get_parser(syntax)
        self.syntax = syntax
        self._forms: List[Tuple[FormMetadata, Pattern]] = []
        self._names: Dict[str, int] = {}  # Maps name -> index

    def _extend(self, forms: List[Tuple[FormMetadata, Pattern]]) -> 'PatternLibrary':
        for metadata, pattern in forms:
            if metadata.name in self._names:
                self._forms[self._names[metadata.name]] = (metadata, pattern)
            else:
                self._names[metadata.name] = len(self._forms)
                self._forms.append((metadata, pattern))
        return self

    def load_dsl(self, text: str) -> 'PatternLibrary':
        """Load forms from DSL text."""
        return self._extend(load_patterns_from_dsl(text, syntax=self.syntax))

    def load_file(self, path: Union[str, Path]) -> 'PatternLibrary':
        """Load forms from a .forms or .json file."""
        return self._extend(load_patterns_from_file(path, syntax=self.syntax))

    def add(self, name: str, template: Union[str, ExprType],
            description: Optional[str] = None,
            tags: Optional[List[str]] = None) -> 'PatternLibrary':
        """
        Add a named form.

        Args:
            name: Name of the form
            template: Template string in the library's syntax, or a template tree
        """
        if isinstance(template, str):
            template = get_parser(self.syntax)(template)
        return self._extend([(FormMetadata(name, description, tags), Pattern(template))])

    def matching(self, tree: ExprType, groups: Optional[List[str]] = None) -> List[str]:
        """
        Names of all forms the tree matches, in library order.

        Args:
            tree: Expression tree to test
            groups: If given, only forms tagged with one of these groups are tried
        """
        names = []
        for metadata, pattern in self._forms:
            if groups is not None and not any(tag in groups for tag in metadata.tags):
                continue
            if pattern.match(tree):
                names.append(metadata.name)
        logger.debug("%s matches %d form(s): %s", tree, len(names), names)
        return names

    def groups(self) -> Set[str]:
        """Return all group tags used in the library."""
        return {tag for metadata, _ in self._forms for tag in metadata.tags}

    def list_forms(self) -> List[str]:
        """List all forms in DSL format."""
        fmt = FORMATTERS[self.syntax]
        result = []
        for metadata, pattern in self._forms:
            name_part = f"@{metadata.name}"
            if metadata.description:
                name_part += f' "{metadata.description}"'
            result.append(f"{name_part}: {fmt(pattern.template)}")
        return result

    def to_dsl(self) -> str:
        """
        Export the library as DSL text, grouped by first tag.

        An untagged form after a tagged one is preceded by "[]" so that it
        does not join the earlier group when loaded back.
        """
        fmt = FORMATTERS[self.syntax]
        lines = []
        current_group = None
        for metadata, pattern in self._forms:
            group = metadata.tags[0] if metadata.tags else None
            if group != current_group:
                if lines:
                    lines.append("")
                lines.append(f"[{group}]" if group is not None else "[]")
            current_group = group
            name_part = f"@{metadata.name}"
            if metadata.description:
                name_part += f' "{metadata.description}"'
            lines.append(f"{name_part}: {fmt(pattern.template)}")
        return "\n".join(lines) + "\n"

    def clear(self) -> 'PatternLibrary':
        """Remove all forms."""
        self._forms = []
        self._names = {}
        return self

    def __len__(self) -> int:
        return len(self._forms)

    def __repr__(self) -> str:
        return f"PatternLibrary({len(self._forms)} forms)"

    def __iter__(self):
        """Iterate over (metadata, pattern) pairs."""
        return iter(self._forms)

    def __contains__(self, name: str) -> bool:
        """Check if a named form exists: 'square' in library."""
        return name in self._names

    def __getitem__(self, name: str) -> Pattern:
        """Get a pattern by name: library['square']."""
        if name not in self._names:
            raise KeyError(f"No form named '{name}'")
        return self._forms[self._names[name]][1]

    @classmethod
    def from_dsl(cls, text: str, syntax: str = "infix") -> 'PatternLibrary':
        """Create a library from DSL text."""
        return cls(syntax=syntax).load_dsl(text)

    @classmethod
    def from_file(cls, path: Union[str, Path], syntax: str = "infix") -> 'PatternLibrary':
        """Create a library from a file."""
        return cls(syntax=syntax).load_file(path)
