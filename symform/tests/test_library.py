"""Tests for named pattern libraries."""

import json

import pytest
from symform import E, Pattern, PatternLibrary, load_patterns_from_dsl, load_patterns_from_file
from symform.library import parse_form_line

FORMS = """
# trig identities
[trig]
@pythagoras "sin^2 + cos^2": sin(TREE_x)^2 + cos(TREE_x)^2
@double-angle: 2 * sin(TREE_x) * cos(TREE_x)

[algebra]
@sum: TREE + TREE
@square: TREE^2
"""


class TestParseFormLine:
    """Tests for single line parsing."""

    def test_named(self):
        """@name: template"""
        metadata, template = parse_form_line("@sum: TREE + TREE")
        assert metadata.name == "sum"
        assert metadata.description is None
        assert template == "TREE + TREE"

    def test_described(self):
        """@name "description": template"""
        metadata, template = parse_form_line('@sq "A square": TREE^2')
        assert metadata.name == "sq"
        assert metadata.description == "A square"
        assert template == "TREE^2"

    def test_blank_and_comment(self):
        """Blank lines and comments are skipped."""
        assert parse_form_line("") is None
        assert parse_form_line("   ") is None
        assert parse_form_line("# comment") is None

    def test_not_a_form(self):
        """Anything else is an error."""
        with pytest.raises(ValueError):
            parse_form_line("TREE + TREE")


class TestLoadDSL:
    """Tests for DSL loading."""

    def test_load(self):
        """Forms load in order with group tags."""
        forms = load_patterns_from_dsl(FORMS)
        assert [meta.name for meta, _ in forms] == ["pythagoras", "double-angle", "sum", "square"]
        assert forms[0][0].tags == ["trig"]
        assert forms[2][0].tags == ["algebra"]
        assert all(isinstance(pattern, Pattern) for _, pattern in forms)

    def test_bad_line_reports_line_number(self):
        """Malformed lines name their line number."""
        with pytest.raises(ValueError, match="line 2"):
            load_patterns_from_dsl("@ok: TREE\nnot a form\n")

    def test_bad_template_reports_line_number(self):
        """Template syntax errors name their line number."""
        with pytest.raises(ValueError, match="line 1"):
            load_patterns_from_dsl("@bad: a +")

    def test_sexpr_syntax(self):
        """Templates can be s-expressions."""
        forms = load_patterns_from_dsl("@sum: (+ TREE TREE)", syntax="sexpr")
        assert forms[0][1].match(E("a + b"))


class TestIncludes:
    """Tests for :include directives."""

    def test_include(self, tmp_path):
        """Included files are loaded relative to the including file."""
        (tmp_path / "base.forms").write_text("@square: TREE^2\n")
        main = tmp_path / "main.forms"
        main.write_text("[algebra]\n:include base.forms\n@sum: TREE + TREE\n")

        forms = load_patterns_from_file(main)
        assert [meta.name for meta, _ in forms] == ["square", "sum"]
        assert forms[0][0].tags == ["algebra"]

    def test_circular_include(self, tmp_path):
        """Circular includes are detected."""
        (tmp_path / "a.forms").write_text(":include b.forms\n")
        (tmp_path / "b.forms").write_text(":include a.forms\n")
        with pytest.raises(ValueError, match="Circular"):
            load_patterns_from_file(tmp_path / "a.forms")

    def test_missing_include(self, tmp_path):
        """Missing include files raise FileNotFoundError."""
        main = tmp_path / "main.forms"
        main.write_text(":include nowhere.forms\n")
        with pytest.raises(FileNotFoundError):
            load_patterns_from_file(main)

    def test_shared_include(self, tmp_path):
        """Two siblings may include the same file."""
        (tmp_path / "common.forms").write_text("@square: TREE^2\n")
        (tmp_path / "a.forms").write_text(":include common.forms\n@sum: TREE + TREE\n")
        (tmp_path / "b.forms").write_text(":include common.forms\n@product: TREE * TREE\n")
        top = tmp_path / "top.forms"
        top.write_text(":include a.forms\n:include b.forms\n")

        forms = load_patterns_from_file(top)
        assert [meta.name for meta, _ in forms] == ["square", "sum", "square", "product"]

    def test_self_include(self, tmp_path):
        """A file including itself is circular."""
        (tmp_path / "loop.forms").write_text(":include loop.forms\n")
        with pytest.raises(ValueError, match="Circular"):
            load_patterns_from_file(tmp_path / "loop.forms")


class TestPatternLibrary:
    """Tests for PatternLibrary."""

    def test_matching(self):
        """matching() lists all matching forms in order."""
        library = PatternLibrary.from_dsl(FORMS)
        assert library.matching(E("sin(a)^2 + cos(a)^2")) == ["pythagoras", "sum"]
        assert library.matching(E("sin(a)^2 + cos(b)^2")) == ["sum"]
        assert library.matching(E("2 * sin(y) * cos(y)")) == ["double-angle"]
        assert library.matching(E("x")) == []

    def test_matching_by_group(self):
        """matching() can be restricted to groups."""
        library = PatternLibrary.from_dsl(FORMS)
        assert library.matching(E("sin(a)^2 + cos(a)^2"), groups=["trig"]) == ["pythagoras"]
        assert library.matching(E("x^2"), groups=["trig"]) == []
        assert library.matching(E("x^2"), groups=["algebra"]) == ["square"]

    def test_groups(self):
        """groups() returns all tags."""
        assert PatternLibrary.from_dsl(FORMS).groups() == {"trig", "algebra"}

    def test_container_protocol(self):
        """len, in, [] and iteration work."""
        library = PatternLibrary.from_dsl(FORMS)
        assert len(library) == 4
        assert "sum" in library
        assert "cube" not in library
        assert library["square"].match(E("x^2"))
        with pytest.raises(KeyError):
            library["cube"]
        assert [meta.name for meta, _ in library][0] == "pythagoras"
        assert repr(library) == "PatternLibrary(4 forms)"

    def test_add(self):
        """add() accepts strings and trees."""
        library = PatternLibrary()
        library.add("twice", "VAR_x + VAR_x").add("neg", E("-TREE"), description="Negation")
        assert library.matching(E("a + a")) == ["twice"]
        assert library.matching(E("-(a + a)")) == ["neg"]

    def test_add_replaces_same_name(self):
        """Re-adding a name replaces the earlier form in place."""
        library = PatternLibrary.from_dsl(FORMS)
        library.add("sum", "TREE * TREE")
        assert len(library) == 4
        assert library["sum"].match(E("a * b"))
        assert not library["sum"].match(E("a + b"))

    def test_list_forms(self):
        """list_forms() renders forms in DSL format."""
        library = PatternLibrary.from_dsl(FORMS)
        assert library.list_forms() == [
            '@pythagoras "sin^2 + cos^2": sin(TREE_x)^2 + cos(TREE_x)^2',
            "@double-angle: 2 * sin(TREE_x) * cos(TREE_x)",
            "@sum: TREE + TREE",
            "@square: TREE^2",
        ]

    def test_to_dsl_round_trip(self):
        """to_dsl() output loads back into an equivalent library."""
        library = PatternLibrary.from_dsl(FORMS)
        text = library.to_dsl()
        assert "[trig]" in text
        assert "[algebra]" in text
        reloaded = PatternLibrary.from_dsl(text)
        assert reloaded.list_forms() == library.list_forms()
        assert reloaded.groups() == library.groups()

    def test_to_dsl_keeps_untagged_forms_untagged(self):
        """An untagged form between tagged ones stays untagged after reload."""
        library = (PatternLibrary()
                   .add("a", "TREE + TREE", tags=["g"])
                   .add("b", "TREE * TREE")
                   .add("c", "TREE^2", tags=["g"]))
        text = library.to_dsl()
        assert "[]" in text
        reloaded = PatternLibrary.from_dsl(text)
        assert reloaded.matching(E("x * y"), groups=["g"]) == []
        assert reloaded.matching(E("x * y")) == ["b"]
        assert [meta.tags for meta, _ in reloaded] == [["g"], [], ["g"]]

    def test_empty_group_resets(self):
        """A [] line ends the current group."""
        forms = load_patterns_from_dsl("[g]\n@a: TREE\n[]\n@b: VAR\n")
        assert forms[0][0].tags == ["g"]
        assert forms[1][0].tags == []

    def test_to_dsl_keeps_negative_constants(self):
        """Negative constants survive an export and reload."""
        library = PatternLibrary().add("negc", E.op("*", E.const(-2), "TREE"))
        tree = E.op("*", E.const(-2), "x")
        assert library.matching(tree) == ["negc"]
        reloaded = PatternLibrary.from_dsl(library.to_dsl())
        assert reloaded.matching(tree) == ["negc"]
        assert reloaded.list_forms() == library.list_forms()

    def test_clear(self):
        """clear() removes all forms."""
        library = PatternLibrary.from_dsl(FORMS).clear()
        assert len(library) == 0
        assert "sum" not in library

    def test_from_file(self, tmp_path):
        """from_file() loads .forms files."""
        path = tmp_path / "lib.forms"
        path.write_text(FORMS)
        assert len(PatternLibrary.from_file(path)) == 4

    def test_from_json(self, tmp_path):
        """JSON files are loaded by suffix."""
        path = tmp_path / "lib.json"
        path.write_text(json.dumps({
            "name": "demo",
            "forms": [
                {"name": "sum", "template": "TREE + TREE", "tags": ["algebra"]},
                {"name": "sine", "template": "sin(TREE)", "description": "Any sine"},
            ],
        }))
        library = PatternLibrary.from_file(path)
        assert library.matching(E("sin(x)")) == ["sine"]
        assert library.groups() == {"algebra"}

    def test_json_missing_keys(self, tmp_path):
        """JSON entries without a name or template raise ValueError."""
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"forms": [{"template": "TREE"}]}))
        with pytest.raises(ValueError, match="form 0: missing 'name'"):
            PatternLibrary.from_file(path)

        path.write_text(json.dumps({"forms": [{"name": "a", "template": "TREE"}, {"name": "b"}]}))
        with pytest.raises(ValueError, match="form 1: missing 'template'"):
            PatternLibrary.from_file(path)

    def test_json_malformed(self, tmp_path):
        """Malformed JSON documents raise ValueError."""
        path = tmp_path / "bad.json"
        for text in ["[1, 2]", '{"forms": ["TREE"]}', '{"forms": [{"name": "a", "template": "a +"}]}', "{"]:
            path.write_text(text)
            with pytest.raises(ValueError):
                PatternLibrary.from_file(path)

    def test_sexpr_library(self):
        """A library can use s-expression templates."""
        library = PatternLibrary.from_dsl("@sum: (+ TREE TREE)", syntax="sexpr")
        assert library.list_forms() == ["@sum: (+ TREE TREE)"]

    def test_unknown_syntax(self):
        """Unknown syntax names are rejected up front."""
        with pytest.raises(ValueError):
            PatternLibrary(syntax="latex")
