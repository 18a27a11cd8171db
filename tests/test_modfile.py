from __future__ import annotations

import textwrap

import pytest
from lsprotocol.types import DiagnosticSeverity

from gomodlens.model import DirectiveKind, Span
from gomodlens.modfile import (
    GO_USAGE,
    REPLACE_USAGE,
    REQUIRE_USAGE,
    is_directory_path,
    is_indirect_comment,
    parse,
    tokenize_line,
)

from tests.conftest import TOOLS, TOOLS_VERSION

GOOD = textwrap.dedent(
    f"""\
    // leading comment
    module example.com/app

    go 1.21

    require {TOOLS} {TOOLS_VERSION} // indirect

    require (
    \tgithub.com/pkg/errors v0.9.1
    \t"golang.org/x/mod" v0.14.0 // indirect; keep
    )

    replace github.com/pkg/errors v0.9.1 => ../errors
    replace (
    \tgolang.org/x/mod => golang.org/x/mod v0.15.0
    )

    exclude golang.org/x/net v0.1.0
    """
)


def _messages(text: str) -> list[str]:
    return [finding.message for finding in parse(text).findings]


def test_parse_collects_directives() -> None:
    result = parse(GOOD)
    assert result.findings == ()
    module_file = result.module_file
    assert module_file.module_path == "example.com/app"
    assert module_file.go_version == "1.21"
    assert [(r.path, r.version, r.indirect) for r in module_file.requirements] == [
        (TOOLS, TOOLS_VERSION, True),
        ("github.com/pkg/errors", "v0.9.1", False),
        ("golang.org/x/mod", "v0.14.0", True),
    ]
    old, new = module_file.replacements
    assert (old.old_path, old.old_version, old.new_path, old.new_version) == (
        "github.com/pkg/errors",
        "v0.9.1",
        "../errors",
        "",
    )
    assert (new.old_path, new.old_version, new.new_path, new.new_version) == (
        "golang.org/x/mod",
        "",
        "golang.org/x/mod",
        "v0.15.0",
    )
    assert [(e.path, e.version) for e in module_file.exclusions] == [
        ("golang.org/x/net", "v0.1.0")
    ]
    kinds = [directive.kind for directive in module_file.directives]
    assert kinds == [
        DirectiveKind.MODULE,
        DirectiveKind.GO,
        DirectiveKind.REQUIRE,
        DirectiveKind.REQUIRE,
        DirectiveKind.REQUIRE,
        DirectiveKind.REPLACE,
        DirectiveKind.REPLACE,
        DirectiveKind.EXCLUDE,
    ]
    assert [d.block for d in module_file.directives].count(True) == 3


def test_directive_spans_round_trip() -> None:
    text = GOOD + "yo there\nrequire broken\ngo 1\n"
    module_file = parse(text).module_file
    assert module_file.directives
    for directive in module_file.directives:
        assert directive.span.extract(text) == directive.text
        assert directive.keyword_span.extract(text) == directive.keyword
        for token in directive.args:
            raw = token.span.extract(text)
            assert raw.strip('"`') == token.value


def test_requirement_span_excludes_comment() -> None:
    text = f"module m\n\ngo 1.12\n\nrequire {TOOLS} {TOOLS_VERSION} // indirect\n"
    (requirement,) = parse(text).module_file.requirements
    assert requirement.span.extract(text) == f"require {TOOLS} {TOOLS_VERSION}"


def test_block_requirement_span_starts_at_path() -> None:
    text = f"module m\nrequire (\n    {TOOLS} {TOOLS_VERSION}\n)\n"
    (requirement,) = parse(text).module_file.requirements
    assert requirement.span.extract(text) == f"{TOOLS} {TOOLS_VERSION}"


def test_spans_are_byte_offsets_after_multibyte_text() -> None:
    text = "// héllo 😀\nmodule m\nrequire é.com/x v1.0.0\n"
    module_file = parse(text).module_file
    (requirement,) = module_file.requirements
    assert requirement.path == "é.com/x"
    assert requirement.span.extract(text) == "require é.com/x v1.0.0"
    prefix = text.encode("utf-8").index(b"require")
    assert requirement.span.start == prefix


def test_malformed_require_reports_usage_over_line() -> None:
    text = "module invalidrequire\n\ngo 1.12\n\nrequire not-valid\n"
    (finding,) = parse(text).findings
    assert finding.message == REQUIRE_USAGE
    assert finding.source == "syntax"
    assert finding.severity == DiagnosticSeverity.Error
    assert finding.span.extract(text) == "require not-valid"


def test_malformed_go_version_spans_keyword_to_version() -> None:
    text = "module invalidgo\n\ngo 1 // comment\n"
    (finding,) = parse(text).findings
    assert finding.message == GO_USAGE
    assert finding.span.extract(text) == "go 1"


@pytest.mark.parametrize("version", ["1.21", "1.21.3", "1.0"])
def test_go_version_accepts_release_forms(version: str) -> None:
    result = parse(f"module m\ngo {version}\n")
    assert result.findings == ()
    assert result.module_file.go_version == version


@pytest.mark.parametrize("line", ["go", "go 1.21 1.22", "go 01.2", "go v1.21"])
def test_go_version_rejects_malformed(line: str) -> None:
    assert _messages(f"module m\n{line}\n") == [GO_USAGE]


def test_unknown_directive_spans_keyword_only() -> None:
    text = "module m\n\n  yo dawg\n"
    (finding,) = parse(text).findings
    assert finding.message == "unknown directive: yo"
    assert finding.span.extract(text) == "yo"
    (directive,) = [d for d in parse(text).module_file.directives if not d.valid]
    assert directive.kind is DirectiveKind.UNKNOWN


def test_parser_keeps_going_after_errors() -> None:
    text = textwrap.dedent(
        f"""\
        module m
        require only-path
        yo
        require {TOOLS} {TOOLS_VERSION}
        go 1
        """
    )
    result = parse(text)
    assert [f.message for f in result.findings] == [
        REQUIRE_USAGE,
        "unknown directive: yo",
        GO_USAGE,
    ]
    assert [r.path for r in result.module_file.requirements] == [TOOLS]
    assert result.has_errors


def test_invalid_require_version() -> None:
    text = "module m\nrequire example.com/x 1.2.3\n"
    (finding,) = parse(text).findings
    assert finding.message == 'invalid version "1.2.3": must be of the form v1.2.3'
    assert finding.span.extract(text) == "1.2.3"
    assert parse(text).module_file.requirements == ()


def test_incompatible_and_pseudo_versions_are_valid() -> None:
    text = (
        "module m\n"
        "require github.com/docker/docker v20.10.7+incompatible\n"
        f"require {TOOLS} {TOOLS_VERSION}\n"
    )
    assert parse(text).findings == ()


def test_repeated_module_and_go() -> None:
    text = "module a\nmodule b\ngo 1.20\ngo 1.21\n"
    result = parse(text)
    assert [f.message for f in result.findings] == [
        "repeated module statement",
        "repeated go statement",
    ]
    assert result.module_file.module_path == "a"
    assert result.module_file.go_version == "1.20"


def test_module_usage() -> None:
    assert _messages("module\n") == ["usage: module module/path"]
    assert _messages("module a b\n") == ["usage: module module/path"]


def test_exclude_usage() -> None:
    assert _messages("module m\nexclude example.com/x\n") == [
        "usage: exclude module/path v1.2.3"
    ]


@pytest.mark.parametrize(
    "line",
    [
        "replace a => ",
        "replace a b c => d v1.0.0",
        "replace a v1.0.0 => b v1.0.0 extra",
        "replace a v1.0.0 b v1.0.0",
        "replace a => b => c",
    ],
)
def test_replace_usage(line: str) -> None:
    assert _messages(f"module m\n{line}\n") == [REPLACE_USAGE]


def test_replace_module_target_needs_version() -> None:
    text = "module m\nreplace a => example.com/b\n"
    (finding,) = parse(text).findings
    assert finding.message.startswith("replacement module without version")
    assert finding.span.extract(text) == "example.com/b"


def test_replace_directory_target_rejects_version() -> None:
    text = "module m\nreplace a => ./local v1.0.0\n"
    (finding,) = parse(text).findings
    assert finding.message == "replacement directory path must not have version"
    assert finding.span.extract(text) == "v1.0.0"


def test_unterminated_block() -> None:
    text = f"module m\nrequire (\n\t{TOOLS} {TOOLS_VERSION}\n"
    result = parse(text)
    (finding,) = result.findings
    assert finding.message == "unterminated block: missing )"
    assert finding.span.extract(text) == "require"
    assert [r.path for r in result.module_file.requirements] == [TOOLS]


def test_stray_close_paren() -> None:
    text = "module m\n)\n"
    (finding,) = parse(text).findings
    assert finding.message == "unexpected )"
    assert finding.span == Span(9, 10)


def test_block_not_allowed_for_go() -> None:
    assert _messages("module m\ngo (\n") == [GO_USAGE]


def test_unterminated_quote() -> None:
    text = 'module m\nrequire "example.com/x v1.0.0   \n'
    (finding,) = parse(text).findings
    assert finding.message == "unterminated quoted string"
    assert finding.span.extract(text) == '"example.com/x v1.0.0'


def test_tokenize_line_handles_quotes_arrow_and_comment() -> None:
    line = tokenize_line('replace "a b"=>`c` v1.0.0 // note', 100)
    assert [t.value for t in line.tokens] == ["replace", "a b", "=>", "c", "v1.0.0"]
    assert line.tokens[0].span == Span(100, 107)
    assert line.comment == "note"
    assert line.errors == []


def test_crlf_line_endings() -> None:
    text = f"module m\r\nrequire {TOOLS} {TOOLS_VERSION} // indirect\r\n"
    result = parse(text)
    assert result.findings == ()
    (requirement,) = result.module_file.requirements
    assert requirement.indirect
    assert requirement.span.extract(text) == f"require {TOOLS} {TOOLS_VERSION}"


def test_indirect_comment_forms() -> None:
    assert is_indirect_comment("indirect")
    assert is_indirect_comment(" indirect; pinned")
    assert not is_indirect_comment("indirectly")
    assert not is_indirect_comment("")


def test_directory_paths() -> None:
    assert is_directory_path("./x")
    assert is_directory_path("../x")
    assert is_directory_path("/abs/x")
    assert is_directory_path("C:\\x")
    assert not is_directory_path("example.com/x")


@pytest.mark.parametrize("keyword", ["require", "replace", "exclude"])
def test_empty_block_on_one_line(keyword: str) -> None:
    result = parse(f"module m\n\n{keyword} ()\n")
    assert result.findings == ()
    assert not result.has_errors


def test_empty_block_not_allowed_for_module() -> None:
    assert _messages("module ()\n") == ["usage: module module/path"]


@pytest.mark.parametrize(
    ("quoted", "value"),
    [
        (r'"ex\x61mple.com/x"', "example.com/x"),
        (r'"é.com/x"', "é.com/x"),
        (r'"\U0001F600.com/x"', "😀.com/x"),
        (r'"\303\251.com/x"', "é.com/x"),
        (r'"a\tb\\c\"d"', 'a\tb\\c"d'),
        (r"`raw\n`", r"raw\n"),
    ],
)
def test_quoted_tokens_use_go_escapes(quoted: str, value: str) -> None:
    (token,) = tokenize_line(quoted, 0).tokens
    assert token.value == value
    assert token.quoted


@pytest.mark.parametrize(
    "quoted",
    [r'"\q"', r'"\'"', r'"\400"', r'"\ud800"', r'"\xff"', r'"\x4"'],
)
def test_invalid_escapes_are_syntax_errors(quoted: str) -> None:
    text = f"module m\nrequire {quoted} v1.0.0\n"
    result = parse(text)
    (finding,) = result.findings
    assert finding.message.startswith("invalid quoted string")
    assert finding.span.extract(text) == quoted
    assert result.module_file.requirements == ()
