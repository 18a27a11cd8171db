"""Error-tolerant parser for Go module files.

The parser is line oriented and never gives up on the first problem: every
malformed line becomes a syntax finding and parsing resumes on the next line.
All spans are UTF-8 byte offsets into the original text, so stripping
whitespace or comments never shifts a reported position.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from lsprotocol.types import DiagnosticSeverity

from gomodlens.model import (
    SYNTAX_SOURCE,
    Directive,
    DirectiveKind,
    Exclusion,
    FileHandle,
    Finding,
    ModuleFile,
    Replacement,
    Requirement,
    Span,
    Token,
)

MODULE_USAGE = "usage: module module/path"
GO_USAGE = "usage: go 1.23"
REQUIRE_USAGE = "usage: require module/path v1.2.3"
REPLACE_USAGE = "usage: replace module/path [v1.2.3] => other/module v1.4"
EXCLUDE_USAGE = "usage: exclude module/path v1.2.3"

_USAGE: dict[DirectiveKind, str] = {
    DirectiveKind.MODULE: MODULE_USAGE,
    DirectiveKind.GO: GO_USAGE,
    DirectiveKind.REQUIRE: REQUIRE_USAGE,
    DirectiveKind.REPLACE: REPLACE_USAGE,
    DirectiveKind.EXCLUDE: EXCLUDE_USAGE,
}
_KEYWORDS: dict[str, DirectiveKind] = {kind.value: kind for kind in _USAGE}
_BLOCK_KINDS = frozenset(
    {DirectiveKind.REQUIRE, DirectiveKind.REPLACE, DirectiveKind.EXCLUDE}
)

GO_VERSION_RE = re.compile(r"^[1-9][0-9]*\.(0|[1-9][0-9]*)(\.(0|[1-9][0-9]*))?$")
_IDENT = r"[0-9A-Za-z-]+"
SEMVER_RE = re.compile(
    r"^v(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)"
    rf"(-{_IDENT}(\.{_IDENT})*)?"
    rf"(\+{_IDENT}(\.{_IDENT})*)?$"
)
_ESCAPE_RE = re.compile(
    r"\\(?:x([0-9A-Fa-f]{2})|([0-7]{3})|u([0-9A-Fa-f]{4})|U([0-9A-Fa-f]{8})|(.))",
    re.DOTALL,
)
_SIMPLE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "\\": "\\",
    '"': '"',
}
_SEPARATORS = frozenset('()"`')
_ARROW = "=>"


@dataclass(frozen=True)
class ParseResult:
    module_file: ModuleFile
    findings: tuple[Finding, ...] = ()

    @property
    def has_errors(self) -> bool:
        return any(f.severity == DiagnosticSeverity.Error for f in self.findings)


@dataclass
class _Line:
    tokens: list[Token]
    comment: str
    errors: list[Finding]


def _syntax(message: str, span: Span) -> Finding:
    return Finding(
        message=message,
        source=SYNTAX_SOURCE,
        severity=DiagnosticSeverity.Error,
        span=span,
    )


def is_directory_path(path: str) -> bool:
    return (
        path.startswith("./")
        or path.startswith("../")
        or path.startswith("/")
        or path in {".", ".."}
        or re.match(r"^[A-Za-z]:[\\/]", path) is not None
    )


def is_indirect_comment(comment: str) -> bool:
    text = comment.strip()
    return text == "indirect" or text.startswith("indirect;")


def _unquote(raw: str) -> str:
    """Decode a quoted token with Go string-literal escape rules.

    ``\\x`` and octal escapes yield bytes, so the decoded result must still be
    valid UTF-8. Raises ``ValueError`` for anything Go would reject.
    """
    body = raw[1:-1]
    if raw.startswith("`"):
        return body
    out = bytearray()
    pos = 0
    for match in _ESCAPE_RE.finditer(body):
        out += body[pos:match.start()].encode("utf-8")
        pos = match.end()
        hex_byte, octal, short, long, simple = match.groups()
        if hex_byte is not None:
            out.append(int(hex_byte, 16))
        elif octal is not None:
            if int(octal, 8) > 0xFF:
                raise ValueError(f"octal escape value > 255: \\{octal}")
            out.append(int(octal, 8))
        elif short is not None or long is not None:
            code = int(short if short is not None else long, 16)
            if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
                raise ValueError(f"invalid Unicode code point: {match.group()}")
            out += chr(code).encode("utf-8")
        elif simple in _SIMPLE_ESCAPES:
            out += _SIMPLE_ESCAPES[simple].encode("utf-8")
        else:
            raise ValueError(f"unknown escape sequence: \\{simple}")
    out += body[pos:].encode("utf-8")
    return out.decode("utf-8")


def tokenize_line(line: str, base: int) -> _Line:
    """Split one physical line into tokens and a trailing comment.

    ``base`` is the byte offset of ``line`` within the whole file.
    """
    offsets = [base]
    for ch in line:
        offsets.append(offsets[-1] + len(ch.encode("utf-8")))

    tokens: list[Token] = []
    errors: list[Finding] = []
    comment = ""
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch.isspace():
            i += 1
            continue
        if line.startswith("//", i):
            comment = line[i + 2:].strip()
            break
        if ch in "()":
            tokens.append(Token(ch, Span(offsets[i], offsets[i + 1])))
            i += 1
            continue
        if line.startswith(_ARROW, i):
            tokens.append(Token(_ARROW, Span(offsets[i], offsets[i + 2])))
            i += 2
            continue
        if ch in '"`':
            j = i + 1
            while j < n and line[j] != ch:
                j += 2 if (ch == '"' and line[j] == "\\") else 1
            if j >= n:
                end = len(line.rstrip())
                errors.append(
                    _syntax("unterminated quoted string", Span(offsets[i], offsets[end]))
                )
                break
            span = Span(offsets[i], offsets[j + 1])
            try:
                tokens.append(Token(_unquote(line[i:j + 1]), span, quoted=True))
            except ValueError as exc:
                errors.append(_syntax(f"invalid quoted string: {exc}", span))
            i = j + 1
            continue
        j = i
        while (
            j < n
            and not line[j].isspace()
            and line[j] not in _SEPARATORS
            and not line.startswith("//", j)
            and not line.startswith(_ARROW, j)
        ):
            j += 1
        tokens.append(Token(line[i:j], Span(offsets[i], offsets[j])))
        i = j
    return _Line(tokens=tokens, comment=comment, errors=errors)


def _is_bare(token: Token, value: str) -> bool:
    return not token.quoted and token.value == value


@dataclass
class _Parser:
    text: str
    handle: FileHandle | None
    findings: list[Finding] = field(default_factory=list)
    directives: list[Directive] = field(default_factory=list)
    requirements: list[Requirement] = field(default_factory=list)
    replacements: list[Replacement] = field(default_factory=list)
    exclusions: list[Exclusion] = field(default_factory=list)
    module_path: str | None = None
    go_version: str | None = None
    seen_module: bool = False
    seen_go: bool = False

    def error(self, message: str, span: Span) -> None:
        self.findings.append(_syntax(message, span))

    def run(self) -> ParseResult:
        block: Token | None = None
        block_kind: DirectiveKind | None = None
        base = 0
        for raw_line in self.text.split("\n"):
            line = tokenize_line(raw_line, base)
            base += len(raw_line.encode("utf-8")) + 1
            self.findings.extend(line.errors)
            if not line.tokens:
                continue
            first = line.tokens[0]
            if block_kind is not None and block is not None:
                if _is_bare(first, ")"):
                    block = None
                    block_kind = None
                    for extra in line.tokens[1:]:
                        self.error(f"unexpected token after ): {extra.value}", extra.span)
                    continue
                self.directive(block_kind, block, line.tokens, line, in_block=True)
                continue
            if _is_bare(first, ")"):
                self.error("unexpected )", first.span)
                continue
            kind = _KEYWORDS.get(first.value) if not first.quoted else None
            if kind is None:
                self.error(f"unknown directive: {first.value}", first.span)
                self.record(DirectiveKind.UNKNOWN, first, line.tokens, line, valid=False)
                continue
            if len(line.tokens) >= 2 and _is_bare(line.tokens[1], "("):
                if kind in _BLOCK_KINDS and len(line.tokens) == 2:
                    block = first
                    block_kind = kind
                elif (
                    kind in _BLOCK_KINDS
                    and len(line.tokens) == 3
                    and _is_bare(line.tokens[2], ")")
                ):
                    # empty block on one line
                    pass
                else:
                    self.error(_USAGE[kind], _cover(line.tokens))
                    self.record(kind, first, line.tokens, line, valid=False)
                continue
            self.directive(kind, first, line.tokens[1:], line, in_block=False)
        if block is not None:
            self.error("unterminated block: missing )", block.span)
        module_file = ModuleFile(
            handle=self.handle,
            text=self.text,
            directives=tuple(self.directives),
            module_path=self.module_path,
            go_version=self.go_version,
            requirements=tuple(self.requirements),
            replacements=tuple(self.replacements),
            exclusions=tuple(self.exclusions),
        )
        return ParseResult(module_file=module_file, findings=tuple(self.findings))

    def record(
        self,
        kind: DirectiveKind,
        keyword: Token,
        tokens: list[Token],
        line: _Line,
        *,
        valid: bool,
        in_block: bool = False,
    ) -> Directive:
        span = _cover(tokens)
        directive = Directive(
            kind=kind,
            span=span,
            text=span.extract(self.text),
            keyword=keyword.value,
            keyword_span=keyword.span,
            args=tuple(tokens if in_block else tokens[1:]),
            comment=line.comment,
            block=in_block,
            valid=valid,
        )
        self.directives.append(directive)
        return directive

    def directive(
        self,
        kind: DirectiveKind,
        keyword: Token,
        args: list[Token],
        line: _Line,
        *,
        in_block: bool,
    ) -> None:
        tokens = args if in_block else [keyword, *args]
        span = _cover(tokens)
        if line.errors:
            self.record(kind, keyword, tokens, line, valid=False, in_block=in_block)
            return
        check = {
            DirectiveKind.MODULE: self.module,
            DirectiveKind.GO: self.go,
            DirectiveKind.REQUIRE: self.require,
            DirectiveKind.REPLACE: self.replace,
            DirectiveKind.EXCLUDE: self.exclude,
        }[kind]
        valid = check(args, span, line.comment)
        self.record(kind, keyword, tokens, line, valid=valid, in_block=in_block)

    def module(self, args: list[Token], span: Span, comment: str) -> bool:
        if self.seen_module:
            self.error("repeated module statement", span)
            return False
        self.seen_module = True
        if len(args) != 1:
            self.error(MODULE_USAGE, span)
            return False
        self.module_path = args[0].value
        return True

    def go(self, args: list[Token], span: Span, comment: str) -> bool:
        if self.seen_go:
            self.error("repeated go statement", span)
            return False
        self.seen_go = True
        if len(args) != 1 or not GO_VERSION_RE.match(args[0].value):
            self.error(GO_USAGE, span)
            return False
        self.go_version = args[0].value
        return True

    def version_ok(self, token: Token) -> bool:
        if SEMVER_RE.match(token.value):
            return True
        self.error(
            f'invalid version "{token.value}": must be of the form v1.2.3',
            token.span,
        )
        return False

    def require(self, args: list[Token], span: Span, comment: str) -> bool:
        if len(args) != 2 or any(_is_bare(arg, _ARROW) for arg in args):
            self.error(REQUIRE_USAGE, span)
            return False
        path, version = args
        if not self.version_ok(version):
            return False
        self.requirements.append(
            Requirement(
                path=path.value,
                version=version.value,
                indirect=is_indirect_comment(comment),
                span=span,
            )
        )
        return True

    def exclude(self, args: list[Token], span: Span, comment: str) -> bool:
        if len(args) != 2 or any(_is_bare(arg, _ARROW) for arg in args):
            self.error(EXCLUDE_USAGE, span)
            return False
        path, version = args
        if not self.version_ok(version):
            return False
        self.exclusions.append(Exclusion(path=path.value, version=version.value, span=span))
        return True

    def replace(self, args: list[Token], span: Span, comment: str) -> bool:
        arrows = [index for index, arg in enumerate(args) if _is_bare(arg, _ARROW)]
        if len(arrows) != 1 or arrows[0] not in (1, 2) or len(args) - arrows[0] - 1 not in (1, 2):
            self.error(REPLACE_USAGE, span)
            return False
        arrow = arrows[0]
        old = args[0]
        old_version = args[1] if arrow == 2 else None
        new = args[arrow + 1]
        new_version = args[arrow + 2] if len(args) == arrow + 3 else None
        if old_version is not None and not self.version_ok(old_version):
            return False
        if new_version is None:
            if not is_directory_path(new.value):
                self.error(
                    "replacement module without version must be directory path "
                    "(rooted or starting with ./ or ../)",
                    new.span,
                )
                return False
        elif is_directory_path(new.value):
            self.error("replacement directory path must not have version", new_version.span)
            return False
        elif not self.version_ok(new_version):
            return False
        self.replacements.append(
            Replacement(
                old_path=old.value,
                old_version=old_version.value if old_version is not None else "",
                new_path=new.value,
                new_version=new_version.value if new_version is not None else "",
                span=span,
            )
        )
        return True


def _cover(tokens: list[Token]) -> Span:
    return Span(tokens[0].span.start, tokens[-1].span.end)


def parse(text: str, handle: FileHandle | None = None) -> ParseResult:
    """Parse module-file text into a ``ModuleFile`` and its syntax findings."""
    return _Parser(text=text, handle=handle).run()
