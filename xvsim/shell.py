"""Parser for the shell's command language: words, < > >>, |, ;, & and ( )."""

from dataclasses import dataclass, field

from .riscv import O_CREATE, O_RDONLY, O_TRUNC, O_WRONLY

MAXARGS = 10
WHITESPACE = " \t\r\n\v"
SYMBOLS = "<|>&;()"

# Token kinds returned by Tokenizer.get besides the symbols themselves.
WORD = "a"
APPEND = "+"
END = ""


class ShellSyntaxError(ValueError):
    """The command line cannot be parsed."""

    def __init__(self, message, leftovers=None):
        super().__init__(message)
        self.leftovers = leftovers


@dataclass
class ExecCmd:
    """Run a program with arguments."""

    argv: list = field(default_factory=list)


@dataclass
class RedirCmd:
    """Run ``cmd`` with descriptor ``fd`` reopened on ``file``."""

    cmd: object
    file: str
    mode: int
    fd: int


@dataclass
class PipeCmd:
    """Connect the output of ``left`` to the input of ``right``."""

    left: object
    right: object


@dataclass
class ListCmd:
    """Run ``left`` to completion, then ``right``."""

    left: object
    right: object


@dataclass
class BackCmd:
    """Run ``cmd`` without waiting for it."""

    cmd: object


class Tokenizer:
    """Splits a command line into words and operator symbols."""

    def __init__(self, text):
        nul = text.find("\0")
        self.text = text if nul < 0 else text[:nul]
        self.pos = 0

    def _skip_blanks(self):
        text = self.text
        while self.pos < len(text) and text[self.pos] in WHITESPACE:
            self.pos += 1

    def peek(self, toks):
        """Skip blanks; true if the next character is one of ``toks``."""
        self._skip_blanks()
        return self.pos < len(self.text) and self.text[self.pos] in toks

    def get(self):
        """Consume the next token and return ``(kind, text)``.

        ``kind`` is the symbol itself, ``"+"`` for ``>>``, ``"a"`` for a
        word, or ``""`` at the end of the line.
        """
        self._skip_blanks()
        text = self.text
        start = self.pos
        if start >= len(text):
            return END, ""
        c = text[start]
        if c in "|();&<":
            kind = c
            self.pos += 1
        elif c == ">":
            self.pos += 1
            if text.startswith(">", self.pos):
                kind = APPEND
                self.pos += 1
            else:
                kind = ">"
        else:
            kind = WORD
            while (self.pos < len(text) and text[self.pos] not in WHITESPACE
                   and text[self.pos] not in SYMBOLS):
                self.pos += 1
        word = text[start:self.pos]
        self._skip_blanks()
        return kind, word

    def at_end(self):
        """True if only blanks remain."""
        self._skip_blanks()
        return self.pos >= len(self.text)

    def rest(self):
        """The unconsumed text."""
        return self.text[self.pos:]


def parse_cmd(text):
    """Parse a whole command line into a command tree."""
    tokens = Tokenizer(text)
    cmd = parse_line(tokens)
    if not tokens.at_end():
        raise ShellSyntaxError("syntax", tokens.rest())
    return cmd


def parse_line(tokens):
    """line: pipe ('&')* (';' line)?"""
    cmd = parse_pipe(tokens)
    while tokens.peek("&"):
        tokens.get()
        cmd = BackCmd(cmd)
    if tokens.peek(";"):
        tokens.get()
        cmd = ListCmd(cmd, parse_line(tokens))
    return cmd


def parse_pipe(tokens):
    """pipe: exec ('|' pipe)?"""
    cmd = parse_exec(tokens)
    if tokens.peek("|"):
        tokens.get()
        cmd = PipeCmd(cmd, parse_pipe(tokens))
    return cmd


def parse_redirs(cmd, tokens):
    """Wrap ``cmd`` in every redirection that follows."""
    while tokens.peek("<>"):
        tok, _ = tokens.get()
        kind, word = tokens.get()
        if kind != WORD:
            raise ShellSyntaxError("missing file for redirection")
        if tok == "<":
            cmd = RedirCmd(cmd, word, O_RDONLY, 0)
        elif tok == ">":
            cmd = RedirCmd(cmd, word, O_WRONLY | O_CREATE | O_TRUNC, 1)
        else:
            cmd = RedirCmd(cmd, word, O_WRONLY | O_CREATE, 1)
    return cmd


def parse_block(tokens):
    """block: '(' line ')' redirections"""
    if not tokens.peek("("):
        raise ShellSyntaxError("parseblock")
    tokens.get()
    cmd = parse_line(tokens)
    if not tokens.peek(")"):
        raise ShellSyntaxError("syntax - missing )")
    tokens.get()
    return parse_redirs(cmd, tokens)


def parse_exec(tokens):
    """exec: block, or words mixed with redirections."""
    if tokens.peek("("):
        return parse_block(tokens)
    cmd = ExecCmd()
    ret = parse_redirs(cmd, tokens)
    while not tokens.peek("|)&;"):
        kind, word = tokens.get()
        if kind == END:
            break
        if kind != WORD:
            raise ShellSyntaxError("syntax")
        cmd.argv.append(word)
        if len(cmd.argv) >= MAXARGS:
            raise ShellSyntaxError("too many args")
        ret = parse_redirs(ret, tokens)
    return ret