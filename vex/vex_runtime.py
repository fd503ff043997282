"""
Host-facing execution for VEX: compile and evaluate in one step, with
failures reported as structured results instead of exceptions.
"""
import inspect
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from vex.vex_datatypes import VexError, HostError
from vex.vex_interpreter import VM
from vex.vex_printer import Printer
from vex.vex_reflect import VexHost

Token = Dict[str, Any]


@dataclass
class ExecutionResult:
    """The structured result of evaluating an expression."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Token] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        """The error message prefixed with where it happened, when known.

        e.g. "Error at line 1, col 5 (missing): UnboundName: ..."
        """
        if self.status != 'error':
            return ""
        msg = self.error_message or "unknown error"
        tok = self.error_token or {}
        if tok.get('line') is None:
            return msg

        where = f"line {tok['line']}"
        if tok.get('col') is not None:
            where += f", col {tok['col']}"
        if tok.get('text'):
            where += f" ({tok['text']})"
        return f"Error at {where}: {msg}"


class ExpressionRunner:
    """Compiles and evaluates VEX source on behalf of a host."""

    def __init__(self, vm: Optional[VM] = None, host_object: Optional[VexHost] = None):
        self.vm = vm if vm is not None else VM()
        self.host_object = host_object
        self.side_effects: List[Dict] = []
        # Names of host API methods currently bound into the environment
        self._host_api_names: set[str] = set()

    def _format_parse_error(self, parse_out: dict, source: str) -> str:
        node = parse_out.get('error_node') or {}
        base = parse_out.get('error_message') or str(parse_out)
        line = node.get('line')
        col = node.get('col')
        if line is not None and col is not None:
            return f"SyntaxError: {base} (line {line}, col {col})\n{self._source_context(source, line, col, node.get('text'))}"
        return f"SyntaxError: {base}\n{source}"

    def _format_runtime_error(self, e: Exception, source: str) -> tuple[str, Optional[dict]]:
        match e:
            case HostError():
                msg = f"HostError: {e}"
                if e.partial_result is not None:
                    msg = f"{msg}\npartial result: {e.partial_result!r}"
            case VexError():
                msg = f"{type(e).__name__}: {e}"
            case _:
                msg = f"InternalError: {type(e).__name__}: {e}"

        token = None
        node = getattr(e, 'node', None) or self.vm.current_node
        loc = getattr(node, 'loc', None)
        if isinstance(loc, dict):
            line = loc.get('line')
            col = loc.get('col')
            try:
                text = Printer().pformat(node)
            except (TypeError, ValueError):
                text = None
            token = {'line': line, 'col': col, 'text': text}
            if line is not None and col is not None:
                msg = f"{msg}\n(line {line}, col {col})\n{self._source_context(source, line, col, text)}"

        st = self._format_stacktrace()
        if st:
            msg += "\n" + st
        return msg, token

    def _source_context(self, source: str, line: int, col: Optional[int], text: Optional[str] = None) -> str:
        """The failing source line with the offending text underlined."""
        lines = source.splitlines()
        if not 1 <= line <= len(lines):
            return ""
        src = lines[line - 1]
        gutter = f"{line} | "
        if col is None:
            return gutter + src
        start = max(col - 1, 0)
        # A node spanning lines is underlined to the end of its first line.
        span = max(1, min(len(text or ""), len(src) - start))
        return f"{gutter}{src}\n{' ' * (len(gutter) + start)}^{'~' * (span - 1)}"

    def _format_stacktrace(self) -> str:
        stack = self.vm.call_stack
        if not stack:
            return ""

        def fmt(arg):
            match arg:
                case None:
                    return "none"
                case bool():
                    return "true" if arg else "false"
                case int() | float():
                    return repr(arg)
                case str():
                    return repr(arg)
                case list() | tuple():
                    return f"[{len(arg)}]"
                case dict():
                    return "{...}"
            if callable(arg):
                return getattr(arg, '__name__', None) or "<callable>"
            return f"<{type(arg).__name__}>"

        frames = []
        for frame in stack:
            name = frame.get('name') or '<call>'
            args_s = " ".join(fmt(a) for a in frame.get('args') or [])
            frames.append(f"({name} {args_s})" if args_s else f"({name})")
        return "VEX stacktrace: " + " ".join(frames)

    def _bind_host_api_methods(self):
        """Bind @vex_api_method methods of the host into the environment."""
        for n in self._host_api_names:
            self.vm.env.pop(n, None)
        self._host_api_names = set()

        host = self.host_object
        if host is None:
            return
        for name, member in inspect.getmembers(host):
            if name.startswith('_') or not callable(member):
                continue
            if getattr(member, '_is_vex_api', False):
                self.vm.set(name, member)
                self._host_api_names.add(name)

    def _error(self, msg: str, token: Optional[dict] = None, value: Any = None) -> ExecutionResult:
        self.side_effects.append({'topics': ['stderr'], 'message': msg})
        return ExecutionResult(
            status='error',
            value=value,
            error_message=msg,
            error_token=token,
            side_effects=self.side_effects,
        )

    def handle_expression(self, source: str) -> ExecutionResult:
        """The main entry point: compile and evaluate one expression."""
        self.side_effects = []
        self.vm.call_stack.clear()
        self._bind_host_api_methods()

        # 1. Parse
        parse_out = self.vm.parser.parse(source)
        if parse_out.get('status') != 'success':
            msg = self._format_parse_error(parse_out, source)
            return self._error(msg, parse_out.get('error_node'))

        # 2. Evaluate
        try:
            value = self.vm.eval(parse_out['ast'])
        except Exception as e:
            msg, token = self._format_runtime_error(e, source)
            return self._error(msg, token, getattr(e, 'partial_result', None))

        return ExecutionResult(status='success', value=value, side_effects=self.side_effects)

