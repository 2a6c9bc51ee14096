from typing import Any, Callable, Dict, Iterator, List, Optional
from curly.parser import parse_statement, read_statement
from curly.stream import InputStream
from curly.types import Value


class Environment:
    """Maps symbol names to stacks of values.

    ``lookup`` sees the most recently pushed value of a symbol; ``pop``
    reveals the previous one. Values are deep-copied on push so the
    caller keeps ownership of what it passed in.
    """
    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self.symbols: Dict[str, List[Value]] = {}
        if values:
            for name, value in values.items():
                self.push(name, value)

    def __contains__(self, name: str) -> bool:
        return bool(self.symbols.get(name))

    def __len__(self) -> int:
        return sum(1 for stack in self.symbols.values() if stack)

    def names(self) -> Iterator[str]:
        return (name for name, stack in self.symbols.items() if stack)

    def lookup(self, name: str) -> Optional[Value]:
        stack = self.symbols.get(name)
        if not stack:
            return None
        return stack[-1]

    def push(self, name: str, value: Any) -> None:
        self.symbols.setdefault(name, []).append(Value.from_python(value))

    def pop(self, name: str) -> Optional[Value]:
        stack = self.symbols.get(name)
        if not stack:
            return None
        value = stack.pop()
        if not stack:
            del self.symbols[name]
        return value

    def foreach(self, callback: Callable[['Environment', str, Value], bool]) -> None:
        """Call ``callback(env, name, value)`` with the visible value of each symbol.

        Iteration stops as soon as the callback returns a false value.
        """
        for name, stack in list(self.symbols.items()):
            if stack and not callback(self, name, stack[-1]):
                break

    def merge(self, source: 'Environment', merge_symbols: bool = False) -> None:
        """Merge ``source`` into this environment.

        Symbols missing here are copied in. Symbols present on both sides
        get the source's visible value pushed only if ``merge_symbols`` is
        true. Only the top of each source stack is merged, never the values
        it shadows.
        """
        def merge_one(env, name, value):
            if merge_symbols or name not in self:
                self.push(name, value)
            return True

        source.foreach(merge_one)

    # Loading from environment descriptions
    def add_from_stream(self, stream: InputStream) -> None:
        """Push every ``SYMBOL = VALUE;`` statement read from ``stream``.

        Symbols pushed before a failing statement stay in the environment.
        """
        while True:
            statement = read_statement(stream)
            if statement is None:
                return
            text, start = statement
            name, value = parse_statement(text, start, stream.position)
            self.symbols.setdefault(name, []).append(value)

    def add_from_string(self, text: str) -> None:
        self.add_from_stream(InputStream.from_string(text, 'environment description'))

    def add_from_path(self, path, encoding: str = 'utf-8') -> None:
        with InputStream.from_path(path, encoding) as stream:
            self.add_from_stream(stream)
