import base64
import binascii
import html
from urllib.parse import quote

from curly.environment import Environment
from curly.errors import CurlyEvalError
from curly.types import ARRAY, STRING, FilterFunction, Value


def _text(value: Value) -> str:
    return value.data if value.kind == STRING else value.to_string()


def populate_filters(env: Environment) -> Environment:
    """Push the stock filters into ``env`` and return it."""

    def filter_xmlentities(value: Value) -> Value:
        return Value.string(html.escape(_text(value), quote=True))

    def filter_urlencode(value: Value) -> Value:
        return Value.string(quote(_text(value), safe=''))

    def filter_base64encode(value: Value) -> Value:
        return Value.string(base64.b64encode(_text(value).encode('utf-8')).decode('ascii'))

    def filter_base64decode(value: Value) -> Value:
        try:
            decoded = base64.b64decode(_text(value), validate=True)
            return Value.string(decoded.decode('utf-8'))
        except (binascii.Error, UnicodeDecodeError) as e:
            raise CurlyEvalError(f"base64decode: invalid input '{value}': {e}", 'filter-failed') from e

    def filter_upper(value: Value) -> Value:
        return Value.string(_text(value).upper())

    def filter_lower(value: Value) -> Value:
        return Value.string(_text(value).lower())

    def filter_length(value: Value) -> Value:
        if value.kind == ARRAY:
            return Value.integer(len(value.data))
        return Value.integer(len(_text(value)))

    env.push('xmlentities', FilterFunction('xmlentities', filter_xmlentities))
    env.push('urlencode', FilterFunction('urlencode', filter_urlencode))
    env.push('base64encode', FilterFunction('base64encode', filter_base64encode))
    env.push('base64decode', FilterFunction('base64decode', filter_base64decode))
    env.push('upper', FilterFunction('upper', filter_upper))
    env.push('lower', FilterFunction('lower', filter_lower))
    env.push('length', FilterFunction('length', filter_length))

    return env
