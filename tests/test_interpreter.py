import pytest

from curly.environment import Environment
from curly.errors import CurlyEvalError, CurlyRangeError, CurlySyntaxError
from curly.filters import populate_filters
from curly.interpreter import Interpreter, evaluate_string, render_path, render_string
from curly.lexer import lex_string
from curly.lexer_expr import lex_expression_string
from curly.stream import InputStream, OutputStream
from curly.types import INT_MAX, INT_MIN, Value


def env_from(text):
    env = Environment()
    env.add_from_string(text)
    return env


@pytest.mark.parametrize('source,expected', [
    ('1 + 2 * 3', Value.integer(7)),
    ('(1 + 2) * 3', Value.integer(9)),
    ('1 + 2', Value.integer(3)),
    ('1 + 2.5', Value.floating(3.5)),
    ('5 - 3', Value.floating(2.0)),
    ('"a" + 1', Value.string('a1')),
    ('1.5 + "b"', Value.string('1.5b')),
    ('"x" * 3', Value.string('xxx')),
    ('3 * "ab"', Value.string('ababab')),
    ('"x" * 1', Value.string('x')),
    ('"x" * 0', Value.string('')),
    ('"x" * -2', Value.string('')),
    ('"x" * 2.0', Value.string('xx')),
    ('2 * 3', Value.integer(6)),
    ('2 * 1.5', Value.floating(3.0)),
    ('7 / 2', Value.floating(3.5)),
    ('"9" / 3', Value.floating(3.0)),
    ('7 % 3', Value.integer(1)),
    ('-7 % 3', Value.integer(-1)),
    ('7 % -3', Value.integer(1)),
    ('7.0 % 2', Value.integer(1)),
    ('1 == 1.0', Value.integer(1)),
    ('0.1 + 0.2 == 0.3', Value.integer(0)),
    ('2 > 1', Value.integer(1)),
    ('2 <= 1', Value.integer(0)),
    ('"abc" < "abd"', Value.integer(1)),
    ('"10" == 10', Value.integer(1)),
    ('"b" > 1', Value.integer(1)),
    ('1 && 0', Value.integer(0)),
    ('1 || 0', Value.integer(1)),
    ('"" || 0.0', Value.integer(0)),
])
def test_operators(source, expected):
    assert evaluate_string(source) == expected


def test_array_plus():
    env = env_from('a = [1, 2]; b = [3, [4]];')
    assert evaluate_string('a + b', env).to_string() == '[1, 2, 3, [4]]'
    assert evaluate_string('a + 5', env).to_string() == '[1, 2, 5]'
    assert evaluate_string('a + "s"', env).to_string() == '[1, 2, s]'
    # the environment value is left untouched
    assert env.lookup('a').to_string() == '[1, 2]'


def test_array_comparison():
    env = env_from('a = [1, 2]; b = [1, 2, 3]; c = [1, 3]; d = [1, 2];')
    assert evaluate_string('a < b', env) == Value.integer(1)
    assert evaluate_string('c > b', env) == Value.integer(1)
    assert evaluate_string('a == d', env) == Value.integer(1)
    assert evaluate_string('a != b', env) == Value.integer(1)


@pytest.mark.parametrize('source,code', [
    ('"s" + arr', 'invalid-operands'),
    ('arr * 2', 'invalid-operands'),
    ('"a" * "b"', 'invalid-operands'),
    ('"a" * 1.5', 'invalid-operands'),
    ('"a" - 1', 'invalid-operands'),
    ('1 / 0', 'division-by-zero'),
    ('1 / 0.0', 'division-by-zero'),
    ('1 % 0', 'division-by-zero'),
    ('1.5 % 2', 'invalid-operands'),
    ('arr == 1', 'invalid-operands'),
    ('1 < arr', 'invalid-operands'),
    ('missing', 'symbol-not-found'),
    ('1 | 2', 'not-a-filter'),
])
def test_evaluation_errors(source, code):
    env = Environment()
    env.push('arr', [1])
    with pytest.raises(CurlyEvalError) as excinfo:
        evaluate_string(source, env)
    assert excinfo.value.code == code


def test_string_repeat_overflow():
    env = Environment({'s': 'ab'})
    with pytest.raises(CurlyRangeError):
        evaluate_string('s * 1073741824', env)


def test_no_short_circuit():
    with pytest.raises(CurlyEvalError) as excinfo:
        evaluate_string('0 && undefined_symbol')
    assert excinfo.value.code == 'symbol-not-found'
    with pytest.raises(CurlyEvalError):
        evaluate_string('1 || undefined_symbol')


def test_indexing():
    env = env_from('arr = ["a", "b", "c"]; grid = [[1, 2], [3, 4]]; i = 1;')
    assert evaluate_string('arr[1]', env) == Value.string('b')
    assert evaluate_string('arr[i + 1]', env) == Value.string('c')
    assert evaluate_string('arr["2"]', env) == Value.string('c')
    assert evaluate_string('grid[1][0]', env) == Value.integer(3)
    assert evaluate_string('(grid[0] + 9)[2]', env) == Value.integer(9)


@pytest.mark.parametrize('source,code', [
    ('arr[5]', 'index-out-of-range'),
    ('arr[-1]', 'index-out-of-range'),
    ('arr[1.5]', 'invalid-index'),
    ('arr["x"]', 'invalid-index'),
    ('i[0]', 'not-indexable'),
    ('arr[1][0]', 'not-indexable'),
])
def test_indexing_errors(source, code):
    env = env_from('arr = ["a", "b", "c"]; i = 1;')
    with pytest.raises(CurlyEvalError) as excinfo:
        evaluate_string(source, env)
    assert excinfo.value.code == code


def test_index_error_message():
    env = env_from('arr = ["a", "b", "c"];')
    with pytest.raises(CurlyEvalError, match=r"Cannot index value '\[a, b, c\]' at 5"):
        evaluate_string('arr[5]', env)


def test_eval_bool():
    interp = Interpreter()
    env = env_from('empty = []; full = [0];')
    assert not interp.eval_bool(lex_expression_string('empty'), env)
    assert interp.eval_bool(lex_expression_string('full'), env)
    assert interp.eval_bool(lex_expression_string('0.5'), env)


def test_scenario_substitution():
    assert render_string('Hello {name}!', env_from('name = "World";')) == 'Hello World!'


def test_scenario_loop():
    assert render_string('{for x in items}{x} {end}', env_from('items = [1, 2, 3];')) == '1 2 3 '


def test_scenario_conditional():
    template = '{if n > 0}pos{else}nonpos{end}'
    assert render_string(template, env_from('n = -5;')) == 'nonpos'
    assert render_string(template, env_from('n = 5;')) == 'pos'


def test_if_without_else_false_renders_nothing():
    assert render_string('a{if 0}b{end}c') == 'ac'


def test_scenario_indexing():
    env = env_from('arr = ["a","b","c"];')
    assert render_string('{arr[1]}', env) == 'b'
    with pytest.raises(CurlyEvalError) as excinfo:
        render_string('{arr[5]}', env)
    assert excinfo.value.code == 'index-out-of-range'


def test_scenario_unmatched_block():
    with pytest.raises(CurlySyntaxError) as excinfo:
        render_string('{if 1}x')
    assert 'Unclosed' in str(excinfo.value)


def test_nested_loops_and_shadowing():
    env = env_from('x = "outer"; rows = [[1, 2], [3]];')
    out = render_string('{for x in rows}({for y in x}{y}{end}){end}{x}', env)
    assert out == '(12)(3)outer'
    assert env.lookup('x') == Value.string('outer')
    assert env.lookup('y') is None


def test_for_over_non_array():
    with pytest.raises(CurlyEvalError, match="Cannot iterate over value '3'"):
        render_string('{for x in 3}{x}{end}')


def test_failing_loop_body_pops_iterator():
    env = env_from('items = [1, 2];')
    with pytest.raises(CurlyEvalError):
        render_string('{for x in items}{x}{nope}{end}', env)
    assert env.lookup('x') is None


def test_render_stops_at_first_error():
    interp = Interpreter()
    output = OutputStream.to_string()
    with pytest.raises(CurlyEvalError):
        interp.render(lex_string('a{nope}b'), Environment(), output)
    assert output.getvalue() == 'a'


def test_tree_renders_against_several_environments():
    template = lex_string('{greeting}, {who}')
    interp = Interpreter()
    first = interp.render_to_string(template, Environment({'greeting': 'Hi', 'who': 'A'}))
    second = interp.render_to_string(template, Environment({'greeting': 'Yo', 'who': 'B'}))
    assert (first, second) == ('Hi, A', 'Yo, B')


def test_float_output_format():
    assert render_string('{1 / 3} {10 / 4} {2 * 0.5}') == '0.333333333333333 2.5 1'


def test_filters():
    env = populate_filters(Environment())
    env.push('text', '<a href="x">&</a>')
    assert render_string('{text | xmlentities}', env) == '&lt;a href=&quot;x&quot;&gt;&amp;&lt;/a&gt;'
    assert render_string('{"a b/c" | urlencode}', env) == 'a%20b%2Fc'
    assert render_string('{"hello" | base64encode}', env) == 'aGVsbG8='
    assert render_string('{"aGVsbG8=" | base64decode | upper}', env) == 'HELLO'
    assert render_string('{"ab" * 2 | length}', env) == '4'


def test_custom_python_filter():
    env = Environment()
    env.push('double', lambda value: value.to_python() * 2)
    assert render_string('{21 | double}', env) == '42'


def test_filter_failure_propagates():
    env = populate_filters(Environment())
    with pytest.raises(CurlyEvalError) as excinfo:
        render_string('{"%%%" | base64decode}', env)
    assert excinfo.value.code == 'filter-failed'


def test_render_path(tmp_path):
    path = tmp_path / 'page.tpl'
    path.write_text('{for i in items}<{i}>{end}', encoding='utf-8')
    output = OutputStream.to_string()
    render_path(path, env_from('items = ["x", 2.5];'), output)
    assert output.getvalue() == '<x><2.5>'


def test_debug_output(capsys):
    env = env_from('items = [1];')
    render_string('{for i in items}{if i}{i}{end}{end}', env, debug_level=3)
    err = capsys.readouterr().err
    assert 'for i = 1' in err
    assert 'if i -> True' in err
    assert 'eval items -> [1]' in err


def test_debug_file(tmp_path):
    debug_path = tmp_path / 'debug.txt'
    with Interpreter(debug_level=4, debug_file=str(debug_path)) as interp:
        interp.render_to_string(lex_string('x{1 + 1}'), Environment())
    content = debug_path.read_text(encoding='utf-8')
    assert "data 'x'" in content
    assert 'expr (1 + 1)' in content


def test_scenario_loop_needs_end():
    with pytest.raises(CurlySyntaxError) as excinfo:
        render_string('{for x in items}{x} ', env_from('items = [1, 2, 3];'))
    assert excinfo.value.code == 'unclosed-block'


def test_logical_operators_share_the_comparison_tier():
    env = env_from('a = 1; b = 2;')
    # reads as ((a == 1) && b) == 2
    assert render_string('{if a == 1 && b == 2}yes{else}no{end}', env) == 'no'
    assert render_string('{if (a == 1) && (b == 2)}yes{else}no{end}', env) == 'yes'


@pytest.mark.parametrize('source', [
    '9223372036854775807 + 1',
    '-9223372036854775807 + -2',
    '4611686018427387904 * 2',
    '3037000500 * 3037000500',
])
def test_integer_overflow_is_a_range_error(source):
    with pytest.raises(CurlyRangeError) as excinfo:
        evaluate_string(source)
    assert excinfo.value.code == 'out-of-range'


def test_integer_results_at_the_bounds_read_back():
    for source, expected in [('9223372036854775806 + 1', INT_MAX),
                             ('-4611686018427387904 * 2', INT_MIN)]:
        value = evaluate_string(source)
        assert value == Value.integer(expected)
        assert InputStream.from_string(value.to_string()).read_number() == value


def test_large_integers_mix_with_floats():
    assert evaluate_string('9223372036854775807 + 0.5').kind == 'Float'
    assert evaluate_string('9223372036854775807 > 1.5') == Value.integer(1)


def test_non_finite_strings_are_not_numbers():
    with pytest.raises(CurlyEvalError) as excinfo:
        evaluate_string('"1e999" - 0')
    assert excinfo.value.code == 'invalid-operands'


def test_filter_returning_oversized_integer():
    env = Environment()
    env.push('big', Value.filter(lambda value: 2 ** 70, 'big'))
    with pytest.raises(CurlyEvalError) as excinfo:
        render_string('{1 | big}', env)
    assert excinfo.value.code == 'invalid-filter-result'


def test_overlong_operator_chain():
    source = ' + '.join(['1'] * 5000)
    with pytest.raises(CurlyEvalError) as excinfo:
        evaluate_string(source)
    assert excinfo.value.code == 'nesting-too-deep'
    with pytest.raises(CurlyEvalError) as excinfo:
        render_string('{' + source + '}')
    assert excinfo.value.code == 'nesting-too-deep'
    assert evaluate_string(' + '.join(['1'] * 200)) == Value.integer(200)


def test_deep_template_nesting():
    assert render_string('{if 1}' * 64 + 'x' + '{end}' * 64) == 'x'
    with pytest.raises(CurlySyntaxError) as excinfo:
        render_string('{if 1}' * 300 + 'x' + '{end}' * 300)
    assert excinfo.value.code == 'nesting-too-deep'
