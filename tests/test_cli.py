import pytest

from curly.__main__ import main


def write(path, text):
    path.write_text(text, encoding='utf-8')
    return str(path)


def test_render_with_env_file(tmp_path, capsys):
    env = write(tmp_path / 'env', 'name = "World";\nitems = [1, 2, 3];\n')
    tpl = write(tmp_path / 'hello.tpl', 'Hello {name}! {for i in items}{i}{end}\n')
    main(['--encoding', 'utf-8', '-e', env, tpl])
    assert capsys.readouterr().out == 'Hello World! 123\n'


def test_env_chunks_and_multiple_templates(tmp_path, capsys):
    first = write(tmp_path / 'a.tpl', '{a}')
    second = write(tmp_path / 'b.tpl', '{b}')
    main(['-c', 'a = 1;', '-c', 'b = "two";', '--encoding', 'utf-8', first, second])
    assert capsys.readouterr().out == '1two'


def test_output_file(tmp_path):
    tpl = write(tmp_path / 'x.tpl', 'café {"ok" | upper}')
    out = tmp_path / 'out.txt'
    main(['--encoding', 'utf-8', '-o', str(out), tpl])
    assert out.read_text(encoding='utf-8') == 'café OK'


def test_no_filters(tmp_path, capsys):
    tpl = write(tmp_path / 'x.tpl', '{"ok" | upper}')
    with pytest.raises(SystemExit) as excinfo:
        main(['--no-filters', '--encoding', 'utf-8', tpl])
    assert excinfo.value.code == 1
    assert "Symbol 'upper' not found" in capsys.readouterr().err


def test_failing_template_does_not_stop_the_others(tmp_path, capsys):
    bad = write(tmp_path / 'bad.tpl', 'partial {if 1}never closed')
    good = write(tmp_path / 'good.tpl', 'fine')
    with pytest.raises(SystemExit) as excinfo:
        main(['--encoding', 'utf-8', bad, good])
    assert excinfo.value.code == 1
    captured = capsys.readouterr()
    assert captured.out == 'fine'
    assert f'curly: {bad}: ' in captured.err
    assert "Unclosed 'if/else' block" in captured.err


def test_missing_template(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(['--encoding', 'utf-8', str(tmp_path / 'nope.tpl')])
    assert excinfo.value.code == 1
    assert 'Failed to open' in capsys.readouterr().err


def test_bad_environment_aborts(tmp_path, capsys):
    tpl = write(tmp_path / 'x.tpl', 'never rendered')
    with pytest.raises(SystemExit) as excinfo:
        main(['-c', 'a = 1', '--encoding', 'utf-8', tpl])
    assert excinfo.value.code == 1
    captured = capsys.readouterr()
    assert captured.out == ''
    assert "environment description:1:5: Missing ';' separator" in captured.err


def test_verbose_writes_debug_file(tmp_path, capsys):
    tpl = write(tmp_path / 'x.tpl', '{1}')
    debug = tmp_path / 'debug.txt'
    main(['-v', '--debug-file', str(debug), '--encoding', 'utf-8', tpl])
    assert capsys.readouterr().out == '1'
    assert f'rendering {tpl}' in debug.read_text(encoding='utf-8')


def test_requires_a_template(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main([])
    assert excinfo.value.code == 2


def test_encoding_applies_to_standard_output(tmp_path, capsysbinary):
    tpl = tmp_path / 'latin.tpl'
    tpl.write_bytes('caf\xe9 {x}'.encode('latin-1'))
    main(['--encoding', 'latin-1', '-c', 'x = "\xe0";', str(tpl)])
    assert capsysbinary.readouterr().out == 'caf\xe9 \xe0'.encode('latin-1')
