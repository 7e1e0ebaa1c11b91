import json
import os

import pytest

from page_mirror.capture.formatter import CodeFormatter
from page_mirror.capture.models import AssetKind, AssetRecord
from page_mirror.capture.writer import OutputWriter
from page_mirror.errors import FormatFailure, OutputWriteFailure


class BrokenFormatter(CodeFormatter):
    """Formatter that rejects every stylesheet."""

    def format_css(self, css):
        raise FormatFailure("CSS: unbalanced braces")


def read(folder, name):
    with open(os.path.join(folder, name), encoding='utf-8') as f:
        return f.read()


def test_prepare_is_idempotent(output_dir):
    writer = OutputWriter(output_dir)
    writer.prepare()
    writer.prepare()

    assert os.path.isdir(os.path.join(output_dir, 'images'))


def test_prepare_fails_when_path_is_a_file(tmp_path):
    path = tmp_path / 'file'
    path.write_text('x')

    with pytest.raises(OutputWriteFailure):
        OutputWriter(str(path)).prepare()


def test_materialize_writes_three_files(output_dir):
    writer = OutputWriter(output_dir, CodeFormatter(enabled=False))
    result = writer.materialize('<html><body></body></html>', 'a{color:red}', 'var x=1;')

    assert result.success
    assert result.message == f"Successfully cloned and saved files to {output_dir}"
    assert read(output_dir, 'index.html') == '<html><body></body></html>'
    assert read(output_dir, 'style.css') == 'a{color:red}'
    assert read(output_dir, 'script.js') == 'var x=1;'


def test_materialize_formats_output(output_dir):
    OutputWriter(output_dir).materialize(
        '<html><body><p>hi</p></body></html>',
        'a{color:red}',
        'function f(){return 1}'
    )

    assert read(output_dir, 'style.css') == 'a {\n  color: red\n}'
    assert '\n' in read(output_dir, 'script.js')
    assert '<p>\n' in read(output_dir, 'index.html')


def test_format_failure_writes_unformatted_text(output_dir):
    writer = OutputWriter(output_dir, BrokenFormatter())
    writer.materialize('<p>x</p>', 'a{{color:red}', '')

    assert read(output_dir, 'style.css') == 'a{{color:red}'
    assert read(output_dir, 'script.js') == ''


def test_error_log_lists_failed_assets(output_dir):
    writer = OutputWriter(output_dir)
    writer.prepare()

    image = AssetRecord("https://example.com/a.png", AssetKind.IMAGE)
    image.mark_failed("HTTP 404")
    sheet = AssetRecord("https://example.com/site.css", AssetKind.STYLESHEET)
    sheet.mark_failed("Timeout")
    writer.write_error_log([image, sheet])

    assert json.loads(read(output_dir, 'errors.json')) == [
        {'url': "https://example.com/a.png", 'kind': 'image', 'error': "HTTP 404"},
        {'url': "https://example.com/site.css", 'kind': 'stylesheet', 'error': "Timeout"},
    ]


def test_error_log_skipped_without_failures(output_dir):
    writer = OutputWriter(output_dir)
    writer.prepare()
    writer.write_error_log([])

    assert not os.path.exists(os.path.join(output_dir, 'errors.json'))


def test_disabled_formatter_returns_input():
    formatter = CodeFormatter(enabled=False)
    assert formatter.format_html('<p>x</p>') == '<p>x</p>'
    assert formatter.format_css('a{b:c}') == 'a{b:c}'
    assert formatter.format_js('var a=1') == 'var a=1'
