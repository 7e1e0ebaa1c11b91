import logging

import pytest

from page_mirror.utils.log import (
    create_progress,
    get_logger,
    level_for,
    print_error,
    print_info,
    print_success,
    print_warning,
    setup_logger,
)


@pytest.fixture
def quiet_logger():
    setup_logger(level=logging.WARNING)
    try:
        yield
    finally:
        setup_logger()


def test_level_for_flags():
    assert level_for() == logging.INFO
    assert level_for(verbose=True) == logging.DEBUG
    assert level_for(quiet=True) == logging.WARNING


def test_component_loggers_share_package_handlers():
    setup_logger()
    logger = get_logger("downloader")
    assert logger.name == "page_mirror.downloader"
    assert logger.getEffectiveLevel() == logging.INFO


def test_status_lines_printed_at_info_level(capsys):
    setup_logger()

    print_info("Rendering page")
    print_success("Saved")

    out = capsys.readouterr().out
    assert "Rendering page" in out
    assert "Saved" in out


def test_quiet_mode_only_prints_errors(quiet_logger, capsys):
    print_info("Rendering page")
    print_warning("Slow asset")
    print_success("Saved")
    print_error("Page failed")

    out = capsys.readouterr().out
    assert "Rendering page" not in out
    assert "Slow asset" not in out
    assert "Saved" not in out
    assert "Page failed" in out


def test_progress_disabled_in_quiet_mode(quiet_logger):
    assert create_progress().disable
