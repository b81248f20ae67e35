import logging

from beamsweep.logging_config import setup_logging


def test_setup_logging_replaces_handlers(tmp_path):
    log_file = tmp_path / 'sweep.log'
    logger = setup_logging(logging.DEBUG, str(log_file))
    assert logger.name == 'beamsweep'
    assert len(logger.handlers) == 2

    logging.getLogger('beamsweep.sweep').debug('row %d: section dropped', 7)

    logger = setup_logging(logging.WARNING)
    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING
    assert 'beamsweep.sweep: row 7: section dropped' in log_file.read_text(encoding='utf-8')
