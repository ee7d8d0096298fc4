"""Tests for helper utilities and logging configuration"""

import json
import logging

import pytest
import numpy as np

from vocal_pitch.audio.types import ConfigurationError
from vocal_pitch.utils.helpers import MathUtils, ValidationUtils, safe_divide
from vocal_pitch.utils.logging_config import (
    ColoredFormatter,
    JSONFormatter,
    LogContext,
    log_execution_time,
    setup_logging,
)


@pytest.mark.unit
class TestMathUtils:

    def test_db_conversions(self):
        assert MathUtils.db_to_linear(20.0) == pytest.approx(10.0)
        assert MathUtils.db_to_linear(-6.0) == pytest.approx(0.501187, rel=1e-5)
        assert MathUtils.linear_to_db(10.0) == pytest.approx(20.0)
        assert MathUtils.linear_to_db(0.0) == -80.0

    def test_rms_and_power(self):
        assert MathUtils.rms([3.0, -3.0]) == pytest.approx(3.0)
        assert MathUtils.rms([]) is None
        assert MathUtils.power([1.0, 2.0, 2.0]) == pytest.approx(9.0)

    def test_mean_std_deviation(self):
        mean, std = MathUtils.mean_std_deviation([1.0, 3.0])
        assert (mean, std) == (pytest.approx(2.0), pytest.approx(1.0))
        assert MathUtils.mean_std_deviation([]) is None

    def test_moving_average(self):
        values = [1.0, 2.0, 3.0, 4.0, 5.0]
        np.testing.assert_allclose(MathUtils.moving_average(values, 3), [1.5, 2.0, 3.0, 4.0, 4.5])
        np.testing.assert_array_equal(MathUtils.moving_average(values, 1), values)
        assert MathUtils.moving_average([], 3).shape == (0,)

    def test_safe_divide(self):
        assert safe_divide(1.0, 0.0) == 0.0
        assert safe_divide(1.0, 0.0, default=-1.0) == -1.0
        assert safe_divide(6.0, 3.0) == 2.0


@pytest.mark.unit
class TestValidationUtils:

    @pytest.mark.parametrize('value', [0, -3, 2.0, True, '4', None])
    def test_require_positive_int_rejects(self, value):
        with pytest.raises(ConfigurationError):
            ValidationUtils.require_positive_int(value, 'size')

    def test_require_positive_int_accepts_numpy(self):
        assert ValidationUtils.require_positive_int(np.int64(4), 'size') == 4

    def test_require_range(self):
        assert ValidationUtils.require_range(0.5, 'x', min_val=0.0, max_val=1.0) == 0.5
        with pytest.raises(ConfigurationError):
            ValidationUtils.require_range(0.0, 'x', min_val=0.0, inclusive=False)
        with pytest.raises(ConfigurationError):
            ValidationUtils.require_range(2.0, 'x', max_val=1.0)

    @pytest.mark.parametrize('value', [float('nan'), float('inf'), 'abc'])
    def test_require_finite_rejects(self, value):
        with pytest.raises(ConfigurationError):
            ValidationUtils.require_finite(value, 'x')


@pytest.fixture
def restore_package_logger():
    """Undo setup_logging changes to the vocal_pitch logger after the test."""
    package_logger = logging.getLogger('vocal_pitch')
    saved = (package_logger.level, package_logger.propagate, list(package_logger.handlers))
    yield package_logger
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(saved[0])
    package_logger.propagate = saved[1]
    for handler in saved[2]:
        package_logger.addHandler(handler)


def _record(message='hello', level=logging.INFO, **extra):
    record = logging.LogRecord('vocal_pitch.test', level, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestLogging:
    """Formatters, setup and decorators"""

    def test_json_formatter(self):
        payload = json.loads(JSONFormatter().format(_record(operation='gate')))
        assert payload['message'] == 'hello'
        assert payload['level'] == 'INFO'
        assert payload['logger'] == 'vocal_pitch.test'
        assert payload['operation'] == 'gate'

    def test_colored_formatter_restores_levelname(self):
        record = _record(level=logging.WARNING)
        output = ColoredFormatter('%(levelname)s %(message)s').format(record)
        assert '\033[33m' in output
        assert record.levelname == 'WARNING'

    def test_setup_logging_defaults(self, clean_env, restore_package_logger):
        package_logger = setup_logging()
        assert package_logger is restore_package_logger
        assert package_logger.level == logging.INFO
        assert len(package_logger.handlers) == 1
        assert isinstance(package_logger.handlers[0].formatter, ColoredFormatter)

    def test_setup_logging_from_env(self, clean_env, restore_package_logger, tmp_path):
        clean_env.setenv('LOG_LEVEL', 'debug')
        clean_env.setenv('LOG_FORMAT', 'json')
        clean_env.setenv('LOG_DIR', str(tmp_path / 'logs'))

        package_logger = setup_logging()
        package_logger.info('written to file')
        for handler in package_logger.handlers:
            handler.flush()

        assert package_logger.level == logging.DEBUG
        assert isinstance(package_logger.handlers[0].formatter, JSONFormatter)
        log_file = tmp_path / 'logs' / 'vocal_pitch.log'
        assert 'written to file' in log_file.read_text()

    def test_setup_logging_from_config(self, clean_env, restore_package_logger):
        package_logger = setup_logging({'logging': {'level': 'WARNING', 'format': 'json'}})
        assert package_logger.level == logging.WARNING

    def test_setup_logging_is_idempotent(self, clean_env, restore_package_logger):
        setup_logging()
        package_logger = setup_logging()
        assert len(package_logger.handlers) == 1

    def test_invalid_level(self, clean_env, restore_package_logger):
        clean_env.setenv('LOG_LEVEL', 'LOUD')
        with pytest.raises(ValueError):
            setup_logging()

    def test_log_execution_time(self, caplog):
        @log_execution_time("Test operation")
        def add(a, b):
            return a + b

        with caplog.at_level(logging.DEBUG, logger=__name__):
            assert add(1, 2) == 3

        assert any('Test operation completed' in r.getMessage() for r in caplog.records)
        assert add.__name__ == 'add'

    def test_log_execution_time_warns_when_slow(self, caplog):
        @log_execution_time("Slow operation", slow_threshold=-1.0)
        def work():
            return 'done'

        with caplog.at_level(logging.DEBUG, logger=__name__):
            work()

        assert any(r.levelno == logging.WARNING for r in caplog.records)

    def test_log_execution_time_reraises(self):
        @log_execution_time("Failing operation")
        def fail():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            fail()

    def test_log_context(self, caplog):
        logger = logging.getLogger(__name__)
        with caplog.at_level(logging.INFO, logger=__name__):
            with LogContext(recording='take_3'):
                logger.info('inside')
            logger.info('outside')

        inside, outside = caplog.records[-2:]
        assert inside.recording == 'take_3'
        assert not hasattr(outside, 'recording')
