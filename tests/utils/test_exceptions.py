import logging
import pytest
from unittest.mock import Mock

from topreco.utils.error_handling import handle_engine_errors
from topreco.utils.exceptions import (
    ConfigurationError,
    EventDataError,
    KinematicInputError,
    ReconstructionError,
    SmearingHistogramError,
    TopRecoException,
)


@pytest.mark.parametrize("exc_type", [
    ConfigurationError, SmearingHistogramError, KinematicInputError, EventDataError, ReconstructionError,
])
def test_exception_inheritance(exc_type):
    err = exc_type("Test error")
    assert isinstance(err, TopRecoException)
    assert isinstance(err, Exception)
    assert str(err) == "Test error"


class _Engine:
    def __init__(self, error):
        self.logger = Mock(spec=logging.Logger)
        self.error = error

    @handle_engine_errors("Dummy Step")
    def execute(self):
        raise self.error


def test_project_errors_pass_through():
    engine = _Engine(EventDataError("bad table"))
    with pytest.raises(EventDataError, match="bad table"):
        engine.execute()
    engine.logger.error.assert_not_called()


def test_unexpected_errors_are_wrapped():
    engine = _Engine(ZeroDivisionError("boom"))
    with pytest.raises(TopRecoException, match="Dummy Step failed: boom") as info:
        engine.execute()
    assert isinstance(info.value.__cause__, ZeroDivisionError)
    engine.logger.error.assert_called_once()
