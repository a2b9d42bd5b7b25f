"""Basic metadata exposure tests for the package."""

import sketchlab


def test_version_is_exposed() -> None:
    assert isinstance(sketchlab.__version__, str)
    assert sketchlab.get_version() == sketchlab.__version__
