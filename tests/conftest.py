import pytest

from mandelzoom import ComplexPoint, DispatchScheduler, RenderConfig


@pytest.fixture
def origin():
    return ComplexPoint(0.0, 0.0)


@pytest.fixture
def small_config():
    return RenderConfig(
        max_iter=64,
        img_width=16,
        img_height=9,
        center=ComplexPoint(-0.5, 0.0),
        zoom_start=1.0,
        zoom_end=10.0,
        zoom_fact=2.0,
    )


@pytest.fixture
def scheduler():
    with DispatchScheduler(workers=4, device="/CPU:0") as pool:
        yield pool
