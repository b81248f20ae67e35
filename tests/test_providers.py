import math

import pytest

from beamsweep.config import BeamConfig
from beamsweep.io.tables import ApertureRow, EnvelopeRow
from beamsweep.model import section_signed_area
from beamsweep.providers import (
    ApertureProvider,
    BeamEnvelopeProvider,
    StaticProvider,
    aperture_polygon,
    beam_sigma,
    ellipse_points,
    forward_fill,
)


def test_forward_fill():
    assert forward_fill([1.0, None, None, 4.0, None]) == [1.0, 1.0, 1.0, 4.0, 4.0]
    with pytest.raises(ValueError):
        forward_fill([None, 1.0])
    with pytest.raises(ValueError):
        forward_fill([])


def test_aperture_polygon_truncates_and_fills():
    record = ApertureRow(row=0, xs=(1.0, None, 3.0, 9.0), ys=(0.0, 1.0, None))
    assert aperture_polygon(record) == [(1.0, 0.0), (1.0, 1.0), (3.0, 1.0)]


def test_aperture_provider_pairs_by_row():
    rows = [
        ApertureRow(row=0, xs=(1.0, -1.0, -1.0), ys=(0.0, 1.0, -1.0)),
        None,
        ApertureRow(row=2, xs=(2.0, -2.0, -2.0), ys=(0.0, 2.0, -2.0)),
    ]
    provider = ApertureProvider(rows)
    assert len(provider) == 2
    assert 2 in provider and 1 not in provider
    assert provider(2)[0] == (2.0, 0.0)
    assert provider(1) == []
    assert provider(99) == []


def test_beam_sigma():
    sigma = beam_sigma(4.0, -0.5, num_sigmas=3.0, sigma_scale=2.0, emittance=0.25)
    assert math.isclose(sigma, 2.0 * 3.0 * math.sqrt(1.0) + 0.5)
    assert beam_sigma(0.0) == 0.0
    with pytest.raises(ValueError):
        beam_sigma(-1.0)
    with pytest.raises(ValueError):
        beam_sigma(1e10, emittance=1e300)


def test_ellipse_points():
    pts = ellipse_points(1.0, 2.0, 3.0, 0.5, resolution=4)
    assert len(pts) == 4
    assert pts[0] == pytest.approx((4.0, 2.0))
    assert pts[1] == pytest.approx((1.0, 2.5))
    assert pts[2] == pytest.approx((-2.0, 2.0))
    assert section_signed_area(pts) > 0.0
    with pytest.raises(ValueError):
        ellipse_points(0, 0, 1, 1, resolution=2)


def test_beam_envelope_provider():
    rows = [
        EnvelopeRow(row=0, x=0.0, y=0.0, var_x=1.0, var_y=4.0),
        EnvelopeRow(row=1, x=0.5, y=0.0, var_x=-1.0, var_y=1.0),
        None,
    ]
    provider = BeamEnvelopeProvider(rows, BeamConfig(num_sigmas=1.0), resolution=16)
    pts = provider(0)
    assert len(pts) == 16
    assert pts[0] == pytest.approx((1.0, 0.0))
    assert pts[4] == pytest.approx((0.0, 2.0))
    assert provider.sigmas(rows[0]) == pytest.approx((1.0, 2.0))
    # negative variance and missing rows give no section
    assert provider(1) == []
    assert provider(2) == []
    assert 1 in provider and 2 not in provider


def test_beam_envelope_provider_overflow_gives_no_section():
    rows = [EnvelopeRow(row=0, x=0.0, y=0.0, var_x=1e10, var_y=1.0)]
    provider = BeamEnvelopeProvider(rows, BeamConfig(emittance=1e300))
    assert provider(0) == []


def test_beam_envelope_provider_resolution():
    with pytest.raises(ValueError):
        BeamEnvelopeProvider([], resolution=2)


def test_static_provider():
    provider = StaticProvider([(0, 0), (1, 0), (0, 1)])
    assert provider(0) == provider(123) == [(0.0, 0.0), (1.0, 0.0), (0.0, 1.0)]
    provider(0).append((5.0, 5.0))
    assert len(provider(0)) == 3
