import numpy as np
import pandas as pd
import pytest

from Footfall import RegularSeries, SeasonalDecomposer
from Footfall.decomposition import decompose, validate_periods
from Footfall.errors import ConfigurationError, InsufficientDataError


def _business_series(values, hour_window=(10, 22)):
    lo, hi = hour_window
    n = len(values)
    days = n // (hi - lo + 1) + 2
    idx = pd.date_range("2024-03-04", periods=days * 24, freq="1h")
    idx = idx[(idx.hour >= lo) & (idx.hour <= hi)][:n]
    return RegularSeries(y=pd.Series(values, index=idx, dtype="float64"), interval="1h", hour_window=hour_window)


SAWTOOTH = np.arange(13, dtype=float) - 6.0


def test_classical_recovers_level_and_sawtooth():
    values = 5.0 + np.tile(SAWTOOTH, 2)
    series = _business_series(values)

    result = decompose(series, [13])

    assert result.method == "classical"
    assert result.periods == (13,)
    np.testing.assert_allclose(result.seasonal(13).to_numpy(), np.tile(SAWTOOTH, 2), atol=1e-9)

    trend = result.trend.dropna()
    assert len(trend) > 0
    np.testing.assert_allclose(trend.to_numpy(), 5.0, atol=1e-9)

    remainder = result.remainder.dropna()
    np.testing.assert_allclose(remainder.to_numpy(), 0.0, atol=1e-9)


def test_components_add_back_to_observed():
    rng = np.random.default_rng(3)
    values = 20 + np.tile(SAWTOOTH, 4) + rng.normal(0, 1, 52)
    result = decompose(_business_series(values), [13])

    recon = result.reconstruct()
    defined = recon.notna()
    np.testing.assert_allclose(recon[defined].to_numpy(), result.observed[defined].to_numpy(), atol=1e-8)


def test_mstl_two_nested_periods():
    n = 3 * 91
    t = np.arange(n)
    values = 30 + 5 * np.sin(2 * np.pi * t / 13) + 3 * np.sin(2 * np.pi * t / 91) + 0.01 * t
    series = _business_series(values)

    result = SeasonalDecomposer(method="auto").decompose(series, [13, 91])

    assert result.method == "mstl"
    assert set(result.seasonal_components) == {13, 91}
    np.testing.assert_allclose(result.reconstruct().to_numpy(), values, atol=1e-6)
    assert list(result.observed.index) == list(series.index)


def test_stl_single_period():
    values = 10 + np.tile(SAWTOOTH, 3)
    result = SeasonalDecomposer(method="stl").decompose(_business_series(values), [13])

    assert result.method == "stl"
    np.testing.assert_allclose(result.reconstruct().to_numpy(), values, atol=1e-6)


def test_period_longer_than_two_cycles_is_rejected():
    series = _business_series(np.ones(26))

    with pytest.raises(InsufficientDataError) as info:
        decompose(series, [14])

    assert info.value.context["period"] == 14


def test_period_not_shorter_than_series_is_rejected():
    with pytest.raises(InsufficientDataError):
        decompose(_business_series(np.ones(26)), [26])


def test_mstl_needs_more_than_two_cycles_of_the_longest_period():
    series = _business_series(np.arange(182, dtype=float))

    with pytest.raises(InsufficientDataError) as info:
        decompose(series, [13, 91])

    assert info.value.context["period"] == 91


@pytest.mark.parametrize("periods", [[], [1], [13, 7], [13, 13], [2, 3, 4]])
def test_bad_period_lists_are_configuration_errors(periods):
    with pytest.raises(ConfigurationError):
        validate_periods(periods)


def test_classical_rejects_two_periods():
    series = _business_series(np.arange(300, dtype=float))

    with pytest.raises(ConfigurationError):
        SeasonalDecomposer(method="classical").decompose(series, [13, 91])


def test_unknown_method_is_rejected():
    with pytest.raises(ConfigurationError):
        SeasonalDecomposer(method="x11")


def test_decomposition_does_not_touch_input():
    values = 5.0 + np.tile(SAWTOOTH, 2)
    series = _business_series(values)
    before = series.values

    decompose(series, [13])

    np.testing.assert_array_equal(series.values, before)
