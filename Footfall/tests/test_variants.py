from dataclasses import FrozenInstanceError

import numpy as np
import pandas as pd
import pytest

from Footfall import RegularSeries, get_variant
from Footfall.errors import ConfigurationError, InsufficientDataError, ModelFitError
from Footfall.modeling import build_variant_registry, default_periods, fit, forecast, resolve_variants


def _business_series(values, hour_window=(10, 22)):
    lo, hi = hour_window
    n = len(values)
    days = n // (hi - lo + 1) + 2
    idx = pd.date_range("2024-03-04", periods=days * 24, freq="1h")
    idx = idx[(idx.hour >= lo) & (idx.hour <= hi)][:n]
    return RegularSeries(y=pd.Series(values, index=idx, dtype="float64"), interval="1h", hour_window=hour_window)


DAILY = np.array([2, 4, 7, 9, 8, 6, 5, 6, 8, 10, 7, 4, 2], dtype=float)


def _noisy(n_days=21, seed=0):
    rng = np.random.default_rng(seed)
    return 10 + np.tile(DAILY, n_days) + rng.normal(0, 0.5, 13 * n_days)


def test_registry_has_builtin_variants_in_order():
    registry = build_variant_registry()

    assert list(registry) == ["holt_winters", "stl_ets", "stl_arima", "seasonal_naive"]
    assert registry is not build_variant_registry()


def test_min_train_length_depends_on_periods_used():
    assert get_variant("holt_winters").min_train_length((13, 91)) == 27
    assert get_variant("stl_ets").min_train_length((13, 91)) == 183


def test_unknown_tag_is_rejected():
    with pytest.raises(ConfigurationError):
        get_variant("prophet")


def test_duplicate_tags_are_rejected():
    with pytest.raises(ConfigurationError):
        resolve_variants(["seasonal_naive", "seasonal_naive"])


def test_default_periods_follow_the_business_window():
    series = _business_series(np.ones(13 * 3))

    assert default_periods(series) == (13, 91)


def test_seasonal_naive_repeats_last_cycle_on_future_grid():
    series = _business_series(np.tile(DAILY, 3))

    handle = fit(get_variant("seasonal_naive"), series, [13])
    fc = forecast(handle, 15)

    np.testing.assert_array_equal(fc.point.to_numpy(), np.resize(DAILY, 15))
    assert fc.point.index[0] == pd.Timestamp("2024-03-07 10:00")
    assert fc.point.index[13] == pd.Timestamp("2024-03-08 10:00")
    assert not fc.has_intervals
    np.testing.assert_array_equal(handle.residuals, 0.0)


def test_holt_winters_forecast_is_finite():
    series = _business_series(_noisy())

    handle = fit(get_variant("holt_winters"), series, [13])
    fc = forecast(handle, 13)

    assert fc.horizon == 13
    assert np.all(np.isfinite(fc.point.to_numpy()))
    assert handle.params["seasonal_period"] == 13
    assert handle.n_train == len(series)


def test_holt_winters_on_constant_series_fails_with_tag():
    series = _business_series(np.zeros(13 * 4))

    with pytest.raises(ModelFitError) as info:
        fit(get_variant("holt_winters"), series, [13])

    assert info.value.tag == "holt_winters"
    assert info.value.stage == "fit"


def test_stl_ets_gives_ordered_intervals():
    series = _business_series(_noisy(n_days=7 * 3))

    handle = fit(get_variant("stl_ets"), series, [13, 91])
    fc = forecast(handle, 13)

    assert fc.has_intervals
    assert fc.level == pytest.approx(0.95)
    assert np.all(fc.lower.to_numpy() <= fc.point.to_numpy() + 1e-9)
    assert np.all(fc.point.to_numpy() <= fc.upper.to_numpy() + 1e-9)
    assert handle.params["form"] in {"ANN", "AAN", "AAdN"}


def test_fit_rejects_series_shorter_than_two_cycles():
    series = _business_series(np.arange(20, dtype=float))

    with pytest.raises(InsufficientDataError):
        fit(get_variant("seasonal_naive"), series, [13])


@pytest.mark.parametrize("horizon", [0, -3, True, 2.5])
def test_forecast_horizon_must_be_positive_int(horizon):
    series = _business_series(np.tile(DAILY, 3))
    handle = fit(get_variant("seasonal_naive"), series, [13])

    with pytest.raises(ConfigurationError):
        forecast(handle, horizon)


def test_fitted_handle_is_immutable():
    series = _business_series(np.tile(DAILY, 3))
    handle = fit(get_variant("seasonal_naive"), series, [13])

    with pytest.raises(FrozenInstanceError):
        handle.tag = "other"


def test_stl_arima_order_comes_from_the_grid_and_cycle_is_readded():
    series = _business_series(_noisy(n_days=7 * 3))

    handle = fit(get_variant("stl_arima"), series, [13, 91])
    fc = forecast(handle, 13)

    p, d, q = handle.params["order"]
    assert 0 <= p <= 2 and 0 <= d <= 2 and 0 <= q <= 2
    assert handle.params["trend"] == {0: "c", 1: "t"}.get(d, "n")

    assert fc.has_intervals
    assert np.all(fc.lower.to_numpy() <= fc.point.to_numpy() + 1e-9)
    assert np.all(fc.point.to_numpy() <= fc.upper.to_numpy() + 1e-9)

    state = handle.state
    arima_mean = np.asarray(state.model.get_forecast(steps=13).predicted_mean, dtype=float)
    seasonal = state.deseasonalized.reseasonalize(13)
    np.testing.assert_allclose(fc.point.to_numpy() - seasonal, arima_mean, atol=1e-8)
    # the next business day repeats the intraday shape
    assert np.corrcoef(fc.point.to_numpy(), DAILY)[0, 1] > 0.9


def test_stl_ets_point_forecast_follows_the_daily_shape():
    series = _business_series(_noisy(n_days=7 * 3, seed=4))

    fc = forecast(fit(get_variant("stl_ets"), series, [13, 91]), 13)

    assert np.all(np.isfinite(fc.point.to_numpy()))
    assert np.corrcoef(fc.point.to_numpy(), DAILY)[0, 1] > 0.9
