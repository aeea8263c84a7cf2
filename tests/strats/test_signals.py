from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from quantsim.strats import (
    STRATEGIES,
    AiPredictionStrategy,
    BollingerBreakoutStrategy,
    EmaCrossoverStrategy,
    MacdMomentumStrategy,
    RsiMeanReversionStrategy,
    Signal,
    SignalScoreStrategy,
    SignalType,
    compute_signal,
)

N = 80
AT = 60


def _frame(close: float = 100.0, **cols) -> pd.DataFrame:
    """Prepared-frame stand-in: constant OHLCV plus explicit feature columns."""
    idx = pd.date_range("2024-01-01", periods=N, freq="B")
    df = pd.DataFrame(
        {
            "open": close,
            "high": close,
            "low": close,
            "close": close,
            "volume": 1_000_000.0,
        },
        index=idx,
    )
    for name, values in cols.items():
        series = np.full(N, np.nan)
        for offset, value in values.items():
            series[AT + offset] = value
        df[name] = series
    return df


def test_signal_strength_is_clamped():
    assert Signal.buy(3.0).strength == 1.0
    assert Signal.sell(-1.0).strength == 0.0
    assert Signal.buy(float("nan")).strength == 0.0
    assert Signal.hold().type is SignalType.HOLD
    assert Signal("buy", 0.5).is_buy


def test_warmup_bars_always_hold():
    strat = EmaCrossoverStrategy()
    params = strat.resolve_params()
    frame = _frame(
        ema_fast={-12: 9.0, -11: 11.0},
        ema_slow={-12: 10.0, -11: 10.0},
        rsi14={-11: 50.0},
        vol_ratio={-11: 1.5},
    )

    assert strat.compute_signal(frame, AT - 11, params).type is SignalType.HOLD
    assert strat.evaluate(frame, AT - 11, params).is_buy


class TestEmaCrossover:
    strat = EmaCrossoverStrategy()

    def test_golden_cross_with_confirmation_buys(self):
        frame = _frame(
            ema_fast={-1: 9.0, 0: 11.0},
            ema_slow={-1: 10.0, 0: 10.0},
            rsi14={0: 50.0},
            vol_ratio={0: 1.6},
        )

        sig = self.strat.compute_signal(frame, AT, self.strat.resolve_params())

        assert sig.is_buy
        assert sig.strength == pytest.approx(0.8)

    def test_rsi_gate_blocks_entry(self):
        frame = _frame(
            ema_fast={-1: 9.0, 0: 11.0},
            ema_slow={-1: 10.0, 0: 10.0},
            rsi14={0: 65.0},
            vol_ratio={0: 1.6},
        )

        sig = self.strat.compute_signal(frame, AT, self.strat.resolve_params())

        assert sig.type is SignalType.HOLD

    def test_overbought_rsi_sells(self):
        frame = _frame(
            ema_fast={-1: 11.0, 0: 12.0},
            ema_slow={-1: 10.0, 0: 10.0},
            rsi14={0: 80.0},
        )

        sig = self.strat.compute_signal(frame, AT, self.strat.resolve_params())

        assert sig.is_sell
        assert sig.strength == 1.0

    def test_unavailable_inputs_hold(self):
        frame = _frame(ema_fast={0: 11.0}, ema_slow={0: 10.0})

        sig = self.strat.compute_signal(frame, AT, self.strat.resolve_params())

        assert sig.type is SignalType.HOLD


class TestRsiMeanReversion:
    strat = RsiMeanReversionStrategy()

    def test_oversold_above_trend_buys(self):
        frame = _frame(close=99.0, rsi14={0: 20.0}, ema_trend={0: 100.0})

        sig = self.strat.compute_signal(frame, AT, self.strat.resolve_params())

        assert sig.is_buy
        assert sig.strength == pytest.approx(10.0 / 30.0)

    def test_oversold_below_trend_holds(self):
        frame = _frame(close=97.0, rsi14={0: 20.0}, ema_trend={0: 100.0})

        sig = self.strat.compute_signal(frame, AT, self.strat.resolve_params())

        assert sig.type is SignalType.HOLD

    def test_overbought_sells_with_scaled_strength(self):
        frame = _frame(rsi14={0: 85.0}, ema_trend={0: 100.0})

        sig = self.strat.compute_signal(frame, AT, self.strat.resolve_params())

        assert sig.is_sell
        assert sig.strength == pytest.approx(0.5)

    def test_custom_thresholds(self):
        frame = _frame(close=99.0, rsi14={0: 35.0}, ema_trend={0: 100.0})
        params = self.strat.resolve_params({"rsiOversold": 40})

        sig = self.strat.compute_signal(frame, AT, params)

        assert sig.is_buy
        assert sig.strength == pytest.approx(5.0 / 40.0)


class TestMacdMomentum:
    strat = MacdMomentumStrategy()

    def test_cross_with_rising_histogram_buys(self):
        frame = _frame(
            macd={-1: 0.1, 0: 0.5},
            macd_signal={-1: 0.2, 0: 0.3},
            macd_hist={-1: -0.1, 0: 0.2},
            rsi14={0: 55.0},
        )

        sig = self.strat.compute_signal(frame, AT, self.strat.resolve_params())

        assert sig.is_buy
        assert sig.strength == pytest.approx(0.4)

    def test_rsi_ceiling_blocks_entry(self):
        frame = _frame(
            macd={-1: 0.1, 0: 0.5},
            macd_signal={-1: 0.2, 0: 0.3},
            macd_hist={-1: -0.1, 0: 0.2},
            rsi14={0: 75.0},
        )

        sig = self.strat.compute_signal(frame, AT, self.strat.resolve_params())

        assert sig.type is SignalType.HOLD

    def test_bearish_cross_sells(self):
        frame = _frame(
            macd={-1: 0.3, 0: 0.1},
            macd_signal={-1: 0.2, 0: 0.2},
            macd_hist={-1: 0.1, 0: -0.1},
            rsi14={0: 50.0},
        )

        assert self.strat.compute_signal(frame, AT, self.strat.resolve_params()).is_sell

    def test_weak_rsi_forces_exit(self):
        frame = _frame(rsi14={0: 25.0})

        assert self.strat.compute_signal(frame, AT, self.strat.resolve_params()).is_sell


class TestBollingerBreakout:
    strat = BollingerBreakoutStrategy()

    def _breakout(self, vol_ratio: float) -> pd.DataFrame:
        frame = _frame(
            bb_upper={-1: 101.0, 0: 102.0},
            bb_middle={0: 98.0},
            bb_lower={0: 94.0},
            vol_ratio={0: vol_ratio},
        )
        frame.iloc[AT, frame.columns.get_loc("close")] = 103.0
        return frame

    def test_breakout_on_volume_buys(self):
        sig = self.strat.compute_signal(
            self._breakout(1.8), AT, self.strat.resolve_params()
        )

        assert sig.is_buy
        assert sig.strength == pytest.approx(0.9)

    def test_breakout_without_volume_holds(self):
        sig = self.strat.compute_signal(
            self._breakout(1.2), AT, self.strat.resolve_params()
        )

        assert sig.type is SignalType.HOLD

    def test_close_under_middle_band_sells(self):
        frame = _frame(close=97.0, bb_upper={0: 102.0}, bb_middle={0: 98.0})

        assert self.strat.compute_signal(frame, AT, self.strat.resolve_params()).is_sell


class TestCompositeStrategies:
    def test_signal_score_falls_back_to_ema_cross_on_short_history(self):
        strat = SignalScoreStrategy()
        frame = _frame(ema9={-1: 9.0, 0: 11.0}, ema21={-1: 10.0, 0: 10.0})

        sig = strat.compute_signal(frame, AT, strat.resolve_params())

        assert sig.is_buy
        assert sig.strength == pytest.approx(0.5)

    def test_ai_prediction_needs_200_bars(self):
        strat = AiPredictionStrategy()
        frame = _frame(ema9={0: 11.0}, ema21={0: 10.0}, ema50={0: 9.0})

        assert strat.compute_signal(frame, AT, strat.resolve_params()).type is SignalType.HOLD


@pytest.mark.parametrize("strategy_id", STRATEGIES.ids())
def test_every_strategy_emits_valid_signals(strategy_id, toy_ohlcv):
    strat = STRATEGIES.get(strategy_id)
    params = strat.resolve_params()
    before = toy_ohlcv.copy()

    prepared = strat.prepare(toy_ohlcv, params)
    signals = [strat.compute_signal(prepared, i, params) for i in range(len(prepared))]

    pd.testing.assert_frame_equal(toy_ohlcv, before)
    assert len(prepared) == len(toy_ohlcv)
    assert all(isinstance(s.type, SignalType) for s in signals)
    assert all(0.0 <= s.strength <= 1.0 for s in signals)
    warmup = strat.warmup_bars(params)
    assert all(s.type is SignalType.HOLD for s in signals[:warmup])


@pytest.mark.parametrize("strategy_id", ["ema_crossover", "rsi_mean_reversion"])
def test_one_shot_signal_matches_prepared_run(strategy_id, toy_ohlcv):
    strat = STRATEGIES.get(strategy_id)
    params = strat.resolve_params()
    prepared = strat.prepare(toy_ohlcv, params)

    for index in (60, 150, 275, 399):
        expected = strat.compute_signal(prepared, index, params)
        assert compute_signal(toy_ohlcv, index, strategy_id) == expected


def test_one_shot_signal_out_of_range_holds(toy_ohlcv):
    assert compute_signal(toy_ohlcv, len(toy_ohlcv), "ema_crossover") == Signal.hold()
    assert compute_signal(toy_ohlcv, -1, "ema_crossover") == Signal.hold()
