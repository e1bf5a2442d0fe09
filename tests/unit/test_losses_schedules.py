from __future__ import annotations

import numpy as np
import pytest

from feedstack.core import activations
from feedstack.training import schedules
from feedstack.training.losses import REGISTRY as LOSS_REGISTRY


def test_loss_registry_lookup():
    assert LOSS_REGISTRY.get("mse").name == "mse"
    assert LOSS_REGISTRY.resolve("ce").name == "ce"
    assert "cross_entropy" in LOSS_REGISTRY.names()
    with pytest.raises(KeyError, match="Available losses"):
        LOSS_REGISTRY.get("hinge")


def test_mse_value_and_derivative():
    loss = LOSS_REGISTRY.get("mse")
    pred, target = np.array([1.0, 3.0]), np.array([0.0, 1.0])
    np.testing.assert_allclose(loss.f(pred, target), [0.5, 2.0])
    np.testing.assert_allclose(loss.df(pred, target), [1.0, 2.0])
    assert not callable(loss)


def test_cross_entropy_is_finite_at_the_boundaries():
    loss = LOSS_REGISTRY.get("cross_entropy")
    pred = np.array([0.0, 1.0, 0.0, 1.0])
    target = np.array([0.0, 1.0, 1.0, 0.0])
    assert np.all(np.isfinite(loss.f(pred, target)))
    assert np.all(np.isfinite(loss.df(pred, target)))


def test_cross_entropy_derivative_matches_formula():
    loss = LOSS_REGISTRY.get("cross_entropy")
    y = np.array([0.2, 0.7])
    t = np.array([1.0, 0.0])
    np.testing.assert_allclose(loss.df(y, t), (y - t) / (y * (1.0 - y)))


@pytest.mark.parametrize("name", ["identity", "sigmoid", "tanh", "relu"])
def test_activation_derivatives_match_finite_differences(name):
    act = activations.REGISTRY.get(name)
    x = np.array([-0.7, -0.2, 0.3, 1.1])
    eps = 1e-6
    numeric = (act.f(x + eps) - act.f(x - eps)) / (2 * eps)
    np.testing.assert_allclose(act.df(x), numeric, rtol=1e-5, atol=1e-8)


def test_unknown_activation_is_rejected():
    with pytest.raises(KeyError):
        activations.REGISTRY.get("softsign")


def test_schedules():
    const = schedules.constant(0.3)
    assert const(0) == const(50) == 0.3
    exp = schedules.exponential(0.5, 0.9)
    assert exp(0) == pytest.approx(0.5)
    assert exp(3) == pytest.approx(0.5 * 0.9**3)


def test_build_schedule_from_config():
    assert schedules.build_schedule(0.2)(7) == pytest.approx(0.2)
    built = schedules.build_schedule({"name": "exp", "factor": 1.0, "base": 0.5})
    assert built(2) == pytest.approx(0.25)
    with pytest.raises(ValueError):
        schedules.build_schedule({"name": "cosine"})


@pytest.mark.parametrize("factory", [lambda: schedules.constant(0.0), lambda: schedules.exponential(1.0, -0.5)])
def test_schedules_reject_non_positive_values(factory):
    with pytest.raises(ValueError):
        factory()
