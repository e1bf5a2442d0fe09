from __future__ import annotations

from typing import List

import numpy as np
import pytest

from feedstack.core import packs
from feedstack.core.layers import FullyConnected
from feedstack.core.network import Network
from feedstack.data import get as get_dataset
from feedstack.training import schedules
from feedstack.training.trainer import BatchTrainer, gradient_descent_step


def _xor_net(seed: int = 0) -> Network:
    rng = np.random.default_rng(seed)
    return Network(
        [
            FullyConnected(2, 4, activation="tanh", rng=rng),
            FullyConnected(4, 1, activation="identity", rng=rng),
        ]
    )


def _dataset_loss(net: Network, inputs, targets) -> float:
    return float(sum(net.loss_value(x, t) for x, t in zip(inputs, targets)))


class _Recorder:
    def __init__(self) -> None:
        self.batches: List[int] = []
        self.rounds: List[int] = []

    def on_batch(self, batch_index: int) -> None:
        self.batches.append(batch_index)

    def on_round(self, round_index: int) -> None:
        self.rounds.append(round_index)


def test_batch_size_one_matches_plain_gradient_descent():
    data = get_dataset("xor")
    trained = _xor_net(seed=1)
    reference = _xor_net(seed=1)

    BatchTrainer(schedules.constant(0.1), batch_size=1, rounds=1).train(
        trained, data.inputs, data.targets
    )
    for x, t in data:
        gradient_descent_step(reference, x, t, 0.1)

    for got, expected in zip(trained.get_weights(), reference.get_weights()):
        np.testing.assert_allclose(got, expected)


def test_trailing_partial_batch_is_divided_by_batch_size():
    inputs = np.array([[0.1, 0.2], [0.3, -0.4], [-0.5, 0.6]])
    targets = np.array([[0.5], [-0.5], [0.25]])
    trained = _xor_net(seed=2)
    reference = _xor_net(seed=2)
    step = 0.3

    result = BatchTrainer(schedules.constant(step), batch_size=2, rounds=1).train(
        trained, inputs, targets
    )
    assert result.commits == 2
    assert result.samples == 3

    total = reference.allocate_gradients()
    for x, t in zip(inputs[:2], targets[:2]):
        packs.accumulate(total, reference.backward(x, t)[1])
    packs.scale(total, -step / 2)
    reference.update(total)
    _, last = reference.backward(inputs[2], targets[2])
    packs.scale(last, -step / 2)
    reference.update(last)

    np.testing.assert_allclose(
        packs.flatten(trained.get_weights()), packs.flatten(reference.get_weights())
    )


def test_l2_penalty_skips_the_bias_column():
    x = np.array([0.4, -0.2])
    t = np.array([0.7])
    trained = _xor_net(seed=3)
    reference = _xor_net(seed=3)
    step, l2 = 0.2, 0.5

    BatchTrainer(schedules.constant(step), batch_size=1, rounds=1, l2=l2).train(
        trained, [x], [t]
    )

    weights = reference.get_weights()
    _, gradients = reference.backward(x, t)
    expected = []
    for w, g in zip(weights, gradients):
        delta = -step * g
        delta[:, 1:] -= w[:, 1:] * l2 / 1
        expected.append(w + delta)

    for got, want in zip(trained.get_weights(), expected):
        np.testing.assert_allclose(got, want)


def test_callbacks_fire_per_commit_and_per_round():
    inputs = np.linspace(-1.0, 1.0, 10).reshape(5, 2)
    targets = np.zeros((5, 1))
    recorder = _Recorder()
    rounds_seen: List[int] = []
    trainer = BatchTrainer(
        schedules.constant(0.05),
        batch_size=2,
        rounds=3,
        on_round=rounds_seen.append,
        callbacks=[recorder],
    )

    result = trainer.train(_xor_net(), inputs, targets)

    assert result.commits == 9
    assert recorder.batches == list(range(9))
    assert recorder.rounds == [0, 1, 2]
    assert rounds_seen == [0, 1, 2]


def test_zero_rounds_leaves_weights_untouched():
    data = get_dataset("xor")
    net = _xor_net()
    before = packs.flatten(net.get_weights())
    result = BatchTrainer(schedules.constant(0.1), batch_size=4, rounds=0).train(
        net, data.inputs, data.targets
    )
    assert result.commits == 0
    np.testing.assert_array_equal(packs.flatten(net.get_weights()), before)


def test_invalid_datasets_are_rejected():
    trainer = BatchTrainer(schedules.constant(0.1), batch_size=2, rounds=1)
    with pytest.raises(ValueError):
        trainer.train(_xor_net(), [], [])
    with pytest.raises(ValueError):
        trainer.train(_xor_net(), np.zeros((3, 2)), np.zeros((2, 1)))


@pytest.mark.parametrize("kwargs", [{"batch_size": 0}, {"rounds": -1}, {"l2": -0.1}])
def test_invalid_trainer_arguments_are_rejected(kwargs):
    options = {"batch_size": 1, "rounds": 1}
    options.update(kwargs)
    with pytest.raises(ValueError):
        BatchTrainer(schedules.constant(0.1), **options)


def test_xor_loss_decreases_over_early_rounds():
    data = get_dataset("xor")
    net = _xor_net(seed=0)
    losses = [_dataset_loss(net, data.inputs, data.targets)]

    trainer = BatchTrainer(schedules.constant(0.1), batch_size=4, rounds=10)
    trainer.callback_round(
        lambda _round: losses.append(_dataset_loss(net, data.inputs, data.targets))
    )
    trainer.train(net, data.inputs, data.targets)

    assert len(losses) == 11
    assert all(later < earlier for earlier, later in zip(losses, losses[1:]))


def test_sine_regression_improves():
    data = get_dataset("sine", n_points=100)
    rng = np.random.default_rng(1)
    net = Network(
        [
            FullyConnected(1, 16, activation="tanh", rng=rng),
            FullyConnected(16, 1, activation="tanh", rng=rng),
        ]
    )
    before = _dataset_loss(net, data.inputs, data.targets)
    BatchTrainer(schedules.exponential(0.5, 0.95), batch_size=1, rounds=20).train(
        net, data.inputs, data.targets
    )
    assert _dataset_loss(net, data.inputs, data.targets) < 0.6 * before
