"""Tests for mixture orchestration: alignment of groups and vectorized scores."""

import jax
import jax.numpy as jnp
import pytest

from mixjax import PreconditionError, debug_level
from mixjax.conjugate import dirichlet_discrete as dd
from mixjax.conjugate import normal_inverse_chi_sq as nich

# Tolerances
RTOL = 1e-4
ATOL = 1e-4


def nich_values(key, num):
    return [float(x) for x in jax.random.normal(key, (num,)) * 3.0]


def dd_values(key, num):
    return [int(x) for x in jax.random.randint(key, (num,), 0, 4)]


MODELS = {
    "nich": (nich, nich.Shared(mu=0.5, kappa=2.0, sigmasq=1.5, nu=3.0), nich_values),
    "dd": (dd, dd.Shared(alphas=[0.5, 1.0, 2.0, 0.25]), dd_values),
}


@pytest.fixture(params=sorted(MODELS))
def model(request):
    return MODELS[request.param]


def build_mixture(module, shared, values, num_groups):
    mixture = module.Mixture()
    mixture.init(shared)
    for _ in range(num_groups):
        mixture.add_group(shared)
    for i, value in enumerate(values):
        mixture.add_value(shared, i % num_groups, value)
    return mixture


def assert_consistent(mixture, shared, value):
    """vectorized row k must equal the scalar score of group k"""
    assert len(mixture.groups) == len(mixture.scorer)
    scores = mixture.score_value(shared, value, jnp.zeros(len(mixture)))
    expected = jnp.array([group.score_value(shared, value) for group in mixture.groups])
    assert jnp.allclose(scores, expected, rtol=RTOL, atol=ATOL)


class TestMixture:
    def test_vectorized_matches_scalar(self, model):
        module, shared, sample = model
        values = sample(jax.random.PRNGKey(0), 40)
        mixture = build_mixture(module, shared, values, 5)
        for value in values[:4]:
            assert_consistent(mixture, shared, value)

    def test_score_value_accumulates(self, model):
        module, shared, sample = model
        values = sample(jax.random.PRNGKey(1), 12)
        mixture = build_mixture(module, shared, values, 3)
        once = mixture.score_value(shared, values[0], jnp.zeros(3))
        offset = jnp.array([1.0, -2.0, 3.0])
        assert jnp.allclose(mixture.score_value(shared, values[0], offset), once + offset)
        # two models can share one buffer
        twice = mixture.score_value(shared, values[0], once)
        assert jnp.allclose(twice, 2 * once, rtol=RTOL)

    def test_remove_value_keeps_rows_current(self, model):
        module, shared, sample = model
        values = sample(jax.random.PRNGKey(2), 20)
        mixture = build_mixture(module, shared, values, 4)
        for i, value in enumerate(values[:8]):
            mixture.remove_value(shared, i % 4, value)
        assert_consistent(mixture, shared, values[9])
        fresh = build_mixture(module, shared, values[8:], 4)
        # values[8:] lands in the same groups since 8 % 4 == 0
        assert_consistent(fresh, shared, values[9])
        assert jnp.allclose(
            mixture.score_value(shared, values[9], jnp.zeros(4)),
            fresh.score_value(shared, values[9], jnp.zeros(4)),
            rtol=RTOL,
            atol=ATOL,
        )

    def test_interleaved_group_lifecycle(self, model):
        module, shared, sample = model
        values = sample(jax.random.PRNGKey(3), 30)
        mixture = build_mixture(module, shared, values[:10], 3)
        mixture.remove_group(shared, 0)
        mixture.add_group(shared)
        mixture.add_value(shared, 2, values[10])
        mixture.remove_group(shared, 2)
        mixture.add_group(shared)
        mixture.add_group(shared)
        for i, value in enumerate(values[11:]):
            mixture.add_value(shared, i % len(mixture), value)
        mixture.remove_group(shared, len(mixture) - 1)
        assert len(mixture) == 3
        assert_consistent(mixture, shared, values[0])

    def test_remove_group_moves_last(self, model):
        module, shared, sample = model
        values = sample(jax.random.PRNGKey(4), 9)
        mixture = build_mixture(module, shared, values, 3)
        last = mixture.groups[2]
        mixture.remove_group(shared, 0)
        assert mixture.groups[0] is last
        assert mixture.slave.id_of(0) == 2
        assert mixture.slave.slot_of(2) == 0
        assert mixture.slave.slot_of(1) == 1
        with pytest.raises(KeyError):
            mixture.slave.slot_of(0)
        assert_consistent(mixture, shared, values[0])

    def test_stable_ids_are_not_reused(self, model):
        module, shared, _ = model
        mixture = module.Mixture()
        mixture.init(shared)
        ids = [mixture.add_group(shared) for _ in range(3)]
        mixture.remove_group(shared, 2)
        new_id = mixture.add_group(shared)
        assert ids == [0, 1, 2]
        assert new_id == 3
        assert mixture.slave.slot_of(new_id) == 2

    def test_init_from_existing_groups(self, model):
        module, shared, sample = model
        values = sample(jax.random.PRNGKey(5), 24)
        groups = []
        for k in range(4):
            group = module.Group()
            group.init(shared)
            for value in values[k::4]:
                group.add_value(shared, value)
            groups.append(group)
        mixture = module.Mixture(groups)
        mixture.init(shared)
        assert len(mixture.scorer) == 4
        assert_consistent(mixture, shared, values[0])
        # stable ids follow the initial order
        assert [mixture.slave.id_of(k) for k in range(4)] == [0, 1, 2, 3]

    def test_score_data(self, model):
        module, shared, sample = model
        values = sample(jax.random.PRNGKey(6), 16)
        mixture = build_mixture(module, shared, values, 2)
        expected = sum(group.score_data(shared) for group in mixture.groups)
        assert jnp.allclose(mixture.score_data(shared), expected, rtol=RTOL, atol=ATOL)
        grid = mixture.score_data_grid([shared, shared])
        assert jnp.allclose(grid, expected, rtol=RTOL, atol=ATOL)


class TestPreconditions:
    def test_accumulator_length(self, model):
        module, shared, sample = model
        mixture = build_mixture(module, shared, sample(jax.random.PRNGKey(7), 4), 2)
        with pytest.raises(PreconditionError):
            mixture.score_value(shared, sample(jax.random.PRNGKey(8), 1)[0], jnp.zeros(3))

    def test_group_id_out_of_bounds(self, model):
        module, shared, sample = model
        value = sample(jax.random.PRNGKey(9), 1)[0]
        mixture = build_mixture(module, shared, [], 2)
        with pytest.raises(PreconditionError):
            mixture.add_value(shared, 2, value)
        with pytest.raises(PreconditionError):
            mixture.remove_group(shared, 5)

    def test_remove_value_from_empty_group(self, model):
        module, shared, sample = model
        value = sample(jax.random.PRNGKey(10), 1)[0]
        mixture = build_mixture(module, shared, [], 1)
        with debug_level(0):
            with pytest.raises(PreconditionError):
                mixture.remove_value(shared, 0, value)

    def test_score_category_out_of_bounds(self):
        shared = MODELS["dd"][1]
        mixture = build_mixture(dd, shared, [0, 1], 2)
        with pytest.raises(PreconditionError):
            mixture.score_value(shared, 4, jnp.zeros(2))
