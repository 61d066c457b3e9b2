"""
Test transform selection and the forward/inverse maps.
"""

import numpy as np
import pytest
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mcmon.transforms import (
    Transform,
    parse_transform,
    select_transform,
    resolve_transforms,
    forward,
    inverse,
)
from mcmon.errors import InvalidTransform


def test_auto_selects_log_for_positive_draws():
    draws = np.exp(np.random.default_rng(1).standard_normal((200, 3)))
    assert select_transform(draws) is Transform.LOG


def test_auto_selects_identity_otherwise():
    draws = np.random.default_rng(1).standard_normal((200, 3))
    assert select_transform(draws) is Transform.IDENTITY

    # A single zero rules out log
    draws = np.ones((10, 2))
    draws[3, 1] = 0.0
    assert select_transform(draws) is Transform.IDENTITY


def test_logit_never_auto_selected():
    """Draws inside (0, 1) are positive, so they get log, not logit."""
    draws = np.random.default_rng(3).uniform(0.1, 0.9, size=(100, 2))
    assert select_transform(draws) is Transform.LOG


def test_hint_used_verbatim():
    negative = -np.ones((10, 2))
    assert select_transform(negative, "log") is Transform.LOG
    assert select_transform(negative, "logit") is Transform.LOGIT
    assert select_transform(np.ones((10, 2)), "") is Transform.IDENTITY
    assert select_transform(negative, Transform.LOGIT) is Transform.LOGIT


def test_parse_transform():
    assert parse_transform("") is Transform.IDENTITY
    assert parse_transform("log") is Transform.LOG
    assert parse_transform("logit") is Transform.LOGIT

    with pytest.raises(InvalidTransform, match="sqrt"):
        parse_transform("sqrt")
    with pytest.raises(ValueError):
        parse_transform("LOG")


class TestResolveTransforms:
    """One transform per variable of an (n, m, k) array."""

    def setup_method(self):
        rng = np.random.default_rng(11)
        positive = np.exp(rng.standard_normal((50, 2)))
        signed = rng.standard_normal((50, 2))
        self.draws = np.stack([positive, signed], axis=2)

    def test_auto(self):
        assert resolve_transforms(self.draws) == [Transform.LOG, Transform.IDENTITY]

    def test_hints(self):
        assert resolve_transforms(self.draws, ["", "logit"]) == [
            Transform.IDENTITY, Transform.LOGIT
        ]

    def test_none_entries_auto_select(self):
        assert resolve_transforms(self.draws, [None, "log"]) == [
            Transform.LOG, Transform.LOG
        ]

    def test_wrong_count(self):
        with pytest.raises(InvalidTransform, match="2 variables"):
            resolve_transforms(self.draws, ["log"])

    def test_bare_string_rejected(self):
        with pytest.raises(InvalidTransform):
            resolve_transforms(self.draws, "log")

    def test_unknown_hint(self):
        with pytest.raises(InvalidTransform):
            resolve_transforms(self.draws, ["log", "exp"])


def test_forward_values():
    x = np.array([0.25, 0.5, 0.75])

    np.testing.assert_allclose(forward(x, Transform.IDENTITY), x)
    np.testing.assert_allclose(forward(x, Transform.LOG), np.log(x))
    np.testing.assert_allclose(forward(x, Transform.LOGIT), np.log(x / (1 - x)))
    assert forward(x, Transform.LOGIT)[1] == pytest.approx(0.0)


def test_inverse_undoes_forward():
    x = np.random.default_rng(5).uniform(0.01, 0.99, size=100)
    for transform in Transform:
        np.testing.assert_allclose(inverse(forward(x, transform), transform), x, rtol=1e-12)


def test_inverse_logit_is_bounded():
    y = inverse(np.array([-800.0, 0.0, 800.0]), Transform.LOGIT)
    np.testing.assert_allclose(y, [0.0, 0.5, 1.0])


def test_domain_violations_are_non_finite():
    """Out-of-domain values come back non-finite rather than raising."""
    with np.errstate(divide='ignore', invalid='ignore'):
        assert not np.all(np.isfinite(forward(np.array([1.0, 0.0]), Transform.LOG)))
        assert not np.all(np.isfinite(forward(np.array([0.5, 1.5]), Transform.LOGIT)))
