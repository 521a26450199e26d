"""
Test per-invocation configuration objects
"""
import dataclasses
import json

import pytest

from ochre_colorspace import Colorspace
from ochre_config import (
    DEFAULT_STRETCH,
    NEUTRAL_STRETCH,
    AdjustmentParams,
    StretchConfig,
)
from ochre_errors import ConfigurationError


class TestAdjustmentParams:
    """Test adjustment validation"""

    def test_defaults_are_neutral(self):
        assert AdjustmentParams().is_neutral

    def test_any_change_is_not_neutral(self):
        assert not AdjustmentParams(black_point=0.01).is_neutral

    def test_values_coerced_to_float(self):
        params = AdjustmentParams(contrast=20)
        assert isinstance(params.contrast, float)

    def test_total_brightness(self):
        assert AdjustmentParams(exposure=10, brightness=-4).total_brightness == 6.0

    @pytest.mark.parametrize("field,value", [
        ("black_point", 1.5),
        ("black_point", -0.1),
        ("saturation", 150.0),
        ("contrast", 259.0),
        ("exposure", -300.0),
        ("shadows", float("nan")),
        ("brightness", "bright"),
    ])
    def test_out_of_range_rejected(self, field, value):
        with pytest.raises(ConfigurationError):
            AdjustmentParams(**{field: value})

    def test_frozen(self):
        params = AdjustmentParams()
        with pytest.raises(dataclasses.FrozenInstanceError):
            params.contrast = 5.0


class TestStretchConfig:
    """Test the full invocation config"""

    def test_defaults(self):
        cfg = StretchConfig()
        assert cfg.colorspace is Colorspace.RGB
        assert cfg.stretch_amount == DEFAULT_STRETCH
        assert cfg.adjustments.is_neutral
        assert cfg.stretch_enabled

    def test_colorspace_tag_resolved(self):
        assert StretchConfig(colorspace="lab").colorspace is Colorspace.LAB

    def test_unknown_colorspace(self):
        with pytest.raises(ConfigurationError):
            StretchConfig(colorspace="CMYK")

    @pytest.mark.parametrize("amount", [-1.0, float("inf"), float("nan"), None])
    def test_invalid_stretch_amount(self, amount):
        with pytest.raises(ConfigurationError):
            StretchConfig(stretch_amount=amount)

    def test_neutral(self):
        cfg = StretchConfig(stretch_amount=NEUTRAL_STRETCH)
        assert not cfg.stretch_enabled
        assert cfg.is_neutral
        assert not StretchConfig(colorspace="LAB", stretch_amount=0).is_neutral

    def test_adjustments_from_mapping(self):
        cfg = StretchConfig(adjustments={"contrast": 12})
        assert cfg.adjustments.contrast == 12.0

    def test_adjustments_bad_type(self):
        with pytest.raises(ConfigurationError):
            StretchConfig(adjustments=[1, 2, 3])

    def test_state_round_trip(self):
        cfg = StretchConfig(colorspace="YBK", stretch_amount=33,
                            adjustments=AdjustmentParams(shadows=10, saturation=-20))
        state = cfg.get_state()
        assert json.loads(json.dumps(state)) == state
        assert StretchConfig.from_state(state) == cfg

    def test_from_params_kwargs_override(self):
        cfg = StretchConfig.from_params({"contrast": 20, "colorspace": "LRE"}, contrast=35)
        assert cfg.adjustments.contrast == 35.0
        assert cfg.colorspace is Colorspace.LRE

    def test_from_params_unknown_key(self):
        with pytest.raises(ConfigurationError):
            StretchConfig.from_params(gamma=2.2)

    def test_replace(self):
        cfg = StretchConfig(colorspace="LAB", stretch_amount=20)
        new = cfg.replace(brightness=15, stretch_amount=25)
        assert new.colorspace is Colorspace.LAB
        assert new.stretch_amount == 25.0
        assert new.adjustments.brightness == 15.0
        assert cfg.stretch_amount == 20.0

    def test_repr(self):
        assert "LAB" in repr(StretchConfig(colorspace="LAB"))
