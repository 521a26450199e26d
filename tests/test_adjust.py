"""
Test pointwise tonal adjustment
"""
import numpy as np
import pytest

from conftest import make_rgba
from ochre_adjust import adjust_pixel, apply_adjustments, contrast_factor
from ochre_config import AdjustmentParams
from ochre_errors import InvalidInput


def adjusted(rgb, **params):
    buf = make_rgba([rgb])
    apply_adjustments(buf, AdjustmentParams(**params))
    return tuple(int(v) for v in buf[:3]), int(buf[3])


class TestContrastFactor:
    """Test the contrast curve"""

    def test_zero_is_identity(self):
        assert contrast_factor(0.0) == 1.0

    def test_maximum(self):
        assert contrast_factor(255.0) == pytest.approx(129.5)

    def test_minimum_flattens(self):
        assert contrast_factor(-255.0) == 0.0


class TestStages:
    """Test each adjustment stage"""

    def test_brightness_and_exposure_add(self):
        rgb, alpha = adjusted((100, 100, 100), brightness=20, exposure=10)
        assert rgb == (130, 130, 130)
        assert alpha == 255

    def test_brightness_clamps(self):
        assert adjusted((250, 10, 0), brightness=20)[0] == (255, 30, 20)
        assert adjusted((5, 100, 0), brightness=-20)[0] == (0, 80, 0)

    def test_shadow_lift_full_at_black(self):
        assert adjusted((0, 0, 0), shadows=40)[0] == (40, 40, 40)

    def test_shadow_lift_half_at_quarter(self):
        assert adjusted((64, 64, 64), shadows=40)[0] == (84, 84, 84)

    def test_shadow_lift_zero_above_pivot(self):
        assert adjusted((200, 200, 200), shadows=40)[0] == (200, 200, 200)

    def test_contrast(self):
        assert adjusted((100, 128, 160), contrast=255)[0] == (0, 128, 255)

    def test_negative_contrast_flattens_to_grey(self):
        assert adjusted((0, 60, 255), contrast=-255)[0] == (128, 128, 128)

    def test_black_point_is_floor(self):
        # floor 127.5 rounds half-to-even to 128
        assert adjusted((10, 200, 50), black_point=0.5)[0] == (128, 200, 128)

    def test_desaturate(self):
        assert adjusted((30, 60, 90), saturation=-100)[0] == (60, 60, 60)

    def test_saturate(self):
        assert adjusted((30, 60, 90), saturation=100)[0] == (0, 60, 120)

    def test_stage_order(self):
        # brightness first, then the black point floor
        params = AdjustmentParams(brightness=50, black_point=0.5)
        assert adjust_pixel(0, 0, 0, params) == pytest.approx((127.5, 127.5, 127.5))
        # brightness then shadows: lift is computed on the brightened luma
        params = AdjustmentParams(brightness=64, shadows=40)
        assert adjust_pixel(0, 0, 0, params) == pytest.approx((84.0, 84.0, 84.0))


class TestBufferHandling:
    """Test in-place buffer semantics"""

    def test_neutral_is_untouched(self):
        buf = make_rgba([(1, 2, 3), (250, 251, 252)])
        before = buf.copy()
        assert apply_adjustments(buf, AdjustmentParams()) is buf
        assert np.array_equal(buf, before)

    def test_in_place(self):
        buf = make_rgba([(100, 100, 100)])
        out = apply_adjustments(buf, AdjustmentParams(brightness=5))
        assert out is buf
        assert buf[0] == 105

    def test_alpha_untouched(self):
        buf = np.array([10, 20, 30, 7], dtype=np.uint8)
        apply_adjustments(buf, AdjustmentParams(brightness=100, saturation=50))
        assert buf[3] == 7

    def test_shaped_buffer(self):
        buf = np.zeros((2, 3, 4), dtype=np.uint8)
        apply_adjustments(buf, AdjustmentParams(brightness=12))
        assert np.all(buf[..., :3] == 12)

    def test_kernel_matches_scalar_path(self):
        rng = np.random.default_rng(5)
        buf = rng.integers(0, 256, size=400 * 4, dtype=np.uint8)
        params = AdjustmentParams(exposure=5, brightness=-12, shadows=30,
                                  contrast=40, black_point=0.1, saturation=25)
        expected = buf.copy()
        for i in range(0, expected.size, 4):
            r, g, b = adjust_pixel(*expected[i:i + 3], params)
            expected[i:i + 3] = np.rint([r, g, b]).astype(np.uint8)
        apply_adjustments(buf, params)
        assert np.array_equal(buf, expected)

    def test_rejects_non_array(self):
        with pytest.raises(InvalidInput):
            apply_adjustments([0, 0, 0, 255], AdjustmentParams(brightness=1))

    def test_rejects_wrong_dtype(self):
        with pytest.raises(InvalidInput):
            apply_adjustments(np.zeros(4, dtype=np.float32), AdjustmentParams())

    def test_rejects_partial_pixel(self):
        with pytest.raises(InvalidInput):
            apply_adjustments(np.zeros(6, dtype=np.uint8), AdjustmentParams())

    def test_rejects_non_contiguous(self):
        buf = np.zeros(16, dtype=np.uint8)[::2]
        with pytest.raises(InvalidInput):
            apply_adjustments(buf, AdjustmentParams())
