import pytest

from bounded_decode.sampling import Bounds, Dimensions, compute_sample_factor, is_sample_factor


@pytest.mark.parametrize(
    ("intrinsic", "bounds", "expected"),
    [
        ((2000, 2000), (2000, 2000), 1),
        ((100, 100), (2000, 2000), 1),
        # 4000 // 1 > 1000 and 4000 // 2 > 1000, but 4000 // 4 == 1000 stops the loop
        ((4000, 4000), (2000, 2000), 4),
        ((2001, 2000), (2000, 2000), 2),
        ((800, 600), (400, 400), 4),
        ((300, 200), (100, 100), 4),
        ((101, 51), (10, 10), 16),
        ((3, 3), (1, 1), 4),
    ],
)
def test_compute_sample_factor_cases(intrinsic, bounds, expected):
    assert compute_sample_factor(Dimensions(*intrinsic), Bounds(*bounds)) == expected


def test_one_axis_within_half_bound_stops_immediately():
    # Width 1 is never above half the bound, so a very tall strip keeps factor 1.
    assert compute_sample_factor(Dimensions(1, 1000), Bounds(10, 10)) == 1


def test_within_bounds_is_never_downsampled():
    for w in range(1, 41, 3):
        for h in range(1, 41, 3):
            assert compute_sample_factor(Dimensions(w, h), Bounds(40, 40)) == 1


def test_factor_is_power_of_two_and_monotonic():
    bounds = Bounds(64, 48)
    for h in (1, 47, 48, 49, 97, 500, 4096):
        previous = 1
        for w in range(1, 3000, 37):
            factor = compute_sample_factor(Dimensions(w, h), bounds)
            assert is_sample_factor(factor)
            assert factor >= previous
            previous = factor


def test_compute_sample_factor_is_deterministic():
    args = (Dimensions(12345, 6789), Bounds(640, 480))
    assert len({compute_sample_factor(*args) for _ in range(5)}) == 1


@pytest.mark.parametrize("size", [(0, 10), (10, 0), (-1, 5)])
def test_dimensions_and_bounds_reject_non_positive(size):
    with pytest.raises(ValueError):
        Dimensions(*size)
    with pytest.raises(ValueError):
        Bounds(*size)


def test_is_sample_factor():
    assert [v for v in range(0, 20) if is_sample_factor(v)] == [1, 2, 4, 8, 16]
    assert not is_sample_factor(2.0)  # type: ignore[arg-type]
