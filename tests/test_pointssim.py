"""Tests for structural similarity scoring between two point clouds."""

import numpy as np
import pytest

from pointssim import PointCloud
from pointssim.preprocessing import fuse_points
from pointssim.similarity import SimilarityResult, compute_pointssim, ssim_score
from pointssim.utils.config import SimilarityConfig
from pointssim.utils.exceptions import ConfigurationError, InputError

ALL_ATTRIBUTES = {"geometry": True, "normal": True, "curvature": True, "color": True}
ALL_ESTIMATORS = ["Variance", "Median", "MeanAD", "MedianAD", "COV", "QCD"]
ALL_POOLING = ["Mean", "Min", "Max", "Median", "RMS", "MSE"]


def make_cloud(n=300, seed=0):
    rng = np.random.default_rng(seed)
    normal = rng.standard_normal(size=(n, 3))
    return PointCloud(
        geometry=rng.uniform(0, 50, size=(n, 3)),
        normal=normal / np.linalg.norm(normal, axis=1, keepdims=True),
        curvature=rng.uniform(0.5, 1.5, size=n),
        color=rng.integers(0, 256, size=(n, 3)),
    )


@pytest.fixture
def cloud_a():
    return make_cloud()


@pytest.fixture
def cloud_b(cloud_a):
    rng = np.random.default_rng(1)
    return PointCloud(
        geometry=cloud_a.geometry + rng.normal(scale=0.5, size=cloud_a.geometry.shape),
        normal=cloud_a.normal + rng.normal(scale=0.2, size=cloud_a.normal.shape),
        curvature=cloud_a.curvature * rng.uniform(0.8, 1.2, size=len(cloud_a)),
        color=np.clip(cloud_a.color + rng.normal(scale=10, size=cloud_a.color.shape), 0, 255),
    )


def test_identical_clouds_score_one(cloud_a):
    copy = PointCloud(
        geometry=cloud_a.geometry.copy(),
        normal=cloud_a.normal.copy(),
        curvature=cloud_a.curvature.copy(),
        color=cloud_a.color.copy(),
    )
    result = compute_pointssim(
        cloud_a,
        copy,
        attributes=ALL_ATTRIBUTES,
        estimators=ALL_ESTIMATORS + ["Mean"],
        pooling=ALL_POOLING,
    )
    assert set(result.scores) == {"geometry", "normal", "curvature", "color"}
    for attribute, table in result.scores.items():
        for direction in ("ba", "ab", "sym"):
            matrix = getattr(table, direction)
            assert matrix.shape == (7, 6), attribute
            np.testing.assert_array_equal(matrix, 1.0, err_msg=f"{attribute} {direction}")


def test_symmetric_score_is_minimum(cloud_a, cloud_b):
    result = compute_pointssim(
        cloud_a, cloud_b, attributes=ALL_ATTRIBUTES, estimators=ALL_ESTIMATORS, pooling=["Mean", "Median"]
    )
    for table in result.scores.values():
        np.testing.assert_array_equal(table.sym, np.minimum(table.ba, table.ab))


def test_distortion_lowers_scores(cloud_a, cloud_b):
    result = compute_pointssim(cloud_a, cloud_b, attributes=ALL_ATTRIBUTES, estimators=["Variance", "Mean"])
    for attribute, table in result.scores.items():
        assert np.all(table.sym < 1.0), attribute
        assert np.all(table.sym >= 0.0), attribute


def test_scores_do_not_depend_on_point_order(cloud_a, cloud_b):
    order = np.random.default_rng(5).permutation(len(cloud_b))
    params = {"attributes": ALL_ATTRIBUTES, "estimators": ["Variance", "MeanAD"], "pooling": ["Mean", "Max"]}
    direct = compute_pointssim(cloud_a, cloud_b, params)
    shuffled = compute_pointssim(cloud_a, cloud_b.take(order), params)
    for attribute in direct.scores:
        np.testing.assert_allclose(shuffled[attribute].sym, direct[attribute].sym)


@pytest.mark.parametrize("reference, present", [("a", "ba"), ("b", "ab")])
def test_single_reference(cloud_a, cloud_b, reference, present):
    result = compute_pointssim(cloud_a, cloud_b, reference=reference)
    table = result["geometry"]
    assert getattr(table, present) is not None
    absent = "ab" if present == "ba" else "ba"
    assert getattr(table, absent) is None
    assert table.sym is None


def test_single_reference_matches_both(cloud_a, cloud_b):
    both = compute_pointssim(cloud_a, cloud_b)["geometry"]
    only_a = compute_pointssim(cloud_a, cloud_b, reference="a")["geometry"]
    np.testing.assert_array_equal(only_a.ba, both.ba)


def test_defaults_score_geometry_only(cloud_a, cloud_b):
    result = compute_pointssim(PointCloud(geometry=cloud_a.geometry), PointCloud(geometry=cloud_b.geometry))
    assert isinstance(result, SimilarityResult)
    assert list(result.scores) == ["geometry"]
    assert "color" not in result
    table = result["geometry"]
    assert table.estimators == ["Variance"]
    assert table.pooling == ["Mean"]
    assert table.sym.shape == (1, 1)
    assert result.metadata["n_points_a"] == len(cloud_a)
    assert result.metadata["neighborhood_size"] == 12


def test_aliases_are_canonicalized(cloud_a, cloud_b):
    result = compute_pointssim(cloud_a, cloud_b, estimators=["VAR"], pooling=["RMSE"])
    table = result["geometry"]
    assert table.estimators == ["Variance"]
    assert table.pooling == ["RMS"]
    assert 0.0 <= table.get("sym", "Variance", "RMS") <= 1.0


def test_accepts_similarity_config(cloud_a, cloud_b):
    params = SimilarityConfig(neighborhood_size=6, pooling=["Min", "Max"])
    result = compute_pointssim(cloud_a, cloud_b, params)
    assert result.params.neighborhood_size == 6
    table = result["geometry"]
    assert table.get("ba", "Variance", "Min") <= table.get("ba", "Variance", "Max")


def test_fused_cloud_with_duplicates_scores_one(cloud_a):
    doubled = PointCloud(
        geometry=np.vstack([cloud_a.geometry, cloud_a.geometry[:100]]),
        normal=np.vstack([cloud_a.normal, -cloud_a.normal[:100]]),
        curvature=np.concatenate([cloud_a.curvature, cloud_a.curvature[:100] + 1.0]),
        color=np.vstack([cloud_a.color, 255 - cloud_a.color[:100]]),
    )
    fused_a, fused_b = fuse_points(doubled), fuse_points(doubled)
    assert len(fused_a) == len(cloud_a)
    result = compute_pointssim(
        fused_a, fused_b, attributes=ALL_ATTRIBUTES, estimators=ALL_ESTIMATORS, pooling=ALL_POOLING
    )
    for attribute, table in result.scores.items():
        np.testing.assert_allclose(table.sym, 1.0, err_msg=attribute)


def test_missing_attribute_raises(cloud_a):
    bare = PointCloud(geometry=cloud_a.geometry)
    with pytest.raises(ConfigurationError, match="No color found in point cloud B"):
        compute_pointssim(cloud_a, bare, attributes={"geometry": True, "color": True})
    with pytest.raises(ConfigurationError, match="No normal found in point cloud A"):
        compute_pointssim(bare, cloud_a, attributes={"normal": True})


@pytest.mark.parametrize(
    "overrides",
    [
        {"estimators": ["Skewness"]},
        {"pooling": ["Mode"]},
        {"estimators": []},
        {"neighborhood_size": 1},
        {"const": 0.0},
        {"reference": "c"},
    ],
)
def test_invalid_parameters_raise(cloud_a, cloud_b, overrides):
    with pytest.raises(ConfigurationError):
        compute_pointssim(cloud_a, cloud_b, **overrides)


def test_neighborhood_larger_than_cloud_raises(cloud_a):
    tiny = PointCloud(geometry=cloud_a.geometry[:5])
    with pytest.raises(InputError):
        compute_pointssim(cloud_a, tiny, neighborhood_size=12)


def test_ssim_score_from_quantities():
    quant_a = np.array([[1.0, 3.0], [2.0, 2.0]])
    quant_b = np.array([[1.0, 3.0], [1.0, 3.0]])
    params = SimilarityConfig(estimators=["Mean", "Variance"], pooling=["Mean"])
    table = ssim_score(quant_a, quant_b, np.array([0, 1]), np.array([0, 1]), params)
    # Means agree everywhere; variances agree on the first point only
    np.testing.assert_allclose(table.ba[0], [1.0])
    np.testing.assert_allclose(table.ba[1], [0.5])
    np.testing.assert_allclose(table.sym, np.minimum(table.ba, table.ab))


def test_to_dataframe(cloud_a, cloud_b):
    result = compute_pointssim(cloud_a, cloud_b, estimators=["Variance", "Mean"], pooling=["Mean", "RMS"])
    df = result.to_dataframe()
    assert list(df.columns) == ["attribute", "direction", "estimator", "pooling", "score"]
    # 1 attribute x 3 directions x 2 estimators x 2 pooling methods
    assert len(df) == 12
    assert set(df["direction"]) == {"BA", "AB", "SYM"}
    row = df[(df.direction == "SYM") & (df.estimator == "Mean") & (df.pooling == "RMS")]
    assert row["score"].iloc[0] == pytest.approx(result["geometry"].get("sym", "Mean", "RMS"))


def test_score_lookup_of_missing_direction(cloud_a, cloud_b):
    table = compute_pointssim(cloud_a, cloud_b, reference="a")["geometry"]
    with pytest.raises(KeyError):
        table.get("sym", "Variance", "Mean")
