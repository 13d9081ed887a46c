import numpy as np
import pandas as pd
import pyarrow as pa
import pytest

from jaxpgm import (
    BandwidthEstimator,
    DataTypeMismatchError,
    DegenerateSampleWarning,
    NotFittedError,
    NumpyBackend,
    ProductKDE,
    ScottsBandwidth,
    VariableSetError,
    available_backends,
)
from util_test import (
    SIZE,
    TEST_SIZE,
    VARIABLE_SETS,
    generate_normal_data,
    inject_nulls,
    reference_bandwidth,
    reference_logl,
)


class UnitaryBandwidth(BandwidthEstimator):
    def estimate_univariate(self, sample, variable):
        return 1.0

    def estimate_multivariate(self, sample, variables):
        return np.eye(len(variables))


def _tolerance(frame):
    return 5e-4 if (frame.dtypes == 'float32').all() else 1e-8


def _sum_tolerance(frame):
    return 1e-4 if (frame.dtypes == 'float32').all() else 1e-8


# ---------- Construction ----------

def test_variables():
    for variables in VARIABLE_SETS:
        cpd = ProductKDE(variables)
        assert cpd.variables() == variables
        assert cpd.num_variables() == len(variables)
        assert not cpd.fitted()
        assert cpd.num_instances() == 0


@pytest.mark.parametrize("variables", [[], ['a', 'a'], ['a', 'b', 'a'], 'ab', ['a', 1]])
def test_malformed_variable_set(variables):
    with pytest.raises(VariableSetError):
        ProductKDE(variables)


def test_bad_estimator():
    with pytest.raises(TypeError):
        ProductKDE(['a'], bandwidth_estimator=lambda s, v: 1.0)


def test_str():
    assert str(ProductKDE(['b', 'a'])) == "[ProductKDE] b, a"


# ---------- Fit ----------

def test_data_type(df, df_float):
    k = ProductKDE(['a'])
    with pytest.raises(NotFittedError) as ex:
        k.data_type()
    assert "KDE factor not fitted" in str(ex.value)

    k.fit(df)
    assert k.data_type() == pa.float64()
    k.fit(df_float)
    assert k.data_type() == pa.float32()


@pytest.mark.parametrize("variables", VARIABLE_SETS)
@pytest.mark.parametrize("instances", [50, 150, 500])
def test_fit(df, df_float, variables, instances):
    for frame in (df, df_float):
        cpd = ProductKDE(variables)
        cpd.fit(frame.iloc[:instances])
        assert cpd.fitted()
        assert cpd.num_instances() == instances
        assert cpd.num_variables() == len(variables)

        expected = [reference_bandwidth(df[v].to_numpy()[:instances]) for v in variables]
        assert np.allclose(cpd.bandwidth, expected, rtol=1e-5)


@pytest.mark.parametrize("variables", VARIABLE_SETS)
def test_fit_scott(df, df_float, variables):
    for frame in (df, df_float):
        cpd = ProductKDE(variables, ScottsBandwidth())
        cpd.fit(frame)
        expected = [reference_bandwidth(df[v].to_numpy(), rule="scott") for v in variables]
        assert np.allclose(cpd.bandwidth, expected, rtol=1e-5)


def test_fit_ignores_extra_columns(df):
    cpd = ProductKDE(['b'])
    frame = df.copy()
    frame.loc[frame.index[:10], 'a'] = np.nan
    cpd.fit(frame)
    assert cpd.num_instances() == SIZE


@pytest.mark.parametrize("variables", VARIABLE_SETS)
@pytest.mark.parametrize("instances", [50, 150, 500])
def test_fit_null(df, variables, instances):
    df_null, _ = inject_nulls(df, 100, seed=0)
    df_null_float = df_null.astype('float32')

    for frame in (df_null, df_null_float):
        cpd = ProductKDE(variables)
        cpd.fit(frame.iloc[:instances])

        npdata = df_null.loc[:, variables].to_numpy()[:instances]
        complete = ~np.any(np.isnan(npdata), axis=1)
        assert cpd.num_instances() == complete.sum()

        # bandwidths use every non-null value of their own column
        expected = [reference_bandwidth(npdata[:, i]) for i in range(len(variables))]
        assert np.allclose(cpd.bandwidth, expected, rtol=1e-5)

        for i, v in enumerate(variables):
            assert np.allclose(cpd.training_sample(v), npdata[complete, i], rtol=1e-6)


def test_refit_replaces_state(df, df_float):
    cpd = ProductKDE(['a', 'b'])
    cpd.fit(df.iloc[:100])
    first = cpd.bandwidth.copy()
    cpd.fit(df_float.iloc[:300])
    assert cpd.num_instances() == 300
    assert cpd.data_type() == pa.float32()
    assert not np.allclose(first, cpd.bandwidth)


def test_mixed_widths_rejected(df):
    frame = df.copy()
    frame['b'] = frame['b'].astype('float32')
    with pytest.raises(DataTypeMismatchError):
        ProductKDE(['a', 'b']).fit(frame)


def test_missing_variable(df):
    with pytest.raises(ValueError):
        ProductKDE(['a', 'z']).fit(df)


# ---------- Bandwidth ----------

def test_bandwidth_setter(df, df_float, test_df):
    cpd = ProductKDE(['a'])
    with pytest.raises(NotFittedError):
        cpd.bandwidth = [1]

    cpd.fit(df)
    cpd.bandwidth = [1]
    assert cpd.bandwidth == np.asarray([1])

    cpd.fit(df_float)
    cpd.bandwidth = [1]
    assert cpd.bandwidth == np.asarray([1])

    cpd = ProductKDE(['a', 'b'])
    cpd.fit(df)
    cpd.bandwidth = {'b': 2.0}
    assert cpd.bandwidth[1] == 2.0
    assert np.allclose(cpd.logl(test_df), reference_logl(df, test_df, ['a', 'b'], cpd.bandwidth))

    for bad in ([1.0], [1.0, -1.0], [1.0, np.nan], {'z': 1.0}):
        with pytest.raises(ValueError):
            cpd.bandwidth = bad


def test_custom_bandwidth(df, df_float):
    kde = ProductKDE(["a"], UnitaryBandwidth())
    kde.fit(df)
    assert kde.bandwidth == np.ones((1,))
    kde.fit(df_float)
    assert kde.bandwidth == np.ones((1,))

    kde = ProductKDE(["a", "b", "c", "d"], UnitaryBandwidth())
    kde.fit(df)
    assert np.all(kde.bandwidth == np.ones((4,)))


# ---------- Evaluation ----------

def test_check_type(df, df_float):
    cpd = ProductKDE(['a'])
    cpd.fit(df)
    with pytest.raises(DataTypeMismatchError) as ex:
        cpd.logl(df_float)
    assert "Data type of training and test datasets is different." in str(ex.value)
    with pytest.raises(DataTypeMismatchError):
        cpd.slogl(df_float)

    cpd.fit(df_float)
    with pytest.raises(DataTypeMismatchError):
        cpd.logl(df)
    with pytest.raises(DataTypeMismatchError):
        cpd.slogl(df)


def test_not_fitted(test_df):
    cpd = ProductKDE(['a'])
    with pytest.raises(NotFittedError):
        cpd.logl(test_df)
    with pytest.raises(NotFittedError):
        cpd.slogl(test_df)


@pytest.mark.parametrize("variables", VARIABLE_SETS)
def test_logl(df, df_float, test_df, test_df_float, variables):
    for train, test in ((df, test_df), (df_float, test_df_float)):
        cpd = ProductKDE(variables)
        cpd.fit(train)
        logl = cpd.logl(test)
        assert logl.shape == (TEST_SIZE,)
        assert logl.dtype == train[variables[0]].dtype

        expected = reference_logl(train, test, variables, cpd.bandwidth)
        assert np.allclose(logl, expected, atol=_tolerance(train), rtol=1e-5)


@pytest.mark.parametrize("variables", VARIABLE_SETS)
def test_slogl(df, df_float, test_df, test_df_float, variables):
    for train, test in ((df, test_df), (df_float, test_df_float)):
        cpd = ProductKDE(variables)
        cpd.fit(train)
        expected = reference_logl(train, test, variables, cpd.bandwidth).sum()
        assert isinstance(cpd.slogl(test), float)
        assert np.isclose(cpd.slogl(test), expected, rtol=_sum_tolerance(train))


@pytest.mark.parametrize("variables", VARIABLE_SETS)
def test_logl_null(df, df_float, test_df, variables):
    test_null, _ = inject_nulls(test_df, 10, seed=0)
    test_null_float = test_null.astype('float32')

    for train, test in ((df, test_null), (df_float, test_null_float)):
        cpd = ProductKDE(variables)
        cpd.fit(train)
        logl = cpd.logl(test)

        nan_rows = test.loc[:, variables].isna().any(axis=1).to_numpy()
        assert np.array_equal(np.isnan(logl), nan_rows)

        expected = reference_logl(train, test, variables, cpd.bandwidth)
        assert np.allclose(logl, expected, atol=_tolerance(train), rtol=1e-5, equal_nan=True)

        assert np.isclose(cpd.slogl(test), np.nansum(expected), rtol=_sum_tolerance(train))


def test_order_invariance(df, df_float, test_df):
    test_null, _ = inject_nulls(test_df, 10, seed=0)
    for train in (df, df_float):
        test = test_null.astype(train['a'].dtype)
        cpd = ProductKDE(['d', 'a', 'b', 'c']).fit(train)
        cpd2 = ProductKDE(['a', 'c', 'd', 'b']).fit(train)
        assert np.array_equal(cpd.logl(test), cpd2.logl(test), equal_nan=True)
        assert cpd.slogl(test) == cpd2.slogl(test)


def test_degenerate_training_sample(test_df):
    train = generate_normal_data(20, seed=3)
    train.loc[train.index[:10], 'a'] = np.nan
    train.loc[train.index[10:], 'b'] = np.nan

    cpd = ProductKDE(['a', 'b'])
    with pytest.warns(DegenerateSampleWarning):
        cpd.fit(train)
    assert cpd.fitted()
    assert cpd.num_instances() == 0
    assert np.all(np.isfinite(cpd.bandwidth))

    logl = cpd.logl(test_df)
    assert logl.shape == (TEST_SIZE,)
    assert np.all(np.isnan(logl))
    assert np.isnan(cpd.slogl(test_df))


def test_empty_query(df):
    cpd = ProductKDE(['a', 'b']).fit(df)
    out = cpd.logl(df.iloc[:0])
    assert out.shape == (0,)
    assert cpd.slogl(df.iloc[:0]) == 0.0


def test_query_dataset_formats(df, test_df):
    cpd = ProductKDE(['a', 'b']).fit(pa.Table.from_pandas(df))
    expected = cpd.logl(test_df)
    table = pa.Table.from_pandas(test_df, preserve_index=False)
    assert np.array_equal(cpd.logl(table), expected)
    assert np.array_equal(cpd.logl({'a': test_df['a'].to_numpy(), 'b': test_df['b'].to_numpy()}), expected)


# ---------- Resources ----------

def test_device_buffers_released(df):
    backend = NumpyBackend()
    cpd = ProductKDE(['a', 'b', 'c'], backend=backend)
    assert cpd.backend is backend
    for _ in range(5):
        cpd.fit(df)
        assert backend.live_buffers == 3
    cpd.release()
    assert backend.live_buffers == 0
    assert not cpd.fitted()

    cpd.fit(df)
    del cpd
    assert backend.live_buffers == 0


# ---------- End to end ----------

def test_end_to_end():
    train = generate_normal_data(SIZE, seed=10)
    for dtype, tol in (('float64', 1e-9), ('float32', 5e-4)):
        frame = train.astype(dtype)

        single = ProductKDE(['a']).fit(frame)
        assert abs(single.bandwidth[0] - reference_bandwidth(frame['a'].to_numpy())) < tol

        nulls = {'a': [3, 17, 101], 'b': [17, 250], 'c': [0, 499], 'd': [42, 101, 300]}
        frame_null = frame.copy()
        for column, rows in nulls.items():
            frame_null.loc[frame_null.index[rows], column] = np.nan
        incomplete = set().union(*nulls.values())

        joint = ProductKDE(['a', 'b', 'c', 'd']).fit(frame_null)
        assert joint.num_instances() == SIZE - len(incomplete)

        query = generate_normal_data(TEST_SIZE, seed=11).astype(dtype)
        query_nulls = {'a': [1, 7], 'c': [7, 20], 'd': [49]}
        for column, rows in query_nulls.items():
            query.loc[query.index[rows], column] = np.nan
        expected_nan = np.zeros(TEST_SIZE, dtype=bool)
        expected_nan[sorted(set().union(*query_nulls.values()))] = True

        logl = joint.logl(query)
        assert np.array_equal(np.isnan(logl), expected_nan)
        assert np.isclose(joint.slogl(query), np.nansum(logl.astype(np.float64)), rtol=1e-6)


# ---------- Unusable bandwidths ----------

@pytest.mark.parametrize("backend", available_backends())
def test_constant_column(backend):
    train = pd.DataFrame({'a': np.full(20, 2.0), 'b': np.linspace(0, 1, 20)})
    query = pd.DataFrame({'a': [2.0, 1.0, np.nan], 'b': [0.5, 0.2, 0.3]})

    cpd = ProductKDE(['a', 'b'], backend=backend)
    with pytest.warns(DegenerateSampleWarning):
        cpd.fit(train)
    assert cpd.bandwidth[0] == 0.0
    assert not cpd.has_usable_kernel()

    logl = cpd.logl(query)
    assert logl.shape == (3,)
    assert np.all(np.isnan(logl))
    assert np.isnan(cpd.slogl(query))

    # a positive bandwidth restores a proper density
    cpd.bandwidth = {'a': 0.5}
    assert cpd.has_usable_kernel()
    assert np.array_equal(np.isnan(cpd.logl(query)), [False, False, True])
    assert np.isfinite(cpd.slogl(query))


def test_single_value_column_gives_nan_slogl():
    train = pd.DataFrame({'a': [1.0, np.nan, np.nan], 'b': [0.5, 0.1, 0.2]})
    cpd = ProductKDE(['a', 'b'])
    with pytest.warns(DegenerateSampleWarning):
        cpd.fit(train)
    assert cpd.num_instances() == 1
    assert np.isnan(cpd.bandwidth[0])
    assert np.isfinite(cpd.bandwidth[1])

    assert np.all(np.isnan(cpd.logl(train)))
    assert np.isnan(cpd.slogl(train))
