"""
Shared fixtures: generated Gaussian data with known dependencies.
"""

import pytest

from jaxpgm import reset_config
from util_test import SIZE, TEST_SIZE, generate_normal_data


@pytest.fixture(autouse=True)
def _fresh_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture(scope="session")
def df():
    return generate_normal_data(SIZE, seed=0)


@pytest.fixture(scope="session")
def df_float(df):
    return df.astype('float32')


@pytest.fixture(scope="session")
def test_df():
    return generate_normal_data(TEST_SIZE, seed=1)


@pytest.fixture(scope="session")
def test_df_float(test_df):
    return test_df.astype('float32')
