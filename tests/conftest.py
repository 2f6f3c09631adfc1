import pytest


@pytest.fixture
def monthly_grid():
    """Eight months: Sales rising, Costs falling, Stable flat."""
    return [
        ["Month", "Sales", "Costs", "Stable"],
        ["2024-01-01", "100", "200", "50"],
        ["2024-02-01", "110", "190", "50"],
        ["2024-03-01", "120", "180", "51"],
        ["2024-04-01", "130", "170", "50"],
        ["2024-05-01", "160", "140", "50"],
        ["2024-06-01", "170", "130", "51"],
        ["2024-07-01", "180", "120", "50"],
        ["2024-08-01", "190", "110", "50"],
    ]
