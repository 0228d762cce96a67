"""pytest glue: hands each harness test the result object it expects."""

import pytest

from test_tinyqr import TestResult


@pytest.fixture
def r(request):
    return TestResult(request.node.name)
