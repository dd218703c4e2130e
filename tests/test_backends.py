"""
Test backend implementations.

Tests appropriate backends based on what is installed:
- CPU: Always tested
- PyTorch FP64: Tested if torch is importable (CUDA not required)
"""

import warnings

import pytest
import numpy as np

from pyinfluence import ArrayModel, Diagnostics, DiagnosticsConfig, RankDeficientError
from pyinfluence._backends import (
    PYTORCH_FP64_AVAILABLE,
    get_backend,
    list_available_backends,
)
from pyinfluence._backends.cpu_fp64_backend import CPUBackendFP64


def make_data(n=100, p=3, seed=42):
    np.random.seed(seed)
    X = np.column_stack([np.ones(n), np.random.randn(n, p)])
    beta_true = np.array([0.5, 1.0, 2.0, -1.5])[:p + 1]
    y = X @ beta_true + 0.1 * np.random.randn(n)
    return X, y, beta_true


def torch_backend():
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        return get_backend('pytorch')


class TestBackendSelection:
    """Test backend lookup."""

    def test_list_backends(self):
        """Test backend listing."""
        backends = list_available_backends()
        assert isinstance(backends, list)
        assert 'cpu' in backends  # CPU always available
        assert ('pytorch' in backends) == PYTORCH_FP64_AVAILABLE

    def test_auto(self):
        """Test auto-selection returns a known backend."""
        backend = get_backend('auto')
        assert backend.name in ('cpu_fp64', 'pytorch_fp64')

    def test_instance_passthrough(self):
        """Test a backend instance is returned unchanged."""
        backend = CPUBackendFP64()
        assert get_backend(backend) is backend

    def test_unknown(self):
        """Test unknown backend names are rejected."""
        with pytest.raises(ValueError):
            get_backend('tpu')

    @pytest.mark.skipif(PYTORCH_FP64_AVAILABLE, reason="PyTorch is installed")
    def test_pytorch_missing(self):
        """Test requesting PyTorch without torch installed."""
        with pytest.raises(RuntimeError):
            get_backend('pytorch')


class TestCPUBackend:
    """Test CPU backend (always available)."""

    def test_cpu_backend_creation(self):
        """Test CPU backend initializes correctly."""
        backend = get_backend('cpu')
        assert backend.name == 'cpu_fp64'
        assert backend.precision == 'fp64'

    def test_cpu_device_info(self):
        """Test CPU backend device info."""
        info = get_backend('cpu').get_device_info()
        assert info['backend'] == 'cpu'
        assert info['precision'] == 'fp64'

    @pytest.mark.parametrize("mode,q_cols", [('economic', 4), ('full', 100)])
    def test_qr_shapes(self, mode, q_cols):
        """Test QR factor shapes and reconstruction."""
        X, _, _ = make_data()
        qr = get_backend('cpu').qr(X, mode=mode)
        assert qr.Q.shape == (100, q_cols)
        assert qr.R.shape == (4, 4)
        assert qr.rank == 4
        np.testing.assert_allclose(qr.Q[:, :4] @ qr.R, X[:, qr.pivot], atol=1e-10)
        np.testing.assert_array_equal(np.tril(qr.R, -1), 0.0)

    def test_qr_bad_mode(self):
        """Test unknown QR modes are rejected."""
        X, _, _ = make_data()
        with pytest.raises(ValueError):
            get_backend('cpu').qr(X, mode='r')

    def test_qr_rank(self):
        """Test numerical rank of a collinear design."""
        X, _, _ = make_data(20, 2)
        X = np.column_stack([X, X[:, 1] + X[:, 2]])
        assert get_backend('cpu').qr(X).rank == 3

    def test_invert_upper_triangular(self):
        """Test triangular inverse."""
        R = np.array([[2.0, 1.0, -1.0], [0.0, 3.0, 0.5], [0.0, 0.0, 4.0]])
        R_inv = get_backend('cpu').invert_upper_triangular(R)
        np.testing.assert_allclose(R @ R_inv, np.eye(3), atol=1e-14)

    def test_invert_exactly_singular(self):
        """Test exactly singular R raises LinAlgError."""
        R = np.array([[1.0, 2.0], [0.0, 0.0]])
        with pytest.raises(np.linalg.LinAlgError):
            get_backend('cpu').invert_upper_triangular(R)

    def test_cpu_simple_regression(self):
        """Test simple regression on CPU."""
        X, y, beta_true = make_data()
        result = get_backend('cpu').fit_linear_model(X, y)

        assert result.coef.shape == (4,)
        assert result.residuals.shape == (100,)
        assert result.rank == 4
        assert result.df_residual == 96
        assert np.allclose(result.coef, beta_true, atol=0.1)
        # Residuals orthogonal to the column space
        np.testing.assert_allclose(X.T @ result.residuals, 0.0, atol=1e-10)

    def test_cpu_aliased_column(self):
        """Aliased columns get NaN coefficients."""
        X, y, _ = make_data(30, 2)
        X = np.column_stack([X, X[:, 1]])
        result = get_backend('cpu').fit_linear_model(X, y)
        assert result.rank == 3
        assert np.sum(np.isnan(result.coef)) == 1


@pytest.mark.skipif(not PYTORCH_FP64_AVAILABLE, reason="PyTorch not installed")
class TestPyTorchBackend:
    """Test PyTorch FP64 backend against the CPU reference."""

    def test_pytorch_backend_creation(self):
        """Test PyTorch backend initializes in FP64."""
        backend = torch_backend()
        assert backend.name == 'pytorch_fp64'
        assert backend.precision == 'fp64'
        info = backend.get_device_info()
        assert info['precision'] == 'fp64'
        assert 'PyTorch' in info['library']

    def test_qr(self):
        """Test unpivoted QR on PyTorch."""
        X, _, _ = make_data()
        qr = torch_backend().qr(X)
        np.testing.assert_array_equal(qr.pivot, np.arange(4))
        np.testing.assert_allclose(qr.Q @ qr.R, X, atol=1e-10)

    def test_diagnostics_match_cpu(self):
        """Test diagnostics agree with the CPU backend."""
        X, y, _ = make_data()
        model = ArrayModel(X, y - X @ np.linalg.lstsq(X, y, rcond=None)[0])
        cpu = Diagnostics(model, DiagnosticsConfig(backend='cpu'))
        gpu = Diagnostics(model, DiagnosticsConfig(backend=torch_backend()))

        np.testing.assert_allclose(gpu.leverage_points(), cpu.leverage_points(), atol=1e-10)
        np.testing.assert_allclose(gpu.cooks_distance(), cpu.cooks_distance(), rtol=1e-8)
        np.testing.assert_allclose(
            gpu.variance_covariance_matrix(), cpu.variance_covariance_matrix(), rtol=1e-8
        )

    def test_fit_matches_cpu(self):
        """Test OLS fit agrees with the CPU backend."""
        X, y, _ = make_data()
        cpu = get_backend('cpu').fit_linear_model(X, y)
        gpu = torch_backend().fit_linear_model(X, y)
        np.testing.assert_allclose(gpu.coef, cpu.coef, rtol=1e-10)
        np.testing.assert_allclose(gpu.residuals, cpu.residuals, atol=1e-10)

    def test_fit_rank_deficient(self):
        """Test rank deficient fits are rejected."""
        X, y, _ = make_data(30, 2)
        X = np.column_stack([X, X[:, 1]])
        with pytest.raises(RankDeficientError):
            torch_backend().fit_linear_model(X, y)
