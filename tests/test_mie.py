# encoding=utf-8
# %%
import unittest
import warnings

import numpy as np
import torch

import pymieobs as pmo
from pymieobs.exceptions import InvalidInputError
from pymieobs.exceptions import DegenerateRatioError
from pymieobs.exceptions import NumericalInstabilityWarning


class TestGoldenValues(unittest.TestCase):
    def test_dielectric_x5(self):
        # reference: Bohren & Huffman BHMIE algorithm, double precision
        res = pmo.compute_efficiencies(5.0, 1.5 + 0.0j)

        np.testing.assert_allclose(res.q_ext, 3.927826731583, rtol=1e-6)
        np.testing.assert_allclose(res.q_sca, 3.927826731583, rtol=1e-6)
        np.testing.assert_allclose(res.g, 0.707294784017, rtol=1e-6)
        np.testing.assert_allclose(res.q_back, 2.2038810933, rtol=1e-6)
        self.assertEqual(res.n_max, 13)
        self.assertFalse(res.unstable)
        self.assertFalse(res.degenerate)

    def test_absorbing_x1(self):
        res = pmo.compute_efficiencies(1.0, 1.5 + 0.1j)

        np.testing.assert_allclose(res.q_ext, 0.482370456347, rtol=1e-8)
        np.testing.assert_allclose(res.q_sca, 0.208740018315, rtol=1e-8)
        np.testing.assert_allclose(res.q_abs, 0.482370456347 - 0.208740018315, rtol=1e-8)
        np.testing.assert_allclose(res.g, 0.205596688541, rtol=1e-8)
        np.testing.assert_allclose(res.q_back, 0.176962217249, rtol=1e-8)
        np.testing.assert_allclose(res.albedo, 0.208740018315 / 0.482370456347, rtol=1e-8)
        np.testing.assert_allclose(res.q_pr, res.q_ext - res.g * res.q_sca, rtol=1e-12)

    def test_scipy_backend(self):
        res = pmo.compute_efficiencies(5.0, 1.5, backend="scipy")
        np.testing.assert_allclose(res.q_ext, 3.927826731583, rtol=1e-6)
        np.testing.assert_allclose(res.g, 0.707294784017, rtol=1e-6)

    def test_single_precision(self):
        res = pmo.compute_efficiencies(5.0, 1.5, precision="single")
        np.testing.assert_allclose(res.q_ext, 3.927826731583, rtol=1e-4)
        np.testing.assert_allclose(res.g, 0.707294784017, rtol=1e-4)

    def test_large_internal_argument(self):
        # |m x| far above the truncation order of the outer field
        for x, m, q_ext_ref in [
            (50.0, 10.0, 2.0087730178),
            (1000.0, 1.33, 2.0165783128),
        ]:
            res = pmo.compute_efficiencies(x, m)
            np.testing.assert_allclose(res.q_ext, q_ext_ref, rtol=1e-7)
            self.assertFalse(res.unstable)

    def test_rayleigh_value(self):
        # Q_sca = 8/3 x^4 |(m^2-1)/(m^2+2)|^2
        x, m = 0.01, 1.5
        res = pmo.compute_efficiencies(x, m)
        q_sca_rayleigh = 8 / 3 * x**4 * abs((m**2 - 1) / (m**2 + 2)) ** 2
        np.testing.assert_allclose(res.q_sca, q_sca_rayleigh, rtol=1e-3)


class TestProperties(unittest.TestCase):
    def setUp(self):
        self.x = torch.linspace(0.05, 15.0, 40, dtype=torch.float64).unsqueeze(1)
        self.m = torch.tensor(
            [1.33 + 0.0j, 1.5 + 0.01j, 2.0 + 0.5j, 0.8 + 0.0j, 3.5 + 0.01j],
            dtype=torch.complex128,
        )

    def test_output_shapes(self):
        res = pmo.mie.efficiencies(self.x, self.m)
        for key in ["q_ext", "q_sca", "q_abs", "albedo", "g", "q_back", "q_pr"]:
            self.assertEqual(tuple(res[key].shape), (40, 5), key)
        self.assertEqual(
            tuple(res["q_ext_multipoles"].shape), (2, res["n_max"], 40, 5)
        )
        self.assertEqual(tuple(res["a_n"].shape), (res["n_max"], 40, 5))
        torch.testing.assert_close(
            res["q_sca_multipoles"].sum(dim=(0, 1)), res["q_sca"]
        )

    def test_absorption_identity(self):
        res = pmo.mie.efficiencies(self.x, self.m)
        self.assertTrue(torch.equal(res["q_abs"], res["q_ext"] - res["q_sca"]))

    def test_no_absorption_for_real_index(self):
        x = torch.logspace(-2, 0, 20, dtype=torch.float64)
        res = pmo.mie.efficiencies(x, 1.5)
        self.assertTrue(torch.all(torch.abs(res["q_abs"]) < 1e-12))

    def test_albedo_range(self):
        res = pmo.mie.efficiencies(self.x, self.m)
        self.assertTrue(torch.all(res["albedo"] >= 0))
        self.assertTrue(torch.all(res["albedo"] <= 1))

    def test_albedo_range_real_index(self):
        # rounding in Q_ext - Q_sca must not push the albedo above one
        x = torch.linspace(0.05, 30.0, 400, dtype=torch.float64)
        res = pmo.mie.efficiencies(x, 1.5)
        self.assertTrue(torch.all(res["albedo"] <= 1))
        self.assertTrue(torch.all(res["albedo"] >= 0))
        torch.testing.assert_close(res["albedo"], torch.ones_like(x))

    def test_asymmetry_range(self):
        res = pmo.mie.efficiencies(self.x, self.m)
        self.assertTrue(torch.all(res["g"] >= -1))
        self.assertTrue(torch.all(res["g"] <= 1))

    def test_rayleigh_scaling(self):
        x = torch.tensor([1e-3, 2e-3], dtype=torch.float64)
        res = pmo.mie.efficiencies(x, 1.5)
        ratio = float(res["q_sca"][1] / res["q_sca"][0])
        np.testing.assert_allclose(ratio, 16.0, rtol=1e-3)

    def test_truncation_convergence(self):
        for x in [0.5, 3.0, 12.0, 40.0]:
            for m in [1.33, 1.5 + 0.1j, 2.5 + 0.01j]:
                res = pmo.compute_efficiencies(x, m)
                res_more = pmo.compute_efficiencies(x, m, n_max=res.n_max + 10)
                np.testing.assert_allclose(res.q_ext, res_more.q_ext, rtol=1e-7)
                np.testing.assert_allclose(res.q_sca, res_more.q_sca, rtol=1e-7)

    def test_backends_agree(self):
        res_torch = pmo.mie.efficiencies(self.x, self.m, backend="torch")
        res_scipy = pmo.mie.efficiencies(self.x, self.m, backend="scipy")
        for key in ["q_ext", "q_sca", "g", "q_back"]:
            torch.testing.assert_close(
                res_torch[key], res_scipy[key], rtol=1e-6, atol=1e-10
            )

    def test_no_warning_in_normal_range(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error", NumericalInstabilityWarning)
            res = pmo.mie.efficiencies(self.x, self.m)
            pmo.compute_efficiencies(1e-3, 1.5)
        self.assertFalse(torch.any(res["unstable"]))


class TestEdgeCases(unittest.TestCase):
    def test_invalid_size_parameter(self):
        for x in [0.0, -1.0, float("nan"), float("inf")]:
            with self.assertRaises(InvalidInputError):
                pmo.compute_efficiencies(x, 1.5)

        with self.assertRaises(InvalidInputError):
            pmo.mie.efficiencies(torch.tensor([1.0, 0.0]), 1.5)

    def test_invalid_index(self):
        for m in [0.0, 1.5 - 0.1j, -1.5 + 0.1j, complex(float("nan"), 0)]:
            with self.assertRaises(InvalidInputError):
                pmo.compute_efficiencies(1.0, m)

    def test_invalid_input_is_value_error(self):
        with self.assertRaises(ValueError):
            pmo.compute_efficiencies(-1.0, 1.5)

    def test_batch_input_rejected(self):
        with self.assertRaises(InvalidInputError):
            pmo.compute_efficiencies([1.0, 2.0], 1.5)

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            pmo.compute_efficiencies(1.0, 1.5, backend="fortran")

    def test_index_matched_sphere(self):
        res = pmo.compute_efficiencies(2.0, 1.0)
        self.assertEqual(res.q_ext, 0.0)
        self.assertEqual(res.q_sca, 0.0)
        self.assertEqual(res.q_abs, 0.0)
        self.assertTrue(np.isnan(res.albedo))
        self.assertTrue(np.isnan(res.g))
        self.assertEqual(res.q_pr, 0.0)
        self.assertTrue(res.degenerate)
        self.assertFalse(res.unstable)

    def test_degenerate_strict(self):
        with self.assertRaises(DegenerateRatioError):
            pmo.compute_efficiencies(2.0, 1.0, strict=True)

        # non-degenerate inputs are unaffected by strict mode
        res = pmo.compute_efficiencies(2.0, 1.5, strict=True)
        self.assertFalse(res.degenerate)

    def test_truncation_too_small(self):
        with self.assertWarns(NumericalInstabilityWarning):
            res = pmo.compute_efficiencies(10.0, 1.5, n_max=2)
        self.assertTrue(res.unstable)
        self.assertTrue(np.isfinite(res.q_ext))

        with self.assertRaises(InvalidInputError):
            pmo.compute_efficiencies(10.0, 1.5, n_max=0)

    def test_config_thresholds(self):
        res = pmo.mie.efficiencies(0.01, 1.5, degenerate_threshold=1.0)
        self.assertTrue(bool(res["degenerate"]))
        self.assertTrue(torch.isnan(res["albedo"]))

    def test_small_sphere_not_degenerate(self):
        x, m = 1e-5, 1.5
        res = pmo.compute_efficiencies(x, m)
        q_sca_rayleigh = 8 / 3 * x**4 * abs((m**2 - 1) / (m**2 + 2)) ** 2

        self.assertFalse(res.degenerate)
        np.testing.assert_allclose(res.q_sca, q_sca_rayleigh, rtol=1e-6)
        np.testing.assert_allclose(res.albedo, 1.0, rtol=1e-6)
        self.assertTrue(np.isfinite(res.g))
        self.assertTrue(abs(res.g) < 1e-6)


class TestAutodiff(unittest.TestCase):
    def test_grad_size_parameter(self):
        x0, m = 3.0, 1.5 + 0.1j

        x = torch.tensor(x0, dtype=torch.float64, requires_grad=True)
        q_ext = pmo.mie.efficiencies(x, m)["q_ext"]
        q_ext.backward()

        def q_ext_of_x(_x):
            return pmo.compute_efficiencies(_x, m).q_ext

        grad_num = pmo.helper.num_center_diff(q_ext_of_x, x0)
        np.testing.assert_allclose(float(x.grad), grad_num, rtol=1e-5)

    def test_grad_refractive_index(self):
        x, m0 = 2.0, 1.5 + 0.1j

        m = torch.tensor(m0, dtype=torch.complex128, requires_grad=True)
        q_sca = pmo.mie.efficiencies(x, m)["q_sca"]
        q_sca.backward()

        # real-valued loss: grad = dL/dRe(m) + i dL/dIm(m)
        grad_re = pmo.helper.num_center_diff(
            lambda n: pmo.compute_efficiencies(x, n + 1j * m0.imag).q_sca, m0.real
        )
        grad_im = pmo.helper.num_center_diff(
            lambda k: pmo.compute_efficiencies(x, m0.real + 1j * k).q_sca, m0.imag
        )
        np.testing.assert_allclose(m.grad.real.item(), grad_re, rtol=1e-5)
        np.testing.assert_allclose(m.grad.imag.item(), grad_im, rtol=1e-5)

    def test_grad_backends_agree(self):
        grads = []
        for backend in ["torch", "scipy"]:
            x = torch.linspace(0.5, 8.0, 6, dtype=torch.float64, requires_grad=True)
            res = pmo.mie.efficiencies(x, 1.5 + 0.05j, backend=backend)
            res["q_ext"].sum().backward()
            grads.append(x.grad)
        torch.testing.assert_close(grads[0], grads[1], rtol=1e-6, atol=1e-9)


if __name__ == "__main__":
    unittest.main(argv=["first-arg-is-ignored"], exit=False)
