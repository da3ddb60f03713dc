# encoding=utf-8
# %%
import unittest

import numpy as np
import torch

import pymieobs as pmo
from pymieobs.exceptions import InvalidInputError


class TestParticle(unittest.TestCase):
    def setUp(self):
        self.wl = torch.linspace(400.0, 800.0, 30, dtype=torch.float64)
        self.radius = 120.0
        self.n_p = 1.6 + 0.02j
        self.n_env = 1.33

    def test_matches_engine(self):
        p = pmo.Particle(radius=self.radius, mat=self.n_p, mat_env=self.n_env)
        res = p.get_efficiencies(self.wl)

        x = 2 * torch.pi * self.radius * self.n_env / self.wl
        res_ref = pmo.mie.efficiencies(x, self.n_p / self.n_env)

        for key in ["q_ext", "q_sca", "q_abs", "g", "albedo"]:
            torch.testing.assert_close(res[key], res_ref[key])
        torch.testing.assert_close(p.get_size_parameter(self.wl), x)

    def test_cross_sections(self):
        p = pmo.Particle(radius=self.radius, mat=self.n_p, mat_env=self.n_env)
        res = p.get_efficiencies(self.wl)

        cs_geo = np.pi * self.radius**2
        np.testing.assert_allclose(float(res["cs_geo"]), cs_geo)
        torch.testing.assert_close(res["cs_ext"], res["q_ext"] * cs_geo)
        torch.testing.assert_close(res["cs_abs"], res["cs_ext"] - res["cs_sca"])
        self.assertEqual(res["wavelength"].shape, self.wl.shape)

    def test_mie_coefficients(self):
        p = pmo.Particle(radius=self.radius, mat=self.n_p)
        res = p.get_mie_coefficients(self.wl, n_max=8)

        self.assertEqual(res["n_max"], 8)
        self.assertEqual(tuple(res["a_n"].shape), (8, 30))
        torch.testing.assert_close(
            res["m"], torch.full((30,), self.n_p, dtype=torch.complex128)
        )

    def test_radius_gradient(self):
        radius = torch.tensor(self.radius, dtype=torch.float64, requires_grad=True)
        p = pmo.Particle(radius=radius, mat=self.n_p, mat_env=self.n_env)
        p.get_efficiencies(torch.tensor(550.0))["cs_sca"].backward()

        def cs_sca(r):
            return float(
                pmo.Particle(r, self.n_p, self.n_env).get_efficiencies(550.0)["cs_sca"]
            )

        grad_num = pmo.helper.num_center_diff(cs_sca, self.radius, h=1e-4)
        np.testing.assert_allclose(float(radius.grad), grad_num, rtol=1e-5)

    def test_invalid(self):
        with self.assertRaises(InvalidInputError):
            pmo.Particle(radius=-5.0, mat=1.5)

        p = pmo.Particle(radius=50.0, mat=1.5, mat_env=1.33 + 0.1j)
        with self.assertRaises(InvalidInputError):
            p.get_efficiencies(self.wl)

    def test_repr(self):
        p = pmo.Particle(radius=50.0, mat=1.5)
        self.assertIn("homogeneous particle", repr(p))


class TestHelper(unittest.TestCase):
    def test_wiscombe(self):
        self.assertEqual(pmo.helper.get_truncation_criterion_wiscombe(5.0), 13)
        self.assertEqual(pmo.helper.get_truncation_criterion_wiscombe(1e-3), 2)
        self.assertEqual(
            pmo.helper.get_truncation_criterion_wiscombe(torch.tensor([0.5, 5.0])),
            13,
        )
        # 8 < x < 4200
        self.assertEqual(pmo.helper.get_truncation_criterion_wiscombe(100.0), 121)

    def test_interp1d(self):
        x_dat = torch.tensor([3.0, 1.0, 2.0], dtype=torch.float64)
        y_dat = torch.tensor([30.0, 10.0, 20.0], dtype=torch.float64)
        x_eval = torch.tensor([0.5, 1.0, 1.25, 2.5, 3.0, 4.0], dtype=torch.float64)

        y_eval = pmo.helper.interp1d(x_eval, x_dat, y_dat)
        y_ref = np.interp(x_eval.numpy(), [1.0, 2.0, 3.0], [10.0, 20.0, 30.0])
        np.testing.assert_allclose(y_eval.numpy(), y_ref)


class TestConfig(unittest.TestCase):
    def test_overrides(self):
        conf = pmo.config.get_config(precision="single", backend=None)
        self.assertEqual(conf["precision"], "single")
        self.assertEqual(conf["backend"], pmo.config.DEFAULT_CONFIG["backend"])

        with self.assertRaises(KeyError):
            pmo.config.get_config(colour="red")

    def test_defaults_not_mutated(self):
        conf = pmo.config.get_config()
        conf["n_workers"] = 8
        self.assertEqual(pmo.config.DEFAULT_CONFIG["n_workers"], 1)


if __name__ == "__main__":
    unittest.main(argv=["first-arg-is-ignored"], exit=False)
