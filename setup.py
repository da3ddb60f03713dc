# -*- coding: utf-8 -*-
"""manage installation"""
from setuptools import setup, find_namespace_packages
import os
import re


# =============================================================================
# helper functions to extract meta-info from package
# =============================================================================
def read_package_file(*parts):
    with open(os.path.join(os.path.dirname(__file__), *parts), "r") as f:
        return f.read()


def find_meta(key, *file_paths):
    init_file = read_package_file(*file_paths)
    meta_match = re.search(
        r"^__{}__ = ['\"]([^'\"]*)['\"]".format(key), init_file, re.M
    )
    if meta_match:
        return meta_match.group(1)
    raise RuntimeError("Unable to find {} string.".format(key))


# =============================================================================
# package module list
# =============================================================================
package_list = find_namespace_packages(where=".", include=["pymieobs*"])


# =============================================================================
# main setup
# =============================================================================
setup(
    name=find_meta("name", "pymieobs", "__init__.py"),
    version=find_meta("version", "pymieobs", "__init__.py"),
    author=find_meta("author", "pymieobs", "__init__.py"),
    description=(
        "Single-sphere Mie efficiencies, albedo and asymmetry factor via PyTorch."
    ),
    license="GPLv3+",
    long_description=read_package_file("README.md"),
    long_description_content_type="text/markdown",
    packages=package_list,
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Topic :: Scientific/Engineering :: Physics",
        "Environment :: Console",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)",
        "Intended Audience :: Science/Research",
    ],
    keywords=[
        "Mie Theory",
        "optical scattering",
        "single scattering albedo",
        "asymmetry factor",
        "automatic differentiation",
    ],
    install_requires=[
        "torch>=2.0.0",
        "scipy>=1.10.0",
        "numpy",
        "tqdm",
        "pyyaml",
    ],
    extras_require={"test": ["pytest"]},
    python_requires=">=3.9",
)
